from __future__ import annotations

import asyncio
import logging
from typing import List, Sequence

from pydantic import BaseModel, Field

from src.models import NormalizedNotification
from src.utils.notification_sources import FETCH_LIMIT, NotificationSource
from src.utils.priority_policy import PriorityPolicy

logger = logging.getLogger(__name__)


class FetchResult(BaseModel):
    notifications: List[NormalizedNotification] = Field(default_factory=list)
    failed_sources: List[str] = Field(default_factory=list)


async def _fetch_source(
    client, source: NotificationSource, policy: PriorityPolicy, limit: int
) -> List[NormalizedNotification]:
    response = await source.query(client, limit).execute()
    rows = response.data or []
    logger.debug("Notification source %r returned %d row(s)", source.name, len(rows))

    notifications = []
    for row in rows:
        try:
            notifications.append(source.normalize(row, policy))
        except Exception as e:
            logger.warning(
                "Dropping malformed row %r from source %r: %s",
                row.get("id") if isinstance(row, dict) else None, source.name, e,
            )
    return notifications


async def fetch_many(
    client,
    sources: Sequence[NotificationSource],
    *,
    policy: PriorityPolicy,
    limit: int = FETCH_LIMIT,
) -> FetchResult:
    """Run every source query at once and normalize what comes back.

    A source that raises contributes no rows and is reported in
    ``failed_sources``. A row its normalizer cannot handle is dropped on its
    own. Rows keep source order, then the order each query returned them in.
    """
    results = await asyncio.gather(
        *(_fetch_source(client, source, policy, limit) for source in sources),
        return_exceptions=True,
    )

    fetched = FetchResult()
    for source, result in zip(sources, results):
        if isinstance(result, Exception):
            logger.warning("Notification source %r (%s) failed: %s", source.name, source.table, result)
            fetched.failed_sources.append(source.name)
            continue
        if isinstance(result, BaseException):
            raise result
        fetched.notifications.extend(result)
    return fetched
