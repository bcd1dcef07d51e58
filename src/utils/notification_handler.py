from __future__ import annotations

import os
from collections import OrderedDict
from typing import List, Mapping, FrozenSet, Optional, Sequence

from dotenv import load_dotenv
from supabase import AsyncClient, create_async_client

from src.models import (
    NormalizedNotification,
    NotificationFeed,
    SourceKind,
    Viewer,
    ViewerRole,
)
from src.utils.fetch import fetch_many
from src.utils.log import log
from src.utils.notification_pipeline import (
    dedup_by_fingerprint,
    drop_excluded,
    drop_repeated_identities,
    sort_newest_first,
    summarize,
)
from src.utils.notification_sources import (
    DEFAULT_SOURCES,
    FETCH_LIMIT,
    SUPPORT_TABLE,
    NotificationSource,
)
from src.utils.permissions import ROLE_CATEGORIES, filter_for_role
from src.utils.priority_policy import PriorityPolicy
from src.utils.visibility_store import ViewerVisibilityStore, build_visibility_store

load_dotenv()

FEED_CACHE_SIZE = 256


class NotificationLoadError(Exception):
    pass


class NotificationUpdateError(Exception):
    pass


class NotificationHandler:
    supabase: AsyncClient
    store: ViewerVisibilityStore

    def __init__(
        self,
        supabase: Optional[AsyncClient] = None,
        store: Optional[ViewerVisibilityStore] = None,
        *,
        sources: Sequence[NotificationSource] = DEFAULT_SOURCES,
        policy: Optional[PriorityPolicy] = None,
        permissions: Mapping[ViewerRole, FrozenSet[str]] = ROLE_CATEGORIES,
        fetch_limit: int = FETCH_LIMIT,
        feed_cache_size: int = FEED_CACHE_SIZE,
    ):
        if supabase is not None:
            self.supabase = supabase
        if store is not None:
            self.store = store
        self.sources = list(sources)
        self.policy = policy or PriorityPolicy()
        self.permissions = permissions
        self.fetch_limit = fetch_limit
        # Last loaded feed per viewer id, oldest first; mutations act on this list
        self._feeds: OrderedDict[str, List[NormalizedNotification]] = OrderedDict()
        self.feed_cache_size = feed_cache_size

    async def init(self):
        self.supabase = await create_async_client(
            os.environ.get("SUPABASE_URL"), os.environ.get("SUPABASE_KEY")
        )
        self.store = build_visibility_store(os.environ.get("REDIS_URL"))
        self.policy = PriorityPolicy.from_env()
        self.fetch_limit = int(os.environ.get("NOTIFICATION_FETCH_LIMIT", self.fetch_limit))

    async def close(self):
        close = getattr(getattr(self, "store", None), "close", None)
        if close is not None:
            await close()

    # Feed
    async def load(self, viewer: Viewer) -> NotificationFeed:
        log.debug("Loading notifications for viewer %s (%s)", viewer.id, viewer.role.value)
        try:
            fetched = await fetch_many(
                self.supabase, self.sources, policy=self.policy, limit=self.fetch_limit
            )
            notifications = drop_repeated_identities(fetched.notifications)
            notifications = dedup_by_fingerprint(notifications)
            notifications = drop_excluded(notifications, await self.store.get_excluded_ids(viewer.id))
            notifications = filter_for_role(notifications, viewer.role, self.permissions)
            notifications = sort_newest_first(notifications)
        except Exception as e:
            log.error("Error loading notifications for viewer %s: %s", viewer.id, e, exc_info=True)
            raise NotificationLoadError("Failed to load notifications") from e

        if fetched.failed_sources:
            log.warning(
                "Loaded notifications for viewer %s without sources: %s",
                viewer.id, ", ".join(fetched.failed_sources),
            )
        self._remember(viewer.id, list(notifications))
        log.info("Loaded %d notification(s) for viewer %s", len(notifications), viewer.id)
        return NotificationFeed(
            notifications=notifications,
            summary=summarize(notifications),
            failed_sources=fetched.failed_sources,
        )

    # Mutations
    async def mark_read(
        self, viewer: Viewer, notification_id: str, source_kind: Optional[SourceKind] = None
    ) -> bool:
        notification = await self._find(viewer, notification_id, source_kind)
        if notification is None:
            return False

        if notification.is_mutable:
            try:
                await (
                    self.supabase.table(SUPPORT_TABLE)
                    .update({"is_read": True})
                    .eq("id", notification_id)
                    .execute()
                )
            except Exception as e:
                log.error("Error marking notification %s as read: %s", notification_id, e)
                raise NotificationUpdateError(
                    f"Failed to mark notification {notification_id} as read"
                ) from e

        await self._hide(viewer, [notification_id])
        return True

    async def mark_all_read(self, viewer: Viewer) -> int:
        feed = await self._feed(viewer)
        pending = [n for n in feed if not n.is_read and n.is_mutable]
        if not pending:
            log.info("No unread notifications to mark for viewer %s", viewer.id)
            return 0

        updated = []
        for notification in pending:
            try:
                await (
                    self.supabase.table(SUPPORT_TABLE)
                    .update({"is_read": True})
                    .eq("id", notification.id)
                    .execute()
                )
            except Exception as e:
                log.error("Error updating notification %s: %s", notification.id, e)
                continue
            updated.append(notification.id)

        if updated:
            await self._hide(viewer, updated)
        if len(updated) < len(pending):
            raise NotificationUpdateError("Failed to mark notifications as read")
        return len(updated)

    async def delete(
        self, viewer: Viewer, notification_id: str, source_kind: Optional[SourceKind] = None
    ) -> bool:
        notification = await self._find(viewer, notification_id, source_kind)
        if notification is None:
            return False

        if notification.is_mutable:
            try:
                await (
                    self.supabase.table(SUPPORT_TABLE)
                    .delete()
                    .eq("id", notification_id)
                    .execute()
                )
            except Exception as e:
                log.error("Error deleting notification %s: %s", notification_id, e)
                raise NotificationUpdateError(
                    f"Failed to delete notification {notification_id}"
                ) from e

        await self._hide(viewer, [notification_id])
        return True

    # Helper Methods
    def _remember(self, viewer_id: str, notifications: List[NormalizedNotification]):
        self._feeds[viewer_id] = notifications
        self._feeds.move_to_end(viewer_id)
        while len(self._feeds) > self.feed_cache_size:
            evicted, _ = self._feeds.popitem(last=False)
            log.debug("Evicted cached feed for viewer %s", evicted)

    async def _feed(self, viewer: Viewer) -> List[NormalizedNotification]:
        if viewer.id not in self._feeds:
            await self.load(viewer)
        self._feeds.move_to_end(viewer.id)
        return self._feeds[viewer.id]

    @staticmethod
    def _match(
        feed: List[NormalizedNotification], notification_id: str, source_kind: Optional[SourceKind]
    ) -> Optional[NormalizedNotification]:
        for notification in feed:
            if notification.id != notification_id:
                continue
            if source_kind is None or notification.source_kind == source_kind:
                return notification
        return None

    async def _find(
        self, viewer: Viewer, notification_id: str, source_kind: Optional[SourceKind] = None
    ) -> Optional[NormalizedNotification]:
        cached = viewer.id in self._feeds
        notification = self._match(await self._feed(viewer), notification_id, source_kind)
        if notification is not None or not cached:
            return notification
        # The id may be newer than the cached feed
        await self.load(viewer)
        return self._match(self._feeds[viewer.id], notification_id, source_kind)

    async def _hide(self, viewer: Viewer, ids: List[str]):
        await self.store.add_excluded_ids(viewer.id, ids)
        if viewer.id in self._feeds:
            hidden = set(ids)
            self._feeds[viewer.id] = [n for n in self._feeds[viewer.id] if n.id not in hidden]
