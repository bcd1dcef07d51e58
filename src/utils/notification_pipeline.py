from __future__ import annotations

import datetime
from typing import Dict, Iterable, List, Optional, Set, Tuple

import pytz

from src.models import (
    Category,
    NormalizedNotification,
    NotificationSummary,
    Priority,
    SourceKind,
)

Fingerprint = Tuple[str, str, str, datetime.datetime]


def fingerprint(notification: NormalizedNotification) -> Fingerprint:
    created_at = notification.created_at
    if created_at.tzinfo is None:
        created_at = pytz.utc.localize(created_at)
    created_at = created_at.astimezone(pytz.utc).replace(microsecond=0)
    return (notification.category.value, notification.title, notification.message, created_at)


def drop_repeated_identities(
    notifications: Iterable[NormalizedNotification],
) -> List[NormalizedNotification]:
    """Keep the first row per (source_kind, id).

    Overlapping queries against the same table (a log line matching both
    "payment" and "transaction") would otherwise surface the row twice.
    Rows without an id are never merged.
    """
    seen: Set[Tuple[SourceKind, str]] = set()
    unique = []
    for notification in notifications:
        if notification.id:
            identity = (notification.source_kind, notification.id)
            if identity in seen:
                continue
            seen.add(identity)
        unique.append(notification)
    return unique


def dedup_by_fingerprint(
    notifications: Iterable[NormalizedNotification],
) -> List[NormalizedNotification]:
    seen: Set[Fingerprint] = set()
    unique = []
    for notification in notifications:
        key = fingerprint(notification)
        if key in seen:
            continue
        seen.add(key)
        unique.append(notification)
    return unique


def drop_excluded(
    notifications: Iterable[NormalizedNotification], excluded_ids: Set[str]
) -> List[NormalizedNotification]:
    return [n for n in notifications if n.id not in excluded_ids]


def sort_newest_first(notifications: Iterable[NormalizedNotification]) -> List[NormalizedNotification]:
    return sorted(notifications, key=lambda n: n.created_at, reverse=True)


def group_by_category(
    notifications: Iterable[NormalizedNotification],
) -> Dict[Category, List[NormalizedNotification]]:
    groups: Dict[Category, List[NormalizedNotification]] = {}
    for notification in notifications:
        groups.setdefault(notification.category, []).append(notification)
    return groups


def summarize(notifications: Iterable[NormalizedNotification]) -> NotificationSummary:
    summary = NotificationSummary()
    for notification in notifications:
        summary.total += 1
        if not notification.is_read:
            summary.unread += 1
        summary.by_category[notification.category] += 1
    return summary


def filter_view(
    notifications: Iterable[NormalizedNotification],
    *,
    source_kind: Optional[SourceKind] = None,
    category: Optional[Category] = None,
    priority: Optional[Priority] = None,
    search: Optional[str] = None,
    show_read: bool = True,
) -> List[NormalizedNotification]:
    """Apply the dashboard's filter bar to an already loaded feed."""
    needle = search.lower() if search else None
    filtered = []
    for n in notifications:
        if source_kind is not None and n.source_kind != source_kind:
            continue
        if category is not None and n.category != category:
            continue
        if priority is not None and n.priority != priority:
            continue
        if needle and needle not in n.title.lower() and needle not in n.message.lower():
            continue
        if not show_read and n.is_read:
            continue
        filtered.append(n)
    return filtered
