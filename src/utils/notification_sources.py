from __future__ import annotations

import datetime
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional, Tuple

import pytz
from pydantic import TypeAdapter, ValidationError

from src.models import Category, NormalizedNotification, SourceKind
from src.utils.priority_policy import PriorityPolicy

FETCH_LIMIT = 50
EPOCH = datetime.datetime(1970, 1, 1, tzinfo=pytz.utc)

SUPPORT_TABLE = "support_notifications"
SYSTEM_LOGS_TABLE = "system_logs"
SECURITY_ALERTS_TABLE = "security_alerts"
USER_ACTION_LOGS_TABLE = "user_action_logs"
PARTNER_ACTIONS_TABLE = "partner_actions"

SYSTEM_LEVELS = ["error", "warning", "info"]
USER_ACTIVITY_TYPES = ["login", "logout", "password_change", "role_change"]
DRIVER_ACTIVITY_TYPES = ["driver_registration", "driver_verification", "driver_status_change"]

Row = Dict[str, Any]
Normalizer = Callable[[Row, PriorityPolicy], NormalizedNotification]

_datetime_adapter = TypeAdapter(datetime.datetime)


def parse_timestamp(value: Any, fallback: Optional[datetime.datetime] = None) -> datetime.datetime:
    """Parse an origin timestamp into an aware UTC datetime.

    Missing or unparseable values fall back to ``fallback`` (the epoch by default).
    """
    fallback = fallback or EPOCH
    if value is None or value == "":
        return fallback
    try:
        parsed = _datetime_adapter.validate_python(value)
        if parsed.tzinfo is None:
            return pytz.utc.localize(parsed)
        return parsed.astimezone(pytz.utc)
    except (ValidationError, OverflowError, ValueError):
        # Unparseable, or out of range once shifted to UTC
        return fallback


def _text(value: Any, default: str) -> str:
    if value is None:
        return default
    value = str(value)
    return value if value.strip() else default


def _level(row: Row) -> str:
    return _text(row.get("level"), "unknown").upper()


def _base(row: Row, kind: SourceKind, category: Category) -> Dict[str, Any]:
    created_at = parse_timestamp(row.get("created_at"))
    return {
        "id": _text(row.get("id"), ""),
        "source_kind": kind,
        "category": category,
        "created_at": created_at,
        "updated_at": parse_timestamp(row.get("updated_at"), fallback=created_at),
        "user_id": str(row["user_id"]) if row.get("user_id") is not None else None,
        "origin_payload": dict(row),
    }


def normalize_support(row: Row, policy: PriorityPolicy) -> NormalizedNotification:
    return NormalizedNotification(
        **_base(row, SourceKind.SUPPORT, Category.SUPPORT),
        title=_text(row.get("title"), "Support Notification"),
        message=_text(row.get("message"), "New support activity"),
        priority=policy.for_support(row.get("notification_type")),
        is_read=bool(row.get("is_read") or False),
    )


def normalize_system_log(row: Row, policy: PriorityPolicy) -> NormalizedNotification:
    return NormalizedNotification(
        **_base(row, SourceKind.SYSTEM, Category.SYSTEM),
        title=f"System {_level(row)}",
        message=_text(row.get("message"), "System activity"),
        priority=policy.for_system(row.get("level")),
    )


def normalize_security_alert(row: Row, policy: PriorityPolicy) -> NormalizedNotification:
    return NormalizedNotification(
        **_base(row, SourceKind.SECURITY, Category.SECURITY),
        title=f"Security Alert: {_text(row.get('alert_type'), 'Unknown')}",
        message=_text(row.get("description"), "Security event detected"),
        priority=policy.for_alert(row.get("severity")),
    )


def normalize_user_action(row: Row, policy: PriorityPolicy) -> NormalizedNotification:
    action = _text(row.get("action_type"), "Unknown")
    return NormalizedNotification(
        **_base(row, SourceKind.USER, Category.SYSTEM),
        title=f"User Activity: {action}",
        message=f"{_text(row.get('user_email'), 'Unknown user')} performed {action}",
        priority=policy.user_activity,
    )


def normalize_partner_action(row: Row, policy: PriorityPolicy) -> NormalizedNotification:
    action = _text(row.get("action_type"), "Unknown")
    fields = _base(row, SourceKind.ADMIN, Category.PARTNERS)
    # partner_actions has no updated_at column
    fields["updated_at"] = fields["created_at"]
    return NormalizedNotification(
        **fields,
        title=f"Partner Action: {action}",
        message=f"{_text(row.get('partner_name'), 'Unknown partner')} - {action}",
        priority=policy.partner_activity,
    )


def normalize_driver_action(row: Row, policy: PriorityPolicy) -> NormalizedNotification:
    action = _text(row.get("action_type"), "Unknown")
    fields = _base(row, SourceKind.ADMIN, Category.DRIVERS)
    fields["updated_at"] = fields["created_at"]
    return NormalizedNotification(
        **fields,
        title=f"Driver Activity: {action}",
        message=f"{_text(row.get('user_email'), 'Unknown driver')} - {action}",
        priority=policy.driver_activity,
    )


def tagged_log_normalizer(category: Category, label: str, noun: str) -> Normalizer:
    """Build the normalizer for system_logs lines tagged by a keyword search."""

    def normalize(row: Row, policy: PriorityPolicy) -> NormalizedNotification:
        return NormalizedNotification(
            **_base(row, SourceKind.SYSTEM, category),
            title=f"{label}: {_level(row)}",
            message=_text(row.get("message"), f"{noun} activity"),
            priority=policy.for_tagged(row.get("level")),
        )

    return normalize


def keyword_filter(*keywords: str) -> str:
    return ",".join(f"message.ilike.%{keyword}%" for keyword in keywords)


@dataclass(frozen=True)
class NotificationSource:
    name: str
    table: str
    source_kind: SourceKind
    normalize: Normalizer
    in_filter: Optional[Tuple[str, List[str]]] = None
    or_filter: Optional[str] = None

    def query(self, client, limit: int = FETCH_LIMIT):
        query = client.table(self.table).select("*")
        if self.in_filter:
            column, values = self.in_filter
            query = query.in_(column, values)
        if self.or_filter:
            query = query.or_(self.or_filter)
        return query.order("created_at", desc=True).limit(limit)


# Fetch order matters: identity and fingerprint dedup keep the first row seen.
DEFAULT_SOURCES: List[NotificationSource] = [
    NotificationSource("support", SUPPORT_TABLE, SourceKind.SUPPORT, normalize_support),
    NotificationSource(
        "system", SYSTEM_LOGS_TABLE, SourceKind.SYSTEM, normalize_system_log,
        in_filter=("level", SYSTEM_LEVELS),
    ),
    NotificationSource("security", SECURITY_ALERTS_TABLE, SourceKind.SECURITY, normalize_security_alert),
    NotificationSource(
        "user", USER_ACTION_LOGS_TABLE, SourceKind.USER, normalize_user_action,
        in_filter=("action_type", USER_ACTIVITY_TYPES),
    ),
    NotificationSource("partners", PARTNER_ACTIONS_TABLE, SourceKind.ADMIN, normalize_partner_action),
    NotificationSource(
        "drivers", USER_ACTION_LOGS_TABLE, SourceKind.ADMIN, normalize_driver_action,
        in_filter=("action_type", DRIVER_ACTIVITY_TYPES),
    ),
    NotificationSource(
        "fleet", SYSTEM_LOGS_TABLE, SourceKind.SYSTEM,
        tagged_log_normalizer(Category.FLEET, "Fleet Update", "Fleet"),
        or_filter=keyword_filter("fleet", "vehicle"),
    ),
    NotificationSource(
        "documents", SYSTEM_LOGS_TABLE, SourceKind.SYSTEM,
        tagged_log_normalizer(Category.DOCUMENTS, "Document Activity", "Document"),
        or_filter=keyword_filter("document", "file"),
    ),
    NotificationSource(
        "payments", SYSTEM_LOGS_TABLE, SourceKind.SYSTEM,
        tagged_log_normalizer(Category.PAYMENTS, "Payment Activity", "Payment"),
        or_filter=keyword_filter("payment", "transaction"),
    ),
    NotificationSource(
        "bookings", SYSTEM_LOGS_TABLE, SourceKind.SYSTEM,
        tagged_log_normalizer(Category.BOOKINGS, "Booking Activity", "Booking"),
        or_filter=keyword_filter("booking", "reservation"),
    ),
    NotificationSource(
        "claims", SYSTEM_LOGS_TABLE, SourceKind.SYSTEM,
        tagged_log_normalizer(Category.CLAIMS, "Claim Activity", "Claim"),
        or_filter=keyword_filter("claim", "insurance"),
    ),
]
