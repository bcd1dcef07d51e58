import datetime

import pytest
import pytz

from src.models import Category, Priority, SourceKind
from src.utils.notification_sources import (
    DEFAULT_SOURCES,
    EPOCH,
    normalize_partner_action,
    normalize_security_alert,
    normalize_support,
    normalize_system_log,
    normalize_user_action,
    parse_timestamp,
    tagged_log_normalizer,
)
from src.utils.priority_policy import PriorityPolicy

policy = PriorityPolicy()


def test_parse_timestamp_handles_z_suffix_and_offsets():
    parsed = parse_timestamp("2024-07-08T10:15:30.123456Z")
    assert parsed == datetime.datetime(2024, 7, 8, 10, 15, 30, 123456, tzinfo=pytz.utc)

    shifted = parse_timestamp("2024-07-08T12:15:30+02:00")
    assert shifted == datetime.datetime(2024, 7, 8, 10, 15, 30, tzinfo=pytz.utc)


def test_parse_timestamp_assumes_utc_for_naive_values():
    parsed = parse_timestamp("2024-07-08T10:15:30")
    assert parsed.tzinfo is not None
    assert parsed.utcoffset() == datetime.timedelta(0)


@pytest.mark.parametrize("value", [None, "", "not a date", "0001-01-01T00:00:00+05:00"])
def test_parse_timestamp_falls_back_to_epoch(value):
    assert parse_timestamp(value) == EPOCH


def test_support_row_keeps_read_flag_and_urgency():
    n = normalize_support(
        {
            "id": "s1",
            "title": "Ticket escalated",
            "message": "Customer waiting",
            "notification_type": "urgent",
            "is_read": True,
            "created_at": "2024-07-08T10:00:00Z",
            "user_id": "u1",
        },
        policy,
    )
    assert n.source_kind == SourceKind.SUPPORT
    assert n.category == Category.SUPPORT
    assert n.priority == Priority.HIGH
    assert n.is_read is True
    assert n.user_id == "u1"
    assert n.origin_payload["title"] == "Ticket escalated"


def test_support_row_with_missing_fields_uses_fallbacks():
    n = normalize_support({"id": "s2"}, policy)
    assert n.title == "Support Notification"
    assert n.message == "New support activity"
    assert n.priority == Priority.MEDIUM
    assert n.is_read is False
    assert n.created_at == EPOCH
    assert n.updated_at == EPOCH


@pytest.mark.parametrize(
    "level,expected",
    [("error", Priority.CRITICAL), ("WARNING", Priority.HIGH), ("info", Priority.MEDIUM), (None, Priority.MEDIUM)],
)
def test_system_log_priority(level, expected):
    n = normalize_system_log({"id": "l1", "level": level, "message": "Disk full"}, policy)
    assert n.priority == expected
    assert n.is_read is False


def test_system_log_without_level_still_gets_a_title():
    n = normalize_system_log({"id": "l1"}, policy)
    assert n.title == "System UNKNOWN"
    assert n.message == "System activity"


def test_security_alert_normalization():
    n = normalize_security_alert(
        {"id": "a1", "alert_type": "brute_force", "severity": "critical", "description": "50 failed logins"},
        policy,
    )
    assert n.title == "Security Alert: brute_force"
    assert n.message == "50 failed logins"
    assert n.priority == Priority.CRITICAL

    bare = normalize_security_alert({"id": "a2"}, policy)
    assert bare.title == "Security Alert: Unknown"
    assert bare.message == "Security event detected"
    assert bare.priority == Priority.MEDIUM


def test_user_action_is_low_priority_system_category():
    n = normalize_user_action({"id": "u1", "action_type": "login"}, policy)
    assert n.source_kind == SourceKind.USER
    assert n.category == Category.SYSTEM
    assert n.message == "Unknown user performed login"
    assert n.priority == Priority.LOW


def test_partner_action_uses_created_at_for_updated_at():
    n = normalize_partner_action(
        {
            "id": "p1",
            "action_type": "fleet_added",
            "partner_name": "City Cars",
            "created_at": "2024-07-08T10:00:00Z",
            "updated_at": "2025-01-01T00:00:00Z",
        },
        policy,
    )
    assert n.category == Category.PARTNERS
    assert n.message == "City Cars - fleet_added"
    assert n.updated_at == n.created_at


def test_tagged_log_normalizer():
    normalize = tagged_log_normalizer(Category.PAYMENTS, "Payment Activity", "Payment")
    n = normalize({"id": "l9", "level": "error"}, policy)
    assert n.category == Category.PAYMENTS
    assert n.source_kind == SourceKind.SYSTEM
    assert n.title == "Payment Activity: ERROR"
    assert n.message == "Payment activity"
    assert n.priority == Priority.HIGH


def test_policy_override_from_json():
    custom = PriorityPolicy.from_env('{"system_levels": {"ERROR": "high"}, "user_activity": "medium"}')
    assert custom.for_system("error") == Priority.HIGH
    assert custom.for_system("warning") == Priority.MEDIUM
    assert normalize_user_action({"id": "u"}, custom).priority == Priority.MEDIUM


def test_policy_defaults_when_env_is_empty(monkeypatch):
    monkeypatch.delenv("NOTIFICATION_PRIORITY_POLICY", raising=False)
    assert PriorityPolicy.from_env() == PriorityPolicy()


def test_source_table_covers_every_origin_query():
    names = [source.name for source in DEFAULT_SOURCES]
    assert names[0] == "support"
    assert len(names) == len(set(names)) == 11
    tables = {source.table for source in DEFAULT_SOURCES}
    assert tables == {
        "support_notifications",
        "system_logs",
        "security_alerts",
        "user_action_logs",
        "partner_actions",
    }
