from __future__ import annotations

import os
from typing import Any, Dict, Optional

from pydantic import BaseModel, Field, field_validator

from src.models import Priority
from src.utils.log import log

POLICY_ENV_VAR = "NOTIFICATION_PRIORITY_POLICY"


class PriorityPolicy(BaseModel):
    """Maps origin severity/level strings onto notification priorities.

    Keys are matched case-insensitively against the origin field. Anything
    not listed falls through to the matching ``*_default``.
    """

    support_types: Dict[str, Priority] = Field(
        default_factory=lambda: {"urgent": Priority.HIGH}
    )
    support_default: Priority = Priority.MEDIUM

    system_levels: Dict[str, Priority] = Field(
        default_factory=lambda: {"error": Priority.CRITICAL, "warning": Priority.HIGH}
    )
    system_default: Priority = Priority.MEDIUM

    alert_severities: Dict[str, Priority] = Field(
        default_factory=lambda: {"critical": Priority.CRITICAL, "high": Priority.HIGH}
    )
    alert_default: Priority = Priority.MEDIUM

    # fleet/documents/payments/bookings/claims log lines
    tagged_levels: Dict[str, Priority] = Field(
        default_factory=lambda: {"error": Priority.HIGH}
    )
    tagged_default: Priority = Priority.MEDIUM

    user_activity: Priority = Priority.LOW
    partner_activity: Priority = Priority.MEDIUM
    driver_activity: Priority = Priority.MEDIUM

    @field_validator("support_types", "system_levels", "alert_severities", "tagged_levels")
    @classmethod
    def lowercase_keys(cls, v):
        return {key.strip().lower(): priority for key, priority in v.items()}

    @staticmethod
    def _lookup(table: Dict[str, Priority], value: Any, default: Priority) -> Priority:
        if not isinstance(value, str):
            return default
        return table.get(value.strip().lower(), default)

    def for_support(self, notification_type: Any) -> Priority:
        return self._lookup(self.support_types, notification_type, self.support_default)

    def for_system(self, level: Any) -> Priority:
        return self._lookup(self.system_levels, level, self.system_default)

    def for_alert(self, severity: Any) -> Priority:
        return self._lookup(self.alert_severities, severity, self.alert_default)

    def for_tagged(self, level: Any) -> Priority:
        return self._lookup(self.tagged_levels, level, self.tagged_default)

    @classmethod
    def from_env(cls, raw: Optional[str] = None) -> "PriorityPolicy":
        raw = raw if raw is not None else os.environ.get(POLICY_ENV_VAR)
        if not raw:
            return cls()
        policy = cls.model_validate_json(raw)
        log.info("Loaded priority policy override from %s", POLICY_ENV_VAR)
        return policy
