from __future__ import annotations

import datetime
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field


class SourceKind(str, Enum):
    SUPPORT = "support"
    SYSTEM = "system"
    SECURITY = "security"
    USER = "user"
    ADMIN = "admin"


class Category(str, Enum):
    PARTNERS = "partners"
    DRIVERS = "drivers"
    FLEET = "fleet"
    DOCUMENTS = "documents"
    PAYMENTS = "payments"
    BOOKINGS = "bookings"
    CLAIMS = "claims"
    SUPPORT = "support"
    SYSTEM = "system"
    SECURITY = "security"


class Priority(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


# Only support notifications carry a read flag in the datastore
MUTABLE_SOURCE_KIND = SourceKind.SUPPORT


class NormalizedNotification(BaseModel):
    id: str
    source_kind: SourceKind
    category: Category
    title: str
    message: str
    priority: Priority = Priority.MEDIUM
    is_read: bool = False
    created_at: datetime.datetime
    updated_at: Optional[datetime.datetime] = None
    user_id: Optional[str] = None
    origin_payload: Dict[str, Any] = Field(default_factory=dict)

    @property
    def is_mutable(self) -> bool:
        return self.source_kind == MUTABLE_SOURCE_KIND


class NotificationSummary(BaseModel):
    total: int = 0
    unread: int = 0
    by_category: Dict[Category, int] = Field(
        default_factory=lambda: {category: 0 for category in Category}
    )


class NotificationFeed(BaseModel):
    notifications: List[NormalizedNotification] = Field(default_factory=list)
    summary: NotificationSummary = Field(default_factory=NotificationSummary)
    failed_sources: List[str] = Field(default_factory=list)
