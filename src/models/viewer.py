from __future__ import annotations

from enum import Enum

from pydantic import BaseModel


class ViewerRole(str, Enum):
    SUPER_ADMIN = "SUPER_ADMIN"
    ADMIN = "ADMIN"
    ADMIN_STAFF = "ADMIN_STAFF"
    SUPPORT_AGENT = "SUPPORT_AGENT"
    PARTNER = "PARTNER"
    PARTNER_STAFF = "PARTNER_STAFF"
    DRIVER = "DRIVER"


class Viewer(BaseModel):
    id: str
    role: ViewerRole
