from __future__ import annotations

from typing import Dict, FrozenSet, Iterable, List, Mapping, Optional, Union

from src.models import Category, NormalizedNotification, ViewerRole

# Staff always get the notifications/support allowance on top of their categories
NOTIFICATIONS_ALLOWANCE = frozenset({"notifications", Category.SUPPORT.value})

ALL_CATEGORIES: FrozenSet[str] = frozenset(category.value for category in Category)

ROLE_CATEGORIES: Dict[ViewerRole, FrozenSet[str]] = {
    ViewerRole.SUPER_ADMIN: ALL_CATEGORIES,
    ViewerRole.ADMIN: ALL_CATEGORIES,
    ViewerRole.ADMIN_STAFF: NOTIFICATIONS_ALLOWANCE | frozenset({
        Category.PARTNERS.value,
        Category.DRIVERS.value,
        Category.FLEET.value,
        Category.DOCUMENTS.value,
        Category.PAYMENTS.value,
        Category.BOOKINGS.value,
        Category.CLAIMS.value,
    }),
    ViewerRole.SUPPORT_AGENT: NOTIFICATIONS_ALLOWANCE,
}


def parse_role(role: Union[ViewerRole, str, None]) -> Optional[ViewerRole]:
    """Resolve a role tag (any case) to a ViewerRole, or None if unknown."""
    if isinstance(role, ViewerRole):
        return role
    if not role:
        return None
    try:
        return ViewerRole(role.strip().upper())
    except ValueError:
        return None


def allowed_categories(
    role: Union[ViewerRole, str, None],
    table: Mapping[ViewerRole, FrozenSet[str]] = ROLE_CATEGORIES,
) -> FrozenSet[str]:
    resolved = parse_role(role)
    if resolved is None:
        return frozenset()
    return table.get(resolved, frozenset())


def filter_for_role(
    notifications: Iterable[NormalizedNotification],
    role: Union[ViewerRole, str, None],
    table: Mapping[ViewerRole, FrozenSet[str]] = ROLE_CATEGORIES,
) -> List[NormalizedNotification]:
    whitelist = allowed_categories(role, table)
    return [n for n in notifications if n.category.value in whitelist]
