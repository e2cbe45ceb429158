"""Role-based permission checks for analytics entry points.

WHAT: Answers "may this caller use capability X?" from the caller's role
WHY: Analytics runs expose revenue data; the engine refuses to run unless
     the caller holds `campaigns:view`. Any lookup error is a denial.
REFERENCES:
  - models.py: UserRole, RoleEnum
  - services/attribution/engine.py: consults the checker before any data access
"""

from __future__ import annotations

import logging
from typing import Callable, Dict, FrozenSet, Optional, Protocol

from ... import models
from .repositories import SessionFactory

logger = logging.getLogger(__name__)

CAMPAIGNS_VIEW = "campaigns:view"
ALL_CAPABILITIES = "*"

ROLE_PERMISSIONS: Dict[str, FrozenSet[str]] = {
    models.RoleEnum.admin.value: frozenset({ALL_CAPABILITIES}),
    models.RoleEnum.executive.value: frozenset({
        "analytics:view", "campaigns:view", "content:view", "bundles:view",
    }),
    models.RoleEnum.marketing_staff.value: frozenset({
        "analytics:view", "campaigns:view", "campaigns:manage",
        "content:view", "content:manage", "bundles:view", "bundles:manage",
    }),
    models.RoleEnum.inventory_staff.value: frozenset({
        "inventory:view", "inventory:manage", "products:view",
    }),
    models.RoleEnum.staff.value: frozenset({"orders:view", "products:view"}),
    models.RoleEnum.customer.value: frozenset(),
}


class PermissionChecker(Protocol):
    def has_permission(self, user_id: str, capability: str) -> bool:
        ...


def role_allows(role: Optional[str], capability: str) -> bool:
    granted = ROLE_PERMISSIONS.get(role or "", frozenset())
    return ALL_CAPABILITIES in granted or capability in granted


class RolePermissionChecker:
    """
    Permission checker over any role lookup.

    Usage:
        checker = RolePermissionChecker(lambda user_id: "marketing_staff")
        checker.has_permission("u-1", "campaigns:view")  # True
    """

    def __init__(self, role_lookup: Callable[[str], Optional[str]]):
        self.role_lookup = role_lookup

    def has_permission(self, user_id: str, capability: str) -> bool:
        if not user_id:
            return False
        try:
            role = self.role_lookup(user_id)
        except Exception as e:
            logger.warning(
                "[PERMISSIONS] Role lookup failed for %s, denying %s: %s",
                user_id, capability, e,
            )
            return False

        if role is None:
            logger.warning("[PERMISSIONS] No active role for %s, denying %s", user_id, capability)
            return False

        allowed = role_allows(role, capability)
        if not allowed:
            logger.info("[PERMISSIONS] Role %s of %s lacks %s", role, user_id, capability)
        return allowed


class SqlRolePermissionChecker(RolePermissionChecker):
    """Reads the caller's active role from `user_roles`."""

    def __init__(self, session_factory: SessionFactory):
        self.session_factory = session_factory
        super().__init__(self._lookup_role)

    def _lookup_role(self, user_id: str) -> Optional[str]:
        with self.session_factory() as db:
            row = (
                db.query(models.UserRole)
                .filter(
                    models.UserRole.user_id == user_id,
                    models.UserRole.is_active.is_(True),
                )
                .first()
            )
            if row is None:
                return None
            return row.role.value if hasattr(row.role, "value") else str(row.role)
