"""
Role definitions and the permission table built from them.

    MODERATOR, SUPPORT  <  ADMIN  <  SUPER_ADMIN

Support and moderator are sibling roles with overlapping grants; admin
holds everything except user management and system settings.

ROLE_PERMISSIONS is frozen at import time. PermissionTable wraps it (or any
alternate mapping a test injects) and answers every lookup totally: a role
that is absent or unknown resolves to no permissions, never an error.
"""

from __future__ import annotations

from enum import Enum
from types import MappingProxyType
from typing import Iterable, Mapping

from app.auth.permissions import Permission


class Role(str, Enum):
    SUPER_ADMIN = "super_admin"
    ADMIN = "admin"
    SUPPORT = "support"
    MODERATOR = "moderator"


# ── Super admin: everything ──
_SUPER_ADMIN_PERMS = frozenset(Permission)

# ── Admin: everything except user management and system settings ──
_ADMIN_PERMS = _SUPER_ADMIN_PERMS - {
    Permission.MANAGE_USERS,
    Permission.SYSTEM_SETTINGS,
}

# ── Support: tickets, customers, read-only analytics ──
_SUPPORT_PERMS = frozenset({
    Permission.VIEW_DASHBOARD,
    Permission.VIEW_ANALYTICS,
    Permission.MANAGE_SUPPORT_TICKETS,
    Permission.MANAGE_CUSTOMERS,
})

# ── Moderator: marketplace entities, no analytics ──
_MODERATOR_PERMS = frozenset({
    Permission.VIEW_DASHBOARD,
    Permission.MANAGE_ORDERS,
    Permission.MANAGE_RESTAURANTS,
    Permission.MANAGE_DELIVERY_PARTNERS,
    Permission.MANAGE_CUSTOMERS,
})


ROLE_PERMISSIONS: Mapping[Role, frozenset[Permission]] = MappingProxyType({
    Role.SUPER_ADMIN: _SUPER_ADMIN_PERMS,
    Role.ADMIN: _ADMIN_PERMS,
    Role.SUPPORT: _SUPPORT_PERMS,
    Role.MODERATOR: _MODERATOR_PERMS,
})


def parse_role(value: str | None) -> Role | None:
    """Map a raw role claim to a Role, or None if it is missing or unknown."""
    if not value:
        return None
    try:
        return Role(value)
    except ValueError:
        return None


class PermissionTable:
    """Immutable role → permissions lookup shared by every session."""

    def __init__(self, grants: Mapping[Role, Iterable[Permission]] = ROLE_PERMISSIONS):
        self._grants: Mapping[Role, frozenset[Permission]] = MappingProxyType(
            {role: frozenset(perms) for role, perms in grants.items()}
        )

    def permissions_of(self, role: Role | None) -> frozenset[Permission]:
        if role is None:
            return frozenset()
        return self._grants.get(role, frozenset())

    def has_permission(self, role: Role | None, permission: Permission) -> bool:
        return permission in self.permissions_of(role)

    def has_any(self, role: Role | None, permissions: Iterable[Permission]) -> bool:
        granted = self.permissions_of(role)
        return any(p in granted for p in permissions)

    def has_all(self, role: Role | None, permissions: Iterable[Permission]) -> bool:
        granted = self.permissions_of(role)
        return all(p in granted for p in permissions)

    @property
    def roles(self) -> tuple[Role, ...]:
        return tuple(self._grants)


DEFAULT_PERMISSION_TABLE = PermissionTable()
