"""
RequestContext — who is asking and what their role allows.

Built per request from the JWT by `get_request_context()` in deps.py. The
role is None when the token carries no recognised role claim; such callers
hold no permissions and every capability is denied to them.
"""

from __future__ import annotations

from dataclasses import dataclass, field

from fastapi import HTTPException

from app.auth.permissions import Permission
from app.auth.roles import Role


@dataclass
class RequestContext:
    user_id: str = "anonymous"
    role: Role | None = None
    permissions: frozenset[Permission] = field(default_factory=frozenset)
    token: str | None = None

    def has_permission(self, perm: Permission) -> bool:
        return perm in self.permissions

    def require_permission(self, perm: Permission) -> None:
        """Raise 403 if the caller lacks the given permission."""
        if not self.has_permission(perm):
            raise HTTPException(
                status_code=403,
                detail=f"Insufficient permissions: requires {perm.value}",
            )

    @property
    def actor(self) -> str:
        """Identity string for audit logging."""
        role = self.role.value if self.role else "none"
        return f"{role}:{self.user_id}"
