"""
Authorization Gate: decides whether a role may run a resolved capability.

The gate performs no I/O and never raises: every call returns an
AuthorizationDecision. A capability that matches no binding is denied as
"unknown capability", kept separate from "insufficient permission" so audit
logs can tell resolver drift from a genuine access violation.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum

from app.auth.roles import Role, PermissionTable, DEFAULT_PERMISSION_TABLE
from app.query.bindings import CapabilityBinding, CapabilityRegistry

audit_logger = logging.getLogger("app.audit")


class DenialReason(str, Enum):
    UNKNOWN_CAPABILITY = "unknown capability"
    INSUFFICIENT_PERMISSION = "insufficient permission"


@dataclass(frozen=True)
class AuthorizationDecision:
    capability: str
    role: Role | None
    allowed: bool
    binding: CapabilityBinding | None = None
    reason: DenialReason | None = None

    @classmethod
    def allow(cls, capability: str, role: Role | None, binding: CapabilityBinding) -> AuthorizationDecision:
        return cls(capability=capability, role=role, allowed=True, binding=binding)

    @classmethod
    def deny(
        cls,
        capability: str,
        role: Role | None,
        reason: DenialReason,
        binding: CapabilityBinding | None = None,
    ) -> AuthorizationDecision:
        return cls(capability=capability, role=role, allowed=False, binding=binding, reason=reason)


class AuthorizationGate:
    def __init__(self, registry: CapabilityRegistry, permissions: PermissionTable = DEFAULT_PERMISSION_TABLE):
        self.registry = registry
        self.permissions = permissions

    def authorize(self, role: Role | None, capability: str) -> AuthorizationDecision:
        binding = self.registry.match(capability)
        if binding is None:
            decision = AuthorizationDecision.deny(capability, role, DenialReason.UNKNOWN_CAPABILITY)
        elif not self.permissions.has_permission(role, binding.required_permission):
            decision = AuthorizationDecision.deny(
                capability, role, DenialReason.INSUFFICIENT_PERMISSION, binding,
            )
        else:
            decision = AuthorizationDecision.allow(capability, role, binding)

        self._audit(decision)
        return decision

    @staticmethod
    def _audit(decision: AuthorizationDecision) -> None:
        extra = {
            "role": decision.role.value if decision.role else None,
            "capability": decision.capability,
            "binding": decision.binding.name if decision.binding else None,
            "reason": decision.reason.value if decision.reason else None,
        }
        if decision.allowed:
            audit_logger.info("authorized %s for %s", decision.capability, extra["role"], extra=extra)
        else:
            audit_logger.warning(
                "denied %s for %s: %s", decision.capability, extra["role"], extra["reason"], extra=extra,
            )
