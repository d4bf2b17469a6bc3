"""
Query Engine: one pass of text → intent → authorization → read → records.

Stateless apart from its collaborators; QuerySession owns the per-user
state. Suspends exactly twice per query: on the resolver and on the read
operation.
"""

from __future__ import annotations

import logging

from app.auth.roles import Role, PermissionTable, DEFAULT_PERMISSION_TABLE
from app.middleware.metrics import nl_authorization_denials_total
from app.query.bindings import CapabilityRegistry
from app.query.errors import UnauthorizedError, UnroutableCapabilityError
from app.query.gate import AuthorizationGate, DenialReason
from app.query.models import QueryResult
from app.query.normalizer import normalize
from app.query.resolver import IntentResolver
from app.query.router import CapabilityRouter

logger = logging.getLogger(__name__)


class QueryEngine:
    def __init__(
        self,
        resolver: IntentResolver,
        registry: CapabilityRegistry,
        permissions: PermissionTable = DEFAULT_PERMISSION_TABLE,
    ):
        self.resolver = resolver
        self.registry = registry
        self.gate = AuthorizationGate(registry, permissions)
        self.router = CapabilityRouter(registry)

    async def execute(self, role: Role | None, text: str) -> QueryResult:
        """Run one query. Raises a QueryError subclass on any failure."""
        intent = await self.resolver.resolve(text)

        decision = self.gate.authorize(role, intent.capability)
        if not decision.allowed:
            nl_authorization_denials_total.labels(reason=decision.reason.value).inc()
            if decision.reason is DenialReason.UNKNOWN_CAPABILITY:
                raise UnroutableCapabilityError(detail=f"no binding for {intent.capability!r}")
            raise UnauthorizedError(
                detail=f"{decision.binding.name} requires {decision.binding.required_permission.value}",
            )

        binding_name, payload = await self.router.route(intent, decision)
        records = normalize(payload)
        logger.info(
            "Query %r served by %s: %d record(s)", text, binding_name, len(records),
            extra={"capability": intent.capability, "binding": binding_name},
        )
        return QueryResult(
            records=records,
            capability=intent.capability,
            binding=binding_name,
            query=text,
        )
