"""
Capability Router: invokes the one read operation bound to an intent.

Routing requires an allowed AuthorizationDecision for the same capability;
the binding matched by the gate is the binding that is invoked. Parameters
are forwarded as-is; validating them is the read operation's business.
"""

from __future__ import annotations

import logging
from typing import Any

import httpx

from app.query.bindings import CapabilityRegistry
from app.query.errors import UnauthorizedError, UnroutableCapabilityError, UpstreamUnavailableError
from app.query.gate import AuthorizationDecision, DenialReason
from app.query.models import ResolvedIntent

logger = logging.getLogger(__name__)


class CapabilityRouter:
    def __init__(self, registry: CapabilityRegistry):
        self.registry = registry

    async def route(self, intent: ResolvedIntent, decision: AuthorizationDecision) -> tuple[str, Any]:
        """Return (binding name, raw payload) for an authorized intent."""
        if decision.capability != intent.capability:
            raise ValueError(
                f"Decision for {decision.capability!r} does not cover intent {intent.capability!r}"
            )
        if not decision.allowed:
            if decision.reason is DenialReason.UNKNOWN_CAPABILITY:
                raise UnroutableCapabilityError(detail=f"no binding for {intent.capability!r}")
            role = decision.role.value if decision.role else "anonymous"
            raise UnauthorizedError(detail=f"{role} denied {intent.capability!r}")

        binding = decision.binding or self.registry.match(intent.capability)
        if binding is None:
            raise UnroutableCapabilityError(detail=f"no binding for {intent.capability!r}")

        logger.debug("Routing %s → %s", intent.capability, binding.name)
        try:
            payload = await binding.operation(dict(intent.parameters))
        except httpx.HTTPError as exc:
            logger.warning("Read operation %s failed: %s", binding.name, exc)
            raise UpstreamUnavailableError(detail=f"{binding.name}: {exc}") from exc
        return binding.name, payload
