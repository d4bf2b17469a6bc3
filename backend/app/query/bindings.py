"""
Capability bindings: the fixed table of what can be asked and who may ask it.

Each binding pairs a set of capability keywords with the read operation
that serves them and the one permission required to invoke it. The
registry is ordered: a capability string is matched by case-insensitive
substring containment against each binding's keywords, and the first
binding that matches wins. Specific bindings are therefore listed before
the generic ones they overlap with (suspicious orders before orders,
pending approvals before restaurants, regional stats and fraud alerts
before the catch-all analytics binding).

The same registry is consulted by the AuthorizationGate and the
CapabilityRouter, so "what can be asked" and "what is allowed" never drift.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Iterable, Mapping

from app.auth.permissions import Permission

ReadOperation = Callable[[Mapping[str, Any]], Awaitable[Any]]


@dataclass(frozen=True)
class BindingSpec:
    """Static description of a binding; `operation` names a PlatformAPIClient method."""
    name: str
    keywords: tuple[str, ...]
    required_permission: Permission
    operation: str


@dataclass(frozen=True)
class CapabilityBinding:
    name: str
    keywords: tuple[str, ...]
    required_permission: Permission
    operation: ReadOperation

    def matches(self, capability: str) -> bool:
        needle = capability.lower()
        return any(kw in needle for kw in self.keywords)


# Priority order: first match wins.
DEFAULT_BINDING_SPECS: tuple[BindingSpec, ...] = (
    BindingSpec("suspicious-orders", ("suspicious",), Permission.MANAGE_ORDERS, "get_suspicious_orders"),
    BindingSpec("orders", ("orders",), Permission.MANAGE_ORDERS, "get_orders"),
    BindingSpec("restaurant-approvals", ("pending-approval", "approvals"), Permission.APPROVE_RESTAURANTS, "get_pending_approvals"),
    BindingSpec("restaurants", ("restaurants",), Permission.MANAGE_RESTAURANTS, "get_restaurants"),
    BindingSpec("customers", ("customers",), Permission.MANAGE_CUSTOMERS, "get_customers"),
    BindingSpec("delivery-partners", ("delivery-partners", "partners"), Permission.MANAGE_DELIVERY_PARTNERS, "get_delivery_partners"),
    BindingSpec("support-tickets", ("support-tickets", "tickets"), Permission.MANAGE_SUPPORT_TICKETS, "get_support_tickets"),
    BindingSpec("regional-stats", ("regional-stats",), Permission.VIEW_ANALYTICS, "get_regional_stats"),
    BindingSpec("fraud-alerts", ("fraud",), Permission.VIEW_ANALYTICS, "get_fraud_alerts"),
    BindingSpec("platform-health", ("analytics", "platform-health"), Permission.VIEW_ANALYTICS, "get_platform_health"),
)


class CapabilityRegistry:
    """Ordered, read-only collection of capability bindings."""

    def __init__(self, bindings: Iterable[CapabilityBinding]):
        self._bindings: tuple[CapabilityBinding, ...] = tuple(bindings)
        names = [b.name for b in self._bindings]
        if len(names) != len(set(names)):
            raise ValueError(f"Duplicate binding names in registry: {names}")
        for b in self._bindings:
            if not b.keywords or any(not kw or kw != kw.lower() for kw in b.keywords):
                raise ValueError(f"Binding {b.name!r} needs non-empty lowercase keywords")

    def __iter__(self):
        return iter(self._bindings)

    def __len__(self) -> int:
        return len(self._bindings)

    @property
    def names(self) -> list[str]:
        return [b.name for b in self._bindings]

    def match(self, capability: str | None) -> CapabilityBinding | None:
        """Return the highest-priority binding whose keywords occur in `capability`."""
        if not capability or not capability.strip():
            return None
        for binding in self._bindings:
            if binding.matches(capability):
                return binding
        return None

    @classmethod
    def from_specs(cls, specs: Iterable[BindingSpec], operations: Any) -> CapabilityRegistry:
        """Bind each spec's `operation` name to the matching method on `operations`."""
        bindings = []
        for spec in specs:
            op = getattr(operations, spec.operation, None)
            if op is None or not callable(op):
                raise ValueError(f"Binding {spec.name!r}: no read operation {spec.operation!r}")
            bindings.append(CapabilityBinding(
                name=spec.name,
                keywords=spec.keywords,
                required_permission=spec.required_permission,
                operation=op,
            ))
        return cls(bindings)


def build_default_registry(operations: Any) -> CapabilityRegistry:
    return CapabilityRegistry.from_specs(DEFAULT_BINDING_SPECS, operations)
