"""
Natural-language admin query engine.

    text ──▶ IntentResolver ──▶ AuthorizationGate ──▶ CapabilityRouter ──▶ normalize ──▶ QuerySession
"""

from app.query.bindings import (
    BindingSpec, CapabilityBinding, CapabilityRegistry,
    DEFAULT_BINDING_SPECS, build_default_registry,
)
from app.query.engine import QueryEngine
from app.query.errors import (
    QueryError, QueryErrorKind, UnauthorizedError, UnroutableCapabilityError,
    ResolverAmbiguousError, ResolverUnavailableError, UpstreamUnavailableError,
)
from app.query.gate import AuthorizationGate, AuthorizationDecision, DenialReason
from app.query.models import (
    HistoryEntry, OutcomeStatus, QueryOutcome, QueryResult, ResolvedIntent, SessionStatus,
)
from app.query.normalizer import normalize
from app.query.resolver import IntentResolver, LLMIntentResolver, parse_intent
from app.query.router import CapabilityRouter
from app.query.session import QuerySession, QuerySessionStore

__all__ = [
    "BindingSpec", "CapabilityBinding", "CapabilityRegistry",
    "DEFAULT_BINDING_SPECS", "build_default_registry",
    "QueryEngine",
    "QueryError", "QueryErrorKind", "UnauthorizedError", "UnroutableCapabilityError",
    "ResolverAmbiguousError", "ResolverUnavailableError", "UpstreamUnavailableError",
    "AuthorizationGate", "AuthorizationDecision", "DenialReason",
    "HistoryEntry", "OutcomeStatus", "QueryOutcome", "QueryResult", "ResolvedIntent", "SessionStatus",
    "normalize",
    "IntentResolver", "LLMIntentResolver", "parse_intent",
    "CapabilityRouter",
    "QuerySession", "QuerySessionStore",
]
