"""
Query failure taxonomy.

Every failure that ends a submission is a QueryError carrying a stable
`kind` (used by the API layer and metrics) and one user-facing message.
Authorization and routing failures have different remediation and so never
share a message: the former points at an administrator, the latter asks the
user to rephrase.
"""

from enum import Enum


class QueryErrorKind(str, Enum):
    EMPTY_INPUT = "empty-input"
    UNAUTHORIZED = "unauthorized"
    UNROUTABLE = "unroutable"
    RESOLVER_UNAVAILABLE = "resolver-unavailable"
    RESOLVER_AMBIGUOUS = "resolver-ambiguous"
    UPSTREAM_UNAVAILABLE = "upstream-unavailable"


class QueryError(Exception):
    kind: QueryErrorKind
    default_message: str = "Failed to execute query. Please try again."

    def __init__(self, message: str | None = None, *, detail: str = ""):
        self.message = message or self.default_message
        self.detail = detail
        super().__init__(self.message)


# ── Authorization ────────────────────────────────────────────────────────────

class UnauthorizedError(QueryError):
    kind = QueryErrorKind.UNAUTHORIZED
    default_message = (
        "You don't have permission to run this query. "
        "Contact an administrator if you need access."
    )


# ── Routing ──────────────────────────────────────────────────────────────────

class UnroutableCapabilityError(QueryError):
    kind = QueryErrorKind.UNROUTABLE
    default_message = "Unable to understand query. Please try rephrasing."


class ResolverAmbiguousError(QueryError):
    kind = QueryErrorKind.RESOLVER_AMBIGUOUS
    default_message = "Couldn't work out what you're asking for. Please try rephrasing."


# ── Upstream ─────────────────────────────────────────────────────────────────

class ResolverUnavailableError(QueryError):
    kind = QueryErrorKind.RESOLVER_UNAVAILABLE
    default_message = "The query assistant is unavailable right now. Please try again shortly."


class UpstreamUnavailableError(QueryError):
    kind = QueryErrorKind.UPSTREAM_UNAVAILABLE
    default_message = "The data service didn't respond. Please try again."
