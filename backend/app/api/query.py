"""
Query API: natural-language admin queries.

POST /api/query runs one submission through the caller's QuerySession.
Failures are returned as HTTP errors whose detail carries the failure kind
and the user-facing message; an empty query is not a failure.
"""

import logging

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, Field

from app.api.deps import get_query_session, get_request_context, get_session_store, require
from app.auth.context import RequestContext
from app.auth.permissions import Permission
from app.clients.platform_api import caller_token
from app.query.errors import QueryError, QueryErrorKind
from app.query.models import OutcomeStatus, QueryOutcome
from app.query.session import QuerySession, QuerySessionStore

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/query", tags=["query"])

SUGGESTED_QUERIES = [
    "Show all orders flagged as suspicious",
    "Show platform health metrics",
    "List all pending restaurant approvals",
    "Show orders with delivery time over 45 minutes",
    "Find customers who ordered more than 10 times",
    "Display all high-priority support tickets",
]

ERROR_STATUS_CODES: dict[QueryErrorKind, int] = {
    QueryErrorKind.UNAUTHORIZED: 403,
    QueryErrorKind.UNROUTABLE: 422,
    QueryErrorKind.RESOLVER_AMBIGUOUS: 422,
    QueryErrorKind.RESOLVER_UNAVAILABLE: 503,
    QueryErrorKind.UPSTREAM_UNAVAILABLE: 502,
}


class QueryRequest(BaseModel):
    text: str = Field(default="", max_length=1000)


class QueryResponse(BaseModel):
    status: str
    query: str
    capability: str | None = None
    binding: str | None = None
    records: list = Field(default_factory=list)
    count: int = 0
    completed_at: str | None = None


class HistoryItem(BaseModel):
    query: str
    submitted_at: str
    result_count: int | None = None
    capability: str | None = None


def _error_response(error: QueryError) -> HTTPException:
    return HTTPException(
        status_code=ERROR_STATUS_CODES.get(error.kind, 500),
        detail={"kind": error.kind.value, "message": error.message},
    )


def _to_response(outcome: QueryOutcome) -> QueryResponse:
    result = outcome.result
    return QueryResponse(
        status=outcome.status.value,
        query=outcome.query,
        capability=result.capability if result else None,
        binding=result.binding if result else None,
        records=result.records if result else [],
        count=result.count if result else 0,
        completed_at=result.completed_at.isoformat() if result else None,
    )


@router.post("", response_model=QueryResponse)
async def submit_query(
    body: QueryRequest,
    ctx: RequestContext = Depends(get_request_context),
    session: QuerySession = Depends(get_query_session),
):
    with caller_token(ctx.token):
        outcome = await session.submit(ctx.role, body.text)

    if outcome.status is OutcomeStatus.FAILED and outcome.error is not None:
        raise _error_response(outcome.error)
    return _to_response(outcome)


@router.get("/session")
async def read_session(session: QuerySession = Depends(get_query_session)):
    return session.snapshot()


@router.delete("/session")
async def clear_session(
    ctx: RequestContext = Depends(get_request_context),
    session: QuerySession = Depends(get_query_session),
):
    session.clear()
    logger.info("Cleared query session for %s", ctx.actor)
    return session.snapshot()


@router.get("/history", response_model=list[HistoryItem])
async def read_history(session: QuerySession = Depends(get_query_session)):
    return [
        HistoryItem(
            query=h.query,
            submitted_at=h.submitted_at.isoformat(),
            result_count=h.result_count,
            capability=h.capability,
        )
        for h in session.history
    ]


@router.delete("/history")
async def clear_history(session: QuerySession = Depends(get_query_session)):
    session.clear_history()
    return {"cleared": True}


@router.get("/capabilities")
async def list_capabilities(
    ctx: RequestContext = Depends(get_request_context),
    store: QuerySessionStore = Depends(get_session_store),
):
    """Bindings in priority order, flagged with whether the caller may run them."""
    return [
        {
            "name": b.name,
            "keywords": list(b.keywords),
            "required_permission": b.required_permission.value,
            "allowed": ctx.has_permission(b.required_permission),
        }
        for b in store.engine.registry
    ]


@router.get("/suggestions")
async def list_suggestions(ctx: RequestContext = Depends(require(Permission.VIEW_DASHBOARD))):
    return {"suggestions": SUGGESTED_QUERIES}
