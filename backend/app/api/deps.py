"""
API Dependencies — auth context, query session lookup, permission guards.

`get_request_context`:
  1. Extracts the Bearer token from the Authorization header
  2. Decodes and validates the JWT
  3. Resolves the role claim → permissions via the app's PermissionTable
  4. Returns a RequestContext (role None when the claim is missing/unknown)

The query engine pieces live on `app.state` (built in the lifespan) and are
reached through small dependencies so tests can override them.
"""

import logging

from fastapi import Depends, Request, HTTPException
from jose import JWTError

from app.auth.permissions import Permission
from app.auth.roles import PermissionTable, DEFAULT_PERMISSION_TABLE, parse_role
from app.auth.context import RequestContext
from app.auth.jwt import decode_access_token
from app.query.session import QuerySession, QuerySessionStore

logger = logging.getLogger(__name__)


def get_permission_table(request: Request) -> PermissionTable:
    return getattr(request.app.state, "permission_table", DEFAULT_PERMISSION_TABLE)


def get_session_store(request: Request) -> QuerySessionStore:
    store = getattr(request.app.state, "session_store", None)
    if store is None:
        raise HTTPException(status_code=503, detail="Query engine is not initialised")
    return store


# ── Request context (JWT authentication) ──────────────────────────────────────

async def get_request_context(
    request: Request,
    permissions: PermissionTable = Depends(get_permission_table),
) -> RequestContext:
    auth_header = request.headers.get("Authorization", "")
    if not auth_header.startswith("Bearer "):
        raise HTTPException(status_code=401, detail="Missing or invalid Authorization header")

    token = auth_header[7:]  # strip "Bearer "
    try:
        claims = decode_access_token(token)
    except JWTError as e:
        logger.debug("JWT decode failed: %s", e)
        raise HTTPException(status_code=401, detail="Invalid or expired token")

    role = parse_role(claims.get("role"))
    if role is None and claims.get("role"):
        logger.warning("Unknown role claim %r for user %s", claims.get("role"), claims.get("sub"))

    return RequestContext(
        user_id=str(claims.get("sub", "anonymous")),
        role=role,
        permissions=permissions.permissions_of(role),
        token=token,
    )


async def get_query_session(
    ctx: RequestContext = Depends(get_request_context),
    store: QuerySessionStore = Depends(get_session_store),
) -> QuerySession:
    return store.get(ctx.user_id)


# ── Permission guards ────────────────────────────────────────────────────────

def require(*perms: Permission):
    """
    FastAPI dependency that checks the caller has ALL listed permissions.

    Usage:
        @router.get("/query/session")
        async def read(ctx: RequestContext = Depends(require(Permission.VIEW_DASHBOARD))):
            ...
    """
    async def _check(ctx: RequestContext = Depends(get_request_context)) -> RequestContext:
        for p in perms:
            ctx.require_permission(p)
        return ctx
    return _check
