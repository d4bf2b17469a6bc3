import logging
import time
import traceback
from contextlib import asynccontextmanager

import httpx
import redis.asyncio as aioredis
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, Response
from prometheus_client import generate_latest, CONTENT_TYPE_LATEST

from app.config import settings
from app.middleware.logging_config import configure_logging

configure_logging(settings.log_level, settings.log_format)

from app.api.query import router as query_router  # noqa: E402
from app.auth.roles import DEFAULT_PERMISSION_TABLE  # noqa: E402
from app.clients.platform_api import PlatformAPIClient  # noqa: E402
from app.query.bindings import build_default_registry  # noqa: E402
from app.query.engine import QueryEngine  # noqa: E402
from app.query.resolver import LLMIntentResolver  # noqa: E402
from app.query.session import QuerySessionStore  # noqa: E402

logger = logging.getLogger("app")


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Startup: permission table, bindings and engine are fixed for the process lifetime
    platform = PlatformAPIClient.from_settings()
    resolver_client = httpx.AsyncClient(
        timeout=httpx.Timeout(connect=10.0, read=settings.resolver_timeout_seconds, write=10.0, pool=10.0),
    )
    registry = build_default_registry(platform)
    engine = QueryEngine(
        resolver=LLMIntentResolver(resolver_client),
        registry=registry,
        permissions=DEFAULT_PERMISSION_TABLE,
    )

    app.state.permission_table = DEFAULT_PERMISSION_TABLE
    app.state.session_store = QuerySessionStore(engine, settings.query_history_size)
    app.state.platform = platform
    app.state.resolver_client = resolver_client
    logger.info("Query engine ready with %d capability bindings: %s", len(registry), ", ".join(registry.names))
    yield
    # Shutdown
    await resolver_client.aclose()
    await platform.aclose()


app = FastAPI(
    title="PlatePal Admin Query Engine",
    description="Natural-language read queries for the PlatePal admin dashboard",
    version="0.1.0",
    lifespan=lifespan,
)

# ── CORS ─────────────────────────────────────────────────────────────────────
origins = [o.strip() for o in settings.allowed_origins.split(",") if o.strip()]
app.add_middleware(
    CORSMiddleware,
    allow_origins=origins,
    allow_credentials=True,
    allow_methods=["GET", "POST", "DELETE"],
    allow_headers=["Content-Type", "Authorization", "X-Request-ID"],
)

# ── Rate limiting middleware ─────────────────────────────────────────────────
from app.middleware.rate_limit import RateLimitMiddleware  # noqa: E402

app.add_middleware(RateLimitMiddleware)

# ── Request context middleware (request ID + timing) ─────────────────────────
from app.middleware.request_context import RequestContextMiddleware  # noqa: E402

app.add_middleware(RequestContextMiddleware)

# ── Prometheus metrics middleware ────────────────────────────────────────────
from app.middleware.metrics import PrometheusMiddleware  # noqa: E402

app.add_middleware(PrometheusMiddleware)


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    """Return detailed error info in development mode so 500s are debuggable."""
    tb = traceback.format_exc()
    logger.error(
        "Unhandled %s on %s %s: %s\n%s",
        type(exc).__name__, request.method, request.url.path, exc, tb,
    )
    detail = f"{type(exc).__name__}: {exc}"
    if settings.environment == "development":
        return JSONResponse(
            status_code=500,
            content={"detail": detail, "traceback": tb.splitlines()[-5:]},
        )
    return JSONResponse(status_code=500, content={"detail": "Internal Server Error"})


app.include_router(query_router)


@app.get("/metrics", include_in_schema=False)
async def prometheus_metrics():
    """Expose Prometheus metrics in text format."""
    return Response(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)


# ── Health check ─────────────────────────────────────────────────────────────

_health_cache: dict = {}
_health_cache_ts: float = 0.0
HEALTH_CACHE_TTL = 10.0  # seconds


@app.get("/api/health")
async def health_check():
    global _health_cache, _health_cache_ts

    now = time.time()
    if _health_cache and (now - _health_cache_ts) < HEALTH_CACHE_TTL:
        return _health_cache

    components: dict = {}

    # Redis (rate limiter only)
    try:
        r = aioredis.from_url(settings.redis_url, decode_responses=True)
        await r.ping()
        await r.aclose()
        components["redis"] = {"status": "connected"}
    except Exception as exc:
        components["redis"] = {"status": "disconnected", "error": str(exc)}

    # Intent resolver model
    try:
        async with httpx.AsyncClient(timeout=3.0) as client:
            resp = await client.post(f"{settings.ollama_url}/api/show", json={"name": settings.llm_model})
        if resp.status_code == 200:
            components["resolver"] = {"status": "ready", "model": settings.llm_model}
        else:
            components["resolver"] = {"status": "loading", "model": settings.llm_model}
    except httpx.HTTPError:
        components["resolver"] = {"status": "unavailable", "model": settings.llm_model}

    resolver_ok = components["resolver"]["status"] == "ready"
    redis_ok = components["redis"]["status"] == "connected"

    if resolver_ok and redis_ok:
        overall = "healthy"
    elif not resolver_ok:
        overall = "unhealthy"
    else:
        overall = "degraded"

    result = {
        "status": overall,
        "environment": settings.environment,
        "components": components,
    }

    _health_cache = result
    _health_cache_ts = now
    return result


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000)
