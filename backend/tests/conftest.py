"""Shared test fixtures for backend tests."""

import asyncio
import os
from typing import AsyncGenerator

# Keep the rate limiter away from Redis during tests
os.environ.setdefault("RATE_LIMIT_PER_MINUTE", "0")

import pytest  # noqa: E402
import pytest_asyncio  # noqa: E402
from httpx import ASGITransport, AsyncClient  # noqa: E402

from app.auth.jwt import create_access_token  # noqa: E402
from app.auth.roles import DEFAULT_PERMISSION_TABLE  # noqa: E402
from app.main import app  # noqa: E402
from app.query.bindings import build_default_registry  # noqa: E402
from app.query.engine import QueryEngine  # noqa: E402
from app.query.errors import QueryError  # noqa: E402
from app.query.models import ResolvedIntent  # noqa: E402
from app.query.session import QuerySession, QuerySessionStore  # noqa: E402


# ── Fakes ─────────────────────────────────────────────────────────────────────

class FakeResolver:
    """Maps query text to a ResolvedIntent (or an exception to raise)."""

    def __init__(self, answers: dict | None = None):
        self.answers = dict(answers or {})
        self.calls: list[str] = []
        self.gates: dict[str, asyncio.Event] = {}

    def hold(self, text: str) -> asyncio.Event:
        """Make resolution of `text` wait until the returned event is set."""
        event = asyncio.Event()
        self.gates[text] = event
        return event

    async def resolve(self, text: str) -> ResolvedIntent:
        self.calls.append(text)
        if text in self.gates:
            await self.gates[text].wait()
        answer = self.answers[text]
        if isinstance(answer, QueryError):
            raise answer
        return answer


TICKETS = [
    {"id": "T-1", "subject": "Cold food", "status": "open", "priority": "high"},
    {"id": "T-2", "subject": "Late rider", "status": "open", "priority": "medium"},
]

ORDERS = [
    {"id": "O-100", "status": "pending", "total": 24.5},
    {"id": "O-101", "status": "pending", "total": 11.0},
]

PLATFORM_HEALTH = {"score": 92, "activeOrders": 310, "onlinePartners": 57}


class FakePlatform:
    """Stands in for PlatformAPIClient; records (operation, params) pairs."""

    def __init__(self):
        self.calls: list[tuple[str, dict]] = []
        self.payloads: dict[str, object] = {
            "get_orders": ORDERS,
            "get_suspicious_orders": [],
            "get_restaurants": [{"id": "R-1", "name": "Pizza Palace"}],
            "get_pending_approvals": [{"id": "R-9", "name": "Taco Town", "status": "pending"}],
            "get_customers": [{"id": "C-1", "totalOrders": 12}],
            "get_delivery_partners": [{"id": "D-1", "vehicle": "bike"}],
            "get_support_tickets": TICKETS,
            "get_platform_health": PLATFORM_HEALTH,
            "get_regional_stats": {"region": "north", "orders": 120},
            "get_fraud_alerts": None,
        }
        self.failures: dict[str, Exception] = {}
        self.gates: dict[str, asyncio.Event] = {}

    def hold(self, name: str) -> asyncio.Event:
        """Make the read operation `name` wait until the returned event is set."""
        event = asyncio.Event()
        self.gates[name] = event
        return event

    async def _call(self, name: str, params: dict):
        self.calls.append((name, params))
        if name in self.gates:
            await self.gates[name].wait()
        if name in self.failures:
            raise self.failures[name]
        return self.payloads[name]

    async def get_orders(self, params):
        return await self._call("get_orders", params)

    async def get_suspicious_orders(self, params):
        return await self._call("get_suspicious_orders", params)

    async def get_restaurants(self, params):
        return await self._call("get_restaurants", params)

    async def get_pending_approvals(self, params):
        return await self._call("get_pending_approvals", params)

    async def get_customers(self, params):
        return await self._call("get_customers", params)

    async def get_delivery_partners(self, params):
        return await self._call("get_delivery_partners", params)

    async def get_support_tickets(self, params):
        return await self._call("get_support_tickets", params)

    async def get_platform_health(self, params):
        return await self._call("get_platform_health", params)

    async def get_regional_stats(self, params):
        return await self._call("get_regional_stats", params)

    async def get_fraud_alerts(self, params):
        return await self._call("get_fraud_alerts", params)


# ── Engine fixtures ──────────────────────────────────────────────────────────

@pytest.fixture
def platform() -> FakePlatform:
    return FakePlatform()


@pytest.fixture
def registry(platform: FakePlatform):
    return build_default_registry(platform)


@pytest.fixture
def resolver() -> FakeResolver:
    return FakeResolver({
        "show pending orders": ResolvedIntent("orders", {"status": "pending"}),
        "show me open tickets": ResolvedIntent("support-tickets", {"status": "open"}),
        "how is the platform doing": ResolvedIntent("GET /analytics/platform-health", {}),
        "show fraud alerts": ResolvedIntent("GET /analytics/fraud-alerts", {}),
        "what's the weather": ResolvedIntent("GET /weather", {}),
    })


@pytest.fixture
def engine(resolver: FakeResolver, registry) -> QueryEngine:
    return QueryEngine(resolver=resolver, registry=registry, permissions=DEFAULT_PERMISSION_TABLE)


@pytest.fixture
def session(engine: QueryEngine) -> QuerySession:
    return QuerySession(engine, history_size=10)


# ── HTTP fixtures ────────────────────────────────────────────────────────────

def _make_auth_header(user_id: str, role: str | None) -> dict:
    """Create an Authorization header with a valid JWT."""
    token = create_access_token(user_id, role)
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def session_store(engine: QueryEngine) -> QuerySessionStore:
    store = QuerySessionStore(engine, history_size=10)
    app.state.session_store = store
    app.state.permission_table = DEFAULT_PERMISSION_TABLE
    yield store
    del app.state.session_store


async def _client(headers: dict | None = None) -> AsyncGenerator[AsyncClient, None]:
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test", headers=headers or {}) as client:
        yield client


@pytest_asyncio.fixture
async def admin_client(session_store) -> AsyncGenerator[AsyncClient, None]:
    """HTTP client authenticated as admin."""
    async for client in _client(_make_auth_header("admin-1", "admin")):
        yield client


@pytest_asyncio.fixture
async def support_client(session_store) -> AsyncGenerator[AsyncClient, None]:
    """HTTP client authenticated as support (no order access)."""
    async for client in _client(_make_auth_header("support-1", "support")):
        yield client


@pytest_asyncio.fixture
async def roleless_client(session_store) -> AsyncGenerator[AsyncClient, None]:
    """HTTP client with a valid token but no role claim."""
    async for client in _client(_make_auth_header("nobody", None)):
        yield client


@pytest_asyncio.fixture
async def anon_client(session_store) -> AsyncGenerator[AsyncClient, None]:
    """HTTP client with no authentication."""
    async for client in _client():
        yield client
