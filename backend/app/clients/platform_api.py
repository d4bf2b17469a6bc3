"""
Platform API client: read operations against the food-delivery services.

One httpx.AsyncClient per backing service (users, restaurants, orders).
Every method takes the filter mapping extracted from the query and returns
the decoded JSON body untouched: some endpoints answer with a list, others
with a single object.

Outgoing requests carry the caller's bearer token (bound per request with
`caller_token()`) and the current X-Request-ID.
"""

from __future__ import annotations

import logging
from contextlib import contextmanager
from contextvars import ContextVar
from typing import Any, Iterator, Mapping

import httpx

from app.config import settings
from app.middleware.request_context import REQUEST_ID_HEADER, get_request_id

logger = logging.getLogger(__name__)

_caller_token_var: ContextVar[str | None] = ContextVar("caller_token", default=None)


@contextmanager
def caller_token(token: str | None) -> Iterator[None]:
    """Forward `token` as the Authorization header for calls made inside the block."""
    reset = _caller_token_var.set(token)
    try:
        yield
    finally:
        _caller_token_var.reset(reset)


def encode_params(params: Mapping[str, Any] | None) -> list[tuple[str, str]]:
    """
    Flatten a filter mapping into query-string pairs.

    None values are dropped, nested mappings become ``key[sub]=value`` and
    lists become repeated keys. Booleans are sent as lowercase literals.
    """
    pairs: list[tuple[str, str]] = []

    def _emit(key: str, value: Any) -> None:
        if value is None:
            return
        if isinstance(value, Mapping):
            for sub_key, sub_val in value.items():
                _emit(f"{key}[{sub_key}]", sub_val)
        elif isinstance(value, (list, tuple)):
            for item in value:
                _emit(key, item)
        elif isinstance(value, bool):
            pairs.append((key, "true" if value else "false"))
        else:
            pairs.append((key, str(value)))

    for k, v in (params or {}).items():
        _emit(str(k), v)
    return pairs


class PlatformAPIClient:
    def __init__(
        self,
        user_service: httpx.AsyncClient,
        restaurant_service: httpx.AsyncClient,
        order_service: httpx.AsyncClient,
    ):
        self.user_service = user_service
        self.restaurant_service = restaurant_service
        self.order_service = order_service

    @classmethod
    def from_settings(cls, transport: httpx.AsyncBaseTransport | None = None) -> PlatformAPIClient:
        def _client(base_url: str) -> httpx.AsyncClient:
            return httpx.AsyncClient(
                base_url=base_url,
                timeout=settings.upstream_timeout_seconds,
                headers={"Content-Type": "application/json"},
                transport=transport,
            )

        return cls(
            user_service=_client(settings.user_service_url),
            restaurant_service=_client(settings.restaurant_service_url),
            order_service=_client(settings.order_service_url),
        )

    async def aclose(self) -> None:
        for client in (self.user_service, self.restaurant_service, self.order_service):
            await client.aclose()

    @staticmethod
    def _headers() -> dict[str, str]:
        headers = {}
        token = _caller_token_var.get()
        if token:
            headers["Authorization"] = f"Bearer {token}"
        request_id = get_request_id()
        if request_id:
            headers[REQUEST_ID_HEADER] = request_id
        return headers

    async def _get(self, client: httpx.AsyncClient, path: str, params: Mapping[str, Any] | None = None) -> Any:
        resp = await client.get(path, params=encode_params(params), headers=self._headers())
        if resp.status_code >= 400:
            logger.warning("GET %s%s → %s", client.base_url, path, resp.status_code)
        resp.raise_for_status()
        if not resp.content:
            return None
        try:
            return resp.json()
        except ValueError as exc:
            raise httpx.DecodingError(f"Invalid JSON from {path}: {exc}", request=resp.request) from exc

    # ── Orders ────────────────────────────────────────────────────────────

    async def get_orders(self, params: Mapping[str, Any]) -> Any:
        return await self._get(self.order_service, "/orders", params)

    async def get_suspicious_orders(self, params: Mapping[str, Any]) -> Any:
        return await self._get(self.order_service, "/orders/suspicious", params)

    # ── Restaurants ───────────────────────────────────────────────────────

    async def get_restaurants(self, params: Mapping[str, Any]) -> Any:
        return await self._get(self.restaurant_service, "/restaurants", params)

    async def get_pending_approvals(self, params: Mapping[str, Any]) -> Any:
        return await self._get(self.restaurant_service, "/restaurants/pending-approval", params)

    # ── Users ─────────────────────────────────────────────────────────────

    async def get_customers(self, params: Mapping[str, Any]) -> Any:
        return await self._get(self.user_service, "/users/customers", params)

    async def get_delivery_partners(self, params: Mapping[str, Any]) -> Any:
        return await self._get(self.user_service, "/users/delivery-partners", params)

    async def get_support_tickets(self, params: Mapping[str, Any]) -> Any:
        return await self._get(self.user_service, "/support-tickets", params)

    # ── Analytics ─────────────────────────────────────────────────────────

    async def get_platform_health(self, params: Mapping[str, Any]) -> Any:
        # Endpoint takes no filters
        return await self._get(self.order_service, "/analytics/platform-health")

    async def get_regional_stats(self, params: Mapping[str, Any]) -> Any:
        return await self._get(self.order_service, "/analytics/regional-stats", {"region": params.get("region")})

    async def get_fraud_alerts(self, params: Mapping[str, Any]) -> Any:
        return await self._get(self.order_service, "/analytics/fraud-alerts")
