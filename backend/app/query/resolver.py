"""
Intent Resolver: turns free text into a ResolvedIntent via an LLM.

The model is prompted with the admin API surface and asked to answer with a
JSON object naming the endpoint ("apiCall") and its filters ("parameters").
The first JSON object in the reply is taken as the answer.

Transport problems raise ResolverUnavailableError. A reply that does not
name a capability raises ResolverAmbiguousError. There is no default
capability and no retry: one failed call is one failed submission.
"""

from __future__ import annotations

import json
import logging
import re
import time
from typing import Protocol
from urllib.parse import parse_qsl

import httpx

from app.config import settings
from app.middleware.metrics import nl_resolver_duration_seconds
from app.query.errors import ResolverAmbiguousError, ResolverUnavailableError
from app.query.models import ResolvedIntent

logger = logging.getLogger(__name__)

SYSTEM_PROMPT = "You convert natural language queries into API specifications."

PROMPT_TEMPLATE = """Convert this natural language query into an API call specification:

Query: "{query}"

Available API endpoints:
- GET /orders - List orders (filters: status, dateRange, restaurantId, customerId)
- GET /orders/suspicious - Orders flagged as suspicious
- GET /restaurants - List restaurants (filters: status, region, ownerId)
- GET /restaurants/pending-approval - Restaurant applications awaiting approval
- GET /users/customers - List customers (filters: status, region, totalOrders)
- GET /users/delivery-partners - List delivery partners (filters: status, region, vehicleType)
- GET /support-tickets - List tickets (filters: category, priority, status, dateRange)
- GET /analytics/platform-health - Platform health metrics
- GET /analytics/regional-stats - Regional statistics (filters: region)
- GET /analytics/fraud-alerts - Active fraud alerts

If the query does not fit any endpoint, use "apiCall": "none".

Respond in JSON:
{{
  "query": "original query",
  "apiCall": "GET /endpoint",
  "parameters": {{ "key": "value" }}
}}"""

_THINK_RE = re.compile(r"<think>.*?</think>\s*", flags=re.DOTALL)
_decoder = json.JSONDecoder()

_NO_MATCH_ANSWERS = frozenset({"none", "unknown", "null", "n/a"})


class IntentResolver(Protocol):
    async def resolve(self, text: str) -> ResolvedIntent: ...


def _first_json_object(reply: str) -> dict:
    start = reply.find("{")
    if start < 0:
        raise ResolverAmbiguousError(detail="no JSON object in resolver reply")
    last_error = None
    while start >= 0:
        try:
            parsed, _ = _decoder.raw_decode(reply, start)
        except json.JSONDecodeError as exc:
            last_error = exc
        else:
            if isinstance(parsed, dict):
                return parsed
        start = reply.find("{", start + 1)
    raise ResolverAmbiguousError(detail=f"malformed resolver JSON: {last_error}")


def parse_intent(reply: str) -> ResolvedIntent:
    """Extract a ResolvedIntent from the model's reply text.

    Filters written into the endpoint itself (``GET /x?region=north``) are
    moved into the parameters; an explicit parameter of the same name wins.
    """
    if not isinstance(reply, str):
        raise ResolverAmbiguousError(detail=f"resolver reply is {type(reply).__name__}, not text")
    parsed = _first_json_object(_THINK_RE.sub("", reply).strip())

    capability = parsed.get("apiCall") or parsed.get("capability")
    if not isinstance(capability, str) or not capability.strip():
        raise ResolverAmbiguousError(detail="resolver reply names no capability")
    capability, _, query_string = capability.strip().partition("?")
    capability = capability.strip()
    if not capability:
        raise ResolverAmbiguousError(detail="resolver reply names no capability")
    if capability.lower() in _NO_MATCH_ANSWERS:
        raise ResolverAmbiguousError(detail=f"resolver answered {capability!r}")

    parameters = parsed.get("parameters") or {}
    if not isinstance(parameters, dict):
        raise ResolverAmbiguousError(detail="resolver parameters are not an object")
    if query_string:
        parameters = {**dict(parse_qsl(query_string)), **parameters}

    return ResolvedIntent(capability=capability, parameters=parameters)


class LLMIntentResolver:
    """Resolves intents through an Ollama-compatible /api/chat endpoint."""

    def __init__(
        self,
        client: httpx.AsyncClient,
        base_url: str | None = None,
        model: str | None = None,
    ):
        self.client = client
        self.base_url = (base_url or settings.ollama_url).rstrip("/")
        self.model = model or settings.llm_model

    async def resolve(self, text: str) -> ResolvedIntent:
        messages = [
            {"role": "system", "content": SYSTEM_PROMPT},
            {"role": "user", "content": PROMPT_TEMPLATE.format(query=text)},
        ]
        start = time.time()
        try:
            resp = await self.client.post(
                f"{self.base_url}/api/chat",
                json={"model": self.model, "messages": messages, "stream": False,
                      "format": "json", "options": {"temperature": 0.0}},
            )
        except httpx.HTTPError as exc:
            logger.warning("Intent resolver call failed: %s", exc)
            raise ResolverUnavailableError(detail=str(exc)) from exc
        finally:
            nl_resolver_duration_seconds.observe(time.time() - start)

        if resp.status_code != 200:
            logger.warning("Intent resolver returned HTTP %s", resp.status_code)
            raise ResolverUnavailableError(detail=f"HTTP {resp.status_code}")

        try:
            content = resp.json().get("message", {}).get("content", "")
        except (ValueError, AttributeError) as exc:
            raise ResolverUnavailableError(detail="unreadable resolver response") from exc

        intent = parse_intent(content)
        logger.info("Resolved %r → %s %s", text, intent.capability, dict(intent.parameters))
        return intent
