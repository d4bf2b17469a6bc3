"""Tests for the LLM-backed intent resolver."""

import json

import httpx
import pytest

from app.query.errors import ResolverAmbiguousError, ResolverUnavailableError
from app.query.resolver import LLMIntentResolver, parse_intent


def _chat_reply(content: str) -> dict:
    return {"model": "test", "message": {"role": "assistant", "content": content}, "done": True}


def _resolver(handler) -> LLMIntentResolver:
    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return LLMIntentResolver(client, base_url="http://llm.test", model="test-model")


# ── Reply parsing ─────────────────────────────────────────────────────────────

class TestParseIntent:
    def test_plain_json(self):
        intent = parse_intent('{"query": "x", "apiCall": "GET /orders", "parameters": {"status": "pending"}}')
        assert intent.capability == "GET /orders"
        assert dict(intent.parameters) == {"status": "pending"}

    def test_json_wrapped_in_prose_and_think_tags(self):
        reply = (
            "<think>the user wants tickets</think>\n"
            'Sure! Here you go:\n```json\n{"apiCall": "GET /support-tickets", "parameters": {"priority": "high"}}\n```'
        )
        intent = parse_intent(reply)
        assert intent.capability == "GET /support-tickets"
        assert intent.parameters["priority"] == "high"

    def test_capability_key_is_accepted(self):
        intent = parse_intent('{"capability": "support-tickets", "parameters": {"status": "open"}}')
        assert intent.capability == "support-tickets"

    def test_missing_parameters_default_to_empty(self):
        assert dict(parse_intent('{"apiCall": "GET /analytics/platform-health"}').parameters) == {}

    def test_parameters_are_read_only(self):
        intent = parse_intent('{"apiCall": "orders", "parameters": {"status": "pending"}}')
        with pytest.raises(TypeError):
            intent.parameters["status"] = "delivered"  # type: ignore[index]

    def test_first_object_taken_when_prose_follows(self):
        reply = '{"apiCall": "GET /orders", "parameters": {}} Let me know if you need {anything} else.'
        assert parse_intent(reply).capability == "GET /orders"

    def test_endpoint_query_string_moves_into_parameters(self):
        intent = parse_intent('{"apiCall": "GET /analytics/regional-stats?region=north", "parameters": {}}')
        assert intent.capability == "GET /analytics/regional-stats"
        assert dict(intent.parameters) == {"region": "north"}

    def test_explicit_parameters_win_over_query_string(self):
        intent = parse_intent(
            '{"apiCall": "GET /orders?status=pending&region=east", "parameters": {"status": "delivered"}}'
        )
        assert dict(intent.parameters) == {"status": "delivered", "region": "east"}

    @pytest.mark.parametrize("reply", [None, {"apiCall": "GET /orders"}, 42])
    def test_non_text_reply_is_ambiguous(self, reply):
        with pytest.raises(ResolverAmbiguousError):
            parse_intent(reply)

    @pytest.mark.parametrize("reply", [
        "",
        "I am not sure what you mean.",
        "{not json}",
        '{"apiCall": ""}',
        '{"apiCall": "none", "parameters": {}}',
        '{"apiCall": "Unknown"}',
        '{"apiCall": 42}',
        '{"apiCall": "GET /orders", "parameters": ["status"]}',
        '{"parameters": {"status": "open"}}',
    ])
    def test_ambiguous_replies(self, reply):
        with pytest.raises(ResolverAmbiguousError):
            parse_intent(reply)


# ── HTTP behaviour ────────────────────────────────────────────────────────────

@pytest.mark.asyncio
class TestLLMIntentResolver:
    async def test_resolve_posts_prompt_and_parses_reply(self):
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["url"] = str(request.url)
            seen["body"] = json.loads(request.content)
            return httpx.Response(200, json=_chat_reply(
                '{"apiCall": "GET /support-tickets", "parameters": {"status": "open"}}'
            ))

        intent = await _resolver(handler).resolve("show me open tickets")

        assert intent.capability == "GET /support-tickets"
        assert dict(intent.parameters) == {"status": "open"}
        assert seen["url"] == "http://llm.test/api/chat"
        assert seen["body"]["model"] == "test-model"
        assert seen["body"]["stream"] is False
        assert 'Query: "show me open tickets"' in seen["body"]["messages"][-1]["content"]

    async def test_transport_error_is_unavailable(self):
        def handler(request):
            raise httpx.ConnectError("connection refused", request=request)

        with pytest.raises(ResolverUnavailableError):
            await _resolver(handler).resolve("show orders")

    async def test_http_error_status_is_unavailable(self):
        with pytest.raises(ResolverUnavailableError):
            await _resolver(lambda r: httpx.Response(500, text="boom")).resolve("show orders")

    async def test_non_json_body_is_unavailable(self):
        with pytest.raises(ResolverUnavailableError):
            await _resolver(lambda r: httpx.Response(200, text="<html>")).resolve("show orders")

    async def test_unmappable_reply_is_ambiguous(self):
        handler = lambda r: httpx.Response(200, json=_chat_reply('{"apiCall": "none"}'))  # noqa: E731
        with pytest.raises(ResolverAmbiguousError):
            await _resolver(handler).resolve("what's the weather")

    async def test_no_retry_on_failure(self):
        calls = []

        def handler(request):
            calls.append(request)
            return httpx.Response(503)

        with pytest.raises(ResolverUnavailableError):
            await _resolver(handler).resolve("show orders")
        assert len(calls) == 1

    @pytest.mark.parametrize("content", [{"apiCall": "GET /orders"}, 7, None])
    async def test_non_text_message_content_is_ambiguous(self, content):
        body = {"model": "test", "message": {"role": "assistant", "content": content}, "done": True}
        with pytest.raises(ResolverAmbiguousError):
            await _resolver(lambda r: httpx.Response(200, json=body)).resolve("show orders")
