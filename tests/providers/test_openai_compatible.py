"""Tests for providers.openai_compatible using httpx.MockTransport."""

import json

import httpx
import pytest

from providers.base import ChatMessage
from providers.errors import CredentialError, EmptyResponseError, HttpError, ProtocolError
from providers.openai_compatible import OpenAICompatibleProvider
from providers.usage import TokenUsage, UsageTracker


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def _provider(handler, api_key="sk-test", **kwargs):
    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return OpenAICompatibleProvider(
        "OpenRouter",
        api_key,
        "https://example.test/api/v1/",
        client=client,
        credential_env_hint="OPENROUTER_API_KEY",
        **kwargs,
    )


def _completion(content="Hello", usage=None):
    body = {"choices": [{"message": {"role": "assistant", "content": content}}]}
    if usage:
        body["usage"] = usage
    return httpx.Response(200, json=body)


def _sse(*events):
    lines = [f"data: {json.dumps(e)}\n\n" for e in events] + ["data: [DONE]\n\n"]
    return httpx.Response(
        200,
        headers={"content-type": "text/event-stream"},
        content="".join(lines).encode("utf-8"),
    )


# ---------------------------------------------------------------------------
# Non-streaming
# ---------------------------------------------------------------------------

class TestChat:
    @pytest.mark.asyncio
    async def test_request_shape(self):
        seen = {}

        def handler(request):
            seen["url"] = str(request.url)
            seen["headers"] = request.headers
            seen["body"] = json.loads(request.content)
            return _completion("Hi there")

        provider = _provider(handler, extra_headers={"X-Title": "clawloop"})
        reply = await provider.chat_with_system("be brief", "hello", "gpt-4o", 0.3)

        assert reply == "Hi there"
        assert seen["url"] == "https://example.test/api/v1/chat/completions"
        assert seen["headers"]["authorization"] == "Bearer sk-test"
        assert seen["headers"]["x-title"] == "clawloop"
        assert seen["body"] == {
            "model": "gpt-4o",
            "messages": [
                {"role": "system", "content": "be brief"},
                {"role": "user", "content": "hello"},
            ],
            "temperature": 0.3,
        }

    @pytest.mark.asyncio
    async def test_history_sent_verbatim(self):
        seen = {}

        def handler(request):
            seen["messages"] = json.loads(request.content)["messages"]
            return _completion()

        history = [
            ChatMessage.system("s"),
            ChatMessage.user("u1"),
            ChatMessage.assistant("a1"),
            ChatMessage.user("u2"),
        ]
        await _provider(handler).chat_with_history(history, "m", 0.7)
        assert seen["messages"] == [m.to_dict() for m in history]

    @pytest.mark.asyncio
    async def test_missing_key_fails_before_request(self):
        def handler(request):
            raise AssertionError("no request expected")

        provider = _provider(handler, api_key="   ")
        with pytest.raises(CredentialError, match="OPENROUTER_API_KEY"):
            await provider.chat("hi", "m", 0.7)

    @pytest.mark.asyncio
    async def test_keyless_provider(self):
        seen = {}

        def handler(request):
            seen["auth"] = request.headers.get("authorization")
            return _completion("local")

        provider = _provider(handler, api_key=None, requires_api_key=False)
        assert await provider.chat("hi", "llama3", 0.7) == "local"
        assert seen["auth"] is None

    @pytest.mark.asyncio
    async def test_http_error(self):
        provider = _provider(lambda r: httpx.Response(429, text="slow down"))
        with pytest.raises(HttpError) as exc_info:
            await provider.chat("hi", "m", 0.7)
        assert exc_info.value.status == 429
        assert exc_info.value.retryable
        assert "slow down" in str(exc_info.value)

    @pytest.mark.asyncio
    async def test_empty_choices(self):
        provider = _provider(lambda r: httpx.Response(200, json={"choices": []}))
        with pytest.raises(EmptyResponseError):
            await provider.chat("hi", "m", 0.7)

    @pytest.mark.asyncio
    async def test_invalid_json(self):
        provider = _provider(lambda r: httpx.Response(200, text="<html>"))
        with pytest.raises(ProtocolError):
            await provider.chat("hi", "m", 0.7)

    @pytest.mark.asyncio
    async def test_null_content_is_empty_string(self):
        provider = _provider(lambda r: _completion(None))
        assert await provider.chat("hi", "m", 0.7) == ""

    @pytest.mark.asyncio
    async def test_usage_recorded(self):
        tracker = UsageTracker()
        provider = _provider(lambda r: _completion(usage={"prompt_tokens": 9, "completion_tokens": 3}))
        provider.set_usage_tracker(tracker)

        await provider.chat("hi", "m", 0.7)

        assert tracker.snapshot() == TokenUsage(9, 3, 12)
        assert tracker.requests() == 1


# ---------------------------------------------------------------------------
# Streaming
# ---------------------------------------------------------------------------

class TestStreaming:
    @pytest.mark.asyncio
    async def test_deltas_forwarded_in_order(self):
        seen = {}

        def handler(request):
            seen["body"] = json.loads(request.content)
            return _sse(
                {"choices": [{"delta": {"role": "assistant"}}]},
                {"choices": [{"delta": {"content": "Hel"}}]},
                {"choices": [{"delta": {"content": "lo"}}]},
                {"choices": [], "usage": {"prompt_tokens": 4, "completion_tokens": 2}},
            )

        tracker = UsageTracker()
        provider = _provider(handler)
        provider.set_usage_tracker(tracker)
        tokens = []

        async def sink(token):
            tokens.append(token)

        text = await provider.chat_with_history_stream([ChatMessage.user("hi")], "m", 0.7, sink)

        assert text == "Hello"
        assert tokens == ["Hel", "lo"]
        assert seen["body"]["stream"] is True
        assert seen["body"]["stream_options"] == {"include_usage": True}
        assert tracker.snapshot() == TokenUsage(4, 2, 6)
        assert tracker.requests() == 1

    @pytest.mark.asyncio
    async def test_empty_stream(self):
        provider = _provider(lambda r: _sse({"choices": [{"delta": {}}]}))

        async def sink(token):
            raise AssertionError("no tokens expected")

        with pytest.raises(EmptyResponseError):
            await provider.chat_with_history_stream([ChatMessage.user("hi")], "m", 0.7, sink)

    @pytest.mark.asyncio
    async def test_stream_http_error(self):
        provider = _provider(lambda r: httpx.Response(503, text="overloaded"))
        with pytest.raises(HttpError) as exc_info:
            async for _ in provider.stream_chat([ChatMessage.user("hi")], "m", 0.7):
                pass
        assert exc_info.value.status == 503
        assert "overloaded" in exc_info.value.body


class TestWarmup:
    @pytest.mark.asyncio
    async def test_warmup_hits_path(self):
        seen = []

        def handler(request):
            seen.append(request.url.path)
            return httpx.Response(200, json={})

        await _provider(handler, warmup_path="/auth/key").warmup()
        assert seen == ["/api/v1/auth/key"]

    @pytest.mark.asyncio
    async def test_warmup_skipped_without_key(self):
        def handler(request):
            raise AssertionError("no request expected")

        await _provider(handler, api_key=None, warmup_path="/auth/key").warmup()
