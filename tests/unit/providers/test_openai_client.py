"""Tests for the OpenAI-compatible streaming client."""

from __future__ import annotations

import asyncio
import json
from collections.abc import AsyncIterator, Callable

import httpx
import pytest

from wavecore.core.cancellation import CancellationTokenSource
from wavecore.errors import CancellationError, ProviderError, StreamProtocolError
from wavecore.providers.openai import StreamingCompletionClient
from wavecore.types.messages import ChatRequest, StopReason, StreamDelta, ToolDefinition

Handler = Callable[[httpx.Request], httpx.Response]


def _sse(*payloads: dict | str, space: bool = True) -> bytes:
    prefix = "data: " if space else "data:"
    lines = []
    for p in payloads:
        data = p if isinstance(p, str) else json.dumps(p)
        lines.append(f"{prefix}{data}\n\n")
    return "".join(lines).encode()


def _text(content: str) -> dict:
    return {"choices": [{"delta": {"content": content}}]}


def _client(handler: Handler, delays: list[float] | None = None) -> StreamingCompletionClient:
    async def _sleep(seconds: float) -> None:
        if delays is not None:
            delays.append(seconds)

    return StreamingCompletionClient(
        "test-key",
        "https://gateway.example/v1/",
        "agent-model",
        transport=httpx.MockTransport(handler),
        sleep=_sleep,
    )


def _request() -> ChatRequest:
    return ChatRequest(messages=[{"role": "user", "content": "hi"}])


async def _drain(stream: AsyncIterator[StreamDelta]) -> list[StreamDelta]:
    return [delta async for delta in stream]


class TestStreaming:
    @pytest.mark.asyncio
    @pytest.mark.parametrize("space", [True, False])
    async def test_text_deltas(self, space: bool) -> None:
        body = _sse(_text("Hel"), _text("lo"), "[DONE]", space=space)
        client = _client(lambda request: httpx.Response(200, content=body))
        deltas = await _drain(client.stream(_request()))
        assert "".join(d.text or "" for d in deltas) == "Hello"

    @pytest.mark.asyncio
    async def test_chunks_split_mid_event(self) -> None:
        body = _sse(_text("one "), _text("two"), "[DONE]")

        async def _chunks() -> AsyncIterator[bytes]:
            for i in range(0, len(body), 5):
                yield body[i:i + 5]

        client = _client(lambda request: httpx.Response(200, content=_chunks()))
        deltas = await _drain(client.stream(_request()))
        assert "".join(d.text or "" for d in deltas) == "one two"

    @pytest.mark.asyncio
    async def test_nothing_after_done(self) -> None:
        body = _sse(_text("a"), "[DONE]", _text("b"))
        client = _client(lambda request: httpx.Response(200, content=body))
        deltas = await _drain(client.stream(_request()))
        assert [d.text for d in deltas] == ["a"]

    @pytest.mark.asyncio
    async def test_empty_body(self) -> None:
        client = _client(lambda request: httpx.Response(200, content=b""))
        assert await _drain(client.stream(_request())) == []

    @pytest.mark.asyncio
    async def test_malformed_payload_raised_after_stream(self) -> None:
        body = _sse(_text("a"), "{broken", _text("b"), "[DONE]")
        client = _client(lambda request: httpx.Response(200, content=body))
        received: list[str | None] = []
        with pytest.raises(StreamProtocolError) as info:
            async for delta in client.stream(_request()):
                received.append(delta.text)
        assert received == ["a", "b"]
        assert len(info.value.errors) == 1

    @pytest.mark.asyncio
    async def test_request_body(self) -> None:
        seen: list[dict] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(json.loads(request.content))
            assert request.url == "https://gateway.example/v1/chat/completions"
            assert request.headers["Authorization"] == "Bearer test-key"
            return httpx.Response(200, content=_sse("[DONE]"))

        req = ChatRequest(
            messages=[{"role": "user", "content": "hi"}],
            tools=[ToolDefinition(name="read", description="Read", parameters={"type": "object"})],
        )
        await _drain(_client(handler).stream(req))
        body = seen[0]
        assert body["model"] == "agent-model"
        assert body["stream"] is True
        assert body["stream_options"] == {"include_usage": True}
        assert body["tools"][0]["function"]["name"] == "read"


class TestRetry:
    @pytest.mark.asyncio
    async def test_429_retried_with_backoff_then_raised(self) -> None:
        calls = 0

        def handler(request: httpx.Request) -> httpx.Response:
            nonlocal calls
            calls += 1
            return httpx.Response(429, json={"error": {"message": "slow down"}})

        delays: list[float] = []
        with pytest.raises(ProviderError) as info:
            await _drain(_client(handler, delays).stream(_request()))
        assert calls == 4
        assert delays == [1.0, 2.0, 4.0]
        assert info.value.status_code == 429
        assert str(info.value) == "slow down"

    @pytest.mark.asyncio
    async def test_429_then_success(self) -> None:
        responses = [
            httpx.Response(429, text="busy"),
            httpx.Response(200, content=_sse(_text("ok"), "[DONE]")),
        ]
        delays: list[float] = []
        client = _client(lambda request: responses.pop(0), delays)
        deltas = await _drain(client.stream(_request()))
        assert [d.text for d in deltas] == ["ok"]
        assert delays == [1.0]

    @pytest.mark.asyncio
    @pytest.mark.parametrize("status", [400, 401, 500, 503])
    async def test_other_errors_fail_immediately(self, status: int) -> None:
        calls = 0

        def handler(request: httpx.Request) -> httpx.Response:
            nonlocal calls
            calls += 1
            return httpx.Response(status, text="backend says no")

        delays: list[float] = []
        with pytest.raises(ProviderError) as info:
            await _client(handler, delays).complete(_request())
        assert calls == 1
        assert delays == []
        assert info.value.status_code == status
        assert "backend says no" in str(info.value)

    @pytest.mark.asyncio
    async def test_cancel_during_backoff(self) -> None:
        client = StreamingCompletionClient(
            "k", "https://gateway.example",
            transport=httpx.MockTransport(lambda request: httpx.Response(429, text="busy")),
        )
        source = CancellationTokenSource()
        asyncio.get_running_loop().call_later(0.05, source.cancel)
        loop = asyncio.get_running_loop()
        started = loop.time()
        with pytest.raises(CancellationError):
            await client.complete(_request(), source.token)
        assert loop.time() - started < 0.9


class TestComplete:
    @pytest.mark.asyncio
    async def test_parses_message_and_tool_calls(self) -> None:
        data = {
            "choices": [{
                "message": {
                    "content": "Let me look.",
                    "tool_calls": [{
                        "id": "call_1",
                        "type": "function",
                        "function": {"name": "read", "arguments": '{"path": "a.py"}'},
                    }],
                },
                "finish_reason": "tool_calls",
            }],
            "usage": {"prompt_tokens": 20, "completion_tokens": 4, "total_tokens": 24},
        }
        seen: list[dict] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(json.loads(request.content))
            return httpx.Response(200, json=data)

        resp = await _client(handler).complete(_request())
        assert seen[0]["stream"] is False
        assert "stream_options" not in seen[0]
        assert resp.content == "Let me look."
        assert resp.stop_reason == StopReason.TOOL_USE
        (call,) = resp.tool_calls
        assert (call.id, call.name, call.arguments) == ("call_1", "read", '{"path": "a.py"}')
        assert resp.usage is not None and resp.usage.total_tokens == 24

    @pytest.mark.asyncio
    async def test_no_choices(self) -> None:
        resp = await _client(lambda request: httpx.Response(200, json={"choices": []})).complete(_request())
        assert resp.content == ""
        assert resp.tool_calls == []
