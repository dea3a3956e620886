"""Scripted provider for tests and offline runs."""

from __future__ import annotations

from collections.abc import AsyncIterator, Awaitable, Callable
from dataclasses import dataclass, field

from wavecore.core.cancellation import CancellationToken
from wavecore.types.messages import (
    ChatRequest,
    ChatResponse,
    StopReason,
    StreamDelta,
    TokenUsage,
    ToolCall,
    ToolCallFragment,
)

ResponseFn = Callable[[ChatRequest, CancellationToken | None], Awaitable[ChatResponse]]


@dataclass
class MockProvider:
    """Returns queued responses in order, then ``default_response``.

    ``stream`` replays the chosen response as deltas: text in
    ``chunk_size`` pieces, each tool call split into two fragments, usage
    last.
    """

    responses: list[ChatResponse] = field(default_factory=list)
    response_fn: ResponseFn | None = None
    default_response: ChatResponse = field(
        default_factory=lambda: ChatResponse(
            content="Mock response",
            stop_reason=StopReason.END_TURN,
            usage=TokenUsage(input_tokens=10, output_tokens=5, total_tokens=15),
        )
    )
    chunk_size: int = 8
    model_name: str = "mock-model"
    call_history: list[ChatRequest] = field(default_factory=list)
    _response_index: int = field(default=0, init=False)

    @property
    def name(self) -> str:
        return "mock"

    @property
    def model(self) -> str:
        return self.model_name

    @property
    def call_count(self) -> int:
        return len(self.call_history)

    async def complete(
        self,
        request: ChatRequest,
        token: CancellationToken | None = None,
    ) -> ChatResponse:
        self.call_history.append(request)
        if token is not None:
            token.check()
        if self.response_fn is not None:
            return await self.response_fn(request, token)
        if self._response_index < len(self.responses):
            resp = self.responses[self._response_index]
            self._response_index += 1
            return resp
        return self.default_response

    async def stream(
        self,
        request: ChatRequest,
        token: CancellationToken | None = None,
    ) -> AsyncIterator[StreamDelta]:
        resp = await self.complete(request, token)
        size = max(1, self.chunk_size)
        for start in range(0, len(resp.content), size):
            if token is not None:
                token.check()
            yield StreamDelta(text=resp.content[start:start + size])
        for position, call in enumerate(resp.tool_calls):
            half = len(call.arguments) // 2
            yield StreamDelta(tool_call_fragments=[
                ToolCallFragment(index=position, id=call.id, name=call.name, arguments=call.arguments[:half]),
            ])
            yield StreamDelta(tool_call_fragments=[
                ToolCallFragment(index=position, arguments=call.arguments[half:]),
            ])
        finish = "tool_calls" if resp.tool_calls else "stop"
        yield StreamDelta(usage=resp.usage, finish_reason=finish)

    def add_response(
        self,
        content: str = "",
        tool_calls: list[ToolCall] | None = None,
        stop_reason: StopReason = StopReason.END_TURN,
        usage: TokenUsage | None = None,
    ) -> MockProvider:
        self.responses.append(
            ChatResponse(
                content=content,
                tool_calls=tool_calls or [],
                stop_reason=stop_reason,
                usage=usage or TokenUsage(input_tokens=10, output_tokens=5, total_tokens=15),
            )
        )
        return self

    def add_tool_response(self, tool_calls: list[ToolCall], content: str = "") -> MockProvider:
        return self.add_response(content=content, tool_calls=tool_calls, stop_reason=StopReason.TOOL_USE)

    def reset(self) -> None:
        self.call_history.clear()
        self._response_index = 0

    async def close(self) -> None:
        """No-op for mock provider."""
