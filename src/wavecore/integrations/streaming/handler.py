"""Streaming response accumulation.

Folds ``StreamDelta`` increments into a final ``ChatResponse``: text is
concatenated in arrival order and tool-call fragments are merged by their
declared index.
"""

from __future__ import annotations

from collections.abc import AsyncIterator, Callable
from dataclasses import dataclass, field

from wavecore.types.messages import (
    ChatResponse,
    StopReason,
    StreamDelta,
    TokenUsage,
    ToolCall,
    ToolCallFragment,
)


# =============================================================================
# Types
# =============================================================================


@dataclass(slots=True)
class _PartialToolCall:
    index: int
    id: str = ""
    name: str = ""
    arguments: str = ""


@dataclass
class StreamAccumulator:
    """Running state of one streamed completion."""

    content: str = ""
    usage: TokenUsage | None = None
    finish_reason: str | None = None
    _tool_calls: dict[int, _PartialToolCall] = field(default_factory=dict)

    def apply(self, delta: StreamDelta) -> list[ToolCall]:
        """Merge *delta*; return the updated calls its fragments touched."""
        if delta.text:
            self.content += delta.text
        if delta.usage is not None:
            self.usage = delta.usage
        if delta.finish_reason:
            self.finish_reason = delta.finish_reason
        touched: list[ToolCall] = []
        for fragment in delta.tool_call_fragments:
            touched.append(self._merge(fragment))
        return touched

    def _merge(self, fragment: ToolCallFragment) -> ToolCall:
        call = self._tool_calls.get(fragment.index)
        if call is None:
            call = _PartialToolCall(index=fragment.index)
            self._tool_calls[fragment.index] = call
        # first-seen id and name win
        if fragment.id and not call.id:
            call.id = fragment.id
        if fragment.name and not call.name:
            call.name = fragment.name
        call.arguments += fragment.arguments
        return ToolCall(id=call.id, name=call.name, arguments=call.arguments, index=call.index)

    @property
    def tool_calls(self) -> list[ToolCall]:
        return [
            ToolCall(id=c.id, name=c.name, arguments=c.arguments, index=c.index)
            for _, c in sorted(self._tool_calls.items())
        ]

    def to_response(self, model: str | None = None) -> ChatResponse:
        return ChatResponse(
            content=self.content,
            tool_calls=self.tool_calls,
            usage=self.usage,
            stop_reason=StopReason.from_finish_reason(self.finish_reason),
            model=model,
        )


TextCallback = Callable[[str, str], None]
ToolCallCallback = Callable[[ToolCall], None]


# =============================================================================
# Collection
# =============================================================================


async def collect_stream(
    deltas: AsyncIterator[StreamDelta],
    *,
    on_text: TextCallback | None = None,
    on_tool_call: ToolCallCallback | None = None,
    model: str | None = None,
) -> ChatResponse:
    """Drain *deltas* into a ChatResponse.

    Args:
        deltas: The delta stream. Errors it raises propagate unchanged.
        on_text: Called with (new_text, full_text_so_far) per text delta.
        on_tool_call: Called with the merged call after each fragment.
        model: Recorded on the response.
    """
    state = StreamAccumulator()
    async for delta in deltas:
        touched = state.apply(delta)
        if delta.text and on_text is not None:
            on_text(delta.text, state.content)
        if on_tool_call is not None:
            for call in touched:
                on_tool_call(call)
    return state.to_response(model)
