"""Wire-level types for the chat-completion protocol."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import StrEnum
from typing import Any


class Role(StrEnum):
    """Message role on the wire."""

    SYSTEM = "system"
    USER = "user"
    ASSISTANT = "assistant"
    TOOL = "tool"


class StopReason(StrEnum):
    """Why the model stopped generating."""

    END_TURN = "end_turn"
    TOOL_USE = "tool_use"
    MAX_TOKENS = "max_tokens"
    CONTENT_FILTER = "content_filter"

    @classmethod
    def from_finish_reason(cls, finish: str | None) -> StopReason | None:
        if finish is None:
            return None
        if finish == "tool_calls":
            return cls.TOOL_USE
        if finish == "length":
            return cls.MAX_TOKENS
        if finish == "content_filter":
            return cls.CONTENT_FILTER
        return cls.END_TURN


@dataclass(slots=True)
class ToolCall:
    """A tool invocation requested by the model.

    ``arguments`` is the raw JSON text exactly as the model produced it;
    decoding happens at dispatch time.
    """

    id: str
    name: str
    arguments: str = ""
    index: int = 0


@dataclass(slots=True)
class ToolCallFragment:
    """One streamed piece of a tool call, keyed by its declared index."""

    index: int
    id: str | None = None
    name: str | None = None
    arguments: str = ""


@dataclass(slots=True)
class ToolDefinition:
    """Schema definition for a tool."""

    name: str
    description: str
    parameters: dict[str, Any]

    def to_schema(self) -> dict[str, Any]:
        """Convert to the function-tool wire format."""
        return {
            "type": "function",
            "function": {
                "name": self.name,
                "description": self.description,
                "parameters": self.parameters,
            },
        }


@dataclass(slots=True)
class TokenUsage:
    """Token consumption metrics."""

    input_tokens: int = 0
    output_tokens: int = 0
    total_tokens: int = 0
    cache_creation_tokens: int = 0
    cache_read_tokens: int = 0

    @property
    def comprehensive_total(self) -> int:
        """Base total plus cache reads and cache writes."""
        return self.total_tokens + self.cache_read_tokens + self.cache_creation_tokens

    @classmethod
    def from_wire(cls, data: dict[str, Any]) -> TokenUsage:
        prompt = int(data.get("prompt_tokens") or 0)
        completion = int(data.get("completion_tokens") or 0)
        return cls(
            input_tokens=prompt,
            output_tokens=completion,
            total_tokens=int(data.get("total_tokens") or (prompt + completion)),
            cache_creation_tokens=int(data.get("cache_creation_input_tokens") or 0),
            cache_read_tokens=int(data.get("cache_read_input_tokens") or 0),
        )


@dataclass(slots=True)
class ChatRequest:
    """A chat-completion request in wire form."""

    messages: list[dict[str, Any]]
    model: str | None = None
    tools: list[ToolDefinition] = field(default_factory=list)
    temperature: float | None = None
    max_tokens: int | None = None

    def to_body(self, model: str, *, stream: bool) -> dict[str, Any]:
        body: dict[str, Any] = {
            "model": self.model or model,
            "messages": self.messages,
            "stream": stream,
        }
        if stream:
            body["stream_options"] = {"include_usage": True}
        if self.tools:
            body["tools"] = [t.to_schema() for t in self.tools]
        if self.temperature is not None:
            body["temperature"] = self.temperature
        if self.max_tokens is not None:
            body["max_tokens"] = self.max_tokens
        return body


@dataclass(slots=True)
class StreamDelta:
    """One increment of a streamed completion.

    Each field is optional; a single SSE payload may carry any mix.
    """

    text: str | None = None
    tool_call_fragments: list[ToolCallFragment] = field(default_factory=list)
    usage: TokenUsage | None = None
    finish_reason: str | None = None


@dataclass(slots=True)
class ChatResponse:
    """A completed model response."""

    content: str = ""
    tool_calls: list[ToolCall] = field(default_factory=list)
    usage: TokenUsage | None = None
    stop_reason: StopReason | None = None
    model: str | None = None
