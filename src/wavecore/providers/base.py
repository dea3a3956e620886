"""Provider protocol consumed by the orchestrator."""

from __future__ import annotations

from collections.abc import AsyncIterator
from typing import Protocol, runtime_checkable

from wavecore.core.cancellation import CancellationToken
from wavecore.types.messages import ChatRequest, ChatResponse, StreamDelta


@runtime_checkable
class CompletionProvider(Protocol):
    """A chat-completion backend.

    ``stream`` yields deltas as they arrive; ``complete`` returns one
    finished response. Both honour the cancellation token and raise
    ``CancellationError`` when it fires.
    """

    @property
    def name(self) -> str: ...

    @property
    def model(self) -> str: ...

    def stream(
        self,
        request: ChatRequest,
        token: CancellationToken | None = None,
    ) -> AsyncIterator[StreamDelta]: ...

    async def complete(
        self,
        request: ChatRequest,
        token: CancellationToken | None = None,
    ) -> ChatResponse: ...
