"""Asyncio-based cancellation tokens.

The orchestrator owns two independent sources per turn, one for the model
call and one for tool execution. Tokens are cooperative: code checks them at
defined points or races its awaits against them.
"""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable
from dataclasses import dataclass, field
from typing import TypeVar

from wavecore.errors import CancellationError

T = TypeVar("T")


@dataclass
class CancellationToken:
    """A token that can be checked for cancellation.

    Uses asyncio.Event internally. cancel() should be called from the
    event loop thread.
    """

    _event: asyncio.Event = field(default_factory=asyncio.Event, repr=False)
    _reason: str = ""

    @property
    def is_cancelled(self) -> bool:
        return self._event.is_set()

    @property
    def reason(self) -> str:
        return self._reason

    def cancel(self, reason: str = "aborted") -> None:
        """Signal cancellation. Repeated calls keep the first reason."""
        if not self._event.is_set():
            self._reason = reason
        self._event.set()

    def check(self) -> None:
        """Raise CancellationError if cancelled."""
        if self.is_cancelled:
            raise CancellationError(f"Request was aborted: {self._reason}")

    async def wait(self) -> None:
        """Wait until cancellation is signalled."""
        await self._event.wait()

    async def sleep(self, seconds: float) -> None:
        """Sleep for *seconds* unless cancelled first.

        Raises CancellationError as soon as the token fires, so a pending
        backoff never delays an abort.
        """
        self.check()
        try:
            await asyncio.wait_for(self._event.wait(), timeout=seconds)
        except asyncio.TimeoutError:
            return
        self.check()

    async def run(self, awaitable: Awaitable[T]) -> T:
        """Await *awaitable*, abandoning it if the token fires first."""
        self.check()
        task = asyncio.ensure_future(awaitable)
        waiter = asyncio.ensure_future(self._event.wait())
        try:
            await asyncio.wait({task, waiter}, return_when=asyncio.FIRST_COMPLETED)
        except asyncio.CancelledError:
            task.cancel()
            raise
        finally:
            waiter.cancel()
        if task.done():
            return task.result()
        task.cancel()
        try:
            await task
        except (asyncio.CancelledError, Exception):
            pass
        raise CancellationError(f"Request was aborted: {self._reason}")


@dataclass
class CancellationTokenSource:
    """Creates and manages a cancellation token."""

    _token: CancellationToken = field(default_factory=CancellationToken)

    @property
    def token(self) -> CancellationToken:
        return self._token

    @property
    def is_cancelled(self) -> bool:
        return self._token.is_cancelled

    def cancel(self, reason: str = "aborted") -> None:
        self._token.cancel(reason)
