"""Tests for the rate-limit retry policy."""

from __future__ import annotations

import pytest

from wavecore.errors import ProviderError
from wavecore.integrations.utilities.retry import MAX_ATTEMPTS, is_rate_limited, rate_limit_retrying


async def _run(fn, delays: list[float]):
    async def sleep(seconds: float) -> None:
        delays.append(seconds)

    async for attempt in rate_limit_retrying(sleep):
        with attempt:
            return await fn()


class TestIsRateLimited:
    def test_only_429(self) -> None:
        assert is_rate_limited(ProviderError("x", status_code=429))
        assert not is_rate_limited(ProviderError("x", status_code=500))
        assert not is_rate_limited(RuntimeError("429"))


class TestRateLimitRetrying:
    @pytest.mark.asyncio
    async def test_backoff_doubles(self) -> None:
        attempts = 0

        async def always_limited() -> None:
            nonlocal attempts
            attempts += 1
            raise ProviderError("slow down", status_code=429)

        delays: list[float] = []
        with pytest.raises(ProviderError):
            await _run(always_limited, delays)
        assert attempts == MAX_ATTEMPTS
        assert delays == [1.0, 2.0, 4.0]

    @pytest.mark.asyncio
    async def test_other_errors_not_retried(self) -> None:
        async def broken() -> None:
            raise ProviderError("bad", status_code=400)

        delays: list[float] = []
        with pytest.raises(ProviderError, match="bad"):
            await _run(broken, delays)
        assert delays == []

    @pytest.mark.asyncio
    async def test_returns_value(self) -> None:
        async def fine() -> str:
            return "ok"

        assert await _run(fine, []) == "ok"
