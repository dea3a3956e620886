"""Global test fixtures for wavecore."""

from __future__ import annotations

from pathlib import Path
from typing import Any

import pytest

from wavecore.conversation.store import ConversationStore
from wavecore.providers.mock import MockProvider
from wavecore.tools.base import Tool, ToolContext, ToolSpec
from wavecore.tools.registry import ToolRegistry


@pytest.fixture
def tmp_workdir(tmp_path: Path) -> Path:
    """Provide a temporary working directory for file operation tests."""
    return tmp_path


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch: pytest.MonkeyPatch) -> None:
    """Keep gateway settings from the developer's shell out of tests."""
    for var in ("AIGW_TOKEN", "AIGW_URL", "AIGW_MODEL", "AIGW_FAST_MODEL", "TOKEN_LIMIT", "WAVE_STREAM", "WAVE_DEBUG"):
        monkeypatch.delenv(var, raising=False)


@pytest.fixture
def store() -> ConversationStore:
    return ConversationStore()


@pytest.fixture
def mock_provider() -> MockProvider:
    return MockProvider()


def _make_tool(name: str, calls: list[tuple[str, dict[str, Any]]] | None = None, result: Any = "ok") -> Tool:
    async def _execute(args: dict[str, Any], ctx: ToolContext) -> Any:
        if calls is not None:
            calls.append((name, args))
        return result

    return Tool(
        spec=ToolSpec(
            name=name,
            description=f"{name} tool",
            parameters={"type": "object", "properties": {}},
        ),
        execute=_execute,
    )


@pytest.fixture
def make_tool() -> Any:
    """Factory for tools that record their invocations and return a fixed result."""
    return _make_tool


@pytest.fixture
def registry(tmp_workdir: Path) -> ToolRegistry:
    return ToolRegistry(working_dir=str(tmp_workdir))
