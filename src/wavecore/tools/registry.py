"""In-process tool registry implementing the execution bridge."""

from __future__ import annotations

from typing import Any

from wavecore.core.cancellation import CancellationToken
from wavecore.errors import ToolNotFoundError
from wavecore.integrations.utilities.logger import get_logger
from wavecore.tools.base import Tool, ToolContext
from wavecore.tools.bridge import ToolExecutionResult
from wavecore.types.messages import ToolDefinition

logger = get_logger(__name__)


class ToolRegistry:
    """Registry for tool management and execution."""

    def __init__(self, *, working_dir: str = "") -> None:
        self._tools: dict[str, Tool] = {}
        self._working_dir = working_dir

    @property
    def tool_count(self) -> int:
        return len(self._tools)

    def register(self, tool: Tool) -> None:
        self._tools[tool.name] = tool

    def unregister(self, name: str) -> bool:
        return self._tools.pop(name, None) is not None

    def get(self, name: str) -> Tool | None:
        return self._tools.get(name)

    def has(self, name: str) -> bool:
        return name in self._tools

    def list_tools(self) -> list[str]:
        return list(self._tools.keys())

    def get_definitions(self) -> list[ToolDefinition]:
        return [tool.to_definition() for tool in self._tools.values()]

    async def execute(
        self,
        name: str,
        arguments: dict[str, Any],
        *,
        cancellation_token: CancellationToken,
    ) -> ToolExecutionResult:
        """Run tool *name*.

        Raises:
            ToolNotFoundError: No tool is registered under *name*.
        """
        tool = self._tools.get(name)
        if tool is None:
            raise ToolNotFoundError(name)

        context = ToolContext(cancellation_token=cancellation_token, working_dir=self._working_dir)
        raw = await tool.execute(arguments, context)
        if isinstance(raw, str):
            return ToolExecutionResult(success=True, content=raw)
        return ToolExecutionResult.coerce(raw)
