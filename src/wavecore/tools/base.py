"""Tool base types for the in-process registry."""

from __future__ import annotations

from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from typing import Any

from wavecore.core.cancellation import CancellationToken
from wavecore.types.messages import ToolDefinition


@dataclass(slots=True)
class ToolSpec:
    """Specification for a tool."""

    name: str
    description: str
    parameters: dict[str, Any]

    def to_definition(self) -> ToolDefinition:
        """Convert to ToolDefinition for LLM consumption."""
        return ToolDefinition(
            name=self.name,
            description=self.description,
            parameters=self.parameters,
        )


@dataclass(slots=True)
class ToolContext:
    """What a tool gets besides its arguments."""

    cancellation_token: CancellationToken
    working_dir: str = ""


ToolFunction = Callable[[dict[str, Any], ToolContext], Awaitable[Any]]


@dataclass
class Tool:
    """A registered tool with its execute function.

    ``execute`` may return a ``ToolExecutionResult``, a mapping in the
    same shape, or a plain string (treated as successful content).
    """

    spec: ToolSpec
    execute: ToolFunction
    tags: list[str] = field(default_factory=list)

    @property
    def name(self) -> str:
        return self.spec.name

    def to_definition(self) -> ToolDefinition:
        return self.spec.to_definition()
