"""The narrow contract through which the orchestrator runs tools."""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any, Protocol, runtime_checkable

from pydantic import BaseModel, ConfigDict, Field

from wavecore.core.cancellation import CancellationToken
from wavecore.types.messages import ToolDefinition


class ToolImageResult(BaseModel):
    """An image returned by a tool."""

    model_config = ConfigDict(populate_by_name=True)

    data: str
    media_type: str = Field(default="image/png", alias="mediaType")


class ToolExecutionResult(BaseModel):
    """Outcome of one tool execution as reported by the bridge.

    Accepts both snake_case and the camelCase keys used by JavaScript
    tool hosts.
    """

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    success: bool
    content: str = ""
    error: str | None = None
    short_result: str | None = Field(default=None, alias="shortResult")
    diff_result: Any = Field(default=None, alias="diffResult")
    file_path: str | None = Field(default=None, alias="filePath")
    original_content: str | None = Field(default=None, alias="originalContent")
    new_content: str | None = Field(default=None, alias="newContent")
    images: list[ToolImageResult] | None = None

    @classmethod
    def coerce(cls, value: Any) -> ToolExecutionResult:
        """Validate whatever a bridge returned into a result."""
        if isinstance(value, cls):
            return value
        if isinstance(value, Mapping):
            return cls.model_validate(dict(value))
        return cls.model_validate(value, from_attributes=True)

    @property
    def display_text(self) -> str:
        """Text recorded on the tool block."""
        if self.content:
            return self.content
        if self.error:
            return f"Error: {self.error}"
        return ""

    @property
    def has_diff(self) -> bool:
        return (
            self.diff_result is not None
            and self.file_path is not None
            and self.original_content is not None
            and self.new_content is not None
        )


@runtime_checkable
class ToolExecutionBridge(Protocol):
    """Dispatches a named tool call to an externally registered tool."""

    def get_definitions(self) -> list[ToolDefinition]: ...

    async def execute(
        self,
        name: str,
        arguments: dict[str, Any],
        *,
        cancellation_token: CancellationToken,
    ) -> ToolExecutionResult | Mapping[str, Any]: ...
