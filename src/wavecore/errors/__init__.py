"""Wavecore error hierarchy."""

from __future__ import annotations

import asyncio
from enum import StrEnum
from typing import Any


class ErrorCategory(StrEnum):
    """Category of error for classification and handling."""

    PROVIDER = "provider"
    PROTOCOL = "protocol"
    TOOL = "tool"
    ARGUMENTS = "arguments"
    CANCELLATION = "cancellation"
    COMPRESSION = "compression"
    SHELL = "shell"
    CONFIGURATION = "configuration"
    INTERNAL = "internal"


class AgentError(Exception):
    """Base error for all wavecore exceptions."""

    def __init__(
        self,
        message: str,
        *,
        category: ErrorCategory = ErrorCategory.INTERNAL,
        retryable: bool = False,
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message)
        self.category = category
        self.retryable = retryable
        self.details: dict[str, Any] = details or {}

    def __repr__(self) -> str:
        return f"{type(self).__name__}({str(self)!r}, category={self.category!r})"


class ProviderError(AgentError):
    """Transport failure talking to the model backend.

    Only HTTP 429 is retryable; every other status fails the request.
    """

    def __init__(
        self,
        message: str,
        *,
        provider: str | None = None,
        status_code: int | None = None,
        retryable: bool | None = None,
        **kwargs: Any,
    ) -> None:
        if retryable is None:
            retryable = status_code == 429
        kwargs.setdefault("category", ErrorCategory.PROVIDER)
        super().__init__(message, retryable=retryable, **kwargs)
        self.provider = provider
        self.status_code = status_code


class StreamProtocolError(ProviderError):
    """One or more SSE payloads could not be decoded.

    Raised only after the stream has ended so that the well-formed deltas
    before and after the bad payload are still delivered.
    """

    def __init__(self, message: str, *, errors: list[str] | None = None, provider: str | None = None) -> None:
        errors = errors or []
        super().__init__(
            message,
            provider=provider,
            retryable=False,
            category=ErrorCategory.PROTOCOL,
            details={"count": len(errors), "errors": errors},
        )
        self.errors = errors


class ToolError(AgentError):
    """Error during tool execution."""

    def __init__(
        self,
        message: str,
        *,
        tool_name: str | None = None,
        retryable: bool = False,
        **kwargs: Any,
    ) -> None:
        kwargs.setdefault("category", ErrorCategory.TOOL)
        super().__init__(message, retryable=retryable, **kwargs)
        self.tool_name = tool_name


class ToolNotFoundError(ToolError):
    """Requested tool does not exist."""

    def __init__(self, tool_name: str) -> None:
        super().__init__(f"Tool not found: {tool_name}", tool_name=tool_name)


class ToolArgumentError(ToolError):
    """A tool call's final arguments text is not a JSON object."""

    def __init__(self, tool_name: str, raw_arguments: str) -> None:
        super().__init__(
            f"Failed to parse tool arguments for {tool_name}: "
            f"Failed to parse tool arguments: {raw_arguments}",
            tool_name=tool_name,
            category=ErrorCategory.ARGUMENTS,
        )
        self.raw_arguments = raw_arguments


class CancellationError(AgentError):
    """Operation was cancelled by user or system."""

    def __init__(self, message: str = "Operation aborted") -> None:
        super().__init__(message, category=ErrorCategory.CANCELLATION, retryable=False)


class CompressionError(AgentError):
    """History summarization failed; the turn continues uncompressed."""

    def __init__(self, message: str) -> None:
        super().__init__(message, category=ErrorCategory.COMPRESSION, retryable=False)


class CommandAlreadyRunningError(AgentError):
    """A shell command is already in flight."""

    def __init__(self, message: str = "Command already running") -> None:
        super().__init__(message, category=ErrorCategory.SHELL, retryable=False)


class ConfigurationError(AgentError):
    """Invalid or missing configuration."""

    def __init__(self, message: str, *, field_name: str | None = None) -> None:
        super().__init__(message, category=ErrorCategory.CONFIGURATION, retryable=False)
        self.field_name = field_name


def is_abort_error(exc: BaseException) -> bool:
    """Whether *exc* represents a user-initiated abort rather than a failure."""
    if isinstance(exc, (CancellationError, asyncio.CancelledError)):
        return True
    return "aborted" in str(exc).lower()
