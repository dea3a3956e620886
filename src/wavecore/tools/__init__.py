"""Tool execution boundary."""

from wavecore.tools.base import Tool, ToolContext, ToolSpec
from wavecore.tools.bridge import ToolExecutionBridge, ToolExecutionResult
from wavecore.tools.registry import ToolRegistry

__all__ = [
    "Tool",
    "ToolContext",
    "ToolExecutionBridge",
    "ToolExecutionResult",
    "ToolRegistry",
    "ToolSpec",
]
