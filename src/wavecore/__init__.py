"""wavecore - conversational coding-agent engine."""

from wavecore.conversation.store import ConversationStore
from wavecore.core.orchestrator import AgentOrchestrator
from wavecore.providers.openai import StreamingCompletionClient
from wavecore.tools.registry import ToolRegistry

__version__ = "0.1.0"

__all__ = [
    "AgentOrchestrator",
    "ConversationStore",
    "StreamingCompletionClient",
    "ToolRegistry",
    "__version__",
]
