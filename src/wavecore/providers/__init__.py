"""Model backend providers."""

from wavecore.providers.base import CompletionProvider
from wavecore.providers.mock import MockProvider
from wavecore.providers.openai import StreamingCompletionClient

__all__ = ["CompletionProvider", "MockProvider", "StreamingCompletionClient"]
