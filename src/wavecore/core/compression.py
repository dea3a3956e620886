"""Token-budget driven history compression.

Older messages are summarized by the fast model and the summary is
inserted as a single compress message where the retained tail begins. The
original messages stay in the store; projection stops at the newest
summary, so they are shadowed for the model and for display.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from wavecore.agent.prompts import (
    COMPRESSION_MAX_TOKENS,
    COMPRESSION_TEMPERATURE,
    build_compression_messages,
)
from wavecore.conversation.operations import get_messages_to_compress
from wavecore.conversation.projection import convert_messages_for_api
from wavecore.conversation.store import ConversationStore
from wavecore.core.cancellation import CancellationToken
from wavecore.errors import CancellationError, CompressionError, ProviderError
from wavecore.integrations.utilities.logger import get_logger
from wavecore.providers.base import CompletionProvider
from wavecore.types.messages import ChatRequest

logger = get_logger(__name__)

KEEP_RECENT_MESSAGES = 7
COMPRESSION_FAILED = "Failed to compress conversation history"


@dataclass(slots=True)
class CompressionResult:
    """Result of a compression pass."""

    summary: str
    insert_index: int
    messages_compressed: int


async def summarize_history(
    provider: CompletionProvider,
    history: list[dict[str, Any]],
    *,
    model: str | None,
    token: CancellationToken,
) -> str:
    """Ask the model for a summary of *history* (wire messages).

    Raises:
        CancellationError: The token fired during the request.
        CompressionError: The request failed or returned nothing.
    """
    request = ChatRequest(
        messages=build_compression_messages(history),
        model=model,
        temperature=COMPRESSION_TEMPERATURE,
        max_tokens=COMPRESSION_MAX_TOKENS,
    )
    try:
        response = await provider.complete(request, token)
    except CancellationError as e:
        raise CancellationError("Compression request was aborted") from e
    except ProviderError as e:
        raise CompressionError(f"{COMPRESSION_FAILED}: {e}") from e

    summary = response.content.strip()
    if not summary:
        raise CompressionError(COMPRESSION_FAILED)
    return summary


async def compress_conversation(
    store: ConversationStore,
    provider: CompletionProvider,
    *,
    model: str | None,
    token: CancellationToken,
    keep_last: int = KEEP_RECENT_MESSAGES,
) -> CompressionResult | None:
    """Summarize everything but the last *keep_last* messages.

    Returns None when there is nothing new to compress.
    """
    prefix, insert_index = get_messages_to_compress(store.messages, keep_last)
    if not prefix:
        return None

    logger.info("compression_started", messages=len(prefix), insert_index=insert_index)
    summary = await summarize_history(
        provider, convert_messages_for_api(prefix), model=model, token=token,
    )
    store.add_compress_block(insert_index, summary)
    logger.info("compression_finished", summary_chars=len(summary))
    return CompressionResult(summary=summary, insert_index=insert_index, messages_compressed=len(prefix))
