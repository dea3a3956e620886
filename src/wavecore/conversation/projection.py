"""Projection of the conversation into chat-completion wire messages."""

from __future__ import annotations

import base64
import re
from pathlib import Path
from typing import Any

from wavecore.integrations.utilities.logger import get_logger
from wavecore.tricks.partial_json import safe_tool_arguments
from wavecore.types.blocks import (
    CompressBlock,
    ImageBlock,
    Message,
    MessageRole,
    Messages,
    TextBlock,
    ToolBlock,
    ToolImage,
)

logger = get_logger(__name__)

COMPRESSED_SUMMARY_PREFIX = "[Compressed Message Summary]"

_ANSI_RE = re.compile(r"\x1b\[[0-9;?]*[ -/]*[@-~]|\x1b\][^\x07]*\x07")

_MIME_TYPES = {
    "jpg": "image/jpeg",
    "jpeg": "image/jpeg",
    "png": "image/png",
    "gif": "image/gif",
    "webp": "image/webp",
    "bmp": "image/bmp",
}


def strip_ansi(text: str) -> str:
    """Remove terminal color and cursor escape sequences."""
    return _ANSI_RE.sub("", text)


def image_to_data_url(image: str) -> str:
    """Turn a local image path into a base64 data URL.

    ``data:`` and ``http(s)`` URLs are returned unchanged.

    Raises:
        OSError: The file could not be read.
    """
    if image.startswith(("data:", "http://", "https://")):
        return image
    path = Path(image)
    mime = _MIME_TYPES.get(path.suffix.lower().lstrip("."), "image/png")
    encoded = base64.b64encode(path.read_bytes()).decode("ascii")
    return f"data:{mime};base64,{encoded}"


def _tool_image_url(image: ToolImage) -> str:
    if image.data.startswith("data:"):
        return image.data
    return f"data:{image.media_type or 'image/png'};base64,{image.data}"


def _image_part(url: str) -> dict[str, Any]:
    return {"type": "image_url", "image_url": {"url": url, "detail": "auto"}}


def _project_user(message: Message) -> dict[str, Any] | None:
    parts: list[dict[str, Any]] = []
    for block in message.blocks:
        if isinstance(block, TextBlock) and block.content:
            parts.append({"type": "text", "text": block.content})
        elif isinstance(block, ImageBlock):
            for image in block.image_urls:
                try:
                    parts.append(_image_part(image_to_data_url(image)))
                except OSError as e:
                    logger.warning("image_conversion_failed", path=image, error=str(e))
    if not parts:
        return None
    return {"role": "user", "content": parts}


def _project_assistant(message: Message) -> list[dict[str, Any]]:
    """Assistant message followed by its tool results, in order."""
    tool_blocks = [b for b in message.blocks if isinstance(b, ToolBlock) and b.is_finished]
    content = "\n".join(b.content for b in message.blocks if isinstance(b, TextBlock))

    projected: list[dict[str, Any]] = []
    if content or tool_blocks:
        entry: dict[str, Any] = {"role": "assistant", "content": content}
        if tool_blocks:
            entry["tool_calls"] = [
                {
                    "id": b.id,
                    "type": "function",
                    "function": {"name": b.name, "arguments": safe_tool_arguments(b.parameters)},
                }
                for b in tool_blocks
            ]
        projected.append(entry)

    for block in tool_blocks:
        result = strip_ansi(block.result or "")
        if block.images:
            # no wire primitive for a tool result carrying images
            parts: list[dict[str, Any]] = [
                {"type": "text", "text": f"Tool result for {block.name or 'unknown tool'}:\n{result}"},
            ]
            parts.extend(_image_part(_tool_image_url(img)) for img in block.images)
            projected.append({"role": "user", "content": parts})
        else:
            projected.append({"role": "tool", "tool_call_id": block.id, "content": result})
    return projected


def convert_messages_for_api(messages: Messages) -> list[dict[str, Any]]:
    """Project *messages* into wire messages for the model.

    Walks backwards and stops at the newest summary message, which
    contributes a system message in place of everything before it. Error,
    memory, diff and command-output blocks are never projected.
    """
    projected: list[list[dict[str, Any]]] = []
    for message in reversed(messages):
        if message.role == MessageRole.ASSISTANT and message.has_compress_block():
            summary = next(b for b in message.blocks if isinstance(b, CompressBlock))
            projected.append([{
                "role": "system",
                "content": f"{COMPRESSED_SUMMARY_PREFIX} {summary.content}",
            }])
            break
        if message.role == MessageRole.ASSISTANT:
            if message.is_empty:
                continue
            projected.append(_project_assistant(message))
        else:
            user = _project_user(message)
            if user is not None:
                projected.append([user])

    result: list[dict[str, Any]] = []
    for group in reversed(projected):
        result.extend(group)
    return result
