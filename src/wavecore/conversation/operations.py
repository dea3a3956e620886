"""Pure operations over a message snapshot.

Every function takes the current ``Messages`` tuple and returns a new one;
nothing is mutated in place. Only the last message may gain or change
blocks, except ``add_compress_block`` which inserts a new message.

Update operations that cannot find their target return the snapshot
unchanged. Duplicate or late completion notifications are normal when a
turn is cancelled, so a miss is not an error.
"""

from __future__ import annotations

from dataclasses import replace
from typing import Any

from wavecore.types.blocks import (
    Block,
    CommandOutputBlock,
    CompressBlock,
    DiffBlock,
    ErrorBlock,
    ImageBlock,
    MemoryBlock,
    MemoryType,
    Message,
    MessageRole,
    Messages,
    TextBlock,
    TextSource,
    ToolBlock,
    ToolImage,
)

# Fields of a ToolBlock an update may set.
TOOL_UPDATE_FIELDS = frozenset({
    "name",
    "parameters",
    "result",
    "success",
    "error",
    "is_running",
    "short_result",
    "compact_params",
    "images",
})


# =============================================================================
# Helpers
# =============================================================================


def _replace_last(messages: Messages, message: Message) -> Messages:
    return messages[:-1] + (message,)


def _last_assistant(messages: Messages) -> Message | None:
    if messages and messages[-1].role == MessageRole.ASSISTANT:
        return messages[-1]
    return None


def _append_to_last_assistant(messages: Messages, block: Block) -> Messages:
    last = _last_assistant(messages)
    if last is None:
        return messages
    return _replace_last(messages, last.with_blocks(last.blocks + (block,)))


def _find_open_tool_block(message: Message, tool_id: str) -> int:
    for i in range(len(message.blocks) - 1, -1, -1):
        block = message.blocks[i]
        if isinstance(block, ToolBlock) and block.id == tool_id and not block.is_finished:
            return i
    return -1


# =============================================================================
# Messages
# =============================================================================


def add_user_message(
    messages: Messages,
    content: str,
    image_urls: list[str] | tuple[str, ...] | None = None,
    *,
    source: TextSource | None = None,
) -> Messages:
    """Append a user message holding a text block and optional images."""
    blocks: list[Block] = [TextBlock(content=content, source=source)]
    if image_urls:
        blocks.append(ImageBlock(image_urls=tuple(image_urls)))
    return messages + (Message(role=MessageRole.USER, blocks=tuple(blocks)),)


def add_assistant_message(messages: Messages) -> Messages:
    """Append an empty assistant message."""
    return messages + (Message(role=MessageRole.ASSISTANT),)


# =============================================================================
# Answer text
# =============================================================================


def add_answer_block(messages: Messages) -> Messages:
    """Append an empty text block to the trailing assistant message."""
    return _append_to_last_assistant(messages, TextBlock(content=""))


def update_answer_block(messages: Messages, content: str) -> Messages:
    """Replace the content of the last text block of the trailing assistant message."""
    last = _last_assistant(messages)
    if last is None:
        return messages
    blocks = list(last.blocks)
    for i in range(len(blocks) - 1, -1, -1):
        if isinstance(blocks[i], TextBlock):
            blocks[i] = replace(blocks[i], content=content)
            return _replace_last(messages, last.with_blocks(tuple(blocks)))
    return messages


# =============================================================================
# Tool blocks
# =============================================================================


def add_tool_block(messages: Messages, tool_id: str, name: str, parameters: str = "") -> Messages:
    """Append a pending tool block to the trailing assistant message.

    If an unfinished block with the same id already exists there (created
    while the call was streaming) it is refreshed instead.
    """
    last = _last_assistant(messages)
    if last is None:
        return messages
    index = _find_open_tool_block(last, tool_id)
    if index >= 0:
        changes: dict[str, Any] = {"name": name or last.blocks[index].name}
        if parameters:
            changes["parameters"] = parameters
        return update_tool_block(messages, tool_id, **changes)
    return _append_to_last_assistant(
        messages, ToolBlock(id=tool_id, name=name, parameters=parameters),
    )


def update_tool_block(messages: Messages, tool_id: str, **changes: Any) -> Messages:
    """Update the unfinished tool block *tool_id* in the trailing assistant message.

    A finished block is immutable, so a second completion for the same id
    is ignored.
    """
    unknown = set(changes) - TOOL_UPDATE_FIELDS
    if unknown:
        raise TypeError(f"Unknown tool block fields: {sorted(unknown)}")
    last = _last_assistant(messages)
    if last is None:
        return messages
    index = _find_open_tool_block(last, tool_id)
    if index < 0:
        return messages
    if "images" in changes and changes["images"] is not None:
        changes["images"] = tuple(
            img if isinstance(img, ToolImage) else ToolImage(**img) for img in changes["images"]
        )
    elif "images" in changes:
        changes["images"] = ()
    blocks = list(last.blocks)
    blocks[index] = replace(blocks[index], **changes)
    return _replace_last(messages, last.with_blocks(tuple(blocks)))


# =============================================================================
# Other blocks
# =============================================================================


def add_diff_block(messages: Messages, path: str, diff_result: Any, original: str, modified: str) -> Messages:
    return _append_to_last_assistant(
        messages, DiffBlock(path=path, diff_result=diff_result, original=original, modified=modified),
    )


def add_error_block(messages: Messages, content: str) -> Messages:
    """Append an error block, creating an assistant message if the last one isn't."""
    block = ErrorBlock(content=content)
    last = _last_assistant(messages)
    if last is None:
        return messages + (Message(role=MessageRole.ASSISTANT, blocks=(block,)),)
    return _replace_last(messages, last.with_blocks(last.blocks + (block,)))


def add_compress_block(messages: Messages, insert_index: int, content: str) -> Messages:
    """Insert a summary message at *insert_index*, keeping every original message."""
    insert_index = max(0, min(insert_index, len(messages)))
    summary = Message(role=MessageRole.ASSISTANT, blocks=(CompressBlock(content=content),))
    return messages[:insert_index] + (summary,) + messages[insert_index:]


def add_memory_block(
    messages: Messages,
    content: str,
    is_success: bool,
    memory_type: MemoryType,
    storage_path: str = "",
) -> Messages:
    block = MemoryBlock(
        content=content, is_success=is_success, memory_type=memory_type, storage_path=storage_path,
    )
    return messages + (Message(role=MessageRole.ASSISTANT, blocks=(block,)),)


# =============================================================================
# Command output
# =============================================================================


def add_command_output_message(messages: Messages, command: str) -> Messages:
    """Append a new assistant message holding a running command-output block."""
    block = CommandOutputBlock(command=command)
    return messages + (Message(role=MessageRole.ASSISTANT, blocks=(block,)),)


def _update_running_command(messages: Messages, command: str, **changes: Any) -> Messages:
    for mi in range(len(messages) - 1, -1, -1):
        message = messages[mi]
        for bi in range(len(message.blocks) - 1, -1, -1):
            block = message.blocks[bi]
            if isinstance(block, CommandOutputBlock) and block.command == command and block.is_running:
                blocks = list(message.blocks)
                blocks[bi] = replace(block, **changes)
                return messages[:mi] + (message.with_blocks(tuple(blocks)),) + messages[mi + 1:]
    return messages


def update_command_output(messages: Messages, command: str, output: str) -> Messages:
    """Set the output of the most recent running block for *command*."""
    return _update_running_command(messages, command, output=output.strip())


def complete_command(messages: Messages, command: str, exit_code: int) -> Messages:
    """Mark the most recent running block for *command* as finished."""
    return _update_running_command(messages, command, is_running=False, exit_code=exit_code)


# =============================================================================
# Compression boundary
# =============================================================================


def get_messages_to_compress(messages: Messages, keep_last: int = 7) -> tuple[Messages, int]:
    """Split off everything except the *keep_last* most recent messages.

    Returns (prefix, insert_index) where insert_index is the position at
    which the retained messages begin. The prefix is empty when nothing
    new lies between the latest summary and that position, so a region is
    never summarized twice.
    """
    insert_index = max(0, len(messages) - keep_last)
    last_summary = -1
    for i, message in enumerate(messages):
        if message.has_compress_block():
            last_summary = i
    if insert_index <= last_summary + 1:
        return (), insert_index
    return messages[:insert_index], insert_index


def extract_user_input_history(messages: Messages) -> list[str]:
    """User-typed texts in order, skipping hook-injected text."""
    history: list[str] = []
    for message in messages:
        if message.role != MessageRole.USER:
            continue
        for block in message.blocks:
            if isinstance(block, TextBlock) and block.source != TextSource.HOOK and block.content.strip():
                history.append(block.content)
    return history
