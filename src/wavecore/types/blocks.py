"""Conversation data model: messages made of typed blocks.

Blocks and messages are frozen; every change produces a new object via
``dataclasses.replace`` so that any snapshot handed out stays valid.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from enum import StrEnum
from typing import Any


class MessageRole(StrEnum):
    """Roles that appear in the conversation (not on the wire)."""

    USER = "user"
    ASSISTANT = "assistant"


class TextSource(StrEnum):
    """Where a user text block came from."""

    USER = "user"
    HOOK = "hook"


class MemoryType(StrEnum):
    """Where a saved memory is stored."""

    PROJECT = "project"
    USER = "user"


@dataclass(frozen=True, slots=True)
class TextBlock:
    content: str = ""
    source: TextSource | None = None


@dataclass(frozen=True, slots=True)
class ImageBlock:
    image_urls: tuple[str, ...] = ()


@dataclass(frozen=True, slots=True)
class ToolImage:
    """An image a tool returned alongside its text result."""

    data: str
    media_type: str = "image/png"


@dataclass(frozen=True, slots=True)
class ToolBlock:
    """A tool invocation and, once finished, its outcome.

    Lifecycle: pending (not running, no outcome) -> running -> finished
    (not running, ``success`` set). A finished block never changes again.
    """

    id: str
    name: str = ""
    parameters: str = ""
    result: str | None = None
    success: bool | None = None
    error: str | None = None
    is_running: bool = False
    short_result: str | None = None
    compact_params: str | None = None
    images: tuple[ToolImage, ...] = ()

    @property
    def is_finished(self) -> bool:
        return self.success is not None


@dataclass(frozen=True, slots=True)
class DiffBlock:
    path: str
    diff_result: Any
    original: str
    modified: str


@dataclass(frozen=True, slots=True)
class ErrorBlock:
    content: str


@dataclass(frozen=True, slots=True)
class CompressBlock:
    content: str


@dataclass(frozen=True, slots=True)
class MemoryBlock:
    content: str
    is_success: bool
    memory_type: MemoryType
    storage_path: str = ""


@dataclass(frozen=True, slots=True)
class CommandOutputBlock:
    command: str
    output: str = ""
    is_running: bool = True
    exit_code: int | None = None


Block = (
    TextBlock
    | ImageBlock
    | ToolBlock
    | DiffBlock
    | ErrorBlock
    | CompressBlock
    | MemoryBlock
    | CommandOutputBlock
)


@dataclass(frozen=True, slots=True)
class Message:
    """One conversation message: a role and its ordered blocks."""

    role: MessageRole
    blocks: tuple[Block, ...] = ()

    def with_blocks(self, blocks: tuple[Block, ...]) -> Message:
        return Message(role=self.role, blocks=blocks)

    @property
    def is_empty(self) -> bool:
        return not self.blocks

    def has_compress_block(self) -> bool:
        return any(isinstance(b, CompressBlock) for b in self.blocks)


Messages = tuple[Message, ...]


def new_session_id() -> str:
    return str(uuid.uuid4())


@dataclass(slots=True)
class Session:
    """Persistable view of one conversation."""

    id: str = field(default_factory=new_session_id)
    messages: Messages = ()
    total_tokens: int = 0
    input_history: list[str] = field(default_factory=list)
    working_directory: str = ""
