"""Memory files: notes the user asks the assistant to remember.

Project memory lives in ``AGENTS.md`` at the working directory, user
memory in ``~/.wave/user-memory.md``. Both are plain markdown bullet
lists and are fed back to the model through the system prompt.
"""

from __future__ import annotations

from pathlib import Path

from wavecore.config import get_user_config_dir
from wavecore.types.blocks import MemoryType

PROJECT_MEMORY_FILE = "AGENTS.md"
USER_MEMORY_FILE = "user-memory.md"

PROJECT_MEMORY_HEADER = (
    "# Memory\n\nThis is the AI assistant's memory file, recording important information and context.\n\n"
)
USER_MEMORY_HEADER = (
    "# User Memory\n\nThis is the user-level memory file, recording important information "
    "and context across projects.\n\n"
)


def is_memory_directive(text: str) -> bool:
    """A single-line input starting with ``#``."""
    stripped = text.strip()
    return stripped.startswith("#") and "\n" not in stripped


def memory_text(directive: str) -> str:
    """The note itself, without the leading ``#``."""
    return directive.strip()[1:].strip()


def memory_path(memory_type: MemoryType, working_dir: str, user_dir: Path | None = None) -> Path:
    if memory_type == MemoryType.PROJECT:
        return Path(working_dir) / PROJECT_MEMORY_FILE
    return (user_dir or get_user_config_dir()) / USER_MEMORY_FILE


def append_memory(
    directive: str,
    memory_type: MemoryType,
    working_dir: str,
    *,
    user_dir: Path | None = None,
) -> Path:
    """Append the note from *directive* as a bullet; return the file written.

    Raises:
        OSError: The file could not be written.
        ValueError: The directive holds no text.
    """
    note = memory_text(directive)
    if not note:
        raise ValueError("Memory text is empty")

    path = memory_path(memory_type, working_dir, user_dir)
    path.parent.mkdir(parents=True, exist_ok=True)
    if path.exists():
        existing = path.read_text(encoding="utf-8")
    else:
        existing = PROJECT_MEMORY_HEADER if memory_type == MemoryType.PROJECT else USER_MEMORY_HEADER
    if existing and not existing.endswith("\n"):
        existing += "\n"
    path.write_text(existing + f"- {note}\n", encoding="utf-8")
    return path


def read_memory(working_dir: str, *, user_dir: Path | None = None) -> str:
    """Combined project and user memory text, project first."""
    parts: list[str] = []
    for memory_type in (MemoryType.PROJECT, MemoryType.USER):
        path = memory_path(memory_type, working_dir, user_dir)
        try:
            text = path.read_text(encoding="utf-8").strip()
        except FileNotFoundError:
            continue
        if text:
            parts.append(text)
    return "\n\n".join(parts)
