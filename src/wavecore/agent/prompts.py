"""Prompt builders for the agent call and history compression."""

from __future__ import annotations

from typing import Any


DEFAULT_SYSTEM_PROMPT = """\
You are an interactive CLI tool that helps users with software engineering \
tasks. Use the instructions below and the tools available to you to assist \
the user.
"""

COMPRESSION_SYSTEM_PROMPT = """\
You compress conversation history between a user and a coding assistant. \
Write a summary that is short but keeps every detail needed to continue the work.

Keep:
- file paths, function names and code snippets that were discussed or changed
- tool calls that were made and what they returned
- errors that came up and how they were resolved
- what the user asked for and which approach was taken

Write in the third person, in the language of the conversation, in roughly \
300 to 800 words depending on how much happened. For technical \
conversations use these sections:
- **User Requests**
- **Technical Implementation**
- **Problem Resolution**
- **Outcomes**
"""

COMPRESSION_REQUEST = (
    "Please compress this conversation following the structured approach. "
    "Keep all technical details, file operations and problem-solving context."
)

COMPRESSION_TEMPERATURE = 0.1
COMPRESSION_MAX_TOKENS = 1500


def build_system_prompt(
    *,
    base_prompt: str | None = None,
    working_dir: str = "",
    memory: str | None = None,
) -> str:
    """Build the system prompt sent ahead of the conversation."""
    parts: list[str] = [base_prompt or DEFAULT_SYSTEM_PROMPT]

    if working_dir:
        parts.append(f"\n## Current Working Directory\n{working_dir}")

    if memory and memory.strip():
        parts.append(
            "\n## Memory Context\n\n"
            "The following is important context and memory from previous interactions:\n\n"
            f"{memory.strip()}"
        )

    return "\n".join(parts)


def build_agent_messages(system_prompt: str, history: list[dict[str, Any]]) -> list[dict[str, Any]]:
    """System message followed by the projected conversation."""
    return [{"role": "system", "content": system_prompt}, *history]


def build_compression_messages(history: list[dict[str, Any]]) -> list[dict[str, Any]]:
    """Messages for the summarization call over *history*."""
    return [
        {"role": "system", "content": COMPRESSION_SYSTEM_PROMPT},
        *history,
        {"role": "user", "content": COMPRESSION_REQUEST},
    ]
