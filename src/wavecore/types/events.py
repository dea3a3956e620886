"""Typed change events emitted by the conversation store."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import StrEnum
from typing import Any, Callable


class StoreEventType(StrEnum):
    """What changed in the store."""

    MESSAGES_CHANGED = "messages.changed"
    TOKENS_CHANGED = "tokens.changed"
    SESSION_CHANGED = "session.changed"
    INPUT_HISTORY_CHANGED = "input_history.changed"
    LOADING_CHANGED = "loading.changed"
    COMMAND_CHANGED = "command.changed"


@dataclass(slots=True)
class StoreEvent:
    """A single state change.

    ``sequence`` increases by one per event within a store so subscribers
    can detect gaps.
    """

    type: StoreEventType
    sequence: int
    data: dict[str, Any] = field(default_factory=dict)


StoreListener = Callable[[StoreEvent], None]
