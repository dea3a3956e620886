"""Conversation store: the single owner of conversation state.

Holds the current message snapshot, session identity, cumulative token
usage and input history. Each mutation swaps in a new immutable snapshot
and publishes a ``StoreEvent`` to subscribers, in mutation order.
"""

from __future__ import annotations

from collections.abc import Callable
from typing import Any

from wavecore.conversation import operations as ops
from wavecore.integrations.utilities.logger import get_logger
from wavecore.types.blocks import MemoryType, Messages, Session, TextSource, new_session_id
from wavecore.types.events import StoreEvent, StoreEventType, StoreListener

logger = get_logger(__name__)

MAX_INPUT_HISTORY = 100


class ConversationStore:
    """Canonical conversation state with a typed change stream."""

    def __init__(self, session: Session | None = None) -> None:
        self._messages: Messages = ()
        self._session_id = new_session_id()
        self._total_tokens = 0
        self._input_history: list[str] = []
        self._is_loading = False
        self._listeners: list[StoreListener] = []
        self._sequence = 0
        if session is not None:
            self.initialize_from_session(session)

    # =========================================================================
    # State
    # =========================================================================

    @property
    def messages(self) -> Messages:
        return self._messages

    @property
    def session_id(self) -> str:
        return self._session_id

    @property
    def total_tokens(self) -> int:
        return self._total_tokens

    @property
    def input_history(self) -> tuple[str, ...]:
        return tuple(self._input_history)

    @property
    def is_loading(self) -> bool:
        return self._is_loading

    def to_session(self, working_directory: str = "") -> Session:
        """Snapshot suitable for a session persister."""
        return Session(
            id=self._session_id,
            messages=self._messages,
            total_tokens=self._total_tokens,
            input_history=list(self._input_history),
            working_directory=working_directory,
        )

    # =========================================================================
    # Events
    # =========================================================================

    def subscribe(self, listener: StoreListener) -> Callable[[], None]:
        """Subscribe to change events. Returns an unsubscribe function."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            try:
                self._listeners.remove(listener)
            except ValueError:
                pass

        return unsubscribe

    def _emit(self, event_type: StoreEventType, data: dict[str, Any]) -> None:
        self._sequence += 1
        event = StoreEvent(type=event_type, sequence=self._sequence, data=data)
        for listener in list(self._listeners):
            try:
                listener(event)
            except Exception:
                logger.exception("store_listener_failed", event_type=str(event_type))

    def _set_messages(self, messages: Messages) -> Messages:
        if messages is not self._messages:
            self._messages = messages
            self._emit(StoreEventType.MESSAGES_CHANGED, {"messages": messages})
        return messages

    # =========================================================================
    # Message mutations
    # =========================================================================

    def add_user_message(
        self,
        content: str,
        image_urls: list[str] | None = None,
        *,
        source: TextSource | None = None,
    ) -> Messages:
        return self._set_messages(ops.add_user_message(self._messages, content, image_urls, source=source))

    def add_assistant_message(self) -> Messages:
        return self._set_messages(ops.add_assistant_message(self._messages))

    def add_answer_block(self) -> Messages:
        return self._set_messages(ops.add_answer_block(self._messages))

    def update_answer_block(self, content: str) -> Messages:
        return self._set_messages(ops.update_answer_block(self._messages, content))

    def add_tool_block(self, tool_id: str, name: str, parameters: str = "") -> Messages:
        return self._set_messages(ops.add_tool_block(self._messages, tool_id, name, parameters))

    def update_tool_block(self, tool_id: str, **changes: Any) -> Messages:
        return self._set_messages(ops.update_tool_block(self._messages, tool_id, **changes))

    def add_diff_block(self, path: str, diff_result: Any, original: str, modified: str) -> Messages:
        return self._set_messages(ops.add_diff_block(self._messages, path, diff_result, original, modified))

    def add_error_block(self, content: str) -> Messages:
        return self._set_messages(ops.add_error_block(self._messages, content))

    def add_compress_block(self, insert_index: int, content: str) -> Messages:
        return self._set_messages(ops.add_compress_block(self._messages, insert_index, content))

    def add_memory_block(
        self,
        content: str,
        is_success: bool,
        memory_type: MemoryType,
        storage_path: str = "",
    ) -> Messages:
        return self._set_messages(
            ops.add_memory_block(self._messages, content, is_success, memory_type, storage_path),
        )

    def add_command_output(self, command: str) -> Messages:
        messages = self._set_messages(ops.add_command_output_message(self._messages, command))
        self._emit(StoreEventType.COMMAND_CHANGED, {"command": command, "is_running": True})
        return messages

    def update_command_output(self, command: str, output: str) -> Messages:
        return self._set_messages(ops.update_command_output(self._messages, command, output))

    def complete_command(self, command: str, exit_code: int) -> Messages:
        messages = self._set_messages(ops.complete_command(self._messages, command, exit_code))
        self._emit(
            StoreEventType.COMMAND_CHANGED,
            {"command": command, "is_running": False, "exit_code": exit_code},
        )
        return messages

    # =========================================================================
    # Session-level state
    # =========================================================================

    def set_total_tokens(self, total: int) -> None:
        """Replace (never add to) the cumulative token figure."""
        if total == self._total_tokens:
            return
        self._total_tokens = total
        self._emit(StoreEventType.TOKENS_CHANGED, {"total_tokens": total})

    def set_loading(self, loading: bool) -> None:
        if loading == self._is_loading:
            return
        self._is_loading = loading
        self._emit(StoreEventType.LOADING_CHANGED, {"is_loading": loading})

    def add_to_input_history(self, text: str) -> None:
        """Record *text* unless it repeats the previous entry; keep the last 100."""
        if self._input_history and self._input_history[-1] == text:
            return
        self._input_history.append(text)
        del self._input_history[:-MAX_INPUT_HISTORY]
        self._emit(StoreEventType.INPUT_HISTORY_CHANGED, {"input_history": self.input_history})

    def reset_session(self) -> None:
        """New session id, zero tokens, empty input history."""
        self._session_id = new_session_id()
        self._total_tokens = 0
        self._input_history = []
        self._emit(StoreEventType.SESSION_CHANGED, {"session_id": self._session_id})
        self._emit(StoreEventType.TOKENS_CHANGED, {"total_tokens": 0})
        self._emit(StoreEventType.INPUT_HISTORY_CHANGED, {"input_history": ()})

    def clear_messages(self) -> None:
        """Drop every message and start a fresh session."""
        self._set_messages(())
        self.reset_session()

    def initialize_from_session(self, session: Session) -> None:
        """Bulk-load a persisted session.

        Input history is rebuilt from the loaded user text blocks; text
        injected by hooks is not something the user typed.
        """
        self._session_id = session.id
        self._total_tokens = session.total_tokens
        history: list[str] = []
        for text in ops.extract_user_input_history(session.messages):
            if not history or history[-1] != text:
                history.append(text)
        self._input_history = history[-MAX_INPUT_HISTORY:]
        self._set_messages(tuple(session.messages))
        self._emit(StoreEventType.SESSION_CHANGED, {"session_id": self._session_id})
        self._emit(StoreEventType.TOKENS_CHANGED, {"total_tokens": self._total_tokens})
        self._emit(StoreEventType.INPUT_HISTORY_CHANGED, {"input_history": self.input_history})
