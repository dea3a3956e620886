"""Tests for the conversation store."""

from __future__ import annotations

from wavecore.conversation import operations as ops
from wavecore.conversation.store import MAX_INPUT_HISTORY, ConversationStore
from wavecore.types.blocks import Session, TextSource
from wavecore.types.events import StoreEvent, StoreEventType


def _record(store: ConversationStore) -> list[StoreEvent]:
    events: list[StoreEvent] = []
    store.subscribe(events.append)
    return events


class TestEvents:
    def test_mutations_emit_in_order(self, store: ConversationStore) -> None:
        events = _record(store)
        store.add_user_message("hi")
        store.add_assistant_message()
        store.set_total_tokens(42)
        assert [e.type for e in events] == [
            StoreEventType.MESSAGES_CHANGED,
            StoreEventType.MESSAGES_CHANGED,
            StoreEventType.TOKENS_CHANGED,
        ]
        assert [e.sequence for e in events] == [1, 2, 3]

    def test_noop_update_emits_nothing(self, store: ConversationStore) -> None:
        events = _record(store)
        store.update_tool_block("missing", success=True)
        store.set_total_tokens(0)
        store.set_loading(False)
        assert events == []

    def test_unsubscribe(self, store: ConversationStore) -> None:
        events: list[StoreEvent] = []
        unsubscribe = store.subscribe(events.append)
        unsubscribe()
        unsubscribe()
        store.add_user_message("hi")
        assert events == []

    def test_failing_listener_does_not_break_others(self, store: ConversationStore) -> None:
        def broken(event: StoreEvent) -> None:
            raise RuntimeError("listener bug")

        store.subscribe(broken)
        events = _record(store)
        store.add_user_message("hi")
        assert len(events) == 1
        assert len(store.messages) == 1

    def test_snapshots_stay_valid(self, store: ConversationStore) -> None:
        store.add_user_message("hi")
        snapshot = store.messages
        store.add_assistant_message()
        assert len(snapshot) == 1
        assert len(store.messages) == 2

    def test_command_events(self, store: ConversationStore) -> None:
        events = _record(store)
        store.add_command_output("ls")
        store.complete_command("ls", 0)
        command_events = [e for e in events if e.type == StoreEventType.COMMAND_CHANGED]
        assert [e.data["is_running"] for e in command_events] == [True, False]
        assert command_events[-1].data["exit_code"] == 0


class TestTokens:
    def test_total_is_replaced(self, store: ConversationStore) -> None:
        store.set_total_tokens(100)
        store.set_total_tokens(80)
        assert store.total_tokens == 80


class TestInputHistory:
    def test_consecutive_duplicates_dropped(self, store: ConversationStore) -> None:
        for text in ("a", "a", "b", "a"):
            store.add_to_input_history(text)
        assert store.input_history == ("a", "b", "a")

    def test_capped(self, store: ConversationStore) -> None:
        for i in range(MAX_INPUT_HISTORY + 5):
            store.add_to_input_history(f"cmd {i}")
        assert len(store.input_history) == MAX_INPUT_HISTORY
        assert store.input_history[0] == "cmd 5"


class TestSession:
    def test_reset_session(self, store: ConversationStore) -> None:
        old_id = store.session_id
        store.add_user_message("hi")
        store.set_total_tokens(10)
        store.add_to_input_history("hi")
        store.reset_session()
        assert store.session_id != old_id
        assert store.total_tokens == 0
        assert store.input_history == ()
        assert len(store.messages) == 1

    def test_clear_messages(self, store: ConversationStore) -> None:
        store.add_user_message("hi")
        store.clear_messages()
        assert store.messages == ()

    def test_initialize_from_session(self, store: ConversationStore) -> None:
        messages = ops.add_user_message((), "one")
        messages = ops.add_user_message(messages, "one")
        messages = ops.add_user_message(messages, "hooked", source=TextSource.HOOK)
        messages = ops.add_user_message(messages, "two")
        events = _record(store)
        store.initialize_from_session(Session(id="s-1", messages=messages, total_tokens=55))
        assert store.session_id == "s-1"
        assert store.total_tokens == 55
        assert store.input_history == ("one", "two")
        assert len(store.messages) == 4
        assert StoreEventType.SESSION_CHANGED in {e.type for e in events}

    def test_to_session(self, store: ConversationStore) -> None:
        store.add_user_message("hi")
        store.add_to_input_history("hi")
        session = store.to_session("/work")
        assert session.id == store.session_id
        assert session.messages == store.messages
        assert session.input_history == ["hi"]
        assert session.working_directory == "/work"

    def test_loading_flag(self, store: ConversationStore) -> None:
        events = _record(store)
        store.set_loading(True)
        assert store.is_loading
        assert events[-1].data == {"is_loading": True}
