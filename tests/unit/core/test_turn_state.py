"""Tests for the turn state machine."""

from __future__ import annotations

import pytest

from wavecore.core.turn_state import InvalidTransitionError, TurnState, TurnStateMachine


class TestTurnStateMachine:
    def test_starts_idle(self) -> None:
        assert TurnStateMachine().state == TurnState.IDLE

    def test_full_chain(self) -> None:
        sm = TurnStateMachine()
        sm.generate()
        assert sm.state == TurnState.GENERATING
        sm.dispatch()
        assert sm.state == TurnState.DISPATCHING
        sm.generate()
        sm.finish()
        assert sm.state == TurnState.IDLE

    def test_cannot_dispatch_from_idle(self) -> None:
        sm = TurnStateMachine()
        with pytest.raises(InvalidTransitionError):
            sm.dispatch()

    def test_cannot_generate_twice(self) -> None:
        sm = TurnStateMachine()
        sm.generate()
        assert not sm.can_transition(TurnState.GENERATING)
        with pytest.raises(InvalidTransitionError):
            sm.generate()

    def test_finish_when_idle_is_noop(self) -> None:
        sm = TurnStateMachine()
        sm.finish()
        assert sm.state == TurnState.IDLE
