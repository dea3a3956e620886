"""Per-turn state machine: Idle -> Generating -> (Dispatching -> Generating)* -> Idle."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import StrEnum

from wavecore.errors import AgentError, ErrorCategory
from wavecore.integrations.utilities.logger import get_logger

logger = get_logger(__name__)


class TurnState(StrEnum):
    """Where a turn chain currently is."""

    IDLE = "idle"
    GENERATING = "generating"
    DISPATCHING = "dispatching"


# Valid transitions: (from_state, to_state)
VALID_TRANSITIONS: set[tuple[TurnState, TurnState]] = {
    (TurnState.IDLE, TurnState.GENERATING),
    (TurnState.GENERATING, TurnState.DISPATCHING),
    (TurnState.GENERATING, TurnState.IDLE),
    (TurnState.DISPATCHING, TurnState.GENERATING),
    (TurnState.DISPATCHING, TurnState.IDLE),
}


class InvalidTransitionError(AgentError):
    """Raised when a state transition is not allowed."""

    def __init__(self, from_state: TurnState, to_state: TurnState) -> None:
        super().__init__(f"Invalid transition: {from_state} -> {to_state}", category=ErrorCategory.INTERNAL)
        self.from_state = from_state
        self.to_state = to_state


@dataclass
class TurnStateMachine:
    """Enforces the legal order of a turn chain's phases."""

    _state: TurnState = field(default=TurnState.IDLE)

    @property
    def state(self) -> TurnState:
        return self._state

    def can_transition(self, to_state: TurnState) -> bool:
        return (self._state, to_state) in VALID_TRANSITIONS

    def transition(self, to_state: TurnState) -> None:
        """Move to *to_state*.

        Raises InvalidTransitionError if the transition is not allowed.
        """
        if not self.can_transition(to_state):
            raise InvalidTransitionError(self._state, to_state)

        from_state = self._state
        self._state = to_state
        logger.debug("turn_state", from_state=str(from_state), to_state=str(to_state))

    # Convenience methods

    def generate(self) -> None:
        self.transition(TurnState.GENERATING)

    def dispatch(self) -> None:
        self.transition(TurnState.DISPATCHING)

    def finish(self) -> None:
        """Return to idle from wherever the chain stopped."""
        if self._state != TurnState.IDLE:
            self.transition(TurnState.IDLE)
