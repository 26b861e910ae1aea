"""
Session status state machine.
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional, Callable, Dict, Any, List

from ..models.data_models import SessionStatus
from .logging_config import get_logger


logger = get_logger("state")


class InvalidTransition(ValueError):
    """Raised when a status change is not allowed by the transition table."""


@dataclass
class StateTransition:
    """Record of a state transition."""
    from_state: SessionStatus
    to_state: SessionStatus
    reason: str
    timestamp: float = field(default_factory=lambda: datetime.now().timestamp())


StatusListener = Callable[[SessionStatus, SessionStatus], None]


class SessionStateMachine:
    """
    Holds the single session status and validates every change.

    Same-state transitions are no-ops and are not recorded.
    """

    VALID_TRANSITIONS = {
        SessionStatus.IDLE: [
            SessionStatus.LISTENING,
            SessionStatus.PROCESSING,   # late debounce commit, typed message
            SessionStatus.SPEAKING,     # greeting
        ],
        SessionStatus.LISTENING: [
            SessionStatus.IDLE,
            SessionStatus.PROCESSING,
        ],
        SessionStatus.PROCESSING: [
            SessionStatus.SPEAKING,
            SessionStatus.IDLE,
        ],
        SessionStatus.SPEAKING: [
            SessionStatus.IDLE,
            SessionStatus.LISTENING,    # barge-in: stop playback, listen again
            SessionStatus.PROCESSING,   # queued or typed turn while audio finishes
        ],
    }

    def __init__(self, on_change: Optional[StatusListener] = None, max_history: int = 50):
        self._state = SessionStatus.IDLE
        self._history: List[StateTransition] = []
        self._max_history = max_history
        self._on_change = on_change

    @property
    def current_state(self) -> SessionStatus:
        return self._state

    def can_transition(self, target: SessionStatus) -> bool:
        return target == self._state or target in self.VALID_TRANSITIONS[self._state]

    def transition_to(self, target: SessionStatus, reason: str = "") -> bool:
        """
        Change status.

        Returns:
            True if the status changed, False for a same-state no-op

        Raises:
            InvalidTransition: If the table does not allow the change
        """
        if target == self._state:
            return False
        if target not in self.VALID_TRANSITIONS[self._state]:
            raise InvalidTransition(f"Invalid transition: {self._state.name} → {target.name}")

        previous = self._state
        self._state = target
        self._history.append(StateTransition(previous, target, reason or "unknown"))
        if len(self._history) > self._max_history:
            self._history.pop(0)

        logger.debug(f"🔄 {previous.name} → {target.name} ({reason or 'unknown'})")

        if self._on_change:
            self._on_change(previous, target)
        return True

    def reset(self, reason: str = "reset") -> None:
        """Force IDLE regardless of the table. Used on teardown."""
        if self._state == SessionStatus.IDLE:
            return
        previous = self._state
        self._state = SessionStatus.IDLE
        self._history.append(StateTransition(previous, SessionStatus.IDLE, reason))
        if self._on_change:
            self._on_change(previous, SessionStatus.IDLE)

    def get_transition_history(self, last_n: int = 10) -> List[StateTransition]:
        return self._history[-last_n:]

    def get_status(self) -> Dict[str, Any]:
        return {
            'state': self._state.name,
            'history_size': len(self._history),
            'last_transition': self._history[-1] if self._history else None
        }
