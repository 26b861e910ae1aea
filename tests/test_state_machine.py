"""
Tests for the session state machine.
"""

import pytest

from voice_chat.models.data_models import SessionStatus
from voice_chat.utils.state_machine import InvalidTransition, SessionStateMachine


class TestSessionStateMachine:

    def test_starts_idle(self):
        machine = SessionStateMachine()
        assert machine.current_state == SessionStatus.IDLE

    def test_valid_transition_notifies(self):
        changes = []
        machine = SessionStateMachine(on_change=lambda old, new: changes.append((old, new)))

        assert machine.transition_to(SessionStatus.LISTENING, "mic") is True
        assert changes == [(SessionStatus.IDLE, SessionStatus.LISTENING)]
        assert machine.get_transition_history()[-1].reason == "mic"

    def test_same_state_is_noop(self):
        changes = []
        machine = SessionStateMachine(on_change=lambda old, new: changes.append(new))
        assert machine.transition_to(SessionStatus.IDLE) is False
        assert changes == []

    @pytest.mark.parametrize("start,target", [
        (SessionStatus.LISTENING, SessionStatus.SPEAKING),
        (SessionStatus.PROCESSING, SessionStatus.LISTENING),
    ])
    def test_invalid_transition_raises(self, start, target):
        machine = SessionStateMachine()
        machine.transition_to(start)

        assert not machine.can_transition(target)
        with pytest.raises(InvalidTransition):
            machine.transition_to(target)
        assert machine.current_state == start

    def test_barge_in_path(self):
        machine = SessionStateMachine()
        machine.transition_to(SessionStatus.PROCESSING)
        machine.transition_to(SessionStatus.SPEAKING)
        assert machine.transition_to(SessionStatus.LISTENING) is True

    def test_reset_forces_idle(self):
        changes = []
        machine = SessionStateMachine(on_change=lambda old, new: changes.append((old, new)))
        machine.transition_to(SessionStatus.PROCESSING)
        machine.reset("teardown")

        assert machine.current_state == SessionStatus.IDLE
        assert changes[-1] == (SessionStatus.PROCESSING, SessionStatus.IDLE)
        assert machine.get_status()['state'] == 'IDLE'

    def test_history_is_bounded(self):
        machine = SessionStateMachine(max_history=3)
        for _ in range(5):
            machine.transition_to(SessionStatus.LISTENING)
            machine.transition_to(SessionStatus.IDLE)
        assert len(machine.get_transition_history(last_n=10)) == 3
