import pytest

from exam_integrity.core.exceptions import SessionNotActiveError
from exam_integrity.models.enums import EndReason, SessionStatus
from exam_integrity.services.session_state import (
    SessionAction,
    TransitionOutcome,
    require_transition,
    transition,
)


@pytest.mark.parametrize("action,target,reason", [
    (SessionAction.SUBMIT, SessionStatus.SUBMITTED, EndReason.SUBMITTED),
    (SessionAction.SUPERSEDE, SessionStatus.ENDED, EndReason.SUPERSEDED),
    (SessionAction.ADMIN_CLOSE, SessionStatus.ENDED, EndReason.ADMIN_CLOSED),
    (SessionAction.EXPIRE, SessionStatus.ENDED, EndReason.EXPIRED),
    (SessionAction.RECORD_EVENT, SessionStatus.ACTIVE, None),
])
def test_active_transitions(action, target, reason):
    result = transition(SessionStatus.ACTIVE, action)
    assert result.ok
    assert result.target is target
    assert result.end_reason is reason


@pytest.mark.parametrize("status", [SessionStatus.SUBMITTED, SessionStatus.ENDED])
@pytest.mark.parametrize("action", list(SessionAction))
def test_terminal_states_reject_everything(status, action):
    result = transition(status.value, action)
    assert result.outcome is TransitionOutcome.INVALID_TRANSITION
    assert result.target is None


def test_require_transition_raises():
    with pytest.raises(SessionNotActiveError):
        require_transition("SUBMITTED", SessionAction.RECORD_EVENT)
