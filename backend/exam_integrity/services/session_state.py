"""
Proctor session lifecycle.

    ACTIVE --SUBMIT--------------------------> SUBMITTED
    ACTIVE --SUPERSEDE / ADMIN_CLOSE / EXPIRE--> ENDED

SUBMITTED and ENDED are terminal. Reading the paper and recording events or
snapshots are self-transitions of ACTIVE.
"""
from enum import Enum
from typing import Dict, NamedTuple, Optional, Tuple

from ..core.exceptions import SessionNotActiveError
from ..models.enums import SessionStatus, EndReason


class SessionAction(str, Enum):
    FETCH_PAPER = "FETCH_PAPER"
    RECORD_EVENT = "RECORD_EVENT"
    RECORD_SNAPSHOT = "RECORD_SNAPSHOT"
    SUBMIT = "SUBMIT"
    SUPERSEDE = "SUPERSEDE"
    ADMIN_CLOSE = "ADMIN_CLOSE"
    EXPIRE = "EXPIRE"


class TransitionOutcome(str, Enum):
    OK = "OK"
    INVALID_TRANSITION = "INVALID_TRANSITION"


class TransitionResult(NamedTuple):
    outcome: TransitionOutcome
    source: SessionStatus
    target: Optional[SessionStatus]
    end_reason: Optional[EndReason] = None

    @property
    def ok(self) -> bool:
        return self.outcome is TransitionOutcome.OK


_TRANSITIONS: Dict[Tuple[SessionStatus, SessionAction], Tuple[SessionStatus, Optional[EndReason]]] = {
    (SessionStatus.ACTIVE, SessionAction.FETCH_PAPER): (SessionStatus.ACTIVE, None),
    (SessionStatus.ACTIVE, SessionAction.RECORD_EVENT): (SessionStatus.ACTIVE, None),
    (SessionStatus.ACTIVE, SessionAction.RECORD_SNAPSHOT): (SessionStatus.ACTIVE, None),
    (SessionStatus.ACTIVE, SessionAction.SUBMIT): (SessionStatus.SUBMITTED, EndReason.SUBMITTED),
    (SessionStatus.ACTIVE, SessionAction.SUPERSEDE): (SessionStatus.ENDED, EndReason.SUPERSEDED),
    (SessionStatus.ACTIVE, SessionAction.ADMIN_CLOSE): (SessionStatus.ENDED, EndReason.ADMIN_CLOSED),
    (SessionStatus.ACTIVE, SessionAction.EXPIRE): (SessionStatus.ENDED, EndReason.EXPIRED),
}


def transition(status, action: SessionAction) -> TransitionResult:
    source = SessionStatus(status)
    entry = _TRANSITIONS.get((source, action))
    if entry is None:
        return TransitionResult(TransitionOutcome.INVALID_TRANSITION, source, None)
    target, reason = entry
    return TransitionResult(TransitionOutcome.OK, source, target, reason)


def require_transition(status, action: SessionAction) -> TransitionResult:
    """Like ``transition`` but raises when the move is not allowed."""
    result = transition(status, action)
    if not result.ok:
        raise SessionNotActiveError()
    return result
