"""
Proctoring event taxonomy and the suspicious-activity score.

Clients send free-form event tags. Each tag is classified into the closed
``EventType`` enum; tags the server does not know become ``UNKNOWN`` but
keep their raw text so they are still stored and visible to reviewers.
They carry no weight until they are added here.
"""
from enum import Enum
from typing import Dict, Iterable, Mapping, NamedTuple, Optional, Tuple

from ..core.config import settings


class EventType(str, Enum):
    START = "START"
    HEARTBEAT = "HEARTBEAT"
    TAB_HIDDEN = "TAB_HIDDEN"
    WINDOW_BLUR = "WINDOW_BLUR"
    FULLSCREEN_EXIT = "FULLSCREEN_EXIT"
    COPY_ATTEMPT = "COPY_ATTEMPT"
    PASTE_ATTEMPT = "PASTE_ATTEMPT"
    RIGHT_CLICK = "RIGHT_CLICK"
    NAV_AWAY = "NAV_AWAY"
    DEVTOOLS_SUSPECTED = "DEVTOOLS_SUSPECTED"
    KEY_COMBO = "KEY_COMBO"
    PRINTSCREEN = "PRINTSCREEN"
    RESIZE = "RESIZE"
    MULTI_TAB = "MULTI_TAB"
    NETWORK_OFFLINE = "NETWORK_OFFLINE"
    NETWORK_ONLINE = "NETWORK_ONLINE"
    SCREENSHARE_DENIED = "SCREENSHARE_DENIED"
    SCREENSHARE_STOPPED = "SCREENSHARE_STOPPED"
    SCREENSHARE_STARTED = "SCREENSHARE_STARTED"
    WEBCAM_STARTED = "WEBCAM_STARTED"
    WEBCAM_DENIED = "WEBCAM_DENIED"
    AUTO_SUBMIT = "AUTO_SUBMIT"
    UNKNOWN = "UNKNOWN"


class ClassifiedEvent(NamedTuple):
    kind: EventType
    raw: str

    @property
    def is_violation(self) -> bool:
        return VIOLATION_FLAGS[self.kind]

    @property
    def weight(self) -> int:
        return event_weights()[self.kind]


# Every member must appear in both tables; checked below at import time.
VIOLATION_FLAGS: Dict[EventType, bool] = {
    EventType.START: False,
    EventType.HEARTBEAT: False,
    EventType.TAB_HIDDEN: True,
    EventType.WINDOW_BLUR: True,
    EventType.FULLSCREEN_EXIT: True,
    EventType.COPY_ATTEMPT: True,
    EventType.PASTE_ATTEMPT: True,
    EventType.RIGHT_CLICK: True,
    EventType.NAV_AWAY: True,
    EventType.DEVTOOLS_SUSPECTED: True,
    EventType.KEY_COMBO: True,
    EventType.PRINTSCREEN: True,
    EventType.RESIZE: False,
    EventType.MULTI_TAB: True,
    EventType.NETWORK_OFFLINE: False,
    EventType.NETWORK_ONLINE: False,
    EventType.SCREENSHARE_DENIED: True,
    EventType.SCREENSHARE_STOPPED: True,
    EventType.SCREENSHARE_STARTED: False,
    EventType.WEBCAM_STARTED: False,
    EventType.WEBCAM_DENIED: False,
    EventType.AUTO_SUBMIT: False,
    EventType.UNKNOWN: False,
}

DEFAULT_EVENT_WEIGHTS: Dict[EventType, int] = {
    EventType.START: 0,
    EventType.HEARTBEAT: 0,
    EventType.TAB_HIDDEN: 3,
    EventType.WINDOW_BLUR: 2,
    EventType.FULLSCREEN_EXIT: 5,
    EventType.COPY_ATTEMPT: 4,
    EventType.PASTE_ATTEMPT: 4,
    EventType.RIGHT_CLICK: 1,
    EventType.NAV_AWAY: 5,
    EventType.DEVTOOLS_SUSPECTED: 6,
    EventType.KEY_COMBO: 3,
    EventType.PRINTSCREEN: 4,
    EventType.RESIZE: 0,
    EventType.MULTI_TAB: 6,
    EventType.NETWORK_OFFLINE: 0,
    EventType.NETWORK_ONLINE: 0,
    EventType.SCREENSHARE_DENIED: 3,
    EventType.SCREENSHARE_STOPPED: 6,
    EventType.SCREENSHARE_STARTED: 0,
    EventType.WEBCAM_STARTED: 0,
    EventType.WEBCAM_DENIED: 0,
    EventType.AUTO_SUBMIT: 0,
    EventType.UNKNOWN: 0,
}


def _check_exhaustive(table: Mapping[EventType, object], name: str) -> None:
    missing = set(EventType) - set(table)
    if missing:
        raise RuntimeError(f"{name} is missing entries for: {sorted(m.value for m in missing)}")


_check_exhaustive(VIOLATION_FLAGS, "VIOLATION_FLAGS")
_check_exhaustive(DEFAULT_EVENT_WEIGHTS, "DEFAULT_EVENT_WEIGHTS")

VIOLATION_EVENT_TYPES = frozenset(kind for kind, flag in VIOLATION_FLAGS.items() if flag)

_KNOWN = {member.value: member for member in EventType if member is not EventType.UNKNOWN}


def classify_event(raw_type: str) -> ClassifiedEvent:
    raw = (raw_type or "").strip().upper()
    return ClassifiedEvent(kind=_KNOWN.get(raw, EventType.UNKNOWN), raw=raw)


def event_weights(overrides: Optional[Mapping[str, int]] = None) -> Dict[EventType, int]:
    """Default weights with configured overrides applied.

    ``UNKNOWN`` stays at zero whatever the configuration says.
    """
    weights = dict(DEFAULT_EVENT_WEIGHTS)
    source = settings.event_weight_overrides if overrides is None else overrides
    for name, value in source.items():
        kind = _KNOWN.get(str(name).upper())
        if kind is not None:
            weights[kind] = int(value)
    return weights


def suspicious_score(
    counts: Iterable[Tuple[str, int]],
    weights: Optional[Mapping[EventType, int]] = None,
) -> int:
    """Weighted sum over (raw event type, occurrence count) pairs."""
    table = weights if weights is not None else event_weights()
    total = 0
    for raw_type, count in counts:
        total += table[classify_event(raw_type).kind] * int(count or 0)
    return total
