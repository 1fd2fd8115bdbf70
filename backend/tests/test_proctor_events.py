"""
Tests for event classification and the suspicious score
"""
from exam_integrity.utils.proctor_events import (
    DEFAULT_EVENT_WEIGHTS,
    VIOLATION_EVENT_TYPES,
    EventType,
    classify_event,
    event_weights,
    suspicious_score,
)


class TestClassifyEvent:
    def test_known_event_is_normalized(self):
        event = classify_event("  tab_hidden ")
        assert event.kind is EventType.TAB_HIDDEN
        assert event.raw == "TAB_HIDDEN"
        assert event.is_violation

    def test_non_violation(self):
        assert not classify_event("HEARTBEAT").is_violation

    def test_unknown_keeps_raw_text(self):
        event = classify_event("laser_pointer")
        assert event.kind is EventType.UNKNOWN
        assert event.raw == "LASER_POINTER"
        assert not event.is_violation

    def test_violation_subset(self):
        assert VIOLATION_EVENT_TYPES == {
            EventType.TAB_HIDDEN, EventType.WINDOW_BLUR, EventType.FULLSCREEN_EXIT,
            EventType.COPY_ATTEMPT, EventType.PASTE_ATTEMPT, EventType.RIGHT_CLICK,
            EventType.NAV_AWAY, EventType.DEVTOOLS_SUSPECTED, EventType.KEY_COMBO,
            EventType.PRINTSCREEN, EventType.MULTI_TAB, EventType.SCREENSHARE_DENIED,
            EventType.SCREENSHARE_STOPPED,
        }


class TestSuspiciousScore:
    def test_tables_cover_every_type(self):
        assert set(DEFAULT_EVENT_WEIGHTS) == set(EventType)

    def test_weighted_sum(self):
        counts = [("TAB_HIDDEN", 2), ("DEVTOOLS_SUSPECTED", 1), ("HEARTBEAT", 10), ("SOMETHING_NEW", 4)]
        assert suspicious_score(counts, event_weights({})) == 2 * 3 + 6

    def test_overrides_apply_to_known_types_only(self):
        weights = event_weights({"right_click": 10, "UNKNOWN": 50, "NOT_A_TYPE": 7})
        assert weights[EventType.RIGHT_CLICK] == 10
        assert weights[EventType.UNKNOWN] == 0
        assert weights[EventType.TAB_HIDDEN] == 3

    def test_empty_session_scores_zero(self):
        assert suspicious_score([], event_weights({})) == 0
