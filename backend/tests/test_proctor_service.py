"""
Tests for the proctor session store and event ingestion
"""
from datetime import timedelta

import pytest

from exam_integrity.core.exceptions import (
    ConfigurationError,
    EligibilityError,
    PaperIntegrityError,
    SessionNotActiveError,
    SessionNotFoundError,
)
from exam_integrity.models.enums import EndReason, SessionStatus, SnapshotType, TargetType
from exam_integrity.models.proctoring import ProctorEvent, ProctorSession
from exam_integrity.services.proctor_service import ClientContext, ProctorService
from exam_integrity.services.session_state import SessionAction
from exam_integrity.utils.paper_generator import compute_paper_hash

from conftest import COURSE_ID, STUDENT_ID, T0


def start(db_session, oracle, user_id=STUDENT_ID, now=T0, **kwargs):
    return ProctorService(db_session, oracle).start_session(user_id, TargetType.COURSE, COURSE_ID, now=now, **kwargs)


class TestStartSession:
    def test_start_stores_paper_and_client(self, db_session, oracle, course_exam):
        session = start(db_session, oracle, client=ClientContext(
            ip_address="10.0.0.1", user_agent="pytest", fingerprint="fp-1", raw={"fingerprint": "fp-1", "tz": "UTC"},
        ))

        assert session.status == SessionStatus.ACTIVE.value
        assert session.active_key == f"{STUDENT_ID}:COURSE:{COURSE_ID}"
        assert session.exam_id == course_exam.id
        assert session.started_at == T0
        assert session.fingerprint == "fp-1"
        assert session.client_info["tz"] == "UTC"
        assert len(session.paper["questions"]) == 3

        paper = ProctorService(db_session).load_paper(session)
        assert compute_paper_hash(paper) == session.paper_hash

    def test_second_start_supersedes_the_first(self, db_session, oracle, course_exam):
        first = start(db_session, oracle)
        second = start(db_session, oracle, now=T0 + timedelta(minutes=5))

        db_session.refresh(first)
        assert first.status == SessionStatus.ENDED.value
        assert first.end_reason == EndReason.SUPERSEDED.value
        assert first.active_key is None
        assert first.ended_at == T0 + timedelta(minutes=5)

        active = db_session.query(ProctorSession).filter(ProctorSession.status == SessionStatus.ACTIVE.value).all()
        assert [s.id for s in active] == [second.id]

    def test_superseded_session_keeps_its_score(self, db_session, oracle, course_exam):
        first = start(db_session, oracle)
        service = ProctorService(db_session)
        service.record_event(first.id, STUDENT_ID, TargetType.COURSE, COURSE_ID, "TAB_HIDDEN", now=T0)
        service.record_event(first.id, STUDENT_ID, TargetType.COURSE, COURSE_ID, "FULLSCREEN_EXIT", now=T0)

        start(db_session, oracle, now=T0 + timedelta(minutes=5))

        db_session.refresh(first)
        assert first.end_reason == EndReason.SUPERSEDED.value
        assert first.warning_count == 2
        assert first.suspicious_score == 8

    def test_sessions_of_other_students_are_untouched(self, db_session, oracle, course_exam):
        oracle.enroll(2)
        theirs = start(db_session, oracle, user_id=2)
        start(db_session, oracle)

        db_session.refresh(theirs)
        assert theirs.status == SessionStatus.ACTIVE.value

    def test_unconfigured_exam(self, db_session, oracle):
        with pytest.raises(ConfigurationError):
            start(db_session, oracle)

    def test_ineligible_student_gets_no_session(self, db_session, oracle, course_exam):
        oracle.enroll(STUDENT_ID, status="PENDING")
        with pytest.raises(EligibilityError) as exc_info:
            start(db_session, oracle)
        assert exc_info.value.code == EligibilityError.ENROLLMENT_INACTIVE
        assert db_session.query(ProctorSession).count() == 0

    def test_get_active_session(self, db_session, oracle, course_exam):
        service = ProctorService(db_session)
        assert service.get_active_session(STUDENT_ID, TargetType.COURSE, COURSE_ID) is None
        session = start(db_session, oracle)
        assert service.get_active_session(STUDENT_ID, TargetType.COURSE, COURSE_ID).id == session.id


class TestEvents:
    def test_counters_follow_events(self, db_session, oracle, course_exam):
        session = start(db_session, oracle)
        service = ProctorService(db_session)

        first = service.record_event(session.id, STUDENT_ID, TargetType.COURSE, COURSE_ID, "window_blur",
                                     meta={"duration_ms": 900}, now=T0 + timedelta(minutes=1))
        second = service.record_event(session.id, STUDENT_ID, TargetType.COURSE, COURSE_ID, "HEARTBEAT",
                                      now=T0 + timedelta(minutes=2))
        third = service.record_event(session.id, STUDENT_ID, TargetType.COURSE, COURSE_ID, "BRAND_NEW_SIGNAL",
                                     now=T0 + timedelta(minutes=3))

        assert first.is_violation
        assert not second.is_violation
        assert not third.is_violation

        db_session.refresh(session)
        assert session.events_count == 3
        assert session.warning_count == 1
        assert session.last_event_at == T0 + timedelta(minutes=3)

        stored = db_session.query(ProctorEvent).order_by(ProctorEvent.id).all()
        assert [e.event_type for e in stored] == ["WINDOW_BLUR", "HEARTBEAT", "BRAND_NEW_SIGNAL"]
        assert stored[0].meta == {"duration_ms": 900}

    def test_events_rejected_after_submit_or_end(self, db_session, oracle, course_exam):
        session = start(db_session, oracle)
        service = ProctorService(db_session)
        service.close_session(session.id, SessionAction.ADMIN_CLOSE, now=T0)

        with pytest.raises(SessionNotActiveError):
            service.record_event(session.id, STUDENT_ID, TargetType.COURSE, COURSE_ID, "TAB_HIDDEN")
        assert db_session.query(ProctorEvent).count() == 0

    def test_foreign_session_is_not_found(self, db_session, oracle, course_exam):
        session = start(db_session, oracle)
        with pytest.raises(SessionNotFoundError):
            ProctorService(db_session).record_event(session.id, 2, TargetType.COURSE, COURSE_ID, "TAB_HIDDEN")
        with pytest.raises(SessionNotFoundError):
            ProctorService(db_session).record_event(session.id, STUDENT_ID, TargetType.SUBJECT, COURSE_ID, "TAB_HIDDEN")


class TestSnapshots:
    def test_snapshot_counts(self, db_session, oracle, course_exam):
        session = start(db_session, oracle)
        snapshot = ProctorService(db_session).record_snapshot(
            session.id, STUDENT_ID, TargetType.COURSE, COURSE_ID, "proctor/1/a.jpg", SnapshotType.SCREEN, now=T0
        )
        assert snapshot.snapshot_type == "SCREEN"
        db_session.refresh(session)
        assert session.snapshots_count == 1
        assert session.events_count == 0


class TestPaper:
    def test_fetch_requires_active_session(self, db_session, oracle, course_exam):
        session = start(db_session, oracle)
        service = ProctorService(db_session)
        fetched, paper = service.fetch_paper(session.id, STUDENT_ID, TargetType.COURSE, COURSE_ID)
        assert fetched.id == session.id
        assert len(paper.questions) == 3

        start(db_session, oracle)
        with pytest.raises(SessionNotActiveError):
            service.fetch_paper(session.id, STUDENT_ID, TargetType.COURSE, COURSE_ID)

    def test_corrupt_paper(self, db_session, oracle, course_exam):
        session = start(db_session, oracle)
        session.paper = {"questions": "nope"}
        db_session.commit()
        with pytest.raises(PaperIntegrityError):
            ProctorService(db_session).fetch_paper(session.id, STUDENT_ID, TargetType.COURSE, COURSE_ID)


class TestClosing:
    def test_admin_close(self, db_session, oracle, course_exam):
        session = start(db_session, oracle)
        service = ProctorService(db_session)
        service.record_event(session.id, STUDENT_ID, TargetType.COURSE, COURSE_ID, "FULLSCREEN_EXIT", now=T0)

        closed = service.close_session(session.id, SessionAction.ADMIN_CLOSE, now=T0 + timedelta(minutes=10))
        assert closed.status == SessionStatus.ENDED.value
        assert closed.end_reason == EndReason.ADMIN_CLOSED.value
        assert closed.active_key is None
        assert closed.suspicious_score == 5

        with pytest.raises(SessionNotActiveError):
            service.close_session(session.id, SessionAction.ADMIN_CLOSE)

    def test_close_unknown_session(self, db_session):
        with pytest.raises(SessionNotFoundError):
            ProctorService(db_session).close_session(12345, SessionAction.ADMIN_CLOSE)

    def test_expiry_sweep(self, db_session, oracle, course_exam):
        session = start(db_session, oracle)
        service = ProctorService(db_session)

        # 30 minute exam plus 30 minutes of grace.
        assert service.expire_stale_sessions(30, now=T0 + timedelta(minutes=59)) == []
        assert service.expire_stale_sessions(30, now=T0 + timedelta(minutes=60)) == [session.id]

        db_session.refresh(session)
        assert session.status == SessionStatus.ENDED.value
        assert session.end_reason == EndReason.EXPIRED.value
        assert service.expire_stale_sessions(30, now=T0 + timedelta(days=1)) == []
