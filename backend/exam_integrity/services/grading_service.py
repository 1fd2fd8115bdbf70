"""
Grading and result release.

Submissions are graded against the paper frozen on the proctor session, never
against the live bank, so later edits to an exam do not change the key an
attempt was taken under. Results become visible ``result_release_days``
after submission; a failed attempt also gets a retake cooldown that starts
at release.
"""
from dataclasses import dataclass
from datetime import datetime
from typing import Callable, Mapping, Optional
import logging

from sqlalchemy import func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from ..core.config import settings
from ..core.exceptions import (
    ProctoringRequiredError,
    SessionConflictError,
    SessionNotActiveError,
)
from ..models.enums import SessionStatus, TargetType
from ..models.exam_attempt import ExamAttempt
from ..models.proctoring import ProctorSession
from ..schemas.attempt import ProctorFlagsSnapshot, ResultView, SubmitAttemptRequest
from ..schemas.paper import GeneratedPaper
from ..utils.paper_generator import bank_as_paper
from ..utils.proctor_events import suspicious_score
from ..utils.timezone import add_days, utcnow
from .eligibility_service import EligibilityService
from .exam_service import ExamService
from .proctor_service import ProctorService
from .progress_service import ProgressOracle
from .session_state import SessionAction, require_transition

logger = logging.getLogger(__name__)

RESULT_NO_ATTEMPT = "NO_ATTEMPT"
RESULT_PENDING = "PENDING"
RESULT_RELEASED = "RELEASED"


@dataclass(frozen=True)
class GradeOutcome:
    correct_count: int
    total_questions: int
    score_percent: int
    passed: bool


def score_percent(correct: int, total: int) -> int:
    """``round_half_up(100 * correct / max(1, total))`` in integer arithmetic."""
    total = max(1, total)
    return (200 * correct + total) // (2 * total)


def grade_paper(paper: GeneratedPaper, answers: Mapping[str, Optional[int]], passing_score: int) -> GradeOutcome:
    correct = 0
    for q in paper.questions:
        selected = answers.get(str(q.id))
        if selected is not None and selected == q.correct_index:
            correct += 1
    total = len(paper.questions)
    percent = score_percent(correct, total)
    return GradeOutcome(correct, total, percent, percent >= passing_score)


def dispatch_submission_notice(attempt: ExamAttempt) -> None:
    from ..tasks.notifications import send_submission_notice
    send_submission_notice.delay(attempt.id)


class GradingService:
    def __init__(
        self,
        db: Session,
        oracle: ProgressOracle,
        notifier: Optional[Callable[[ExamAttempt], None]] = dispatch_submission_notice,
    ):
        self.db = db
        self.oracle = oracle
        self.notifier = notifier
        self.exams = ExamService(db)
        self.proctor = ProctorService(db, oracle)

    def next_attempt_no(self, user_id: int, target_type: TargetType, target_id: int) -> int:
        current = self.db.query(func.max(ExamAttempt.attempt_no)).filter(
            ExamAttempt.user_id == user_id,
            ExamAttempt.target_type == TargetType(target_type).value,
            ExamAttempt.target_id == target_id
        ).scalar()
        return (current or 0) + 1

    def submit(
        self,
        user_id: int,
        target_type: TargetType,
        target_id: int,
        request: SubmitAttemptRequest,
        notify_email: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> ExamAttempt:
        target_type = TargetType(target_type)
        now = now or utcnow()
        exam = self.exams.get_exam(target_type, target_id)

        if request.proctor_session_id is None and self.exams.proctoring_required(exam):
            raise ProctoringRequiredError()

        session = None
        if request.proctor_session_id is not None:
            session = self.proctor.require_session(
                request.proctor_session_id, user_id, target_type, target_id, SessionAction.SUBMIT
            )

        EligibilityService(self.db, self.oracle).ensure_eligible(
            user_id, target_type, target_id, exam.course_id, now=now
        )

        if session is not None:
            paper = self.proctor.load_paper(session)
        else:
            paper = bank_as_paper(self.exams.load_bank(exam), exam.duration_minutes)

        threshold = self.exams.passing_threshold(exam)
        outcome = grade_paper(paper, request.answers, threshold)

        release_at = add_days(now, settings.result_release_days)
        cooldown_until = None if outcome.passed else add_days(release_at, settings.retake_gap_days)

        flags = None
        if session is not None:
            flags = self._close_submitted(session, now)

        attempt = ExamAttempt(
            user_id=user_id,
            target_type=target_type.value,
            target_id=target_id,
            course_id=exam.course_id,
            attempt_no=self.next_attempt_no(user_id, target_type, target_id),
            score_percent=outcome.score_percent,
            passed=outcome.passed,
            correct_count=outcome.correct_count,
            total_questions=outcome.total_questions,
            passing_score=threshold,
            started_at=session.started_at if session is not None else None,
            submitted_at=now,
            evaluated_at=now,
            result_release_at=release_at,
            cooldown_until=cooldown_until,
            retake_gap_days=settings.retake_gap_days,
            proctor_session_id=session.id if session is not None else None,
            proctor_warning_count=flags.warning_count if flags is not None else 0,
            proctor_flags=flags.model_dump(mode="json") if flags is not None else None,
            notify_email=notify_email,
            result_email_sent=False,
        )
        self.db.add(attempt)

        try:
            self.db.commit()
        except IntegrityError:
            self.db.rollback()
            raise SessionConflictError("Attempt was submitted concurrently. Please reload.")

        self.db.refresh(attempt)
        logger.info(
            f"Attempt #{attempt.attempt_no} submitted by user {user_id} on {target_type.value}:{target_id}: "
            f"{attempt.score_percent}% ({'passed' if attempt.passed else 'failed'}), "
            f"releases at {attempt.result_release_at}"
        )
        self._notify(attempt)
        return attempt

    def _close_submitted(self, session: ProctorSession, now: datetime) -> ProctorFlagsSnapshot:
        result = require_transition(session.status, SessionAction.SUBMIT)

        updated = self.db.query(ProctorSession).filter(
            ProctorSession.id == session.id,
            ProctorSession.status == SessionStatus.ACTIVE.value
        ).update({
            ProctorSession.status: result.target.value,
            ProctorSession.end_reason: result.end_reason.value,
            ProctorSession.ended_at: now,
            ProctorSession.active_key: None,
        }, synchronize_session=False)
        if updated != 1:
            self.db.rollback()
            raise SessionNotActiveError("Proctor session is no longer active (already submitted?)")

        # Counters are final once the row has left ACTIVE.
        counters = self.db.query(
            ProctorSession.warning_count,
            ProctorSession.events_count,
            ProctorSession.snapshots_count,
            ProctorSession.last_event_at,
        ).filter(ProctorSession.id == session.id).one()

        event_counts = self.proctor.event_counts(session.id)
        score = suspicious_score(event_counts.items())
        self.db.query(ProctorSession).filter(ProctorSession.id == session.id).update(
            {ProctorSession.suspicious_score: score}, synchronize_session=False
        )

        return ProctorFlagsSnapshot(
            mode=session.mode,
            warning_count=counters.warning_count,
            events_count=counters.events_count,
            snapshots_count=counters.snapshots_count,
            started_at=session.started_at,
            last_event_at=counters.last_event_at,
            suspicious_score=score,
            event_counts=event_counts,
        )

    def _notify(self, attempt: ExamAttempt) -> None:
        if self.notifier is None:
            return
        try:
            self.notifier(attempt)
        except Exception as e:
            logger.warning(f"Could not queue submission notice for attempt {attempt.id}: {e}")

    def latest_attempt(self, user_id: int, target_type: TargetType, target_id: int) -> Optional[ExamAttempt]:
        return EligibilityService(self.db, self.oracle).latest_attempt(user_id, target_type, target_id)

    def result_view(self, user_id: int, target_type: TargetType, target_id: int,
                    now: Optional[datetime] = None) -> ResultView:
        now = now or utcnow()
        attempt = self.latest_attempt(user_id, target_type, target_id)
        if attempt is None:
            return ResultView(status=RESULT_NO_ATTEMPT)

        if now < attempt.result_release_at:
            return ResultView(
                status=RESULT_PENDING,
                attempt_no=attempt.attempt_no,
                submitted_at=attempt.submitted_at,
                result_release_at=attempt.result_release_at,
            )

        return ResultView(
            status=RESULT_RELEASED,
            attempt_no=attempt.attempt_no,
            submitted_at=attempt.submitted_at,
            result_release_at=attempt.result_release_at,
            score_percent=attempt.score_percent,
            passed=attempt.passed,
            passing_score=attempt.passing_score,
            cooldown_until=attempt.cooldown_until,
        )
