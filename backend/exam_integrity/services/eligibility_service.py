"""
Eligibility gate for starting or retaking an exam.

The retake cooldown is anchored to the result release time rather than the
submission time, so waiting for grading does not count towards it.
"""
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Optional

from sqlalchemy.orm import Session

from ..core.config import settings
from ..core.exceptions import EligibilityError
from ..models.enums import EXAM_ELIGIBLE_ENROLLMENT_STATUSES, TargetType
from ..models.exam_attempt import ExamAttempt
from ..utils.timezone import utcnow, format_local_time
from .progress_service import ProgressOracle


@dataclass(frozen=True)
class EligibilityDecision:
    eligible: bool
    code: Optional[str] = None
    reason: Optional[str] = None
    next_allowed_at: Optional[datetime] = None

    def raise_if_blocked(self) -> None:
        if not self.eligible:
            raise EligibilityError(self.code, self.reason, self.next_allowed_at)


ELIGIBLE = EligibilityDecision(eligible=True)


def next_retake_at(result_release_at: datetime, retake_gap_days: int) -> datetime:
    return result_release_at + timedelta(days=retake_gap_days)


def evaluate_eligibility(
    enrollment_status: Optional[str],
    content_completed: bool,
    has_passed: bool,
    latest_result_release_at: Optional[datetime],
    now: datetime,
    retake_gap_days: int,
) -> EligibilityDecision:
    """Apply the gate rules in order; the first failing rule decides."""
    if enrollment_status is None:
        return EligibilityDecision(False, EligibilityError.NOT_ENROLLED, "You are not enrolled in this course.")

    if enrollment_status.upper() not in EXAM_ELIGIBLE_ENROLLMENT_STATUSES:
        return EligibilityDecision(
            False,
            EligibilityError.ENROLLMENT_INACTIVE,
            f"Course is not activated yet (status: {enrollment_status}). Complete profile + payment first.",
        )

    if not content_completed:
        return EligibilityDecision(
            False,
            EligibilityError.CONTENT_INCOMPLETE,
            "Complete all course lessons (learning content) to unlock exams.",
        )

    if has_passed:
        return EligibilityDecision(False, EligibilityError.ALREADY_PASSED, "You already passed this exam. Retake not allowed.")

    if latest_result_release_at is not None:
        allowed_at = next_retake_at(latest_result_release_at, retake_gap_days)
        if now < allowed_at:
            return EligibilityDecision(
                False,
                EligibilityError.COOLDOWN_ACTIVE,
                f"Retake cooldown active. You can retake after {format_local_time(allowed_at)}.",
                allowed_at,
            )

    return ELIGIBLE


class EligibilityService:
    def __init__(self, db: Session, oracle: ProgressOracle):
        self.db = db
        self.oracle = oracle

    def latest_attempt(self, user_id: int, target_type: TargetType, target_id: int) -> Optional[ExamAttempt]:
        return self.db.query(ExamAttempt).filter(
            ExamAttempt.user_id == user_id,
            ExamAttempt.target_type == TargetType(target_type).value,
            ExamAttempt.target_id == target_id
        ).order_by(ExamAttempt.attempt_no.desc()).first()

    def has_passed(self, user_id: int, target_type: TargetType, target_id: int) -> bool:
        return self.db.query(ExamAttempt.id).filter(
            ExamAttempt.user_id == user_id,
            ExamAttempt.target_type == TargetType(target_type).value,
            ExamAttempt.target_id == target_id,
            ExamAttempt.passed.is_(True)
        ).first() is not None

    def check(
        self,
        user_id: int,
        target_type: TargetType,
        target_id: int,
        course_id: int,
        now: Optional[datetime] = None,
    ) -> EligibilityDecision:
        now = now or utcnow()

        enrollment_status = self.oracle.enrollment_status(user_id, course_id)
        content_completed = (
            enrollment_status is not None and self.oracle.is_content_completed(user_id, course_id)
        )

        latest = self.latest_attempt(user_id, target_type, target_id)
        release_at = latest.result_release_at if latest is not None and not latest.passed else None

        return evaluate_eligibility(
            enrollment_status=enrollment_status,
            content_completed=content_completed,
            has_passed=self.has_passed(user_id, target_type, target_id),
            latest_result_release_at=release_at,
            now=now,
            retake_gap_days=settings.retake_gap_days,
        )

    def ensure_eligible(self, user_id: int, target_type: TargetType, target_id: int, course_id: int,
                        now: Optional[datetime] = None) -> None:
        self.check(user_id, target_type, target_id, course_id, now=now).raise_if_blocked()
