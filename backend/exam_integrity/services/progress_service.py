from typing import Optional, Protocol
from sqlalchemy.orm import Session

from ..models.enrollment import Enrollment, CourseProgress


class ProgressOracle(Protocol):
    """Enrollment and content-progress lookups owned by other services."""

    def enrollment_status(self, user_id: int, course_id: int) -> Optional[str]:
        ...

    def is_content_completed(self, user_id: int, course_id: int) -> bool:
        ...


class SqlProgressOracle:
    """Reads the ``enrollments`` and ``course_progress`` tables directly."""

    def __init__(self, db: Session):
        self.db = db

    def enrollment_status(self, user_id: int, course_id: int) -> Optional[str]:
        enrollment = self.db.query(Enrollment).filter(
            Enrollment.user_id == user_id,
            Enrollment.course_id == course_id
        ).first()
        return enrollment.status.upper() if enrollment else None

    def is_content_completed(self, user_id: int, course_id: int) -> bool:
        progress = self.db.query(CourseProgress).filter(
            CourseProgress.user_id == user_id,
            CourseProgress.course_id == course_id
        ).first()
        if progress is None:
            return False
        # A course without published lessons has nothing to complete.
        if progress.total_lessons == 0:
            return True
        return progress.completed_lessons >= progress.total_lessons
