from sqlalchemy import Column, Integer, String, DateTime, UniqueConstraint
from ..core.database import Base
from ..utils.timezone import utcnow


class Enrollment(Base):
    """Read-only here; written by the enrollment/payment service."""
    __tablename__ = "enrollments"
    __table_args__ = (
        UniqueConstraint("user_id", "course_id", name="uq_enrollments_user_course"),
    )

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, nullable=False, index=True)
    course_id = Column(Integer, nullable=False, index=True)
    status = Column(String(16), nullable=False)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)


class CourseProgress(Base):
    """Aggregated lesson progress, maintained by the content service."""
    __tablename__ = "course_progress"
    __table_args__ = (
        UniqueConstraint("user_id", "course_id", name="uq_course_progress_user_course"),
    )

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, nullable=False, index=True)
    course_id = Column(Integer, nullable=False, index=True)
    total_lessons = Column(Integer, nullable=False, default=0)
    completed_lessons = Column(Integer, nullable=False, default=0)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)
