from sqlalchemy import Column, Integer, String, DateTime, Boolean, JSON, UniqueConstraint
from ..core.database import Base
from ..utils.timezone import utcnow
from .enums import ProctorMode


class ExamConfig(Base):
    """One exam per target; owns the question bank."""
    __tablename__ = "exams"
    __table_args__ = (
        UniqueConstraint("target_type", "target_id", name="uq_exams_target"),
    )

    id = Column(Integer, primary_key=True, index=True)
    target_type = Column(String(16), nullable=False)
    target_id = Column(Integer, nullable=False)
    course_id = Column(Integer, nullable=False, index=True)
    title = Column(String(255), nullable=False)
    duration_minutes = Column(Integer, nullable=False, default=30)
    questions = Column(JSON, nullable=False, default=list)
    passing_score = Column(Integer, nullable=True)
    questions_per_attempt = Column(Integer, nullable=True)
    proctor_required = Column(Boolean, nullable=False, default=False)
    proctor_mode = Column(String(16), nullable=False, default=ProctorMode.BASIC.value)
    proctor_screenshare_required = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime, default=utcnow)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)

    def __repr__(self):
        return f"<ExamConfig {self.target_type}:{self.target_id} '{self.title}'>"
