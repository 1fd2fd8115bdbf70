from sqlalchemy import Column, Integer, String, DateTime, Boolean, ForeignKey, JSON, UniqueConstraint
from sqlalchemy.orm import relationship
from ..core.database import Base
from ..utils.timezone import utcnow


class ExamAttempt(Base):
    """Graded submission. Only ``result_email_sent`` changes after insert."""
    __tablename__ = "exam_attempts"
    __table_args__ = (
        UniqueConstraint("user_id", "target_type", "target_id", "attempt_no", name="uq_attempts_user_target_no"),
    )

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, nullable=False, index=True)
    target_type = Column(String(16), nullable=False)
    target_id = Column(Integer, nullable=False)
    course_id = Column(Integer, nullable=False)
    attempt_no = Column(Integer, nullable=False)

    score_percent = Column(Integer, nullable=False)
    passed = Column(Boolean, nullable=False)
    correct_count = Column(Integer, nullable=False, default=0)
    total_questions = Column(Integer, nullable=False, default=0)
    passing_score = Column(Integer, nullable=False)

    started_at = Column(DateTime, nullable=True)
    submitted_at = Column(DateTime, nullable=False)
    evaluated_at = Column(DateTime, nullable=False)
    result_release_at = Column(DateTime, nullable=False, index=True)
    cooldown_until = Column(DateTime, nullable=True)
    retake_gap_days = Column(Integer, nullable=False)

    proctor_session_id = Column(Integer, ForeignKey("exam_proctor_sessions.id"), nullable=True, index=True)
    proctor_warning_count = Column(Integer, nullable=False, default=0)
    proctor_flags = Column(JSON, nullable=True)

    notify_email = Column(String(255), nullable=True)
    result_email_sent = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime, default=utcnow)

    proctor_session = relationship("ProctorSession")

    def __repr__(self):
        return f"<ExamAttempt #{self.attempt_no} user={self.user_id} {self.target_type}:{self.target_id} {self.score_percent}%>"
