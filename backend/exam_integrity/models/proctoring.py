from sqlalchemy import Column, Integer, String, Text, DateTime, Boolean, ForeignKey, JSON, Index
from sqlalchemy.orm import relationship
from ..core.database import Base
from ..utils.timezone import utcnow
from .enums import SessionStatus, ReviewStatus, ProctorMode, SnapshotType


def make_active_key(user_id: int, target_type: str, target_id: int) -> str:
    return f"{user_id}:{target_type}:{target_id}"


class ProctorSession(Base):
    __tablename__ = "exam_proctor_sessions"
    __table_args__ = (
        Index("ix_proctor_sessions_user_target", "user_id", "target_type", "target_id"),
    )

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, nullable=False, index=True)
    target_type = Column(String(16), nullable=False)
    target_id = Column(Integer, nullable=False)
    exam_id = Column(Integer, ForeignKey("exams.id"), nullable=True)

    status = Column(String(16), nullable=False, default=SessionStatus.ACTIVE.value, index=True)
    # Set only while ACTIVE; the unique index allows one ACTIVE row per (user, target).
    active_key = Column(String(64), nullable=True, unique=True)
    end_reason = Column(String(32), nullable=True)

    mode = Column(String(16), nullable=False, default=ProctorMode.BASIC.value)
    screenshare_enabled = Column(Boolean, nullable=False, default=False)

    started_at = Column(DateTime, nullable=False, default=utcnow, index=True)
    ended_at = Column(DateTime, nullable=True)
    last_event_at = Column(DateTime, nullable=True)

    warning_count = Column(Integer, nullable=False, default=0)
    events_count = Column(Integer, nullable=False, default=0)
    snapshots_count = Column(Integer, nullable=False, default=0)
    suspicious_score = Column(Integer, nullable=False, default=0)

    review_status = Column(String(16), nullable=False, default=ReviewStatus.PENDING.value, index=True)
    review_notes = Column(Text, nullable=True)
    reviewed_by = Column(Integer, nullable=True)
    reviewed_at = Column(DateTime, nullable=True)

    paper = Column(JSON, nullable=True)
    paper_hash = Column(String(64), nullable=True)

    ip_address = Column(String(64), nullable=True)
    user_agent = Column(String(512), nullable=True)
    fingerprint = Column(String(255), nullable=True)
    client_info = Column(JSON, nullable=True)

    events = relationship("ProctorEvent", back_populates="session", order_by="ProctorEvent.id")
    snapshots = relationship("ProctorSnapshot", back_populates="session", order_by="ProctorSnapshot.id")

    def __repr__(self):
        return f"<ProctorSession {self.id} user={self.user_id} {self.target_type}:{self.target_id} {self.status}>"


class ProctorEvent(Base):
    __tablename__ = "exam_proctor_events"

    id = Column(Integer, primary_key=True, index=True)
    session_id = Column(Integer, ForeignKey("exam_proctor_sessions.id"), nullable=False, index=True)
    event_type = Column(String(64), nullable=False, index=True)
    meta = Column(JSON, nullable=True)
    created_at = Column(DateTime, nullable=False, default=utcnow)

    session = relationship("ProctorSession", back_populates="events")

    def __repr__(self):
        return f"<ProctorEvent {self.event_type} for session {self.session_id}>"


class ProctorSnapshot(Base):
    __tablename__ = "exam_proctor_snapshots"

    id = Column(Integer, primary_key=True, index=True)
    session_id = Column(Integer, ForeignKey("exam_proctor_sessions.id"), nullable=False, index=True)
    file_path = Column(String(512), nullable=False)
    snapshot_type = Column(String(16), nullable=False, default=SnapshotType.WEBCAM.value)
    created_at = Column(DateTime, nullable=False, default=utcnow)

    session = relationship("ProctorSession", back_populates="snapshots")
