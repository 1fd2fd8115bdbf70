from datetime import datetime, time
from typing import Dict, List, Optional, Tuple
import logging

from sqlalchemy import or_
from sqlalchemy.orm import Session

from ..core.exceptions import InvalidFilterError, InvalidReviewStatusError, SessionNotFoundError
from ..models.enums import ReviewStatus, SessionStatus
from ..models.exam_attempt import ExamAttempt
from ..models.proctoring import ProctorSession, ProctorEvent, ProctorSnapshot
from ..utils.timezone import utcnow

logger = logging.getLogger(__name__)

SESSION_LIST_LIMIT = 200


def _parse_filter(enum_cls, value: str, label: str):
    try:
        return enum_cls(value.strip().upper())
    except ValueError:
        allowed = ", ".join(member.value for member in enum_cls)
        raise InvalidFilterError(f"Invalid {label} filter '{value}' (expected one of: {allowed})")


class ReviewService:
    def __init__(self, db: Session):
        self.db = db

    def _attempt_ids(self, session_ids: List[int]) -> Dict[int, int]:
        if not session_ids:
            return {}
        rows = self.db.query(ExamAttempt.proctor_session_id, ExamAttempt.id).filter(
            ExamAttempt.proctor_session_id.in_(session_ids)
        ).all()
        return {session_id: attempt_id for session_id, attempt_id in rows}

    def list_sessions(
        self,
        q: Optional[str] = None,
        status: Optional[str] = None,
        review_status: Optional[str] = None,
        date_from: Optional[datetime] = None,
        date_to: Optional[datetime] = None,
        limit: int = SESSION_LIST_LIMIT,
    ) -> List[Tuple[ProctorSession, Optional[int]]]:
        """Sessions newest first, each paired with its linked attempt id."""
        query = self.db.query(ProctorSession)

        q = (q or "").strip()
        if q:
            if not q.isdigit():
                return []
            number = int(q)
            query = query.filter(or_(ProctorSession.id == number, ProctorSession.user_id == number))

        if status:
            query = query.filter(ProctorSession.status == _parse_filter(SessionStatus, status, "status").value)
        if review_status:
            query = query.filter(
                ProctorSession.review_status == _parse_filter(ReviewStatus, review_status, "review").value
            )
        if date_from:
            query = query.filter(ProctorSession.started_at >= date_from)
        if date_to:
            # A bare date means the whole day.
            if date_to.time() == time.min:
                date_to = date_to.replace(hour=23, minute=59, second=59, microsecond=999999)
            query = query.filter(ProctorSession.started_at <= date_to)

        sessions = query.order_by(
            ProctorSession.started_at.desc(), ProctorSession.id.desc()
        ).limit(min(limit, SESSION_LIST_LIMIT)).all()

        attempts = self._attempt_ids([s.id for s in sessions])
        return [(s, attempts.get(s.id)) for s in sessions]

    def get_session_detail(self, session_id: int):
        session = self.db.query(ProctorSession).filter(ProctorSession.id == session_id).first()
        if session is None:
            raise SessionNotFoundError()

        events = self.db.query(ProctorEvent).filter(
            ProctorEvent.session_id == session_id
        ).order_by(ProctorEvent.created_at.asc(), ProctorEvent.id.asc()).all()

        snapshots = self.db.query(ProctorSnapshot).filter(
            ProctorSnapshot.session_id == session_id
        ).order_by(ProctorSnapshot.created_at.desc(), ProctorSnapshot.id.desc()).all()

        attempt = self.db.query(ExamAttempt).filter(ExamAttempt.proctor_session_id == session_id).first()
        return session, events, snapshots, attempt

    def set_review(self, session_id: int, review_status: str, notes: Optional[str], admin_id: int,
                   now: Optional[datetime] = None) -> ProctorSession:
        try:
            status = ReviewStatus((review_status or "").strip().upper())
        except ValueError:
            raise InvalidReviewStatusError()

        session = self.db.query(ProctorSession).filter(ProctorSession.id == session_id).first()
        if session is None:
            raise SessionNotFoundError()

        session.review_status = status.value
        session.review_notes = notes
        session.reviewed_by = admin_id
        session.reviewed_at = now or utcnow()
        self.db.commit()
        self.db.refresh(session)
        logger.info(f"Proctor session {session_id} marked {status.value} by admin {admin_id}")
        return session

    def list_results(self, target_type: Optional[str] = None, target_id: Optional[int] = None,
                     user_id: Optional[int] = None, limit: int = SESSION_LIST_LIMIT) -> List[ExamAttempt]:
        query = self.db.query(ExamAttempt)
        if target_type:
            query = query.filter(ExamAttempt.target_type == target_type.upper())
        if target_id is not None:
            query = query.filter(ExamAttempt.target_id == target_id)
        if user_id is not None:
            query = query.filter(ExamAttempt.user_id == user_id)
        return query.order_by(ExamAttempt.submitted_at.desc(), ExamAttempt.id.desc()).limit(limit).all()
