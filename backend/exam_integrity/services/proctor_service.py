"""
Proctor session store and event ingestion.

All counter changes go through guarded ``UPDATE ... WHERE status = 'ACTIVE'``
statements with SQL-side increments, so concurrent requests for one session
never lose an update and a session that has left ACTIVE stops accepting
writes. The single-active-session rule is backed by the unique
``active_key`` column.
"""
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Any, Dict, List, Optional, Tuple
import logging

from pydantic import ValidationError
from sqlalchemy import func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from ..core.exceptions import (
    PaperIntegrityError,
    SessionConflictError,
    SessionNotActiveError,
    SessionNotFoundError,
)
from ..models.enums import SessionStatus, TargetType, SnapshotType, ProctorMode
from ..models.exam import ExamConfig
from ..models.proctoring import ProctorSession, ProctorEvent, ProctorSnapshot, make_active_key
from ..schemas.paper import GeneratedPaper
from ..utils.paper_generator import compute_paper_hash, draw_seed, generate_paper
from ..utils.proctor_events import ClassifiedEvent, classify_event, suspicious_score
from ..utils.timezone import utcnow
from .eligibility_service import EligibilityService
from .exam_service import ExamService
from .progress_service import ProgressOracle
from .session_state import SessionAction, require_transition

logger = logging.getLogger(__name__)

START_ATTEMPTS = 2


@dataclass
class ClientContext:
    ip_address: Optional[str] = None
    user_agent: Optional[str] = None
    fingerprint: Optional[str] = None
    raw: Dict[str, Any] = field(default_factory=dict)


class ProctorService:
    def __init__(self, db: Session, oracle: Optional[ProgressOracle] = None):
        self.db = db
        self.oracle = oracle
        self.exams = ExamService(db)

    # Lookup

    def get_session(self, session_id: int) -> Optional[ProctorSession]:
        return self.db.query(ProctorSession).filter(ProctorSession.id == session_id).first()

    def get_owned_session(self, session_id: int, user_id: int, target_type: TargetType, target_id: int) -> ProctorSession:
        session = self.db.query(ProctorSession).filter(
            ProctorSession.id == session_id,
            ProctorSession.user_id == user_id,
            ProctorSession.target_type == TargetType(target_type).value,
            ProctorSession.target_id == target_id
        ).first()
        if session is None:
            raise SessionNotFoundError()
        return session

    def require_session(self, session_id: int, user_id: int, target_type: TargetType, target_id: int,
                        action: SessionAction) -> ProctorSession:
        session = self.get_owned_session(session_id, user_id, target_type, target_id)
        require_transition(session.status, action)
        return session

    def get_active_session(self, user_id: int, target_type: TargetType, target_id: int) -> Optional[ProctorSession]:
        return self.db.query(ProctorSession).filter(
            ProctorSession.user_id == user_id,
            ProctorSession.target_type == TargetType(target_type).value,
            ProctorSession.target_id == target_id,
            ProctorSession.status == SessionStatus.ACTIVE.value
        ).order_by(ProctorSession.id.desc()).first()

    # Start

    def start_session(
        self,
        user_id: int,
        target_type: TargetType,
        target_id: int,
        client: Optional[ClientContext] = None,
        now: Optional[datetime] = None,
    ) -> ProctorSession:
        target_type = TargetType(target_type)
        client = client or ClientContext()
        exam = self.exams.get_exam(target_type, target_id)

        if self.oracle is None:
            raise RuntimeError("ProctorService.start_session needs a progress oracle")
        EligibilityService(self.db, self.oracle).ensure_eligible(
            user_id, target_type, target_id, exam.course_id, now=now
        )

        paper = generate_paper(
            self.exams.load_bank(exam),
            seed=draw_seed(),
            duration_minutes=exam.duration_minutes,
            questions_per_attempt=self.exams.questions_per_attempt(exam),
        )
        paper_hash = compute_paper_hash(paper)

        for attempt in range(1, START_ATTEMPTS + 1):
            started_at = now or utcnow()
            try:
                superseded = self._supersede_active(user_id, target_type, target_id, started_at)
                session = self._insert_session(user_id, exam, paper, paper_hash, client, started_at)
                self.db.commit()
            except IntegrityError:
                self.db.rollback()
                logger.warning(
                    f"Concurrent start for user {user_id} on {target_type.value}:{target_id} "
                    f"(try {attempt}/{START_ATTEMPTS})"
                )
                continue

            self.db.refresh(session)
            if superseded:
                logger.info(f"Superseded proctor sessions {superseded} for user {user_id}")
            logger.info(
                f"Started proctor session {session.id} for user {user_id} on {target_type.value}:{target_id} "
                f"({len(paper.questions)} questions, seed {paper.seed})"
            )
            return session

        raise SessionConflictError("Another exam session is being started. Please retry.")

    def _supersede_active(self, user_id: int, target_type: TargetType, target_id: int, now: datetime) -> List[int]:
        active = self.db.query(ProctorSession).filter(
            ProctorSession.user_id == user_id,
            ProctorSession.target_type == target_type.value,
            ProctorSession.target_id == target_id,
            ProctorSession.status == SessionStatus.ACTIVE.value
        ).with_for_update().all()

        closed = []
        for session in active:
            result = require_transition(session.status, SessionAction.SUPERSEDE)
            session.status = result.target.value
            session.end_reason = result.end_reason.value
            session.ended_at = now
            session.last_event_at = now
            session.active_key = None
            session.suspicious_score = self.compute_suspicious_score(session.id)
            closed.append(session.id)

        # Release the unique active_key before the new row claims it.
        self.db.flush()
        return closed

    def _insert_session(self, user_id: int, exam: ExamConfig, paper: GeneratedPaper, paper_hash: str,
                        client: ClientContext, now: datetime) -> ProctorSession:
        session = ProctorSession(
            user_id=user_id,
            target_type=exam.target_type,
            target_id=exam.target_id,
            exam_id=exam.id,
            status=SessionStatus.ACTIVE.value,
            active_key=make_active_key(user_id, exam.target_type, exam.target_id),
            mode=exam.proctor_mode or ProctorMode.BASIC.value,
            screenshare_enabled=bool(exam.proctor_screenshare_required),
            started_at=now,
            last_event_at=now,
            warning_count=0,
            events_count=0,
            snapshots_count=0,
            suspicious_score=0,
            paper=paper.model_dump(mode="json"),
            paper_hash=paper_hash,
            ip_address=client.ip_address,
            user_agent=(client.user_agent or "")[:512] or None,
            fingerprint=client.fingerprint,
            client_info=client.raw or None,
        )
        self.db.add(session)
        self.db.flush()
        return session

    # Paper

    def load_paper(self, session: ProctorSession) -> GeneratedPaper:
        """Validated paper of a session; any inconsistency is an integrity failure."""
        if not session.paper:
            raise PaperIntegrityError("Paper not available", session_id=session.id)
        try:
            paper = GeneratedPaper.model_validate(session.paper)
        except ValidationError as e:
            raise PaperIntegrityError(f"Paper failed validation: {e}", session_id=session.id) from e
        if session.paper_hash and compute_paper_hash(paper) != session.paper_hash:
            raise PaperIntegrityError("Paper hash mismatch", session_id=session.id)
        return paper

    def fetch_paper(self, session_id: int, user_id: int, target_type: TargetType,
                    target_id: int) -> Tuple[ProctorSession, GeneratedPaper]:
        session = self.require_session(session_id, user_id, target_type, target_id, SessionAction.FETCH_PAPER)
        return session, self.load_paper(session)

    # Events and snapshots

    def _bump_counters(self, session_id: int, values: Dict[str, Any]) -> None:
        updated = self.db.query(ProctorSession).filter(
            ProctorSession.id == session_id,
            ProctorSession.status == SessionStatus.ACTIVE.value
        ).update(values, synchronize_session=False)
        if updated != 1:
            self.db.rollback()
            raise SessionNotActiveError()

    def record_event(self, session_id: int, user_id: int, target_type: TargetType, target_id: int,
                     raw_type: str, meta: Any = None, now: Optional[datetime] = None) -> ClassifiedEvent:
        self.require_session(session_id, user_id, target_type, target_id, SessionAction.RECORD_EVENT)
        classified = classify_event(raw_type)
        created_at = now or utcnow()

        self.db.add(ProctorEvent(
            session_id=session_id,
            event_type=classified.raw,
            meta=meta,
            created_at=created_at,
        ))
        self._bump_counters(session_id, {
            ProctorSession.events_count: ProctorSession.events_count + 1,
            ProctorSession.warning_count: ProctorSession.warning_count + (1 if classified.is_violation else 0),
            ProctorSession.last_event_at: created_at,
        })
        self.db.commit()

        if classified.is_violation:
            logger.info(f"Violation {classified.raw} recorded for proctor session {session_id}")
        return classified

    def record_snapshot(self, session_id: int, user_id: int, target_type: TargetType, target_id: int,
                        file_path: str, snapshot_type: SnapshotType,
                        now: Optional[datetime] = None) -> ProctorSnapshot:
        self.require_session(session_id, user_id, target_type, target_id, SessionAction.RECORD_SNAPSHOT)
        created_at = now or utcnow()

        snapshot = ProctorSnapshot(
            session_id=session_id,
            file_path=file_path,
            snapshot_type=SnapshotType(snapshot_type).value,
            created_at=created_at,
        )
        self.db.add(snapshot)
        self.db.flush()
        self._bump_counters(session_id, {
            ProctorSession.snapshots_count: ProctorSession.snapshots_count + 1,
            ProctorSession.last_event_at: created_at,
        })
        self.db.commit()
        self.db.refresh(snapshot)
        return snapshot

    # Scoring

    def event_counts(self, session_id: int) -> Dict[str, int]:
        rows = self.db.query(ProctorEvent.event_type, func.count(ProctorEvent.id)).filter(
            ProctorEvent.session_id == session_id
        ).group_by(ProctorEvent.event_type).all()
        return {event_type: int(count) for event_type, count in rows}

    def compute_suspicious_score(self, session_id: int) -> int:
        return suspicious_score(self.event_counts(session_id).items())

    # Closing

    def close_session(self, session_id: int, action: SessionAction, now: Optional[datetime] = None) -> ProctorSession:
        """End an ACTIVE session without grading it (admin close or expiry)."""
        session = self.get_session(session_id)
        if session is None:
            raise SessionNotFoundError()
        result = require_transition(session.status, action)
        ended_at = now or utcnow()

        updated = self.db.query(ProctorSession).filter(
            ProctorSession.id == session_id,
            ProctorSession.status == SessionStatus.ACTIVE.value
        ).update({
            ProctorSession.status: result.target.value,
            ProctorSession.end_reason: result.end_reason.value,
            ProctorSession.ended_at: ended_at,
            ProctorSession.active_key: None,
            ProctorSession.suspicious_score: self.compute_suspicious_score(session_id),
        }, synchronize_session=False)
        if updated != 1:
            self.db.rollback()
            raise SessionNotActiveError()
        self.db.commit()
        self.db.refresh(session)
        logger.info(f"Proctor session {session_id} closed ({result.end_reason.value})")
        return session

    def expire_stale_sessions(self, grace_minutes: int, now: Optional[datetime] = None) -> List[int]:
        """End ACTIVE sessions whose exam time plus grace has run out."""
        now = now or utcnow()
        candidates = self.db.query(ProctorSession).filter(
            ProctorSession.status == SessionStatus.ACTIVE.value
        ).all()

        expired = []
        for session in candidates:
            duration = (session.paper or {}).get("duration_minutes") or 0
            deadline = session.started_at + timedelta(minutes=int(duration) + grace_minutes)
            if now < deadline:
                continue
            try:
                self.close_session(session.id, SessionAction.EXPIRE, now=now)
            except SessionNotActiveError:
                # Submitted or closed between the scan and the update.
                continue
            expired.append(session.id)
        return expired
