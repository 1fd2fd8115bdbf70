from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session
from typing import List, Optional
from datetime import datetime

from ... import deps
from ....core.security import Principal
from ....models.enums import ReviewStatus, SessionStatus, TargetType
from ....schemas.admin import (
    EventItem,
    ReviewRequest,
    SessionDetail,
    SessionDetailResponse,
    SessionListItem,
    SnapshotItem,
)
from ....schemas.attempt import AttemptListItem
from ....schemas.exam import ExamConfigResponse, ExamConfigUpsert
from ....services.exam_service import ExamService
from ....services.proctor_service import ProctorService
from ....services.review_service import ReviewService
from ....services.session_state import SessionAction
from .exams import parse_target_type

router = APIRouter()


def _list_item(session, attempt_id: Optional[int]) -> SessionListItem:
    item = SessionListItem.model_validate(session)
    item.attempt_id = attempt_id
    return item


@router.get("/proctor/sessions", response_model=List[SessionListItem])
def list_proctor_sessions(
    q: Optional[str] = Query(None, description="Session id or user id"),
    status: Optional[SessionStatus] = Query(None),
    review: Optional[ReviewStatus] = Query(None),
    date_from: Optional[datetime] = Query(None, alias="from"),
    date_to: Optional[datetime] = Query(None, alias="to"),
    db: Session = Depends(deps.get_db),
    current_user: Principal = Depends(deps.require_admin),
):
    """
    Proctor sessions, newest first, capped at 200 rows.
    """
    rows = ReviewService(db).list_sessions(
        q=q,
        status=status.value if status else None,
        review_status=review.value if review else None,
        date_from=date_from,
        date_to=date_to,
    )
    return [_list_item(session, attempt_id) for session, attempt_id in rows]


@router.get("/proctor/sessions/{session_id}", response_model=SessionDetailResponse)
def get_proctor_session(
    session_id: int,
    db: Session = Depends(deps.get_db),
    current_user: Principal = Depends(deps.require_admin),
):
    session, events, snapshots, attempt = ReviewService(db).get_session_detail(session_id)
    detail = SessionDetail.model_validate(session)
    detail.attempt_id = attempt.id if attempt else None
    return SessionDetailResponse(
        session=detail,
        events=[EventItem.model_validate(e) for e in events],
        snapshots=[SnapshotItem.model_validate(s) for s in snapshots],
        attempt=AttemptListItem.model_validate(attempt) if attempt else None,
    )


@router.post("/proctor/sessions/{session_id}/review", response_model=SessionDetail)
def review_proctor_session(
    session_id: int,
    payload: ReviewRequest,
    db: Session = Depends(deps.get_db),
    current_user: Principal = Depends(deps.require_admin),
):
    session = ReviewService(db).set_review(session_id, payload.review_status, payload.notes, current_user.user_id)
    return SessionDetail.model_validate(session)


@router.post("/proctor/sessions/{session_id}/end", response_model=SessionDetail)
def end_proctor_session(
    session_id: int,
    db: Session = Depends(deps.get_db),
    current_user: Principal = Depends(deps.require_admin),
):
    """Close an active session without grading it"""
    session = ProctorService(db).close_session(session_id, SessionAction.ADMIN_CLOSE)
    return SessionDetail.model_validate(session)


@router.get("/results", response_model=List[AttemptListItem])
def list_results(
    target_type: Optional[TargetType] = Query(None),
    target_id: Optional[int] = Query(None),
    user_id: Optional[int] = Query(None),
    db: Session = Depends(deps.get_db),
    current_user: Principal = Depends(deps.require_admin),
):
    attempts = ReviewService(db).list_results(
        target_type=target_type.value if target_type else None,
        target_id=target_id,
        user_id=user_id,
    )
    return [AttemptListItem.model_validate(a) for a in attempts]


@router.put("/exams/{target_type}/{target_id}", response_model=ExamConfigResponse)
def upsert_exam(
    target_id: int,
    payload: ExamConfigUpsert,
    target: TargetType = Depends(parse_target_type),
    db: Session = Depends(deps.get_db),
    current_user: Principal = Depends(deps.require_admin),
):
    return ExamService(db).upsert_exam(target, target_id, payload)
