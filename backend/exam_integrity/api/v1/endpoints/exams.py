from fastapi import APIRouter, Depends, File, Form, HTTPException, Query, Request, UploadFile
from sqlalchemy.orm import Session
from typing import Callable, Optional
import logging
import os

import aiofiles

from ... import deps
from ....core.config import settings
from ....core.security import Principal
from ....models.enums import SnapshotType, TargetType
from ....models.exam_attempt import ExamAttempt
from ....schemas.attempt import AttemptResponse, ResultView, SubmitAttemptRequest
from ....schemas.eligibility import EligibilityResponse, RetakeRules
from ....schemas.exam import ExamInfo
from ....schemas.paper import PaperResponse
from ....schemas.proctoring import (
    ActiveSessionResponse,
    ActiveSessionSummary,
    EventRequest,
    EventResponse,
    SnapshotResponse,
    StartSessionRequest,
    StartSessionResponse,
)
from ....services.eligibility_service import EligibilityService
from ....services.exam_service import ExamService
from ....services.grading_service import GradingService
from ....services.proctor_service import ClientContext, ProctorService
from ....services.progress_service import ProgressOracle
from ....services.session_state import SessionAction
from ....utils.file_paths import build_snapshot_filename, ensure_session_directory, to_relative_upload_path
from ....utils.paper_generator import to_client_paper
from ....utils.timezone import utcnow

logger = logging.getLogger(__name__)

router = APIRouter()


def parse_target_type(target_type: str) -> TargetType:
    try:
        return TargetType(target_type.upper())
    except ValueError:
        raise HTTPException(status_code=404, detail="Unknown exam target")


@router.get("/{target_type}/{target_id}", response_model=ExamInfo)
async def get_exam_info(
    target_id: int,
    target: TargetType = Depends(parse_target_type),
    current_user: Principal = Depends(deps.require_student),
    db: Session = Depends(deps.get_db)
):
    """Exam metadata without questions"""
    service = ExamService(db)
    return service.describe(service.get_exam(target, target_id))


@router.get("/{target_type}/{target_id}/eligibility", response_model=EligibilityResponse)
async def get_eligibility(
    target_id: int,
    target: TargetType = Depends(parse_target_type),
    current_user: Principal = Depends(deps.require_student),
    db: Session = Depends(deps.get_db),
    oracle: ProgressOracle = Depends(deps.get_progress_oracle)
):
    exams = ExamService(db)
    exam = exams.get_exam(target, target_id)
    decision = EligibilityService(db, oracle).check(current_user.user_id, target, target_id, exam.course_id)

    return EligibilityResponse(
        eligible=decision.eligible,
        code=decision.code,
        reason=decision.reason,
        next_allowed_at=decision.next_allowed_at,
        rules=RetakeRules(
            result_release_days=settings.result_release_days,
            retake_gap_days=settings.retake_gap_days,
            passing_score=exams.passing_threshold(exam),
        ),
    )


@router.post("/{target_type}/{target_id}/proctor/start", response_model=StartSessionResponse)
async def start_proctor_session(
    target_id: int,
    request: Request,
    payload: Optional[StartSessionRequest] = None,
    target: TargetType = Depends(parse_target_type),
    current_user: Principal = Depends(deps.require_student),
    db: Session = Depends(deps.get_db),
    oracle: ProgressOracle = Depends(deps.get_progress_oracle)
):
    """Start a proctored attempt, ending any other active one for this exam"""
    client_info = payload.client_info if payload and payload.client_info else None
    client = ClientContext(
        ip_address=request.client.host if request.client else None,
        user_agent=request.headers.get("user-agent"),
        fingerprint=client_info.fingerprint if client_info else None,
        raw=client_info.model_dump(exclude_none=True) if client_info else {},
    )

    session = ProctorService(db, oracle).start_session(current_user.user_id, target, target_id, client)
    return StartSessionResponse(
        session_id=session.id,
        started_at=session.started_at,
        mode=session.mode,
        screenshare_enabled=session.screenshare_enabled,
    )


@router.get("/{target_type}/{target_id}/proctor/active", response_model=ActiveSessionResponse)
async def get_active_proctor_session(
    target_id: int,
    target: TargetType = Depends(parse_target_type),
    current_user: Principal = Depends(deps.require_student),
    db: Session = Depends(deps.get_db)
):
    session = ProctorService(db).get_active_session(current_user.user_id, target, target_id)
    if session is None:
        return ActiveSessionResponse(active=None)
    return ActiveSessionResponse(active=ActiveSessionSummary(
        session_id=session.id,
        mode=session.mode,
        warning_count=session.warning_count,
        started_at=session.started_at,
        screenshare_enabled=session.screenshare_enabled,
    ))


@router.get("/{target_type}/{target_id}/proctor/paper", response_model=PaperResponse)
async def get_proctor_paper(
    target_id: int,
    session_id: int = Query(...),
    target: TargetType = Depends(parse_target_type),
    current_user: Principal = Depends(deps.require_student),
    db: Session = Depends(deps.get_db)
):
    """The session's paper with the answer key removed"""
    session, paper = ProctorService(db).fetch_paper(session_id, current_user.user_id, target, target_id)
    return PaperResponse(session_id=session.id, paper=to_client_paper(paper), paper_hash=session.paper_hash)


@router.post("/{target_type}/{target_id}/proctor/event", response_model=EventResponse)
async def log_proctor_event(
    target_id: int,
    event: EventRequest,
    target: TargetType = Depends(parse_target_type),
    current_user: Principal = Depends(deps.require_student),
    db: Session = Depends(deps.get_db)
):
    classified = ProctorService(db).record_event(
        event.session_id, current_user.user_id, target, target_id, event.type, event.meta
    )
    return EventResponse(event_type=classified.raw, is_violation=classified.is_violation)


@router.post("/{target_type}/{target_id}/proctor/snapshot", response_model=SnapshotResponse)
async def upload_proctor_snapshot(
    target_id: int,
    session_id: int = Form(...),
    snapshot_type: Optional[str] = Form(None),
    file: Optional[UploadFile] = File(None),
    target: TargetType = Depends(parse_target_type),
    current_user: Principal = Depends(deps.require_student),
    db: Session = Depends(deps.get_db)
):
    """Store a webcam or screen capture for an active session"""
    service = ProctorService(db)
    service.require_session(session_id, current_user.user_id, target, target_id, SessionAction.RECORD_SNAPSHOT)

    if file is None:
        raise HTTPException(status_code=400, detail="Missing snapshot file")
    # Read at most one byte past the limit.
    content = await file.read(settings.proctor_snapshot_max_bytes + 1)
    if not content:
        raise HTTPException(status_code=400, detail="Missing snapshot file")
    if len(content) > settings.proctor_snapshot_max_bytes:
        raise HTTPException(status_code=413, detail="Snapshot is too large")

    kind = SnapshotType.SCREEN if (snapshot_type or "").strip().upper() == SnapshotType.SCREEN.value \
        else SnapshotType.WEBCAM

    session_dir = ensure_session_directory(session_id)
    full_path = os.path.join(session_dir, build_snapshot_filename(file.filename))
    async with aiofiles.open(full_path, "wb") as out_file:
        await out_file.write(content)

    try:
        snapshot = service.record_snapshot(
            session_id, current_user.user_id, target, target_id, to_relative_upload_path(full_path), kind
        )
    except Exception:
        # The row never made it in; do not leave an orphan file behind.
        if os.path.exists(full_path):
            os.remove(full_path)
        raise

    return SnapshotResponse(snapshot_id=snapshot.id)


@router.post("/{target_type}/{target_id}/attempt", response_model=AttemptResponse)
async def submit_attempt(
    target_id: int,
    payload: SubmitAttemptRequest,
    target: TargetType = Depends(parse_target_type),
    current_user: Principal = Depends(deps.require_student),
    db: Session = Depends(deps.get_db),
    oracle: ProgressOracle = Depends(deps.get_progress_oracle),
    notifier: Optional[Callable[[ExamAttempt], None]] = Depends(deps.get_submission_notifier)
):
    """Grade a submission; the score stays hidden until the release time"""
    attempt = GradingService(db, oracle, notifier=notifier).submit(
        current_user.user_id, target, target_id, payload, notify_email=current_user.email
    )
    return AttemptResponse(
        attempt_id=attempt.id,
        attempt_no=attempt.attempt_no,
        score_percent=attempt.score_percent,
        passed=attempt.passed,
        submitted_at=attempt.submitted_at,
        result_release_at=attempt.result_release_at,
        result_visible=utcnow() >= attempt.result_release_at,
    )


@router.get("/{target_type}/{target_id}/result", response_model=ResultView)
async def get_latest_result(
    target_id: int,
    target: TargetType = Depends(parse_target_type),
    current_user: Principal = Depends(deps.require_student),
    db: Session = Depends(deps.get_db),
    oracle: ProgressOracle = Depends(deps.get_progress_oracle)
):
    return GradingService(db, oracle, notifier=None).result_view(current_user.user_id, target, target_id)
