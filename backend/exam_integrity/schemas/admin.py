from pydantic import BaseModel
from datetime import datetime
from typing import Any, Dict, List, Optional

from .attempt import AttemptListItem


class SessionListItem(BaseModel):
    id: int
    user_id: int
    target_type: str
    target_id: int
    status: str
    end_reason: Optional[str] = None
    mode: str
    started_at: datetime
    ended_at: Optional[datetime] = None
    last_event_at: Optional[datetime] = None
    warning_count: int
    events_count: int
    snapshots_count: int
    suspicious_score: int
    review_status: str
    attempt_id: Optional[int] = None

    class Config:
        from_attributes = True


class SessionDetail(SessionListItem):
    exam_id: Optional[int] = None
    screenshare_enabled: bool
    review_notes: Optional[str] = None
    reviewed_by: Optional[int] = None
    reviewed_at: Optional[datetime] = None
    paper_hash: Optional[str] = None
    ip_address: Optional[str] = None
    user_agent: Optional[str] = None
    fingerprint: Optional[str] = None
    client_info: Optional[Dict[str, Any]] = None


class EventItem(BaseModel):
    id: int
    event_type: str
    meta: Optional[Any] = None
    created_at: datetime

    class Config:
        from_attributes = True


class SnapshotItem(BaseModel):
    id: int
    file_path: str
    snapshot_type: str
    created_at: datetime

    class Config:
        from_attributes = True


class SessionDetailResponse(BaseModel):
    session: SessionDetail
    events: List[EventItem] = []
    snapshots: List[SnapshotItem] = []
    attempt: Optional[AttemptListItem] = None


class ReviewRequest(BaseModel):
    # Validated in the service so that bad values map to 400, not 422.
    review_status: str
    notes: Optional[str] = None
