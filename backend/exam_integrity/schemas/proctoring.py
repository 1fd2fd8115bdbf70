from pydantic import BaseModel, ConfigDict, Field
from datetime import datetime
from typing import Any, Optional


class ClientInfo(BaseModel):
    model_config = ConfigDict(extra="allow")

    fingerprint: Optional[str] = None


class StartSessionRequest(BaseModel):
    client_info: Optional[ClientInfo] = None


class StartSessionResponse(BaseModel):
    session_id: int
    started_at: datetime
    mode: str
    screenshare_enabled: bool


class ActiveSessionSummary(BaseModel):
    session_id: int
    mode: str
    warning_count: int
    started_at: datetime
    screenshare_enabled: bool


class ActiveSessionResponse(BaseModel):
    active: Optional[ActiveSessionSummary] = None


class EventRequest(BaseModel):
    session_id: int
    type: str = Field(min_length=1, max_length=64)
    meta: Optional[Any] = None


class EventResponse(BaseModel):
    ok: bool = True
    event_type: str
    is_violation: bool


class SnapshotResponse(BaseModel):
    ok: bool = True
    snapshot_id: int
