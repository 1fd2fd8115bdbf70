from pydantic import BaseModel, Field, field_validator
from datetime import datetime
from typing import Any, Dict, Optional

FLAGS_SCHEMA_VERSION = 1


class SubmitAttemptRequest(BaseModel):
    # Keyed by question id as sent by the client (JSON object keys are strings).
    # Anything that is not a number counts as unanswered.
    answers: Dict[str, Optional[int]] = Field(default_factory=dict)
    proctor_session_id: Optional[int] = None

    @field_validator("answers", mode="before")
    @classmethod
    def drop_non_numeric(cls, v: Any) -> Any:
        if not isinstance(v, dict):
            return v
        cleaned = {}
        for key, value in v.items():
            if isinstance(value, bool) or not isinstance(value, (int, float)):
                value = None
            elif isinstance(value, float):
                value = int(value) if value.is_integer() else None
            cleaned[key] = value
        return cleaned


class ProctorFlagsSnapshot(BaseModel):
    """Session counters frozen onto the attempt at submit time."""
    schema_version: int = FLAGS_SCHEMA_VERSION
    mode: str
    warning_count: int = 0
    events_count: int = 0
    snapshots_count: int = 0
    started_at: Optional[datetime] = None
    last_event_at: Optional[datetime] = None
    suspicious_score: int = 0
    event_counts: Dict[str, int] = Field(default_factory=dict)


class AttemptResponse(BaseModel):
    attempt_id: int
    attempt_no: int
    score_percent: int
    passed: bool
    submitted_at: datetime
    result_release_at: datetime
    result_visible: bool = False


class ResultView(BaseModel):
    status: str
    attempt_no: Optional[int] = None
    submitted_at: Optional[datetime] = None
    result_release_at: Optional[datetime] = None
    score_percent: Optional[int] = None
    passed: Optional[bool] = None
    passing_score: Optional[int] = None
    cooldown_until: Optional[datetime] = None


class AttemptListItem(BaseModel):
    id: int
    user_id: int
    target_type: str
    target_id: int
    course_id: int
    attempt_no: int
    score_percent: int
    passed: bool
    passing_score: int
    submitted_at: datetime
    result_release_at: datetime
    cooldown_until: Optional[datetime] = None
    proctor_session_id: Optional[int] = None
    proctor_warning_count: int = 0
    result_email_sent: bool = False

    class Config:
        from_attributes = True
