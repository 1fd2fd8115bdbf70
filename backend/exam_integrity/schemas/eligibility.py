from pydantic import BaseModel
from datetime import datetime
from typing import Optional


class RetakeRules(BaseModel):
    result_release_days: int
    retake_gap_days: int
    passing_score: int


class EligibilityResponse(BaseModel):
    eligible: bool
    code: Optional[str] = None
    reason: Optional[str] = None
    next_allowed_at: Optional[datetime] = None
    rules: RetakeRules
