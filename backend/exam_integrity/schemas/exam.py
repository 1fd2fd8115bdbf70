from pydantic import BaseModel, Field, field_validator
from typing import Any, Dict, List, Optional

from ..models.enums import ProctorMode


class ExamConfigUpsert(BaseModel):
    course_id: Optional[int] = None
    title: str = Field(min_length=2)
    duration_minutes: int = Field(30, gt=0)
    questions: List[Dict[str, Any]] = Field(min_length=1)
    passing_score: Optional[int] = Field(None, ge=0, le=100)
    questions_per_attempt: Optional[int] = Field(None, ge=0)
    proctor_required: bool = False
    proctor_mode: ProctorMode = ProctorMode.BASIC
    proctor_screenshare_required: bool = False

    @field_validator("title")
    @classmethod
    def strip_title(cls, v: str) -> str:
        v = v.strip()
        if len(v) < 2:
            raise ValueError("title must be at least 2 characters")
        return v


class ExamConfigResponse(BaseModel):
    id: int
    target_type: str
    target_id: int
    course_id: int
    title: str
    duration_minutes: int
    questions: List[Dict[str, Any]]
    passing_score: Optional[int] = None
    questions_per_attempt: Optional[int] = None
    proctor_required: bool
    proctor_mode: str
    proctor_screenshare_required: bool

    class Config:
        from_attributes = True


class ExamInfo(BaseModel):
    exam_id: int
    target_type: str
    target_id: int
    title: str
    duration_minutes: int
    question_count: int
    passing_score: int
    proctor_required: bool
    proctor_mode: str
