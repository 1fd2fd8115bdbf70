from pydantic import BaseModel, Field
from typing import List, Union

PAPER_SCHEMA_VERSION = 1

QuestionId = Union[int, str]


class BankQuestion(BaseModel):
    id: QuestionId
    text: str = ""
    options: List[str] = []
    correct_index: int = 0


class PaperQuestion(BaseModel):
    id: QuestionId
    text: str
    options: List[str]
    correct_index: int = Field(ge=0)


class GeneratedPaper(BaseModel):
    schema_version: int = PAPER_SCHEMA_VERSION
    seed: int = Field(ge=0, le=0xFFFFFFFF)
    duration_minutes: int
    questions: List[PaperQuestion]


class ClientQuestion(BaseModel):
    id: QuestionId
    text: str
    options: List[str]


class ClientPaper(BaseModel):
    duration_minutes: int
    question_count: int
    questions: List[ClientQuestion]


class PaperResponse(BaseModel):
    session_id: int
    paper: ClientPaper
    paper_hash: str
