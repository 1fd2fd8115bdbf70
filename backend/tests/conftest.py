"""
Pytest configuration for the exam integrity tests
"""
import os
import sys

# Must be set before the package builds its engine.
os.environ["DATABASE_URL"] = "sqlite://"
os.environ.setdefault("SECRET_KEY", "test-secret-key")

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from datetime import datetime
from typing import Dict, Optional, Set, Tuple

import pytest
from fastapi.testclient import TestClient

from exam_integrity.api import deps
from exam_integrity.core.config import settings
from exam_integrity.core.database import Base, SessionLocal, engine, get_db
from exam_integrity.core.security import create_access_token
from exam_integrity.main import app
from exam_integrity.models.enums import TargetType
from exam_integrity.schemas.exam import ExamConfigUpsert
from exam_integrity.services.exam_service import ExamService
from exam_integrity import models  # noqa: F401

STUDENT_ID = 1
OTHER_STUDENT_ID = 2
ADMIN_ID = 99
COURSE_ID = 10

BANK = [
    {"id": 1, "text": "2 + 2", "options": ["3", "4", "5", "22"], "correctIndex": 1},
    {"id": 2, "text": "Capital of France", "options": ["Paris", "Rome", "Berlin"], "correctIndex": 0},
    {"id": 3, "text": "Largest planet", "options": ["Mars", "Venus", "Jupiter", "Earth"], "correctIndex": 2},
]

CORRECT_TEXT = {q["id"]: q["options"][q["correctIndex"]] for q in BANK}


class FakeProgressOracle:
    """In-memory enrollment and lesson progress"""

    def __init__(self):
        self.statuses: Dict[Tuple[int, int], str] = {}
        self.completed: Set[Tuple[int, int]] = set()

    def enroll(self, user_id: int, course_id: int = COURSE_ID, status: str = "ACTIVE", completed: bool = True):
        self.statuses[(user_id, course_id)] = status
        if completed:
            self.completed.add((user_id, course_id))
        else:
            self.completed.discard((user_id, course_id))

    def enrollment_status(self, user_id: int, course_id: int) -> Optional[str]:
        return self.statuses.get((user_id, course_id))

    def is_content_completed(self, user_id: int, course_id: int) -> bool:
        return (user_id, course_id) in self.completed


@pytest.fixture(autouse=True)
def setup_database():
    Base.metadata.create_all(bind=engine)
    yield
    Base.metadata.drop_all(bind=engine)


@pytest.fixture(autouse=True)
def upload_dir(tmp_path, monkeypatch):
    monkeypatch.setattr(settings, "upload_dir", str(tmp_path / "uploads"))
    return tmp_path / "uploads"


@pytest.fixture
def db_session():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


@pytest.fixture
def oracle():
    fake = FakeProgressOracle()
    fake.enroll(STUDENT_ID)
    return fake


@pytest.fixture
def sent_notices():
    return []


@pytest.fixture
def client(oracle, sent_notices):
    def override_get_db():
        db = SessionLocal()
        try:
            yield db
        finally:
            db.close()

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[deps.get_progress_oracle] = lambda: oracle
    app.dependency_overrides[deps.get_submission_notifier] = lambda: sent_notices.append

    yield TestClient(app)

    app.dependency_overrides.clear()


@pytest.fixture
def course_exam(db_session):
    """Course exam with the three-question bank"""
    return ExamService(db_session).upsert_exam(
        TargetType.COURSE,
        COURSE_ID,
        ExamConfigUpsert(title="Final exam", duration_minutes=30, questions=BANK, passing_score=70),
    )


def auth_headers(user_id: int, role: str, email: Optional[str] = None) -> Dict[str, str]:
    return {"Authorization": f"Bearer {create_access_token(user_id, role, email)}"}


@pytest.fixture
def student_headers():
    return auth_headers(STUDENT_ID, "student", "student@example.com")


@pytest.fixture
def admin_headers():
    return auth_headers(ADMIN_ID, "admin", "admin@example.com")


def answers_for(paper, correct: bool = True) -> Dict[str, int]:
    """Answer map for a stored (server-side) paper"""
    out = {}
    for q in paper.questions:
        out[str(q.id)] = q.correct_index if correct else (q.correct_index + 1) % len(q.options)
    return out


T0 = datetime(2025, 3, 1, 9, 0, 0)
