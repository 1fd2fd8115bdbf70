from typing import Callable, Optional

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials
from sqlalchemy.orm import Session

from ..core.database import get_db
from ..core.security import Principal, bearer_scheme, verify_token
from ..models.exam_attempt import ExamAttempt
from ..services.grading_service import dispatch_submission_notice
from ..services.progress_service import ProgressOracle, SqlProgressOracle

__all__ = [
    "get_db",
    "get_current_principal",
    "require_student",
    "require_admin",
    "get_progress_oracle",
    "get_submission_notifier",
]


def get_current_principal(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
) -> Principal:
    principal = verify_token(credentials.credentials) if credentials else None
    if principal is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Could not validate credentials",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return principal


def require_student(principal: Principal = Depends(get_current_principal)) -> Principal:
    if principal.role != "student":
        raise HTTPException(status_code=403, detail="Only students can take exams")
    return principal


def require_admin(principal: Principal = Depends(get_current_principal)) -> Principal:
    if not principal.is_admin:
        raise HTTPException(status_code=403, detail="The user doesn't have enough privileges")
    return principal


def get_progress_oracle(db: Session = Depends(get_db)) -> ProgressOracle:
    return SqlProgressOracle(db)


def get_submission_notifier() -> Optional[Callable[[ExamAttempt], None]]:
    return dispatch_submission_notice
