"""
Domain exceptions for the exam integrity engine.

Services raise these; ``main.py`` maps them to HTTP responses. Eligibility
and session-state errors are expected conditions and are returned to the
caller verbatim. ``PaperIntegrityError`` means an invariant was broken and
is never shown in detail.
"""
from datetime import datetime
from typing import Optional


class ExamIntegrityError(Exception):
    status_code = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class EligibilityError(ExamIntegrityError):
    NOT_ENROLLED = "NOT_ENROLLED"
    ENROLLMENT_INACTIVE = "ENROLLMENT_INACTIVE"
    CONTENT_INCOMPLETE = "CONTENT_INCOMPLETE"
    ALREADY_PASSED = "ALREADY_PASSED"
    COOLDOWN_ACTIVE = "COOLDOWN_ACTIVE"

    status_code = 403

    def __init__(self, code: str, reason: str, next_allowed_at: Optional[datetime] = None):
        super().__init__(reason)
        self.code = code
        self.reason = reason
        self.next_allowed_at = next_allowed_at
        if code == self.COOLDOWN_ACTIVE:
            self.status_code = 429


class SessionStateError(ExamIntegrityError):
    status_code = 409


class SessionNotFoundError(SessionStateError):
    status_code = 404

    def __init__(self, message: str = "Proctor session not found"):
        super().__init__(message)


class SessionNotActiveError(SessionStateError):
    def __init__(self, message: str = "Proctor session is not active"):
        super().__init__(message)


class SessionConflictError(SessionStateError):
    pass


class ConfigurationError(ExamIntegrityError):
    status_code = 404

    def __init__(self, message: str = "Exam not configured"):
        super().__init__(message)


class ProctoringRequiredError(ExamIntegrityError):
    status_code = 400

    def __init__(self, message: str = "Proctoring session is required to submit this exam."):
        super().__init__(message)


class InvalidReviewStatusError(ExamIntegrityError):
    status_code = 400

    def __init__(self, message: str = "Invalid review_status"):
        super().__init__(message)


class InvalidFilterError(ExamIntegrityError):
    status_code = 400


class InvalidExamConfigError(ExamIntegrityError):
    status_code = 400


class PaperIntegrityError(ExamIntegrityError):
    status_code = 500

    def __init__(self, message: str, session_id: Optional[int] = None):
        super().__init__(message)
        self.session_id = session_id
