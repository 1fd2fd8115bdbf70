from enum import Enum


class TargetType(str, Enum):
    COURSE = "COURSE"
    SUBJECT = "SUBJECT"


class SessionStatus(str, Enum):
    ACTIVE = "ACTIVE"
    SUBMITTED = "SUBMITTED"
    ENDED = "ENDED"


class EndReason(str, Enum):
    SUBMITTED = "SUBMITTED"
    SUPERSEDED = "SUPERSEDED"
    ADMIN_CLOSED = "ADMIN_CLOSED"
    EXPIRED = "EXPIRED"


class ProctorMode(str, Enum):
    BASIC = "BASIC"
    WEBCAM = "WEBCAM"


class ReviewStatus(str, Enum):
    PENDING = "PENDING"
    CLEARED = "CLEARED"
    FLAGGED = "FLAGGED"


class SnapshotType(str, Enum):
    WEBCAM = "WEBCAM"
    SCREEN = "SCREEN"


class EnrollmentStatus(str, Enum):
    PENDING = "PENDING"
    PAID = "PAID"
    ACTIVE = "ACTIVE"
    COMPLETED = "COMPLETED"
    CANCELLED = "CANCELLED"


EXAM_ELIGIBLE_ENROLLMENT_STATUSES = frozenset({
    EnrollmentStatus.PAID.value,
    EnrollmentStatus.ACTIVE.value,
    EnrollmentStatus.COMPLETED.value,
})
