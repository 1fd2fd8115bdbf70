from .exam import ExamConfig
from .proctoring import ProctorSession, ProctorEvent, ProctorSnapshot
from .exam_attempt import ExamAttempt
from .enrollment import Enrollment, CourseProgress

__all__ = [
    "ExamConfig",
    "ProctorSession",
    "ProctorEvent",
    "ProctorSnapshot",
    "ExamAttempt",
    "Enrollment",
    "CourseProgress",
]
