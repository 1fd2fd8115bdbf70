from typing import List
import logging

from sqlalchemy.orm import Session

from ..core.config import settings
from ..core.exceptions import ConfigurationError, InvalidExamConfigError
from ..models.enums import TargetType
from ..models.exam import ExamConfig
from ..schemas.exam import ExamConfigUpsert, ExamInfo
from ..schemas.paper import BankQuestion
from ..utils.paper_generator import normalize_bank

logger = logging.getLogger(__name__)


class ExamService:
    def __init__(self, db: Session):
        self.db = db

    def find_exam(self, target_type: TargetType, target_id: int):
        return self.db.query(ExamConfig).filter(
            ExamConfig.target_type == TargetType(target_type).value,
            ExamConfig.target_id == target_id
        ).first()

    def get_exam(self, target_type: TargetType, target_id: int) -> ExamConfig:
        exam = self.find_exam(target_type, target_id)
        if exam is None:
            raise ConfigurationError(f"Exam not configured for this {TargetType(target_type).value.lower()}")
        return exam

    @staticmethod
    def passing_threshold(exam: ExamConfig) -> int:
        if exam.passing_score is not None:
            return exam.passing_score
        if exam.target_type == TargetType.SUBJECT.value:
            return settings.subject_default_passing_score
        return settings.course_default_passing_score

    @staticmethod
    def questions_per_attempt(exam: ExamConfig) -> int:
        if exam.questions_per_attempt is not None:
            return exam.questions_per_attempt
        return settings.exam_questions_per_attempt

    @staticmethod
    def proctoring_required(exam: ExamConfig) -> bool:
        return settings.proctor_required or bool(exam.proctor_required)

    @staticmethod
    def load_bank(exam: ExamConfig) -> List[BankQuestion]:
        return normalize_bank(exam.questions or [])

    def describe(self, exam: ExamConfig) -> ExamInfo:
        return ExamInfo(
            exam_id=exam.id,
            target_type=exam.target_type,
            target_id=exam.target_id,
            title=exam.title,
            duration_minutes=exam.duration_minutes,
            question_count=len(exam.questions or []),
            passing_score=self.passing_threshold(exam),
            proctor_required=self.proctoring_required(exam),
            proctor_mode=exam.proctor_mode,
        )

    def upsert_exam(self, target_type: TargetType, target_id: int, data: ExamConfigUpsert) -> ExamConfig:
        target_type = TargetType(target_type)
        exam = self.find_exam(target_type, target_id)

        course_id = data.course_id
        if target_type is TargetType.COURSE:
            course_id = target_id
        elif course_id is None:
            if exam is None:
                raise InvalidExamConfigError("course_id is required for subject exams")
            course_id = exam.course_id

        # Normalize now so that a broken bank is rejected at authoring time.
        bank = normalize_bank(data.questions)
        for q in bank:
            if not q.options:
                raise InvalidExamConfigError(f"Question {q.id} has no options")
            if not 0 <= q.correct_index < len(q.options):
                raise InvalidExamConfigError(f"Question {q.id} has an out-of-range correct index")
        if len({str(q.id) for q in bank}) != len(bank):
            raise InvalidExamConfigError("Question ids must be unique")

        values = dict(
            course_id=course_id,
            title=data.title,
            duration_minutes=data.duration_minutes,
            questions=[q.model_dump(mode="json") for q in bank],
            passing_score=data.passing_score,
            questions_per_attempt=data.questions_per_attempt,
            proctor_required=data.proctor_required,
            proctor_mode=data.proctor_mode.value,
            proctor_screenshare_required=data.proctor_screenshare_required,
        )

        if exam is None:
            exam = ExamConfig(target_type=target_type.value, target_id=target_id, **values)
            self.db.add(exam)
        else:
            for field, value in values.items():
                setattr(exam, field, value)

        self.db.commit()
        self.db.refresh(exam)
        logger.info(f"Exam {exam.id} saved for {target_type.value}:{target_id} with {len(bank)} questions")
        return exam
