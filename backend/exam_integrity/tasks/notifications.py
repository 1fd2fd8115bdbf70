from datetime import datetime
from typing import Optional
import logging

from exam_integrity.core.celery_app import celery_app
from exam_integrity.core.database import SessionLocal
from exam_integrity.models.exam_attempt import ExamAttempt
from exam_integrity.utils.mailer import send_email
from exam_integrity.utils.timezone import utcnow, format_local_time

logger = logging.getLogger(__name__)


def _exam_label(attempt: ExamAttempt) -> str:
    return f"{attempt.target_type.lower()} exam #{attempt.target_id}"


@celery_app.task(bind=True, name="send_submission_notice")
def send_submission_notice(self, attempt_id: int):
    """Tell the student the attempt was received and when the result releases."""
    db = SessionLocal()
    try:
        attempt = db.query(ExamAttempt).filter(ExamAttempt.id == attempt_id).first()
        if attempt is None:
            logger.warning(f"Submission notice skipped: attempt {attempt_id} not found")
            return {"sent": False, "attempt_id": attempt_id}
        if not attempt.notify_email:
            logger.info(f"Submission notice skipped: attempt {attempt_id} has no email")
            return {"sent": False, "attempt_id": attempt_id}

        body = (
            f"Your {_exam_label(attempt)} (attempt #{attempt.attempt_no}) was submitted.\n"
            f"Your result will be released on {format_local_time(attempt.result_release_at)}."
        )
        sent = send_email(attempt.notify_email, "Exam submitted", body)
        return {"sent": sent, "attempt_id": attempt_id}
    except Exception as exc:
        logger.error(f"Error in send_submission_notice for attempt {attempt_id}: {exc}", exc_info=True)
        raise self.retry(exc=exc)
    finally:
        db.close()


def release_due_results_once(db, now: Optional[datetime] = None) -> int:
    """Email every released-but-unannounced result once; returns how many were handled."""
    now = now or utcnow()
    due = db.query(ExamAttempt).filter(
        ExamAttempt.result_release_at <= now,
        ExamAttempt.result_email_sent.is_(False)
    ).order_by(ExamAttempt.result_release_at.asc()).all()

    handled = 0
    for attempt in due:
        if attempt.notify_email:
            outcome = "passed" if attempt.passed else "did not pass"
            body = (
                f"The result of your {_exam_label(attempt)} (attempt #{attempt.attempt_no}) is available.\n"
                f"Score: {attempt.score_percent}% (passing score {attempt.passing_score}%). You {outcome}."
            )
            if attempt.cooldown_until is not None:
                body += f"\nYou can retake the exam after {format_local_time(attempt.cooldown_until)}."
            if not send_email(attempt.notify_email, "Exam result released", body):
                # Left unflagged so the next run tries again.
                continue
        else:
            logger.info(f"Attempt {attempt.id} has no notification email; marking result as announced")

        attempt.result_email_sent = True
        db.commit()
        handled += 1

    if handled:
        logger.info(f"Announced {handled} released exam results")
    return handled


@celery_app.task(name="release_due_results")
def release_due_results():
    db = SessionLocal()
    try:
        return {"announced": release_due_results_once(db)}
    except Exception as exc:
        logger.error(f"Error in release_due_results: {exc}", exc_info=True)
        db.rollback()
        raise exc
    finally:
        db.close()
