import logging

from exam_integrity.core.celery_app import celery_app
from exam_integrity.core.config import settings
from exam_integrity.core.database import SessionLocal
from exam_integrity.services.proctor_service import ProctorService

logger = logging.getLogger(__name__)


@celery_app.task(name="expire_stale_sessions")
def expire_stale_sessions():
    """End ACTIVE proctor sessions that outlived their exam time plus grace."""
    if not settings.expiry_sweep_enabled:
        return {"expired": []}

    db = SessionLocal()
    try:
        expired = ProctorService(db).expire_stale_sessions(settings.session_expiry_grace_minutes)
        if expired:
            logger.info(f"Expired {len(expired)} stale proctor sessions: {expired}")
        return {"expired": expired}
    except Exception as exc:
        logger.error(f"Error in expire_stale_sessions: {exc}", exc_info=True)
        db.rollback()
        raise exc
    finally:
        db.close()
