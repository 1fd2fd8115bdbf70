from fastapi import APIRouter, Depends
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session
import time
import logging

import psutil

from ... import deps
from .... import __version__

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("")
def get_health(db: Session = Depends(deps.get_db)):
    """Database reachability and process stats - no authentication required"""
    health_status = {
        "status": "healthy",
        "timestamp": time.time(),
        "service": "exam-integrity-api",
        "version": __version__,
        "services": {},
        "performance": {},
    }

    try:
        start_time = time.time()
        db.execute(text("SELECT 1"))
        health_status["services"]["database"] = {
            "status": "healthy",
            "response_time": round((time.time() - start_time) * 1000, 2),
        }
    except SQLAlchemyError as e:
        logger.error(f"Health check database error: {e}")
        health_status["services"]["database"] = {"status": "error", "error": str(e)}
        health_status["status"] = "unhealthy"

    process = psutil.Process()
    memory = psutil.virtual_memory()
    health_status["performance"] = {
        "process_memory_mb": round(process.memory_info().rss / (1024 * 1024), 2),
        "cpu_usage_percent": psutil.cpu_percent(interval=0),
        "memory_usage_percent": memory.percent,
    }
    return health_status
