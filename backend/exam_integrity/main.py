from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.gzip import GZipMiddleware
from fastapi.responses import JSONResponse
import logging
import os

from exam_integrity import __version__
from exam_integrity.core.config import settings
from exam_integrity.core.database import create_db_and_tables
from exam_integrity.core.exceptions import EligibilityError, ExamIntegrityError, PaperIntegrityError
from exam_integrity.api.v1.api import api_router
from exam_integrity.middleware.performance import PerformanceMiddleware
from exam_integrity.utils.file_paths import get_upload_root

logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)

app = FastAPI(
    title="Exam Integrity API",
    description="Proctored exams: paper generation, proctoring sessions, eligibility and grading",
    version=__version__,
    docs_url="/docs" if settings.environment == "development" else None,
    redoc_url="/redoc" if settings.environment == "development" else None
)

app.add_middleware(GZipMiddleware, minimum_size=1000)

app.add_middleware(
    PerformanceMiddleware,
    slow_request_threshold=settings.slow_request_threshold
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(EligibilityError)
async def eligibility_exception_handler(request: Request, exc: EligibilityError):
    return JSONResponse(
        status_code=exc.status_code,
        content={
            "error": exc.reason,
            "code": exc.code,
            "next_allowed_at": exc.next_allowed_at.isoformat() if exc.next_allowed_at else None,
        }
    )


@app.exception_handler(PaperIntegrityError)
async def paper_integrity_exception_handler(request: Request, exc: PaperIntegrityError):
    logger.critical(
        f"Paper integrity failure for proctor session {exc.session_id}: {exc.message} "
        f"({request.method} {request.url.path})"
    )
    return JSONResponse(
        status_code=500,
        content={
            "error": "Internal server error",
            "request_id": getattr(request.state, 'request_id', 'unknown')
        }
    )


@app.exception_handler(ExamIntegrityError)
async def exam_integrity_exception_handler(request: Request, exc: ExamIntegrityError):
    return JSONResponse(status_code=exc.status_code, content={"error": exc.message})


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    logger.error(f"Global exception on {request.method} {request.url.path}: {exc}", exc_info=True)
    return JSONResponse(
        status_code=500,
        content={
            "error": "Internal server error",
            "message": "An unexpected error occurred. Please try again later.",
            "request_id": getattr(request.state, 'request_id', 'unknown')
        }
    )


@app.on_event("startup")
async def startup_event():
    logger.info("Starting Exam Integrity API...")

    os.makedirs(get_upload_root(), exist_ok=True)
    create_db_and_tables()

    logger.info("Exam Integrity API startup completed")


app.include_router(api_router, prefix="/api/v1")


@app.get("/")
async def root():
    return {"message": "Exam Integrity API", "version": __version__}


if __name__ == "__main__":
    import uvicorn
    uvicorn.run("exam_integrity.main:app", host="0.0.0.0", port=settings.port, reload=settings.environment == "development")
