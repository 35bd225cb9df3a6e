"""Main FastAPI application for the CertLab mastery engine."""
from contextlib import asynccontextmanager
from datetime import datetime
from fastapi import FastAPI, Request, Depends
from fastapi.responses import JSONResponse
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session
from certlab.routers import progress, achievements
from certlab.db.init_db import init_db
from certlab.db.database import get_db
from certlab.exceptions import InvalidInputError, RecordNotFoundError, StorageError
from certlab.logging_config import setup_logging, get_logger
from certlab.config import settings
from certlab.constants import DEFAULT_RATE_LIMIT
from certlab.rate_limit import limiter

# Set up logging on module import
log_level = settings.LOG_LEVEL if settings.LOG_LEVEL else None
setup_logging(log_level)
logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Create tables and seed the badge catalog on startup."""
    logger.info("Application startup initiated")
    try:
        init_db()
        logger.info("Database initialization completed successfully")
    except Exception as e:
        logger.error(f"Database initialization failed: {e}", exc_info=True)
        raise

    yield

    logger.info("Application shutdown complete")


app = FastAPI(
    title="CertLab Mastery Engine API",
    description="""
    Learner-progress engine for certification exam practice.

    ## Features

    - **Mastery Tracking**: Rolling correctness per category and subcategory
    - **Adaptive Difficulty**: Per-category difficulty from recent answer streaks
    - **Achievements**: Badge catalog with points, levels and notifications
    - **Study Streaks**: Consecutive-day activity tracking with milestones

    ## Submission Flow

    1. **Submit**: POST graded outcomes to `/api/progress/submissions`
    2. **Inspect**: GET `/api/progress/mastery` and `/api/achievements/stats`
    3. **Size the next quiz**: GET `/api/progress/adaptive-count`
    4. **Acknowledge badges**: POST `/api/achievements/notified`

    Users are identified by the `cl_uid` cookie.
    """,
    version="1.0.0",
    lifespan=lifespan,
    docs_url="/api/docs",
    redoc_url="/api/redoc",
    openapi_tags=[
        {
            "name": "progress",
            "description": "Quiz submissions, mastery scores and adaptive difficulty"
        },
        {
            "name": "achievements",
            "description": "Badges, points, levels and streaks"
        },
        {
            "name": "health",
            "description": "Service health and readiness checks"
        }
    ]
)

app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)

logger.info(f"Rate limiting enabled: default {DEFAULT_RATE_LIMIT} per IP")


@app.exception_handler(InvalidInputError)
async def invalid_input_handler(request: Request, exc: InvalidInputError):
    logger.warning(f"Rejected request to {request.url.path}: {exc}")
    return JSONResponse(status_code=422, content={"detail": str(exc)})


@app.exception_handler(RecordNotFoundError)
async def record_not_found_handler(request: Request, exc: RecordNotFoundError):
    return JSONResponse(status_code=404, content={"detail": str(exc)})


@app.exception_handler(StorageError)
async def storage_error_handler(request: Request, exc: StorageError):
    logger.error(f"Storage failure on {request.url.path}: {exc}")
    return JSONResponse(status_code=503, content={"detail": "Storage temporarily unavailable"})


# Include routers
app.include_router(progress.router)
app.include_router(achievements.router)


@app.get("/health", tags=["health"])
async def health_check(db: Session = Depends(get_db)):
    """Health check endpoint with database verification.

    Returns:
        200 OK: Service is healthy and database is accessible
        503 Service Unavailable: Database connection failed

    Example Response (Healthy):
        {
            "status": "healthy",
            "database": "connected",
            "timestamp": "2026-03-02T10:30:00.000000Z",
            "environment": "production"
        }
    """
    timestamp = datetime.utcnow().isoformat() + "Z"

    try:
        db.execute(text("SELECT 1"))
        logger.debug("Health check passed")

        return {
            "status": "healthy",
            "database": "connected",
            "timestamp": timestamp,
            "environment": settings.ENVIRONMENT
        }
    except SQLAlchemyError as e:
        logger.error(f"Health check failed: {e}", exc_info=True)

        return JSONResponse(
            status_code=503,
            content={
                "status": "unhealthy",
                "database": "disconnected",
                "error": str(e),
                "timestamp": timestamp
            }
        )


@app.get("/readiness", tags=["health"])
async def readiness_check(db: Session = Depends(get_db)):
    """Readiness check for container orchestration.

    Returns:
        200 OK: Service is ready
        503 Service Unavailable: Service is not ready
    """
    try:
        db.execute(text("SELECT 1"))
        return {"status": "ready", "timestamp": datetime.utcnow().isoformat() + "Z"}
    except SQLAlchemyError as e:
        logger.error(f"Readiness check failed: {e}")
        return JSONResponse(
            status_code=503,
            content={"status": "not ready", "error": str(e)}
        )
