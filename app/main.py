"""Main FastAPI application for the N Days Of Code tracker."""
from contextlib import asynccontextmanager
from datetime import datetime
from fastapi import FastAPI, Depends
from fastapi.responses import JSONResponse
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded
from sqlalchemy import text
from sqlalchemy.orm import Session
from app.routers import admin, assignments, notifications, qa, schedule, submissions, users
from app.db.init_db import init_db
from app.db.database import get_db
from app.rate_limit import limiter
from app.logging_config import setup_logging, get_logger
from app.config import settings

# Set up logging on module import
log_level = settings.LOG_LEVEL if settings.LOG_LEVEL else None
setup_logging(log_level)
logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Initialize the database on startup.

    This function runs once when the application starts, performing:
    - Database table creation
    - Default settings seeding
    - Admin account seeding (when ADMIN_EMAIL is set)
    """
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
    title="N Days Of Code API",
    description="""
    Coding-challenge tracker: students solve one dated assignment per day and
    keep a streak, admins review the solutions.

    ## Features

    - **Daily Assignments**: Easy, medium and hard questions for each challenge date
    - **Streaks**: Derived from approved submissions, paused during exam windows
    - **Review Workflow**: Approve or reject submissions; three rejections disqualify
    - **Support Questions**: Auto-prioritised student questions answered by admins
    - **Notifications**: Approval, rejection, violation and general messages

    ## Submission Flow

    1. **Check**: GET `/api/schedule/can-submit` for today's eligibility
    2. **Submit**: POST `/api/submissions` with a tier and a solution
    3. **Review**: Admin POSTs `/api/submissions/{id}/review`
    4. **Streak**: GET `/api/schedule/streak` for the recomputed streak

    ## Streak Rules

    - Scheduled dates before today without an approved submission are missed
    - Exam days neither extend nor break a streak
    - Today only counts once its submission is approved
    """,
    version="1.0.0",
    lifespan=lifespan,
    docs_url="/api/docs",
    redoc_url="/api/redoc",
    openapi_tags=[
        {"name": "users", "description": "Registration, profile and daily summations"},
        {"name": "schedule", "description": "Assignments, streak, eligibility and calendar"},
        {"name": "submissions", "description": "Solution submissions and review"},
        {"name": "assignments", "description": "Admin management of assignments and questions"},
        {"name": "qa", "description": "Student support questions"},
        {"name": "notifications", "description": "In-app notifications"},
        {"name": "admin", "description": "User management, exam windows, registration and maintenance"},
        {"name": "health", "description": "Service health and readiness checks"}
    ]
)

app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)

if settings.RATE_LIMIT_ENABLED:
    logger.info("Rate limiting enabled: default 100 requests/minute per IP")

# Add CSRF protection for production
if settings.is_production:
    from starlette.middleware.sessions import SessionMiddleware
    app.add_middleware(SessionMiddleware, secret_key=settings.SECRET_KEY)
    logger.info("Session middleware enabled for CSRF protection")

# Include routers
app.include_router(users.router)
app.include_router(schedule.router)
app.include_router(submissions.router)
app.include_router(assignments.router)
app.include_router(qa.router)
app.include_router(notifications.router)
app.include_router(admin.router)


@app.get("/health", tags=["health"])
async def health_check(db: Session = Depends(get_db)):
    """Health check endpoint with database verification.

    Returns:
        200 OK: Service is healthy and database is accessible
        503 Service Unavailable: Database connection failed
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
    except Exception as e:
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
    """Readiness check for container orchestration."""
    try:
        db.execute(text("SELECT 1"))
        return {"status": "ready", "timestamp": datetime.utcnow().isoformat() + "Z"}
    except Exception as e:
        logger.error(f"Readiness check failed: {e}")
        return JSONResponse(
            status_code=503,
            content={"status": "not ready", "error": str(e)}
        )
