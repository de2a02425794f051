from fastapi import FastAPI, Depends
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session
from sqlalchemy import text

from app.db.base import get_db
from app.core.config import settings
from app.core.logging import configure_logging
from app.routers import achievements as achievements_router
from app.routers import analytics as analytics_router
from app.routers import checkins as checkins_router
from app.routers import jobs as jobs_router
from app.routers import journals as journals_router
from app.routers import notifications as notifications_router
from app.routers import recognitions as recognitions_router
from app.routers import rewards as rewards_router
from app.routers import users as users_router
from app.core.errors import (
    WellnessException,
    wellness_exception_handler,
    validation_exception_handler,
    unhandled_exception_handler,
)

configure_logging(settings.LOG_LEVEL)

app = FastAPI(
    title="Wellness Engagement Engine API",
    description=(
        "**Daily check-ins, streaks, happy coins and rewards.**\n\n"
        "Every write updates the per-user wellness aggregate atomically and "
        "queues notifications in the same transaction.\n\n"
        "The caller is identified by the `X-User-Id` header set by the auth gateway.\n\n"
        "Successful responses use `{success, message, data}`; errors use "
        "`{success: false, code, message, data?}`."
    ),
    version="1.0.0",
    docs_url="/docs",
    redoc_url="/redoc",
)

# --- CORS ---
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins_list,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# --- Exception handlers (most specific first) ---
app.add_exception_handler(WellnessException, wellness_exception_handler)
app.add_exception_handler(RequestValidationError, validation_exception_handler)
app.add_exception_handler(Exception, unhandled_exception_handler)

# --- Routers ---
app.include_router(users_router.router)
app.include_router(checkins_router.router)
app.include_router(journals_router.router)
app.include_router(recognitions_router.router)
app.include_router(rewards_router.router)
app.include_router(achievements_router.router)
app.include_router(notifications_router.router)
app.include_router(analytics_router.router)
app.include_router(jobs_router.router)


@app.get("/health", tags=["health"], summary="Health check")
def health(db: Session = Depends(get_db)):
    """
    Returns `{"status": "ok", "db": "ok"}` when both the API and the database
    are reachable. Returns HTTP 503 if the DB is down.
    """
    try:
        db.execute(text("SELECT 1"))
        db_status = "ok"
    except SQLAlchemyError:
        db_status = "unreachable"

    if db_status != "ok":
        return JSONResponse(
            status_code=503,
            content={"status": "error", "db": db_status},
        )
    return {"status": "ok", "db": "ok", "env": settings.APP_ENV}
