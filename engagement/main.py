from fastapi import FastAPI, Depends
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session
from sqlalchemy import text

from engagement.db.base import get_db
from engagement.core.config import settings
from engagement.core.logging_setup import setup_logging
from engagement.routers import tasks as tasks_router
from engagement.core.errors import (
    EngagementException,
    engagement_exception_handler,
    validation_exception_handler,
    unhandled_exception_handler,
)

setup_logging(level=settings.LOG_LEVEL, log_dir=settings.LOG_DIR)

app = FastAPI(
    title="Engagement Task Engine API",
    description=(
        "**Weekly listing-improvement tasks with points, levels and streaks**\n\n"
        "Generates a batch of tasks per business location once per cycle, records "
        "completions in an append-only points ledger and derives levels, streaks, "
        "scores, milestones and achievements from it.\n\n"
        "All error responses follow the `{code, message, details}` envelope."
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
app.add_exception_handler(EngagementException, engagement_exception_handler)
app.add_exception_handler(RequestValidationError, validation_exception_handler)
app.add_exception_handler(Exception, unhandled_exception_handler)

# --- Routers ---
app.include_router(tasks_router.router)


@app.get("/health", tags=["health"], summary="Health check")
def health(db: Session = Depends(get_db)):
    """
    Returns `{"status": "ok", "db": "ok"}` when both the API and the database
    are reachable. Returns HTTP 503 if the DB is down.
    """
    try:
        db.execute(text("SELECT 1"))
        db_status = "ok"
    except Exception:
        db_status = "unreachable"

    if db_status != "ok":
        return JSONResponse(
            status_code=503,
            content={"status": "error", "db": db_status},
        )
    return {"status": "ok", "db": "ok", "env": settings.APP_ENV}
