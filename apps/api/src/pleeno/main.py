"""
Pleeno API - Main Application Entry Point

Builds the FastAPI application for agency staff:
- Redis (rate limits), PostgreSQL and the installment job scheduler are
  brought up in the lifespan handler
- Every module router is served under /api/v1
- Validation errors are answered with 400 and a field list
- /health and /ready for the container platform, /debug in development
"""

import logging
from contextlib import asynccontextmanager

from fastapi import APIRouter, FastAPI
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy import text

from pleeno.api import api_router
from pleeno.core.config import settings
from pleeno.core.database import async_session_maker, close_db, init_db
from pleeno.core.errors import raise_http_error, validation_exception_handler
from pleeno.core.redis import close_redis, init_redis, redis_status
from pleeno.core.scheduler import (
    describe_jobs,
    run_job_now,
    set_job_paused,
    start_scheduler,
    stop_scheduler,
)
from pleeno.modules.payments import register_payment_jobs

logging.basicConfig(
    level=settings.log_level.upper(),
    format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
)

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(_app: FastAPI):
    """
    Bring up Redis, the database and the scheduler, then tear them down.

    Outside production a failed dependency is reported and startup goes on,
    so the API can be worked on without Redis or with the database offline.
    """
    print(f"Starting Pleeno API ({settings.python_env})...")

    try:
        await init_redis()
        print("[OK] Redis connected")
    except Exception as e:
        print(f"[FAIL] Redis unavailable, rate limits fall back to memory: {e}")
        if settings.is_production:
            raise

    try:
        await init_db()
        print("[OK] Database connected")
    except Exception as e:
        print(f"[FAIL] Database connection failed: {e}")
        if settings.is_production:
            raise

    try:
        register_payment_jobs()
        await start_scheduler()
        print("[OK] Installment jobs scheduled")
    except Exception as e:
        print(f"[FAIL] Scheduler failed to start: {e}")
        if settings.is_production:
            raise

    yield

    print("Shutting down Pleeno API...")
    await stop_scheduler()
    await close_redis()
    await close_db()
    print("[OK] Shutdown complete")


app = FastAPI(
    title="Pleeno API",
    description="Students, payment plans and commissions for education agencies",
    version="0.1.0",
    docs_url="/docs" if settings.is_development else None,
    redoc_url="/redoc" if settings.is_development else None,
    lifespan=lifespan,
)

app.include_router(api_router, prefix="/api/v1")
app.add_exception_handler(RequestValidationError, validation_exception_handler)

# Browsers need Content-Disposition exposed to name downloaded exports
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins_list,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
    expose_headers=["Content-Disposition"],
)


async def _database_ok() -> bool:
    try:
        async with async_session_maker() as session:
            await session.execute(text("SELECT 1"))
        return True
    except Exception:
        logger.exception("Readiness check: database unreachable")
        return False


@app.get("/", tags=["Root"])
async def root() -> dict[str, str]:
    return {"name": "Pleeno API", "environment": settings.python_env, "docs": "/docs"}


@app.get("/health", tags=["Health"])
async def health_check() -> dict[str, str]:
    """Liveness check. Does not touch dependencies."""
    return {"status": "healthy"}


@app.get("/ready", tags=["Health"])
async def readiness_check() -> JSONResponse:
    """
    Readiness check.

    The database is required. Redis is reported but optional because rate
    limiting falls back to memory.
    """
    database_ok = await _database_ok()
    body = {
        "status": "ready" if database_ok else "not ready",
        "database": "ok" if database_ok else "error",
        "redis": await redis_status(),
    }
    return JSONResponse(status_code=200 if database_ok else 503, content=body)


# ============================================
# Development endpoints
# ============================================
# Lets the installment jobs be run by hand instead of waiting for the hour.

debug_router = APIRouter(prefix="/debug", tags=["Debug"])


@debug_router.get("/jobs")
async def list_jobs():
    """Registered jobs with their next run and the summary of their last run."""
    return {"jobs": describe_jobs()}


@debug_router.post("/jobs/{job_id}/run")
async def run_job(job_id: str):
    """
    Run a job now.

    Job ids: ``installments_mark_overdue``, ``installments_send_due_soon_reminders``.
    """
    try:
        return await run_job_now(job_id)
    except Exception as e:
        raise_http_error(e, f"Error running job {job_id}")


@debug_router.post("/jobs/{job_id}/pause")
async def pause_job(job_id: str):
    try:
        return {"job_id": job_id, "paused": set_job_paused(job_id, True)}
    except Exception as e:
        raise_http_error(e, f"Error pausing job {job_id}")


@debug_router.post("/jobs/{job_id}/resume")
async def resume_job(job_id: str):
    try:
        return {"job_id": job_id, "resumed": set_job_paused(job_id, False)}
    except Exception as e:
        raise_http_error(e, f"Error resuming job {job_id}")


if settings.is_development:
    app.include_router(debug_router)
