"""
Background Job Scheduler

Runs the periodic installment jobs (overdue marking, due-soon reminders)
on an APScheduler ``AsyncIOScheduler``.

Modules register their jobs with ``register_job`` at startup. The registry
keeps each job's description and the summary returned by its last run so
the development endpoints can show what the jobs did and run them on demand.
"""

import logging
from collections.abc import Callable, Coroutine
from dataclasses import dataclass
from datetime import UTC, datetime
from typing import Any

from apscheduler.events import EVENT_JOB_ERROR, EVENT_JOB_EXECUTED, JobExecutionEvent
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.base import BaseTrigger

from pleeno.core.errors import NotFoundError

logger = logging.getLogger(__name__)

JobFunc = Callable[[], Coroutine[Any, Any, dict[str, Any] | None]]

# Agencies keep their own timezones; the scheduler itself ticks in UTC
SCHEDULER_TIMEZONE = "UTC"

JOB_DEFAULTS = {
    "coalesce": True,
    "max_instances": 1,
    "misfire_grace_time": 5 * 60,
}


@dataclass
class RegisteredJob:
    func: JobFunc
    trigger: BaseTrigger
    description: str = ""
    last_run_at: datetime | None = None
    last_result: dict[str, Any] | None = None
    last_error: str | None = None

    def record(self, result: Any = None, error: BaseException | None = None) -> None:
        self.last_run_at = datetime.now(UTC)
        self.last_result = result if isinstance(result, dict) else None
        self.last_error = str(error) if error else None


_scheduler: AsyncIOScheduler | None = None
_jobs: dict[str, RegisteredJob] = {}


def _on_job_event(event: JobExecutionEvent) -> None:
    job = _jobs.get(event.job_id)
    if event.exception:
        logger.error(f"Job {event.job_id} failed: {event.exception}", exc_info=event.exception)
    else:
        logger.info(f"Job {event.job_id} finished")
    if job:
        job.record(event.retval, event.exception)


def _schedule(job_id: str, job: RegisteredJob) -> None:
    _scheduler.add_job(
        job.func,
        trigger=job.trigger,
        id=job_id,
        name=job.description or job_id,
        replace_existing=True,
    )
    logger.info(f"Scheduled job {job_id} ({job.trigger})")


def get_scheduler() -> AsyncIOScheduler | None:
    return _scheduler


def register_job(job_id: str, func: JobFunc, trigger: BaseTrigger, description: str = "") -> None:
    """
    Register a periodic job.

    Jobs registered before ``start_scheduler`` are scheduled when it starts,
    later registrations are scheduled straight away.
    """
    _jobs[job_id] = RegisteredJob(func=func, trigger=trigger, description=description)
    if _scheduler is not None:
        _schedule(job_id, _jobs[job_id])


async def start_scheduler() -> AsyncIOScheduler:
    global _scheduler

    if _scheduler is not None and _scheduler.running:
        logger.warning("Scheduler already running")
        return _scheduler

    _scheduler = AsyncIOScheduler(timezone=SCHEDULER_TIMEZONE, job_defaults=JOB_DEFAULTS)
    _scheduler.add_listener(_on_job_event, EVENT_JOB_EXECUTED | EVENT_JOB_ERROR)
    for job_id, job in _jobs.items():
        _schedule(job_id, job)

    _scheduler.start()
    logger.info(f"Background scheduler started with {len(_jobs)} jobs")
    return _scheduler


async def stop_scheduler() -> None:
    """Shut the scheduler down, letting running jobs finish."""
    global _scheduler

    if _scheduler is None or not _scheduler.running:
        return

    _scheduler.shutdown(wait=True)
    _scheduler = None
    logger.info("Background scheduler stopped")


def _get_job(job_id: str) -> RegisteredJob:
    job = _jobs.get(job_id)
    if job is None:
        raise NotFoundError("Job", job_id)
    return job


async def run_job_now(job_id: str) -> dict[str, Any]:
    """
    Run a registered job immediately, outside its schedule.

    A failing job is reported in the returned dict rather than raised, so
    the caller always sees what happened.

    Raises:
        NotFoundError: If no job is registered under ``job_id``
    """
    job = _get_job(job_id)
    logger.info(f"Running job {job_id} on demand")

    try:
        result = await job.func()
    except Exception as e:
        logger.exception(f"On-demand run of job {job_id} failed")
        job.record(error=e)
        return {"job_id": job_id, "status": "error", "error": str(e)}

    job.record(result)
    return {"job_id": job_id, "status": "success", "result": result}


def describe_jobs() -> list[dict[str, Any]]:
    """Registered jobs with their schedule state and last outcome."""
    described = []
    for job_id, job in _jobs.items():
        scheduled = _scheduler.get_job(job_id) if _scheduler is not None else None
        next_run = scheduled.next_run_time if scheduled else None
        described.append(
            {
                "job_id": job_id,
                "description": job.description,
                "trigger": str(job.trigger),
                "scheduled": scheduled is not None,
                "paused": scheduled is not None and next_run is None,
                "next_run_time": next_run.isoformat() if next_run else None,
                "last_run_at": job.last_run_at.isoformat() if job.last_run_at else None,
                "last_result": job.last_result,
                "last_error": job.last_error,
            }
        )
    return described


def set_job_paused(job_id: str, paused: bool) -> bool:
    """
    Pause or resume a scheduled job.

    Returns:
        False when the scheduler is not running

    Raises:
        NotFoundError: If no job is registered under ``job_id``
    """
    _get_job(job_id)
    if _scheduler is None or _scheduler.get_job(job_id) is None:
        return False

    if paused:
        _scheduler.pause_job(job_id)
    else:
        _scheduler.resume_job(job_id)
    logger.info(f"Job {job_id} {'paused' if paused else 'resumed'}")
    return True
