"""
Unit tests for the job registry.
"""

from unittest.mock import AsyncMock, patch

import pytest
from apscheduler.triggers.interval import IntervalTrigger

from pleeno.core import scheduler
from pleeno.core.errors import NotFoundError


@pytest.fixture(autouse=True)
def empty_registry():
    with patch.dict(scheduler._jobs, clear=True), patch.object(scheduler, "_scheduler", None):
        yield


class TestRunJobNow:
    @pytest.mark.asyncio
    async def test_result_recorded(self):
        job = AsyncMock(return_value={"total_marked": 3})
        scheduler.register_job("mark", job, IntervalTrigger(hours=1), "Mark overdue")

        outcome = await scheduler.run_job_now("mark")

        assert outcome == {"job_id": "mark", "status": "success", "result": {"total_marked": 3}}
        described = scheduler.describe_jobs()[0]
        assert described["description"] == "Mark overdue"
        assert described["last_result"] == {"total_marked": 3}
        assert described["last_run_at"] is not None
        assert described["scheduled"] is False

    @pytest.mark.asyncio
    async def test_failure_reported_not_raised(self):
        scheduler.register_job(
            "remind", AsyncMock(side_effect=RuntimeError("smtp down")), IntervalTrigger(hours=1)
        )

        outcome = await scheduler.run_job_now("remind")

        assert outcome["status"] == "error"
        assert outcome["error"] == "smtp down"
        assert scheduler.describe_jobs()[0]["last_error"] == "smtp down"

    @pytest.mark.asyncio
    async def test_unknown_job(self):
        with pytest.raises(NotFoundError):
            await scheduler.run_job_now("missing")


class TestPause:
    def test_not_running(self):
        scheduler.register_job("mark", AsyncMock(), IntervalTrigger(hours=1))
        assert scheduler.set_job_paused("mark", True) is False

    def test_unknown_job(self):
        with pytest.raises(NotFoundError):
            scheduler.set_job_paused("missing", True)
