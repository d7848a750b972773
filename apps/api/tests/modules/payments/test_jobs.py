"""
Unit tests for the installment background jobs.
"""

from datetime import UTC, date, datetime, time
from decimal import Decimal
from types import SimpleNamespace
from unittest.mock import ANY, AsyncMock, MagicMock, patch
from uuid import uuid4

import pytest

from pleeno.modules.payments.jobs import (
    JOB_ID_DUE_SOON_REMINDERS,
    JOB_ID_MARK_OVERDUE,
    _mark_agency_overdue,
    _remind_agency,
    agency_local_now,
    is_past_cutoff,
    mark_overdue_installments,
    register_payment_jobs,
)
from pleeno.modules.payments.models import InstallmentStatus


def _agency(**overrides):
    values = {
        "id": uuid4(),
        "name": "Southern Cross Education",
        "timezone": "Australia/Brisbane",
        "overdue_cutoff_time": time(17, 0),
        "due_soon_threshold_days": 4,
    }
    values.update(overrides)
    return SimpleNamespace(**values)


def _session(db):
    """async_session_maker stand-in yielding ``db``."""
    session_cm = MagicMock()
    session_cm.__aenter__ = AsyncMock(return_value=db)
    session_cm.__aexit__ = AsyncMock(return_value=False)
    return MagicMock(return_value=session_cm)


class TestAgencyClock:
    def test_local_now_uses_agency_timezone(self):
        # 08:00 UTC is 18:00 in Brisbane (UTC+10, no DST)
        now = datetime(2025, 3, 10, 8, 0, tzinfo=UTC)
        local = agency_local_now(_agency(), now)
        assert local.hour == 18
        assert local.date() == date(2025, 3, 10)

    def test_local_date_can_differ_from_utc(self):
        now = datetime(2025, 3, 10, 20, 0, tzinfo=UTC)
        assert agency_local_now(_agency(), now).date() == date(2025, 3, 11)

    def test_unknown_timezone_falls_back(self):
        now = datetime(2025, 3, 10, 8, 0, tzinfo=UTC)
        local = agency_local_now(_agency(timezone="Mars/Olympus_Mons"), now)
        assert local.hour == 18

    def test_cutoff(self):
        agency = _agency()
        brisbane = agency_local_now(agency, datetime(2025, 3, 10, 6, 59, tzinfo=UTC))
        assert is_past_cutoff(agency, brisbane) is False
        brisbane = agency_local_now(agency, datetime(2025, 3, 10, 7, 0, tzinfo=UTC))
        assert is_past_cutoff(agency, brisbane) is True


class TestMarkAgencyOverdue:
    @pytest.mark.asyncio
    async def test_marks_and_emails(self, mock_db, sample_plan):
        agency = _agency()
        installment = sample_plan.installments[0]
        now = datetime(2025, 3, 10, 8, 0, tzinfo=UTC)
        with (
            patch("pleeno.modules.payments.jobs.async_session_maker", _session(mock_db)),
            patch("pleeno.modules.payments.jobs.repository") as mock_repo,
            patch("pleeno.modules.payments.jobs.log_activity") as mock_log,
            patch(
                "pleeno.modules.payments.jobs.send_payment_overdue", new_callable=AsyncMock
            ) as mock_email,
        ):
            mock_repo.find_overdue_candidates = AsyncMock(
                return_value=[(installment, sample_plan)]
            )
            mock_email.return_value = True

            result = await _mark_agency_overdue(agency, now)

            assert installment.status == InstallmentStatus.OVERDUE
            assert result["marked"] == 1
            assert result["emailed"] == 1
            # 18:00 local is past the 17:00 cutoff
            mock_repo.find_overdue_candidates.assert_awaited_once_with(
                mock_db, agency.id, date(2025, 3, 10), True
            )
            assert mock_log.call_args.kwargs["user_id"] is None
            mock_db.commit.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_email_failure_keeps_status(self, mock_db, sample_plan):
        installment = sample_plan.installments[0]
        with (
            patch("pleeno.modules.payments.jobs.async_session_maker", _session(mock_db)),
            patch("pleeno.modules.payments.jobs.repository") as mock_repo,
            patch("pleeno.modules.payments.jobs.log_activity"),
            patch(
                "pleeno.modules.payments.jobs.send_payment_overdue", new_callable=AsyncMock
            ) as mock_email,
        ):
            mock_repo.find_overdue_candidates = AsyncMock(
                return_value=[(installment, sample_plan)]
            )
            mock_email.side_effect = RuntimeError("smtp down")

            result = await _mark_agency_overdue(_agency(), datetime(2025, 3, 10, tzinfo=UTC))

            assert installment.status == InstallmentStatus.OVERDUE
            assert result["marked"] == 1
            assert result["errors"] == 1
            mock_db.rollback.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_nothing_to_mark(self, mock_db):
        with (
            patch("pleeno.modules.payments.jobs.async_session_maker", _session(mock_db)),
            patch("pleeno.modules.payments.jobs.repository") as mock_repo,
        ):
            mock_repo.find_overdue_candidates = AsyncMock(return_value=[])

            result = await _mark_agency_overdue(_agency(), datetime(2025, 3, 10, tzinfo=UTC))

            assert result["marked"] == 0
            mock_db.commit.assert_not_awaited()


class TestMarkOverdueInstallments:
    @pytest.mark.asyncio
    async def test_agency_failure_does_not_stop_others(self, mock_db):
        first, second = _agency(), _agency()
        with (
            patch("pleeno.modules.payments.jobs.async_session_maker", _session(mock_db)),
            patch("pleeno.modules.payments.jobs.AgencyRepository") as mock_agencies,
            patch(
                "pleeno.modules.payments.jobs._mark_agency_overdue", new_callable=AsyncMock
            ) as mock_mark,
        ):
            mock_agencies.list_all = AsyncMock(return_value=[first, second])
            mock_mark.side_effect = [
                RuntimeError("db gone"),
                {"agency_id": str(second.id), "marked": 2, "emailed": 2, "errors": 0},
            ]

            result = await mark_overdue_installments(datetime(2025, 3, 10, tzinfo=UTC))

            assert result["total_marked"] == 2
            assert result["total_errors"] == 1
            assert len(result["agencies"]) == 2


class TestRemindAgency:
    @pytest.mark.asyncio
    async def test_sends_once_per_day(self, mock_db, sample_plan, make_installment):
        today = date(2025, 3, 10)
        fresh = make_installment(1, "500.00", student_due_date=date(2025, 3, 12))
        notified = make_installment(
            2, "500.00", student_due_date=date(2025, 3, 13), last_notified_date=today
        )
        with (
            patch("pleeno.modules.payments.jobs.async_session_maker", _session(mock_db)),
            patch("pleeno.modules.payments.jobs.repository") as mock_repo,
            patch(
                "pleeno.modules.payments.jobs.send_payment_due_soon", new_callable=AsyncMock
            ) as mock_email,
        ):
            mock_repo.find_due_soon = AsyncMock(
                return_value=[(fresh, sample_plan), (notified, sample_plan)]
            )
            mock_email.return_value = True

            result = await _remind_agency(_agency(), today)

            assert result["sent"] == 1
            assert result["skipped"] == 1
            assert fresh.last_notified_date == today
            mock_repo.find_due_soon.assert_awaited_once_with(
                mock_db, ANY, today, date(2025, 3, 14)
            )
            assert mock_email.call_args.kwargs["amount"] == Decimal("500.00")
            mock_db.commit.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_student_without_email_skipped(self, mock_db, sample_plan, make_installment):
        sample_plan.enrollment.student.email = None
        with (
            patch("pleeno.modules.payments.jobs.async_session_maker", _session(mock_db)),
            patch("pleeno.modules.payments.jobs.repository") as mock_repo,
            patch(
                "pleeno.modules.payments.jobs.send_payment_due_soon", new_callable=AsyncMock
            ) as mock_email,
        ):
            mock_repo.find_due_soon = AsyncMock(
                return_value=[(make_installment(1, "500.00"), sample_plan)]
            )

            result = await _remind_agency(_agency(), date(2025, 3, 10))

            assert result["skipped"] == 1
            mock_email.assert_not_called()
            mock_db.commit.assert_not_awaited()


def test_register_payment_jobs():
    with patch("pleeno.modules.payments.jobs.register_job") as mock_register:
        register_payment_jobs()

    job_ids = [c.kwargs["job_id"] for c in mock_register.call_args_list]
    assert job_ids == [JOB_ID_MARK_OVERDUE, JOB_ID_DUE_SOON_REMINDERS]
