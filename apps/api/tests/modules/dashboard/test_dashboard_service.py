"""
Unit tests for the dashboard service layer.
"""

from datetime import date, time
from decimal import Decimal
from types import SimpleNamespace
from unittest.mock import AsyncMock, patch
from uuid import uuid4

import pytest

from pleeno.core.errors import NotFoundError
from pleeno.modules.dashboard.schemas import CashFlowGrouping, CommissionPeriod
from pleeno.modules.dashboard.service import (
    bucket_start,
    build_cash_flow,
    build_status_summary,
    export_cash_flow_projection,
    get_cash_flow_projection,
    get_commission_by_college,
    get_kpis,
    get_overdue_payments,
    period_range,
)
from pleeno.modules.payments.models import InstallmentStatus
from pleeno.modules.reports.exporters import ExportFormat


def _agency():
    return SimpleNamespace(
        id=uuid4(),
        name="Southern Cross Education",
        currency="AUD",
        timezone="Australia/Brisbane",
        overdue_cutoff_time=time(17, 0),
        due_soon_threshold_days=4,
    )


class TestPeriodRange:
    today = date(2025, 5, 20)

    def test_all_time(self):
        assert period_range(CommissionPeriod.ALL, self.today) == (None, None)

    def test_year(self):
        assert period_range(CommissionPeriod.YEAR, self.today) == (
            date(2025, 1, 1),
            date(2025, 12, 31),
        )

    def test_quarter(self):
        assert period_range(CommissionPeriod.QUARTER, self.today) == (
            date(2025, 4, 1),
            date(2025, 6, 30),
        )
        assert period_range(CommissionPeriod.QUARTER, date(2025, 12, 31)) == (
            date(2025, 10, 1),
            date(2025, 12, 31),
        )

    def test_month(self):
        assert period_range(CommissionPeriod.MONTH, date(2024, 2, 10)) == (
            date(2024, 2, 1),
            date(2024, 2, 29),
        )


class TestBuildStatusSummary:
    def test_zero_fills_missing_statuses(self):
        summary = build_status_summary(
            [
                {"status": InstallmentStatus.PAID, "count": 3, "total_amount": Decimal("1500")},
                {"status": InstallmentStatus.OVERDUE, "count": 1, "total_amount": Decimal("200")},
            ]
        )

        assert [s.status for s in summary.statuses] == list(InstallmentStatus)
        by_status = {s.status: s for s in summary.statuses}
        assert by_status[InstallmentStatus.PENDING].count == 0
        assert by_status[InstallmentStatus.PENDING].total_amount == Decimal("0.00")
        assert summary.total_count == 4
        assert summary.total_amount == Decimal("1700.00")

    def test_empty(self):
        summary = build_status_summary([])
        assert summary.total_count == 0
        assert summary.total_amount == Decimal("0.00")


class TestGetKpis:
    @pytest.mark.asyncio
    async def test_collection_rate(self, mock_db):
        agency = _agency()
        with (
            patch("pleeno.modules.dashboard.service.AgencyRepository") as mock_agencies,
            patch("pleeno.modules.dashboard.service.repository") as mock_repo,
        ):
            mock_agencies.get_by_id = AsyncMock(return_value=agency)
            mock_repo.collection_totals = AsyncMock(
                return_value={"due": Decimal("4000"), "paid": Decimal("3000")}
            )
            mock_repo.count_active_students = AsyncMock(return_value=12)
            mock_repo.count_active_plans = AsyncMock(return_value=9)
            mock_repo.outstanding_amount = AsyncMock(return_value=Decimal("15250.5"))
            mock_repo.earned_commission_total = AsyncMock(return_value=Decimal("2100"))

            kpis = await get_kpis(mock_db, agency.id)

            assert kpis.active_students == 12
            assert kpis.active_payment_plans == 9
            assert kpis.outstanding_amount == Decimal("15250.50")
            assert kpis.collection_rate == Decimal("75.00")
            assert kpis.currency == "AUD"

    @pytest.mark.asyncio
    async def test_nothing_due_gives_zero_rate(self, mock_db):
        agency = _agency()
        with (
            patch("pleeno.modules.dashboard.service.AgencyRepository") as mock_agencies,
            patch("pleeno.modules.dashboard.service.repository") as mock_repo,
        ):
            mock_agencies.get_by_id = AsyncMock(return_value=agency)
            mock_repo.collection_totals = AsyncMock(return_value={"due": 0, "paid": 0})
            mock_repo.count_active_students = AsyncMock(return_value=0)
            mock_repo.count_active_plans = AsyncMock(return_value=0)
            mock_repo.outstanding_amount = AsyncMock(return_value=0)
            mock_repo.earned_commission_total = AsyncMock(return_value=0)

            kpis = await get_kpis(mock_db, agency.id)

            assert kpis.collection_rate == Decimal("0.00")

    @pytest.mark.asyncio
    async def test_unknown_agency(self, mock_db):
        with patch("pleeno.modules.dashboard.service.AgencyRepository") as mock_agencies:
            mock_agencies.get_by_id = AsyncMock(return_value=None)

            with pytest.raises(NotFoundError):
                await get_kpis(mock_db, uuid4())


class TestOverduePayments:
    @pytest.mark.asyncio
    async def test_days_overdue(self, mock_db):
        agency = _agency()
        row = {
            "id": uuid4(),
            "payment_plan_id": uuid4(),
            "installment_number": 2,
            "student_id": uuid4(),
            "student_name": "Maria Santos",
            "college_id": uuid4(),
            "college_name": "Sydney Business College",
            "amount": Decimal("500"),
            "currency": "AUD",
            "due_date": date(2025, 3, 1),
        }
        with (
            patch("pleeno.modules.dashboard.service.AgencyRepository") as mock_agencies,
            patch("pleeno.modules.dashboard.service.repository") as mock_repo,
            patch(
                "pleeno.modules.dashboard.service._local_today", return_value=date(2025, 3, 11)
            ),
        ):
            mock_agencies.get_by_id = AsyncMock(return_value=agency)
            mock_repo.overdue_installments = AsyncMock(return_value=[row])

            result = await get_overdue_payments(mock_db, agency.id)

            assert result.total_count == 1
            assert result.overdue_payments[0].days_overdue == 10
            assert result.total_amount == Decimal("500.00")


class TestCommissionByCollege:
    @pytest.mark.asyncio
    async def test_outstanding_never_negative(self, mock_db):
        college_id = uuid4()
        with patch("pleeno.modules.dashboard.service.repository") as mock_repo:
            mock_repo.commission_by_college = AsyncMock(
                return_value=[
                    {
                        "college_id": college_id,
                        "college_name": "Sydney Business College",
                        "payment_plan_count": 3,
                        "expected_commission": Decimal("900"),
                        "earned_commission": Decimal("950"),
                    }
                ]
            )

            result = await get_commission_by_college(mock_db, uuid4())

            assert result.period == CommissionPeriod.ALL
            assert result.colleges[0].outstanding_commission == Decimal("0")
            assert mock_repo.commission_by_college.call_args.kwargs == {
                "start_from": None,
                "start_to": None,
            }

    @pytest.mark.asyncio
    async def test_period_uses_agency_today(self, mock_db):
        agency = _agency()
        with (
            patch("pleeno.modules.dashboard.service.AgencyRepository") as mock_agencies,
            patch("pleeno.modules.dashboard.service.repository") as mock_repo,
            patch(
                "pleeno.modules.dashboard.service._local_today", return_value=date(2025, 8, 15)
            ),
        ):
            mock_agencies.get_by_id = AsyncMock(return_value=agency)
            mock_repo.commission_by_college = AsyncMock(return_value=[])

            await get_commission_by_college(mock_db, agency.id, CommissionPeriod.QUARTER)

            assert mock_repo.commission_by_college.call_args.kwargs == {
                "start_from": date(2025, 7, 1),
                "start_to": date(2025, 9, 30),
            }


def _cash_row(due: date, amount: str, status=InstallmentStatus.PENDING, paid=None):
    return {
        "id": uuid4(),
        "amount": Decimal(amount),
        "paid_amount": Decimal(paid) if paid is not None else None,
        "status": status,
        "due_date": due,
        "student_name": "Maria Santos",
        "college_name": "Sydney Business College",
    }


class TestBucketStart:
    def test_week_starts_monday(self):
        # 2025-05-22 is a Thursday
        assert bucket_start(date(2025, 5, 22), CashFlowGrouping.WEEK) == date(2025, 5, 19)
        assert bucket_start(date(2025, 5, 19), CashFlowGrouping.WEEK) == date(2025, 5, 19)

    def test_month(self):
        assert bucket_start(date(2025, 2, 28), CashFlowGrouping.MONTH) == date(2025, 2, 1)

    def test_day(self):
        assert bucket_start(date(2025, 2, 28), CashFlowGrouping.DAY) == date(2025, 2, 28)


class TestBuildCashFlow:
    def test_paid_and_expected_split(self):
        rows = [
            _cash_row(date(2025, 5, 20), "500", InstallmentStatus.PAID, paid="500"),
            _cash_row(date(2025, 5, 21), "400", InstallmentStatus.PARTIAL, paid="150"),
            _cash_row(date(2025, 5, 28), "300"),
        ]

        result = build_cash_flow(
            rows, date(2025, 5, 20), date(2025, 6, 1), CashFlowGrouping.WEEK, "AUD"
        )

        assert [b.date_bucket for b in result.buckets] == [
            date(2025, 5, 19),
            date(2025, 5, 26),
        ]
        first, second = result.buckets
        assert first.paid_amount == Decimal("650.00")
        assert first.expected_amount == Decimal("250.00")
        assert first.installment_count == 2
        assert second.expected_amount == Decimal("300.00")
        assert result.total_paid == Decimal("650.00")
        assert result.total_expected == Decimal("550.00")

    def test_empty_buckets_zero_filled(self):
        result = build_cash_flow(
            [], date(2025, 1, 15), date(2025, 4, 14), CashFlowGrouping.MONTH, "AUD"
        )

        assert [b.date_bucket for b in result.buckets] == [
            date(2025, 1, 1),
            date(2025, 2, 1),
            date(2025, 3, 1),
            date(2025, 4, 1),
        ]
        assert all(b.installment_count == 0 for b in result.buckets)
        assert result.total_expected == Decimal("0.00")

    def test_paid_without_recorded_amount_counts_full_amount(self):
        rows = [_cash_row(date(2025, 5, 20), "500", InstallmentStatus.PAID)]

        result = build_cash_flow(
            rows, date(2025, 5, 20), date(2025, 5, 20), CashFlowGrouping.DAY, "AUD"
        )

        assert result.buckets[0].paid_amount == Decimal("500.00")
        assert result.buckets[0].installments[0].status == InstallmentStatus.PAID


class TestCashFlowProjection:
    @pytest.mark.asyncio
    async def test_range_starts_at_agency_today(self, mock_db):
        agency = _agency()
        with (
            patch("pleeno.modules.dashboard.service.AgencyRepository") as mock_agencies,
            patch("pleeno.modules.dashboard.service.repository") as mock_repo,
            patch(
                "pleeno.modules.dashboard.service._local_today", return_value=date(2025, 5, 20)
            ),
        ):
            mock_agencies.get_by_id = AsyncMock(return_value=agency)
            mock_repo.installments_due_between = AsyncMock(return_value=[])

            result = await get_cash_flow_projection(
                mock_db, agency.id, days=30, group_by=CashFlowGrouping.DAY
            )

            args = mock_repo.installments_due_between.call_args.args
            assert args[2:] == (date(2025, 5, 20), date(2025, 6, 19))
            assert len(result.buckets) == 31
            assert result.currency == "AUD"

    @pytest.mark.asyncio
    async def test_csv_export(self, mock_db):
        agency = _agency()
        with (
            patch("pleeno.modules.dashboard.service.AgencyRepository") as mock_agencies,
            patch("pleeno.modules.dashboard.service.repository") as mock_repo,
            patch(
                "pleeno.modules.dashboard.service._local_today", return_value=date(2025, 5, 20)
            ),
        ):
            mock_agencies.get_by_id = AsyncMock(return_value=agency)
            mock_repo.installments_due_between = AsyncMock(
                return_value=[_cash_row(date(2025, 5, 22), "300")]
            )

            content, filename = await export_cash_flow_projection(
                mock_db, agency.id, ExportFormat.CSV, days=6, group_by=CashFlowGrouping.WEEK
            )

            lines = content.decode("utf-8-sig").splitlines()
            assert lines[0] == (
                '"Period Starting","Paid Amount","Expected Amount","Installments"'
            )
            assert lines[1] == '"2025-05-19","0.00","300.00","1"'
            assert filename.startswith("cash_flow_projection_")
            assert filename.endswith(".csv")
