"""
Unit tests for the report service layer.

These tests cover:
- Contract expiration status
- Export column selection
- Payment plans report paging and summary
- Commission report assembly and date validation
"""

from datetime import date, timedelta
from decimal import Decimal
from unittest.mock import AsyncMock, patch
from uuid import uuid4

import pytest

from pleeno.core.errors import ValidationFailedError
from pleeno.modules.payments.models import PaymentPlanStatus
from pleeno.modules.reports.exporters import ExportFormat
from pleeno.modules.reports.schemas import ContractStatus, PaymentPlanReportFilters
from pleeno.modules.reports.service import (
    PAYMENT_PLAN_EXPORT_COLUMNS,
    build_commission_rows,
    contract_status,
    export_commissions_report,
    export_payment_plans_report,
    get_commissions_report,
    get_payment_plans_report,
    resolve_export_columns,
    summarize_commissions,
    to_report_row,
)


def _plan_row(**overrides):
    values = {
        "id": uuid4(),
        "reference_number": "PP-001",
        "student_id": uuid4(),
        "student_name": "Maria Santos",
        "college_id": uuid4(),
        "college_name": "Sydney Business College",
        "branch_id": uuid4(),
        "branch_name": "CBD Campus",
        "branch_city": "Sydney",
        "program_name": "Diploma of Business",
        "total_amount": Decimal("1000.00"),
        "currency": "AUD",
        "commission_rate_percent": Decimal("15.00"),
        "expected_commission": Decimal("150.00"),
        "earned_commission": Decimal("75.00"),
        "total_paid": Decimal("500.00"),
        "status": PaymentPlanStatus.ACTIVE,
        "start_date": date(2025, 1, 1),
        "contract_expiration_date": None,
    }
    values.update(overrides)
    return values


def _totals(count: int = 1):
    return {
        "total_count": count,
        "total_plan_amount": Decimal("1000"),
        "total_paid_amount": Decimal("500"),
        "total_expected_commission": Decimal("150"),
        "total_earned_commission": Decimal("75"),
    }


class TestContractStatus:
    today = date(2025, 6, 1)

    def test_no_date(self):
        assert contract_status(None, self.today) == (None, None)

    def test_expired(self):
        assert contract_status(date(2025, 5, 31), self.today) == (-1, ContractStatus.EXPIRED)

    def test_expiring_soon_boundary(self):
        expiry = self.today + timedelta(days=30)
        assert contract_status(expiry, self.today) == (30, ContractStatus.EXPIRING_SOON)
        assert contract_status(self.today, self.today) == (0, ContractStatus.EXPIRING_SOON)

    def test_active(self):
        expiry = self.today + timedelta(days=31)
        assert contract_status(expiry, self.today) == (31, ContractStatus.ACTIVE)


class TestToReportRow:
    def test_remaining_and_contract_fields(self):
        row = to_report_row(
            _plan_row(contract_expiration_date=date(2025, 6, 11)), date(2025, 6, 1)
        )

        assert row.total_paid == Decimal("500.00")
        assert row.total_remaining == Decimal("500.00")
        assert row.days_until_contract_expiration == 10
        assert row.contract_status == ContractStatus.EXPIRING_SOON

    def test_remaining_never_negative(self):
        row = to_report_row(_plan_row(total_paid=Decimal("1100")), date(2025, 6, 1))
        assert row.total_remaining == Decimal("0")

    def test_missing_paid_total(self):
        row = to_report_row(_plan_row(total_paid=None), date(2025, 6, 1))
        assert row.total_paid == Decimal("0.00")


class TestResolveExportColumns:
    def test_default_columns(self):
        assert resolve_export_columns(None) == list(PAYMENT_PLAN_EXPORT_COLUMNS)

    def test_keeps_order_and_drops_repeats(self):
        assert resolve_export_columns(["status", "student_name", "status"]) == [
            "status",
            "student_name",
        ]

    def test_unknown_column(self):
        with pytest.raises(ValidationFailedError) as exc_info:
            resolve_export_columns(["student_name", "password_hash"])
        assert exc_info.value.error_code == "INVALID_COLUMNS"

    def test_internal_ids_not_exportable(self):
        with pytest.raises(ValidationFailedError):
            resolve_export_columns(["student_id"])


class TestPaymentPlansReport:
    @pytest.mark.asyncio
    async def test_paging_and_summary(self, mock_db, admin_user):
        with patch("pleeno.modules.reports.service.repository") as mock_repo:
            mock_repo.PAYMENT_PLAN_SORT_COLUMNS = {"created_at": None}
            mock_repo.payment_plan_rows = AsyncMock(return_value=[_plan_row()])
            mock_repo.payment_plan_totals = AsyncMock(return_value=_totals(51))

            report = await get_payment_plans_report(
                mock_db, admin_user.agency_id, PaymentPlanReportFilters(), page=3, page_size=25
            )

            assert report.pagination.total_pages == 3
            assert report.pagination.total_count == 51
            assert report.summary.total_plan_amount == Decimal("1000.00")
            assert len(report.data) == 1
            assert mock_repo.payment_plan_rows.call_args.kwargs["offset"] == 50

    @pytest.mark.asyncio
    async def test_empty_report(self, mock_db, admin_user):
        with patch("pleeno.modules.reports.service.repository") as mock_repo:
            mock_repo.PAYMENT_PLAN_SORT_COLUMNS = {"created_at": None}
            mock_repo.payment_plan_rows = AsyncMock(return_value=[])
            mock_repo.payment_plan_totals = AsyncMock(return_value=_totals(0))

            report = await get_payment_plans_report(
                mock_db, admin_user.agency_id, PaymentPlanReportFilters()
            )

            assert report.data == []
            assert report.pagination.total_pages == 0

    @pytest.mark.asyncio
    async def test_contract_status_uses_agency_date(self, mock_db, admin_user, agency_calendar):
        agency_calendar.return_value = date(2025, 3, 3)
        row = _plan_row(contract_expiration_date=date(2025, 3, 2))
        with patch("pleeno.modules.reports.service.repository") as mock_repo:
            mock_repo.PAYMENT_PLAN_SORT_COLUMNS = {"created_at": None}
            mock_repo.payment_plan_rows = AsyncMock(return_value=[row])
            mock_repo.payment_plan_totals = AsyncMock(return_value=_totals())

            report = await get_payment_plans_report(
                mock_db, admin_user.agency_id, PaymentPlanReportFilters()
            )

            assert report.data[0].contract_status == ContractStatus.EXPIRED
            agency_calendar.assert_awaited_once_with(mock_db, admin_user.agency_id)

    @pytest.mark.asyncio
    async def test_invalid_sort_column(self, mock_db, admin_user):
        with pytest.raises(ValidationFailedError) as exc_info:
            await get_payment_plans_report(
                mock_db, admin_user.agency_id, PaymentPlanReportFilters(), sort_by="password"
            )
        assert exc_info.value.error_code == "INVALID_SORT_COLUMN"

    def test_filters_reject_reversed_range(self):
        with pytest.raises(ValueError):
            PaymentPlanReportFilters(date_from=date(2025, 2, 1), date_to=date(2025, 1, 1))


class TestPaymentPlansExport:
    @pytest.mark.asyncio
    async def test_csv_export(self, mock_db, admin_user):
        with patch("pleeno.modules.reports.service.repository") as mock_repo:
            mock_repo.PAYMENT_PLAN_SORT_COLUMNS = {"created_at": None}
            mock_repo.payment_plan_rows = AsyncMock(return_value=[_plan_row()])

            content, filename = await export_payment_plans_report(
                mock_db,
                admin_user,
                PaymentPlanReportFilters(),
                ExportFormat.CSV,
                columns=["student_name", "total_amount", "total_remaining"],
            )

            lines = content.decode("utf-8-sig").splitlines()
            assert lines[0] == '"Student Name","Total Amount","Total Remaining"'
            assert lines[1] == '"Maria Santos","1000.00","500.00"'
            assert filename.startswith("payment_plans_report_")
            assert filename.endswith(".csv")
            mock_repo.payment_plan_rows.assert_awaited_once()
            assert "limit" not in mock_repo.payment_plan_rows.call_args.kwargs

    @pytest.mark.asyncio
    async def test_pdf_export(self, mock_db, admin_user):
        with patch("pleeno.modules.reports.service.repository") as mock_repo:
            mock_repo.PAYMENT_PLAN_SORT_COLUMNS = {"created_at": None}
            mock_repo.payment_plan_rows = AsyncMock(return_value=[_plan_row()])
            mock_repo.payment_plan_totals = AsyncMock(return_value=_totals())

            content, filename = await export_payment_plans_report(
                mock_db,
                admin_user,
                PaymentPlanReportFilters(statuses=[PaymentPlanStatus.ACTIVE]),
                ExportFormat.PDF,
            )

            assert content.startswith(b"%PDF")
            assert filename.endswith(".pdf")


def _branch_row(branch_id, **overrides):
    values = {
        "college_id": uuid4(),
        "college_name": "Sydney Business College",
        "branch_id": branch_id,
        "branch_name": "CBD Campus",
        "branch_city": "Sydney",
        "commission_rate_percent": Decimal("10"),
        "plan_count": 2,
        "student_count": 2,
        "total_paid": Decimal("3000"),
        "earned_commission": Decimal("300"),
        "outstanding_commission": Decimal("50"),
    }
    values.update(overrides)
    return values


class TestCommissionRows:
    def test_plans_attached_to_their_branch(self):
        first, second = uuid4(), uuid4()
        plan = {
            "branch_id": first,
            "payment_plan_id": uuid4(),
            "student_id": uuid4(),
            "student_name": "Maria Santos",
            "total_amount": Decimal("2000"),
            "paid_amount": Decimal("1500"),
            "commission_paid_amount": Decimal("1000"),
        }

        rows = build_commission_rows([_branch_row(first), _branch_row(second)], [plan])

        assert len(rows[0].payment_plans) == 1
        assert rows[0].payment_plans[0].commission_earned == Decimal("100.00")
        assert rows[1].payment_plans == []

    def test_summary_totals(self):
        rows = build_commission_rows(
            [_branch_row(uuid4()), _branch_row(uuid4(), total_paid=Decimal("1000.50"))], []
        )

        summary = summarize_commissions(rows)

        assert summary.total_paid == Decimal("4000.50")
        assert summary.total_earned == Decimal("600.00")
        assert summary.total_outstanding == Decimal("100.00")


class TestCommissionsReport:
    @pytest.mark.asyncio
    async def test_reversed_dates_rejected(self, mock_db, admin_user):
        with pytest.raises(ValidationFailedError) as exc_info:
            await get_commissions_report(
                mock_db,
                admin_user.agency_id,
                date_from=date(2025, 3, 1),
                date_to=date(2025, 1, 1),
            )
        assert exc_info.value.error_code == "INVALID_DATE_RANGE"

    @pytest.mark.asyncio
    async def test_city_filter_passed_through(self, mock_db, admin_user):
        branch_id = uuid4()
        with patch("pleeno.modules.reports.service.repository") as mock_repo:
            mock_repo.commission_rows = AsyncMock(return_value=[_branch_row(branch_id)])
            mock_repo.branch_plan_details = AsyncMock(return_value=[])

            report = await get_commissions_report(
                mock_db,
                admin_user.agency_id,
                date_from=date(2025, 1, 1),
                date_to=date(2025, 12, 31),
                city="Sydney",
            )

            assert report.city == "Sydney"
            assert mock_repo.commission_rows.call_args.kwargs["city"] == "Sydney"
            assert mock_repo.commission_rows.call_args.kwargs["today"] == date(2025, 6, 1)
            mock_repo.branch_plan_details.assert_awaited_once_with(
                mock_db, admin_user.agency_id, [branch_id]
            )

    @pytest.mark.asyncio
    async def test_csv_export_has_no_drill_down(self, mock_db, admin_user):
        with patch("pleeno.modules.reports.service.repository") as mock_repo:
            mock_repo.commission_rows = AsyncMock(return_value=[_branch_row(uuid4())])
            mock_repo.branch_plan_details = AsyncMock(return_value=[])

            content, filename = await export_commissions_report(
                mock_db,
                admin_user,
                ExportFormat.CSV,
                date_from=date(2025, 1, 1),
                date_to=date(2025, 12, 31),
            )

            lines = content.decode("utf-8-sig").splitlines()
            assert len(lines) == 2
            assert lines[0].startswith('"College","Branch","City"')
            assert filename.startswith("commission_report_")
