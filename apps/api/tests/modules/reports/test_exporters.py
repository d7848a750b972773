"""
Unit tests for CSV and PDF report rendering.
"""

import csv
import io
from datetime import UTC, date, datetime
from decimal import Decimal

from pleeno.modules.payments.models import PaymentPlanStatus
from pleeno.modules.reports.exporters import (
    content_disposition,
    export_filename,
    format_cell,
    render_csv,
    render_pdf,
)


def _parse(content: bytes) -> list[list[str]]:
    return list(csv.reader(io.StringIO(content.decode("utf-8-sig"))))


class TestFormatCell:
    def test_money_two_decimals(self):
        assert format_cell("total_amount", Decimal("1500")) == "1500.00"
        assert format_cell("earned_commission", Decimal("12.345")) == "12.35"
        assert format_cell("total_paid", 7) == "7.00"

    def test_rate_left_as_is(self):
        assert format_cell("commission_rate_percent", Decimal("12.5")) == "12.5"

    def test_dates_iso(self):
        assert format_cell("start_date", date(2025, 1, 9)) == "2025-01-09"
        assert format_cell("created_at", datetime(2025, 1, 9, 13, 30)) == "2025-01-09"

    def test_enum_value_and_none(self):
        assert format_cell("status", PaymentPlanStatus.ACTIVE) == "active"
        assert format_cell("student_name", None) == ""


class TestRenderCsv:
    def test_bom_and_quoting(self):
        content = render_csv(
            [{"student_name": 'Ana "AJ" Lee', "total_amount": Decimal("100"), "status": None}],
            ["student_name", "total_amount", "status"],
        )

        assert content.startswith(b"\xef\xbb\xbf")
        text = content.decode("utf-8-sig")
        assert text.splitlines()[0] == '"Student Name","Total Amount","Status"'
        assert text.splitlines()[1] == '"Ana ""AJ"" Lee","100.00",""'

    def test_commas_and_newlines_survive(self):
        content = render_csv(
            [{"program_name": "Business, Level 2\nEvening"}], ["program_name"]
        )

        rows = _parse(content)
        assert rows[1] == ["Business, Level 2\nEvening"]

    def test_header_only_when_no_rows(self):
        rows = _parse(render_csv([], ["student_name", "currency"]))
        assert rows == [["Student Name", "Currency"]]

    def test_unicode_names(self):
        rows = _parse(render_csv([{"student_name": "José Müller"}], ["student_name"]))
        assert rows[1] == ["José Müller"]


class TestRenderPdf:
    def test_produces_pdf(self):
        content = render_pdf(
            "Payment Plans Report",
            [{"student_name": "A & B <test>", "total_amount": Decimal("10")}],
            ["student_name", "total_amount"],
            subtitle_lines=["Generated 2025-01-01"],
            summary=[("Plans", "1")],
        )
        assert content.startswith(b"%PDF")

    def test_empty_rows(self):
        assert render_pdf("Commission Report", [], ["college_name"]).startswith(b"%PDF")


class TestFilenames:
    def test_export_filename(self):
        now = datetime(2025, 2, 3, 4, 5, 6, tzinfo=UTC)
        assert export_filename("payment_plans_report", "csv", now) == (
            "payment_plans_report_2025-02-03T04-05-06.csv"
        )

    def test_content_disposition(self):
        assert content_disposition("x.pdf") == {
            "Content-Disposition": 'attachment; filename="x.pdf"'
        }
