"""
Report Exporters

Render report rows as CSV or PDF bytes.

CSV output is Excel friendly:
- UTF-8 with a byte order mark
- every field quoted, including empty ones
- money as plain 2-decimal numbers, dates as ISO yyyy-mm-dd

PDF output is a landscape A4 table built with ReportLab's platypus layer.
"""

import csv
import io
from collections.abc import Iterable, Mapping, Sequence
from datetime import date, datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import Any

from reportlab.lib import colors
from reportlab.lib.pagesizes import A4, landscape
from reportlab.lib.styles import getSampleStyleSheet
from reportlab.lib.units import cm
from reportlab.platypus import Paragraph, SimpleDocTemplate, Spacer, Table, TableStyle

from pleeno.modules.payments.commission import round_money

UTF8_BOM = "\ufeff"


class ExportFormat(str, Enum):
    CSV = "csv"
    PDF = "pdf"


CSV_MEDIA_TYPE = "text/csv; charset=utf-8"
PDF_MEDIA_TYPE = "application/pdf"
MEDIA_TYPES = {ExportFormat.CSV: CSV_MEDIA_TYPE, ExportFormat.PDF: PDF_MEDIA_TYPE}

COLUMN_LABELS = {
    "student_name": "Student Name",
    "college_name": "College",
    "branch_name": "Branch",
    "branch_city": "City",
    "program_name": "Program",
    "total_amount": "Total Amount",
    "currency": "Currency",
    "start_date": "Start Date",
    "commission_rate_percent": "Commission Rate (%)",
    "expected_commission": "Expected Commission",
    "earned_commission": "Earned Commission",
    "outstanding_commission": "Outstanding Commission",
    "status": "Status",
    "contract_expiration_date": "Contract Expiration",
    "installment_number": "Installment",
    "amount": "Amount",
    "student_due_date": "Due Date",
    "paid_date": "Paid Date",
    "paid_amount": "Paid Amount",
    "total_paid": "Total Paid",
    "plan_count": "Payment Plans",
    "student_count": "Students",
    "date_bucket": "Period Starting",
    "expected_amount": "Expected Amount",
    "installment_count": "Installments",
}


def column_label(column: str) -> str:
    return COLUMN_LABELS.get(column, column.replace("_", " ").title())


def format_cell(column: str, value: Any) -> str:
    """Format one value for export according to its column name."""
    if value is None:
        return ""
    if isinstance(value, Enum):
        value = value.value
    if "rate" in column and "percent" in column:
        return str(value)
    if "amount" in column or "commission" in column or column == "total_paid":
        return f"{round_money(value):.2f}"
    if isinstance(value, datetime):
        return value.date().isoformat()
    if isinstance(value, date):
        return value.isoformat()
    if isinstance(value, Decimal):
        return f"{value:.2f}"
    return str(value)


def export_filename(prefix: str, extension: str, now: datetime | None = None) -> str:
    """``<prefix>_<UTC timestamp>.<extension>``, safe for Content-Disposition."""
    now = now or datetime.now(timezone.utc)
    return f"{prefix}_{now.strftime('%Y-%m-%dT%H-%M-%S')}.{extension}"


def content_disposition(filename: str) -> dict[str, str]:
    return {"Content-Disposition": f'attachment; filename="{filename}"'}


def render_csv(rows: Iterable[Mapping[str, Any]], columns: Sequence[str]) -> bytes:
    """
    Render rows as a BOM-prefixed, fully quoted CSV.

    Args:
        rows: Mappings keyed by column name; missing keys export as empty
        columns: Column keys in output order; headers use their labels
    """
    buffer = io.StringIO()
    writer = csv.writer(buffer, quoting=csv.QUOTE_ALL, lineterminator="\r\n")
    writer.writerow([column_label(c) for c in columns])
    for row in rows:
        writer.writerow([format_cell(c, row.get(c)) for c in columns])
    return (UTF8_BOM + buffer.getvalue()).encode("utf-8")


def render_pdf(
    title: str,
    rows: Iterable[Mapping[str, Any]],
    columns: Sequence[str],
    *,
    subtitle_lines: Sequence[str] = (),
    summary: Sequence[tuple[str, str]] = (),
) -> bytes:
    """
    Render rows as a PDF table with a title block and an optional summary.

    Cells are wrapped in Paragraphs so long names do not overflow columns.
    """
    styles = getSampleStyleSheet()
    cell_style = styles["BodyText"]
    cell_style.fontSize = 8
    cell_style.leading = 10

    buffer = io.BytesIO()
    doc = SimpleDocTemplate(
        buffer,
        pagesize=landscape(A4),
        leftMargin=1.5 * cm,
        rightMargin=1.5 * cm,
        topMargin=1.5 * cm,
        bottomMargin=1.5 * cm,
        title=title,
    )

    story: list[Any] = [Paragraph(_escape(title), styles["Title"])]
    for line in subtitle_lines:
        story.append(Paragraph(_escape(line), styles["Normal"]))
    story.append(Spacer(1, 0.5 * cm))

    data = [[Paragraph(f"<b>{column_label(c)}</b>", cell_style) for c in columns]]
    for row in rows:
        data.append(
            [Paragraph(_escape(format_cell(c, row.get(c))), cell_style) for c in columns]
        )

    table = Table(data, repeatRows=1)
    table.setStyle(
        TableStyle(
            [
                ("BACKGROUND", (0, 0), (-1, 0), colors.HexColor("#E8EEF7")),
                ("GRID", (0, 0), (-1, -1), 0.25, colors.grey),
                ("VALIGN", (0, 0), (-1, -1), "TOP"),
                ("ROWBACKGROUNDS", (0, 1), (-1, -1), [colors.white, colors.HexColor("#F7F7F7")]),
            ]
        )
    )
    story.append(table)

    if summary:
        story.append(Spacer(1, 0.5 * cm))
        summary_table = Table([[label, value] for label, value in summary], hAlign="LEFT")
        summary_table.setStyle(
            TableStyle(
                [
                    ("FONTNAME", (0, 0), (0, -1), "Helvetica-Bold"),
                    ("ALIGN", (1, 0), (1, -1), "RIGHT"),
                ]
            )
        )
        story.append(summary_table)

    doc.build(story)
    return buffer.getvalue()


def _escape(text: str) -> str:
    return text.replace("&", "&amp;").replace("<", "&lt;").replace(">", "&gt;")
