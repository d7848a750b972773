"""
Student CSV Import

Parses an uploaded CSV into row dictionaries ready for ``StudentCreate``.

Expected header (order does not matter, case-insensitive):
    full_name, passport_number, email, phone, date_of_birth, nationality, visa_status

Only full_name and passport_number are required. Empty cells become None.
"""

import csv
import io

from pleeno.core.errors import ValidationFailedError

IMPORT_COLUMNS = (
    "full_name",
    "passport_number",
    "email",
    "phone",
    "date_of_birth",
    "nationality",
    "visa_status",
)
REQUIRED_COLUMNS = {"full_name", "passport_number"}
MAX_IMPORT_ROWS = 5000


def parse_student_csv(content: bytes) -> list[tuple[int, dict[str, str | None]]]:
    """
    Parse CSV bytes into (row_number, values) pairs.

    Row numbers are 1-based and count the header, so the first data row
    is row 2, matching what a spreadsheet shows.

    Raises:
        ValidationFailedError: If the file is not UTF-8, has no header,
            lacks a required column or has too many rows
    """
    try:
        text = content.decode("utf-8-sig")
    except UnicodeDecodeError as e:
        raise ValidationFailedError("CSV file must be UTF-8 encoded", "INVALID_CSV") from e

    reader = csv.DictReader(io.StringIO(text))
    if not reader.fieldnames:
        raise ValidationFailedError("CSV file is empty", "INVALID_CSV")

    header = {name.strip().lower(): name for name in reader.fieldnames if name}
    missing = REQUIRED_COLUMNS - header.keys()
    if missing:
        raise ValidationFailedError(
            f"CSV is missing required columns: {', '.join(sorted(missing))}", "INVALID_CSV"
        )

    rows: list[tuple[int, dict[str, str | None]]] = []
    for row_number, raw in enumerate(reader, start=2):
        if len(rows) >= MAX_IMPORT_ROWS:
            raise ValidationFailedError(
                f"CSV has more than {MAX_IMPORT_ROWS} rows", "IMPORT_TOO_LARGE"
            )
        values: dict[str, str | None] = {}
        for column in IMPORT_COLUMNS:
            source = header.get(column)
            cell = (raw.get(source) or "").strip() if source else ""
            values[column] = cell or None
        if not any(values.values()):
            continue
        if values["visa_status"]:
            values["visa_status"] = values["visa_status"].lower().replace(" ", "_")
        rows.append((row_number, values))
    return rows
