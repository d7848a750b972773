"""
Unit tests for student CSV parsing.
"""

import pytest

from pleeno.core.errors import ValidationFailedError
from pleeno.modules.students.importer import parse_student_csv


class TestParseStudentCsv:
    def test_parses_rows_with_spreadsheet_numbering(self):
        content = (
            b"full_name,passport_number,email,visa_status\n"
            b"Maria Santos,AB123,maria@example.com,In Process\n"
            b"Li Wei,CD456,,\n"
        )

        rows = parse_student_csv(content)

        assert [number for number, _ in rows] == [2, 3]
        first = rows[0][1]
        assert first["full_name"] == "Maria Santos"
        assert first["visa_status"] == "in_process"
        assert first["phone"] is None
        assert rows[1][1]["email"] is None

    def test_header_is_case_insensitive_and_bom_tolerant(self):
        content = "\ufeffFull_Name, Passport_Number \nAna,XY1\n".encode()

        rows = parse_student_csv(content)

        assert rows == [
            (
                2,
                {
                    "full_name": "Ana",
                    "passport_number": "XY1",
                    "email": None,
                    "phone": None,
                    "date_of_birth": None,
                    "nationality": None,
                    "visa_status": None,
                },
            )
        ]

    def test_blank_lines_skipped(self):
        content = b"full_name,passport_number\n,\nAna,XY1\n"

        rows = parse_student_csv(content)

        assert [number for number, _ in rows] == [3]

    def test_missing_required_column(self):
        with pytest.raises(ValidationFailedError) as exc_info:
            parse_student_csv(b"full_name,email\nAna,a@example.com\n")
        assert "passport_number" in exc_info.value.message

    def test_empty_file(self):
        with pytest.raises(ValidationFailedError):
            parse_student_csv(b"")

    def test_not_utf8(self):
        with pytest.raises(ValidationFailedError) as exc_info:
            parse_student_csv("full_name,passport_number\nJosé,AB1\n".encode("latin-1"))
        assert exc_info.value.error_code == "INVALID_CSV"
