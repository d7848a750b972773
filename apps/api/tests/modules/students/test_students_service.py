"""
Unit tests for the students service layer.

These tests cover:
- Passport uniqueness on create and update
- CSV import (valid, invalid and duplicate rows)
- Note and document permissions
- Document upload validation and chunked upload reading
- Payment history filtering and totals
"""

from datetime import date
from decimal import Decimal
from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock, patch
from uuid import uuid4

import pytest

from pleeno.core.config import settings
from pleeno.core.errors import ForbiddenError, NotFoundError, ValidationFailedError
from pleeno.modules.payments.models import InstallmentStatus, PaymentPlanStatus
from pleeno.modules.students.models import DocumentType
from pleeno.modules.students.schemas import StudentCreate, StudentUpdate
from pleeno.modules.students.service import (
    DuplicateStudentError,
    create_student,
    delete_note,
    get_payment_history,
    history_rows,
    import_students,
    read_upload,
    update_student,
    upload_document,
)


def _student(**overrides):
    values = {"id": uuid4(), "full_name": "Maria Santos", "passport_number": "AB123"}
    values.update(overrides)
    return SimpleNamespace(**values)


class TestCreateStudent:
    @pytest.mark.asyncio
    async def test_create_student_success(self, mock_db, admin_user):
        student = _student()
        with (
            patch("pleeno.modules.students.service.repository") as mock_repo,
            patch("pleeno.modules.students.service.log_activity") as mock_log,
        ):
            mock_repo.get_student_by_passport = AsyncMock(return_value=None)
            mock_repo.add_student = MagicMock(return_value=student)

            result = await create_student(
                mock_db,
                admin_user,
                StudentCreate(full_name=" Maria Santos ", passport_number=" ab123 "),
            )

            assert result is student
            fields = mock_repo.add_student.call_args.kwargs
            assert fields["full_name"] == "Maria Santos"
            assert fields["passport_number"] == "AB123"
            mock_log.assert_called_once()
            mock_db.commit.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_duplicate_passport(self, mock_db, admin_user):
        with patch("pleeno.modules.students.service.repository") as mock_repo:
            mock_repo.get_student_by_passport = AsyncMock(return_value=_student())

            with pytest.raises(DuplicateStudentError) as exc_info:
                await create_student(
                    mock_db,
                    admin_user,
                    StudentCreate(full_name="Someone Else", passport_number="AB123"),
                )

            assert exc_info.value.status_code == 409
            assert exc_info.value.error_code == "DUPLICATE_PASSPORT"
            mock_repo.add_student.assert_not_called()

    def test_future_birth_date_rejected(self):
        with pytest.raises(ValueError):
            StudentCreate(full_name="Ana", passport_number="X1", date_of_birth=date(2999, 1, 1))


class TestUpdateStudent:
    @pytest.mark.asyncio
    async def test_passport_taken_by_other_student(self, mock_db, admin_user):
        student = _student()
        with patch("pleeno.modules.students.service.repository") as mock_repo:
            mock_repo.get_student = AsyncMock(return_value=student)
            mock_repo.get_student_by_passport = AsyncMock(return_value=_student(id=uuid4()))

            with pytest.raises(DuplicateStudentError):
                await update_student(
                    mock_db, admin_user, student.id, StudentUpdate(passport_number="zz999")
                )

    @pytest.mark.asyncio
    async def test_unknown_student(self, mock_db, admin_user):
        with patch("pleeno.modules.students.service.repository") as mock_repo:
            mock_repo.get_student = AsyncMock(return_value=None)

            with pytest.raises(NotFoundError):
                await update_student(
                    mock_db, admin_user, uuid4(), StudentUpdate(full_name="New Name")
                )


class TestImportStudents:
    @pytest.mark.asyncio
    async def test_mixed_file(self, mock_db, admin_user):
        content = (
            b"full_name,passport_number,email\n"
            b"Maria Santos,AB123,maria@example.com\n"
            b"Li Wei,EXISTING1,\n"
            b"Bad Email,CD456,not-an-email\n"
            b"Maria Again,ab123,\n"
        )
        with (
            patch("pleeno.modules.students.service.repository") as mock_repo,
            patch("pleeno.modules.students.service.log_activity") as mock_log,
        ):
            mock_repo.existing_passports = AsyncMock(return_value={"EXISTING1"})
            mock_repo.add_student = MagicMock(side_effect=lambda db, agency_id, **f: _student(**f))

            result = await import_students(mock_db, admin_user, content)

            assert result.created == 1
            assert result.skipped_duplicates == ["EXISTING1", "AB123"]
            assert len(result.errors) == 1
            assert result.errors[0].row == 4
            assert "email" in result.errors[0].message
            assert mock_log.call_count == 1
            mock_db.commit.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_nothing_created_no_commit(self, mock_db, admin_user):
        with patch("pleeno.modules.students.service.repository") as mock_repo:
            mock_repo.existing_passports = AsyncMock(return_value={"AB123"})

            result = await import_students(
                mock_db, admin_user, b"full_name,passport_number\nMaria,AB123\n"
            )

            assert result.created == 0
            mock_db.commit.assert_not_awaited()


class TestNotePermissions:
    @pytest.mark.asyncio
    async def test_other_users_note_forbidden(self, mock_db, agency_user):
        note = SimpleNamespace(id=uuid4(), user_id=uuid4())
        with patch("pleeno.modules.students.service.repository") as mock_repo:
            mock_repo.get_note = AsyncMock(return_value=note)

            with pytest.raises(ForbiddenError):
                await delete_note(mock_db, agency_user, uuid4(), note.id)

            mock_repo.delete.assert_not_called()

    @pytest.mark.asyncio
    async def test_admin_can_delete_any_note(self, mock_db, admin_user):
        note = SimpleNamespace(id=uuid4(), user_id=uuid4())
        with patch("pleeno.modules.students.service.repository") as mock_repo:
            mock_repo.get_note = AsyncMock(return_value=note)
            mock_repo.delete = AsyncMock()

            await delete_note(mock_db, admin_user, uuid4(), note.id)

            mock_repo.delete.assert_awaited_once_with(mock_db, note)


class TestUploadDocument:
    @pytest.mark.asyncio
    async def test_rejects_unsupported_type(self, mock_db, admin_user):
        with patch("pleeno.modules.students.service.repository") as mock_repo:
            mock_repo.get_student = AsyncMock(return_value=_student())

            with pytest.raises(ValidationFailedError) as exc_info:
                await upload_document(
                    mock_db,
                    admin_user,
                    uuid4(),
                    document_type=DocumentType.OTHER,
                    file_name="script.exe",
                    content_type="application/octet-stream",
                    data=b"MZ",
                )

            assert exc_info.value.error_code == "UNSUPPORTED_FILE_TYPE"

    @pytest.mark.asyncio
    async def test_rejects_empty_file(self, mock_db, admin_user):
        with patch("pleeno.modules.students.service.repository") as mock_repo:
            mock_repo.get_student = AsyncMock(return_value=_student())

            with pytest.raises(ValidationFailedError) as exc_info:
                await upload_document(
                    mock_db,
                    admin_user,
                    uuid4(),
                    document_type=DocumentType.PASSPORT,
                    file_name="passport.pdf",
                    content_type="application/pdf",
                    data=b"",
                )

            assert exc_info.value.error_code == "EMPTY_FILE"

    @pytest.mark.asyncio
    async def test_stores_file_under_agency(self, mock_db, admin_user, tmp_path):
        student_id = uuid4()
        document = SimpleNamespace(id=uuid4())
        with (
            patch("pleeno.modules.students.service.repository") as mock_repo,
            patch.object(settings, "upload_dir", str(tmp_path)),
        ):
            mock_repo.get_student = AsyncMock(return_value=_student(id=student_id))
            mock_repo.create_document = AsyncMock(return_value=document)

            result = await upload_document(
                mock_db,
                admin_user,
                student_id,
                document_type=DocumentType.OFFER_LETTER,
                file_name="../../offer.pdf",
                content_type="application/pdf",
                data=b"%PDF-1.4 test",
            )

            assert result is document
            fields = mock_repo.create_document.call_args.kwargs
            assert fields["file_name"] == "offer.pdf"
            assert fields["file_size"] == 13
            assert fields["file_path"].startswith(f"{admin_user.agency_id}/{student_id}/")
            assert (tmp_path / fields["file_path"]).read_bytes() == b"%PDF-1.4 test"


def _history_plan(installments):
    college = SimpleNamespace(name="Sydney Business College")
    return SimpleNamespace(
        id=uuid4(),
        currency="AUD",
        total_amount=Decimal("1500"),
        status=PaymentPlanStatus.ACTIVE,
        start_date=date(2025, 1, 1),
        enrollment=SimpleNamespace(
            program_name="Diploma of Business",
            branch=SimpleNamespace(name="CBD Campus", college=college),
        ),
        installments=installments,
    )


def _history_installment(number, due, status=InstallmentStatus.PENDING, paid=None):
    return SimpleNamespace(
        id=uuid4(),
        installment_number=number,
        is_initial_payment=number == 0,
        amount=Decimal("500"),
        student_due_date=due,
        college_due_date=due,
        status=status,
        paid_date=due if paid else None,
        paid_amount=paid,
    )


class TestReadUpload:
    @pytest.mark.asyncio
    async def test_reads_all_chunks(self):
        upload = SimpleNamespace(
            filename="offer.pdf", read=AsyncMock(side_effect=[b"abcd", b"ef", b""])
        )

        assert await read_upload(upload, max_bytes=6) == b"abcdef"

    @pytest.mark.asyncio
    async def test_stops_reading_once_over_limit(self):
        upload = SimpleNamespace(
            filename="huge.pdf",
            read=AsyncMock(side_effect=[b"a" * 4, b"b" * 4, b"c" * 4, b""]),
        )

        with pytest.raises(ValidationFailedError) as exc_info:
            await read_upload(upload, max_bytes=6)

        assert exc_info.value.error_code == "FILE_TOO_LARGE"
        assert upload.read.await_count == 2


class TestPaymentHistory:
    @pytest.mark.asyncio
    async def test_totals_and_date_filter(self, mock_db, admin_user):
        student = _student()
        plan = _history_plan(
            [
                _history_installment(0, date(2025, 1, 1), InstallmentStatus.PAID, Decimal("500")),
                _history_installment(1, date(2025, 2, 1)),
                _history_installment(2, date(2025, 3, 1), InstallmentStatus.CANCELLED),
            ]
        )
        with patch("pleeno.modules.students.service.repository") as mock_repo:
            mock_repo.get_student = AsyncMock(return_value=student)
            mock_repo.list_student_plans = AsyncMock(return_value=[plan])

            history = await get_payment_history(mock_db, admin_user.agency_id, student.id)

            assert history.summary.total_paid == Decimal("500.00")
            assert history.summary.total_outstanding == Decimal("500.00")
            assert history.summary.percentage_paid == Decimal("50.00")

            filtered = await get_payment_history(
                mock_db,
                admin_user.agency_id,
                student.id,
                date_from=date(2025, 1, 15),
                date_to=date(2025, 2, 15),
            )

            assert [i.installment_number for i in filtered.plans[0].installments] == [1]
            assert filtered.summary.total_paid == Decimal("0.00")

            rows = history_rows(history)
            assert rows[0]["installment_number"] == "Initial"
            assert rows[1]["installment_number"] == "1"

    @pytest.mark.asyncio
    async def test_plans_outside_range_dropped(self, mock_db, admin_user):
        student = _student()
        plan = _history_plan([_history_installment(1, date(2024, 6, 1))])
        with patch("pleeno.modules.students.service.repository") as mock_repo:
            mock_repo.get_student = AsyncMock(return_value=student)
            mock_repo.list_student_plans = AsyncMock(return_value=[plan])

            history = await get_payment_history(
                mock_db, admin_user.agency_id, student.id, date_from=date(2025, 1, 1)
            )

            assert history.plans == []
            assert history.summary.percentage_paid == Decimal("0.00")

    @pytest.mark.asyncio
    async def test_reversed_range(self, mock_db, admin_user):
        with pytest.raises(ValidationFailedError) as exc_info:
            await get_payment_history(
                mock_db,
                admin_user.agency_id,
                uuid4(),
                date_from=date(2025, 2, 1),
                date_to=date(2025, 1, 1),
            )
        assert exc_info.value.error_code == "INVALID_DATE_RANGE"
