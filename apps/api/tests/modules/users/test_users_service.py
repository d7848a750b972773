"""
Unit tests for user management.
"""

from types import SimpleNamespace
from unittest.mock import AsyncMock, patch
from uuid import uuid4

import pytest

from pleeno.core.errors import ConflictError, NotFoundError, ValidationFailedError
from pleeno.core.security import verify_password
from pleeno.modules.users.models import UserRole, UserStatus
from pleeno.modules.users.schemas import UserCreate
from pleeno.modules.users.service import create_user, update_user_role, update_user_status


class TestCreateUser:
    @pytest.mark.asyncio
    async def test_password_hashed_and_email_lowercased(self, mock_db, admin_user):
        with patch("pleeno.modules.users.service.UserRepository") as mock_repo:
            mock_repo.email_exists = AsyncMock(return_value=False)
            mock_repo.create = AsyncMock(return_value=SimpleNamespace(id=uuid4()))

            await create_user(
                mock_db,
                admin_user.agency_id,
                UserCreate(
                    email="New.Staff@Agency.test",
                    full_name="New Staff",
                    password="correct-horse-battery",
                ),
            )

            fields = mock_repo.create.call_args.kwargs
            assert fields["email"] == "new.staff@agency.test"
            assert fields["role"] == UserRole.AGENCY_USER
            assert fields["password_hash"] != "correct-horse-battery"
            assert verify_password("correct-horse-battery", fields["password_hash"])
            mock_db.commit.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_email_taken(self, mock_db, admin_user):
        with patch("pleeno.modules.users.service.UserRepository") as mock_repo:
            mock_repo.email_exists = AsyncMock(return_value=True)

            with pytest.raises(ConflictError) as exc_info:
                await create_user(
                    mock_db,
                    admin_user.agency_id,
                    UserCreate(email="taken@agency.test", full_name="X", password="password123"),
                )

            assert exc_info.value.error_code == "EMAIL_ALREADY_EXISTS"
            mock_repo.create.assert_not_called()

    def test_short_password_rejected(self):
        with pytest.raises(ValueError):
            UserCreate(email="a@agency.test", full_name="A", password="short")


class TestRoleAndStatus:
    @pytest.mark.asyncio
    async def test_admin_cannot_demote_self(self, mock_db, admin_user):
        with patch("pleeno.modules.users.service.UserRepository") as mock_repo:
            mock_repo.get_in_agency = AsyncMock(return_value=SimpleNamespace(id=admin_user.id))

            with pytest.raises(ValidationFailedError) as exc_info:
                await update_user_role(
                    mock_db,
                    admin_user.agency_id,
                    admin_user.id,
                    admin_user.id,
                    UserRole.AGENCY_USER,
                )

            assert exc_info.value.error_code == "CANNOT_DEMOTE_SELF"

    @pytest.mark.asyncio
    async def test_promote_other_user(self, mock_db, admin_user, agency_user):
        user = SimpleNamespace(id=agency_user.id, role=UserRole.AGENCY_USER)
        with patch("pleeno.modules.users.service.UserRepository") as mock_repo:
            mock_repo.get_in_agency = AsyncMock(return_value=user)
            mock_repo.save = AsyncMock(return_value=user)

            result = await update_user_role(
                mock_db,
                admin_user.agency_id,
                admin_user.id,
                agency_user.id,
                UserRole.AGENCY_ADMIN,
            )

            assert result.role == UserRole.AGENCY_ADMIN

    @pytest.mark.asyncio
    async def test_admin_cannot_deactivate_self(self, mock_db, admin_user):
        with patch("pleeno.modules.users.service.UserRepository") as mock_repo:
            mock_repo.get_in_agency = AsyncMock(return_value=SimpleNamespace(id=admin_user.id))

            with pytest.raises(ValidationFailedError) as exc_info:
                await update_user_status(
                    mock_db,
                    admin_user.agency_id,
                    admin_user.id,
                    admin_user.id,
                    UserStatus.SUSPENDED,
                )

            assert exc_info.value.error_code == "CANNOT_DEACTIVATE_SELF"

    @pytest.mark.asyncio
    async def test_user_from_other_agency(self, mock_db, admin_user):
        with patch("pleeno.modules.users.service.UserRepository") as mock_repo:
            mock_repo.get_in_agency = AsyncMock(return_value=None)

            with pytest.raises(NotFoundError) as exc_info:
                await update_user_status(
                    mock_db,
                    admin_user.agency_id,
                    admin_user.id,
                    uuid4(),
                    UserStatus.INACTIVE,
                )

            assert exc_info.value.error_code == "USER_NOT_FOUND"
