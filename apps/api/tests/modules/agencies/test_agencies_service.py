"""
Unit tests for agency settings.
"""

from datetime import UTC, date, datetime
from types import SimpleNamespace
from unittest.mock import AsyncMock, patch
from uuid import uuid4

import pytest

from pleeno.core.errors import NotFoundError
from pleeno.modules.agencies.schemas import AgencyUpdate
from pleeno.modules.agencies.service import agency_today, get_agency, update_agency


class TestAgencySettings:
    @pytest.mark.asyncio
    async def test_unknown_agency(self, mock_db):
        with patch("pleeno.modules.agencies.service.AgencyRepository") as mock_repo:
            mock_repo.get_by_id = AsyncMock(return_value=None)

            with pytest.raises(NotFoundError):
                await get_agency(mock_db, uuid4())

    @pytest.mark.asyncio
    async def test_contact_fields_can_be_cleared(self, mock_db):
        agency = SimpleNamespace(id=uuid4())
        with patch("pleeno.modules.agencies.service.AgencyRepository") as mock_repo:
            mock_repo.get_by_id = AsyncMock(return_value=agency)
            mock_repo.update = AsyncMock(return_value=agency)

            await update_agency(
                mock_db,
                agency.id,
                AgencyUpdate(name=None, contact_phone=None, currency="nzd"),
            )

            mock_repo.update.assert_awaited_once_with(
                mock_db, agency, {"contact_phone": None, "currency": "NZD"}
            )

    @pytest.mark.asyncio
    async def test_empty_update_is_noop(self, mock_db):
        agency = SimpleNamespace(id=uuid4())
        with patch("pleeno.modules.agencies.service.AgencyRepository") as mock_repo:
            mock_repo.get_by_id = AsyncMock(return_value=agency)
            mock_repo.update = AsyncMock()

            result = await update_agency(mock_db, agency.id, AgencyUpdate())

            assert result is agency
            mock_repo.update.assert_not_awaited()

    def test_unknown_timezone_rejected(self):
        with pytest.raises(ValueError):
            AgencyUpdate(timezone="Mars/Olympus_Mons")

    def test_threshold_bounds(self):
        with pytest.raises(ValueError):
            AgencyUpdate(due_soon_threshold_days=0)
        assert AgencyUpdate(due_soon_threshold_days=7).due_soon_threshold_days == 7


class TestAgencyToday:
    @pytest.mark.asyncio
    async def test_ahead_of_utc(self, mock_db):
        agency = SimpleNamespace(id=uuid4(), timezone="Australia/Brisbane")
        with patch("pleeno.modules.agencies.service.AgencyRepository") as mock_repo:
            mock_repo.get_by_id = AsyncMock(return_value=agency)

            # 20:00 UTC on the 1st is 06:00 on the 2nd in Brisbane
            today = await agency_today(
                mock_db, agency.id, datetime(2025, 3, 1, 20, 0, tzinfo=UTC)
            )

        assert today == date(2025, 3, 2)

    @pytest.mark.asyncio
    async def test_behind_utc(self, mock_db):
        agency = SimpleNamespace(id=uuid4(), timezone="America/Los_Angeles")
        with patch("pleeno.modules.agencies.service.AgencyRepository") as mock_repo:
            mock_repo.get_by_id = AsyncMock(return_value=agency)

            today = await agency_today(
                mock_db, agency.id, datetime(2025, 3, 2, 3, 0, tzinfo=UTC)
            )

        assert today == date(2025, 3, 1)
