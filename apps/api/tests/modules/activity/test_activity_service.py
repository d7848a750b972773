"""
Unit tests for the activity log.
"""

from datetime import UTC, datetime
from types import SimpleNamespace
from unittest.mock import AsyncMock, patch
from uuid import uuid4

import pytest

from pleeno.modules.activity.models import ActivityAction, ActivityLog, EntityType
from pleeno.modules.activity.service import MAX_FEED_LIMIT, get_feed, log_activity


class TestLogActivity:
    def test_entry_staged_on_session(self, mock_db, admin_user):
        entity_id = uuid4()

        log_activity(
            mock_db,
            agency_id=admin_user.agency_id,
            user_id=admin_user.id,
            entity_type=EntityType.PAYMENT,
            entity_id=entity_id,
            action=ActivityAction.RECORDED,
            description="Recorded payment of AUD 500.00",
            metadata={"amount": "500.00"},
        )

        entry = mock_db.add.call_args.args[0]
        assert isinstance(entry, ActivityLog)
        assert entry.entity_id == entity_id
        assert entry.details == {"amount": "500.00"}
        mock_db.commit.assert_not_awaited()


class TestGetFeed:
    @pytest.mark.asyncio
    async def test_system_entries_named(self, mock_db, admin_user):
        entry = SimpleNamespace(
            id=uuid4(),
            entity_type=EntityType.INSTALLMENT,
            entity_id=uuid4(),
            action=ActivityAction.MARKED_OVERDUE,
            description="Installment 2 marked overdue",
            details=None,
            user_id=None,
            created_at=datetime.now(UTC),
        )
        with patch("pleeno.modules.activity.service.repository") as mock_repo:
            mock_repo.list_recent = AsyncMock(return_value=[(entry, None)])

            feed = await get_feed(mock_db, admin_user.agency_id, limit=1000)

            assert feed[0].user_name == "System"
            assert mock_repo.list_recent.call_args.kwargs["limit"] == MAX_FEED_LIMIT
