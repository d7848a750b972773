"""
Fixtures for report tests.
"""

from datetime import date
from unittest.mock import AsyncMock, patch

import pytest


@pytest.fixture(autouse=True)
def agency_calendar():
    """The agency's local date used for contract status and overdue amounts."""
    with patch(
        "pleeno.modules.reports.service.agency_today",
        AsyncMock(return_value=date(2025, 6, 1)),
    ) as mock_today:
        yield mock_today
