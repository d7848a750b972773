"""
Fixtures for the colleges tests.
"""

from unittest.mock import MagicMock, patch

import pytest


@pytest.fixture(autouse=True)
def activity_log():
    """Captures the activity entries staged by the college service."""
    with patch("pleeno.modules.colleges.service.log_activity", MagicMock()) as logged:
        yield logged
