"""
Shared fixtures for Pleeno API tests.
"""

from unittest.mock import AsyncMock, MagicMock
from uuid import uuid4

import pytest

from pleeno.core.auth import CurrentUser


@pytest.fixture
def mock_db():
    """Create a mock database session."""
    db = AsyncMock()
    db.commit = AsyncMock()
    db.refresh = AsyncMock()
    db.flush = AsyncMock()
    db.rollback = AsyncMock()
    db.get = AsyncMock()
    db.execute = AsyncMock()
    db.add = MagicMock()
    db.in_transaction = MagicMock(return_value=False)
    db.info = {}
    return db


@pytest.fixture
def mock_redis():
    """Create a mock Redis client."""
    redis = AsyncMock()
    redis.get = AsyncMock(return_value=None)
    redis.incr = AsyncMock()
    redis.expire = AsyncMock()
    redis.ttl = AsyncMock(return_value=3600)
    redis.pipeline = MagicMock()
    pipe = AsyncMock()
    pipe.incr = MagicMock()
    pipe.expire = MagicMock()
    pipe.zremrangebyscore = MagicMock()
    pipe.zcard = MagicMock()
    pipe.zadd = MagicMock()
    pipe.execute = AsyncMock()
    redis.pipeline.return_value = pipe
    return redis


@pytest.fixture
def admin_user():
    return CurrentUser(
        id=uuid4(),
        agency_id=uuid4(),
        email="admin@agency.test",
        role="agency_admin",
        name="Agency Admin",
    )


@pytest.fixture
def agency_user(admin_user):
    """A regular user in the same agency as ``admin_user``."""
    return CurrentUser(
        id=uuid4(),
        agency_id=admin_user.agency_id,
        email="user@agency.test",
        role="agency_user",
        name="Agency User",
    )
