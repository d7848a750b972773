"""
Core module - Configuration, database, security, and utilities.
"""

from pleeno.core.config import get_settings, settings
from pleeno.core.database import Base, close_db, get_db, init_db, set_tenant_context
from pleeno.core.redis import close_redis, init_redis, redis_key
from pleeno.core.security import (
    create_access_token,
    create_refresh_token,
    decode_token,
    hash_password,
    verify_password,
)

__all__ = [
    # Config
    "settings",
    "get_settings",
    # Database
    "Base",
    "get_db",
    "init_db",
    "close_db",
    "set_tenant_context",
    # Redis
    "init_redis",
    "close_redis",
    "redis_key",
    # Security
    "hash_password",
    "verify_password",
    "create_access_token",
    "create_refresh_token",
    "decode_token",
]
