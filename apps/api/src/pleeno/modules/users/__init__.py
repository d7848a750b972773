"""
Users module - Agency staff accounts.
"""

from pleeno.modules.users.models import User, UserRole, UserStatus
from pleeno.modules.users.repository import UserRepository

__all__ = ["User", "UserRole", "UserStatus", "UserRepository"]
