"""
User Models

Agency staff accounts used for authentication and authorization.
"""

from enum import Enum

from sqlalchemy import String, Text
from sqlalchemy.orm import Mapped, mapped_column

from pleeno.modules.shared import BaseModel, TenantMixin, pg_enum


class UserRole(str, Enum):
    """Roles within an agency."""

    AGENCY_ADMIN = "agency_admin"
    AGENCY_USER = "agency_user"


class UserStatus(str, Enum):
    """Account status. Only active users can sign in."""

    ACTIVE = "active"
    INACTIVE = "inactive"
    SUSPENDED = "suspended"


class User(TenantMixin, BaseModel):
    """
    User model for authentication and authorization.

    Every user belongs to exactly one agency.
    """

    __tablename__ = "users"

    email: Mapped[str] = mapped_column(
        String(255),
        unique=True,
        index=True,
        nullable=False,
    )
    password_hash: Mapped[str] = mapped_column(Text, nullable=False)
    full_name: Mapped[str] = mapped_column(String(255), nullable=False)

    role: Mapped[UserRole] = mapped_column(
        pg_enum(UserRole, "user_role"),
        nullable=False,
        default=UserRole.AGENCY_USER,
    )
    status: Mapped[UserStatus] = mapped_column(
        pg_enum(UserStatus, "user_status"),
        nullable=False,
        default=UserStatus.ACTIVE,
    )

    def __repr__(self) -> str:
        return f"<User(id={self.id}, email={self.email}, role={self.role.value})>"

    @property
    def is_active(self) -> bool:
        return self.status == UserStatus.ACTIVE

    @property
    def is_admin(self) -> bool:
        return self.role == UserRole.AGENCY_ADMIN
