"""
User Repository

Database operations for user management.
"""

import logging
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from pleeno.modules.users.models import User, UserRole, UserStatus

logger = logging.getLogger(__name__)


class UserRepository:
    """Repository for user database operations."""

    @staticmethod
    async def create(
        db: AsyncSession,
        *,
        agency_id: UUID,
        email: str,
        password_hash: str,
        full_name: str,
        role: UserRole = UserRole.AGENCY_USER,
        status: UserStatus = UserStatus.ACTIVE,
    ) -> User:
        """
        Create a new user record in an agency.

        Args:
            db: Database session
            agency_id: Owning agency
            email: User's email address (unique across the platform)
            password_hash: bcrypt hash
            full_name: Display name
            role: agency_admin or agency_user
            status: Initial account status

        Returns:
            Created User instance
        """
        user = User(
            agency_id=agency_id,
            email=email,
            password_hash=password_hash,
            full_name=full_name,
            role=role,
            status=status,
        )

        db.add(user)
        await db.flush()
        await db.refresh(user)

        logger.info(f"Created user: {user.id} ({user.role.value}) in agency {agency_id}")
        return user

    @staticmethod
    async def get_by_id(db: AsyncSession, user_id: UUID) -> User | None:
        return await db.get(User, user_id)

    @staticmethod
    async def get_in_agency(db: AsyncSession, agency_id: UUID, user_id: UUID) -> User | None:
        """Get a user only if they belong to the given agency."""
        result = await db.execute(
            select(User).where(User.id == user_id, User.agency_id == agency_id)
        )
        return result.scalar_one_or_none()

    @staticmethod
    async def get_by_email(db: AsyncSession, email: str) -> User | None:
        """Case-insensitive lookup by email address."""
        result = await db.execute(select(User).where(func.lower(User.email) == email.lower()))
        return result.scalar_one_or_none()

    @staticmethod
    async def email_exists(db: AsyncSession, email: str) -> bool:
        user = await UserRepository.get_by_email(db, email)
        return user is not None

    @staticmethod
    async def list_for_agency(
        db: AsyncSession,
        agency_id: UUID,
        *,
        status: UserStatus | None = None,
    ) -> list[User]:
        query = select(User).where(User.agency_id == agency_id)
        if status:
            query = query.where(User.status == status)
        result = await db.execute(query.order_by(User.full_name))
        return list(result.scalars().all())

    @staticmethod
    async def save(db: AsyncSession, user: User) -> User:
        """Commit pending changes on a loaded user."""
        await db.commit()
        await db.refresh(user)
        return user
