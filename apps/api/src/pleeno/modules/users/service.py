"""
User Management Service

Agency admins manage the staff accounts of their own agency:
- List users
- Create users (email unique across the platform)
- Change a user's role or status

An admin cannot demote or deactivate their own account, so an agency is
never left without an active admin by accident.
"""

import logging
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from pleeno.core.errors import ConflictError, NotFoundError, ValidationFailedError
from pleeno.core.security import hash_password
from pleeno.modules.users.models import User, UserRole, UserStatus
from pleeno.modules.users.repository import UserRepository
from pleeno.modules.users.schemas import UserCreate

logger = logging.getLogger(__name__)


async def list_users(db: AsyncSession, agency_id: UUID) -> list[User]:
    return await UserRepository.list_for_agency(db, agency_id)


async def create_user(db: AsyncSession, agency_id: UUID, data: UserCreate) -> User:
    """
    Create a user in the caller's agency.

    Raises:
        ConflictError: If the email is already registered
    """
    if await UserRepository.email_exists(db, data.email):
        logger.warning(f"User creation rejected, email already registered (agency {agency_id})")
        raise ConflictError("A user with this email already exists.", "EMAIL_ALREADY_EXISTS")

    user = await UserRepository.create(
        db,
        agency_id=agency_id,
        email=data.email,
        password_hash=hash_password(data.password),
        full_name=data.full_name,
        role=data.role,
    )
    await db.commit()
    return user


async def _get_user(db: AsyncSession, agency_id: UUID, user_id: UUID) -> User:
    user = await UserRepository.get_in_agency(db, agency_id, user_id)
    if not user:
        raise NotFoundError("User", user_id)
    return user


async def update_user_role(
    db: AsyncSession,
    agency_id: UUID,
    actor_id: UUID,
    user_id: UUID,
    role: UserRole,
) -> User:
    user = await _get_user(db, agency_id, user_id)

    if user_id == actor_id and role != UserRole.AGENCY_ADMIN:
        raise ValidationFailedError("You cannot remove your own admin role.", "CANNOT_DEMOTE_SELF")

    user.role = role
    logger.info(f"User {actor_id} changed role of {user_id} to {role.value}")
    return await UserRepository.save(db, user)


async def update_user_status(
    db: AsyncSession,
    agency_id: UUID,
    actor_id: UUID,
    user_id: UUID,
    status: UserStatus,
) -> User:
    user = await _get_user(db, agency_id, user_id)

    if user_id == actor_id and status != UserStatus.ACTIVE:
        raise ValidationFailedError(
            "You cannot deactivate your own account.", "CANNOT_DEACTIVATE_SELF"
        )

    user.status = status
    logger.info(f"User {actor_id} changed status of {user_id} to {status.value}")
    return await UserRepository.save(db, user)
