"""
Users Router

Agency admin endpoints for managing staff accounts.

Endpoints:
- GET /users - List users in the caller's agency
- POST /users - Create a user
- PATCH /users/{id}/role - Change a user's role
- PATCH /users/{id}/status - Activate, deactivate or suspend a user
"""

import logging
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from pleeno.core.auth import CurrentUser, get_tenant_db, require_admin
from pleeno.core.errors import ServiceError, internal_error, to_http_exception
from pleeno.modules.users import service
from pleeno.modules.users.schemas import (
    UserCreate,
    UserListResponse,
    UserResponse,
    UserRoleUpdate,
    UserStatusUpdate,
)

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("", response_model=UserListResponse, summary="List Users")
async def list_users(
    db: AsyncSession = Depends(get_tenant_db),
    admin: CurrentUser = Depends(require_admin),
) -> UserListResponse:
    try:
        users = await service.list_users(db, admin.agency_id)
        return UserListResponse(
            items=[UserResponse.model_validate(u) for u in users],
            total=len(users),
        )
    except ServiceError as e:
        raise to_http_exception(e) from e
    except Exception as e:
        raise internal_error("Error listing users", e) from e


@router.post(
    "",
    response_model=UserResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create User",
    responses={409: {"description": "Email already registered"}},
)
async def create_user(
    data: UserCreate,
    db: AsyncSession = Depends(get_tenant_db),
    admin: CurrentUser = Depends(require_admin),
) -> UserResponse:
    try:
        user = await service.create_user(db, admin.agency_id, data)
        logger.info(f"Admin {admin.id} created user {user.id}")
        return UserResponse.model_validate(user)
    except ServiceError as e:
        raise to_http_exception(e) from e
    except HTTPException:
        raise
    except Exception as e:
        raise internal_error("Error creating user", e) from e


@router.patch("/{user_id}/role", response_model=UserResponse, summary="Change User Role")
async def update_user_role(
    user_id: UUID,
    data: UserRoleUpdate,
    db: AsyncSession = Depends(get_tenant_db),
    admin: CurrentUser = Depends(require_admin),
) -> UserResponse:
    try:
        user = await service.update_user_role(db, admin.agency_id, admin.id, user_id, data.role)
        return UserResponse.model_validate(user)
    except ServiceError as e:
        raise to_http_exception(e) from e
    except Exception as e:
        raise internal_error("Error updating user role", e) from e


@router.patch("/{user_id}/status", response_model=UserResponse, summary="Change User Status")
async def update_user_status(
    user_id: UUID,
    data: UserStatusUpdate,
    db: AsyncSession = Depends(get_tenant_db),
    admin: CurrentUser = Depends(require_admin),
) -> UserResponse:
    try:
        user = await service.update_user_status(
            db, admin.agency_id, admin.id, user_id, data.status
        )
        return UserResponse.model_validate(user)
    except ServiceError as e:
        raise to_http_exception(e) from e
    except Exception as e:
        raise internal_error("Error updating user status", e) from e
