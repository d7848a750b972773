"""
Authentication and Authorization Module

FastAPI dependencies that authenticate agency users from a JWT and scope
the request to their agency.

The token must belong to an active user of its agency.

A token is accepted from either:
- the ``Authorization: Bearer <token>`` header, or
- the session cookie set by ``POST /auth/login``

Dependencies:
- get_current_user: any authenticated agency user
- require_admin: agency_admin role only
- get_tenant_db: database session with the caller's agency published for RLS
"""

import logging
from collections.abc import AsyncGenerator
from dataclasses import dataclass
from uuid import UUID

from fastapi import Depends, HTTPException, Request, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.ext.asyncio import AsyncSession

from pleeno.core.config import settings
from pleeno.core.database import get_db, set_tenant_context
from pleeno.core.security import ACCESS_TOKEN_TYPE, decode_token
from pleeno.modules.users.models import UserStatus
from pleeno.modules.users.repository import UserRepository

logger = logging.getLogger(__name__)

ADMIN_ROLE = "agency_admin"

# auto_error is off so the session cookie can be used instead
bearer_scheme = HTTPBearer(
    auto_error=False,
    description="JWT Bearer token for authentication",
)


@dataclass
class CurrentUser:
    """
    The authenticated caller.

    Attributes:
        id: User ID
        agency_id: The agency (tenant) every query is scoped to
        email: User's email address
        role: agency_admin or agency_user
        name: Display name (optional)
    """

    id: UUID
    agency_id: UUID
    email: str
    role: str
    name: str | None = None

    @property
    def is_admin(self) -> bool:
        return self.role == ADMIN_ROLE

    def __str__(self) -> str:
        return f"CurrentUser(id={self.id}, agency_id={self.agency_id}, role={self.role})"


def _unauthorized(error: str, message: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail={"error": error, "message": message},
        headers={"WWW-Authenticate": "Bearer"},
    )


def _extract_token(request: Request, credentials: HTTPAuthorizationCredentials | None) -> str:
    if credentials and credentials.credentials:
        return credentials.credentials

    cookie_token = request.cookies.get(settings.session_cookie_name)
    if cookie_token:
        return cookie_token

    raise _unauthorized("NOT_AUTHENTICATED", "Authentication is required.")


def validate_access_token(token: str) -> CurrentUser:
    """
    Validate a JWT and build the CurrentUser from its claims.

    Raises:
        HTTPException 401: If the token is invalid, expired, not an access
            token or missing required claims
    """
    payload = decode_token(token)

    if payload is None:
        logger.warning("Invalid or expired JWT token")
        raise _unauthorized("INVALID_TOKEN", "Invalid or expired authentication token.")

    if payload.get("type", ACCESS_TOKEN_TYPE) != ACCESS_TOKEN_TYPE:
        logger.warning(f"Invalid token type: {payload.get('type')}")
        raise _unauthorized("INVALID_TOKEN_TYPE", "This endpoint requires an access token.")

    try:
        return CurrentUser(
            id=UUID(payload["sub"]),
            agency_id=UUID(payload["agency_id"]),
            email=payload.get("email", ""),
            role=payload.get("role", ""),
            name=payload.get("name"),
        )
    except (KeyError, TypeError, ValueError) as e:
        logger.warning(f"Invalid token claims: {e}")
        raise _unauthorized(
            "INVALID_TOKEN_CLAIMS", "Token contains invalid or missing claims."
        ) from e


async def get_current_user(
    request: Request,
    credentials: HTTPAuthorizationCredentials | None = Depends(bearer_scheme),
    db: AsyncSession = Depends(get_db),
) -> CurrentUser:
    """
    FastAPI dependency returning the authenticated agency user.

    The token only identifies the caller. Status, role and name are read
    from the stored user on every request.

    Usage:
        @router.get("/students")
        async def list_students(user: CurrentUser = Depends(get_current_user)):
            ...

    Raises:
        HTTPException 401: If no valid token is presented or the user no
            longer exists in the token's agency
        HTTPException 403: If the account is not active
    """
    token = _extract_token(request, credentials)
    claims = validate_access_token(token)

    stored = await UserRepository.get_in_agency(db, claims.agency_id, claims.id)
    if stored is None:
        logger.warning(f"Token for unknown user {claims.id} (agency {claims.agency_id})")
        raise _unauthorized("USER_NOT_FOUND", "The account for this token no longer exists.")
    if stored.status != UserStatus.ACTIVE:
        logger.warning(f"Rejected token for {stored.status.value} user {stored.id}")
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail={"error": "ACCOUNT_INACTIVE", "message": "This account is not active."},
        )

    user = CurrentUser(
        id=stored.id,
        agency_id=stored.agency_id,
        email=stored.email,
        role=stored.role.value,
        name=stored.full_name,
    )
    request.state.user_id = user.id
    logger.debug(f"Authenticated user: {user.id} (agency {user.agency_id})")
    return user


async def require_admin(user: CurrentUser = Depends(get_current_user)) -> CurrentUser:
    """
    FastAPI dependency allowing only agency admins.

    Raises:
        HTTPException 403: If the user is not an agency_admin
    """
    if not user.is_admin:
        logger.warning(f"Access denied: user {user.id} has role '{user.role}', admin required")
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail={
                "error": "ADMIN_ACCESS_REQUIRED",
                "message": "Agency admin access is required for this action.",
            },
        )
    return user


async def get_tenant_db(
    user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
) -> AsyncGenerator[AsyncSession, None]:
    """Database session scoped to the caller's agency."""
    await set_tenant_context(db, user.agency_id)
    yield db


__all__ = [
    "CurrentUser",
    "get_current_user",
    "get_tenant_db",
    "require_admin",
    "validate_access_token",
]
