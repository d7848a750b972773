"""
Authentication Router

Endpoints:
- POST /auth/login - Exchange email/password for tokens and a session cookie
- POST /auth/logout - Clear the session cookie
- GET /auth/me - The signed-in user
"""

import logging

from fastapi import APIRouter, Depends, HTTPException, Request, Response, status
from sqlalchemy.ext.asyncio import AsyncSession

from pleeno.core.auth import CurrentUser, get_current_user
from pleeno.core.config import settings
from pleeno.core.database import get_db
from pleeno.core.rate_limit import LOGIN_RATE_LIMIT, client_ip, enforce_rate_limit
from pleeno.core.security import create_access_token, create_refresh_token, verify_password
from pleeno.modules.auth.schemas import LoginRequest, LoginResponse, SessionUser
from pleeno.modules.users.repository import UserRepository

logger = logging.getLogger(__name__)

router = APIRouter()

_INVALID_CREDENTIALS = HTTPException(
    status_code=status.HTTP_401_UNAUTHORIZED,
    detail={
        "error": "INVALID_CREDENTIALS",
        "message": "Invalid email or password.",
    },
)


@router.post(
    "/login",
    response_model=LoginResponse,
    responses={
        401: {"description": "Invalid credentials"},
        403: {"description": "Account inactive or suspended"},
        429: {"description": "Too many login attempts"},
    },
)
async def login(
    credentials: LoginRequest,
    request: Request,
    response: Response,
    db: AsyncSession = Depends(get_db),
) -> LoginResponse:
    """
    Authenticate a user and return JWT tokens.

    The access token is also set as an HttpOnly session cookie so browser
    clients do not need to store it.

    Raises:
        HTTPException 401: Invalid credentials
        HTTPException 403: Account not active
        HTTPException 429: Too many attempts from this address
    """
    limit, window = LOGIN_RATE_LIMIT
    await enforce_rate_limit(f"login:{client_ip(request)}", limit, window)

    user = await UserRepository.get_by_email(db, credentials.email)

    if not user or not verify_password(credentials.password, user.password_hash):
        logger.warning("Failed login attempt")
        raise _INVALID_CREDENTIALS

    if not user.is_active:
        logger.warning(f"Login attempt for {user.status.value} account: {user.id}")
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail={
                "error": "ACCOUNT_INACTIVE",
                "message": "Your account is not active. Contact your agency admin.",
            },
        )

    access_token = create_access_token(
        subject=str(user.id),
        additional_claims={
            "agency_id": str(user.agency_id),
            "email": user.email,
            "role": user.role.value,
            "name": user.full_name,
        },
    )
    refresh_token = create_refresh_token(subject=str(user.id))

    response.set_cookie(
        key=settings.session_cookie_name,
        value=access_token,
        max_age=settings.access_token_expire_minutes * 60,
        httponly=True,
        secure=settings.is_production,
        samesite="lax",
    )

    logger.info(f"User logged in: {user.id} (role: {user.role.value})")

    return LoginResponse(
        access_token=access_token,
        refresh_token=refresh_token,
        token_type="bearer",
        user=SessionUser(
            id=user.id,
            agency_id=user.agency_id,
            email=user.email,
            full_name=user.full_name,
            role=user.role.value,
        ),
    )


@router.post("/logout", status_code=status.HTTP_204_NO_CONTENT)
async def logout(response: Response) -> Response:
    response.delete_cookie(settings.session_cookie_name)
    response.status_code = status.HTTP_204_NO_CONTENT
    return response


@router.get("/me", response_model=SessionUser)
async def me(user: CurrentUser = Depends(get_current_user)) -> SessionUser:
    return SessionUser(
        id=user.id,
        agency_id=user.agency_id,
        email=user.email,
        full_name=user.name,
        role=user.role,
    )
