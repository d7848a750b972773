"""Authentication schemas."""

from uuid import UUID

from pydantic import BaseModel, ConfigDict, EmailStr


class LoginRequest(BaseModel):
    """Login request schema."""

    email: EmailStr
    password: str


class SessionUser(BaseModel):
    """The signed-in user as returned by login and /auth/me."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    agency_id: UUID
    email: str
    full_name: str | None = None
    role: str


class LoginResponse(BaseModel):
    """Login response schema."""

    access_token: str
    refresh_token: str
    token_type: str = "bearer"
    user: SessionUser
