"""Agency settings schemas."""

from datetime import datetime, time
from uuid import UUID
from zoneinfo import available_timezones

from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator


class AgencyResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    name: str
    contact_email: str | None
    contact_phone: str | None
    currency: str
    timezone: str
    overdue_cutoff_time: time
    due_soon_threshold_days: int
    created_at: datetime
    updated_at: datetime


class AgencyUpdate(BaseModel):
    """Request body for PATCH /agencies/me. Only provided fields change."""

    name: str | None = Field(None, min_length=1, max_length=255)
    contact_email: EmailStr | None = None
    contact_phone: str | None = Field(None, max_length=50)
    currency: str | None = Field(None, min_length=3, max_length=3)
    timezone: str | None = None
    overdue_cutoff_time: time | None = None
    due_soon_threshold_days: int | None = Field(None, ge=1, le=30)

    @field_validator("currency")
    @classmethod
    def uppercase_currency(cls, v: str | None) -> str | None:
        return v.upper() if v else v

    @field_validator("timezone")
    @classmethod
    def validate_timezone(cls, v: str | None) -> str | None:
        if v is not None and v not in available_timezones():
            raise ValueError(f"Unknown timezone: {v}")
        return v
