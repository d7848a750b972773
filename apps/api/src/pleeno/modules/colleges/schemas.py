"""
College Schemas

Pydantic schemas for colleges, branches and contacts.
"""

from datetime import date, datetime
from decimal import Decimal
from uuid import UUID

from pydantic import BaseModel, ConfigDict, EmailStr, Field

from pleeno.modules.colleges.models import GstStatus


class CollegeCreate(BaseModel):
    """Request body for POST /colleges."""

    name: str = Field(..., min_length=1, max_length=255)
    city: str | None = Field(None, max_length=100)
    country: str | None = Field(None, max_length=100)
    default_commission_rate_percent: Decimal | None = Field(None, ge=0, le=100, decimal_places=2)
    gst_status: GstStatus = GstStatus.INCLUDED
    contract_expiration_date: date | None = None


class CollegeUpdate(BaseModel):
    name: str | None = Field(None, min_length=1, max_length=255)
    city: str | None = Field(None, max_length=100)
    country: str | None = Field(None, max_length=100)
    default_commission_rate_percent: Decimal | None = Field(None, ge=0, le=100, decimal_places=2)
    gst_status: GstStatus | None = None
    contract_expiration_date: date | None = None


class BranchCreate(BaseModel):
    """
    Request body for POST /colleges/{id}/branches.

    When commission_rate_percent is omitted the college default is used.
    """

    name: str = Field(..., min_length=1, max_length=255)
    city: str | None = Field(None, max_length=100)
    commission_rate_percent: Decimal | None = Field(None, ge=0, le=100, decimal_places=2)


class BranchUpdate(BaseModel):
    name: str | None = Field(None, min_length=1, max_length=255)
    city: str | None = Field(None, max_length=100)
    commission_rate_percent: Decimal | None = Field(None, ge=0, le=100, decimal_places=2)


class BranchResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    college_id: UUID
    name: str
    city: str | None
    commission_rate_percent: Decimal | None
    created_at: datetime
    updated_at: datetime


class CollegeResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    name: str
    city: str | None
    country: str | None
    default_commission_rate_percent: Decimal | None
    gst_status: GstStatus
    contract_expiration_date: date | None
    created_at: datetime
    updated_at: datetime


class CollegeDetailResponse(CollegeResponse):
    branches: list[BranchResponse] = []


class CollegeListResponse(BaseModel):
    items: list[CollegeResponse]
    total: int
    skip: int
    limit: int


class ContactCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)
    role_department: str | None = Field(None, max_length=255)
    position_title: str | None = Field(None, max_length=255)
    email: EmailStr | None = None
    phone: str | None = Field(None, max_length=50)


class ContactUpdate(BaseModel):
    name: str | None = Field(None, min_length=1, max_length=255)
    role_department: str | None = Field(None, max_length=255)
    position_title: str | None = Field(None, max_length=255)
    email: EmailStr | None = None
    phone: str | None = Field(None, max_length=50)


class ContactResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    college_id: UUID
    name: str
    role_department: str | None
    position_title: str | None
    email: str | None
    phone: str | None
    created_at: datetime

