"""Schemas shared by several modules."""

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field


class NoteCreate(BaseModel):
    """Request body for creating or editing a note."""

    content: str = Field(..., min_length=1, max_length=2000)


class NoteResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    user_id: UUID | None
    author_name: str | None = None
    content: str
    created_at: datetime
    updated_at: datetime
