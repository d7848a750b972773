"""
Agency Models

An agency is the tenant. Every tenant-scoped row references it via agency_id.
"""

from datetime import time

from sqlalchemy import Integer, String, Time
from sqlalchemy.orm import Mapped, mapped_column

from pleeno.modules.shared import BaseModel

DEFAULT_CURRENCY = "AUD"
DEFAULT_TIMEZONE = "Australia/Brisbane"
DEFAULT_OVERDUE_CUTOFF = time(17, 0)
DEFAULT_DUE_SOON_DAYS = 4


class Agency(BaseModel):
    """Education agency (tenant)."""

    __tablename__ = "agencies"

    name: Mapped[str] = mapped_column(String(255), nullable=False)
    contact_email: Mapped[str | None] = mapped_column(String(255), nullable=True)
    contact_phone: Mapped[str | None] = mapped_column(String(50), nullable=True)

    # Defaults applied to new payment plans
    currency: Mapped[str] = mapped_column(String(3), nullable=False, default=DEFAULT_CURRENCY)

    # Overdue detection runs against the agency's local clock
    timezone: Mapped[str] = mapped_column(String(64), nullable=False, default=DEFAULT_TIMEZONE)
    overdue_cutoff_time: Mapped[time] = mapped_column(
        Time, nullable=False, default=DEFAULT_OVERDUE_CUTOFF
    )
    due_soon_threshold_days: Mapped[int] = mapped_column(
        Integer, nullable=False, default=DEFAULT_DUE_SOON_DAYS
    )

    def __repr__(self) -> str:
        return f"<Agency(id={self.id}, name={self.name})>"
