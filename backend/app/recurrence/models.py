"""Domain models for weekly recurrence templates."""
from __future__ import annotations

from datetime import date, datetime, time, timezone
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

# Sunday-based numbering: bit i is weekday i, 0=Sunday .. 6=Saturday.
WEEKDAY_BITS = {
    "Sun": 1,
    "Mon": 2,
    "Tue": 4,
    "Wed": 8,
    "Thu": 16,
    "Fri": 32,
    "Sat": 64,
}
ALL_WEEKDAYS_MASK = 127


class PaymentMode(str, Enum):
    """How attendance at a generated session is paid for."""

    INCLUDED = "included"
    ONE_OFF = "one_off"
    FREE = "free"


class RecurrenceTemplate(BaseModel):
    """Weekly recurrence definition from which sessions are generated."""

    template_id: str
    club_id: str
    title: str = Field(min_length=1)
    description: Optional[str] = None
    location: Optional[str] = None
    weekday_mask: int = Field(description="Bit i set means the series recurs on weekday i (0=Sunday)")
    start_time_local: time
    duration_minutes: int = Field(default=90, gt=0)
    start_date: date
    end_date: Optional[date] = None
    visibility_lead_days: int = Field(default=5, ge=0)
    default_fee_cents: Optional[int] = Field(default=None, ge=0)
    currency: str = Field(default="GBP", min_length=3, max_length=3)
    payment_mode: PaymentMode = PaymentMode.INCLUDED
    created_by_person_id: Optional[str] = None
    archived_at: Optional[datetime] = None
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    @field_validator("currency")
    @classmethod
    def _upper_currency(cls, value: str) -> str:
        return value.upper()

    @field_validator("weekday_mask")
    @classmethod
    def _check_mask(cls, value: int) -> int:
        if value <= 0:
            raise ValueError("weekday_mask must select at least one weekday")
        if value > ALL_WEEKDAYS_MASK:
            raise ValueError("weekday_mask has bits outside Sunday..Saturday")
        return value

    @model_validator(mode="after")
    def _check_date_range(self) -> "RecurrenceTemplate":
        if self.end_date is not None and self.end_date < self.start_date:
            raise ValueError("end_date must be on or after start_date")
        return self

    @property
    def is_archived(self) -> bool:
        return self.archived_at is not None


__all__ = [
    "ALL_WEEKDAYS_MASK",
    "PaymentMode",
    "RecurrenceTemplate",
    "WEEKDAY_BITS",
]
