"""Domain models for subscription-covered session quotas."""
from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class SubscriptionStatus(str, Enum):
    """Billing status of a member subscription."""

    ACTIVE = "active"
    PAST_DUE = "past_due"
    CANCELLED = "cancelled"


class MemberSubscription(BaseModel):
    """A member's billing plan, read-only to the scheduling core."""

    subscription_id: str
    person_id: str
    club_id: str
    plan_id: str
    status: SubscriptionStatus
    weekly_allowance: Optional[int] = Field(
        default=0,
        ge=0,
        description="Sessions covered per Monday-Sunday week; None means unlimited",
    )

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    @property
    def is_active(self) -> bool:
        return self.status == SubscriptionStatus.ACTIVE

    @property
    def is_unlimited(self) -> bool:
        return self.weekly_allowance is None


class QuotaUsageRecord(BaseModel):
    """Evidence that a subscription's allowance covered a session."""

    subscription_id: str
    session_id: str
    used_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    model_config = ConfigDict(populate_by_name=True, frozen=True)


class WeekWindow(BaseModel):
    """Half-open UTC interval ``[starts_at, ends_at)`` from Monday 00:00 to the next Monday."""

    starts_at: datetime
    ends_at: datetime

    model_config = ConfigDict(frozen=True)


class WeeklyUsage(BaseModel):
    """How much of a subscription's allowance is spent in one week."""

    subscription_id: str
    week: WeekWindow
    used: int = Field(ge=0)
    allowance: Optional[int] = None

    model_config = ConfigDict(frozen=True)

    @property
    def has_room(self) -> bool:
        return self.allowance is None or self.used < self.allowance


class QuotaOutcome(str, Enum):
    """Result of asking the ledger to cover a session."""

    CONSUMED = "consumed"
    ALREADY_COVERED = "already_covered"
    OVER_ALLOWANCE = "over_allowance"


class QuotaDecision(BaseModel):
    subscription_id: str
    session_id: str
    outcome: QuotaOutcome
    used_before: int = 0
    allowance: Optional[int] = None

    model_config = ConfigDict(frozen=True)

    @property
    def covered(self) -> bool:
        return self.outcome != QuotaOutcome.OVER_ALLOWANCE


__all__ = [
    "MemberSubscription",
    "QuotaDecision",
    "QuotaOutcome",
    "QuotaUsageRecord",
    "SubscriptionStatus",
    "WeekWindow",
    "WeeklyUsage",
]
