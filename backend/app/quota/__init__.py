"""Subscription quota ledger tracking weekly covered sessions."""

from .ledger import QuotaLedger, QuotaRepository, week_bounds
from .models import (
    MemberSubscription,
    QuotaDecision,
    QuotaOutcome,
    QuotaUsageRecord,
    SubscriptionStatus,
    WeeklyUsage,
    WeekWindow,
)

__all__ = [
    "MemberSubscription",
    "QuotaDecision",
    "QuotaLedger",
    "QuotaOutcome",
    "QuotaRepository",
    "QuotaUsageRecord",
    "SubscriptionStatus",
    "WeekWindow",
    "WeeklyUsage",
    "week_bounds",
]
