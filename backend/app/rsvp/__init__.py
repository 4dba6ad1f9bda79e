"""Attendance responses and the quota transitions they trigger."""

from .models import QuotaAction, RsvpChoice, RsvpOutcome, RsvpResponse
from .service import (
    RsvpRepository,
    RsvpService,
    RsvpTransactionFactory,
    RsvpUnitOfWork,
    SessionLookup,
    quota_action_for,
)

__all__ = [
    "QuotaAction",
    "RsvpChoice",
    "RsvpOutcome",
    "RsvpRepository",
    "RsvpResponse",
    "RsvpService",
    "RsvpTransactionFactory",
    "RsvpUnitOfWork",
    "SessionLookup",
    "quota_action_for",
]
