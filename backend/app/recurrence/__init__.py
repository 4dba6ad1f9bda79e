"""Recurrence templates describing weekly session series."""

from .models import ALL_WEEKDAYS_MASK, WEEKDAY_BITS, PaymentMode, RecurrenceTemplate
from .rules import (
    iter_matching_dates,
    local_weekday,
    mask_from_weekdays,
    matches_weekday,
    validate_template,
    weekday_names,
    weekday_short_names,
)

__all__ = [
    "ALL_WEEKDAYS_MASK",
    "PaymentMode",
    "RecurrenceTemplate",
    "WEEKDAY_BITS",
    "iter_matching_dates",
    "local_weekday",
    "mask_from_weekdays",
    "matches_weekday",
    "validate_template",
    "weekday_names",
    "weekday_short_names",
]
