"""Validation and weekday helpers for recurrence templates.

Everything here is pure: no persistence, no clock reads.
"""
from __future__ import annotations

from datetime import date, timedelta
from typing import Iterable, Iterator, List, Union

from ..exceptions import invalid_recurrence
from .models import ALL_WEEKDAYS_MASK, WEEKDAY_BITS, RecurrenceTemplate

_SHORT_NAMES = ("Sun", "Mon", "Tue", "Wed", "Thu", "Fri", "Sat")
_LONG_NAMES = ("Sunday", "Monday", "Tuesday", "Wednesday", "Thursday", "Friday", "Saturday")


def local_weekday(day: date) -> int:
    """Return the Sunday-based weekday index (0=Sunday .. 6=Saturday)."""

    # date.weekday() is Monday-based.
    return (day.weekday() + 1) % 7


def validate_template(template: RecurrenceTemplate) -> RecurrenceTemplate:
    """Re-check template invariants, raising :class:`InvalidRecurrence`.

    The pydantic model already validates on construction; this guards
    templates built with ``model_construct`` or loaded from storage.
    """

    mask = template.weekday_mask
    if mask <= 0:
        raise invalid_recurrence("At least one weekday must be selected.", weekday_mask=mask)
    if mask > ALL_WEEKDAYS_MASK:
        raise invalid_recurrence("Weekday mask has bits outside Sunday..Saturday.", weekday_mask=mask)
    if template.duration_minutes <= 0:
        raise invalid_recurrence(
            "Duration must be positive.", duration_minutes=template.duration_minutes
        )
    if template.visibility_lead_days < 0:
        raise invalid_recurrence(
            "Visibility lead days must not be negative.",
            visibility_lead_days=template.visibility_lead_days,
        )
    if template.end_date is not None and template.end_date < template.start_date:
        raise invalid_recurrence(
            "End date must be on or after start date.",
            start_date=template.start_date.isoformat(),
            end_date=template.end_date.isoformat(),
        )
    return template


def matches_weekday(template: Union[RecurrenceTemplate, int], day: date) -> bool:
    """Return whether ``day`` falls on one of the template's weekdays."""

    mask = template if isinstance(template, int) else template.weekday_mask
    return bool(mask & (1 << local_weekday(day)))


def mask_from_weekdays(names: Iterable[str]) -> int:
    """Build a weekday mask from short or long English day names."""

    mask = 0
    for name in names:
        key = name.strip()[:3].title()
        if key not in WEEKDAY_BITS:
            raise invalid_recurrence(f"Unknown weekday {name!r}.")
        mask |= WEEKDAY_BITS[key]
    return mask


def _names(mask: int, labels: tuple) -> List[str]:
    return [label for index, label in enumerate(labels) if mask & (1 << index)]


def weekday_names(mask: int) -> List[str]:
    return _names(mask, _LONG_NAMES)


def weekday_short_names(mask: int) -> List[str]:
    return _names(mask, _SHORT_NAMES)


def iter_matching_dates(mask: int, start: date, end: date) -> Iterator[date]:
    """Yield every date in ``[start, end]`` whose weekday is in ``mask``."""

    current = start
    while current <= end:
        if matches_weekday(mask, current):
            yield current
        current += timedelta(days=1)


__all__ = [
    "iter_matching_dates",
    "local_weekday",
    "mask_from_weekdays",
    "matches_weekday",
    "validate_template",
    "weekday_names",
    "weekday_short_names",
]
