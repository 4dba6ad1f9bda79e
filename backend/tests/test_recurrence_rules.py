"""Tests for weekday masks and recurrence template validation."""
from __future__ import annotations

from datetime import date, time

import pytest
from pydantic import ValidationError

from backend.app.exceptions import InvalidRecurrence
from backend.app.recurrence import (
    ALL_WEEKDAYS_MASK,
    WEEKDAY_BITS,
    RecurrenceTemplate,
    iter_matching_dates,
    local_weekday,
    mask_from_weekdays,
    matches_weekday,
    validate_template,
    weekday_names,
    weekday_short_names,
)
from backend.tests.in_memory import MONDAY, THURSDAY, TUE_THU_MASK, TUESDAY, make_template


def test_local_weekday_is_sunday_based():
    assert local_weekday(date(2025, 3, 2)) == 0  # Sunday
    assert local_weekday(MONDAY) == 1
    assert local_weekday(date(2025, 3, 8)) == 6  # Saturday


def test_matches_weekday_accepts_template_or_mask():
    template = make_template()
    assert matches_weekday(template, TUESDAY)
    assert matches_weekday(TUE_THU_MASK, THURSDAY)
    assert not matches_weekday(template, MONDAY)


def test_mask_from_weekdays_accepts_short_and_long_names():
    assert mask_from_weekdays(["Tue", "thursday"]) == TUE_THU_MASK
    assert mask_from_weekdays(["sun", "mon", "tue", "wed", "thu", "fri", "sat"]) == ALL_WEEKDAYS_MASK


def test_mask_from_weekdays_rejects_unknown_names():
    with pytest.raises(InvalidRecurrence):
        mask_from_weekdays(["Funday"])


def test_weekday_names_follow_sunday_first_order():
    mask = WEEKDAY_BITS["Sat"] | WEEKDAY_BITS["Sun"] | WEEKDAY_BITS["Wed"]
    assert weekday_names(mask) == ["Sunday", "Wednesday", "Saturday"]
    assert weekday_short_names(mask) == ["Sun", "Wed", "Sat"]


def test_iter_matching_dates_is_inclusive_of_both_ends():
    dates = list(iter_matching_dates(TUE_THU_MASK, TUESDAY, date(2025, 3, 13)))
    assert dates == [TUESDAY, THURSDAY, date(2025, 3, 11), date(2025, 3, 13)]


def test_template_rejects_empty_mask():
    with pytest.raises(ValidationError):
        make_template(weekday_mask=0)


def test_template_rejects_bits_outside_week():
    with pytest.raises(ValidationError):
        make_template(weekday_mask=128)


def test_template_rejects_end_before_start():
    with pytest.raises(ValidationError):
        make_template(end_date=date(2025, 3, 1))


def test_template_defaults_match_club_conventions():
    template = RecurrenceTemplate(
        template_id="series-defaults",
        club_id="club-1",
        title="Open play",
        weekday_mask=WEEKDAY_BITS["Wed"],
        start_time_local=time(18, 30),
        start_date=MONDAY,
        currency="gbp",
    )
    assert template.duration_minutes == 90
    assert template.visibility_lead_days == 5
    assert template.currency == "GBP"


def test_validate_template_catches_unvalidated_models():
    template = RecurrenceTemplate.model_construct(**{**make_template().model_dump(), "weekday_mask": 0})
    with pytest.raises(InvalidRecurrence) as excinfo:
        validate_template(template)
    assert excinfo.value.code == "invalid_recurrence"
    assert excinfo.value.to_http_exception().status_code == 400


def test_validate_template_rejects_negative_lead_days():
    template = RecurrenceTemplate.model_construct(**{**make_template().model_dump(), "visibility_lead_days": -1})
    with pytest.raises(InvalidRecurrence):
        validate_template(template)
