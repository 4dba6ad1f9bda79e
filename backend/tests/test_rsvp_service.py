"""Tests for the RSVP state machine and its quota side effects."""
from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest

from backend.app.exceptions import QuotaWriteFailure, RsvpWriteFailure, SessionNotFound
from backend.app.quota import SubscriptionStatus
from backend.app.recurrence import PaymentMode
from backend.app.rsvp import QuotaAction, RsvpChoice, RsvpService, quota_action_for
from backend.app.sessions import SessionStatus, build_instance
from backend.tests.in_memory import (
    MONDAY,
    THURSDAY,
    TUESDAY,
    InMemoryQuotaRepository,
    InMemoryRsvpRepository,
    InMemorySeriesRepository,
    InMemoryTransactionFactory,
    make_template,
)

NOW = datetime(2025, 3, 1, 9, 0, tzinfo=timezone.utc)


@pytest.fixture
def rsvp_components():
    sessions = InMemorySeriesRepository()
    template = make_template()
    for session_id, day in [
        ("tue-1", TUESDAY),
        ("thu-1", THURSDAY),
        ("tue-2", MONDAY + timedelta(days=8)),
    ]:
        sessions.add_instance(build_instance(template, day, local_zone=timezone.utc, session_id=session_id))
    free_template = make_template(template_id="series-free", payment_mode=PaymentMode.FREE)
    sessions.add_instance(
        build_instance(free_template, TUESDAY, local_zone=timezone.utc, session_id="free-1")
    )

    quota = InMemoryQuotaRepository(sessions)
    rsvps = InMemoryRsvpRepository()
    transactions = InMemoryTransactionFactory(rsvps, sessions, quota)
    service = RsvpService(transactions=transactions, clock=lambda: NOW)
    return service, rsvps, quota, transactions


@pytest.mark.parametrize(
    "previous,new,expected",
    [
        (None, RsvpChoice.YES, QuotaAction.CONSUME),
        (RsvpChoice.NO, RsvpChoice.YES, QuotaAction.CONSUME),
        (RsvpChoice.MAYBE, RsvpChoice.YES, QuotaAction.CONSUME),
        (RsvpChoice.YES, RsvpChoice.YES, QuotaAction.NONE),
        (RsvpChoice.YES, RsvpChoice.NO, QuotaAction.RELEASE),
        (RsvpChoice.YES, RsvpChoice.MAYBE, QuotaAction.RELEASE),
        (RsvpChoice.MAYBE, RsvpChoice.NO, QuotaAction.NONE),
        (None, RsvpChoice.NO, QuotaAction.NONE),
    ],
)
def test_quota_action_depends_only_on_the_transition(previous, new, expected):
    assert quota_action_for(previous, new, free_session=False, payment_mode=PaymentMode.INCLUDED) == expected


def test_free_sessions_never_consume():
    assert quota_action_for(None, RsvpChoice.YES, free_session=True, payment_mode=PaymentMode.INCLUDED) == QuotaAction.NONE
    assert quota_action_for(None, RsvpChoice.YES, free_session=False, payment_mode=PaymentMode.FREE) == QuotaAction.NONE


def test_cancelled_sessions_never_consume_but_still_release():
    assert (
        quota_action_for(
            None, RsvpChoice.YES, free_session=False, payment_mode=PaymentMode.INCLUDED, session_cancelled=True
        )
        == QuotaAction.NONE
    )
    assert (
        quota_action_for(
            RsvpChoice.YES, RsvpChoice.NO, free_session=False, payment_mode=PaymentMode.INCLUDED, session_cancelled=True
        )
        == QuotaAction.RELEASE
    )


def test_yes_consumes_a_slot(rsvp_components):
    service, rsvps, quota, _ = rsvp_components
    subscription = quota.add_subscription(weekly_allowance=2)

    outcome = service.set_response("person-1", "tue-1", RsvpChoice.YES, note="Bringing a friend")

    assert outcome.quota_action == QuotaAction.CONSUME
    assert outcome.subscription_slot_used
    assert outcome.previous_response is None
    assert quota.has_usage(subscription.subscription_id, "tue-1")
    stored = rsvps.get_response("person-1", "tue-1")
    assert stored.note == "Bringing a friend"
    assert stored.responded_at == NOW


def test_allowance_of_one_covers_only_the_first_yes_in_a_week(rsvp_components):
    service, rsvps, quota, _ = rsvp_components
    quota.add_subscription(weekly_allowance=1)

    first = service.set_response("person-1", "tue-1", RsvpChoice.YES)
    second = service.set_response("person-1", "thu-1", RsvpChoice.YES)

    assert first.subscription_slot_used
    assert not second.subscription_slot_used
    assert rsvps.get_response("person-1", "tue-1").response == RsvpChoice.YES
    assert rsvps.get_response("person-1", "thu-1").response == RsvpChoice.YES
    assert len(quota.usages) == 1


def test_withdrawing_releases_the_slot_for_another_session(rsvp_components):
    service, _, quota, _ = rsvp_components
    quota.add_subscription(weekly_allowance=1)

    service.set_response("person-1", "tue-1", RsvpChoice.YES)
    withdrawn = service.set_response("person-1", "tue-1", RsvpChoice.NO)
    moved = service.set_response("person-1", "thu-1", RsvpChoice.YES)

    assert withdrawn.quota_action == QuotaAction.RELEASE
    assert withdrawn.previous_response == RsvpChoice.YES
    assert not withdrawn.subscription_slot_used
    assert moved.subscription_slot_used


def test_maybe_also_releases(rsvp_components):
    service, _, quota, _ = rsvp_components
    quota.add_subscription(weekly_allowance=1)

    service.set_response("person-1", "tue-1", RsvpChoice.YES)
    outcome = service.set_response("person-1", "tue-1", RsvpChoice.MAYBE)

    assert outcome.quota_action == QuotaAction.RELEASE
    assert quota.usages == {}


def test_repeating_yes_does_not_consume_twice(rsvp_components):
    service, _, quota, _ = rsvp_components
    quota.add_subscription(weekly_allowance=3)

    service.set_response("person-1", "tue-1", RsvpChoice.YES)
    again = service.set_response("person-1", "tue-1", RsvpChoice.YES)

    assert again.quota_action == QuotaAction.NONE
    assert again.subscription_slot_used
    assert len(quota.usages) == 1


def test_free_session_flag_bypasses_quota(rsvp_components):
    service, _, quota, _ = rsvp_components
    quota.add_subscription(weekly_allowance=1)

    outcome = service.set_response("person-1", "tue-1", RsvpChoice.YES, free_session=True)

    assert outcome.quota_action == QuotaAction.NONE
    assert not outcome.subscription_slot_used
    assert quota.usages == {}


def test_yes_on_cancelled_session_leaves_the_week_free(rsvp_components):
    service, rsvps, quota, _ = rsvp_components
    quota.add_subscription(weekly_allowance=1)
    quota.sessions.set_instance_status("tue-1", SessionStatus.CANCELLED)

    cancelled = service.set_response("person-1", "tue-1", RsvpChoice.YES)
    live = service.set_response("person-1", "thu-1", RsvpChoice.YES)

    assert cancelled.quota_action == QuotaAction.NONE
    assert not cancelled.subscription_slot_used
    assert rsvps.get_response("person-1", "tue-1").response == RsvpChoice.YES
    assert live.quota_action == QuotaAction.CONSUME
    assert live.subscription_slot_used


def test_free_payment_mode_bypasses_quota(rsvp_components):
    service, _, quota, _ = rsvp_components
    quota.add_subscription(weekly_allowance=1)

    outcome = service.set_response("person-1", "free-1", RsvpChoice.YES)

    assert outcome.quota_action == QuotaAction.NONE
    assert quota.usages == {}


def test_yes_without_subscription_is_still_recorded(rsvp_components):
    service, rsvps, quota, _ = rsvp_components

    outcome = service.set_response("person-1", "tue-1", RsvpChoice.YES)

    assert outcome.quota_action == QuotaAction.CONSUME
    assert not outcome.subscription_slot_used
    assert rsvps.get_response("person-1", "tue-1").response == RsvpChoice.YES
    assert quota.usages == {}


def test_quota_failure_rolls_back_the_response(rsvp_components):
    service, rsvps, quota, transactions = rsvp_components
    quota.add_subscription(weekly_allowance=1)
    quota.fail_on_insert = True

    with pytest.raises(QuotaWriteFailure) as excinfo:
        service.set_response("person-1", "tue-1", RsvpChoice.YES)

    assert excinfo.value.status_code == 503
    assert rsvps.get_response("person-1", "tue-1") is None
    assert transactions.rollbacks == 1


def test_response_write_failure_leaves_quota_untouched(rsvp_components):
    service, rsvps, quota, _ = rsvp_components
    quota.add_subscription(weekly_allowance=1)
    rsvps.fail_on_upsert = True

    with pytest.raises(RsvpWriteFailure):
        service.set_response("person-1", "tue-1", RsvpChoice.YES)

    assert quota.usages == {}


def test_unknown_session_is_rejected(rsvp_components):
    service, _, _, _ = rsvp_components
    with pytest.raises(SessionNotFound):
        service.set_response("person-1", "missing", RsvpChoice.YES)


def test_release_follows_the_subscription_that_paid(rsvp_components):
    service, _, quota, _ = rsvp_components
    old = quota.add_subscription(subscription_id="sub-old", weekly_allowance=1)
    service.set_response("person-1", "tue-1", RsvpChoice.YES)

    quota.subscriptions[0] = old.model_copy(update={"status": SubscriptionStatus.CANCELLED})
    quota.add_subscription(subscription_id="sub-new", weekly_allowance=1)
    service.set_response("person-1", "tue-1", RsvpChoice.NO)

    assert quota.usages == {}


def test_subscription_is_resolved_fresh_and_locked(rsvp_components):
    service, _, quota, _ = rsvp_components
    quota.add_subscription(weekly_allowance=1)

    service.set_response("person-1", "tue-1", RsvpChoice.YES)
    service.lock_subscription_rows = False
    service.set_response("person-1", "thu-1", RsvpChoice.YES)

    assert quota.locked == [("person-1", "club-1")]


def test_get_response_reads_the_current_value(rsvp_components):
    service, _, _, _ = rsvp_components
    assert service.get_response("person-1", "tue-1") is None
    service.set_response("person-1", "tue-1", RsvpChoice.MAYBE)
    assert service.get_response("person-1", "tue-1").response == RsvpChoice.MAYBE


def test_get_response_for_unknown_session_raises(rsvp_components):
    service, _, _, _ = rsvp_components
    with pytest.raises(SessionNotFound):
        service.get_response("person-1", "missing")
