"""Weekly allowance ledger for member subscriptions."""
from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, time, timedelta, timezone
from typing import Callable, Optional, Protocol, Sequence

from ..clock import current_time
from ..exceptions import SubscriptionNotFound
from .models import (
    MemberSubscription,
    QuotaDecision,
    QuotaOutcome,
    QuotaUsageRecord,
    WeeklyUsage,
    WeekWindow,
)

logger = logging.getLogger(__name__)


class QuotaRepository(Protocol):
    """Persistence operations required by the quota ledger."""

    def get_active_subscription(
        self,
        person_id: str,
        club_id: str,
        *,
        for_update: bool = False,
    ) -> Optional[MemberSubscription]:
        ...

    def list_member_subscriptions(self, person_id: str, club_id: str) -> Sequence[MemberSubscription]:
        ...

    def count_usage_between(self, subscription_id: str, starts_at: datetime, ends_at: datetime) -> int:
        """Count usage rows whose session starts in ``[starts_at, ends_at)``."""

    def has_usage(self, subscription_id: str, session_id: str) -> bool:
        ...

    def insert_usage(
        self,
        record: QuotaUsageRecord,
        *,
        week: WeekWindow,
        allowance: Optional[int],
    ) -> bool:
        """Insert ``record`` only while the week's count is below ``allowance``.

        Returns ``True`` when a row was written, ``False`` when the row already
        existed or the allowance was reached.
        """

    def delete_usage(self, subscription_id: str, session_id: str) -> bool:
        ...

    def delete_usage_for_session(self, session_id: str) -> int:
        ...


def week_bounds(moment: datetime) -> WeekWindow:
    """Return the UTC Monday-to-Monday window containing ``moment``."""

    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    moment = moment.astimezone(timezone.utc)
    monday = moment.date() - timedelta(days=moment.weekday())
    starts_at = datetime.combine(monday, time.min, tzinfo=timezone.utc)
    return WeekWindow(starts_at=starts_at, ends_at=starts_at + timedelta(days=7))


@dataclass
class QuotaLedger:
    """Consumes and releases weekly allowance slots keyed by (subscription, session)."""

    repository: QuotaRepository
    clock: Optional[Callable[[], datetime]] = None

    def active_subscription(
        self,
        person_id: str,
        club_id: str,
        *,
        for_update: bool = False,
    ) -> Optional[MemberSubscription]:
        subscription = self.repository.get_active_subscription(person_id, club_id, for_update=for_update)
        if subscription is not None and not subscription.is_active:
            return None
        return subscription

    def require_active_subscription(
        self,
        person_id: str,
        club_id: str,
        *,
        for_update: bool = False,
    ) -> MemberSubscription:
        subscription = self.active_subscription(person_id, club_id, for_update=for_update)
        if subscription is None:
            raise SubscriptionNotFound.for_member(person_id, club_id)
        return subscription

    def weekly_usage(self, subscription: MemberSubscription, moment: datetime) -> WeeklyUsage:
        week = week_bounds(moment)
        used = self.repository.count_usage_between(subscription.subscription_id, week.starts_at, week.ends_at)
        return WeeklyUsage(
            subscription_id=subscription.subscription_id,
            week=week,
            used=used,
            allowance=subscription.weekly_allowance,
        )

    def consume(
        self,
        subscription: MemberSubscription,
        session_id: str,
        session_starts_at: datetime,
    ) -> QuotaDecision:
        """Charge one slot of the session's week, if the week still has room.

        Never raises for being over allowance; the decision says whether the
        session ended up covered.
        """

        decision = dict(
            subscription_id=subscription.subscription_id,
            session_id=session_id,
            allowance=subscription.weekly_allowance,
        )
        if self.repository.has_usage(subscription.subscription_id, session_id):
            return QuotaDecision(outcome=QuotaOutcome.ALREADY_COVERED, **decision)

        usage = self.weekly_usage(subscription, session_starts_at)
        if not usage.has_room:
            logger.info(
                "Subscription %s over weekly allowance used=%s allowance=%s session=%s",
                subscription.subscription_id,
                usage.used,
                usage.allowance,
                session_id,
            )
            return QuotaDecision(outcome=QuotaOutcome.OVER_ALLOWANCE, used_before=usage.used, **decision)

        record = QuotaUsageRecord(
            subscription_id=subscription.subscription_id,
            session_id=session_id,
            used_at=current_time(self.clock),
        )
        inserted = self.repository.insert_usage(record, week=usage.week, allowance=usage.allowance)
        if inserted:
            logger.debug("Consumed quota slot subscription=%s session=%s", subscription.subscription_id, session_id)
            return QuotaDecision(outcome=QuotaOutcome.CONSUMED, used_before=usage.used, **decision)

        # A concurrent writer filled the week or covered this session first.
        if self.repository.has_usage(subscription.subscription_id, session_id):
            return QuotaDecision(outcome=QuotaOutcome.ALREADY_COVERED, used_before=usage.used, **decision)
        return QuotaDecision(outcome=QuotaOutcome.OVER_ALLOWANCE, used_before=usage.used, **decision)

    def release(self, subscription_id: str, session_id: str) -> bool:
        released = self.repository.delete_usage(subscription_id, session_id)
        if released:
            logger.debug("Released quota slot subscription=%s session=%s", subscription_id, session_id)
        return released

    def release_for_member(self, person_id: str, club_id: str, session_id: str) -> bool:
        """Release the slot any of the member's subscriptions holds for the session."""

        released = False
        for subscription in self.repository.list_member_subscriptions(person_id, club_id):
            released = self.release(subscription.subscription_id, session_id) or released
        return released

    def is_covered(self, person_id: str, club_id: str, session_id: str) -> bool:
        return any(
            self.repository.has_usage(subscription.subscription_id, session_id)
            for subscription in self.repository.list_member_subscriptions(person_id, club_id)
        )

    def release_all_for_session(self, session_id: str) -> int:
        """Drop every usage row for a session that is being cancelled or deleted."""

        released = self.repository.delete_usage_for_session(session_id)
        if released:
            logger.info("Released %s quota slots for removed session %s", released, session_id)
        return released


__all__ = ["QuotaLedger", "QuotaRepository", "week_bounds"]
