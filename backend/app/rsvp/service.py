"""RSVP state machine driving quota consumption and release."""
from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Callable, ContextManager, Optional, Protocol

from ..clock import current_time
from ..exceptions import (
    QuotaWriteFailure,
    RsvpWriteFailure,
    SchedulingError,
    SessionNotFound,
    SubscriptionNotFound,
)
from ..quota.ledger import QuotaLedger, QuotaRepository
from ..recurrence.models import PaymentMode
from ..sessions.models import SessionInstance
from .models import QuotaAction, RsvpChoice, RsvpOutcome, RsvpResponse

logger = logging.getLogger(__name__)


class RsvpRepository(Protocol):
    """Keyed storage of (person, session) -> response."""

    def get_response(self, person_id: str, session_id: str) -> Optional[RsvpResponse]:
        ...

    def upsert_response(self, response: RsvpResponse) -> RsvpResponse:
        ...


class SessionLookup(Protocol):
    def get_instance(self, session_id: str) -> Optional[SessionInstance]:
        ...


class RsvpUnitOfWork(Protocol):
    """Repositories sharing one transaction."""

    rsvps: RsvpRepository
    sessions: SessionLookup
    quota: QuotaRepository


class RsvpTransactionFactory(Protocol):
    def transaction(self) -> ContextManager[RsvpUnitOfWork]:
        """Open a unit of work that commits on clean exit and rolls back on error."""


def quota_action_for(
    previous: Optional[RsvpChoice],
    new: RsvpChoice,
    *,
    free_session: bool,
    payment_mode: PaymentMode,
    session_cancelled: bool = False,
) -> QuotaAction:
    """Decide the quota effect of moving from ``previous`` to ``new``.

    Only the transition matters: entering ``yes`` consumes, leaving ``yes``
    releases, everything else (including ``yes`` -> ``yes``) is a no-op.
    A cancelled session never takes a slot.
    """

    was_yes = previous == RsvpChoice.YES
    is_yes = new == RsvpChoice.YES
    if is_yes and not was_yes:
        if free_session or session_cancelled or payment_mode == PaymentMode.FREE:
            return QuotaAction.NONE
        return QuotaAction.CONSUME
    if was_yes and not is_yes:
        return QuotaAction.RELEASE
    return QuotaAction.NONE


@dataclass
class RsvpService:
    """Records attendance responses and keeps quota usage in step with them.

    The response write and the quota change commit together or not at all.
    Being over allowance never rejects a response; it only leaves the
    session uncovered.
    """

    transactions: RsvpTransactionFactory
    clock: Optional[Callable[[], datetime]] = None
    lock_subscription_rows: bool = True

    def get_response(self, person_id: str, session_id: str) -> Optional[RsvpResponse]:
        """Return the member's current response, or ``None`` when they have not answered."""

        with self.transactions.transaction() as uow:
            if uow.sessions.get_instance(session_id) is None:
                raise SessionNotFound.for_id(session_id)
            return uow.rsvps.get_response(person_id, session_id)

    def set_response(
        self,
        person_id: str,
        session_id: str,
        response: RsvpChoice,
        *,
        free_session: bool = False,
        note: Optional[str] = None,
    ) -> RsvpOutcome:
        response = RsvpChoice(response)
        now = current_time(self.clock)

        with self.transactions.transaction() as uow:
            session = uow.sessions.get_instance(session_id)
            if session is None:
                raise SessionNotFound.for_id(session_id)

            previous = self._write_response(
                uow,
                RsvpResponse(
                    person_id=person_id,
                    session_id=session_id,
                    response=response,
                    free_session=free_session,
                    note=note,
                    responded_at=now,
                ),
            )
            action = quota_action_for(
                previous.response if previous else None,
                response,
                free_session=free_session,
                payment_mode=session.payment_mode,
                session_cancelled=session.is_cancelled,
            )
            slot_used = self._apply_quota(uow, person_id, session, action)

        logger.info(
            "RSVP person=%s session=%s %s->%s quota=%s covered=%s",
            person_id,
            session_id,
            previous.response.value if previous else None,
            response.value,
            action.value,
            slot_used,
        )
        return RsvpOutcome(
            person_id=person_id,
            session_id=session_id,
            response=response,
            previous_response=previous.response if previous else None,
            free_session=free_session,
            quota_action=action,
            subscription_slot_used=slot_used,
        )

    def _write_response(self, uow: RsvpUnitOfWork, response: RsvpResponse) -> Optional[RsvpResponse]:
        try:
            previous = uow.rsvps.get_response(response.person_id, response.session_id)
            uow.rsvps.upsert_response(response)
        except SchedulingError:
            raise
        except Exception as exc:
            raise RsvpWriteFailure.wrap(
                exc, person_id=response.person_id, session_id=response.session_id
            ) from exc
        return previous

    def _apply_quota(
        self,
        uow: RsvpUnitOfWork,
        person_id: str,
        session: SessionInstance,
        action: QuotaAction,
    ) -> bool:
        ledger = QuotaLedger(uow.quota, clock=self.clock)
        try:
            if action == QuotaAction.CONSUME:
                # Re-resolved on every call; subscriptions change between edits.
                try:
                    subscription = ledger.require_active_subscription(
                        person_id, session.club_id, for_update=self.lock_subscription_rows
                    )
                except SubscriptionNotFound as exc:
                    logger.debug("Nothing to consume: %s", exc.payload)
                else:
                    ledger.consume(subscription, session.session_id, session.starts_at_utc)
            elif action == QuotaAction.RELEASE:
                ledger.release_for_member(person_id, session.club_id, session.session_id)
            return ledger.is_covered(person_id, session.club_id, session.session_id)
        except SchedulingError:
            raise
        except Exception as exc:
            raise QuotaWriteFailure.wrap(exc, person_id=person_id, session_id=session.session_id) from exc


__all__ = [
    "RsvpRepository",
    "RsvpService",
    "RsvpTransactionFactory",
    "RsvpUnitOfWork",
    "SessionLookup",
    "quota_action_for",
]
