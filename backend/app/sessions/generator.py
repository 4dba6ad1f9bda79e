"""Expansion of recurrence templates into concrete session instances."""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta, timezone, tzinfo
from typing import Callable, Optional, Protocol, Set, Tuple
from uuid import uuid4

from ..exceptions import InstanceConflict
from ..recurrence import RecurrenceTemplate, iter_matching_dates, validate_template
from .invitations import InvitationPropagator
from .models import GenerationResult, SessionInstance

logger = logging.getLogger(__name__)


class SessionRepository(Protocol):
    """Persistence operations required by the instance generator."""

    def existing_dates(self, template_id: str, *, on_or_after: date) -> Set[date]:
        ...

    def insert_instance(self, instance: SessionInstance) -> SessionInstance:
        """Persist a session, raising :class:`InstanceConflict` if its series date exists."""


def generation_window(
    template: RecurrenceTemplate,
    window_start: date,
    window_weeks: int,
    today: date,
) -> Optional[Tuple[date, date]]:
    """Clamp the requested window to ``[today, end_date]``.

    Returns ``None`` when nothing is left to generate. Dates before ``today``
    are never included: past sessions are not backfilled.
    """

    if window_weeks < 0:
        raise ValueError("window_weeks must be >= 0")

    effective_start = max(window_start, today, template.start_date)
    effective_end = window_start + timedelta(days=window_weeks * 7)
    if template.end_date is not None and template.end_date < effective_end:
        effective_end = template.end_date

    if effective_start > effective_end:
        return None
    return effective_start, effective_end


def build_instance(
    template: RecurrenceTemplate,
    occurs_on: date,
    *,
    local_zone: tzinfo,
    session_id: str,
    created_at: Optional[datetime] = None,
) -> SessionInstance:
    """Synthesize the session for ``occurs_on`` with its derived timestamps."""

    local_start = datetime.combine(occurs_on, template.start_time_local, tzinfo=local_zone)
    starts_at = local_start.astimezone(timezone.utc)
    values = dict(
        session_id=session_id,
        club_id=template.club_id,
        template_id=template.template_id,
        occurs_on=occurs_on,
        title=template.title,
        description=template.description,
        location=template.location,
        starts_at_utc=starts_at,
        ends_at_utc=starts_at + timedelta(minutes=template.duration_minutes),
        visible_from_utc=starts_at - timedelta(days=template.visibility_lead_days),
        payment_mode=template.payment_mode,
        fee_cents=template.default_fee_cents,
        currency=template.currency,
        created_by_person_id=template.created_by_person_id,
    )
    if created_at is not None:
        values["created_at"] = created_at
    return SessionInstance(**values)


def _new_session_id() -> str:
    return str(uuid4())


@dataclass
class InstanceGenerator:
    """Creates the sessions a template should have within a window.

    Generation is idempotent per (template, calendar date): the repository's
    uniqueness guarantee is authoritative and the pre-read of existing dates
    only avoids pointless inserts.
    """

    repository: SessionRepository
    propagator: InvitationPropagator
    local_zone: tzinfo = timezone.utc
    id_factory: Callable[[], str] = field(default=_new_session_id)

    def generate(
        self,
        template: RecurrenceTemplate,
        window_start: date,
        window_weeks: int,
        today: date,
        *,
        now: Optional[datetime] = None,
    ) -> GenerationResult:
        validate_template(template)

        window = generation_window(template, window_start, window_weeks, today)
        if window is None:
            logger.info(
                "Nothing to generate for series %s window_start=%s weeks=%s today=%s",
                template.template_id,
                window_start,
                window_weeks,
                today,
            )
            return GenerationResult(template_id=template.template_id, window_start=window_start, window_end=window_start)

        start, end = window
        result = GenerationResult(template_id=template.template_id, window_start=start, window_end=end)
        existing = set(self.repository.existing_dates(template.template_id, on_or_after=start))

        for occurs_on in iter_matching_dates(template.weekday_mask, start, end):
            if occurs_on in existing:
                result.skipped_dates.append(occurs_on)
                continue

            candidate = build_instance(
                template,
                occurs_on,
                local_zone=self.local_zone,
                session_id=self.id_factory(),
                created_at=now,
            )
            if now is not None and candidate.starts_at_utc < now:
                # Today's session has already started.
                result.skipped_dates.append(occurs_on)
                continue

            try:
                created = self.repository.insert_instance(candidate)
            except InstanceConflict:
                logger.info(
                    "Session already exists for series %s on %s; skipping",
                    template.template_id,
                    occurs_on,
                )
                result.skipped_dates.append(occurs_on)
                continue

            existing.add(occurs_on)
            result.created.append(created)
            self._propagate(template.template_id, created.session_id, result)

        logger.info(
            "Generated %s sessions for series %s between %s and %s",
            result.created_count,
            template.template_id,
            start,
            end,
        )
        return result

    def _propagate(self, template_id: str, session_id: str, result: GenerationResult) -> None:
        try:
            self.propagator.propagate(template_id, session_id)
        except Exception:
            # The session stays; invitations can be added to it by hand.
            logger.exception(
                "Failed to copy invitations for series %s to session %s",
                template_id,
                session_id,
            )
            result.invitation_failures.append(session_id)


__all__ = ["InstanceGenerator", "SessionRepository", "build_instance", "generation_window"]
