"""Service layer for session series administration."""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime, timezone, tzinfo
from typing import Callable, ContextManager, Iterable, List, Optional, Protocol, Sequence, Tuple

from ..clock import current_time
from ..exceptions import SessionNotFound, TemplateNotFound
from ..quota.ledger import QuotaLedger, QuotaRepository
from ..recurrence import RecurrenceTemplate, validate_template
from .generator import InstanceGenerator, SessionRepository, _new_session_id
from .invitations import InvitationPropagator, InvitationRepository
from .models import (
    GenerationResult,
    SeriesSummary,
    SessionAuditEvent,
    SessionAuditEventType,
    SessionInstance,
    SessionStatus,
    StandingInvitation,
)


class SessionAdminRepository(Protocol):
    def get_instance(self, session_id: str) -> Optional[SessionInstance]:
        ...

    def set_instance_status(self, session_id: str, status: SessionStatus) -> Optional[SessionInstance]:
        ...

    def delete_instance(self, session_id: str) -> bool:
        ...


class SeriesRepository(SessionRepository, SessionAdminRepository, InvitationRepository, Protocol):
    """Persistence for series templates, their sessions and standing invitations."""

    def create_template(self, template: RecurrenceTemplate) -> RecurrenceTemplate:
        ...

    def get_template(self, template_id: str) -> Optional[RecurrenceTemplate]:
        ...

    def list_templates(self, club_id: str) -> Sequence[RecurrenceTemplate]:
        ...

    def archive_template(self, template_id: str, archived_at: datetime) -> Optional[RecurrenceTemplate]:
        ...

    def summarize(self, template_id: str, *, now: datetime) -> SeriesSummary:
        ...

    def add_standing_invitation(self, invitation: StandingInvitation) -> bool:
        """Store the invitation; ``False`` when the invitee was already on the list."""

    def remove_standing_invitation(
        self,
        template_id: str,
        *,
        person_id: Optional[str] = None,
        group_id: Optional[str] = None,
    ) -> bool:
        ...


class SessionRemovalUnitOfWork(Protocol):
    sessions: SessionAdminRepository
    quota: QuotaRepository


class SessionRemovalTransactionFactory(Protocol):
    def transaction(self) -> ContextManager[SessionRemovalUnitOfWork]:
        ...


class SessionEventLogger(Protocol):
    """Captures structured scheduling audit events."""

    def log(self, event: SessionAuditEvent) -> None:
        ...


@dataclass
class SessionSeriesService:
    """Coordinates series templates, generation and session removal."""

    repository: SeriesRepository
    removals: SessionRemovalTransactionFactory
    event_logger: SessionEventLogger
    local_zone: tzinfo = timezone.utc
    clock: Optional[Callable[[], datetime]] = None
    default_generate_weeks: int = 8
    max_generate_weeks: int = 52
    id_factory: Callable[[], str] = field(default=_new_session_id)

    def _now(self) -> datetime:
        return current_time(self.clock)

    def _today(self, now: datetime) -> date:
        return now.astimezone(self.local_zone).date()

    def _generator(self) -> InstanceGenerator:
        return InstanceGenerator(
            repository=self.repository,
            propagator=InvitationPropagator(self.repository),
            local_zone=self.local_zone,
            id_factory=self.id_factory,
        )

    def _resolve_weeks(self, weeks: Optional[int]) -> int:
        if weeks is None:
            return self.default_generate_weeks
        if weeks < 1 or weeks > self.max_generate_weeks:
            raise ValueError(f"weeks must be between 1 and {self.max_generate_weeks}")
        return weeks

    def get_template(self, template_id: str) -> RecurrenceTemplate:
        template = self.repository.get_template(template_id)
        if template is None or template.is_archived:
            raise TemplateNotFound.for_id(template_id)
        return template

    def list_templates(self, club_id: str) -> Sequence[RecurrenceTemplate]:
        return [t for t in self.repository.list_templates(club_id) if not t.is_archived]

    def get_instance(self, session_id: str) -> SessionInstance:
        instance = self.repository.get_instance(session_id)
        if instance is None:
            raise SessionNotFound.for_id(session_id)
        return instance

    def create_template(
        self,
        template: RecurrenceTemplate,
        *,
        generate_weeks: Optional[int] = None,
        person_ids: Iterable[str] = (),
        group_ids: Iterable[str] = (),
        actor_id: Optional[str] = None,
    ) -> Tuple[RecurrenceTemplate, GenerationResult]:
        """Store a new series and materialize its initial window.

        Invitees given here are stored before generation so the first batch of
        sessions already carries them.
        """

        validate_template(template)
        weeks = self._resolve_weeks(generate_weeks)
        stored = self.repository.create_template(template)
        for invitation in self._invitations_for(stored.template_id, person_ids, group_ids, actor_id):
            self.repository.add_standing_invitation(invitation)
        self.event_logger.log(
            SessionAuditEvent(
                event_type=SessionAuditEventType.SERIES_CREATED,
                template_id=stored.template_id,
                actor_id=actor_id,
            )
        )

        now = self._now()
        today = self._today(now)
        result = self._generator().generate(
            stored, max(stored.start_date, today), weeks, today, now=now
        )
        self._log_generation(result, actor_id)
        return stored, result

    def generate_instances(
        self,
        template_id: str,
        *,
        weeks: Optional[int] = None,
        from_date: Optional[date] = None,
        actor_id: Optional[str] = None,
    ) -> GenerationResult:
        """Extend a series by ``weeks`` starting at ``from_date`` (default: today)."""

        template = self.get_template(template_id)
        window_weeks = self._resolve_weeks(weeks)
        now = self._now()
        today = self._today(now)
        window_start = from_date or max(template.start_date, today)
        result = self._generator().generate(template, window_start, window_weeks, today, now=now)
        self._log_generation(result, actor_id)
        return result

    def summarize(self, template_id: str) -> SeriesSummary:
        return self.repository.summarize(template_id, now=self._now())

    def archive_template(self, template_id: str, *, actor_id: Optional[str] = None) -> RecurrenceTemplate:
        self.get_template(template_id)
        archived = self.repository.archive_template(template_id, self._now())
        if archived is None:
            raise TemplateNotFound.for_id(template_id)
        self.event_logger.log(
            SessionAuditEvent(
                event_type=SessionAuditEventType.SERIES_ARCHIVED,
                template_id=template_id,
                actor_id=actor_id,
            )
        )
        return archived

    def cancel_instance(self, session_id: str, *, actor_id: Optional[str] = None) -> SessionInstance:
        """Flip a session to cancelled and release every quota slot it held."""

        with self.removals.transaction() as uow:
            if uow.sessions.get_instance(session_id) is None:
                raise SessionNotFound.for_id(session_id)
            cancelled = uow.sessions.set_instance_status(session_id, SessionStatus.CANCELLED)
            if cancelled is None:
                raise SessionNotFound.for_id(session_id)
            released = QuotaLedger(uow.quota).release_all_for_session(session_id)

        self.event_logger.log(
            SessionAuditEvent(
                event_type=SessionAuditEventType.SESSION_CANCELLED,
                template_id=cancelled.template_id,
                session_id=session_id,
                actor_id=actor_id,
                metadata={"released_slots": str(released)},
            )
        )
        return cancelled

    def delete_instance(self, session_id: str, *, actor_id: Optional[str] = None) -> None:
        """Hard-delete a session together with its quota usage."""

        with self.removals.transaction() as uow:
            existing = uow.sessions.get_instance(session_id)
            if existing is None:
                raise SessionNotFound.for_id(session_id)
            released = QuotaLedger(uow.quota).release_all_for_session(session_id)
            uow.sessions.delete_instance(session_id)

        self.event_logger.log(
            SessionAuditEvent(
                event_type=SessionAuditEventType.SESSION_DELETED,
                template_id=existing.template_id,
                session_id=session_id,
                actor_id=actor_id,
                metadata={"released_slots": str(released)},
            )
        )

    def list_standing_invitations(self, template_id: str) -> Sequence[StandingInvitation]:
        self.get_template(template_id)
        return self.repository.list_standing_invitations(template_id)

    def add_standing_invitations(
        self,
        template_id: str,
        *,
        person_ids: Iterable[str] = (),
        group_ids: Iterable[str] = (),
        invited_by_person_id: Optional[str] = None,
    ) -> List[StandingInvitation]:
        """Add invitees to the series list.

        Only sessions generated afterwards receive them; existing sessions
        keep the invitations they were created with.
        """

        self.get_template(template_id)
        candidates = self._invitations_for(template_id, person_ids, group_ids, invited_by_person_id)
        if not candidates:
            raise ValueError("At least one person_id or group_id is required")

        added = [invitation for invitation in candidates if self.repository.add_standing_invitation(invitation)]
        if added:
            self.event_logger.log(
                SessionAuditEvent(
                    event_type=SessionAuditEventType.INVITATIONS_ADDED,
                    template_id=template_id,
                    actor_id=invited_by_person_id,
                    metadata={"count": str(len(added))},
                )
            )
        return added

    def remove_standing_invitation(
        self,
        template_id: str,
        *,
        person_id: Optional[str] = None,
        group_id: Optional[str] = None,
        actor_id: Optional[str] = None,
    ) -> bool:
        if (person_id is None) == (group_id is None):
            raise ValueError("Exactly one of person_id or group_id is required")
        self.get_template(template_id)
        removed = self.repository.remove_standing_invitation(template_id, person_id=person_id, group_id=group_id)
        if removed:
            self.event_logger.log(
                SessionAuditEvent(
                    event_type=SessionAuditEventType.INVITATION_REMOVED,
                    template_id=template_id,
                    actor_id=actor_id,
                    metadata={"person_id": person_id or "", "group_id": group_id or ""},
                )
            )
        return removed

    def _invitations_for(
        self,
        template_id: str,
        person_ids: Iterable[str],
        group_ids: Iterable[str],
        invited_by_person_id: Optional[str],
    ) -> List[StandingInvitation]:
        return [
            StandingInvitation(template_id=template_id, person_id=pid, invited_by_person_id=invited_by_person_id)
            for pid in person_ids
        ] + [
            StandingInvitation(template_id=template_id, group_id=gid, invited_by_person_id=invited_by_person_id)
            for gid in group_ids
        ]

    def _log_generation(self, result: GenerationResult, actor_id: Optional[str]) -> None:
        self.event_logger.log(
            SessionAuditEvent(
                event_type=SessionAuditEventType.SESSIONS_GENERATED,
                template_id=result.template_id,
                actor_id=actor_id,
                metadata={
                    "created": str(result.created_count),
                    "window_start": result.window_start.isoformat(),
                    "window_end": result.window_end.isoformat(),
                    "invitation_failures": str(len(result.invitation_failures)),
                },
            )
        )


__all__ = [
    "SeriesRepository",
    "SessionAdminRepository",
    "SessionEventLogger",
    "SessionRemovalTransactionFactory",
    "SessionRemovalUnitOfWork",
    "SessionSeriesService",
]
