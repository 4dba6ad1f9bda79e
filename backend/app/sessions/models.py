"""Domain models for concrete sessions and their invitations."""
from __future__ import annotations

from datetime import date, datetime, timezone
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from ..recurrence.models import PaymentMode


class SessionStatus(str, Enum):
    """Lifecycle status of a session instance."""

    SCHEDULED = "scheduled"
    CANCELLED = "cancelled"


class SessionInstance(BaseModel):
    """A single dated occurrence of a session.

    ``starts_at_utc``, ``ends_at_utc`` and ``visible_from_utc`` are computed
    once at creation from the template and stored; they are never derived again
    from a later version of the template.
    """

    session_id: str
    club_id: str
    template_id: Optional[str] = None
    occurs_on: date = Field(description="Calendar date in the club's local zone")
    title: str
    description: Optional[str] = None
    location: Optional[str] = None
    starts_at_utc: datetime
    ends_at_utc: datetime
    visible_from_utc: datetime
    status: SessionStatus = SessionStatus.SCHEDULED
    payment_mode: PaymentMode = PaymentMode.INCLUDED
    fee_cents: Optional[int] = Field(default=None, ge=0)
    currency: str = Field(default="GBP", min_length=3, max_length=3)
    created_by_person_id: Optional[str] = None
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    @field_validator("currency")
    @classmethod
    def _upper_currency(cls, value: str) -> str:
        return value.upper()

    @property
    def is_recurring(self) -> bool:
        return self.template_id is not None

    @property
    def is_cancelled(self) -> bool:
        return self.status == SessionStatus.CANCELLED


class _InvitationTarget(BaseModel):
    person_id: Optional[str] = None
    group_id: Optional[str] = None
    invited_by_person_id: Optional[str] = None

    @model_validator(mode="after")
    def _exactly_one_target(self):
        if (self.person_id is None) == (self.group_id is None):
            raise ValueError("exactly one of person_id or group_id must be set")
        return self

    @property
    def target_key(self) -> tuple:
        """Identity of the invitee, independent of the owning series or session."""

        if self.person_id is not None:
            return ("person", self.person_id)
        return ("group", self.group_id)


class StandingInvitation(_InvitationTarget):
    """Pre-invitation of a person or group to every future session of a series."""

    template_id: str
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    model_config = ConfigDict(populate_by_name=True, frozen=True)


class InstanceInvitation(_InvitationTarget):
    """Invitation of a person or group to one session, copied from its series."""

    session_id: str
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    @classmethod
    def from_standing(cls, invitation: StandingInvitation, session_id: str) -> "InstanceInvitation":
        return cls(
            session_id=session_id,
            person_id=invitation.person_id,
            group_id=invitation.group_id,
            invited_by_person_id=invitation.invited_by_person_id,
        )


class GenerationResult(BaseModel):
    """Outcome of materializing a series over a date window."""

    template_id: str
    window_start: date
    window_end: date
    created: List[SessionInstance] = Field(default_factory=list)
    skipped_dates: List[date] = Field(default_factory=list)
    invitation_failures: List[str] = Field(
        default_factory=list,
        description="Session ids whose invitations could not be copied",
    )

    model_config = ConfigDict(populate_by_name=True)

    @property
    def created_count(self) -> int:
        return len(self.created)


class SeriesSummary(BaseModel):
    """Aggregate counts for a series, reported after generation."""

    template_id: str
    total_sessions: int = 0
    upcoming_sessions: int = 0
    last_starts_at: Optional[datetime] = None

    model_config = ConfigDict(populate_by_name=True, frozen=True)


class SessionAuditEventType(str, Enum):
    """Audit event categories emitted by the scheduling subsystem."""

    SERIES_CREATED = "series_created"
    SERIES_ARCHIVED = "series_archived"
    SESSIONS_GENERATED = "sessions_generated"
    SESSION_CANCELLED = "session_cancelled"
    SESSION_DELETED = "session_deleted"
    INVITATIONS_ADDED = "invitations_added"
    INVITATION_REMOVED = "invitation_removed"


class SessionAuditEvent(BaseModel):
    """Structured audit event for scheduling changes."""

    event_type: SessionAuditEventType
    template_id: Optional[str] = None
    session_id: Optional[str] = None
    actor_id: Optional[str] = None
    metadata: dict = Field(default_factory=dict)
    occurred_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    model_config = ConfigDict(populate_by_name=True, frozen=True)


__all__ = [
    "GenerationResult",
    "InstanceInvitation",
    "SeriesSummary",
    "SessionAuditEvent",
    "SessionAuditEventType",
    "SessionInstance",
    "SessionStatus",
    "StandingInvitation",
]
