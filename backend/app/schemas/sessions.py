"""API schemas for session series administration."""
from __future__ import annotations

from datetime import date, datetime, time
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator

from ..recurrence import PaymentMode, RecurrenceTemplate, mask_from_weekdays, weekday_names
from ..sessions import GenerationResult, SeriesSummary, SessionInstance, SessionStatus, StandingInvitation


class EventSeriesCreateRequest(BaseModel):
    club_id: str = Field(alias="clubId")
    title: str = Field(min_length=1)
    description: Optional[str] = None
    location: Optional[str] = None
    weekdays: List[str] = Field(default_factory=list)
    weekday_mask: Optional[int] = Field(alias="weekdayMask", default=None)
    start_time_local: time = Field(alias="startTimeLocal")
    duration_minutes: Optional[int] = Field(alias="durationMinutes", default=None, gt=0)
    start_date: date = Field(alias="startDate")
    end_date: Optional[date] = Field(alias="endDate", default=None)
    visibility_lead_days: Optional[int] = Field(alias="visibilityLeadDays", default=None, ge=0)
    default_fee_cents: Optional[int] = Field(alias="defaultFeeCents", default=None, ge=0)
    currency: Optional[str] = None
    payment_mode: PaymentMode = Field(alias="paymentMode", default=PaymentMode.INCLUDED)
    generate_weeks: Optional[int] = Field(alias="generateWeeks", default=None, ge=1)
    invitee_person_ids: List[str] = Field(alias="inviteePersonIds", default_factory=list)
    invitee_group_ids: List[str] = Field(alias="inviteeGroupIds", default_factory=list)

    model_config = ConfigDict(populate_by_name=True)

    @model_validator(mode="after")
    def _require_weekdays(self) -> "EventSeriesCreateRequest":
        if not self.weekdays and self.weekday_mask is None:
            raise ValueError("weekdays or weekdayMask is required")
        return self

    def resolved_mask(self) -> int:
        if self.weekday_mask is not None:
            return self.weekday_mask
        return mask_from_weekdays(self.weekdays)


class EventSeriesOut(BaseModel):
    id: str
    club_id: str = Field(alias="clubId")
    title: str
    description: Optional[str] = None
    location: Optional[str] = None
    weekday_mask: int = Field(alias="weekdayMask")
    weekdays: List[str]
    start_time_local: time = Field(alias="startTimeLocal")
    duration_minutes: int = Field(alias="durationMinutes")
    start_date: date = Field(alias="startDate")
    end_date: Optional[date] = Field(alias="endDate", default=None)
    visibility_lead_days: int = Field(alias="visibilityLeadDays")
    default_fee_cents: Optional[int] = Field(alias="defaultFeeCents", default=None)
    currency: str
    payment_mode: PaymentMode = Field(alias="paymentMode")
    archived_at: Optional[datetime] = Field(alias="archivedAt", default=None)

    model_config = ConfigDict(populate_by_name=True)

    @classmethod
    def from_template(cls, template: RecurrenceTemplate) -> "EventSeriesOut":
        return cls(
            id=template.template_id,
            club_id=template.club_id,
            title=template.title,
            description=template.description,
            location=template.location,
            weekday_mask=template.weekday_mask,
            weekdays=weekday_names(template.weekday_mask),
            start_time_local=template.start_time_local,
            duration_minutes=template.duration_minutes,
            start_date=template.start_date,
            end_date=template.end_date,
            visibility_lead_days=template.visibility_lead_days,
            default_fee_cents=template.default_fee_cents,
            currency=template.currency,
            payment_mode=template.payment_mode,
            archived_at=template.archived_at,
        )


class SessionOut(BaseModel):
    id: str
    series_id: Optional[str] = Field(alias="seriesId", default=None)
    occurs_on: date = Field(alias="occursOn")
    title: str
    location: Optional[str] = None
    starts_at: datetime = Field(alias="startsAt")
    ends_at: datetime = Field(alias="endsAt")
    visible_from: datetime = Field(alias="visibleFrom")
    status: SessionStatus
    payment_mode: PaymentMode = Field(alias="paymentMode")

    model_config = ConfigDict(populate_by_name=True)

    @classmethod
    def from_instance(cls, instance: SessionInstance) -> "SessionOut":
        return cls(
            id=instance.session_id,
            series_id=instance.template_id,
            occurs_on=instance.occurs_on,
            title=instance.title,
            location=instance.location,
            starts_at=instance.starts_at_utc,
            ends_at=instance.ends_at_utc,
            visible_from=instance.visible_from_utc,
            status=instance.status,
            payment_mode=instance.payment_mode,
        )


class SeriesSummaryOut(BaseModel):
    total_sessions: int = Field(alias="totalSessions")
    upcoming_sessions: int = Field(alias="upcomingSessions")
    last_starts_at: Optional[datetime] = Field(alias="lastStartsAt", default=None)

    model_config = ConfigDict(populate_by_name=True)

    @classmethod
    def from_summary(cls, summary: SeriesSummary) -> "SeriesSummaryOut":
        return cls(
            total_sessions=summary.total_sessions,
            upcoming_sessions=summary.upcoming_sessions,
            last_starts_at=summary.last_starts_at,
        )


class GenerationResponse(BaseModel):
    series_id: str = Field(alias="seriesId")
    created_count: int = Field(alias="createdCount")
    window_start: date = Field(alias="windowStart")
    window_end: date = Field(alias="windowEnd")
    sessions: List[SessionOut] = Field(default_factory=list)
    invitation_failures: List[str] = Field(alias="invitationFailures", default_factory=list)
    summary: Optional[SeriesSummaryOut] = None

    model_config = ConfigDict(populate_by_name=True)

    @classmethod
    def from_result(
        cls, result: GenerationResult, summary: Optional[SeriesSummary] = None
    ) -> "GenerationResponse":
        return cls(
            series_id=result.template_id,
            created_count=result.created_count,
            window_start=result.window_start,
            window_end=result.window_end,
            sessions=[SessionOut.from_instance(instance) for instance in result.created],
            invitation_failures=list(result.invitation_failures),
            summary=SeriesSummaryOut.from_summary(summary) if summary else None,
        )


class EventSeriesCreateResponse(BaseModel):
    series: EventSeriesOut
    generation: GenerationResponse

    model_config = ConfigDict(populate_by_name=True)


class EventSeriesListResponse(BaseModel):
    series: List[EventSeriesOut]

    model_config = ConfigDict(populate_by_name=True)


class GenerateSessionsRequest(BaseModel):
    weeks: Optional[int] = Field(default=None, ge=1)
    from_date: Optional[date] = Field(alias="fromDate", default=None)

    model_config = ConfigDict(populate_by_name=True)


class SeriesInvitationsRequest(BaseModel):
    person_ids: List[str] = Field(alias="personIds", default_factory=list)
    group_ids: List[str] = Field(alias="groupIds", default_factory=list)

    model_config = ConfigDict(populate_by_name=True)


class SeriesInvitationOut(BaseModel):
    person_id: Optional[str] = Field(alias="personId", default=None)
    group_id: Optional[str] = Field(alias="groupId", default=None)
    invited_by_person_id: Optional[str] = Field(alias="invitedByPersonId", default=None)
    created_at: datetime = Field(alias="createdAt")

    model_config = ConfigDict(populate_by_name=True)

    @classmethod
    def from_invitation(cls, invitation: StandingInvitation) -> "SeriesInvitationOut":
        return cls(
            person_id=invitation.person_id,
            group_id=invitation.group_id,
            invited_by_person_id=invitation.invited_by_person_id,
            created_at=invitation.created_at,
        )


class SeriesInvitationListResponse(BaseModel):
    invitations: List[SeriesInvitationOut]

    model_config = ConfigDict(populate_by_name=True)
