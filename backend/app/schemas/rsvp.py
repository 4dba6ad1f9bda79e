"""API schemas for attendance responses."""
from __future__ import annotations

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from ..rsvp import QuotaAction, RsvpChoice, RsvpOutcome, RsvpResponse


class RsvpRequest(BaseModel):
    response: RsvpChoice
    note: Optional[str] = Field(default=None, max_length=500)

    model_config = ConfigDict(populate_by_name=True)


class AdminRsvpRequest(RsvpRequest):
    person_id: str = Field(alias="personId")
    free_session: bool = Field(alias="freeSession", default=False)


class RsvpOut(BaseModel):
    person_id: str = Field(alias="personId")
    session_id: str = Field(alias="sessionId")
    response: RsvpChoice
    free_session: bool = Field(alias="freeSession")
    note: Optional[str] = None
    responded_at: datetime = Field(alias="respondedAt")

    model_config = ConfigDict(populate_by_name=True)

    @classmethod
    def from_response(cls, response: RsvpResponse) -> "RsvpOut":
        return cls(
            person_id=response.person_id,
            session_id=response.session_id,
            response=response.response,
            free_session=response.free_session,
            note=response.note,
            responded_at=response.responded_at,
        )


class CurrentRsvpResponse(BaseModel):
    rsvp: Optional[RsvpOut] = None


class RsvpOutcomeResponse(BaseModel):
    person_id: str = Field(alias="personId")
    session_id: str = Field(alias="sessionId")
    response: RsvpChoice
    previous_response: Optional[RsvpChoice] = Field(alias="previousResponse", default=None)
    free_session: bool = Field(alias="freeSession")
    quota_action: QuotaAction = Field(alias="quotaAction")
    subscription_slot_used: bool = Field(alias="subscriptionSlotUsed")

    model_config = ConfigDict(populate_by_name=True)

    @classmethod
    def from_outcome(cls, outcome: RsvpOutcome) -> "RsvpOutcomeResponse":
        return cls(
            person_id=outcome.person_id,
            session_id=outcome.session_id,
            response=outcome.response,
            previous_response=outcome.previous_response,
            free_session=outcome.free_session,
            quota_action=outcome.quota_action,
            subscription_slot_used=outcome.subscription_slot_used,
        )
