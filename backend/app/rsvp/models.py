"""Domain models for session attendance responses."""
from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class RsvpChoice(str, Enum):
    """A member's stated intent to attend."""

    YES = "yes"
    MAYBE = "maybe"
    NO = "no"


class QuotaAction(str, Enum):
    """What a response transition does to the member's weekly allowance."""

    CONSUME = "consume"
    RELEASE = "release"
    NONE = "none"


class RsvpResponse(BaseModel):
    """Current response of a person for a session; last write wins."""

    person_id: str
    session_id: str
    response: RsvpChoice
    free_session: bool = False
    note: Optional[str] = None
    responded_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    model_config = ConfigDict(populate_by_name=True, frozen=True)


class RsvpOutcome(BaseModel):
    """Result of a response change returned to callers."""

    person_id: str
    session_id: str
    response: RsvpChoice
    previous_response: Optional[RsvpChoice] = None
    free_session: bool = False
    quota_action: QuotaAction = QuotaAction.NONE
    subscription_slot_used: bool = False

    model_config = ConfigDict(populate_by_name=True, frozen=True)


__all__ = ["QuotaAction", "RsvpChoice", "RsvpOutcome", "RsvpResponse"]
