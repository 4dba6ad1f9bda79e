"""Structured errors raised by the session scheduling and quota domain."""
from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Mapping, Optional

from fastapi import HTTPException, status


@dataclass
class SchedulingError(Exception):
    """Represents a scheduling failure surfaced to API callers."""

    code: str
    message: str
    status_code: int = status.HTTP_400_BAD_REQUEST
    detail: Optional[Mapping[str, Any]] = None

    def __post_init__(self) -> None:
        base_detail: Dict[str, Any] = {"error": self.code, "message": self.message}
        if self.detail:
            base_detail.update(self.detail)
        object.__setattr__(self, "_payload", base_detail)
        super().__init__(self.message)

    @property
    def payload(self) -> Mapping[str, Any]:
        """Serialized representation suitable for JSON responses."""

        return self._payload

    def to_http_exception(self) -> HTTPException:
        """Convert the domain error into a FastAPI HTTPException."""

        return HTTPException(status_code=self.status_code, detail=dict(self.payload))


def invalid_recurrence(message: str, **detail: Any) -> "InvalidRecurrence":
    return InvalidRecurrence(code="invalid_recurrence", message=message, detail=detail or None)


class InvalidRecurrence(SchedulingError):
    """A recurrence template violates its invariants."""


class InstanceConflict(SchedulingError):
    """A session already exists for the template on that calendar date."""

    @classmethod
    def for_date(cls, template_id: str, occurs_on: object) -> "InstanceConflict":
        return cls(
            code="instance_conflict",
            message="Session already exists for this series date.",
            status_code=status.HTTP_409_CONFLICT,
            detail={"template_id": template_id, "occurs_on": str(occurs_on)},
        )


class SubscriptionNotFound(SchedulingError):
    """No active subscription covers the member in the session's club."""

    @classmethod
    def for_member(cls, person_id: str, club_id: str) -> "SubscriptionNotFound":
        return cls(
            code="subscription_not_found",
            message="No active subscription for member.",
            status_code=status.HTTP_404_NOT_FOUND,
            detail={"person_id": person_id, "club_id": club_id},
        )


class SessionNotFound(SchedulingError):
    @classmethod
    def for_id(cls, session_id: str) -> "SessionNotFound":
        return cls(
            code="session_not_found",
            message="Session not found.",
            status_code=status.HTTP_404_NOT_FOUND,
            detail={"session_id": session_id},
        )


class TemplateNotFound(SchedulingError):
    @classmethod
    def for_id(cls, template_id: str) -> "TemplateNotFound":
        return cls(
            code="template_not_found",
            message="Series not found or archived.",
            status_code=status.HTTP_404_NOT_FOUND,
            detail={"template_id": template_id},
        )


class QuotaWriteFailure(SchedulingError):
    """Reading or writing quota usage failed; the RSVP was rolled back."""

    @classmethod
    def wrap(cls, exc: BaseException, **detail: Any) -> "QuotaWriteFailure":
        return cls(
            code="quota_write_failed",
            message=f"Quota update failed: {exc}",
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail=detail or None,
        )


class RsvpWriteFailure(SchedulingError):
    """Writing the RSVP failed; the RSVP was rolled back."""

    @classmethod
    def wrap(cls, exc: BaseException, **detail: Any) -> "RsvpWriteFailure":
        return cls(
            code="rsvp_write_failed",
            message=f"RSVP update failed: {exc}",
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail=detail or None,
        )


__all__ = [
    "InstanceConflict",
    "InvalidRecurrence",
    "QuotaWriteFailure",
    "RsvpWriteFailure",
    "SchedulingError",
    "SessionNotFound",
    "SubscriptionNotFound",
    "TemplateNotFound",
    "invalid_recurrence",
]
