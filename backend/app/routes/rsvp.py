"""API routes for attendance responses."""
from __future__ import annotations

import os
from functools import lru_cache
from typing import Any, Callable, Optional

from fastapi import APIRouter, Cookie, Depends, HTTPException, status

from ..exceptions import SchedulingError
from ..schemas.rsvp import AdminRsvpRequest, CurrentRsvpResponse, RsvpOut, RsvpOutcomeResponse, RsvpRequest
from ..services.sessions import get_admin_policy, get_rsvp_service, get_session_series_service


def _resolve_get_current_user() -> Callable[..., Any]:  # pragma: no cover
    try:
        from backend.main import get_current_user as resolved
    except ModuleNotFoundError as exc:
        if exc.name != "backend":
            raise
        from ...main import get_current_user as resolved  # type: ignore[no-redef]
    return resolved


@lru_cache(maxsize=1)
def _get_current_user_callable() -> Callable[..., Any]:
    return _resolve_get_current_user()


_SESSION_COOKIE_NAME = os.getenv("SESSION_COOKIE_NAME", "session")


def _get_current_user(
    session_token: Optional[str] = Cookie(None, alias=_SESSION_COOKIE_NAME),
):
    resolved = _get_current_user_callable()
    return resolved(session_token=session_token)


router = APIRouter(prefix="/api", tags=["rsvp"])


@router.get("/events/{session_id}/rsvp", response_model=CurrentRsvpResponse)
def get_rsvp(
    session_id: str,
    *,
    current_user=Depends(_get_current_user),
) -> CurrentRsvpResponse:
    try:
        stored = get_rsvp_service().get_response(str(current_user.id), session_id)
    except SchedulingError as exc:
        raise exc.to_http_exception() from exc
    return CurrentRsvpResponse(rsvp=RsvpOut.from_response(stored) if stored else None)


@router.post("/events/{session_id}/rsvp", response_model=RsvpOutcomeResponse)
def set_rsvp(
    session_id: str,
    payload: RsvpRequest,
    *,
    current_user=Depends(_get_current_user),
) -> RsvpOutcomeResponse:
    """Record the caller's own response for a session."""
    service = get_rsvp_service()
    try:
        outcome = service.set_response(
            str(current_user.id),
            session_id,
            payload.response,
            note=payload.note,
        )
    except SchedulingError as exc:
        raise exc.to_http_exception() from exc
    return RsvpOutcomeResponse.from_outcome(outcome)


@router.post("/admin/events/{session_id}/rsvp", response_model=RsvpOutcomeResponse)
def set_rsvp_for_member(
    session_id: str,
    payload: AdminRsvpRequest,
    *,
    current_user=Depends(_get_current_user),
) -> RsvpOutcomeResponse:
    """Record a response on behalf of another member."""
    try:
        instance = get_session_series_service().get_instance(session_id)
        if not get_admin_policy().can_manage_club(current_user, instance.club_id):
            raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Club admin access required")
        outcome = get_rsvp_service().set_response(
            payload.person_id,
            session_id,
            payload.response,
            free_session=payload.free_session,
            note=payload.note,
        )
    except SchedulingError as exc:
        raise exc.to_http_exception() from exc
    return RsvpOutcomeResponse.from_outcome(outcome)
