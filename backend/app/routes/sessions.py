"""Admin API routes for session series and their sessions."""
from __future__ import annotations

import os
from functools import lru_cache
from typing import Any, Callable, Optional
from uuid import uuid4

from fastapi import APIRouter, Cookie, Depends, HTTPException, Query, Response, status

from ..exceptions import SchedulingError
from ..recurrence import RecurrenceTemplate
from ..schemas.sessions import (
    EventSeriesCreateRequest,
    EventSeriesCreateResponse,
    EventSeriesListResponse,
    EventSeriesOut,
    GenerateSessionsRequest,
    GenerationResponse,
    SeriesInvitationListResponse,
    SeriesInvitationOut,
    SeriesInvitationsRequest,
    SeriesSummaryOut,
    SessionOut,
)
from ..services.sessions import get_admin_policy, get_scheduling_config, get_session_series_service


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


def _require_club_admin(current_user: Any, club_id: str) -> None:
    if not get_admin_policy().can_manage_club(current_user, club_id):
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Club admin access required")


def _http_error(exc: Exception) -> HTTPException:
    if isinstance(exc, SchedulingError):
        return exc.to_http_exception()
    return HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc))


router = APIRouter(prefix="/api/admin", tags=["sessions"])


@router.post(
    "/event-series",
    response_model=EventSeriesCreateResponse,
    status_code=status.HTTP_201_CREATED,
)
def create_event_series(
    payload: EventSeriesCreateRequest,
    *,
    current_user=Depends(_get_current_user),
) -> EventSeriesCreateResponse:
    _require_club_admin(current_user, payload.club_id)
    service = get_session_series_service()
    config = get_scheduling_config()
    actor_id = str(current_user.id)

    try:
        template = RecurrenceTemplate(
            template_id=str(uuid4()),
            club_id=payload.club_id,
            title=payload.title,
            description=payload.description,
            location=payload.location,
            weekday_mask=payload.resolved_mask(),
            start_time_local=payload.start_time_local,
            duration_minutes=payload.duration_minutes or config.default_duration_minutes,
            start_date=payload.start_date,
            end_date=payload.end_date,
            visibility_lead_days=(
                payload.visibility_lead_days
                if payload.visibility_lead_days is not None
                else config.default_visibility_days
            ),
            default_fee_cents=payload.default_fee_cents,
            currency=payload.currency or config.default_currency,
            payment_mode=payload.payment_mode,
            created_by_person_id=actor_id,
        )
        stored, result = service.create_template(
            template,
            generate_weeks=payload.generate_weeks,
            person_ids=payload.invitee_person_ids,
            group_ids=payload.invitee_group_ids,
            actor_id=actor_id,
        )
    except (SchedulingError, ValueError) as exc:
        raise _http_error(exc) from exc

    summary = service.summarize(stored.template_id)
    return EventSeriesCreateResponse(
        series=EventSeriesOut.from_template(stored),
        generation=GenerationResponse.from_result(result, summary),
    )


@router.get("/event-series", response_model=EventSeriesListResponse)
def list_event_series(
    club_id: str = Query(alias="clubId"),
    *,
    current_user=Depends(_get_current_user),
) -> EventSeriesListResponse:
    _require_club_admin(current_user, club_id)
    templates = get_session_series_service().list_templates(club_id)
    return EventSeriesListResponse(series=[EventSeriesOut.from_template(t) for t in templates])


@router.post("/event-series/{series_id}/generate", response_model=GenerationResponse)
def generate_sessions(
    series_id: str,
    payload: GenerateSessionsRequest,
    *,
    current_user=Depends(_get_current_user),
) -> GenerationResponse:
    service = get_session_series_service()
    try:
        template = service.get_template(series_id)
        _require_club_admin(current_user, template.club_id)
        result = service.generate_instances(
            series_id,
            weeks=payload.weeks,
            from_date=payload.from_date,
            actor_id=str(current_user.id),
        )
    except (SchedulingError, ValueError) as exc:
        raise _http_error(exc) from exc
    return GenerationResponse.from_result(result, service.summarize(series_id))


@router.get("/event-series/{series_id}/summary", response_model=SeriesSummaryOut)
def get_series_summary(
    series_id: str,
    *,
    current_user=Depends(_get_current_user),
) -> SeriesSummaryOut:
    service = get_session_series_service()
    try:
        template = service.get_template(series_id)
    except SchedulingError as exc:
        raise exc.to_http_exception() from exc
    _require_club_admin(current_user, template.club_id)
    return SeriesSummaryOut.from_summary(service.summarize(series_id))


@router.delete("/event-series/{series_id}", status_code=status.HTTP_204_NO_CONTENT)
def archive_event_series(
    series_id: str,
    *,
    current_user=Depends(_get_current_user),
) -> Response:
    service = get_session_series_service()
    try:
        template = service.get_template(series_id)
        _require_club_admin(current_user, template.club_id)
        service.archive_template(series_id, actor_id=str(current_user.id))
    except SchedulingError as exc:
        raise exc.to_http_exception() from exc
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.get("/event-series/{series_id}/invitations", response_model=SeriesInvitationListResponse)
def list_series_invitations(
    series_id: str,
    *,
    current_user=Depends(_get_current_user),
) -> SeriesInvitationListResponse:
    service = get_session_series_service()
    try:
        template = service.get_template(series_id)
        _require_club_admin(current_user, template.club_id)
        invitations = service.list_standing_invitations(series_id)
    except SchedulingError as exc:
        raise exc.to_http_exception() from exc
    return SeriesInvitationListResponse(
        invitations=[SeriesInvitationOut.from_invitation(inv) for inv in invitations]
    )


@router.post(
    "/event-series/{series_id}/invitations",
    response_model=SeriesInvitationListResponse,
    status_code=status.HTTP_201_CREATED,
)
def add_series_invitations(
    series_id: str,
    payload: SeriesInvitationsRequest,
    *,
    current_user=Depends(_get_current_user),
) -> SeriesInvitationListResponse:
    """Add invitees for sessions generated from now on."""
    service = get_session_series_service()
    try:
        template = service.get_template(series_id)
        _require_club_admin(current_user, template.club_id)
        added = service.add_standing_invitations(
            series_id,
            person_ids=payload.person_ids,
            group_ids=payload.group_ids,
            invited_by_person_id=str(current_user.id),
        )
    except (SchedulingError, ValueError) as exc:
        raise _http_error(exc) from exc
    return SeriesInvitationListResponse(invitations=[SeriesInvitationOut.from_invitation(inv) for inv in added])


@router.delete("/event-series/{series_id}/invitations", status_code=status.HTTP_204_NO_CONTENT)
def remove_series_invitation(
    series_id: str,
    person_id: Optional[str] = Query(default=None, alias="personId"),
    group_id: Optional[str] = Query(default=None, alias="groupId"),
    *,
    current_user=Depends(_get_current_user),
) -> Response:
    service = get_session_series_service()
    try:
        template = service.get_template(series_id)
        _require_club_admin(current_user, template.club_id)
        removed = service.remove_standing_invitation(
            series_id,
            person_id=person_id,
            group_id=group_id,
            actor_id=str(current_user.id),
        )
    except (SchedulingError, ValueError) as exc:
        raise _http_error(exc) from exc
    if not removed:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Invitation not found")
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.post("/events/{session_id}/cancel", response_model=SessionOut)
def cancel_session(
    session_id: str,
    *,
    current_user=Depends(_get_current_user),
) -> SessionOut:
    service = get_session_series_service()
    try:
        instance = service.get_instance(session_id)
        _require_club_admin(current_user, instance.club_id)
        cancelled = service.cancel_instance(session_id, actor_id=str(current_user.id))
    except SchedulingError as exc:
        raise exc.to_http_exception() from exc
    return SessionOut.from_instance(cancelled)


@router.delete("/events/{session_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_session(
    session_id: str,
    *,
    current_user=Depends(_get_current_user),
) -> Response:
    service = get_session_series_service()
    try:
        instance = service.get_instance(session_id)
        _require_club_admin(current_user, instance.club_id)
        service.delete_instance(session_id, actor_id=str(current_user.id))
    except SchedulingError as exc:
        raise exc.to_http_exception() from exc
    return Response(status_code=status.HTTP_204_NO_CONTENT)
