from __future__ import annotations

from datetime import date, datetime, time, timezone
from itertools import count
from types import SimpleNamespace

import pytest
from fastapi import HTTPException

from backend.app.routes import rsvp as rsvp_routes
from backend.app.routes import sessions as sessions_routes
from backend.app.rsvp import QuotaAction, RsvpChoice, RsvpService
from backend.app.schemas.rsvp import AdminRsvpRequest, RsvpRequest
from backend.app.schemas.sessions import (
    EventSeriesCreateRequest,
    GenerateSessionsRequest,
    SeriesInvitationsRequest,
)
from backend.app.services.sessions import RoleAdminPolicy
from backend.app.sessions import SessionSeriesService, SessionStatus
from backend.settings import load_scheduling_config
from backend.tests.in_memory import (
    MONDAY,
    MORNING_OF_MONDAY,
    InMemoryQuotaRepository,
    InMemoryRsvpRepository,
    InMemorySeriesRepository,
    InMemoryTransactionFactory,
    RecordingEventLogger,
)

ADMIN = SimpleNamespace(id=1, role="admin")
MEMBER = SimpleNamespace(id=42, role="user")


@pytest.fixture
def api(monkeypatch):
    repository = InMemorySeriesRepository()
    quota = InMemoryQuotaRepository(repository)
    rsvps = InMemoryRsvpRepository()
    transactions = InMemoryTransactionFactory(rsvps, repository, quota)
    ids = count(1)
    series_service = SessionSeriesService(
        repository=repository,
        removals=transactions,
        event_logger=RecordingEventLogger(),
        clock=lambda: MORNING_OF_MONDAY,
        default_generate_weeks=2,
        id_factory=lambda: f"session-{next(ids)}",
    )
    rsvp_service = RsvpService(transactions=transactions, clock=lambda: MORNING_OF_MONDAY)
    config = load_scheduling_config(env={"SERIES_VISIBILITY_DAYS": "3"})

    for module in (sessions_routes, rsvp_routes):
        monkeypatch.setattr(module, "get_session_series_service", lambda: series_service)
        monkeypatch.setattr(module, "get_admin_policy", lambda: RoleAdminPolicy())
    monkeypatch.setattr(sessions_routes, "get_scheduling_config", lambda: config)
    monkeypatch.setattr(rsvp_routes, "get_rsvp_service", lambda: rsvp_service)
    return SimpleNamespace(repository=repository, quota=quota, rsvps=rsvps)


def _create_payload(**overrides) -> EventSeriesCreateRequest:
    values = {
        "clubId": "club-1",
        "title": "Club night",
        "weekdays": ["Tue", "Thu"],
        "startTimeLocal": time(19, 0),
        "startDate": MONDAY,
    }
    values.update(overrides)
    return EventSeriesCreateRequest(**values)


def _create_series(api) -> str:
    response = sessions_routes.create_event_series(_create_payload(), current_user=ADMIN)
    return response.series.id


def test_create_event_series_applies_config_defaults(api):
    response = sessions_routes.create_event_series(_create_payload(), current_user=ADMIN)

    assert response.series.weekdays == ["Tuesday", "Thursday"]
    assert response.series.visibility_lead_days == 3
    assert response.series.duration_minutes == 90
    assert response.series.currency == "GBP"
    assert response.generation.created_count == 4
    assert response.generation.summary.total_sessions == 4
    dumped = response.model_dump(by_alias=True)
    assert dumped["generation"]["createdCount"] == 4


def test_create_event_series_requires_club_admin(api):
    with pytest.raises(HTTPException) as excinfo:
        sessions_routes.create_event_series(_create_payload(), current_user=MEMBER)
    assert excinfo.value.status_code == 403


def test_create_event_series_rejects_bad_weekday(api):
    with pytest.raises(HTTPException) as excinfo:
        sessions_routes.create_event_series(_create_payload(weekdays=["Blursday"]), current_user=ADMIN)
    assert excinfo.value.status_code == 400
    assert excinfo.value.detail["error"] == "invalid_recurrence"


def test_create_event_series_rejects_end_before_start(api):
    with pytest.raises(HTTPException) as excinfo:
        sessions_routes.create_event_series(_create_payload(endDate=date(2025, 3, 1)), current_user=ADMIN)
    assert excinfo.value.status_code == 400


def test_generate_sessions_is_idempotent_over_http(api):
    series_id = _create_series(api)

    response = sessions_routes.generate_sessions(
        series_id, GenerateSessionsRequest(weeks=2, fromDate=MONDAY), current_user=ADMIN
    )

    assert response.created_count == 0
    assert response.summary.total_sessions == 4


def test_generate_sessions_unknown_series_returns_404(api):
    with pytest.raises(HTTPException) as excinfo:
        sessions_routes.generate_sessions("missing", GenerateSessionsRequest(), current_user=ADMIN)
    assert excinfo.value.status_code == 404


def test_series_invitation_endpoints(api):
    series_id = _create_series(api)

    added = sessions_routes.add_series_invitations(
        series_id, SeriesInvitationsRequest(personIds=["p-1"], groupIds=["g-1"]), current_user=ADMIN
    )
    listed = sessions_routes.list_series_invitations(series_id, current_user=ADMIN)
    sessions_routes.remove_series_invitation(series_id, person_id="p-1", group_id=None, current_user=ADMIN)

    assert len(added.invitations) == 2
    assert len(listed.invitations) == 2
    assert [inv.group_id for inv in sessions_routes.list_series_invitations(series_id, current_user=ADMIN).invitations] == ["g-1"]
    with pytest.raises(HTTPException) as excinfo:
        sessions_routes.remove_series_invitation(series_id, person_id="p-1", group_id=None, current_user=ADMIN)
    assert excinfo.value.status_code == 404


def test_series_summary_route(api):
    series_id = _create_series(api)

    summary = sessions_routes.get_series_summary(series_id, current_user=ADMIN)

    assert summary.total_sessions == 4
    assert summary.upcoming_sessions == 4
    assert summary.last_starts_at == datetime(2025, 3, 13, 19, 0, tzinfo=timezone.utc)
    with pytest.raises(HTTPException) as excinfo:
        sessions_routes.get_series_summary(series_id, current_user=MEMBER)
    assert excinfo.value.status_code == 403


def test_archive_then_generate_is_not_found(api):
    series_id = _create_series(api)
    sessions_routes.archive_event_series(series_id, current_user=ADMIN)

    with pytest.raises(HTTPException) as excinfo:
        sessions_routes.generate_sessions(series_id, GenerateSessionsRequest(), current_user=ADMIN)
    assert excinfo.value.status_code == 404


def test_member_rsvp_consumes_and_cancel_releases(api):
    series_id = _create_series(api)
    api.quota.add_subscription(person_id="42", weekly_allowance=1)
    session_id = api.repository.sessions_for(series_id)[0].session_id

    outcome = rsvp_routes.set_rsvp(session_id, RsvpRequest(response=RsvpChoice.YES), current_user=MEMBER)
    cancelled = sessions_routes.cancel_session(session_id, current_user=ADMIN)

    assert outcome.quota_action == QuotaAction.CONSUME
    assert outcome.subscription_slot_used
    assert cancelled.status == SessionStatus.CANCELLED
    assert api.quota.usages == {}


def test_member_cannot_mark_own_rsvp_free(api):
    series_id = _create_series(api)
    api.quota.add_subscription(person_id="42", weekly_allowance=1)
    session_id = api.repository.sessions_for(series_id)[0].session_id

    payload = RsvpRequest.model_validate({"response": "yes", "freeSession": True})
    outcome = rsvp_routes.set_rsvp(session_id, payload, current_user=MEMBER)

    assert not outcome.free_session
    assert outcome.quota_action == QuotaAction.CONSUME
    assert outcome.subscription_slot_used
    assert not api.rsvps.get_response("42", session_id).free_session


def test_admin_can_mark_rsvp_free(api):
    series_id = _create_series(api)
    api.quota.add_subscription(person_id="42", weekly_allowance=1)
    session_id = api.repository.sessions_for(series_id)[0].session_id

    outcome = rsvp_routes.set_rsvp_for_member(
        session_id,
        AdminRsvpRequest(personId="42", response=RsvpChoice.YES, freeSession=True),
        current_user=ADMIN,
    )

    assert outcome.free_session
    assert outcome.quota_action == QuotaAction.NONE
    assert api.quota.usages == {}


def test_get_rsvp_returns_the_callers_response(api):
    series_id = _create_series(api)
    session_id = api.repository.sessions_for(series_id)[0].session_id

    before = rsvp_routes.get_rsvp(session_id, current_user=MEMBER)
    rsvp_routes.set_rsvp(session_id, RsvpRequest(response=RsvpChoice.MAYBE, note="Late"), current_user=MEMBER)
    after = rsvp_routes.get_rsvp(session_id, current_user=MEMBER)

    assert before.rsvp is None
    assert after.rsvp.person_id == "42"
    assert after.rsvp.response == RsvpChoice.MAYBE
    assert after.model_dump(by_alias=True)["rsvp"]["note"] == "Late"
    with pytest.raises(HTTPException) as excinfo:
        rsvp_routes.get_rsvp("missing", current_user=MEMBER)
    assert excinfo.value.status_code == 404


def test_rsvp_unknown_session_returns_404(api):
    with pytest.raises(HTTPException) as excinfo:
        rsvp_routes.set_rsvp("missing", RsvpRequest(response=RsvpChoice.YES), current_user=MEMBER)
    assert excinfo.value.status_code == 404
    assert excinfo.value.detail["error"] == "session_not_found"


def test_admin_can_rsvp_on_behalf_of_member(api):
    series_id = _create_series(api)
    session_id = api.repository.sessions_for(series_id)[0].session_id

    outcome = rsvp_routes.set_rsvp_for_member(
        session_id,
        AdminRsvpRequest(personId="42", response=RsvpChoice.MAYBE, note="Called in"),
        current_user=ADMIN,
    )

    assert outcome.person_id == "42"
    assert api.rsvps.get_response("42", session_id).note == "Called in"


def test_member_cannot_rsvp_for_someone_else(api):
    series_id = _create_series(api)
    session_id = api.repository.sessions_for(series_id)[0].session_id

    with pytest.raises(HTTPException) as excinfo:
        rsvp_routes.set_rsvp_for_member(
            session_id,
            AdminRsvpRequest(personId="7", response=RsvpChoice.YES),
            current_user=MEMBER,
        )
    assert excinfo.value.status_code == 403


def test_delete_session_route(api):
    series_id = _create_series(api)
    session_id = api.repository.sessions_for(series_id)[0].session_id

    response = sessions_routes.delete_session(session_id, current_user=ADMIN)

    assert response.status_code == 204
    assert api.repository.get_instance(session_id) is None
