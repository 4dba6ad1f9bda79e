from __future__ import annotations

import pytest
from pydantic import ValidationError

from backend.app.sessions import InstanceInvitation, InvitationPropagator, StandingInvitation
from backend.tests.in_memory import InMemorySeriesRepository


def test_propagate_without_standing_invitations_is_a_no_op():
    repository = InMemorySeriesRepository()
    assert InvitationPropagator(repository).propagate("series-1", "session-1") == 0
    assert repository.instance_invitations == []


def test_propagate_copies_each_invitee_once():
    repository = InMemorySeriesRepository()
    repository.add_standing_invitation(
        StandingInvitation(template_id="series-1", person_id="p-1", invited_by_person_id="admin")
    )
    repository.add_standing_invitation(StandingInvitation(template_id="series-1", group_id="g-9"))
    repository.add_standing_invitation(StandingInvitation(template_id="series-2", person_id="p-2"))
    propagator = InvitationPropagator(repository)

    assert propagator.propagate("series-1", "session-1") == 2
    assert propagator.propagate("series-1", "session-1") == 0

    copied = repository.invitations_for_session("session-1")
    assert {inv.target_key for inv in copied} == {("person", "p-1"), ("group", "g-9")}
    assert next(inv for inv in copied if inv.person_id == "p-1").invited_by_person_id == "admin"


def test_invitation_requires_exactly_one_target():
    with pytest.raises(ValidationError):
        StandingInvitation(template_id="series-1")
    with pytest.raises(ValidationError):
        InstanceInvitation(session_id="session-1", person_id="p-1", group_id="g-1")
