"""Copies a series' standing invitations onto newly generated sessions."""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Protocol, Sequence

from .models import InstanceInvitation, StandingInvitation

logger = logging.getLogger(__name__)


class InvitationRepository(Protocol):
    """Persistence operations for standing and per-session invitations."""

    def list_standing_invitations(self, template_id: str) -> Sequence[StandingInvitation]:
        ...

    def add_instance_invitations(self, invitations: Sequence[InstanceInvitation]) -> int:
        """Insert invitations, ignoring ones that already exist; return rows inserted."""


@dataclass
class InvitationPropagator:
    """Materializes standing invitations for a single session."""

    repository: InvitationRepository

    def propagate(self, template_id: str, session_id: str) -> int:
        standing = self.repository.list_standing_invitations(template_id)
        if not standing:
            return 0

        copies = [InstanceInvitation.from_standing(invitation, session_id) for invitation in standing]
        inserted = self.repository.add_instance_invitations(copies)
        logger.debug(
            "Copied %s/%s standing invitations series=%s session=%s",
            inserted,
            len(copies),
            template_id,
            session_id,
        )
        return inserted


__all__ = ["InvitationPropagator", "InvitationRepository"]
