"""Application wiring for session series and attendance services."""
from __future__ import annotations

import logging
from functools import lru_cache
from typing import Any, Protocol

from ...settings import SchedulingConfig, load_scheduling_config
from ..rsvp import RsvpService
from ..rsvp.repository import PostgresTransactionFactory
from ..sessions import SessionAuditEvent, SessionEventLogger, SessionSeriesService
from ..sessions.repository import PostgresSessionRepository


logger = logging.getLogger("sessions")

ADMIN_ROLES = frozenset({"admin", "owner"})


class AdminPolicy(Protocol):
    """Decides who may manage a club's series and act for other members."""

    def can_manage_club(self, user: Any, club_id: str) -> bool:
        ...


class RoleAdminPolicy(AdminPolicy):
    """Grants club management to users holding an administrative site role."""

    def can_manage_club(self, user: Any, club_id: str) -> bool:
        return getattr(user, "role", None) in ADMIN_ROLES


class LoggingSessionEventLogger(SessionEventLogger):
    """Forwards scheduling audit events to the application logger."""

    def log(self, event: SessionAuditEvent) -> None:
        logger.info(
            "Session event %s series=%s session=%s actor=%s metadata=%s",
            event.event_type.value,
            event.template_id,
            event.session_id,
            event.actor_id,
            event.metadata,
        )


@lru_cache(maxsize=1)
def get_scheduling_config() -> SchedulingConfig:
    return load_scheduling_config()


@lru_cache(maxsize=1)
def get_admin_policy() -> AdminPolicy:
    return RoleAdminPolicy()


@lru_cache(maxsize=1)
def get_session_series_service() -> SessionSeriesService:
    config = get_scheduling_config()
    service = SessionSeriesService(
        repository=PostgresSessionRepository(),
        removals=PostgresTransactionFactory(),
        event_logger=LoggingSessionEventLogger(),
        local_zone=config.zone(),
        default_generate_weeks=config.default_generate_weeks,
        max_generate_weeks=config.max_generate_weeks,
    )
    return service


@lru_cache(maxsize=1)
def get_rsvp_service() -> RsvpService:
    config = get_scheduling_config()
    return RsvpService(
        transactions=PostgresTransactionFactory(),
        lock_subscription_rows=config.lock_subscription_rows,
    )


__all__ = [
    "AdminPolicy",
    "LoggingSessionEventLogger",
    "RoleAdminPolicy",
    "get_admin_policy",
    "get_rsvp_service",
    "get_scheduling_config",
    "get_session_series_service",
]
