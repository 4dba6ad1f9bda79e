"""Session series: generation of dated sessions and their invitations."""

from .generator import InstanceGenerator, SessionRepository, build_instance, generation_window
from .invitations import InvitationPropagator, InvitationRepository
from .models import (
    GenerationResult,
    InstanceInvitation,
    SeriesSummary,
    SessionAuditEvent,
    SessionAuditEventType,
    SessionInstance,
    SessionStatus,
    StandingInvitation,
)
from .service import (
    SeriesRepository,
    SessionAdminRepository,
    SessionEventLogger,
    SessionRemovalTransactionFactory,
    SessionRemovalUnitOfWork,
    SessionSeriesService,
)

__all__ = [
    "GenerationResult",
    "InstanceGenerator",
    "InstanceInvitation",
    "InvitationPropagator",
    "InvitationRepository",
    "SeriesRepository",
    "SeriesSummary",
    "SessionAdminRepository",
    "SessionAuditEvent",
    "SessionAuditEventType",
    "SessionEventLogger",
    "SessionInstance",
    "SessionRemovalTransactionFactory",
    "SessionRemovalUnitOfWork",
    "SessionRepository",
    "SessionSeriesService",
    "SessionStatus",
    "StandingInvitation",
    "build_instance",
    "generation_window",
]
