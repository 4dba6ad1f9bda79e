"""PostgreSQL storage for RSVPs and the shared-connection unit of work."""
from __future__ import annotations

from contextlib import contextmanager
from dataclasses import dataclass
from typing import Callable, Iterator, Optional

from psycopg2.extensions import connection as PgConnection

from ..quota.repository import PostgresQuotaRepository
from ..sessions.repository import PostgresSessionRepository, dict_cursor
from .models import RsvpChoice, RsvpResponse

try:  # pragma: no cover - resolve connection helper when imported from FastAPI app
    from backend.app_context import get_conn
except ModuleNotFoundError as exc:  # pragma: no cover
    if exc.name != "backend":
        raise
    from ...app_context import get_conn  # type: ignore[no-redef]


def _row_to_response(row: dict) -> RsvpResponse:
    return RsvpResponse(
        person_id=row["person_id"],
        session_id=row["event_id"],
        response=RsvpChoice(row["response"]),
        free_session=bool(row["free_session"]),
        note=row.get("note"),
        responded_at=row["responded_at"],
    )


class PostgresRsvpRepository:
    """Keyed ``event_rsvps`` storage; one row per (event, person)."""

    def __init__(self, *, conn: Optional[PgConnection] = None) -> None:
        self._conn = conn

    def get_response(self, person_id: str, session_id: str) -> Optional[RsvpResponse]:
        with dict_cursor(self._conn) as cursor:
            cursor.execute(
                """
                SELECT *
                FROM event_rsvps
                WHERE event_id = %s AND person_id = %s
                FOR UPDATE
                """,
                (session_id, person_id),
            )
            row = cursor.fetchone()
        return _row_to_response(row) if row else None

    def upsert_response(self, response: RsvpResponse) -> RsvpResponse:
        with dict_cursor(self._conn) as cursor:
            cursor.execute(
                """
                INSERT INTO event_rsvps (event_id, person_id, response, free_session, note, responded_at)
                VALUES (%(event_id)s, %(person_id)s, %(response)s, %(free_session)s, %(note)s, %(responded_at)s)
                ON CONFLICT (event_id, person_id) DO UPDATE SET
                    response = EXCLUDED.response,
                    free_session = EXCLUDED.free_session,
                    note = EXCLUDED.note,
                    responded_at = EXCLUDED.responded_at
                RETURNING *
                """,
                {
                    "event_id": response.session_id,
                    "person_id": response.person_id,
                    "response": response.response.value,
                    "free_session": response.free_session,
                    "note": response.note,
                    "responded_at": response.responded_at,
                },
            )
            row = cursor.fetchone()
            if not row:
                raise RuntimeError("Failed to persist RSVP")
            return _row_to_response(row)


@dataclass
class PostgresUnitOfWork:
    """Repositories bound to one open connection."""

    conn: PgConnection

    def __post_init__(self) -> None:
        self.rsvps = PostgresRsvpRepository(conn=self.conn)
        self.sessions = PostgresSessionRepository(conn=self.conn)
        self.quota = PostgresQuotaRepository(conn=self.conn)


class PostgresTransactionFactory:
    """Opens a connection per unit of work, committing on success."""

    def __init__(self, connect: Optional[Callable[[], PgConnection]] = None) -> None:
        self._connect = connect or get_conn

    @contextmanager
    def transaction(self) -> Iterator[PostgresUnitOfWork]:
        connection = self._connect()
        try:
            yield PostgresUnitOfWork(connection)
            connection.commit()
        except Exception:
            connection.rollback()
            raise
        finally:
            connection.close()


__all__ = ["PostgresRsvpRepository", "PostgresTransactionFactory", "PostgresUnitOfWork"]
