"""Persistence layer for series templates, sessions and invitations."""
from __future__ import annotations

from contextlib import contextmanager
from datetime import date, datetime
from typing import Iterable, List, Optional, Sequence, Set

import psycopg2
import psycopg2.extras
from psycopg2.extensions import connection as PgConnection
from psycopg2.extensions import cursor as PgCursor

from ..exceptions import InstanceConflict
from ..recurrence.models import PaymentMode, RecurrenceTemplate
from .models import (
    InstanceInvitation,
    SeriesSummary,
    SessionInstance,
    SessionStatus,
    StandingInvitation,
)

try:  # pragma: no cover - resolve connection helper when imported from FastAPI app
    from backend.app_context import get_conn
except ModuleNotFoundError as exc:  # pragma: no cover
    if exc.name != "backend":
        raise
    from ...app_context import get_conn  # type: ignore[no-redef]


@contextmanager
def managed_connection(conn: Optional[PgConnection] = None):
    """Context manager that manages transaction boundaries for optional connections."""

    if conn is not None:
        yield conn, False
        return

    connection = get_conn()
    try:
        yield connection, True
        connection.commit()
    except Exception:
        connection.rollback()
        raise
    finally:
        connection.close()


@contextmanager
def dict_cursor(conn: Optional[PgConnection]) -> Iterable[PgCursor]:
    with managed_connection(conn) as (connection, _managed):
        cursor = connection.cursor(cursor_factory=psycopg2.extras.RealDictCursor)
        try:
            yield cursor
        finally:
            cursor.close()


def _row_to_template(row: dict) -> RecurrenceTemplate:
    return RecurrenceTemplate(
        template_id=row["id"],
        club_id=row["club_id"],
        title=row["title"],
        description=row.get("description"),
        location=row.get("location"),
        weekday_mask=int(row["weekday_mask"]),
        start_time_local=row["start_time_local"],
        duration_minutes=int(row["duration_minutes"]),
        start_date=row["start_date"],
        end_date=row.get("end_date"),
        visibility_lead_days=int(row["visibility_lead_days"]),
        default_fee_cents=row.get("default_fee_cents"),
        currency=row["currency"],
        payment_mode=PaymentMode(row["payment_mode"]),
        created_by_person_id=row.get("created_by_person_id"),
        archived_at=row.get("archived_at"),
        created_at=row["created_at"],
    )


def _row_to_instance(row: dict) -> SessionInstance:
    return SessionInstance(
        session_id=row["id"],
        club_id=row["club_id"],
        template_id=row.get("series_id"),
        occurs_on=row["occurs_on"],
        title=row["title"],
        description=row.get("description"),
        location=row.get("location"),
        starts_at_utc=row["starts_at"],
        ends_at_utc=row["ends_at"],
        visible_from_utc=row["visible_from"],
        status=SessionStatus(row["status"]),
        payment_mode=PaymentMode(row["payment_mode"]),
        fee_cents=row.get("fee_cents"),
        currency=row["currency"],
        created_by_person_id=row.get("created_by_person_id"),
        created_at=row["created_at"],
    )


def _row_to_standing_invitation(row: dict) -> StandingInvitation:
    return StandingInvitation(
        template_id=row["series_id"],
        person_id=row.get("person_id"),
        group_id=row.get("group_id"),
        invited_by_person_id=row.get("invited_by_person_id"),
        created_at=row["created_at"],
    )


class PostgresSessionRepository:
    """Concrete repository persisting series and sessions in PostgreSQL."""

    def __init__(self, *, conn: Optional[PgConnection] = None) -> None:
        self._conn = conn

    def _cursor(self):
        return dict_cursor(self._conn)

    # Series templates -------------------------------------------------------

    def create_template(self, template: RecurrenceTemplate) -> RecurrenceTemplate:
        with self._cursor() as cursor:
            cursor.execute(
                """
                INSERT INTO event_series (
                    id,
                    club_id,
                    title,
                    description,
                    location,
                    weekday_mask,
                    start_time_local,
                    duration_minutes,
                    start_date,
                    end_date,
                    visibility_lead_days,
                    default_fee_cents,
                    currency,
                    payment_mode,
                    created_by_person_id
                )
                VALUES (%(id)s, %(club_id)s, %(title)s, %(description)s, %(location)s,
                        %(weekday_mask)s, %(start_time_local)s, %(duration_minutes)s,
                        %(start_date)s, %(end_date)s, %(visibility_lead_days)s,
                        %(default_fee_cents)s, %(currency)s, %(payment_mode)s,
                        %(created_by_person_id)s)
                RETURNING *
                """,
                {
                    "id": template.template_id,
                    "club_id": template.club_id,
                    "title": template.title,
                    "description": template.description,
                    "location": template.location,
                    "weekday_mask": template.weekday_mask,
                    "start_time_local": template.start_time_local,
                    "duration_minutes": template.duration_minutes,
                    "start_date": template.start_date,
                    "end_date": template.end_date,
                    "visibility_lead_days": template.visibility_lead_days,
                    "default_fee_cents": template.default_fee_cents,
                    "currency": template.currency,
                    "payment_mode": template.payment_mode.value,
                    "created_by_person_id": template.created_by_person_id,
                },
            )
            row = cursor.fetchone()
            if not row:
                raise RuntimeError("Failed to persist event series")
            return _row_to_template(row)

    def get_template(self, template_id: str) -> Optional[RecurrenceTemplate]:
        with self._cursor() as cursor:
            cursor.execute("SELECT * FROM event_series WHERE id = %s LIMIT 1", (template_id,))
            row = cursor.fetchone()
        return _row_to_template(row) if row else None

    def list_templates(self, club_id: str) -> Sequence[RecurrenceTemplate]:
        with self._cursor() as cursor:
            cursor.execute(
                """
                SELECT *
                FROM event_series
                WHERE club_id = %s
                ORDER BY start_date, title
                """,
                (club_id,),
            )
            rows = cursor.fetchall()
        return [_row_to_template(row) for row in rows]

    def archive_template(self, template_id: str, archived_at: datetime) -> Optional[RecurrenceTemplate]:
        with self._cursor() as cursor:
            cursor.execute(
                """
                UPDATE event_series
                SET archived_at = COALESCE(archived_at, %s)
                WHERE id = %s
                RETURNING *
                """,
                (archived_at, template_id),
            )
            row = cursor.fetchone()
        return _row_to_template(row) if row else None

    def summarize(self, template_id: str, *, now: datetime) -> SeriesSummary:
        with self._cursor() as cursor:
            cursor.execute(
                """
                SELECT
                    COUNT(*) AS total_sessions,
                    COUNT(*) FILTER (WHERE starts_at >= %(now)s AND status = 'scheduled') AS upcoming_sessions,
                    MAX(starts_at) AS last_starts_at
                FROM events
                WHERE series_id = %(series_id)s
                """,
                {"series_id": template_id, "now": now},
            )
            row = cursor.fetchone() or {}
        return SeriesSummary(
            template_id=template_id,
            total_sessions=int(row.get("total_sessions") or 0),
            upcoming_sessions=int(row.get("upcoming_sessions") or 0),
            last_starts_at=row.get("last_starts_at"),
        )

    # Sessions ---------------------------------------------------------------

    def existing_dates(self, template_id: str, *, on_or_after: date) -> Set[date]:
        with self._cursor() as cursor:
            cursor.execute(
                """
                SELECT occurs_on
                FROM events
                WHERE series_id = %s AND occurs_on >= %s
                """,
                (template_id, on_or_after),
            )
            rows = cursor.fetchall()
        return {row["occurs_on"] for row in rows}

    def insert_instance(self, instance: SessionInstance) -> SessionInstance:
        with self._cursor() as cursor:
            cursor.execute(
                """
                INSERT INTO events (
                    id,
                    club_id,
                    series_id,
                    occurs_on,
                    title,
                    description,
                    location,
                    starts_at,
                    ends_at,
                    visible_from,
                    status,
                    payment_mode,
                    fee_cents,
                    currency,
                    created_by_person_id
                )
                VALUES (%(id)s, %(club_id)s, %(series_id)s, %(occurs_on)s, %(title)s,
                        %(description)s, %(location)s, %(starts_at)s, %(ends_at)s,
                        %(visible_from)s, %(status)s, %(payment_mode)s, %(fee_cents)s,
                        %(currency)s, %(created_by_person_id)s)
                ON CONFLICT ON CONSTRAINT uq_events_series_date DO NOTHING
                RETURNING *
                """,
                {
                    "id": instance.session_id,
                    "club_id": instance.club_id,
                    "series_id": instance.template_id,
                    "occurs_on": instance.occurs_on,
                    "title": instance.title,
                    "description": instance.description,
                    "location": instance.location,
                    "starts_at": instance.starts_at_utc,
                    "ends_at": instance.ends_at_utc,
                    "visible_from": instance.visible_from_utc,
                    "status": instance.status.value,
                    "payment_mode": instance.payment_mode.value,
                    "fee_cents": instance.fee_cents,
                    "currency": instance.currency,
                    "created_by_person_id": instance.created_by_person_id,
                },
            )
            row = cursor.fetchone()
        if not row:
            raise InstanceConflict.for_date(instance.template_id or "", instance.occurs_on)
        return _row_to_instance(row)

    def get_instance(self, session_id: str) -> Optional[SessionInstance]:
        with self._cursor() as cursor:
            cursor.execute("SELECT * FROM events WHERE id = %s LIMIT 1", (session_id,))
            row = cursor.fetchone()
        return _row_to_instance(row) if row else None

    def set_instance_status(self, session_id: str, status: SessionStatus) -> Optional[SessionInstance]:
        with self._cursor() as cursor:
            cursor.execute(
                "UPDATE events SET status = %s WHERE id = %s RETURNING *",
                (status.value, session_id),
            )
            row = cursor.fetchone()
        return _row_to_instance(row) if row else None

    def delete_instance(self, session_id: str) -> bool:
        with self._cursor() as cursor:
            cursor.execute("DELETE FROM events WHERE id = %s", (session_id,))
            return cursor.rowcount > 0

    # Invitations ------------------------------------------------------------

    def list_standing_invitations(self, template_id: str) -> Sequence[StandingInvitation]:
        with self._cursor() as cursor:
            cursor.execute(
                """
                SELECT series_id, person_id, group_id, invited_by_person_id, created_at
                FROM series_invitations
                WHERE series_id = %s
                ORDER BY created_at, id
                """,
                (template_id,),
            )
            rows = cursor.fetchall()
        return [_row_to_standing_invitation(row) for row in rows]

    def add_standing_invitation(self, invitation: StandingInvitation) -> bool:
        with self._cursor() as cursor:
            cursor.execute(
                """
                INSERT INTO series_invitations (series_id, person_id, group_id, invited_by_person_id)
                VALUES (%s, %s, %s, %s)
                ON CONFLICT DO NOTHING
                """,
                (
                    invitation.template_id,
                    invitation.person_id,
                    invitation.group_id,
                    invitation.invited_by_person_id,
                ),
            )
            return cursor.rowcount > 0

    def remove_standing_invitation(
        self,
        template_id: str,
        *,
        person_id: Optional[str] = None,
        group_id: Optional[str] = None,
    ) -> bool:
        column, value = ("person_id", person_id) if person_id is not None else ("group_id", group_id)
        with self._cursor() as cursor:
            cursor.execute(
                f"DELETE FROM series_invitations WHERE series_id = %s AND {column} = %s",
                (template_id, value),
            )
            return cursor.rowcount > 0

    def add_instance_invitations(self, invitations: Sequence[InstanceInvitation]) -> int:
        if not invitations:
            return 0
        rows: List[tuple] = [
            (inv.session_id, inv.person_id, inv.group_id, inv.invited_by_person_id)
            for inv in invitations
        ]
        inserted = 0
        with self._cursor() as cursor:
            for params in rows:
                cursor.execute(
                    """
                    INSERT INTO event_invitations (event_id, person_id, group_id, invited_by_person_id)
                    VALUES (%s, %s, %s, %s)
                    ON CONFLICT DO NOTHING
                    """,
                    params,
                )
                inserted += cursor.rowcount
        return inserted


__all__ = ["PostgresSessionRepository", "dict_cursor", "managed_connection"]
