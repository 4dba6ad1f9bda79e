"""PostgreSQL storage for subscriptions and their weekly usage rows."""
from __future__ import annotations

from datetime import datetime
from typing import Optional, Sequence

from psycopg2.extensions import connection as PgConnection

from ..sessions.repository import dict_cursor
from .models import MemberSubscription, QuotaUsageRecord, SubscriptionStatus, WeekWindow

_SUBSCRIPTION_COLUMNS = """
    s.id AS subscription_id,
    s.person_id,
    s.club_id,
    s.plan_id,
    s.status,
    p.weekly_sessions_allowed
"""


def _row_to_subscription(row: dict) -> MemberSubscription:
    allowance = row.get("weekly_sessions_allowed")
    return MemberSubscription(
        subscription_id=row["subscription_id"],
        person_id=row["person_id"],
        club_id=row["club_id"],
        plan_id=row["plan_id"],
        status=SubscriptionStatus(row["status"]),
        weekly_allowance=int(allowance) if allowance is not None else None,
    )


class PostgresQuotaRepository:
    """Reads subscriptions and writes ``subscription_usages`` rows."""

    def __init__(self, *, conn: Optional[PgConnection] = None) -> None:
        self._conn = conn

    def _cursor(self):
        return dict_cursor(self._conn)

    def get_active_subscription(
        self,
        person_id: str,
        club_id: str,
        *,
        for_update: bool = False,
    ) -> Optional[MemberSubscription]:
        # Locking the subscription row serializes concurrent consumers of one allowance.
        lock = "FOR UPDATE OF s" if for_update else ""
        with self._cursor() as cursor:
            cursor.execute(
                f"""
                SELECT {_SUBSCRIPTION_COLUMNS}
                FROM member_subscriptions s
                JOIN billing_plans p ON p.id = s.plan_id
                WHERE s.person_id = %s AND s.club_id = %s AND s.status = 'active'
                ORDER BY s.created_at DESC
                LIMIT 1
                {lock}
                """,
                (person_id, club_id),
            )
            row = cursor.fetchone()
        return _row_to_subscription(row) if row else None

    def list_member_subscriptions(self, person_id: str, club_id: str) -> Sequence[MemberSubscription]:
        with self._cursor() as cursor:
            cursor.execute(
                f"""
                SELECT {_SUBSCRIPTION_COLUMNS}
                FROM member_subscriptions s
                JOIN billing_plans p ON p.id = s.plan_id
                WHERE s.person_id = %s AND s.club_id = %s
                ORDER BY s.created_at DESC
                """,
                (person_id, club_id),
            )
            rows = cursor.fetchall()
        return [_row_to_subscription(row) for row in rows]

    def count_usage_between(self, subscription_id: str, starts_at: datetime, ends_at: datetime) -> int:
        with self._cursor() as cursor:
            cursor.execute(
                """
                SELECT COUNT(*) AS used
                FROM subscription_usages u
                JOIN events e ON e.id = u.event_id
                WHERE u.subscription_id = %s
                  AND e.starts_at >= %s
                  AND e.starts_at < %s
                """,
                (subscription_id, starts_at, ends_at),
            )
            row = cursor.fetchone()
        return int(row["used"]) if row else 0

    def has_usage(self, subscription_id: str, session_id: str) -> bool:
        with self._cursor() as cursor:
            cursor.execute(
                "SELECT 1 FROM subscription_usages WHERE subscription_id = %s AND event_id = %s",
                (subscription_id, session_id),
            )
            return cursor.fetchone() is not None

    def insert_usage(
        self,
        record: QuotaUsageRecord,
        *,
        week: WeekWindow,
        allowance: Optional[int],
    ) -> bool:
        with self._cursor() as cursor:
            cursor.execute(
                """
                INSERT INTO subscription_usages (subscription_id, event_id, used_at)
                SELECT %(subscription_id)s, %(event_id)s, %(used_at)s
                WHERE %(allowance)s IS NULL
                   OR (
                        SELECT COUNT(*)
                        FROM subscription_usages u
                        JOIN events e ON e.id = u.event_id
                        WHERE u.subscription_id = %(subscription_id)s
                          AND e.starts_at >= %(week_start)s
                          AND e.starts_at < %(week_end)s
                   ) < %(allowance)s
                ON CONFLICT (subscription_id, event_id) DO NOTHING
                """,
                {
                    "subscription_id": record.subscription_id,
                    "event_id": record.session_id,
                    "used_at": record.used_at,
                    "allowance": allowance,
                    "week_start": week.starts_at,
                    "week_end": week.ends_at,
                },
            )
            return cursor.rowcount > 0

    def delete_usage(self, subscription_id: str, session_id: str) -> bool:
        with self._cursor() as cursor:
            cursor.execute(
                "DELETE FROM subscription_usages WHERE subscription_id = %s AND event_id = %s",
                (subscription_id, session_id),
            )
            return cursor.rowcount > 0

    def delete_usage_for_session(self, session_id: str) -> int:
        with self._cursor() as cursor:
            cursor.execute("DELETE FROM subscription_usages WHERE event_id = %s", (session_id,))
            return cursor.rowcount


__all__ = ["PostgresQuotaRepository"]
