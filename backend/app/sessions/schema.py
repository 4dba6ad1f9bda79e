"""DDL for the scheduling, quota and attendance tables."""
from __future__ import annotations

from typing import Optional

from psycopg2.extensions import connection as PgConnection

from .repository import managed_connection

CORE_SCHEMA_SQL = """
CREATE TABLE IF NOT EXISTS event_series (
    id TEXT PRIMARY KEY,
    club_id TEXT NOT NULL,
    title TEXT NOT NULL,
    description TEXT,
    location TEXT,
    weekday_mask SMALLINT NOT NULL CHECK (weekday_mask BETWEEN 1 AND 127),
    start_time_local TIME NOT NULL,
    duration_minutes INTEGER NOT NULL DEFAULT 90 CHECK (duration_minutes > 0),
    start_date DATE NOT NULL,
    end_date DATE,
    visibility_lead_days INTEGER NOT NULL DEFAULT 5 CHECK (visibility_lead_days >= 0),
    default_fee_cents INTEGER,
    currency CHAR(3) NOT NULL DEFAULT 'GBP',
    payment_mode TEXT NOT NULL DEFAULT 'included'
        CHECK (payment_mode IN ('included', 'one_off', 'free')),
    created_by_person_id TEXT,
    archived_at TIMESTAMPTZ,
    created_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
    CHECK (end_date IS NULL OR end_date >= start_date)
);

CREATE INDEX IF NOT EXISTS idx_event_series_club ON event_series (club_id);

CREATE TABLE IF NOT EXISTS events (
    id TEXT PRIMARY KEY,
    club_id TEXT NOT NULL,
    series_id TEXT REFERENCES event_series (id) ON DELETE SET NULL,
    occurs_on DATE NOT NULL,
    title TEXT NOT NULL,
    description TEXT,
    location TEXT,
    starts_at TIMESTAMPTZ NOT NULL,
    ends_at TIMESTAMPTZ NOT NULL,
    visible_from TIMESTAMPTZ NOT NULL,
    status TEXT NOT NULL DEFAULT 'scheduled' CHECK (status IN ('scheduled', 'cancelled')),
    payment_mode TEXT NOT NULL DEFAULT 'included'
        CHECK (payment_mode IN ('included', 'one_off', 'free')),
    fee_cents INTEGER,
    currency CHAR(3) NOT NULL DEFAULT 'GBP',
    created_by_person_id TEXT,
    created_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
    CONSTRAINT uq_events_series_date UNIQUE (series_id, occurs_on)
);

CREATE INDEX IF NOT EXISTS idx_events_series_starts ON events (series_id, starts_at);

CREATE TABLE IF NOT EXISTS series_invitations (
    id BIGSERIAL PRIMARY KEY,
    series_id TEXT NOT NULL REFERENCES event_series (id) ON DELETE CASCADE,
    person_id TEXT,
    group_id TEXT,
    invited_by_person_id TEXT,
    created_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
    CHECK ((person_id IS NULL) <> (group_id IS NULL))
);

CREATE UNIQUE INDEX IF NOT EXISTS uq_series_invitations_person
    ON series_invitations (series_id, person_id) WHERE person_id IS NOT NULL;
CREATE UNIQUE INDEX IF NOT EXISTS uq_series_invitations_group
    ON series_invitations (series_id, group_id) WHERE group_id IS NOT NULL;

CREATE TABLE IF NOT EXISTS event_invitations (
    id BIGSERIAL PRIMARY KEY,
    event_id TEXT NOT NULL REFERENCES events (id) ON DELETE CASCADE,
    person_id TEXT,
    group_id TEXT,
    invited_by_person_id TEXT,
    created_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
    CHECK ((person_id IS NULL) <> (group_id IS NULL))
);

CREATE UNIQUE INDEX IF NOT EXISTS uq_event_invitations_person
    ON event_invitations (event_id, person_id) WHERE person_id IS NOT NULL;
CREATE UNIQUE INDEX IF NOT EXISTS uq_event_invitations_group
    ON event_invitations (event_id, group_id) WHERE group_id IS NOT NULL;

CREATE TABLE IF NOT EXISTS billing_plans (
    id TEXT PRIMARY KEY,
    club_id TEXT NOT NULL,
    name TEXT NOT NULL,
    weekly_sessions_allowed INTEGER CHECK (weekly_sessions_allowed IS NULL OR weekly_sessions_allowed >= 0),
    created_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
);

CREATE TABLE IF NOT EXISTS member_subscriptions (
    id TEXT PRIMARY KEY,
    person_id TEXT NOT NULL,
    club_id TEXT NOT NULL,
    plan_id TEXT NOT NULL REFERENCES billing_plans (id),
    status TEXT NOT NULL CHECK (status IN ('active', 'past_due', 'cancelled')),
    created_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
);

CREATE INDEX IF NOT EXISTS idx_member_subscriptions_member
    ON member_subscriptions (person_id, club_id, status);

CREATE TABLE IF NOT EXISTS subscription_usages (
    subscription_id TEXT NOT NULL REFERENCES member_subscriptions (id) ON DELETE CASCADE,
    event_id TEXT NOT NULL REFERENCES events (id) ON DELETE CASCADE,
    used_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
    PRIMARY KEY (subscription_id, event_id)
);

CREATE INDEX IF NOT EXISTS idx_subscription_usages_event ON subscription_usages (event_id);

CREATE TABLE IF NOT EXISTS event_rsvps (
    event_id TEXT NOT NULL REFERENCES events (id) ON DELETE CASCADE,
    person_id TEXT NOT NULL,
    response TEXT NOT NULL CHECK (response IN ('yes', 'maybe', 'no')),
    free_session BOOLEAN NOT NULL DEFAULT FALSE,
    note TEXT,
    responded_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
    PRIMARY KEY (event_id, person_id)
);
"""


def ensure_schema(conn: Optional[PgConnection] = None) -> None:
    """Create the core tables if they do not exist yet."""

    with managed_connection(conn) as (connection, _managed):
        with connection.cursor() as cursor:
            cursor.execute(CORE_SCHEMA_SQL)


__all__ = ["CORE_SCHEMA_SQL", "ensure_schema"]
