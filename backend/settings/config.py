"""Scheduling configuration helpers."""
from __future__ import annotations

from dataclasses import dataclass
from datetime import tzinfo
from typing import Mapping, Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError
import os


@dataclass(frozen=True)
class SchedulingConfig:
    """Defaults and limits for series generation and quota enforcement."""

    club_timezone: str
    default_generate_weeks: int
    max_generate_weeks: int
    default_visibility_days: int
    default_duration_minutes: int
    default_currency: str
    lock_subscription_rows: bool

    def zone(self) -> tzinfo:
        """Resolve ``club_timezone`` to a tzinfo usable for local date math."""

        try:
            return ZoneInfo(self.club_timezone)
        except (ZoneInfoNotFoundError, ValueError) as exc:
            raise ValueError(f"Unknown CLUB_TIMEZONE {self.club_timezone!r}") from exc


def _to_bool(value: Optional[str], *, default: bool) -> bool:
    if value is None:
        return default
    lowered = value.strip().lower()
    if lowered in {"1", "true", "yes", "on"}:
        return True
    if lowered in {"0", "false", "no", "off"}:
        return False
    return default


def _to_int(value: Optional[str], *, default: int) -> int:
    if value is None or value == "":
        return default
    try:
        return int(value)
    except (TypeError, ValueError) as exc:
        raise ValueError(f"Expected integer value, got {value!r}") from exc


def load_scheduling_config(env: Optional[Mapping[str, str]] = None) -> SchedulingConfig:
    """Load :class:`SchedulingConfig` from environment variables."""

    env_mapping = os.environ if env is None else env

    club_timezone = (env_mapping.get("CLUB_TIMEZONE") or "Europe/London").strip()

    max_generate_weeks = max(1, _to_int(env_mapping.get("SERIES_MAX_GENERATE_WEEKS"), default=52))
    default_generate_weeks = max(1, _to_int(env_mapping.get("SERIES_GENERATE_WEEKS"), default=8))
    default_generate_weeks = min(default_generate_weeks, max_generate_weeks)

    default_visibility_days = max(0, _to_int(env_mapping.get("SERIES_VISIBILITY_DAYS"), default=5))
    default_duration_minutes = _to_int(env_mapping.get("SERIES_DURATION_MINUTES"), default=90)
    if default_duration_minutes <= 0:
        raise ValueError("SERIES_DURATION_MINUTES must be positive")

    default_currency = (env_mapping.get("SERIES_CURRENCY") or "GBP").strip().upper()
    if len(default_currency) != 3:
        raise ValueError(f"SERIES_CURRENCY must be a 3-letter code, got {default_currency!r}")

    lock_subscription_rows = _to_bool(env_mapping.get("QUOTA_ENFORCE_ROW_LOCK"), default=True)

    return SchedulingConfig(
        club_timezone=club_timezone,
        default_generate_weeks=default_generate_weeks,
        max_generate_weeks=max_generate_weeks,
        default_visibility_days=default_visibility_days,
        default_duration_minutes=default_duration_minutes,
        default_currency=default_currency,
        lock_subscription_rows=lock_subscription_rows,
    )
