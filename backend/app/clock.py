"""Injectable wall clock shared by the scheduling services."""
from __future__ import annotations

from datetime import datetime, timezone
from typing import Callable, Optional

Clock = Callable[[], datetime]


def current_time(clock: Optional[Clock] = None) -> datetime:
    """Return ``clock()`` as an aware datetime, defaulting to UTC now."""

    if clock is None:
        return datetime.now(timezone.utc)
    value = clock()
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


__all__ = ["Clock", "current_time"]
