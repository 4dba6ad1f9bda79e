"""Runtime configuration for the scheduling core."""

from .config import SchedulingConfig, load_scheduling_config

__all__ = ["SchedulingConfig", "load_scheduling_config"]
