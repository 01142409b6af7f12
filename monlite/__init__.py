"""Periodic health-check scheduler with threshold alerts."""

from .fleet import Fleet, build_fleet
from .models import HealthStatus, Lifecycle, MonitorState
from .monitor import (
    Monitor,
    MonitorConfigError,
    MonitorStateError,
    MonitorStopError,
    MonliteError,
)

__all__ = [
    "Fleet",
    "HealthStatus",
    "Lifecycle",
    "Monitor",
    "MonitorConfigError",
    "MonitorState",
    "MonitorStateError",
    "MonitorStopError",
    "MonliteError",
    "build_fleet",
]
