"""
Pydantic models for the monitoring domain.

Enums for the two state machines and the runtime snapshot of a monitor.
"""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Optional

from pydantic import BaseModel


class Lifecycle(str, Enum):
    """Lifecycle of a monitor loop."""

    NOT_STARTED = "not_started"
    RUNNING = "running"
    STOPPED = "stopped"


class HealthStatus(str, Enum):
    """Health of the watched target as seen by the monitor."""

    HEALTHY = "healthy"
    FAILED = "failed"


class MonitorState(BaseModel):
    """State of a monitoring loop, written only by the loop itself."""

    lifecycle: Lifecycle = Lifecycle.NOT_STARTED
    status: HealthStatus = HealthStatus.HEALTHY
    consecutive_failures: int = 0
    checks_count: int = 0
    failures_total: int = 0
    alerts_fired: int = 0
    recoveries: int = 0
    last_check_at: Optional[datetime] = None
    last_failure_at: Optional[datetime] = None
    last_recovery_at: Optional[datetime] = None
    last_error: Optional[str] = None


__all__ = ["Lifecycle", "HealthStatus", "MonitorState"]
