"""
Health-check scheduler for a single target.

Every Monitor runs one asyncio task:
- waits `period` between probes and wakes at once on a stop request
- races each probe against `timeout`, a late probe counts as a failure
- alerts through `on_fail` when consecutive failures reach the threshold,
  then holds a `sleep` cool-down
- alerts through `on_recover` on the way back from failed to healthy

`stop()` sets the stop event and joins the task, so no callback can run
after it returns.
"""

from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Awaitable, Callable, Optional, Set

from .models import HealthStatus, Lifecycle, MonitorState

logger = logging.getLogger(__name__)


ProbeFunc = Callable[[str], Awaitable[bool]]
AlertFunc = Callable[["Monitor"], Awaitable[None]]


class MonliteError(Exception):
    """Base class for monlite errors."""


class MonitorConfigError(MonliteError, ValueError):
    """Raised by start() when the monitor parameters are invalid."""


class MonitorStateError(MonliteError):
    """Raised when start/stop is called in the wrong lifecycle state."""


class MonitorStopError(MonliteError):
    """Raised when the loop could not acknowledge a stop request."""


@dataclass(eq=False)
class Monitor:
    """Periodic probe loop with a failure threshold for one target."""

    name: str
    target: str
    probe: Optional[ProbeFunc] = None
    period: float = 60.0
    timeout: float = 10.0
    sleep: float = 0.0
    fail_threshold: int = 1
    on_fail: Optional[AlertFunc] = None
    on_recover: Optional[AlertFunc] = None
    _state: MonitorState = field(default_factory=MonitorState, init=False, repr=False)
    _task: Optional[asyncio.Task[None]] = field(default=None, init=False, repr=False)
    _stop_event: asyncio.Event = field(default_factory=asyncio.Event, init=False, repr=False)
    _abandoned: Set[asyncio.Task[bool]] = field(default_factory=set, init=False, repr=False)

    @property
    def status(self) -> HealthStatus:
        return self._state.status

    @property
    def consecutive_failures(self) -> int:
        return self._state.consecutive_failures

    @property
    def lifecycle(self) -> Lifecycle:
        return self._state.lifecycle

    @property
    def is_running(self) -> bool:
        return self._state.lifecycle is Lifecycle.RUNNING

    @property
    def state(self) -> MonitorState:
        """Snapshot of the runtime state."""
        return self._state.model_copy()

    def validate(self) -> None:
        """Raise MonitorConfigError if the parameters cannot be scheduled."""
        if not self.name:
            raise MonitorConfigError("empty name")
        if not self.target:
            raise MonitorConfigError(f"empty target for monitor {self.name!r}")
        if self.period <= 0:
            raise MonitorConfigError(f"period must be greater than zero ({self.name})")
        if self.timeout <= 0:
            raise MonitorConfigError(f"timeout must be greater than zero ({self.name})")
        if self.sleep < 0:
            raise MonitorConfigError(f"sleep must not be negative ({self.name})")
        if self.fail_threshold < 0:
            raise MonitorConfigError(f"fail threshold must not be negative ({self.name})")
        if self.probe is None:
            raise MonitorConfigError(f"no probe configured for monitor {self.name!r}")

    async def start(self) -> None:
        if self._state.lifecycle is not Lifecycle.NOT_STARTED:
            raise MonitorStateError(
                f"monitor {self.name!r} is {self._state.lifecycle.value}, cannot start it again"
            )
        self.validate()
        self._stop_event.clear()
        self._state.lifecycle = Lifecycle.RUNNING
        self._task = asyncio.create_task(self._run_loop(), name=f"monitor:{self.name}")
        logger.info(
            "Monitor %s started for %s (period %.3gs, timeout %.3gs, threshold %s)",
            self.name,
            self.target,
            self.period,
            self.timeout,
            self.fail_threshold,
        )

    async def stop(self, timeout: Optional[float] = None) -> None:
        """
        Request termination and wait until the loop has exited.

        With `timeout` set, a loop that does not exit in time is cancelled
        and MonitorStopError is raised.
        """
        if self._state.lifecycle is Lifecycle.STOPPED:
            return
        task = self._task
        if task is None:
            raise MonitorStateError(f"monitor {self.name!r} was never started")

        self._stop_event.set()
        try:
            await asyncio.wait_for(asyncio.shield(task), timeout=timeout)
        except asyncio.TimeoutError:
            task.cancel()
            await asyncio.gather(task, return_exceptions=True)
            self._mark_stopped()
            raise MonitorStopError(
                f"monitor {self.name!r} did not stop within {timeout}s"
            ) from None
        except Exception as e:
            self._mark_stopped()
            raise MonitorStopError(f"monitor {self.name!r} loop failed: {e!r}") from e
        self._mark_stopped()

    def _mark_stopped(self) -> None:
        self._task = None
        self._state.lifecycle = Lifecycle.STOPPED

    async def _run_loop(self) -> None:
        try:
            while not await self._wait_for_stop(self.period):
                if await self._probe_once():
                    await self._record_success()
                    continue
                if not await self._record_failure():
                    continue
                logger.info("%s going to sleep for %.3gs", self.name, self.sleep)
                if await self._wait_for_stop(self.sleep):
                    break
        finally:
            pending = list(self._abandoned)
            for task in pending:
                task.cancel()
            if pending:
                await asyncio.gather(*pending, return_exceptions=True)
        logger.info("Monitor %s stopped", self.name)

    async def _wait_for_stop(self, delay: float) -> bool:
        """Sleep for `delay`, return True as soon as a stop is requested."""
        try:
            await asyncio.wait_for(self._stop_event.wait(), timeout=delay)
        except asyncio.TimeoutError:
            return False
        return True

    async def _probe_once(self) -> bool:
        self._state.checks_count += 1
        self._state.last_check_at = datetime.now(timezone.utc)

        task = asyncio.create_task(self._call_probe(), name=f"probe:{self.name}")
        try:
            done, _ = await asyncio.wait({task}, timeout=self.timeout)
        except asyncio.CancelledError:
            task.cancel()
            raise
        if task in done:
            return task.result()

        logger.error("Probe timeout for %s after %.3gs", self.name, self.timeout)
        self._abandoned.add(task)
        task.add_done_callback(self._discard_probe)
        if len(self._abandoned) > 1:
            logger.warning(
                "%s has %s timed out probes still running, the target may be hanging",
                self.name,
                len(self._abandoned),
            )
        return False

    def _discard_probe(self, task: asyncio.Task[bool]) -> None:
        self._abandoned.discard(task)
        if task.cancelled():
            return
        logger.debug("Discarding late probe result for %s: %s", self.name, task.result())

    async def _call_probe(self) -> bool:
        assert self.probe is not None
        logger.debug("Probing %s", self.name)
        started = time.monotonic()
        try:
            ok = await self.probe(self.target)
        except Exception as e:  # noqa: BLE001
            logger.error("Probe failed for %s with error: %s", self.name, e)
            return False
        if not ok:
            logger.error("Probe failed for %s", self.name)
            return False
        logger.debug("Probe ok for %s (%.3fs)", self.name, time.monotonic() - started)
        return True

    async def _record_success(self) -> None:
        was_failed = self._state.status is HealthStatus.FAILED
        self._state.consecutive_failures = 0
        self._state.status = HealthStatus.HEALTHY
        if not was_failed:
            return
        self._state.recoveries += 1
        self._state.last_recovery_at = datetime.now(timezone.utc)
        logger.info("%s recovered", self.name)
        await self._fire(self.on_recover, "on_recover")

    async def _record_failure(self) -> bool:
        """Count a failure; return True when an alert fired and a cool-down is due."""
        self._state.failures_total += 1
        self._state.last_failure_at = datetime.now(timezone.utc)
        self._state.consecutive_failures += 1
        # threshold 0 behaves like 1
        threshold = max(self.fail_threshold, 1)
        if self._state.consecutive_failures < threshold:
            logger.debug(
                "%s failure %s/%s",
                self.name,
                self._state.consecutive_failures,
                threshold,
            )
            return False

        self._state.consecutive_failures = 0
        if self._state.status is HealthStatus.HEALTHY:
            logger.warning("%s is failing after %s consecutive failures", self.name, threshold)
        else:
            logger.warning("%s is still failing", self.name)
        self._state.status = HealthStatus.FAILED
        if self.on_fail is None:
            return False
        self._state.alerts_fired += 1
        await self._fire(self.on_fail, "on_fail")
        return True

    async def _fire(self, callback: Optional[AlertFunc], label: str) -> None:
        if callback is None:
            return
        try:
            await callback(self)
        except Exception as e:  # noqa: BLE001
            self._state.last_error = f"{label}: {e}"
            logger.exception("%s function on %s returned an error: %s", label, self.name, e)


__all__ = [
    "AlertFunc",
    "Monitor",
    "MonitorConfigError",
    "MonitorStateError",
    "MonitorStopError",
    "MonliteError",
    "ProbeFunc",
]
