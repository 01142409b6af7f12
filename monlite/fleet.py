"""
A fleet is a plain collection of monitors started and stopped together.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Callable, Iterator, List, Optional, Sequence

from .config import ServiceConfig, Settings
from .monitor import Monitor, MonitorStopError, ProbeFunc
from .notify import Notifier, fan_out
from .probe import HttpProbe

logger = logging.getLogger(__name__)


ProbeFactory = Callable[[ServiceConfig], ProbeFunc]


@dataclass
class Fleet:
    monitors: List[Monitor] = field(default_factory=list)

    def add(self, monitor: Monitor) -> None:
        self.monitors.append(monitor)

    def __iter__(self) -> Iterator[Monitor]:
        return iter(self.monitors)

    def __len__(self) -> int:
        return len(self.monitors)

    async def start(self) -> None:
        """Start every monitor; on the first failure stop the ones already running."""
        started: List[Monitor] = []
        for monitor in self.monitors:
            try:
                await monitor.start()
            except Exception:
                logger.error("Failed to start monitor for %s", monitor.name)
                await asyncio.gather(*(m.stop() for m in started), return_exceptions=True)
                raise
            started.append(monitor)
        logger.info("Monitors ok! (%s running)", len(started))

    async def stop(self, timeout: Optional[float] = None) -> None:
        running = [m for m in self.monitors if m.is_running]
        for monitor in running:
            logger.debug("Stop monitor %s", monitor.name)
        results = await asyncio.gather(
            *(m.stop(timeout=timeout) for m in running),
            return_exceptions=True,
        )
        first_error: Optional[BaseException] = None
        for monitor, result in zip(running, results):
            if isinstance(result, BaseException):
                logger.error("Failed to stop monitor for %s. Error: %s", monitor.name, result)
                first_error = first_error or result
        if first_error is not None:
            if isinstance(first_error, MonitorStopError):
                raise first_error
            raise MonitorStopError(str(first_error)) from first_error


def default_probe(service: ServiceConfig) -> ProbeFunc:
    return HttpProbe(timeout=service.timeout)


def build_fleet(
    settings: Settings,
    probe_factory: Optional[ProbeFactory] = None,
    notifiers: Sequence[Notifier] = (),
) -> Fleet:
    """Map every configured service to a monitor alerting through `notifiers`."""
    probe_factory = probe_factory or default_probe
    on_fail = fan_out(*(n.on_fail for n in notifiers)) if notifiers else None
    on_recover = fan_out(*(n.on_recover for n in notifiers)) if notifiers else None

    fleet = Fleet()
    for service in settings.services:
        logger.debug("Adding monitor %s for url: %s", service.name, service.url)
        fleet.add(
            Monitor(
                name=service.name,
                target=service.url,
                probe=probe_factory(service),
                period=service.period,
                timeout=service.timeout,
                sleep=service.sleep,
                fail_threshold=service.fails,
                on_fail=on_fail,
                on_recover=on_recover,
            )
        )
    return fleet


__all__ = ["Fleet", "ProbeFactory", "build_fleet", "default_probe"]
