import asyncio
from unittest.mock import AsyncMock

import pytest

from monlite.config import ServiceConfig, Settings
from monlite.fleet import Fleet, build_fleet
from monlite.models import Lifecycle
from monlite.monitor import Monitor, MonitorConfigError
from monlite.probe import HttpProbe


async def always_up(target):
    return True


def monitor(name, **kwargs):
    params = dict(name=name, target=f"https://{name}.example.com", probe=always_up, period=0.01)
    params.update(kwargs)
    return Monitor(**params)


@pytest.mark.asyncio
async def test_fleet_starts_and_stops_every_monitor():
    fleet = Fleet([monitor("a"), monitor("b"), monitor("c")])

    await fleet.start()
    assert all(m.is_running for m in fleet)
    await asyncio.sleep(0.05)
    await fleet.stop()

    assert len(fleet) == 3
    assert all(m.lifecycle is Lifecycle.STOPPED for m in fleet)
    assert all(m.state.checks_count > 0 for m in fleet)


@pytest.mark.asyncio
async def test_fleet_start_failure_stops_started_monitors():
    good = monitor("good")
    bad = monitor("bad", period=0)
    untouched = monitor("later")
    fleet = Fleet([good, bad, untouched])

    with pytest.raises(MonitorConfigError):
        await fleet.start()

    assert good.lifecycle is Lifecycle.STOPPED
    assert bad.lifecycle is Lifecycle.NOT_STARTED
    assert untouched.lifecycle is Lifecycle.NOT_STARTED


@pytest.mark.asyncio
async def test_fleet_stop_skips_monitors_never_started():
    fleet = Fleet()
    fleet.add(monitor("idle"))

    await fleet.stop()

    assert fleet.monitors[0].lifecycle is Lifecycle.NOT_STARTED


def test_build_fleet_maps_services():
    settings = Settings(
        services=[
            ServiceConfig(name="website", url="https://example.com", timeout=5, period=60, sleep=600, fails=3),
            ServiceConfig(name="api", url="https://api.example.com", period=15),
        ]
    )
    notifier = AsyncMock()

    fleet = build_fleet(settings, notifiers=[notifier])

    website, api = fleet.monitors
    assert website.name == "website"
    assert website.target == "https://example.com"
    assert (website.period, website.timeout, website.sleep, website.fail_threshold) == (60, 5, 600, 3)
    assert isinstance(website.probe, HttpProbe)
    assert website.on_fail is not None and website.on_recover is not None
    assert api.fail_threshold == 1


def test_build_fleet_without_notifiers_has_no_callbacks():
    settings = Settings(services=[ServiceConfig(name="api", url="https://api.example.com", period=15)])

    fleet = build_fleet(settings, probe_factory=lambda service: always_up)

    assert fleet.monitors[0].probe is always_up
    assert fleet.monitors[0].on_fail is None
    assert fleet.monitors[0].on_recover is None


@pytest.mark.asyncio
async def test_build_fleet_callbacks_reach_notifiers():
    settings = Settings(services=[ServiceConfig(name="api", url="https://api.example.com", period=15)])
    notifier = AsyncMock()

    fleet = build_fleet(settings, probe_factory=lambda service: always_up, notifiers=[notifier])
    await fleet.monitors[0].on_fail(fleet.monitors[0])

    notifier.on_fail.assert_awaited_once_with(fleet.monitors[0])
    notifier.on_recover.assert_not_awaited()
