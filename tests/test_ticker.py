from __future__ import annotations

import asyncio

import pytest

from dao_services.app import _build_ticker, create_app
from dao_services.tasks.ticker import DaemonTicker

from .fakes import FakeLedger


async def _wait_for(predicate, timeout: float = 2.0) -> None:
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while not predicate():
        if loop.time() > deadline:
            raise AssertionError("condition not reached")
        await asyncio.sleep(0.005)


def test_interval_must_be_positive():
    async def scan():
        return None

    with pytest.raises(ValueError):
        DaemonTicker(scan, interval_s=0)


@pytest.mark.asyncio
async def test_runs_immediately_then_on_interval():
    calls = []

    async def scan():
        calls.append(asyncio.get_running_loop().time())

    async with DaemonTicker(scan, interval_s=0.02) as ticker:
        await _wait_for(lambda: len(calls) >= 3)
        assert ticker.running

    assert not ticker.running
    assert ticker.ticks >= 3


@pytest.mark.asyncio
async def test_failed_tick_does_not_stop_the_ticker():
    calls = []

    async def scan():
        calls.append(1)
        if len(calls) == 1:
            raise RuntimeError("node down")

    ticker = DaemonTicker(scan, interval_s=0.01)
    await ticker.start()
    await _wait_for(lambda: len(calls) >= 2)
    await ticker.stop()

    assert ticker.ticks >= 2


@pytest.mark.asyncio
async def test_stop_cancels_a_stuck_scan():
    started = asyncio.Event()

    async def scan():
        started.set()
        await asyncio.sleep(60)

    ticker = DaemonTicker(scan, interval_s=10, shutdown_timeout=0.05)
    await ticker.start()
    await started.wait()
    await ticker.stop()

    assert not ticker.running


@pytest.mark.asyncio
async def test_ticker_and_http_share_one_daemon(make_settings, ledger: FakeLedger):
    app = create_app(make_settings(daemon_interval_s=30), configure_logging=False)
    app.state.ledger = ledger

    ticker = _build_ticker(app)
    assert ticker is not None
    await ticker.start()
    await _wait_for(lambda: ledger.executed == [1])
    await ticker.stop()

    assert app.state.daemon.in_flight is False


def test_no_ticker_when_disabled_or_misconfigured(make_settings):
    assert _build_ticker(create_app(make_settings(), configure_logging=False)) is None
    app = create_app(make_settings(daemon_interval_s=5, dao_address=None), configure_logging=False)
    assert _build_ticker(app) is None
