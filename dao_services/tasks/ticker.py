from __future__ import annotations

"""
DaemonTicker: optional in-process trigger for the execution daemon.

The daemon itself keeps no schedule; something outside has to call
``scan()`` periodically (a cron hitting ``GET /daemon``, or this ticker when
``DAEMON_INTERVAL_S > 0``). The ticker:

- runs one scan immediately, then one every ``interval_s`` seconds;
- shares the daemon's single-flight guard, so a tick that lands while an
  HTTP-triggered scan is in flight is coalesced, not queued;
- logs and swallows per-tick failures (the next tick re-evaluates from
  fresh ledger state);
- stops cleanly on ``stop()``: the current scan is allowed to finish up to
  ``shutdown_timeout`` and is cancelled after that.

A missed tick only delays execution; eligibility is recomputed from the
ledger on every scan, never from local memory.
"""

import asyncio
import contextlib
from typing import Awaitable, Callable, Optional

from ..logging import get_logger


class DaemonTicker:
    def __init__(
        self,
        scan: Callable[[], Awaitable[object]],
        *,
        interval_s: float,
        shutdown_timeout: float = 15.0,
    ) -> None:
        if interval_s <= 0:
            raise ValueError("interval_s must be > 0")
        self._scan = scan
        self.interval_s = float(interval_s)
        self.shutdown_timeout = shutdown_timeout
        self.log = get_logger(__name__).bind(role="ticker")
        self._stop = asyncio.Event()
        self._task: Optional[asyncio.Task] = None
        self.ticks = 0

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    async def start(self) -> None:
        if self.running:
            return
        self._stop.clear()
        self.log.info("ticker.start", interval_s=self.interval_s)
        self._task = asyncio.create_task(self._run(), name="daemon-ticker")

    async def stop(self) -> None:
        if self._task is None:
            return
        self.log.info("ticker.stop.begin")
        self._stop.set()
        try:
            await asyncio.wait_for(asyncio.shield(self._task), timeout=self.shutdown_timeout)
        except asyncio.TimeoutError:
            self.log.warning("ticker.stop.timeout_cancel")
            self._task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await self._task
        self._task = None
        self.log.info("ticker.stop.finished", ticks=self.ticks)

    async def _run(self) -> None:
        while not self._stop.is_set():
            await self._tick()
            with contextlib.suppress(asyncio.TimeoutError):
                await asyncio.wait_for(self._stop.wait(), timeout=self.interval_s)

    async def _tick(self) -> None:
        self.ticks += 1
        try:
            result = await self._scan()
        except Exception as exc:
            self.log.error(
                "ticker.scan.failed",
                tick=self.ticks,
                error=f"{type(exc).__name__}: {exc}",
                code=getattr(exc, "code", None),
            )
            return
        self.log.debug("ticker.scan.done", tick=self.ticks, coalesced=getattr(result, "coalesced", False))

    async def __aenter__(self) -> "DaemonTicker":
        await self.start()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.stop()


__all__ = ["DaemonTicker"]
