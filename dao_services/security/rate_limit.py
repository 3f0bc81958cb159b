from __future__ import annotations

"""
Per-client token-bucket rate limiting for ``POST /relay``.

Every relayed request spends the relayer's gas, so the relay endpoint is
throttled per client IP. Limits are configured with a rate and a burst:

    RELAY_RATE="30r/m"   # refill rate; units r/s, r/m, r/h
    RELAY_BURST=10       # bucket capacity

A blocked request raises ``RateLimited`` (429 with Retry-After).

Buckets live in process memory. Several workers or hosts each enforce the
limit on their own share of traffic.
"""

import asyncio
import re
import time
from dataclasses import dataclass
from typing import Callable, Dict, Optional, Tuple

from fastapi import Request

from ..errors import RateLimited

_RATE_RE = re.compile(r"^\s*(\d+)\s*r\s*/\s*([smh])\s*$", re.IGNORECASE)

_UNIT_SECONDS = {"s": 1.0, "m": 60.0, "h": 3600.0}

# Buckets idle for this long are dropped on the next sweep
_IDLE_TTL_S = 3600.0


def parse_rate(rate: str) -> float:
    """
    Parse e.g. "10r/s", "30r/m", "3600r/h" → tokens per second.
    """
    m = _RATE_RE.match(rate)
    if not m:
        raise ValueError(f"Invalid rate spec: {rate!r}")
    return float(m.group(1)) / _UNIT_SECONDS[m.group(2).lower()]


@dataclass(frozen=True)
class RateRule:
    refill_per_sec: float
    capacity: float

    @classmethod
    def parse(cls, rate: str, burst: Optional[int] = None) -> "RateRule":
        rps = parse_rate(rate)
        cap = float(burst if burst is not None else max(1, int(rps * 2)))
        return cls(refill_per_sec=rps, capacity=cap)


class TokenBucket:
    __slots__ = ("capacity", "refill_per_sec", "tokens", "ts")

    def __init__(self, capacity: float, refill_per_sec: float, now: float) -> None:
        self.capacity = float(capacity)
        self.refill_per_sec = float(refill_per_sec)
        self.tokens = float(capacity)
        self.ts = now

    def try_consume(self, now: float, cost: float = 1.0) -> Tuple[bool, float]:
        """Returns (allowed, retry_after_seconds)."""
        elapsed = max(0.0, now - self.ts)
        if elapsed > 0.0 and self.refill_per_sec > 0.0:
            self.tokens = min(self.capacity, self.tokens + elapsed * self.refill_per_sec)
        self.ts = now

        if self.tokens >= cost:
            self.tokens -= cost
            return True, 0.0
        deficit = cost - self.tokens
        return False, deficit / max(self.refill_per_sec, 1e-9)


def client_ip(request: Request) -> str:
    """Best-effort client address; honors the first X-Forwarded-For hop."""
    xff = request.headers.get("x-forwarded-for", "")
    if xff:
        ip = xff.split(",")[0].strip()
        if ip:
            return ip
    xri = request.headers.get("x-real-ip", "").strip()
    if xri:
        return xri
    return request.client.host if request.client else "unknown"


class RateLimiter:
    def __init__(self, rule: RateRule, *, clock: Callable[[], float] = time.monotonic) -> None:
        self.rule = rule
        self._clock = clock
        self._buckets: Dict[str, TokenBucket] = {}
        self._lock = asyncio.Lock()
        self._last_sweep = clock()

    @classmethod
    def from_settings(cls, settings) -> "RateLimiter":
        return cls(RateRule.parse(settings.relay_rate, settings.relay_burst))

    async def check(self, key: str) -> None:
        async with self._lock:
            now = self._clock()
            self._sweep(now)
            bucket = self._buckets.get(key)
            if bucket is None:
                bucket = TokenBucket(self.rule.capacity, self.rule.refill_per_sec, now)
                self._buckets[key] = bucket
            allowed, retry_after = bucket.try_consume(now)
        if not allowed:
            raise RateLimited(retry_after=round(retry_after, 3))

    def _sweep(self, now: float) -> None:
        if now - self._last_sweep < _IDLE_TTL_S:
            return
        self._last_sweep = now
        for key in [k for k, b in self._buckets.items() if now - b.ts >= _IDLE_TTL_S]:
            del self._buckets[key]


async def relay_rate_limit(request: Request) -> None:
    """FastAPI dependency: spend one token from the caller's bucket."""
    limiter: Optional[RateLimiter] = getattr(request.app.state, "relay_limiter", None)
    if limiter is not None:
        await limiter.check(client_ip(request))


__all__ = [
    "RateRule",
    "RateLimiter",
    "TokenBucket",
    "client_ip",
    "parse_rate",
    "relay_rate_limit",
]
