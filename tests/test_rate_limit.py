from __future__ import annotations

import pytest

from dao_services.errors import RateLimited
from dao_services.security.cors import build_cors_config
from dao_services.security.rate_limit import (RateLimiter, RateRule,
                                              TokenBucket, parse_rate)


class FakeClock:
    def __init__(self, t: float = 0.0) -> None:
        self.t = t

    def __call__(self) -> float:
        return self.t


@pytest.mark.parametrize(
    "spec,rps",
    [("10r/s", 10.0), ("30r/m", 0.5), ("3600r/h", 1.0), (" 6 r / m ", 0.1)],
)
def test_parse_rate(spec, rps):
    assert parse_rate(spec) == pytest.approx(rps)


@pytest.mark.parametrize("spec", ["", "10", "10/s", "10r/d", "-1r/s"])
def test_parse_rate_rejects_garbage(spec):
    with pytest.raises(ValueError):
        parse_rate(spec)


def test_rule_default_burst():
    assert RateRule.parse("10r/s").capacity == 20
    assert RateRule.parse("30r/m").capacity == 1
    assert RateRule.parse("30r/m", 10).capacity == 10


def test_bucket_refills_over_time():
    bucket = TokenBucket(capacity=2, refill_per_sec=1.0, now=0.0)
    assert bucket.try_consume(0.0) == (True, 0.0)
    assert bucket.try_consume(0.0) == (True, 0.0)
    allowed, retry_after = bucket.try_consume(0.0)
    assert not allowed
    assert retry_after == pytest.approx(1.0)
    assert bucket.try_consume(1.0)[0]


@pytest.mark.asyncio
async def test_limiter_is_per_key():
    clock = FakeClock()
    limiter = RateLimiter(RateRule.parse("1r/m", 1), clock=clock)

    await limiter.check("10.0.0.1")
    with pytest.raises(RateLimited) as ei:
        await limiter.check("10.0.0.1")
    await limiter.check("10.0.0.2")

    assert ei.value.status_code == 429
    assert ei.value.details["retry_after"] == pytest.approx(60.0)

    clock.t = 60.0
    await limiter.check("10.0.0.1")


@pytest.mark.asyncio
async def test_idle_buckets_are_swept():
    clock = FakeClock()
    limiter = RateLimiter(RateRule.parse("1r/m", 1), clock=clock)
    await limiter.check("a")
    await limiter.check("b")

    clock.t = 4000.0
    await limiter.check("c")

    assert set(limiter._buckets) == {"c"}


def test_cors_globs_become_a_regex():
    cfg = build_cors_config(["http://localhost:3000", "https://*.example.org"])
    assert cfg.allow_origins == ["http://localhost:3000"]
    assert cfg.allow_origin_regex == r"^https://(?:[^/.:]+\.)+example\.org$"


def test_cors_rejects_paths_in_patterns():
    with pytest.raises(ValueError):
        build_cors_config(["https://*.example.org/app"])
