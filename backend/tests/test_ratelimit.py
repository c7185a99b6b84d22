from pathlib import Path
import sys

import pytest
from fastapi import HTTPException

sys.path.append(str(Path(__file__).resolve().parents[1]))

from career_ai.core.ratelimit import RATE_LIMIT_MESSAGE, RateLimiter


class Ticker:
    def __init__(self):
        self.now = 1000.0

    def __call__(self):
        return self.now


def test_allows_up_to_limit_then_blocks():
    ticker = Ticker()
    limiter = RateLimiter(limit=3, window_seconds=60, clock=ticker)
    assert [limiter.check_and_record("1.2.3.4") for _ in range(3)] == [True, True, True]
    assert limiter.check_and_record("1.2.3.4") is False


def test_blocked_requests_are_not_recorded():
    ticker = Ticker()
    limiter = RateLimiter(limit=2, window_seconds=60, clock=ticker)
    limiter.check_and_record("ip")
    limiter.check_and_record("ip")
    for _ in range(5):
        assert limiter.check_and_record("ip") is False
    assert len(limiter.hits["ip"]) == 2


def test_window_slides_per_timestamp():
    ticker = Ticker()
    limiter = RateLimiter(limit=2, window_seconds=60, clock=ticker)
    limiter.check_and_record("ip")
    ticker.now += 30
    limiter.check_and_record("ip")
    ticker.now += 29
    assert limiter.check_and_record("ip") is False
    # first hit is now exactly one window old and drops out
    ticker.now += 1
    assert limiter.check_and_record("ip") is True
    assert limiter.check_and_record("ip") is False


def test_keys_are_independent():
    limiter = RateLimiter(limit=1, window_seconds=60, clock=Ticker())
    assert limiter.check_and_record("a") is True
    assert limiter.check_and_record("b") is True
    assert limiter.check_and_record("a") is False


def test_check_raises_429_with_retry_after():
    ticker = Ticker()
    limiter = RateLimiter(limit=1, window_seconds=60, clock=ticker)
    limiter.check("ip")
    ticker.now += 15
    with pytest.raises(HTTPException) as exc_info:
        limiter.check("ip")
    assert exc_info.value.status_code == 429
    assert exc_info.value.detail == {"message": RATE_LIMIT_MESSAGE, "retry_after_seconds": 45}


def test_retry_after_is_zero_when_allowed_and_reset_clears():
    limiter = RateLimiter(limit=1, window_seconds=60, clock=Ticker())
    assert limiter.retry_after("ip") == 0
    limiter.check_and_record("ip")
    assert limiter.retry_after("ip") == 60
    limiter.reset()
    assert limiter.check_and_record("ip") is True


class SteppingClock:
    """Returns the queued times in order, one per call."""

    def __init__(self, *times):
        self.times = list(times)

    def __call__(self):
        return self.times.pop(0)


def test_refusal_reports_wait_from_the_same_reading():
    # A second clock reading after the refusal would see the hit expired.
    limiter = RateLimiter(limit=1, window_seconds=60, clock=SteppingClock(1000.0, 1059.5, 1061.0))
    limiter.check("ip")
    with pytest.raises(HTTPException) as exc_info:
        limiter.check("ip")
    assert exc_info.value.detail["retry_after_seconds"] == 1
    assert limiter.clock.times == [1061.0]
