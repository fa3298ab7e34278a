"""
Tests for the sliding window rate limiter
"""
from sportsnation.core.rate_limit import RateLimiter


class FakeClock:
    def __init__(self, now: float = 1000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now


def test_allows_up_to_limit():
    limiter = RateLimiter(clock=FakeClock())

    results = [limiter.is_allowed("ip:1.2.3.4", max_requests=3) for _ in range(4)]

    assert [allowed for allowed, _, _ in results] == [True, True, True, False]
    assert [remaining for _, remaining, _ in results] == [2, 1, 0, 0]
    assert results[3][2] == 61


def test_identifiers_are_independent():
    limiter = RateLimiter(clock=FakeClock())

    limiter.is_allowed("ip:a", max_requests=1)

    assert limiter.is_allowed("ip:a", max_requests=1)[0] is False
    assert limiter.is_allowed("ip:b", max_requests=1)[0] is True


def test_window_slides():
    clock = FakeClock()
    limiter = RateLimiter(clock=clock)

    assert limiter.is_allowed("ip:a", max_requests=1, window_seconds=60)[0] is True
    clock.now += 30
    allowed, _, retry_after = limiter.is_allowed("ip:a", max_requests=1, window_seconds=60)
    assert allowed is False
    assert retry_after == 31

    clock.now += 31
    assert limiter.is_allowed("ip:a", max_requests=1, window_seconds=60)[0] is True


def test_sweep_drops_idle_clients():
    clock = FakeClock()
    limiter = RateLimiter(clock=clock, sweep_every=2)

    limiter.is_allowed("ip:idle", max_requests=5)
    clock.now += 120
    limiter.is_allowed("ip:active", max_requests=5)

    assert "ip:idle" not in limiter._hits
    assert "ip:active" in limiter._hits
