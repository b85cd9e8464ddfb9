from thinkly_core.providers.rate_limiter import RateLimiter


class FakeClock:
    def __init__(self):
        self.now = 100.0
        self.sleeps = []

    def __call__(self):
        return self.now

    def sleep(self, seconds):
        self.sleeps.append(seconds)
        self.now += seconds


def test_first_call_does_not_wait():
    clock = FakeClock()
    limiter = RateLimiter(min_interval=1.0, clock=clock, sleep=clock.sleep)
    assert limiter.wait() == 0.0
    assert clock.sleeps == []


def test_second_call_waits_for_remainder():
    clock = FakeClock()
    limiter = RateLimiter(min_interval=1.0, clock=clock, sleep=clock.sleep)
    limiter.wait()
    clock.now += 0.25
    waited = limiter.wait()
    assert abs(waited - 0.75) < 1e-9
    assert limiter.last_request_time == clock.now


def test_no_wait_after_interval_elapsed():
    clock = FakeClock()
    limiter = RateLimiter(min_interval=1.0, clock=clock, sleep=clock.sleep)
    limiter.wait()
    clock.now += 1.5
    assert limiter.wait() == 0.0
    assert clock.sleeps == []


def test_dispatch_gap_is_at_least_interval():
    clock = FakeClock()
    limiter = RateLimiter(min_interval=1.0, clock=clock, sleep=clock.sleep)
    dispatched = []
    for gap in (0.0, 0.1, 0.4, 2.0):
        clock.now += gap
        limiter.wait()
        dispatched.append(clock.now)
    gaps = [b - a for a, b in zip(dispatched, dispatched[1:])]
    assert all(g >= 1.0 - 1e-9 for g in gaps)
