import asyncio

import pytest
from errors import RateLimitCancelled
from limiter import RateLimiter


def test_burst_is_available_immediately(fake_clock):
    limiter = RateLimiter(rate=1, burst=3, clock=fake_clock, sleep=fake_clock.sleep)

    async def run():
        for _ in range(3):
            await limiter.acquire()

    asyncio.run(run())
    assert fake_clock.now == 0.0


def test_waits_for_refill_once_bucket_is_empty(fake_clock):
    limiter = RateLimiter(rate=2, burst=1, clock=fake_clock, sleep=fake_clock.sleep)

    async def run():
        await limiter.acquire()
        await limiter.acquire()
        await limiter.acquire()

    asyncio.run(run())
    assert fake_clock.now == pytest.approx(1.0)


def test_requests_in_any_one_second_window_stay_within_bound(fake_clock):
    rate, burst = 2, 3
    limiter = RateLimiter(rate=rate, burst=burst, clock=fake_clock, sleep=fake_clock.sleep)
    grants: list[float] = []

    async def worker():
        for _ in range(10):
            await limiter.acquire()
            grants.append(fake_clock())

    async def run():
        await asyncio.gather(*(worker() for _ in range(4)))

    asyncio.run(run())

    assert len(grants) == 40
    for start in grants:
        in_window = [t for t in grants if start <= t <= start + 1.0 + 1e-9]
        assert len(in_window) <= burst + rate
    # Steady state: after the burst, one grant per 1/rate seconds.
    assert fake_clock.now == pytest.approx((40 - burst) / rate)


def test_close_cancels_future_acquires(fake_clock):
    limiter = RateLimiter(rate=1, burst=1, clock=fake_clock, sleep=fake_clock.sleep)

    async def run():
        await limiter.acquire()
        limiter.close()
        await limiter.acquire()

    with pytest.raises(RateLimitCancelled):
        asyncio.run(run())
    assert limiter.closed


def test_close_cancels_waiters():
    limiter = RateLimiter(rate=0.5, burst=1)

    async def run():
        await limiter.acquire()
        waiter = asyncio.create_task(limiter.acquire())
        await asyncio.sleep(0)
        limiter.close()
        await waiter

    with pytest.raises(RateLimitCancelled):
        asyncio.run(run())


def test_rejects_bad_configuration():
    with pytest.raises(ValueError):
        RateLimiter(rate=0, burst=1)
    with pytest.raises(ValueError):
        RateLimiter(rate=1, burst=0)


def test_cancelled_waiter_consumes_no_permit(fake_clock):
    async def never(seconds):
        await asyncio.Event().wait()

    limiter = RateLimiter(rate=1, burst=1, clock=fake_clock, sleep=never)

    async def run():
        await limiter.acquire()
        waiter = asyncio.create_task(limiter.acquire())
        await asyncio.sleep(0)
        waiter.cancel()
        with pytest.raises(asyncio.CancelledError):
            await waiter
        assert limiter._tokens == 0.0
        # The lock is free again and the next refill goes to the next caller.
        fake_clock.now = 1.0
        limiter._sleep = fake_clock.sleep
        await limiter.acquire()
        assert limiter._tokens == 0.0

    asyncio.run(run())
