from __future__ import annotations

from concurrent.futures import ThreadPoolExecutor

import pytest

from leadscore.scoring import RateLimiter
from tests.fixtures.doubles import ManualClock


def test_allows_up_to_max_calls_per_window() -> None:
    limiter = RateLimiter(3, 1000, clock=ManualClock(10.0))

    assert [limiter.try_acquire() for _ in range(4)] == [True, True, True, False]
    assert limiter.remaining() == 0


def test_window_boundary_restores_tokens() -> None:
    clock = ManualClock(10.5)
    limiter = RateLimiter(1, 1000, clock=clock)

    assert limiter.try_acquire()
    assert not limiter.try_acquire()
    assert limiter.seconds_until_reset() == pytest.approx(0.5)

    clock.advance(0.5)
    assert limiter.try_acquire()


def test_keys_have_separate_budgets() -> None:
    limiter = RateLimiter(1, 1000, clock=ManualClock())

    assert limiter.try_acquire("m1")
    assert limiter.try_acquire("m2")
    assert not limiter.try_acquire("m1")


def test_acquire_waits_for_next_window() -> None:
    clock = ManualClock(10.25)
    limiter = RateLimiter(1, 1000, clock=clock, sleep=clock.sleep)
    limiter.try_acquire()

    assert limiter.acquire(timeout=5)
    assert clock.now == pytest.approx(11.0)


def test_acquire_gives_up_after_timeout() -> None:
    clock = ManualClock(0.0)
    limiter = RateLimiter(1, 60_000, clock=clock, sleep=clock.sleep)
    limiter.try_acquire()

    assert not limiter.acquire(timeout=2)
    assert clock.now == pytest.approx(2.0)


def test_reset_single_key_and_all() -> None:
    limiter = RateLimiter(1, 60_000, clock=ManualClock())
    limiter.try_acquire("a")
    limiter.try_acquire("b")

    limiter.reset("a")
    assert limiter.try_acquire("a")
    assert not limiter.try_acquire("b")

    limiter.reset()
    assert limiter.remaining("b") == 1


def test_concurrent_callers_never_exceed_limit() -> None:
    limiter = RateLimiter(50, 60_000, clock=ManualClock())

    def burst(_: int) -> int:
        return sum(limiter.try_acquire() for _ in range(10))

    with ThreadPoolExecutor(max_workers=10) as pool:
        granted = sum(pool.map(burst, range(20)))

    assert granted == 50


@pytest.mark.parametrize("max_calls, window_ms", [(0, 1000), (1, 0)])
def test_rejects_invalid_configuration(max_calls: int, window_ms: int) -> None:
    with pytest.raises(ValueError):
        RateLimiter(max_calls, window_ms)
