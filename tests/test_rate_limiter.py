import threading

import pytest

from qr_attendance.services import ScanRateLimiter, ScanRateLimitExceeded


class FakeClock:
    def __init__(self, now: float = 1000.0) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now


def test_blocks_after_limit_within_window():
    clock = FakeClock()
    limiter = ScanRateLimiter(3, 60, clock=clock)

    decisions = [limiter.hit("user:1") for _ in range(4)]

    assert [d.allowed for d in decisions] == [True, True, True, False]
    assert [d.remaining for d in decisions] == [2, 1, 0, 0]


def test_check_raises_with_retry_after():
    clock = FakeClock()
    limiter = ScanRateLimiter(1, 60, clock=clock)
    limiter.check("user:1")

    clock.now += 20
    with pytest.raises(ScanRateLimitExceeded) as excinfo:
        limiter.check("user:1")

    assert excinfo.value.retry_after == pytest.approx(40)
    assert excinfo.value.key == "user:1"


def test_resets_at_window_boundary():
    clock = FakeClock()
    limiter = ScanRateLimiter(2, 60, clock=clock)
    limiter.hit("user:1")
    limiter.hit("user:1")
    assert limiter.hit("user:1").allowed is False

    clock.now += 60

    assert limiter.hit("user:1").allowed is True


def test_keys_are_counted_separately():
    limiter = ScanRateLimiter(1, 60, clock=FakeClock())

    assert limiter.hit("user:1").allowed is True
    assert limiter.hit("user:2").allowed is True
    assert limiter.hit("user:1").allowed is False


def test_reset_clears_a_key():
    limiter = ScanRateLimiter(1, 60, clock=FakeClock())
    limiter.hit("user:1")

    limiter.reset("user:1")

    assert limiter.hit("user:1").allowed is True


def test_zero_limit_disables_throttling():
    limiter = ScanRateLimiter(0, 60, clock=FakeClock())

    assert all(limiter.hit("user:1").allowed for _ in range(100))


def test_rejects_non_positive_window():
    with pytest.raises(ValueError):
        ScanRateLimiter(5, 0)


def test_concurrent_hits_never_exceed_limit():
    limiter = ScanRateLimiter(10, 60, clock=FakeClock())
    allowed = []
    lock = threading.Lock()

    def worker() -> None:
        for _ in range(10):
            decision = limiter.hit("user:shared")
            with lock:
                allowed.append(decision.allowed)

    threads = [threading.Thread(target=worker) for _ in range(8)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    assert allowed.count(True) == 10
    assert len(allowed) == 80
