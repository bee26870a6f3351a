import threading

import pytest

from core.errors import RATE_LIMIT, SyncError
from core.ratelimit import RateLimiter
from core.state import LAST_FETCH_KEY, StateStore


def test_first_call_passes_and_persists(state, clock):
    RateLimiter(state, clock=clock).check_and_arm()
    assert state.get(LAST_FETCH_KEY) == clock().isoformat()


def test_second_call_within_interval_is_rejected(state, clock):
    limiter = RateLimiter(state, clock=clock)
    limiter.check_and_arm()
    clock.advance(10.5)

    with pytest.raises(SyncError) as exc:
        limiter.check_and_arm()
    assert exc.value.code == RATE_LIMIT
    assert exc.value.meta["remaining_sec"] == 50


def test_rejection_does_not_rearm(state, clock):
    limiter = RateLimiter(state, clock=clock)
    limiter.check_and_arm()
    armed = state.get(LAST_FETCH_KEY)
    clock.advance(30)

    with pytest.raises(SyncError):
        limiter.check_and_arm()
    assert state.get(LAST_FETCH_KEY) == armed


def test_call_after_interval_passes(state, clock):
    limiter = RateLimiter(state, clock=clock)
    limiter.check_and_arm()
    clock.advance(60)
    limiter.check_and_arm()
    assert state.get(LAST_FETCH_KEY) == clock().isoformat()


def test_state_survives_restart(tmp_path, clock):
    path = str(tmp_path / "state.sqlite3")
    RateLimiter(StateStore(path), clock=clock).check_and_arm()
    clock.advance(1)

    with pytest.raises(SyncError) as exc:
        RateLimiter(StateStore(path), clock=clock).check_and_arm()
    assert exc.value.meta["remaining_sec"] == 59


def test_concurrent_callers_pass_only_once(state, clock):
    workers = 8
    barrier = threading.Barrier(workers)
    passed, rejected = [], []

    def worker():
        limiter = RateLimiter(state, clock=clock)
        barrier.wait()
        try:
            limiter.check_and_arm()
            passed.append(True)
        except SyncError as e:
            rejected.append(e.code)

    threads = [threading.Thread(target=worker) for _ in range(workers)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert len(passed) == 1
    assert rejected == [RATE_LIMIT] * (workers - 1)
