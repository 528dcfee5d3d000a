import threading
import time

import pytest

from geovote.utils.rate_limit import RateLimiter


@pytest.fixture
def limiter():
    return RateLimiter({"vote": (3, 1), "auth": "2 per minute"})


def test_allows_up_to_limit_then_refuses(limiter):
    decisions = [limiter.allow("vote", "10.0.0.1") for _ in range(4)]
    assert [d.allowed for d in decisions] == [True, True, True, False]
    assert decisions[0].remaining == 2
    assert decisions[2].remaining == 0


def test_refusal_carries_retry_after(limiter):
    for _ in range(2):
        limiter.allow("auth", "10.0.0.1")
    decision = limiter.allow("auth", "10.0.0.1")
    assert not decision.allowed
    assert 1 <= decision.retry_after_seconds <= 60


def test_window_slides(limiter):
    for _ in range(3):
        assert limiter.allow("vote", "10.0.0.1").allowed
    assert not limiter.allow("vote", "10.0.0.1").allowed

    time.sleep(1.1)
    assert limiter.allow("vote", "10.0.0.1").allowed


def test_identities_and_buckets_are_independent(limiter):
    for _ in range(3):
        limiter.allow("vote", "10.0.0.1")
    assert not limiter.allow("vote", "10.0.0.1").allowed
    assert limiter.allow("vote", "10.0.0.2").allowed
    assert limiter.allow("auth", "10.0.0.1").allowed


def test_clear_resets_one_identity(limiter):
    for _ in range(3):
        limiter.allow("vote", "10.0.0.1")
    limiter.clear("vote", "10.0.0.1")
    assert limiter.allow("vote", "10.0.0.1").allowed


def test_unknown_bucket(limiter):
    with pytest.raises(KeyError):
        limiter.allow("nope", "10.0.0.1")


def test_invalid_policy_rejected():
    with pytest.raises(ValueError):
        RateLimiter({"vote": (0, 60)})


def test_one_key_under_threads_allows_exactly_limit():
    limiter = RateLimiter({"verify": (5, 60)})
    start = threading.Barrier(25)
    decisions = []
    lock = threading.Lock()

    def hit():
        start.wait()
        decision = limiter.allow("verify", "198.51.100.4")
        with lock:
            decisions.append(decision.allowed)

    threads = [threading.Thread(target=hit) for _ in range(25)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert len(decisions) == 25
    assert decisions.count(True) == 5
