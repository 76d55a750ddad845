"""Tests for the TTL cache."""

from nyanbar.services.cache import TTLCache


class FakeClock:
    def __init__(self, now: float = 1000.0) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now


def test_returns_value_within_ttl() -> None:
    clock = FakeClock()
    cache = TTLCache(300, clock=clock)
    cache.set("trending", [1, 2, 3])

    clock.now += 299
    assert cache.get("trending") == [1, 2, 3]


def test_expires_after_ttl() -> None:
    clock = FakeClock()
    cache = TTLCache(300, clock=clock)
    cache.set("popular", ["x"])

    clock.now += 300
    assert cache.get("popular") is None
    assert len(cache) == 0


def test_missing_key() -> None:
    assert TTLCache(10).get("nope") is None


def test_last_write_wins_and_refreshes() -> None:
    clock = FakeClock()
    cache = TTLCache(60, clock=clock)
    cache.set("k", "old")
    clock.now += 50
    cache.set("k", "new")
    clock.now += 50

    assert cache.get("k") == "new"


def test_clear() -> None:
    cache = TTLCache(60)
    cache.set("a", 1)
    cache.clear()
    assert cache.get("a") is None
