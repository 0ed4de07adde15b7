"""Search cache expiry and eviction behaviour."""

from __future__ import annotations

from app.cache import ExpiryPolicy, TTLCache


class FakeClock:
    def __init__(self) -> None:
        self.now = 1_000.0

    def __call__(self) -> float:
        return self.now


def test_entries_expire_after_ttl() -> None:
    clock = FakeClock()
    cache: TTLCache[str] = TTLCache(policy=ExpiryPolicy(ttl_seconds=60, clock=clock))

    cache.set("inception", "hit")
    clock.now += 59
    assert cache.get("inception") == "hit"

    clock.now += 1
    assert cache.get("inception") is None
    assert "inception" not in cache
    assert len(cache) == 0


def test_oldest_entry_is_evicted_when_full() -> None:
    cache: TTLCache[int] = TTLCache(policy=ExpiryPolicy(ttl_seconds=60), max_entries=2)

    cache.set("a", 1)
    cache.set("b", 2)
    cache.set("a", 10)
    cache.set("c", 3)

    assert cache.get("b") is None
    assert cache.get("a") == 10
    assert cache.get("c") == 3


def test_zero_ttl_disables_caching() -> None:
    cache: TTLCache[int] = TTLCache(policy=ExpiryPolicy(ttl_seconds=0))

    cache.set("a", 1)

    assert cache.get("a") is None
    assert len(cache) == 0


def test_stats_count_hits_and_misses() -> None:
    cache: TTLCache[int] = TTLCache(policy=ExpiryPolicy(ttl_seconds=60))
    cache.set("a", 1)

    cache.get("a")
    cache.get("a")
    cache.get("missing")

    stats = cache.stats()
    assert (stats.hits, stats.misses, stats.keys) == (2, 1, 1)
