"""In-process cache for catalog search results."""

from __future__ import annotations

import time
from collections import OrderedDict
from dataclasses import dataclass, field
from typing import Callable, Generic, Hashable, TypeVar

V = TypeVar("V")


@dataclass(slots=True)
class ExpiryPolicy:
    """Decides when a cached value goes stale.

    ``ttl_seconds`` of zero disables caching entirely. The clock is injected
    so tests can move time forward without sleeping.
    """

    ttl_seconds: float
    clock: Callable[[], float] = time.monotonic

    def expires_at(self) -> float:
        return self.clock() + self.ttl_seconds

    def is_expired(self, expires_at: float) -> bool:
        return self.clock() >= expires_at

    @property
    def enabled(self) -> bool:
        return self.ttl_seconds > 0


@dataclass(slots=True)
class CacheStats:
    hits: int = 0
    misses: int = 0
    keys: int = 0


@dataclass(slots=True)
class _Slot(Generic[V]):
    value: V
    expires_at: float


@dataclass
class TTLCache(Generic[V]):
    """Bounded mapping whose entries expire according to an ``ExpiryPolicy``.

    When full, the least recently written entry is evicted.
    """

    policy: ExpiryPolicy
    max_entries: int = 1_000
    _slots: OrderedDict[Hashable, _Slot[V]] = field(default_factory=OrderedDict, init=False)
    _hits: int = field(default=0, init=False)
    _misses: int = field(default=0, init=False)

    def get(self, key: Hashable) -> V | None:
        slot = self._slots.get(key)
        if slot is None:
            self._misses += 1
            return None
        if self.policy.is_expired(slot.expires_at):
            del self._slots[key]
            self._misses += 1
            return None
        self._hits += 1
        return slot.value

    def set(self, key: Hashable, value: V) -> None:
        if not self.policy.enabled:
            return
        if key in self._slots:
            del self._slots[key]
        self._slots[key] = _Slot(value=value, expires_at=self.policy.expires_at())
        while len(self._slots) > self.max_entries:
            self._slots.popitem(last=False)

    def delete(self, key: Hashable) -> None:
        self._slots.pop(key, None)

    def clear(self) -> None:
        self._slots.clear()

    def __contains__(self, key: Hashable) -> bool:
        slot = self._slots.get(key)
        return slot is not None and not self.policy.is_expired(slot.expires_at)

    def __len__(self) -> int:
        return len(self._slots)

    def stats(self) -> CacheStats:
        return CacheStats(hits=self._hits, misses=self._misses, keys=len(self._slots))
