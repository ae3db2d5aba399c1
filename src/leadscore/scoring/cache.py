"""TTL cache for lead scores keyed by ``(lead_id, model_id)``."""

from __future__ import annotations

import logging
import threading
import time
from collections.abc import Callable
from dataclasses import dataclass

from leadscore.schemas import MLLeadScore

logger = logging.getLogger(__name__)

CacheKey = tuple[int, str]


@dataclass(frozen=True)
class ScoringCacheEntry:
    lead_id: int
    model_id: str
    value: MLLeadScore
    expires_at: float

    def is_expired(self, now: float) -> bool:
        return now >= self.expires_at


class ScoreCache:
    """Sharded score cache with per-entry expiry.

    Each shard is a plain dict guarded by its own lock, so lookups for
    different keys rarely contend. Expired entries are evicted lazily on
    lookup and by a periodic sweep triggered from ``put``.
    """

    def __init__(
        self,
        ttl_ms: int = 300_000,
        *,
        max_entries: int = 10_000,
        shards: int = 16,
        sweep_interval_s: float = 300.0,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        if shards < 1:
            raise ValueError("shards must be >= 1")
        if max_entries < 1:
            raise ValueError("max_entries must be >= 1")
        self.ttl_ms = ttl_ms
        self.max_entries = max_entries
        self.sweep_interval_s = sweep_interval_s
        self._clock = clock
        self._shards: list[dict[CacheKey, ScoringCacheEntry]] = [{} for _ in range(shards)]
        self._locks = [threading.Lock() for _ in range(shards)]
        self._sweep_lock = threading.Lock()
        self._last_sweep = clock()

    @property
    def ttl_ms(self) -> int:
        return self._ttl_ms

    @ttl_ms.setter
    def ttl_ms(self, value: int) -> None:
        if value <= 0:
            raise ValueError("ttl_ms must be positive")
        self._ttl_ms = int(value)

    def _index(self, key: CacheKey) -> int:
        return hash(key) % len(self._shards)

    def get(self, lead_id: int, model_id: str) -> MLLeadScore | None:
        key = (lead_id, model_id)
        index = self._index(key)
        now = self._clock()
        with self._locks[index]:
            entry = self._shards[index].get(key)
            if entry is None:
                return None
            if entry.is_expired(now):
                del self._shards[index][key]
                return None
            return entry.value

    def put(self, lead_id: int, model_id: str, score: MLLeadScore, ttl_ms: int | None = None) -> None:
        ttl = self._ttl_ms if ttl_ms is None else ttl_ms
        if ttl <= 0:
            raise ValueError("ttl_ms must be positive")

        now = self._clock()
        self._maybe_sweep(now)

        key = (lead_id, model_id)
        index = self._index(key)
        entry = ScoringCacheEntry(lead_id, model_id, score, now + ttl / 1000.0)

        with self._locks[index]:
            present = key in self._shards[index]
        if not present and len(self) >= self.max_entries:
            self.sweep()
            if len(self) >= self.max_entries:
                self._evict_earliest()

        with self._locks[index]:
            self._shards[index][key] = entry

    def invalidate(self, lead_id: int) -> int:
        """Drop every model's entry for ``lead_id``."""

        return self._remove_where(lambda key: key[0] == lead_id)

    def invalidate_model(self, model_id: str) -> int:
        """Drop every entry produced by ``model_id``."""

        return self._remove_where(lambda key: key[1] == model_id)

    def clear(self) -> int:
        removed = 0
        for shard, lock in zip(self._shards, self._locks):
            with lock:
                removed += len(shard)
                shard.clear()
        return removed

    def sweep(self) -> int:
        """Evict expired entries, returning how many were removed."""

        now = self._clock()
        removed = 0
        for shard, lock in zip(self._shards, self._locks):
            with lock:
                expired = [key for key, entry in shard.items() if entry.is_expired(now)]
                for key in expired:
                    del shard[key]
                removed += len(expired)
        with self._sweep_lock:
            self._last_sweep = now
        if removed:
            logger.debug("Swept %d expired cache entries", removed)
        return removed

    def live_size(self) -> int:
        """Number of non-expired entries at sampling time."""

        now = self._clock()
        live = 0
        for shard, lock in zip(self._shards, self._locks):
            with lock:
                live += sum(1 for entry in shard.values() if not entry.is_expired(now))
        return live

    def _maybe_sweep(self, now: float) -> None:
        with self._sweep_lock:
            due = now - self._last_sweep >= self.sweep_interval_s
            if due:
                self._last_sweep = now
        if due:
            self.sweep()

    def _evict_earliest(self) -> None:
        oldest: ScoringCacheEntry | None = None
        for shard, lock in zip(self._shards, self._locks):
            with lock:
                for entry in shard.values():
                    if oldest is None or entry.expires_at < oldest.expires_at:
                        oldest = entry
        if oldest is not None:
            key = (oldest.lead_id, oldest.model_id)
            index = self._index(key)
            with self._locks[index]:
                self._shards[index].pop(key, None)

    def _remove_where(self, predicate: Callable[[CacheKey], bool]) -> int:
        removed = 0
        for shard, lock in zip(self._shards, self._locks):
            with lock:
                doomed = [key for key in shard if predicate(key)]
                for key in doomed:
                    del shard[key]
                removed += len(doomed)
        return removed

    def __len__(self) -> int:
        return sum(len(shard) for shard in self._shards)


__all__ = ["ScoreCache", "ScoringCacheEntry"]
