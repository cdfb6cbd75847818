"""Response Cache - Process-Wide Memoization of Inference Results.

Avoids re-running the model for a prompt it has already answered under the
same generation parameters.

Key Insight:
    The cache key is a fingerprint of everything that changes the output:
    the normalized prompt, the model identifier and the temperature. Two
    calls that differ in any of them can never share an entry, so callers
    never need to invalidate anything. Anything else that should force
    recomputation (a new model build, say) belongs in the model identifier.

Concurrency:
    One cache instance is shared by every session in the process. Keys are
    spread over a fixed number of shards, each with its own lock and dict, so
    writers to different keys never contend and a race on the same key
    resolves to "last writer wins".

Lifetime:
    Entries live as long as the process. An optional `max_entries` bound
    evicts the oldest entry once exceeded.
"""

from __future__ import annotations

import hashlib
import json
import threading
from datetime import UTC, datetime

from pydantic import BaseModel, ConfigDict, Field, computed_field

DEFAULT_SHARDS = 16


def fingerprint(prompt: str, model: str, temperature: float) -> str:
    """Deterministic cache key for one generation request.

    Args:
        prompt: Prompt text after input normalization
        model: Model identifier the request targets
        temperature: Sampling temperature

    Returns:
        sha256 hex digest of the canonical JSON encoding of all three
    """
    canonical = json.dumps(
        {"prompt": prompt, "model": model, "temperature": float(temperature)},
        sort_keys=True,
        ensure_ascii=False,
        separators=(",", ":"),
    )
    return hashlib.sha256(canonical.encode("utf-8")).hexdigest()


class CacheEntry(BaseModel):
    """A generated response with the time it was stored."""

    response_text: str
    created_at: datetime = Field(default_factory=lambda: datetime.now(UTC))

    model_config = ConfigDict(frozen=True)


class CacheStats(BaseModel):
    """Point-in-time cache statistics."""

    entries: int
    hits: int
    misses: int

    model_config = ConfigDict(frozen=True)

    @computed_field
    @property
    def hit_rate(self) -> float:
        """Fraction of lookups answered from the cache (0.0 before any lookup)."""
        total = self.hits + self.misses
        if total == 0:
            return 0.0
        return self.hits / total


class _Shard:
    __slots__ = ("entries", "lock")

    def __init__(self) -> None:
        self.lock = threading.Lock()
        self.entries: dict[str, CacheEntry] = {}


class ResponseCache:
    """
    Thread-safe fingerprint → response store.

    Responsibilities:
    - get/put by fingerprint with per-shard locking
    - Keep hit/miss counters for observability
    - Optionally bound the number of entries

    Example:
        >>> cache = ResponseCache()
        >>> key = fingerprint("hello", "llama3-8b-q4", 0.7)
        >>> cache.get(key) is None
        True
        >>> cache.put(key, "Hi there!")
        >>> cache.get(key)
        'Hi there!'
    """

    def __init__(self, max_entries: int | None = None, shards: int = DEFAULT_SHARDS):
        if max_entries is not None and max_entries < 1:
            raise ValueError("max_entries must be positive")
        if shards < 1:
            raise ValueError("shards must be positive")
        self.max_entries = max_entries
        self._shards = tuple(_Shard() for _ in range(shards))
        self._stats_lock = threading.Lock()
        self._hits = 0
        self._misses = 0
        # Insertion order across shards, only tracked when bounded.
        self._order_lock = threading.Lock()
        self._order: dict[str, None] = {}

    def _shard(self, key: str) -> _Shard:
        return self._shards[hash(key) % len(self._shards)]

    def entry(self, key: str) -> CacheEntry | None:
        shard = self._shard(key)
        with shard.lock:
            found = shard.entries.get(key)
        with self._stats_lock:
            if found is None:
                self._misses += 1
            else:
                self._hits += 1
        return found

    def get(self, key: str) -> str | None:
        found = self.entry(key)
        return None if found is None else found.response_text

    def put(self, key: str, response: str) -> None:
        if self.max_entries is None:
            self._store(key, response)
            return
        # Lock order: _order_lock, then a shard lock. Storing and recording
        # under one _order_lock keeps _order and the shards in step.
        with self._order_lock:
            self._store(key, response)
            self._record_and_evict(key)

    def _store(self, key: str, response: str) -> None:
        shard = self._shard(key)
        with shard.lock:
            shard.entries[key] = CacheEntry(response_text=response)

    def _record_and_evict(self, key: str) -> None:
        # Caller holds _order_lock.
        self._order.pop(key, None)
        self._order[key] = None
        while len(self._order) > self.max_entries:  # type: ignore[operator]
            oldest = next(iter(self._order))
            del self._order[oldest]
            shard = self._shard(oldest)
            with shard.lock:
                shard.entries.pop(oldest, None)

    def clear(self) -> None:
        with self._order_lock:
            for shard in self._shards:
                with shard.lock:
                    shard.entries.clear()
            self._order.clear()
        with self._stats_lock:
            self._hits = 0
            self._misses = 0

    def __len__(self) -> int:
        total = 0
        for shard in self._shards:
            with shard.lock:
                total += len(shard.entries)
        return total

    def __contains__(self, key: object) -> bool:
        if not isinstance(key, str):
            return False
        shard = self._shard(key)
        with shard.lock:
            return key in shard.entries

    @property
    def stats(self) -> CacheStats:
        with self._stats_lock:
            hits, misses = self._hits, self._misses
        return CacheStats(entries=len(self), hits=hits, misses=misses)


__all__ = ["CacheEntry", "CacheStats", "ResponseCache", "fingerprint"]
