"""Bounded access-ordered memory tier over the durable chunk store."""

from __future__ import annotations

import itertools
import threading
import time
from collections.abc import Callable
from dataclasses import dataclass

from chunk_mcp.cache.models import Chunk
from chunk_mcp.cache.store import ChunkStore

DEFAULT_MEMORY_CAPACITY = 100


@dataclass(slots=True)
class CacheEntry:
    """Memory-tier slot with its last-access time."""

    value: Chunk
    timestamp: float
    sequence: int


class MemoryCache:
    """Write-through LRU cache of recently used chunks.

    Recency is the entry timestamp; `sequence` orders entries that share a
    timestamp so eviction stays deterministic on coarse clocks.
    """

    def __init__(
        self,
        store: ChunkStore,
        capacity: int = DEFAULT_MEMORY_CAPACITY,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        if capacity < 1:
            raise ValueError("capacity must be >= 1")
        self._store = store
        self._capacity = capacity
        self._clock = clock
        self._entries: dict[str, CacheEntry] = {}
        self._sequence = itertools.count()
        self._lock = threading.Lock()

    @property
    def capacity(self) -> int:
        """Return the maximum number of memory entries."""
        return self._capacity

    @property
    def store(self) -> ChunkStore:
        """Return the backing durable store."""
        return self._store

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, key: object) -> bool:
        return key in self._entries

    def set(self, key: str, chunk: Chunk) -> None:
        """Insert or update a chunk, evict the oldest entry when over capacity."""
        with self._lock:
            self._remember(key, chunk)
        self._store.put(key, chunk)

    def get(self, key: str) -> Chunk | None:
        """Return a chunk from memory, falling back to the durable store."""
        with self._lock:
            entry = self._entries.get(key)
            if entry is not None:
                entry.timestamp = self._clock()
                entry.sequence = next(self._sequence)
                return entry.value
        chunk = self._store.get(key)
        if chunk is None:
            return None
        with self._lock:
            self._remember(key, chunk)
        return chunk

    def delete(self, key: str) -> None:
        """Drop a chunk from memory and from the durable store."""
        with self._lock:
            self._entries.pop(key, None)
        self._store.delete(key)

    def clear(self) -> None:
        """Drop every memory entry; durable records are untouched."""
        with self._lock:
            self._entries.clear()

    def _remember(self, key: str, chunk: Chunk) -> None:
        self._entries[key] = CacheEntry(
            value=chunk,
            timestamp=self._clock(),
            sequence=next(self._sequence),
        )
        if len(self._entries) > self._capacity:
            self._evict_oldest()

    def _evict_oldest(self) -> None:
        oldest_key = min(
            self._entries,
            key=lambda key: (self._entries[key].timestamp, self._entries[key].sequence),
        )
        del self._entries[oldest_key]
