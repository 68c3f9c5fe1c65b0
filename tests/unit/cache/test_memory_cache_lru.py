from __future__ import annotations

from pathlib import Path

import pytest

from chunk_mcp.cache import Chunk, ChunkStore, MemoryCache


class _Clock:
    def __init__(self) -> None:
        self.now = 0.0

    def __call__(self) -> float:
        self.now += 1.0
        return self.now


def _chunk(chunk_id: str) -> Chunk:
    return Chunk(
        id=chunk_id,
        name=chunk_id,
        signature=f"func {chunk_id}()",
        kind="source.lang.swift.decl.function.free",
        content=f"func {chunk_id}() {{}}",
        file_path="A.swift",
        start_line=1,
        end_line=1,
    )


def test_memory_never_exceeds_capacity(tmp_path: Path) -> None:
    cache = MemoryCache(ChunkStore(tmp_path), capacity=3, clock=_Clock())

    for index in range(10):
        cache.set(f"k{index}", _chunk(f"k{index}"))
        assert len(cache) <= 3

    assert [f"k{index}" in cache for index in range(10)] == [False] * 7 + [True] * 3


def test_recent_get_protects_entry_from_eviction(tmp_path: Path) -> None:
    cache = MemoryCache(ChunkStore(tmp_path), capacity=2, clock=_Clock())
    cache.set("a", _chunk("a"))
    cache.set("b", _chunk("b"))

    assert cache.get("a") == _chunk("a")
    cache.set("c", _chunk("c"))

    assert "a" in cache
    assert "b" not in cache
    assert "c" in cache


def test_evicted_entry_is_served_from_durable_store(tmp_path: Path) -> None:
    store = ChunkStore(tmp_path)
    cache = MemoryCache(store, capacity=1, clock=_Clock())
    cache.set("a", _chunk("a"))
    cache.set("b", _chunk("b"))
    assert "a" not in cache

    assert cache.get("a") == _chunk("a")
    assert "a" in cache
    assert len(cache) == 1


def test_same_timestamp_eviction_is_insertion_ordered(tmp_path: Path) -> None:
    cache = MemoryCache(ChunkStore(tmp_path), capacity=2, clock=lambda: 5.0)
    cache.set("a", _chunk("a"))
    cache.set("b", _chunk("b"))
    cache.set("c", _chunk("c"))

    assert "a" not in cache
    assert "b" in cache
    assert "c" in cache


def test_delete_removes_both_tiers_and_clear_only_memory(tmp_path: Path) -> None:
    store = ChunkStore(tmp_path)
    cache = MemoryCache(store, capacity=4)
    cache.set("a", _chunk("a"))
    cache.set("b", _chunk("b"))

    cache.delete("b")
    cache.clear()

    assert len(cache) == 0
    assert store.get("a") == _chunk("a")
    assert cache.get("b") is None
    assert store.get("b") is None


def test_capacity_must_be_positive(tmp_path: Path) -> None:
    with pytest.raises(ValueError, match="capacity"):
        MemoryCache(ChunkStore(tmp_path), capacity=0)
