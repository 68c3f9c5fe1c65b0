from __future__ import annotations

from pathlib import Path

from chunk_mcp.cache import DEFAULT_MEMORY_CAPACITY, ChunkStore, MemoryCache
from chunk_mcp.config import DATA_DIR_NAME, default_config


def test_default_config_targets_swift_kotlin_and_python(tmp_path: Path) -> None:
    config = default_config(tmp_path)

    assert config.index.include_extensions == (".swift", ".kt", ".kts", ".py")
    assert "**/.build/**" in config.index.exclude_globs
    assert f"**/{DATA_DIR_NAME}/**" in config.index.exclude_globs
    assert config.data_dir == tmp_path.resolve() / DATA_DIR_NAME
    assert config.cache_dir == config.data_dir / "chunks"
    assert config.parsers.swift_backend == "lexical"


def test_memory_capacity_default_matches_cache_default(tmp_path: Path) -> None:
    assert default_config(tmp_path).cache.memory_capacity == DEFAULT_MEMORY_CAPACITY
    assert MemoryCache(ChunkStore(tmp_path)).capacity == DEFAULT_MEMORY_CAPACITY
