"""Durable one-file-per-chunk storage."""

from __future__ import annotations

import hashlib
import json
import logging
import re
import shutil
from pathlib import Path

from chunk_mcp.cache.models import Chunk

logger = logging.getLogger(__name__)

METADATA_FILE_NAME = "metadata.json"
CHUNK_FILE_SUFFIX = ".json"

_UNSAFE_CHARS_RE = re.compile(r"[^A-Za-z0-9_-]")
STEM_PREFIX_LIMIT = 120
KEY_DIGEST_LENGTH = 16


def safe_name(key: str) -> str:
    """Map a chunk key to a stable filesystem-safe file stem.

    The readable prefix is truncated; the key digest suffix keeps distinct
    keys on distinct files.
    """
    prefix = _UNSAFE_CHARS_RE.sub("_", key)[:STEM_PREFIX_LIMIT]
    digest = hashlib.sha256(key.encode("utf-8")).hexdigest()[:KEY_DIGEST_LENGTH]
    return f"{prefix}-{digest}"


class ChunkStore:
    """Persists one chunk record per key as a JSON file under a cache directory.

    Each record embeds the key it was written under, so enumeration never has
    to reverse `safe_name`.
    """

    def __init__(self, cache_dir: Path) -> None:
        self._cache_dir = cache_dir

    @property
    def cache_dir(self) -> Path:
        """Return the directory holding chunk records."""
        return self._cache_dir

    def path_for(self, key: str) -> Path:
        """Return the record path a key maps to."""
        return self._cache_dir / f"{safe_name(key)}{CHUNK_FILE_SUFFIX}"

    def put(self, key: str, chunk: Chunk) -> None:
        """Write one record; failures are logged and swallowed."""
        path = self.path_for(key)
        payload = {"key": key, "chunk": chunk.to_dict()}
        try:
            self._cache_dir.mkdir(parents=True, exist_ok=True)
            tmp = path.with_suffix(path.suffix + ".tmp")
            with tmp.open("w", encoding="utf-8") as handle:
                json.dump(payload, handle, sort_keys=True, indent=2)
                handle.write("\n")
            tmp.replace(path)
        except OSError as error:
            logger.error("Failed to save chunk %r to %s: %s", key, path, error)

    def get(self, key: str) -> Chunk | None:
        """Read one record; missing or unreadable records are misses."""
        path = self.path_for(key)
        try:
            with path.open("r", encoding="utf-8") as handle:
                payload = json.load(handle)
        except FileNotFoundError:
            return None
        except (OSError, json.JSONDecodeError, UnicodeDecodeError) as error:
            logger.error("Failed to load chunk %r from %s: %s", key, path, error)
            return None
        if not isinstance(payload, dict) or payload.get("key") != key:
            return None
        try:
            return Chunk.from_dict(payload.get("chunk"))
        except ValueError as error:
            logger.error("Discarding malformed chunk record %s: %s", path, error)
            return None

    def delete(self, key: str) -> None:
        """Remove one record; a missing record is not an error."""
        path = self.path_for(key)
        try:
            path.unlink()
        except FileNotFoundError:
            return
        except OSError as error:
            logger.error("Failed to delete chunk %r at %s: %s", key, path, error)

    def list_keys(self) -> list[str]:
        """Return every stored key, read from the records themselves."""
        try:
            candidates = sorted(self._cache_dir.glob(f"*{CHUNK_FILE_SUFFIX}"))
        except OSError as error:
            logger.error("Failed to list chunk records in %s: %s", self._cache_dir, error)
            return []
        keys: list[str] = []
        for candidate in candidates:
            if candidate.name == METADATA_FILE_NAME:
                continue
            try:
                with candidate.open("r", encoding="utf-8") as handle:
                    payload = json.load(handle)
            except (OSError, json.JSONDecodeError, UnicodeDecodeError):
                continue
            if not isinstance(payload, dict):
                continue
            key = payload.get("key")
            if isinstance(key, str):
                keys.append(key)
        return sorted(keys)

    def clear(self) -> None:
        """Delete and recreate the whole cache directory."""
        try:
            if self._cache_dir.exists():
                shutil.rmtree(self._cache_dir)
            self._cache_dir.mkdir(parents=True, exist_ok=True)
        except OSError as error:
            logger.error("Failed to reset cache directory %s: %s", self._cache_dir, error)
