"""Per-file parse metadata backing change detection and invalidation."""

from __future__ import annotations

import json
import logging
import threading
from datetime import UTC, datetime
from pathlib import Path

from chunk_mcp.cache.memory import MemoryCache
from chunk_mcp.cache.models import FileMetadata
from chunk_mcp.cache.store import METADATA_FILE_NAME

logger = logging.getLogger(__name__)

METADATA_SCHEMA_VERSION = 1


class FileMetadataStore:
    """Maps analyzed file paths to their hash and chunk manifest.

    The document is loaded lazily and kept in memory until the next write.
    Every mutation reloads the document from disk, applies the change and
    rewrites it whole.
    """

    def __init__(self, cache_dir: Path, memory_cache: MemoryCache) -> None:
        self._cache_dir = cache_dir
        self._path = cache_dir / METADATA_FILE_NAME
        self._memory = memory_cache
        self._files: dict[str, FileMetadata] | None = None
        self._lock = threading.Lock()

    @property
    def path(self) -> Path:
        """Return the metadata document path."""
        return self._path

    def get(self, path: str) -> FileMetadata | None:
        """Return the record for a file path, if any."""
        return self._loaded().get(path)

    def paths(self) -> list[str]:
        """Return every tracked file path, sorted."""
        return sorted(self._loaded())

    def is_changed(self, path: str, current_hash: str) -> bool:
        """Return True when a file has no record or its hash differs."""
        record = self.get(path)
        return record is None or record.hash != current_hash

    def update(self, path: str, content_hash: str, chunk_ids: tuple[str, ...] | list[str]) -> None:
        """Upsert a record, replacing its chunk manifest wholesale."""
        with self._lock:
            files = self._read_document()
            files[path] = FileMetadata(
                hash=content_hash,
                last_parsed=utc_now_iso(),
                chunk_ids=tuple(chunk_ids),
            )
            self._write_document(files)
            self._files = files

    def clear_for_file(self, path: str) -> None:
        """Delete a file's chunks from both cache tiers and drop its record."""
        with self._lock:
            files = self._read_document()
            record = files.pop(path, None)
            if record is None:
                self._files = files
                return
            for chunk_id in record.chunk_ids:
                self._memory.delete(chunk_id)
            self._write_document(files)
            self._files = files

    def reset(self) -> None:
        """Drop every record."""
        with self._lock:
            self._write_document({})
            self._files = {}

    def _loaded(self) -> dict[str, FileMetadata]:
        if self._files is None:
            with self._lock:
                if self._files is None:
                    self._files = self._read_document()
        return self._files

    def _read_document(self) -> dict[str, FileMetadata]:
        try:
            with self._path.open("r", encoding="utf-8") as handle:
                payload = json.load(handle)
        except FileNotFoundError:
            return {}
        except (OSError, json.JSONDecodeError, UnicodeDecodeError) as error:
            logger.error("Failed to read file metadata %s: %s", self._path, error)
            return {}
        if not isinstance(payload, dict):
            logger.error("Ignoring file metadata %s: document is not an object", self._path)
            return {}
        schema = payload.get("schema_version")
        if schema != METADATA_SCHEMA_VERSION:
            logger.warning(
                "Ignoring file metadata %s: schema_version %r, expected %d",
                self._path,
                schema,
                METADATA_SCHEMA_VERSION,
            )
            return {}
        raw_files = payload.get("files")
        if not isinstance(raw_files, dict):
            return {}
        output: dict[str, FileMetadata] = {}
        for path, raw in raw_files.items():
            record = _record_from_raw(raw)
            if record is None:
                logger.warning("Skipping malformed metadata record for %s", path)
                continue
            output[path] = record
        return output

    def _write_document(self, files: dict[str, FileMetadata]) -> None:
        payload = {
            "schema_version": METADATA_SCHEMA_VERSION,
            "files": {path: files[path].to_dict() for path in sorted(files)},
        }
        try:
            self._cache_dir.mkdir(parents=True, exist_ok=True)
            tmp = self._path.with_suffix(self._path.suffix + ".tmp")
            with tmp.open("w", encoding="utf-8") as handle:
                json.dump(payload, handle, sort_keys=True, indent=2)
                handle.write("\n")
            tmp.replace(self._path)
        except OSError as error:
            logger.error("Failed to write file metadata %s: %s", self._path, error)


def _record_from_raw(raw: object) -> FileMetadata | None:
    if not isinstance(raw, dict):
        return None
    content_hash = raw.get("hash")
    last_parsed = raw.get("last_parsed")
    chunk_ids = raw.get("chunk_ids")
    if not isinstance(content_hash, str):
        return None
    if not isinstance(last_parsed, str):
        return None
    if not isinstance(chunk_ids, list) or not all(isinstance(item, str) for item in chunk_ids):
        return None
    return FileMetadata(hash=content_hash, last_parsed=last_parsed, chunk_ids=tuple(chunk_ids))


def utc_now_iso() -> str:
    return datetime.now(tz=UTC).isoformat(timespec="milliseconds").replace("+00:00", "Z")
