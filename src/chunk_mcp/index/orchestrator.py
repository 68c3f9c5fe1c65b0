"""Project analysis, change detection, and lazy re-analysis of cached chunks."""

from __future__ import annotations

import logging
import threading
import time
from collections.abc import Callable, Iterator
from contextlib import contextmanager
from dataclasses import dataclass, field
from pathlib import Path

from chunk_mcp.cache.hashing import content_hash
from chunk_mcp.cache.memory import DEFAULT_MEMORY_CAPACITY, MemoryCache
from chunk_mcp.cache.metadata import FileMetadataStore, utc_now_iso
from chunk_mcp.cache.models import Chunk, flatten_chunks
from chunk_mcp.cache.store import ChunkStore
from chunk_mcp.config import DEFAULT_PAGE_SIZE, PAGE_SIZE_CAP, IndexConfig
from chunk_mcp.index.discovery import discover_source_files, find_source_files
from chunk_mcp.paging.paginator import paginate, token_page_size
from chunk_mcp.parsers.base import ParserError
from chunk_mcp.parsers.registry import ParserRegistry

logger = logging.getLogger(__name__)

FALLBACK_LANGUAGE = "text"


@dataclass(slots=True)
class _PathLock:
    """Lock for one file path and the number of callers holding or awaiting it."""

    lock: threading.Lock = field(default_factory=threading.Lock)
    holders: int = 0


@dataclass(slots=True, frozen=True)
class FunctionSummary:
    """Callable chunk listing entry."""

    id: str
    signature: str
    name: str
    kind: str
    start_line: int
    end_line: int

    @classmethod
    def from_chunk(cls, chunk: Chunk) -> FunctionSummary:
        return cls(
            id=chunk.id,
            signature=chunk.signature,
            name=chunk.name,
            kind=chunk.kind,
            start_line=chunk.start_line,
            end_line=chunk.end_line,
        )

    def to_dict(self) -> dict[str, object]:
        return {
            "id": self.id,
            "signature": self.signature,
            "name": self.name,
            "kind": self.kind,
            "start_line": self.start_line,
            "end_line": self.end_line,
        }


@dataclass(slots=True, frozen=True)
class ChunkView:
    """Chunk as served to callers, with one page of fenced content."""

    chunk_id: str
    name: str
    signature: str
    kind: str
    file_path: str
    language: str
    start_line: int
    end_line: int
    calls: tuple[str, ...]
    code_content: str
    is_partial: bool
    total_lines: int
    current_page: int
    total_pages: int
    next_page_token: str | None
    prev_page_token: str | None

    def to_dict(self) -> dict[str, object]:
        return {
            "chunk_id": self.chunk_id,
            "name": self.name,
            "signature": self.signature,
            "kind": self.kind,
            "file_path": self.file_path,
            "language": self.language,
            "start_line": self.start_line,
            "end_line": self.end_line,
            "calls": list(self.calls),
            "code_content": self.code_content,
            "is_partial": self.is_partial,
            "total_lines": self.total_lines,
            "current_page": self.current_page,
            "total_pages": self.total_pages,
            "next_page_token": self.next_page_token,
            "prev_page_token": self.prev_page_token,
        }


class AnalysisOrchestrator:
    """Owns the chunk cache of one project and keeps it in step with the source tree.

    Reads re-hash the owning file first and re-parse it when the content
    changed, so callers never see chunks of an older revision. Re-analysis
    is serialized per file path; a caller that waited on another caller's
    re-parse finds the file unchanged and returns without parsing again.
    """

    def __init__(
        self,
        project_root: Path,
        cache_dir: Path,
        parsers: ParserRegistry,
        index_config: IndexConfig,
        memory_capacity: int = DEFAULT_MEMORY_CAPACITY,
        default_page_size: int = DEFAULT_PAGE_SIZE,
        max_page_size: int = PAGE_SIZE_CAP,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._project_root = project_root.resolve()
        self._parsers = parsers
        self._index_config = index_config
        self._default_page_size = default_page_size
        self._max_page_size = max_page_size
        self._store = ChunkStore(cache_dir)
        self._memory = MemoryCache(self._store, capacity=memory_capacity, clock=clock)
        self._metadata = FileMetadataStore(cache_dir, self._memory)
        self._path_locks: dict[str, _PathLock] = {}
        self._path_locks_guard = threading.Lock()

    @property
    def project_root(self) -> Path:
        return self._project_root

    @property
    def store(self) -> ChunkStore:
        return self._store

    @property
    def memory(self) -> MemoryCache:
        return self._memory

    @property
    def metadata(self) -> FileMetadataStore:
        return self._metadata

    def analyze_project(self, path: str | None = None) -> dict[str, object]:
        """Reset the cache and analyze every supported source file under `path`."""
        start = time.perf_counter()
        prefix = self.normalize_path(path) if path else ""
        if prefix == ".":
            prefix = ""
        self._store.clear()
        self._memory.clear()
        self._metadata.reset()

        analyzed = 0
        failed: list[str] = []
        chunk_count = 0
        for relative in discover_source_files(self._project_root, self._index_config):
            if prefix and relative != prefix and not relative.startswith(f"{prefix}/"):
                continue
            if not self._parsers.supports_path(relative):
                continue
            try:
                chunks = self.analyze_file(relative)
            except (ParserError, OSError) as error:
                logger.error("Failed to analyze %s: %s", relative, error)
                failed.append(relative)
                continue
            analyzed += 1
            chunk_count += len(chunks)

        duration_ms = int((time.perf_counter() - start) * 1000)
        logger.info(
            "Analyzed %d files (%d failed, %d chunks) in %d ms",
            analyzed,
            len(failed),
            chunk_count,
            duration_ms,
        )
        project_path = self._project_root / prefix if prefix else self._project_root
        return {
            "project_path": str(project_path),
            "analyzed_files": analyzed,
            "failed_files": failed,
            "chunk_count": chunk_count,
            "duration_ms": duration_ms,
            "timestamp": utc_now_iso(),
        }

    def analyze_file(self, path: str) -> tuple[Chunk, ...]:
        """Parse one file, record its manifest and store every chunk in the tree."""
        relative = self.normalize_path(path)
        text = self._read_source(relative)
        return self._analyze_text(relative, text, content_hash(text))

    def ensure_latest(self, path: str) -> bool:
        """Re-analyze a file whose content changed; returns True when it was re-parsed."""
        relative = self.normalize_path(path)
        with self._path_lock(relative):
            try:
                text = self._read_source(relative)
            except FileNotFoundError:
                if self._metadata.get(relative) is not None:
                    logger.info("Source %s was deleted; dropping its chunks", relative)
                self._metadata.clear_for_file(relative)
                return False
            except OSError as error:
                logger.error("Failed to read %s: %s", relative, error)
                return False

            current_hash = content_hash(text)
            if not self._metadata.is_changed(relative, current_hash):
                return False
            if self._parsers.select(relative) is None:
                return False
            self._metadata.clear_for_file(relative)
            try:
                self._analyze_text(relative, text, current_hash)
            except ParserError as error:
                logger.error("Failed to re-analyze %s: %s", relative, error)
                return False
            logger.debug("Re-analyzed %s", relative)
            return True

    def get_chunk(
        self,
        chunk_id: str,
        page_size: int | None = None,
        page_token: str | None = None,
    ) -> ChunkView | None:
        """Return a fresh chunk by id, paginated when large or when a token is given."""
        chunk = self._memory.get(chunk_id)
        if chunk is None:
            return None
        self.ensure_latest(chunk.file_path)
        chunk = self._memory.get(chunk_id)
        if chunk is None:
            return None
        return self._view(chunk, page_size, page_token)

    def list_functions_in_file(self, path: str) -> list[FunctionSummary]:
        """Return every callable chunk of a file in manifest order."""
        return self.find_functions(path)

    def find_functions(self, path: str, query: str | None = None) -> list[FunctionSummary]:
        """Return callable chunks of a file whose signature contains `query`."""
        return [
            FunctionSummary.from_chunk(chunk)
            for chunk in self._callable_chunks(path)
            if not query or query in chunk.signature
        ]

    def get_function_chunk(
        self,
        path: str,
        signature: str,
        page_size: int | None = None,
        page_token: str | None = None,
    ) -> ChunkView | None:
        """Return the callable chunk of a file with an exactly matching signature."""
        for chunk in self._callable_chunks(path):
            if chunk.signature == signature:
                return self._view(chunk, page_size, page_token)
        return None

    def find_files(self, pattern: str) -> list[str]:
        """Return supported source files matching a glob, sorted."""
        return [
            path
            for path in find_source_files(self._project_root, self._index_config, pattern)
            if self._parsers.supports_path(path)
        ]

    def status(self) -> dict[str, object]:
        """Return a snapshot of cache occupancy."""
        return {
            "project_root": str(self._project_root),
            "cache_dir": str(self._store.cache_dir),
            "files_tracked": len(self._metadata.paths()),
            "chunks_stored": len(self._store.list_keys()),
            "memory_entries": len(self._memory),
            "memory_capacity": self._memory.capacity,
            "parsers": list(self._parsers.names()),
        }

    def normalize_path(self, path: str | Path) -> str:
        """Return the project-relative POSIX form of a path."""
        candidate = Path(path)
        if candidate.is_absolute():
            resolved = candidate.resolve()
            if resolved.is_relative_to(self._project_root):
                return resolved.relative_to(self._project_root).as_posix()
            return resolved.as_posix()
        normalized = str(path).replace("\\", "/").strip()
        while normalized.startswith("./"):
            normalized = normalized[2:]
        return normalized.rstrip("/") or "."

    def language_for(self, path: str) -> str:
        """Return the language tag of the parser that owns a path."""
        parser = self._parsers.select(path)
        if parser is None:
            return FALLBACK_LANGUAGE
        return parser.language

    def _callable_chunks(self, path: str) -> list[Chunk]:
        relative = self.normalize_path(path)
        self.ensure_latest(relative)
        record = self._metadata.get(relative)
        if record is None:
            return []
        chunks: list[Chunk] = []
        for chunk_id in record.chunk_ids:
            chunk = self._memory.get(chunk_id)
            if chunk is None or chunk.file_path != relative or not chunk.is_callable:
                continue
            chunks.append(chunk)
        return chunks

    def _analyze_text(self, relative: str, text: str, text_hash: str) -> tuple[Chunk, ...]:
        parser = self._parsers.select(relative)
        if parser is None:
            raise ParserError(f"No parser supports path: {relative}")
        chunks = flatten_chunks(parser.parse_file(relative, text))
        self._metadata.update(relative, text_hash, [chunk.id for chunk in chunks])
        for chunk in chunks:
            self._memory.set(chunk.id, chunk)
        logger.debug("Analyzed %s with %s: %d chunks", relative, parser.name, len(chunks))
        return chunks

    def _read_source(self, relative: str) -> str:
        full_path = self._project_root / relative
        with full_path.open("r", encoding="utf-8", errors="replace", newline="") as handle:
            return handle.read()

    def _view(self, chunk: Chunk, page_size: int | None, page_token: str | None) -> ChunkView:
        size = page_size or token_page_size(page_token) or self._default_page_size
        if size < 1 or size > self._max_page_size:
            raise ValueError(f"page_size must be between 1 and {self._max_page_size}")
        page = paginate(
            chunk.content,
            chunk_id=chunk.id,
            file_path=chunk.file_path,
            chunk_start_line=chunk.start_line,
            page_size=size,
            token=page_token,
        )
        language = self.language_for(chunk.file_path)
        return ChunkView(
            chunk_id=chunk.id,
            name=chunk.name,
            signature=chunk.signature,
            kind=chunk.kind,
            file_path=chunk.file_path,
            language=language,
            start_line=page.start_line,
            end_line=page.end_line,
            calls=chunk.calls,
            code_content=f"```{language}\n{page.content}\n```",
            is_partial=page.is_partial,
            total_lines=page.total_lines,
            current_page=page.current_page,
            total_pages=page.total_pages,
            next_page_token=page.next_page_token,
            prev_page_token=page.prev_page_token,
        )

    @contextmanager
    def _path_lock(self, relative: str) -> Iterator[None]:
        with self._path_locks_guard:
            entry = self._path_locks.get(relative)
            if entry is None:
                entry = _PathLock()
                self._path_locks[relative] = entry
            entry.holders += 1
        try:
            with entry.lock:
                yield
        finally:
            with self._path_locks_guard:
                entry.holders -= 1
                if entry.holders == 0:
                    del self._path_locks[relative]
