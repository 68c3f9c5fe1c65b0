"""Two-tier chunk cache and per-file metadata."""

from .hashing import content_hash
from .memory import DEFAULT_MEMORY_CAPACITY, CacheEntry, MemoryCache
from .metadata import METADATA_SCHEMA_VERSION, FileMetadataStore
from .models import Chunk, FileMetadata, flatten_chunks, is_callable_kind
from .store import METADATA_FILE_NAME, ChunkStore, safe_name

__all__ = [
    "CacheEntry",
    "Chunk",
    "ChunkStore",
    "DEFAULT_MEMORY_CAPACITY",
    "FileMetadata",
    "FileMetadataStore",
    "METADATA_FILE_NAME",
    "METADATA_SCHEMA_VERSION",
    "MemoryCache",
    "content_hash",
    "flatten_chunks",
    "is_callable_kind",
    "safe_name",
]
