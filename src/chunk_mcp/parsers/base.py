"""Core parser protocol and shared chunk helpers."""

from __future__ import annotations

from dataclasses import replace
from typing import Protocol

from chunk_mcp.cache.models import Chunk

CHUNK_ID_SEPARATOR = "::"


class ParserError(Exception):
    """Raised when a parser cannot produce chunks for a file."""


class ChunkParser(Protocol):
    """Protocol implemented by language parsers."""

    name: str
    language: str

    def supports_path(self, path: str) -> bool:
        """Return True when parser supports a file path."""

    def parse_file(self, path: str, text: str) -> list[Chunk]:
        """Return the declaration tree of one file."""


def build_chunk_id(path: str, signature: str) -> str:
    """Return the store key for a declaration signature in one file."""
    return f"{path}{CHUNK_ID_SEPARATOR}{signature}"


def assign_chunk_ids(path: str, chunks: list[Chunk]) -> list[Chunk]:
    """Stamp signature-derived ids on a chunk tree in parent-before-children order.

    Repeated signatures inside one file get `#2`, `#3`, ... in source order.
    """
    seen: dict[str, int] = {}

    def visit(chunk: Chunk) -> Chunk:
        base_id = build_chunk_id(path, chunk.signature)
        count = seen.get(base_id, 0) + 1
        seen[base_id] = count
        chunk_id = base_id if count == 1 else f"{base_id}#{count}"
        children = tuple(visit(child) for child in chunk.children)
        return replace(chunk, id=chunk_id, file_path=path, children=children)

    return [visit(chunk) for chunk in chunks]


def normalize_newlines(text: str) -> str:
    """Convert CRLF and CR line endings to LF."""
    return text.replace("\r\n", "\n").replace("\r", "\n")


def collapse_whitespace(text: str) -> str:
    """Collapse runs of whitespace and trim padding inside brackets."""
    compact = " ".join(text.split())
    for opener in "(<[":
        compact = compact.replace(f"{opener} ", opener)
    for closer in ")>]":
        compact = compact.replace(f" {closer}", closer)
    return compact
