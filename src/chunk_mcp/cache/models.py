"""Typed models for cached chunk state."""

from __future__ import annotations

from dataclasses import dataclass

CALLABLE_KIND_MARKER = "function"


@dataclass(slots=True, frozen=True)
class Chunk:
    """One syntactic declaration extracted from a source file."""

    id: str
    name: str
    signature: str
    kind: str
    content: str
    file_path: str
    start_line: int
    end_line: int
    byte_offset: int = 0
    byte_length: int = 0
    calls: tuple[str, ...] = ()
    children: tuple[Chunk, ...] = ()

    @property
    def is_callable(self) -> bool:
        """Return True when the chunk kind names a function-like unit."""
        return is_callable_kind(self.kind)

    def to_dict(self) -> dict[str, object]:
        """Return a JSON-safe representation including nested children."""
        return {
            "id": self.id,
            "name": self.name,
            "signature": self.signature,
            "kind": self.kind,
            "content": self.content,
            "file_path": self.file_path,
            "start_line": self.start_line,
            "end_line": self.end_line,
            "byte_offset": self.byte_offset,
            "byte_length": self.byte_length,
            "calls": list(self.calls),
            "children": [child.to_dict() for child in self.children],
        }

    @classmethod
    def from_dict(cls, payload: object) -> Chunk:
        """Rebuild a chunk from `to_dict` output, validating field types."""
        if not isinstance(payload, dict):
            raise ValueError("Chunk payload must be an object.")
        text_fields = ("id", "name", "signature", "kind", "content", "file_path")
        for name in text_fields:
            if not isinstance(payload.get(name), str):
                raise ValueError(f"Chunk field '{name}' must be a string.")
        int_fields = ("start_line", "end_line", "byte_offset", "byte_length")
        for name in int_fields:
            value = payload.get(name, 0)
            if not isinstance(value, int) or isinstance(value, bool):
                raise ValueError(f"Chunk field '{name}' must be an integer.")
        calls = payload.get("calls", [])
        if not isinstance(calls, list) or not all(isinstance(item, str) for item in calls):
            raise ValueError("Chunk field 'calls' must be a list of strings.")
        children = payload.get("children", [])
        if not isinstance(children, list):
            raise ValueError("Chunk field 'children' must be a list.")
        return cls(
            id=payload["id"],
            name=payload["name"],
            signature=payload["signature"],
            kind=payload["kind"],
            content=payload["content"],
            file_path=payload["file_path"],
            start_line=payload["start_line"],
            end_line=payload["end_line"],
            byte_offset=payload.get("byte_offset", 0),
            byte_length=payload.get("byte_length", 0),
            calls=tuple(calls),
            children=tuple(cls.from_dict(child) for child in children),
        )


@dataclass(slots=True, frozen=True)
class FileMetadata:
    """Parse state recorded for one analyzed source file."""

    hash: str
    last_parsed: str
    chunk_ids: tuple[str, ...]

    def to_dict(self) -> dict[str, object]:
        return {
            "hash": self.hash,
            "last_parsed": self.last_parsed,
            "chunk_ids": list(self.chunk_ids),
        }


def is_callable_kind(kind: str) -> bool:
    """Return True when a kind tag denotes a function, method, or initializer."""
    return CALLABLE_KIND_MARKER in kind


def flatten_chunks(chunks: tuple[Chunk, ...] | list[Chunk]) -> tuple[Chunk, ...]:
    """Flatten a chunk tree into parent-before-children order."""
    flattened: tuple[Chunk, ...] = ()
    for chunk in chunks:
        flattened += (chunk, *flatten_chunks(chunk.children))
    return flattened
