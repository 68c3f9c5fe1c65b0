"""Parser registry with deterministic selection behavior."""

from __future__ import annotations

from dataclasses import dataclass, field

from chunk_mcp.parsers.base import ChunkParser


@dataclass(slots=True)
class ParserRegistry:
    """Ordered parser registry; unsupported paths select nothing."""

    _parsers: list[ChunkParser] = field(default_factory=list)

    def register(self, parser: ChunkParser) -> None:
        """Register a parser in deterministic insertion order."""
        self._parsers.append(parser)

    def select(self, path: str) -> ChunkParser | None:
        """Select the first parser that supports the path."""
        for parser in self._parsers:
            if parser.supports_path(path):
                return parser
        return None

    def supports_path(self, path: str) -> bool:
        """Return True when any registered parser supports the path."""
        return self.select(path) is not None

    def names(self) -> tuple[str, ...]:
        """Return registered parser names in deterministic order."""
        return tuple(parser.name for parser in self._parsers)
