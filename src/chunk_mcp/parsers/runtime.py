"""Runtime parser registry construction."""

from __future__ import annotations

from chunk_mcp.config import ServerConfig
from chunk_mcp.parsers.kotlin import KotlinLexicalParser
from chunk_mcp.parsers.python import PythonAstParser
from chunk_mcp.parsers.registry import ParserRegistry
from chunk_mcp.parsers.sourcekitten import SourceKittenSwiftParser
from chunk_mcp.parsers.swift import SwiftLexicalParser


def build_parser_registry(config: ServerConfig) -> ParserRegistry:
    """Build parser registry from effective config."""
    registry = ParserRegistry()
    if config.parsers.swift_backend == "sourcekitten":
        registry.register(
            SourceKittenSwiftParser(
                project_root=config.project_root,
                executable=config.parsers.sourcekitten_path,
                timeout_seconds=config.parsers.external_timeout_seconds,
            )
        )
    else:
        registry.register(SwiftLexicalParser())
    registry.register(KotlinLexicalParser())
    if config.parsers.python_enabled:
        registry.register(PythonAstParser())
    return registry
