"""Language parsers producing declaration chunks."""

from .base import (
    ChunkParser,
    ParserError,
    assign_chunk_ids,
    build_chunk_id,
    collapse_whitespace,
    normalize_newlines,
)
from .kotlin import KotlinLexicalParser
from .lexical import (
    BraceScanResult,
    LexicalRules,
    SourceLayout,
    build_layout,
    extract_calls,
    mask_comments_and_strings,
    scan_brace_pairs,
)
from .python import PythonAstParser
from .registry import ParserRegistry
from .runtime import build_parser_registry
from .sourcekitten import SourceKittenSwiftParser
from .swift import SwiftLexicalParser

__all__ = [
    "BraceScanResult",
    "ChunkParser",
    "KotlinLexicalParser",
    "LexicalRules",
    "ParserError",
    "ParserRegistry",
    "PythonAstParser",
    "SourceKittenSwiftParser",
    "SourceLayout",
    "SwiftLexicalParser",
    "assign_chunk_ids",
    "build_chunk_id",
    "build_layout",
    "build_parser_registry",
    "collapse_whitespace",
    "extract_calls",
    "mask_comments_and_strings",
    "normalize_newlines",
    "scan_brace_pairs",
]
