"""Swift parser backed by the external `sourcekitten structure` command."""

from __future__ import annotations

import json
import logging
import subprocess
from collections.abc import Callable
from pathlib import Path

from chunk_mcp.cache.models import Chunk
from chunk_mcp.parsers.base import ParserError, assign_chunk_ids, normalize_newlines
from chunk_mcp.parsers.lexical import extract_calls, mask_comments_and_strings
from chunk_mcp.parsers.swift import SWIFT_KIND_PREFIX, SWIFT_RULES

logger = logging.getLogger(__name__)

DEFAULT_SOURCEKITTEN_PATH = "sourcekitten"
DEFAULT_TIMEOUT_SECONDS = 30

_FUNCTION_KIND_PREFIX = f"{SWIFT_KIND_PREFIX}.function"
_TYPE_KINDS = frozenset(
    f"{SWIFT_KIND_PREFIX}.{keyword}"
    for keyword in ("class", "struct", "enum", "protocol", "extension", "actor")
)
_CALL_KEYWORDS = frozenset(
    {
        "if",
        "for",
        "while",
        "switch",
        "return",
        "let",
        "var",
        "guard",
        "do",
        "try",
        "catch",
        "init",
        "self",
        "super",
    }
)

CommandRunner = Callable[[list[str], float], str]


def run_command(args: list[str], timeout_seconds: float) -> str:
    """Run a command and return stdout; any failure raises ParserError."""
    try:
        result = subprocess.run(
            args,
            capture_output=True,
            text=True,
            timeout=timeout_seconds,
            check=False,
        )
    except FileNotFoundError as error:
        raise ParserError(f"Command not found: {args[0]}") from error
    except subprocess.TimeoutExpired as error:
        command = " ".join(args)
        raise ParserError(f"Command timed out after {timeout_seconds}s: {command}") from error
    except OSError as error:
        raise ParserError(f"Command could not be executed: {error}") from error
    if result.returncode != 0:
        raise ParserError(f"Command failed with code {result.returncode}: {result.stderr.strip()}")
    return result.stdout


class SourceKittenSwiftParser:
    """Swift parser that converts SourceKitten structure output into chunks."""

    name = "swift_sourcekitten"
    language = "swift"

    def __init__(
        self,
        project_root: Path,
        executable: str = DEFAULT_SOURCEKITTEN_PATH,
        timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS,
        runner: CommandRunner | None = None,
    ) -> None:
        self._project_root = project_root
        self._executable = executable
        self._timeout_seconds = timeout_seconds
        self._runner = runner or run_command

    def supports_path(self, path: str) -> bool:
        """Return True when path is a Swift source file."""
        return path.lower().endswith(".swift")

    def parse_file(self, path: str, text: str) -> list[Chunk]:
        """Run SourceKitten on one file and convert its substructure tree."""
        target = self._project_root / path
        args = [self._executable, "structure", "--file", str(target)]
        stdout = self._runner(args, self._timeout_seconds)
        try:
            structure = json.loads(stdout)
        except json.JSONDecodeError as error:
            raise ParserError(f"Invalid JSON from sourcekitten for {path}: {error}") from error
        if not isinstance(structure, dict):
            raise ParserError(f"Unexpected sourcekitten output for {path}.")
        logger.debug("Parsed %s with sourcekitten", path)
        source = text.encode("utf-8")
        chunks = _convert_items(structure.get("key.substructure"), path, source)
        return assign_chunk_ids(path, chunks)


def _convert_items(items: object, path: str, source: bytes) -> list[Chunk]:
    if not isinstance(items, list):
        return []
    chunks: list[Chunk] = []
    for item in items:
        if not isinstance(item, dict):
            continue
        kind = item.get("key.kind")
        name = item.get("key.name")
        offset = item.get("key.offset")
        length = item.get("key.length")
        if not isinstance(kind, str) or not isinstance(name, str):
            continue
        if not isinstance(offset, int) or not isinstance(length, int):
            continue
        if kind.startswith(_FUNCTION_KIND_PREFIX):
            chunks.append(_function_chunk(item, kind, name, offset, length, path, source))
        elif kind in _TYPE_KINDS:
            children = tuple(_convert_items(item.get("key.substructure"), path, source))
            chunks.append(_type_chunk(item, kind, name, offset, length, path, source, children))
    return chunks


def _function_chunk(
    item: dict[str, object],
    kind: str,
    name: str,
    offset: int,
    length: int,
    path: str,
    source: bytes,
) -> Chunk:
    typename = item.get("key.typename")
    signature = f"func {name}"
    if isinstance(typename, str) and typename:
        signature = f"{signature} -> {typename}"
    calls: tuple[str, ...] = ()
    body_offset = item.get("key.bodyoffset")
    body_length = item.get("key.bodylength")
    if isinstance(body_offset, int) and isinstance(body_length, int):
        raw_body = source[body_offset : body_offset + body_length]
        body = normalize_newlines(raw_body.decode("utf-8", errors="replace"))
        calls = extract_calls(
            mask_comments_and_strings(body, SWIFT_RULES),
            exclude=(name.split("(", 1)[0],),
            keywords=_CALL_KEYWORDS,
        )
    return _chunk(kind, name, signature, offset, length, path, source, calls=calls, children=())


def _type_chunk(
    item: dict[str, object],
    kind: str,
    name: str,
    offset: int,
    length: int,
    path: str,
    source: bytes,
    children: tuple[Chunk, ...],
) -> Chunk:
    keyword = kind.rsplit(".", 1)[-1]
    signature = f"{keyword} {name}"
    inherited = item.get("key.inheritedtypes")
    if isinstance(inherited, list):
        names = [entry.get("key.name") for entry in inherited if isinstance(entry, dict)]
        names = [entry for entry in names if isinstance(entry, str)]
        if names:
            signature = f"{signature}: {', '.join(names)}"
    return _chunk(kind, name, signature, offset, length, path, source, calls=(), children=children)


def _chunk(
    kind: str,
    name: str,
    signature: str,
    offset: int,
    length: int,
    path: str,
    source: bytes,
    *,
    calls: tuple[str, ...],
    children: tuple[Chunk, ...],
) -> Chunk:
    content = normalize_newlines(source[offset : offset + length].decode("utf-8", errors="replace"))
    start_line = source.count(b"\n", 0, offset) + 1
    return Chunk(
        id="",
        name=name,
        signature=signature,
        kind=kind,
        content=content,
        file_path=path,
        start_line=start_line,
        end_line=start_line + content.count("\n"),
        byte_offset=offset,
        byte_length=length,
        calls=calls,
        children=children,
    )
