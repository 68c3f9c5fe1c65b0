"""Lexical Swift parser producing SourceKitten-style declaration chunks."""

from __future__ import annotations

import re
from dataclasses import dataclass

from chunk_mcp.cache.models import Chunk
from chunk_mcp.parsers.base import assign_chunk_ids, collapse_whitespace
from chunk_mcp.parsers.lexical import (
    LexicalRules,
    SourceLayout,
    build_layout,
    extract_calls,
    find_closing,
    find_declaration_end,
    read_identifier,
    skip_spaces,
    trim_end,
)

SWIFT_KIND_PREFIX = "source.lang.swift.decl"
SWIFT_RULES = LexicalRules(
    line_comment_prefixes=("//",),
    block_comment_pairs=(("/*", "*/"),),
    string_delimiters=('"""', '"'),
    interpolation_pairs=(("\\(", ")"),),
)

_MODIFIER = (
    r"(?:@[A-Za-z_][\w.]*(?:\([^)\n]*\))?"
    r"|(?:private|fileprivate|internal|public|open|package)(?:\(set\))?"
    r"|final|static|class|override|mutating|nonmutating|convenience|required|dynamic"
    r"|lazy|optional|indirect|nonisolated|isolated|distributed|prefix|postfix|infix)"
)
_DECL_RE = re.compile(
    rf"^[ \t]*((?:{_MODIFIER}\s+)*)"
    r"(func|init|deinit|subscript|class|struct|enum|protocol|extension|actor)\b",
    re.MULTILINE,
)
_TYPE_PATH_RE = re.compile(r"[A-Za-z_][\w.]*")
_OPERATOR_NAME_RE = re.compile(r"[^\s(<]+")
_WHERE_RE = re.compile(r"\bwhere\b")

_TYPE_KEYWORDS = frozenset({"class", "struct", "enum", "protocol", "extension", "actor"})
_NOT_TYPE_NAMES = frozenset(
    {"var", "let", "func", "subscript", "init", "deinit", "typealias", "case", "associatedtype"}
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
        "repeat",
        "func",
        "init",
        "self",
        "super",
        "as",
        "is",
        "in",
        "where",
        "case",
        "throw",
        "await",
        "defer",
    }
)


@dataclass(slots=True, frozen=True)
class _Header:
    name: str
    signature: str
    body_search_start: int


class SwiftLexicalParser:
    """Brace-matching Swift parser that needs no toolchain."""

    name = "swift_lexical"
    language = "swift"

    def supports_path(self, path: str) -> bool:
        """Return True when path is a Swift source file."""
        return path.lower().endswith(".swift")

    def parse_file(self, path: str, text: str) -> list[Chunk]:
        """Extract types, functions, methods, and initializers as a chunk tree."""
        layout = build_layout(text, SWIFT_RULES)
        chunks = self._scan_scope(layout, path, 0, len(layout.masked), depth=0, in_type=False)
        return assign_chunk_ids(path, chunks)

    def _scan_scope(
        self,
        layout: SourceLayout,
        path: str,
        start: int,
        end: int,
        *,
        depth: int,
        in_type: bool,
    ) -> list[Chunk]:
        chunks: list[Chunk] = []
        cursor = start
        while cursor < end:
            match = _DECL_RE.search(layout.masked, cursor, end)
            if match is None:
                break
            keyword_start = match.start(2)
            if layout.braces.depth_at(keyword_start) != depth:
                cursor = match.end()
                continue
            parsed = self._parse_declaration(layout, path, match, depth=depth, in_type=in_type)
            if parsed is None:
                cursor = match.end()
                continue
            chunk, declaration_end = parsed
            chunks.append(chunk)
            cursor = max(declaration_end, match.end())
        return chunks

    def _parse_declaration(
        self,
        layout: SourceLayout,
        path: str,
        match: re.Match[str],
        *,
        depth: int,
        in_type: bool,
    ) -> tuple[Chunk, int] | None:
        keyword = match.group(2)
        modifiers = match.group(1).split()
        if keyword in _TYPE_KEYWORDS:
            header = _type_header(layout, keyword, match.end(2))
        else:
            header = _callable_header(layout, keyword, match.end(2))
        if header is None:
            return None

        start = match.start(1)
        end, body_open = find_declaration_end(layout, header.body_search_start)
        end = trim_end(layout.text, start, end)
        if end <= start:
            return None

        children: tuple[Chunk, ...] = ()
        calls: tuple[str, ...] = ()
        if keyword in _TYPE_KEYWORDS:
            kind = f"{SWIFT_KIND_PREFIX}.{keyword}"
            if body_open is not None:
                children = tuple(
                    self._scan_scope(
                        layout,
                        path,
                        body_open + 1,
                        end,
                        depth=depth + 1,
                        in_type=True,
                    )
                )
        else:
            kind = _callable_kind(keyword, modifiers, in_type)
            if body_open is not None:
                simple_name = header.name.split("(", 1)[0]
                calls = extract_calls(
                    layout.masked[body_open + 1 : end - 1],
                    exclude=(simple_name,),
                    keywords=_CALL_KEYWORDS,
                )

        chunk = Chunk(
            id="",
            name=header.name,
            signature=header.signature,
            kind=kind,
            content=layout.text[start:end],
            file_path=path,
            start_line=layout.line_of(start),
            end_line=layout.line_of(end - 1),
            byte_offset=layout.byte_offset(start),
            byte_length=layout.byte_length(start, end),
            calls=calls,
            children=children,
        )
        return chunk, end


def _callable_kind(keyword: str, modifiers: list[str], in_type: bool) -> str:
    if keyword == "subscript":
        return f"{SWIFT_KIND_PREFIX}.function.subscript"
    if keyword in {"init", "deinit"} or in_type:
        if "static" in modifiers:
            return f"{SWIFT_KIND_PREFIX}.function.method.static"
        if "class" in modifiers:
            return f"{SWIFT_KIND_PREFIX}.function.method.class"
        return f"{SWIFT_KIND_PREFIX}.function.method.instance"
    return f"{SWIFT_KIND_PREFIX}.function.free"


def _callable_header(layout: SourceLayout, keyword: str, index: int) -> _Header | None:
    masked = layout.masked
    if keyword == "deinit":
        return _Header(name="deinit", signature="func deinit", body_search_start=index)

    cursor = skip_spaces(masked, index)
    if keyword == "func":
        identifier = read_identifier(masked, cursor)
        if identifier is None:
            operator = _OPERATOR_NAME_RE.match(masked, cursor)
            if operator is None:
                return None
            base_name, cursor = operator.group(0), operator.end()
        else:
            base_name, cursor = identifier
    else:
        base_name = keyword
        while cursor < len(masked) and masked[cursor] in "?!":
            cursor += 1

    cursor = skip_spaces(masked, cursor)
    if cursor < len(masked) and masked[cursor] == "<":
        generic_close = find_closing(masked, cursor, "<", ">")
        if generic_close is None:
            return None
        cursor = skip_spaces(masked, generic_close + 1)
    if cursor >= len(masked) or masked[cursor] != "(":
        return None
    params_close = find_closing(masked, cursor, "(", ")")
    if params_close is None:
        return None

    labels = _argument_labels(masked[cursor + 1 : params_close], subscript=keyword == "subscript")
    name = f"{base_name}({''.join(f'{label}:' for label in labels)})"
    header_end, body_open = find_declaration_end(layout, params_close + 1)
    type_end = body_open if body_open is not None else header_end
    return_type = _return_type(layout, params_close + 1, type_end)
    signature = f"func {name}"
    if return_type:
        signature = f"{signature} -> {return_type}"
    return _Header(name=name, signature=signature, body_search_start=params_close + 1)


def _type_header(layout: SourceLayout, keyword: str, index: int) -> _Header | None:
    masked = layout.masked
    cursor = skip_spaces(masked, index)
    if keyword == "extension":
        path_match = _TYPE_PATH_RE.match(masked, cursor)
        if path_match is None:
            return None
        name, cursor = path_match.group(0), path_match.end()
    else:
        identifier = read_identifier(masked, cursor)
        if identifier is None:
            return None
        name, cursor = identifier
    if name in _NOT_TYPE_NAMES:
        return None

    generics = ""
    if cursor < len(masked) and masked[cursor] == "<":
        generic_close = find_closing(masked, cursor, "<", ">")
        if generic_close is None:
            return None
        generics = collapse_whitespace(layout.text[cursor : generic_close + 1])
        cursor = generic_close + 1

    header_end, body_open = find_declaration_end(layout, cursor)
    clause_end = body_open if body_open is not None else header_end
    signature = f"{keyword} {name}{generics}"
    colon = skip_spaces(masked, cursor)
    if colon < clause_end and masked[colon] == ":":
        where = _WHERE_RE.search(masked, colon, clause_end)
        inherited_end = where.start() if where is not None else clause_end
        inherited = collapse_whitespace(layout.text[colon + 1 : inherited_end])
        if inherited:
            signature = f"{signature}: {inherited}"
    return _Header(name=name, signature=signature, body_search_start=cursor)


def _argument_labels(params: str, *, subscript: bool) -> list[str]:
    labels: list[str] = []
    for param in _split_top_level(params):
        head = param.split(":", 1)[0].split()
        if not head:
            continue
        if len(head) == 1:
            labels.append("_" if subscript else head[0])
        else:
            labels.append(head[0])
    return labels


def _split_top_level(text: str) -> list[str]:
    parts: list[str] = []
    depth = 0
    current: list[str] = []
    for char in text:
        if char in "([<":
            depth += 1
        elif char in ")]>" and depth > 0:
            depth -= 1
        if char == "," and depth == 0:
            parts.append("".join(current))
            current = []
            continue
        current.append(char)
    parts.append("".join(current))
    return [part.strip() for part in parts if part.strip()]


def _return_type(layout: SourceLayout, start: int, end: int) -> str:
    arrow = layout.masked.find("->", start, end)
    if arrow < 0:
        return ""
    where = _WHERE_RE.search(layout.masked, arrow, end)
    type_end = where.start() if where is not None else end
    return collapse_whitespace(layout.text[arrow + 2 : type_end])
