"""Lexical Kotlin parser for functions, types, and properties."""

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

KOTLIN_KIND_PREFIX = "source.lang.kotlin.decl"
KOTLIN_RULES = LexicalRules(
    line_comment_prefixes=("//",),
    block_comment_pairs=(("/*", "*/"),),
    string_delimiters=('"""', '"', "'"),
    interpolation_pairs=(("${", "}"),),
)

_MODIFIER = (
    r"(?:@[A-Za-z_][\w.:]*(?:\([^)\n]*\))?"
    r"|public|private|protected|internal|open|final|abstract|sealed|override"
    r"|suspend|inline|noinline|crossinline|tailrec|operator|infix|external|const"
    r"|lateinit|data|enum|annotation|inner|value|expect|actual|companion)"
)
_DECL_RE = re.compile(
    rf"^[ \t]*((?:{_MODIFIER}\s+)*)(fun\s+interface|fun|class|interface|object|val|var)\b",
    re.MULTILINE,
)
_CONSTRUCTOR_RE = re.compile(
    r"(?:(?:public|private|protected|internal|@[A-Za-z_][\w.]*)\s+)*constructor\b\s*"
)
_WHERE_RE = re.compile(r"\bwhere\b")
_BY_RE = re.compile(r"\bby\b")

_TYPE_KEYWORDS = frozenset({"class", "interface", "object", "fun interface"})
_CALL_KEYWORDS = frozenset(
    {
        "if",
        "for",
        "while",
        "when",
        "return",
        "val",
        "var",
        "try",
        "catch",
        "fun",
        "super",
        "this",
        "throw",
        "is",
        "as",
        "in",
        "do",
        "object",
        "constructor",
        "init",
    }
)


@dataclass(slots=True, frozen=True)
class _Header:
    name: str
    signature: str
    kind: str
    body_search_start: int


class KotlinLexicalParser:
    """Brace-matching Kotlin parser that needs no JVM."""

    name = "kotlin_lexical"
    language = "kotlin"

    def supports_path(self, path: str) -> bool:
        """Return True when path is a Kotlin source or script file."""
        lowered = path.lower()
        return lowered.endswith(".kt") or lowered.endswith(".kts")

    def parse_file(self, path: str, text: str) -> list[Chunk]:
        """Extract functions, classes, objects, and properties as a chunk tree."""
        layout = build_layout(text, KOTLIN_RULES)
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
            if layout.braces.depth_at(match.start(2)) != depth:
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
        keyword = " ".join(match.group(2).split())
        modifiers = match.group(1).split()
        if keyword in _TYPE_KEYWORDS:
            header = _type_header(layout, keyword, modifiers, match.end(2))
        elif keyword == "fun":
            header = _function_header(layout, match.end(2), in_type=in_type)
        else:
            header = _property_header(layout, keyword, match.end(2))
        if header is None:
            return None

        start = match.start(1)
        end, body_open = find_declaration_end(
            layout,
            header.body_search_start,
            expression_bodies=keyword not in _TYPE_KEYWORDS,
        )
        end = trim_end(layout.text, start, end)
        if end <= start:
            return None

        children: tuple[Chunk, ...] = ()
        calls: tuple[str, ...] = ()
        if keyword in _TYPE_KEYWORDS and body_open is not None:
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
        elif keyword == "fun":
            body_start = _body_start(layout, header.body_search_start, end, body_open)
            if body_start is not None:
                calls = extract_calls(
                    layout.masked[body_start:end],
                    exclude=(header.name,),
                    keywords=_CALL_KEYWORDS,
                )

        chunk = Chunk(
            id="",
            name=header.name,
            signature=header.signature,
            kind=header.kind,
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


def _function_header(layout: SourceLayout, index: int, *, in_type: bool) -> _Header | None:
    masked = layout.masked
    cursor = skip_spaces(masked, index)
    generics = ""
    if cursor < len(masked) and masked[cursor] == "<":
        generic_close = find_closing(masked, cursor, "<", ">")
        if generic_close is None:
            return None
        generics = collapse_whitespace(layout.text[cursor : generic_close + 1])
        cursor = skip_spaces(masked, generic_close + 1)

    paren = _qualified_name_end(masked, cursor)
    if paren is None or masked[paren] != "(":
        return None
    receiver, name = _split_receiver(layout.text[cursor:paren].strip())
    if not name:
        return None
    params_close = find_closing(masked, paren, "(", ")")
    if params_close is None:
        return None
    params = collapse_whitespace(layout.text[paren : params_close + 1])

    signature = "fun "
    if generics:
        signature += f"{generics} "
    if receiver:
        signature += f"{receiver}."
    signature += f"{name}{params}"
    return_type = _declared_type(layout, params_close + 1)
    if return_type:
        signature += f": {return_type}"
    kind = f"{KOTLIN_KIND_PREFIX}.function.method" if in_type else f"{KOTLIN_KIND_PREFIX}.function"
    return _Header(name=name, signature=signature, kind=kind, body_search_start=params_close + 1)


def _type_header(
    layout: SourceLayout,
    keyword: str,
    modifiers: list[str],
    index: int,
) -> _Header | None:
    masked = layout.masked
    cursor = skip_spaces(masked, index)
    identifier = read_identifier(masked, cursor)
    if identifier is not None:
        name, cursor = identifier
        name = name.strip("`")
    elif keyword == "object" and "companion" in modifiers:
        name = ""
    else:
        return None

    type_word, kind = _type_word_and_kind(keyword, modifiers)
    generics = ""
    if cursor < len(masked) and masked[cursor] == "<":
        generic_close = find_closing(masked, cursor, "<", ">")
        if generic_close is None:
            return None
        generics = collapse_whitespace(layout.text[cursor : generic_close + 1])
        cursor = generic_close + 1

    constructor = ""
    ctor_cursor = skip_spaces(masked, cursor)
    keyword_match = _CONSTRUCTOR_RE.match(masked, ctor_cursor)
    if keyword_match is not None:
        ctor_cursor = keyword_match.end()
    if ctor_cursor < len(masked) and masked[ctor_cursor] == "(":
        ctor_close = find_closing(masked, ctor_cursor, "(", ")")
        if ctor_close is None:
            return None
        constructor = collapse_whitespace(layout.text[ctor_cursor : ctor_close + 1])
        cursor = ctor_close + 1

    signature = f"{type_word} {name}{generics}{constructor}".rstrip()
    header_end, body_open = find_declaration_end(layout, cursor)
    clause_end = body_open if body_open is not None else header_end
    colon = skip_spaces(masked, cursor)
    if colon < clause_end and masked[colon] == ":":
        where = _WHERE_RE.search(masked, colon, clause_end)
        supertypes_end = where.start() if where is not None else clause_end
        supertypes = collapse_whitespace(layout.text[colon + 1 : supertypes_end])
        if supertypes:
            signature = f"{signature} : {supertypes}"
    return _Header(
        name=name or "Companion",
        signature=signature,
        kind=kind,
        body_search_start=cursor,
    )


def _property_header(layout: SourceLayout, keyword: str, index: int) -> _Header | None:
    masked = layout.masked
    cursor = skip_spaces(masked, index)
    if cursor < len(masked) and masked[cursor] == "<":
        generic_close = find_closing(masked, cursor, "<", ">")
        if generic_close is None:
            return None
        cursor = skip_spaces(masked, generic_close + 1)
    if cursor >= len(masked) or masked[cursor] == "(":
        return None

    name_end = cursor
    while name_end < len(masked) and masked[name_end] not in ":=\n{;\t ":
        name_end += 1
    _, name = _split_receiver(layout.text[cursor:name_end])
    if not name:
        return None
    signature = f"{keyword} {name}"
    declared = _declared_type(layout, name_end)
    if declared:
        signature += f": {declared}"
    kind = f"{KOTLIN_KIND_PREFIX}.property"
    return _Header(name=name, signature=signature, kind=kind, body_search_start=name_end)


def _type_word_and_kind(keyword: str, modifiers: list[str]) -> tuple[str, str]:
    if keyword == "class" and "data" in modifiers:
        return "data class", f"{KOTLIN_KIND_PREFIX}.class.data"
    if keyword == "class" and "enum" in modifiers:
        return "enum class", f"{KOTLIN_KIND_PREFIX}.class.enum"
    if keyword == "class":
        return "class", f"{KOTLIN_KIND_PREFIX}.class"
    if keyword == "object" and "companion" in modifiers:
        return "companion object", f"{KOTLIN_KIND_PREFIX}.object.companion"
    if keyword == "object":
        return "object", f"{KOTLIN_KIND_PREFIX}.object"
    return "interface", f"{KOTLIN_KIND_PREFIX}.interface"


def _declared_type(layout: SourceLayout, index: int) -> str:
    masked = layout.masked
    colon = skip_spaces(masked, index)
    if colon >= len(masked) or masked[colon] != ":":
        return ""
    cursor = colon + 1
    while cursor < len(masked) and masked[cursor] not in "{=\n;":
        if masked[cursor] == "(":
            close = find_closing(masked, cursor, "(", ")")
            if close is None:
                break
            cursor = close + 1
            continue
        cursor += 1
    type_text = masked[colon + 1 : cursor]
    for stop_re in (_WHERE_RE, _BY_RE):
        stop = stop_re.search(type_text)
        if stop is not None:
            type_text = type_text[: stop.start()]
    return collapse_whitespace(layout.text[colon + 1 : colon + 1 + len(type_text)])


def _body_start(layout: SourceLayout, start: int, end: int, body_open: int | None) -> int | None:
    if body_open is not None:
        return body_open + 1
    cursor = start
    masked = layout.masked
    while cursor < end:
        char = masked[cursor]
        if char == "(":
            close = find_closing(masked, cursor, "(", ")")
            if close is None:
                return None
            cursor = close + 1
            continue
        if char == "=":
            return cursor + 1
        cursor += 1
    return None


def _qualified_name_end(masked: str, index: int) -> int | None:
    depth = 0
    cursor = index
    while cursor < len(masked):
        char = masked[cursor]
        if char == "<":
            depth += 1
        elif char == ">" and depth > 0:
            depth -= 1
        elif depth == 0 and char in "(\n{=":
            return cursor
        cursor += 1
    return None


def _split_receiver(token: str) -> tuple[str, str]:
    depth = 0
    split_at = -1
    in_backticks = False
    for position, char in enumerate(token):
        if char == "`":
            in_backticks = not in_backticks
        elif in_backticks:
            continue
        elif char == "<":
            depth += 1
        elif char == ">" and depth > 0:
            depth -= 1
        elif char == "." and depth == 0:
            split_at = position
    if split_at < 0:
        return "", token.strip().strip("`")
    return token[:split_at].strip(), token[split_at + 1 :].strip().strip("`")
