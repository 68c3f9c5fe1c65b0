"""Deterministic lexical scanning helpers for brace-language parsers."""

from __future__ import annotations

import bisect
import re
from dataclasses import dataclass

from chunk_mcp.parsers.base import normalize_newlines

_CALL_RE = re.compile(r"\b([A-Za-z_][A-Za-z0-9_]*)\s*\(")
_IDENTIFIER_RE = re.compile(r"`[^`\n]+`|[A-Za-z_][A-Za-z0-9_]*")
_INTERPOLATION_OPENERS = {")": "(", "}": "{"}


@dataclass(slots=True, frozen=True)
class LexicalRules:
    """Configurable lexical markers used while masking non-code text."""

    line_comment_prefixes: tuple[str, ...] = ("//",)
    block_comment_pairs: tuple[tuple[str, str], ...] = (("/*", "*/"),)
    string_delimiters: tuple[str, ...] = ('"""', '"')
    escape_char: str = "\\"
    interpolation_pairs: tuple[tuple[str, str], ...] = ()


@dataclass(slots=True)
class _MaskState:
    mode: str
    marker: str
    depth: int = 0


@dataclass(slots=True, frozen=True)
class BraceScanResult:
    """Offset-based brace matching for one masked text."""

    closing: dict[int, int]
    depths: list[int]
    unmatched_closing: int
    unclosed_opening: int

    def depth_at(self, offset: int) -> int:
        """Return the number of braces left open before an offset."""
        if not self.depths:
            return 0
        return self.depths[min(offset, len(self.depths) - 1)]


@dataclass(slots=True, frozen=True)
class SourceLayout:
    """Newline-normalized source with its masked twin and brace structure."""

    text: str
    masked: str
    braces: BraceScanResult
    line_starts: tuple[int, ...]

    def line_of(self, offset: int) -> int:
        """Return the 1-based line holding an offset."""
        return bisect.bisect_right(self.line_starts, offset)

    def byte_offset(self, offset: int) -> int:
        """Return the UTF-8 byte position of a character offset."""
        return len(self.text[:offset].encode("utf-8"))

    def byte_length(self, start: int, end: int) -> int:
        """Return the UTF-8 byte length of a character range."""
        return len(self.text[start:end].encode("utf-8"))


def build_layout(text: str, rules: LexicalRules | None = None) -> SourceLayout:
    """Normalize newlines, mask non-code text and index braces and lines."""
    normalized = normalize_newlines(text)
    masked = mask_comments_and_strings(normalized, rules)
    line_starts = [0]
    for index, char in enumerate(normalized):
        if char == "\n":
            line_starts.append(index + 1)
    return SourceLayout(
        text=normalized,
        masked=masked,
        braces=scan_brace_pairs(masked),
        line_starts=tuple(line_starts),
    )


def mask_comments_and_strings(text: str, rules: LexicalRules | None = None) -> str:
    """Mask comments and strings while preserving original line count and character offsets.

    Interpolated expressions inside strings are masked too. They are scanned
    with their own bracket depth so nested string literals and braces inside
    them never end the outer string early.
    """
    active_rules = rules or LexicalRules()
    line_prefixes = tuple(
        sorted(
            (prefix for prefix in active_rules.line_comment_prefixes if prefix),
            key=len,
            reverse=True,
        )
    )
    block_pairs = tuple(
        sorted(
            ((start, end) for start, end in active_rules.block_comment_pairs if start and end),
            key=lambda pair: len(pair[0]),
            reverse=True,
        )
    )
    string_delimiters = tuple(
        sorted(
            (marker for marker in active_rules.string_delimiters if marker),
            key=len,
            reverse=True,
        )
    )
    interpolations = active_rules.interpolation_pairs

    chars = list(text)
    length = len(text)
    index = 0
    stack: list[_MaskState] = []

    def blank(start: int, count: int) -> None:
        for offset in range(count):
            if chars[start + offset] != "\n":
                chars[start + offset] = " "

    while index < length:
        if not stack:
            line_marker = _match_any(text, index, line_prefixes)
            if line_marker is not None:
                end = text.find("\n", index)
                end = length if end == -1 else end
                blank(index, end - index)
                index = end
                continue

            block_marker = _match_block_start(text, index, block_pairs)
            if block_marker is not None:
                start_marker, end_marker = block_marker
                end = text.find(end_marker, index + len(start_marker))
                end = length if end == -1 else end + len(end_marker)
                blank(index, end - index)
                index = end
                continue

            string_marker = _match_any(text, index, string_delimiters)
            if string_marker is not None:
                blank(index, len(string_marker))
                stack.append(_MaskState("string", string_marker))
                index += len(string_marker)
                continue

            index += 1
            continue

        state = stack[-1]
        if state.mode == "string":
            marker = state.marker
            if '"' in marker:
                opened = _match_block_start(text, index, interpolations)
                if opened is not None and not _is_escaped(
                    text, index, opened[0][:1], active_rules.escape_char
                ):
                    blank(index, len(opened[0]))
                    stack.append(_MaskState("interpolation", opened[1]))
                    index += len(opened[0])
                    continue
            if text.startswith(marker, index) and not _is_escaped(
                text, index, marker, active_rules.escape_char
            ):
                blank(index, len(marker))
                stack.pop()
                index += len(marker)
                continue
            blank(index, 1)
            index += 1
            continue

        closer = state.marker
        string_marker = _match_any(text, index, string_delimiters)
        if string_marker is not None:
            blank(index, len(string_marker))
            stack.append(_MaskState("string", string_marker))
            index += len(string_marker)
            continue
        if text[index] == _INTERPOLATION_OPENERS.get(closer):
            state.depth += 1
        elif text.startswith(closer, index):
            if state.depth == 0:
                blank(index, len(closer))
                stack.pop()
                index += len(closer)
                continue
            state.depth -= 1
        blank(index, 1)
        index += 1

    return "".join(chars)



def scan_brace_pairs(
    masked_text: str,
    open_char: str = "{",
    close_char: str = "}",
) -> BraceScanResult:
    """Match brace pairs by offset and record the open-brace depth of every offset."""
    if len(open_char) != 1 or len(close_char) != 1:
        raise ValueError("open_char and close_char must be single characters.")

    stack: list[int] = []
    closing: dict[int, int] = {}
    depths: list[int] = []
    unmatched_closing = 0

    for index, char in enumerate(masked_text):
        depths.append(len(stack))
        if char == open_char:
            stack.append(index)
        elif char == close_char:
            if not stack:
                unmatched_closing += 1
            else:
                closing[stack.pop()] = index

    return BraceScanResult(
        closing=closing,
        depths=depths,
        unmatched_closing=unmatched_closing,
        unclosed_opening=len(stack),
    )


def find_closing(masked_text: str, open_index: int, open_char: str, close_char: str) -> int | None:
    """Return the offset closing the bracket at `open_index`, if balanced."""
    depth = 0
    for index in range(open_index, len(masked_text)):
        char = masked_text[index]
        if char == open_char:
            depth += 1
        elif char == close_char:
            depth -= 1
            if depth == 0:
                return index
    return None


def skip_spaces(masked_text: str, index: int, *, newlines: bool = False) -> int:
    """Advance past blanks; newlines are skipped only when asked."""
    blanks = " \t\n" if newlines else " \t"
    length = len(masked_text)
    while index < length and masked_text[index] in blanks:
        index += 1
    return index


def read_identifier(masked_text: str, index: int) -> tuple[str, int] | None:
    """Read one identifier (backticks allowed) starting at `index`."""
    match = _IDENTIFIER_RE.match(masked_text, index)
    if match is None:
        return None
    return match.group(0), match.end()


def find_declaration_end(
    layout: SourceLayout,
    index: int,
    *,
    expression_bodies: bool = False,
) -> tuple[int, int | None]:
    """Find where a declaration whose header continues at `index` ends.

    Returns the exclusive end offset and the offset of its body brace, if any.
    A header line without a body ends at the line break unless the next
    non-blank character opens the body.
    """
    masked = layout.masked
    length = len(masked)
    cursor = index
    while cursor < length:
        char = masked[cursor]
        if char == "{":
            close = layout.braces.closing.get(cursor)
            if close is None:
                return length, cursor
            return close + 1, cursor
        if char == "(":
            close = find_closing(masked, cursor, "(", ")")
            cursor = length if close is None else close + 1
            continue
        if char == "=" and expression_bodies:
            return _expression_end(layout, cursor + 1), None
        if char == "\n":
            following = skip_spaces(masked, cursor, newlines=True)
            if following < length and masked[following] == "{":
                cursor = following
                continue
            return cursor, None
        if char in "};":
            return cursor, None
        cursor += 1
    return length, None


def trim_end(text: str, start: int, end: int) -> int:
    """Move an exclusive end offset left past trailing whitespace."""
    while end > start and text[end - 1] in " \t\n":
        end -= 1
    return end


def extract_calls(
    masked_body: str,
    exclude: tuple[str, ...],
    keywords: frozenset[str],
) -> tuple[str, ...]:
    """Return called names in first-seen order, without keywords or excluded names."""
    calls: list[str] = []
    for match in _CALL_RE.finditer(masked_body):
        name = match.group(1)
        if name in keywords or name in exclude or name in calls:
            continue
        calls.append(name)
    return tuple(calls)


def _expression_end(layout: SourceLayout, index: int) -> int:
    masked = layout.masked
    length = len(masked)
    cursor = index
    while cursor < length:
        char = masked[cursor]
        if char == "{":
            close = layout.braces.closing.get(cursor)
            cursor = length if close is None else close + 1
            continue
        if char == "(":
            close = find_closing(masked, cursor, "(", ")")
            cursor = length if close is None else close + 1
            continue
        if char in "\n};":
            return cursor
        cursor += 1
    return length


def _match_any(text: str, index: int, markers: tuple[str, ...]) -> str | None:
    for marker in markers:
        if text.startswith(marker, index):
            return marker
    return None


def _match_block_start(
    text: str,
    index: int,
    pairs: tuple[tuple[str, str], ...],
) -> tuple[str, str] | None:
    for start, end in pairs:
        if text.startswith(start, index):
            return start, end
    return None


def _is_escaped(text: str, index: int, marker: str, escape_char: str) -> bool:
    if len(marker) > 1:
        return False
    backslashes = 0
    cursor = index - 1
    while cursor >= 0 and text[cursor] == escape_char:
        backslashes += 1
        cursor -= 1
    return backslashes % 2 == 1
