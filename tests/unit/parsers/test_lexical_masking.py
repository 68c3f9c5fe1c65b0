from __future__ import annotations

from chunk_mcp.parsers import (
    KotlinLexicalParser,
    SwiftLexicalParser,
    build_layout,
    extract_calls,
    mask_comments_and_strings,
)
from chunk_mcp.parsers.swift import SWIFT_RULES


def test_masking_preserves_offsets_and_line_breaks() -> None:
    text = 'a /* x\ny */ "s{" // c\nb'

    masked = mask_comments_and_strings(text)

    assert len(masked) == len(text)
    assert masked.count("\n") == text.count("\n")
    assert "{" not in masked
    assert masked.startswith("a ")
    assert masked.endswith("b")


def test_layout_tracks_brace_depth_and_lines() -> None:
    layout = build_layout("f {\n  g { }\n}\n")

    assert layout.line_of(0) == 1
    assert layout.line_of(layout.text.index("g")) == 2
    assert layout.braces.depth_at(layout.text.index("g")) == 1
    assert layout.braces.unclosed_opening == 0
    assert layout.braces.closing[2] == layout.text.rindex("}")


def test_extract_calls_keeps_first_seen_order_without_keywords() -> None:
    calls = extract_calls(
        "if (x) { b(); a(1); b(2); self_call() }",
        exclude=("self_call",),
        keywords=frozenset({"if"}),
    )

    assert calls == ("b", "a")


def test_kotlin_template_with_nested_string_keeps_braces_balanced() -> None:
    source = (
        "fun a() {\n"
        '    println("${if (x) "{" else "b"}")\n'
        "}\n"
        "fun b() {}\n"
    )

    chunks = KotlinLexicalParser().parse_file("T.kt", source)

    assert [chunk.signature for chunk in chunks] == ["fun a()", "fun b()"]
    assert chunks[0].end_line == 3


def test_swift_interpolation_with_nested_string_keeps_braces_balanced() -> None:
    source = (
        "func a() {\n"
        '    print("\\(flag ? "{" : "}") done")\n'
        "}\n"
        "func b() {}\n"
    )

    chunks = SwiftLexicalParser().parse_file("T.swift", source)

    assert [chunk.signature for chunk in chunks] == ["func a()", "func b()"]
    assert chunks[0].end_line == 3


def test_escaped_interpolation_marker_stays_inside_string() -> None:
    text = 'let s = "\\\\(" + "{"\n'

    masked = mask_comments_and_strings(text, SWIFT_RULES)

    assert len(masked) == len(text)
    assert "{" not in masked
    assert "+" in masked
