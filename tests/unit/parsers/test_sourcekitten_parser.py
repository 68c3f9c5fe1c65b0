from __future__ import annotations

import json
from pathlib import Path

import pytest

from chunk_mcp.parsers import ParserError, SourceKittenSwiftParser
from chunk_mcp.parsers.sourcekitten import run_command

SOURCE = "class A: B {\n    func run() -> Int { return compute() }\n}\n"


def _structure() -> dict[str, object]:
    func_text = "func run() -> Int { return compute() }"
    func_offset = SOURCE.index(func_text)
    body_offset = SOURCE.index("{ return") + 1
    return {
        "key.substructure": [
            {
                "key.kind": "source.lang.swift.decl.class",
                "key.name": "A",
                "key.offset": 0,
                "key.length": SOURCE.rindex("}") + 1,
                "key.inheritedtypes": [{"key.name": "B"}],
                "key.substructure": [
                    {
                        "key.kind": "source.lang.swift.decl.function.method.instance",
                        "key.name": "run()",
                        "key.typename": "Int",
                        "key.offset": func_offset,
                        "key.length": len(func_text),
                        "key.bodyoffset": body_offset,
                        "key.bodylength": len(" return compute() "),
                    },
                    {"key.kind": "source.lang.swift.decl.var.instance", "key.name": "x"},
                ],
            }
        ]
    }


def test_sourcekitten_structure_is_converted_to_chunks(tmp_path: Path) -> None:
    calls: list[list[str]] = []

    def runner(args: list[str], timeout: float) -> str:
        calls.append(args)
        assert timeout == 5
        return json.dumps(_structure())

    parser = SourceKittenSwiftParser(
        project_root=tmp_path,
        executable="/opt/bin/sourcekitten",
        timeout_seconds=5,
        runner=runner,
    )
    (owner,) = parser.parse_file("Sources/A.swift", SOURCE)

    assert calls == [
        ["/opt/bin/sourcekitten", "structure", "--file", str(tmp_path / "Sources/A.swift")]
    ]
    assert owner.id == "Sources/A.swift::class A: B"
    assert owner.kind == "source.lang.swift.decl.class"
    assert (owner.start_line, owner.end_line) == (1, 3)
    (method,) = owner.children
    assert method.id == "Sources/A.swift::func run() -> Int"
    assert method.name == "run()"
    assert method.content == "func run() -> Int { return compute() }"
    assert (method.start_line, method.end_line) == (2, 2)
    assert method.calls == ("compute",)


def test_sourcekitten_invalid_json_raises_parser_error(tmp_path: Path) -> None:
    parser = SourceKittenSwiftParser(project_root=tmp_path, runner=lambda args, timeout: "oops")

    with pytest.raises(ParserError, match="Invalid JSON"):
        parser.parse_file("A.swift", SOURCE)


def test_missing_sourcekitten_binary_raises_parser_error(tmp_path: Path) -> None:
    with pytest.raises(ParserError, match="Command not found"):
        run_command([str(tmp_path / "no-such-sourcekitten"), "structure"], 5)
