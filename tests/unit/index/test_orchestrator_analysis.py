from __future__ import annotations

from pathlib import Path

from chunk_mcp.cache import Chunk
from chunk_mcp.config import default_config
from chunk_mcp.index import AnalysisOrchestrator
from chunk_mcp.parsers import (
    KotlinLexicalParser,
    ParserError,
    ParserRegistry,
    SwiftLexicalParser,
    build_parser_registry,
)


class _FailingParser:
    name = "failing"
    language = "swift"

    def supports_path(self, path: str) -> bool:
        return path.endswith("Broken.swift")

    def parse_file(self, path: str, text: str) -> list[Chunk]:
        raise ParserError(f"cannot parse {path}")


def _write(root: Path, relative: str, text: str) -> None:
    path = root / relative
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(text, encoding="utf-8")


def _orchestrator(root: Path, parsers: ParserRegistry | None = None) -> AnalysisOrchestrator:
    config = default_config(root)
    return AnalysisOrchestrator(
        project_root=root,
        cache_dir=config.cache_dir,
        parsers=parsers or build_parser_registry(config),
        index_config=config.index,
    )


def test_analyze_project_reports_summary_and_caches_chunks(tmp_path: Path) -> None:
    _write(tmp_path, "App/Hello.swift", "func hello() {\n    print(\"hi\")\n}\n")
    _write(tmp_path, "App/Main.kt", "fun main() {\n    run()\n}\n")
    _write(tmp_path, "README.md", "# readme\n")
    orchestrator = _orchestrator(tmp_path)

    summary = orchestrator.analyze_project()

    assert summary["analyzed_files"] == 2
    assert summary["failed_files"] == []
    assert summary["chunk_count"] == 2
    assert summary["project_path"] == str(tmp_path.resolve())
    assert isinstance(summary["duration_ms"], int)
    assert str(summary["timestamp"]).endswith("Z")
    assert orchestrator.store.list_keys() == [
        "App/Hello.swift::func hello()",
        "App/Main.kt::fun main()",
    ]
    record = orchestrator.metadata.get("App/Hello.swift")
    assert record is not None
    assert record.chunk_ids == ("App/Hello.swift::func hello()",)


def test_parser_failure_is_logged_and_analysis_continues(tmp_path: Path, caplog) -> None:
    _write(tmp_path, "App/Broken.swift", "func broken() {}\n")
    _write(tmp_path, "App/Good.swift", "func good() {}\n")
    registry = ParserRegistry()
    registry.register(_FailingParser())
    registry.register(SwiftLexicalParser())
    orchestrator = _orchestrator(tmp_path, registry)

    with caplog.at_level("ERROR", logger="chunk_mcp"):
        summary = orchestrator.analyze_project()

    assert summary["analyzed_files"] == 1
    assert summary["failed_files"] == ["App/Broken.swift"]
    assert orchestrator.metadata.get("App/Broken.swift") is None
    assert orchestrator.get_chunk("App/Good.swift::func good()") is not None
    assert "App/Broken.swift" in caplog.text


def test_reanalysis_is_idempotent(tmp_path: Path) -> None:
    _write(tmp_path, "A.swift", "class A {\n    func a() {}\n}\nfunc b() {}\n")
    orchestrator = _orchestrator(tmp_path)

    orchestrator.analyze_project()
    first_keys = orchestrator.store.list_keys()
    first_record = orchestrator.metadata.get("A.swift")
    orchestrator.analyze_project()

    second_record = orchestrator.metadata.get("A.swift")
    assert orchestrator.store.list_keys() == first_keys
    assert first_record is not None and second_record is not None
    assert second_record.chunk_ids == first_record.chunk_ids
    assert second_record.hash == first_record.hash


def test_analyze_project_clears_chunks_of_removed_files(tmp_path: Path) -> None:
    _write(tmp_path, "A.swift", "func a() {}\n")
    _write(tmp_path, "B.swift", "func b() {}\n")
    orchestrator = _orchestrator(tmp_path)
    orchestrator.analyze_project()

    (tmp_path / "B.swift").unlink()
    orchestrator.analyze_project()

    assert orchestrator.store.list_keys() == ["A.swift::func a()"]
    assert orchestrator.metadata.paths() == ["A.swift"]


def test_analyze_project_limits_to_subdirectory(tmp_path: Path) -> None:
    _write(tmp_path, "App/A.swift", "func a() {}\n")
    _write(tmp_path, "Tools/B.kt", "fun b() {}\n")
    registry = ParserRegistry()
    registry.register(SwiftLexicalParser())
    registry.register(KotlinLexicalParser())
    orchestrator = _orchestrator(tmp_path, registry)

    summary = orchestrator.analyze_project("Tools")

    assert summary["analyzed_files"] == 1
    assert summary["project_path"] == str(tmp_path.resolve() / "Tools")
    assert orchestrator.metadata.paths() == ["Tools/B.kt"]


def test_function_listing_and_lookup(tmp_path: Path) -> None:
    _write(
        tmp_path,
        "Greeter.swift",
        "\n".join(
            [
                "class Greeter {",
                "    func greet(name: String) -> String {",
                "        return name",
                "    }",
                "    func wave() {}",
                "}",
                "func helper() {}",
            ]
        ),
    )
    orchestrator = _orchestrator(tmp_path)
    orchestrator.analyze_project()

    listed = orchestrator.list_functions_in_file("Greeter.swift")
    found = orchestrator.find_functions("Greeter.swift", query="greet")
    chunk = orchestrator.get_function_chunk("Greeter.swift", "func wave()")

    assert [item.signature for item in listed] == [
        "func greet(name:) -> String",
        "func wave()",
        "func helper()",
    ]
    assert [item.id for item in found] == ["Greeter.swift::func greet(name:) -> String"]
    assert listed[0].to_dict()["start_line"] == 2
    assert chunk is not None
    assert chunk.code_content == "```swift\nfunc wave() {}\n```"
    assert orchestrator.get_function_chunk("Greeter.swift", "func missing()") is None
    assert orchestrator.list_functions_in_file("Unknown.swift") == []


def test_absolute_paths_inside_root_are_normalized(tmp_path: Path) -> None:
    _write(tmp_path, "App/A.swift", "func a() {}\n")
    orchestrator = _orchestrator(tmp_path)
    orchestrator.analyze_project()

    absolute = str((tmp_path / "App" / "A.swift").resolve())

    assert orchestrator.normalize_path(absolute) == "App/A.swift"
    assert orchestrator.normalize_path("./App/A.swift") == "App/A.swift"
    assert [item.name for item in orchestrator.list_functions_in_file(absolute)] == ["a()"]


def test_status_reports_occupancy(tmp_path: Path) -> None:
    _write(tmp_path, "A.swift", "func a() {}\nfunc b() {}\n")
    orchestrator = _orchestrator(tmp_path)
    orchestrator.analyze_project()

    status = orchestrator.status()

    assert status["files_tracked"] == 1
    assert status["chunks_stored"] == 2
    assert status["memory_entries"] == 2
    assert status["parsers"] == ["swift_lexical", "kotlin_lexical", "python"]
