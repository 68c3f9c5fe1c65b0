from __future__ import annotations

from pathlib import Path

import pytest

from chunk_mcp.config import default_config
from chunk_mcp.index import AnalysisOrchestrator
from chunk_mcp.parsers import build_parser_registry

CHUNK_ID = "Hello.swift::func hello()"


def _orchestrator(root: Path, **kwargs: int) -> AnalysisOrchestrator:
    config = default_config(root)
    return AnalysisOrchestrator(
        project_root=root,
        cache_dir=config.cache_dir,
        parsers=build_parser_registry(config),
        index_config=config.index,
        **kwargs,
    )


def test_changed_file_is_reparsed_on_read(tmp_path: Path) -> None:
    source = tmp_path / "Hello.swift"
    source.write_text('func hello() { print("v1") }\n', encoding="utf-8")
    orchestrator = _orchestrator(tmp_path)
    orchestrator.analyze_project()
    first = orchestrator.get_chunk(CHUNK_ID)
    assert first is not None
    assert 'print("v1")' in first.code_content

    source.write_text('func hello() { print("v2") }\n', encoding="utf-8")
    second = orchestrator.get_chunk(CHUNK_ID)

    assert second is not None
    assert second.chunk_id == CHUNK_ID
    assert 'print("v2")' in second.code_content
    assert 'print("v1")' not in second.code_content


def test_ensure_latest_reparses_only_on_change(tmp_path: Path) -> None:
    source = tmp_path / "Hello.swift"
    source.write_text("func hello() {}\n", encoding="utf-8")
    orchestrator = _orchestrator(tmp_path)
    orchestrator.analyze_project()

    assert orchestrator.ensure_latest("Hello.swift") is False
    source.write_text("func hello() {}\nfunc extra() {}\n", encoding="utf-8")
    assert orchestrator.ensure_latest("Hello.swift") is True
    assert orchestrator.ensure_latest("Hello.swift") is False
    assert orchestrator.ensure_latest("notes.txt") is False


def test_renamed_declaration_drops_old_chunk(tmp_path: Path) -> None:
    source = tmp_path / "Hello.swift"
    source.write_text("func hello() {}\n", encoding="utf-8")
    orchestrator = _orchestrator(tmp_path)
    orchestrator.analyze_project()

    source.write_text("func goodbye() {}\n", encoding="utf-8")
    orchestrator.ensure_latest("Hello.swift")

    assert orchestrator.get_chunk(CHUNK_ID) is None
    assert orchestrator.store.list_keys() == ["Hello.swift::func goodbye()"]


def test_deleted_file_makes_reads_miss(tmp_path: Path) -> None:
    source = tmp_path / "Hello.swift"
    source.write_text("func hello() {}\n", encoding="utf-8")
    orchestrator = _orchestrator(tmp_path)
    orchestrator.analyze_project()

    source.unlink()

    assert orchestrator.get_chunk(CHUNK_ID) is None
    assert orchestrator.list_functions_in_file("Hello.swift") == []
    assert orchestrator.metadata.get("Hello.swift") is None
    assert orchestrator.store.list_keys() == []


def test_file_added_after_analysis_is_parsed_lazily(tmp_path: Path) -> None:
    orchestrator = _orchestrator(tmp_path)
    orchestrator.analyze_project()

    (tmp_path / "Late.kt").write_text("fun late() {}\n", encoding="utf-8")

    assert [item.signature for item in orchestrator.list_functions_in_file("Late.kt")] == [
        "fun late()"
    ]


def test_large_chunk_is_paginated_with_fenced_pages(tmp_path: Path) -> None:
    body = [f"    step{index}()" for index in range(101)]
    (tmp_path / "Big.swift").write_text("\n".join(["func big() {", *body, "}"]), encoding="utf-8")
    orchestrator = _orchestrator(tmp_path)
    orchestrator.analyze_project()

    first = orchestrator.get_chunk("Big.swift::func big()", page_size=10)
    assert first is not None
    assert first.is_partial is True
    assert first.total_lines == 103
    assert first.total_pages == 11
    assert first.current_page == 1
    assert len(first.code_content.split("\n")) == 12
    assert first.next_page_token is not None
    assert first.prev_page_token is None

    second = orchestrator.get_chunk("Big.swift::func big()", page_token=first.next_page_token)
    assert second is not None
    assert second.current_page == 2
    assert second.prev_page_token is not None
    assert (second.start_line, second.end_line) == (11, 20)
    assert second.code_content.split("\n")[1] == "    step9()"


def test_small_chunk_uses_default_page_size(tmp_path: Path) -> None:
    (tmp_path / "Hello.swift").write_text("func hello() {}\n", encoding="utf-8")
    orchestrator = _orchestrator(tmp_path)
    orchestrator.analyze_project()

    view = orchestrator.get_chunk(CHUNK_ID)

    assert view is not None
    assert view.is_partial is False
    assert view.total_pages == 1
    assert view.language == "swift"
    assert view.to_dict()["code_content"] == "```swift\nfunc hello() {}\n```"


def test_page_size_outside_bounds_is_rejected(tmp_path: Path) -> None:
    (tmp_path / "Hello.swift").write_text("func hello() {}\n", encoding="utf-8")
    orchestrator = _orchestrator(tmp_path, max_page_size=50)
    orchestrator.analyze_project()

    with pytest.raises(ValueError, match="page_size"):
        orchestrator.get_chunk(CHUNK_ID, page_size=51)


def test_memory_stays_bounded_while_store_keeps_everything(tmp_path: Path) -> None:
    lines = [f"func f{index}() {{}}" for index in range(12)]
    (tmp_path / "Many.swift").write_text("\n".join(lines), encoding="utf-8")
    orchestrator = _orchestrator(tmp_path, memory_capacity=3)

    summary = orchestrator.analyze_project()
    for index in range(12):
        assert orchestrator.get_chunk(f"Many.swift::func f{index}()") is not None
        assert len(orchestrator.memory) <= 3

    assert summary["chunk_count"] == 12
    assert len(orchestrator.store.list_keys()) == 12


def test_overloads_with_similar_labels_survive_memory_eviction(tmp_path: Path) -> None:
    (tmp_path / "A.swift").write_text(
        "func f(a: Int, b: Int) {}\nfunc f(a_b: Int) {}\n", encoding="utf-8"
    )
    orchestrator = _orchestrator(tmp_path, memory_capacity=1)
    orchestrator.analyze_project()
    orchestrator.memory.clear()

    ids = ["A.swift::func f(a:b:)", "A.swift::func f(a_b:)"]
    found = {chunk_id: orchestrator.get_chunk(chunk_id) for chunk_id in ids}

    assert all(view is not None for view in found.values())
    assert found[ids[0]].signature == "func f(a:b:)"
    assert found[ids[1]].signature == "func f(a_b:)"
    assert [item.id for item in orchestrator.list_functions_in_file("A.swift")] == ids
