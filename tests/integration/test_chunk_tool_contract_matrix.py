from __future__ import annotations

from pathlib import Path

from chunk_mcp.server import create_server

VIEW_KEYS = {
    "chunk_id",
    "name",
    "signature",
    "kind",
    "file_path",
    "language",
    "start_line",
    "end_line",
    "calls",
    "code_content",
    "is_partial",
    "total_lines",
    "current_page",
    "total_pages",
    "next_page_token",
    "prev_page_token",
}


def test_tool_contract_matrix_for_chunk_tools(tmp_path: Path) -> None:
    (tmp_path / "Sources").mkdir()
    (tmp_path / "Sources" / "Greeter.swift").write_text(
        "class Greeter {\n    func greet(name: String) -> String {\n"
        "        return format(name)\n    }\n}\n",
        encoding="utf-8",
    )
    (tmp_path / "tools").mkdir()
    (tmp_path / "tools" / "build.py").write_text(
        "def build(target):\n    return compile_all(target)\n",
        encoding="utf-8",
    )
    server = create_server(project_root=str(tmp_path))

    requests = [
        ("chunk.analyze_project", {}),
        ("chunk.list_functions_in_file", {"path": "Sources/Greeter.swift"}),
        ("chunk.find_function", {"path": "Sources/Greeter.swift", "query": "greet"}),
        (
            "chunk.get_function_chunk",
            {"path": "Sources/Greeter.swift", "signature": "func greet(name:) -> String"},
        ),
        ("chunk.get_chunk", {"chunk_id": "tools/build.py::def build(target)"}),
        ("chunk.find_file", {"pattern": "**/*.swift"}),
        ("chunk.status", {}),
        ("chunk.audit_log", {"limit": 20}),
    ]

    responses = {}
    for idx, (method, params) in enumerate(requests):
        response = server.handle_payload(
            {"id": f"req-matrix-{idx}", "method": method, "params": params}
        )
        assert set(response.keys()) >= {"request_id", "ok", "result", "warnings", "blocked"}
        assert response["request_id"] == f"req-matrix-{idx}"
        assert isinstance(response["warnings"], list)
        assert response["ok"] is True, (method, response)
        responses[method] = response["result"]

    assert responses["chunk.analyze_project"]["analyzed_files"] == 2
    listed = responses["chunk.list_functions_in_file"]["functions"]
    assert [item["signature"] for item in listed] == ["func greet(name:) -> String"]
    assert set(listed[0].keys()) == {"id", "signature", "name", "kind", "start_line", "end_line"}
    assert responses["chunk.find_function"]["functions"] == listed

    swift_view = responses["chunk.get_function_chunk"]
    assert set(swift_view.keys()) == VIEW_KEYS
    assert swift_view["chunk_id"] == "Sources/Greeter.swift::func greet(name:) -> String"
    assert swift_view["language"] == "swift"
    assert swift_view["calls"] == ["format"]
    assert swift_view["code_content"].startswith("```swift\n")
    assert swift_view["code_content"].endswith("\n```")
    assert swift_view["is_partial"] is False

    python_view = responses["chunk.get_chunk"]
    assert python_view["language"] == "python"
    assert python_view["calls"] == ["compile_all"]
    assert (python_view["start_line"], python_view["end_line"]) == (1, 2)

    assert responses["chunk.find_file"]["files"] == ["Sources/Greeter.swift"]
    status = responses["chunk.status"]
    assert status["files_tracked"] == 2
    assert status["effective_config"]["cache"]["default_page_size"] == 200
    assert [entry["tool"] for entry in responses["chunk.audit_log"]["entries"]] == [
        method for method, _ in requests[:-1]
    ]
