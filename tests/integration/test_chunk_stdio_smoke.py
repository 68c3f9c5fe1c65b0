from __future__ import annotations

import io
import json
from pathlib import Path

from chunk_mcp.server import create_server


def test_stdio_server_routes_multiple_requests(tmp_path: Path) -> None:
    (tmp_path / "Main.kt").write_text("fun main() {\n    println(\"hi\")\n}\n", encoding="utf-8")
    server = create_server(project_root=str(tmp_path))
    in_stream = io.StringIO(
        "\n".join(
            [
                json.dumps({"id": "req-1", "method": "chunk.analyze_project", "params": {}}),
                "",
                json.dumps(
                    {
                        "id": "req-2",
                        "method": "tools/call",
                        "params": {
                            "name": "chunk.list_functions_in_file",
                            "arguments": {"path": "Main.kt"},
                        },
                    }
                ),
            ]
        )
        + "\n"
    )
    out_stream = io.StringIO()

    server.serve(in_stream=in_stream, out_stream=out_stream)
    lines = [line for line in out_stream.getvalue().splitlines() if line]

    assert len(lines) == 2
    first = json.loads(lines[0])
    second = json.loads(lines[1])

    assert first["request_id"] == "req-1"
    assert first["ok"] is True
    assert first["result"]["chunk_count"] == 1

    assert second["request_id"] == "req-2"
    assert second["ok"] is True
    assert [item["signature"] for item in second["result"]["functions"]] == ["fun main()"]
