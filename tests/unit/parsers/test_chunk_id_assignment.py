from __future__ import annotations

from chunk_mcp.cache import Chunk
from chunk_mcp.parsers import assign_chunk_ids, build_chunk_id, collapse_whitespace


def _chunk(signature: str, children: tuple[Chunk, ...] = ()) -> Chunk:
    return Chunk(
        id="",
        name=signature,
        signature=signature,
        kind="source.lang.swift.decl.function.free",
        content="",
        file_path="",
        start_line=1,
        end_line=1,
        children=children,
    )


def test_ids_are_path_qualified_signatures() -> None:
    assert build_chunk_id("A.swift", "func a()") == "A.swift::func a()"


def test_assign_ids_stamps_tree_and_numbers_repeats() -> None:
    tree = [_chunk("class A", children=(_chunk("func f()"),)), _chunk("func f()")]

    stamped = assign_chunk_ids("A.swift", tree)

    assert stamped[0].id == "A.swift::class A"
    assert stamped[0].children[0].id == "A.swift::func f()"
    assert stamped[1].id == "A.swift::func f()#2"
    assert {stamped[0].file_path, stamped[1].file_path} == {"A.swift"}


def test_collapse_whitespace_tightens_brackets() -> None:
    assert collapse_whitespace("(  a: Int,\n   b: String )") == "(a: Int, b: String)"
