from __future__ import annotations

import base64
import json

from chunk_mcp.paging import PageInfo, decode_page_token, encode_page_token


def _info() -> PageInfo:
    return PageInfo(
        file_path="Sources/Big.swift",
        chunk_id="Sources/Big.swift::func big()",
        start_line=10,
        end_line=20,
        page_size=10,
        total_lines=103,
    )


def test_token_is_url_safe_versioned_json() -> None:
    token = encode_page_token(_info())

    payload = json.loads(base64.urlsafe_b64decode(token.encode("ascii")))

    assert payload["v"] == 1
    assert payload["chunk_id"] == "Sources/Big.swift::func big()"
    assert decode_page_token(token) == _info()


def test_malformed_tokens_decode_to_none() -> None:
    assert decode_page_token(None) is None
    assert decode_page_token("") is None
    assert decode_page_token("%%%not-base64%%%") is None
    assert decode_page_token(base64.urlsafe_b64encode(b"[1, 2]").decode("ascii")) is None
    assert decode_page_token(12) is None


def test_tokens_with_wrong_version_or_field_types_decode_to_none() -> None:
    good = json.loads(base64.urlsafe_b64decode(encode_page_token(_info())))
    variants = [
        {**good, "v": 2},
        {**good, "start_line": -1},
        {**good, "page_size": 0},
        {**good, "page_size": True},
        {**good, "chunk_id": 5},
    ]
    for variant in variants:
        token = base64.urlsafe_b64encode(json.dumps(variant).encode("utf-8")).decode("ascii")
        assert decode_page_token(token) is None
