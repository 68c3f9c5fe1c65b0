"""Opaque continuation tokens for paginated chunk content."""

from __future__ import annotations

import base64
import binascii
import json
from dataclasses import dataclass

PAGE_TOKEN_VERSION = 1


@dataclass(slots=True, frozen=True)
class PageInfo:
    """Position of one content window inside a chunk."""

    file_path: str
    chunk_id: str
    start_line: int
    end_line: int
    page_size: int
    total_lines: int


def encode_page_token(info: PageInfo) -> str:
    """Encode page position as URL-safe base64 of compact JSON."""
    payload = {
        "v": PAGE_TOKEN_VERSION,
        "file_path": info.file_path,
        "chunk_id": info.chunk_id,
        "start_line": info.start_line,
        "end_line": info.end_line,
        "page_size": info.page_size,
        "total_lines": info.total_lines,
    }
    raw = json.dumps(payload, sort_keys=True, separators=(",", ":")).encode("utf-8")
    return base64.urlsafe_b64encode(raw).decode("ascii")


def decode_page_token(token: object) -> PageInfo | None:
    """Decode a page token; anything unreadable decodes to None."""
    if not isinstance(token, str) or not token:
        return None
    try:
        raw = base64.urlsafe_b64decode(token.encode("ascii"))
        payload = json.loads(raw.decode("utf-8"))
    except (binascii.Error, UnicodeError, ValueError):
        return None
    if not isinstance(payload, dict) or payload.get("v") != PAGE_TOKEN_VERSION:
        return None
    file_path = payload.get("file_path")
    chunk_id = payload.get("chunk_id")
    if not isinstance(file_path, str) or not isinstance(chunk_id, str):
        return None
    numbers: list[int] = []
    for name in ("start_line", "end_line", "page_size", "total_lines"):
        value = payload.get(name)
        if not isinstance(value, int) or isinstance(value, bool) or value < 0:
            return None
        numbers.append(value)
    start_line, end_line, page_size, total_lines = numbers
    if page_size < 1:
        return None
    return PageInfo(
        file_path=file_path,
        chunk_id=chunk_id,
        start_line=start_line,
        end_line=end_line,
        page_size=page_size,
        total_lines=total_lines,
    )
