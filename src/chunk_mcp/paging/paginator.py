"""Line-window pagination over chunk content."""

from __future__ import annotations

import math
from dataclasses import dataclass

from chunk_mcp.paging.tokens import PageInfo, decode_page_token, encode_page_token


@dataclass(slots=True, frozen=True)
class Page:
    """One window of chunk content plus navigation tokens."""

    content: str
    start_line: int
    end_line: int
    page_size: int
    total_lines: int
    current_page: int
    total_pages: int
    is_partial: bool
    next_page_token: str | None
    prev_page_token: str | None


def paginate(
    content: str,
    chunk_id: str,
    file_path: str,
    chunk_start_line: int,
    page_size: int,
    token: str | None = None,
) -> Page:
    """Return the content window a token points at.

    A missing, malformed, foreign or out-of-range token yields the first page.
    Reported line numbers are relative to the source file.
    """
    if page_size < 1:
        raise ValueError("page_size must be >= 1")
    lines = content.split("\n")
    total_lines = len(lines)
    start = _resume_offset(token, chunk_id=chunk_id, total_lines=total_lines)
    end = min(start + page_size, total_lines)
    window = "\n".join(lines[start:end])

    next_token: str | None = None
    if end < total_lines:
        next_token = encode_page_token(
            PageInfo(
                file_path=file_path,
                chunk_id=chunk_id,
                start_line=end,
                end_line=min(end + page_size, total_lines),
                page_size=page_size,
                total_lines=total_lines,
            )
        )
    prev_token: str | None = None
    if start > 0:
        prev_token = encode_page_token(
            PageInfo(
                file_path=file_path,
                chunk_id=chunk_id,
                start_line=max(0, start - page_size),
                end_line=start,
                page_size=page_size,
                total_lines=total_lines,
            )
        )
    return Page(
        content=window,
        start_line=chunk_start_line + start,
        end_line=chunk_start_line + end - 1,
        page_size=page_size,
        total_lines=total_lines,
        current_page=start // page_size + 1,
        total_pages=max(1, math.ceil(total_lines / page_size)),
        is_partial=total_lines > page_size,
        next_page_token=next_token,
        prev_page_token=prev_token,
    )


def token_page_size(token: str | None) -> int | None:
    """Return the page size a readable token was issued with."""
    info = decode_page_token(token)
    if info is None:
        return None
    return info.page_size


def _resume_offset(token: str | None, chunk_id: str, total_lines: int) -> int:
    info = decode_page_token(token)
    if info is None or info.chunk_id != chunk_id:
        return 0
    if info.start_line >= total_lines:
        return 0
    return info.start_line
