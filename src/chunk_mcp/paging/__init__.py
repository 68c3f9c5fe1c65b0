"""Deterministic pagination for large chunks."""

from .paginator import Page, paginate, token_page_size
from .tokens import PAGE_TOKEN_VERSION, PageInfo, decode_page_token, encode_page_token

__all__ = [
    "PAGE_TOKEN_VERSION",
    "Page",
    "PageInfo",
    "decode_page_token",
    "encode_page_token",
    "paginate",
    "token_page_size",
]
