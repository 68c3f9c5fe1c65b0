"""Content fingerprints for change detection."""

from __future__ import annotations

import hashlib


def content_hash(content: str) -> str:
    """Return the SHA-256 hex digest of text content."""
    digest = hashlib.sha256()
    digest.update(content.encode("utf-8"))
    return digest.hexdigest()
