"""Path resolution helpers for project-scoped access."""

from __future__ import annotations

import re
from pathlib import Path
from typing import Final

WINDOWS_ABSOLUTE_PATTERN: Final[re.Pattern[str]] = re.compile(r"^[a-zA-Z]:[\\/]")


class PathBlockedError(Exception):
    """Raised when a requested path falls outside the project root."""

    def __init__(self, reason: str, hint: str) -> None:
        super().__init__(reason)
        self.reason = reason
        self.hint = hint


def _normalize_relative_input(candidate: str) -> tuple[str, bool]:
    normalized = candidate.replace("\\", "/").strip()
    if normalized.startswith("/"):
        return normalized, True
    if WINDOWS_ABSOLUTE_PATTERN.match(normalized):
        return normalized, True
    return normalized, False


def resolve_project_path(project_root: Path, candidate: str) -> Path:
    """Resolve a project-relative or absolute path, blocking anything outside the root."""
    root = project_root.resolve()
    normalized, is_absolute_style = _normalize_relative_input(candidate)

    if not normalized:
        raise PathBlockedError(
            reason="Path is empty.",
            hint="Provide a project-relative path such as 'Sources/App/main.swift'.",
        )

    if is_absolute_style:
        resolved_absolute = Path(normalized).resolve(strict=False)
        if not resolved_absolute.is_relative_to(root):
            raise PathBlockedError(
                reason="Absolute path is outside project_root.",
                hint="Use a path located under the configured project root.",
            )
        return resolved_absolute

    parts = [part for part in normalized.split("/") if part not in ("", ".")]
    if any(part == ".." for part in parts):
        raise PathBlockedError(
            reason="Path traversal is blocked.",
            hint="Remove '..' segments and use a project-relative path.",
        )

    resolved = (root / Path(*parts)).resolve(strict=False) if parts else root
    if not resolved.is_relative_to(root):
        raise PathBlockedError(
            reason="Resolved path escapes project_root.",
            hint="Use a path located under the configured project root.",
        )
    return resolved


def relative_posix(project_root: Path, resolved: Path) -> str:
    """Return the project-relative POSIX form of a resolved path ('.' for the root)."""
    relative = resolved.relative_to(project_root.resolve()).as_posix()
    return relative or "."
