"""Deterministic source file discovery."""

from __future__ import annotations

import codecs
import fnmatch
import os
from pathlib import Path

from chunk_mcp.config import IndexConfig

_BINARY_SNIFF_BYTES = 4096


def discover_source_files(project_root: Path, config: IndexConfig) -> list[str]:
    """Return project-relative POSIX paths of analyzable source files, sorted."""
    root = project_root.resolve()
    candidates = _discover_candidates(
        root=root,
        include_extensions={extension.lower() for extension in config.include_extensions},
        exclude_globs=config.exclude_globs,
        excluded_dir_names=_excluded_dir_names(config.exclude_globs),
    )
    paths: list[str] = []
    for relative, full_path in sorted(candidates):
        try:
            if is_binary_file(full_path):
                continue
        except OSError:
            continue
        paths.append(relative)
    return paths


def find_source_files(project_root: Path, config: IndexConfig, pattern: str) -> list[str]:
    """Return discovered source files whose relative path or name matches a glob."""
    normalized = pattern.replace("\\", "/").strip()
    while normalized.startswith("./"):
        normalized = normalized[2:]
    if not normalized:
        return []
    output: list[str] = []
    for path in discover_source_files(project_root, config):
        name = path.rsplit("/", 1)[-1]
        if fnmatch.fnmatch(path, normalized) or fnmatch.fnmatch(name, normalized):
            output.append(path)
    return output


def should_exclude(relative_path: str, exclude_globs: tuple[str, ...]) -> bool:
    """Return True when a path matches configured ignore globs."""
    anchored = f"/{relative_path}"
    return any(
        fnmatch.fnmatch(relative_path, pattern) or fnmatch.fnmatch(anchored, pattern)
        for pattern in exclude_globs
    )


def _excluded_dir_names(exclude_globs: tuple[str, ...]) -> set[str]:
    """Extract deterministic directory-name prunes from **/name/** glob patterns."""
    output: set[str] = set()
    for pattern in exclude_globs:
        if not pattern.startswith("**/") or not pattern.endswith("/**"):
            continue
        name = pattern[3:-3].strip("/")
        if not name:
            continue
        if any(char in name for char in "*?[]{}"):
            continue
        output.add(name)
    return output


def _discover_candidates(
    *,
    root: Path,
    include_extensions: set[str],
    exclude_globs: tuple[str, ...],
    excluded_dir_names: set[str],
) -> list[tuple[str, Path]]:
    """Walk tree deterministically with light pruning for excluded directories."""
    candidates: list[tuple[str, Path]] = []
    stack: list[Path] = [root]
    while stack:
        current = stack.pop()
        try:
            with os.scandir(current) as entries:
                ordered_entries = sorted(entries, key=lambda item: item.name)
        except OSError:
            continue
        for entry in reversed(ordered_entries):
            full_path = Path(entry.path)
            relative = full_path.relative_to(root).as_posix()
            if entry.is_dir(follow_symlinks=False):
                if entry.name in excluded_dir_names:
                    continue
                stack.append(full_path)
                continue
            if not entry.is_file(follow_symlinks=False):
                continue
            if should_exclude(relative, exclude_globs):
                continue
            if Path(relative).suffix.lower() not in include_extensions:
                continue
            candidates.append((relative, full_path))
    return candidates


def is_binary_file(path: Path) -> bool:
    """Use deterministic content sniffing to exclude binary files."""
    with path.open("rb") as handle:
        sample = handle.read(_BINARY_SNIFF_BYTES)
    if b"\x00" in sample:
        return True
    try:
        codecs.getincrementaldecoder("utf-8")().decode(sample, final=False)
    except UnicodeDecodeError:
        return True
    return False
