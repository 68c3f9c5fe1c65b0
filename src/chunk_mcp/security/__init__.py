"""Path safety primitives."""

from .paths import PathBlockedError, relative_posix, resolve_project_path

__all__ = ["PathBlockedError", "relative_posix", "resolve_project_path"]
