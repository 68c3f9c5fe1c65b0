"""Configuration loading and deterministic merge order."""

from __future__ import annotations

import tomllib
from dataclasses import dataclass
from pathlib import Path

from chunk_mcp.cache.memory import DEFAULT_MEMORY_CAPACITY

CONFIG_FILE_NAME = "chunk_mcp.toml"
DATA_DIR_NAME = ".chunk_mcp"
CACHE_DIR_NAME = "chunks"

MEMORY_CAPACITY_CAP = 10_000
PAGE_SIZE_CAP = 2_000
EXTERNAL_TIMEOUT_SECONDS_CAP = 600

DEFAULT_PAGE_SIZE = 200
DEFAULT_EXTERNAL_TIMEOUT_SECONDS = 30

SWIFT_BACKENDS = ("lexical", "sourcekitten")

DEFAULT_INCLUDE_EXTENSIONS = (".swift", ".kt", ".kts", ".py")
DEFAULT_EXCLUDE_GLOBS = (
    "**/.git/**",
    "**/.build/**",
    "**/build/**",
    "**/__pycache__/**",
    "**/.venv/**",
    f"**/{DATA_DIR_NAME}/**",
)


@dataclass(slots=True, frozen=True)
class CacheConfig:
    """Chunk cache sizing and paging defaults."""

    memory_capacity: int = DEFAULT_MEMORY_CAPACITY
    default_page_size: int = DEFAULT_PAGE_SIZE
    max_page_size: int = PAGE_SIZE_CAP


@dataclass(slots=True, frozen=True)
class IndexConfig:
    """Deterministic source discovery settings."""

    include_extensions: tuple[str, ...]
    exclude_globs: tuple[str, ...]


@dataclass(slots=True, frozen=True)
class ParsersConfig:
    """Parser selection and external tool settings."""

    python_enabled: bool = True
    swift_backend: str = "lexical"
    sourcekitten_path: str = "sourcekitten"
    external_timeout_seconds: int = DEFAULT_EXTERNAL_TIMEOUT_SECONDS


@dataclass(slots=True, frozen=True)
class ServerConfig:
    """Fully merged server configuration."""

    project_root: Path
    data_dir: Path
    cache: CacheConfig
    index: IndexConfig
    parsers: ParsersConfig

    @property
    def cache_dir(self) -> Path:
        """Return the chunk store directory."""
        return self.data_dir / CACHE_DIR_NAME

    def to_public_dict(self) -> dict[str, object]:
        """Return serializable config snapshot for tool responses."""
        return {
            "project_root": str(self.project_root),
            "data_dir": str(self.data_dir),
            "cache_dir": str(self.cache_dir),
            "cache": {
                "memory_capacity": self.cache.memory_capacity,
                "default_page_size": self.cache.default_page_size,
                "max_page_size": self.cache.max_page_size,
            },
            "index": {
                "include_extensions": list(self.index.include_extensions),
                "exclude_globs": list(self.index.exclude_globs),
            },
            "parsers": {
                "python_enabled": self.parsers.python_enabled,
                "swift_backend": self.parsers.swift_backend,
                "sourcekitten_path": self.parsers.sourcekitten_path,
                "external_timeout_seconds": self.parsers.external_timeout_seconds,
            },
        }


@dataclass(slots=True, frozen=True)
class CliOverrides:
    """Optional startup overrides applied at highest precedence."""

    data_dir: Path | None = None
    memory_capacity: int | None = None
    default_page_size: int | None = None
    python_enabled: bool | None = None
    swift_backend: str | None = None


def default_config(project_root: Path) -> ServerConfig:
    """Build default config for a given project root."""
    resolved_root = project_root.resolve()
    return ServerConfig(
        project_root=resolved_root,
        data_dir=resolved_root / DATA_DIR_NAME,
        cache=CacheConfig(),
        index=IndexConfig(
            include_extensions=DEFAULT_INCLUDE_EXTENSIONS,
            exclude_globs=DEFAULT_EXCLUDE_GLOBS,
        ),
        parsers=ParsersConfig(),
    )


def load_project_config_file(project_root: Path) -> dict[str, object]:
    """Load optional chunk_mcp.toml from project root."""
    config_path = project_root / CONFIG_FILE_NAME
    if not config_path.exists():
        return {}
    with config_path.open("rb") as handle:
        payload = tomllib.load(handle)
    if not isinstance(payload, dict):
        raise ValueError(f"{CONFIG_FILE_NAME} must contain a top-level table.")
    return payload


def _get_table(payload: dict[str, object], key: str) -> dict[str, object]:
    value = payload.get(key, {})
    if not isinstance(value, dict):
        raise ValueError(f"Config section '{key}' must be a table.")
    return value


def _tuple_of_strings(value: object, section: str, field: str) -> tuple[str, ...]:
    if not isinstance(value, list):
        raise ValueError(f"Config field '{section}.{field}' must be a list of strings.")
    output: list[str] = []
    for item in value:
        if not isinstance(item, str):
            raise ValueError(f"Config field '{section}.{field}' must contain only strings.")
        output.append(item)
    return tuple(output)


def merge_config(
    base: ServerConfig, project_payload: dict[str, object], overrides: CliOverrides
) -> ServerConfig:
    """Merge defaults, project config, then CLI/startup overrides."""
    cache_payload = _get_table(project_payload, "cache")
    index_payload = _get_table(project_payload, "index")
    parsers_payload = _get_table(project_payload, "parsers")

    memory_capacity = _optional_positive_int_with_cap(
        cache_payload.get("memory_capacity"),
        "cache.memory_capacity",
        base.cache.memory_capacity,
        MEMORY_CAPACITY_CAP,
    )
    max_page_size = _optional_positive_int_with_cap(
        cache_payload.get("max_page_size"),
        "cache.max_page_size",
        base.cache.max_page_size,
        PAGE_SIZE_CAP,
    )
    default_page_size = _optional_positive_int_with_cap(
        cache_payload.get("default_page_size"),
        "cache.default_page_size",
        min(base.cache.default_page_size, max_page_size),
        max_page_size,
    )

    include_extensions = base.index.include_extensions
    if "include_extensions" in index_payload:
        include_extensions = _tuple_of_strings(
            index_payload["include_extensions"], "index", "include_extensions"
        )
    exclude_globs = base.index.exclude_globs
    if "exclude_globs" in index_payload:
        exclude_globs = _tuple_of_strings(index_payload["exclude_globs"], "index", "exclude_globs")

    python_enabled = base.parsers.python_enabled
    if "python_enabled" in parsers_payload:
        raw_python_enabled = parsers_payload["python_enabled"]
        if not isinstance(raw_python_enabled, bool):
            raise ValueError("Config field 'parsers.python_enabled' must be a boolean.")
        python_enabled = raw_python_enabled
    swift_backend = _optional_choice(
        parsers_payload.get("swift_backend"),
        "parsers.swift_backend",
        base.parsers.swift_backend,
        SWIFT_BACKENDS,
    )
    sourcekitten_path = base.parsers.sourcekitten_path
    if "sourcekitten_path" in parsers_payload:
        raw_path = parsers_payload["sourcekitten_path"]
        if not isinstance(raw_path, str) or not raw_path.strip():
            raise ValueError("Config field 'parsers.sourcekitten_path' must be a non-empty string.")
        sourcekitten_path = raw_path
    external_timeout_seconds = _optional_positive_int_with_cap(
        parsers_payload.get("external_timeout_seconds"),
        "parsers.external_timeout_seconds",
        base.parsers.external_timeout_seconds,
        EXTERNAL_TIMEOUT_SECONDS_CAP,
    )

    merged = ServerConfig(
        project_root=base.project_root,
        data_dir=base.data_dir,
        cache=CacheConfig(
            memory_capacity=memory_capacity,
            default_page_size=default_page_size,
            max_page_size=max_page_size,
        ),
        index=IndexConfig(
            include_extensions=include_extensions,
            exclude_globs=exclude_globs,
        ),
        parsers=ParsersConfig(
            python_enabled=python_enabled,
            swift_backend=swift_backend,
            sourcekitten_path=sourcekitten_path,
            external_timeout_seconds=external_timeout_seconds,
        ),
    )
    return apply_cli_overrides(merged, overrides)


def apply_cli_overrides(config: ServerConfig, overrides: CliOverrides) -> ServerConfig:
    """Apply startup overrides at highest precedence."""
    memory_capacity = _optional_positive_int_with_cap(
        overrides.memory_capacity,
        "overrides.memory_capacity",
        config.cache.memory_capacity,
        MEMORY_CAPACITY_CAP,
    )
    default_page_size = _optional_positive_int_with_cap(
        overrides.default_page_size,
        "overrides.default_page_size",
        config.cache.default_page_size,
        config.cache.max_page_size,
    )
    swift_backend = _optional_choice(
        overrides.swift_backend,
        "overrides.swift_backend",
        config.parsers.swift_backend,
        SWIFT_BACKENDS,
    )
    parsers = ParsersConfig(
        python_enabled=(
            overrides.python_enabled
            if overrides.python_enabled is not None
            else config.parsers.python_enabled
        ),
        swift_backend=swift_backend,
        sourcekitten_path=config.parsers.sourcekitten_path,
        external_timeout_seconds=config.parsers.external_timeout_seconds,
    )
    data_dir = overrides.data_dir or config.data_dir
    return ServerConfig(
        project_root=config.project_root,
        data_dir=data_dir.resolve(),
        cache=CacheConfig(
            memory_capacity=memory_capacity,
            default_page_size=default_page_size,
            max_page_size=config.cache.max_page_size,
        ),
        index=config.index,
        parsers=parsers,
    )


def load_effective_config(
    project_root: Path,
    overrides: CliOverrides | None = None,
) -> ServerConfig:
    """Load effective config using merge order defaults -> project config -> overrides."""
    resolved_root = project_root.resolve()
    base = default_config(resolved_root)
    payload = load_project_config_file(resolved_root)
    return merge_config(base, payload, overrides or CliOverrides())


def _optional_positive_int_with_cap(
    value: object,
    name: str,
    default: int,
    cap: int | None,
) -> int:
    if value is None:
        return default
    if not isinstance(value, int) or isinstance(value, bool) or value < 1:
        raise ValueError(f"Config field '{name}' must be a positive integer.")
    if cap is not None and value > cap:
        raise ValueError(f"Config field '{name}' must be <= {cap}.")
    return value


def _optional_choice(value: object, name: str, default: str, choices: tuple[str, ...]) -> str:
    if value is None:
        return default
    if not isinstance(value, str) or value not in choices:
        raise ValueError(f"Config field '{name}' must be one of {', '.join(choices)}.")
    return value
