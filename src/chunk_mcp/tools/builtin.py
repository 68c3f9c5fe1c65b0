"""Built-in chunk tools exposed over the STDIO server."""

from __future__ import annotations

from collections.abc import Callable
from pathlib import Path

from chunk_mcp.config import ServerConfig
from chunk_mcp.index import AnalysisOrchestrator, ChunkView
from chunk_mcp.security import relative_posix, resolve_project_path
from chunk_mcp.tools.registry import ToolDispatchError, ToolHandler, ToolRegistry

AUDIT_LOG_DEFAULT_LIMIT = 50
AUDIT_LOG_MAX_LIMIT = 200


def register_builtin_tools(
    registry: ToolRegistry,
    project_root: Path,
    orchestrator: AnalysisOrchestrator,
    config: ServerConfig,
    read_audit_entries: Callable[[str | None, int], list[dict[str, object]]],
) -> None:
    """Register the chunk tool set."""
    registry.register(
        "chunk.analyze_project",
        _analyze_project_handler(project_root, orchestrator),
        "Rebuild the chunk cache for the project or one of its subdirectories.",
    )
    registry.register(
        "chunk.get_chunk",
        _get_chunk_handler(config, orchestrator),
        "Return one chunk by id, re-parsing its file first when it changed.",
    )
    registry.register(
        "chunk.list_functions_in_file",
        _list_functions_handler(project_root, orchestrator),
        "List callable chunks of one file.",
    )
    registry.register(
        "chunk.find_function",
        _find_function_handler(project_root, orchestrator),
        "List callable chunks of one file whose signature contains a query.",
    )
    registry.register(
        "chunk.get_function_chunk",
        _get_function_chunk_handler(project_root, config, orchestrator),
        "Return the callable chunk of one file with an exact signature.",
    )
    registry.register(
        "chunk.find_file",
        _find_file_handler(orchestrator),
        "List analyzable source files matching a glob pattern.",
    )
    registry.register(
        "chunk.status",
        _status_handler(config, orchestrator),
        "Report cache occupancy and effective configuration.",
    )
    registry.register(
        "chunk.audit_log",
        _audit_log_handler(read_audit_entries),
        "Read recent audit log entries.",
    )


def _analyze_project_handler(project_root: Path, orchestrator: AnalysisOrchestrator) -> ToolHandler:
    def handler(arguments: dict[str, object]) -> dict[str, object]:
        path_value = arguments.get("path")
        if path_value is None:
            return orchestrator.analyze_project()
        if not isinstance(path_value, str):
            raise ToolDispatchError(
                code="INVALID_PARAMS",
                message="chunk.analyze_project path must be a string.",
            )
        resolved = resolve_project_path(project_root=project_root, candidate=path_value)
        if not resolved.is_dir():
            raise ToolDispatchError(
                code="NOT_FOUND",
                message="chunk.analyze_project path must be an existing directory.",
            )
        relative = relative_posix(project_root, resolved)
        return orchestrator.analyze_project(None if relative == "." else relative)

    return handler


def _get_chunk_handler(config: ServerConfig, orchestrator: AnalysisOrchestrator) -> ToolHandler:
    def handler(arguments: dict[str, object]) -> dict[str, object]:
        chunk_id = _required_string(arguments, "chunk_id", "chunk.get_chunk")
        page_size, page_token = _paging_arguments(arguments, config, "chunk.get_chunk")
        try:
            view = orchestrator.get_chunk(chunk_id, page_size=page_size, page_token=page_token)
        except ValueError as error:
            raise ToolDispatchError(code="INVALID_PARAMS", message=str(error)) from error
        return _view_or_not_found(view)

    return handler


def _list_functions_handler(project_root: Path, orchestrator: AnalysisOrchestrator) -> ToolHandler:
    def handler(arguments: dict[str, object]) -> dict[str, object]:
        relative = _project_file(arguments, project_root, "chunk.list_functions_in_file")
        functions = orchestrator.list_functions_in_file(relative)
        return {"path": relative, "functions": [item.to_dict() for item in functions]}

    return handler


def _find_function_handler(project_root: Path, orchestrator: AnalysisOrchestrator) -> ToolHandler:
    def handler(arguments: dict[str, object]) -> dict[str, object]:
        relative = _project_file(arguments, project_root, "chunk.find_function")
        query_value = arguments.get("query")
        if query_value is not None and not isinstance(query_value, str):
            raise ToolDispatchError(
                code="INVALID_PARAMS",
                message="chunk.find_function query must be a string.",
            )
        functions = orchestrator.find_functions(relative, query=query_value)
        return {"path": relative, "functions": [item.to_dict() for item in functions]}

    return handler


def _get_function_chunk_handler(
    project_root: Path,
    config: ServerConfig,
    orchestrator: AnalysisOrchestrator,
) -> ToolHandler:
    def handler(arguments: dict[str, object]) -> dict[str, object]:
        relative = _project_file(arguments, project_root, "chunk.get_function_chunk")
        signature = _required_string(arguments, "signature", "chunk.get_function_chunk")
        page_size, page_token = _paging_arguments(arguments, config, "chunk.get_function_chunk")
        try:
            view = orchestrator.get_function_chunk(
                relative,
                signature,
                page_size=page_size,
                page_token=page_token,
            )
        except ValueError as error:
            raise ToolDispatchError(code="INVALID_PARAMS", message=str(error)) from error
        return _view_or_not_found(view)

    return handler


def _find_file_handler(orchestrator: AnalysisOrchestrator) -> ToolHandler:
    def handler(arguments: dict[str, object]) -> dict[str, object]:
        pattern = _required_string(arguments, "pattern", "chunk.find_file")
        return {"pattern": pattern, "files": orchestrator.find_files(pattern)}

    return handler


def _status_handler(config: ServerConfig, orchestrator: AnalysisOrchestrator) -> ToolHandler:
    def handler(_: dict[str, object]) -> dict[str, object]:
        payload = orchestrator.status()
        payload["effective_config"] = config.to_public_dict()
        return payload

    return handler


def _audit_log_handler(
    read_audit_entries: Callable[[str | None, int], list[dict[str, object]]],
) -> ToolHandler:
    def handler(arguments: dict[str, object]) -> dict[str, object]:
        since_value = arguments.get("since")
        limit_value = arguments.get("limit", AUDIT_LOG_DEFAULT_LIMIT)

        since: str | None = since_value if isinstance(since_value, str) else None
        limit = limit_value if isinstance(limit_value, int) else AUDIT_LOG_DEFAULT_LIMIT
        if limit < 1:
            limit = 1
        if limit > AUDIT_LOG_MAX_LIMIT:
            limit = AUDIT_LOG_MAX_LIMIT

        return {"entries": read_audit_entries(since, limit)}

    return handler


def _required_string(arguments: dict[str, object], key: str, tool: str) -> str:
    value = arguments.get(key)
    if not isinstance(value, str) or not value.strip():
        raise ToolDispatchError(
            code="INVALID_PARAMS",
            message=f"{tool} {key} must be a non-empty string.",
        )
    return value


def _project_file(arguments: dict[str, object], project_root: Path, tool: str) -> str:
    path_value = _required_string(arguments, "path", tool)
    resolved = resolve_project_path(project_root=project_root, candidate=path_value)
    return relative_posix(project_root, resolved)


def _paging_arguments(
    arguments: dict[str, object],
    config: ServerConfig,
    tool: str,
) -> tuple[int | None, str | None]:
    page_size_value = arguments.get("page_size")
    page_token_value = arguments.get("page_token")
    page_size: int | None = None
    if page_size_value is not None:
        if not isinstance(page_size_value, int) or isinstance(page_size_value, bool):
            raise ToolDispatchError(
                code="INVALID_PARAMS",
                message=f"{tool} page_size must be an integer.",
            )
        if page_size_value < 1 or page_size_value > config.cache.max_page_size:
            raise ToolDispatchError(
                code="INVALID_PARAMS",
                message=(
                    f"{tool} page_size must be between 1 and {config.cache.max_page_size}."
                ),
            )
        page_size = page_size_value
    if page_token_value is not None and not isinstance(page_token_value, str):
        raise ToolDispatchError(
            code="INVALID_PARAMS",
            message=f"{tool} page_token must be a string.",
        )
    return page_size, page_token_value


def _view_or_not_found(view: ChunkView | None) -> dict[str, object]:
    if view is None:
        raise ToolDispatchError(code="NOT_FOUND", message="Chunk not found.")
    return view.to_dict()
