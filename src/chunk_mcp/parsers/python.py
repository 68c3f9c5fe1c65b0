"""Python AST parser for class and function chunks."""

from __future__ import annotations

import ast

from chunk_mcp.cache.models import Chunk
from chunk_mcp.parsers.base import ParserError, assign_chunk_ids, normalize_newlines

PYTHON_KIND_PREFIX = "source.lang.python.decl"


class PythonAstParser:
    """Python parser with AST-based declaration chunks."""

    name = "python"
    language = "python"

    def supports_path(self, path: str) -> bool:
        """Return True when path is a Python source file."""
        return path.lower().endswith(".py")

    def parse_file(self, path: str, text: str) -> list[Chunk]:
        """Extract classes, methods, and functions with exact source spans."""
        normalized = normalize_newlines(text)
        try:
            tree = ast.parse(normalized)
        except (SyntaxError, ValueError) as error:
            raise ParserError(f"Cannot parse Python file {path}: {error}") from error

        collector = _PythonChunkCollector(path=path, text=normalized)
        collector.visit(tree)
        return assign_chunk_ids(path, collector.chunks)


class _PythonChunkCollector(ast.NodeVisitor):
    """Collect class and function chunks from module and class scopes."""

    def __init__(self, path: str, text: str) -> None:
        self.chunks: list[Chunk] = []
        self._path = path
        self._source = text.encode("utf-8")
        self._line_starts = _line_byte_starts(self._source)
        self._scope_stack: list[tuple[str, str]] = []

    def visit_ClassDef(self, node: ast.ClassDef) -> None:  # noqa: N802
        siblings = self.chunks
        self.chunks = []
        self._scope_stack.append(("class", node.name))
        self.generic_visit(node)
        self._scope_stack.pop()
        children = tuple(self.chunks)
        self.chunks = siblings
        self.chunks.append(
            self._chunk(
                node,
                name=self._qualified_name(node.name),
                signature=f"class {self._qualified_name(node.name)}{_class_bases(node)}",
                kind=f"{PYTHON_KIND_PREFIX}.class",
                calls=(),
                children=children,
            )
        )

    def visit_FunctionDef(self, node: ast.FunctionDef) -> None:  # noqa: N802
        self._add_function_chunk(node)

    def visit_AsyncFunctionDef(self, node: ast.AsyncFunctionDef) -> None:  # noqa: N802
        self._add_function_chunk(node)

    def _add_function_chunk(self, node: ast.FunctionDef | ast.AsyncFunctionDef) -> None:
        is_async = isinstance(node, ast.AsyncFunctionDef)
        parent_kind = self._scope_stack[-1][0] if self._scope_stack else None
        kind = f"{PYTHON_KIND_PREFIX}.function"
        if parent_kind == "class":
            kind += ".method"
        if is_async:
            kind += ".async"

        qualified = self._qualified_name(node.name)
        signature = f"{'async ' if is_async else ''}def {qualified}({ast.unparse(node.args)})"
        if node.returns is not None:
            signature += f" -> {ast.unparse(node.returns)}"
        self.chunks.append(
            self._chunk(
                node,
                name=qualified,
                signature=signature,
                kind=kind,
                calls=_called_names(node),
                children=(),
            )
        )

    def _chunk(
        self,
        node: ast.ClassDef | ast.FunctionDef | ast.AsyncFunctionDef,
        *,
        name: str,
        signature: str,
        kind: str,
        calls: tuple[str, ...],
        children: tuple[Chunk, ...],
    ) -> Chunk:
        first = min([node, *node.decorator_list], key=lambda item: (item.lineno, item.col_offset))
        start_line = first.lineno
        end_line = node.end_lineno or node.lineno
        start = self._line_starts[start_line - 1] + first.col_offset
        end = self._line_starts[end_line - 1] + (node.end_col_offset or 0)
        if first is not node:
            # Decorator nodes start at the expression, after "@" and any spaces.
            marker = self._source.rfind(b"@", self._line_starts[start_line - 1], start)
            if marker != -1:
                start = marker
        return Chunk(
            id="",
            name=name,
            signature=signature,
            kind=kind,
            content=self._source[start:end].decode("utf-8"),
            file_path=self._path,
            start_line=start_line,
            end_line=end_line,
            byte_offset=start,
            byte_length=end - start,
            calls=calls,
            children=children,
        )

    def _qualified_name(self, local_name: str) -> str:
        if not self._scope_stack:
            return local_name
        return ".".join([*(name for _, name in self._scope_stack), local_name])


def _class_bases(node: ast.ClassDef) -> str:
    parts = [ast.unparse(base) for base in node.bases]
    for keyword in node.keywords:
        if keyword.arg is None:
            parts.append(f"**{ast.unparse(keyword.value)}")
        else:
            parts.append(f"{keyword.arg}={ast.unparse(keyword.value)}")
    if not parts:
        return ""
    return f"({', '.join(parts)})"


def _called_names(node: ast.FunctionDef | ast.AsyncFunctionDef) -> tuple[str, ...]:
    found: list[tuple[int, int, str]] = []
    for child in ast.walk(node):
        if not isinstance(child, ast.Call):
            continue
        target = child.func
        if isinstance(target, ast.Name):
            found.append((target.lineno, target.col_offset, target.id))
        elif isinstance(target, ast.Attribute):
            line = target.end_lineno or target.lineno
            found.append((line, target.end_col_offset or 0, target.attr))
    calls: list[str] = []
    for _, _, name in sorted(found):
        if name == node.name or name in calls:
            continue
        calls.append(name)
    return tuple(calls)


def _line_byte_starts(source: bytes) -> list[int]:
    starts = [0]
    for index, byte in enumerate(source):
        if byte == 0x0A:
            starts.append(index + 1)
    return starts
