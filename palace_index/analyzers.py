"""Pluggable language analyzers that feed symbols and call edges to the index."""

from __future__ import annotations

import ast
from dataclasses import dataclass, field
from pathlib import PurePosixPath
from typing import Dict, Iterator, Protocol

from .chunker import SymbolBoundary

_LANGUAGES: Dict[str, str] = {
    ".py": "python",
    ".pyi": "python",
    ".go": "go",
    ".js": "javascript",
    ".jsx": "javascript",
    ".mjs": "javascript",
    ".ts": "typescript",
    ".tsx": "typescript",
    ".rs": "rust",
    ".java": "java",
    ".kt": "kotlin",
    ".swift": "swift",
    ".dart": "dart",
    ".rb": "ruby",
    ".php": "php",
    ".c": "c",
    ".h": "c",
    ".cpp": "cpp",
    ".cc": "cpp",
    ".hpp": "cpp",
    ".cs": "csharp",
    ".scala": "scala",
    ".lua": "lua",
    ".sh": "bash",
    ".sql": "sql",
    ".md": "markdown",
    ".json": "json",
    ".yaml": "yaml",
    ".yml": "yaml",
    ".toml": "toml",
    ".html": "html",
    ".css": "css",
}


@dataclass(slots=True)
class Symbol:
    name: str
    kind: str
    line_start: int
    line_end: int
    signature: str = ""
    doc_comment: str = ""
    exported: bool = False
    children: list["Symbol"] = field(default_factory=list)

    def walk(self) -> Iterator["Symbol"]:
        yield self
        for child in self.children:
            yield from child.walk()


@dataclass(frozen=True, slots=True)
class Relationship:
    target_symbol: str
    kind: str
    line: int
    target_file: str = ""
    column: int = 0


@dataclass(slots=True)
class FileAnalysis:
    language: str
    symbols: list[Symbol] = field(default_factory=list)
    relationships: list[Relationship] = field(default_factory=list)

    def boundaries(self) -> list[SymbolBoundary]:
        """Top-level symbol ranges used as chunk split hints."""

        return [
            SymbolBoundary(
                name=symbol.name,
                kind=symbol.kind,
                start_line=symbol.line_start,
                end_line=symbol.line_end,
            )
            for symbol in self.symbols
        ]

    @property
    def symbol_count(self) -> int:
        return sum(1 for symbol in self.symbols for _ in symbol.walk())


class Analyzer(Protocol):
    """Produce symbols and call edges for one file's text."""

    language: str

    def analyze(self, path: str, content: str) -> FileAnalysis:
        raise NotImplementedError


def _call_target(func: ast.expr) -> str:
    if isinstance(func, ast.Name):
        return func.id
    if isinstance(func, ast.Attribute):
        parts = [func.attr]
        value = func.value
        while isinstance(value, ast.Attribute):
            parts.append(value.attr)
            value = value.value
        if isinstance(value, ast.Name):
            parts.append(value.id)
        return ".".join(reversed(parts))
    return ""


@dataclass(frozen=True, slots=True)
class PythonAnalyzer:
    language: str = "python"

    def analyze(self, path: str, content: str) -> FileAnalysis:
        source = content.replace("\r\n", "\n")
        try:
            module = ast.parse(source, filename=path)
        except (SyntaxError, ValueError):
            return FileAnalysis(language=self.language)
        max_line = max(len(source.split("\n")), 1)

        def clamp_line(value: int) -> int:
            return min(max(value, 1), max_line)

        def node_start_line(node) -> int:
            start = node.lineno
            for deco in getattr(node, "decorator_list", None) or []:
                start = min(start, deco.lineno)
            return clamp_line(start)

        def node_end_line(node) -> int:
            end_lineno = getattr(node, "end_lineno", None)
            if isinstance(end_lineno, int):
                return clamp_line(end_lineno)
            return clamp_line(node.lineno)

        def signature(node) -> str:
            if isinstance(node, ast.ClassDef):
                bases = ", ".join(ast.unparse(base) for base in node.bases)
                return f"class {node.name}({bases})" if bases else f"class {node.name}"
            prefix = "async def" if isinstance(node, ast.AsyncFunctionDef) else "def"
            text = f"{prefix} {node.name}({ast.unparse(node.args)})"
            if node.returns is not None:
                text = f"{text} -> {ast.unparse(node.returns)}"
            return text

        def collect(body, *, in_class: bool, exported_scope: bool) -> list[Symbol]:
            symbols: list[Symbol] = []
            for node in body:
                if isinstance(node, ast.ClassDef):
                    kind = "class"
                elif isinstance(node, (ast.FunctionDef, ast.AsyncFunctionDef)):
                    kind = "method" if in_class else "function"
                else:
                    continue
                exported = exported_scope and not node.name.startswith("_")
                symbols.append(
                    Symbol(
                        name=node.name,
                        kind=kind,
                        line_start=node_start_line(node),
                        line_end=node_end_line(node),
                        signature=signature(node),
                        doc_comment=ast.get_docstring(node) or "",
                        exported=exported,
                        children=collect(
                            node.body,
                            in_class=kind == "class",
                            exported_scope=exported and kind == "class",
                        ),
                    )
                )
            return symbols

        relationships: list[Relationship] = []
        for node in ast.walk(module):
            if isinstance(node, ast.Call):
                target = _call_target(node.func)
                if target:
                    relationships.append(
                        Relationship(
                            target_symbol=target,
                            kind="call",
                            line=node.lineno,
                            column=node.col_offset + 1,
                        )
                    )
            elif isinstance(node, ast.Import):
                for alias in node.names:
                    relationships.append(
                        Relationship(
                            target_symbol=alias.asname or alias.name,
                            kind="import",
                            line=node.lineno,
                            target_file=alias.name,
                        )
                    )
            elif isinstance(node, ast.ImportFrom):
                module_name = "." * node.level + (node.module or "")
                for alias in node.names:
                    relationships.append(
                        Relationship(
                            target_symbol=alias.name,
                            kind="import",
                            line=node.lineno,
                            target_file=module_name,
                        )
                    )
        relationships.sort(key=lambda rel: (rel.line, rel.column, rel.kind))
        return FileAnalysis(
            language=self.language,
            symbols=collect(module.body, in_class=False, exported_scope=True),
            relationships=relationships,
        )


_ANALYZERS: Dict[str, Analyzer] = {
    ".py": PythonAnalyzer(),
}


def detect_language(path: str) -> str:
    return _LANGUAGES.get(PurePosixPath(path).suffix.lower(), "")


def register_analyzer(extension: str, analyzer: Analyzer) -> None:
    suffix = extension.lower()
    if not suffix.startswith("."):
        suffix = f".{suffix}"
    _ANALYZERS[suffix] = analyzer


def get_analyzer(path: str) -> Analyzer | None:
    return _ANALYZERS.get(PurePosixPath(path).suffix.lower())


def analyze_file(path: str, content: str) -> FileAnalysis:
    """Run the registered analyzer for *path*, if any."""

    analyzer = get_analyzer(path)
    if analyzer is None:
        return FileAnalysis(language=detect_language(path))
    return analyzer.analyze(path, content)
