"""Glob guardrails that keep paths out of traversal, indexing and staleness checks."""

from __future__ import annotations

from dataclasses import dataclass, field
from functools import cached_property
from typing import Iterable, Sequence

from pathspec.gitignore import GitIgnoreSpec

DEFAULT_DO_NOT_TOUCH_GLOBS: tuple[str, ...] = (
    # version control and editors
    ".git/**",
    ".palace/**",
    ".idea/**",
    "**/.idea/**",
    ".vscode/**",
    "**/.DS_Store",
    # dependencies
    "node_modules/**",
    "vendor/**",
    "**/Pods/**",
    "**/.symlinks/**",
    "**/DerivedData/**",
    # build output
    "dist/**",
    "build/**",
    "**/build/**",
    "coverage/**",
    "target/**",
    "out/**",
    ".dart_tool/**",
    "**/.dart_tool/**",
    "**/*.dill",
    "**/test_cache/**",
    ".next/**",
    ".turbo/**",
    ".nx/**",
    ".nuxt/**",
    ".output/**",
    ".gradle/**",
    "**/.gradle/**",
    "**/*.apk",
    "**/*.aab",
    "**/*.ipa",
    # generated or minified
    "**/*.min.*",
    "**/*.lock",
    "**/*.generated.*",
    "**/*.g.dart",
    "**/*.freezed.dart",
    "**/*.gr.dart",
    "**/*.mocks.dart",
)
DEFAULT_READ_ONLY_GLOBS: tuple[str, ...] = ()


def normalize_glob(value: str | None) -> str:
    """Trim a glob, convert backslashes and collapse repeated slashes."""

    if not value:
        return ""
    glob = value.strip().replace("\\", "/")
    while "//" in glob:
        glob = glob.replace("//", "/")
    return glob


def merge_globs(*groups: Iterable[str] | None) -> tuple[str, ...]:
    """Concatenate glob groups in order, normalized and without duplicates."""

    merged: list[str] = []
    seen: set[str] = set()
    for group in groups:
        for raw in group or ():
            glob = normalize_glob(raw)
            if not glob or glob in seen:
                continue
            seen.add(glob)
            merged.append(glob)
    return tuple(merged)


def _as_gitignore_line(glob: str) -> str:
    # A slash-free glob only matches top-level entries, like a root-anchored
    # gitignore line. Globs with a slash are already anchored by pathspec.
    if "/" in glob.rstrip("/"):
        return glob
    return f"/{glob}"


@dataclass(frozen=True)
class Guardrails:
    do_not_touch_globs: tuple[str, ...] = field(default_factory=tuple)
    read_only_globs: tuple[str, ...] = field(default_factory=tuple)

    @classmethod
    def defaults(cls) -> "Guardrails":
        return cls(
            do_not_touch_globs=merge_globs(DEFAULT_DO_NOT_TOUCH_GLOBS),
            read_only_globs=merge_globs(DEFAULT_READ_ONLY_GLOBS),
        )

    @classmethod
    def with_defaults(
        cls,
        do_not_touch: Sequence[str] | None = None,
        read_only: Sequence[str] | None = None,
    ) -> "Guardrails":
        """Return the default guardrails extended with user globs."""

        return cls(
            do_not_touch_globs=merge_globs(DEFAULT_DO_NOT_TOUCH_GLOBS, do_not_touch),
            read_only_globs=merge_globs(DEFAULT_READ_ONLY_GLOBS, read_only),
        )

    @property
    def globs(self) -> tuple[str, ...]:
        return self.do_not_touch_globs + self.read_only_globs

    @cached_property
    def _spec(self) -> GitIgnoreSpec:
        lines = [_as_gitignore_line(glob) for glob in self.globs if glob]
        return GitIgnoreSpec.from_lines(lines)

    def matches(self, rel_path: str, *, is_dir: bool = False) -> bool:
        """Return True when *rel_path* is covered by any guardrail glob."""

        normalized = normalize_glob(rel_path).lstrip("/")
        if normalized.startswith("./"):
            normalized = normalized[2:]
        if not normalized:
            return False
        if is_dir and not normalized.endswith("/"):
            normalized = f"{normalized}/"
        return self._spec.match_file(normalized)


def matches_guardrail(rel_path: str, guardrails: Guardrails | None) -> bool:
    if guardrails is None:
        return False
    return guardrails.matches(rel_path)
