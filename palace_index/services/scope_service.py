"""Decide which files a verification run looks at."""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path

from ..guardrails import Guardrails
from ..utils import list_files, normalize_rel_path
from . import signal_service
from .git_service import diff_name_only

SOURCE_FULL_SCAN = "full-scan"
SOURCE_CHANGE_SIGNAL = "change-signal"
SOURCE_GIT_DIFF = "git-diff"


@dataclass(slots=True)
class Scope:
    candidates: list[str] = field(default_factory=list)
    include_missing: bool = False
    source: str = SOURCE_FULL_SCAN
    diff_range: str = ""

    @property
    def full_scope(self) -> bool:
        return self.source == SOURCE_FULL_SCAN


def resolve_scope(
    root: Path,
    diff_range: str = "",
    guardrails: Guardrails | None = None,
) -> Scope:
    """Return the candidate files for *diff_range*, or the whole tree when empty.

    A diff scope never widens to the full tree: git errors propagate as
    :class:`~palace_index.errors.DiffRangeError` and an empty diff yields no
    candidates.
    """

    guardrails = guardrails or Guardrails()
    diff_range = (diff_range or "").strip()
    if not diff_range:
        return Scope(
            candidates=list_files(root, guardrails),
            include_missing=True,
            source=SOURCE_FULL_SCAN,
        )

    from_signal = signal_service.paths(root, diff_range, guardrails)
    if from_signal is not None:
        return Scope(
            candidates=from_signal,
            include_missing=False,
            source=SOURCE_CHANGE_SIGNAL,
            diff_range=diff_range,
        )

    candidates = [
        path
        for path in (normalize_rel_path(raw) for raw in diff_name_only(root, diff_range))
        if path and not guardrails.matches(path)
    ]
    return Scope(
        candidates=candidates,
        include_missing=False,
        source=SOURCE_GIT_DIFF,
        diff_range=diff_range,
    )
