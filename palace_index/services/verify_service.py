"""Read-only freshness check of the index against the working tree."""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path

from ..config import load_guardrails
from ..guardrails import Guardrails
from ..models import VerifyMode
from ..staleness import detect_stale
from ..store import IndexStore
from ..utils import resolve_directory
from .scope_service import resolve_scope


@dataclass(slots=True)
class VerifyOptions:
    root: Path | str
    diff_range: str = ""
    mode: VerifyMode = VerifyMode.FAST
    guardrails: Guardrails | None = None


@dataclass(slots=True)
class VerifyResult:
    stale: list[str] = field(default_factory=list)
    full_scope: bool = True
    source: str = ""
    candidate_count: int = 0

    @property
    def is_fresh(self) -> bool:
        return not self.stale


def run(store: IndexStore, options: VerifyOptions) -> VerifyResult:
    """Report indexed files that no longer match the working tree.

    Without a diff range every listed file is compared and stored paths that
    vanished are reported as missing. With a range only the changed paths are
    compared.
    """

    root = resolve_directory(options.root)
    guardrails = options.guardrails or load_guardrails(root)
    mode = VerifyMode(options.mode)
    stored = store.load_file_metadata()
    scope = resolve_scope(root, options.diff_range, guardrails)
    stale = detect_stale(
        root,
        scope.candidates,
        stored,
        guardrails,
        mode,
        scope.include_missing,
    )
    return VerifyResult(
        stale=stale,
        full_scope=scope.full_scope,
        source=scope.source,
        candidate_count=len(scope.candidates),
    )
