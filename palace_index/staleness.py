"""Fingerprint comparison shared by change detection and staleness reporting."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Iterable, Mapping

from .guardrails import Guardrails
from .models import (
    ChangeAction,
    FileChange,
    FileMetadata,
    FingerprintStatus,
    VerifyMode,
)
from .utils import hash_file, list_files, normalize_rel_path, stat_file

log = logging.getLogger(__name__)


class FingerprintReadError(OSError):
    """A candidate exists but could not be stat'ed or hashed."""

    def __init__(self, phase: str, path: str, cause: OSError) -> None:
        self.phase = phase
        self.path = path
        self.cause = cause
        super().__init__(f"{phase} {path}: {cause}")

    def describe(self) -> str:
        if self.phase == "hash":
            return f"hash {self.path}: {self.cause}"
        return f"error reading {self.path}: {self.cause}"


@dataclass(frozen=True, slots=True)
class FingerprintComparison:
    status: FingerprintStatus
    current: FileMetadata | None = None
    metadata_drift: bool = False


def _hash_candidate(root: Path, rel_path: str) -> str:
    try:
        return hash_file(root / rel_path)
    except OSError as exc:
        raise FingerprintReadError("hash", rel_path, exc) from exc


def compare_fingerprint(
    root: Path,
    rel_path: str,
    stored: FileMetadata | None,
    mode: VerifyMode = VerifyMode.FAST,
) -> FingerprintComparison:
    """Classify the live file at *rel_path* against its stored fingerprint.

    Fast mode treats equal size and modification time as proof that nothing
    changed and never reads the content in that case. Strict mode always
    hashes a stored file. A file with no stored entry is never hashed here,
    so ``current.hash`` is empty for ``ADDED``. ``metadata_drift`` reports a
    size or mtime difference even when the content hash still matches.
    """

    abs_path = root / rel_path
    try:
        size, mod_time = stat_file(abs_path)
    except FileNotFoundError:
        return FingerprintComparison(FingerprintStatus.MISSING)
    except OSError as exc:
        raise FingerprintReadError("stat", rel_path, exc) from exc

    if stored is None:
        current = FileMetadata(hash="", size=size, mod_time=mod_time)
        return FingerprintComparison(FingerprintStatus.ADDED, current)

    drift = size != stored.size or mod_time != stored.mod_time
    if mode is VerifyMode.FAST and not drift:
        current = FileMetadata(hash=stored.hash, size=size, mod_time=mod_time)
        return FingerprintComparison(FingerprintStatus.UNCHANGED, current)

    current = FileMetadata(hash=_hash_candidate(root, rel_path), size=size, mod_time=mod_time)
    if current.hash != stored.hash:
        return FingerprintComparison(FingerprintStatus.MODIFIED, current, drift)
    return FingerprintComparison(FingerprintStatus.UNCHANGED, current, drift)


def detect_changes(
    root: Path,
    stored: Mapping[str, FileMetadata],
    guardrails: Guardrails | None = None,
    mode: VerifyMode = VerifyMode.FAST,
) -> list[FileChange]:
    """Walk *root* and list the files to add, refresh or drop from the index.

    A file whose size or mtime moved is reported as modified even when its
    hash is unchanged, so the stored fingerprint is refreshed. Stored paths
    missing from the guarded listing are deleted, including paths a guardrail
    now covers. Files that cannot be read are skipped.
    """

    guardrails = guardrails or Guardrails()
    changes: list[FileChange] = []
    live = list_files(root, guardrails)
    seen: set[str] = set()
    for rel_path in live:
        seen.add(rel_path)
        previous = stored.get(rel_path)
        try:
            result = compare_fingerprint(root, rel_path, previous, mode)
            new_hash = (
                _hash_candidate(root, rel_path)
                if result.status is FingerprintStatus.ADDED
                else ""
            )
        except FingerprintReadError as exc:
            log.warning("Skipping unreadable file %s", exc.describe())
            continue
        if result.status is FingerprintStatus.ADDED:
            changes.append(FileChange(rel_path, ChangeAction.ADDED, new_hash=new_hash))
        elif result.status is FingerprintStatus.MODIFIED or (
            result.status is FingerprintStatus.UNCHANGED and result.metadata_drift
        ):
            changes.append(
                FileChange(
                    rel_path,
                    ChangeAction.MODIFIED,
                    old_hash=previous.hash,
                    new_hash=result.current.hash,
                )
            )
    for rel_path in sorted(stored):
        if rel_path in seen:
            continue
        changes.append(
            FileChange(rel_path, ChangeAction.DELETED, old_hash=stored[rel_path].hash)
        )
    log.debug("Detected %d change(s) under %s", len(changes), root)
    return changes


def detect_stale(
    root: Path,
    candidates: Iterable[str],
    stored: Mapping[str, FileMetadata],
    guardrails: Guardrails | None = None,
    mode: VerifyMode = VerifyMode.FAST,
    include_missing: bool = False,
) -> list[str]:
    """Return sorted descriptions of candidates that differ from the index.

    Candidates are not de-duplicated. When *include_missing* is set, stored
    paths that were not among the candidates are reported as missing.
    """

    guardrails = guardrails or Guardrails()
    stale: list[str] = []
    seen: set[str] = set()
    for raw in candidates:
        rel_path = normalize_rel_path(raw or "")
        if not rel_path or guardrails.matches(rel_path):
            continue
        seen.add(rel_path)
        try:
            result = compare_fingerprint(root, rel_path, stored.get(rel_path), mode)
        except FingerprintReadError as exc:
            stale.append(exc.describe())
            continue
        if result.status is FingerprintStatus.MISSING:
            stale.append(f"missing file {rel_path}")
        elif result.status is FingerprintStatus.ADDED:
            stale.append(f"new file {rel_path}")
        elif result.status is FingerprintStatus.MODIFIED:
            stale.append(f"changed file {rel_path}")

    if include_missing:
        for rel_path in stored:
            if rel_path in seen or guardrails.matches(rel_path):
                continue
            stale.append(f"missing file {rel_path}")

    stale.sort()
    return stale
