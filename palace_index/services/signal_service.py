"""Generate and read the change-signal artifact for a git diff range."""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict

from ..errors import SignalError
from ..guardrails import Guardrails
from ..utils import format_timestamp, hash_file, normalize_rel_path, utc_now
from .git_service import diff_name_status

log = logging.getLogger(__name__)

SIGNAL_SCHEMA_VERSION = "1.0.0"
SIGNAL_KIND = "palace/change-signal"
SIGNAL_CREATED_BY = "palace signal"


@dataclass(frozen=True, slots=True)
class SignalChange:
    path: str
    status: str
    hash: str = ""


@dataclass(slots=True)
class ChangeSignal:
    diff_range: str
    generated_at: str
    changes: list[SignalChange] = field(default_factory=list)
    schema_version: str = SIGNAL_SCHEMA_VERSION
    kind: str = SIGNAL_KIND
    created_by: str = SIGNAL_CREATED_BY

    def to_json(self) -> Dict[str, Any]:
        return {
            "schemaVersion": self.schema_version,
            "kind": self.kind,
            "diffRange": self.diff_range,
            "generatedAt": self.generated_at,
            "changes": [
                {"path": change.path, "status": change.status, "hash": change.hash}
                for change in self.changes
            ],
            "provenance": {
                "createdBy": self.created_by,
                "createdAt": self.generated_at,
            },
        }

    @classmethod
    def from_json(cls, raw: Dict[str, Any]) -> "ChangeSignal":
        changes = []
        for item in raw.get("changes") or []:
            if not isinstance(item, dict) or not isinstance(item.get("path"), str):
                raise ValueError("change entries need a string path")
            changes.append(
                SignalChange(
                    path=normalize_rel_path(item["path"]),
                    status=str(item.get("status") or "modified"),
                    hash=str(item.get("hash") or ""),
                )
            )
        provenance = raw.get("provenance") if isinstance(raw.get("provenance"), dict) else {}
        return cls(
            diff_range=str(raw.get("diffRange") or ""),
            generated_at=str(raw.get("generatedAt") or ""),
            changes=changes,
            schema_version=str(raw.get("schemaVersion") or SIGNAL_SCHEMA_VERSION),
            kind=str(raw.get("kind") or SIGNAL_KIND),
            created_by=str(provenance.get("createdBy") or SIGNAL_CREATED_BY),
        )


def signal_path(root: Path) -> Path:
    return Path(root) / ".palace" / "outputs" / "change-signal.json"


def parse_status(token: str) -> str:
    if token == "A":
        return "added"
    if token == "D":
        return "deleted"
    return "modified"


def generate(root: Path, diff_range: str, guardrails: Guardrails | None = None) -> ChangeSignal:
    """Record the file-level changes of *diff_range* under ``.palace/outputs``.

    Every changed file that is not deleted must exist and is hashed; a file
    missing from disk aborts generation.
    """

    if not diff_range.strip():
        raise SignalError("signal requires a diff range")
    guardrails = guardrails or Guardrails()
    changes: list[SignalChange] = []
    for entry in diff_name_status(root, diff_range):
        if guardrails.matches(entry.path):
            continue
        status = parse_status(entry.status)
        file_hash = ""
        if status != "deleted":
            try:
                file_hash = hash_file(root / entry.path)
            except FileNotFoundError as exc:
                raise SignalError(
                    f"hash {entry.path}: file not found for diff range {diff_range}"
                ) from exc
            except OSError as exc:
                raise SignalError(f"hash {entry.path}: {exc}") from exc
        changes.append(SignalChange(path=entry.path, status=status, hash=file_hash))
    changes.sort(key=lambda change: change.path)

    signal = ChangeSignal(
        diff_range=diff_range,
        generated_at=format_timestamp(utc_now().replace(microsecond=0)),
        changes=changes,
    )
    write(root, signal)
    return signal


def write(root: Path, signal: ChangeSignal) -> Path:
    out_path = signal_path(root)
    try:
        out_path.parent.mkdir(parents=True, exist_ok=True)
        out_path.write_text(json.dumps(signal.to_json(), indent=2) + "\n", encoding="utf-8")
    except OSError as exc:
        raise SignalError(f"write {out_path}: {exc}") from exc
    return out_path


def load(root: Path) -> ChangeSignal | None:
    """Read the stored change signal; ``None`` when there is none."""

    path = signal_path(root)
    if not path.exists():
        return None
    try:
        raw = json.loads(path.read_text(encoding="utf-8"))
        if not isinstance(raw, dict):
            raise ValueError("top-level value is not an object")
        return ChangeSignal.from_json(raw)
    except (OSError, ValueError) as exc:
        raise SignalError(f"invalid change signal {path}: {exc}") from exc


def paths(root: Path, diff_range: str, guardrails: Guardrails | None = None) -> list[str] | None:
    """Changed paths from the stored signal when it covers exactly *diff_range*.

    Returns ``None`` when no signal exists or it records another range.
    """

    signal = load(root)
    if signal is None:
        return None
    if signal.diff_range != diff_range:
        log.debug(
            "Change signal covers %r, not %r; using git diff",
            signal.diff_range,
            diff_range,
        )
        return None
    guardrails = guardrails or Guardrails()
    return [
        change.path
        for change in signal.changes
        if change.path and not guardrails.matches(change.path)
    ]
