"""Utility helpers for filesystem access, fingerprints and path handling."""

from __future__ import annotations

import hashlib
import logging
import os
import stat as stat_module
from datetime import datetime, timezone
from pathlib import Path
from typing import List

from charset_normalizer import from_bytes

from .guardrails import Guardrails
from .models import FileMetadata

log = logging.getLogger(__name__)

MOD_TIME_FORMAT = "%Y-%m-%dT%H:%M:%SZ"
_HASH_BLOCK_SIZE = 1 << 16


def resolve_directory(path: Path | str) -> Path:
    """Resolve and validate a user supplied directory path."""
    dir_path = Path(path).expanduser().resolve()
    if not dir_path.exists():
        raise FileNotFoundError(f"Directory does not exist: {dir_path}")
    if not dir_path.is_dir():
        raise NotADirectoryError(f"Path is not a directory: {dir_path}")
    return dir_path


def to_posix_relative(path: Path, root: Path) -> str:
    rel = path.relative_to(root)
    if rel == Path("."):
        return ""
    return rel.as_posix()


def normalize_rel_path(value: str) -> str:
    """Return *value* as a slash separated path relative to the workspace root."""

    normalized = value.strip().replace("\\", "/")
    while normalized.startswith("./"):
        normalized = normalized[2:]
    return normalized.lstrip("/")


def normalize_mod_time(value: datetime | float) -> datetime:
    """Convert to UTC and truncate to whole seconds."""

    if isinstance(value, (int, float)):
        value = datetime.fromtimestamp(value, tz=timezone.utc)
    elif value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc).replace(microsecond=0)


def format_mod_time(value: datetime) -> str:
    return normalize_mod_time(value).strftime(MOD_TIME_FORMAT)


def parse_mod_time(value: str) -> datetime:
    parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    return normalize_mod_time(parsed)


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def format_timestamp(value: datetime | None) -> str:
    if value is None:
        return ""
    return value.astimezone(timezone.utc).isoformat().replace("+00:00", "Z")


def parse_timestamp(value: str | None) -> datetime | None:
    if not value:
        return None
    return datetime.fromisoformat(value.replace("Z", "+00:00"))


def hash_bytes(data: bytes) -> str:
    return hashlib.sha256(data).hexdigest()


def hash_file(path: Path | str) -> str:
    """Return the sha256 hex digest of the file's raw bytes."""

    digest = hashlib.sha256()
    with open(path, "rb") as handle:
        for block in iter(lambda: handle.read(_HASH_BLOCK_SIZE), b""):
            digest.update(block)
    return digest.hexdigest()


def stat_file(path: Path | str) -> tuple[int, datetime]:
    """Return ``(size, mod_time)`` with the modification time normalized."""

    info = os.stat(path)
    return info.st_size, normalize_mod_time(info.st_mtime)


def fingerprint(path: Path | str) -> FileMetadata:
    size, mod_time = stat_file(path)
    return FileMetadata(hash=hash_file(path), size=size, mod_time=mod_time)


def decode_text(data: bytes) -> str | None:
    """Decode file bytes to text, or return None for binary content."""

    if not data:
        return ""
    try:
        return data.decode("utf-8")
    except UnicodeDecodeError:
        pass
    if b"\x00" in data:
        return None
    result = from_bytes(data)
    best = result.best() if result is not None else None
    if best is None:
        return None
    return str(best)


def list_files(root: Path | str, guardrails: Guardrails | None = None) -> List[str]:
    """Return sorted relative paths of files under *root* outside the guardrails.

    Guarded directories are pruned rather than descended into. Symlinked
    directories are not followed and broken symlinks are skipped, while
    symlinks to regular files are listed. Directories that cannot be read are
    skipped.
    """

    directory = resolve_directory(root)
    guardrails = guardrails or Guardrails()
    files: List[str] = []

    def _on_error(exc: OSError) -> None:
        if isinstance(exc, PermissionError):
            log.debug("Skipping unreadable directory %s", exc.filename)
            return
        raise exc

    for dirpath, dirnames, filenames in os.walk(directory, topdown=True, onerror=_on_error):
        current_dir = Path(dirpath)
        kept_dirs: list[str] = []
        for name in sorted(dirnames):
            entry = current_dir / name
            rel = to_posix_relative(entry, directory)
            if guardrails.matches(rel, is_dir=True):
                continue
            if entry.is_symlink():
                continue
            kept_dirs.append(name)
        dirnames[:] = kept_dirs

        for name in filenames:
            entry = current_dir / name
            rel = to_posix_relative(entry, directory)
            if guardrails.matches(rel):
                continue
            if entry.is_symlink():
                try:
                    target_mode = entry.stat().st_mode
                except OSError:
                    log.debug("Skipping broken symlink %s", rel)
                    continue
                if not stat_module.S_ISREG(target_mode):
                    continue
            files.append(rel)

    files.sort()
    return files
