"""Thin wrappers around the ``git`` executable."""

from __future__ import annotations

import logging
import subprocess
from dataclasses import dataclass
from pathlib import Path

from ..errors import DiffRangeError

log = logging.getLogger(__name__)

GIT_TIMEOUT = 30.0


@dataclass(frozen=True, slots=True)
class NameStatus:
    status: str
    path: str


def run_git(
    root: Path,
    *args: str,
    timeout: float = GIT_TIMEOUT,
) -> subprocess.CompletedProcess[str]:
    """Run ``git -C root *args`` and return the completed process."""

    log.debug("git %s (cwd=%s)", " ".join(args), root)
    return subprocess.run(
        ["git", "-C", str(root), *args],
        check=False,
        capture_output=True,
        text=True,
        timeout=timeout,
    )


def is_git_repo(root: Path) -> bool:
    try:
        completed = run_git(root, "rev-parse", "--is-inside-work-tree")
    except (OSError, subprocess.SubprocessError):
        return False
    return completed.returncode == 0 and completed.stdout.strip() == "true"


def head_commit(root: Path) -> str:
    """Return the HEAD commit hash, or an empty string outside a git work tree."""

    try:
        completed = run_git(root, "rev-parse", "HEAD")
    except (OSError, subprocess.SubprocessError):
        return ""
    if completed.returncode != 0:
        return ""
    return completed.stdout.strip()


def _diff(root: Path, diff_range: str, flag: str) -> str:
    if not diff_range.strip() or diff_range.strip().startswith("-"):
        raise DiffRangeError(diff_range, "expected a revision range such as HEAD~1..HEAD")
    try:
        completed = run_git(root, "diff", "--relative", flag, diff_range.strip(), "--")
    except (OSError, subprocess.SubprocessError) as exc:
        raise DiffRangeError(diff_range, str(exc)) from exc
    if completed.returncode != 0:
        raise DiffRangeError(diff_range, completed.stderr or completed.stdout)
    return completed.stdout


def diff_name_only(root: Path, diff_range: str) -> list[str]:
    """Return the paths changed in *diff_range*.

    Raises :class:`DiffRangeError` when git rejects the range or *root* is not
    inside a repository.
    """

    output = _diff(root, diff_range, "--name-only")
    return [line.strip() for line in output.splitlines() if line.strip()]


def parse_name_status(output: str) -> list[NameStatus]:
    entries: list[NameStatus] = []
    for line in output.splitlines():
        parts = line.split("\t") if "\t" in line else line.split()
        if len(parts) < 2:
            continue
        token = parts[0].strip()
        path_index = 2 if token[:1] in {"R", "C"} and len(parts) >= 3 else 1
        path = parts[path_index].strip().replace("\\", "/")
        if path:
            entries.append(NameStatus(status=token, path=path))
    return entries


def diff_name_status(root: Path, diff_range: str) -> list[NameStatus]:
    return parse_name_status(_diff(root, diff_range, "--name-status"))
