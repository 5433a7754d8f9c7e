from __future__ import annotations

import json
import shutil
import subprocess

import pytest

from palace_index.errors import DiffRangeError, SignalError
from palace_index.guardrails import Guardrails
from palace_index.services import signal_service
from palace_index.services.signal_service import ChangeSignal, SignalChange
from palace_index.utils import hash_file

needs_git = pytest.mark.skipif(shutil.which("git") is None, reason="git is not installed")


def _git(root, *args):
    subprocess.run(["git", *args], cwd=root, check=True, capture_output=True, text=True)


def _write(root, rel, text):
    path = root / rel
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(text, encoding="utf-8")
    return path


def _init_repo(root):
    _git(root, "init", "-q")
    _git(root, "config", "user.email", "dev@example.com")
    _git(root, "config", "user.name", "Dev")
    _git(root, "config", "commit.gpgsign", "false")


def _commit_all(root, message):
    _git(root, "add", "-A")
    _git(root, "commit", "-q", "-m", message)


@pytest.fixture
def two_commit_repo(tmp_path):
    _init_repo(tmp_path)
    _write(tmp_path, "a.py", "a = 1\n")
    _write(tmp_path, "b.py", "b = 1\n")
    _commit_all(tmp_path, "first")
    _write(tmp_path, "a.py", "a = 2\n")
    (tmp_path / "b.py").unlink()
    _write(tmp_path, "pkg/c.py", "c = 1\n")
    _write(tmp_path, "node_modules/dep/index.js", "module.exports = 1\n")
    _commit_all(tmp_path, "second")
    return tmp_path


def test_parse_status():
    assert signal_service.parse_status("A") == "added"
    assert signal_service.parse_status("D") == "deleted"
    assert signal_service.parse_status("M") == "modified"
    assert signal_service.parse_status("R100") == "modified"
    assert signal_service.parse_status("C50") == "modified"
    assert signal_service.parse_status("T") == "modified"


@needs_git
def test_generate_records_changes(two_commit_repo):
    root = two_commit_repo
    signal = signal_service.generate(root, "HEAD~1..HEAD", Guardrails.defaults())

    assert signal.diff_range == "HEAD~1..HEAD"
    assert [(change.path, change.status) for change in signal.changes] == [
        ("a.py", "modified"),
        ("b.py", "deleted"),
        ("pkg/c.py", "added"),
    ]
    hashes = {change.path: change.hash for change in signal.changes}
    assert hashes["a.py"] == hash_file(root / "a.py")
    assert hashes["b.py"] == ""

    stored = json.loads(signal_service.signal_path(root).read_text(encoding="utf-8"))
    assert stored["schemaVersion"] == "1.0.0"
    assert stored["kind"] == "palace/change-signal"
    assert stored["diffRange"] == "HEAD~1..HEAD"
    assert stored["provenance"]["createdBy"] == "palace signal"
    assert stored["generatedAt"].endswith("Z")
    assert [item["path"] for item in stored["changes"]] == ["a.py", "b.py", "pkg/c.py"]


@needs_git
def test_generate_fails_when_changed_file_is_gone(two_commit_repo):
    root = two_commit_repo
    (root / "a.py").unlink()
    with pytest.raises(SignalError, match="hash a.py: file not found for diff range HEAD~1..HEAD"):
        signal_service.generate(root, "HEAD~1..HEAD")
    assert not signal_service.signal_path(root).exists()


@needs_git
def test_generate_rejects_unknown_range(two_commit_repo):
    with pytest.raises(DiffRangeError):
        signal_service.generate(two_commit_repo, "no-such-ref..HEAD")


def test_generate_requires_a_range(tmp_path):
    with pytest.raises(SignalError):
        signal_service.generate(tmp_path, "  ")


def test_load_missing_signal_returns_none(tmp_path):
    assert signal_service.load(tmp_path) is None
    assert signal_service.paths(tmp_path, "HEAD~1..HEAD") is None


def test_load_invalid_signal_raises(tmp_path):
    path = signal_service.signal_path(tmp_path)
    path.parent.mkdir(parents=True)
    path.write_text("{broken", encoding="utf-8")
    with pytest.raises(SignalError, match="invalid change signal"):
        signal_service.load(tmp_path)

    path.write_text(json.dumps({"changes": [{"status": "added"}]}), encoding="utf-8")
    with pytest.raises(SignalError):
        signal_service.load(tmp_path)


def test_write_and_load_round_trip(tmp_path):
    signal = ChangeSignal(
        diff_range="main..HEAD",
        generated_at="2024-01-01T00:00:00Z",
        changes=[
            SignalChange(path="a.py", status="modified", hash="abc"),
            SignalChange(path="b.py", status="deleted"),
        ],
    )
    path = signal_service.write(tmp_path, signal)
    assert path == tmp_path / ".palace" / "outputs" / "change-signal.json"
    assert signal_service.load(tmp_path) == signal


def test_paths_only_used_for_matching_range(tmp_path):
    signal = ChangeSignal(
        diff_range="main..HEAD",
        generated_at="2024-01-01T00:00:00Z",
        changes=[
            SignalChange(path="./src/a.py", status="modified"),
            SignalChange(path="node_modules/x.js", status="added"),
            SignalChange(path="gone.py", status="deleted"),
        ],
    )
    signal_service.write(tmp_path, signal)

    assert signal_service.paths(tmp_path, "main..HEAD", Guardrails.defaults()) == [
        "src/a.py",
        "gone.py",
    ]
    assert signal_service.paths(tmp_path, "HEAD~1..HEAD") is None
