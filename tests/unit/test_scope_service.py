from __future__ import annotations

import pytest

from palace_index.errors import DiffRangeError
from palace_index.guardrails import Guardrails
from palace_index.services import scope_service, signal_service
from palace_index.services.signal_service import ChangeSignal, SignalChange


def _write(root, rel, text="x"):
    path = root / rel
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(text, encoding="utf-8")


def test_full_scope_lists_workspace(tmp_path, monkeypatch):
    _write(tmp_path, "b.py")
    _write(tmp_path, "a/c.py")
    _write(tmp_path, ".git/HEAD")

    def fail(*args, **kwargs):
        raise AssertionError("git should not run for a full scope")

    monkeypatch.setattr(scope_service, "diff_name_only", fail)
    scope = scope_service.resolve_scope(tmp_path, "", Guardrails.defaults())

    assert scope.candidates == ["a/c.py", "b.py"]
    assert scope.include_missing is True
    assert scope.source == scope_service.SOURCE_FULL_SCAN
    assert scope.full_scope


def test_diff_scope_prefers_matching_change_signal(tmp_path, monkeypatch):
    signal_service.write(
        tmp_path,
        ChangeSignal(
            diff_range="main..HEAD",
            generated_at="2024-01-01T00:00:00Z",
            changes=[SignalChange(path="src/a.py", status="modified")],
        ),
    )

    def fail(*args, **kwargs):
        raise AssertionError("git diff should not run when the signal matches")

    monkeypatch.setattr(scope_service, "diff_name_only", fail)
    scope = scope_service.resolve_scope(tmp_path, " main..HEAD ")

    assert scope.candidates == ["src/a.py"]
    assert scope.include_missing is False
    assert scope.source == scope_service.SOURCE_CHANGE_SIGNAL
    assert scope.diff_range == "main..HEAD"
    assert not scope.full_scope


def test_diff_scope_falls_back_to_git_on_range_mismatch(tmp_path, monkeypatch):
    signal_service.write(
        tmp_path,
        ChangeSignal(diff_range="main..HEAD", generated_at="2024-01-01T00:00:00Z"),
    )
    calls = []

    def fake_diff(root, diff_range):
        calls.append(diff_range)
        return ["./src/a.py", "node_modules/x.js", ""]

    monkeypatch.setattr(scope_service, "diff_name_only", fake_diff)
    scope = scope_service.resolve_scope(tmp_path, "HEAD~1..HEAD", Guardrails.defaults())

    assert calls == ["HEAD~1..HEAD"]
    assert scope.candidates == ["src/a.py"]
    assert scope.source == scope_service.SOURCE_GIT_DIFF
    assert scope.include_missing is False


def test_empty_diff_yields_no_candidates(tmp_path, monkeypatch):
    _write(tmp_path, "a.py")
    monkeypatch.setattr(scope_service, "diff_name_only", lambda root, diff_range: [])
    scope = scope_service.resolve_scope(tmp_path, "HEAD..HEAD")
    assert scope.candidates == []
    assert not scope.full_scope


def test_invalid_range_never_widens_scope(tmp_path, monkeypatch):
    _write(tmp_path, "a.py")

    def bad_range(root, diff_range):
        raise DiffRangeError(diff_range, "unknown revision")

    monkeypatch.setattr(scope_service, "diff_name_only", bad_range)
    with pytest.raises(DiffRangeError, match="unknown revision"):
        scope_service.resolve_scope(tmp_path, "nope..HEAD")
