from __future__ import annotations

import json

import pytest

from palace_index.config import Config, save_config
from palace_index.errors import IndexMissingError
from palace_index.services import scan_service
from palace_index.store import IndexStore
from palace_index.utils import hash_file

APP_PY = """\
def greet(name):
    return format_greeting(name)


def format_greeting(name):
    return f"hello {name}"
"""


def _write(root, rel, text):
    path = root / rel
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(text, encoding="utf-8")
    return path


@pytest.fixture(autouse=True)
def no_git(monkeypatch):
    monkeypatch.setattr(scan_service, "head_commit", lambda root: "")


@pytest.fixture
def workspace(tmp_path):
    _write(tmp_path, "app.py", APP_PY)
    _write(tmp_path, "README.md", "# Project\n\nSome documentation text.\n")
    _write(tmp_path, "node_modules/dep/index.js", "module.exports = {}\n")
    (tmp_path / "logo.bin").write_bytes(b"\x89PNG\x00\x00\x01binary")
    return tmp_path


def test_build_file_record_analyzes_python(workspace):
    record = scan_service.build_file_record(workspace, "app.py", max_lines=120, max_bytes=8192)
    assert record.path == "app.py"
    assert record.hash == hash_file(workspace / "app.py")
    assert record.size == len(APP_PY)
    assert record.language == "python"
    assert [symbol.name for symbol in record.symbols] == ["greet", "format_greeting"]
    assert [rel.target_symbol for rel in record.relationships] == ["format_greeting"]
    assert "".join(chunk.content for chunk in record.chunks) == APP_PY


def test_build_file_record_keeps_binary_fingerprint_only(workspace):
    record = scan_service.build_file_record(workspace, "logo.bin", max_lines=120, max_bytes=8192)
    assert record.hash == hash_file(workspace / "logo.bin")
    assert record.chunks == []
    assert record.symbols == []


def test_build_file_records_skips_unreadable_files(workspace, monkeypatch, caplog):
    real_build = scan_service.build_file_record

    def flaky_build(root, rel_path, **kwargs):
        if rel_path == "README.md":
            raise PermissionError("denied")
        return real_build(root, rel_path, **kwargs)

    monkeypatch.setattr(scan_service, "build_file_record", flaky_build)
    with caplog.at_level("WARNING", logger="palace_index.services.scan_service"):
        records = scan_service.build_file_records(
            workspace, ["README.md", "app.py"], max_lines=120, max_bytes=8192
        )
    assert list(records) == ["app.py"]
    assert "README.md" in caplog.text


def test_parallel_build_matches_sequential(workspace):
    paths = ["README.md", "app.py", "logo.bin"]
    sequential = scan_service.build_file_records(
        workspace, paths, max_lines=3, max_bytes=8192, workers=1
    )
    parallel = scan_service.build_file_records(
        workspace, paths, max_lines=3, max_bytes=8192, workers=4
    )
    assert sequential == parallel
    assert scan_service.build_file_records(workspace, [], max_lines=3, max_bytes=10) == {}


def test_full_scan_indexes_workspace(workspace):
    summary, file_count = scan_service.run(workspace, Config(workers=1))

    assert file_count == 3
    assert summary.file_count == 3
    assert summary.scan_id == 1
    assert summary.symbol_count == 2
    assert summary.relationship_count == 1

    with IndexStore.for_root(workspace, readonly=True) as store:
        assert set(store.load_file_metadata()) == {"README.md", "app.py", "logo.bin"}
        assert store.get_chunks_for_file("logo.bin") == []
        assert [hit.path for hit in store.search_chunks("documentation text")] == ["README.md"]
        assert store.latest_scan().scan_hash == summary.scan_hash


def test_full_scan_writes_audit_artifact(workspace):
    summary, _ = scan_service.run(workspace)
    artifact = json.loads(scan_service.scan_artifact_path(workspace).read_text(encoding="utf-8"))

    assert artifact["schemaVersion"] == "1.0.0"
    assert artifact["kind"] == "palace/scan"
    assert artifact["dbScanId"] == summary.scan_id
    assert artifact["fileCount"] == 3
    assert artifact["chunkCount"] == summary.chunk_count
    assert artifact["scanHash"] == summary.scan_hash
    assert artifact["provenance"]["createdBy"] == "palace scan"
    assert len(artifact["scanId"]) == 36


def test_repeated_full_scans_share_hash(workspace):
    first, _ = scan_service.run(workspace)
    second, _ = scan_service.run(workspace)
    assert second.scan_id == first.scan_id + 1
    assert second.scan_hash == first.scan_hash


def test_full_scan_records_commit_hash(workspace, monkeypatch):
    monkeypatch.setattr(scan_service, "head_commit", lambda root: "deadbeef")
    summary, _ = scan_service.run(workspace)
    assert summary.scan.commit_hash == "deadbeef"


def test_full_scan_respects_chunk_limits(workspace):
    _write(workspace, "long.txt", "\n".join(f"row {idx}" for idx in range(10)))
    scan_service.run(workspace, Config(max_lines=4))
    with IndexStore.for_root(workspace, readonly=True) as store:
        chunks = store.get_chunks_for_file("long.txt")
    assert [(hit.start_line, hit.end_line) for hit in chunks] == [(1, 4), (5, 8), (9, 10)]


def test_incremental_scan_requires_existing_index(workspace):
    with pytest.raises(IndexMissingError):
        scan_service.run_incremental(workspace)


def test_incremental_scan_applies_working_tree_changes(workspace):
    scan_service.run(workspace)
    _write(workspace, "app.py", APP_PY + "\n\ndef farewell():\n    return 'goodbye friend'\n")
    _write(workspace, "extra.py", "VALUE = 'fresh content'\n")
    (workspace / "README.md").unlink()

    summary = scan_service.run_incremental(workspace)
    assert (summary.files_added, summary.files_modified, summary.files_deleted) == (1, 1, 1)
    assert summary.files_unchanged == 1
    assert summary.duration >= 0

    with IndexStore.for_root(workspace, readonly=True) as store:
        assert set(store.load_file_metadata()) == {"app.py", "extra.py", "logo.bin"}
        assert store.get_symbol("farewell") is not None
        assert store.search_chunks("documentation text") == []
        assert [hit.path for hit in store.search_chunks("goodbye friend")] == ["app.py"]
        assert store.latest_scan().id == 1

    again = scan_service.run_incremental(workspace)
    assert again.is_noop
    assert again.files_unchanged == 3


def test_incremental_scan_drops_added_file_that_vanished(workspace, monkeypatch):
    scan_service.run(workspace)
    _write(workspace, "temp.py", "x = 1\n")
    real_build = scan_service.build_file_records

    def vanish_then_build(root, rel_paths, **kwargs):
        (workspace / "temp.py").unlink()
        return real_build(root, rel_paths, **kwargs)

    monkeypatch.setattr(scan_service, "build_file_records", vanish_then_build)
    summary = scan_service.run_incremental(workspace)
    assert summary.is_noop


def test_build_file_record_stats_before_reading(workspace, monkeypatch):
    target = workspace / "app.py"
    real_stat = scan_service.stat_file

    def stat_then_write(path):
        result = real_stat(path)
        target.write_text(APP_PY + "\n# late write\n", encoding="utf-8")
        return result

    monkeypatch.setattr(scan_service, "stat_file", stat_then_write)
    record = scan_service.build_file_record(workspace, "app.py", max_lines=120, max_bytes=8192)

    assert record.hash == hash_file(target)
    assert record.size == len(APP_PY)
    assert record.size != target.stat().st_size


def test_incremental_scan_drops_newly_guarded_files(workspace):
    (workspace / "secret").mkdir()
    (workspace / "secret" / "token.py").write_text("TOKEN = 'hidden value'\n", encoding="utf-8")
    scan_service.run(workspace)

    save_config(workspace, Config(do_not_touch_globs=("secret/**",)))
    summary = scan_service.run_incremental(workspace)

    assert summary.files_deleted == 1
    assert (summary.files_added, summary.files_modified) == (0, 0)
    with IndexStore.for_root(workspace, readonly=True) as store:
        assert "secret/token.py" not in store.load_file_metadata()
        assert store.search_chunks("hidden value") == []
    assert scan_service.run_incremental(workspace).is_noop
