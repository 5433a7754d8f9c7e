import json
import re

import pytest
from typer.testing import CliRunner

from palace_index import __version__
from palace_index.cli import app
from palace_index.config import config_path
from palace_index.errors import DiffRangeError
from palace_index.services import scan_service, scope_service
from palace_index.text import Messages


ANSI_RE = re.compile(r"\x1b\[[0-9;]*m")

APP_PY = """\
def load(path):
    return parse(path)


def parse(path):
    return path.strip()


def main():
    load("config.ini")
"""


def strip_ansi(text: str) -> str:
    return ANSI_RE.sub("", text)


@pytest.fixture(autouse=True)
def no_git(monkeypatch):
    monkeypatch.setattr(scan_service, "head_commit", lambda root: "")


@pytest.fixture
def workspace(tmp_path):
    (tmp_path / "app.py").write_text(APP_PY, encoding="utf-8")
    (tmp_path / "README.md").write_text("# Demo\n\nhello world from the readme\n", encoding="utf-8")
    return tmp_path


def _invoke(*args):
    runner = CliRunner()
    result = runner.invoke(app, [str(arg) for arg in args])
    return result, strip_ansi(result.stdout)


def _scan(root):
    result, output = _invoke("scan", "--path", root)
    assert result.exit_code == 0, output
    return output


def test_version_flag():
    result, output = _invoke("--version")
    assert result.exit_code == 0
    assert f"palace-index v{__version__}" in output


def test_help_lists_commands():
    result, output = _invoke("--help")
    assert result.exit_code == 0
    for command in ("scan", "verify", "search", "callers", "chain", "signal", "config"):
        assert command in output


def test_scan_reports_summary(workspace):
    output = _scan(workspace)
    assert "Scan 1 complete: 2 files" in output
    assert "3 symbols, 3 relationships." in output
    assert "Scan hash:" in output
    assert scan_service.scan_artifact_path(workspace).exists()


def test_incremental_scan(workspace):
    _scan(workspace)
    result, output = _invoke("scan", "--path", workspace, "--incremental")
    assert result.exit_code == 0
    assert Messages.INFO_INCREMENTAL_NOOP in output

    (workspace / "extra.txt").write_text("more text\n", encoding="utf-8")
    result, output = _invoke("scan", "--path", workspace, "-i")
    assert result.exit_code == 0
    assert "1 added, 0 modified, 0 deleted, 2 unchanged" in output


def test_incremental_scan_without_index_fails(workspace):
    result, output = _invoke("scan", "--path", workspace, "--incremental")
    assert result.exit_code == 1
    assert "index missing" in output


def test_verify_fresh_and_stale(workspace):
    _scan(workspace)
    result, output = _invoke("verify", "--path", workspace)
    assert result.exit_code == 0
    assert "Scope: full (full-scan), 2 candidate files." in output
    assert Messages.INFO_VERIFY_FRESH in output

    (workspace / "app.py").write_text(APP_PY + "\n# edited\n", encoding="utf-8")
    (workspace / "README.md").unlink()
    result, output = _invoke("verify", "--path", workspace, "--mode", "strict")
    assert result.exit_code == 1
    assert "2 stale entries found:" in output
    assert "changed file app.py" in output
    assert "missing file README.md" in output


def test_verify_uses_configured_mode(workspace):
    _scan(workspace)
    result, _ = _invoke("config", "--path", workspace, "--set-verify-mode", "strict")
    assert result.exit_code == 0
    result, output = _invoke("verify", "--path", workspace)
    assert result.exit_code == 0
    assert Messages.INFO_VERIFY_FRESH in output


def test_verify_rejects_unknown_mode(workspace):
    _scan(workspace)
    result, _ = _invoke("verify", "--path", workspace, "--mode", "paranoid")
    assert result.exit_code == 2


def test_verify_without_index_fails(workspace):
    result, output = _invoke("verify", "--path", workspace)
    assert result.exit_code == 1
    assert "index missing, run a full scan first" in output


def test_verify_with_invalid_range_fails(workspace, monkeypatch):
    _scan(workspace)

    def bad_range(root, diff_range):
        raise DiffRangeError(diff_range, "unknown revision")

    monkeypatch.setattr(scope_service, "diff_name_only", bad_range)
    result, output = _invoke("verify", "--path", workspace, "--diff", "nope..HEAD")
    assert result.exit_code == 1
    assert "invalid diff range 'nope..HEAD'" in output


def test_missing_directory_fails(tmp_path):
    result, _ = _invoke("verify", "--path", tmp_path / "absent")
    assert result.exit_code == 1


def test_search_outputs_table(workspace):
    _scan(workspace)
    result, output = _invoke("search", "hello world", "--path", workspace)
    assert result.exit_code == 0
    assert Messages.TABLE_SEARCH_TITLE in output
    assert "README.md" in output
    assert "L1-4" in output
    assert "hello world from the readme" in output


def test_search_without_matches(workspace):
    _scan(workspace)
    result, output = _invoke("search", "nothing like this", "--path", workspace)
    assert result.exit_code == 0
    assert Messages.INFO_NO_RESULTS in output


@pytest.mark.parametrize("args, message", [
    (["   "], Messages.ERROR_EMPTY_QUERY),
    (["hello", "--limit", "-1"], Messages.ERROR_LIMIT_NEGATIVE),
])
def test_search_rejects_bad_input(workspace, args, message):
    result, output = _invoke("search", *args, "--path", workspace)
    assert result.exit_code == 1
    assert message in output


def test_callers_and_callees(workspace):
    _scan(workspace)
    result, output = _invoke("callers", "parse", "--path", workspace)
    assert result.exit_code == 0
    assert "Callers of parse" in output
    assert "load" in output
    assert "app.py" in output

    result, output = _invoke("callees", "main", "--path", workspace)
    assert result.exit_code == 0
    assert "Calls made by main" in output
    assert "load" in output

    result, output = _invoke("callers", "main", "--path", workspace)
    assert result.exit_code == 0
    assert "No calls recorded for main." in output


def test_callees_of_unknown_symbol_fails(workspace):
    _scan(workspace)
    result, output = _invoke("callees", "ghost", "--path", workspace)
    assert result.exit_code == 1
    assert "symbol not found: ghost" in output


def test_graph_shows_both_directions(workspace):
    (workspace / "runner.py").write_text(
        "from app import main\n\n\ndef go():\n    main()\n", encoding="utf-8"
    )
    _scan(workspace)
    result, output = _invoke("graph", "app.py", "--path", workspace)
    assert result.exit_code == 0
    assert "Incoming calls to app.py" in output
    assert "Outgoing calls from app.py" in output
    assert "runner.py" in output


def test_chain_up_and_down(workspace):
    _scan(workspace)
    result, output = _invoke("chain", "parse", "--path", workspace)
    assert result.exit_code == 0
    assert "Call chains for parse (up)" in output
    assert "load" in output
    assert "main" in output

    result, output = _invoke("chain", "main", "--direction", "down", "--path", workspace)
    assert result.exit_code == 0
    assert "Call chains for main (down)" in output
    assert "parse" in output


def test_config_show_and_update(workspace):
    result, output = _invoke("config", "--path", workspace)
    assert result.exit_code == 0
    assert Messages.INFO_CONFIG_NOTHING in output

    result, output = _invoke(
        "config",
        "--path",
        workspace,
        "--add-do-not-touch",
        "generated/**",
        "--set-max-lines",
        "40",
        "--show",
    )
    assert result.exit_code == 0
    assert "Configuration saved to" in output
    assert "Max lines per chunk: 40" in output
    assert "generated/**" in output

    stored = json.loads(config_path(workspace).read_text(encoding="utf-8"))
    assert stored["guardrails"]["doNotTouchGlobs"] == ["generated/**"]
    assert stored["index"]["maxLines"] == 40


def test_config_excludes_files_from_scan(workspace):
    (workspace / "generated").mkdir()
    (workspace / "generated" / "out.py").write_text("x = 1\n", encoding="utf-8")
    _invoke("config", "--path", workspace, "--add-do-not-touch", "generated/**")
    output = _scan(workspace)
    assert "Scan 1 complete: 2 files" in output
