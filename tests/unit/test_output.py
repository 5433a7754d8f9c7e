import io

from rich.console import Console

from palace_index import output


def test_format_line_range():
    assert output.format_line_range(5, 5) == "L5"
    assert output.format_line_range(1, 3) == "L1-3"


def test_format_preview_collapses_and_truncates():
    assert output.format_preview("") == "-"
    assert output.format_preview(None) == "-"
    assert output.format_preview("\n   \n") == "-"
    assert output.format_preview("  def a():\n      return 1\n") == "def a(): return 1"
    long_text = "word " * 40
    preview = output.format_preview(long_text, limit=20)
    assert preview.endswith("...")
    assert len(preview) <= 20


def test_status_icons_follow_console_encoding(monkeypatch):
    utf8 = Console(file=io.TextIOWrapper(io.BytesIO(), encoding="utf-8"))
    assert output.format_status_icon(True, utf8) == "[green]✓[/green]"
    assert output.chain_separator(utf8) == " → "

    monkeypatch.setattr(output, "supports_unicode_output", lambda console=None: False)
    assert output.format_status_icon(False) == "[red]X[/red]"
    assert output.chain_separator() == " -> "


def test_encoding_support_checks():
    assert output._encoding_supports("✓", "utf-8")
    assert not output._encoding_supports("✓", "ascii")
    assert not output._encoding_supports("✓", "no-such-codec")
    assert not output._encoding_supports("✓", None)
