"""Helpers for formatting CLI output safely across terminals."""

from __future__ import annotations

import sys

from rich.console import Console


def _encoding_supports(text: str, encoding: str | None) -> bool:
    if not encoding:
        return False
    try:
        text.encode(encoding)
    except (LookupError, UnicodeEncodeError):
        return False
    return True


def supports_unicode_output(console: Console | None = None) -> bool:
    sample = "✓✗→"
    if console is not None and _encoding_supports(sample, console.encoding):
        return True
    return _encoding_supports(sample, sys.stdout.encoding)


def format_status_icon(passed: bool, console: Console | None = None) -> str:
    if supports_unicode_output(console):
        return "[green]✓[/green]" if passed else "[red]✗[/red]"
    return "[green]OK[/green]" if passed else "[red]X[/red]"


def chain_separator(console: Console | None = None) -> str:
    return " → " if supports_unicode_output(console) else " -> "


def format_line_range(start: int, end: int) -> str:
    if start == end:
        return f"L{start}"
    return f"L{start}-{end}"


def format_preview(text: str | None, limit: int = 80) -> str:
    if not text:
        return "-"
    snippet = " ".join(line.strip() for line in text.splitlines() if line.strip())
    if len(snippet) <= limit:
        return snippet or "-"
    return snippet[: limit - 3].rstrip() + "..."
