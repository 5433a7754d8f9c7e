"""Command line interface for palace-index."""

from __future__ import annotations

import logging
import sys
from dataclasses import replace
from pathlib import Path
from typing import Sequence

import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.markup import escape
from rich.table import Table

from . import __version__
from .config import SUPPORTED_VERIFY_MODES, config_path, load_config, save_config
from .errors import PalaceError
from .guardrails import merge_globs
from .models import CallSite, VerifyMode
from .output import chain_separator, format_line_range, format_preview, format_status_icon
from .services import scan_service, signal_service, verify_service
from .services.callchain_service import (
    DEFAULT_CHAIN_DEPTH,
    ChainDirection,
    call_chain,
    flatten_call_chain,
)
from .store import DEFAULT_SEARCH_LIMIT, IndexStore
from .text import Messages, Styles
from .utils import resolve_directory

app = typer.Typer(
    help=Messages.APP_HELP,
    no_args_is_help=True,
    context_settings={"help_option_names": ["-h", "--help"]},
)

console = Console()

_DIRECTORY_ERRORS = (FileNotFoundError, NotADirectoryError)


def _version_callback(value: bool) -> None:
    if value:
        console.print(f"palace-index v{__version__}")
        raise typer.Exit()


def _configure_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=Console(stderr=True), show_path=False)],
        force=True,
    )


def _validate_mode(mode: str) -> VerifyMode:
    normalized = mode.strip().lower()
    if normalized not in SUPPORTED_VERIFY_MODES:
        allowed = ", ".join(SUPPORTED_VERIFY_MODES)
        raise typer.BadParameter(
            Messages.ERROR_INVALID_MODE.format(value=mode, allowed=allowed)
        )
    return VerifyMode(normalized)


def _fail(exc: BaseException) -> typer.Exit:
    console.print(_styled(escape(str(exc)), Styles.ERROR))
    return typer.Exit(code=1)


def _resolve_root(path: Path) -> Path:
    try:
        return resolve_directory(path)
    except _DIRECTORY_ERRORS as exc:
        raise _fail(exc) from exc


def _plural(count: int, singular: str = "", plural: str = "s") -> str:
    return singular if count == 1 else plural


@app.callback()
def main(
    version: bool = typer.Option(
        False,
        "--version",
        "-v",
        callback=_version_callback,
        is_eager=True,
        help="Show version and exit.",
    ),
    verbose: bool = typer.Option(False, "--verbose", help=Messages.HELP_VERBOSE),
) -> None:
    """Global Typer callback for shared options."""
    _configure_logging(verbose)


@app.command()
def scan(
    path: Path = typer.Option(Path("."), "--path", "-p", help=Messages.HELP_PATH),
    incremental: bool = typer.Option(
        False,
        "--incremental",
        "-i",
        help=Messages.HELP_SCAN_INCREMENTAL,
    ),
) -> None:
    """Index the workspace, fully or incrementally."""
    directory = _resolve_root(path)
    config = load_config(directory)
    if incremental:
        try:
            result = scan_service.run_incremental(directory, config)
        except PalaceError as exc:
            raise _fail(exc) from exc
        if result.is_noop:
            console.print(_styled(Messages.INFO_INCREMENTAL_NOOP, Styles.INFO))
            return
        console.print(
            _styled(
                Messages.INFO_INCREMENTAL_DONE.format(
                    added=result.files_added,
                    modified=result.files_modified,
                    deleted=result.files_deleted,
                    unchanged=result.files_unchanged,
                    duration=result.duration,
                ),
                Styles.SUCCESS,
            )
        )
        return

    console.print(_styled(Messages.INFO_SCAN_RUNNING.format(path=directory), Styles.INFO))
    try:
        summary, _ = scan_service.run(directory, config)
    except PalaceError as exc:
        raise _fail(exc) from exc
    console.print(
        _styled(
            Messages.INFO_SCAN_DONE.format(
                scan_id=summary.scan_id,
                files=summary.file_count,
                chunks=summary.chunk_count,
                symbols=summary.symbol_count,
                relationships=summary.relationship_count,
            ),
            Styles.SUCCESS,
        )
    )
    console.print(_styled(Messages.INFO_SCAN_HASH.format(value=summary.scan_hash), Styles.INFO))


@app.command()
def verify(
    path: Path = typer.Option(Path("."), "--path", "-p", help=Messages.HELP_PATH),
    diff: str = typer.Option("", "--diff", "-d", help=Messages.HELP_VERIFY_DIFF),
    mode: str | None = typer.Option(None, "--mode", "-m", help=Messages.HELP_VERIFY_MODE),
) -> None:
    """Check whether the index still matches the working tree."""
    directory = _resolve_root(path)
    config = load_config(directory)
    verify_mode = _validate_mode(mode if mode is not None else config.verify_mode)
    options = verify_service.VerifyOptions(
        root=directory,
        diff_range=diff,
        mode=verify_mode,
        guardrails=config.guardrails,
    )
    try:
        with IndexStore.for_root(directory, readonly=True) as store:
            result = verify_service.run(store, options)
    except PalaceError as exc:
        raise _fail(exc) from exc

    scope = "full" if result.full_scope else f"diff {diff.strip()}"
    console.print(
        _styled(
            Messages.INFO_VERIFY_SCOPE.format(
                scope=scope,
                source=result.source,
                count=result.candidate_count,
                plural=_plural(result.candidate_count),
            ),
            Styles.INFO,
        )
    )
    if result.is_fresh:
        console.print(f"{format_status_icon(True, console)} {Messages.INFO_VERIFY_FRESH}")
        return
    count = len(result.stale)
    console.print(
        _styled(
            Messages.WARNING_VERIFY_STALE.format(count=count, plural=_plural(count, "y", "ies")),
            Styles.WARNING,
        )
    )
    icon = format_status_icon(False, console)
    for stale_path in result.stale:
        console.print(f"  {icon} {escape(stale_path)}", highlight=False)
    raise typer.Exit(code=1)


@app.command()
def search(
    query: str = typer.Argument(..., help=Messages.HELP_QUERY),
    path: Path = typer.Option(Path("."), "--path", "-p", help=Messages.HELP_PATH),
    limit: int = typer.Option(
        DEFAULT_SEARCH_LIMIT,
        "--limit",
        "-k",
        help=Messages.HELP_LIMIT,
    ),
) -> None:
    """Full-text search over indexed chunks."""
    clean_query = query.strip()
    if not clean_query:
        console.print(_styled(Messages.ERROR_EMPTY_QUERY, Styles.ERROR))
        raise typer.Exit(code=1)
    if limit < 0:
        console.print(_styled(Messages.ERROR_LIMIT_NEGATIVE, Styles.ERROR))
        raise typer.Exit(code=1)
    directory = _resolve_root(path)
    try:
        with IndexStore.for_root(directory, readonly=True) as store:
            hits = store.search_chunks(clean_query, limit)
    except PalaceError as exc:
        raise _fail(exc) from exc
    if not hits:
        console.print(_styled(Messages.INFO_NO_RESULTS, Styles.WARNING))
        return

    console.print(_styled(Messages.TABLE_SEARCH_TITLE, Styles.TITLE))
    table = Table(show_header=True, header_style=Styles.TABLE_HEADER)
    table.add_column(Messages.TABLE_HEADER_INDEX, justify="right")
    table.add_column(Messages.TABLE_HEADER_PATH, overflow="fold")
    table.add_column(Messages.TABLE_HEADER_LINES, justify="right")
    table.add_column(Messages.TABLE_HEADER_PREVIEW, overflow="fold")
    for idx, hit in enumerate(hits, start=1):
        table.add_row(
            str(idx),
            hit.path,
            format_line_range(hit.start_line, hit.end_line),
            escape(format_preview(hit.content)),
        )
    console.print(table)


def _render_calls(title: str, calls: Sequence[CallSite]) -> None:
    console.print(_styled(title, Styles.TITLE))
    table = Table(show_header=True, header_style=Styles.TABLE_HEADER)
    table.add_column(Messages.TABLE_HEADER_CALLER, overflow="fold")
    table.add_column(Messages.TABLE_HEADER_CALLEE, overflow="fold")
    table.add_column(Messages.TABLE_HEADER_PATH, overflow="fold")
    table.add_column(Messages.TABLE_HEADER_LINE, justify="right")
    for call in calls:
        table.add_row(call.caller_symbol or "-", call.callee_symbol, call.file_path, str(call.line))
    console.print(table)


@app.command()
def callers(
    symbol: str = typer.Argument(..., help=Messages.HELP_SYMBOL),
    path: Path = typer.Option(Path("."), "--path", "-p", help=Messages.HELP_PATH),
) -> None:
    """List call sites that invoke SYMBOL."""
    directory = _resolve_root(path)
    try:
        with IndexStore.for_root(directory, readonly=True) as store:
            calls = store.get_incoming_calls(symbol)
    except PalaceError as exc:
        raise _fail(exc) from exc
    if not calls:
        console.print(_styled(Messages.INFO_NO_CALLS.format(target=symbol), Styles.WARNING))
        return
    _render_calls(Messages.TABLE_CALLERS_TITLE.format(target=symbol), calls)


@app.command()
def callees(
    symbol: str = typer.Argument(..., help=Messages.HELP_SYMBOL),
    file: str = typer.Option("", "--file", "-f", help=Messages.HELP_CALLEES_FILE),
    path: Path = typer.Option(Path("."), "--path", "-p", help=Messages.HELP_PATH),
) -> None:
    """List the calls made inside SYMBOL."""
    directory = _resolve_root(path)
    try:
        with IndexStore.for_root(directory, readonly=True) as store:
            calls = store.get_outgoing_calls(symbol, file)
    except PalaceError as exc:
        raise _fail(exc) from exc
    if not calls:
        console.print(_styled(Messages.INFO_NO_CALLS.format(target=symbol), Styles.WARNING))
        return
    _render_calls(Messages.TABLE_CALLEES_TITLE.format(target=symbol), calls)


@app.command()
def graph(
    file: str = typer.Argument(..., help=Messages.HELP_FILE),
    path: Path = typer.Option(Path("."), "--path", "-p", help=Messages.HELP_PATH),
) -> None:
    """Show calls into and out of FILE."""
    directory = _resolve_root(path)
    try:
        with IndexStore.for_root(directory, readonly=True) as store:
            call_graph = store.get_call_graph(file)
    except PalaceError as exc:
        raise _fail(exc) from exc
    if not call_graph.incoming_calls and not call_graph.outgoing_calls:
        console.print(_styled(Messages.INFO_NO_CALLS.format(target=file), Styles.WARNING))
        return
    if call_graph.incoming_calls:
        _render_calls(Messages.TABLE_GRAPH_INCOMING.format(target=file), call_graph.incoming_calls)
    if call_graph.outgoing_calls:
        _render_calls(Messages.TABLE_GRAPH_OUTGOING.format(target=file), call_graph.outgoing_calls)


@app.command()
def chain(
    symbol: str = typer.Argument(..., help=Messages.HELP_SYMBOL),
    direction: ChainDirection = typer.Option(
        ChainDirection.UP,
        "--direction",
        help=Messages.HELP_CHAIN_DIRECTION,
    ),
    depth: int = typer.Option(DEFAULT_CHAIN_DEPTH, "--depth", help=Messages.HELP_CHAIN_DEPTH),
    file: str = typer.Option("", "--file", "-f", help=Messages.HELP_CALLEES_FILE),
    path: Path = typer.Option(Path("."), "--path", "-p", help=Messages.HELP_PATH),
) -> None:
    """Trace call chains through SYMBOL."""
    directory = _resolve_root(path)
    try:
        with IndexStore.for_root(directory, readonly=True) as store:
            result = call_chain(store, symbol, direction, depth, file)
    except PalaceError as exc:
        raise _fail(exc) from exc
    paths = flatten_call_chain(result)
    if not paths:
        console.print(_styled(Messages.INFO_NO_CALLS.format(target=symbol), Styles.WARNING))
        return

    console.print(
        _styled(
            Messages.TABLE_CHAIN_TITLE.format(target=symbol, direction=result.direction.value),
            Styles.TITLE,
        )
    )
    separator = chain_separator(console)
    table = Table(show_header=True, header_style=Styles.TABLE_HEADER)
    table.add_column(Messages.TABLE_HEADER_INDEX, justify="right")
    table.add_column(Messages.TABLE_HEADER_CHAIN, overflow="fold")
    table.add_column(Messages.TABLE_HEADER_PATH, overflow="fold")
    for idx, steps in enumerate(paths, start=1):
        last = steps[-1]
        location = f"{last.file_path}:{last.line}" if last.file_path else "-"
        table.add_row(str(idx), separator.join(step.symbol for step in steps), location)
    console.print(table)
    if result.truncated:
        console.print(
            _styled(Messages.INFO_CHAIN_TRUNCATED.format(count=result.total_paths), Styles.WARNING)
        )


@app.command()
def signal(
    diff_range: str = typer.Argument(..., help=Messages.HELP_SIGNAL_RANGE),
    path: Path = typer.Option(Path("."), "--path", "-p", help=Messages.HELP_PATH),
) -> None:
    """Record the files changed in a git revision range."""
    directory = _resolve_root(path)
    guardrails = load_config(directory).guardrails
    try:
        change_signal = signal_service.generate(directory, diff_range, guardrails)
    except PalaceError as exc:
        raise _fail(exc) from exc
    count = len(change_signal.changes)
    console.print(
        _styled(
            Messages.INFO_SIGNAL_WRITTEN.format(
                range=diff_range,
                path=signal_service.signal_path(directory),
                count=count,
                plural=_plural(count),
            ),
            Styles.SUCCESS,
        )
    )
    if not change_signal.changes:
        return
    console.print(_styled(Messages.TABLE_SIGNAL_TITLE.format(range=diff_range), Styles.TITLE))
    table = Table(show_header=True, header_style=Styles.TABLE_HEADER)
    table.add_column(Messages.TABLE_HEADER_STATUS)
    table.add_column(Messages.TABLE_HEADER_PATH, overflow="fold")
    table.add_column(Messages.TABLE_HEADER_HASH, overflow="fold")
    for change in change_signal.changes:
        table.add_row(change.status, change.path, change.hash[:12] or "-")
    console.print(table)


@app.command()
def config(
    path: Path = typer.Option(Path("."), "--path", "-p", help=Messages.HELP_PATH),
    show: bool = typer.Option(False, "--show", help=Messages.HELP_CONFIG_SHOW),
    add_do_not_touch: list[str] | None = typer.Option(
        None,
        "--add-do-not-touch",
        help=Messages.HELP_ADD_DO_NOT_TOUCH,
    ),
    add_read_only: list[str] | None = typer.Option(
        None,
        "--add-read-only",
        help=Messages.HELP_ADD_READ_ONLY,
    ),
    set_max_lines: int | None = typer.Option(
        None,
        "--set-max-lines",
        min=1,
        help=Messages.HELP_SET_MAX_LINES,
    ),
    set_max_bytes: int | None = typer.Option(
        None,
        "--set-max-bytes",
        min=1,
        help=Messages.HELP_SET_MAX_BYTES,
    ),
    set_workers: int | None = typer.Option(
        None,
        "--set-workers",
        min=1,
        help=Messages.HELP_SET_WORKERS,
    ),
    set_verify_mode: str | None = typer.Option(
        None,
        "--set-verify-mode",
        help=Messages.HELP_SET_VERIFY_MODE,
    ),
) -> None:
    """Show or update the workspace configuration."""
    directory = _resolve_root(path)
    current = load_config(directory)
    updates: dict[str, object] = {}
    if add_do_not_touch:
        updates["do_not_touch_globs"] = merge_globs(current.do_not_touch_globs, add_do_not_touch)
    if add_read_only:
        updates["read_only_globs"] = merge_globs(current.read_only_globs, add_read_only)
    if set_max_lines is not None:
        updates["max_lines"] = set_max_lines
    if set_max_bytes is not None:
        updates["max_bytes"] = set_max_bytes
    if set_workers is not None:
        updates["workers"] = set_workers
    if set_verify_mode is not None:
        updates["verify_mode"] = _validate_mode(set_verify_mode).value

    if updates:
        current = replace(current, **updates)
        saved = save_config(directory, current)
        console.print(_styled(Messages.INFO_CONFIG_SAVED.format(path=saved), Styles.SUCCESS))
    elif not show:
        console.print(_styled(Messages.INFO_CONFIG_NOTHING, Styles.INFO))
        return

    if show:
        console.print(
            _styled(
                Messages.INFO_CONFIG_SUMMARY.format(
                    path=config_path(directory),
                    max_lines=current.max_lines,
                    max_bytes=current.max_bytes,
                    workers=current.workers,
                    verify_mode=current.verify_mode,
                    do_not_touch=", ".join(current.do_not_touch_globs) or "-",
                    read_only=", ".join(current.read_only_globs) or "-",
                ),
                Styles.INFO,
            ),
            highlight=False,
        )


def _styled(text: str, style: str) -> str:
    return f"[{style}]{text}[/{style}]"


def run(argv: list[str] | None = None) -> None:
    """Entry point wrapper allowing optional argument override."""
    args = list(argv) if argv is not None else sys.argv[1:]
    if argv is None:
        app()
    else:
        app(args=args)
