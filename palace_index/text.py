"""Centralized user-facing text for the palace-index CLI."""

from __future__ import annotations


class Styles:
    ERROR = "red"
    WARNING = "yellow"
    SUCCESS = "green"
    INFO = "dim"
    TITLE = "bold cyan"
    TABLE_HEADER = "bold magenta"


class Messages:
    APP_HELP = "palace-index: index a codebase and check whether the index is still fresh."
    HELP_PATH = "Workspace root that holds the .palace directory."
    HELP_VERBOSE = "Log debug details to stderr."
    HELP_SCAN_INCREMENTAL = "Only reindex files that changed since the last scan."
    HELP_VERIFY_DIFF = "Git revision range to verify (e.g. HEAD~1..HEAD). Empty means every file."
    HELP_VERIFY_MODE = "fast trusts matching size and mtime; strict always hashes content."
    HELP_QUERY = "Text to search for as a literal phrase."
    HELP_LIMIT = "Maximum number of results to display."
    HELP_SYMBOL = "Function or method name."
    HELP_FILE = "Workspace-relative file path."
    HELP_CALLEES_FILE = "File that defines the symbol (optional)."
    HELP_CHAIN_DIRECTION = "Trace callers (up), callees (down) or both."
    HELP_CHAIN_DEPTH = "Maximum depth to trace (capped at 10)."
    HELP_SIGNAL_RANGE = "Git revision range to record (e.g. main..HEAD)."
    HELP_CONFIG_SHOW = "Print the effective configuration."
    HELP_ADD_DO_NOT_TOUCH = "Add a glob that scans and verification must skip."
    HELP_ADD_READ_ONLY = "Add a read-only glob (also skipped by scans)."
    HELP_SET_MAX_LINES = "Maximum lines per chunk."
    HELP_SET_MAX_BYTES = "Maximum bytes per chunk."
    HELP_SET_WORKERS = "Number of files processed in parallel during a scan."
    HELP_SET_VERIFY_MODE = "Default verify mode (fast or strict)."

    ERROR_EMPTY_QUERY = "Query text must not be empty."
    ERROR_LIMIT_NEGATIVE = "Limit must be >= 0"
    ERROR_INVALID_MODE = "Unsupported verify mode '{value}'. Choose from: {allowed}."

    INFO_SCAN_RUNNING = "Scanning files under {path}..."
    INFO_SCAN_DONE = (
        "Scan {scan_id} complete: {files} files, {chunks} chunks, "
        "{symbols} symbols, {relationships} relationships."
    )
    INFO_SCAN_HASH = "Scan hash: {value}"
    INFO_INCREMENTAL_DONE = (
        "Incremental scan complete: {added} added, {modified} modified, "
        "{deleted} deleted, {unchanged} unchanged ({duration:.2f}s)."
    )
    INFO_INCREMENTAL_NOOP = "Index already matches the working tree; nothing to do."
    INFO_VERIFY_SCOPE = "Scope: {scope} ({source}), {count} candidate file{plural}."
    INFO_VERIFY_FRESH = "Index is fresh."
    WARNING_VERIFY_STALE = "{count} stale entr{plural} found:"
    INFO_NO_RESULTS = "No matching chunks found."
    INFO_NO_CALLS = "No calls recorded for {target}."
    INFO_SIGNAL_WRITTEN = "Change signal for {range} written to {path} ({count} change{plural})."
    INFO_CHAIN_TRUNCATED = "Output truncated after {count} paths."
    INFO_CONFIG_SAVED = "Configuration saved to {path}."
    INFO_CONFIG_SUMMARY = (
        "Config file: {path}\n"
        "Max lines per chunk: {max_lines}\n"
        "Max bytes per chunk: {max_bytes}\n"
        "Scan workers: {workers}\n"
        "Verify mode: {verify_mode}\n"
        "Do-not-touch globs: {do_not_touch}\n"
        "Read-only globs: {read_only}"
    )
    INFO_CONFIG_NOTHING = "No changes requested; pass --show to view the configuration."

    TABLE_SEARCH_TITLE = "Matching chunks"
    TABLE_CALLERS_TITLE = "Callers of {target}"
    TABLE_CALLEES_TITLE = "Calls made by {target}"
    TABLE_GRAPH_INCOMING = "Incoming calls to {target}"
    TABLE_GRAPH_OUTGOING = "Outgoing calls from {target}"
    TABLE_CHAIN_TITLE = "Call chains for {target} ({direction})"
    TABLE_SIGNAL_TITLE = "Changes in {range}"
    TABLE_HEADER_INDEX = "#"
    TABLE_HEADER_PATH = "File path"
    TABLE_HEADER_LINES = "Lines"
    TABLE_HEADER_PREVIEW = "Preview"
    TABLE_HEADER_LINE = "Line"
    TABLE_HEADER_CALLER = "Caller"
    TABLE_HEADER_CALLEE = "Callee"
    TABLE_HEADER_CHAIN = "Path"
    TABLE_HEADER_STATUS = "Status"
    TABLE_HEADER_HASH = "Hash"
