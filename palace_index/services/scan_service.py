"""Full and incremental scan orchestration."""

from __future__ import annotations

import json
import logging
import time
import uuid
from concurrent.futures import ThreadPoolExecutor
from pathlib import Path
from typing import Sequence

from ..analyzers import analyze_file
from ..chunker import chunk_content_smart
from ..config import Config, load_config
from ..models import ChangeAction, FileChange, FileRecord, IncrementalScanSummary, ScanSummary
from ..store import INDEX_DIR, PALACE_DIR, IndexStore, index_db_path
from ..utils import (
    decode_text,
    format_timestamp,
    hash_bytes,
    list_files,
    resolve_directory,
    stat_file,
    utc_now,
)
from .git_service import head_commit

log = logging.getLogger(__name__)

SCAN_SCHEMA_VERSION = "1.0.0"
SCAN_KIND = "palace/scan"
SCAN_CREATED_BY = "palace scan"
SCAN_ARTIFACT = "scan.json"


def scan_artifact_path(root: Path) -> Path:
    return Path(root) / PALACE_DIR / INDEX_DIR / SCAN_ARTIFACT


def build_file_record(
    root: Path,
    rel_path: str,
    *,
    max_lines: int,
    max_bytes: int,
) -> FileRecord:
    """Fingerprint, analyze and chunk one file."""

    abs_path = root / rel_path
    # stat first so a write racing the read shows up as metadata drift
    size, mod_time = stat_file(abs_path)
    data = abs_path.read_bytes()
    text = decode_text(data)
    record = FileRecord(
        path=rel_path,
        hash=hash_bytes(data),
        size=size,
        mod_time=mod_time,
    )
    if text is None:
        log.debug("Skipping content of binary file %s", rel_path)
        return record
    analysis = analyze_file(rel_path, text)
    record.language = analysis.language
    record.symbols = analysis.symbols
    record.relationships = analysis.relationships
    record.chunks = chunk_content_smart(text, analysis.boundaries(), max_lines, max_bytes)
    return record


def build_file_records(
    root: Path,
    rel_paths: Sequence[str],
    *,
    max_lines: int,
    max_bytes: int,
    workers: int = 1,
) -> dict[str, FileRecord]:
    """Build records for *rel_paths*; unreadable files are skipped with a warning."""

    def _build_one(rel_path: str) -> FileRecord | None:
        try:
            return build_file_record(
                root, rel_path, max_lines=max_lines, max_bytes=max_bytes
            )
        except OSError as exc:
            log.warning("Could not read file %s: %s", rel_path, exc)
            return None

    if not rel_paths:
        return {}
    max_workers = min(max(int(workers or 1), 1), len(rel_paths))
    if max_workers <= 1:
        results = [_build_one(rel_path) for rel_path in rel_paths]
    else:
        with ThreadPoolExecutor(max_workers=max_workers) as executor:
            results = list(executor.map(_build_one, rel_paths))
    return {record.path: record for record in results if record is not None}


def write_scan_artifact(root: Path, summary: ScanSummary) -> Path:
    """Write the ``scan.json`` audit record for a completed full scan."""

    created_at = format_timestamp(utc_now().replace(microsecond=0))
    payload = {
        "schemaVersion": SCAN_SCHEMA_VERSION,
        "kind": SCAN_KIND,
        "scanId": str(uuid.uuid4()),
        "dbScanId": summary.scan_id,
        "startedAt": format_timestamp(summary.scan.started_at),
        "completedAt": format_timestamp(summary.scan.completed_at),
        "fileCount": summary.file_count,
        "chunkCount": summary.chunk_count,
        "symbolCount": summary.symbol_count,
        "relationshipCount": summary.relationship_count,
        "scanHash": summary.scan_hash,
        "provenance": {
            "createdBy": SCAN_CREATED_BY,
            "createdAt": created_at,
        },
    }
    path = scan_artifact_path(root)
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(payload, indent=2) + "\n", encoding="utf-8")
    return path


def run(root: Path | str, config: Config | None = None) -> tuple[ScanSummary, int]:
    """Index every guardrail-permitted file under *root* as a new snapshot."""

    directory = resolve_directory(root)
    config = config or load_config(directory)
    started_at = utc_now()
    rel_paths = list_files(directory, config.guardrails)
    records = build_file_records(
        directory,
        rel_paths,
        max_lines=config.max_lines,
        max_bytes=config.max_bytes,
        workers=config.workers,
    )
    ordered = [records[path] for path in rel_paths if path in records]
    with IndexStore.open(index_db_path(directory), create=True) as store:
        summary = store.write_scan(
            directory,
            ordered,
            started_at,
            commit_hash=head_commit(directory),
        )
    write_scan_artifact(directory, summary)
    log.info("Scan %d indexed %d files", summary.scan_id, summary.file_count)
    return summary, len(ordered)


def _resolve_records(
    directory: Path,
    changes: Sequence[FileChange],
    config: Config,
) -> tuple[list[FileChange], dict[str, FileRecord]]:
    wanted = [change.path for change in changes if change.action is not ChangeAction.DELETED]
    records = build_file_records(
        directory,
        wanted,
        max_lines=config.max_lines,
        max_bytes=config.max_bytes,
        workers=config.workers,
    )
    applied: list[FileChange] = []
    for change in changes:
        if change.action is ChangeAction.DELETED or change.path in records:
            applied.append(change)
        elif change.action is ChangeAction.MODIFIED and not (directory / change.path).exists():
            applied.append(FileChange(change.path, ChangeAction.DELETED, old_hash=change.old_hash))
    return applied, records


def run_incremental(
    root: Path | str,
    config: Config | None = None,
) -> IncrementalScanSummary:
    """Bring an existing index up to date with the files that changed on disk.

    Raises :class:`~palace_index.errors.IndexMissingError` when no full scan
    has been written yet.
    """

    started = time.perf_counter()
    directory = resolve_directory(root)
    config = config or load_config(directory)
    with IndexStore.open(index_db_path(directory)) as store:
        changes = store.detect_changes(directory, config.guardrails)
        applied, records = _resolve_records(directory, changes, config)
        summary = store.incremental_scan(applied, records)
    summary.duration = time.perf_counter() - started
    return summary
