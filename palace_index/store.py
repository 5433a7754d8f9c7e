"""SQLite-backed index store for files, chunks, symbols and call edges."""

from __future__ import annotations

import hashlib
import logging
import sqlite3
import time
from contextlib import contextmanager
from datetime import datetime
from pathlib import Path
from typing import Iterable, Iterator, Mapping, Sequence

from .analyzers import Relationship, Symbol
from .errors import IndexMissingError, StoreError, SymbolNotFoundError
from .guardrails import Guardrails
from .models import (
    CallGraph,
    CallSite,
    ChangeAction,
    ChunkHit,
    FileChange,
    FileMetadata,
    FileRecord,
    IncrementalScanSummary,
    Scan,
    ScanSummary,
    StoredSymbol,
    VerifyMode,
)
from .staleness import detect_changes
from .utils import (
    format_mod_time,
    format_timestamp,
    parse_mod_time,
    parse_timestamp,
    utc_now,
)

log = logging.getLogger(__name__)

PALACE_DIR = ".palace"
INDEX_DIR = "index"
DB_FILENAME = "palace.db"
SCHEMA_VERSION = 1
DEFAULT_SEARCH_LIMIT = 20
_CALLABLE_KINDS = ("function", "method")
_REQUIRED_TABLES = ("files", "chunks", "chunks_fts", "symbols", "relationships", "scans")


def index_db_path(root: Path) -> Path:
    """Return ``<root>/.palace/index/palace.db``."""

    return Path(root) / PALACE_DIR / INDEX_DIR / DB_FILENAME


def compute_scan_hash(entries: Iterable[tuple[str, str]]) -> str:
    """Hash the set of ``(path, hash)`` pairs independently of their order."""

    digest = hashlib.sha256()
    for path, file_hash in sorted(entries):
        digest.update(path.encode("utf-8"))
        digest.update(b"\0")
        digest.update(file_hash.encode("utf-8"))
        digest.update(b"\n")
    return digest.hexdigest()


def sanitize_fts_query(query: str) -> str:
    """Quote *query* as one FTS5 phrase so no operator syntax gets through."""

    trimmed = query.replace("\x00", "").strip().replace('"', '""')
    return f'"{trimmed}"'


def _escape_like(value: str) -> str:
    return value.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


def _connect(
    db_path: Path,
    *,
    query_only: bool = False,
) -> sqlite3.Connection:
    conn = sqlite3.connect(db_path)
    conn.row_factory = sqlite3.Row
    try:
        conn.execute("PRAGMA journal_mode = WAL;")
    except sqlite3.OperationalError as exc:
        if "readonly" not in str(exc).lower():
            raise
    conn.execute("PRAGMA synchronous = NORMAL;")
    conn.execute("PRAGMA temp_store = MEMORY;")
    conn.execute("PRAGMA busy_timeout = 5000;")
    conn.execute("PRAGMA foreign_keys = ON;")
    if query_only:
        conn.execute("PRAGMA query_only = ON;")
    return conn


def _table_exists(conn: sqlite3.Connection, table: str) -> bool:
    row = conn.execute(
        "SELECT name FROM sqlite_master WHERE type IN ('table', 'view') AND name = ?",
        (table,),
    ).fetchone()
    return row is not None


def _stored_schema_version(conn: sqlite3.Connection) -> int:
    if not _table_exists(conn, "schema_version"):
        return 0
    row = conn.execute("SELECT MAX(version) AS version FROM schema_version").fetchone()
    return int(row["version"] or 0) if row is not None else 0


def _check_schema_version(conn: sqlite3.Connection) -> int:
    version = _stored_schema_version(conn)
    if version > SCHEMA_VERSION:
        raise sqlite3.DatabaseError(
            f"index schema version {version} is newer than supported version {SCHEMA_VERSION}"
        )
    return version


def _ensure_schema_readonly(conn: sqlite3.Connection) -> None:
    _check_schema_version(conn)
    for table in _REQUIRED_TABLES:
        if not _table_exists(conn, table):
            raise sqlite3.OperationalError(f"Missing table: {table}")


def _ensure_schema(conn: sqlite3.Connection) -> None:
    version = _check_schema_version(conn)
    conn.executescript(
        """
        CREATE TABLE IF NOT EXISTS schema_version (
            version INTEGER NOT NULL,
            applied_at TEXT NOT NULL
        );

        CREATE TABLE IF NOT EXISTS files (
            path TEXT PRIMARY KEY,
            hash TEXT NOT NULL,
            size INTEGER NOT NULL,
            mod_time TEXT NOT NULL,
            indexed_at TEXT NOT NULL,
            language TEXT NOT NULL DEFAULT ''
        );

        CREATE TABLE IF NOT EXISTS chunks (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            path TEXT NOT NULL REFERENCES files(path) ON DELETE CASCADE,
            chunk_index INTEGER NOT NULL,
            start_line INTEGER NOT NULL,
            end_line INTEGER NOT NULL,
            content TEXT NOT NULL,
            UNIQUE(path, chunk_index)
        );

        CREATE VIRTUAL TABLE IF NOT EXISTS chunks_fts USING fts5(
            content,
            path UNINDEXED,
            chunk_index UNINDEXED,
            tokenize = "unicode61 tokenchars '_.:@#$-'"
        );

        CREATE TRIGGER IF NOT EXISTS chunks_ai AFTER INSERT ON chunks BEGIN
            INSERT INTO chunks_fts(rowid, content, path, chunk_index)
            VALUES (new.id, new.content, new.path, new.chunk_index);
        END;

        CREATE TRIGGER IF NOT EXISTS chunks_ad AFTER DELETE ON chunks BEGIN
            DELETE FROM chunks_fts WHERE rowid = old.id;
        END;

        CREATE TABLE IF NOT EXISTS symbols (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            file_path TEXT NOT NULL REFERENCES files(path) ON DELETE CASCADE,
            name TEXT NOT NULL,
            kind TEXT NOT NULL,
            line_start INTEGER NOT NULL,
            line_end INTEGER NOT NULL,
            signature TEXT NOT NULL DEFAULT '',
            doc_comment TEXT NOT NULL DEFAULT '',
            parent_id INTEGER REFERENCES symbols(id) ON DELETE CASCADE,
            exported INTEGER NOT NULL DEFAULT 0
        );

        CREATE TABLE IF NOT EXISTS relationships (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            source_file TEXT NOT NULL REFERENCES files(path) ON DELETE CASCADE,
            source_symbol_id INTEGER REFERENCES symbols(id) ON DELETE SET NULL,
            target_file TEXT NOT NULL DEFAULT '',
            target_symbol TEXT NOT NULL DEFAULT '',
            kind TEXT NOT NULL,
            line INTEGER NOT NULL DEFAULT 0,
            column INTEGER NOT NULL DEFAULT 0
        );

        CREATE TABLE IF NOT EXISTS scans (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            root TEXT NOT NULL,
            scan_hash TEXT NOT NULL,
            started_at TEXT NOT NULL,
            completed_at TEXT NOT NULL,
            commit_hash TEXT NOT NULL DEFAULT ''
        );

        CREATE INDEX IF NOT EXISTS idx_chunks_path ON chunks(path, chunk_index);
        CREATE INDEX IF NOT EXISTS idx_symbols_file ON symbols(file_path, line_start);
        CREATE INDEX IF NOT EXISTS idx_symbols_name ON symbols(name);
        CREATE INDEX IF NOT EXISTS idx_relationships_source
            ON relationships(source_file, line);
        CREATE INDEX IF NOT EXISTS idx_relationships_target
            ON relationships(kind, target_symbol);
        """
    )
    if version < SCHEMA_VERSION:
        with conn:
            conn.execute(
                "INSERT INTO schema_version (version, applied_at) VALUES (?, ?)",
                (SCHEMA_VERSION, format_timestamp(utc_now())),
            )


def _enclosing_symbol_id(
    spans: Sequence[tuple[int, int, int, str]],
    line: int,
) -> int | None:
    best: tuple[int, int] | None = None
    for symbol_id, start, end, kind in spans:
        if kind not in _CALLABLE_KINDS or not start <= line <= end:
            continue
        width = end - start
        if best is None or width < best[0]:
            best = (width, symbol_id)
    return best[1] if best is not None else None


def _row_to_scan(row: sqlite3.Row | None) -> Scan:
    if row is None:
        return Scan()
    return Scan(
        id=int(row["id"]),
        root=row["root"],
        scan_hash=row["scan_hash"],
        started_at=parse_timestamp(row["started_at"]),
        completed_at=parse_timestamp(row["completed_at"]),
        commit_hash=row["commit_hash"] or "",
    )


def _row_to_symbol(row: sqlite3.Row) -> StoredSymbol:
    return StoredSymbol(
        file_path=row["file_path"],
        name=row["name"],
        kind=row["kind"],
        line_start=int(row["line_start"]),
        line_end=int(row["line_end"]),
        signature=row["signature"] or "",
        doc_comment=row["doc_comment"] or "",
        exported=bool(row["exported"]),
    )


class IndexStore:
    """One open index database.

    Construct with :meth:`open` (or :meth:`for_root`) and use as a context
    manager so the connection is closed on every exit path. Every write runs
    inside a single ``BEGIN IMMEDIATE`` transaction.
    """

    def __init__(self, conn: sqlite3.Connection, db_path: Path) -> None:
        self._conn = conn
        self.db_path = db_path

    @classmethod
    def open(
        cls,
        db_path: Path | str,
        *,
        create: bool = False,
        readonly: bool = False,
    ) -> "IndexStore":
        path = Path(db_path)
        if not path.exists():
            if not create or readonly:
                raise IndexMissingError(path)
            path.parent.mkdir(parents=True, exist_ok=True)
        try:
            conn = _connect(path, query_only=readonly)
        except sqlite3.Error as exc:
            raise StoreError("open index", exc) from exc
        try:
            if readonly:
                _ensure_schema_readonly(conn)
            else:
                _ensure_schema(conn)
        except sqlite3.Error as exc:
            conn.close()
            raise StoreError("open index", exc) from exc
        log.debug("Opened index %s (readonly=%s)", path, readonly)
        return cls(conn, path)

    @classmethod
    def for_root(cls, root: Path | str, **kwargs) -> "IndexStore":
        return cls.open(index_db_path(Path(root)), **kwargs)

    def close(self) -> None:
        self._conn.close()

    def __enter__(self) -> "IndexStore":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    @contextmanager
    def _transaction(self, operation: str) -> Iterator[sqlite3.Connection]:
        try:
            with self._conn:
                self._conn.execute("BEGIN IMMEDIATE;")
                yield self._conn
        except sqlite3.Error as exc:
            raise StoreError(operation, exc) from exc

    def _query(self, operation: str, sql: str, params: Sequence[object] = ()) -> list[sqlite3.Row]:
        try:
            return self._conn.execute(sql, params).fetchall()
        except sqlite3.Error as exc:
            raise StoreError(operation, exc) from exc

    def _query_one(
        self, operation: str, sql: str, params: Sequence[object] = ()
    ) -> sqlite3.Row | None:
        try:
            return self._conn.execute(sql, params).fetchone()
        except sqlite3.Error as exc:
            raise StoreError(operation, exc) from exc

    # -- writes ---------------------------------------------------------

    def _insert_symbols(
        self,
        conn: sqlite3.Connection,
        file_path: str,
        symbols: Sequence[Symbol],
        parent_id: int | None,
        spans: list[tuple[int, int, int, str]],
    ) -> int:
        count = 0
        for symbol in symbols:
            cursor = conn.execute(
                """
                INSERT INTO symbols (
                    file_path, name, kind, line_start, line_end,
                    signature, doc_comment, parent_id, exported
                ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    file_path,
                    symbol.name,
                    symbol.kind,
                    symbol.line_start,
                    symbol.line_end,
                    symbol.signature,
                    symbol.doc_comment,
                    parent_id,
                    1 if symbol.exported else 0,
                ),
            )
            symbol_id = int(cursor.lastrowid)
            spans.append((symbol_id, symbol.line_start, symbol.line_end, symbol.kind))
            count += 1
            count += self._insert_symbols(conn, file_path, symbol.children, symbol_id, spans)
        return count

    def _insert_relationships(
        self,
        conn: sqlite3.Connection,
        file_path: str,
        relationships: Sequence[Relationship],
        spans: Sequence[tuple[int, int, int, str]],
    ) -> int:
        conn.executemany(
            """
            INSERT INTO relationships (
                source_file, source_symbol_id, target_file, target_symbol, kind, line, column
            ) VALUES (?, ?, ?, ?, ?, ?, ?)
            """,
            [
                (
                    file_path,
                    _enclosing_symbol_id(spans, rel.line),
                    rel.target_file,
                    rel.target_symbol,
                    rel.kind,
                    rel.line,
                    rel.column,
                )
                for rel in relationships
            ],
        )
        return len(relationships)

    def _insert_record(
        self,
        conn: sqlite3.Connection,
        record: FileRecord,
        indexed_at: str,
    ) -> tuple[int, int, int]:
        conn.execute(
            """
            INSERT INTO files (path, hash, size, mod_time, indexed_at, language)
            VALUES (?, ?, ?, ?, ?, ?)
            """,
            (
                record.path,
                record.hash,
                record.size,
                format_mod_time(record.mod_time),
                indexed_at,
                record.language,
            ),
        )
        conn.executemany(
            """
            INSERT INTO chunks (path, chunk_index, start_line, end_line, content)
            VALUES (?, ?, ?, ?, ?)
            """,
            [
                (record.path, chunk.index, chunk.start_line, chunk.end_line, chunk.content)
                for chunk in record.chunks
            ],
        )
        spans: list[tuple[int, int, int, str]] = []
        symbol_count = self._insert_symbols(conn, record.path, record.symbols, None, spans)
        relationship_count = self._insert_relationships(
            conn, record.path, record.relationships, spans
        )
        return len(record.chunks), symbol_count, relationship_count

    @staticmethod
    def _delete_file(conn: sqlite3.Connection, path: str) -> None:
        conn.execute("DELETE FROM relationships WHERE source_file = ?", (path,))
        conn.execute("DELETE FROM symbols WHERE file_path = ?", (path,))
        conn.execute("DELETE FROM chunks WHERE path = ?", (path,))
        conn.execute("DELETE FROM files WHERE path = ?", (path,))

    def write_scan(
        self,
        root: Path | str,
        records: Sequence[FileRecord],
        started_at: datetime,
        *,
        commit_hash: str = "",
    ) -> ScanSummary:
        """Replace the current snapshot with *records* and append a scan row."""

        scan_hash = compute_scan_hash((record.path, record.hash) for record in records)
        indexed_at = format_timestamp(utc_now())
        chunk_count = symbol_count = relationship_count = 0
        with self._transaction("write scan") as conn:
            conn.execute("DELETE FROM relationships;")
            conn.execute("DELETE FROM symbols;")
            conn.execute("DELETE FROM chunks;")
            conn.execute("DELETE FROM files;")
            for record in sorted(records, key=lambda item: item.path):
                chunks, symbols, relationships = self._insert_record(conn, record, indexed_at)
                chunk_count += chunks
                symbol_count += symbols
                relationship_count += relationships
            completed_at = utc_now()
            cursor = conn.execute(
                """
                INSERT INTO scans (root, scan_hash, started_at, completed_at, commit_hash)
                VALUES (?, ?, ?, ?, ?)
                """,
                (
                    str(root),
                    scan_hash,
                    format_timestamp(started_at),
                    format_timestamp(completed_at),
                    commit_hash,
                ),
            )
            scan_id = int(cursor.lastrowid)
        log.debug(
            "Wrote scan %d: %d files, %d chunks", scan_id, len(records), chunk_count
        )
        return ScanSummary(
            scan=Scan(
                id=scan_id,
                root=str(root),
                scan_hash=scan_hash,
                started_at=started_at,
                completed_at=completed_at,
                commit_hash=commit_hash,
            ),
            file_count=len(records),
            chunk_count=chunk_count,
            symbol_count=symbol_count,
            relationship_count=relationship_count,
        )

    def incremental_scan(
        self,
        changes: Sequence[FileChange],
        records: Mapping[str, FileRecord],
    ) -> IncrementalScanSummary:
        """Apply *changes* to the current snapshot as one transaction.

        Added and modified paths are rebuilt from *records*; deleted paths
        lose every derived row. No scan row is written.
        """

        started = time.perf_counter()
        summary = IncrementalScanSummary()
        if not changes:
            summary.files_unchanged = self.count_files()
            summary.duration = time.perf_counter() - started
            return summary
        for change in changes:
            if change.action is not ChangeAction.DELETED and change.path not in records:
                raise ValueError(f"no file record for {change.action.value} path {change.path}")

        indexed_at = format_timestamp(utc_now())
        with self._transaction("incremental scan") as conn:
            initial = int(conn.execute("SELECT COUNT(*) FROM files").fetchone()[0])
            for change in changes:
                self._delete_file(conn, change.path)
                if change.action is ChangeAction.DELETED:
                    summary.files_deleted += 1
                    continue
                self._insert_record(conn, records[change.path], indexed_at)
                if change.action is ChangeAction.ADDED:
                    summary.files_added += 1
                else:
                    summary.files_modified += 1
        summary.files_unchanged = max(
            initial - summary.files_modified - summary.files_deleted, 0
        )
        summary.duration = time.perf_counter() - started
        log.debug(
            "Incremental scan applied: +%d ~%d -%d",
            summary.files_added,
            summary.files_modified,
            summary.files_deleted,
        )
        return summary

    # -- snapshot queries -------------------------------------------------

    def load_file_metadata(self) -> dict[str, FileMetadata]:
        rows = self._query("load file metadata", "SELECT path, hash, size, mod_time FROM files")
        metadata: dict[str, FileMetadata] = {}
        for row in rows:
            try:
                mod_time = parse_mod_time(row["mod_time"])
            except ValueError as exc:
                raise StoreError(
                    "load file metadata", ValueError(f"parse mod_time for {row['path']}: {exc}")
                ) from exc
            metadata[row["path"]] = FileMetadata(
                hash=row["hash"], size=int(row["size"]), mod_time=mod_time
            )
        return metadata

    def count_files(self) -> int:
        row = self._query_one("count files", "SELECT COUNT(*) AS total FROM files")
        return int(row["total"]) if row is not None else 0

    def latest_scan(self) -> Scan:
        row = self._query_one(
            "latest scan",
            """
            SELECT id, root, scan_hash, started_at, completed_at, commit_hash
            FROM scans ORDER BY id DESC LIMIT 1
            """,
        )
        return _row_to_scan(row)

    def detect_changes(
        self,
        root: Path,
        guardrails: Guardrails | None = None,
        mode: VerifyMode = VerifyMode.FAST,
    ) -> list[FileChange]:
        return detect_changes(Path(root), self.load_file_metadata(), guardrails, mode)

    def search_chunks(self, query: str, limit: int = DEFAULT_SEARCH_LIMIT) -> list[ChunkHit]:
        """Full-text search over chunk content, matching *query* as a phrase."""

        phrase = (query or "").replace("\x00", "").strip()
        if not phrase:
            return []
        if limit <= 0:
            limit = DEFAULT_SEARCH_LIMIT
        rows = self._query(
            "search chunks",
            """
            SELECT c.path, c.chunk_index, c.start_line, c.end_line, c.content,
                   chunks_fts.rank AS score
            FROM chunks_fts
            JOIN chunks c ON c.id = chunks_fts.rowid
            WHERE chunks_fts MATCH ?
            ORDER BY chunks_fts.rank, c.path, c.chunk_index
            LIMIT ?
            """,
            (sanitize_fts_query(phrase), limit),
        )
        return [
            ChunkHit(
                path=row["path"],
                chunk_index=int(row["chunk_index"]),
                start_line=int(row["start_line"]),
                end_line=int(row["end_line"]),
                content=row["content"],
                score=float(row["score"] or 0.0),
            )
            for row in rows
        ]

    def get_chunks_for_file(self, path: str) -> list[ChunkHit]:
        rows = self._query(
            "get chunks for file",
            """
            SELECT path, chunk_index, start_line, end_line, content
            FROM chunks WHERE path = ? ORDER BY chunk_index
            """,
            (path,),
        )
        return [
            ChunkHit(
                path=row["path"],
                chunk_index=int(row["chunk_index"]),
                start_line=int(row["start_line"]),
                end_line=int(row["end_line"]),
                content=row["content"],
            )
            for row in rows
        ]

    # -- symbols ----------------------------------------------------------

    def get_symbol(self, name: str, file_path: str = "") -> StoredSymbol | None:
        sql = """
            SELECT file_path, name, kind, line_start, line_end, signature, doc_comment, exported
            FROM symbols WHERE name = ?
        """
        params: list[object] = [name]
        if file_path:
            sql += " AND file_path = ?"
            params.append(file_path)
        sql += " ORDER BY file_path, line_start LIMIT 1"
        row = self._query_one("get symbol", sql, params)
        return _row_to_symbol(row) if row is not None else None

    def list_exported_symbols(self, file_path: str) -> list[StoredSymbol]:
        rows = self._query(
            "list exported symbols",
            """
            SELECT file_path, name, kind, line_start, line_end, signature, doc_comment, exported
            FROM symbols WHERE file_path = ? AND exported = 1
            ORDER BY line_start
            """,
            (file_path,),
        )
        return [_row_to_symbol(row) for row in rows]

    # -- call graph ---------------------------------------------------------

    def _callers_clause(self, symbol: str) -> tuple[str, list[object]]:
        escaped = _escape_like(symbol)
        clause = """
            r.kind = 'call' AND (
                r.target_symbol = ?
                OR r.target_symbol LIKE ? ESCAPE '\\'
                OR r.target_symbol LIKE ? ESCAPE '\\'
                OR r.target_symbol LIKE ? ESCAPE '\\'
            )
        """
        return clause, [symbol, f"%.{escaped}", f"%::{escaped}", f"% {escaped}"]

    def get_incoming_calls(self, symbol: str) -> list[CallSite]:
        """Return call sites whose target is *symbol* or ends with ``.symbol``."""

        clause, params = self._callers_clause(symbol)
        rows = self._query(
            "get incoming calls",
            f"""
            SELECT r.source_file, r.line, r.target_symbol, s.name AS caller
            FROM relationships r
            LEFT JOIN symbols s ON s.id = r.source_symbol_id
            WHERE {clause}
            ORDER BY r.source_file, r.line, r.column
            """,
            params,
        )
        return [
            CallSite(
                file_path=row["source_file"],
                line=int(row["line"]),
                callee_symbol=row["target_symbol"],
                caller_symbol=row["caller"] or "",
            )
            for row in rows
        ]

    def get_outgoing_calls(self, symbol: str, file_path: str = "") -> list[CallSite]:
        """Return the calls made inside the body of *symbol*.

        Raises :class:`SymbolNotFoundError` when the symbol is not indexed.
        """

        definition = self.get_symbol(symbol, file_path)
        if definition is None:
            raise SymbolNotFoundError(symbol)
        rows = self._query(
            "get outgoing calls",
            """
            SELECT source_file, line, target_symbol
            FROM relationships
            WHERE kind = 'call' AND source_file = ? AND line >= ? AND line <= ?
            ORDER BY line, column
            """,
            (definition.file_path, definition.line_start, definition.line_end),
        )
        return [
            CallSite(
                file_path=row["source_file"],
                line=int(row["line"]),
                callee_symbol=row["target_symbol"],
                caller_symbol=symbol,
            )
            for row in rows
        ]

    def get_call_graph(self, file_path: str) -> CallGraph:
        """Calls made from *file_path* and calls into its symbols from other files."""

        graph = CallGraph(scope=file_path)
        rows = self._query(
            "get call graph",
            """
            SELECT r.source_file, r.line, r.target_symbol, s.name AS caller
            FROM relationships r
            LEFT JOIN symbols s ON s.id = r.source_symbol_id
            WHERE r.kind = 'call' AND r.source_file = ?
            ORDER BY r.line, r.column
            """,
            (file_path,),
        )
        graph.outgoing_calls = [
            CallSite(
                file_path=row["source_file"],
                line=int(row["line"]),
                callee_symbol=row["target_symbol"],
                caller_symbol=row["caller"] or "",
            )
            for row in rows
        ]

        names = [
            row["name"]
            for row in self._query(
                "get call graph",
                "SELECT DISTINCT name FROM symbols WHERE file_path = ? ORDER BY name",
                (file_path,),
            )
        ]
        incoming: dict[tuple[str, int, str], CallSite] = {}
        for name in names:
            for call in self.get_incoming_calls(name):
                if call.file_path == file_path:
                    continue
                incoming.setdefault((call.file_path, call.line, call.callee_symbol), call)
        graph.incoming_calls = sorted(
            incoming.values(), key=lambda call: (call.file_path, call.line)
        )
        return graph

    def get_callers_count(self, symbol: str) -> int:
        clause, params = self._callers_clause(symbol)
        row = self._query_one(
            "get callers count",
            f"SELECT COUNT(*) AS total FROM relationships r WHERE {clause}",
            params,
        )
        return int(row["total"]) if row is not None else 0

    def get_most_called_symbols(self, limit: int = DEFAULT_SEARCH_LIMIT) -> list[tuple[str, int]]:
        if limit <= 0:
            limit = DEFAULT_SEARCH_LIMIT
        rows = self._query(
            "get most called symbols",
            """
            SELECT target_symbol, COUNT(*) AS call_count
            FROM relationships
            WHERE kind = 'call'
            GROUP BY target_symbol
            ORDER BY call_count DESC, target_symbol
            LIMIT ?
            """,
            (limit,),
        )
        return [(row["target_symbol"], int(row["call_count"])) for row in rows]
