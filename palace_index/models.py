"""Value types shared by the index store and the scan services."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum

from .analyzers import Relationship, Symbol
from .chunker import Chunk


class ChangeAction(str, Enum):
    ADDED = "added"
    MODIFIED = "modified"
    DELETED = "deleted"


class VerifyMode(str, Enum):
    FAST = "fast"
    STRICT = "strict"


class FingerprintStatus(str, Enum):
    UNCHANGED = "unchanged"
    ADDED = "added"
    MODIFIED = "modified"
    MISSING = "missing"


@dataclass(frozen=True, slots=True)
class FileMetadata:
    """Cheap fingerprint of an indexed file."""

    hash: str
    size: int
    mod_time: datetime


@dataclass(slots=True)
class FileRecord:
    path: str
    hash: str
    size: int
    mod_time: datetime
    language: str = ""
    chunks: list[Chunk] = field(default_factory=list)
    symbols: list[Symbol] = field(default_factory=list)
    relationships: list[Relationship] = field(default_factory=list)

    @property
    def metadata(self) -> FileMetadata:
        return FileMetadata(hash=self.hash, size=self.size, mod_time=self.mod_time)


@dataclass(frozen=True, slots=True)
class FileChange:
    path: str
    action: ChangeAction
    old_hash: str = ""
    new_hash: str = ""


@dataclass(frozen=True, slots=True)
class Scan:
    """One row of scan history. ``Scan()`` is the empty sentinel."""

    id: int = 0
    root: str = ""
    scan_hash: str = ""
    started_at: datetime | None = None
    completed_at: datetime | None = None
    commit_hash: str = ""

    @property
    def exists(self) -> bool:
        return self.id > 0


@dataclass(frozen=True, slots=True)
class ScanSummary:
    scan: Scan
    file_count: int = 0
    chunk_count: int = 0
    symbol_count: int = 0
    relationship_count: int = 0

    @property
    def scan_id(self) -> int:
        return self.scan.id

    @property
    def scan_hash(self) -> str:
        return self.scan.scan_hash


@dataclass(slots=True)
class IncrementalScanSummary:
    files_added: int = 0
    files_modified: int = 0
    files_deleted: int = 0
    files_unchanged: int = 0
    duration: float = 0.0

    @property
    def is_noop(self) -> bool:
        return not (self.files_added or self.files_modified or self.files_deleted)


@dataclass(frozen=True, slots=True)
class ChunkHit:
    path: str
    chunk_index: int
    start_line: int
    end_line: int
    content: str
    score: float = 0.0


@dataclass(frozen=True, slots=True)
class StoredSymbol:
    file_path: str
    name: str
    kind: str
    line_start: int
    line_end: int
    signature: str = ""
    doc_comment: str = ""
    exported: bool = False


@dataclass(frozen=True, slots=True)
class CallSite:
    file_path: str
    line: int
    callee_symbol: str
    caller_symbol: str = ""


@dataclass(slots=True)
class CallGraph:
    scope: str
    incoming_calls: list[CallSite] = field(default_factory=list)
    outgoing_calls: list[CallSite] = field(default_factory=list)
