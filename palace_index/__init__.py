"""palace-index package initialization."""

from __future__ import annotations

from .chunker import Chunk, SymbolBoundary, chunk_content, chunk_content_smart
from .errors import (
    DiffRangeError,
    IndexMissingError,
    PalaceError,
    SignalError,
    StoreError,
    SymbolNotFoundError,
)
from .guardrails import Guardrails, matches_guardrail
from .models import ChangeAction, FileChange, FileMetadata, FileRecord, VerifyMode
from .staleness import detect_changes, detect_stale
from .store import IndexStore, compute_scan_hash, index_db_path

__all__ = [
    "__version__",
    "ChangeAction",
    "Chunk",
    "DiffRangeError",
    "FileChange",
    "FileMetadata",
    "FileRecord",
    "Guardrails",
    "IndexMissingError",
    "IndexStore",
    "PalaceError",
    "SignalError",
    "StoreError",
    "SymbolBoundary",
    "SymbolNotFoundError",
    "VerifyMode",
    "chunk_content",
    "chunk_content_smart",
    "compute_scan_hash",
    "detect_changes",
    "detect_stale",
    "get_version",
    "index_db_path",
    "matches_guardrail",
]

__version__ = "0.1.0"


def get_version() -> str:
    """Return the current package version."""
    return __version__
