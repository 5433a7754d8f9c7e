"""Exception types surfaced by palace-index."""

from __future__ import annotations

from pathlib import Path


class PalaceError(RuntimeError):
    """Base class for errors reported to the user."""


class IndexMissingError(PalaceError, FileNotFoundError):
    def __init__(self, db_path: Path | str) -> None:
        self.db_path = Path(db_path)
        super().__init__("index missing, run a full scan first")


class DiffRangeError(PalaceError):
    def __init__(self, diff_range: str, detail: str = "") -> None:
        self.diff_range = diff_range
        self.detail = detail.strip()
        message = f"invalid diff range {diff_range!r}"
        if self.detail:
            message = f"{message}: {self.detail}"
        super().__init__(message)


class SignalError(PalaceError):
    """Change-signal artifact could not be read, written or generated."""


class StoreError(PalaceError):
    def __init__(self, operation: str, cause: BaseException) -> None:
        self.operation = operation
        super().__init__(f"{operation}: {cause}")


class SymbolNotFoundError(PalaceError, LookupError):
    def __init__(self, name: str) -> None:
        self.name = name
        super().__init__(f"symbol not found: {name}")
