"""Split file text into line-bounded chunks for full-text indexing.

Two entry points are provided. :func:`chunk_content` is a greedy splitter
bounded by a line count and a byte budget. :func:`chunk_content_smart` takes
symbol boundaries from a language analyzer and keeps each symbol inside a
single chunk unless the symbol alone exceeds the budget.

Both return an ordered partition of the file's lines: every line belongs to
exactly one chunk, and joining the chunk contents reproduces the original
text. Each chunk keeps the trailing newline of its last line except at the
end of the file.
"""

from __future__ import annotations

from dataclasses import dataclass
from itertools import accumulate
from typing import Sequence

DEFAULT_MAX_LINES = 120
DEFAULT_MAX_BYTES = 8 * 1024


@dataclass(frozen=True, slots=True)
class Chunk:
    index: int
    start_line: int
    end_line: int
    content: str


@dataclass(frozen=True, slots=True)
class SymbolBoundary:
    """A line range that should not be split across chunks."""

    name: str
    kind: str
    start_line: int
    end_line: int


class _Lines:
    """Line pieces of a text with prefix sums of their UTF-8 sizes."""

    def __init__(self, content: str) -> None:
        raw = content.split("\n")
        last = len(raw) - 1
        self.pieces = [line if idx == last else f"{line}\n" for idx, line in enumerate(raw)]
        self._offsets = [0, *accumulate(len(piece.encode("utf-8")) for piece in self.pieces)]

    @property
    def total(self) -> int:
        return len(self.pieces)

    def size(self, line: int) -> int:
        return self._offsets[line] - self._offsets[line - 1]

    def span_bytes(self, start: int, end: int) -> int:
        return self._offsets[end] - self._offsets[start - 1]

    def text(self, start: int, end: int) -> str:
        return "".join(self.pieces[start - 1 : end])


def _resolve_limits(max_lines: int, max_bytes: int) -> tuple[int, int]:
    if max_lines <= 0:
        max_lines = DEFAULT_MAX_LINES
    if max_bytes <= 0:
        max_bytes = DEFAULT_MAX_BYTES
    return max_lines, max_bytes


def _split_by_lines(
    lines: _Lines,
    start: int,
    end: int,
    max_lines: int,
    max_bytes: int,
) -> list[tuple[int, int]]:
    ranges: list[tuple[int, int]] = []
    chunk_start = start
    count = 0
    used = 0
    for line in range(start, end + 1):
        line_bytes = lines.size(line)
        if count and (count >= max_lines or used + line_bytes > max_bytes):
            ranges.append((chunk_start, line - 1))
            chunk_start = line
            count = 0
            used = 0
        count += 1
        used += line_bytes
    if count:
        ranges.append((chunk_start, end))
    return ranges


def _build_chunks(lines: _Lines, ranges: Sequence[tuple[int, int]]) -> list[Chunk]:
    return [
        Chunk(index=idx, start_line=start, end_line=end, content=lines.text(start, end))
        for idx, (start, end) in enumerate(ranges)
    ]


def chunk_content(
    content: str,
    max_lines: int = DEFAULT_MAX_LINES,
    max_bytes: int = DEFAULT_MAX_BYTES,
) -> list[Chunk]:
    """Split *content* greedily by line count and byte size.

    A single line larger than *max_bytes* still becomes its own chunk.
    """

    max_lines, max_bytes = _resolve_limits(max_lines, max_bytes)
    lines = _Lines(content)
    return _build_chunks(lines, _split_by_lines(lines, 1, lines.total, max_lines, max_bytes))


def _top_level_spans(
    symbols: Sequence[SymbolBoundary],
    total: int,
) -> list[tuple[int, int]]:
    clamped: list[tuple[int, int]] = []
    for symbol in symbols:
        start = max(int(symbol.start_line), 1)
        end = min(int(symbol.end_line), total)
        if start > total or end < start:
            continue
        clamped.append((start, end))
    clamped.sort(key=lambda span: (span[0], -span[1]))

    spans: list[tuple[int, int]] = []
    for start, end in clamped:
        if spans and start <= spans[-1][1]:
            # nested or overlapping: widen the enclosing span
            prev_start, prev_end = spans[-1]
            spans[-1] = (prev_start, max(prev_end, end))
            continue
        spans.append((start, end))
    return spans


def _break_points(spans: Sequence[tuple[int, int]], total: int) -> list[int]:
    points: list[int] = []
    for current, following in zip(spans, spans[1:]):
        if following[0] > current[1] + 1:
            points.append(following[0] - 1)
        else:
            points.append(current[1])
    points.append(max(spans[-1][1], total))
    return points


def _span_units(
    start: int,
    end: int,
    spans: Sequence[tuple[int, int]],
) -> list[tuple[int, int, bool]]:
    """Cover ``start..end`` with symbol units and the gaps between them."""

    units: list[tuple[int, int, bool]] = []
    cursor = start
    for sym_start, sym_end in spans:
        if sym_end < start or sym_start > end:
            continue
        if sym_start > cursor:
            units.append((cursor, sym_start - 1, False))
        units.append((sym_start, sym_end, True))
        cursor = sym_end + 1
    if cursor <= end:
        units.append((cursor, end, False))
    return units


def _split_large_span(
    lines: _Lines,
    start: int,
    end: int,
    spans: Sequence[tuple[int, int]],
    max_lines: int,
    max_bytes: int,
) -> list[tuple[int, int]]:
    ranges: list[tuple[int, int]] = []
    group: tuple[int, int] | None = None

    def fits(first: int, last: int) -> bool:
        return last - first + 1 <= max_lines and lines.span_bytes(first, last) <= max_bytes

    for unit_start, unit_end, is_symbol in _span_units(start, end, spans):
        if not fits(unit_start, unit_end):
            if group is not None:
                ranges.append(group)
                group = None
            if is_symbol:
                ranges.append((unit_start, unit_end))
            else:
                ranges.extend(_split_by_lines(lines, unit_start, unit_end, max_lines, max_bytes))
            continue
        if group is not None and not fits(group[0], unit_end):
            ranges.append(group)
            group = None
        group = (unit_start, unit_end) if group is None else (group[0], unit_end)
    if group is not None:
        ranges.append(group)
    return ranges


def chunk_content_smart(
    content: str,
    symbols: Sequence[SymbolBoundary] | None,
    max_lines: int = DEFAULT_MAX_LINES,
    max_bytes: int = DEFAULT_MAX_BYTES,
) -> list[Chunk]:
    """Split *content* without cutting through the given symbols.

    Lines between symbols break just before the next symbol starts, so
    leading comments and decorators stay with the code they describe.
    Consecutive spans are merged while the result fits the budget. A span
    over budget is regrouped symbol by symbol; uncovered stretches fall back
    to the line splitter, and a symbol that alone exceeds the budget becomes
    one oversized chunk.
    """

    if not symbols:
        return chunk_content(content, max_lines, max_bytes)
    max_lines, max_bytes = _resolve_limits(max_lines, max_bytes)
    lines = _Lines(content)
    spans = _top_level_spans(symbols, lines.total)
    if not spans:
        return chunk_content(content, max_lines, max_bytes)

    ranges: list[tuple[int, int]] = []
    pending: tuple[int, int] | None = None
    current = 1
    for point in _break_points(spans, lines.total):
        if point < current:
            continue
        span = (current, point)
        current = point + 1
        if point - span[0] + 1 > max_lines or lines.span_bytes(*span) > max_bytes:
            if pending is not None:
                ranges.append(pending)
                pending = None
            ranges.extend(
                _split_large_span(lines, span[0], span[1], spans, max_lines, max_bytes)
            )
            continue
        if pending is not None:
            merged = (pending[0], span[1])
            if (
                merged[1] - merged[0] + 1 <= max_lines
                and lines.span_bytes(*merged) <= max_bytes
            ):
                pending = merged
                continue
            ranges.append(pending)
        pending = span
    if pending is not None:
        ranges.append(pending)
    return _build_chunks(lines, ranges)
