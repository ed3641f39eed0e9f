from __future__ import annotations

import logging
from dataclasses import dataclass, field, replace
from typing import Any, Iterable, List, Mapping, Sequence, Tuple

from .chunking import paragraph_bounds
from .models import Finding

logger = logging.getLogger(__name__)

RETAIN = "retain"
INSERT = "insert"
DELETE = "delete"


@dataclass(frozen=True, slots=True)
class DeltaOp:
    """One step of a host change notification, applied left to right."""

    kind: str
    length: int
    text: str = ""


@dataclass(slots=True)
class EditMap:
    """Ordered record of the inserts/deletes of one delta.

    Positions are expressed in the coordinates of the buffer as it looked
    when each edit was applied, so earlier edits are already reflected.
    """

    edits: List[Tuple[str, int, int]] = field(default_factory=list)

    def record_insert(self, position: int, size: int) -> None:
        self.edits.append((INSERT, position, size))

    def record_delete(self, position: int, size: int) -> None:
        self.edits.append((DELETE, position, size))

    def map_point(self, point: int) -> int | None:
        """Translate a pre-edit position; None when its character was deleted."""
        for kind, position, size in self.edits:
            if kind == INSERT:
                if point >= position:
                    point += size
            elif point >= position + size:
                point -= size
            elif point >= position:
                return None
        return point

    @property
    def net_change(self) -> int:
        return sum(size if kind == INSERT else -size for kind, _, size in self.edits)


@dataclass(slots=True)
class DeltaResult:
    """Outcome of interpreting one change notification."""

    findings: Tuple[Finding, ...]
    removed: Tuple[Finding, ...]
    dirty_ranges: List[Tuple[int, int]]
    edit_map: EditMap
    cleared: bool = False


def parse_ops(ops: Iterable[Mapping[str, Any] | DeltaOp]) -> List[DeltaOp]:
    """Convert Quill-style ``{"retain"|"insert"|"delete": ...}`` dicts into DeltaOps.

    Attribute-only retains count as plain retains; non-string inserts
    (embeds) occupy one code unit.
    """
    parsed: List[DeltaOp] = []
    for op in ops:
        if isinstance(op, DeltaOp):
            parsed.append(op)
            continue
        if INSERT in op:
            value = op[INSERT]
            if isinstance(value, str):
                if value:
                    parsed.append(DeltaOp(INSERT, len(value), value))
            else:
                parsed.append(DeltaOp(INSERT, 1))
        elif DELETE in op:
            size = int(op[DELETE])
            if size > 0:
                parsed.append(DeltaOp(DELETE, size))
        elif RETAIN in op:
            value = op[RETAIN]
            size = value if isinstance(value, int) else 1
            if size > 0:
                parsed.append(DeltaOp(RETAIN, size))
        else:
            raise ValueError(f"Unsupported delta operation: {op!r}")
    return parsed


def shift_for_insert(
    offset: int, length: int, position: int, size: int
) -> Tuple[int, int]:
    """Span after inserting ``size`` units at ``position``.

    Spans starting at or after the insertion move right; a span strictly
    containing the insertion point grows.
    """
    if offset >= position:
        return offset + size, length
    if offset < position < offset + length:
        return offset, length + size
    return offset, length


def shift_for_delete(
    offset: int, length: int, position: int, size: int
) -> Tuple[int, int] | None:
    """Span after deleting [position, position+size); None if fully deleted."""
    end = position + size
    span_end = offset + length
    if offset >= end:
        return offset - size, length
    if span_end <= position:
        return offset, length
    if offset >= position and span_end <= end:
        return None
    overlap = min(span_end, end) - max(offset, position)
    return min(offset, position), length - overlap


def interpret_delta(
    ops: Iterable[Mapping[str, Any] | DeltaOp],
    findings: Sequence[Finding],
    text_after: str,
) -> DeltaResult:
    """Apply one edit's operations to a finding list without mutating it.

    ``text_after`` is the host buffer once the edit has been applied; it is
    used to locate the paragraphs the edit touched.
    """
    current: List[Finding] = list(findings)
    removed: List[Finding] = []
    touched: List[Tuple[int, int]] = []
    edit_map = EditMap()
    position = 0

    for op in parse_ops(ops):
        if op.kind == RETAIN:
            position += op.length
        elif op.kind == INSERT:
            shifted: List[Finding] = []
            for finding in current:
                offset, length = shift_for_insert(
                    finding.offset, finding.length, position, op.length
                )
                if (offset, length) != (finding.offset, finding.length):
                    finding = replace(finding, offset=offset, length=length)
                shifted.append(finding)
            current = shifted
            edit_map.record_insert(position, op.length)
            touched.append((position, position + op.length))
            position += op.length
        elif op.kind == DELETE:
            survivors: List[Finding] = []
            for finding in current:
                span = shift_for_delete(
                    finding.offset, finding.length, position, op.length
                )
                if span is None:
                    removed.append(finding)
                    continue
                if span != (finding.offset, finding.length):
                    finding = replace(finding, offset=span[0], length=span[1])
                survivors.append(finding)
            current = survivors
            edit_map.record_delete(position, op.length)
            touched.append((position, position))

    if not text_after.strip():
        logger.debug("Buffer empty after edit; clearing %d findings", len(findings))
        return DeltaResult(
            findings=(),
            removed=tuple(findings),
            dirty_ranges=[],
            edit_map=edit_map,
            cleared=True,
        )

    return DeltaResult(
        findings=tuple(current),
        removed=tuple(removed),
        dirty_ranges=_paragraph_ranges(text_after, touched),
        edit_map=edit_map,
    )


def _paragraph_ranges(
    text: str, touched: Sequence[Tuple[int, int]]
) -> List[Tuple[int, int]]:
    ranges: List[Tuple[int, int]] = []
    for first, last in touched:
        start = paragraph_bounds(text, first)[0]
        end = paragraph_bounds(text, max(first, last))[1]
        ranges.append((start, end))
    ranges.sort()
    merged: List[Tuple[int, int]] = []
    for start, end in ranges:
        if merged and start <= merged[-1][1] + 1:
            merged[-1] = (merged[-1][0], max(merged[-1][1], end))
        else:
            merged.append((start, end))
    return merged
