from __future__ import annotations

import logging
from typing import Callable, Iterable, List, Sequence, Tuple

from .models import CategoryCounts, Finding

logger = logging.getLogger(__name__)

CountsListener = Callable[[CategoryCounts], None]


def resolve_overlaps(findings: Iterable[Finding]) -> List[Finding]:
    """Order findings by offset and keep the first of any overlapping group.

    Scan order is ascending offset, with the original sequence breaking
    ties, so the outcome is deterministic for a given input.
    """
    ordered = sorted(findings, key=lambda finding: finding.offset)
    kept: List[Finding] = []
    for finding in ordered:
        if kept and finding.offset < kept[-1].end and finding.length > 0:
            logger.debug(
                "Dropping finding %r at %d overlapping %r",
                finding.surface_form,
                finding.offset,
                kept[-1].surface_form,
            )
            continue
        kept.append(finding)
    return kept


class AnnotationStore:
    """Authoritative list of live findings.

    The list is never mutated in place: every change builds a new tuple and
    swaps it in, then notifies listeners with fresh category counts.
    """

    def __init__(self) -> None:
        self._findings: Tuple[Finding, ...] = ()
        self._listeners: List[CountsListener] = []
        self._version = 0

    @property
    def findings(self) -> Tuple[Finding, ...]:
        return self._findings

    @property
    def version(self) -> int:
        return self._version

    def __len__(self) -> int:
        return len(self._findings)

    def __iter__(self):
        return iter(self._findings)

    def subscribe(self, listener: CountsListener) -> None:
        self._listeners.append(listener)

    def counts(self) -> CategoryCounts:
        return CategoryCounts.from_findings(self._findings)

    def commit(self, findings: Sequence[Finding]) -> None:
        """Swap in a new finding list."""
        new_findings = tuple(resolve_overlaps(findings))
        if new_findings == self._findings:
            return
        self._findings = new_findings
        self._version += 1
        counts = self.counts()
        for listener in self._listeners:
            listener(counts)

    def clear(self) -> None:
        self.commit(())

    def in_range(self, start: int, end: int) -> List[Finding]:
        """Findings whose start offset lies in [start, end)."""
        return [f for f in self._findings if start <= f.offset < end]

    def contained_in(self, start: int, end: int) -> List[Finding]:
        """Findings lying completely inside [start, end]."""
        return [f for f in self._findings if f.offset >= start and f.end <= end]

    def replace_range(
        self, start: int, end: int, findings: Iterable[Finding]
    ) -> List[Finding]:
        """Replace the findings starting inside [start, end); return the old ones."""
        previous = self.in_range(start, end)
        outside = [f for f in self._findings if not start <= f.offset < end]
        self.commit(outside + list(findings))
        return previous

    def replace_contained(
        self, start: int, end: int, findings: Iterable[Finding]
    ) -> None:
        """Replace the findings lying completely inside [start, end]."""
        outside = [f for f in self._findings if not (f.offset >= start and f.end <= end)]
        self.commit(outside + list(findings))

    def remove(self, finding: Finding) -> bool:
        remaining = [f for f in self._findings if f != finding]
        if len(remaining) == len(self._findings):
            return False
        self.commit(remaining)
        return True

    def find(self, offset: int, length: int, surface_form: str | None = None) -> Finding | None:
        """Return the finding at exactly (offset, length), disambiguated by surface form."""
        for finding in self._findings:
            if finding.offset != offset or finding.length != length:
                continue
            if surface_form is None or finding.surface_form == surface_form:
                return finding
        return None

    def at_position(self, position: int) -> Finding | None:
        for finding in self._findings:
            if finding.offset <= position < finding.end:
                return finding
        return None
