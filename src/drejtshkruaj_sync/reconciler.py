from __future__ import annotations

import logging
from dataclasses import replace
from typing import Iterable, List, Protocol, Sequence

from .models import Finding
from .store import AnnotationStore
from .textutils import relocate, surface_matches, trim_trailing_boundary

logger = logging.getLogger(__name__)


class EditorHost(Protocol):
    """What the engine needs from a rich text editor."""

    def get_text(self) -> str:
        """Full current buffer text."""

    def format_span(self, offset: int, length: int, finding: Finding | None) -> None:
        """Attach ``finding`` to the span, or clear highlighting when None."""

    def get_format(self, offset: int, length: int) -> Finding | None:
        """Payload attached at exactly this span, if any."""


class EditableHost(EditorHost, Protocol):
    """A host the engine may also edit, for applying suggestions.

    The host must report the resulting change back through its usual
    change notification.
    """

    def replace_text(self, offset: int, length: int, text: str) -> None:
        ...


def display_length(text: str, finding: Finding) -> int:
    """Highlight length for ``finding``: its span minus trailing boundary characters.

    Spans made only of boundary characters (a lone comma) keep their length.
    """
    trimmed = trim_trailing_boundary(text, finding.offset, finding.length)
    return trimmed or finding.length


def validate(
    text: str, findings: Iterable[Finding], radius: int = 30
) -> List[Finding]:
    """Keep findings whose surface form is still at their offset.

    Drifted findings are moved to the closest exact occurrence within
    ``radius`` characters; the rest are dropped.
    """
    valid: List[Finding] = []
    for finding in findings:
        if surface_matches(text, finding.offset, finding.length, finding.surface_form):
            valid.append(finding)
            continue
        new_offset = relocate(
            text, finding.offset, finding.length, finding.surface_form, radius
        )
        if new_offset is None:
            logger.debug(
                "Dropping finding %r at %d: no longer present",
                finding.surface_form,
                finding.offset,
            )
            continue
        length = len(finding.surface_form.strip())
        logger.debug(
            "Relocated finding %r from %d to %d",
            finding.surface_form,
            finding.offset,
            new_offset,
        )
        valid.append(replace(finding, offset=new_offset, length=length))
    return valid


class HighlightReconciler:
    """Makes the host's highlighting match the store, one range at a time.

    Only findings whose span or payload changed are (re)formatted, so a
    second pass over an unchanged store issues no host mutations.
    """

    def __init__(
        self, host: EditorHost, store: AnnotationStore, radius: int = 30
    ) -> None:
        self.host = host
        self.store = store
        self.radius = radius

    def reconcile(
        self, start: int, end: int, previous: Sequence[Finding] | None = None
    ) -> List[Finding]:
        """Validate and redraw the findings starting in [start, end).

        Selection is by start offset, the same rule ``replace_range`` uses,
        so a finding running past ``end`` is still validated and redrawn
        rather than left out of the store update.

        ``previous`` lists the findings that were highlighted in this range
        before the store changed; it defaults to the store's current
        findings there. Returns the findings left live in the range.
        """
        text = self.host.get_text()
        current = self.store.in_range(start, end)
        if previous is None:
            previous = current
        live = validate(text, current, self.radius)
        if live != current:
            self.store.replace_range(start, end, live)
            live = self.store.in_range(start, end)

        self.unhighlight(f for f in previous if f not in live)
        for finding in live:
            self._apply(text, finding)
        return live

    def reconcile_all(self) -> List[Finding]:
        return self.reconcile(0, len(self.host.get_text()) + 1)

    def unhighlight(self, findings: Iterable[Finding]) -> None:
        text_length = len(self.host.get_text())
        for finding in findings:
            if finding.offset >= text_length:
                continue
            length = min(finding.length, text_length - finding.offset)
            self.host.format_span(finding.offset, length, None)

    def _apply(self, text: str, finding: Finding) -> None:
        length = display_length(text, finding)
        if self.host.get_format(finding.offset, length) == finding:
            return
        self.host.format_span(finding.offset, length, finding)
