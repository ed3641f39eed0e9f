from __future__ import annotations

import logging
from typing import Any, Callable, Dict, List, Tuple

from .delta import shift_for_delete, shift_for_insert
from .models import Finding

logger = logging.getLogger(__name__)

ChangeListener = Callable[[List[Dict[str, Any]]], None]
FormatSpan = Tuple[int, int, Finding]


class BufferEditor:
    """In-memory stand-in for a rich text editor.

    Holds the text and the highlight spans attached to it, moves those spans
    along with edits the way an editor keeps inline formats, and reports
    every edit to listeners as a Quill-style operation list.
    """

    def __init__(self, text: str = "") -> None:
        self._text = text
        self._formats: List[FormatSpan] = []
        self._listeners: List[ChangeListener] = []
        self.mutation_count = 0

    def on_change(self, listener: ChangeListener) -> None:
        self._listeners.append(listener)

    def get_text(self) -> str:
        return self._text

    def set_text(self, text: str) -> None:
        """Load a new document without emitting a change."""
        self._text = text
        self._formats = []

    # -- editing ----------------------------------------------------------------

    def insert_text(self, offset: int, text: str) -> None:
        self.replace_text(offset, 0, text)

    def delete_text(self, offset: int, length: int) -> None:
        self.replace_text(offset, length, "")

    def replace_text(self, offset: int, length: int, text: str) -> None:
        if offset < 0 or length < 0 or offset + length > len(self._text):
            raise ValueError(
                f"Range [{offset}, {offset + length}) outside buffer of {len(self._text)}"
            )
        if not length and not text:
            return
        ops: List[Dict[str, Any]] = []
        if offset:
            ops.append({"retain": offset})
        if length:
            ops.append({"delete": length})
            self._shift_formats_for_delete(offset, length)
        if text:
            ops.append({"insert": text})
            self._shift_formats_for_insert(offset, len(text))
        self._text = self._text[:offset] + text + self._text[offset + length :]
        logger.debug("Buffer edit %r", ops)
        for listener in list(self._listeners):
            listener(ops)

    def _shift_formats_for_insert(self, position: int, size: int) -> None:
        self._formats = [
            (*shift_for_insert(offset, length, position, size), finding)
            for offset, length, finding in self._formats
        ]

    def _shift_formats_for_delete(self, position: int, size: int) -> None:
        shifted: List[FormatSpan] = []
        for offset, length, finding in self._formats:
            span = shift_for_delete(offset, length, position, size)
            if span is not None and span[1] > 0:
                shifted.append((span[0], span[1], finding))
        self._formats = shifted

    # -- formatting ---------------------------------------------------------------

    def format_span(self, offset: int, length: int, finding: Finding | None) -> None:
        """Set (or with None, clear) the highlight over [offset, offset+length)."""
        end = offset + length
        kept: List[FormatSpan] = []
        for span_offset, span_length, payload in self._formats:
            span_end = span_offset + span_length
            if span_end <= offset or span_offset >= end:
                kept.append((span_offset, span_length, payload))
                continue
            if span_offset < offset:
                kept.append((span_offset, offset - span_offset, payload))
            if span_end > end:
                kept.append((end, span_end - end, payload))
        if finding is not None and length > 0:
            kept.append((offset, length, finding))
        kept.sort(key=lambda span: span[0])
        self._formats = kept
        self.mutation_count += 1

    def get_format(self, offset: int, length: int) -> Finding | None:
        for span_offset, span_length, payload in self._formats:
            if span_offset == offset and span_length == length:
                return payload
        return None

    def formats(self) -> List[FormatSpan]:
        return list(self._formats)

    def highlighted(self) -> List[str]:
        """Text currently covered by each highlight, in buffer order."""
        return [self._text[o : o + n] for o, n, _ in self._formats]
