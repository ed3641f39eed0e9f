from __future__ import annotations

import logging
import re
from dataclasses import replace
from typing import TYPE_CHECKING, Dict, Iterable, List, Tuple

from .models import Chunk, Finding

if TYPE_CHECKING:  # pragma: no cover - import for typing only
    from .delta import EditMap

logger = logging.getLogger(__name__)

LINE_BREAK = re.compile(r"\r?\n")


def split_paragraphs(text: str) -> List[Chunk]:
    """Split text into newline-delimited chunks with absolute offsets.

    Whitespace-only lines produce no chunk but still consume offset space,
    and ``\\r\\n`` counts as the two code units it occupies.
    """
    chunks: List[Chunk] = []
    start = 0
    for match in LINE_BREAK.finditer(text):
        _append_chunk(chunks, text, start, match.start())
        start = match.end()
    _append_chunk(chunks, text, start, len(text))
    logger.debug("Split %d characters into %d paragraphs", len(text), len(chunks))
    return chunks


def _append_chunk(chunks: List[Chunk], text: str, start: int, end: int) -> None:
    paragraph = text[start:end]
    if not paragraph.strip():
        return
    chunks.append(
        Chunk(index=start, text=paragraph, start_offset=start, end_offset=end)
    )


def paragraph_bounds(text: str, position: int) -> Tuple[int, int]:
    """Return the [start, end) range of the line containing ``position``."""
    position = max(0, min(position, len(text)))
    start = text.rfind("\n", 0, position) + 1
    end = text.find("\n", position)
    if end == -1:
        end = len(text)
    if end > start and text[end - 1] == "\r":
        end -= 1
    return start, end


def chunk_at(text: str, index: int) -> Chunk | None:
    """Return the chunk whose identity (start offset) is ``index``, if any."""
    if index < 0 or index > len(text):
        return None
    start, end = paragraph_bounds(text, index)
    if start != index:
        return None
    paragraph = text[start:end]
    if not paragraph.strip():
        return None
    return Chunk(index=start, text=paragraph, start_offset=start, end_offset=end)


def chunks_in_range(text: str, start: int, end: int) -> List[Chunk]:
    """Return every chunk whose span touches the closed range [start, end]."""
    return [
        chunk
        for chunk in split_paragraphs(text)
        if chunk.start_offset <= end and chunk.end_offset >= start
    ]


def translate_to_chunk(
    findings: Iterable[Finding], chunk: Chunk, shift: int = 0
) -> List[Finding]:
    """Make paragraph-relative findings absolute, dropping any outside ``chunk``."""
    width = chunk.end_offset - chunk.start_offset
    translated: List[Finding] = []
    for finding in findings:
        relative = finding.offset + shift
        if relative < 0 or relative + finding.length > width:
            logger.debug("Dropping out-of-bounds finding %r", finding.surface_form)
            continue
        translated.append(replace(finding, offset=relative + chunk.start_offset))
    return translated


class ParagraphRegistry:
    """Tracks which paragraphs already have up-to-date findings in the store.

    Keys are paragraph start offsets (chunk identities); values are the text
    that was checked. Entries move with edits before them and are dropped
    when an edit touches their interior.
    """

    def __init__(self) -> None:
        self._entries: Dict[int, str] = {}

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, index: object) -> bool:
        return index in self._entries

    def is_current(self, chunk: Chunk) -> bool:
        return self._entries.get(chunk.index) == chunk.text

    def mark(self, chunk: Chunk) -> None:
        self._entries[chunk.index] = chunk.text

    def forget(self, index: int) -> None:
        self._entries.pop(index, None)

    def clear(self) -> None:
        self._entries.clear()

    def texts(self) -> List[str]:
        return list(self._entries.values())

    def remap(self, edit_map: "EditMap") -> List[str]:
        """Move entries through an edit; return texts whose identity collapsed."""
        remapped: Dict[int, str] = {}
        dropped: List[str] = []
        for index, text in self._entries.items():
            new_index = edit_map.map_point(index)
            if new_index is None or new_index in remapped:
                dropped.append(text)
                continue
            remapped[new_index] = text
        self._entries = remapped
        return dropped

    def invalidate_range(self, start: int, end: int) -> List[str]:
        """Drop entries overlapping [start, end]; return their texts."""
        dropped: List[str] = []
        for index, text in list(self._entries.items()):
            if index <= end and index + len(text) >= start:
                dropped.append(self._entries.pop(index))
        return dropped
