from __future__ import annotations

import logging
import time
from collections import OrderedDict
from typing import Callable, Iterable, List

from .chunking import translate_to_chunk
from .models import CacheEntry, Chunk, Finding
from .textutils import leading_whitespace, normalize_key

logger = logging.getLogger(__name__)


class ContentCache:
    """Findings keyed by trimmed paragraph text, independent of position.

    Entries older than ``freshness_seconds`` are treated as misses. The
    cache holds at most ``max_entries`` keys and evicts the least recently
    used one beyond that.
    """

    def __init__(
        self,
        freshness_seconds: float = 30.0,
        max_entries: int = 512,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.freshness_seconds = freshness_seconds
        self.max_entries = max(1, max_entries)
        self._clock = clock
        self._entries: "OrderedDict[str, CacheEntry]" = OrderedDict()
        self.hits = 0
        self.misses = 0

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, text: object) -> bool:
        return isinstance(text, str) and normalize_key(text) in self._entries

    def get(self, text: str) -> CacheEntry | None:
        """Return a fresh entry for ``text`` or None."""
        key = normalize_key(text)
        entry = self._entries.get(key)
        if entry is None:
            self.misses += 1
            return None
        if self._clock() - entry.timestamp > self.freshness_seconds:
            logger.debug("Cache entry for %r expired", key[:30])
            del self._entries[key]
            self.misses += 1
            return None
        self._entries.move_to_end(key)
        self.hits += 1
        return entry

    def put(self, text: str, findings: Iterable[Finding]) -> CacheEntry:
        """Store paragraph-relative findings for ``text`` stamped with the current time."""
        key = normalize_key(text)
        entry = CacheEntry(
            key=key,
            findings=tuple(findings),
            timestamp=self._clock(),
            leading=leading_whitespace(text),
        )
        self._entries[key] = entry
        self._entries.move_to_end(key)
        while len(self._entries) > self.max_entries:
            evicted, _ = self._entries.popitem(last=False)
            logger.debug("Evicted cache entry %r", evicted[:30])
        return entry

    def invalidate(self, text: str) -> bool:
        return self._entries.pop(normalize_key(text), None) is not None

    def clear(self) -> None:
        self._entries.clear()
        self.hits = 0
        self.misses = 0


def replay(entry: CacheEntry, chunk: Chunk) -> List[Finding]:
    """Translate an entry's findings onto ``chunk``'s current position."""
    shift = leading_whitespace(chunk.text) - entry.leading
    return translate_to_chunk(entry.findings, chunk, shift=shift)
