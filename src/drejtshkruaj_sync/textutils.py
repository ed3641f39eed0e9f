from __future__ import annotations

import re

BOUNDARY_CHARS = frozenset(".,!?;:)]}")


def normalize_key(text: str) -> str:
    """Cache key for a paragraph: its trimmed text, independent of position."""
    return text.strip()


def leading_whitespace(text: str) -> int:
    return len(text) - len(text.lstrip())


def is_boundary_char(char: str) -> bool:
    return char.isspace() or char in BOUNDARY_CHARS


def trim_trailing_boundary(text: str, offset: int, length: int) -> int:
    """Return ``length`` shortened so the span never ends on a boundary char."""
    end = min(offset + length, len(text))
    while end > offset and is_boundary_char(text[end - 1]):
        end -= 1
    return max(0, end - offset)


def surface_matches(text: str, offset: int, length: int, surface_form: str) -> bool:
    if offset < 0 or length <= 0 or offset + length > len(text):
        return False
    return text[offset : offset + length].strip() == surface_form.strip()


def relocate(
    text: str, offset: int, length: int, surface_form: str, radius: int = 30
) -> int | None:
    """Find ``surface_form`` within ``radius`` characters of the span.

    Returns the new offset of the closest exact occurrence, or None when the
    form no longer exists near its old position.
    """
    needle = surface_form.strip()
    if not needle:
        return None
    start = max(0, offset - radius)
    stop = min(len(text), offset + length + radius)
    window = text[start:stop]
    best: int | None = None
    found = window.find(needle)
    while found != -1:
        candidate = start + found
        if best is None or abs(candidate - offset) < abs(best - offset):
            best = candidate
        found = window.find(needle, found + 1)
    return best


def word_before(text: str, position: int, window: int = 20) -> tuple[int, str] | None:
    """Return (offset, word) of the last whitespace-delimited word before ``position``."""
    start = max(0, position - window)
    segment = text[start:position]
    words = list(re.finditer(r"\S+", segment))
    if not words:
        return None
    last = words[-1]
    return start + last.start(), last.group(0)


def word_after(text: str, position: int, window: int = 20) -> tuple[int, str] | None:
    """Return (offset, word) of the first whitespace-delimited word at/after ``position``."""
    segment = text[position : position + window]
    match = re.search(r"\S+", segment)
    if match is None:
        return None
    return position + match.start(), match.group(0)
