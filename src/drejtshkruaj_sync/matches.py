from __future__ import annotations

import logging
from typing import Any, List, Mapping, Sequence, Tuple

from .models import Finding, FindingAction, FindingCategory
from .textutils import word_after, word_before

logger = logging.getLogger(__name__)

CATEGORY_KEYWORDS: Tuple[Tuple[str, FindingCategory], ...] = (
    ("drejtshkrimore", FindingCategory.SPELLING),
    ("gramatikore", FindingCategory.GRAMMAR),
    ("pikë", FindingCategory.PUNCTUATION),
    ("pike", FindingCategory.PUNCTUATION),
)

ANCHOR_WINDOW = 20


def classify(
    short_message: str, action: FindingAction, misspelled: bool = False
) -> FindingCategory:
    """Derive a finding category from the checker's short classification string."""
    if action in (FindingAction.INSERT_BEFORE, FindingAction.INSERT_AFTER):
        return FindingCategory.INSERTION
    lowered = short_message.lower()
    for keyword, category in CATEGORY_KEYWORDS:
        if keyword in lowered:
            return category
    return FindingCategory.SPELLING if misspelled else FindingCategory.GRAMMAR


def _suggestion_values(raw: Any) -> Tuple[str, ...]:
    if not isinstance(raw, Sequence) or isinstance(raw, str):
        return ()
    values: List[str] = []
    for item in raw:
        if isinstance(item, Mapping):
            value = item.get("value")
        else:
            value = item
        if isinstance(value, str):
            values.append(value)
    return tuple(values)


def finding_from_match(match: Mapping[str, Any], text: str) -> Finding | None:
    """Build a paragraph-relative Finding from one checker match.

    Returns None for malformed matches or spans outside ``text``.
    """
    offset = match.get("offset")
    length = match.get("length", 0)
    if not isinstance(offset, int) or not isinstance(length, int):
        return None
    if isinstance(offset, bool) or isinstance(length, bool):
        return None
    if offset < 0 or length < 0 or offset + length > len(text):
        return None

    suggestions = _suggestion_values(match.get("suggestions"))
    message = str(match.get("message") or "")
    short_message = str(match.get("shortMessage") or "")
    misspelled = bool(match.get("misspelled", False))
    raw_action = str(match.get("action") or "replace").lower()

    if raw_action == "insert":
        return _anchor_insertion(
            text, offset, suggestions, message, short_message, misspelled
        )

    if length == 0:
        return None
    action = FindingAction.DELETE if raw_action == "delete" else FindingAction.REPLACE
    surface = str(match.get("wordform") or "").strip()
    if not surface:
        surface = text[offset : offset + length].strip()
    if not surface:
        return None
    return Finding(
        offset=offset,
        length=length,
        surface_form=surface,
        category=classify(short_message, action, misspelled),
        action=action,
        suggestions=suggestions,
        message=message,
        short_message=short_message,
        origin_offset=offset,
        misspelled=misspelled,
    )


def _anchor_insertion(
    text: str,
    offset: int,
    suggestions: Tuple[str, ...],
    message: str,
    short_message: str,
    misspelled: bool,
) -> Finding | None:
    """Attach an insertion suggestion to the word after (or before) the insertion point."""
    if not suggestions:
        return None
    inserted = suggestions[0]
    anchor = word_after(text, offset, ANCHOR_WINDOW)
    if anchor is not None:
        action = FindingAction.INSERT_BEFORE
        anchor_offset, word = anchor
        composed = f"{inserted} {word}"
    else:
        anchor = word_before(text, offset, ANCHOR_WINDOW)
        if anchor is None:
            return None
        action = FindingAction.INSERT_AFTER
        anchor_offset, word = anchor
        composed = f"{word} {inserted}"
    return Finding(
        offset=anchor_offset,
        length=len(word),
        surface_form=word,
        category=FindingCategory.INSERTION,
        action=action,
        suggestions=(composed,),
        message=message,
        short_message=short_message,
        origin_offset=offset,
        misspelled=misspelled,
    )


def findings_from_payload(
    matches: Any, text: str
) -> Tuple[List[Finding], int]:
    """Convert a ``matches`` array; return (findings, number discarded)."""
    if not isinstance(matches, list):
        return [], 0
    findings: List[Finding] = []
    discarded = 0
    for match in matches:
        finding = finding_from_match(match, text) if isinstance(match, Mapping) else None
        if finding is None:
            discarded += 1
            logger.warning("Discarding malformed or out-of-bounds match: %r", match)
            continue
        findings.append(finding)
    return findings, discarded
