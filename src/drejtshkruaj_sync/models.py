from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Iterable, Tuple


class FindingCategory(str, Enum):
    """Kind of linguistic problem a finding reports."""

    SPELLING = "spelling"
    GRAMMAR = "grammar"
    PUNCTUATION = "punctuation"
    INSERTION = "insertion"


class FindingAction(str, Enum):
    """What applying a finding's suggestion does to the buffer."""

    REPLACE = "replace"
    DELETE = "delete"
    INSERT_BEFORE = "insert-before"
    INSERT_AFTER = "insert-after"


class EngineStatus(str, Enum):
    """Checking state surfaced to a status indicator."""

    IDLE = "idle"
    CHECKING = "checking"
    CHECKED = "checked"
    RATE_LIMITED = "rate-limited"
    UNAUTHENTICATED = "unauthenticated"


@dataclass(frozen=True, slots=True)
class Finding:
    """A single annotation bound to the half-open span [offset, offset+length)."""

    offset: int
    length: int
    surface_form: str
    category: FindingCategory
    action: FindingAction = FindingAction.REPLACE
    suggestions: Tuple[str, ...] = ()
    message: str = ""
    short_message: str = ""
    origin_offset: int = 0
    misspelled: bool = False

    @property
    def end(self) -> int:
        return self.offset + self.length

    def overlaps(self, other: "Finding") -> bool:
        return self.offset < other.end and other.offset < self.end

    def top_suggestions(self, limit: int = 3) -> Tuple[str, ...]:
        return self.suggestions[:limit]


@dataclass(frozen=True, slots=True)
class Chunk:
    """A newline-delimited paragraph; ``index`` equals ``start_offset``."""

    index: int
    text: str
    start_offset: int
    end_offset: int


@dataclass(slots=True)
class CacheEntry:
    """Findings previously obtained for a paragraph text.

    Findings are stored paragraph-relative: ``offset`` is the span start
    inside the checked text (equal to ``origin_offset`` except for anchored
    insertions).
    ``leading`` is the amount of leading whitespace the checked text had,
    so a replay against the same trimmed text with different indentation
    still lands on the right characters.
    """

    key: str
    findings: Tuple[Finding, ...]
    timestamp: float
    leading: int = 0


@dataclass(slots=True)
class TokenUsage:
    """Daily token accounting reported by the checker service."""

    daily_token_limit: int
    tokens_used_today: int
    remaining_tokens: int

    def to_dict(self) -> dict[str, int]:
        return {
            "remaining_tokens": self.remaining_tokens,
            "tokens_used_today": self.tokens_used_today,
            "daily_token_limit": self.daily_token_limit,
        }


@dataclass(slots=True)
class CheckResult:
    """Parsed response of one remote check."""

    findings: Tuple[Finding, ...]
    user_id: str | None = None
    tokens_this_request: float | None = None
    tokens_spent_today: float | None = None
    discarded: int = 0


@dataclass(slots=True)
class CategoryCounts:
    """Aggregate counters pushed to the counter display."""

    spelling: int = 0
    grammar: int = 0
    punctuation: int = 0
    insertion: int = 0

    @property
    def total(self) -> int:
        return self.spelling + self.grammar + self.punctuation + self.insertion

    def to_dict(self) -> dict[str, int]:
        return {
            "spelling": self.spelling,
            "grammar": self.grammar,
            "punctuation": self.punctuation,
            "insertion": self.insertion,
            "total": self.total,
        }

    @classmethod
    def from_findings(cls, findings: Iterable[Finding]) -> "CategoryCounts":
        counts = cls()
        for finding in findings:
            name = finding.category.value
            setattr(counts, name, getattr(counts, name) + 1)
        return counts
