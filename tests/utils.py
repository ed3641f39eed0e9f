from __future__ import annotations

from typing import Any, Dict, Iterable, List, Mapping

from drejtshkruaj_sync.config import CheckerSettings, SyncConfig
from drejtshkruaj_sync.matches import findings_from_payload
from drejtshkruaj_sync.models import CheckResult, Finding, FindingCategory
from drejtshkruaj_sync.remote import TokenCredentials


def make_finding(
    offset: int,
    surface: str,
    category: FindingCategory = FindingCategory.SPELLING,
    **kwargs: Any,
) -> Finding:
    """Build a finding whose span covers exactly ``surface``."""
    return Finding(
        offset=offset,
        length=len(surface),
        surface_form=surface,
        category=category,
        origin_offset=kwargs.pop("origin_offset", offset),
        **kwargs,
    )


def match_for(
    text: str, word: str, short_message: str = "Gabim drejtshkrimore", **extra: Any
) -> Dict[str, Any]:
    """Checker match payload pointing at the first occurrence of ``word`` in ``text``."""
    offset = text.index(word)
    payload: Dict[str, Any] = {
        "offset": offset,
        "length": len(word),
        "wordform": word,
        "shortMessage": short_message,
        "message": f"Fjala '{word}' nuk është e saktë.",
    }
    payload.update(extra)
    return payload


class FakeChecker:
    """Stands in for CheckerClient.

    ``words`` lists the misspelled words to flag in any paragraph that
    contains them, optionally mapped to their correction (by default the
    word minus its last letter). ``errors`` holds exceptions raised, one
    per call, before answering normally.
    """

    def __init__(
        self,
        words: Mapping[str, str] | Iterable[str] = (),
        tst: float | None = None,
    ) -> None:
        if not isinstance(words, Mapping):
            words = {word: word[:-1] for word in words}
        self.words: Dict[str, str] = dict(words)
        self.tst = tst
        self.calls: List[str] = []
        self.errors: List[Exception] = []
        self.credentials = TokenCredentials("secret")

    def check(self, text: str) -> CheckResult:
        self.calls.append(text)
        if self.errors:
            raise self.errors.pop(0)
        matches = [
            match_for(text, word, suggestions=[{"value": correction}])
            for word, correction in self.words.items()
            if word in text
        ]
        findings, discarded = findings_from_payload(matches, text)
        return CheckResult(
            findings=tuple(findings),
            tokens_spent_today=self.tst,
            discarded=discarded,
        )


def fast_config(**overrides: Any) -> SyncConfig:
    """Config with timers short enough for tests."""
    values: Dict[str, Any] = {
        "cooldown_seconds": 0.01,
        "min_request_interval": 0.0,
        "rate_limit_cooldown": 0.0,
        "checker": CheckerSettings(max_attempts=1),
    }
    values.update(overrides)
    return SyncConfig(**values)
