from __future__ import annotations

import logging
import math
from dataclasses import replace
from typing import Any, Callable, List

from ..models import TokenUsage

logger = logging.getLogger(__name__)

UsageListener = Callable[[TokenUsage], None]


class UsageTracker:
    """Keeps the last known daily token usage and broadcasts updates."""

    def __init__(self) -> None:
        self._usage: TokenUsage | None = None
        self._listeners: List[UsageListener] = []

    @property
    def usage(self) -> TokenUsage | None:
        return self._usage

    def subscribe(self, listener: UsageListener) -> None:
        self._listeners.append(listener)

    def prime(self, usage: TokenUsage) -> None:
        """Seed the tracker with limits fetched from the usage endpoint."""
        self._usage = usage
        self._broadcast()

    def update_from_tst(self, tst: Any) -> TokenUsage | None:
        """Apply the ``TST`` (tokens spent today) value of a check response."""
        if tst is None:
            return None
        if self._usage is None:
            logger.debug("No token limits known yet; ignoring TST=%r", tst)
            return None
        try:
            spent = float(tst)
        except (TypeError, ValueError):
            logger.warning("Ignoring non-numeric TST value: %r", tst)
            return None
        if math.isnan(spent):
            logger.warning("Ignoring non-numeric TST value: %r", tst)
            return None
        limit = self._usage.daily_token_limit
        used = int(min(spent, limit))
        self._usage = TokenUsage(
            daily_token_limit=limit,
            tokens_used_today=used,
            remaining_tokens=max(0, limit - used),
        )
        self._broadcast()
        return self._usage

    def _broadcast(self) -> None:
        if self._usage is None:
            return
        for listener in self._listeners:
            listener(replace(self._usage))
