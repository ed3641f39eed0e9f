from __future__ import annotations

import asyncio
import logging
import time
from collections import deque
from typing import Callable, Deque

logger = logging.getLogger(__name__)


class RateLimiter:
    """Global limit on outbound checks.

    Enforces a minimum spacing between calls, at most ``max_calls`` calls in
    any rolling ``window`` seconds, and an explicit pause after the remote
    side reports a rate limit. Callers wait; nothing is dropped.
    """

    def __init__(
        self,
        min_interval: float = 0.5,
        max_calls: int = 30,
        window: float = 60.0,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.min_interval = max(0.0, min_interval)
        self.max_calls = max(1, max_calls)
        self.window = window
        self._clock = clock
        self._calls: Deque[float] = deque()
        self._paused_until = 0.0

    @property
    def paused_until(self) -> float:
        return self._paused_until

    def delay(self, now: float | None = None) -> float:
        """Seconds to wait before the next call may be issued."""
        if now is None:
            now = self._clock()
        while self._calls and now - self._calls[0] >= self.window:
            self._calls.popleft()
        wait = max(0.0, self._paused_until - now)
        if self._calls:
            wait = max(wait, self._calls[-1] + self.min_interval - now)
        if len(self._calls) >= self.max_calls:
            wait = max(wait, self._calls[0] + self.window - now)
        return wait

    def record(self, now: float | None = None) -> None:
        self._calls.append(self._clock() if now is None else now)

    def pause(self, seconds: float) -> None:
        """Hold back every call for ``seconds`` from now."""
        until = self._clock() + max(0.0, seconds)
        if until > self._paused_until:
            self._paused_until = until
            logger.info("Rate limiter paused for %.1fs", seconds)

    async def acquire(self) -> None:
        """Wait until a call is allowed, then count it."""
        while True:
            wait = self.delay()
            if wait <= 0:
                break
            logger.debug("Rate limiter delaying next check by %.2fs", wait)
            await asyncio.sleep(wait)
        self.record()

    def reset(self) -> None:
        self._calls.clear()
        self._paused_until = 0.0
