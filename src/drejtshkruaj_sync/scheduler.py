from __future__ import annotations

import asyncio
import logging
from concurrent.futures import Executor
from dataclasses import dataclass
from typing import Callable, Dict, Protocol, Set

from .cache import ContentCache
from .delta import EditMap
from .models import CacheEntry, CheckResult
from .ratelimit import RateLimiter
from .remote.errors import CheckerError, RateLimitedError
from .textutils import normalize_key

logger = logging.getLogger(__name__)


class SupportsCheck(Protocol):
    def check(self, text: str) -> CheckResult:
        ...


ResultHandler = Callable[[str, CheckResult, CacheEntry], None]
FailureHandler = Callable[[str, Exception], None]
DebounceCallback = Callable[[int], None]
RetryCallback = Callable[[str], None]


@dataclass(slots=True)
class PendingCheck:
    """A debounce timer for one paragraph, keyed by its current start offset."""

    index: int
    callback: DebounceCallback
    handle: asyncio.TimerHandle | None = None

    def cancel(self) -> None:
        if self.handle is not None:
            self.handle.cancel()
            self.handle = None


class RequestScheduler:
    """Decides when paragraphs are sent to the checker.

    * one cancelable debounce timer per paragraph index;
    * single flight per content key: text already queued or in flight is
      not submitted again. Two versions of one edited paragraph have
      different keys and may both be in flight; the result handler decides
      which paragraphs a result still applies to;
    * one FIFO queue drained by a single worker, paced by a RateLimiter;
    * successful results populate the ContentCache before being handed to
      ``on_result``.

    All bookkeeping happens on the event loop thread; only the blocking
    HTTP call runs in an executor.
    """

    def __init__(
        self,
        client: SupportsCheck,
        cache: ContentCache,
        *,
        on_result: ResultHandler,
        on_failure: FailureHandler,
        on_idle: Callable[[], None] | None = None,
        cooldown_seconds: float = 4.0,
        rate_limit_cooldown: float = 10.0,
        limiter: RateLimiter | None = None,
        executor: Executor | None = None,
    ) -> None:
        self.client = client
        self.cache = cache
        self.cooldown_seconds = cooldown_seconds
        self.rate_limit_cooldown = rate_limit_cooldown
        self.limiter = limiter or RateLimiter()
        self._on_result = on_result
        self._on_failure = on_failure
        self._on_idle = on_idle
        self._executor = executor
        self._pending: Dict[int, PendingCheck] = {}
        self._deferred: Dict[str, asyncio.TimerHandle] = {}
        self._in_flight: Set[str] = set()
        self._queue: asyncio.Queue[str] = asyncio.Queue()
        self._worker: asyncio.Task[None] | None = None
        self._halted = False
        self.calls_issued = 0

    # -- debounce -----------------------------------------------------------------

    @property
    def pending_indices(self) -> Set[int]:
        return set(self._pending)

    def debounce(self, index: int, callback: DebounceCallback) -> None:
        """(Re)start the cooldown for paragraph ``index``; other timers are untouched."""
        if self._halted:
            return
        loop = asyncio.get_running_loop()
        self.cancel(index)
        pending = PendingCheck(index=index, callback=callback)
        pending.handle = loop.call_later(self.cooldown_seconds, self._fire, pending)
        self._pending[index] = pending

    def cancel(self, index: int) -> None:
        pending = self._pending.pop(index, None)
        if pending is not None:
            pending.cancel()

    def cancel_range(self, start: int, end: int) -> None:
        for index in [i for i in self._pending if start <= i <= end]:
            self.cancel(index)

    def cancel_all(self) -> None:
        for pending in self._pending.values():
            pending.cancel()
        self._pending.clear()
        for handle in self._deferred.values():
            handle.cancel()
        self._deferred.clear()

    def remap(self, edit_map: EditMap) -> None:
        """Move pending timers with the paragraphs they belong to."""
        remapped: Dict[int, PendingCheck] = {}
        for index, pending in self._pending.items():
            new_index = edit_map.map_point(index)
            if new_index is None or new_index in remapped:
                pending.cancel()
                continue
            pending.index = new_index
            remapped[new_index] = pending
        self._pending = remapped

    def _fire(self, pending: PendingCheck) -> None:
        if self._pending.get(pending.index) is not pending:
            return
        del self._pending[pending.index]
        pending.handle = None
        pending.callback(pending.index)

    def defer(self, text: str, delay: float, callback: RetryCallback) -> None:
        """Call ``callback(text)`` once ``delay`` seconds have passed.

        Used to retry content the checker refused; a later deferral of the
        same content replaces the earlier one.
        """
        if self._halted:
            return
        key = normalize_key(text)
        previous = self._deferred.pop(key, None)
        if previous is not None:
            previous.cancel()
        self._deferred[key] = asyncio.get_running_loop().call_later(
            max(0.0, delay), self._fire_deferred, key, text, callback
        )

    def _fire_deferred(self, key: str, text: str, callback: RetryCallback) -> None:
        self._deferred.pop(key, None)
        callback(text)

    # -- content dedup + queue ----------------------------------------------------

    def lookup(self, text: str) -> CacheEntry | None:
        """Fresh cached findings for ``text``, if any."""
        return self.cache.get(text)

    def is_in_flight(self, text: str) -> bool:
        return normalize_key(text) in self._in_flight

    @property
    def busy(self) -> bool:
        return bool(self._in_flight)

    def submit(self, text: str) -> bool:
        """Queue ``text`` for a remote check; False when dropped."""
        if self._halted:
            logger.debug("Scheduler halted; not submitting paragraph")
            return False
        key = normalize_key(text)
        if not key:
            return False
        if key in self._in_flight:
            logger.debug("Paragraph %r already in flight; dropping duplicate", key[:30])
            return False
        self._in_flight.add(key)
        self._ensure_worker()
        self._queue.put_nowait(text)
        logger.info("Queued paragraph for checking (%d queued)", self._queue.qsize())
        return True

    def _ensure_worker(self) -> None:
        if self._worker is None or self._worker.done():
            self._worker = asyncio.get_running_loop().create_task(self._run())

    async def _run(self) -> None:
        loop = asyncio.get_running_loop()
        while True:
            text = await self._queue.get()
            key = normalize_key(text)
            try:
                if self._halted:
                    continue
                await self.limiter.acquire()
                if self._halted:
                    continue
                self.calls_issued += 1
                result = await loop.run_in_executor(
                    self._executor, self.client.check, text
                )
            except RateLimitedError as exc:
                self.limiter.pause(max(exc.retry_after or 0.0, self.rate_limit_cooldown))
                self._on_failure(text, exc)
            except CheckerError as exc:
                self._on_failure(text, exc)
            except Exception as exc:
                logger.exception("Unexpected error while checking paragraph")
                self._on_failure(text, exc)
            else:
                entry = self.cache.put(text, result.findings)
                try:
                    self._on_result(text, result, entry)
                except Exception:
                    logger.exception("Result handler failed for checked paragraph")
            finally:
                self._in_flight.discard(key)
                self._queue.task_done()
                if not self._in_flight and self._on_idle is not None:
                    self._on_idle()

    # -- lifecycle ------------------------------------------------------------------

    @property
    def halted(self) -> bool:
        return self._halted

    def halt(self) -> None:
        """Stop all checking: cancel timers and discard queued work."""
        self._halted = True
        self.cancel_all()
        while not self._queue.empty():
            text = self._queue.get_nowait()
            self._in_flight.discard(normalize_key(text))
            self._queue.task_done()
        logger.info("Scheduler halted")

    def resume(self) -> None:
        self._halted = False

    def reset(self) -> None:
        self.cancel_all()
        self.limiter.reset()

    async def wait_idle(self, poll_interval: float = 0.005) -> None:
        """Wait until no timer or retry is pending and the queue is fully processed."""
        while True:
            if self._pending or self._deferred:
                await asyncio.sleep(poll_interval)
                continue
            await self._queue.join()
            await asyncio.sleep(0)
            if not self._pending and not self._deferred and not self._in_flight:
                return

    async def aclose(self) -> None:
        self.cancel_all()
        if self._worker is not None:
            self._worker.cancel()
            try:
                await self._worker
            except asyncio.CancelledError:
                pass
            self._worker = None
