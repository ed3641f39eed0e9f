from __future__ import annotations

import asyncio
import logging
from concurrent.futures import Executor
from typing import Any, Callable, Iterable, List, Mapping, Sequence, Tuple

from .cache import ContentCache, replay
from .chunking import (
    ParagraphRegistry,
    chunk_at,
    chunks_in_range,
    split_paragraphs,
)
from .config import SyncConfig
from .delta import DeltaOp, interpret_delta
from .models import (
    CacheEntry,
    CategoryCounts,
    CheckResult,
    Chunk,
    EngineStatus,
    Finding,
    FindingAction,
    TokenUsage,
)
from .ratelimit import RateLimiter
from .reconciler import EditableHost, HighlightReconciler
from .remote.checker_client import CheckerClient
from .remote.errors import CheckerError, RateLimitedError, UnauthenticatedError
from .remote.usage import UsageTracker
from .scheduler import RequestScheduler, SupportsCheck
from .store import AnnotationStore
from .textutils import normalize_key

logger = logging.getLogger(__name__)

StatusListener = Callable[[EngineStatus], None]


class AnnotationEngine:
    """Keeps checker findings attached to a live, editable buffer.

    The host editor must forward each of its change notifications to
    :meth:`on_text_change` in the order it emits them. Everything runs on
    the event loop that calls into the engine; only the HTTP calls leave it.

    Callbacks:

    * ``on_counts(CategoryCounts)`` whenever the live findings change;
    * ``on_status(EngineStatus)`` whenever the checking state changes;
    * ``on_rate_limited(retry_after)`` when the checker answers 429;
    * ``on_unauthenticated()`` when the checker rejects the credential;
    * ``on_usage(TokenUsage)`` when token usage is primed or updated.
    """

    def __init__(
        self,
        host: EditableHost,
        client: SupportsCheck | None = None,
        config: SyncConfig | None = None,
        *,
        cache: ContentCache | None = None,
        limiter: RateLimiter | None = None,
        executor: Executor | None = None,
        on_counts: Callable[[CategoryCounts], None] | None = None,
        on_status: StatusListener | None = None,
        on_rate_limited: Callable[[float | None], None] | None = None,
        on_unauthenticated: Callable[[], None] | None = None,
        on_usage: Callable[[TokenUsage], None] | None = None,
    ) -> None:
        self.config = config or SyncConfig()
        self.host = host
        self.client = client if client is not None else CheckerClient(self.config.checker)
        self.store = AnnotationStore()
        self.registry = ParagraphRegistry()
        self.cache = cache or ContentCache(
            freshness_seconds=self.config.cache_freshness_seconds,
            max_entries=self.config.cache_max_entries,
        )
        self.usage = UsageTracker()
        self.reconciler = HighlightReconciler(
            host, self.store, radius=self.config.relocation_radius
        )
        self.scheduler = RequestScheduler(
            self.client,
            self.cache,
            on_result=self._handle_result,
            on_failure=self._handle_failure,
            on_idle=self._handle_idle,
            cooldown_seconds=self.config.cooldown_seconds,
            rate_limit_cooldown=self.config.rate_limit_cooldown,
            limiter=limiter
            or RateLimiter(
                min_interval=self.config.min_request_interval,
                max_calls=self.config.rate_limit_max_calls,
                window=self.config.rate_limit_window,
            ),
            executor=executor,
        )
        self._status = EngineStatus.IDLE
        self._rate_limited = False
        self._on_status = on_status
        self._on_rate_limited = on_rate_limited
        self._on_unauthenticated = on_unauthenticated
        if on_counts is not None:
            self.store.subscribe(on_counts)
        if on_usage is not None:
            self.usage.subscribe(on_usage)

    # -- state ----------------------------------------------------------------------

    @property
    def findings(self) -> Tuple[Finding, ...]:
        return self.store.findings

    @property
    def counts(self) -> CategoryCounts:
        return self.store.counts()

    @property
    def status(self) -> EngineStatus:
        return self._status

    def _set_status(self, status: EngineStatus) -> None:
        if status == self._status:
            return
        logger.debug("Engine status %s -> %s", self._status.value, status.value)
        self._status = status
        if self._on_status is not None:
            self._on_status(status)

    # -- edits ------------------------------------------------------------------------

    def on_text_change(self, ops: Iterable[Mapping[str, Any] | DeltaOp]) -> None:
        """Apply one host change notification.

        Findings are shifted synchronously, the touched paragraphs are
        revalidated against the live text and their debounce timers restarted.
        """
        text = self.host.get_text()
        result = interpret_delta(ops, self.store.findings, text)
        if result.cleared:
            self.scheduler.cancel_all()
            self.registry.clear()
            self.store.clear()
            return

        self.store.commit(result.findings)
        stale_texts = self.registry.remap(result.edit_map)
        self.scheduler.remap(result.edit_map)
        for start, end in result.dirty_ranges:
            stale_texts.extend(self.registry.invalidate_range(start, end))
        self._invalidate_content(stale_texts, text)

        for start, end in result.dirty_ranges:
            self.reconciler.reconcile(start, end)
            self.scheduler.cancel_range(start, end)
            for chunk in chunks_in_range(text, start, end):
                self.scheduler.debounce(chunk.index, self._check_paragraph)

    def _invalidate_content(self, stale_texts: Sequence[str], text: str) -> None:
        """Forget cached results for paragraph texts that left the document."""
        if not stale_texts:
            return
        present = {normalize_key(chunk.text) for chunk in split_paragraphs(text)}
        for stale in stale_texts:
            if normalize_key(stale) not in present and self.cache.invalidate(stale):
                logger.debug("Invalidated cached findings for %r", stale[:30])

    # -- checking -----------------------------------------------------------------

    def check_document(self, force: bool = False) -> None:
        """Check every paragraph now, bypassing the debounce window.

        With ``force`` the paragraphs already up to date are re-derived too
        (from the content cache where it is still fresh).
        """
        if force:
            self.registry.clear()
        for chunk in split_paragraphs(self.host.get_text()):
            self.scheduler.cancel(chunk.index)
            self._check_chunk(chunk)
        if not self.scheduler.busy and self._status == EngineStatus.IDLE:
            self._set_status(EngineStatus.CHECKED)

    def _check_paragraph(self, index: int) -> None:
        chunk = chunk_at(self.host.get_text(), index)
        if chunk is None:
            logger.debug("Paragraph at %d disappeared before its check", index)
            return
        self._check_chunk(chunk)

    def _check_chunk(self, chunk: Chunk) -> None:
        if self.registry.is_current(chunk):
            return
        entry = self.scheduler.lookup(chunk.text)
        if entry is not None:
            logger.info("Replaying cached findings for paragraph at %d", chunk.index)
            self._apply_findings(chunk, replay(entry, chunk))
            return
        if self.scheduler.submit(chunk.text):
            self._set_status(EngineStatus.CHECKING)

    def _apply_findings(self, chunk: Chunk, findings: List[Finding]) -> None:
        previous = self.store.replace_range(chunk.start_offset, chunk.end_offset, findings)
        self.registry.mark(chunk)
        self.reconciler.reconcile(chunk.start_offset, chunk.end_offset, previous)

    def _handle_result(self, text: str, result: CheckResult, entry: CacheEntry) -> None:
        self._rate_limited = False
        self.usage.update_from_tst(result.tokens_spent_today)
        applied = 0
        for chunk in split_paragraphs(self.host.get_text()):
            if normalize_key(chunk.text) != entry.key or self.registry.is_current(chunk):
                continue
            self._apply_findings(chunk, replay(entry, chunk))
            applied += 1
        if not applied:
            logger.info("Discarding result for paragraph that changed while in flight")

    def _handle_failure(self, text: str, exc: Exception) -> None:
        if isinstance(exc, UnauthenticatedError):
            logger.warning("Checker session is not authenticated: %s", exc)
            credentials = getattr(self.client, "credentials", None)
            if credentials is not None:
                credentials.clear()
            self.scheduler.halt()
            self._set_status(EngineStatus.UNAUTHENTICATED)
            if self._on_unauthenticated is not None:
                self._on_unauthenticated()
        elif isinstance(exc, RateLimitedError):
            logger.warning("Checker rate limit hit; keeping existing findings")
            self._rate_limited = True
            self._set_status(EngineStatus.RATE_LIMITED)
            self.scheduler.defer(
                text,
                max(exc.retry_after or 0.0, self.scheduler.rate_limit_cooldown),
                self._retry_refused,
            )
            if self._on_rate_limited is not None:
                self._on_rate_limited(exc.retry_after)
        else:
            logger.warning("Check failed for paragraph %r: %s", text.strip()[:30], exc)

    def _retry_refused(self, text: str) -> None:
        """Recheck the paragraphs still holding content the checker refused."""
        self._rate_limited = False
        key = normalize_key(text)
        chunks = [
            chunk
            for chunk in split_paragraphs(self.host.get_text())
            if normalize_key(chunk.text) == key
        ]
        if chunks:
            logger.info("Retrying %d paragraph(s) after rate limit", len(chunks))
        for chunk in chunks:
            self._check_chunk(chunk)
        if not self.scheduler.busy:
            self._handle_idle()

    def _handle_idle(self) -> None:
        if self._status == EngineStatus.UNAUTHENTICATED:
            return
        self._set_status(
            EngineStatus.RATE_LIMITED if self._rate_limited else EngineStatus.CHECKED
        )

    # -- findings for the suggestion popup -------------------------------------------

    def finding_at(
        self, offset: int, length: int, surface_form: str | None = None
    ) -> Finding | None:
        return self.store.find(offset, length, surface_form)

    def finding_at_position(self, position: int) -> Finding | None:
        return self.store.at_position(position)

    def suggestions_for(self, finding: Finding) -> Tuple[str, ...]:
        return finding.top_suggestions(self.config.max_suggestions)

    def apply_suggestion(self, finding: Finding, replacement: str | None = None) -> None:
        """Edit the buffer as the finding suggests.

        The host reports the edit back through :meth:`on_text_change`, which
        shifts every other finding.
        """
        live = self.store.find(finding.offset, finding.length, finding.surface_form)
        if live is None:
            raise ValueError(f"Finding {finding.surface_form!r} is no longer live.")
        if finding.action == FindingAction.DELETE:
            text = self.host.get_text()
            start, length = finding.offset, finding.length
            if (
                start > 0
                and text[start - 1] == " "
                and text[start + length : start + length + 1] == " "
            ):
                start -= 1
                length += 1
            self.host.replace_text(start, length, "")
            return
        if replacement is None:
            if not finding.suggestions:
                raise ValueError(f"Finding {finding.surface_form!r} has no suggestions.")
            replacement = finding.suggestions[0]
        self.host.replace_text(finding.offset, finding.length, replacement)

    def ignore_finding(self, finding: Finding) -> bool:
        """Drop one finding and its highlight, leaving every other one alone."""
        if not self.store.remove(finding):
            return False
        self.reconciler.unhighlight([finding])
        return True

    # -- session ----------------------------------------------------------------------

    def authenticate(self, token: str) -> None:
        credentials = getattr(self.client, "credentials", None)
        if credentials is not None:
            credentials.set(token)
        self.scheduler.resume()
        self._set_status(EngineStatus.IDLE)

    async def prime_usage(self) -> TokenUsage | None:
        """Fetch daily token limits so check responses can update usage."""
        fetch = getattr(self.client, "fetch_usage", None)
        if fetch is None:
            return None
        loop = asyncio.get_running_loop()
        try:
            usage = await loop.run_in_executor(None, fetch)
        except UnauthenticatedError as exc:
            self._handle_failure("", exc)
            return None
        except CheckerError as exc:
            logger.warning("Could not fetch token usage: %s", exc)
            return None
        self.usage.prime(usage)
        return usage

    def reset(self) -> None:
        """Forget everything tied to the current document."""
        self.scheduler.reset()
        self.registry.clear()
        self.cache.clear()
        self.reconciler.unhighlight(self.store.findings)
        self.store.clear()
        self._rate_limited = False
        if self._status != EngineStatus.UNAUTHENTICATED:
            self._set_status(EngineStatus.IDLE)

    async def drain(self) -> None:
        """Wait for pending debounce timers and queued checks to finish."""
        await self.scheduler.wait_idle()

    async def aclose(self) -> None:
        await self.scheduler.aclose()
        close = getattr(self.client, "close", None)
        if close is not None:
            close()
