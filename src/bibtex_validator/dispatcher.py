"""Bounded concurrent fan-out of (entry, provider) calls.

Every call runs on one shared thread pool whose size is the global ceiling.
A per-provider semaphore caps how many calls hit the same service at once.
The per-call timeout starts once the call holds its provider slot and its
rate-limit token; queueing and throttling never count against it. A retry
gets a fresh window.
"""

from __future__ import annotations

import logging
import threading
import time
from concurrent.futures import FIRST_COMPLETED, CancelledError, Future, ThreadPoolExecutor, wait
from dataclasses import dataclass, field

from bibtex_validator.cache import CacheStore
from bibtex_validator.models import ErrorKind, ProviderOutcome, Query
from bibtex_validator.providers.base import Provider


@dataclass
class _Call:
    entry_index: int
    provider: str
    query: Query
    future: Future | None = None
    started_at: float | None = None
    outcome: ProviderOutcome | None = None


@dataclass
class DispatchResult:
    """Per-entry outcomes, indexed like the input queries."""

    outcomes: list[dict[str, ProviderOutcome]] = field(default_factory=list)
    interrupted: bool = False


class Dispatcher:
    """Runs every enabled provider for every query and collects the outcomes."""

    def __init__(
        self,
        providers: dict[str, Provider],
        cache: CacheStore,
        concurrency_limit: int = 20,
        per_provider_limit: int = 4,
        call_timeout: float = 20.0,
        retry_backoff: float = 1.0,
        logger: logging.Logger | None = None,
        poll_interval: float = 0.05,
    ) -> None:
        self.providers = dict(providers)
        self.cache = cache
        self.concurrency_limit = concurrency_limit
        self.call_timeout = call_timeout
        self.retry_backoff = retry_backoff
        self.poll_interval = poll_interval
        self.logger = logger or logging.getLogger(__name__)
        self._semaphores = {name: threading.BoundedSemaphore(per_provider_limit) for name in self.providers}
        self._cancel = threading.Event()

    def cancel(self) -> None:
        """Stop the run: queued calls short-circuit and collection ends."""
        self._cancel.set()

    @property
    def cancelled(self) -> bool:
        return self._cancel.is_set()

    # --- worker side ---

    def _safe_search(self, provider: Provider, query: Query) -> ProviderOutcome:
        try:
            return provider.search(query)
        except Exception as e:
            self.logger.warning("%s raised unexpectedly: %s", provider.name, e, exc_info=True)
            return ProviderOutcome.failed(provider.name, ErrorKind.NETWORK_FAILURE, f"unexpected error: {e}")

    def _start(self, call: _Call, provider: Provider) -> None:
        provider.throttle()
        call.started_at = time.monotonic()

    def _search_with_retry(self, call: _Call) -> ProviderOutcome:
        provider = self.providers[call.provider]
        self._start(call, provider)
        outcome = self._safe_search(provider, call.query)
        if outcome.is_retryable and not self._cancel.is_set():
            self.logger.debug("%s: %s, retrying in %.1fs", provider.name, outcome.status, self.retry_backoff)
            call.started_at = None
            if self._cancel.wait(self.retry_backoff):
                return outcome
            self._start(call, provider)
            outcome = self._safe_search(provider, call.query)
        return outcome

    def _fetch_in_slot(self, call: _Call) -> ProviderOutcome:
        semaphore = self._semaphores[call.provider]
        while not semaphore.acquire(timeout=self.poll_interval):
            if self._cancel.is_set():
                return ProviderOutcome.timed_out(call.provider, "cancelled before start")
        try:
            if self._cancel.is_set():
                return ProviderOutcome.timed_out(call.provider, "cancelled before start")
            return self._search_with_retry(call)
        finally:
            semaphore.release()

    def _run_call(self, call: _Call) -> ProviderOutcome:
        if self._cancel.is_set():
            return ProviderOutcome.timed_out(call.provider, "cancelled before start")
        return self.cache.get_or_fetch(call.provider, call.query, lambda: self._fetch_in_slot(call))

    # --- collector side ---

    def _collect(self, call: _Call) -> None:
        assert call.future is not None
        try:
            call.outcome = call.future.result()
        except CancelledError:
            call.outcome = ProviderOutcome.timed_out(call.provider, "cancelled")
        except Exception as e:
            self.logger.warning("%s call failed: %s", call.provider, e)
            call.outcome = ProviderOutcome.failed(call.provider, ErrorKind.NETWORK_FAILURE, str(e))

    def _expire(self, pending: dict[Future, _Call], now: float) -> None:
        for fut, call in list(pending.items()):
            if fut.done() or call.started_at is None:
                continue
            if now - call.started_at >= self.call_timeout:
                fut.cancel()
                call.outcome = ProviderOutcome.timed_out(
                    call.provider, f"no response within {self.call_timeout:g}s"
                )
                del pending[fut]
                self.logger.warning("%s timed out after %.1fs", call.provider, self.call_timeout)

    def _next_wait(self, pending: dict[Future, _Call], now: float) -> float:
        deadlines = [c.started_at + self.call_timeout for c in pending.values() if c.started_at is not None]
        if not deadlines:
            return self.poll_interval
        return max(0.0, min(self.poll_interval, min(deadlines) - now))

    def dispatch(self, queries: list[Query]) -> DispatchResult:
        """Fan out every query to every provider and wait for all of them.

        An entry's outcomes are complete only when each of its calls is
        terminal. On cancellation or KeyboardInterrupt the unfinished calls
        are recorded TIMED_OUT and the partial result is returned with
        ``interrupted=True``.
        """
        calls = [_Call(i, name, q) for i, q in enumerate(queries) for name in self.providers]
        interrupted = False
        if calls:
            executor = ThreadPoolExecutor(max_workers=self.concurrency_limit, thread_name_prefix="bibval")
            try:
                pending: dict[Future, _Call] = {}
                for call in calls:
                    call.future = executor.submit(self._run_call, call)
                    pending[call.future] = call
                while pending and not self._cancel.is_set():
                    now = time.monotonic()
                    self._expire(pending, now)
                    if not pending:
                        break
                    done, _ = wait(list(pending), timeout=self._next_wait(pending, now), return_when=FIRST_COMPLETED)
                    for fut in done:
                        self._collect(pending.pop(fut))
            except KeyboardInterrupt:
                self.logger.warning("Interrupted, returning partial results")
                self._cancel.set()
            finally:
                executor.shutdown(wait=False, cancel_futures=True)
            interrupted = self._cancel.is_set()

        result = DispatchResult(outcomes=[{} for _ in queries], interrupted=interrupted)
        for call in calls:
            if call.outcome is None and call.future is not None and call.future.done():
                try:
                    self._collect(call)
                except KeyboardInterrupt:
                    call.outcome = ProviderOutcome.timed_out(call.provider, "interrupted")
            outcome = call.outcome or ProviderOutcome.timed_out(call.provider, "cancelled")
            result.outcomes[call.entry_index][call.provider] = outcome
        return result
