"""Top-level orchestration of a validation run."""

from __future__ import annotations

import fnmatch
import logging

from bibtex_validator.aggregator import VerdictAggregator
from bibtex_validator.cache import CacheStore
from bibtex_validator.config import ValidatorConfig
from bibtex_validator.dispatcher import Dispatcher
from bibtex_validator.exceptions import MalformedEntry
from bibtex_validator.models import Entry, EntryVerdict, NormalizedEntry, ProviderOutcome, Query, Severity
from bibtex_validator.normalize import build_query, normalize_entry
from bibtex_validator.providers import build_providers
from bibtex_validator.providers.base import Provider
from bibtex_validator.report import Report, ReportAssembler
from bibtex_validator.utils import HttpClient, RateLimiterRegistry


class BibValidator:
    """Validates entries against every enabled provider and builds the report.

    Args:
        config: Run configuration (defaults to ``ValidatorConfig()``)
        providers: Registered providers by id, or a list of them. Defaults to
            every built-in provider sharing one ``HttpClient``.
        cache: Outcome cache (defaults to one built from the config)
        logger: Logger for progress and problems

    Raises:
        ConfigurationError: when the configuration is invalid for the given
            providers. Nothing is dispatched in that case.
    """

    def __init__(
        self,
        config: ValidatorConfig | None = None,
        providers: dict[str, Provider] | list[Provider] | None = None,
        cache: CacheStore | None = None,
        logger: logging.Logger | None = None,
    ) -> None:
        self.config = config or ValidatorConfig()
        self.logger = logger or logging.getLogger(__name__)
        self._http: HttpClient | None = None
        if providers is None:
            self._http = HttpClient(
                timeout=self.config.call_timeout,
                user_agent=self.config.user_agent,
                rate_limiter=RateLimiterRegistry(self.config.rate_limits),
                s2_api_key=self.config.s2_api_key,
            )
            providers = build_providers(self.config, self._http, self.logger)
        elif isinstance(providers, list):
            providers = {p.name: p for p in providers}
        self.providers: dict[str, Provider] = dict(providers)
        self.config.validate(available=self.providers)

        self.cache = cache or CacheStore(
            self.config.cache_dir,
            ttl_days=self.config.cache_ttl_days,
            enabled=self.config.cache_enabled,
            logger=self.logger,
        )
        self.aggregator = VerdictAggregator(self.config.aggregator_config(), self.config.matcher_config())
        self._dispatcher: Dispatcher | None = None
        self._cancel_requested = False

    def enabled_providers(self) -> dict[str, Provider]:
        """Enabled providers, in registration order."""
        enabled = set(self.config.enabled_providers)
        return {name: p for name, p in self.providers.items() if name in enabled}

    def cancel(self) -> None:
        """Request cancellation of the current run; a partial report is returned."""
        self._cancel_requested = True
        if self._dispatcher is not None:
            self._dispatcher.cancel()

    def close(self) -> None:
        self.cache.close()
        if self._http is not None:
            self._http.close()

    def __enter__(self) -> BibValidator:
        return self

    def __exit__(self, *exc: object) -> None:
        self.close()

    def select(self, entries: list[Entry]) -> list[Entry]:
        """Apply the key filter; entries that do not match are dropped entirely."""
        patterns = self.config.key_filter
        if not patterns:
            return list(entries)
        return [e for e in entries if any(fnmatch.fnmatchcase(e.key, p) for p in patterns)]

    def _prepare(
        self, entries: list[Entry], assembler: ReportAssembler
    ) -> list[tuple[int, NormalizedEntry, Query]]:
        runnable = []
        seen: set[str] = set()
        for index, entry in enumerate(entries):
            try:
                if entry.key in seen:
                    raise MalformedEntry(entry.key, "duplicate citation key")
                seen.add(entry.key)
                normalized = normalize_entry(entry)
            except MalformedEntry as e:
                self.logger.warning("Malformed entry %s", e)
                assembler.add(index, EntryVerdict(e.key, Severity.MALFORMED, detail=e.reason))
                continue
            runnable.append((index, normalized, build_query(normalized)))
        return runnable

    def validate(self, entries: list[Entry]) -> Report:
        """Validate ``entries`` and return the report in input order."""
        selected = self.select(entries)
        if len(selected) != len(entries):
            self.logger.info("Key filter selected %d of %d entries", len(selected), len(entries))

        assembler = ReportAssembler()
        runnable = self._prepare(selected, assembler)

        enabled = self.enabled_providers()
        disabled = {name: ProviderOutcome.disabled(name) for name in self.providers if name not in enabled}
        if not enabled:
            self.logger.warning("No provider enabled, every entry will be skipped")

        self.cache.open()
        self._dispatcher = Dispatcher(
            enabled,
            self.cache,
            concurrency_limit=self.config.concurrency_limit,
            per_provider_limit=self.config.per_provider_limit,
            call_timeout=self.config.call_timeout,
            retry_backoff=self.config.retry_backoff,
            logger=self.logger,
        )
        if self._cancel_requested:
            self._dispatcher.cancel()
        self.logger.info("Validating %d entries against %s", len(runnable), ", ".join(enabled) or "no providers")
        try:
            result = self._dispatcher.dispatch([query for _, _, query in runnable])
        finally:
            self._dispatcher = None
            self._cancel_requested = False

        for (index, normalized, _), outcomes in zip(runnable, result.outcomes):
            merged = {name: outcomes.get(name) or disabled[name] for name in self.providers}
            assembler.add(index, self.aggregator.aggregate(normalized, merged))

        report = assembler.build(interrupted=result.interrupted)
        self.logger.info(
            "Done: %d entries, %s",
            report.total,
            ", ".join(f"{n} {s.value}" for s, n in report.counts.items() if n),
        )
        return report
