"""Shared fixtures for bibtex_validator tests."""

from __future__ import annotations

import logging
import threading
import time
from typing import Any

import pytest

from bibtex_validator import (
    CacheStore,
    CandidateRecord,
    Entry,
    Provider,
    Query,
    ValidatorConfig,
)


class FakeProvider(Provider):
    """In-memory provider with scripted results.

    Each call consumes the next item of ``results`` (the last one repeats). An
    item is a list of candidates, or an exception to raise.
    """

    def __init__(
        self,
        name: str,
        results: list[Any] | None = None,
        delay: float = 0.0,
        block: threading.Event | None = None,
    ) -> None:
        super().__init__(max_results=5, logger=logging.getLogger("test_provider"))
        self.name = name
        self.results = list(results or [[]])
        self.delay = delay
        self.block = block
        self.calls: list[Query] = []
        self.active = 0
        self.max_active = 0
        self._lock = threading.Lock()

    def fetch_candidates(self, query: Query) -> list[CandidateRecord]:
        with self._lock:
            index = len(self.calls)
            self.calls.append(query)
            self.active += 1
            self.max_active = max(self.max_active, self.active)
        try:
            if self.block is not None:
                self.block.wait(timeout=10)
            if self.delay:
                time.sleep(self.delay)
            result = self.results[min(index, len(self.results) - 1)]
            if isinstance(result, BaseException):
                raise result
            return list(result)
        finally:
            with self._lock:
                self.active -= 1


@pytest.fixture
def logger():
    """Create a test logger."""
    return logging.getLogger("test_bibtex_validator")


@pytest.fixture
def make_entry():
    """Factory fixture for creating entries."""

    def _make_entry(**kwargs) -> Entry:
        values: dict[str, Any] = {
            "key": "testkey",
            "title": "Example Title",
            "authors": ("Doe, Jane", "Smith, John"),
            "year": 2020,
            "entry_type": "article",
        }
        values.update(kwargs)
        return Entry(**values)

    return _make_entry


@pytest.fixture
def make_candidate():
    """Factory fixture for creating candidate records."""

    def _make_candidate(**kwargs) -> CandidateRecord:
        values: dict[str, Any] = {
            "provider": "alpha",
            "title": "Example Title",
            "year": 2020,
            "authors": ("Jane Doe", "John Smith"),
            "doi": None,
            "rank": 1,
        }
        values.update(kwargs)
        return CandidateRecord(**values)

    return _make_candidate


@pytest.fixture
def fake_provider():
    """Factory fixture for FakeProvider instances."""
    return FakeProvider


@pytest.fixture
def cache_store(tmp_path, logger):
    """An opened on-disk cache in a temporary directory."""
    store = CacheStore(tmp_path / "cache", ttl_days=7, logger=logger)
    store.open()
    yield store
    store.close()


@pytest.fixture
def disabled_cache(tmp_path, logger):
    """A cache that never stores anything."""
    return CacheStore(tmp_path / "unused", enabled=False, logger=logger).open()


@pytest.fixture
def make_config():
    """Factory for fast, cache-less configurations over fake providers."""

    def _make_config(**kwargs) -> ValidatorConfig:
        values: dict[str, Any] = {
            "enabled_providers": ["alpha", "beta"],
            "provider_priority": ["alpha", "beta"],
            "cache_enabled": False,
            "retry_backoff": 0.0,
            "call_timeout": 5.0,
            "s2_api_key": None,
        }
        values.update(kwargs)
        return ValidatorConfig(**values)

    return _make_config


@pytest.fixture
def release_blocked():
    """Event that blocked fake providers wait on; set at teardown so no thread lingers."""
    event = threading.Event()
    yield event
    event.set()
