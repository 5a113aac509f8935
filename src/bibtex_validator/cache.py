"""Persistent cache of provider outcomes.

One JSON document per record under ``<cache_dir>/<provider>/<fingerprint>.json``.
Records are written to a temporary file in the same directory and moved into
place with ``os.replace``, so readers (including other processes sharing the
directory) see either the old record or the new one, never a partial write.
Negative results (NOT_FOUND, ERROR) are cached with the same TTL as hits.
"""

from __future__ import annotations

import hashlib
import json
import logging
import os
import tempfile
import threading
import time
from collections.abc import Callable
from dataclasses import replace
from pathlib import Path
from typing import Any

from bibtex_validator.exceptions import CacheIOError
from bibtex_validator.models import CacheRecord, OutcomeKind, ProviderOutcome, Query

DEFAULT_CACHE_DIR = os.path.join(os.path.expanduser("~"), ".cache", "bibtex-validator")
DEFAULT_TTL_DAYS = 7.0


def query_fingerprint(provider: str, query: Query) -> str:
    """Stable hex digest of (normalized query, provider id)."""
    payload = {"provider": provider, "query": query.fingerprint_fields()}
    blob = json.dumps(payload, sort_keys=True, ensure_ascii=False, separators=(",", ":"))
    return hashlib.sha256(blob.encode("utf-8")).hexdigest()


def is_cacheable(outcome: ProviderOutcome) -> bool:
    """TIMED_OUT and DISABLED outcomes say nothing about the record."""
    return outcome.kind is not OutcomeKind.TIMED_OUT and not outcome.is_disabled


class CacheStore:
    """Thread-safe on-disk store of provider outcomes with TTL expiry.

    Reads are unsynchronized; writes to the same key are serialized by a
    per-key lock, and the last writer wins.
    """

    def __init__(
        self,
        cache_dir: str | os.PathLike[str] | None = None,
        ttl_days: float = DEFAULT_TTL_DAYS,
        enabled: bool = True,
        logger: logging.Logger | None = None,
    ) -> None:
        """Initialize the cache store.

        Args:
            cache_dir: Root directory of the cache. Defaults to ~/.cache/bibtex-validator.
            ttl_days: Time-to-live in days for every record.
            enabled: When False, lookups always miss and nothing is written.
            logger: Logger for cache I/O problems.
        """
        self.cache_dir = Path(cache_dir or DEFAULT_CACHE_DIR)
        self.ttl_seconds = float(ttl_days) * 86400
        self.enabled = enabled
        self.logger = logger or logging.getLogger(__name__)
        self._key_locks: dict[str, threading.Lock] = {}
        self._registry_lock = threading.Lock()
        self._opened = False

    # --- lifecycle ---

    def open(self) -> CacheStore:
        """Create the cache directory. A failure disables the cache for the run."""
        if self.enabled and not self._opened:
            try:
                self.cache_dir.mkdir(parents=True, exist_ok=True)
            except OSError as e:
                self.logger.warning("Cannot create cache directory %s, caching disabled: %s", self.cache_dir, e)
                self.enabled = False
        self._opened = True
        return self

    def close(self) -> None:
        with self._registry_lock:
            self._key_locks.clear()
        self._opened = False

    def __enter__(self) -> CacheStore:
        return self.open()

    def __exit__(self, *exc: Any) -> None:
        self.close()

    # --- paths & locks ---

    def _path(self, provider: str, fingerprint: str) -> Path:
        return self.cache_dir / provider / f"{fingerprint}.json"

    def _lock_for(self, provider: str, fingerprint: str) -> threading.Lock:
        key = f"{provider}/{fingerprint}"
        with self._registry_lock:
            lock = self._key_locks.get(key)
            if lock is None:
                lock = self._key_locks[key] = threading.Lock()
            return lock

    # --- record I/O ---

    def _read(self, provider: str, fingerprint: str) -> CacheRecord | None:
        path = self._path(provider, fingerprint)
        try:
            with open(path, encoding="utf-8") as f:
                data = json.load(f)
        except FileNotFoundError:
            return None
        except (OSError, ValueError) as e:
            raise CacheIOError(f"unreadable cache record {path}: {e}") from e
        try:
            return CacheRecord.from_dict(data)
        except (KeyError, TypeError, ValueError) as e:
            raise CacheIOError(f"corrupt cache record {path}: {e}") from e

    def _write(self, record: CacheRecord) -> None:
        path = self._path(record.provider, record.fingerprint)
        with self._lock_for(record.provider, record.fingerprint):
            try:
                path.parent.mkdir(parents=True, exist_ok=True)
                tmp = tempfile.NamedTemporaryFile(
                    "w", delete=False, encoding="utf-8", suffix=".json", prefix=".tmp_record_", dir=path.parent
                )
                try:
                    json.dump(record.to_dict(), tmp, ensure_ascii=False)
                    tmp.flush()
                    os.fsync(tmp.fileno())
                finally:
                    tmp.close()
                os.replace(tmp.name, path)
            except OSError as e:
                raise CacheIOError(f"cannot write cache record {path}: {e}") from e

    # --- public API ---

    def get(self, provider: str, query: Query, now: float | None = None) -> ProviderOutcome | None:
        """Return the cached outcome if a fresh record exists."""
        if not self.enabled:
            return None
        fingerprint = query_fingerprint(provider, query)
        try:
            record = self._read(provider, fingerprint)
        except CacheIOError as e:
            self.logger.warning("Cache read failed, bypassing cache: %s", e)
            return None
        if record is None or record.is_expired(now, self.ttl_seconds):
            return None
        return replace(record.outcome, cached=True)

    def put(self, provider: str, query: Query, outcome: ProviderOutcome, now: float | None = None) -> bool:
        """Persist an outcome. Returns False when it was not written."""
        if not self.enabled or not is_cacheable(outcome):
            return False
        record = CacheRecord(
            fingerprint=query_fingerprint(provider, query),
            provider=provider,
            outcome=outcome,
            created_at=time.time() if now is None else now,
            ttl_seconds=self.ttl_seconds,
        )
        try:
            self._write(record)
        except CacheIOError as e:
            self.logger.warning("Cache write failed, result not cached: %s", e)
            return False
        return True

    def get_or_fetch(
        self, provider: str, query: Query, fetcher: Callable[[], ProviderOutcome]
    ) -> ProviderOutcome:
        """Serve a fresh cached outcome, or call ``fetcher`` and store its result."""
        cached = self.get(provider, query)
        if cached is not None:
            self.logger.debug("cache hit: %s", provider)
            return cached
        outcome = fetcher()
        self.put(provider, query, outcome)
        return outcome

    def invalidate(self, provider: str, query: Query) -> bool:
        """Remove one record. Returns True if a record was removed."""
        fingerprint = query_fingerprint(provider, query)
        with self._lock_for(provider, fingerprint):
            try:
                self._path(provider, fingerprint).unlink()
            except FileNotFoundError:
                return False
        return True

    def _record_files(self) -> list[Path]:
        if not self.cache_dir.is_dir():
            return []
        return [p for p in self.cache_dir.glob("*/*.json") if not p.name.startswith(".tmp_")]

    def clear(self) -> int:
        """Remove every record. Returns the number removed."""
        removed = 0
        for path in self._record_files():
            try:
                path.unlink()
                removed += 1
            except FileNotFoundError:
                continue
        return removed

    def cleanup_expired(self, now: float | None = None) -> int:
        """Remove expired and unreadable records. Returns the number removed."""
        removed = 0
        for path in self._record_files():
            try:
                with open(path, encoding="utf-8") as f:
                    record = CacheRecord.from_dict(json.load(f))
                expired = record.is_expired(now, self.ttl_seconds)
            except FileNotFoundError:
                continue
            except (OSError, ValueError, KeyError, TypeError):
                expired = True
            if expired:
                try:
                    path.unlink()
                    removed += 1
                except FileNotFoundError:
                    continue
        return removed
