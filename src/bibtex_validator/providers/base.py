"""Provider interface shared by every metadata source."""

from __future__ import annotations

import logging
import re
from abc import ABC, abstractmethod
from typing import Any

from bibtex_validator.exceptions import ProviderError
from bibtex_validator.models import CandidateRecord, ErrorKind, ProviderOutcome, Query
from bibtex_validator.utils import HttpClient


class Provider(ABC):
    """A metadata source that can be searched for candidate records.

    Subclasses implement ``fetch_candidates`` and raise ``ProviderError`` for
    classified failures; ``search`` turns either into a ``ProviderOutcome``.
    """

    name: str = ""

    def __init__(self, http: HttpClient | None = None, max_results: int = 5, logger: logging.Logger | None = None):
        self.http = http
        self.max_results = max_results
        self.logger = logger or logging.getLogger(__name__)

    @abstractmethod
    def fetch_candidates(self, query: Query) -> list[CandidateRecord]:
        """Return matches for ``query`` in provider rank order (may be empty)."""

    def search(self, query: Query) -> ProviderOutcome:
        try:
            candidates = self.fetch_candidates(query)
        except ProviderError as e:
            if e.kind is ErrorKind.SCHEMA_VIOLATION:
                self.logger.warning("%s returned an unexpected payload, treating as not found: %s", self.name, e)
                return ProviderOutcome.not_found(self.name, str(e))
            self.logger.debug("%s failed: %s (%s)", self.name, e.kind.value, e)
            return ProviderOutcome.failed(self.name, e.kind, str(e))
        except (KeyError, IndexError, TypeError, AttributeError, ValueError) as e:
            self.logger.warning("%s payload could not be converted, treating as not found: %r", self.name, e)
            return ProviderOutcome.not_found(self.name, f"unexpected payload: {e!r}")
        if not candidates:
            return ProviderOutcome.not_found(self.name)
        return ProviderOutcome.found(self.name, candidates[: self.max_results])

    def throttle(self) -> None:
        """Wait for this provider's rate limit before a call is timed."""
        if self.http is not None:
            self.http.throttle(self.name)

    def _require_http(self) -> HttpClient:
        if self.http is None:
            raise ProviderError(ErrorKind.NETWORK_FAILURE, f"{self.name}: no HTTP client configured")
        return self.http

    def __repr__(self) -> str:
        return f"{type(self).__name__}(name={self.name!r})"


# ------------- Payload helpers -------------


def expect_dict(value: Any, provider: str, what: str) -> dict[str, Any]:
    """Return ``value`` if it is a JSON object, else raise SCHEMA_VIOLATION."""
    if not isinstance(value, dict):
        raise ProviderError(ErrorKind.SCHEMA_VIOLATION, f"{provider}: expected object for {what}")
    return value


def expect_list(value: Any, provider: str, what: str) -> list[Any]:
    if value is None:
        return []
    if not isinstance(value, list):
        raise ProviderError(ErrorKind.SCHEMA_VIOLATION, f"{provider}: expected list for {what}")
    return value


def year_from_date(value: Any) -> int | None:
    """Year from 2019, '2019' or '2019-05-01'."""
    if isinstance(value, int) and not isinstance(value, bool):
        return value
    if isinstance(value, str):
        m = re.match(r"^(\d{4})", value.strip())
        if m:
            return int(m.group(1))
    return None
