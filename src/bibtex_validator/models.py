"""Data model shared by every stage of the reconciliation engine.

All records are frozen dataclasses: entries are read-only after load, candidate
records and outcomes are never mutated after a provider produces them, and cache
records are superseded rather than edited.
"""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

# ------------- Enums -------------


class Severity(Enum):
    """Ordered classification of discrepancies and verdicts.

    OK < WARN < ERROR are ranked; NOT_FOUND, SKIPPED and MALFORMED are terminal
    verdict states with no rank.
    """

    OK = "ok"
    WARN = "warn"
    ERROR = "error"
    NOT_FOUND = "not_found"
    SKIPPED = "skipped"
    MALFORMED = "malformed"

    @property
    def rank(self) -> int:
        """Rank used for max/sort; terminal states rank below OK."""
        return _SEVERITY_RANK.get(self, -1)

    @property
    def label(self) -> str:
        return self.name.replace("_", " ")


_SEVERITY_RANK = {Severity.OK: 0, Severity.WARN: 1, Severity.ERROR: 2}


class OutcomeKind(Enum):
    """Tag of a ProviderOutcome."""

    FOUND = "found"
    NOT_FOUND = "not_found"
    ERROR = "error"
    TIMED_OUT = "timed_out"


class ErrorKind(Enum):
    """Classified provider failures."""

    RATE_LIMITED = "rate_limited"
    NETWORK_FAILURE = "network_failure"
    TIMEOUT = "timeout"
    SCHEMA_VIOLATION = "schema_violation"
    DISABLED = "disabled"


RETRYABLE_ERRORS = frozenset({ErrorKind.RATE_LIMITED, ErrorKind.NETWORK_FAILURE})


# ------------- Entries & Queries -------------


@dataclass(frozen=True)
class Entry:
    """One bibliographic record as loaded from a bibliography file."""

    key: str
    title: str
    authors: tuple[str, ...] = ()
    year: int | str | None = None
    doi: str | None = None
    entry_type: str = "misc"
    arxiv_id: str | None = None
    venue: str | None = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "authors", tuple(self.authors))


@dataclass(frozen=True)
class PersonName:
    """A parsed author name.

    Attributes:
        surname: Normalized family name (lowercase, no diacritics)
        initials: Normalized given-name initials, e.g. "jr" for "John Ronald"
        given: Normalized given names, e.g. ("john", "ronald")
        display: The name as written in the source
    """

    surname: str
    initials: str
    given: tuple[str, ...]
    display: str


@dataclass(frozen=True)
class NormalizedEntry:
    """An entry with all comparable fields canonicalized."""

    key: str
    entry_type: str
    title: str
    title_tokens: tuple[str, ...]
    display_title: str
    authors: tuple[PersonName, ...]
    year: int | None
    doi: str | None
    arxiv_id: str | None = None
    truncated_authors: bool = False
    venue: str | None = None


@dataclass(frozen=True)
class Query:
    """Normalized search parameters handed to a provider."""

    title: str
    title_tokens: tuple[str, ...]
    surnames: tuple[str, ...] = ()
    year: int | None = None
    doi: str | None = None
    arxiv_id: str | None = None

    @property
    def search_text(self) -> str:
        """Free-text query: normalized title plus first author surname."""
        first = self.surnames[0] if self.surnames else ""
        return f"{' '.join(self.title_tokens)} {first}".strip()

    def fingerprint_fields(self) -> dict[str, Any]:
        """The fields that identify this query in the cache."""
        return {
            "title_tokens": list(self.title_tokens),
            "surnames": sorted(self.surnames),
            "year": self.year,
            "doi": self.doi,
            "arxiv_id": self.arxiv_id,
        }


# ------------- Provider Results -------------


@dataclass(frozen=True)
class CandidateRecord:
    """One match returned by a provider for a query."""

    provider: str
    title: str | None
    year: int | None = None
    authors: tuple[str, ...] = ()
    doi: str | None = None
    rank: int | None = None
    venue: str | None = None
    url: str | None = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "authors", tuple(self.authors))

    def to_dict(self) -> dict[str, Any]:
        return {
            "provider": self.provider,
            "title": self.title,
            "year": self.year,
            "authors": list(self.authors),
            "doi": self.doi,
            "rank": self.rank,
            "venue": self.venue,
            "url": self.url,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> CandidateRecord:
        return cls(
            provider=data["provider"],
            title=data.get("title"),
            year=data.get("year"),
            authors=tuple(data.get("authors") or ()),
            doi=data.get("doi"),
            rank=data.get("rank"),
            venue=data.get("venue"),
            url=data.get("url"),
        )


@dataclass(frozen=True)
class ProviderOutcome:
    """Tagged result of one (entry, provider) call."""

    provider: str
    kind: OutcomeKind
    candidates: tuple[CandidateRecord, ...] = ()
    error: ErrorKind | None = None
    message: str | None = None
    cached: bool = field(default=False, compare=False)

    def __post_init__(self) -> None:
        object.__setattr__(self, "candidates", tuple(self.candidates))

    @classmethod
    def found(cls, provider: str, candidates: list[CandidateRecord] | tuple[CandidateRecord, ...]) -> ProviderOutcome:
        return cls(provider, OutcomeKind.FOUND, candidates=tuple(candidates))

    @classmethod
    def not_found(cls, provider: str, message: str | None = None) -> ProviderOutcome:
        return cls(provider, OutcomeKind.NOT_FOUND, message=message)

    @classmethod
    def failed(cls, provider: str, error: ErrorKind, message: str | None = None) -> ProviderOutcome:
        return cls(provider, OutcomeKind.ERROR, error=error, message=message)

    @classmethod
    def disabled(cls, provider: str) -> ProviderOutcome:
        return cls.failed(provider, ErrorKind.DISABLED, "provider disabled by configuration")

    @classmethod
    def timed_out(cls, provider: str, message: str | None = None) -> ProviderOutcome:
        return cls(provider, OutcomeKind.TIMED_OUT, message=message)

    @property
    def is_found(self) -> bool:
        return self.kind is OutcomeKind.FOUND

    @property
    def is_disabled(self) -> bool:
        return self.kind is OutcomeKind.ERROR and self.error is ErrorKind.DISABLED

    @property
    def is_retryable(self) -> bool:
        return self.kind is OutcomeKind.ERROR and self.error in RETRYABLE_ERRORS

    @property
    def status(self) -> str:
        """Short label, e.g. 'found', 'error:rate_limited'."""
        if self.kind is OutcomeKind.ERROR and self.error is not None:
            return f"error:{self.error.value}"
        return self.kind.value

    def to_dict(self) -> dict[str, Any]:
        return {
            "provider": self.provider,
            "kind": self.kind.value,
            "candidates": [c.to_dict() for c in self.candidates],
            "error": self.error.value if self.error else None,
            "message": self.message,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ProviderOutcome:
        error = data.get("error")
        return cls(
            provider=data["provider"],
            kind=OutcomeKind(data["kind"]),
            candidates=tuple(CandidateRecord.from_dict(c) for c in data.get("candidates") or ()),
            error=ErrorKind(error) if error else None,
            message=data.get("message"),
        )


# ------------- Verdicts -------------


@dataclass(frozen=True)
class FieldDiscrepancy:
    """A single field that differs between the local entry and a candidate."""

    field: str
    local_value: str
    remote_value: str
    severity: Severity
    message: str
    provider: str

    def sort_key(self) -> tuple[int, str, str, str]:
        """Severity descending, then field name, then values."""
        return (-self.severity.rank, self.field, self.local_value, self.remote_value)

    def to_dict(self) -> dict[str, Any]:
        return {
            "field": self.field,
            "local_value": self.local_value,
            "remote_value": self.remote_value,
            "severity": self.severity.value,
            "message": self.message,
            "provider": self.provider,
        }


@dataclass(frozen=True)
class EntryVerdict:
    """Aggregated validation outcome for one entry."""

    key: str
    severity: Severity
    chosen_provider: str | None = None
    discrepancies: tuple[FieldDiscrepancy, ...] = ()
    outcomes: dict[str, ProviderOutcome] = field(default_factory=dict)
    candidate: CandidateRecord | None = None
    score: float | None = None
    detail: str | None = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "discrepancies", tuple(self.discrepancies))

    def to_dict(self, verbose: bool = False) -> dict[str, Any]:
        data: dict[str, Any] = {
            "key": self.key,
            "severity": self.severity.value,
            "chosen_provider": self.chosen_provider,
            "score": self.score,
            "discrepancies": [d.to_dict() for d in self.discrepancies],
            "detail": self.detail,
        }
        if self.candidate is not None:
            data["candidate"] = self.candidate.to_dict()
        if verbose:
            data["outcomes"] = {name: o.to_dict() for name, o in self.outcomes.items()}
        return data


# ------------- Cache -------------


@dataclass(frozen=True)
class CacheRecord:
    """A persisted provider outcome."""

    fingerprint: str
    provider: str
    outcome: ProviderOutcome
    created_at: float
    ttl_seconds: float

    def is_expired(self, now: float | None = None, max_ttl: float | None = None) -> bool:
        """True once the record outlives its own TTL, or ``max_ttl`` if that is shorter."""
        now = time.time() if now is None else now
        ttl = self.ttl_seconds if max_ttl is None else min(self.ttl_seconds, max_ttl)
        return now - self.created_at >= ttl

    def to_dict(self) -> dict[str, Any]:
        return {
            "fingerprint": self.fingerprint,
            "provider": self.provider,
            "outcome": self.outcome.to_dict(),
            "created_at": self.created_at,
            "ttl_seconds": self.ttl_seconds,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> CacheRecord:
        return cls(
            fingerprint=data["fingerprint"],
            provider=data["provider"],
            outcome=ProviderOutcome.from_dict(data["outcome"]),
            created_at=float(data["created_at"]),
            ttl_seconds=float(data["ttl_seconds"]),
        )
