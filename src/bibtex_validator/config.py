"""Run configuration."""

from __future__ import annotations

import os
from collections.abc import Iterable
from dataclasses import dataclass, field, fields
from typing import Any

import yaml

from bibtex_validator.aggregator import AggregatorConfig
from bibtex_validator.cache import DEFAULT_TTL_DAYS
from bibtex_validator.exceptions import ConfigurationError
from bibtex_validator.matcher import MatcherConfig
from bibtex_validator.providers import DEFAULT_PROVIDER_ORDER, PROVIDER_CLASSES
from bibtex_validator.utils import DEFAULT_USER_AGENT

# Never serialized
_SECRET_FIELDS = {"s2_api_key"}

# Accept int or float, never bool or str
_NUMERIC_FIELDS = (
    "call_timeout",
    "cache_ttl_days",
    "retry_backoff",
    "year_bonus",
    "doi_bonus",
    "title_ok_threshold",
    "title_warn_threshold",
    "min_candidate_similarity",
)


@dataclass
class ValidatorConfig:
    """Configuration for a validation run.

    Attributes:
        enabled_providers: Provider ids to query; registered providers not listed
            here are reported as DISABLED without being called
        cache_enabled: Read and write the on-disk outcome cache
        cache_dir: Cache root (None for ~/.cache/bibtex-validator)
        cache_ttl_days: Lifetime of cached outcomes, positive and negative alike
        strict: Treat warnings and NOT_FOUND entries as failures for the exit code
        key_filter: Citation keys or glob patterns to validate (None for all)
        concurrency_limit: Global ceiling on in-flight provider calls
        per_provider_limit: Ceiling on in-flight calls per provider
        call_timeout: Seconds a call may run after acquiring its provider slot
        retry_backoff: Seconds to wait before the single retry of a transient failure
        provider_priority: Tie-break order between equally scored candidates
        title_ok_threshold: Title similarity at or above which titles match
        title_warn_threshold: Title similarity at or above which a difference is a warning
        min_candidate_similarity: Title similarity below which a candidate is ignored
        year_bonus: Score bonus for an exact year match
        doi_bonus: Score bonus for an exact DOI match
        max_results: Candidates kept per provider
        rate_limits: Requests per minute per provider, overriding the defaults
        user_agent: User-Agent header sent to every provider
        mailto: Contact address for OpenAlex's polite pool
        s2_api_key: Semantic Scholar API key (defaults to $S2_API_KEY)
    """

    enabled_providers: list[str] = field(default_factory=lambda: list(DEFAULT_PROVIDER_ORDER))
    cache_enabled: bool = True
    cache_dir: str | None = None
    cache_ttl_days: float = DEFAULT_TTL_DAYS
    strict: bool = False
    key_filter: list[str] | None = None
    concurrency_limit: int = 20
    per_provider_limit: int = 4
    call_timeout: float = 20.0
    retry_backoff: float = 1.0
    provider_priority: list[str] = field(default_factory=lambda: list(DEFAULT_PROVIDER_ORDER))
    title_ok_threshold: float = 95.0
    title_warn_threshold: float = 80.0
    min_candidate_similarity: float = 50.0
    year_bonus: float = 10.0
    doi_bonus: float = 5.0
    max_results: int = 5
    rate_limits: dict[str, int] = field(default_factory=dict)
    user_agent: str = DEFAULT_USER_AGENT
    mailto: str | None = None
    s2_api_key: str | None = field(default_factory=lambda: os.environ.get("S2_API_KEY") or None)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ValidatorConfig:
        """Create config from a dictionary (e.g., loaded from YAML)."""
        known = {f.name for f in fields(cls)}
        unknown = sorted(set(data) - known)
        if unknown:
            raise ConfigurationError(f"Unknown configuration option(s): {', '.join(unknown)}")
        values = dict(data)
        for name in ("enabled_providers", "provider_priority", "key_filter"):
            if isinstance(values.get(name), str):
                values[name] = [values[name]]
        return cls(**values)

    @classmethod
    def from_yaml(cls, path: str) -> ValidatorConfig:
        try:
            with open(path, encoding="utf-8") as f:
                data = yaml.safe_load(f) or {}
        except OSError as e:
            raise ConfigurationError(f"Cannot read config file {path}: {e}") from e
        except yaml.YAMLError as e:
            raise ConfigurationError(f"Invalid YAML in {path}: {e}") from e
        if not isinstance(data, dict):
            raise ConfigurationError(f"Config file {path} must contain a mapping")
        return cls.from_dict(data)

    def to_dict(self) -> dict[str, Any]:
        """Convert config to a dictionary for serialization (secrets omitted)."""
        out: dict[str, Any] = {}
        for f in fields(self):
            if f.name in _SECRET_FIELDS:
                continue
            value = getattr(self, f.name)
            out[f.name] = list(value) if isinstance(value, tuple) else value
        return out

    def matcher_config(self) -> MatcherConfig:
        return MatcherConfig(title_ok_threshold=self.title_ok_threshold, title_warn_threshold=self.title_warn_threshold)

    def aggregator_config(self) -> AggregatorConfig:
        return AggregatorConfig(
            year_bonus=self.year_bonus,
            doi_bonus=self.doi_bonus,
            provider_priority=list(self.provider_priority),
            min_candidate_similarity=self.min_candidate_similarity,
        )

    def validate(self, available: Iterable[str] | None = None) -> None:
        """Check the configuration before any dispatch.

        Args:
            available: Provider ids that have an implementation. Defaults to the
                built-in registry.

        Raises:
            ConfigurationError: on the first problem found.
        """
        known = set(available) if available is not None else set(PROVIDER_CLASSES)
        # priorities and rate limits may also name built-in providers that are not registered
        registered = known | set(PROVIDER_CLASSES)

        for label, names, allowed in (
            ("enabled_providers", self.enabled_providers, known),
            ("provider_priority", self.provider_priority, registered),
            ("rate_limits", list(self.rate_limits), registered),
        ):
            unknown = sorted(set(names) - allowed)
            if unknown:
                raise ConfigurationError(
                    f"{label}: unknown provider id(s) {', '.join(unknown)} (known: {', '.join(sorted(allowed))})"
                )

        for name in ("concurrency_limit", "per_provider_limit", "max_results"):
            value = getattr(self, name)
            if not isinstance(value, int) or isinstance(value, bool) or value < 1:
                raise ConfigurationError(f"{name} must be a positive integer, got {value!r}")
        for name, limit in self.rate_limits.items():
            if not isinstance(limit, int) or limit < 1:
                raise ConfigurationError(f"rate_limits.{name} must be a positive integer, got {limit!r}")
        for name in _NUMERIC_FIELDS:
            value = getattr(self, name)
            if not isinstance(value, (int, float)) or isinstance(value, bool):
                raise ConfigurationError(f"{name} must be a number, got {value!r}")
        if self.call_timeout <= 0:
            raise ConfigurationError(f"call_timeout must be positive, got {self.call_timeout!r}")
        if self.cache_ttl_days <= 0:
            raise ConfigurationError(f"cache_ttl_days must be positive, got {self.cache_ttl_days!r}")
        if self.retry_backoff < 0:
            raise ConfigurationError(f"retry_backoff must not be negative, got {self.retry_backoff!r}")
        if self.year_bonus < 0 or self.doi_bonus < 0:
            raise ConfigurationError("year_bonus and doi_bonus must not be negative")
        if not 0 <= self.title_warn_threshold <= self.title_ok_threshold <= 100:
            raise ConfigurationError(
                "thresholds must satisfy 0 <= title_warn_threshold <= title_ok_threshold <= 100, got "
                f"{self.title_warn_threshold!r} / {self.title_ok_threshold!r}"
            )
        if not 0 <= self.min_candidate_similarity <= self.title_warn_threshold:
            raise ConfigurationError(
                "min_candidate_similarity must be between 0 and title_warn_threshold, got "
                f"{self.min_candidate_similarity!r}"
            )
