"""Exception hierarchy for the reconciliation engine.

Only ``ConfigurationError`` is fatal to a run. Everything else is caught at the
entry or provider boundary and turned into a verdict or an outcome.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from bibtex_validator.models import ErrorKind


class ValidatorError(Exception):
    """Base class for all bibtex_validator errors."""


class MalformedEntry(ValidatorError):
    """A local entry cannot be validated (empty key or title, duplicate key)."""

    def __init__(self, key: str, reason: str) -> None:
        super().__init__(f"{key or '<no key>'}: {reason}")
        self.key = key
        self.reason = reason


class ProviderError(ValidatorError):
    """A provider call failed with a classified error kind."""

    def __init__(self, kind: ErrorKind, message: str = "") -> None:
        super().__init__(message or kind.value)
        self.kind = kind
        self.message = message


class CacheIOError(ValidatorError):
    """A cache record could not be read or written."""


class ConfigurationError(ValidatorError):
    """Invalid run configuration, raised before any dispatch begins."""
