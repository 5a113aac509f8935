"""BibTeX Validator - check bibliographies against academic metadata providers.

Each entry is looked up concurrently in several providers (Crossref, DBLP,
arXiv, Semantic Scholar, OpenAlex, Zenodo), provider responses are cached on
disk, the best candidate is compared field by field with the local entry, and
every entry gets one verdict of deterministic severity.

Example usage:
    from bibtex_validator import BibLoader, BibValidator, ValidatorConfig

    entries = BibLoader().load_file("refs.bib")
    with BibValidator(ValidatorConfig(strict=True)) as validator:
        report = validator.validate(entries)
    print(format_report(report))
"""

from bibtex_validator._version import __version__
from bibtex_validator.aggregator import AggregatorConfig, VerdictAggregator, score_candidate
from bibtex_validator.cache import CacheStore, query_fingerprint
from bibtex_validator.config import ValidatorConfig
from bibtex_validator.dispatcher import DispatchResult, Dispatcher
from bibtex_validator.engine import BibValidator
from bibtex_validator.exceptions import (
    CacheIOError,
    ConfigurationError,
    MalformedEntry,
    ProviderError,
    ValidatorError,
)
from bibtex_validator.loader import BibLoader, record_to_entry
from bibtex_validator.matcher import MatcherConfig, compare, title_similarity
from bibtex_validator.models import (
    CacheRecord,
    CandidateRecord,
    Entry,
    EntryVerdict,
    ErrorKind,
    FieldDiscrepancy,
    NormalizedEntry,
    OutcomeKind,
    PersonName,
    ProviderOutcome,
    Query,
    Severity,
)
from bibtex_validator.normalize import build_query, normalize_entry, parse_person_name
from bibtex_validator.providers import DEFAULT_PROVIDER_ORDER, PROVIDER_CLASSES, Provider, build_providers
from bibtex_validator.report import Report, ReportAssembler, format_report
from bibtex_validator.utils import (
    HttpClient,
    RateLimiter,
    RateLimiterRegistry,
    doi_normalize,
    extract_arxiv_id_from_text,
    latex_to_plain,
    normalize_title_for_match,
    split_authors_bibtex,
    strip_diacritics,
)

__all__ = [
    "__version__",
    # Engine
    "BibValidator",
    "ValidatorConfig",
    "BibLoader",
    "record_to_entry",
    # Pipeline stages
    "normalize_entry",
    "build_query",
    "parse_person_name",
    "CacheStore",
    "query_fingerprint",
    "Dispatcher",
    "DispatchResult",
    "MatcherConfig",
    "compare",
    "title_similarity",
    "AggregatorConfig",
    "VerdictAggregator",
    "score_candidate",
    "Report",
    "ReportAssembler",
    "format_report",
    # Providers
    "Provider",
    "PROVIDER_CLASSES",
    "DEFAULT_PROVIDER_ORDER",
    "build_providers",
    # Models
    "Entry",
    "PersonName",
    "NormalizedEntry",
    "Query",
    "CandidateRecord",
    "ProviderOutcome",
    "OutcomeKind",
    "ErrorKind",
    "Severity",
    "FieldDiscrepancy",
    "EntryVerdict",
    "CacheRecord",
    # Exceptions
    "ValidatorError",
    "MalformedEntry",
    "ProviderError",
    "CacheIOError",
    "ConfigurationError",
    # Utilities
    "HttpClient",
    "RateLimiter",
    "RateLimiterRegistry",
    "doi_normalize",
    "extract_arxiv_id_from_text",
    "latex_to_plain",
    "normalize_title_for_match",
    "split_authors_bibtex",
    "strip_diacritics",
]
