"""Shared bibliographic utilities.

Includes text normalization, author splitting, DOI/arXiv handling, per-service
rate limiting and the HTTP client every provider talks through.
"""

from __future__ import annotations

import re
import threading
import time
import unicodedata
from typing import Any

import httpx

from bibtex_validator.exceptions import ProviderError
from bibtex_validator.models import ErrorKind

# ------------- Constants & Regex -------------

ARXIV_ID_RE = re.compile(
    r"""
    (?:
        arxiv[:\s/]?   # prefix
    )?
    (?P<id>
        (?:\d{4}\.\d{4,5})(?:v\d+)?   # new style
        |
        (?:[a-z\-]+(?:\.[A-Z]{2})?/\d{7})(?:v\d+)?  # old style e.g., cs/0301001
    )
    """,
    re.IGNORECASE | re.VERBOSE,
)

ARXIV_HOST_RE = re.compile(
    r"https?://(?:www\.)?arxiv\.org/(?:abs|pdf)/(?P<id>[^?/]+?)(?:\.pdf)?(?:[?#].*)?$",
    re.IGNORECASE,
)

# API endpoints
CROSSREF_API = "https://api.crossref.org/works"
ARXIV_API = "http://export.arxiv.org/api/query"
DBLP_API_SEARCH = "https://dblp.org/search/publ/api"
S2_API = "https://api.semanticscholar.org/graph/v1"
OPENALEX_API = "https://api.openalex.org"
ZENODO_API = "https://zenodo.org/api/records"

DEFAULT_USER_AGENT = "bibtex-validator/0.3 (mailto:bibtex-validator@example.com)"


# ------------- Text Normalization -------------


def strip_diacritics(text: str) -> str:
    """Remove diacritics from text (e.g., 'café' -> 'cafe')."""
    nfkd = unicodedata.normalize("NFKD", text)
    return "".join([c for c in nfkd if not unicodedata.combining(c)])


# Accent commands like \"o, \'{e} or \c{c} keep their base letter.
_LATEX_SYMBOL_ACCENT_RE = re.compile(r"\\[\"'`^~=.]\s*\{?([a-zA-Z])\}?")
_LATEX_LETTER_ACCENT_RE = re.compile(r"\\[uvHckr]\s*\{([a-zA-Z])\}")
_LATEX_CMD_RE = re.compile(r"\\[a-zA-Z]+\*?(\s*\[[^\]]*\])?")
_LATEX_MATH_RE = re.compile(r"\$[^$]*\$")
_BRACES_RE = re.compile(r"[{}]")


def latex_to_plain(text: str) -> str:
    """Remove LaTeX commands, math, and braces from text.

    Command arguments are kept, so ``\\textbf{Deep} Nets`` becomes ``Deep Nets``.
    """
    if not text:
        return ""
    t = _LATEX_MATH_RE.sub(" ", text)
    t = _LATEX_SYMBOL_ACCENT_RE.sub(r"\1", t)
    t = _LATEX_LETTER_ACCENT_RE.sub(r"\1", t)
    t = _LATEX_CMD_RE.sub(" ", t)
    t = t.replace("\\&", "&").replace("~", " ")
    t = _BRACES_RE.sub("", t)
    t = re.sub(r"\s+", " ", t)
    return t.strip()


def normalize_title_for_match(title: str) -> str:
    """Normalize a title for fuzzy matching.

    Removes LaTeX, diacritics, punctuation, and extra whitespace.
    Converts to lowercase.
    """
    t = latex_to_plain(title)
    t = strip_diacritics(t).lower()
    t = re.sub(r"[^a-z0-9\s]", " ", t)
    t = re.sub(r"\s+", " ", t).strip()
    return t


def strip_html(text: str | None) -> str | None:
    """Drop inline markup some APIs put in titles (<i>, <sub>, ...)."""
    if text is None:
        return None
    return re.sub(r"<[^>]*>", "", text).strip()


# ------------- Author Handling -------------


def split_authors_bibtex(author_field: str) -> list[str]:
    """Split BibTeX 'A and B and C' author string into individual names."""
    if not author_field:
        return []
    parts = [p.strip() for p in re.split(r"\s+\band\b\s+", author_field, flags=re.IGNORECASE) if p.strip()]
    return parts


# ------------- DOI & arXiv Utilities -------------


def doi_normalize(doi: str | None) -> str | None:
    """Normalize a DOI by removing URL/doi: prefix and lowercasing."""
    if not doi:
        return None
    d = doi.strip()
    d = re.sub(r"^https?://(dx\.)?doi\.org/", "", d, flags=re.IGNORECASE)
    d = re.sub(r"^doi:\s*", "", d, flags=re.IGNORECASE)
    return d.lower() or None


def extract_arxiv_id_from_text(text: str) -> str | None:
    """Extract arXiv ID from a text string (URL, eprint field, note, etc.)."""
    if not text:
        return None
    m = ARXIV_HOST_RE.search(text.strip())
    if m:
        return m.group("id")
    m = ARXIV_ID_RE.search(text)
    if m:
        return m.group("id")
    return None


def strip_arxiv_version(arxiv_id: str) -> str:
    return re.sub(r"v\d+$", "", arxiv_id)


def parse_year(value: Any) -> int | None:
    """Leading four-digit year of an int or string like '2019', '{2019}', '2019a'."""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value if value > 0 else None
    m = re.match(r"^\s*\{?\s*(\d{4})(?!\d)", str(value))
    return int(m.group(1)) if m else None


# ------------- Rate Limiting -------------


class RateLimiter:
    """Thread-safe sliding-window rate limiter for API requests."""

    def __init__(self, req_per_min: int) -> None:
        self.req_per_min = max(req_per_min, 1)
        self.lock = threading.Lock()
        self.timestamps: list[float] = []

    def wait(self) -> None:
        """Block until a request can be made within the rate limit.

        The lock is not held while sleeping.
        """
        window = 60.0
        while True:
            with self.lock:
                now = time.time()
                self.timestamps = [t for t in self.timestamps if now - t < window]
                if len(self.timestamps) < self.req_per_min:
                    self.timestamps.append(now)
                    return
                sleep_for = window - (now - min(self.timestamps)) + 0.01
            time.sleep(max(sleep_for, 0.0))


class RateLimiterRegistry:
    """Manages per-service rate limiters.

    Each provider gets its own limiter, so a slow service never throttles the
    others.
    """

    DEFAULT_LIMITS = {
        "crossref": 50,  # Crossref: 50/min polite pool
        "semanticscholar": 100,  # S2: 100/min (1000 with API key)
        "dblp": 30,  # DBLP: 30/min (conservative)
        "arxiv": 30,  # arXiv: 30/min
        "openalex": 100,  # OpenAlex: polite pool (~10 req/sec max)
        "zenodo": 60,  # Zenodo: 60/min for guests
    }

    def __init__(self, limits: dict[str, int] | None = None) -> None:
        """Initialize the registry with optional custom limits.

        Args:
            limits: Optional dict of service name to requests per minute.
                   Overrides DEFAULT_LIMITS for specified services.
        """
        self._limits = {**self.DEFAULT_LIMITS, **(limits or {})}
        self._limiters: dict[str, RateLimiter] = {}
        self._lock = threading.Lock()

    def get(self, service: str) -> RateLimiter:
        """Get or create rate limiter for service."""
        with self._lock:
            if service not in self._limiters:
                limit = self._limits.get(service, 30)  # Default 30/min
                self._limiters[service] = RateLimiter(limit)
            return self._limiters[service]

    def wait(self, service: str) -> None:
        self.get(service).wait()


# ------------- HTTP Client -------------


class HttpClient:
    """HTTP client with per-service rate limiting and error classification.

    Failures are raised as ``ProviderError`` with the matching ``ErrorKind``;
    retries are left to the dispatcher so that one retry policy governs every
    provider.
    """

    RATE_LIMITED_STATUS = {429}
    NOT_FOUND_STATUS = {404, 410}

    def __init__(
        self,
        timeout: float,
        user_agent: str = DEFAULT_USER_AGENT,
        rate_limiter: RateLimiterRegistry | None = None,
        s2_api_key: str | None = None,
        client: httpx.Client | None = None,
    ):
        """Initialize HTTP client.

        Args:
            timeout: Request timeout in seconds
            user_agent: User-Agent header value
            rate_limiter: Per-service limiter registry (a default one is created if omitted)
            s2_api_key: Optional Semantic Scholar API key for authenticated requests
            client: Preconfigured httpx client (tests pass a MockTransport-backed one)
        """
        self.client = client or httpx.Client(
            timeout=httpx.Timeout(timeout),
            headers={"User-Agent": user_agent},
            follow_redirects=True,
        )
        self.rate_limiter = rate_limiter or RateLimiterRegistry()
        self.s2_api_key = s2_api_key
        self._local = threading.local()

    def close(self) -> None:
        self.client.close()

    def throttle(self, service: str) -> None:
        """Take a rate-limit token for ``service`` ahead of the next request.

        The next request this thread makes to ``service`` uses the token
        instead of waiting again.
        """
        self.rate_limiter.wait(service)
        self._local.reserved = service

    def _take_token(self, service: str) -> None:
        if getattr(self._local, "reserved", None) == service:
            self._local.reserved = None
            return
        self.rate_limiter.wait(service)

    def _request(
        self,
        method: str,
        url: str,
        params: dict[str, Any] | None = None,
        accept: str | None = None,
        service: str | None = None,
    ) -> httpx.Response | None:
        """Make one rate-limited request.

        Returns None for "no such record" statuses; raises ProviderError for
        everything that is not a usable 2xx response.
        """
        self._take_token(service or "default")
        headers = {"Accept": accept} if accept else {}
        if service == "semanticscholar" and self.s2_api_key:
            headers["x-api-key"] = self.s2_api_key
        try:
            resp = self.client.request(method, url, params=params, headers=headers)
        except httpx.TimeoutException as e:
            raise ProviderError(ErrorKind.TIMEOUT, f"{service}: request timed out ({e})") from e
        except httpx.HTTPError as e:
            raise ProviderError(ErrorKind.NETWORK_FAILURE, f"{service}: {e}") from e

        status = resp.status_code
        if status in self.NOT_FOUND_STATUS:
            return None
        if status in self.RATE_LIMITED_STATUS:
            raise ProviderError(ErrorKind.RATE_LIMITED, f"{service}: HTTP {status}")
        if status >= 400:
            raise ProviderError(ErrorKind.NETWORK_FAILURE, f"{service}: HTTP {status}")
        return resp

    def get_json(self, url: str, params: dict[str, Any] | None = None, service: str | None = None) -> Any:
        """GET a JSON document; None when the record does not exist."""
        resp = self._request("GET", url, params=params, accept="application/json", service=service)
        if resp is None:
            return None
        try:
            return resp.json()
        except ValueError as e:
            raise ProviderError(ErrorKind.SCHEMA_VIOLATION, f"{service}: response is not JSON") from e

    def get_text(
        self,
        url: str,
        params: dict[str, Any] | None = None,
        accept: str | None = None,
        service: str | None = None,
    ) -> str | None:
        resp = self._request("GET", url, params=params, accept=accept, service=service)
        return None if resp is None else resp.text
