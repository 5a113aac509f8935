"""DBLP publication search."""

from __future__ import annotations

import html
import re
from typing import Any

from bibtex_validator.models import CandidateRecord, Query
from bibtex_validator.providers.base import Provider, expect_dict, expect_list, year_from_date
from bibtex_validator.utils import DBLP_API_SEARCH, doi_normalize, strip_html

# DBLP disambiguates homonyms with a 4-digit suffix: "Wei Wang 0001"
_HOMONYM_SUFFIX_RE = re.compile(r"\s+\d{4}$")


def dblp_hit_to_candidate(hit: dict[str, Any], rank: int | None = None) -> CandidateRecord | None:
    """Convert a DBLP hit to a CandidateRecord."""
    info = hit.get("info") or {}
    title = strip_html(html.unescape(info.get("title") or ""))
    title = (title or "").rstrip(".").strip()
    if not title:
        return None

    authors_field = (info.get("authors") or {}).get("author")
    if isinstance(authors_field, dict):
        authors_field = [authors_field]
    authors: list[str] = []
    for a in authors_field or []:
        name = (a.get("text") or a.get("name") or "") if isinstance(a, dict) else a
        name = _HOMONYM_SUFFIX_RE.sub("", html.unescape(str(name)).strip())
        if name:
            authors.append(name)

    return CandidateRecord(
        provider=DBLPProvider.name,
        title=title,
        year=year_from_date(info.get("year")),
        authors=tuple(authors),
        doi=doi_normalize(info.get("doi")),
        rank=rank,
        venue=info.get("venue") if isinstance(info.get("venue"), str) else info.get("journal"),
        url=info.get("ee") if isinstance(info.get("ee"), str) else info.get("url"),
    )


class DBLPProvider(Provider):
    """Search by normalized title plus first author surname."""

    name = "dblp"

    def fetch_candidates(self, query: Query) -> list[CandidateRecord]:
        http = self._require_http()
        params = {"q": query.search_text, "h": self.max_results, "format": "json"}
        data = http.get_json(DBLP_API_SEARCH, params=params, service=self.name)
        if data is None:
            return []
        result = expect_dict(expect_dict(data, self.name, "response").get("result"), self.name, "result")
        hits = (result.get("hits") or {}).get("hit")
        if isinstance(hits, dict):
            hits = [hits]
        candidates = []
        for i, hit in enumerate(expect_list(hits, self.name, "hits"), start=1):
            if not isinstance(hit, dict):
                continue
            rec = dblp_hit_to_candidate(hit, rank=i)
            if rec:
                candidates.append(rec)
        return candidates
