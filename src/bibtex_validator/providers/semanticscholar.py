"""Semantic Scholar graph API."""

from __future__ import annotations

from typing import Any
from urllib.parse import quote

from bibtex_validator.models import CandidateRecord, Query
from bibtex_validator.providers.base import Provider, expect_dict, expect_list, year_from_date
from bibtex_validator.utils import S2_API, doi_normalize


def s2_data_to_candidate(data: dict[str, Any], rank: int | None = None) -> CandidateRecord | None:
    """Convert Semantic Scholar paper data to a CandidateRecord."""
    title = (data.get("title") or "").strip()
    if not title:
        return None
    external_ids = data.get("externalIds") or {}
    authors = tuple(a["name"] for a in data.get("authors") or [] if isinstance(a, dict) and a.get("name"))
    venue = (data.get("publicationVenue") or {}).get("name") or data.get("venue") or None
    return CandidateRecord(
        provider=SemanticScholarProvider.name,
        title=title,
        year=year_from_date(data.get("year")),
        authors=authors,
        doi=doi_normalize(external_ids.get("DOI")),
        rank=rank,
        venue=venue,
        url=data.get("url"),
    )


class SemanticScholarProvider(Provider):
    """Paper lookup by DOI or arXiv id, keyword search otherwise."""

    name = "semanticscholar"

    FIELDS = "title,authors,venue,year,externalIds,publicationVenue,url"

    def fetch_candidates(self, query: Query) -> list[CandidateRecord]:
        http = self._require_http()
        paper_id = None
        if query.doi:
            paper_id = f"DOI:{query.doi}"
        elif query.arxiv_id:
            paper_id = f"ARXIV:{query.arxiv_id}"

        if paper_id:
            data = http.get_json(
                f"{S2_API}/paper/{quote(paper_id, safe=':/')}", params={"fields": self.FIELDS}, service=self.name
            )
            if data is not None:
                rec = s2_data_to_candidate(expect_dict(data, self.name, "paper"), rank=1)
                return [rec] if rec else []
            self.logger.debug("semanticscholar: %s unknown, falling back to search", paper_id)

        params = {"query": query.title, "limit": self.max_results, "fields": self.FIELDS}
        data = http.get_json(f"{S2_API}/paper/search", params=params, service=self.name)
        if data is None:
            return []
        papers = expect_list(expect_dict(data, self.name, "response").get("data"), self.name, "data")
        candidates = []
        for i, paper in enumerate(papers, start=1):
            if not isinstance(paper, dict):
                continue
            rec = s2_data_to_candidate(paper, rank=i)
            if rec:
                candidates.append(rec)
        return candidates
