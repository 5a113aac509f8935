"""OpenAlex works API."""

from __future__ import annotations

from typing import Any

from bibtex_validator.models import CandidateRecord, Query
from bibtex_validator.providers.base import Provider, expect_dict, expect_list, year_from_date
from bibtex_validator.utils import OPENALEX_API, doi_normalize


def openalex_work_to_candidate(work: dict[str, Any], rank: int | None = None) -> CandidateRecord | None:
    """Convert an OpenAlex work to a CandidateRecord.

    OpenAlex DOIs come as full URLs and are normalized here.
    """
    title = (work.get("title") or work.get("display_name") or "").strip()
    if not title:
        return None

    authors: list[str] = []
    for authorship in work.get("authorships") or []:
        display_name = ((authorship or {}).get("author") or {}).get("display_name")
        if display_name:
            authors.append(display_name)

    source = ((work.get("primary_location") or {}).get("source")) or {}
    return CandidateRecord(
        provider=OpenAlexProvider.name,
        title=title,
        year=year_from_date(work.get("publication_year")),
        authors=tuple(authors),
        doi=doi_normalize(work.get("doi")),
        rank=rank,
        venue=source.get("display_name"),
        url=work.get("id"),
    )


class OpenAlexProvider(Provider):
    """Work lookup by DOI, full-text title search otherwise."""

    name = "openalex"

    def __init__(self, *args: Any, mailto: str | None = None, **kwargs: Any):
        super().__init__(*args, **kwargs)
        self.mailto = mailto

    def _params(self, extra: dict[str, Any] | None = None) -> dict[str, Any]:
        params = dict(extra or {})
        if self.mailto:
            params["mailto"] = self.mailto
        return params

    def fetch_candidates(self, query: Query) -> list[CandidateRecord]:
        http = self._require_http()
        if query.doi:
            data = http.get_json(f"{OPENALEX_API}/works/doi:{query.doi}", params=self._params(), service=self.name)
            if data is not None:
                rec = openalex_work_to_candidate(expect_dict(data, self.name, "work"), rank=1)
                return [rec] if rec else []
            self.logger.debug("openalex: DOI %s unknown, falling back to search", query.doi)

        params = self._params({"search": query.title, "per-page": self.max_results})
        data = http.get_json(f"{OPENALEX_API}/works", params=params, service=self.name)
        if data is None:
            return []
        works = expect_list(expect_dict(data, self.name, "response").get("results"), self.name, "results")
        candidates = []
        for i, work in enumerate(works, start=1):
            if not isinstance(work, dict):
                continue
            rec = openalex_work_to_candidate(work, rank=i)
            if rec:
                candidates.append(rec)
        return candidates
