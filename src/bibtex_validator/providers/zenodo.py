"""Zenodo records search (software, datasets, reports)."""

from __future__ import annotations

from typing import Any

from bibtex_validator.models import CandidateRecord, Query
from bibtex_validator.providers.base import Provider, expect_dict, expect_list, year_from_date
from bibtex_validator.utils import ZENODO_API, doi_normalize

ZENODO_DOI_PREFIX = "10.5281/zenodo."


def zenodo_record_to_candidate(record: dict[str, Any], rank: int | None = None) -> CandidateRecord | None:
    """Convert a Zenodo record to a CandidateRecord.

    Creators are already in "Family, Given" form.
    """
    metadata = record.get("metadata") or {}
    title = (metadata.get("title") or "").strip()
    if not title:
        return None
    creators = tuple(c["name"] for c in metadata.get("creators") or [] if isinstance(c, dict) and c.get("name"))
    links = record.get("links") or {}
    return CandidateRecord(
        provider=ZenodoProvider.name,
        title=title,
        year=year_from_date(metadata.get("publication_date")),
        authors=creators,
        doi=doi_normalize(metadata.get("doi") or record.get("doi")),
        rank=rank,
        venue="Zenodo",
        url=links.get("html") or links.get("self"),
    )


class ZenodoProvider(Provider):
    """DOI query for Zenodo DOIs, title phrase query otherwise."""

    name = "zenodo"

    def fetch_candidates(self, query: Query) -> list[CandidateRecord]:
        http = self._require_http()
        if query.doi and query.doi.startswith(ZENODO_DOI_PREFIX):
            q = f'doi:"{query.doi}"'
        else:
            q = 'title:"{}"'.format(query.title.replace('"', ""))
        data = http.get_json(ZENODO_API, params={"q": q, "size": self.max_results}, service=self.name)
        if data is None:
            return []
        hits = expect_dict(expect_dict(data, self.name, "response").get("hits"), self.name, "hits")
        candidates = []
        for i, record in enumerate(expect_list(hits.get("hits"), self.name, "hits.hits"), start=1):
            if not isinstance(record, dict):
                continue
            rec = zenodo_record_to_candidate(record, rank=i)
            if rec:
                candidates.append(rec)
        return candidates
