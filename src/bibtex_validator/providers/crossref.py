"""Crossref works API."""

from __future__ import annotations

from typing import Any
from urllib.parse import quote

from bibtex_validator.models import CandidateRecord, Query
from bibtex_validator.providers.base import Provider, expect_dict, expect_list
from bibtex_validator.utils import CROSSREF_API, doi_normalize, strip_html


def crossref_message_to_candidate(msg: dict[str, Any], rank: int | None = None) -> CandidateRecord | None:
    """Convert a Crossref works message to a CandidateRecord."""
    titles = msg.get("title") or []
    title = strip_html(titles[0]) if titles else None
    if not title:
        return None

    # Authors - handle given/family and literal formats
    authors: list[str] = []
    for a in msg.get("author", []) or []:
        given = a.get("given") or ""
        family = a.get("family") or ""
        if family:
            authors.append(f"{family}, {given}" if given else family)
        elif a.get("literal"):
            authors.append(a["literal"])
        elif a.get("name"):
            authors.append(a["name"])

    # Publication date - check multiple date fields
    pubyear = None
    for dt_key in ("published-print", "published-online", "issued", "published", "created"):
        parts = (msg.get(dt_key) or {}).get("date-parts")
        if parts and parts[0] and parts[0][0]:
            pubyear = int(parts[0][0])
            break

    container = msg.get("container-title") or []
    return CandidateRecord(
        provider=CrossrefProvider.name,
        title=title,
        year=pubyear,
        authors=tuple(authors),
        doi=doi_normalize(msg.get("DOI")),
        rank=rank,
        venue=container[0] if container else None,
        url=msg.get("URL"),
    )


class CrossrefProvider(Provider):
    """DOI lookup when the entry has one, bibliographic search otherwise."""

    name = "crossref"

    def fetch_candidates(self, query: Query) -> list[CandidateRecord]:
        http = self._require_http()
        if query.doi:
            data = http.get_json(f"{CROSSREF_API}/{quote(query.doi, safe='')}", service=self.name)
            if data is not None:
                msg = expect_dict(expect_dict(data, self.name, "response").get("message"), self.name, "message")
                rec = crossref_message_to_candidate(msg, rank=1)
                return [rec] if rec else []
            self.logger.debug("crossref: DOI %s unknown, falling back to search", query.doi)

        text = " ".join([query.title, *query.surnames[:3]]).strip()
        params = {"query.bibliographic": text, "rows": self.max_results}
        data = http.get_json(CROSSREF_API, params=params, service=self.name)
        if data is None:
            return []
        message = expect_dict(expect_dict(data, self.name, "response").get("message"), self.name, "message")
        items = expect_list(message.get("items"), self.name, "items")
        candidates = []
        for i, item in enumerate(items, start=1):
            if not isinstance(item, dict):
                continue
            rec = crossref_message_to_candidate(item, rank=i)
            if rec:
                candidates.append(rec)
        return candidates
