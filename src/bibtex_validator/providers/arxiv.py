"""arXiv export API (Atom feed)."""

from __future__ import annotations

import html
import re

from bibtex_validator.exceptions import ProviderError
from bibtex_validator.models import CandidateRecord, ErrorKind, Query
from bibtex_validator.providers.base import Provider, year_from_date
from bibtex_validator.utils import ARXIV_API, doi_normalize

_ENTRY_RE = re.compile(r"<entry>(.*?)</entry>", re.DOTALL | re.IGNORECASE)
_TITLE_RE = re.compile(r"<title[^>]*>(.*?)</title>", re.DOTALL | re.IGNORECASE)
_ID_RE = re.compile(r"<id>\s*(https?://arxiv\.org/abs/[^<]+?)\s*</id>", re.IGNORECASE)
_PUBLISHED_RE = re.compile(r"<published>([^<]+)</published>", re.IGNORECASE)
_AUTHOR_RE = re.compile(r"<author>\s*<name>(.*?)</name>", re.DOTALL | re.IGNORECASE)
_DOI_RE = re.compile(r"<(?:arxiv:)?doi[^>]*>([^<]+)</(?:arxiv:)?doi>", re.IGNORECASE)
_JOURNAL_REF_RE = re.compile(r"<arxiv:journal_ref[^>]*>(.*?)</arxiv:journal_ref>", re.DOTALL | re.IGNORECASE)


def _clean(text: str) -> str:
    return re.sub(r"\s+", " ", html.unescape(text)).strip()


def parse_arxiv_feed(xml: str) -> list[CandidateRecord]:
    """Parse an arXiv Atom feed into candidates, in feed order.

    Raises:
        ProviderError: SCHEMA_VIOLATION when the document is not an Atom feed.
    """
    if "<feed" not in xml:
        raise ProviderError(ErrorKind.SCHEMA_VIOLATION, "arxiv: response is not an Atom feed")

    candidates: list[CandidateRecord] = []
    for m in _ENTRY_RE.finditer(xml):
        block = m.group(1)
        # unknown ids come back as an entry pointing at api/errors
        id_match = _ID_RE.search(block)
        if not id_match:
            continue
        title_match = _TITLE_RE.search(block)
        title = _clean(title_match.group(1)) if title_match else ""
        if not title:
            continue
        published = _PUBLISHED_RE.search(block)
        doi_match = _DOI_RE.search(block)
        journal = _JOURNAL_REF_RE.search(block)
        candidates.append(
            CandidateRecord(
                provider=ArxivProvider.name,
                title=title,
                year=year_from_date(published.group(1)) if published else None,
                authors=tuple(_clean(a) for a in _AUTHOR_RE.findall(block) if a.strip()),
                doi=doi_normalize(doi_match.group(1)) if doi_match else None,
                rank=len(candidates) + 1,
                venue=_clean(journal.group(1)) if journal else "arXiv",
                url=id_match.group(1),
            )
        )
    return candidates


class ArxivProvider(Provider):
    """id_list lookup when an arXiv id is known, exact title search otherwise."""

    name = "arxiv"

    def fetch_candidates(self, query: Query) -> list[CandidateRecord]:
        http = self._require_http()
        if query.arxiv_id:
            params = {"id_list": query.arxiv_id, "max_results": 1}
        else:
            phrase = re.sub(r'["]', "", query.title)
            params = {"search_query": f'ti:"{phrase}"', "start": 0, "max_results": self.max_results}
        xml = http.get_text(ARXIV_API, params=params, accept="application/atom+xml", service=self.name)
        if not xml:
            return []
        return parse_arxiv_feed(xml)
