"""BibTeX input."""

from __future__ import annotations

from typing import Any

import bibtexparser
from bibtexparser.bparser import BibTexParser

from bibtex_validator.models import Entry
from bibtex_validator.utils import extract_arxiv_id_from_text, split_authors_bibtex

_ARXIV_FIELDS = ("eprint", "arxiv", "url", "journal", "note", "howpublished")


def _arxiv_id(record: dict[str, Any]) -> str | None:
    # eprint is only an arXiv id when archiveprefix is absent or says arXiv
    prefix = (record.get("archiveprefix") or record.get("eprinttype") or "arxiv").lower()
    for name in _ARXIV_FIELDS:
        if name == "eprint" and prefix != "arxiv":
            continue
        value = record.get(name)
        if not value:
            continue
        if name in ("journal", "note", "howpublished") and "arxiv" not in value.lower():
            continue
        found = extract_arxiv_id_from_text(value)
        if found:
            return found
    return None


def record_to_entry(record: dict[str, Any]) -> Entry:
    """Convert a bibtexparser record to an Entry."""
    return Entry(
        key=record.get("ID", ""),
        title=record.get("title", ""),
        authors=tuple(split_authors_bibtex(record.get("author", ""))),
        year=record.get("year") or None,
        doi=record.get("doi") or None,
        entry_type=(record.get("ENTRYTYPE") or "misc").lower(),
        arxiv_id=_arxiv_id(record),
        venue=record.get("journal") or record.get("booktitle") or None,
    )


class BibLoader:
    """Loads .bib files into entries, in file order."""

    def _parser(self) -> BibTexParser:
        parser = BibTexParser(common_strings=True, ignore_nonstandard_types=False)
        parser.customization = None
        return parser

    def loads(self, text: str) -> list[Entry]:
        db = bibtexparser.loads(text, parser=self._parser())
        return [record_to_entry(r) for r in db.entries]

    def load_file(self, path: str) -> list[Entry]:
        with open(path, encoding="utf-8") as f:
            db = bibtexparser.load(f, parser=self._parser())
        return [record_to_entry(r) for r in db.entries]
