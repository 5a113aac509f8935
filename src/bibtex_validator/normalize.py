"""Canonicalization of local entries into comparable form."""

from __future__ import annotations

import re

from bibtex_validator.exceptions import MalformedEntry
from bibtex_validator.models import Entry, NormalizedEntry, PersonName, Query
from bibtex_validator.utils import (
    doi_normalize,
    latex_to_plain,
    normalize_title_for_match,
    parse_year,
    strip_arxiv_version,
    strip_diacritics,
)

OTHERS_MARKERS = {"others", "et al", "et al."}

# Lowercase name particles that belong to the surname ("van der Berg").
_PARTICLES = {"van", "von", "der", "den", "de", "del", "della", "di", "da", "du", "la", "le", "ter", "ten", "bin", "al"}


def _normalize_name_part(text: str) -> str:
    t = strip_diacritics(latex_to_plain(text)).lower()
    t = re.sub(r"[^a-z0-9\s-]", "", t)
    return re.sub(r"\s+", " ", t).strip()


def _given_tokens(given: str) -> tuple[str, ...]:
    # "J.R.R." and "Jean-Paul" both split into separate given names
    plain = strip_diacritics(latex_to_plain(given)).lower()
    return tuple(tok for tok in re.split(r"[\s.\-]+", re.sub(r"[^a-z\s.\-]", "", plain)) if tok)


def parse_person_name(name: str) -> PersonName | None:
    """Parse 'Family, Given', 'Family, Jr, Given' or 'Given Family'.

    Returns None for names that normalize to nothing.
    """
    display = latex_to_plain(name).strip()
    if not display:
        return None

    if "," in display:
        parts = [p.strip() for p in display.split(",")]
        family = parts[0]
        given = parts[-1] if len(parts) > 1 else ""
    else:
        tokens = display.split()
        if len(tokens) == 1:
            family, given = tokens[0], ""
        else:
            # the surname starts at the first lowercase particle, else the last token
            start = len(tokens) - 1
            for i, tok in enumerate(tokens[1:-1], start=1):
                if tok.lower() in _PARTICLES and tok[:1].islower():
                    start = i
                    break
            family = " ".join(tokens[start:])
            given = " ".join(tokens[:start])

    surname = _normalize_name_part(family)
    if not surname:
        return None
    given_names = _given_tokens(given)
    initials = "".join(g[0] for g in given_names)
    return PersonName(surname=surname, initials=initials, given=given_names, display=display)


def parse_authors(authors: tuple[str, ...] | list[str]) -> tuple[tuple[PersonName, ...], bool]:
    """Parse an ordered author list.

    Returns the parsed names and whether the list was truncated with 'others'.
    """
    parsed: list[PersonName] = []
    truncated = False
    for raw in authors:
        if raw.strip().lower() in OTHERS_MARKERS:
            truncated = True
            continue
        person = parse_person_name(raw)
        if person is not None:
            parsed.append(person)
    return tuple(parsed), truncated


def normalize_entry(entry: Entry) -> NormalizedEntry:
    """Canonicalize every comparable field of an entry.

    Raises:
        MalformedEntry: when the key or the normalized title is empty.
    """
    key = (entry.key or "").strip()
    if not key:
        raise MalformedEntry(key, "missing citation key")
    title = normalize_title_for_match(entry.title or "")
    if not title:
        raise MalformedEntry(key, "missing or empty title")

    authors, truncated = parse_authors(entry.authors)
    arxiv_id = strip_arxiv_version(entry.arxiv_id.strip()) if entry.arxiv_id else None
    venue = latex_to_plain(entry.venue).strip() if entry.venue else ""
    return NormalizedEntry(
        key=key,
        entry_type=(entry.entry_type or "misc").lower(),
        title=title,
        title_tokens=tuple(title.split()),
        display_title=latex_to_plain(entry.title),
        authors=authors,
        year=parse_year(entry.year),
        doi=doi_normalize(entry.doi),
        arxiv_id=arxiv_id or None,
        truncated_authors=truncated,
        venue=venue or None,
    )


def build_query(normalized: NormalizedEntry) -> Query:
    """Derive provider search parameters from a normalized entry."""
    return Query(
        title=normalized.display_title,
        title_tokens=normalized.title_tokens,
        surnames=tuple(a.surname for a in normalized.authors),
        year=normalized.year,
        doi=normalized.doi,
        arxiv_id=normalized.arxiv_id,
    )
