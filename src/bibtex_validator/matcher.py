"""Field-level comparison of a local entry against one candidate record."""

from __future__ import annotations

from dataclasses import dataclass

from rapidfuzz import fuzz
from rapidfuzz.distance import JaroWinkler
from rapidfuzz.fuzz import token_sort_ratio

from bibtex_validator.models import CandidateRecord, FieldDiscrepancy, NormalizedEntry, PersonName, Severity
from bibtex_validator.normalize import parse_authors
from bibtex_validator.utils import doi_normalize, normalize_title_for_match

NONE_VALUE = "(none)"


@dataclass
class MatcherConfig:
    """Similarity thresholds, all on a 0-100 scale."""

    title_ok_threshold: float = 95.0
    title_warn_threshold: float = 80.0
    surname_fuzzy_threshold: float = 85.0
    venue_threshold: float = 70.0


def title_similarity(a: str | None, b: str | None) -> float:
    """Token-order independent similarity of two titles in [0, 100]."""
    na = normalize_title_for_match(a or "")
    nb = normalize_title_for_match(b or "")
    if not na or not nb:
        return 0.0
    return float(token_sort_ratio(na, nb))


# ------------- Field comparisons -------------


def compare_title(
    local: NormalizedEntry, candidate: CandidateRecord, config: MatcherConfig
) -> FieldDiscrepancy | None:
    if not candidate.title:
        return None
    similarity = title_similarity(local.title, candidate.title)
    if similarity >= config.title_ok_threshold:
        return None
    if similarity >= config.title_warn_threshold:
        severity, message = Severity.WARN, f"Title slightly different (similarity: {similarity:.0f}%)"
    else:
        severity, message = Severity.ERROR, f"Title significantly different (similarity: {similarity:.0f}%)"
    return FieldDiscrepancy("title", local.display_title, candidate.title, severity, message, candidate.provider)


def compare_year(local: NormalizedEntry, candidate: CandidateRecord) -> FieldDiscrepancy | None:
    if local.year is None or candidate.year is None or local.year == candidate.year:
        return None
    return FieldDiscrepancy(
        "year",
        str(local.year),
        str(candidate.year),
        Severity.ERROR,
        f"Year mismatch: {local.year} vs {candidate.year}",
        candidate.provider,
    )


def compare_doi(local: NormalizedEntry, candidate: CandidateRecord) -> FieldDiscrepancy | None:
    remote = doi_normalize(candidate.doi)
    if not remote:
        return None
    if not local.doi:
        return FieldDiscrepancy("doi", NONE_VALUE, remote, Severity.WARN, "Missing DOI", candidate.provider)
    if local.doi != remote:
        return FieldDiscrepancy(
            "doi", local.doi, remote, Severity.ERROR, f"DOI mismatch: {local.doi} vs {remote}", candidate.provider
        )
    return None


def compare_venue(
    local: NormalizedEntry, candidate: CandidateRecord, config: MatcherConfig
) -> FieldDiscrepancy | None:
    """Informational note when both sides name a venue and the names differ.

    Reported as OK so it never raises the verdict's severity.
    """
    if not local.venue or not candidate.venue:
        return None
    a = normalize_title_for_match(local.venue)
    b = normalize_title_for_match(candidate.venue)
    if not a or not b:
        return None
    if JaroWinkler.normalized_similarity(a, b) * 100 >= config.venue_threshold:
        return None
    return FieldDiscrepancy(
        "venue", local.venue, candidate.venue, Severity.OK, "Venue name differs", candidate.provider
    )


def _given_compatible(a: PersonName, b: PersonName) -> bool:
    """Each aligned given name is equal or an initial of the other."""
    for ga, gb in zip(a.given, b.given):
        if ga == gb:
            continue
        if (len(ga) == 1 or len(gb) == 1) and ga[0] == gb[0]:
            continue
        return False
    return True


def _involves_abbreviation(a: PersonName, b: PersonName) -> bool:
    return any(ga != gb and (len(ga) == 1 or len(gb) == 1) for ga, gb in zip(a.given, b.given))


def _pair_off(
    local: list[PersonName], remote: list[PersonName], accept
) -> list[tuple[PersonName, PersonName]]:
    """Greedily pair names satisfying ``accept``; matched names are removed in place."""
    pairs = []
    for la in list(local):
        for rb in remote:
            if accept(la, rb):
                pairs.append((la, rb))
                local.remove(la)
                remote.remove(rb)
                break
    return pairs


def compare_authors(
    local: NormalizedEntry, candidate: CandidateRecord, config: MatcherConfig
) -> list[FieldDiscrepancy]:
    """Set comparison of author lists, independent of order.

    Passes, strictest first: exact name; same surname with compatible given
    names; same surname with differing initials; near-identical surname.
    Whatever is left is missing or extra.
    """
    remote_names, _ = parse_authors(candidate.authors)
    if not local.authors or not remote_names:
        return []

    def order(p: PersonName) -> tuple[str, str, str]:
        return (p.surname, p.initials, p.display)

    left = sorted(local.authors, key=order)
    right = sorted(remote_names, key=order)
    provider = candidate.provider
    found: list[FieldDiscrepancy] = []

    # 1. exact; a bare surname on either side counts as exact
    _pair_off(left, right, lambda a, b: a.surname == b.surname and (a.given == b.given or not a.given or not b.given))

    # 2. same surname, given names compatible ("J." vs "John", dropped middle name)
    for a, b in _pair_off(left, right, lambda a, b: a.surname == b.surname and _given_compatible(a, b)):
        if _involves_abbreviation(a, b):
            message = f"Author name abbreviated: '{a.display}' vs '{b.display}'"
        else:
            message = f"Author spelling variation: '{a.display}' vs '{b.display}'"
        found.append(FieldDiscrepancy("authors", a.display, b.display, Severity.WARN, message, provider))

    # 3. same surname, different initials
    for a, b in _pair_off(left, right, lambda a, b: a.surname == b.surname):
        found.append(
            FieldDiscrepancy(
                "authors",
                a.display,
                b.display,
                Severity.WARN,
                f"Author spelling variation: '{a.display}' vs '{b.display}'",
                provider,
            )
        )

    # 4. near-identical surname with a compatible first initial
    def near(a: PersonName, b: PersonName) -> bool:
        if a.initials and b.initials and a.initials[0] != b.initials[0]:
            return False
        return fuzz.ratio(a.surname, b.surname) >= config.surname_fuzzy_threshold

    for a, b in _pair_off(left, right, near):
        found.append(
            FieldDiscrepancy(
                "authors",
                a.display,
                b.display,
                Severity.WARN,
                f"Author spelling variation: '{a.display}' vs '{b.display}'",
                provider,
            )
        )

    for a in left:
        found.append(
            FieldDiscrepancy("authors", a.display, NONE_VALUE, Severity.ERROR, f"Extra author: {a.display}", provider)
        )
    if not local.truncated_authors:
        for b in right:
            found.append(
                FieldDiscrepancy(
                    "authors", NONE_VALUE, b.display, Severity.ERROR, f"Missing author: {b.display}", provider
                )
            )
    return found


def compare(
    local: NormalizedEntry, candidate: CandidateRecord, config: MatcherConfig | None = None
) -> list[FieldDiscrepancy]:
    """All discrepancies between ``local`` and ``candidate``, most severe first."""
    config = config or MatcherConfig()
    found: list[FieldDiscrepancy] = []
    for d in (compare_title(local, candidate, config), compare_year(local, candidate), compare_doi(local, candidate)):
        if d is not None:
            found.append(d)
    found.extend(compare_authors(local, candidate, config))
    venue = compare_venue(local, candidate, config)
    if venue is not None:
        found.append(venue)
    return sorted(found, key=FieldDiscrepancy.sort_key)
