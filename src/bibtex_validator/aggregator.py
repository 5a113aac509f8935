"""Reduction of all provider outcomes for an entry into one verdict."""

from __future__ import annotations

from dataclasses import dataclass, field

from bibtex_validator.matcher import MatcherConfig, compare, title_similarity
from bibtex_validator.models import CandidateRecord, EntryVerdict, NormalizedEntry, ProviderOutcome, Severity
from bibtex_validator.utils import doi_normalize


@dataclass
class AggregatorConfig:
    year_bonus: float = 10.0
    doi_bonus: float = 5.0
    provider_priority: list[str] = field(default_factory=list)
    min_candidate_similarity: float = 50.0


@dataclass(frozen=True)
class ScoredCandidate:
    candidate: CandidateRecord
    score: float
    order: int


def score_candidate(local: NormalizedEntry, candidate: CandidateRecord, config: AggregatorConfig) -> float:
    """Title similarity plus bonuses for an exact year and an exact DOI."""
    score = title_similarity(local.title, candidate.title)
    if local.year is not None and candidate.year == local.year:
        score += config.year_bonus
    if local.doi and doi_normalize(candidate.doi) == local.doi:
        score += config.doi_bonus
    return score


class VerdictAggregator:
    """Picks the best candidate across providers and classifies the entry."""

    def __init__(self, config: AggregatorConfig | None = None, matcher_config: MatcherConfig | None = None):
        self.config = config or AggregatorConfig()
        self.matcher_config = matcher_config or MatcherConfig()

    def _priority(self, provider: str) -> int:
        try:
            return self.config.provider_priority.index(provider)
        except ValueError:
            return len(self.config.provider_priority)

    def _tie_key(self, scored: ScoredCandidate) -> tuple:
        rank = scored.candidate.rank if scored.candidate.rank is not None else float("inf")
        return (-scored.score, self._priority(scored.candidate.provider), rank, scored.order)

    def best_candidate(
        self, local: NormalizedEntry, outcomes: dict[str, ProviderOutcome]
    ) -> ScoredCandidate | None:
        """Highest score wins; ties go to provider priority, then rank, then order of appearance.

        Candidates whose title similarity is below ``min_candidate_similarity``
        are not considered, so an entry with only unrelated hits is NOT_FOUND.
        """
        scored = []
        for outcome in outcomes.values():
            if not outcome.is_found:
                continue
            for candidate in outcome.candidates:
                if title_similarity(local.title, candidate.title) < self.config.min_candidate_similarity:
                    continue
                scored.append(ScoredCandidate(candidate, score_candidate(local, candidate, self.config), len(scored)))
        if not scored:
            return None
        return min(scored, key=self._tie_key)

    def aggregate(self, local: NormalizedEntry, outcomes: dict[str, ProviderOutcome]) -> EntryVerdict:
        if not outcomes or all(o.is_disabled for o in outcomes.values()):
            return EntryVerdict(local.key, Severity.SKIPPED, outcomes=dict(outcomes), detail="no enabled provider")

        best = self.best_candidate(local, outcomes)
        if best is None:
            return EntryVerdict(local.key, Severity.NOT_FOUND, outcomes=dict(outcomes))

        discrepancies = compare(local, best.candidate, self.matcher_config)
        severity = max((d.severity for d in discrepancies), key=lambda s: s.rank, default=Severity.OK)
        return EntryVerdict(
            key=local.key,
            severity=severity,
            chosen_provider=best.candidate.provider,
            discrepancies=discrepancies,
            outcomes=dict(outcomes),
            candidate=best.candidate,
            score=best.score,
        )
