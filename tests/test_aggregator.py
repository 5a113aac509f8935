"""Tests for verdict aggregation."""

from __future__ import annotations

from bibtex_validator import (
    AggregatorConfig,
    ErrorKind,
    ProviderOutcome,
    Severity,
    VerdictAggregator,
    normalize_entry,
)
from bibtex_validator.aggregator import score_candidate


class TestScoreCandidate:
    """Tests for candidate scoring."""

    def test_exact_title_and_year(self, make_entry, make_candidate):
        local = normalize_entry(make_entry())
        assert score_candidate(local, make_candidate(), AggregatorConfig()) == 110

    def test_doi_bonus(self, make_entry, make_candidate):
        local = normalize_entry(make_entry(doi="10.1/abc"))
        assert score_candidate(local, make_candidate(doi="10.1/ABC"), AggregatorConfig()) == 115

    def test_no_year_bonus_on_mismatch(self, make_entry, make_candidate):
        local = normalize_entry(make_entry(year=2019))
        assert score_candidate(local, make_candidate(year=2018), AggregatorConfig()) == 100

    def test_bonuses_configurable(self, make_entry, make_candidate):
        local = normalize_entry(make_entry(doi="10.1/abc"))
        config = AggregatorConfig(year_bonus=0, doi_bonus=1)
        assert score_candidate(local, make_candidate(doi="10.1/abc"), config) == 101


class TestBestCandidate:
    """Tests for choosing among candidates."""

    def test_highest_score_wins(self, make_entry, make_candidate):
        local = normalize_entry(make_entry())
        outcomes = {
            "alpha": ProviderOutcome.found("alpha", [make_candidate(title="Something Else Entirely")]),
            "beta": ProviderOutcome.found("beta", [make_candidate(provider="beta")]),
        }
        best = VerdictAggregator().best_candidate(local, outcomes)
        assert best.candidate.provider == "beta"

    def test_tie_broken_by_priority(self, make_entry, make_candidate):
        local = normalize_entry(make_entry())
        outcomes = {
            "alpha": ProviderOutcome.found("alpha", [make_candidate()]),
            "beta": ProviderOutcome.found("beta", [make_candidate(provider="beta")]),
        }
        aggregator = VerdictAggregator(AggregatorConfig(provider_priority=["beta", "alpha"]))
        assert aggregator.best_candidate(local, outcomes).candidate.provider == "beta"

    def test_tie_broken_by_rank_within_provider(self, make_entry, make_candidate):
        local = normalize_entry(make_entry())
        outcomes = {
            "alpha": ProviderOutcome.found(
                "alpha", [make_candidate(rank=2, venue="second"), make_candidate(rank=1, venue="first")]
            ),
        }
        best = VerdictAggregator().best_candidate(local, outcomes)
        assert best.candidate.venue == "first"

    def test_independent_of_outcome_order(self, make_entry, make_candidate):
        local = normalize_entry(make_entry())
        a = ProviderOutcome.found("alpha", [make_candidate()])
        b = ProviderOutcome.found("beta", [make_candidate(provider="beta")])
        aggregator = VerdictAggregator(AggregatorConfig(provider_priority=["alpha", "beta"]))
        first = aggregator.best_candidate(local, {"alpha": a, "beta": b})
        second = aggregator.best_candidate(local, {"beta": b, "alpha": a})
        assert first.candidate == second.candidate

    def test_none_without_found(self, make_entry):
        local = normalize_entry(make_entry())
        outcomes = {"alpha": ProviderOutcome.not_found("alpha")}
        assert VerdictAggregator().best_candidate(local, outcomes) is None


class TestAggregate:
    """Tests for the verdict classification."""

    def test_ok(self, make_entry, make_candidate):
        local = normalize_entry(make_entry(doi="10.1/abc"))
        outcomes = {"alpha": ProviderOutcome.found("alpha", [make_candidate(doi="10.1/abc")])}
        verdict = VerdictAggregator().aggregate(local, outcomes)
        assert verdict.severity == Severity.OK
        assert verdict.chosen_provider == "alpha"
        assert verdict.discrepancies == ()

    def test_error_when_year_differs(self, make_entry, make_candidate):
        local = normalize_entry(make_entry(year=2019))
        outcomes = {"alpha": ProviderOutcome.found("alpha", [make_candidate(year=2018)])}
        verdict = VerdictAggregator().aggregate(local, outcomes)
        assert verdict.severity == Severity.ERROR
        assert [d.field for d in verdict.discrepancies] == ["year"]

    def test_warn_is_max_severity(self, make_entry, make_candidate):
        local = normalize_entry(make_entry())
        outcomes = {"alpha": ProviderOutcome.found("alpha", [make_candidate(doi="10.1/x")])}
        verdict = VerdictAggregator().aggregate(local, outcomes)
        assert verdict.severity == Severity.WARN

    def test_not_found_when_every_call_failed(self, make_entry):
        local = normalize_entry(make_entry())
        outcomes = {
            "alpha": ProviderOutcome.failed("alpha", ErrorKind.NETWORK_FAILURE),
            "beta": ProviderOutcome.timed_out("beta"),
        }
        verdict = VerdictAggregator().aggregate(local, outcomes)
        assert verdict.severity == Severity.NOT_FOUND
        assert verdict.chosen_provider is None
        assert set(verdict.outcomes) == {"alpha", "beta"}

    def test_skipped_when_all_disabled(self, make_entry):
        local = normalize_entry(make_entry())
        outcomes = {"alpha": ProviderOutcome.disabled("alpha")}
        verdict = VerdictAggregator().aggregate(local, outcomes)
        assert verdict.severity == Severity.SKIPPED
        assert verdict.detail == "no enabled provider"

    def test_skipped_when_no_outcomes(self, make_entry):
        verdict = VerdictAggregator().aggregate(normalize_entry(make_entry()), {})
        assert verdict.severity == Severity.SKIPPED

    def test_found_candidate_beats_failures(self, make_entry, make_candidate):
        local = normalize_entry(make_entry())
        outcomes = {
            "alpha": ProviderOutcome.failed("alpha", ErrorKind.RATE_LIMITED),
            "beta": ProviderOutcome.found("beta", [make_candidate(provider="beta")]),
        }
        verdict = VerdictAggregator().aggregate(local, outcomes)
        assert verdict.chosen_provider == "beta"
        assert verdict.outcomes["alpha"].status == "error:rate_limited"

    def test_unrelated_candidate_is_not_found(self, make_entry, make_candidate):
        local = normalize_entry(make_entry())
        outcomes = {
            "alpha": ProviderOutcome.found("alpha", [make_candidate(title="Quantum Chromodynamics on the Lattice")])
        }
        verdict = VerdictAggregator().aggregate(local, outcomes)
        assert verdict.severity == Severity.NOT_FOUND
        assert verdict.chosen_provider is None
        assert verdict.discrepancies == ()

    def test_unrelated_candidate_skipped_for_related_one(self, make_entry, make_candidate):
        local = normalize_entry(make_entry(doi="10.1/abc"))
        outcomes = {
            "alpha": ProviderOutcome.found(
                "alpha", [make_candidate(title="Quantum Chromodynamics on the Lattice", doi="10.1/abc")]
            ),
            "beta": ProviderOutcome.found("beta", [make_candidate(provider="beta", doi="10.1/abc")]),
        }
        verdict = VerdictAggregator().aggregate(local, outcomes)
        assert verdict.chosen_provider == "beta"
        assert verdict.severity == Severity.OK

    def test_min_candidate_similarity_configurable(self, make_entry, make_candidate):
        local = normalize_entry(make_entry())
        outcomes = {
            "alpha": ProviderOutcome.found("alpha", [make_candidate(title="Quantum Chromodynamics on the Lattice")])
        }
        verdict = VerdictAggregator(AggregatorConfig(min_candidate_similarity=0)).aggregate(local, outcomes)
        assert verdict.severity == Severity.ERROR
        assert verdict.discrepancies[0].field == "title"

    def test_venue_note_keeps_verdict_ok(self, make_entry, make_candidate):
        local = normalize_entry(make_entry(venue="Nature"))
        outcomes = {"alpha": ProviderOutcome.found("alpha", [make_candidate(venue="Physical Review Letters")])}
        verdict = VerdictAggregator().aggregate(local, outcomes)
        assert verdict.severity == Severity.OK
        assert [d.field for d in verdict.discrepancies] == ["venue"]
