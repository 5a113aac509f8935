"""End-to-end tests for BibValidator over in-memory providers."""

from __future__ import annotations

import pytest

from bibtex_validator import BibValidator, ConfigurationError, OutcomeKind, Severity


@pytest.fixture
def validator_factory(make_config, disabled_cache, logger):
    created = []

    def _factory(providers, cache=None, **config):
        config.setdefault("provider_priority", [p.name for p in providers])
        v = BibValidator(make_config(**config), providers=providers, cache=cache or disabled_cache, logger=logger)
        created.append(v)
        return v

    yield _factory
    for v in created:
        v.close()


class TestVerdicts:
    """Whole-run verdict scenarios."""

    def test_year_mismatch_is_error(self, validator_factory, fake_provider, make_entry, make_candidate):
        entry = make_entry(key="x2019", title="Foo Bar", authors=("Smith, J.",), year=2019)
        alpha = fake_provider("alpha", [[make_candidate(title="Foo Bar", authors=("J. Smith",), year=2018)]])
        beta = fake_provider("beta", [[]])
        report = validator_factory([alpha, beta]).validate([entry])

        verdict = report.verdicts[0]
        assert verdict.key == "x2019"
        assert verdict.severity == Severity.ERROR
        assert verdict.chosen_provider == "alpha"
        assert [d.field for d in verdict.discrepancies] == ["year"]
        assert verdict.outcomes["beta"].kind is OutcomeKind.NOT_FOUND
        assert report.exit_code() == 1

    def test_clean_entry_is_ok(self, validator_factory, fake_provider, make_entry, make_candidate):
        alpha = fake_provider("alpha", [[make_candidate()]])
        report = validator_factory([alpha], enabled_providers=["alpha"], provider_priority=["alpha"]).validate(
            [make_entry()]
        )
        assert report.verdicts[0].severity == Severity.OK
        assert report.exit_code(strict=True) == 0

    def test_not_found_everywhere(self, validator_factory, fake_provider, make_entry):
        report = validator_factory([fake_provider("alpha"), fake_provider("beta")]).validate([make_entry()])
        assert report.verdicts[0].severity == Severity.NOT_FOUND
        assert report.exit_code() == 0
        assert report.exit_code(strict=True) == 1

    def test_timeout_does_not_block_other_provider(
        self, validator_factory, fake_provider, make_entry, make_candidate, release_blocked
    ):
        slow = fake_provider("alpha", [[make_candidate()]], block=release_blocked)
        fast = fake_provider("beta", [[make_candidate(provider="beta")]])
        report = validator_factory([slow, fast], call_timeout=0.2).validate([make_entry()])
        verdict = report.verdicts[0]
        assert verdict.outcomes["alpha"].kind is OutcomeKind.TIMED_OUT
        assert verdict.chosen_provider == "beta"
        assert verdict.severity == Severity.OK

    def test_all_disabled_is_skipped(self, validator_factory, fake_provider, make_entry):
        alpha = fake_provider("alpha")
        report = validator_factory([alpha], enabled_providers=[]).validate([make_entry()])
        assert report.verdicts[0].severity == Severity.SKIPPED
        assert report.verdicts[0].outcomes["alpha"].is_disabled
        assert alpha.calls == []

    def test_disabled_provider_not_called(self, validator_factory, fake_provider, make_entry, make_candidate):
        alpha = fake_provider("alpha", [[make_candidate()]])
        beta = fake_provider("beta", [[make_candidate(provider="beta")]])
        report = validator_factory([alpha, beta], enabled_providers=["alpha"]).validate([make_entry()])
        assert beta.calls == []
        assert report.verdicts[0].outcomes["beta"].status == "error:disabled"


class TestEntryHandling:
    """Input order, filtering and malformed entries."""

    def test_input_order_preserved(self, validator_factory, fake_provider, make_entry):
        alpha = fake_provider("alpha", [[]], delay=0.01)
        entries = [make_entry(key=f"k{i}", title=f"Paper {i}") for i in range(6)]
        report = validator_factory([alpha], enabled_providers=["alpha"]).validate(entries)
        assert [v.key for v in report.verdicts] == [f"k{i}" for i in range(6)]

    def test_key_filter(self, validator_factory, fake_provider, make_entry):
        alpha = fake_provider("alpha")
        entries = [make_entry(key="smith2019"), make_entry(key="smith2020"), make_entry(key="doe2020")]
        report = validator_factory([alpha], enabled_providers=["alpha"], key_filter=["smith*"]).validate(entries)
        assert [v.key for v in report.verdicts] == ["smith2019", "smith2020"]
        assert report.total == 2

    def test_malformed_entry_never_dispatched(self, validator_factory, fake_provider, make_entry):
        alpha = fake_provider("alpha")
        report = validator_factory([alpha], enabled_providers=["alpha"]).validate(
            [make_entry(key="empty", title=""), make_entry(key="fine")]
        )
        assert report.verdicts[0].severity == Severity.MALFORMED
        assert report.verdicts[0].detail == "missing or empty title"
        assert len(alpha.calls) == 1
        assert report.exit_code() == 1

    def test_duplicate_key(self, validator_factory, fake_provider, make_entry):
        alpha = fake_provider("alpha")
        report = validator_factory([alpha], enabled_providers=["alpha"]).validate(
            [make_entry(key="dup"), make_entry(key="dup", title="Other")]
        )
        assert report.verdicts[0].severity == Severity.NOT_FOUND
        assert report.verdicts[1].severity == Severity.MALFORMED
        assert report.verdicts[1].detail == "duplicate citation key"

    def test_counts_match_verdicts(self, validator_factory, fake_provider, make_entry, make_candidate):
        alpha = fake_provider("alpha", [[make_candidate(year=1999)]])
        entries = [make_entry(key="a"), make_entry(key="b", title=""), make_entry(key="c")]
        report = validator_factory([alpha], enabled_providers=["alpha"]).validate(entries)
        assert sum(report.counts.values()) == report.total == 3

    def test_empty_input(self, validator_factory, fake_provider):
        report = validator_factory([fake_provider("alpha")]).validate([])
        assert report.total == 0
        assert report.exit_code() == 0


class TestCacheReuse:
    """Second runs are served from the cache."""

    def test_second_run_uses_cache(self, validator_factory, fake_provider, make_entry, make_candidate, cache_store):
        alpha = fake_provider("alpha", [[make_candidate()]])
        first = validator_factory([alpha], cache=cache_store, enabled_providers=["alpha"]).validate([make_entry()])
        second = validator_factory([alpha], cache=cache_store, enabled_providers=["alpha"]).validate([make_entry()])
        assert len(alpha.calls) == 1
        assert second.verdicts[0].severity == first.verdicts[0].severity
        assert second.verdicts[0].outcomes["alpha"].cached


class TestConfiguration:
    """Configuration is checked before anything runs."""

    def test_unknown_enabled_provider(self, make_config, fake_provider, disabled_cache):
        with pytest.raises(ConfigurationError):
            BibValidator(
                make_config(enabled_providers=["alpha", "nosuch"], provider_priority=["alpha"]),
                providers=[fake_provider("alpha")],
                cache=disabled_cache,
            )

    def test_bad_limits(self, make_config, fake_provider, disabled_cache):
        with pytest.raises(ConfigurationError):
            BibValidator(
                make_config(enabled_providers=["alpha"], provider_priority=["alpha"], concurrency_limit=0),
                providers=[fake_provider("alpha")],
                cache=disabled_cache,
            )


class TestCancel:
    """Cancelling a run."""

    def test_cancel_before_run(self, validator_factory, fake_provider, make_entry):
        alpha = fake_provider("alpha")
        validator = validator_factory([alpha], enabled_providers=["alpha"])
        validator.cancel()
        report = validator.validate([make_entry()])
        assert report.interrupted
        assert report.exit_code() == 130
        assert alpha.calls == []
