"""Tests for ValidatorConfig."""

from __future__ import annotations

import pytest

from bibtex_validator import ConfigurationError, DEFAULT_PROVIDER_ORDER, ValidatorConfig


class TestDefaults:
    """Tests for default values."""

    def test_defaults(self):
        config = ValidatorConfig(s2_api_key=None)
        assert config.enabled_providers == list(DEFAULT_PROVIDER_ORDER)
        assert config.cache_enabled
        assert config.cache_ttl_days == 7
        assert config.concurrency_limit == 20
        assert config.per_provider_limit == 4
        assert config.call_timeout == 20
        assert not config.strict
        config.validate()

    def test_s2_key_from_environment(self, monkeypatch):
        monkeypatch.setenv("S2_API_KEY", "from-env")
        assert ValidatorConfig().s2_api_key == "from-env"


class TestFromDict:
    """Tests for dict and YAML loading."""

    def test_from_dict(self):
        config = ValidatorConfig.from_dict({"enabled_providers": "crossref", "strict": True, "call_timeout": 3})
        assert config.enabled_providers == ["crossref"]
        assert config.strict
        assert config.call_timeout == 3

    def test_unknown_key_rejected(self):
        with pytest.raises(ConfigurationError, match="colour"):
            ValidatorConfig.from_dict({"colour": "blue"})

    def test_from_yaml(self, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text(
            "enabled_providers: [crossref, dblp]\nkey_filter: ['smith*']\nrate_limits:\n  crossref: 10\n",
            encoding="utf-8",
        )
        config = ValidatorConfig.from_yaml(str(path))
        assert config.enabled_providers == ["crossref", "dblp"]
        assert config.key_filter == ["smith*"]
        assert config.rate_limits == {"crossref": 10}

    def test_empty_yaml(self, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text("", encoding="utf-8")
        assert ValidatorConfig.from_yaml(str(path)).cache_enabled

    def test_invalid_yaml(self, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text("enabled_providers: [crossref\n", encoding="utf-8")
        with pytest.raises(ConfigurationError, match="Invalid YAML"):
            ValidatorConfig.from_yaml(str(path))

    def test_not_a_mapping(self, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text("- crossref\n", encoding="utf-8")
        with pytest.raises(ConfigurationError):
            ValidatorConfig.from_yaml(str(path))

    def test_missing_file(self, tmp_path):
        with pytest.raises(ConfigurationError):
            ValidatorConfig.from_yaml(str(tmp_path / "missing.yaml"))

    def test_to_dict_omits_secrets(self):
        data = ValidatorConfig(s2_api_key="secret").to_dict()
        assert "s2_api_key" not in data
        assert ValidatorConfig.from_dict(data).enabled_providers == list(DEFAULT_PROVIDER_ORDER)


class TestValidate:
    """Tests for ValidatorConfig.validate."""

    def test_unknown_provider(self):
        with pytest.raises(ConfigurationError, match="enabled_providers"):
            ValidatorConfig(enabled_providers=["crossref", "scopus"]).validate()

    def test_available_restricts_enabled(self):
        with pytest.raises(ConfigurationError):
            ValidatorConfig(enabled_providers=["crossref"]).validate(available=["alpha"])

    def test_no_providers_is_valid(self):
        ValidatorConfig(enabled_providers=[]).validate()

    @pytest.mark.parametrize(
        "field,value",
        [
            ("concurrency_limit", 0),
            ("per_provider_limit", -1),
            ("max_results", 0),
            ("call_timeout", 0),
            ("cache_ttl_days", 0),
            ("retry_backoff", -1),
            ("year_bonus", -5),
            ("title_warn_threshold", 99),
            ("title_ok_threshold", 101),
            ("min_candidate_similarity", 90),
            ("min_candidate_similarity", -1),
        ],
    )
    def test_invalid_values(self, field, value):
        with pytest.raises(ConfigurationError):
            ValidatorConfig(**{field: value}).validate()

    @pytest.mark.parametrize(
        "field", ["call_timeout", "cache_ttl_days", "retry_backoff", "year_bonus", "title_warn_threshold"]
    )
    def test_non_numeric_values(self, field):
        with pytest.raises(ConfigurationError, match=field):
            ValidatorConfig.from_dict({field: "abc"}).validate()

    def test_bool_is_not_a_number(self):
        with pytest.raises(ConfigurationError, match="call_timeout"):
            ValidatorConfig(call_timeout=True).validate()

    def test_invalid_rate_limit(self):
        with pytest.raises(ConfigurationError):
            ValidatorConfig(rate_limits={"crossref": 0}).validate()

    def test_sub_configs(self):
        config = ValidatorConfig(title_ok_threshold=90, year_bonus=3, provider_priority=["dblp"])
        assert config.matcher_config().title_ok_threshold == 90
        assert config.aggregator_config().year_bonus == 3
        assert config.aggregator_config().provider_priority == ["dblp"]
        assert config.aggregator_config().min_candidate_similarity == 50
