"""Tests for environment-driven settings and costing options."""

from __future__ import annotations

from pathlib import Path

import pytest
from nodeplan.config import DEFAULT_PERIODS, DEFAULT_STRATEGIES, CostingOptions, Settings
from nodeplan.pricing.cache import DEFAULT_CACHE_FILE, DEFAULT_TTL_SECONDS


class TestSettingsFromEnv:
    def test_defaults(self):
        settings = Settings.from_env({})
        assert settings.live_pricing is True
        assert settings.persistent_cache is True
        assert settings.cache_file == DEFAULT_CACHE_FILE
        assert settings.cache_ttl_seconds == DEFAULT_TTL_SECONDS
        assert settings.currency == "USD"

    def test_overrides(self, tmp_path: Path):
        env = {
            "NODEPLAN_LIVE_PRICING": "off",
            "NODEPLAN_PERSISTENT_CACHE": "0",
            "NODEPLAN_PRICING_CACHE_FILE": str(tmp_path / "prices.json"),
            "NODEPLAN_PRICING_CACHE_TTL": "60",
            "NODEPLAN_PRICING_TIMEOUT": "2.5",
            "NODEPLAN_CURRENCY": "eur",
            "NODEPLAN_PRICING_REGION": "westeurope",
        }
        settings = Settings.from_env(env)
        assert settings.live_pricing is False
        assert settings.persistent_cache is False
        assert settings.cache_file == tmp_path / "prices.json"
        assert settings.cache_ttl_seconds == 60
        assert settings.pricing_timeout == 2.5
        assert settings.currency == "EUR"
        assert settings.pricing_region == "westeurope"

    def test_blank_values_use_defaults(self):
        assert Settings.from_env({"NODEPLAN_LIVE_PRICING": "  "}).live_pricing is True

    @pytest.mark.parametrize(
        "env,name",
        [
            ({"NODEPLAN_LIVE_PRICING": "maybe"}, "NODEPLAN_LIVE_PRICING"),
            ({"NODEPLAN_PRICING_CACHE_TTL": "soon"}, "NODEPLAN_PRICING_CACHE_TTL"),
            ({"NODEPLAN_PRICING_TIMEOUT": "-1"}, "NODEPLAN_PRICING_TIMEOUT"),
        ],
    )
    def test_bad_values_name_the_variable(self, env, name):
        with pytest.raises(ValueError, match=name):
            Settings.from_env(env)


class TestCostingOptions:
    def test_defaults(self):
        options = CostingOptions()
        assert options.periods == DEFAULT_PERIODS
        assert options.comparison_strategies == DEFAULT_STRATEGIES
        assert options.use_live_pricing is True

    def test_from_settings(self):
        options = Settings(live_pricing=False, currency="GBP").costing_options(enable_comparison=False)
        assert options.use_live_pricing is False
        assert options.currency == "GBP"
        assert options.enable_comparison is False

    def test_unknown_discount_type_rejected(self):
        with pytest.raises(ValueError, match="warp-drive"):
            CostingOptions(discount_factors={"warp-drive": 0.5})

    def test_unknown_period_rejected(self):
        with pytest.raises(ValueError):
            CostingOptions(periods=["fortnight"])


class TestBuildPricingClient:
    def test_persistent_tier(self, tmp_path: Path):
        client = Settings(cache_file=tmp_path / "c.json", pricing_timeout=3).build_pricing_client()
        assert client.cache.persistent.cache_file == tmp_path / "c.json"
        assert client._timeout == 3

    def test_memory_only(self):
        client = Settings(persistent_cache=False).build_pricing_client()
        assert client.cache.persistent is None
