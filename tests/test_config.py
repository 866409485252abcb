"""Tests for marketplace configuration."""

from decimal import Decimal

import pytest

from kahraba.config import MarketplaceConfig


class TestDefaults:
    def test_production_values(self):
        config = MarketplaceConfig()

        assert config.commission_rate_decimal == Decimal("0.15")
        assert config.offer_timeout_seconds == 60
        assert config.credit_limit_decimal == Decimal("50.0")
        assert config.currency == "JOD"
        assert config.max_transition_attempts == 3


class TestValidation:
    @pytest.mark.parametrize(
        "kwargs",
        [
            {"commission_rate": -0.1},
            {"commission_rate": 1},
            {"offer_timeout_seconds": 0},
            {"credit_limit": -1},
            {"max_transition_attempts": 0},
            {"currency": ""},
        ],
    )
    def test_invalid_values_rejected(self, kwargs):
        with pytest.raises(ValueError):
            MarketplaceConfig(**kwargs)


class TestFromEnv:
    def test_empty_environment_keeps_defaults(self):
        assert MarketplaceConfig.from_env({}) == MarketplaceConfig()

    def test_overrides(self):
        config = MarketplaceConfig.from_env(
            {
                "KAHRABA_COMMISSION_RATE": "0.2",
                "KAHRABA_OFFER_TIMEOUT_SECONDS": "30",
                "KAHRABA_CREDIT_LIMIT": "75",
                "KAHRABA_CURRENCY": "USD",
                "KAHRABA_MAX_TRANSITION_ATTEMPTS": "",
            }
        )

        assert config.commission_rate == 0.2
        assert config.offer_timeout_seconds == 30
        assert config.credit_limit == 75.0
        assert config.currency == "USD"
        assert config.max_transition_attempts == 3

    def test_reads_process_environment(self, monkeypatch):
        monkeypatch.setenv("KAHRABA_OFFER_TIMEOUT_SECONDS", "45")
        assert MarketplaceConfig.from_env().offer_timeout_seconds == 45

    def test_unparseable_value(self):
        with pytest.raises(ValueError, match="KAHRABA_OFFER_TIMEOUT_SECONDS"):
            MarketplaceConfig.from_env({"KAHRABA_OFFER_TIMEOUT_SECONDS": "soon"})

    def test_out_of_range_value(self):
        with pytest.raises(ValueError, match="commission_rate"):
            MarketplaceConfig.from_env({"KAHRABA_COMMISSION_RATE": "1.5"})
