"""Unit tests for engine settings."""

import pytest
from pydantic import ValidationError

from config.settings import (
    BacktestSettings,
    EngineSettings,
    LogFormatName,
    LoggingSettings,
    PaperTradingSettings,
    get_settings,
)


class TestEngineSettings:
    """Tests for EngineSettings defaults and overrides."""

    def test_defaults(self):
        settings = EngineSettings()

        assert settings.default_initial_capital == 10000.0
        assert settings.results_db is None
        assert settings.backtest.default_slippage_pct == 0.1
        assert settings.backtest.default_commission_pct == 0.1
        assert settings.backtest.position_allocation == 0.95
        assert settings.backtest.periods_per_year == 252
        assert settings.paper.initial_balances == {"USDT": 100000.0}
        assert settings.risk.max_open_positions == 10
        assert settings.strategy_risk.max_drawdown_pct == 30.0
        assert settings.logging.format == LogFormatName.DETAILED

    def test_tier_limits(self):
        tiers = BacktestSettings().tier_limits_days
        assert tiers == {"free": 30, "pro": 365, "elite": 1095, "institutional": -1}

    def test_env_override(self, monkeypatch):
        monkeypatch.setenv("TRADESIM_DEFAULT_INITIAL_CAPITAL", "5000")
        monkeypatch.setenv("TRADESIM_BACKTEST__DEFAULT_SLIPPAGE_PCT", "0.5")

        settings = EngineSettings()

        assert settings.default_initial_capital == 5000.0
        assert settings.backtest.default_slippage_pct == 0.5

    def test_get_settings_cached(self):
        assert get_settings() is get_settings()


class TestValidators:
    def test_negative_slippage(self):
        with pytest.raises(ValidationError):
            BacktestSettings(default_slippage_pct=-0.1)

    def test_allocation_bounds(self):
        with pytest.raises(ValidationError):
            BacktestSettings(position_allocation=1.5)

    def test_negative_initial_balance(self):
        with pytest.raises(ValidationError):
            PaperTradingSettings(initial_balances={"USDT": -1.0})

    def test_log_level_normalised(self):
        assert LoggingSettings(level="debug").level == "DEBUG"

    def test_unknown_log_level(self):
        with pytest.raises(ValidationError):
            LoggingSettings(level="verbose")
