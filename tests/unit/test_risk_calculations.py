"""Unit tests for risk calculation functions."""

import math

import pytest

from tradesim.risk.calculations import (
    Direction,
    SizingMethod,
    calculate_beta,
    calculate_correlation,
    calculate_cvar,
    calculate_drawdown,
    calculate_kelly_fraction,
    calculate_position_size,
    calculate_risk_reward,
    calculate_sharpe_ratio,
    calculate_sortino_ratio,
    calculate_stop_loss,
    calculate_take_profit,
    calculate_trade_stats,
    calculate_var,
)


class TestKellyFraction:
    def test_kelly(self):
        assert calculate_kelly_fraction(0.6, 2.0, 1.0) == pytest.approx(0.4)

    def test_negative_edge_floored(self):
        assert calculate_kelly_fraction(0.2, 1.0, 1.0) == 0.0

    @pytest.mark.parametrize("args", [(0.5, 1.0, 0.0), (0.5, 0.0, 1.0), (1.5, 1.0, 1.0)])
    def test_degenerate_inputs(self, args):
        assert calculate_kelly_fraction(*args) == 0.0


class TestPositionSize:
    """Tests for calculate_position_size."""

    def test_fixed_percentage(self):
        result = calculate_position_size(SizingMethod.FIXED_PERCENTAGE, 10000, risk_percentage=0.02)
        assert result.position_size == pytest.approx(200)
        assert result.risk_percentage == pytest.approx(0.02)

    def test_half_kelly(self):
        result = calculate_position_size(
            SizingMethod.KELLY_CRITERION, 10000, win_rate=0.6, avg_win=2.0, avg_loss=1.0
        )
        assert result.position_size == pytest.approx(2000)

    def test_kelly_capped(self):
        result = calculate_position_size(
            SizingMethod.KELLY_CRITERION, 10000, win_rate=0.9, avg_win=3.0, avg_loss=1.0
        )
        assert result.position_size == pytest.approx(2500)

    def test_fixed_amount_capped(self):
        result = calculate_position_size(SizingMethod.FIXED_AMOUNT, 10000, fixed_amount=5000)
        assert result.position_size == pytest.approx(1000)

    def test_fixed_amount(self):
        result = calculate_position_size("fixed_amount", 10000, fixed_amount=500)
        assert result.method == SizingMethod.FIXED_AMOUNT
        assert result.position_size == pytest.approx(500)

    @pytest.mark.parametrize("volatility,expected", [(0.5, 400), (0.1, 400), (2.0, 100)])
    def test_volatility_adjusted(self, volatility, expected):
        result = calculate_position_size(
            SizingMethod.VOLATILITY_ADJUSTED, 10000, risk_percentage=0.02,
            volatility=volatility, avg_volatility=1.0,
        )
        assert result.position_size == pytest.approx(expected)

    def test_zero_balance(self):
        result = calculate_position_size(SizingMethod.FIXED_PERCENTAGE, 0)
        assert result.position_size == 0
        assert result.risk_percentage == 0.0


def test_risk_reward():
    result = calculate_risk_reward(100, 95, 110)
    assert result.risk_amount == 5
    assert result.reward_amount == 10
    assert result.risk_reward_ratio == pytest.approx(2.0)
    assert result.break_even_win_rate == pytest.approx(1 / 3)


def test_risk_reward_without_risk():
    result = calculate_risk_reward(100, 100, 110)
    assert result.risk_reward_ratio == 0.0
    assert result.break_even_win_rate == 1.0


class TestTailRisk:
    RETURNS = [i / 100 for i in range(-10, 10)]

    def test_var(self):
        assert calculate_var(self.RETURNS) == pytest.approx(0.09)

    def test_cvar_at_least_var(self):
        assert calculate_cvar(self.RETURNS) == pytest.approx(0.10)
        assert calculate_cvar(self.RETURNS) >= calculate_var(self.RETURNS)

    def test_empty(self):
        assert calculate_var([]) == 0.0
        assert calculate_cvar([]) == 0.0


class TestDrawdown:
    def test_drawdown(self):
        result = calculate_drawdown([100, 120, 90, 110])
        assert result.max_drawdown == 30
        assert result.max_drawdown_percent == pytest.approx(0.25)
        assert result.peak_value == 120
        assert result.trough_value == 90
        assert result.current_drawdown == 10
        assert result.current_drawdown_percent == pytest.approx(10 / 120)

    def test_rising_curve(self):
        result = calculate_drawdown([100, 110, 120])
        assert result.max_drawdown_percent == 0.0
        assert result.current_drawdown == 0

    def test_empty(self):
        assert calculate_drawdown([]).max_drawdown == 0.0


class TestRatios:
    def test_sharpe(self):
        expected = (0.02 * 252 - 0.02) / (0.01 * math.sqrt(252))
        assert calculate_sharpe_ratio([0.01, 0.02, 0.03]) == pytest.approx(expected)

    def test_sharpe_degenerate(self):
        assert calculate_sharpe_ratio([0.01]) == 0.0
        assert calculate_sharpe_ratio([0.01, 0.01, 0.01]) == 0.0

    def test_sortino_without_losses(self):
        assert calculate_sortino_ratio([0.01, 0.02]) == math.inf
        assert calculate_sortino_ratio([0.0, 0.0]) == 0.0

    def test_sortino(self):
        returns = [0.02, -0.01, 0.03, -0.02]
        downside = math.sqrt((0.01 ** 2 + 0.02 ** 2) / 2)
        expected = (0.005 * 252 - 0.02) / (downside * math.sqrt(252))
        assert calculate_sortino_ratio(returns) == pytest.approx(expected)


class TestTradeStats:
    def test_stats(self):
        stats = calculate_trade_stats([100, -50, 0, 50])

        assert stats.total_trades == 4
        assert stats.winning_trades == 2
        assert stats.losing_trades == 1
        assert stats.win_rate == pytest.approx(0.5)
        assert stats.avg_win == pytest.approx(75)
        assert stats.avg_loss == pytest.approx(50)
        assert stats.profit_factor == pytest.approx(3.0)
        assert stats.expectancy == pytest.approx(12.5)

    def test_no_losses(self):
        assert calculate_trade_stats([10, 20]).profit_factor == math.inf

    def test_empty(self):
        assert calculate_trade_stats([]).total_trades == 0


class TestCorrelation:
    def test_perfect(self):
        assert calculate_correlation([1, 2, 3], [2, 4, 6]) == pytest.approx(1.0)
        assert calculate_correlation([1, 2, 3], [3, 2, 1]) == pytest.approx(-1.0)

    def test_flat_series(self):
        assert calculate_correlation([1, 1, 1], [1, 2, 3]) == 0.0

    def test_beta(self):
        market = [0.01, -0.02, 0.03, 0.005]
        asset = [2 * r for r in market]
        assert calculate_beta(asset, market) == pytest.approx(2.0)

    def test_beta_undefined(self):
        assert calculate_beta([0.1, 0.2], [0.01, 0.01]) == 1.0
        assert calculate_beta([0.1], [0.01]) == 1.0


class TestLevels:
    def test_percentage_stop(self):
        assert calculate_stop_loss(100, Direction.LONG) == pytest.approx(98)
        assert calculate_stop_loss(100, Direction.SHORT) == pytest.approx(102)

    def test_atr_stop(self):
        assert calculate_stop_loss(100, "long", atr=1.5) == pytest.approx(97)
        assert calculate_stop_loss(100, "short", atr=1.5, atr_multiplier=3) == pytest.approx(104.5)

    def test_take_profit(self):
        assert calculate_take_profit(100, 98, Direction.LONG) == pytest.approx(104)
        assert calculate_take_profit(100, 102, Direction.SHORT, 3.0) == pytest.approx(94)
