"""Unit tests for Risk Manager."""

import pytest

from config.settings import RiskLimitSettings
from tradesim.errors import NotFoundError, PositionNotFoundError
from tradesim.risk.calculations import Direction, SizingMethod
from tradesim.risk.manager import RiskLimits, RiskManager


@pytest.fixture
def manager():
    return RiskManager(100000)


def good_trade(symbol="BTC/USDT", size=0.1):
    """45000 entry with 2:1 reward over risk."""
    return dict(
        symbol=symbol,
        direction=Direction.LONG,
        size=size,
        entry_price=45000,
        stop_loss=44000,
        take_profit=47000,
    )


class TestRiskLimits:
    def test_defaults(self):
        limits = RiskLimits()
        assert limits.max_position_size == 0.1
        assert limits.max_daily_loss == 0.05
        assert limits.max_drawdown == 0.2
        assert limits.max_open_positions == 10
        assert limits.min_risk_reward_ratio == 1.5

    def test_from_settings(self):
        limits = RiskLimits.from_settings(RiskLimitSettings(max_open_positions=3))
        assert limits.max_open_positions == 3
        assert limits.to_dict()["max_drawdown"] == 0.2


class TestCheckTradeRisk:
    """Tests for pre-trade checks."""

    def test_allowed(self, manager):
        result = manager.check_trade_risk(**good_trade())
        assert result.allowed is True
        assert result.reason is None
        assert result.warnings == []
        assert result.adjusted_size is None

    def test_poor_risk_reward_rejected(self, manager):
        """Should reject a 0.5 reward/risk trade."""
        result = manager.check_trade_risk(
            "BTC/USDT", Direction.LONG, 0.1, 45000, 44000, 45500
        )
        assert result.allowed is False
        assert "Risk/reward" in result.reason
        assert "0.50" in result.reason

    def test_oversize_adjusted(self, manager):
        """Should shrink the size to the limit and warn."""
        result = manager.check_trade_risk(**good_trade(size=0.5))

        assert result.allowed is True
        assert result.adjusted_size == pytest.approx(0.1 * 100000 / 45000)
        assert len(result.warnings) == 1
        assert "0.2222" in result.warnings[0]

    def test_max_open_positions(self, manager):
        manager.update_limits(max_open_positions=1)
        manager.open_position(**good_trade(symbol="ETH/USDT"))

        result = manager.check_trade_risk(**good_trade())

        assert result.allowed is False
        assert result.reason == "Max open positions (1) reached"

    def test_drawdown_rejected(self):
        manager = RiskManager(10000)
        position = manager.open_position("ETH/USDT", Direction.LONG, 10, 1000, 900, 1200)
        manager.close_position(position.id, 800)

        result = manager.check_trade_risk(**good_trade(size=0.01))

        assert result.allowed is False
        assert "drawdown" in result.reason

    def test_daily_loss_rejected(self):
        manager = RiskManager(10000)
        position = manager.open_position("ETH/USDT", Direction.LONG, 10, 1000, 900, 1200)
        manager.close_position(position.id, 940)

        result = manager.check_trade_risk(**good_trade(size=0.01))

        assert result.allowed is False
        assert result.reason == "Daily loss limit (5%) reached"

    def test_duplicate_symbol_warning(self, manager):
        manager.open_position(**good_trade())
        result = manager.check_trade_risk(**good_trade())
        assert result.allowed is True
        assert "Already have open position in BTC/USDT" in result.warnings

    def test_to_dict(self, manager):
        data = manager.check_trade_risk(**good_trade()).to_dict()
        assert data["allowed"] is True
        assert data["adjusted_size"] is None


class TestPositions:
    """Tests for position lifecycle."""

    def test_open_position(self, manager):
        position = manager.open_position(**good_trade())
        assert position.id.startswith("pos_")
        assert position.current_price == 45000
        assert manager.get_position(position.id) is position
        assert manager.get_positions() == [position]

    def test_update_position(self, manager):
        position = manager.open_position("ETH/USDT", Direction.LONG, 2, 100, 95, 110)
        updated = manager.update_position(position.id, 105)
        assert updated.unrealized_pnl == pytest.approx(10)
        assert updated.current_price == 105

    def test_update_short(self, manager):
        position = manager.open_position("ETH/USDT", Direction.SHORT, 2, 100, 105, 90)
        assert manager.update_position(position.id, 95).unrealized_pnl == pytest.approx(10)

    def test_close_long(self):
        manager = RiskManager(10000)
        position = manager.open_position("ETH/USDT", Direction.LONG, 2, 100, 95, 110)

        trade = manager.close_position(position.id, 110)

        assert trade.pnl == pytest.approx(20)
        assert trade.pnl_percent == pytest.approx(0.1)
        assert manager.current_equity == pytest.approx(10020)
        assert manager.get_equity_curve() == [10000, pytest.approx(10020)]
        assert manager.get_positions() == []
        assert manager.get_trades() == [trade]

    def test_close_short(self):
        manager = RiskManager(10000)
        position = manager.open_position("ETH/USDT", "short", 1, 100, 105, 90)
        assert manager.close_position(position.id, 90).pnl == pytest.approx(10)

    @pytest.mark.parametrize("call", [
        lambda m: m.get_position("pos_missing"),
        lambda m: m.update_position("pos_missing", 1.0),
        lambda m: m.close_position("pos_missing", 1.0),
    ])
    def test_unknown_ids(self, manager, call):
        """Should raise for ids that were never opened."""
        with pytest.raises(PositionNotFoundError, match="pos_missing"):
            call(manager)

    def test_closed_position_not_found(self, manager):
        position = manager.open_position(**good_trade())
        manager.close_position(position.id, 46000)
        with pytest.raises(NotFoundError):
            manager.close_position(position.id, 46000)
        assert len(manager.get_trades()) == 1


class TestSizingAndLevels:
    def test_fixed_percentage(self, manager):
        result = manager.calculate_position(SizingMethod.FIXED_PERCENTAGE, risk_percentage=0.01)
        assert result.position_size == pytest.approx(1000)

    def test_kelly_without_history(self, manager):
        assert manager.calculate_position(SizingMethod.KELLY_CRITERION).position_size == 0.0

    def test_levels(self, manager):
        stop = manager.calculate_stop_loss(100, Direction.LONG)
        assert stop == pytest.approx(98)
        assert manager.calculate_take_profit(100, stop, Direction.LONG) == pytest.approx(104)


class TestMetricsAndLimits:
    def test_metrics(self):
        manager = RiskManager(10000)
        closed = manager.open_position("ETH/USDT", Direction.LONG, 2, 100, 95, 110)
        manager.close_position(closed.id, 110)
        open_position = manager.open_position("SOL/USDT", Direction.LONG, 10, 20, 19, 23)
        manager.update_position(open_position.id, 21)

        metrics = manager.get_metrics()

        assert metrics.open_positions == 1
        assert metrics.realized_pnl == pytest.approx(20)
        assert metrics.unrealized_pnl == pytest.approx(10)
        assert metrics.used_margin == pytest.approx(200)
        assert metrics.total_equity == pytest.approx(10030)
        assert metrics.daily_pnl == pytest.approx(20)
        assert metrics.trade_stats.total_trades == 1
        assert metrics.to_dict()["trade_stats"]["winning_trades"] == 1

    def test_update_limits(self, manager):
        limits = manager.update_limits(max_drawdown=0.1)
        assert limits.max_drawdown == 0.1
        assert manager.get_limits().max_drawdown == 0.1

    def test_update_unknown_limit(self, manager):
        with pytest.raises(ValueError, match="max_leverage"):
            manager.update_limits(max_leverage=5)

    def test_get_limits_is_copy(self, manager):
        manager.get_limits().max_drawdown = 0.9
        assert manager.limits.max_drawdown == 0.2

    def test_daily_returns(self):
        manager = RiskManager(10000)
        assert manager.record_daily_return() == 0.0
        position = manager.open_position("ETH/USDT", Direction.LONG, 10, 100, 95, 110)
        manager.close_position(position.id, 110)
        assert manager.record_daily_return() == pytest.approx(0.01)
        assert manager.get_daily_returns() == [0.0, pytest.approx(0.01)]
