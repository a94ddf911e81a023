"""Unit tests for the paper trading ledger."""

from decimal import Decimal

import pytest

from config.settings import PaperTradingSettings
from tradesim.errors import InsufficientFundsError, OrderStateError
from tradesim.paper.ledger import Ledger
from tradesim.paper.models import OrderSide


@pytest.fixture
def ledger():
    return Ledger({"USDT": Decimal("1000"), "BTC": "0.5"})


class TestBalances:
    def test_initial_balances(self, ledger):
        balances = ledger.get_balances()
        assert balances["USDT"].available == Decimal("1000")
        assert balances["USDT"].locked == 0
        assert balances["BTC"].available == Decimal("0.5")

    def test_negative_initial_balance_rejected(self):
        with pytest.raises(ValueError):
            Ledger({"USDT": -1})

    def test_get_balances_returns_copies(self, ledger):
        ledger.get_balances()["USDT"].available = Decimal("0")
        assert ledger.get_balance("USDT").available == Decimal("1000")

    def test_unknown_asset_total_is_zero(self, ledger):
        assert ledger.total("ETH") == 0
        assert ledger.get_balance("ETH").available == 0


class TestLockConsumeRelease:
    """Tests for lock/consume/release accounting."""

    def test_lock(self, ledger):
        ledger.lock("USDT", Decimal("300"))
        balance = ledger.get_balance("USDT")
        assert balance.available == Decimal("700")
        assert balance.locked == Decimal("300")
        assert ledger.total("USDT") == Decimal("1000")

    def test_lock_insufficient_leaves_state(self, ledger):
        """Should raise without touching the balance."""
        with pytest.raises(InsufficientFundsError) as exc_info:
            ledger.lock("USDT", Decimal("1000.01"))

        assert exc_info.value.asset == "USDT"
        assert exc_info.value.available == Decimal("1000")
        assert ledger.get_balance("USDT").available == Decimal("1000")
        assert ledger.get_balance("USDT").locked == 0

    def test_lock_release_pair_conserves_total(self, ledger):
        ledger.lock("USDT", 250)
        ledger.release("USDT", 250)
        balance = ledger.get_balance("USDT")
        assert balance.available == Decimal("1000")
        assert balance.locked == 0

    def test_consume(self, ledger):
        ledger.lock("USDT", 400)
        ledger.consume("USDT", 400)
        assert ledger.total("USDT") == Decimal("600")

    def test_consume_more_than_locked(self, ledger):
        ledger.lock("USDT", 100)
        with pytest.raises(OrderStateError):
            ledger.consume("USDT", 101)
        assert ledger.get_balance("USDT").locked == Decimal("100")

    def test_release_more_than_locked(self, ledger):
        with pytest.raises(OrderStateError):
            ledger.release("USDT", 1)

    def test_credit(self, ledger):
        ledger.credit("ETH", Decimal("2"))
        assert ledger.get_balance("ETH").available == Decimal("2")

    def test_negative_amount_rejected(self, ledger):
        with pytest.raises(ValueError):
            ledger.lock("USDT", -5)


class TestApplyFill:
    """Tests for weighted-average position tracking."""

    def test_weighted_average_entry(self, ledger):
        ledger.apply_fill("BTC", "BTC/USDT", OrderSide.BUY, 1, 100)
        ledger.apply_fill("BTC", "BTC/USDT", OrderSide.BUY, 1, 200)

        position = ledger.get_positions()["BTC"]
        assert position.quantity == Decimal("2")
        assert position.average_entry_price == Decimal("150")

    def test_sell_realizes_pnl(self, ledger):
        ledger.apply_fill("BTC", "BTC/USDT", OrderSide.BUY, 2, 150)
        realized = ledger.apply_fill("BTC", "BTC/USDT", OrderSide.SELL, 1, 180)

        assert realized == Decimal("30")
        assert ledger.realized_pnl == Decimal("30")
        position = ledger.get_positions()["BTC"]
        assert position.quantity == Decimal("1")
        assert position.average_entry_price == Decimal("150")
        assert position.realized_pnl == Decimal("30")

    def test_position_removed_at_zero(self, ledger):
        ledger.apply_fill("BTC", "BTC/USDT", OrderSide.BUY, 1, 100)
        ledger.apply_fill("BTC", "BTC/USDT", OrderSide.SELL, 1, 90)

        assert "BTC" not in ledger.get_positions()
        assert ledger.realized_pnl == Decimal("-10")

    def test_sell_without_position(self, ledger):
        assert ledger.apply_fill("BTC", "BTC/USDT", OrderSide.SELL, 1, 90) == 0
        assert ledger.get_positions() == {}


def test_from_settings():
    ledger = Ledger.from_settings(PaperTradingSettings(initial_balances={"USDT": 500.0}))
    assert ledger.get_balance("USDT").available == Decimal("500")
    assert ledger.get_balance("USDT").locked == 0
