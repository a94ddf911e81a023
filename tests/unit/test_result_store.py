"""Unit tests for SQLite backtest result storage."""

import math
from datetime import datetime
from decimal import Decimal

import pytest

from tradesim.backtesting.models import (
    BacktestMetrics,
    BacktestResult,
    BacktestStatus,
    EquityPoint,
    TradeRecord,
    TradeSide,
)
from tradesim.storage.results import ResultSink, SQLiteResultStore


def make_result(strategy_id="s1", created_at=None, **metrics):
    entry = datetime(2024, 1, 2)
    trade = TradeRecord(
        entry_time=entry,
        entry_price=Decimal("100.1"),
        side=TradeSide.LONG,
        quantity=Decimal("94.9"),
    ).close(datetime(2024, 1, 5), Decimal("109.89"), Decimal("912.34"), 9.6)
    return BacktestResult(
        strategy_id=strategy_id,
        symbol="BTC/USDT",
        start_date=datetime(2024, 1, 1),
        end_date=datetime(2024, 1, 10),
        status=BacktestStatus.COMPLETED,
        metrics=BacktestMetrics(initial_capital=10000.0, final_capital=10912.34, **metrics),
        trades=(trade,),
        equity_curve=(
            EquityPoint(datetime(2024, 1, 1), Decimal("10000")),
            EquityPoint(datetime(2024, 1, 5), Decimal("10912.34"), 0.0),
        ),
        created_at=created_at or datetime.now(),
    )


@pytest.fixture
def store(tmp_path):
    return SQLiteResultStore(str(tmp_path / "results.db"))


class TestSQLiteResultStore:
    """Tests for SQLiteResultStore."""

    def test_is_result_sink(self, store):
        assert isinstance(store, ResultSink)

    def test_save_and_get(self, store):
        result = make_result()
        store.save(result)

        loaded = store.get(result.id)

        assert loaded == result
        assert loaded.trades[0].exit_price == Decimal("109.89")

    def test_infinite_profit_factor(self, store):
        result = make_result(profit_factor=math.inf)
        store.save(result)
        assert store.get(result.id).metrics.profit_factor == math.inf

    def test_missing(self, store):
        assert store.get("nope") is None

    def test_save_replaces(self, store):
        result = make_result()
        store.save(result)
        store.save(result)
        assert len(store.list_by_strategy("s1")) == 1

    def test_list_by_strategy_newest_first(self, store):
        older = make_result(created_at=datetime(2024, 3, 1))
        newer = make_result(created_at=datetime(2024, 3, 2))
        other = make_result(strategy_id="s2")
        for result in (older, newer, other):
            store.save(result)

        listed = store.list_by_strategy("s1")

        assert [r.id for r in listed] == [newer.id, older.id]
        assert store.list_by_strategy("s1", limit=1)[0].id == newer.id
        assert store.list_by_strategy("none") == []
