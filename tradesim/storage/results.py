"""SQLite storage for backtest results."""

import json
import logging
import sqlite3
from contextlib import contextmanager
from datetime import datetime
from decimal import Decimal
from pathlib import Path
from typing import List, Optional, Protocol, runtime_checkable

from tradesim.backtesting.models import (
    BacktestMetrics,
    BacktestResult,
    BacktestStatus,
    EquityPoint,
    TradeRecord,
    TradeSide,
)

logger = logging.getLogger(__name__)


@runtime_checkable
class ResultSink(Protocol):
    """Anything that can persist a finished backtest."""

    def save(self, result: BacktestResult) -> None:
        ...


def _optional_decimal(value: Optional[str]) -> Optional[Decimal]:
    return Decimal(value) if value is not None else None


def _optional_datetime(value: Optional[str]) -> Optional[datetime]:
    return datetime.fromisoformat(value) if value else None


def _trade_from_dict(data: dict) -> TradeRecord:
    return TradeRecord(
        id=data["id"],
        entry_time=datetime.fromisoformat(data["entry_time"]),
        entry_price=Decimal(data["entry_price"]),
        side=TradeSide(data["side"]),
        quantity=Decimal(data["quantity"]),
        exit_time=_optional_datetime(data.get("exit_time")),
        exit_price=_optional_decimal(data.get("exit_price")),
        pnl=_optional_decimal(data.get("pnl")),
        pnl_percent=data.get("pnl_percent"),
    )


def _point_from_dict(data: dict) -> EquityPoint:
    return EquityPoint(
        timestamp=datetime.fromisoformat(data["timestamp"]),
        equity=Decimal(data["equity"]),
        drawdown=data["drawdown"],
    )


class SQLiteResultStore:
    """SQLite database for backtest results.

    Metrics, trades and the equity curve are stored as JSON text; the
    scalar columns support lookups by id and strategy.
    """

    def __init__(self, db_path: str = "backtests.db"):
        """Initialize result database.

        Args:
            db_path: Path to SQLite database file
        """
        self.db_path = Path(db_path)
        self._init_db()

    def _init_db(self) -> None:
        """Initialize database schema."""
        with self._connect() as conn:
            conn.execute("""
                CREATE TABLE IF NOT EXISTS backtest_results (
                    id TEXT PRIMARY KEY,
                    strategy_id TEXT NOT NULL,
                    symbol TEXT NOT NULL,
                    start_date TEXT NOT NULL,
                    end_date TEXT NOT NULL,
                    status TEXT NOT NULL,
                    metrics TEXT NOT NULL,
                    trades TEXT NOT NULL,
                    equity_curve TEXT NOT NULL,
                    created_at TEXT NOT NULL
                )
            """)

            conn.execute("""
                CREATE INDEX IF NOT EXISTS idx_results_strategy
                ON backtest_results(strategy_id)
            """)

            conn.commit()
            logger.info(f"Database initialized: {self.db_path}")

    @contextmanager
    def _connect(self):
        """Context manager for database connection."""
        conn = sqlite3.connect(str(self.db_path))
        conn.row_factory = sqlite3.Row
        try:
            yield conn
        finally:
            conn.close()

    def save(self, result: BacktestResult) -> None:
        """Insert or replace a backtest result."""
        data = result.to_dict()
        with self._connect() as conn:
            conn.execute("""
                INSERT OR REPLACE INTO backtest_results
                (id, strategy_id, symbol, start_date, end_date, status,
                 metrics, trades, equity_curve, created_at)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
            """, (
                data["id"],
                data["strategy_id"],
                data["symbol"],
                data["start_date"],
                data["end_date"],
                data["status"],
                json.dumps(data["metrics"]),
                json.dumps(data["trades"]),
                json.dumps(data["equity_curve"]),
                data["created_at"],
            ))
            conn.commit()
        logger.debug(f"Saved backtest {result.id} for strategy {result.strategy_id}")

    def get(self, result_id: str) -> Optional[BacktestResult]:
        """Load one result by id."""
        with self._connect() as conn:
            row = conn.execute(
                "SELECT * FROM backtest_results WHERE id = ?", (result_id,)
            ).fetchone()
        return self._row_to_result(row) if row else None

    def list_by_strategy(self, strategy_id: str, limit: int = 100) -> List[BacktestResult]:
        """Results for a strategy, newest first."""
        with self._connect() as conn:
            rows = conn.execute("""
                SELECT * FROM backtest_results
                WHERE strategy_id = ?
                ORDER BY created_at DESC
                LIMIT ?
            """, (strategy_id, limit)).fetchall()
        return [self._row_to_result(row) for row in rows]

    def _row_to_result(self, row: sqlite3.Row) -> BacktestResult:
        """Convert database row to BacktestResult."""
        # json.dumps writes inf as Infinity, which json.loads accepts
        metrics = BacktestMetrics.from_dict(json.loads(row["metrics"]))
        return BacktestResult(
            id=row["id"],
            strategy_id=row["strategy_id"],
            symbol=row["symbol"],
            start_date=datetime.fromisoformat(row["start_date"]),
            end_date=datetime.fromisoformat(row["end_date"]),
            status=BacktestStatus(row["status"]),
            metrics=metrics,
            trades=tuple(_trade_from_dict(t) for t in json.loads(row["trades"])),
            equity_curve=tuple(_point_from_dict(p) for p in json.loads(row["equity_curve"])),
            created_at=datetime.fromisoformat(row["created_at"]),
        )
