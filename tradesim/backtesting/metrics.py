"""
Performance Metrics

Summary statistics over the trades and equity curve of a simulation.
"""

import math
from typing import Sequence

from tradesim.backtesting.models import BacktestMetrics, EquityPoint, TradeRecord


def equity_returns(equity_curve: Sequence[EquityPoint]) -> list[float]:
    """Period-over-period returns of consecutive equity points."""
    returns = []
    for prev, curr in zip(equity_curve, equity_curve[1:]):
        prev_equity = float(prev.equity)
        if prev_equity == 0:
            continue
        returns.append((float(curr.equity) - prev_equity) / prev_equity)
    return returns


class MetricsCalculator:
    """Calculate backtest performance metrics."""

    PERIODS_PER_YEAR = 252

    @staticmethod
    def calculate(
        trades: Sequence[TradeRecord],
        equity_curve: Sequence[EquityPoint],
        initial_capital: float,
        periods_per_year: int = PERIODS_PER_YEAR,
    ) -> BacktestMetrics:
        """
        Compute performance metrics.

        Args:
            trades: Trade records; open trades are ignored
            equity_curve: Equity points in time order
            initial_capital: Starting capital
            periods_per_year: Annualisation factor for Sharpe

        Returns:
            BacktestMetrics
        """
        initial = float(initial_capital)
        final = float(equity_curve[-1].equity) if equity_curve else initial
        total_return = (final - initial) / initial * 100 if initial else 0.0

        closed = [t for t in trades if t.is_closed]
        wins = [float(t.pnl) for t in closed if t.pnl > 0]
        losses = [float(t.pnl) for t in closed if t.pnl <= 0]

        total_wins = sum(wins)
        total_losses = abs(sum(losses))

        return BacktestMetrics(
            initial_capital=initial,
            final_capital=final,
            total_return=total_return,
            total_trades=len(closed),
            winning_trades=len(wins),
            losing_trades=len(losses),
            win_rate=len(wins) / len(closed) * 100 if closed else 0.0,
            avg_win=total_wins / len(wins) if wins else 0.0,
            avg_loss=total_losses / len(losses) if losses else 0.0,
            max_drawdown=max((p.drawdown for p in equity_curve), default=0.0),
            sharpe_ratio=MetricsCalculator.sharpe_ratio(
                equity_returns(equity_curve), periods_per_year
            ),
            profit_factor=MetricsCalculator.profit_factor(total_wins, total_losses),
            avg_trade_duration=MetricsCalculator.avg_duration(closed),
        )

    @staticmethod
    def sharpe_ratio(returns: Sequence[float], periods_per_year: int = PERIODS_PER_YEAR) -> float:
        """Annualised mean over population standard deviation."""
        if not returns:
            return 0.0
        mean = sum(returns) / len(returns)
        std = math.sqrt(sum((r - mean) ** 2 for r in returns) / len(returns))
        if std == 0:
            return 0.0
        return mean / std * math.sqrt(periods_per_year)

    @staticmethod
    def profit_factor(total_wins: float, total_losses: float) -> float:
        """Gross wins over gross losses."""
        if total_losses > 0:
            return total_wins / total_losses
        return math.inf if total_wins > 0 else 0.0

    @staticmethod
    def avg_duration(trades: Sequence[TradeRecord]) -> float:
        """Mean holding time in seconds."""
        if not trades:
            return 0.0
        return sum(t.duration_seconds for t in trades) / len(trades)
