"""Tail risk, downside and streak analysis of a finished backtest."""

import logging
import math
from typing import Sequence

from tradesim.backtesting.metrics import equity_returns
from tradesim.backtesting.models import BacktestResult, EquityPoint, RiskAnalysis, TradeRecord

logger = logging.getLogger(__name__)


class RiskAnalyzer:
    """Derive risk statistics from a backtest result."""

    def __init__(self, periods_per_year: int = 252):
        self.periods_per_year = periods_per_year

    def analyze(self, result: BacktestResult) -> RiskAnalysis:
        """Analyze a completed backtest."""
        returns = sorted(equity_returns(result.equity_curve))

        max_drawdown = result.metrics.max_drawdown
        calmar = result.metrics.total_return / max_drawdown if max_drawdown > 0 else 0.0

        analysis = RiskAnalysis(
            value_at_risk_95=self.value_at_risk(returns, 0.05),
            value_at_risk_99=self.value_at_risk(returns, 0.01),
            conditional_var_95=self.conditional_var(returns, 0.05),
            sortino_ratio=self.sortino_ratio(returns),
            calmar_ratio=calmar,
            max_consecutive_losses=self.max_consecutive_losses(result.trades),
            avg_drawdown_duration=self.avg_drawdown_duration(result.equity_curve),
        )
        logger.debug(f"Risk analysis for {result.id}: {analysis.to_dict()}")
        return analysis

    @staticmethod
    def value_at_risk(sorted_returns: Sequence[float], alpha: float) -> float:
        """Historical VaR as a positive percentage loss."""
        if not sorted_returns:
            return 0.0
        index = int(math.floor(len(sorted_returns) * alpha))
        return -sorted_returns[index] * 100

    @staticmethod
    def conditional_var(sorted_returns: Sequence[float], alpha: float) -> float:
        """Expected shortfall beyond the VaR cut-off, as a positive percentage."""
        if not sorted_returns:
            return 0.0
        cutoff = max(1, int(math.floor(len(sorted_returns) * alpha)))
        tail = sorted_returns[:cutoff]
        return -(sum(tail) / len(tail)) * 100

    def sortino_ratio(self, returns: Sequence[float]) -> float:
        """
        Annualised mean over downside deviation.

        With no negative returns the ratio is unbounded: +inf when the
        mean is positive, 0 otherwise.
        """
        if not returns:
            return 0.0
        mean = sum(returns) / len(returns)
        negatives = [r for r in returns if r < 0]
        if not negatives:
            return math.inf if mean > 0 else 0.0
        downside = math.sqrt(sum(r ** 2 for r in negatives) / len(negatives))
        if downside == 0:
            return 0.0
        return mean / downside * math.sqrt(self.periods_per_year)

    @staticmethod
    def max_consecutive_losses(trades: Sequence[TradeRecord]) -> int:
        """Longest run of losing trades in chronological order."""
        longest = current = 0
        closed = sorted((t for t in trades if t.is_closed), key=lambda t: t.exit_time)
        for trade in closed:
            if trade.pnl < 0:
                current += 1
                longest = max(longest, current)
            else:
                current = 0
        return longest

    @staticmethod
    def avg_drawdown_duration(equity_curve: Sequence[EquityPoint]) -> float:
        """Mean seconds from a peak until equity recovers to it."""
        durations: list[float] = []
        peak = None
        peak_time = None
        in_drawdown = False

        for point in equity_curve:
            if peak is None or point.equity >= peak:
                if in_drawdown:
                    durations.append((point.timestamp - peak_time).total_seconds())
                    in_drawdown = False
                peak = point.equity
                peak_time = point.timestamp
            else:
                in_drawdown = True

        if in_drawdown:
            durations.append((equity_curve[-1].timestamp - peak_time).total_seconds())

        if not durations:
            return 0.0
        return sum(durations) / len(durations)
