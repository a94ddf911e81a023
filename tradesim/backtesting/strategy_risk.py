"""Go-live risk summary for a strategy, based on its latest backtest."""

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Optional, Protocol

from config.settings import StrategyRiskSettings
from tradesim.backtesting.models import BacktestResult

logger = logging.getLogger(__name__)


class RiskStatus(Enum):
    """Strategy risk status."""
    OK = "ok"
    WARNING = "warning"
    BLOCKED = "blocked"


@dataclass
class StrategyRiskSummary:
    """Status and reasons for a strategy."""
    strategy_id: str
    status: RiskStatus
    reasons: list[str] = field(default_factory=list)
    backtest_id: Optional[str] = None

    def to_dict(self) -> dict:
        """Convert to dictionary."""
        return {
            "strategy_id": self.strategy_id,
            "status": self.status.value,
            "reasons": list(self.reasons),
            "backtest_id": self.backtest_id,
        }


class BacktestHistory(Protocol):
    def get_latest_completed(self, strategy_id: str) -> Optional[BacktestResult]:
        ...


class StrategyRiskService:
    """Classify strategies as ok, warning or blocked."""

    def __init__(self, history: BacktestHistory, thresholds: Optional[StrategyRiskSettings] = None):
        self.history = history
        self.thresholds = thresholds or StrategyRiskSettings()

    def get_strategy_risk(self, strategy_id: str) -> StrategyRiskSummary:
        """Summarize a strategy's readiness from its latest completed backtest."""
        latest = self.history.get_latest_completed(strategy_id)
        if latest is None:
            return StrategyRiskSummary(
                strategy_id=strategy_id,
                status=RiskStatus.BLOCKED,
                reasons=["No completed backtest for this strategy"],
            )

        m = latest.metrics
        t = self.thresholds
        blocking = []
        warnings = []

        if m.total_return < 0:
            blocking.append(f"Negative backtest return ({m.total_return:.2f}%)")
        if m.max_drawdown > t.max_drawdown_pct:
            blocking.append(
                f"Max drawdown {m.max_drawdown:.2f}% exceeds {t.max_drawdown_pct:.0f}%"
            )
        if m.win_rate < t.min_win_rate_pct:
            warnings.append(f"Win rate {m.win_rate:.1f}% below {t.min_win_rate_pct:.0f}%")
        if m.sharpe_ratio < t.min_sharpe_ratio:
            warnings.append(f"Sharpe ratio {m.sharpe_ratio:.2f} below {t.min_sharpe_ratio}")

        if blocking:
            status = RiskStatus.BLOCKED
            reasons = blocking + warnings
        elif warnings:
            status = RiskStatus.WARNING
            reasons = warnings
        else:
            status = RiskStatus.OK
            reasons = ["Backtest metrics within configured thresholds"]

        if status != RiskStatus.OK:
            logger.info(f"Strategy {strategy_id} risk {status.value}: {'; '.join(reasons)}")

        return StrategyRiskSummary(
            strategy_id=strategy_id,
            status=status,
            reasons=reasons,
            backtest_id=latest.id,
        )
