"""
Backtest Service

Validates backtest requests, resolves strategies, runs the
signal → simulation → metrics pipeline and keeps run history.
"""

import logging
import math
from collections import defaultdict
from dataclasses import dataclass, field
from decimal import Decimal
from typing import TYPE_CHECKING, Optional, Protocol

from config.settings import EngineSettings, get_settings
from tradesim.backtesting.metrics import MetricsCalculator
from tradesim.backtesting.models import (
    BacktestComparison,
    BacktestConfig,
    BacktestResult,
    BacktestStatus,
    RiskAnalysis,
    validate_bars,
)
from tradesim.backtesting.risk_analysis import RiskAnalyzer
from tradesim.backtesting.signals import StrategyType, generate_signals, params_from_config
from tradesim.backtesting.simulator import BacktestSimulator
from tradesim.errors import BacktestValidationError, StrategyNotFoundError, TierLimitError
from tradesim.validation import ConfigValidator, is_non_negative, is_positive

if TYPE_CHECKING:
    from tradesim.storage.results import ResultSink

logger = logging.getLogger(__name__)

SECONDS_PER_DAY = 86400


@dataclass
class StrategyDefinition:
    """A stored strategy: its variant name and flat parameter map."""
    id: str
    strategy_type: str
    config: dict = field(default_factory=dict)
    name: str = ""


class StrategyConfigProvider(Protocol):
    """Lookup of strategy definitions by id."""

    def get_strategy(self, strategy_id: str) -> Optional[StrategyDefinition]:
        ...


class InMemoryStrategyProvider:
    """Dictionary-backed strategy provider."""

    def __init__(self, strategies: Optional[list[StrategyDefinition]] = None):
        self._strategies: dict[str, StrategyDefinition] = {}
        for strategy in strategies or []:
            self.add(strategy)

    def add(self, strategy: StrategyDefinition) -> None:
        self._strategies[strategy.id] = strategy

    def get_strategy(self, strategy_id: str) -> Optional[StrategyDefinition]:
        return self._strategies.get(strategy_id)


def _request_validator() -> ConfigValidator:
    return (
        ConfigValidator()
        .required("strategy_id", "Strategy id is required")
        .required("symbol", "Symbol is required")
        .custom("initial_capital", is_positive, "Initial capital must be positive")
        .custom("slippage", is_non_negative, "Slippage cannot be negative")
        .custom("commission", is_non_negative, "Commission cannot be negative")
        .custom("data", lambda v: bool(v), "Historical data is required")
    )


class BacktestService:
    """
    Run and record backtests.

    Each run is independent; the service only accumulates history.
    """

    def __init__(
        self,
        strategy_provider: StrategyConfigProvider,
        result_sink: Optional["ResultSink"] = None,
        settings: Optional[EngineSettings] = None,
    ):
        self.strategy_provider = strategy_provider
        self.result_sink = result_sink
        self.settings = settings or get_settings()

        bt = self.settings.backtest
        self.simulator = BacktestSimulator(Decimal(str(bt.position_allocation)))
        self.risk_analyzer = RiskAnalyzer(bt.periods_per_year)
        self._history: dict[str, list[BacktestResult]] = defaultdict(list)

    def validate(self, config: BacktestConfig) -> None:
        """
        Check a request before any work is done.

        Raises:
            BacktestValidationError: On the first problem found
        """
        validator = _request_validator().custom(
            "end_date",
            lambda v: v > config.start_date,
            "End date must be after start date",
        )
        validator.validate({
            "strategy_id": config.strategy_id,
            "symbol": config.symbol,
            "initial_capital": config.initial_capital,
            "slippage": config.slippage,
            "commission": config.commission,
            "end_date": config.end_date,
            "data": config.data,
        }).raise_if_invalid()

        validate_bars(config.data)

    def check_tier_limit(self, config: BacktestConfig, tier: Optional[str]) -> None:
        """Raise TierLimitError when the period exceeds the tier allowance."""
        if tier is None:
            return

        limits = self.settings.backtest.tier_limits_days
        if tier not in limits:
            raise BacktestValidationError(f"Unknown subscription tier: {tier}", field="tier")

        max_days = limits[tier]
        if max_days < 0:
            return

        days = math.ceil((config.end_date - config.start_date).total_seconds() / SECONDS_PER_DAY)
        if days > max_days:
            raise TierLimitError(tier, max_days)

    def run_backtest(self, config: BacktestConfig, tier: Optional[str] = None) -> BacktestResult:
        """
        Run a backtest.

        Args:
            config: Backtest request
            tier: Subscription tier, unrestricted when None

        Returns:
            Completed BacktestResult

        Raises:
            BacktestValidationError: Invalid request or tier violation
            StrategyNotFoundError: Unknown strategy id
        """
        self.validate(config)

        strategy = self.strategy_provider.get_strategy(config.strategy_id)
        if strategy is None:
            raise StrategyNotFoundError(config.strategy_id)

        self.check_tier_limit(config, tier)

        bt = self.settings.backtest
        slippage = config.slippage if config.slippage is not None else bt.default_slippage_pct
        commission = config.commission if config.commission is not None else bt.default_commission_pct

        strategy_type = StrategyType.resolve(strategy.strategy_type)
        params = params_from_config(strategy_type, strategy.config)

        logger.info(
            f"Running {strategy_type.value} backtest for {config.strategy_id} "
            f"on {config.symbol}: {len(config.data)} bars"
        )

        signals = generate_signals(strategy_type, config.data, params)
        output = self.simulator.run(
            config.data,
            signals,
            config.initial_capital,
            Decimal(str(slippage)),
            Decimal(str(commission)),
        )
        metrics = MetricsCalculator.calculate(
            output.trades,
            output.equity_curve,
            float(config.initial_capital),
            bt.periods_per_year,
        )

        result = BacktestResult(
            strategy_id=config.strategy_id,
            symbol=config.symbol,
            start_date=config.start_date,
            end_date=config.end_date,
            status=BacktestStatus.COMPLETED,
            metrics=metrics,
            trades=output.trades,
            equity_curve=output.equity_curve,
        )

        self._history[config.strategy_id].append(result)
        self._persist(result)

        logger.info(
            f"Backtest {result.id} completed: {metrics.total_trades} trades, "
            f"return {metrics.total_return:.2f}%"
        )
        return result

    def _persist(self, result: BacktestResult) -> None:
        if self.result_sink is None:
            return
        try:
            self.result_sink.save(result)
        except Exception as e:
            logger.error(f"Failed to persist backtest {result.id}: {e}")

    def get_backtest_history(self, strategy_id: str) -> list[BacktestResult]:
        """Results for a strategy, newest first."""
        return list(reversed(self._history.get(strategy_id, [])))

    def get_latest_completed(self, strategy_id: str) -> Optional[BacktestResult]:
        """Most recent completed run for a strategy."""
        for result in self.get_backtest_history(strategy_id):
            if result.status == BacktestStatus.COMPLETED:
                return result
        return None

    @staticmethod
    def compare_backtests(results: list[BacktestResult]) -> list[BacktestComparison]:
        """Headline metrics of several runs, in the given order."""
        return [
            BacktestComparison(
                backtest_id=r.id,
                strategy_id=r.strategy_id,
                total_return=r.metrics.total_return,
                sharpe_ratio=r.metrics.sharpe_ratio,
                max_drawdown=r.metrics.max_drawdown,
                win_rate=r.metrics.win_rate,
            )
            for r in results
        ]

    def analyze_risk(self, result: BacktestResult) -> RiskAnalysis:
        """Risk statistics for a finished run."""
        return self.risk_analyzer.analyze(result)
