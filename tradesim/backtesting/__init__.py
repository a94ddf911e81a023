"""Backtesting module."""

from tradesim.backtesting.models import (
    OHLCV,
    BacktestConfig,
    BacktestMetrics,
    BacktestResult,
    BacktestStatus,
    EquityPoint,
    RiskAnalysis,
    Signal,
    SignalKind,
    TradeRecord,
    TradeSide,
)
from tradesim.backtesting.signals import StrategyType, generate_signals, params_from_config
from tradesim.backtesting.simulator import BacktestSimulator, simulate_trades
from tradesim.backtesting.metrics import MetricsCalculator
from tradesim.backtesting.risk_analysis import RiskAnalyzer
from tradesim.backtesting.service import BacktestService, InMemoryStrategyProvider, StrategyDefinition

__all__ = [
    "OHLCV",
    "BacktestConfig",
    "BacktestMetrics",
    "BacktestResult",
    "BacktestStatus",
    "EquityPoint",
    "RiskAnalysis",
    "Signal",
    "SignalKind",
    "TradeRecord",
    "TradeSide",
    "StrategyType",
    "generate_signals",
    "params_from_config",
    "BacktestSimulator",
    "simulate_trades",
    "MetricsCalculator",
    "RiskAnalyzer",
    "BacktestService",
    "InMemoryStrategyProvider",
    "StrategyDefinition",
]
