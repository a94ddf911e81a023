"""
Signal Generation

Turns a bar series into an alternating sequence of entry and exit
signals for one of the built-in strategy variants.
"""

import logging
import math
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Optional, Union

from tradesim.backtesting.models import OHLCV, Signal, SignalKind, TradeSide
from tradesim.validation import ConfigValidator, is_positive

logger = logging.getLogger(__name__)


class StrategyType(Enum):
    """Built-in strategy variants."""
    MOMENTUM = "momentum"
    MEAN_REVERSION = "mean_reversion"
    TREND_FOLLOWING = "trend_following"

    @classmethod
    def resolve(cls, value: Union[str, "StrategyType"]) -> "StrategyType":
        """Map a stored type name to a variant, defaulting to momentum."""
        if isinstance(value, cls):
            return value
        try:
            return cls(value)
        except ValueError:
            logger.warning(f"Unknown strategy type {value!r}, using momentum")
            return cls.MOMENTUM


@dataclass(frozen=True)
class MomentumParams:
    """Rate-of-change momentum parameters."""
    lookback_period: int = 14
    entry_threshold: float = 0.02
    exit_threshold: float = -0.01


@dataclass(frozen=True)
class MeanReversionParams:
    """Bollinger band mean reversion parameters."""
    bollinger_period: int = 20
    bollinger_std_dev: float = 2.0


@dataclass(frozen=True)
class TrendFollowingParams:
    """Moving average crossover parameters."""
    fast_ma_period: int = 10
    slow_ma_period: int = 50


StrategyParams = Union[MomentumParams, MeanReversionParams, TrendFollowingParams]


class _PositionState:
    """Flat/long/short state machine shared by the generators."""

    def __init__(self):
        self.side: Optional[TradeSide] = None
        self.signals: list[Signal] = []

    @property
    def is_flat(self) -> bool:
        return self.side is None

    def enter(self, bar: OHLCV, side: TradeSide, strength: Optional[float] = None) -> None:
        self.signals.append(Signal(bar.timestamp, SignalKind.ENTRY, side, bar.close, strength))
        self.side = side

    def exit(self, bar: OHLCV) -> None:
        self.signals.append(Signal(bar.timestamp, SignalKind.EXIT, self.side, bar.close))
        self.side = None


def _closes(bars: list[OHLCV]) -> list[float]:
    return [float(bar.close) for bar in bars]


def _momentum(bars: list[OHLCV], params: MomentumParams) -> list[Signal]:
    state = _PositionState()
    closes = _closes(bars)
    lookback = params.lookback_period

    for i in range(lookback, len(bars)):
        base = closes[i - lookback]
        r = (closes[i] - base) / base

        if state.is_flat:
            if r > params.entry_threshold:
                state.enter(bars[i], TradeSide.LONG, r)
            elif r < -params.entry_threshold:
                state.enter(bars[i], TradeSide.SHORT, abs(r))
        elif state.side == TradeSide.LONG:
            if r < params.exit_threshold:
                state.exit(bars[i])
        elif r > -params.exit_threshold:
            state.exit(bars[i])

    return state.signals


def _mean_reversion(bars: list[OHLCV], params: MeanReversionParams) -> list[Signal]:
    state = _PositionState()
    closes = _closes(bars)
    period = params.bollinger_period

    for i in range(period, len(bars)):
        window = closes[i - period:i]
        sma = sum(window) / period
        std = math.sqrt(sum((c - sma) ** 2 for c in window) / period)
        upper = sma + params.bollinger_std_dev * std
        lower = sma - params.bollinger_std_dev * std
        close = closes[i]

        if state.is_flat:
            if close < lower:
                state.enter(bars[i], TradeSide.LONG)
            elif close > upper:
                state.enter(bars[i], TradeSide.SHORT)
        elif state.side == TradeSide.LONG:
            if close > sma:
                state.exit(bars[i])
        elif close < sma:
            state.exit(bars[i])

    return state.signals


def _trend_following(bars: list[OHLCV], params: TrendFollowingParams) -> list[Signal]:
    state = _PositionState()
    closes = _closes(bars)
    fast_period = params.fast_ma_period
    slow_period = params.slow_ma_period
    prev_fast: Optional[float] = None
    prev_slow: Optional[float] = None

    for i in range(slow_period, len(bars)):
        fast = sum(closes[i - fast_period:i]) / fast_period
        slow = sum(closes[i - slow_period:i]) / slow_period

        if prev_fast is not None:
            crossed_up = prev_fast <= prev_slow and fast > slow
            crossed_down = prev_fast >= prev_slow and fast < slow

            if state.is_flat:
                if crossed_up:
                    state.enter(bars[i], TradeSide.LONG)
                elif crossed_down:
                    state.enter(bars[i], TradeSide.SHORT)
            elif state.side == TradeSide.LONG:
                if crossed_down:
                    state.exit(bars[i])
            elif crossed_up:
                state.exit(bars[i])

        prev_fast, prev_slow = fast, slow

    return state.signals


_GENERATORS: dict[StrategyType, tuple[type, Callable[[list[OHLCV], Any], list[Signal]]]] = {
    StrategyType.MOMENTUM: (MomentumParams, _momentum),
    StrategyType.MEAN_REVERSION: (MeanReversionParams, _mean_reversion),
    StrategyType.TREND_FOLLOWING: (TrendFollowingParams, _trend_following),
}


def generate_signals(
    strategy_type: StrategyType,
    bars: list[OHLCV],
    params: Optional[StrategyParams] = None,
) -> list[Signal]:
    """
    Generate alternating entry/exit signals for a bar series.

    Args:
        strategy_type: Strategy variant
        bars: Bars in timestamp order
        params: Variant parameters, defaults when omitted

    Returns:
        Signals in bar order, priced at the bar close
    """
    params_type, generator = _GENERATORS[strategy_type]
    if params is None:
        params = params_type()
    elif not isinstance(params, params_type):
        raise TypeError(
            f"{strategy_type.value} expects {params_type.__name__}, "
            f"got {type(params).__name__}"
        )

    signals = generator(bars, params)
    logger.debug(f"{strategy_type.value}: {len(signals)} signals from {len(bars)} bars")
    return signals


def _positive_int(value: Any) -> bool:
    if value is None:
        return True
    return isinstance(value, int) and not isinstance(value, bool) and value > 0


def params_from_config(
    strategy_type: Union[str, StrategyType],
    config: Optional[dict] = None,
) -> StrategyParams:
    """
    Build variant parameters from a flat strategy configuration.

    Missing keys fall back to the variant defaults.

    Raises:
        BacktestValidationError: If a present value is invalid
    """
    strategy_type = StrategyType.resolve(strategy_type)
    config = config or {}
    validator = ConfigValidator()

    if strategy_type == StrategyType.MOMENTUM:
        validator.custom("lookback_period", _positive_int, "lookback_period must be a positive integer")
        validator.type_check("entry_threshold", (int, float), "entry_threshold must be a number")
        validator.type_check("exit_threshold", (int, float), "exit_threshold must be a number")
        validator.custom("entry_threshold", is_positive, "entry_threshold must be positive")
        fields = ("lookback_period", "entry_threshold", "exit_threshold")
    elif strategy_type == StrategyType.MEAN_REVERSION:
        validator.custom("bollinger_period", _positive_int, "bollinger_period must be a positive integer")
        validator.type_check("bollinger_std_dev", (int, float), "bollinger_std_dev must be a number")
        validator.custom("bollinger_std_dev", is_positive, "bollinger_std_dev must be positive")
        fields = ("bollinger_period", "bollinger_std_dev")
    else:
        validator.custom("fast_ma_period", _positive_int, "fast_ma_period must be a positive integer")
        validator.custom("slow_ma_period", _positive_int, "slow_ma_period must be a positive integer")
        fast = config.get("fast_ma_period")
        slow = config.get("slow_ma_period")
        fast = TrendFollowingParams.fast_ma_period if fast is None else fast
        slow = TrendFollowingParams.slow_ma_period if slow is None else slow
        validator.custom(
            "slow_ma_period",
            lambda _: slow > fast,
            "slow_ma_period must be greater than fast_ma_period",
            condition=lambda c: _positive_int(fast) and _positive_int(slow),
        )
        fields = ("fast_ma_period", "slow_ma_period")

    validator.validate(config).raise_if_invalid()

    params_type = _GENERATORS[strategy_type][0]
    values = {name: config[name] for name in fields if config.get(name) is not None}
    return params_type(**values)
