"""
Risk Calculations

Pure functions for position sizing, risk/reward, tail risk, drawdown and
trade statistics. All inputs and outputs are floats.
"""

import math
from dataclasses import dataclass
from enum import Enum
from typing import Optional, Sequence


class SizingMethod(Enum):
    """Position sizing methods."""

    FIXED_PERCENTAGE = "fixed_percentage"
    KELLY_CRITERION = "kelly_criterion"
    FIXED_AMOUNT = "fixed_amount"
    VOLATILITY_ADJUSTED = "volatility_adjusted"


class Direction(Enum):
    """Trade direction."""

    LONG = "long"
    SHORT = "short"


MAX_KELLY_FRACTION = 0.25
FIXED_AMOUNT_CAP = 0.1  # of account balance
MAX_VOLATILITY_ADJUSTMENT = 2.0


@dataclass
class PositionSizeResult:
    """Result of position sizing."""

    method: SizingMethod
    position_size: float
    risk_amount: float
    risk_percentage: float
    max_loss: float

    def to_dict(self) -> dict:
        """Convert to dictionary."""
        return {
            "method": self.method.value,
            "position_size": self.position_size,
            "risk_amount": self.risk_amount,
            "risk_percentage": self.risk_percentage,
            "max_loss": self.max_loss,
        }


@dataclass
class RiskRewardResult:
    """Risk/reward of a planned trade."""

    risk_amount: float
    reward_amount: float
    risk_reward_ratio: float
    break_even_win_rate: float


@dataclass
class DrawdownResult:
    """Drawdown of an equity curve; percentages are fractions."""

    max_drawdown: float = 0.0
    max_drawdown_percent: float = 0.0
    current_drawdown: float = 0.0
    current_drawdown_percent: float = 0.0
    peak_value: float = 0.0
    trough_value: float = 0.0

    def to_dict(self) -> dict:
        """Convert to dictionary."""
        return {
            "max_drawdown": self.max_drawdown,
            "max_drawdown_percent": self.max_drawdown_percent,
            "current_drawdown": self.current_drawdown,
            "current_drawdown_percent": self.current_drawdown_percent,
            "peak_value": self.peak_value,
            "trough_value": self.trough_value,
        }


@dataclass
class TradeStats:
    """Win/loss statistics; win_rate is a fraction."""

    total_trades: int = 0
    winning_trades: int = 0
    losing_trades: int = 0
    win_rate: float = 0.0
    avg_win: float = 0.0
    avg_loss: float = 0.0
    profit_factor: float = 0.0
    expectancy: float = 0.0

    def to_dict(self) -> dict:
        """Convert to dictionary."""
        return {
            "total_trades": self.total_trades,
            "winning_trades": self.winning_trades,
            "losing_trades": self.losing_trades,
            "win_rate": self.win_rate,
            "avg_win": self.avg_win,
            "avg_loss": self.avg_loss,
            "profit_factor": self.profit_factor,
            "expectancy": self.expectancy,
        }


def calculate_kelly_fraction(win_rate: float, avg_win: float, avg_loss: float) -> float:
    """
    Kelly criterion fraction f* = (b*p - q) / b, floored at 0.

    b is avg_win / avg_loss, p the win rate and q = 1 - p.
    """
    if avg_loss <= 0 or avg_win <= 0 or win_rate < 0 or win_rate > 1:
        return 0.0
    b = avg_win / avg_loss
    kelly = (b * win_rate - (1 - win_rate)) / b
    return max(0.0, kelly)


def calculate_position_size(
    method: SizingMethod,
    account_balance: float,
    risk_percentage: float = 0.02,
    win_rate: float = 0.5,
    avg_win: float = 1.0,
    avg_loss: float = 1.0,
    fixed_amount: float = 0.0,
    volatility: float = 0.0,
    avg_volatility: float = 1.0,
) -> PositionSizeResult:
    """
    Calculate position size for a sizing method.

    Kelly sizing uses half-Kelly capped at 25% of the balance.
    """
    method = SizingMethod(method)

    if method == SizingMethod.FIXED_PERCENTAGE:
        risk_amount = account_balance * risk_percentage
    elif method == SizingMethod.KELLY_CRITERION:
        half_kelly = calculate_kelly_fraction(win_rate, avg_win, avg_loss) * 0.5
        risk_amount = account_balance * max(0.0, min(half_kelly, MAX_KELLY_FRACTION))
    elif method == SizingMethod.FIXED_AMOUNT:
        risk_amount = min(fixed_amount, account_balance * FIXED_AMOUNT_CAP)
    else:
        adjustment = avg_volatility / max(volatility, 0.001) if avg_volatility > 0 else 1.0
        risk_amount = account_balance * risk_percentage * min(adjustment, MAX_VOLATILITY_ADJUSTMENT)

    return PositionSizeResult(
        method=method,
        position_size=risk_amount,
        risk_amount=risk_amount,
        risk_percentage=risk_amount / account_balance if account_balance > 0 else 0.0,
        max_loss=risk_amount,
    )


def calculate_risk_reward(entry_price: float, stop_loss: float, take_profit: float) -> RiskRewardResult:
    """Reward over risk, with the win rate needed to break even."""
    risk = abs(entry_price - stop_loss)
    reward = abs(take_profit - entry_price)
    ratio = reward / risk if risk > 0 else 0.0
    return RiskRewardResult(
        risk_amount=risk,
        reward_amount=reward,
        risk_reward_ratio=ratio,
        break_even_win_rate=1 / (1 + ratio) if ratio > 0 else 1.0,
    )


def calculate_var(returns: Sequence[float], confidence_level: float = 0.95) -> float:
    """Historical VaR as a positive fractional loss."""
    if not returns:
        return 0.0
    ordered = sorted(returns)
    index = int(math.floor((1 - confidence_level) * len(ordered)))
    return -ordered[max(0, index)]


def calculate_cvar(returns: Sequence[float], confidence_level: float = 0.95) -> float:
    """Expected shortfall: mean of the returns beyond the VaR cut-off."""
    if not returns:
        return 0.0
    ordered = sorted(returns)
    cutoff = max(1, int(math.floor((1 - confidence_level) * len(ordered))))
    tail = ordered[:cutoff]
    return -(sum(tail) / len(tail))


def calculate_drawdown(equity_curve: Sequence[float]) -> DrawdownResult:
    """Maximum and current drawdown of an equity series."""
    if not equity_curve:
        return DrawdownResult()

    peak = equity_curve[0]
    result = DrawdownResult(peak_value=peak, trough_value=peak)

    for value in equity_curve:
        peak = max(peak, value)
        drawdown = peak - value
        drawdown_pct = drawdown / peak if peak > 0 else 0.0
        if drawdown_pct > result.max_drawdown_percent:
            result.max_drawdown = drawdown
            result.max_drawdown_percent = drawdown_pct
            result.peak_value = peak
            result.trough_value = value

    current_peak = max(equity_curve)
    current = equity_curve[-1]
    result.current_drawdown = current_peak - current
    result.current_drawdown_percent = (
        result.current_drawdown / current_peak if current_peak > 0 else 0.0
    )
    return result


def calculate_sharpe_ratio(
    returns: Sequence[float],
    risk_free_rate: float = 0.02,
    periods_per_year: int = 252,
) -> float:
    """Annualised excess return over sample standard deviation."""
    if len(returns) < 2:
        return 0.0
    mean = sum(returns) / len(returns)
    variance = sum((r - mean) ** 2 for r in returns) / (len(returns) - 1)
    std = math.sqrt(variance)
    if std == 0:
        return 0.0
    return (mean * periods_per_year - risk_free_rate) / (std * math.sqrt(periods_per_year))


def calculate_sortino_ratio(
    returns: Sequence[float],
    risk_free_rate: float = 0.02,
    periods_per_year: int = 252,
) -> float:
    """
    Annualised excess return over downside deviation.

    With no negative returns: +inf for a positive mean, otherwise 0.
    """
    if len(returns) < 2:
        return 0.0
    mean = sum(returns) / len(returns)
    negatives = [r for r in returns if r < 0]
    if not negatives:
        return math.inf if mean > 0 else 0.0
    downside = math.sqrt(sum(r ** 2 for r in negatives) / len(negatives))
    if downside == 0:
        return 0.0
    return (mean * periods_per_year - risk_free_rate) / (downside * math.sqrt(periods_per_year))


def calculate_trade_stats(pnls: Sequence[float]) -> TradeStats:
    """Win/loss statistics over trade PnLs; breakeven trades count as neither."""
    if not pnls:
        return TradeStats()

    wins = [p for p in pnls if p > 0]
    losses = [p for p in pnls if p < 0]
    total_win = sum(wins)
    total_loss = abs(sum(losses))

    avg_win = total_win / len(wins) if wins else 0.0
    avg_loss = total_loss / len(losses) if losses else 0.0
    win_rate = len(wins) / len(pnls)

    if total_loss > 0:
        profit_factor = total_win / total_loss
    else:
        profit_factor = math.inf if total_win > 0 else 0.0

    return TradeStats(
        total_trades=len(pnls),
        winning_trades=len(wins),
        losing_trades=len(losses),
        win_rate=win_rate,
        avg_win=avg_win,
        avg_loss=avg_loss,
        profit_factor=profit_factor,
        expectancy=win_rate * avg_win - (1 - win_rate) * avg_loss,
    )


def calculate_correlation(returns_a: Sequence[float], returns_b: Sequence[float]) -> float:
    """Pearson correlation over the common length of two series."""
    n = min(len(returns_a), len(returns_b))
    if n < 2:
        return 0.0
    a, b = returns_a[:n], returns_b[:n]
    mean_a = sum(a) / n
    mean_b = sum(b) / n

    covariance = sum((x - mean_a) * (y - mean_b) for x, y in zip(a, b))
    var_a = sum((x - mean_a) ** 2 for x in a)
    var_b = sum((y - mean_b) ** 2 for y in b)
    if var_a == 0 or var_b == 0:
        return 0.0
    return covariance / math.sqrt(var_a * var_b)


def calculate_beta(asset_returns: Sequence[float], market_returns: Sequence[float]) -> float:
    """Beta of an asset against the market; 1 when undefined."""
    n = min(len(asset_returns), len(market_returns))
    if n < 2:
        return 1.0
    a, m = asset_returns[:n], market_returns[:n]
    mean_a = sum(a) / n
    mean_m = sum(m) / n

    covariance = sum((x - mean_a) * (y - mean_m) for x, y in zip(a, m))
    market_var = sum((y - mean_m) ** 2 for y in m)
    if market_var == 0:
        return 1.0
    return covariance / market_var


def calculate_stop_loss(
    entry_price: float,
    direction: Direction,
    risk_percentage: float = 0.02,
    atr: Optional[float] = None,
    atr_multiplier: float = 2.0,
) -> float:
    """ATR-based stop when an ATR is given, percentage-based otherwise."""
    direction = Direction(direction)
    if atr and atr > 0:
        distance = atr * atr_multiplier
        return entry_price - distance if direction == Direction.LONG else entry_price + distance

    if direction == Direction.LONG:
        return entry_price * (1 - risk_percentage)
    return entry_price * (1 + risk_percentage)


def calculate_take_profit(
    entry_price: float,
    stop_loss: float,
    direction: Direction,
    risk_reward_ratio: float = 2.0,
) -> float:
    """Target placed ``risk_reward_ratio`` times the stop distance away."""
    direction = Direction(direction)
    reward = abs(entry_price - stop_loss) * risk_reward_ratio
    return entry_price + reward if direction == Direction.LONG else entry_price - reward
