"""Pre-trade risk checks and portfolio risk tracking."""

import logging
import uuid
from dataclasses import asdict, dataclass, field, fields
from datetime import datetime
from typing import Any, Dict, List, Optional

from tradesim.errors import PositionNotFoundError
from tradesim.risk.calculations import (
    Direction,
    DrawdownResult,
    PositionSizeResult,
    SizingMethod,
    TradeStats,
    calculate_cvar,
    calculate_drawdown,
    calculate_position_size,
    calculate_risk_reward,
    calculate_sharpe_ratio,
    calculate_sortino_ratio,
    calculate_stop_loss,
    calculate_take_profit,
    calculate_trade_stats,
    calculate_var,
)

logger = logging.getLogger(__name__)


@dataclass
class RiskLimits:
    """Risk limits; fractions of equity unless noted."""

    max_position_size: float = 0.1
    max_daily_loss: float = 0.05
    max_drawdown: float = 0.2
    max_open_positions: int = 10
    min_risk_reward_ratio: float = 1.5

    @classmethod
    def from_settings(cls, settings: Any) -> "RiskLimits":
        """Build from the ``risk`` section of engine settings."""
        return cls(**{f.name: getattr(settings, f.name) for f in fields(cls)})

    def to_dict(self) -> dict:
        """Convert to dictionary."""
        return asdict(self)


@dataclass
class RiskPosition:
    """An open position tracked by the risk manager."""

    symbol: str
    direction: Direction
    size: float
    entry_price: float
    stop_loss: float
    take_profit: float
    id: str = field(default_factory=lambda: f"pos_{uuid.uuid4().hex[:12]}")
    current_price: float = 0.0
    unrealized_pnl: float = 0.0
    opened_at: datetime = field(default_factory=datetime.now)

    def __post_init__(self):
        if not self.current_price:
            self.current_price = self.entry_price

    @property
    def notional(self) -> float:
        return self.size * self.entry_price

    def price_diff(self, price: float) -> float:
        if self.direction == Direction.LONG:
            return price - self.entry_price
        return self.entry_price - price


@dataclass
class RiskTrade:
    """A closed risk-manager position."""

    symbol: str
    direction: Direction
    entry_price: float
    exit_price: float
    size: float
    pnl: float
    pnl_percent: float
    opened_at: datetime
    closed_at: datetime
    id: str = field(default_factory=lambda: f"trade_{uuid.uuid4().hex[:12]}")


@dataclass
class RiskCheckResult:
    """Outcome of a pre-trade check."""

    allowed: bool
    reason: Optional[str] = None
    warnings: List[str] = field(default_factory=list)
    adjusted_size: Optional[float] = None

    def to_dict(self) -> dict:
        """Convert to dictionary."""
        return {
            "allowed": self.allowed,
            "reason": self.reason,
            "warnings": list(self.warnings),
            "adjusted_size": self.adjusted_size,
        }


@dataclass
class RiskMetrics:
    """Portfolio risk snapshot."""

    total_equity: float
    available_capital: float
    used_margin: float
    margin_usage_percent: float
    unrealized_pnl: float
    realized_pnl: float
    daily_pnl: float
    daily_pnl_percent: float
    open_positions: int
    drawdown: DrawdownResult
    var_95: float
    cvar_95: float
    sharpe_ratio: float
    sortino_ratio: float
    trade_stats: TradeStats

    def to_dict(self) -> dict:
        """Convert to dictionary."""
        return {
            "total_equity": self.total_equity,
            "available_capital": self.available_capital,
            "used_margin": self.used_margin,
            "margin_usage_percent": self.margin_usage_percent,
            "unrealized_pnl": self.unrealized_pnl,
            "realized_pnl": self.realized_pnl,
            "daily_pnl": self.daily_pnl,
            "daily_pnl_percent": self.daily_pnl_percent,
            "open_positions": self.open_positions,
            "drawdown": self.drawdown.to_dict(),
            "var_95": self.var_95,
            "cvar_95": self.cvar_95,
            "sharpe_ratio": self.sharpe_ratio,
            "sortino_ratio": self.sortino_ratio,
            "trade_stats": self.trade_stats.to_dict(),
        }


class RiskManager:
    """Portfolio risk manager.

    Tracks its own positions and equity, independent of any ledger.
    Checks run in a fixed order and the first rejection wins:

    - open position count
    - position size (adjusts, never rejects)
    - risk/reward ratio
    - current drawdown
    - daily loss
    - duplicate symbol (warning only)
    """

    def __init__(self, initial_equity: float, limits: Optional[RiskLimits] = None):
        self.initial_equity = float(initial_equity)
        self.current_equity = float(initial_equity)
        self.limits = limits or RiskLimits()
        self._positions: Dict[str, RiskPosition] = {}
        self._trades: List[RiskTrade] = []
        self._equity_curve: List[float] = [self.initial_equity]
        self._daily_returns: List[float] = []

    def _trade_stats(self) -> TradeStats:
        return calculate_trade_stats([t.pnl for t in self._trades])

    def calculate_position(
        self,
        method: SizingMethod,
        risk_percentage: float = 0.02,
        fixed_amount: float = 0.0,
        volatility: float = 0.0,
        avg_volatility: float = 1.0,
    ) -> PositionSizeResult:
        """Size a new position from current equity and trade history."""
        stats = self._trade_stats()
        return calculate_position_size(
            method,
            self.current_equity,
            risk_percentage=risk_percentage,
            win_rate=stats.win_rate or 0.5,
            avg_win=stats.avg_win or 1.0,
            avg_loss=stats.avg_loss or 1.0,
            fixed_amount=fixed_amount,
            volatility=volatility,
            avg_volatility=avg_volatility,
        )

    def check_trade_risk(
        self,
        symbol: str,
        direction: Direction,
        size: float,
        entry_price: float,
        stop_loss: float,
        take_profit: float,
    ) -> RiskCheckResult:
        """Check a proposed trade against the limits."""
        limits = self.limits
        warnings: List[str] = []
        adjusted_size = size

        if len(self._positions) >= limits.max_open_positions:
            return RiskCheckResult(
                allowed=False,
                reason=f"Max open positions ({limits.max_open_positions}) reached",
                warnings=warnings,
            )

        position_percent = size * entry_price / self.current_equity if self.current_equity > 0 else float("inf")
        if position_percent > limits.max_position_size:
            adjusted_size = limits.max_position_size * self.current_equity / entry_price
            warnings.append(
                f"Position size reduced from {size:.4f} to {adjusted_size:.4f} "
                f"(max {limits.max_position_size * 100:g}%)"
            )

        rr = calculate_risk_reward(entry_price, stop_loss, take_profit)
        if rr.risk_reward_ratio < limits.min_risk_reward_ratio:
            return RiskCheckResult(
                allowed=False,
                reason=(
                    f"Risk/reward ratio {rr.risk_reward_ratio:.2f} "
                    f"below minimum {limits.min_risk_reward_ratio}"
                ),
                warnings=warnings,
            )

        drawdown = calculate_drawdown(self._equity_curve)
        if drawdown.current_drawdown_percent >= limits.max_drawdown:
            return RiskCheckResult(
                allowed=False,
                reason=(
                    f"Current drawdown {drawdown.current_drawdown_percent * 100:.1f}% "
                    f"exceeds limit {limits.max_drawdown * 100:g}%"
                ),
                warnings=warnings,
            )

        if self.get_daily_pnl_percent() <= -limits.max_daily_loss:
            return RiskCheckResult(
                allowed=False,
                reason=f"Daily loss limit ({limits.max_daily_loss * 100:g}%) reached",
                warnings=warnings,
            )

        if any(p.symbol == symbol for p in self._positions.values()):
            warnings.append(f"Already have open position in {symbol}")

        return RiskCheckResult(
            allowed=True,
            warnings=warnings,
            adjusted_size=adjusted_size if adjusted_size != size else None,
        )

    def open_position(
        self,
        symbol: str,
        direction: Direction,
        size: float,
        entry_price: float,
        stop_loss: float,
        take_profit: float,
    ) -> RiskPosition:
        """Start tracking a position."""
        position = RiskPosition(
            symbol=symbol,
            direction=Direction(direction),
            size=size,
            entry_price=entry_price,
            stop_loss=stop_loss,
            take_profit=take_profit,
        )
        self._positions[position.id] = position
        logger.info(f"Opened {position.direction.value} {size} {symbol} @ {entry_price} ({position.id})")
        return position

    def update_position(self, position_id: str, current_price: float) -> RiskPosition:
        """Mark a position to a new price."""
        position = self.get_position(position_id)
        position.current_price = current_price
        position.unrealized_pnl = position.price_diff(current_price) * position.size
        return position

    def close_position(self, position_id: str, exit_price: float) -> RiskTrade:
        """Realize a position and book the PnL into equity."""
        position = self.get_position(position_id)
        del self._positions[position_id]

        diff = position.price_diff(exit_price)
        trade = RiskTrade(
            symbol=position.symbol,
            direction=position.direction,
            entry_price=position.entry_price,
            exit_price=exit_price,
            size=position.size,
            pnl=diff * position.size,
            pnl_percent=diff / position.entry_price,
            opened_at=position.opened_at,
            closed_at=datetime.now(),
        )
        self._trades.append(trade)
        self.current_equity += trade.pnl
        self._equity_curve.append(self.current_equity)

        logger.info(f"Closed {position.symbol} ({position_id}): pnl {trade.pnl:.2f}")
        return trade

    def get_position(self, position_id: str) -> RiskPosition:
        """
        Look up an open position.

        Raises:
            PositionNotFoundError: Unknown or already closed id
        """
        position = self._positions.get(position_id)
        if position is None:
            raise PositionNotFoundError(position_id)
        return position

    def get_positions(self) -> List[RiskPosition]:
        return list(self._positions.values())

    def get_trades(self) -> List[RiskTrade]:
        return list(self._trades)

    def get_equity_curve(self) -> List[float]:
        return list(self._equity_curve)

    def calculate_stop_loss(
        self,
        entry_price: float,
        direction: Direction,
        risk_percent: float = 0.02,
        atr: Optional[float] = None,
        atr_multiplier: float = 2.0,
    ) -> float:
        return calculate_stop_loss(entry_price, direction, risk_percent, atr, atr_multiplier)

    def calculate_take_profit(
        self,
        entry_price: float,
        stop_loss: float,
        direction: Direction,
        risk_reward_ratio: float = 2.0,
    ) -> float:
        return calculate_take_profit(entry_price, stop_loss, direction, risk_reward_ratio)

    def _returns(self) -> List[float]:
        curve = self._equity_curve
        return [
            (curr - prev) / prev if prev > 0 else 0.0
            for prev, curr in zip(curve, curve[1:])
        ]

    def get_daily_pnl(self) -> float:
        """Realized PnL of trades closed today."""
        today = datetime.now().date()
        return sum(t.pnl for t in self._trades if t.closed_at.date() == today)

    def get_daily_pnl_percent(self) -> float:
        """Today's realized PnL as a fraction of initial equity."""
        if self.initial_equity <= 0:
            return 0.0
        return self.get_daily_pnl() / self.initial_equity

    def get_metrics(self) -> RiskMetrics:
        """Portfolio risk snapshot."""
        positions = self.get_positions()
        unrealized = sum(p.unrealized_pnl for p in positions)
        used_margin = sum(p.notional for p in positions)
        returns = self._returns()

        return RiskMetrics(
            total_equity=self.current_equity + unrealized,
            available_capital=self.current_equity - used_margin,
            used_margin=used_margin,
            margin_usage_percent=used_margin / self.current_equity if self.current_equity > 0 else 0.0,
            unrealized_pnl=unrealized,
            realized_pnl=self.current_equity - self.initial_equity,
            daily_pnl=self.get_daily_pnl(),
            daily_pnl_percent=self.get_daily_pnl_percent(),
            open_positions=len(positions),
            drawdown=calculate_drawdown(self._equity_curve),
            var_95=calculate_var(returns, 0.95),
            cvar_95=calculate_cvar(returns, 0.95),
            sharpe_ratio=calculate_sharpe_ratio(returns),
            sortino_ratio=calculate_sortino_ratio(returns),
            trade_stats=self._trade_stats(),
        )

    def get_limits(self) -> RiskLimits:
        """Copy of the current limits."""
        return RiskLimits(**self.limits.to_dict())

    def update_limits(self, **changes: Any) -> RiskLimits:
        """Change limits; unknown names are rejected."""
        known = {f.name for f in fields(RiskLimits)}
        unknown = set(changes) - known
        if unknown:
            raise ValueError(f"Unknown risk limits: {', '.join(sorted(unknown))}")
        self.limits = RiskLimits(**{**self.limits.to_dict(), **changes})
        logger.info(f"Risk limits updated: {changes}")
        return self.get_limits()

    def record_daily_return(self) -> float:
        """Record the return of the last equity step."""
        if len(self._equity_curve) < 2:
            daily = 0.0
        else:
            prev, curr = self._equity_curve[-2], self._equity_curve[-1]
            daily = (curr - prev) / prev if prev > 0 else 0.0
        self._daily_returns.append(daily)
        return daily

    def get_daily_returns(self) -> List[float]:
        return list(self._daily_returns)
