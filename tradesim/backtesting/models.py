"""
Backtest Data Model

Price bars, signals, trade records, equity points and the result
containers produced by a simulation run.
"""

from dataclasses import dataclass, field, replace
from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Any, Optional
import uuid

from tradesim.errors import BacktestValidationError


def to_decimal(value: Any) -> Decimal:
    """Coerce a number to Decimal without binary float artifacts."""
    if isinstance(value, Decimal):
        return value
    return Decimal(str(value))


class SignalKind(Enum):
    """Signal kind."""
    ENTRY = "entry"
    EXIT = "exit"


class TradeSide(Enum):
    """Direction of a simulated position."""
    LONG = "long"
    SHORT = "short"


class BacktestStatus(Enum):
    """Outcome of a backtest run."""
    COMPLETED = "completed"
    FAILED = "failed"


@dataclass(frozen=True)
class OHLCV:
    """OHLCV candle data."""
    timestamp: datetime
    open: Decimal
    high: Decimal
    low: Decimal
    close: Decimal
    volume: Decimal = Decimal("0")

    def __post_init__(self):
        for name in ("open", "high", "low", "close", "volume"):
            object.__setattr__(self, name, to_decimal(getattr(self, name)))

    def to_dict(self) -> dict:
        """Convert to dictionary."""
        return {
            "timestamp": self.timestamp.isoformat(),
            "open": str(self.open),
            "high": str(self.high),
            "low": str(self.low),
            "close": str(self.close),
            "volume": str(self.volume),
        }


@dataclass(frozen=True)
class Signal:
    """Entry or exit instruction emitted by a signal generator."""
    timestamp: datetime
    kind: SignalKind
    side: TradeSide
    price: Decimal
    strength: Optional[float] = None

    def __post_init__(self):
        object.__setattr__(self, "price", to_decimal(self.price))

    def to_dict(self) -> dict:
        """Convert to dictionary."""
        return {
            "timestamp": self.timestamp.isoformat(),
            "kind": self.kind.value,
            "side": self.side.value,
            "price": str(self.price),
            "strength": self.strength,
        }


@dataclass(frozen=True)
class TradeRecord:
    """A simulated round trip; open until the exit fields are set."""
    entry_time: datetime
    entry_price: Decimal
    side: TradeSide
    quantity: Decimal
    id: str = field(default_factory=lambda: uuid.uuid4().hex)
    exit_time: Optional[datetime] = None
    exit_price: Optional[Decimal] = None
    pnl: Optional[Decimal] = None
    pnl_percent: Optional[float] = None

    @property
    def is_closed(self) -> bool:
        """True once exit fields are set."""
        return self.exit_time is not None

    @property
    def duration_seconds(self) -> float:
        """Holding time of a closed trade."""
        if self.exit_time is None:
            return 0.0
        return (self.exit_time - self.entry_time).total_seconds()

    def close(
        self,
        exit_time: datetime,
        exit_price: Decimal,
        pnl: Decimal,
        pnl_percent: float,
    ) -> "TradeRecord":
        """Return the closed copy of this open trade."""
        if self.is_closed:
            raise ValueError(f"Trade {self.id} is already closed")
        return replace(
            self,
            exit_time=exit_time,
            exit_price=exit_price,
            pnl=pnl,
            pnl_percent=pnl_percent,
        )

    def to_dict(self) -> dict:
        """Convert to dictionary."""
        return {
            "id": self.id,
            "entry_time": self.entry_time.isoformat(),
            "entry_price": str(self.entry_price),
            "side": self.side.value,
            "quantity": str(self.quantity),
            "exit_time": self.exit_time.isoformat() if self.exit_time else None,
            "exit_price": str(self.exit_price) if self.exit_price is not None else None,
            "pnl": str(self.pnl) if self.pnl is not None else None,
            "pnl_percent": self.pnl_percent,
        }


@dataclass(frozen=True)
class EquityPoint:
    """Equity curve data point; drawdown is a percentage of running peak."""
    timestamp: datetime
    equity: Decimal
    drawdown: float = 0.0

    def to_dict(self) -> dict:
        """Convert to dictionary."""
        return {
            "timestamp": self.timestamp.isoformat(),
            "equity": str(self.equity),
            "drawdown": self.drawdown,
        }


@dataclass
class BacktestMetrics:
    """Backtesting performance metrics."""
    initial_capital: float = 0.0
    final_capital: float = 0.0
    total_return: float = 0.0
    total_trades: int = 0
    winning_trades: int = 0
    losing_trades: int = 0
    win_rate: float = 0.0
    avg_win: float = 0.0
    avg_loss: float = 0.0
    max_drawdown: float = 0.0
    sharpe_ratio: float = 0.0
    profit_factor: float = 0.0
    avg_trade_duration: float = 0.0  # seconds

    def to_dict(self) -> dict:
        """Convert to dictionary."""
        return {
            "initial_capital": self.initial_capital,
            "final_capital": self.final_capital,
            "total_return": self.total_return,
            "total_trades": self.total_trades,
            "winning_trades": self.winning_trades,
            "losing_trades": self.losing_trades,
            "win_rate": self.win_rate,
            "avg_win": self.avg_win,
            "avg_loss": self.avg_loss,
            "max_drawdown": self.max_drawdown,
            "sharpe_ratio": self.sharpe_ratio,
            "profit_factor": self.profit_factor,
            "avg_trade_duration": self.avg_trade_duration,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "BacktestMetrics":
        """Rebuild from ``to_dict`` output, ignoring unknown keys."""
        known = {k: v for k, v in data.items() if k in cls.__dataclass_fields__}
        return cls(**known)


@dataclass
class RiskAnalysis:
    """Tail-risk and streak statistics for a finished backtest."""
    value_at_risk_95: float = 0.0
    value_at_risk_99: float = 0.0
    conditional_var_95: float = 0.0
    sortino_ratio: float = 0.0
    calmar_ratio: float = 0.0
    max_consecutive_losses: int = 0
    avg_drawdown_duration: float = 0.0  # seconds

    def to_dict(self) -> dict:
        """Convert to dictionary."""
        return {
            "value_at_risk_95": self.value_at_risk_95,
            "value_at_risk_99": self.value_at_risk_99,
            "conditional_var_95": self.conditional_var_95,
            "sortino_ratio": self.sortino_ratio,
            "calmar_ratio": self.calmar_ratio,
            "max_consecutive_losses": self.max_consecutive_losses,
            "avg_drawdown_duration": self.avg_drawdown_duration,
        }


@dataclass(frozen=True)
class BacktestResult:
    """Immutable outcome of one simulation run."""
    strategy_id: str
    symbol: str
    start_date: datetime
    end_date: datetime
    status: BacktestStatus
    metrics: BacktestMetrics
    trades: tuple[TradeRecord, ...] = ()
    equity_curve: tuple[EquityPoint, ...] = ()
    id: str = field(default_factory=lambda: uuid.uuid4().hex)
    created_at: datetime = field(default_factory=datetime.now)

    def to_dict(self) -> dict:
        """Convert to dictionary."""
        return {
            "id": self.id,
            "strategy_id": self.strategy_id,
            "symbol": self.symbol,
            "start_date": self.start_date.isoformat(),
            "end_date": self.end_date.isoformat(),
            "status": self.status.value,
            "metrics": self.metrics.to_dict(),
            "trades": [t.to_dict() for t in self.trades],
            "equity_curve": [p.to_dict() for p in self.equity_curve],
            "created_at": self.created_at.isoformat(),
        }


@dataclass
class BacktestComparison:
    """Headline numbers used to compare runs side by side."""
    backtest_id: str
    strategy_id: str
    total_return: float
    sharpe_ratio: float
    max_drawdown: float
    win_rate: float

    def to_dict(self) -> dict:
        """Convert to dictionary."""
        return {
            "backtest_id": self.backtest_id,
            "strategy_id": self.strategy_id,
            "total_return": self.total_return,
            "sharpe_ratio": self.sharpe_ratio,
            "max_drawdown": self.max_drawdown,
            "win_rate": self.win_rate,
        }


@dataclass
class BacktestConfig:
    """A backtest request as received at the orchestration boundary."""
    strategy_id: str
    symbol: str
    start_date: datetime
    end_date: datetime
    initial_capital: Decimal
    data: list[OHLCV] = field(default_factory=list)
    slippage: Optional[float] = None  # percent
    commission: Optional[float] = None  # percent per fill

    def __post_init__(self):
        self.initial_capital = to_decimal(self.initial_capital)


@dataclass(frozen=True)
class SimulationOutput:
    """Trades and equity curve produced by one simulator pass."""
    trades: tuple[TradeRecord, ...]
    equity_curve: tuple[EquityPoint, ...]


def validate_bars(bars: list[OHLCV]) -> None:
    """Check price and ordering invariants of a bar series.

    Raises:
        BacktestValidationError: on the first offending bar.
    """
    previous: Optional[datetime] = None
    for index, bar in enumerate(bars):
        if min(bar.open, bar.high, bar.low, bar.close) <= 0:
            raise BacktestValidationError(
                f"Bar {index} has a non-positive price", field="data"
            )
        if bar.high < max(bar.open, bar.close, bar.low):
            raise BacktestValidationError(
                f"Bar {index} high is below open, close or low", field="data"
            )
        if bar.low > min(bar.open, bar.close, bar.high):
            raise BacktestValidationError(
                f"Bar {index} low is above open, close or high", field="data"
            )
        if bar.volume < 0:
            raise BacktestValidationError(
                f"Bar {index} has negative volume", field="data"
            )
        if previous is not None and bar.timestamp <= previous:
            raise BacktestValidationError(
                f"Bar {index} timestamp is not after the previous bar", field="data"
            )
        previous = bar.timestamp
