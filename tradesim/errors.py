"""Exception hierarchy for the simulation and risk engine."""

from decimal import Decimal
from typing import Optional


class TradeSimError(Exception):
    """Base class for engine errors."""


class BacktestValidationError(TradeSimError, ValueError):
    """Raised when a backtest request or its inputs are invalid."""

    def __init__(self, message: str, field: Optional[str] = None):
        self.field = field
        super().__init__(message)


class OrderValidationError(BacktestValidationError):
    """Raised when an order request is malformed."""


class TierLimitError(BacktestValidationError):
    """Raised when a backtest period exceeds the caller's tier allowance."""

    def __init__(self, tier: str, max_days: int):
        self.tier = tier
        self.max_days = max_days
        super().__init__(
            f"Backtest period exceeds {tier} tier limit of {max_days} days",
            field="end_date",
        )


class InsufficientFundsError(TradeSimError):
    """Raised when a ledger lock cannot be satisfied."""

    def __init__(self, asset: str, required: Decimal, available: Decimal):
        self.asset = asset
        self.required = required
        self.available = available
        super().__init__(
            f"Insufficient {asset} balance: required {required}, available {available}"
        )


class OrderStateError(TradeSimError):
    """Raised when an operation is illegal in the order's current state."""


class NotFoundError(TradeSimError, LookupError):
    """Raised when a referenced entity does not exist."""


class OrderNotFoundError(NotFoundError):
    """Raised for an unknown order id."""

    def __init__(self, order_id: str):
        self.order_id = order_id
        super().__init__("Order not found")


class StrategyNotFoundError(NotFoundError):
    """Raised when the strategy provider has no such strategy."""

    def __init__(self, strategy_id: str):
        self.strategy_id = strategy_id
        super().__init__(f"Strategy not found: {strategy_id}")


class PriceUnavailableError(NotFoundError):
    """Raised when no reference price was ever set for a symbol."""

    def __init__(self, symbol: str):
        self.symbol = symbol
        super().__init__(f"No price available for {symbol}")


class PositionNotFoundError(NotFoundError):
    """Raised for an unknown risk-manager position id."""

    def __init__(self, position_id: str):
        self.position_id = position_id
        super().__init__(f"Position not found: {position_id}")
