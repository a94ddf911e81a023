"""Paper trading data model."""

from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Optional
import uuid


class OrderSide(Enum):
    """Order side."""
    BUY = "buy"
    SELL = "sell"


class OrderType(Enum):
    """Order type."""
    MARKET = "market"
    LIMIT = "limit"


class OrderStatus(Enum):
    """Order lifecycle status."""
    PENDING = "pending"
    FILLED = "filled"
    CANCELLED = "cancelled"
    REJECTED = "rejected"


@dataclass
class Balance:
    """Per-asset balance."""
    asset: str
    available: Decimal = Decimal("0")
    locked: Decimal = Decimal("0")

    @property
    def total(self) -> Decimal:
        return self.available + self.locked

    def to_dict(self) -> dict:
        """Convert to dictionary."""
        return {
            "asset": self.asset,
            "available": str(self.available),
            "locked": str(self.locked),
            "total": str(self.total),
        }


@dataclass
class Position:
    """Weighted-average-cost holding of one asset."""
    symbol: str
    quantity: Decimal = Decimal("0")
    average_entry_price: Decimal = Decimal("0")
    realized_pnl: Decimal = Decimal("0")

    def unrealized_pnl(self, price: Decimal) -> Decimal:
        """PnL at a given mark price."""
        return (price - self.average_entry_price) * self.quantity


@dataclass
class PositionView:
    """Position enriched with a mark price at read time."""
    symbol: str
    quantity: Decimal
    average_entry_price: Decimal
    current_price: Decimal
    unrealized_pnl: Decimal
    realized_pnl: Decimal

    @property
    def market_value(self) -> Decimal:
        return self.quantity * self.current_price

    def to_dict(self) -> dict:
        """Convert to dictionary."""
        return {
            "symbol": self.symbol,
            "quantity": str(self.quantity),
            "average_entry_price": str(self.average_entry_price),
            "current_price": str(self.current_price),
            "unrealized_pnl": str(self.unrealized_pnl),
            "realized_pnl": str(self.realized_pnl),
        }


@dataclass
class OrderRequest:
    """Incoming order parameters."""
    symbol: str
    side: OrderSide
    type: OrderType
    quantity: Decimal
    price: Optional[Decimal] = None


@dataclass
class Order:
    """A paper order and its lock bookkeeping."""
    symbol: str
    side: OrderSide
    type: OrderType
    quantity: Decimal
    price: Optional[Decimal] = None
    id: str = field(default_factory=lambda: f"paper_{uuid.uuid4().hex[:16]}")
    status: OrderStatus = OrderStatus.PENDING
    filled_quantity: Decimal = Decimal("0")
    average_price: Optional[Decimal] = None
    locked_asset: Optional[str] = None
    locked_amount: Decimal = Decimal("0")
    created_at: datetime = field(default_factory=datetime.now)
    updated_at: datetime = field(default_factory=datetime.now)

    @property
    def base_asset(self) -> str:
        return self.symbol.split("/")[0]

    @property
    def quote_asset(self) -> str:
        return self.symbol.split("/")[1]

    @property
    def is_open(self) -> bool:
        return self.status == OrderStatus.PENDING

    def to_dict(self) -> dict:
        """Convert to dictionary."""
        return {
            "id": self.id,
            "symbol": self.symbol,
            "side": self.side.value,
            "type": self.type.value,
            "quantity": str(self.quantity),
            "price": str(self.price) if self.price is not None else None,
            "status": self.status.value,
            "filled_quantity": str(self.filled_quantity),
            "average_price": str(self.average_price) if self.average_price is not None else None,
            "locked_asset": self.locked_asset,
            "locked_amount": str(self.locked_amount),
            "created_at": self.created_at.isoformat(),
            "updated_at": self.updated_at.isoformat(),
        }


@dataclass(frozen=True)
class Fill:
    """Execution record of a paper order."""
    order_id: str
    symbol: str
    side: OrderSide
    quantity: Decimal
    price: Decimal
    realized_pnl: Decimal = Decimal("0")
    id: str = field(default_factory=lambda: uuid.uuid4().hex)
    timestamp: datetime = field(default_factory=datetime.now)

    @property
    def value(self) -> Decimal:
        return self.quantity * self.price

    def to_dict(self) -> dict:
        """Convert to dictionary."""
        return {
            "id": self.id,
            "order_id": self.order_id,
            "symbol": self.symbol,
            "side": self.side.value,
            "quantity": str(self.quantity),
            "price": str(self.price),
            "realized_pnl": str(self.realized_pnl),
            "timestamp": self.timestamp.isoformat(),
        }
