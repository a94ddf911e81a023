"""Paper trading module."""

from tradesim.paper.ledger import Ledger
from tradesim.paper.matcher import MockPriceFeed, OrderMatcher, PriceFeed
from tradesim.paper.models import (
    Balance,
    Fill,
    Order,
    OrderRequest,
    OrderSide,
    OrderStatus,
    OrderType,
    Position,
    PositionView,
)

__all__ = [
    "Ledger",
    "MockPriceFeed",
    "OrderMatcher",
    "PriceFeed",
    "Balance",
    "Fill",
    "Order",
    "OrderRequest",
    "OrderSide",
    "OrderStatus",
    "OrderType",
    "Position",
    "PositionView",
]
