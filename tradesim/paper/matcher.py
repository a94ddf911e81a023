"""
Paper Order Matcher

Simulated order execution against a price feed. Market orders fill
immediately at the current price; limit orders lock funds at their
limit and wait for ``process_pending_orders``.
"""

import logging
import uuid
from datetime import datetime
from decimal import Decimal
from typing import Any, Dict, List, Optional, Protocol, Union

from tradesim.backtesting.models import to_decimal
from tradesim.errors import (
    InsufficientFundsError,
    OrderNotFoundError,
    OrderStateError,
    OrderValidationError,
    PriceUnavailableError,
)
from tradesim.logging_config import get_context_logger
from tradesim.paper.ledger import Ledger
from tradesim.paper.models import (
    Balance,
    Fill,
    Order,
    OrderRequest,
    OrderSide,
    OrderStatus,
    OrderType,
    PositionView,
)
from tradesim.validation import is_valid_symbol

logger = logging.getLogger(__name__)


class PriceFeed(Protocol):
    """Source of current prices."""

    def get_current_price(self, symbol: str) -> Decimal:
        ...


class MockPriceFeed:
    """In-memory price feed for paper sessions and tests."""

    def __init__(self, prices: Optional[Dict[str, Union[Decimal, float, str]]] = None):
        self._prices: Dict[str, Decimal] = {}
        for symbol, price in (prices or {}).items():
            self.set_price(symbol, price)

    def set_price(self, symbol: str, price: Union[Decimal, float, str]) -> None:
        price = to_decimal(price)
        if price <= 0:
            raise ValueError(f"Price must be positive: {price}")
        self._prices[symbol] = price

    def get_current_price(self, symbol: str) -> Decimal:
        if symbol not in self._prices:
            raise PriceUnavailableError(symbol)
        return self._prices[symbol]


class OrderMatcher:
    """
    Paper trading engine over a Ledger.

    Callers serialize order submission per instance.
    """

    def __init__(
        self,
        ledger: Ledger,
        price_feed: PriceFeed,
        session_id: Optional[str] = None,
        quote_asset: str = "USDT",
    ):
        self.ledger = ledger
        self.price_feed = price_feed
        self.quote_asset = quote_asset
        self.session_id = session_id or uuid.uuid4().hex[:8]
        self._orders: Dict[str, Order] = {}
        self._fills: List[Fill] = []
        self._log = get_context_logger(__name__, session=self.session_id)

    @classmethod
    def from_settings(
        cls,
        price_feed: PriceFeed,
        settings: Any,
        session_id: Optional[str] = None,
    ) -> "OrderMatcher":
        """New session funded and valued per the ``paper`` section of engine settings."""
        return cls(
            Ledger.from_settings(settings),
            price_feed,
            session_id=session_id,
            quote_asset=settings.quote_asset,
        )

    @staticmethod
    def is_testnet() -> bool:
        """Paper sessions never touch a real venue."""
        return True

    def _validate(self, request: OrderRequest) -> tuple[Decimal, Optional[Decimal]]:
        if not request.symbol or not is_valid_symbol(request.symbol):
            raise OrderValidationError(
                f"Invalid symbol {request.symbol!r}, expected BASE/QUOTE", field="symbol"
            )
        quantity = to_decimal(request.quantity)
        if quantity <= 0:
            raise OrderValidationError("Quantity must be positive", field="quantity")

        limit_price = None
        if request.type == OrderType.LIMIT:
            if request.price is None:
                raise OrderValidationError("Limit orders require a price", field="price")
            limit_price = to_decimal(request.price)
            if limit_price <= 0:
                raise OrderValidationError("Limit price must be positive", field="price")

        return quantity, limit_price

    def create_order(self, request: OrderRequest) -> Order:
        """
        Submit an order.

        Raises:
            OrderValidationError: Malformed request
            PriceUnavailableError: No current price for the symbol
            InsufficientFundsError: Balance cannot cover the lock; the
                order is recorded as rejected
        """
        quantity, limit_price = self._validate(request)
        current_price = self.price_feed.get_current_price(request.symbol)

        order = Order(
            symbol=request.symbol,
            side=request.side,
            type=request.type,
            quantity=quantity,
            price=limit_price,
        )

        if order.side == OrderSide.BUY:
            lock_asset = order.quote_asset
            lock_price = limit_price if order.type == OrderType.LIMIT else current_price
            lock_amount = quantity * lock_price
        else:
            lock_asset = order.base_asset
            lock_amount = quantity

        try:
            self.ledger.lock(lock_asset, lock_amount)
        except InsufficientFundsError:
            order.status = OrderStatus.REJECTED
            self._orders[order.id] = order
            self._log.warning(f"Order {order.id} rejected: insufficient {lock_asset}")
            raise

        order.locked_asset = lock_asset
        order.locked_amount = lock_amount
        self._orders[order.id] = order

        if order.type == OrderType.MARKET:
            self._fill(order, current_price)
        else:
            self._log.info(
                f"Limit {order.side.value} {quantity} {order.symbol} @ {limit_price} pending"
            )

        return order

    def _fill(self, order: Order, price: Decimal) -> Fill:
        """Settle a locked order at ``price``."""
        quantity = order.quantity

        if order.side == OrderSide.BUY:
            cost = quantity * price
            self.ledger.consume(order.quote_asset, cost)
            remainder = order.locked_amount - cost
            if remainder > 0:
                self.ledger.release(order.quote_asset, remainder)
            self.ledger.credit(order.base_asset, quantity)
        else:
            self.ledger.consume(order.base_asset, quantity)
            self.ledger.credit(order.quote_asset, quantity * price)

        realized = self.ledger.apply_fill(
            order.base_asset, order.symbol, order.side, quantity, price
        )

        order.status = OrderStatus.FILLED
        order.filled_quantity = quantity
        order.average_price = price
        order.locked_amount = Decimal("0")
        order.updated_at = datetime.now()

        fill = Fill(
            order_id=order.id,
            symbol=order.symbol,
            side=order.side,
            quantity=quantity,
            price=price,
            realized_pnl=realized,
        )
        self._fills.append(fill)
        self._log.info(f"Filled {order.side.value} {quantity} {order.symbol} @ {price}")
        return fill

    def process_pending_orders(self) -> List[Order]:
        """Fill pending limit orders whose price has been reached."""
        filled = []
        for order in list(self._orders.values()):
            if not order.is_open:
                continue
            try:
                price = self.price_feed.get_current_price(order.symbol)
            except PriceUnavailableError:
                self._log.debug(f"No price for {order.symbol}, order {order.id} stays pending")
                continue

            if order.side == OrderSide.BUY and price <= order.price:
                self._fill(order, price)
                filled.append(order)
            elif order.side == OrderSide.SELL and price >= order.price:
                self._fill(order, price)
                filled.append(order)

        return filled

    def cancel_order(self, order_id: str) -> Order:
        """
        Cancel a pending order and release its lock.

        Raises:
            OrderNotFoundError: Unknown id
            OrderStateError: Order is not pending
        """
        order = self._orders.get(order_id)
        if order is None:
            raise OrderNotFoundError(order_id)
        if order.status == OrderStatus.FILLED:
            raise OrderStateError("Cannot cancel filled order")
        if order.status == OrderStatus.CANCELLED:
            raise OrderStateError("Order already cancelled")
        if order.status == OrderStatus.REJECTED:
            raise OrderStateError("Cannot cancel rejected order")

        if order.locked_asset and order.locked_amount > 0:
            self.ledger.release(order.locked_asset, order.locked_amount)

        order.locked_amount = Decimal("0")
        order.status = OrderStatus.CANCELLED
        order.updated_at = datetime.now()
        self._log.info(f"Cancelled order {order.id}")
        return order

    def get_order(self, order_id: str) -> Order:
        order = self._orders.get(order_id)
        if order is None:
            raise OrderNotFoundError(order_id)
        return order

    def get_orders(self, status: Optional[OrderStatus] = None) -> List[Order]:
        orders = list(self._orders.values())
        if status is not None:
            orders = [o for o in orders if o.status == status]
        return orders

    def get_open_orders(self) -> List[Order]:
        return self.get_orders(OrderStatus.PENDING)

    def get_trades(self) -> List[Fill]:
        return list(self._fills)

    def get_balances(self) -> Dict[str, Balance]:
        return self.ledger.get_balances()

    def _mark_price(self, symbol: str, fallback: Decimal) -> Decimal:
        try:
            return self.price_feed.get_current_price(symbol)
        except PriceUnavailableError:
            return fallback

    def get_positions(self) -> List[PositionView]:
        """Open positions marked at the current price, or at entry if unpriced."""
        views = []
        for position in self.ledger.get_positions().values():
            price = self._mark_price(position.symbol, position.average_entry_price)
            views.append(PositionView(
                symbol=position.symbol,
                quantity=position.quantity,
                average_entry_price=position.average_entry_price,
                current_price=price,
                unrealized_pnl=position.unrealized_pnl(price),
                realized_pnl=position.realized_pnl,
            ))
        return views

    def get_portfolio_value(self, quote_asset: Optional[str] = None) -> Decimal:
        """Total balances valued in ``quote_asset``; unpriced assets count as zero."""
        quote_asset = quote_asset or self.quote_asset
        total = Decimal("0")
        for asset, balance in self.ledger.get_balances().items():
            if balance.total == 0:
                continue
            if asset == quote_asset:
                total += balance.total
                continue
            symbol = f"{asset}/{quote_asset}"
            try:
                total += balance.total * self.price_feed.get_current_price(symbol)
            except PriceUnavailableError:
                logger.debug(f"No price for {symbol}, excluded from portfolio value")
        return total
