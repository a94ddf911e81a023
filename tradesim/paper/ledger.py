"""
Paper Ledger

Balances and positions for one paper trading session. Every mutation
checks before it changes anything, so a failed call leaves the ledger
as it was.
"""

import logging
from decimal import Decimal
from typing import Any, Dict, Optional, Union

from tradesim.backtesting.models import to_decimal
from tradesim.errors import InsufficientFundsError, OrderStateError
from tradesim.paper.models import Balance, OrderSide, Position

logger = logging.getLogger(__name__)

Amount = Union[Decimal, float, int, str]

ZERO = Decimal("0")


class Ledger:
    """Per-asset balances with lock/consume/release accounting."""

    def __init__(self, initial_balances: Optional[Dict[str, Amount]] = None):
        self._balances: Dict[str, Balance] = {}
        self._positions: Dict[str, Position] = {}
        self.realized_pnl = ZERO

        for asset, amount in (initial_balances or {}).items():
            value = to_decimal(amount)
            if value < 0:
                raise ValueError(f"Initial balance for {asset} cannot be negative")
            self._balances[asset] = Balance(asset, available=value)

    @classmethod
    def from_settings(cls, settings: Any) -> "Ledger":
        """Build from the ``paper`` section of engine settings."""
        return cls(settings.initial_balances)

    def _balance(self, asset: str) -> Balance:
        if asset not in self._balances:
            self._balances[asset] = Balance(asset)
        return self._balances[asset]

    @staticmethod
    def _check_amount(amount: Decimal) -> None:
        if amount < 0:
            raise ValueError(f"Amount cannot be negative: {amount}")

    def lock(self, asset: str, amount: Amount) -> None:
        """Move funds from available to locked."""
        amount = to_decimal(amount)
        self._check_amount(amount)
        balance = self._balance(asset)
        if balance.available < amount:
            raise InsufficientFundsError(asset, amount, balance.available)
        balance.available -= amount
        balance.locked += amount

    def consume(self, asset: str, amount: Amount) -> None:
        """Remove locked funds permanently."""
        amount = to_decimal(amount)
        self._check_amount(amount)
        balance = self._balance(asset)
        if balance.locked < amount:
            raise OrderStateError(
                f"Cannot consume {amount} {asset}: only {balance.locked} locked"
            )
        balance.locked -= amount

    def release(self, asset: str, amount: Amount) -> None:
        """Return locked funds to available."""
        amount = to_decimal(amount)
        self._check_amount(amount)
        balance = self._balance(asset)
        if balance.locked < amount:
            raise OrderStateError(
                f"Cannot release {amount} {asset}: only {balance.locked} locked"
            )
        balance.locked -= amount
        balance.available += amount

    def credit(self, asset: str, amount: Amount) -> None:
        """Add fill proceeds to available."""
        amount = to_decimal(amount)
        self._check_amount(amount)
        self._balance(asset).available += amount

    def apply_fill(
        self,
        asset: str,
        symbol: str,
        side: OrderSide,
        quantity: Amount,
        price: Amount,
    ) -> Decimal:
        """
        Update the position in ``asset`` for a fill.

        Buys move the weighted-average entry; sells realize
        ``(price - average) * sold`` on the held quantity.

        Returns:
            Realized PnL of this fill
        """
        quantity = to_decimal(quantity)
        price = to_decimal(price)
        position = self._positions.get(asset)

        if side == OrderSide.BUY:
            if position is None:
                position = Position(symbol=symbol)
                self._positions[asset] = position
            new_quantity = position.quantity + quantity
            position.average_entry_price = (
                position.average_entry_price * position.quantity + price * quantity
            ) / new_quantity
            position.quantity = new_quantity
            return ZERO

        if position is None:
            return ZERO

        sold = min(quantity, position.quantity)
        realized = (price - position.average_entry_price) * sold
        position.quantity -= sold
        position.realized_pnl += realized
        self.realized_pnl += realized

        if position.quantity == 0:
            del self._positions[asset]
            logger.debug(f"Position in {asset} closed, realized {position.realized_pnl}")

        return realized

    def get_balance(self, asset: str) -> Balance:
        """Copy of one asset's balance."""
        balance = self._balances.get(asset) or Balance(asset)
        return Balance(balance.asset, balance.available, balance.locked)

    def get_balances(self) -> Dict[str, Balance]:
        """Copies of all balances."""
        return {
            asset: Balance(b.asset, b.available, b.locked)
            for asset, b in self._balances.items()
        }

    def get_positions(self) -> Dict[str, Position]:
        """Copies of open positions keyed by asset."""
        return {
            asset: Position(p.symbol, p.quantity, p.average_entry_price, p.realized_pnl)
            for asset, p in self._positions.items()
        }

    def total(self, asset: str) -> Decimal:
        """Available plus locked."""
        balance = self._balances.get(asset)
        return balance.total if balance else ZERO
