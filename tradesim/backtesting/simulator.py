"""
Backtest Simulator

Replays signals against bars with slippage and commission, one
position at a time, producing closed trades and an equity curve.
"""

import logging
from decimal import Decimal
from typing import Optional, Union

from tradesim.backtesting.models import (
    OHLCV,
    EquityPoint,
    Signal,
    SignalKind,
    SimulationOutput,
    TradeRecord,
    TradeSide,
    to_decimal,
)

logger = logging.getLogger(__name__)

Number = Union[Decimal, float, int]

HUNDRED = Decimal("100")


class BacktestSimulator:
    """
    Deterministic single-position trade simulator.

    Capital is never debited for the position value: entry deducts the
    entry commission and exit credits the trade's pnl, which is the
    directional gross less the exit commission.
    """

    def __init__(self, position_allocation: Number = Decimal("0.95")):
        self.position_allocation = to_decimal(position_allocation)

    def run(
        self,
        bars: list[OHLCV],
        signals: list[Signal],
        initial_capital: Number,
        slippage_pct: Number,
        commission_pct: Number,
    ) -> SimulationOutput:
        """
        Simulate trades for a signal sequence.

        Args:
            bars: Bar series; the first bar seeds the equity curve
            signals: Alternating entry/exit signals
            initial_capital: Starting capital
            slippage_pct: Adverse price slippage, percent
            commission_pct: Commission per fill, percent

        Returns:
            SimulationOutput with closed trades and equity points
        """
        capital = to_decimal(initial_capital)
        slippage = to_decimal(slippage_pct) / HUNDRED
        commission_rate = to_decimal(commission_pct) / HUNDRED

        trades: list[TradeRecord] = []
        equity_curve: list[EquityPoint] = []
        if bars:
            equity_curve.append(EquityPoint(bars[0].timestamp, capital, 0.0))

        peak = capital
        position: Optional[TradeRecord] = None

        for signal in signals:
            if signal.kind == SignalKind.ENTRY:
                if position is not None:
                    logger.debug(f"Ignoring entry at {signal.timestamp}: position already open")
                    continue
                if capital <= 0:
                    logger.debug(f"Ignoring entry at {signal.timestamp}: no capital left")
                    continue

                if signal.side == TradeSide.LONG:
                    entry_price = signal.price * (1 + slippage)
                else:
                    entry_price = signal.price * (1 - slippage)

                position_value = capital * self.position_allocation
                quantity = position_value / entry_price
                capital -= position_value * commission_rate

                position = TradeRecord(
                    entry_time=signal.timestamp,
                    entry_price=entry_price,
                    side=signal.side,
                    quantity=quantity,
                )
                continue

            if position is None:
                logger.debug(f"Ignoring exit at {signal.timestamp}: no open position")
                continue

            if position.side == TradeSide.LONG:
                exit_price = signal.price * (1 - slippage)
                gross = (exit_price - position.entry_price) * position.quantity
            else:
                exit_price = signal.price * (1 + slippage)
                gross = (position.entry_price - exit_price) * position.quantity

            commission = position.quantity * exit_price * commission_rate
            pnl = gross - commission
            capital += pnl
            pnl_percent = float(pnl / (position.entry_price * position.quantity) * HUNDRED)

            trades.append(position.close(signal.timestamp, exit_price, pnl, pnl_percent))
            position = None

            peak = max(peak, capital)
            drawdown = float((peak - capital) / peak * HUNDRED) if peak > 0 else 0.0
            equity_curve.append(EquityPoint(signal.timestamp, capital, drawdown))

        if position is not None:
            logger.debug(f"Position opened at {position.entry_time} left open at end of data")

        return SimulationOutput(trades=tuple(trades), equity_curve=tuple(equity_curve))


def simulate_trades(
    bars: list[OHLCV],
    signals: list[Signal],
    initial_capital: Number,
    slippage_pct: Number,
    commission_pct: Number,
    position_allocation: Number = Decimal("0.95"),
) -> SimulationOutput:
    """Run a one-off simulation with a fresh simulator."""
    simulator = BacktestSimulator(position_allocation)
    return simulator.run(bars, signals, initial_capital, slippage_pct, commission_pct)
