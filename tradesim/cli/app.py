"""Typer CLI application for the tradesim engine."""

from decimal import Decimal
from pathlib import Path
from typing import List, Optional

import typer
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from config.settings import get_settings
from tradesim.errors import TradeSimError
from tradesim.logging_config import LoggingConfig, LogLevel, configure_logging

app = typer.Typer(
    name="tradesim",
    help="Backtesting, paper trading and risk tooling for crypto strategies",
    add_completion=False,
)

console = Console()


@app.callback()
def main_callback(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Log at DEBUG level"),
):
    """Configure logging from settings before any command runs."""
    logging_config = LoggingConfig.from_settings(get_settings().logging)
    if verbose:
        logging_config.level = LogLevel.DEBUG
    configure_logging(logging_config)


def _parse_params(pairs: List[str]) -> dict:
    """Parse repeated key=value options into numbers where possible."""
    params = {}
    for pair in pairs:
        if "=" not in pair:
            raise typer.BadParameter(f"Expected key=value, got {pair!r}")
        key, raw = pair.split("=", 1)
        for cast in (int, float):
            try:
                params[key.strip()] = cast(raw)
                break
            except ValueError:
                continue
        else:
            params[key.strip()] = raw
    return params


def _fmt(value: float, suffix: str = "") -> str:
    if value == float("inf"):
        return "∞"
    return f"{value:,.2f}{suffix}"


@app.command()
def backtest(
    csv_path: Path = typer.Argument(..., exists=True, dir_okay=False, help="CSV with OHLCV bars"),
    strategy: str = typer.Option(
        "momentum",
        "--strategy", "-s",
        help="Strategy: momentum, mean_reversion, trend_following",
    ),
    symbol: str = typer.Option("BTC/USDT", "--symbol", help="Instrument symbol"),
    capital: Optional[float] = typer.Option(None, "--capital", "-c", help="Initial capital"),
    slippage: Optional[float] = typer.Option(None, "--slippage", help="Slippage percent per fill"),
    commission: Optional[float] = typer.Option(None, "--commission", help="Commission percent per fill"),
    param: List[str] = typer.Option([], "--param", "-p", help="Strategy parameter key=value"),
    tier: Optional[str] = typer.Option(None, "--tier", help="Subscription tier period limit"),
    db: Optional[Path] = typer.Option(None, "--db", help="SQLite file to store the result"),
):
    """Run a backtest over a CSV price file."""
    from tradesim.backtesting.data import CsvDataSource
    from tradesim.backtesting.models import BacktestConfig
    from tradesim.backtesting.service import (
        BacktestService,
        InMemoryStrategyProvider,
        StrategyDefinition,
    )
    from tradesim.storage.results import SQLiteResultStore

    settings = get_settings()
    db_path = db or settings.results_db

    try:
        bars = CsvDataSource(csv_path).load(symbol)
        if not bars:
            console.print("[red]Error: no bars in file[/red]")
            raise typer.Exit(1)

        provider = InMemoryStrategyProvider([
            StrategyDefinition(id="cli", strategy_type=strategy, config=_parse_params(param), name=strategy),
        ])
        sink = SQLiteResultStore(str(db_path)) if db_path else None
        service = BacktestService(provider, result_sink=sink, settings=settings)

        result = service.run_backtest(
            BacktestConfig(
                strategy_id="cli",
                symbol=symbol,
                start_date=bars[0].timestamp,
                end_date=bars[-1].timestamp,
                initial_capital=Decimal(str(capital if capital is not None else settings.default_initial_capital)),
                data=bars,
                slippage=slippage,
                commission=commission,
            ),
            tier=tier,
        )
        risk = service.analyze_risk(result)
    except TradeSimError as e:
        console.print(f"[red]Error: {e}[/red]")
        raise typer.Exit(1)

    m = result.metrics
    table = Table(title=f"Backtest {symbol} ({strategy})")
    table.add_column("Metric", style="cyan")
    table.add_column("Value", justify="right")
    table.add_row("Initial Capital", _fmt(m.initial_capital))
    table.add_row("Final Capital", _fmt(m.final_capital))
    table.add_row("Total Return", _fmt(m.total_return, "%"))
    table.add_row("Trades", str(m.total_trades))
    table.add_row("Win Rate", _fmt(m.win_rate, "%"))
    table.add_row("Avg Win", _fmt(m.avg_win))
    table.add_row("Avg Loss", _fmt(m.avg_loss))
    table.add_row("Max Drawdown", _fmt(m.max_drawdown, "%"))
    table.add_row("Sharpe Ratio", _fmt(m.sharpe_ratio))
    table.add_row("Profit Factor", _fmt(m.profit_factor))
    console.print(table)

    risk_table = Table(title="Risk Analysis")
    risk_table.add_column("Metric", style="cyan")
    risk_table.add_column("Value", justify="right")
    risk_table.add_row("VaR 95%", _fmt(risk.value_at_risk_95, "%"))
    risk_table.add_row("VaR 99%", _fmt(risk.value_at_risk_99, "%"))
    risk_table.add_row("CVaR 95%", _fmt(risk.conditional_var_95, "%"))
    risk_table.add_row("Sortino Ratio", _fmt(risk.sortino_ratio))
    risk_table.add_row("Calmar Ratio", _fmt(risk.calmar_ratio))
    risk_table.add_row("Max Consecutive Losses", str(risk.max_consecutive_losses))
    console.print(risk_table)

    if db_path:
        console.print(f"[dim]Saved result {result.id} to {db_path}[/dim]")


@app.command()
def size(
    equity: float = typer.Option(..., "--equity", "-e", help="Account equity"),
    method: str = typer.Option(
        "fixed_percentage",
        "--method", "-m",
        help="fixed_percentage, kelly_criterion, fixed_amount, volatility_adjusted",
    ),
    risk: float = typer.Option(0.02, "--risk", "-r", help="Risk per trade as a fraction"),
    amount: float = typer.Option(0.0, "--amount", help="Amount for fixed_amount sizing"),
    volatility: float = typer.Option(0.0, "--volatility", help="Current volatility"),
    avg_volatility: float = typer.Option(1.0, "--avg-volatility", help="Average volatility"),
):
    """Calculate a position size."""
    from tradesim.risk.calculations import SizingMethod
    from tradesim.risk.manager import RiskManager, RiskLimits

    try:
        sizing_method = SizingMethod(method)
    except ValueError:
        console.print(f"[red]Error: unknown sizing method {method!r}[/red]")
        raise typer.Exit(1)

    manager = RiskManager(equity, RiskLimits.from_settings(get_settings().risk))
    result = manager.calculate_position(
        sizing_method,
        risk_percentage=risk,
        fixed_amount=amount,
        volatility=volatility,
        avg_volatility=avg_volatility,
    )

    console.print(Panel(
        f"Method:        {result.method.value}\n"
        f"Position Size: ${result.position_size:,.2f}\n"
        f"Risk Amount:   ${result.risk_amount:,.2f}\n"
        f"Risk:          {result.risk_percentage * 100:.2f}%",
        title="Position Size",
    ))


@app.command()
def levels(
    entry: float = typer.Argument(..., help="Entry price"),
    direction: str = typer.Option("long", "--direction", "-d", help="long or short"),
    risk: float = typer.Option(0.02, "--risk", "-r", help="Stop distance as a fraction of entry"),
    atr: Optional[float] = typer.Option(None, "--atr", help="ATR for volatility-based stops"),
    atr_multiplier: float = typer.Option(2.0, "--atr-multiplier", help="ATR multiple for the stop"),
    rr: float = typer.Option(2.0, "--rr", help="Risk/reward ratio for the target"),
):
    """Calculate stop-loss and take-profit levels."""
    from tradesim.risk.calculations import Direction, calculate_stop_loss, calculate_take_profit

    try:
        side = Direction(direction)
    except ValueError:
        console.print("[red]Error: direction must be long or short[/red]")
        raise typer.Exit(1)

    stop = calculate_stop_loss(entry, side, risk, atr, atr_multiplier)
    target = calculate_take_profit(entry, stop, side, rr)

    console.print(Panel(
        f"Entry:       {entry:,.2f}\n"
        f"Stop Loss:   {stop:,.2f}\n"
        f"Take Profit: {target:,.2f}",
        title=f"Levels ({side.value})",
    ))


@app.command()
def version():
    """Show version information."""
    from tradesim import __version__

    console.print(f"tradesim v{__version__}")


def main():
    """Main entry point."""
    app()


if __name__ == "__main__":
    main()
