"""Engine configuration using Pydantic Settings."""

from enum import Enum
from functools import lru_cache
from pathlib import Path
from typing import Dict, Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class LogFormatName(str, Enum):
    """Log output formats."""

    SIMPLE = "simple"
    DETAILED = "detailed"
    JSON = "json"
    COMPACT = "compact"


class BacktestSettings(BaseSettings):
    """Backtest simulation defaults."""

    default_slippage_pct: float = Field(default=0.1, ge=0.0, description="Slippage percent per fill")
    default_commission_pct: float = Field(default=0.1, ge=0.0, description="Commission percent per fill")
    position_allocation: float = Field(default=0.95, gt=0.0, le=1.0, description="Share of capital per entry")
    periods_per_year: int = Field(default=252, gt=0, description="Annualisation factor")
    tier_limits_days: Dict[str, int] = Field(
        default_factory=lambda: {
            "free": 30,
            "pro": 365,
            "elite": 1095,
            "institutional": -1,
        },
        description="Max backtest period per tier, -1 for unlimited",
    )


class PaperTradingSettings(BaseSettings):
    """Paper trading session defaults."""

    initial_balances: Dict[str, float] = Field(
        default_factory=lambda: {"USDT": 100000.0},
        description="Starting allocation per asset",
    )
    quote_asset: str = Field(default="USDT", description="Asset used for portfolio valuation")

    @field_validator("initial_balances", mode="after")
    @classmethod
    def non_negative_balances(cls, v: Dict[str, float]) -> Dict[str, float]:
        """Reject negative starting balances."""
        for asset, amount in v.items():
            if amount < 0:
                raise ValueError(f"Initial balance for {asset} cannot be negative")
        return v


class RiskLimitSettings(BaseSettings):
    """Pre-trade risk limits."""

    max_position_size: float = Field(default=0.1, gt=0.0, le=1.0, description="Max notional as fraction of equity")
    max_daily_loss: float = Field(default=0.05, gt=0.0, le=1.0, description="Max daily loss fraction")
    max_drawdown: float = Field(default=0.2, gt=0.0, le=1.0, description="Max drawdown fraction")
    max_open_positions: int = Field(default=10, ge=1)
    min_risk_reward_ratio: float = Field(default=1.5, ge=0.0)


class StrategyRiskSettings(BaseSettings):
    """Thresholds for strategy go-live summaries."""

    max_drawdown_pct: float = Field(default=30.0, description="Block above this backtest drawdown")
    min_win_rate_pct: float = Field(default=40.0, description="Warn below this win rate")
    min_sharpe_ratio: float = Field(default=0.5, description="Warn below this Sharpe ratio")


class LoggingSettings(BaseSettings):
    """Logging options."""

    level: str = "INFO"
    format: LogFormatName = LogFormatName.DETAILED
    log_file: Optional[Path] = None

    @field_validator("level", mode="after")
    @classmethod
    def known_level(cls, v: str) -> str:
        """Normalise and check the level name."""
        level = v.upper()
        if level not in {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}:
            raise ValueError(f"Unknown log level: {v}")
        return level


class EngineSettings(BaseSettings):
    """Main engine configuration."""

    model_config = SettingsConfigDict(
        env_prefix="TRADESIM_",
        env_file=".env",
        env_file_encoding="utf-8",
        env_nested_delimiter="__",
        extra="ignore",
    )

    default_initial_capital: float = Field(default=10000.0, gt=0.0)
    results_db: Optional[Path] = Field(default=None, description="SQLite file for backtest results")

    backtest: BacktestSettings = Field(default_factory=BacktestSettings)
    paper: PaperTradingSettings = Field(default_factory=PaperTradingSettings)
    risk: RiskLimitSettings = Field(default_factory=RiskLimitSettings)
    strategy_risk: StrategyRiskSettings = Field(default_factory=StrategyRiskSettings)
    logging: LoggingSettings = Field(default_factory=LoggingSettings)


@lru_cache
def get_settings() -> EngineSettings:
    """Get cached engine configuration."""
    return EngineSettings()
