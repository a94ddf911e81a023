"""Risk management module."""

from tradesim.risk.calculations import Direction, SizingMethod
from tradesim.risk.manager import RiskCheckResult, RiskLimits, RiskManager, RiskMetrics

__all__ = [
    "Direction",
    "SizingMethod",
    "RiskCheckResult",
    "RiskLimits",
    "RiskManager",
    "RiskMetrics",
]
