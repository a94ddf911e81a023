"""Historical bar sources."""

import csv
import logging
from datetime import datetime, timezone
from decimal import Decimal, InvalidOperation
from pathlib import Path
from typing import Optional, Protocol, Union

from tradesim.backtesting.models import OHLCV, validate_bars
from tradesim.errors import BacktestValidationError

logger = logging.getLogger(__name__)

COLUMNS = ("timestamp", "open", "high", "low", "close", "volume")


class HistoricalDataSource(Protocol):
    """Provider of bar series for a symbol and period."""

    def load(
        self,
        symbol: str,
        start: Optional[datetime] = None,
        end: Optional[datetime] = None,
    ) -> list[OHLCV]:
        ...


def parse_timestamp(raw: str) -> datetime:
    """Parse an ISO timestamp or epoch seconds."""
    raw = raw.strip()
    try:
        return datetime.fromtimestamp(float(raw), tz=timezone.utc)
    except ValueError:
        pass
    try:
        return datetime.fromisoformat(raw)
    except ValueError as e:
        raise BacktestValidationError(f"Invalid timestamp: {raw!r}", field="timestamp") from e


class CsvDataSource:
    """
    Bars from a CSV file with a timestamp,open,high,low,close,volume header.

    Rows are sorted by timestamp and validated on load. The file holds a
    single instrument, so ``symbol`` is informational only.
    """

    def __init__(self, path: Union[str, Path]):
        self.path = Path(path)

    def load(
        self,
        symbol: str = "",
        start: Optional[datetime] = None,
        end: Optional[datetime] = None,
    ) -> list[OHLCV]:
        """Read, filter by period and validate bars."""
        bars = []
        with self.path.open(newline="", encoding="utf-8") as f:
            reader = csv.DictReader(f)
            missing = [c for c in COLUMNS[:5] if c not in (reader.fieldnames or [])]
            if missing:
                raise BacktestValidationError(
                    f"CSV is missing columns: {', '.join(missing)}", field="data"
                )

            for line_no, row in enumerate(reader, start=2):
                bars.append(self._parse_row(row, line_no))

        bars.sort(key=lambda b: b.timestamp)
        if start is not None:
            bars = [b for b in bars if b.timestamp >= start]
        if end is not None:
            bars = [b for b in bars if b.timestamp <= end]

        validate_bars(bars)
        logger.info(f"Loaded {len(bars)} bars for {symbol or self.path.name}")
        return bars

    @staticmethod
    def _parse_row(row: dict, line_no: int) -> OHLCV:
        try:
            return OHLCV(
                timestamp=parse_timestamp(row["timestamp"]),
                open=Decimal(row["open"]),
                high=Decimal(row["high"]),
                low=Decimal(row["low"]),
                close=Decimal(row["close"]),
                volume=Decimal(row.get("volume") or "0"),
            )
        except (InvalidOperation, TypeError) as e:
            raise BacktestValidationError(
                f"Invalid number on line {line_no}", field="data"
            ) from e
