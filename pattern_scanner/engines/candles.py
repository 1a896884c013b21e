"""
Candle data model and exchange boundary helpers.

A candle series is a plain list of Candle, time strictly ascending. Engines
never mutate the series they are given.
"""

from dataclasses import dataclass
from typing import Any, List, Sequence


@dataclass(frozen=True)
class Candle:
    """OHLCV candle."""

    time: int  # Unix ms (open time)
    open: float
    high: float
    low: float
    close: float
    volume: float = 0.0

    @property
    def range(self) -> float:
        """High-low range."""
        return self.high - self.low

    @property
    def body(self) -> float:
        """Absolute body size."""
        return abs(self.close - self.open)

    @property
    def is_bullish(self) -> bool:
        return self.close > self.open

    @property
    def is_bearish(self) -> bool:
        return self.close < self.open

    @classmethod
    def from_kline(cls, row: Sequence[Any]) -> "Candle":
        """
        Build a candle from an exchange kline row.

        Row layout: [open_time, open, high, low, close, volume, ...]. Numeric
        fields may arrive as strings.
        """
        if len(row) < 6:
            raise ValueError(f"Kline row needs at least 6 fields, got {len(row)}")
        return cls(
            time=int(row[0]),
            open=float(row[1]),
            high=float(row[2]),
            low=float(row[3]),
            close=float(row[4]),
            volume=float(row[5]),
        )


def candles_from_klines(rows: Sequence[Sequence[Any]]) -> List[Candle]:
    """Convert a list of kline rows into a candle series."""
    return [Candle.from_kline(row) for row in rows]


def latest_close(candles: Sequence[Candle]) -> float:
    """Close of the most recent candle (0.0 for an empty series)."""
    return candles[-1].close if candles else 0.0


def average_volume(candles: Sequence[Candle]) -> float:
    """Mean volume over the whole series (0.0 for an empty series)."""
    if not candles:
        return 0.0
    return sum(c.volume for c in candles) / len(candles)


def validate_series(candles: Sequence[Candle]) -> None:
    """
    Check the series contract: positive prices and strictly ascending time.

    Raises:
        ValueError: on the first violating candle
    """
    prev_time = None
    for i, candle in enumerate(candles):
        if min(candle.open, candle.high, candle.low, candle.close) <= 0:
            raise ValueError(f"Candle {i} has a non-positive price")
        if candle.high < candle.low:
            raise ValueError(f"Candle {i} has high below low")
        if prev_time is not None and candle.time <= prev_time:
            raise ValueError(f"Candle {i} time {candle.time} is not after {prev_time}")
        prev_time = candle.time
