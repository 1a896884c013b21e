"""
Shared math utilities for chart analysis calculations.
"""

from typing import Iterable, List, Sequence

from .analysis_config import safe_divide


def simple_average(values: Iterable[float], default: float = 0.0) -> float:
    """Return the arithmetic mean of values or a default if empty."""
    values_list = list(values)
    if not values_list:
        return default
    return sum(values_list) / len(values_list)


def average_last(values: List[float], window: int, default: float = 0.0) -> float:
    """Return the average of the last window values (or all values if shorter)."""
    if not values:
        return default
    if window <= 0:
        return default
    slice_vals = values[-window:]
    return sum(slice_vals) / len(slice_vals)


def calculate_ema(prices: List[float], period: int) -> List[float]:
    """Calculate Exponential Moving Average."""
    if len(prices) < period or period <= 0:
        return []

    multiplier = 2 / (period + 1)
    ema = [sum(prices[:period]) / period]  # Start with SMA

    for price in prices[period:]:
        ema.append((price - ema[-1]) * multiplier + ema[-1])

    return ema


def true_ranges(highs: Sequence[float], lows: Sequence[float], closes: Sequence[float]) -> List[float]:
    """
    True Range for every candle after the first.

    TR = max(high-low, abs(high-prev_close), abs(low-prev_close))
    """
    ranges = []
    for i in range(1, len(closes)):
        prev_close = closes[i - 1]
        ranges.append(
            max(
                highs[i] - lows[i],
                abs(highs[i] - prev_close),
                abs(lows[i] - prev_close),
            )
        )
    return ranges


def relative_change(start: float, end: float) -> float:
    """Fractional move from start to end (0.0 when start is zero)."""
    return safe_divide(end - start, start)
