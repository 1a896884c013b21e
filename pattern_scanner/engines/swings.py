"""
Swing / Pivot Extraction - Local Price Extrema

Two window tests over the same symmetric window (lookback candles each side):

- Pivots: weak test. The centre candle is a pivot high if its high is >= every
  other high in the window. Adjacent equal highs can all be pivots (plateaus).
- Swings: the centre candle is a swing high if its high equals the window
  maximum. Equal extrema inside one window can both register; this is kept
  as-is because downstream scoring was tuned against it.

The first and last `lookback` candles are never evaluated, so a series shorter
than 2*lookback+1 yields nothing.

Also provides three-bar peaks/troughs used by the chart pattern recognizers and
the significant-swing filter used by the Elliott wave engine.
"""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import List, Sequence, Tuple

from .analysis_config import safe_divide
from .candles import Candle

logger = logging.getLogger(__name__)


class PivotKind(Enum):
    """Extremum type."""
    HIGH = "HIGH"
    LOW = "LOW"


@dataclass(frozen=True)
class PivotPoint:
    """A local extremum found by the weak (>= / <=) window test."""
    index: int  # Index in candle list
    price: float
    time: int
    volume: float
    kind: PivotKind

    @property
    def is_high(self) -> bool:
        return self.kind is PivotKind.HIGH

    @property
    def is_low(self) -> bool:
        return self.kind is PivotKind.LOW


@dataclass(frozen=True)
class SwingPoint(PivotPoint):
    """A local extremum found by the window-max / window-min test."""


def _check_lookback(lookback: int) -> None:
    if lookback <= 0:
        raise ValueError(f"lookback must be positive, got {lookback!r}")


def _point(cls, candles: Sequence[Candle], i: int, kind: PivotKind):
    candle = candles[i]
    price = candle.high if kind is PivotKind.HIGH else candle.low
    return cls(index=i, price=price, time=candle.time, volume=candle.volume, kind=kind)


def extract_pivots(
    candles: Sequence[Candle], lookback: int = 5
) -> Tuple[List[PivotPoint], List[PivotPoint]]:
    """
    Find pivot highs and lows.

    Returns:
        (pivot_highs, pivot_lows), each ordered by index
    """
    _check_lookback(lookback)
    highs: List[PivotPoint] = []
    lows: List[PivotPoint] = []

    for i in range(lookback, len(candles) - lookback):
        window = candles[i - lookback:i + lookback + 1]
        current = candles[i]

        if all(c.high <= current.high for c in window):
            highs.append(_point(PivotPoint, candles, i, PivotKind.HIGH))
        if all(c.low >= current.low for c in window):
            lows.append(_point(PivotPoint, candles, i, PivotKind.LOW))

    logger.debug("Extracted %d pivot highs, %d pivot lows", len(highs), len(lows))
    return highs, lows


def extract_swings(candles: Sequence[Candle], lookback: int = 5) -> List[SwingPoint]:
    """
    Find swing highs and lows as one index-ordered list.

    When one candle is both the window high and the window low, its HIGH is
    listed before its LOW.
    """
    _check_lookback(lookback)
    swings: List[SwingPoint] = []

    for i in range(lookback, len(candles) - lookback):
        window = candles[i - lookback:i + lookback + 1]
        current = candles[i]

        if current.high == max(c.high for c in window):
            swings.append(_point(SwingPoint, candles, i, PivotKind.HIGH))
        if current.low == min(c.low for c in window):
            swings.append(_point(SwingPoint, candles, i, PivotKind.LOW))

    return swings


def split_swings(swings: Sequence[PivotPoint]) -> Tuple[List[PivotPoint], List[PivotPoint]]:
    """Split a mixed swing list into (highs, lows), preserving order."""
    highs = [s for s in swings if s.is_high]
    lows = [s for s in swings if s.is_low]
    return highs, lows


def filter_significant_swings(
    swings: Sequence[PivotPoint], min_move: float = 0.02
) -> List[PivotPoint]:
    """
    Reduce swings to an alternating sequence of significant moves.

    A swing is kept when it alternates kind from the last kept swing and moves
    at least min_move (fraction) away from it. A same-kind successor replaces
    the last kept swing when it is more extreme. An opposite-kind swing that is
    too small is dropped.
    """
    if min_move < 0:
        raise ValueError(f"min_move must not be negative, got {min_move!r}")

    filtered: List[PivotPoint] = []
    for current in swings:
        if not filtered:
            filtered.append(current)
            continue

        last = filtered[-1]
        move = safe_divide(abs(current.price - last.price), last.price)

        if current.kind is not last.kind:
            if move >= min_move:
                filtered.append(current)
        elif (current.is_high and current.price > last.price) or (
            current.is_low and current.price < last.price
        ):
            filtered[-1] = current

    return filtered


# ============================================================================
# THREE-BAR EXTREMA
# ============================================================================

def find_peaks(candles: Sequence[Candle]) -> List[PivotPoint]:
    """Candles whose high is strictly above both neighbours' highs."""
    return [
        _point(PivotPoint, candles, i, PivotKind.HIGH)
        for i in range(1, len(candles) - 1)
        if candles[i].high > candles[i - 1].high and candles[i].high > candles[i + 1].high
    ]


def find_troughs(candles: Sequence[Candle]) -> List[PivotPoint]:
    """Candles whose low is strictly below both neighbours' lows."""
    return [
        _point(PivotPoint, candles, i, PivotKind.LOW)
        for i in range(1, len(candles) - 1)
        if candles[i].low < candles[i - 1].low and candles[i].low < candles[i + 1].low
    ]


def find_swing_points(candles: Sequence[Candle], alternate: bool = True) -> List[PivotPoint]:
    """
    Peaks and troughs merged in index order.

    With alternate=True, consecutive same-kind points collapse to the more
    extreme one so kinds strictly alternate.
    """
    combined = sorted(find_peaks(candles) + find_troughs(candles), key=lambda p: p.index)
    if not alternate:
        return combined
    return filter_significant_swings(combined, min_move=0.0)
