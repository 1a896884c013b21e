import os
import sys
from typing import List, Sequence

import pytest


TESTS_DIR = os.path.dirname(__file__)
PROJECT_ROOT = os.path.abspath(os.path.join(TESTS_DIR, "..", ".."))
if PROJECT_ROOT not in sys.path:
    sys.path.insert(0, PROJECT_ROOT)

from pattern_scanner.engines.candles import Candle  # noqa: E402
from pattern_scanner.engines.swings import PivotKind, PivotPoint  # noqa: E402


def create_candle(
    index: int, o: float, h: float, l: float, c: float, v: float = 1000.0
) -> Candle:
    """Helper to create a candle one minute after the previous index."""
    return Candle(time=index * 60000, open=o, high=h, low=l, close=c, volume=v)


def candles_from_bars(bars: Sequence[Sequence[float]], volumes: Sequence[float] = ()) -> List[Candle]:
    """Build candles from (high, low) pairs; open/close sit at the bar midpoint."""
    candles = []
    for i, (high, low) in enumerate(bars):
        mid = (high + low) / 2
        volume = volumes[i] if i < len(volumes) else 1000.0
        candles.append(create_candle(i, mid, high, low, mid, volume))
    return candles


def candles_from_closes(closes: Sequence[float], half_range: float = 0.5, volume: float = 1000.0) -> List[Candle]:
    """Flat-bodied candles (open == close) with a symmetric range around close."""
    return [
        create_candle(i, c, c + half_range, c - half_range, c, volume)
        for i, c in enumerate(closes)
    ]


def make_point(index: int, price: float, kind: PivotKind = PivotKind.LOW, volume: float = 0.0) -> PivotPoint:
    return PivotPoint(index=index, price=price, time=index * 60000, volume=volume, kind=kind)


def alternating_points(prices: Sequence[float], first: PivotKind = PivotKind.LOW) -> List[PivotPoint]:
    """Swing points whose kinds alternate starting from `first`."""
    other = PivotKind.HIGH if first is PivotKind.LOW else PivotKind.LOW
    return [make_point(i, p, first if i % 2 == 0 else other) for i, p in enumerate(prices)]


@pytest.fixture
def bull_flag_candles():
    """Strong 10-candle rise, 10-candle tight consolidation, volume spike on the last candle."""
    closes = [100 + 1.2 * i for i in range(10)] + [111 + 0.05 * i for i in range(10)]
    candles = candles_from_closes(closes)
    last = candles[-1]
    candles[-1] = Candle(last.time, last.open, last.high, last.low, last.close, 3000.0)
    return candles


@pytest.fixture
def triple_touch_support_candles():
    """Lows dip to ~100 at indices 2, 5 and 8 and sit higher everywhere else."""
    lows = [103, 102, 100.0, 102, 102, 100.05, 102, 102, 99.95, 102, 103]
    return [create_candle(i, low + 0.5, low + 1.5, low, low + 1.0) for i, low in enumerate(lows)]


@pytest.fixture
def ascending_triangle_candles():
    """Three flat peaks near 110 over three rising troughs, volume spike last."""
    bars = [
        (104, 100),
        (110, 104),
        (106, 101),
        (110.2, 105),
        (107, 102),
        (110.1, 106),
        (108, 103),
        (109, 105),
    ]
    volumes = [1000.0] * 7 + [5000.0]
    return candles_from_bars(bars, volumes)
