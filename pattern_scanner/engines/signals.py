"""
Market bias values.

One enum carries every directional read the scanner produces or accepts:
the smart-money bias, market-structure trend, order block and fair value gap
sides, and the higher-timeframe bias a caller hands to the analyzer. Callers
may pass plain strings ("bullish", "Bearish"); engines coerce them once at
the boundary.
"""

from enum import Enum
from typing import Union


class Signal(Enum):
    """Directional market bias."""
    BULLISH = "bullish"
    BEARISH = "bearish"
    NEUTRAL = "neutral"

    def __str__(self) -> str:
        return self.value

    @property
    def opposite(self) -> "Signal":
        if self is Signal.BULLISH:
            return Signal.BEARISH
        if self is Signal.BEARISH:
            return Signal.BULLISH
        return Signal.NEUTRAL


SignalLike = Union[Signal, str]


def signal_value(signal: SignalLike) -> str:
    """Bias as its lowercase name; unknown strings pass through."""
    return signal.value if isinstance(signal, Signal) else str(signal)


def coerce_signal(signal: SignalLike, default: Signal = Signal.NEUTRAL) -> Signal:
    """Case-insensitive parse of a bias name; anything unrecognised is `default`."""
    if isinstance(signal, Signal):
        return signal
    try:
        return Signal(str(signal).strip().lower())
    except ValueError:
        return default
