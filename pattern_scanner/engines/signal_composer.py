"""
Signal Composer - Entry, Stop, Targets and Combined Confidence

Turns a primary pattern plus the wave, smart-money and support/resistance
results into a concrete trade plan:

- entry = latest close
- long stop = min(nearest support below x 0.995, entry - ATR)
- short stop = max(nearest resistance above x 1.005, entry + ATR)
- targets = nearest three levels on the profit side, else ATR x 2 / 3 / 4
- confidence = round(0.4 pattern + 0.3 wave + 0.3 smc), capped at 95

A higher-timeframe bias vetoes a signal pointing the other way.
"""

import logging
from dataclasses import dataclass
from typing import List, Optional, Sequence

from .analysis_config import SignalThresholds, safe_divide
from .calculations import average_last, calculate_ema, true_ranges
from .candles import Candle
from .elliott_wave import WaveAnalysis
from .patterns import PatternDirection, PatternMatch
from .signals import Signal, SignalLike, coerce_signal
from .smart_money import SmartMoneyAnalysis
from .support_resistance import SupportResistanceLevels

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TradeSignal:
    direction: PatternDirection
    entry: float
    stop_loss: float
    tp1: float
    tp2: float
    tp3: float
    risk_reward: float
    confidence: int

    @property
    def is_long(self) -> bool:
        return self.direction is PatternDirection.LONG

    @property
    def targets(self) -> List[float]:
        return [self.tp1, self.tp2, self.tp3]


def compute_atr(candles: Sequence[Candle], period: int = 14) -> float:
    """Mean of the last `period` true ranges; 0.0 when the series is shorter than period."""
    if period <= 0 or len(candles) < period:
        return 0.0
    ranges = true_ranges(
        [c.high for c in candles],
        [c.low for c in candles],
        [c.close for c in candles],
    )
    return average_last(ranges, period)


def trend_bias_from_closes(closes: Sequence[float], fast: int = 20, slow: int = 50) -> Signal:
    """
    EMA(fast) vs EMA(slow) on the last close.

    Returns NEUTRAL when either EMA is unavailable or they are equal.
    """
    fast_ema = calculate_ema(list(closes), fast)
    slow_ema = calculate_ema(list(closes), slow)
    if not fast_ema or not slow_ema:
        return Signal.NEUTRAL
    if fast_ema[-1] > slow_ema[-1]:
        return Signal.BULLISH
    if fast_ema[-1] < slow_ema[-1]:
        return Signal.BEARISH
    return Signal.NEUTRAL


def opposes(direction: PatternDirection, bias: Signal) -> bool:
    """True when a higher-timeframe bias points against the trade direction."""
    if direction is PatternDirection.LONG:
        return bias.opposite is Signal.BULLISH
    if direction is PatternDirection.SHORT:
        return bias.opposite is Signal.BEARISH
    return False


class SignalComposer:
    """
    Builds a TradeSignal from per-engine results.

    Usage:
        composer = SignalComposer()
        signal = composer.compose(pattern, wave, smc, levels, candles, htf_bias="bullish")
    """

    def __init__(self, thresholds: Optional[SignalThresholds] = None):
        self.thresholds = thresholds or SignalThresholds()

    def trend_bias(self, closes: Sequence[float]) -> Signal:
        """Higher-timeframe bias from closes, using the configured EMA periods."""
        return trend_bias_from_closes(closes, self.thresholds.fast_ema, self.thresholds.slow_ema)

    def combined_confidence(self, pattern_conf: float, wave_conf: float, smc_conf: float) -> int:
        t = self.thresholds
        score = pattern_conf * t.pattern_weight + wave_conf * t.wave_weight + smc_conf * t.smc_weight
        return min(t.max_confidence, int(round(score)))

    def compose(
        self,
        pattern: PatternMatch,
        wave: WaveAnalysis,
        smart_money: SmartMoneyAnalysis,
        levels: SupportResistanceLevels,
        candles: Sequence[Candle],
        htf_bias: Optional[SignalLike] = None,
    ) -> Optional[TradeSignal]:
        """
        Returns:
            TradeSignal, or None when the pattern has no trade direction, the
            series is empty, or the higher-timeframe bias vetoes it
        """
        if not candles or pattern.direction is PatternDirection.NEUTRAL:
            return None

        if htf_bias is not None and opposes(pattern.direction, coerce_signal(htf_bias)):
            logger.debug("%s %s vetoed by higher-timeframe bias %s", pattern.name, pattern.direction.value, htf_bias)
            return None

        entry = candles[-1].close
        atr = compute_atr(candles, self.thresholds.atr_period)
        stop_loss, targets = self.trade_levels(pattern.direction, entry, atr, levels)

        return TradeSignal(
            direction=pattern.direction,
            entry=self._price(entry),
            stop_loss=self._price(stop_loss),
            tp1=self._price(targets[0]),
            tp2=self._price(targets[1]),
            tp3=self._price(targets[2]),
            risk_reward=round(safe_divide(abs(targets[0] - entry), abs(entry - stop_loss)), self.thresholds.rr_decimals),
            confidence=self.combined_confidence(pattern.confidence, wave.confidence, smart_money.confidence),
        )

    def trade_levels(self, direction: PatternDirection, entry: float, atr: float, levels: SupportResistanceLevels):
        """(stop_loss, [tp1, tp2, tp3]) for the given direction."""
        t = self.thresholds
        multiples = t.target_atr_multiples

        if direction is PatternDirection.LONG:
            supports = levels.supports_below(entry)
            stop_loss = entry - atr
            if supports:
                stop_loss = min(supports[0].price * (1 - t.stop_buffer), stop_loss)
            nearest = [level.price for level in levels.resistances_above(entry)[:3]]
            fallback = [entry + atr * m for m in multiples]
        else:
            resistances = levels.resistances_above(entry)
            stop_loss = entry + atr
            if resistances:
                stop_loss = max(resistances[0].price * (1 + t.stop_buffer), stop_loss)
            nearest = [level.price for level in levels.supports_below(entry)[:3]]
            fallback = [entry - atr * m for m in multiples]

        targets = nearest + fallback[len(nearest):]
        return stop_loss, targets

    def _price(self, value: float) -> float:
        return round(value, self.thresholds.price_decimals)
