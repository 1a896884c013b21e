"""
Pattern Library - Chart, Candlestick and Harmonic Recognizers

Each recognizer is a pure function (candles, thresholds) -> Optional[PatternMatch]
and emits at most one match per call. They share no state; PatternLibrary
just runs the fixed registry and concatenates the results.

Recognizers:
- Triangles: ascending, descending, symmetrical (last 3 peaks/troughs)
- Head & Shoulders and Inverse Head & Shoulders
- Double Top / Double Bottom
- Bull Flag / Bear Flag (20-candle pole + consolidation)
- Bullish / Bearish Engulfing, Doji
- Harmonics: Gartley, Butterfly (last 5 alternating swings X-A-B-C-D)

Filtering:
- detect() keeps matches with confidence >= 60
- actionable() additionally requires confidence >= 70 and a confirmed breakout
"""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Callable, List, Optional, Sequence, Tuple

from .analysis_config import PatternThresholds, safe_divide
from .calculations import relative_change, simple_average
from .candles import Candle
from .swings import PivotPoint, find_peaks, find_swing_points, find_troughs

logger = logging.getLogger(__name__)


class PatternDirection(Enum):
    """Trade direction implied by a pattern."""
    LONG = "LONG"
    SHORT = "SHORT"
    NEUTRAL = "NEUTRAL"


@dataclass(frozen=True)
class PatternMatch:
    """A recognized pattern."""
    name: str
    direction: PatternDirection
    confidence: float  # 0-100
    breakout_confirmed: bool
    entry: float
    target: float


Recognizer = Callable[[Sequence[Candle], PatternThresholds], Optional[PatternMatch]]


# ============================================================================
# SHARED GEOMETRY
# ============================================================================

def _is_flat(points: Sequence[PivotPoint], tolerance: float) -> bool:
    if len(points) < 2:
        return False
    avg = simple_average(p.price for p in points)
    return all(safe_divide(abs(p.price - avg), avg, default=float("inf")) < tolerance for p in points)


def _is_rising(points: Sequence[PivotPoint]) -> bool:
    if len(points) < 2:
        return False
    return all(b.price > a.price for a, b in zip(points, points[1:]))


def _is_falling(points: Sequence[PivotPoint]) -> bool:
    if len(points) < 2:
        return False
    return all(b.price < a.price for a, b in zip(points, points[1:]))


def _volume_spike(candles: Sequence[Candle], window: int, multiplier: float) -> bool:
    """Last candle volume above multiplier x the average of the trailing window."""
    recent = candles[-window:]
    if not recent:
        return False
    avg = simple_average(c.volume for c in recent)
    return recent[-1].volume > avg * multiplier


def _pattern_height(candles: Sequence[Candle], window: int) -> float:
    """High-low span of the trailing window."""
    recent = candles[-window:]
    if not recent:
        return 0.0
    return max(c.high for c in recent) - min(c.low for c in recent)


def _recent_pivots(
    candles: Sequence[Candle], count: int
) -> Tuple[List[PivotPoint], List[PivotPoint]]:
    return find_peaks(candles)[-count:], find_troughs(candles)[-count:]


def _in_band(value: float, band: Tuple[float, float]) -> bool:
    return band[0] <= value <= band[1]


# ============================================================================
# TRIANGLES
# ============================================================================

def detect_ascending_triangle(candles: Sequence[Candle], t: PatternThresholds) -> Optional[PatternMatch]:
    """Flat resistance with rising support."""
    highs, lows = _recent_pivots(candles, t.triangle_points)
    if len(highs) < 2 or len(lows) < 2:
        return None
    if not (_is_flat(highs, t.flat_tolerance) and _is_rising(lows)):
        return None

    close = candles[-1].close
    return PatternMatch(
        name="Ascending Triangle",
        direction=PatternDirection.LONG,
        confidence=75,
        breakout_confirmed=_volume_spike(candles, t.breakout_volume_window, t.breakout_volume_multiplier),
        entry=close,
        target=close + _pattern_height(candles, t.height_window),
    )


def detect_descending_triangle(candles: Sequence[Candle], t: PatternThresholds) -> Optional[PatternMatch]:
    """Flat support with falling resistance."""
    highs, lows = _recent_pivots(candles, t.triangle_points)
    if len(highs) < 2 or len(lows) < 2:
        return None
    if not (_is_flat(lows, t.flat_tolerance) and _is_falling(highs)):
        return None

    close = candles[-1].close
    return PatternMatch(
        name="Descending Triangle",
        direction=PatternDirection.SHORT,
        confidence=75,
        breakout_confirmed=_volume_spike(candles, t.breakout_volume_window, t.breakout_volume_multiplier),
        entry=close,
        target=close - _pattern_height(candles, t.height_window),
    )


def detect_symmetrical_triangle(candles: Sequence[Candle], t: PatternThresholds) -> Optional[PatternMatch]:
    """Falling resistance with rising support; direction from the recent close trend."""
    highs, lows = _recent_pivots(candles, t.triangle_points)
    if len(highs) < 2 or len(lows) < 2:
        return None
    if not (_is_falling(highs) and _is_rising(lows)):
        return None

    recent = candles[-t.trend_window:]
    direction = PatternDirection.LONG if recent[-1].close > recent[0].close else PatternDirection.SHORT
    close = candles[-1].close
    move = _pattern_height(candles, t.height_window) * t.symmetrical_height_ratio
    return PatternMatch(
        name="Symmetrical Triangle",
        direction=direction,
        confidence=70,
        breakout_confirmed=_volume_spike(candles, t.breakout_volume_window, t.breakout_volume_multiplier),
        entry=close,
        target=close + move if direction is PatternDirection.LONG else close - move,
    )


# ============================================================================
# HEAD & SHOULDERS
# ============================================================================

def _is_head_and_shoulders(points: Sequence[PivotPoint], inverse: bool, tolerance: float) -> bool:
    if len(points) != 3:
        return False
    left, head, right = points
    if inverse:
        head_ok = head.price < left.price and head.price < right.price
    else:
        head_ok = head.price > left.price and head.price > right.price
    shoulders_ok = safe_divide(abs(left.price - right.price), left.price, default=float("inf")) < tolerance
    return head_ok and shoulders_ok


def _neckline_break(candles: Sequence[Candle], window: int, downward: bool) -> bool:
    """Last close beyond the extreme close of the preceding window-1 candles."""
    closes = [c.close for c in candles[-window:]]
    if len(closes) < 2:
        return False
    if downward:
        return closes[-1] < min(closes[:-1])
    return closes[-1] > max(closes[:-1])


def _head_height(points: Sequence[PivotPoint]) -> float:
    left, head, right = points
    return abs(head.price - min(left.price, right.price))


def detect_head_and_shoulders(candles: Sequence[Candle], t: PatternThresholds) -> Optional[PatternMatch]:
    """Three peaks, the middle one highest, shoulders within tolerance."""
    peaks = find_peaks(candles)
    if len(peaks) < 3:
        return None
    points = peaks[-3:]
    if not _is_head_and_shoulders(points, inverse=False, tolerance=t.shoulder_tolerance):
        return None

    close = candles[-1].close
    return PatternMatch(
        name="Head and Shoulders",
        direction=PatternDirection.SHORT,
        confidence=80,
        breakout_confirmed=_neckline_break(candles, t.neckline_window, downward=True),
        entry=close,
        target=close - _head_height(points),
    )


def detect_inverse_head_and_shoulders(
    candles: Sequence[Candle], t: PatternThresholds
) -> Optional[PatternMatch]:
    """Three troughs, the middle one lowest, shoulders within tolerance."""
    troughs = find_troughs(candles)
    if len(troughs) < 3:
        return None
    points = troughs[-3:]
    if not _is_head_and_shoulders(points, inverse=True, tolerance=t.shoulder_tolerance):
        return None

    close = candles[-1].close
    return PatternMatch(
        name="Inverse Head and Shoulders",
        direction=PatternDirection.LONG,
        confidence=80,
        breakout_confirmed=_neckline_break(candles, t.neckline_window, downward=False),
        entry=close,
        target=close + _head_height(points),
    )


# ============================================================================
# DOUBLE TOP / BOTTOM
# ============================================================================

def _is_double(points: Sequence[PivotPoint], tolerance: float) -> bool:
    if len(points) != 2:
        return False
    return safe_divide(abs(points[0].price - points[1].price), points[0].price, default=float("inf")) < tolerance


def detect_double_top(candles: Sequence[Candle], t: PatternThresholds) -> Optional[PatternMatch]:
    """Last two peaks at a similar price; confirmed by a close under recent support."""
    peaks = find_peaks(candles)[-2:]
    if not _is_double(peaks, t.double_tolerance):
        return None

    close = candles[-1].close
    recent = candles[-t.double_break_window:]
    lows = [c.low for c in recent[:len(recent) - t.double_break_skip]]
    confirmed = bool(lows) and close < min(lows)
    floor = min(c.low for c in candles[-t.height_window:])
    return PatternMatch(
        name="Double Top",
        direction=PatternDirection.SHORT,
        confidence=75,
        breakout_confirmed=confirmed,
        entry=close,
        target=close - (peaks[0].price - floor),
    )


def detect_double_bottom(candles: Sequence[Candle], t: PatternThresholds) -> Optional[PatternMatch]:
    """Last two troughs at a similar price; confirmed by a close over recent resistance."""
    troughs = find_troughs(candles)[-2:]
    if not _is_double(troughs, t.double_tolerance):
        return None

    close = candles[-1].close
    recent = candles[-t.double_break_window:]
    highs = [c.high for c in recent[:len(recent) - t.double_break_skip]]
    confirmed = bool(highs) and close > max(highs)
    ceiling = max(c.high for c in candles[-t.height_window:])
    return PatternMatch(
        name="Double Bottom",
        direction=PatternDirection.LONG,
        confidence=75,
        breakout_confirmed=confirmed,
        entry=close,
        target=close + (ceiling - troughs[0].price),
    )


# ============================================================================
# FLAGS
# ============================================================================

def _flag_moves(window: Sequence[Candle]) -> Tuple[float, float]:
    """(pole move, absolute consolidation move) over the two halves of window."""
    half = len(window) // 2
    first, second = window[:half], window[half:]
    pole = relative_change(first[0].close, first[-1].close)
    consolidation = abs(relative_change(second[0].close, second[-1].close))
    return pole, consolidation


def _detect_flag(candles: Sequence[Candle], t: PatternThresholds, bullish: bool) -> Optional[PatternMatch]:
    window = candles[-t.flag_window:]
    if len(window) < t.flag_min_candles:
        return None

    pole, consolidation = _flag_moves(window)
    pole_ok = pole > t.flag_pole_move if bullish else pole < -t.flag_pole_move
    if not (pole_ok and consolidation < t.flag_consolidation_move):
        return None

    close = candles[-1].close
    height = _pattern_height(candles, t.flag_target_window)
    return PatternMatch(
        name="Bull Flag" if bullish else "Bear Flag",
        direction=PatternDirection.LONG if bullish else PatternDirection.SHORT,
        confidence=70,
        breakout_confirmed=_volume_spike(window, len(window), t.flag_volume_multiplier),
        entry=close,
        target=close + height if bullish else close - height,
    )


def detect_bull_flag(candles: Sequence[Candle], t: PatternThresholds) -> Optional[PatternMatch]:
    """Strong rise in the first half, tight consolidation in the second."""
    return _detect_flag(candles, t, bullish=True)


def detect_bear_flag(candles: Sequence[Candle], t: PatternThresholds) -> Optional[PatternMatch]:
    """Strong drop in the first half, tight consolidation in the second."""
    return _detect_flag(candles, t, bullish=False)


# ============================================================================
# CANDLESTICKS
# ============================================================================

def is_bullish_engulfing(prev: Candle, curr: Candle) -> bool:
    return (
        prev.close < prev.open
        and curr.close > curr.open
        and curr.open < prev.close
        and curr.close > prev.open
    )


def is_bearish_engulfing(prev: Candle, curr: Candle) -> bool:
    return (
        prev.close > prev.open
        and curr.close < curr.open
        and curr.open > prev.close
        and curr.close < prev.open
    )


def is_doji(candle: Candle, body_ratio: float = 0.1) -> bool:
    """Body under body_ratio of the range; a zero-range candle is a doji."""
    return safe_divide(candle.body, candle.range, default=0.0) < body_ratio


def detect_bullish_engulfing(candles: Sequence[Candle], t: PatternThresholds) -> Optional[PatternMatch]:
    if len(candles) < 2 or not is_bullish_engulfing(candles[-2], candles[-1]):
        return None
    close = candles[-1].close
    return PatternMatch(
        name="Bullish Engulfing",
        direction=PatternDirection.LONG,
        confidence=65,
        breakout_confirmed=True,
        entry=close,
        target=close * (1 + t.engulfing_target_move),
    )


def detect_bearish_engulfing(candles: Sequence[Candle], t: PatternThresholds) -> Optional[PatternMatch]:
    if len(candles) < 2 or not is_bearish_engulfing(candles[-2], candles[-1]):
        return None
    close = candles[-1].close
    return PatternMatch(
        name="Bearish Engulfing",
        direction=PatternDirection.SHORT,
        confidence=65,
        breakout_confirmed=True,
        entry=close,
        target=close * (1 - t.engulfing_target_move),
    )


def detect_doji(candles: Sequence[Candle], t: PatternThresholds) -> Optional[PatternMatch]:
    if not candles or not is_doji(candles[-1], t.doji_body_ratio):
        return None
    close = candles[-1].close
    return PatternMatch(
        name="Doji",
        direction=PatternDirection.NEUTRAL,
        confidence=60,
        breakout_confirmed=False,
        entry=close,
        target=close,
    )


# ============================================================================
# HARMONICS
# ============================================================================

def _legs(points: Sequence[PivotPoint]) -> Tuple[float, float, float, float, float]:
    x, a, b, c, d = points
    return (
        abs(a.price - x.price),  # XA
        abs(b.price - a.price),  # AB
        abs(c.price - b.price),  # BC
        abs(d.price - c.price),  # CD
        abs(d.price - x.price),  # XD
    )


def is_gartley_pattern(points: Sequence[PivotPoint], t: Optional[PatternThresholds] = None) -> bool:
    """AB/XA ~0.618, BC/AB ~0.382-0.48, CD/BC ~1.272."""
    if len(points) < 5:
        return False
    t = t or PatternThresholds()
    xa, ab, bc, cd, _ = _legs(points[-5:])
    return (
        _in_band(safe_divide(ab, xa), t.gartley_ab_xa)
        and _in_band(safe_divide(bc, ab), t.gartley_bc_ab)
        and _in_band(safe_divide(cd, bc), t.gartley_cd_bc)
    )


def is_butterfly_pattern(points: Sequence[PivotPoint], t: Optional[PatternThresholds] = None) -> bool:
    """AB/XA ~0.786, BC/AB ~0.382-0.48, XD/XA ~1.272."""
    if len(points) < 5:
        return False
    t = t or PatternThresholds()
    xa, ab, bc, _, xd = _legs(points[-5:])
    return (
        _in_band(safe_divide(ab, xa), t.butterfly_ab_xa)
        and _in_band(safe_divide(bc, ab), t.butterfly_bc_ab)
        and _in_band(safe_divide(xd, xa), t.butterfly_xd_xa)
    )


def harmonic_direction(points: Sequence[PivotPoint]) -> PatternDirection:
    """LONG when D is a low, SHORT when D is a high."""
    return PatternDirection.LONG if points[-1].is_low else PatternDirection.SHORT


def harmonic_target(points: Sequence[PivotPoint], ratio: float = 0.618) -> float:
    """Retrace ratio x XA from D, away from D's extreme."""
    x, a, d = points[-5], points[-4], points[-1]
    move = abs(a.price - x.price) * ratio
    return d.price + move if d.is_low else d.price - move


def _detect_harmonic(
    candles: Sequence[Candle],
    t: PatternThresholds,
    name: str,
    confidence: float,
    check: Callable[[Sequence[PivotPoint], PatternThresholds], bool],
) -> Optional[PatternMatch]:
    swings = find_swing_points(candles)
    if len(swings) < 5:
        return None
    points = swings[-5:]
    if not check(points, t):
        return None
    return PatternMatch(
        name=name,
        direction=harmonic_direction(points),
        confidence=confidence,
        breakout_confirmed=len(points) >= 5,
        entry=candles[-1].close,
        target=harmonic_target(points, t.harmonic_target_ratio),
    )


def detect_gartley(candles: Sequence[Candle], t: PatternThresholds) -> Optional[PatternMatch]:
    return _detect_harmonic(candles, t, "Gartley", 80, is_gartley_pattern)


def detect_butterfly(candles: Sequence[Candle], t: PatternThresholds) -> Optional[PatternMatch]:
    return _detect_harmonic(candles, t, "Butterfly", 75, is_butterfly_pattern)


# ============================================================================
# REGISTRY
# ============================================================================

PATTERN_RECOGNIZERS: Tuple[Recognizer, ...] = (
    detect_ascending_triangle,
    detect_descending_triangle,
    detect_symmetrical_triangle,
    detect_head_and_shoulders,
    detect_inverse_head_and_shoulders,
    detect_double_top,
    detect_double_bottom,
    detect_bull_flag,
    detect_bear_flag,
    detect_bullish_engulfing,
    detect_bearish_engulfing,
    detect_doji,
    detect_gartley,
    detect_butterfly,
)


class PatternLibrary:
    """
    Runs every registered recognizer over a candle series.

    Usage:
        library = PatternLibrary()
        matches = library.detect(candles)
        tradable = library.actionable(matches)
    """

    def __init__(
        self,
        thresholds: Optional[PatternThresholds] = None,
        recognizers: Sequence[Recognizer] = PATTERN_RECOGNIZERS,
    ):
        self.thresholds = thresholds or PatternThresholds()
        self.recognizers = tuple(recognizers)

    def run_all(self, candles: Sequence[Candle]) -> List[PatternMatch]:
        """Every match, before confidence filtering."""
        if not candles:
            return []
        matches = []
        for recognizer in self.recognizers:
            match = recognizer(candles, self.thresholds)
            if match is not None:
                matches.append(match)
        return matches

    def detect(self, candles: Sequence[Candle]) -> List[PatternMatch]:
        """Matches at or above the reporting confidence floor."""
        matches = [
            m for m in self.run_all(candles) if m.confidence >= self.thresholds.report_min_confidence
        ]
        logger.debug("Detected %d patterns: %s", len(matches), [m.name for m in matches])
        return matches

    def actionable(self, matches: Sequence[PatternMatch]) -> List[PatternMatch]:
        """Matches strong enough to trade: confidence floor and confirmed breakout."""
        return [
            m
            for m in matches
            if m.confidence >= self.thresholds.actionable_min_confidence and m.breakout_confirmed
        ]
