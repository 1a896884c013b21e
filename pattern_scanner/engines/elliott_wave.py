"""
Elliott Wave Engine - Impulse and Corrective Structure Labelling

Works on significant swings (window-max swings reduced to alternating moves of
at least 2%). Every contiguous 5-swing window is scored as an impulse
candidate and every contiguous 3-swing window as a corrective candidate; the
single highest-confidence valid candidate across the whole series wins.

Impulse scoring (capped at 95, valid at >= 60):
- +20 strict alternation (1/3/5 share a kind, 2/4 the other)
- +15 wave 2 does not fully retrace wave 1
- +20 wave 3 is not the shortest of waves 1, 3, 5
- +15 wave 4 stays out of wave 1 territory
- +10 wave 3 / wave 1 in the 1.5-1.7 guideline band
- Fibonacci: +10 wave 2 retracement, +15 wave 3 extension,
  +10 wave 4 retracement, +10 wave 5 ratio (each within +/-0.1)

Corrective scoring (capped at 90, valid at >= 40):
- +20 alternation (A and C share a kind)
- +20 C/A length near 1.0 or 1.618
- +15 B retracement of A near 0.5 / 0.618 / 0.786
"""

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional, Sequence

from .analysis_config import ElliottWaveThresholds, SwingThresholds, safe_divide
from .candles import Candle
from .swings import PivotPoint, extract_swings, filter_significant_swings

logger = logging.getLogger(__name__)


class WaveKind(Enum):
    IMPULSE = "IMPULSE"
    CORRECTIVE = "CORRECTIVE"


class WaveDirection(Enum):
    BULLISH = "BULLISH"
    BEARISH = "BEARISH"


@dataclass
class WaveStructure:
    """A scored wave candidate over consecutive swings."""
    kind: WaveKind
    waves: List[PivotPoint]
    direction: WaveDirection
    confidence: float
    start_index: int  # Position of the first wave in the swing list
    end_index: int
    notes: List[str] = field(default_factory=list)
    origin: Optional[PivotPoint] = None  # Corrective only: swing wave A started from

    @property
    def is_complete(self) -> bool:
        expected = 5 if self.kind is WaveKind.IMPULSE else 3
        return len(self.waves) == expected


@dataclass
class WaveProjections:
    """Price targets for the next leg."""
    wave5_equal: Optional[float] = None  # Wave 5 = wave 1
    wave5_618: Optional[float] = None  # 61.8% of the wave 1-3 range
    wave_c_equal: Optional[float] = None  # Wave C = wave A
    wave_c_1618: Optional[float] = None  # Wave C = 161.8% of wave A


@dataclass
class WaveAnalysis:
    """Result of one Elliott wave pass."""
    is_valid: bool
    current_wave: Optional[str]
    confidence: float
    structure: Optional[WaveStructure] = None
    projections: Optional[WaveProjections] = None
    swings: List[PivotPoint] = field(default_factory=list)

    @property
    def direction(self) -> Optional[WaveDirection]:
        return self.structure.direction if self.structure else None


def is_near_fib_ratio(value: float, targets: Sequence[float], tolerance: float = 0.1) -> bool:
    """True when value is within tolerance of any target ratio."""
    return any(abs(value - target) <= tolerance for target in targets)


def _alternates(waves: Sequence[PivotPoint]) -> bool:
    return all(a.kind is not b.kind for a, b in zip(waves, waves[1:]))


# ============================================================================
# IMPULSE
# ============================================================================

def _score_impulse_rules(
    waves: Sequence[PivotPoint], bullish: bool, t: ElliottWaveThresholds, notes: List[str]
) -> float:
    w1, w2, w3, w4, w5 = waves
    sign = 1 if bullish else -1
    score = 0.0

    if sign * (w2.price - w1.price) > 0:
        score += 15
        notes.append("Wave 2 retracement valid")

    wave1 = sign * (w2.price - w1.price)
    wave3 = sign * (w4.price - w3.price)
    wave5 = sign * (w5.price - w4.price)
    if wave3 >= wave1 and wave3 >= wave5:
        score += 20
        notes.append("Wave 3 is not shortest")

    if sign * (w4.price - w2.price) > 0:
        score += 15
        notes.append("Wave 4 does not overlap wave 1")

    low, high = t.wave3_guideline
    if low <= safe_divide(wave3, wave1) <= high:
        score += 10
        notes.append("Wave 3 shows proper extension")

    return score


def _score_impulse_fibonacci(
    waves: Sequence[PivotPoint], t: ElliottWaveThresholds, notes: List[str]
) -> float:
    w1, w2, w3, w4, w5 = waves
    wave1 = abs(w2.price - w1.price)
    wave2 = abs(w3.price - w2.price)
    wave3 = abs(w4.price - w3.price)
    wave4 = abs(w5.price - w4.price)

    checks = (
        ("Wave 2 retracement", safe_divide(wave2, wave1), t.wave2_retracements, 10),
        ("Wave 3 extension", safe_divide(wave3, wave1), t.wave3_extensions, 15),
        ("Wave 4 retracement", safe_divide(wave4, wave3), t.wave4_retracements, 10),
        ("Wave 5 ratio", safe_divide(wave4, wave1), t.wave5_ratios, 10),
    )

    score = 0.0
    for label, ratio, targets, points in checks:
        if is_near_fib_ratio(ratio, targets, t.fib_tolerance):
            score += points
            notes.append(f"{label}: {ratio * 100:.1f}%")
    return score


def analyze_impulse(
    waves: Sequence[PivotPoint],
    thresholds: Optional[ElliottWaveThresholds] = None,
    start_index: int = 0,
) -> Optional[WaveStructure]:
    """
    Score five swings as an impulse.

    Returns:
        WaveStructure if the swings alternate and score at least the
        validity floor, otherwise None
    """
    t = thresholds or ElliottWaveThresholds()
    if len(waves) != 5 or not _alternates(waves):
        return None

    bullish = waves[0].is_low
    notes: List[str] = []
    confidence = 20.0
    confidence += _score_impulse_rules(waves, bullish, t, notes)
    confidence += _score_impulse_fibonacci(waves, t, notes)

    if confidence < t.valid_confidence:
        return None

    return WaveStructure(
        kind=WaveKind.IMPULSE,
        waves=list(waves),
        direction=WaveDirection.BULLISH if bullish else WaveDirection.BEARISH,
        confidence=min(confidence, t.impulse_cap),
        start_index=start_index,
        end_index=start_index + 4,
        notes=notes,
    )


# ============================================================================
# CORRECTIVE
# ============================================================================

def analyze_corrective(
    waves: Sequence[PivotPoint],
    thresholds: Optional[ElliottWaveThresholds] = None,
    start_index: int = 0,
    preceding: Optional[PivotPoint] = None,
) -> Optional[WaveStructure]:
    """
    Score three swings as an A-B-C correction.

    Each point ends its wave, so wave A runs from `preceding` to A, wave B
    from A to B and wave C from B to C. Both ratios are taken against that
    A leg; without a preceding swing neither can be scored.

    Args:
        waves: The A, B and C swing points
        preceding: Swing wave A started from
    """
    t = thresholds or ElliottWaveThresholds()
    if len(waves) != 3 or not _alternates(waves):
        return None

    a, b, c = waves
    notes: List[str] = []
    confidence = 20.0

    if preceding is not None:
        wave_a = abs(a.price - preceding.price)

        c_ratio = safe_divide(abs(c.price - b.price), wave_a)
        if is_near_fib_ratio(c_ratio, t.c_to_a_ratios, t.fib_tolerance):
            confidence += 20
            notes.append(f"Wave C / wave A: {c_ratio * 100:.1f}%")

        b_ratio = safe_divide(abs(b.price - a.price), wave_a)
        if is_near_fib_ratio(b_ratio, t.b_retracements, t.fib_tolerance):
            confidence += 15
            notes.append(f"Wave B retracement: {b_ratio * 100:.1f}%")

    if confidence < t.corrective_min_confidence:
        return None

    # Wave A falling into a low means a downward correction
    return WaveStructure(
        kind=WaveKind.CORRECTIVE,
        waves=list(waves),
        direction=WaveDirection.BEARISH if a.is_low else WaveDirection.BULLISH,
        confidence=min(confidence, t.corrective_cap),
        start_index=start_index,
        end_index=start_index + 2,
        notes=notes,
        origin=preceding,
    )


# ============================================================================
# ENGINE
# ============================================================================

class ElliottWaveEngine:
    """
    Labels the best Elliott structure in a candle series.

    Usage:
        engine = ElliottWaveEngine()
        analysis = engine.analyze(candles)
        if analysis.is_valid:
            print(analysis.current_wave, analysis.structure.direction)
    """

    def __init__(
        self,
        thresholds: Optional[ElliottWaveThresholds] = None,
        swing_thresholds: Optional[SwingThresholds] = None,
    ):
        self.thresholds = thresholds or ElliottWaveThresholds()
        self.swing_thresholds = swing_thresholds or SwingThresholds()

    def significant_swings(self, candles: Sequence[Candle]) -> List[PivotPoint]:
        swings = extract_swings(candles, self.swing_thresholds.lookback)
        return filter_significant_swings(swings, self.swing_thresholds.significant_move)

    def analyze(self, candles: Sequence[Candle]) -> WaveAnalysis:
        if not candles:
            return WaveAnalysis(is_valid=False, current_wave=None, confidence=0)
        swings = self.significant_swings(candles)
        return self.analyze_swings(swings, candles[-1].close)

    def analyze_swings(self, swings: Sequence[PivotPoint], current_price: float) -> WaveAnalysis:
        """Label a prepared swing list against the latest close."""
        swings = list(swings)
        if len(swings) < self.thresholds.min_swings:
            logger.debug("Only %d significant swings, need %d", len(swings), self.thresholds.min_swings)
            return WaveAnalysis(is_valid=False, current_wave=None, confidence=0, swings=swings)

        structure = self.best_structure(swings)
        confidence = self.final_confidence(structure)

        return WaveAnalysis(
            is_valid=confidence >= self.thresholds.valid_confidence,
            current_wave=self.current_wave(structure, current_price),
            confidence=confidence,
            structure=structure,
            projections=self.projections(structure),
            swings=swings,
        )

    def candidates(self, swings: Sequence[PivotPoint]) -> List[WaveStructure]:
        """Every valid impulse, then every valid correction, in swing order."""
        found: List[WaveStructure] = []

        for i in range(len(swings) - 4):
            structure = analyze_impulse(swings[i:i + 5], self.thresholds, start_index=i)
            if structure:
                found.append(structure)

        for i in range(len(swings) - 2):
            preceding = swings[i - 1] if i > 0 else None
            structure = analyze_corrective(swings[i:i + 3], self.thresholds, start_index=i, preceding=preceding)
            if structure:
                found.append(structure)

        logger.debug("Found %d wave candidates over %d swings", len(found), len(swings))
        return found

    def best_structure(self, swings: Sequence[PivotPoint]) -> Optional[WaveStructure]:
        """Highest-confidence candidate; the earliest one wins ties."""
        found = self.candidates(swings)
        if not found:
            return None
        return max(found, key=lambda s: s.confidence)

    def final_confidence(self, structure: Optional[WaveStructure]) -> float:
        if structure is None:
            return 0
        t = self.thresholds
        confidence = structure.confidence
        if structure.is_complete:
            confidence += t.complete_bonus
        if len(structure.waves) < 3:
            confidence -= t.incomplete_penalty
        return max(0, min(t.impulse_cap, confidence))

    @staticmethod
    def current_wave(structure: Optional[WaveStructure], current_price: float) -> Optional[str]:
        """Position label such as '5 (completing)' or 'A (corrective)'."""
        if structure is None:
            return None

        count = len(structure.waves)
        last = structure.waves[-1]

        if structure.kind is WaveKind.IMPULSE:
            if count != 5:
                return f"{count} (impulse)"
            if structure.direction is WaveDirection.BULLISH and current_price < last.price:
                return "A (corrective)"
            if structure.direction is WaveDirection.BEARISH and current_price > last.price:
                return "A (corrective)"
            return "5 (completing)"

        if count <= 3:
            return f"{'ABC'[count - 1]} (corrective)"
        return "C (completing)"

    @staticmethod
    def projections(structure: Optional[WaveStructure]) -> Optional[WaveProjections]:
        if structure is None:
            return None

        waves = structure.waves
        sign = 1 if structure.direction is WaveDirection.BULLISH else -1

        if structure.kind is WaveKind.IMPULSE:
            wave1 = abs(waves[1].price - waves[0].price)
            one_to_three = abs(waves[2].price - waves[0].price)
            return WaveProjections(
                wave5_equal=waves[4].price + sign * wave1,
                wave5_618=waves[4].price + sign * one_to_three * 0.618,
            )

        if structure.origin is None:
            return WaveProjections()

        # Wave C starts at B
        wave_a = abs(waves[0].price - structure.origin.price)
        return WaveProjections(
            wave_c_equal=waves[1].price + sign * wave_a,
            wave_c_1618=waves[1].price + sign * wave_a * 1.618,
        )
