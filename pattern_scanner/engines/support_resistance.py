"""
Support / Resistance Engine - Clustered, Scored Price Levels

Pipeline:
    CANDLES
        ↓
    PIVOT EXTRACTION (weak window test)
        ↓
    GREEDY CLUSTERING (lows → support, highs → resistance)
        ↓
    KEY LEVELS
    ├─ Psychological (round numbers near price)
    └─ Volume (high-volume profile bins)
        ↓
    STRENGTH SCORING
    ├─ Support / resistance: touches, volume, recency, proximity, age
    └─ Key levels: base strength + type bonus
        ↓
    LEVELS SORTED BY STRENGTH

Every level is rebuilt and rescored on each call; nothing is cached between
calls. The latest close is passed explicitly into every scoring helper.
"""

import logging
import math
from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional, Sequence

from .analysis_config import SupportResistanceThresholds, safe_divide
from .candles import Candle, average_volume, latest_close
from .clustering import Cluster, LevelClusterer
from .swings import PivotPoint, extract_pivots

logger = logging.getLogger(__name__)


# ============================================================================
# DATA STRUCTURES
# ============================================================================

class LevelKind(Enum):
    """Level origin."""
    SUPPORT = "SUPPORT"
    RESISTANCE = "RESISTANCE"
    PSYCHOLOGICAL = "PSYCHOLOGICAL"
    VOLUME = "VOLUME"


@dataclass
class Level:
    """A scored horizontal price level."""
    price: float
    touches: int
    kind: LevelKind
    strength: int = 0  # 0-100
    first_touch: Optional[int] = None  # Candle index
    last_touch: Optional[int] = None  # Candle index
    first_touch_time: Optional[int] = None
    last_touch_time: Optional[int] = None
    avg_volume: Optional[float] = None  # None when the level carries no volume
    is_recent: bool = False
    is_relevant: bool = False

    def distance_to(self, price: float) -> float:
        """Relative distance from price."""
        return safe_divide(abs(self.price - price), price, default=float("inf"))


@dataclass
class VolumeNode:
    """One bin of the volume profile."""
    price: float  # Bin midpoint
    volume: float
    bin_low: float
    bin_high: float


@dataclass
class SupportResistanceLevels:
    """Complete support/resistance result for one series."""
    current_price: float = 0.0
    support: List[Level] = field(default_factory=list)
    resistance: List[Level] = field(default_factory=list)
    key_levels: List[Level] = field(default_factory=list)  # Psychological + volume
    pivot_highs: List[PivotPoint] = field(default_factory=list)
    pivot_lows: List[PivotPoint] = field(default_factory=list)

    @property
    def all_levels(self) -> List[Level]:
        return self.support + self.resistance + self.key_levels

    def supports_below(self, price: float) -> List[Level]:
        """Support levels under price, nearest first."""
        return sorted((l for l in self.support if l.price < price), key=lambda l: -l.price)

    def resistances_above(self, price: float) -> List[Level]:
        """Resistance levels over price, nearest first."""
        return sorted((l for l in self.resistance if l.price > price), key=lambda l: l.price)


# ============================================================================
# HELPER FUNCTIONS
# ============================================================================

def psychological_step(price: float) -> float:
    """Round-number spacing for the magnitude of price."""
    if price < 1:
        return 0.01
    if price < 10:
        return 0.1
    if price < 100:
        return 1.0
    if price < 1000:
        return 10.0
    return 100.0


def round_numbers(min_price: float, max_price: float, step: float) -> List[float]:
    """Positive multiples of step within [floor(min/step)*step, max_price]."""
    if step <= 0:
        raise ValueError(f"step must be positive, got {step!r}")
    numbers = []
    k = math.floor(min_price / step)
    while True:
        # Multiply instead of accumulating to avoid drift on fractional steps
        price = round(k * step, 10)
        if price > max_price:
            break
        if price > 0:
            numbers.append(price)
        k += 1
    return numbers


def touch_indices(level: float, candles: Sequence[Candle], tolerance: float = 0.005) -> List[int]:
    """Indices of candles whose high, low or close is within tolerance of level."""
    indices = []
    for i, candle in enumerate(candles):
        for price in (candle.high, candle.low, candle.close):
            if safe_divide(abs(price - level), level, default=float("inf")) <= tolerance:
                indices.append(i)
                break
    return indices


def count_touches(level: float, candles: Sequence[Candle], tolerance: float = 0.005) -> int:
    """Number of candles touching level."""
    return len(touch_indices(level, candles, tolerance))


def volume_profile(candles: Sequence[Candle], bins: int = 50) -> List[VolumeNode]:
    """
    Distribute each candle's volume across price bins.

    A candle adds volume to every bin it overlaps, proportional to the overlap
    fraction of its own range. A zero-range candle adds its full volume to
    each bin it touches. A series with no price range collapses to one node.
    """
    if not candles:
        return []

    min_price = min(c.low for c in candles)
    max_price = max(c.high for c in candles)
    price_range = max_price - min_price

    if price_range <= 0:
        return [VolumeNode(min_price, sum(c.volume for c in candles), min_price, max_price)]

    bin_size = price_range / bins
    profile = []

    for i in range(bins):
        bin_low = min_price + i * bin_size
        bin_high = bin_low + bin_size
        total = 0.0

        for candle in candles:
            if candle.low <= bin_high and candle.high >= bin_low:
                overlap = min(candle.high, bin_high) - max(candle.low, bin_low)
                ratio = safe_divide(overlap, candle.range, default=1.0)
                total += candle.volume * ratio

        profile.append(VolumeNode((bin_low + bin_high) / 2, total, bin_low, bin_high))

    return profile


def is_recent_level(price: float, candles: Sequence[Candle], thresholds: SupportResistanceThresholds) -> bool:
    """Any of the most recent candles has a high or low within tolerance of price."""
    period = int(min(thresholds.recent_max_candles, len(candles) * thresholds.recent_fraction))
    recent = candles[-period:]
    tolerance = thresholds.recent_tolerance
    return any(
        safe_divide(abs(c.high - price), price, default=float("inf")) <= tolerance
        or safe_divide(abs(c.low - price), price, default=float("inf")) <= tolerance
        for c in recent
    )


def is_relevant_level(price: float, current_price: float, band: float = 0.15) -> bool:
    """Level within band (fraction) of the current price."""
    return safe_divide(abs(price - current_price), current_price, default=float("inf")) <= band


def score_level(
    level: Level,
    current_price: float,
    series_length: int,
    series_avg_volume: float,
    thresholds: Optional[SupportResistanceThresholds] = None,
) -> int:
    """
    Strength 0-100 for a level.

    touches*15 + volume ratio*0.3*20 + recency 10 + proximity 15/10
    + age factor*10 + type bonus (psychological 5, volume 8)
    """
    t = thresholds or SupportResistanceThresholds()
    strength = level.touches * t.touch_weight

    if level.avg_volume:
        volume_ratio = safe_divide(level.avg_volume, series_avg_volume)
        strength += volume_ratio * t.volume_weight_factor * t.volume_score_weight

    if level.is_recent:
        strength += t.recent_bonus

    distance = safe_divide(abs(level.price - current_price), current_price, default=float("inf"))
    if distance < t.near_distance:
        strength += t.near_bonus
    elif distance < t.mid_distance:
        strength += t.mid_bonus

    if level.last_touch is not None and series_length > 0:
        age = series_length - level.last_touch
        strength += max(0.0, 1 - age / series_length) * t.age_weight

    if level.kind is LevelKind.PSYCHOLOGICAL:
        strength += t.psychological_bonus
    elif level.kind is LevelKind.VOLUME:
        strength += t.volume_level_bonus

    return max(0, min(t.max_strength, int(round(strength))))


def key_level_strength(
    level: Level,
    bin_volume: float = 0.0,
    thresholds: Optional[SupportResistanceThresholds] = None,
) -> int:
    """
    Strength 0-100 for a psychological or volume level.

    Key levels are not run through score_level; they keep a base strength
    plus the type bonus:

        psychological: touches*10 + 5
        volume:        bin volume/1000 + 8
    """
    t = thresholds or SupportResistanceThresholds()
    if level.kind is LevelKind.PSYCHOLOGICAL:
        strength = level.touches * t.psychological_touch_weight + t.psychological_bonus
    elif level.kind is LevelKind.VOLUME:
        strength = bin_volume / t.volume_strength_divisor + t.volume_level_bonus
    else:
        raise ValueError(f"{level.kind} is not a key level kind")
    return max(0, min(t.max_strength, int(round(strength))))


def nearest_levels(price: float, levels: Sequence[Level], count: int = 3) -> List[Level]:
    """The count levels closest to price by absolute distance."""
    return sorted(levels, key=lambda l: abs(l.price - price))[:count]


def levels_in_range(min_price: float, max_price: float, levels: Sequence[Level]) -> List[Level]:
    """Levels with min_price <= price <= max_price."""
    return [l for l in levels if min_price <= l.price <= max_price]


def strongest_levels(levels: Sequence[Level], count: int = 5) -> List[Level]:
    """The count strongest levels."""
    return sorted(levels, key=lambda l: l.strength, reverse=True)[:count]


def _by_strength(levels: List[Level]) -> List[Level]:
    return sorted(levels, key=lambda l: l.strength, reverse=True)


# ============================================================================
# ENGINE
# ============================================================================

class SupportResistanceEngine:
    """
    Builds support, resistance, psychological and volume levels.

    Usage:
        engine = SupportResistanceEngine()
        levels = engine.find_levels(candles)
        for level in levels.support:
            print(level.price, level.strength)
    """

    def __init__(
        self,
        thresholds: Optional[SupportResistanceThresholds] = None,
        lookback: int = 5,
    ):
        if lookback <= 0:
            raise ValueError(f"lookback must be positive, got {lookback!r}")
        self.thresholds = thresholds or SupportResistanceThresholds()
        self.lookback = lookback
        self.clusterer = LevelClusterer(self.thresholds.cluster_tolerance)

    def find_levels(self, candles: Sequence[Candle]) -> SupportResistanceLevels:
        """Run the full level pipeline over candles."""
        if len(candles) < 2 * self.lookback + 1:
            logger.debug("Series of %d candles too short for levels", len(candles))
            return SupportResistanceLevels(current_price=latest_close(candles))

        current_price = latest_close(candles)
        avg_volume = average_volume(candles)
        pivot_highs, pivot_lows = extract_pivots(candles, self.lookback)

        support = self._levels_from_pivots(pivot_lows, LevelKind.SUPPORT, candles, current_price)
        resistance = self._levels_from_pivots(pivot_highs, LevelKind.RESISTANCE, candles, current_price)
        key_levels = self.psychological_levels(candles, current_price) + self.volume_levels(
            candles, current_price
        )

        for level in support + resistance:
            level.strength = score_level(
                level, current_price, len(candles), avg_volume, self.thresholds
            )

        result = SupportResistanceLevels(
            current_price=current_price,
            support=_by_strength(support),
            resistance=_by_strength(resistance),
            key_levels=_by_strength(key_levels),
            pivot_highs=pivot_highs,
            pivot_lows=pivot_lows,
        )
        logger.debug(
            "Levels: %d support, %d resistance, %d key",
            len(result.support),
            len(result.resistance),
            len(result.key_levels),
        )
        return result

    def _levels_from_pivots(
        self,
        pivots: Sequence[PivotPoint],
        kind: LevelKind,
        candles: Sequence[Candle],
        current_price: float,
    ) -> List[Level]:
        levels = []
        for cluster in self.clusterer.cluster(pivots):
            if cluster.size >= self.thresholds.min_touch_count:
                levels.append(self._level_from_cluster(cluster, kind, candles, current_price))
        return levels

    def _level_from_cluster(
        self, cluster: Cluster, kind: LevelKind, candles: Sequence[Candle], current_price: float
    ) -> Level:
        first = min(cluster.points, key=lambda p: p.index)
        last = max(cluster.points, key=lambda p: p.index)
        return Level(
            price=cluster.avg_price,
            touches=cluster.size,
            kind=kind,
            first_touch=first.index,
            last_touch=last.index,
            first_touch_time=first.time,
            last_touch_time=last.time,
            avg_volume=cluster.average_volume,
            is_recent=is_recent_level(cluster.avg_price, candles, self.thresholds),
            is_relevant=is_relevant_level(
                cluster.avg_price, current_price, self.thresholds.relevance_band
            ),
        )

    def _touch_level(
        self, price: float, kind: LevelKind, candles: Sequence[Candle], current_price: float
    ) -> Level:
        touches = touch_indices(price, candles, self.thresholds.touch_tolerance)
        # Per-candle figure, comparable with the series average
        touch_volume = sum(candles[i].volume for i in touches) / len(touches) if touches else None
        return Level(
            price=price,
            touches=len(touches),
            kind=kind,
            first_touch=touches[0] if touches else None,
            last_touch=touches[-1] if touches else None,
            first_touch_time=candles[touches[0]].time if touches else None,
            last_touch_time=candles[touches[-1]].time if touches else None,
            avg_volume=touch_volume,
            is_recent=is_recent_level(price, candles, self.thresholds),
            is_relevant=is_relevant_level(price, current_price, self.thresholds.relevance_band),
        )

    def psychological_levels(self, candles: Sequence[Candle], current_price: float) -> List[Level]:
        """Round numbers within the band around price touched at least twice."""
        band = current_price * self.thresholds.psychological_band
        step = psychological_step(current_price)
        levels = []
        for price in round_numbers(current_price - band, current_price + band, step):
            level = self._touch_level(price, LevelKind.PSYCHOLOGICAL, candles, current_price)
            if level.touches >= self.thresholds.psychological_min_touches:
                level.strength = key_level_strength(level, thresholds=self.thresholds)
                levels.append(level)
        return levels

    def volume_levels(self, candles: Sequence[Candle], current_price: float) -> List[Level]:
        """Profile bins in the top volume fraction, one VOLUME level per bin."""
        profile = volume_profile(candles, self.thresholds.volume_bins)
        if not profile:
            return []

        ranked = sorted(profile, key=lambda n: n.volume, reverse=True)
        threshold = ranked[int(len(ranked) * self.thresholds.high_volume_fraction)].volume

        levels = []
        for node in profile:
            if node.volume >= threshold:
                level = self._touch_level(node.price, LevelKind.VOLUME, candles, current_price)
                level.strength = key_level_strength(level, node.volume, self.thresholds)
                levels.append(level)
        return levels
