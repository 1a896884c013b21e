"""
Smart Money Engine - Structure, Order Blocks, Imbalances and Liquidity

Components:
1. Market structure from window-max swing highs/lows (HH/LH/HL/LL counts)
2. BOS: close beyond the most recent swing high (checked first) or swing low
3. CHoCH: close back through the prior high after a lower high (or mirror)
4. Order blocks: strong-bodied, high-volume candles followed by continuation
5. Fair value gaps: 3-candle imbalances of at least 0.5%
6. Liquidity zones: clusters of equal swing highs (sell side) / lows (buy side)

Bias is a weighted vote over those components; confidence counts how many of
them are present. Key levels are the still-active zones sorted by strength.
"""

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional, Sequence

from .analysis_config import SmartMoneyThresholds, safe_divide
from .candles import Candle, average_volume
from .clustering import LevelClusterer
from .signals import Signal
from .swings import PivotPoint, extract_swings, split_swings

logger = logging.getLogger(__name__)


class LiquiditySide(Enum):
    BUY_SIDE = "buy_side"  # Resting below equal lows
    SELL_SIDE = "sell_side"  # Resting above equal highs


class KeyLevelSource(Enum):
    ORDER_BLOCK = "order_block"
    FAIR_VALUE_GAP = "fair_value_gap"
    LIQUIDITY = "liquidity"


@dataclass
class StructureSignal:
    """A break of structure or change of character."""
    kind: Signal
    level: float
    confirmed: bool = True


@dataclass
class MarketStructure:
    trend: Signal = Signal.NEUTRAL
    higher_highs: int = 0
    lower_highs: int = 0
    higher_lows: int = 0
    lower_lows: int = 0
    break_of_structure: Optional[StructureSignal] = None
    change_of_character: Optional[StructureSignal] = None


@dataclass
class OrderBlock:
    kind: Signal
    high: float
    low: float
    index: int
    time: int
    volume: float
    strength: int
    tested: bool = False


@dataclass
class FairValueGap:
    kind: Signal
    high: float
    low: float
    index: int  # Middle candle of the 3-candle window
    time: int
    size: float  # Relative gap size
    filled: bool = False

    @property
    def midpoint(self) -> float:
        return (self.high + self.low) / 2


@dataclass
class LiquidityZone:
    side: LiquiditySide
    level: float
    count: int
    strength: float
    swept: bool = False


@dataclass
class KeyLevel:
    price: float
    source: KeyLevelSource
    direction: Signal
    strength: float


@dataclass
class SmartMoneyAnalysis:
    bias: Signal = Signal.NEUTRAL
    confidence: float = 0
    market_structure: MarketStructure = field(default_factory=MarketStructure)
    order_blocks: List[OrderBlock] = field(default_factory=list)
    fair_value_gaps: List[FairValueGap] = field(default_factory=list)
    liquidity_zones: List[LiquidityZone] = field(default_factory=list)
    key_levels: List[KeyLevel] = field(default_factory=list)


# ============================================================================
# MARKET STRUCTURE
# ============================================================================

def _count_transitions(points: Sequence[PivotPoint]):
    """(higher, lower-or-equal) transition counts between consecutive points."""
    higher = sum(1 for a, b in zip(points, points[1:]) if b.price > a.price)
    return higher, max(0, len(points) - 1) - higher


def detect_break_of_structure(
    close: float, highs: Sequence[PivotPoint], lows: Sequence[PivotPoint]
) -> Optional[StructureSignal]:
    if highs and close > highs[-1].price:
        return StructureSignal(Signal.BULLISH, highs[-1].price)
    if lows and close < lows[-1].price:
        return StructureSignal(Signal.BEARISH, lows[-1].price)
    return None


def detect_change_of_character(
    close: float, highs: Sequence[PivotPoint], lows: Sequence[PivotPoint]
) -> Optional[StructureSignal]:
    if len(highs) < 2 or len(lows) < 2:
        return None
    prior_high, last_high = highs[-2], highs[-1]
    prior_low, last_low = lows[-2], lows[-1]

    if last_high.price < prior_high.price and close > prior_high.price:
        return StructureSignal(Signal.BULLISH, prior_high.price)
    if last_low.price > prior_low.price and close < prior_low.price:
        return StructureSignal(Signal.BEARISH, prior_low.price)
    return None


def analyze_market_structure(
    candles: Sequence[Candle], highs: Sequence[PivotPoint], lows: Sequence[PivotPoint]
) -> MarketStructure:
    structure = MarketStructure()
    structure.higher_highs, structure.lower_highs = _count_transitions(highs)
    structure.higher_lows, structure.lower_lows = _count_transitions(lows)

    if structure.higher_highs > structure.lower_highs and structure.higher_lows > structure.lower_lows:
        structure.trend = Signal.BULLISH
    elif structure.lower_highs > structure.higher_highs and structure.lower_lows > structure.higher_lows:
        structure.trend = Signal.BEARISH

    close = candles[-1].close
    structure.break_of_structure = detect_break_of_structure(close, highs, lows)
    structure.change_of_character = detect_change_of_character(close, highs, lows)
    return structure


# ============================================================================
# ORDER BLOCKS / FAIR VALUE GAPS / LIQUIDITY
# ============================================================================

def _body_ratio(candle: Candle) -> float:
    return safe_divide(candle.body, candle.range)


def find_order_blocks(
    candles: Sequence[Candle], thresholds: Optional[SmartMoneyThresholds] = None
) -> List[OrderBlock]:
    """Qualifying candles in index order, with their tested flag set."""
    t = thresholds or SmartMoneyThresholds()
    avg_volume = average_volume(candles)
    blocks: List[OrderBlock] = []

    for i in range(1, len(candles) - 1):
        current, nxt = candles[i], candles[i + 1]
        body_ratio = _body_ratio(current)
        if body_ratio <= t.body_ratio or current.volume <= avg_volume * t.volume_multiplier:
            continue

        if current.is_bullish and nxt.close > current.close:
            kind = Signal.BULLISH
        elif current.is_bearish and nxt.close < current.close:
            kind = Signal.BEARISH
        else:
            continue

        strength = round(safe_divide(current.volume, avg_volume) * 30 + body_ratio * 20)
        blocks.append(OrderBlock(
            kind=kind,
            high=current.high,
            low=current.low,
            index=i,
            time=current.time,
            volume=current.volume,
            strength=strength,
        ))

    for block in blocks:
        block.tested = _is_tested(block, candles)
    return blocks


def _is_tested(block: OrderBlock, candles: Sequence[Candle]) -> bool:
    """A later low (bullish) or high (bearish) back inside the block range."""
    for candle in candles[block.index + 1:]:
        reach = candle.low if block.kind is Signal.BULLISH else candle.high
        if block.low <= reach <= block.high:
            return True
    return False


def find_fair_value_gaps(
    candles: Sequence[Candle], thresholds: Optional[SmartMoneyThresholds] = None
) -> List[FairValueGap]:
    t = thresholds or SmartMoneyThresholds()
    gaps: List[FairValueGap] = []

    for i in range(1, len(candles) - 1):
        prev, current, nxt = candles[i - 1], candles[i], candles[i + 1]

        if prev.high < nxt.low:
            size = safe_divide(nxt.low - prev.high, prev.high)
            if size >= t.fvg_min_size:
                gaps.append(FairValueGap(Signal.BULLISH, nxt.low, prev.high, i, current.time, size))

        if prev.low > nxt.high:
            size = safe_divide(prev.low - nxt.high, nxt.high)
            if size >= t.fvg_min_size:
                gaps.append(FairValueGap(Signal.BEARISH, prev.low, nxt.high, i, current.time, size))

    for gap in gaps:
        gap.filled = any(
            c.low <= gap.high and c.high >= gap.low for c in candles[gap.index + 2:]
        )
    return gaps


def find_liquidity_zones(
    highs: Sequence[PivotPoint],
    lows: Sequence[PivotPoint],
    current_price: float,
    thresholds: Optional[SmartMoneyThresholds] = None,
) -> List[LiquidityZone]:
    """Equal-high (sell side) zones first, then equal-low (buy side) zones."""
    t = thresholds or SmartMoneyThresholds()
    clusterer = LevelClusterer(t.liquidity_tolerance)
    zones: List[LiquidityZone] = []

    for side, points in ((LiquiditySide.SELL_SIDE, highs), (LiquiditySide.BUY_SIDE, lows)):
        for cluster in clusterer.cluster(points):
            if cluster.size < t.liquidity_min_count:
                continue
            if side is LiquiditySide.SELL_SIDE:
                swept = current_price > cluster.avg_price
            else:
                swept = current_price < cluster.avg_price
            zones.append(LiquidityZone(
                side=side,
                level=cluster.avg_price,
                count=cluster.size,
                strength=cluster.size * 15,
                swept=swept,
            ))
    return zones


# ============================================================================
# ENGINE
# ============================================================================

class SmartMoneyEngine:
    """
    Smart-money concept analysis over one candle series.

    Usage:
        engine = SmartMoneyEngine()
        smc = engine.analyze(candles)
        print(smc.bias, smc.confidence)
    """

    def __init__(self, thresholds: Optional[SmartMoneyThresholds] = None):
        self.thresholds = thresholds or SmartMoneyThresholds()

    def analyze(self, candles: Sequence[Candle]) -> SmartMoneyAnalysis:
        if not candles:
            return SmartMoneyAnalysis()

        t = self.thresholds
        highs, lows = split_swings(extract_swings(candles, t.swing_lookback))
        current_price = candles[-1].close

        analysis = SmartMoneyAnalysis(
            market_structure=analyze_market_structure(candles, highs, lows),
            order_blocks=find_order_blocks(candles, t),
            fair_value_gaps=find_fair_value_gaps(candles, t),
            liquidity_zones=find_liquidity_zones(highs, lows, current_price, t),
        )
        analysis.bias = self.determine_bias(analysis)
        analysis.confidence = self.calculate_confidence(analysis)
        analysis.key_levels = self.identify_key_levels(analysis)

        logger.debug(
            "SMC: bias=%s confidence=%s obs=%d fvgs=%d zones=%d",
            analysis.bias, analysis.confidence, len(analysis.order_blocks),
            len(analysis.fair_value_gaps), len(analysis.liquidity_zones),
        )
        return analysis

    def determine_bias(self, analysis: SmartMoneyAnalysis) -> Signal:
        scores = {Signal.BULLISH: 0, Signal.BEARISH: 0, Signal.NEUTRAL: 0}
        structure = analysis.market_structure

        scores[structure.trend] += 30
        if structure.break_of_structure:
            scores[structure.break_of_structure.kind] += 25
        if structure.change_of_character:
            scores[structure.change_of_character.kind] += 20

        for block in analysis.order_blocks[-self.thresholds.recent_order_blocks:]:
            if not block.tested:
                scores[block.kind] += 10

        for gap in analysis.fair_value_gaps:
            if not gap.filled:
                scores[gap.kind] += 5

        bullish, bearish = scores[Signal.BULLISH], scores[Signal.BEARISH]
        if bullish > bearish + self.thresholds.bias_margin:
            return Signal.BULLISH
        if bearish > bullish + self.thresholds.bias_margin:
            return Signal.BEARISH
        return Signal.NEUTRAL

    def calculate_confidence(self, analysis: SmartMoneyAnalysis) -> float:
        t = self.thresholds
        structure = analysis.market_structure
        confidence = 0

        if structure.trend is not Signal.NEUTRAL:
            confidence += 20
        if structure.break_of_structure:
            confidence += 25
        if structure.change_of_character:
            confidence += 20

        strong_blocks = [b for b in analysis.order_blocks if b.strength > t.key_order_block_strength]
        confidence += min(len(strong_blocks) * 10, 30)

        significant_gaps = [g for g in analysis.fair_value_gaps if g.size > t.significant_fvg_size]
        confidence += min(len(significant_gaps) * 5, 15)

        active_zones = [z for z in analysis.liquidity_zones if not z.swept]
        confidence += min(len(active_zones) * 5, 10)

        return min(confidence, 95)

    def identify_key_levels(self, analysis: SmartMoneyAnalysis) -> List[KeyLevel]:
        levels: List[KeyLevel] = []

        for block in analysis.order_blocks:
            if block.tested or block.strength <= self.thresholds.key_order_block_strength:
                continue
            price = block.low if block.kind is Signal.BULLISH else block.high
            levels.append(KeyLevel(price, KeyLevelSource.ORDER_BLOCK, block.kind, block.strength))

        for gap in analysis.fair_value_gaps:
            if not gap.filled:
                levels.append(KeyLevel(gap.midpoint, KeyLevelSource.FAIR_VALUE_GAP, gap.kind, gap.size * 1000))

        for zone in analysis.liquidity_zones:
            if not zone.swept:
                direction = Signal.BULLISH if zone.side is LiquiditySide.BUY_SIDE else Signal.BEARISH
                levels.append(KeyLevel(zone.level, KeyLevelSource.LIQUIDITY, direction, zone.strength))

        levels.sort(key=lambda level: level.strength, reverse=True)
        return levels
