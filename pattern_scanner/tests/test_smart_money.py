"""
Unit tests for the Smart Money Engine.

Tests:
- BOS / CHoCH triggers and trend classification
- Order block detection and testing
- Fair value gap detection and filling
- Liquidity zones and sweeps
- Bias, confidence and key levels
"""

import pytest

from conftest import candles_from_closes, create_candle, make_point
from pattern_scanner.engines.smart_money import (
    FairValueGap,
    KeyLevelSource,
    LiquiditySide,
    LiquidityZone,
    MarketStructure,
    OrderBlock,
    SmartMoneyAnalysis,
    SmartMoneyEngine,
    StructureSignal,
    analyze_market_structure,
    detect_break_of_structure,
    detect_change_of_character,
    find_fair_value_gaps,
    find_liquidity_zones,
    find_order_blocks,
)
from pattern_scanner.engines.signals import Signal
from pattern_scanner.engines.swings import PivotKind


def highs(*prices):
    return [make_point(i, p, PivotKind.HIGH) for i, p in enumerate(prices)]


def lows(*prices):
    return [make_point(i, p, PivotKind.LOW) for i, p in enumerate(prices)]


def impulse_candles(retest_low: float = 106.5):
    """A high-volume bullish candle at index 1 followed by continuation."""
    return [
        create_candle(0, 100, 101, 99, 100, v=100),
        create_candle(1, 100, 106, 99.5, 105.5, v=500),
        create_candle(2, 106.6, 108, retest_low, 107.5, v=100),
        create_candle(3, 107.5, 109, 107, 108.5, v=100),
        create_candle(4, 108.5, 110, 108, 109.5, v=100),
    ]


class TestMarketStructure:
    """Trend, BOS and CHoCH."""

    def test_bullish_bos(self):
        bos = detect_break_of_structure(120, highs(110), lows(90))
        assert bos.kind is Signal.BULLISH
        assert bos.level == 110

    def test_bearish_bos(self):
        bos = detect_break_of_structure(85, highs(110), lows(90))
        assert bos.kind is Signal.BEARISH
        assert bos.level == 90

    def test_no_bos_inside_range(self):
        assert detect_break_of_structure(100, highs(110), lows(90)) is None

    def test_bullish_choch(self):
        choch = detect_change_of_character(125, highs(120, 110), lows(90, 95))
        assert choch.kind is Signal.BULLISH
        assert choch.level == 120

    def test_bearish_choch(self):
        choch = detect_change_of_character(85, highs(110, 115), lows(90, 95))
        assert choch.kind is Signal.BEARISH
        assert choch.level == 90

    def test_choch_needs_two_of_each(self):
        assert detect_change_of_character(125, highs(120), lows(90, 95)) is None

    def test_uptrend_classification(self):
        candles = candles_from_closes([100, 105])
        structure = analyze_market_structure(candles, highs(100, 110, 120), lows(90, 95, 100))

        assert structure.trend is Signal.BULLISH
        assert (structure.higher_highs, structure.lower_highs) == (2, 0)
        assert (structure.higher_lows, structure.lower_lows) == (2, 0)

    def test_mixed_structure_is_neutral(self):
        candles = candles_from_closes([100, 105])
        structure = analyze_market_structure(candles, highs(100, 110, 120), lows(100, 95, 90))
        assert structure.trend is Signal.NEUTRAL


class TestOrderBlocks:
    """Strong candle + continuation."""

    def test_untested_bullish_block(self):
        blocks = find_order_blocks(impulse_candles())

        assert len(blocks) == 1
        block = blocks[0]
        assert block.kind is Signal.BULLISH
        assert block.index == 1
        assert (block.low, block.high) == (99.5, 106)
        assert not block.tested
        # volume ratio 500/180, body ratio 5.5/6.5
        assert block.strength == round(500 / 180 * 30 + 5.5 / 6.5 * 20)

    def test_retest_marks_block_tested(self):
        blocks = find_order_blocks(impulse_candles(retest_low=105))
        assert blocks[0].tested

    def test_zero_range_candles_never_qualify(self):
        candles = [create_candle(i, 100, 100, 100, 100, v=100 * (i + 1)) for i in range(5)]
        assert find_order_blocks(candles) == []


class TestFairValueGaps:
    """Three-candle imbalances."""

    def test_bullish_gaps(self):
        gaps = find_fair_value_gaps(impulse_candles())

        assert [(g.kind, g.index) for g in gaps] == [(Signal.BULLISH, 1), (Signal.BULLISH, 2)]
        first = gaps[0]
        assert (first.low, first.high) == (101, 106.5)
        assert first.size == pytest.approx(5.5 / 101)
        assert not first.filled

    def test_later_overlap_fills_gap(self):
        candles = impulse_candles() + [create_candle(5, 109, 109.5, 104, 105)]
        gaps = find_fair_value_gaps(candles)
        assert all(g.filled for g in gaps)

    def test_small_gap_ignored(self):
        candles = [
            create_candle(0, 100, 100, 99, 100),
            create_candle(1, 100, 100.5, 99.9, 100.4),
            create_candle(2, 100.4, 100.6, 100.2, 100.5),
        ]
        assert find_fair_value_gaps(candles) == []


class TestLiquidityZones:
    """Equal highs / lows."""

    def test_equal_highs_form_sell_side_zone(self):
        zones = find_liquidity_zones(highs(100, 100.2, 110), [], current_price=99)

        assert len(zones) == 1
        zone = zones[0]
        assert zone.side is LiquiditySide.SELL_SIDE
        assert zone.level == pytest.approx(100.1)
        assert zone.count == 2
        assert zone.strength == 30
        assert not zone.swept

    def test_close_through_zone_sweeps_it(self):
        zones = find_liquidity_zones(highs(100, 100.2), lows(90, 90.1), current_price=101)

        sell = [z for z in zones if z.side is LiquiditySide.SELL_SIDE][0]
        buy = [z for z in zones if z.side is LiquiditySide.BUY_SIDE][0]
        assert sell.swept
        assert not buy.swept


class TestBiasAndConfidence:
    """Aggregation over components."""

    def test_trend_and_bos_give_bullish_bias(self):
        engine = SmartMoneyEngine()
        analysis = SmartMoneyAnalysis(
            market_structure=MarketStructure(
                trend=Signal.BULLISH, break_of_structure=StructureSignal(Signal.BULLISH, 110)
            )
        )

        assert engine.determine_bias(analysis) is Signal.BULLISH
        assert engine.calculate_confidence(analysis) == 45

    def test_margin_keeps_close_votes_neutral(self):
        engine = SmartMoneyEngine()
        analysis = SmartMoneyAnalysis(
            market_structure=MarketStructure(
                break_of_structure=StructureSignal(Signal.BULLISH, 110),
                change_of_character=StructureSignal(Signal.BEARISH, 90),
            )
        )
        # 25 bullish vs 20 bearish
        assert engine.determine_bias(analysis) is Signal.NEUTRAL

    def test_only_last_three_blocks_vote(self):
        engine = SmartMoneyEngine()
        bearish = [OrderBlock(Signal.BEARISH, 110, 108, i, i, 1000, 50) for i in range(2)]
        bullish = [OrderBlock(Signal.BULLISH, 100, 98, i, i, 1000, 50) for i in range(2, 5)]
        analysis = SmartMoneyAnalysis(order_blocks=bearish + bullish)

        # 30 bullish vs 0 bearish
        assert engine.determine_bias(analysis) is Signal.BULLISH

    def test_confidence_caps_components(self):
        engine = SmartMoneyEngine()
        blocks = [OrderBlock(Signal.BULLISH, 100, 98, i, i, 1000, 50) for i in range(5)]
        gaps = [FairValueGap(Signal.BULLISH, 102, 100, i, i, 0.02) for i in range(5)]
        zones = [LiquidityZone(LiquiditySide.BUY_SIDE, 95, 2, 30) for _ in range(3)]
        analysis = SmartMoneyAnalysis(order_blocks=blocks, fair_value_gaps=gaps, liquidity_zones=zones)

        assert engine.calculate_confidence(analysis) == 30 + 15 + 10

    def test_key_levels_sorted_by_strength(self):
        engine = SmartMoneyEngine()
        analysis = SmartMoneyAnalysis(
            order_blocks=[
                OrderBlock(Signal.BULLISH, 100, 98, 1, 1, 1000, 50),
                OrderBlock(Signal.BEARISH, 120, 118, 2, 2, 1000, 25),  # Too weak
            ],
            fair_value_gaps=[FairValueGap(Signal.BEARISH, 112, 110, 3, 3, 0.02)],
            liquidity_zones=[LiquidityZone(LiquiditySide.BUY_SIDE, 95, 2, 30)],
        )
        levels = engine.identify_key_levels(analysis)

        assert [l.source for l in levels] == [
            KeyLevelSource.ORDER_BLOCK,
            KeyLevelSource.LIQUIDITY,
            KeyLevelSource.FAIR_VALUE_GAP,
        ]
        assert levels[0].price == 98
        assert levels[1].direction is Signal.BULLISH
        assert levels[2].price == 111
        assert levels[2].strength == pytest.approx(20)


class TestSmartMoneyEngine:
    """Full pass."""

    def test_empty_series(self):
        analysis = SmartMoneyEngine().analyze([])
        assert analysis.bias is Signal.NEUTRAL
        assert analysis.confidence == 0

    def test_analyze_is_deterministic(self):
        candles = impulse_candles()
        engine = SmartMoneyEngine()
        assert engine.analyze(candles) == engine.analyze(candles)

    def test_short_series_still_reports_blocks(self):
        analysis = SmartMoneyEngine().analyze(impulse_candles())

        assert analysis.market_structure.trend is Signal.NEUTRAL
        assert len(analysis.order_blocks) == 1
        assert analysis.bias is Signal.BULLISH
