"""
Unit tests for analysis configuration, candle helpers and shared math.
"""

import pytest

from conftest import create_candle
from pattern_scanner.engines.analysis_config import (
    DEFAULT_CONFIG,
    AnalysisConfig,
    ElliottWaveThresholds,
    PatternThresholds,
    SmartMoneyThresholds,
    SignalThresholds,
    SwingThresholds,
    create_sensitive_config,
    create_strict_config,
    get_config,
    safe_divide,
)
from pattern_scanner.engines.calculations import calculate_ema, relative_change, true_ranges
from pattern_scanner.engines.candles import Candle, candles_from_klines, validate_series
from pattern_scanner.engines.signals import Signal, coerce_signal, signal_value


class TestConfig:
    """Threshold dataclasses and presets."""

    def test_defaults(self):
        config = get_config()
        assert config is DEFAULT_CONFIG
        assert config.swings.lookback == 5
        assert config.levels.cluster_tolerance == 0.005
        assert config.patterns.actionable_min_confidence == 70
        assert config.signal.target_atr_multiples == (2.0, 3.0, 4.0)

    @pytest.mark.parametrize(
        "factory",
        [
            lambda: SwingThresholds(lookback=0),
            lambda: SwingThresholds(significant_move=-0.01),
            lambda: PatternThresholds(flat_tolerance=0),
            lambda: ElliottWaveThresholds(fib_tolerance=0),
            lambda: SmartMoneyThresholds(swing_lookback=-3),
            lambda: SignalThresholds(atr_period=0),
        ],
    )
    def test_non_positive_values_rejected(self, factory):
        with pytest.raises(ValueError):
            factory()

    def test_presets(self):
        sensitive = create_sensitive_config()
        strict = create_strict_config()

        assert sensitive.swings.lookback < DEFAULT_CONFIG.swings.lookback < strict.swings.lookback
        assert strict.patterns.actionable_min_confidence > DEFAULT_CONFIG.patterns.actionable_min_confidence
        assert isinstance(strict, AnalysisConfig)

    def test_safe_divide(self):
        assert safe_divide(1, 4) == 0.25
        assert safe_divide(1, 0) == 0.0
        assert safe_divide(1, 0, default=-1) == -1


class TestCandles:
    """Kline conversion and series validation."""

    def test_from_kline_strings(self):
        rows = [[1700000000000, "100.5", "101", "99.5", "100.8", "1234.5", 1700000059999, "0"]]
        candle = candles_from_klines(rows)[0]

        assert candle == Candle(1700000000000, 100.5, 101.0, 99.5, 100.8, 1234.5)
        assert candle.is_bullish

    def test_from_kline_short_row(self):
        with pytest.raises(ValueError):
            Candle.from_kline([1, "1", "2", "0.5", "1.5"])

    def test_candle_geometry(self):
        candle = create_candle(0, 105, 110, 100, 102)
        assert candle.range == 10
        assert candle.body == 3
        assert candle.is_bearish

    def test_validate_series_accepts_clean_input(self):
        validate_series([create_candle(i, 10, 11, 9, 10) for i in range(3)])

    @pytest.mark.parametrize(
        "candles",
        [
            [create_candle(0, 10, 11, 9, 10), create_candle(0, 10, 11, 9, 10)],
            [create_candle(0, 10, 11, 0, 10)],
            [create_candle(0, 10, 9, 11, 10)],
        ],
    )
    def test_validate_series_rejects(self, candles):
        with pytest.raises(ValueError):
            validate_series(candles)


class TestShared:
    """Math helpers and signal coercion."""

    def test_ema_seeds_with_sma(self):
        ema = calculate_ema([1, 2, 3, 4], period=2)
        assert ema[0] == 1.5
        assert len(ema) == 3
        assert calculate_ema([1, 2], period=5) == []

    def test_true_ranges_use_previous_close(self):
        # Gap up: high - previous close beats the bar's own range
        assert true_ranges([12, 15], [10, 13], [11, 10]) == [4]

    def test_relative_change(self):
        assert relative_change(100, 110) == pytest.approx(0.1)
        assert relative_change(0, 10) == 0.0

    def test_coerce_signal(self):
        assert coerce_signal("Bullish") is Signal.BULLISH
        assert coerce_signal("sideways") is Signal.NEUTRAL
        assert signal_value(Signal.BEARISH) == "bearish"
        assert str(Signal.NEUTRAL) == "neutral"

    def test_signal_opposite(self):
        assert Signal.BULLISH.opposite is Signal.BEARISH
        assert Signal.BEARISH.opposite is Signal.BULLISH
        assert Signal.NEUTRAL.opposite is Signal.NEUTRAL
        assert coerce_signal(" bearish ") is Signal.BEARISH
