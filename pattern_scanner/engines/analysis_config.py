"""
Analysis Configuration Module
Centralizes all magic numbers and thresholds for the chart analysis engines.

This module provides a single source of truth for all configurable parameters,
making it easy to tune the engines without hunting through multiple files.
Lookbacks and tolerances are validated on construction; everything else is
trusted as given.
"""

from dataclasses import dataclass, field
from typing import Tuple

# =============================================================================
# UTILITY FUNCTIONS
# =============================================================================

EPSILON = 1e-9


def safe_divide(numerator: float, denominator: float, default: float = 0.0) -> float:
    """
    Safely divide two numbers, returning default if denominator is near zero.

    Args:
        numerator: The numerator
        denominator: The denominator
        default: Value to return if division is unsafe (default: 0.0)

    Returns:
        numerator / denominator if safe, otherwise default
    """
    return numerator / denominator if abs(denominator) > EPSILON else default


def require_positive(name: str, value: float) -> None:
    """Raise ValueError if a lookback or tolerance is not strictly positive."""
    if value is None or value <= 0:
        raise ValueError(f"{name} must be positive, got {value!r}")


@dataclass
class SwingThresholds:
    """Pivot and swing extraction thresholds."""

    lookback: int = 5  # Candles on each side of the tested candle
    significant_move: float = 0.02  # Min move between kept significant swings

    def __post_init__(self):
        require_positive("lookback", self.lookback)
        require_positive("significant_move", self.significant_move)


@dataclass
class SupportResistanceThresholds:
    """Support/resistance level thresholds."""

    min_touch_count: int = 2
    cluster_tolerance: float = 0.005  # 0.5% of the cluster mean
    volume_weight_factor: float = 0.3

    # Psychological levels
    psychological_band: float = 0.20  # +/-20% around the latest close
    touch_tolerance: float = 0.005  # high/low/close within 0.5%
    psychological_min_touches: int = 2

    # Volume profile
    volume_bins: int = 50
    high_volume_fraction: float = 0.10  # Top 10% of bins
    volume_strength_divisor: float = 1000.0  # Volume level base = bin volume / divisor
    psychological_touch_weight: float = 10.0  # Psychological level base = touches * weight

    # Recency / relevance
    recent_max_candles: int = 50
    recent_fraction: float = 0.20
    recent_tolerance: float = 0.01
    relevance_band: float = 0.15

    # Strength scoring
    touch_weight: float = 15.0
    volume_score_weight: float = 20.0
    recent_bonus: float = 10.0
    near_distance: float = 0.05
    near_bonus: float = 15.0
    mid_distance: float = 0.10
    mid_bonus: float = 10.0
    age_weight: float = 10.0
    psychological_bonus: float = 5.0
    volume_level_bonus: float = 8.0
    max_strength: int = 100

    def __post_init__(self):
        require_positive("min_touch_count", self.min_touch_count)
        require_positive("cluster_tolerance", self.cluster_tolerance)
        require_positive("touch_tolerance", self.touch_tolerance)
        require_positive("recent_tolerance", self.recent_tolerance)
        require_positive("volume_bins", self.volume_bins)


@dataclass
class PatternThresholds:
    """Chart, candlestick and harmonic pattern thresholds."""

    report_min_confidence: float = 60.0  # Matches below this are dropped
    actionable_min_confidence: float = 70.0  # Signal composer floor

    # Triangles
    flat_tolerance: float = 0.02
    triangle_points: int = 3
    breakout_volume_window: int = 5
    breakout_volume_multiplier: float = 1.5
    trend_window: int = 10
    height_window: int = 20
    symmetrical_height_ratio: float = 0.618

    # Head & shoulders
    shoulder_tolerance: float = 0.05
    neckline_window: int = 10

    # Double top / bottom
    double_tolerance: float = 0.03
    double_break_window: int = 10
    double_break_skip: int = 2

    # Flags
    flag_window: int = 20
    flag_min_candles: int = 10
    flag_pole_move: float = 0.05
    flag_consolidation_move: float = 0.02
    flag_volume_multiplier: float = 1.3
    flag_target_window: int = 10

    # Candlesticks
    doji_body_ratio: float = 0.1
    engulfing_target_move: float = 0.02

    # Harmonics
    gartley_ab_xa: Tuple[float, float] = (0.58, 0.68)
    gartley_bc_ab: Tuple[float, float] = (0.38, 0.48)
    gartley_cd_bc: Tuple[float, float] = (1.25, 1.35)
    butterfly_ab_xa: Tuple[float, float] = (0.75, 0.85)
    butterfly_bc_ab: Tuple[float, float] = (0.38, 0.48)
    butterfly_xd_xa: Tuple[float, float] = (1.25, 1.35)
    harmonic_target_ratio: float = 0.618

    def __post_init__(self):
        require_positive("flat_tolerance", self.flat_tolerance)
        require_positive("shoulder_tolerance", self.shoulder_tolerance)
        require_positive("double_tolerance", self.double_tolerance)


@dataclass
class ElliottWaveThresholds:
    """Elliott wave labelling thresholds."""

    min_swings: int = 5
    fib_tolerance: float = 0.1
    impulse_cap: float = 95.0
    corrective_cap: float = 90.0
    corrective_min_confidence: float = 40.0
    valid_confidence: float = 60.0
    complete_bonus: float = 10.0
    incomplete_penalty: float = 20.0

    wave2_retracements: Tuple[float, ...] = (0.5, 0.618, 0.786)
    wave3_extensions: Tuple[float, ...] = (1.618, 2.618)
    wave4_retracements: Tuple[float, ...] = (0.236, 0.382, 0.5)
    wave5_ratios: Tuple[float, ...] = (1.0, 0.618)
    wave3_guideline: Tuple[float, float] = (1.5, 1.7)
    c_to_a_ratios: Tuple[float, ...] = (1.0, 1.618)
    b_retracements: Tuple[float, ...] = (0.5, 0.618, 0.786)

    def __post_init__(self):
        require_positive("fib_tolerance", self.fib_tolerance)
        require_positive("min_swings", self.min_swings)


@dataclass
class SmartMoneyThresholds:
    """Smart-money concept thresholds."""

    swing_lookback: int = 5
    body_ratio: float = 0.6
    volume_multiplier: float = 1.2
    fvg_min_size: float = 0.005
    significant_fvg_size: float = 0.01
    liquidity_tolerance: float = 0.005
    liquidity_min_count: int = 2
    key_order_block_strength: float = 30.0
    bias_margin: float = 10.0
    recent_order_blocks: int = 3

    def __post_init__(self):
        require_positive("swing_lookback", self.swing_lookback)
        require_positive("liquidity_tolerance", self.liquidity_tolerance)
        require_positive("fvg_min_size", self.fvg_min_size)


@dataclass
class SignalThresholds:
    """Trade signal composition thresholds."""

    atr_period: int = 14
    stop_buffer: float = 0.005  # Stop placed 0.5% beyond the level
    target_atr_multiples: Tuple[float, float, float] = (2.0, 3.0, 4.0)
    pattern_weight: float = 0.4
    wave_weight: float = 0.3
    smc_weight: float = 0.3
    max_confidence: int = 95
    fast_ema: int = 20
    slow_ema: int = 50
    price_decimals: int = 6
    rr_decimals: int = 2

    def __post_init__(self):
        require_positive("atr_period", self.atr_period)
        require_positive("fast_ema", self.fast_ema)
        require_positive("slow_ema", self.slow_ema)


@dataclass
class AnalysisConfig:
    """
    Master configuration for all analysis thresholds.

    Usage:
        config = AnalysisConfig()
        # Use defaults

        # Or customize:
        config = AnalysisConfig(
            swings=SwingThresholds(lookback=3),
            levels=SupportResistanceThresholds(cluster_tolerance=0.01)
        )
    """

    swings: SwingThresholds = field(default_factory=SwingThresholds)
    levels: SupportResistanceThresholds = field(default_factory=SupportResistanceThresholds)
    patterns: PatternThresholds = field(default_factory=PatternThresholds)
    elliott: ElliottWaveThresholds = field(default_factory=ElliottWaveThresholds)
    smart_money: SmartMoneyThresholds = field(default_factory=SmartMoneyThresholds)
    signal: SignalThresholds = field(default_factory=SignalThresholds)


# Global default config instance
DEFAULT_CONFIG = AnalysisConfig()


def get_config() -> AnalysisConfig:
    """Get the default configuration."""
    return DEFAULT_CONFIG


def create_sensitive_config() -> AnalysisConfig:
    """
    Create a more sensitive configuration with tighter windows.
    Useful for lower timeframes where swings form quickly.
    """
    return AnalysisConfig(
        swings=SwingThresholds(lookback=3, significant_move=0.01),
        levels=SupportResistanceThresholds(cluster_tolerance=0.003),
        smart_money=SmartMoneyThresholds(swing_lookback=3, fvg_min_size=0.003),
    )


def create_strict_config() -> AnalysisConfig:
    """
    Create a stricter configuration with wider windows and higher floors.
    Useful for higher timeframes and swing trading.
    """
    return AnalysisConfig(
        swings=SwingThresholds(lookback=8, significant_move=0.03),
        levels=SupportResistanceThresholds(min_touch_count=3),
        patterns=PatternThresholds(actionable_min_confidence=75.0),
        smart_money=SmartMoneyThresholds(swing_lookback=8, fvg_min_size=0.0075),
    )
