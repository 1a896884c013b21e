"""Chart Pattern Scanner.

Support/resistance, chart and harmonic patterns, Elliott waves and
smart-money concepts over OHLCV candle series.

Public symbols are exposed lazily so `import pattern_scanner` stays cheap and
each engine module is only imported on first use.
"""

from __future__ import annotations

import importlib
from typing import Dict, Tuple


__all__ = [
    # Candles
    "Candle",
    "candles_from_klines",
    "validate_series",
    # Config
    "AnalysisConfig",
    "SwingThresholds",
    "SupportResistanceThresholds",
    "PatternThresholds",
    "ElliottWaveThresholds",
    "SmartMoneyThresholds",
    "SignalThresholds",
    "DEFAULT_CONFIG",
    "get_config",
    "create_sensitive_config",
    "create_strict_config",
    # Signals
    "Signal",
    "coerce_signal",
    "signal_value",
    # Swings
    "PivotKind",
    "PivotPoint",
    "SwingPoint",
    "extract_pivots",
    "extract_swings",
    "filter_significant_swings",
    # Clustering
    "Cluster",
    "LevelClusterer",
    # Support / Resistance
    "SupportResistanceEngine",
    "SupportResistanceLevels",
    "Level",
    "LevelKind",
    "psychological_step",
    "nearest_levels",
    "levels_in_range",
    "strongest_levels",
    # Patterns
    "PatternLibrary",
    "PatternMatch",
    "PatternDirection",
    "PATTERN_RECOGNIZERS",
    "is_gartley_pattern",
    "is_butterfly_pattern",
    # Elliott Wave
    "ElliottWaveEngine",
    "WaveAnalysis",
    "WaveStructure",
    "WaveKind",
    "WaveDirection",
    "WaveProjections",
    # Smart Money
    "SmartMoneyEngine",
    "SmartMoneyAnalysis",
    "OrderBlock",
    "SMCFairValueGap",
    "SMCLiquidityZone",
    "KeyLevel",
    "MarketStructure",
    # Signal Composer
    "SignalComposer",
    "TradeSignal",
    "compute_atr",
    "trend_bias_from_closes",
    # Market Analyzer
    "MarketAnalyzer",
    "AnalysisReport",
    "analyze_series",
    # Logging
    "LogSettings",
    "setup_logging",
    "get_logger",
    "configure_default_logging",
]


_EXPORT_TO_SOURCE: Dict[str, Tuple[str, str]] = {}


def _register(module: str, names: list[str], aliases: Dict[str, str] | None = None) -> None:
    for name in names:
        _EXPORT_TO_SOURCE[name] = (module, name)
    if aliases:
        for public_name, source_name in aliases.items():
            _EXPORT_TO_SOURCE[public_name] = (module, source_name)


_register(".engines.candles", ["Candle", "candles_from_klines", "validate_series"])

_register(
    ".engines.analysis_config",
    [
        "AnalysisConfig",
        "SwingThresholds",
        "SupportResistanceThresholds",
        "PatternThresholds",
        "ElliottWaveThresholds",
        "SmartMoneyThresholds",
        "SignalThresholds",
        "DEFAULT_CONFIG",
        "get_config",
        "create_sensitive_config",
        "create_strict_config",
    ],
)

_register(".engines.signals", ["Signal", "coerce_signal", "signal_value"])

_register(
    ".engines.swings",
    [
        "PivotKind",
        "PivotPoint",
        "SwingPoint",
        "extract_pivots",
        "extract_swings",
        "filter_significant_swings",
    ],
)

_register(".engines.clustering", ["Cluster", "LevelClusterer"])

_register(
    ".engines.support_resistance",
    [
        "SupportResistanceEngine",
        "SupportResistanceLevels",
        "Level",
        "LevelKind",
        "psychological_step",
        "nearest_levels",
        "levels_in_range",
        "strongest_levels",
    ],
)

_register(
    ".engines.patterns",
    [
        "PatternLibrary",
        "PatternMatch",
        "PatternDirection",
        "PATTERN_RECOGNIZERS",
        "is_gartley_pattern",
        "is_butterfly_pattern",
    ],
)

_register(
    ".engines.elliott_wave",
    [
        "ElliottWaveEngine",
        "WaveAnalysis",
        "WaveStructure",
        "WaveKind",
        "WaveDirection",
        "WaveProjections",
    ],
)

_register(
    ".engines.smart_money",
    [
        "SmartMoneyEngine",
        "SmartMoneyAnalysis",
        "OrderBlock",
        "KeyLevel",
        "MarketStructure",
    ],
    aliases={"SMCFairValueGap": "FairValueGap", "SMCLiquidityZone": "LiquidityZone"},
)

_register(
    ".engines.signal_composer",
    ["SignalComposer", "TradeSignal", "compute_atr", "trend_bias_from_closes"],
)

_register(".engines.market_analyzer", ["MarketAnalyzer", "AnalysisReport", "analyze_series"])

_register(".logging_config", ["LogSettings", "setup_logging", "get_logger", "configure_default_logging"])


_missing_exports = [name for name in __all__ if name not in _EXPORT_TO_SOURCE]
if _missing_exports:
    raise RuntimeError(f"Lazy export map incomplete: {_missing_exports}")


def __getattr__(name: str):
    if name not in _EXPORT_TO_SOURCE:
        raise AttributeError(f"module {__name__!r} has no attribute {name!r}")

    module_name, symbol_name = _EXPORT_TO_SOURCE[name]
    module = importlib.import_module(module_name, __name__)
    value = getattr(module, symbol_name)

    # Later lookups hit globals() directly
    globals()[name] = value
    return value


def __dir__() -> list[str]:
    return sorted(set(globals()) | set(__all__))
