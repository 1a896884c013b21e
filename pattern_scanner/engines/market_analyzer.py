"""
Market Analyzer - one full pass over a candle series

Runs every engine once on the same series and, when the setup qualifies,
composes a trade signal:

1. Patterns: at least one actionable match (confidence >= 70, breakout confirmed)
2. Elliott wave: analysis must be valid
3. Higher-timeframe bias: must not oppose the primary pattern

The primary pattern is the first actionable match in registry order.
"""

import logging
from dataclasses import dataclass, field
from typing import List, Optional, Sequence

from .analysis_config import DEFAULT_CONFIG, AnalysisConfig
from .candles import Candle, validate_series
from .elliott_wave import ElliottWaveEngine, WaveAnalysis
from .patterns import PatternDirection, PatternLibrary, PatternMatch
from .signal_composer import SignalComposer, TradeSignal
from .signals import Signal, SignalLike, coerce_signal
from .smart_money import SmartMoneyAnalysis, SmartMoneyEngine
from .support_resistance import SupportResistanceEngine, SupportResistanceLevels

logger = logging.getLogger(__name__)


@dataclass
class AnalysisReport:
    """Everything one analysis pass produced."""

    patterns: List[PatternMatch]
    actionable_patterns: List[PatternMatch]
    wave: WaveAnalysis
    levels: SupportResistanceLevels
    smart_money: SmartMoneyAnalysis
    signal: Optional[TradeSignal] = None
    direction: PatternDirection = PatternDirection.NEUTRAL
    confidence: int = 0
    reason: str = ""
    notes: List[str] = field(default_factory=list)  # Why no signal was produced

    @property
    def has_signal(self) -> bool:
        return self.signal is not None

    @property
    def primary_pattern(self) -> Optional[PatternMatch]:
        return self.actionable_patterns[0] if self.actionable_patterns else None


def build_reason(
    pattern: PatternMatch, wave: WaveAnalysis, smart_money: SmartMoneyAnalysis, htf_bias: Signal
) -> str:
    """One-paragraph explanation of a composed signal."""
    return (
        f"{pattern.name} pattern detected with {pattern.confidence:g}% confidence. "
        f"Elliott Wave analysis shows {wave.current_wave} wave formation. "
        f"Smart Money Concepts indicate {smart_money.bias} bias. "
        f"Higher-timeframe trend is {htf_bias}. "
        f"Pattern breakout confirmed with volume confirmation."
    )


class MarketAnalyzer:
    """
    Runs the pattern, Elliott wave, support/resistance and smart-money
    engines over one series and composes a trade signal.

    Usage:
        analyzer = MarketAnalyzer()
        report = analyzer.analyze(candles, htf_bias="bullish")
        if report.has_signal:
            print(report.direction, report.signal.entry, report.reason)
    """

    def __init__(self, config: Optional[AnalysisConfig] = None, strict: bool = False):
        """
        Args:
            config: Thresholds for every engine (defaults when omitted)
            strict: Validate the series contract before analysing
        """
        self.config = config or DEFAULT_CONFIG
        self.strict = strict
        self.patterns = PatternLibrary(self.config.patterns)
        self.elliott = ElliottWaveEngine(self.config.elliott, self.config.swings)
        self.levels = SupportResistanceEngine(self.config.levels, self.config.swings.lookback)
        self.smart_money = SmartMoneyEngine(self.config.smart_money)
        self.composer = SignalComposer(self.config.signal)

    def reference_bias(self, reference: Sequence[Candle]) -> Signal:
        """Trend bias of a reference series, usable as htf_bias for analyze()."""
        return self.composer.trend_bias([c.close for c in reference])

    def analyze(self, candles: Sequence[Candle], htf_bias: Optional[SignalLike] = None) -> AnalysisReport:
        if self.strict:
            validate_series(candles)

        patterns = self.patterns.detect(candles)
        report = AnalysisReport(
            patterns=patterns,
            actionable_patterns=self.patterns.actionable(patterns),
            wave=self.elliott.analyze(candles),
            levels=self.levels.find_levels(candles),
            smart_money=self.smart_money.analyze(candles),
        )

        primary = report.primary_pattern
        if primary is None:
            report.notes.append("No actionable pattern")
        elif not report.wave.is_valid:
            report.notes.append("Elliott wave structure not valid")
        else:
            self._compose(report, primary, candles, htf_bias)

        if report.has_signal:
            logger.info(
                "Signal %s via %s (confidence %d%%, R:R %.2f)",
                report.direction.value, primary.name, report.confidence, report.signal.risk_reward,
            )
        else:
            logger.info("No signal: %s", "; ".join(report.notes))
        return report

    def _compose(
        self,
        report: AnalysisReport,
        primary: PatternMatch,
        candles: Sequence[Candle],
        htf_bias: Optional[SignalLike],
    ) -> None:
        signal = self.composer.compose(
            primary, report.wave, report.smart_money, report.levels, candles, htf_bias
        )
        if signal is None:
            report.notes.append(f"{primary.name} vetoed by higher-timeframe bias {htf_bias}")
            return

        bias = coerce_signal(htf_bias) if htf_bias is not None else Signal.NEUTRAL
        report.signal = signal
        report.direction = signal.direction
        report.confidence = signal.confidence
        report.reason = build_reason(primary, report.wave, report.smart_money, bias)


def analyze_series(
    candles: Sequence[Candle],
    htf_bias: Optional[SignalLike] = None,
    config: Optional[AnalysisConfig] = None,
) -> AnalysisReport:
    """Convenience wrapper around MarketAnalyzer.analyze."""
    return MarketAnalyzer(config).analyze(candles, htf_bias)
