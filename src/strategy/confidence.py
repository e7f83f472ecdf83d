"""
Confidence Scoring
Level Signal Engine - signal confidence and the minimum-confidence gate

Two modes produce the base value:
- legacy: additive base + level strength + trend alignment, scaled by distance
- weighted: multi-factor weight matrix (see ``weight_matrix``)

Both are then raised by the upstream pattern boost, higher-timeframe level
confirmation (15m, 30m) and the liquidity sweep boost, and clamped to
[0.3, 1.0].
"""

import math
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from ..config.strategy_config import ConfidenceConfig, ConfidenceMode, WeightMatrixConfig
from ..market.types import MarketData, SignalDirection
from ..support_resistance.detector import LevelDetector
from ..support_resistance.levels import Level
from ..utils.helpers import PERCENT_MULTIPLIER, clamp
from ..utils.logger import LoggerMixin, timed_operation
from .filters import is_trend_aligned
from .weight_matrix import WeightMatrixCalculator, WeightMatrixInput

MIN_CONFIDENCE = 0.3
MAX_CONFIDENCE = 1.0

HTF_TAG = " [HTF-Confirmed]"
TREND2_TAG = " [30m-Confirmed]"
SWEEP_TAG = " [Sweep-Confirmed]"


def clamp_confidence(value: float) -> float:
    """Clamp to [0.3, 1.0]; NaN and infinities map to the floor"""
    if value is None or not math.isfinite(value):
        return MIN_CONFIDENCE
    return clamp(value, MIN_CONFIDENCE, MAX_CONFIDENCE)


def below_threshold_reason(confidence: float, minimum: float) -> Optional[str]:
    """Rejection reason when ``confidence`` is under ``minimum``, else None"""
    if confidence >= minimum:
        return None
    return (
        f"Confidence {confidence * PERCENT_MULTIPLIER:.1f}% below minimum "
        f"{minimum * PERCENT_MULTIPLIER:.1f}%"
    )


@dataclass
class ConfidenceResult:
    """Final confidence with the parts that built it"""
    confidence: float
    raw_confidence: float
    mode: ConfidenceMode
    reason_tags: List[str] = field(default_factory=list)
    components: Dict[str, Any] = field(default_factory=dict)

    @property
    def reason_suffix(self) -> str:
        return "".join(self.reason_tags)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'confidence': self.confidence,
            'raw_confidence': self.raw_confidence,
            'mode': self.mode.value,
            'reason_tags': [tag.strip() for tag in self.reason_tags],
            'components': self.components
        }


class ConfidenceScorer(LoggerMixin):
    """
    Scores a selected level.

    The detector is only used for higher-timeframe confirmation; pass the
    symbol's detector so its logger carries the symbol.
    """

    def __init__(
        self,
        config: Optional[ConfidenceConfig] = None,
        weights: Optional[WeightMatrixConfig] = None,
        detector: Optional[LevelDetector] = None
    ):
        super().__init__()
        self.config = config or ConfidenceConfig()
        self.weight_matrix = WeightMatrixCalculator(weights)
        self.detector = detector or LevelDetector()

    def distance_modifier(self, distance_percent: float) -> float:
        if distance_percent < self.config.very_close_percent:
            return self.config.very_close_multiplier
        if distance_percent > self.config.far_percent:
            return self.config.far_multiplier
        return 1.0

    def legacy_confidence(self, market: MarketData, level: Level, direction: SignalDirection) -> Dict[str, float]:
        cfg = self.config
        aligned = is_trend_aligned(direction, market.trend)

        base = cfg.base_confidence + level.strength * cfg.strength_boost
        if aligned:
            base += cfg.trend_alignment_boost

        distance = level.distance_percent(market.current_price)
        modifier = self.distance_modifier(distance)
        return {
            'base': base,
            'trend_aligned': aligned,
            'distance_percent': distance,
            'distance_modifier': modifier,
            'value': base * modifier
        }

    @timed_operation("confidence_score")
    def score(self, market: MarketData, level: Level, direction: SignalDirection) -> ConfidenceResult:
        """
        Confidence for entering ``direction`` at ``level``.

        Args:
            market: Market data of the evaluation
            level: Selected level
            direction: Entry direction

        Returns:
            ConfidenceResult with the clamped value and reason tags
        """
        components: Dict[str, Any] = {}
        tags: List[str] = []

        if self.config.mode == ConfidenceMode.WEIGHTED:
            breakdown = self.weight_matrix.calculate(
                WeightMatrixInput.from_market(market, level, direction), direction
            )
            value = breakdown.confidence
            components['weight_matrix'] = breakdown.to_dict()
        else:
            legacy = self.legacy_confidence(market, level, direction)
            value = legacy['value']
            components['legacy'] = legacy

        if market.pattern_boost:
            value += market.pattern_boost
            components['pattern_boost'] = market.pattern_boost

        if self.config.htf_confirmation_enabled and market.candles_trend1 is not None:
            confirmation = self.detector.confirm_level(
                level, market.candles_trend1, direction, market.timestamp,
                alignment_percent=self.config.htf_alignment_percent,
                boost_percent=self.config.htf_boost_percent,
                min_candles=self.config.htf_min_candles,
                candle_interval_minutes=self.config.htf_candle_interval_minutes
            )
            if confirmation.is_confirmed:
                value += confirmation.confidence_boost
                tags.append(HTF_TAG)
                components['htf_boost'] = confirmation.confidence_boost

        if self.config.trend2_confirmation_enabled and market.candles_trend2 is not None:
            confirmation = self.detector.confirm_level(
                level, market.candles_trend2, direction, market.timestamp,
                alignment_percent=self.config.trend2_alignment_percent,
                boost_percent=self.config.trend2_boost_percent,
                min_candles=self.config.htf_min_candles,
                candle_interval_minutes=self.config.trend2_candle_interval_minutes
            )
            if confirmation.is_confirmed:
                value += confirmation.confidence_boost
                tags.append(TREND2_TAG)
                components['trend2_boost'] = confirmation.confidence_boost

        if market.sweep_boost > 0:
            value += market.sweep_boost
            tags.append(SWEEP_TAG)
            components['sweep_boost'] = market.sweep_boost

        confidence = clamp_confidence(value)
        self.logger.debug(
            "Confidence scored",
            mode=self.config.mode.value,
            raw=round(value, 4) if math.isfinite(value) else str(value),
            confidence=round(confidence, 4),
            tags=[tag.strip() for tag in tags]
        )
        return ConfidenceResult(
            confidence=confidence,
            raw_confidence=value,
            mode=self.config.mode,
            reason_tags=tags,
            components=components
        )
