"""
Volatility Regime Classification
Level Signal Engine - ATR%-driven parameter sets

Maps ATR% to LOW / MEDIUM / HIGH volatility and the strategy parameters that
go with each regime. The classifier is owned by the caller: ``update`` moves
its remembered regime forward, ``classify`` only reads it, so an evaluation
can consult the classifier without changing it.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Optional

from ..config.strategy_config import RegimeConfig, RegimeParams
from ..utils.logger import LoggerMixin


class VolatilityRegime(str, Enum):
    LOW = "LOW"
    MEDIUM = "MEDIUM"
    HIGH = "HIGH"


@dataclass(frozen=True)
class RegimeAnalysis:
    """Regime with its parameters for one ATR reading"""
    regime: VolatilityRegime
    atr_percent: float
    params: RegimeParams
    reason: str

    def to_dict(self) -> Dict[str, Any]:
        return {
            'regime': self.regime.value,
            'atr_percent': self.atr_percent,
            'params': self.params.model_dump(),
            'reason': self.reason
        }


class VolatilityRegimeClassifier(LoggerMixin):
    """
    ATR% regime classifier with optional hysteresis.

    With hysteresis the thresholds depend on the remembered regime: leaving
    an extreme regime needs the ATR to cross its threshold by the buffer,
    entering one from MEDIUM likewise. The buffer is a fraction of each
    threshold.
    """

    def __init__(self, config: Optional[RegimeConfig] = None):
        super().__init__()
        self.config = config or RegimeConfig()
        self.last_regime = VolatilityRegime.MEDIUM
        self.regime_change_count = 0

    def classify(self, atr_percent: float) -> RegimeAnalysis:
        """Regime for ``atr_percent`` given the remembered regime; no state change"""
        if not self.config.enabled:
            return RegimeAnalysis(
                regime=VolatilityRegime.MEDIUM,
                atr_percent=atr_percent,
                params=self.config.regimes[VolatilityRegime.MEDIUM.value],
                reason="Volatility regime detection disabled"
            )

        regime = self._detect(atr_percent)
        return RegimeAnalysis(
            regime=regime,
            atr_percent=atr_percent,
            params=self.config.regimes[regime.value],
            reason=self._reason(regime, atr_percent)
        )

    def update(self, atr_percent: float) -> RegimeAnalysis:
        """Classify and remember the result"""
        analysis = self.classify(atr_percent)
        if self.config.enabled and analysis.regime != self.last_regime:
            self.regime_change_count += 1
            self.logger.info(
                "Volatility regime changed",
                from_regime=self.last_regime.value,
                to_regime=analysis.regime.value,
                atr_percent=round(atr_percent, 3),
                change_count=self.regime_change_count
            )
            self.last_regime = analysis.regime
        return analysis

    def reset(self):
        self.last_regime = VolatilityRegime.MEDIUM
        self.regime_change_count = 0

    def _detect(self, atr_percent: float) -> VolatilityRegime:
        low = self.config.low_atr_percent
        high = self.config.high_atr_percent

        if not (self.config.hysteresis_enabled and self.config.hysteresis_buffer > 0):
            if atr_percent < low:
                return VolatilityRegime.LOW
            if atr_percent > high:
                return VolatilityRegime.HIGH
            return VolatilityRegime.MEDIUM

        low_buffer = low * self.config.hysteresis_buffer
        high_buffer = high * self.config.hysteresis_buffer

        if self.last_regime == VolatilityRegime.LOW:
            if atr_percent > low + low_buffer:
                return VolatilityRegime.HIGH if atr_percent > high + high_buffer else VolatilityRegime.MEDIUM
            return VolatilityRegime.LOW

        if self.last_regime == VolatilityRegime.HIGH:
            if atr_percent < high - high_buffer:
                return VolatilityRegime.LOW if atr_percent < low - low_buffer else VolatilityRegime.MEDIUM
            return VolatilityRegime.HIGH

        if atr_percent < low - low_buffer:
            return VolatilityRegime.LOW
        if atr_percent > high + high_buffer:
            return VolatilityRegime.HIGH
        return VolatilityRegime.MEDIUM

    def _reason(self, regime: VolatilityRegime, atr_percent: float) -> str:
        low = self.config.low_atr_percent
        high = self.config.high_atr_percent
        if regime == VolatilityRegime.LOW:
            return f"LOW volatility (ATR {atr_percent:.2f}% < {low:g}%)"
        if regime == VolatilityRegime.HIGH:
            return f"HIGH volatility (ATR {atr_percent:.2f}% > {high:g}%)"
        return f"MEDIUM volatility (ATR {atr_percent:.2f}% in {low:g}-{high:g}%)"
