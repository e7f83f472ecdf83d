"""
Weighted multi-factor confidence.

Each enabled factor with an available input contributes ``max_points`` times
1 / 0.75 / 0.5 / 0.25 depending on which threshold tier it reaches
(excellent / good / ok / weak). Confidence is total points over the maximum
possible for the factors that were scored.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, Optional, Tuple

from ..config.strategy_config import FactorWeight, WeightMatrixConfig
from ..market.types import MarketData, SignalDirection
from ..support_resistance.levels import Level
from ..utils.helpers import PERCENT_MULTIPLIER, percent_distance, safe_divide
from ..utils.logger import LoggerMixin

TIERS: Tuple[Tuple[str, float], ...] = (
    ("excellent", 1.0),
    ("good", 0.75),
    ("ok", 0.5),
    ("weak", 0.25),
)


@dataclass(frozen=True)
class FactorScore:
    points: float
    max_points: float
    reason: str


@dataclass
class WeightMatrixInput:
    """Factor inputs; None means the factor is not scored"""
    rsi: Optional[float] = None
    stochastic_k: Optional[float] = None
    ema_fast: Optional[float] = None
    ema_slow: Optional[float] = None
    price: Optional[float] = None
    bollinger_position: Optional[float] = None
    atr_ratio: Optional[float] = None
    volume_ratio: Optional[float] = None
    delta_ratio: Optional[float] = None
    level_touches: Optional[int] = None
    level_distance_percent: Optional[float] = None
    swing_quality: Optional[float] = None
    tf_alignment_score: Optional[float] = None

    @classmethod
    def from_market(cls, market: MarketData, level: Level, direction: SignalDirection) -> "WeightMatrixInput":
        ind = market.indicators
        is_long = direction == SignalDirection.LONG

        volume_ratio = None
        frame = market.candle_frame()
        if not frame.empty:
            volume_ratio = safe_divide(float(frame['volume'].iloc[-1]), float(frame['volume'].mean()))

        delta_ratio = None
        if ind.delta is not None:
            buy, sell = ind.delta.buy_volume, ind.delta.sell_volume
            delta_ratio = safe_divide(buy, sell) if is_long else safe_divide(sell, buy)

        tf_score = None
        if ind.tf_alignment is not None:
            tf_score = ind.tf_alignment.long_score if is_long else ind.tf_alignment.short_score

        atr_average = ind.atr_average_percent if ind.atr_average_percent is not None else ind.atr_percent

        return cls(
            rsi=ind.rsi,
            stochastic_k=ind.stochastic.k if ind.stochastic is not None else None,
            ema_fast=ind.ema.fast,
            ema_slow=ind.ema.slow,
            price=market.current_price,
            bollinger_position=ind.bollinger_percent_b,
            atr_ratio=safe_divide(ind.atr_percent, atr_average),
            volume_ratio=volume_ratio,
            delta_ratio=delta_ratio,
            level_touches=level.touches,
            level_distance_percent=level.distance_percent(market.current_price),
            swing_quality=ind.swing_quality if ind.swing_quality is not None else level.strength,
            tf_alignment_score=tf_score
        )


@dataclass
class WeightMatrixScore:
    total_score: float
    max_possible_score: float
    confidence: float
    contributions: Dict[str, FactorScore] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'total_score': self.total_score,
            'max_possible_score': self.max_possible_score,
            'confidence': self.confidence,
            'contributions': {
                name: {'points': s.points, 'max_points': s.max_points, 'reason': s.reason}
                for name, s in self.contributions.items()
            }
        }


def tier_score(value: float, weight: FactorWeight, higher_is_better: bool) -> Tuple[float, Optional[str]]:
    """Points and tier name for ``value``; (0, None) when no tier is reached"""
    for name, multiplier in TIERS:
        threshold = getattr(weight, name)
        if threshold is None:
            continue
        reached = value >= threshold if higher_is_better else value <= threshold
        if reached:
            return weight.max_points * multiplier, name
    return 0.0, None


class WeightMatrixCalculator(LoggerMixin):
    """Scores a candidate entry over the configured factors"""

    def __init__(self, config: Optional[WeightMatrixConfig] = None):
        super().__init__()
        self.config = config or WeightMatrixConfig()

    def calculate(self, data: WeightMatrixInput, direction: SignalDirection) -> WeightMatrixScore:
        is_long = direction == SignalDirection.LONG
        cfg = self.config
        contributions: Dict[str, FactorScore] = {}

        def tiered(name: str, weight: FactorWeight, value: Optional[float], label: str, higher_is_better: bool,
                   shown: Optional[float] = None):
            if not weight.enabled or value is None:
                return
            points, tier = tier_score(value, weight, higher_is_better)
            display = value if shown is None else shown
            contributions[name] = FactorScore(points, weight.max_points, f"{label} {display:.2f} ({tier or 'weak signal'})")

        if data.rsi is not None:
            target = data.rsi if is_long else 100.0 - data.rsi
            tiered("rsi", cfg.rsi, target, "RSI", higher_is_better=False, shown=data.rsi)

        if data.stochastic_k is not None:
            target = data.stochastic_k if is_long else 100.0 - data.stochastic_k
            tiered("stochastic", cfg.stochastic, target, "Stoch %K", higher_is_better=False, shown=data.stochastic_k)

        if cfg.ema.enabled and None not in (data.ema_fast, data.ema_slow, data.price):
            self._score_ema(data, is_long, contributions)

        if data.bollinger_position is not None:
            extremity = 100.0 - data.bollinger_position if is_long else data.bollinger_position
            tiered("bollinger", cfg.bollinger, extremity, "BB position", higher_is_better=True,
                   shown=data.bollinger_position)

        tiered("atr", cfg.atr, data.atr_ratio, "ATR ratio", higher_is_better=True)
        tiered("volume", cfg.volume, data.volume_ratio, "Volume ratio", higher_is_better=True)
        tiered("delta", cfg.delta, data.delta_ratio, "Delta ratio", higher_is_better=True)
        tiered("level_strength", cfg.level_strength,
               float(data.level_touches) if data.level_touches is not None else None,
               "Level touches", higher_is_better=True)
        tiered("level_distance", cfg.level_distance, data.level_distance_percent,
               "Level distance %", higher_is_better=False)

        if cfg.swing_quality.enabled and data.swing_quality is not None:
            quality = min(max(data.swing_quality, 0.0), 1.0)
            contributions["swing_quality"] = FactorScore(
                quality * cfg.swing_quality.max_points,
                cfg.swing_quality.max_points,
                f"Swing quality {quality:.2f}"
            )

        tiered("tf_alignment", cfg.tf_alignment, data.tf_alignment_score, "TF alignment", higher_is_better=True)

        total = sum(score.points for score in contributions.values())
        max_possible = sum(score.max_points for score in contributions.values())
        confidence = total / max_possible if max_possible > 0 else 0.0

        self.logger.debug(
            "Weight matrix score",
            total_score=round(total, 2),
            max_possible_score=max_possible,
            confidence=round(confidence * PERCENT_MULTIPLIER, 1),
            factors=len(contributions)
        )
        return WeightMatrixScore(total, max_possible, confidence, contributions)

    def _score_ema(self, data: WeightMatrixInput, is_long: bool, contributions: Dict[str, FactorScore]):
        weight = self.config.ema
        fast, slow, price = data.ema_fast, data.ema_slow, data.price

        aligned = (fast > slow and price > fast) if is_long else (fast < slow and price < fast)
        if not aligned:
            contributions["ema"] = FactorScore(0.0, weight.max_points, "EMA not aligned")
            return

        distance = percent_distance(price, fast)
        points, tier = tier_score(distance, weight, higher_is_better=False)
        contributions["ema"] = FactorScore(
            points, weight.max_points, f"EMA distance {distance:.2f}% ({tier or 'too far'})"
        )
