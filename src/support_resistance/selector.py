"""
Level Selector
Level Signal Engine - nearest admissible level and trade direction

Finds the nearest support below price and the nearest resistance above it,
each within an ATR-scaled distance that is widened on the trend-aligned side,
then resolves a direction with trend-following priority. When nothing is
admissible a breakout candidate may be synthesized from a strong trend.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from ..config.strategy_config import FilterConfig, SelectionConfig
from ..market.types import EmaPair, RejectionCode, SignalDirection
from ..utils.helpers import PERCENT_MULTIPLIER, ema_gap_percent, safe_divide
from .levels import Level, LevelBuilder, LevelSet, LevelType, TrendContext

TREND_RSI_MIDPOINT = 50.0
TREND_EMA_DIVERGENCE_PERCENT = 0.5

BREAKOUT_GAP_BOOST_PER_PERCENT = 0.05
BREAKOUT_MAX_GAP_BOOST = 0.15
BREAKOUT_MAX_CONFIDENCE = 0.95


@dataclass
class LevelSelection:
    """Outcome of level selection: a direction with its level, or a rejection"""
    direction: Optional[SignalDirection]
    level: Optional[Level]
    reason: str
    trend: TrendContext
    rejection_code: Optional[RejectionCode] = None
    nearest_support: Optional[Level] = None
    nearest_resistance: Optional[Level] = None
    details: Dict[str, Any] = field(default_factory=dict)

    @property
    def found(self) -> bool:
        return self.direction is not None and self.level is not None

    def to_dict(self) -> Dict[str, Any]:
        return {
            'direction': self.direction.value if self.direction else None,
            'level': self.level.to_dict() if self.level else None,
            'reason': self.reason,
            'trend': self.trend.value,
            'rejection_code': self.rejection_code.value if self.rejection_code else None,
            'nearest_support': self.nearest_support.price if self.nearest_support else None,
            'nearest_resistance': self.nearest_resistance.price if self.nearest_resistance else None,
            'details': self.details
        }


@dataclass
class BreakoutCandidate:
    """Level-less trend-following entry"""
    direction: SignalDirection
    reason: str
    ema_gap_percent: float
    confidence: float


class LevelSelector:
    """
    Picks the level to trade from and the direction.

    Trend comes from the EMA pair: a DOWNTREND with resistance in range goes
    SHORT, an UPTREND with support in range goes LONG. Otherwise both sides
    are compared by distance after a minimum-strength floor.
    """

    def __init__(
        self,
        config: Optional[SelectionConfig] = None,
        filter_config: Optional[FilterConfig] = None,
        level_builder: Optional[LevelBuilder] = None
    ):
        self.config = config or SelectionConfig()
        self.filter_config = filter_config or FilterConfig()
        self.level_builder = level_builder or LevelBuilder()
        self.logger = logging.getLogger("LevelSelector")

    def dynamic_distance(self, atr_percent: float, max_distance_percent: Optional[float] = None) -> float:
        """ATR-scaled distance tolerance, capped by the (regime-aware) maximum"""
        max_distance = max_distance_percent if max_distance_percent is not None else self.config.max_distance_percent

        if self.config.dynamic_distance_enabled:
            absolute_min = self.config.dynamic_absolute_min_percent
            dynamic_floor = max(atr_percent * self.config.dynamic_atr_multiplier, absolute_min)
            return min(max(dynamic_floor, absolute_min), max_distance)

        return max(min(atr_percent * 0.5, max_distance), self.config.min_distance_floor_percent)

    def effective_distance(
        self,
        level_type: LevelType,
        trend: TrendContext,
        atr_percent: float,
        max_distance_percent: Optional[float] = None
    ) -> float:
        max_distance = max_distance_percent if max_distance_percent is not None else self.config.max_distance_percent
        dynamic = self.dynamic_distance(atr_percent, max_distance)
        asymmetric = self.level_builder.asymmetric_max_distance(level_type, trend, max_distance)
        return max(dynamic, asymmetric)

    def find_nearest(
        self,
        price: float,
        levels: List[Level],
        max_distance_percent: float,
        level_type: LevelType,
        min_touches: Optional[int] = None
    ) -> Optional[Level]:
        """
        Nearest admissible level of one kind.

        Support must sit at or below price and resistance at or above it.
        Levels are checked for touches first, then side, then distance.
        """
        if not levels:
            self.logger.debug(f"No {level_type.value} levels available")
            return None

        if min_touches is None:
            min_touches = self.config.min_touches_for(level_type == LevelType.SUPPORT)

        nearest: Optional[Level] = None
        best_distance = float('inf')
        rejections = []

        for level in levels:
            distance = level.distance_percent(price)

            if level.touches < min_touches:
                rejections.append(f"{level.price:.4f}: {level.touches}T < {min_touches}T")
                continue

            valid_side = price >= level.price if level_type == LevelType.SUPPORT else price <= level.price
            if not valid_side:
                side = "below" if level_type == LevelType.SUPPORT else "above"
                rejections.append(f"{level.price:.4f}: price {side} level")
                continue

            if distance > max_distance_percent:
                rejections.append(f"{level.price:.4f}: {distance:.2f}% > {max_distance_percent:.2f}%")
                continue

            if distance < best_distance:
                best_distance = distance
                nearest = level

        if rejections:
            self.logger.debug(f"{level_type.value} rejections: {'; '.join(rejections)}")
        if nearest is not None:
            self.logger.debug(
                f"Nearest {level_type.value} {nearest.price:.4f} "
                f"({nearest.touches}T, {best_distance:.2f}%)"
            )
        return nearest

    @staticmethod
    def is_downtrend(ema: EmaPair, rsi: float) -> bool:
        """Fast EMA below slow with weak RSI or a wide gap"""
        if ema.fast >= ema.slow:
            return False
        divergence = safe_divide(ema.slow - ema.fast, ema.fast, default=0.0) * PERCENT_MULTIPLIER
        return rsi < TREND_RSI_MIDPOINT or divergence > TREND_EMA_DIVERGENCE_PERCENT

    @staticmethod
    def is_uptrend(ema: EmaPair, rsi: float) -> bool:
        """Fast EMA above slow with strong RSI or a wide gap"""
        if ema.fast <= ema.slow:
            return False
        divergence = safe_divide(ema.fast - ema.slow, ema.slow, default=0.0) * PERCENT_MULTIPLIER
        return rsi > TREND_RSI_MIDPOINT or divergence > TREND_EMA_DIVERGENCE_PERCENT

    def select(
        self,
        price: float,
        levels: LevelSet,
        ema: EmaPair,
        rsi: float,
        atr_percent: float,
        max_distance_percent: Optional[float] = None,
        min_touches: Optional[int] = None
    ) -> LevelSelection:
        """
        Resolve direction and level.

        Args:
            price: Current price
            levels: Levels built for this window
            ema: Fast/slow EMA pair
            rsi: Current RSI
            atr_percent: Current ATR%
            max_distance_percent: Regime override for the distance cap
            min_touches: Regime override for the touches threshold (both sides)

        Returns:
            LevelSelection; ``found`` is False with a rejection code otherwise
        """
        trend = TrendContext.from_ema(ema.fast, ema.slow)

        support_distance = self.effective_distance(LevelType.SUPPORT, trend, atr_percent, max_distance_percent)
        resistance_distance = self.effective_distance(LevelType.RESISTANCE, trend, atr_percent, max_distance_percent)

        support = self.find_nearest(price, levels.support, support_distance, LevelType.SUPPORT,
                                    min_touches if min_touches is not None else self.config.min_touches_for(True))
        resistance = self.find_nearest(price, levels.resistance, resistance_distance, LevelType.RESISTANCE,
                                       min_touches if min_touches is not None else self.config.min_touches_for(False))

        details = {
            'support_max_distance': support_distance,
            'resistance_max_distance': resistance_distance
        }

        def chosen(direction: SignalDirection, level: Level, reason: str) -> LevelSelection:
            return LevelSelection(direction, level, reason, trend, None, support, resistance, details)

        def rejected(code: RejectionCode, reason: str) -> LevelSelection:
            return LevelSelection(None, None, reason, trend, code, support, resistance, details)

        if trend == TrendContext.DOWNTREND and resistance is not None:
            return chosen(SignalDirection.SHORT, resistance,
                          f"DOWNTREND: SHORT from resistance {resistance.price:.4f} ({resistance.touches}T)")

        if trend == TrendContext.UPTREND and support is not None:
            return chosen(SignalDirection.LONG, support,
                          f"UPTREND: LONG from support {support.price:.4f} ({support.touches}T)")

        block_short = self.filter_config.block_short_in_uptrend and self.is_uptrend(ema, rsi)
        block_long = self.filter_config.block_long_in_downtrend and self.is_downtrend(ema, rsi)

        if support is not None and resistance is not None:
            min_strength = self.config.min_strength_for_neutral
            support_ok = support.strength >= min_strength
            resistance_ok = resistance.strength >= min_strength

            if not support_ok and not resistance_ok:
                return rejected(
                    RejectionCode.NEUTRAL_WEAK_LEVELS,
                    f"NEUTRAL trend: Both levels too weak (support: {support.strength:.2f}, "
                    f"resistance: {resistance.strength:.2f}, min: {min_strength:g})"
                )

            if support_ok and resistance_ok:
                if support.distance_percent(price) <= resistance.distance_percent(price):
                    return chosen(SignalDirection.LONG, support, self._neutral_reason(support))
                if block_short:
                    return chosen(
                        SignalDirection.LONG, support,
                        f"NEUTRAL: BLOCKED SHORT (uptrend), fallback to LONG from support {support.price:.4f}"
                    )
                return chosen(SignalDirection.SHORT, resistance, self._neutral_reason(resistance))

            if support_ok:
                return chosen(SignalDirection.LONG, support, self._neutral_reason(support))

            if block_short:
                return rejected(
                    RejectionCode.SHORT_IN_UPTREND,
                    "NEUTRAL trend: SHORT from resistance blocked (uptrend), resistance is only valid level"
                )
            return chosen(SignalDirection.SHORT, resistance, self._neutral_reason(resistance))

        if support is not None:
            if block_long:
                return rejected(
                    RejectionCode.LONG_IN_DOWNTREND,
                    f"LONG blocked in downtrend (EMA {ema.fast:.4f} < {ema.slow:.4f}, RSI {rsi:.1f})"
                )
            return chosen(SignalDirection.LONG, support,
                          f"LONG from support {support.price:.4f} ({support.touches}T)")

        if resistance is not None:
            if block_short:
                return rejected(
                    RejectionCode.SHORT_IN_UPTREND,
                    f"SHORT blocked in uptrend (EMA {ema.fast:.4f} > {ema.slow:.4f}, RSI {rsi:.1f})"
                )
            return chosen(SignalDirection.SHORT, resistance,
                          f"SHORT from resistance {resistance.price:.4f} ({resistance.touches}T)")

        return rejected(RejectionCode.NO_LEVELS_WITHIN_DISTANCE, "No levels within distance threshold")

    def breakout(
        self,
        ema: EmaPair,
        rsi: float,
        atr_percent: float,
        base_confidence: float
    ) -> Optional[BreakoutCandidate]:
        """
        Trend-following candidate when no level is in range.

        Requires a wide EMA gap, enough volatility and RSI with room to run
        (not overbought for LONG, not oversold for SHORT).
        """
        if not self.config.breakout_enabled:
            return None

        gap = ema_gap_percent(ema.fast, ema.slow)
        if gap < self.config.breakout_min_ema_gap_percent:
            self.logger.debug(f"Breakout: EMA gap {gap:.2f}% < {self.config.breakout_min_ema_gap_percent}%")
            return None
        if atr_percent < self.config.breakout_min_atr_percent:
            self.logger.debug(f"Breakout: ATR {atr_percent:.2f}% < {self.config.breakout_min_atr_percent}%")
            return None

        trend = TrendContext.from_ema(ema.fast, ema.slow)
        if trend == TrendContext.UPTREND and rsi <= self.config.breakout_rsi_threshold_short:
            direction = SignalDirection.LONG
            reason = f"BREAKOUT LONG: Strong uptrend (EMA gap {gap:.1f}%, RSI {rsi:.0f})"
        elif trend == TrendContext.DOWNTREND and rsi >= self.config.breakout_rsi_threshold_long:
            direction = SignalDirection.SHORT
            reason = f"BREAKOUT SHORT: Strong downtrend (EMA gap {gap:.1f}%, RSI {rsi:.0f})"
        else:
            self.logger.debug(f"Breakout: {trend.value} with RSI {rsi:.0f} leaves no room")
            return None

        trend_boost = min((gap - self.config.breakout_min_ema_gap_percent) * BREAKOUT_GAP_BOOST_PER_PERCENT,
                          BREAKOUT_MAX_GAP_BOOST)
        confidence = min(base_confidence + self.config.breakout_confidence_boost + trend_boost,
                         BREAKOUT_MAX_CONFIDENCE)

        self.logger.info(f"Breakout mode triggered: {reason}")
        return BreakoutCandidate(direction=direction, reason=reason, ema_gap_percent=gap, confidence=confidence)

    @staticmethod
    def _neutral_reason(level: Level) -> str:
        side = "LONG from support" if level.is_support else "SHORT from resistance"
        return f"NEUTRAL: {side} {level.price:.4f} ({level.touches}T, str:{level.strength:.2f})"
