"""
Level Builder
Level Signal Engine - cluster swing points into support/resistance levels

Levels are rebuilt from the current candle window on every evaluation: swing
lows become support, swing highs become resistance. Strength comes from the
touch count (or a weighted touches/recency/volume blend), then is reduced for
levels that price keeps closing through and raised when a resting order-book
wall sits on the level.
"""

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Iterable, List, Optional

import numpy as np
import pandas as pd

from ..config.strategy_config import ClusterConfig, StrengthMode
from ..market.types import CandleWindow, OrderBookSnapshot, WallSide, candles_to_frame
from ..utils.helpers import PERCENT_MULTIPLIER, minutes_to_ms, percent_distance, safe_divide
from .swings import SwingPoint, SwingPointType

MS_PER_DAY = 24 * 60 * 60 * 1000

TOUCH_WEIGHT = 0.5
RECENCY_WEIGHT = 0.3
VOLUME_WEIGHT = 0.2


class LevelType(str, Enum):
    """Side of price a level defends"""
    SUPPORT = "SUPPORT"
    RESISTANCE = "RESISTANCE"


class TrendContext(str, Enum):
    """Trend derived from the fast/slow EMA pair"""
    UPTREND = "UPTREND"
    DOWNTREND = "DOWNTREND"
    NEUTRAL = "NEUTRAL"

    @classmethod
    def from_ema(cls, fast: float, slow: float) -> "TrendContext":
        if fast > slow:
            return cls.UPTREND
        if fast < slow:
            return cls.DOWNTREND
        return cls.NEUTRAL


@dataclass
class Level:
    """Clustered support or resistance price"""
    price: float
    type: LevelType
    strength: float  # 0.0 to 1.0
    touches: int
    last_touch: int
    metadata: Dict[str, Any] = field(default_factory=dict)

    @property
    def is_support(self) -> bool:
        return self.type == LevelType.SUPPORT

    def distance_percent(self, price: float) -> float:
        """Absolute distance from ``price`` in percent of the level price"""
        return percent_distance(price, self.price)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'price': self.price,
            'type': self.type.value,
            'strength': self.strength,
            'touches': self.touches,
            'last_touch': self.last_touch,
            'metadata': self.metadata
        }


@dataclass
class LevelSet:
    """Support and resistance levels built from one candle window"""
    support: List[Level] = field(default_factory=list)
    resistance: List[Level] = field(default_factory=list)

    @property
    def all_levels(self) -> List[Level]:
        return self.support + self.resistance

    @property
    def is_empty(self) -> bool:
        return not self.support and not self.resistance

    def to_dict(self) -> Dict[str, Any]:
        return {
            'support': [level.to_dict() for level in self.support],
            'resistance': [level.to_dict() for level in self.resistance],
            'support_count': len(self.support),
            'resistance_count': len(self.resistance)
        }


class LevelBuilder:
    """
    Builds levels from swing points.

    Clustering walks points sorted by price and keeps a running mean; a point
    joins the open cluster while its relative distance to that mean stays
    within the threshold.
    """

    def __init__(self, config: Optional[ClusterConfig] = None):
        self.config = config or ClusterConfig()
        self.logger = logging.getLogger("LevelBuilder")

    def build(
        self,
        swing_points: Iterable[SwingPoint],
        candles: Optional[CandleWindow],
        timestamp: int,
        atr_percent: Optional[float] = None,
        trend: Optional[TrendContext] = None,
        orderbook: Optional[OrderBookSnapshot] = None,
        cluster_threshold_percent: Optional[float] = None,
        candle_interval_minutes: Optional[int] = None
    ) -> LevelSet:
        """
        Build support and resistance levels.

        Args:
            swing_points: Swing highs and lows (any order, both kinds)
            candles: Window the swings came from, used for volume and exhaustion
            timestamp: Evaluation time in epoch milliseconds
            atr_percent: Current ATR% for the dynamic cluster threshold
            trend: Current trend, recorded in level metadata
            orderbook: Optional snapshot for wall confirmation
            cluster_threshold_percent: Override for the base threshold (volatility regime)
            candle_interval_minutes: Override for the age filter interval (higher timeframes)

        Returns:
            LevelSet with support sorted by price descending, resistance ascending
        """
        points = list(swing_points)
        df = candles_to_frame(candles)
        threshold = self.cluster_threshold(atr_percent, cluster_threshold_percent)

        lows = [p for p in points if p.type == SwingPointType.LOW]
        highs = [p for p in points if p.type == SwingPointType.HIGH]

        support = self._build_side(lows, LevelType.SUPPORT, df, timestamp, threshold,
                                   orderbook, candle_interval_minutes)
        resistance = self._build_side(highs, LevelType.RESISTANCE, df, timestamp, threshold,
                                      orderbook, candle_interval_minutes)

        if trend is not None:
            for level in support + resistance:
                level.metadata['trend'] = TrendContext(trend).value

        support.sort(key=lambda level: level.price, reverse=True)
        resistance.sort(key=lambda level: level.price)

        self.logger.debug(
            f"Built {len(support)} support / {len(resistance)} resistance levels "
            f"(threshold {threshold * PERCENT_MULTIPLIER:.3f}%)"
        )
        return LevelSet(support=support, resistance=resistance)

    def cluster_threshold(
        self,
        atr_percent: Optional[float] = None,
        override_percent: Optional[float] = None
    ) -> float:
        """Clustering threshold as a fraction of price"""
        base_percent = override_percent if override_percent is not None else self.config.cluster_threshold_percent
        base = base_percent / PERCENT_MULTIPLIER

        if self.config.dynamic_cluster_threshold and atr_percent is not None and np.isfinite(atr_percent):
            dynamic = atr_percent * self.config.atr_cluster_multiplier / PERCENT_MULTIPLIER
            return max(dynamic, base)
        return base

    def asymmetric_max_distance(
        self,
        level_type: LevelType,
        trend: TrendContext,
        max_distance_percent: float
    ) -> float:
        """Widen the distance on the side that trades with the trend"""
        aligned = (
            (level_type == LevelType.SUPPORT and trend == TrendContext.UPTREND) or
            (level_type == LevelType.RESISTANCE and trend == TrendContext.DOWNTREND)
        )
        if aligned:
            return max_distance_percent * self.config.trend_aligned_distance_multiplier
        return max_distance_percent

    @staticmethod
    def cluster(points: List[SwingPoint], threshold: float) -> List[List[SwingPoint]]:
        """Group price-sorted points around a running mean"""
        clusters: List[List[SwingPoint]] = []
        current: List[SwingPoint] = []

        for point in sorted(points, key=lambda p: p.price):
            if not current:
                current = [point]
                continue
            mean = float(np.mean([p.price for p in current]))
            if safe_divide(abs(point.price - mean), mean, default=np.inf) <= threshold:
                current.append(point)
            else:
                clusters.append(current)
                current = [point]

        if current:
            clusters.append(current)
        return clusters

    def _build_side(
        self,
        points: List[SwingPoint],
        level_type: LevelType,
        df: pd.DataFrame,
        timestamp: int,
        threshold: float,
        orderbook: Optional[OrderBookSnapshot],
        candle_interval_minutes: Optional[int]
    ) -> List[Level]:
        levels = []
        max_age_ms = self._max_age_ms(candle_interval_minutes)

        for cluster in self.cluster(points, threshold):
            last_touch = max(p.timestamp for p in cluster)
            if max_age_ms is not None and timestamp - last_touch > max_age_ms:
                continue

            level = Level(
                price=float(np.mean([p.price for p in cluster])),
                type=level_type,
                strength=0.0,
                touches=len(cluster),
                last_touch=int(last_touch)
            )
            level.strength = self._base_strength(level, cluster, df, timestamp)
            level.metadata['base_strength'] = level.strength

            if self.config.exhaustion_enabled:
                self._apply_exhaustion(level, df)
            if self.config.orderbook_validation_enabled and orderbook is not None:
                self._apply_orderbook_boost(level, orderbook)

            level.strength = float(min(max(level.strength, 0.0), 1.0))
            levels.append(level)

        return levels

    def _max_age_ms(self, candle_interval_minutes: Optional[int]) -> Optional[int]:
        if self.config.max_level_age_candles is None:
            return None
        interval = candle_interval_minutes or self.config.candle_interval_minutes
        return minutes_to_ms(self.config.max_level_age_candles * interval)

    def _base_strength(
        self,
        level: Level,
        cluster: List[SwingPoint],
        df: pd.DataFrame,
        timestamp: int
    ) -> float:
        touch_ratio = min(level.touches / self.config.min_touches_for_strong, 1.0)
        if self.config.strength_mode == StrengthMode.TOUCHES:
            return touch_ratio

        days_since = (timestamp - level.last_touch) / MS_PER_DAY
        recency = max(0.0, 1.0 - days_since / self.config.recency_decay_days)

        volume_part = 0.0
        if not df.empty and 'volume' in df.columns:
            avg_volume = float(df['volume'].mean())
            touch_rows = df[df['timestamp'].isin([p.timestamp for p in cluster])]
            if avg_volume > 0 and not touch_rows.empty:
                ratio = float(touch_rows['volume'].mean()) / avg_volume
                volume_part = min(ratio / self.config.volume_boost_threshold, 1.0)

        strength = touch_ratio * TOUCH_WEIGHT + recency * RECENCY_WEIGHT + volume_part * VOLUME_WEIGHT
        return min(strength, 1.0)

    def _apply_exhaustion(self, level: Level, df: pd.DataFrame):
        """Penalize levels that recent closes have broken through"""
        if df.empty:
            return

        closes = df['close'].to_numpy(dtype=float)[-self.config.exhaustion_lookback_candles:]
        margin = self.config.breakout_threshold_percent / PERCENT_MULTIPLIER
        if level.is_support:
            breakouts = int(np.count_nonzero(closes < level.price * (1 - margin)))
        else:
            breakouts = int(np.count_nonzero(closes > level.price * (1 + margin)))

        level.metadata['breakouts'] = breakouts
        if breakouts == 0:
            return

        penalty = min(breakouts * self.config.penalty_per_breakout, self.config.max_penalty)
        level.strength = max(level.strength * (1 - penalty), self.config.exhausted_min_strength)
        level.metadata['exhaustion_penalty'] = penalty

    def _apply_orderbook_boost(self, level: Level, orderbook: OrderBookSnapshot):
        """Boost levels backed by a resting wall on the matching side"""
        side = WallSide.BID if level.is_support else WallSide.ASK
        for wall in orderbook.walls:
            if wall.side != side or wall.percent_of_total < self.config.orderbook_min_wall_percent:
                continue
            if percent_distance(wall.price, level.price) <= self.config.orderbook_max_distance_percent:
                level.strength = min(level.strength + self.config.orderbook_strength_boost, 1.0)
                level.metadata['orderbook_wall'] = wall.price
                return
