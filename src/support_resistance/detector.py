"""
Support and Resistance Detector
Level Signal Engine - swings to levels in one call, plus higher-timeframe confirmation

Wraps the swing extractor and the level builder for a single symbol and
checks whether an entry level coincides with a level built from 15m or 30m
candles.
"""

import logging
import time
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from ..config.strategy_config import ClusterConfig
from ..market.types import CandleWindow, OrderBookSnapshot, SignalDirection, candles_to_frame
from ..utils.helpers import PERCENT_MULTIPLIER
from .levels import Level, LevelBuilder, LevelSet, TrendContext
from .swings import SwingExtractor, SwingPoint

HTF_SWING_DEPTH = 2
MIN_SWINGS_PER_KIND = 2


@dataclass
class DetectionResult:
    """Swings and levels detected from one candle window"""
    swing_highs: List[SwingPoint]
    swing_lows: List[SwingPoint]
    levels: LevelSet
    detection_time_ms: float
    data_points_analyzed: int

    @property
    def has_enough_swings(self) -> bool:
        return len(self.swing_highs) >= MIN_SWINGS_PER_KIND and len(self.swing_lows) >= MIN_SWINGS_PER_KIND

    @property
    def swing_points(self) -> List[SwingPoint]:
        return self.swing_highs + self.swing_lows

    @property
    def support_levels(self) -> List[Level]:
        return self.levels.support

    @property
    def resistance_levels(self) -> List[Level]:
        return self.levels.resistance

    def to_dict(self) -> Dict[str, Any]:
        return {
            'swing_highs': [p.to_dict() for p in self.swing_highs],
            'swing_lows': [p.to_dict() for p in self.swing_lows],
            'levels': self.levels.to_dict(),
            'detection_time_ms': self.detection_time_ms,
            'data_points_analyzed': self.data_points_analyzed
        }


@dataclass
class LevelConfirmation:
    """Higher-timeframe confirmation of an entry level"""
    is_confirmed: bool
    confidence_boost: float = 0.0
    htf_level: Optional[Level] = None
    distance_percent: Optional[float] = None
    details: Dict[str, Any] = field(default_factory=dict)


class LevelDetector:
    """
    Level detection for a single symbol.

    Instances hold no mutable state and may be reused across calls; timing
    stats go to the caller-owned ``SymbolContext``.
    """

    def __init__(
        self,
        symbol: str = "",
        swing_depth: int = 2,
        cluster_config: Optional[ClusterConfig] = None
    ):
        self.symbol = symbol
        self.extractor = SwingExtractor(swing_depth)
        self.htf_extractor = SwingExtractor(HTF_SWING_DEPTH)
        self.builder = LevelBuilder(cluster_config)
        self.logger = logging.getLogger(f"LevelDetector.{symbol}" if symbol else "LevelDetector")

    def detect(
        self,
        candles: CandleWindow,
        timestamp: int,
        atr_percent: Optional[float] = None,
        trend: Optional[TrendContext] = None,
        orderbook: Optional[OrderBookSnapshot] = None,
        cluster_threshold_percent: Optional[float] = None
    ) -> DetectionResult:
        """
        Extract swings and build levels from the primary window.

        Levels are built even when there are too few swings; callers check
        ``has_enough_swings`` before using them.
        """
        start_time = time.perf_counter()

        highs, lows = self.extractor.extract(candles)
        levels = self.builder.build(
            highs + lows,
            candles,
            timestamp,
            atr_percent=atr_percent,
            trend=trend,
            orderbook=orderbook,
            cluster_threshold_percent=cluster_threshold_percent
        )

        detection_time = (time.perf_counter() - start_time) * 1000

        result = DetectionResult(
            swing_highs=highs,
            swing_lows=lows,
            levels=levels,
            detection_time_ms=detection_time,
            data_points_analyzed=len(candles_to_frame(candles))
        )
        self.logger.debug(
            f"Detected {len(highs)}H/{len(lows)}L swings, "
            f"{len(levels.support)} support / {len(levels.resistance)} resistance in {detection_time:.2f}ms"
        )
        return result

    def confirm_level(
        self,
        level: Level,
        htf_candles: Optional[CandleWindow],
        direction: SignalDirection,
        timestamp: int,
        alignment_percent: float,
        boost_percent: float,
        min_candles: int = 20,
        candle_interval_minutes: Optional[int] = None
    ) -> LevelConfirmation:
        """
        Check whether ``level`` lines up with a level on a higher timeframe.

        LONG entries look for HTF support, SHORT entries for HTF resistance.
        A match within ``alignment_percent`` of the entry level returns
        ``boost_percent / 100`` as the confidence boost.
        """
        df = candles_to_frame(htf_candles)
        if len(df) < min_candles:
            return LevelConfirmation(is_confirmed=False, details={'reason': 'not enough HTF candles'})

        highs, lows = self.htf_extractor.extract(df)
        if len(highs) < MIN_SWINGS_PER_KIND or len(lows) < MIN_SWINGS_PER_KIND:
            self.logger.debug("Not enough HTF swing points for level building")
            return LevelConfirmation(is_confirmed=False, details={'reason': 'not enough HTF swings'})

        htf_levels = self.builder.build(
            highs + lows, df, timestamp,
            candle_interval_minutes=candle_interval_minutes
        )
        candidates = htf_levels.support if direction == SignalDirection.LONG else htf_levels.resistance

        for htf_level in candidates:
            distance = abs(level.price - htf_level.price) / level.price * PERCENT_MULTIPLIER
            if distance <= alignment_percent:
                self.logger.info(
                    f"HTF level confirmed: entry {level.price:.4f} ~ HTF {htf_level.price:.4f} "
                    f"({distance:.2f}%, +{boost_percent:g}%)"
                )
                return LevelConfirmation(
                    is_confirmed=True,
                    confidence_boost=boost_percent / PERCENT_MULTIPLIER,
                    htf_level=htf_level,
                    distance_percent=distance
                )

        self.logger.debug(
            f"No HTF alignment for {level.price:.4f} ({len(candidates)} levels checked, "
            f"threshold {alignment_percent}%)"
        )
        return LevelConfirmation(is_confirmed=False, details={'htf_levels_checked': len(candidates)})

    def get_nearest_levels(self, levels: LevelSet, current_price: float, count: int = 3) -> Dict[str, List[Level]]:
        """Nearest support below and resistance above the current price"""
        supports = sorted(
            (l for l in levels.support if l.price <= current_price),
            key=lambda l: current_price - l.price
        )[:count]
        resistances = sorted(
            (l for l in levels.resistance if l.price >= current_price),
            key=lambda l: l.price - current_price
        )[:count]
        return {'support': supports, 'resistance': resistances}
