"""
Swing Point Extraction
Level Signal Engine - local extrema over a symmetric candle window

A candle is a swing high when nothing in the ``depth`` candles before it is
higher and everything in the ``depth`` candles after it is strictly lower.
Flat tops therefore produce a single pivot on their last candle.
"""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple

import numpy as np
from scipy.ndimage import maximum_filter1d, minimum_filter1d

from ..market.types import CandleWindow, candles_to_frame
from ..utils.exceptions import ConfigurationException


class SwingPointType(str, Enum):
    """Kind of local extremum"""
    HIGH = "HIGH"
    LOW = "LOW"


@dataclass(frozen=True)
class SwingPoint:
    """Local extremum taken from a single candle"""
    price: float
    timestamp: int
    type: SwingPointType

    def to_dict(self) -> Dict[str, Any]:
        return {
            'price': self.price,
            'timestamp': self.timestamp,
            'type': self.type.value
        }


class SwingExtractor:
    """
    Finds swing highs and lows with a fixed half-window.

    Windows shorter than ``2 * depth + 1`` candles yield empty lists; the
    caller decides whether that is a rejection.
    """

    def __init__(self, depth: int = 2):
        if depth < 1:
            raise ConfigurationException(
                f"Swing depth must be >= 1, got {depth}",
                config_section="swing",
                invalid_params={'depth': depth}
            )
        self.depth = int(depth)
        self.logger = logging.getLogger("SwingExtractor")

    def extract(self, data: Optional[CandleWindow]) -> Tuple[List[SwingPoint], List[SwingPoint]]:
        """
        Extract swing points from a candle window.

        Args:
            data: DataFrame with timestamp/high/low columns or a sequence of Candle

        Returns:
            (swing_highs, swing_lows) ordered by candle index
        """
        df = candles_to_frame(data)
        n = len(df)
        d = self.depth

        if n < 2 * d + 1:
            self.logger.debug(f"Window of {n} candles too short for depth {d}")
            return [], []

        highs = df['high'].to_numpy(dtype=float)
        lows = df['low'].to_numpy(dtype=float)
        timestamps = df['timestamp'].to_numpy()

        high_idx = self._pivot_indices(highs, maximum_filter1d, np.greater_equal, np.greater)
        low_idx = self._pivot_indices(lows, minimum_filter1d, np.less_equal, np.less)

        swing_highs = [
            SwingPoint(price=float(highs[i]), timestamp=int(timestamps[i]), type=SwingPointType.HIGH)
            for i in high_idx
        ]
        swing_lows = [
            SwingPoint(price=float(lows[i]), timestamp=int(timestamps[i]), type=SwingPointType.LOW)
            for i in low_idx
        ]

        self.logger.debug(
            f"Found {len(swing_highs)} swing highs and {len(swing_lows)} swing lows in {n} candles"
        )
        return swing_highs, swing_lows

    def _pivot_indices(self, values: np.ndarray, window_filter, left_cmp, right_cmp) -> np.ndarray:
        """
        Indices in [d, n-d) that beat their neighbourhood.

        ``left[i]`` is the extreme of ``values[i-d .. i]`` (pivot included, so
        left ties pass ``left_cmp``); ``right[i + 1]`` is the extreme of
        ``values[i+1 .. i+d]`` and must be beaten strictly.
        """
        d = self.depth
        n = len(values)

        left = window_filter(values, size=d + 1, origin=d // 2)
        right = window_filter(values, size=d, origin=-(d // 2))

        candidates = np.arange(d, n - d)
        pivot = values[candidates]
        mask = left_cmp(pivot, left[candidates]) & right_cmp(pivot, right[candidates + 1])
        return candidates[mask]
