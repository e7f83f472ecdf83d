"""
Market Data Types
Level Signal Engine - immutable inputs consumed by one evaluation call

Candles, indicator snapshot, order-book walls and market structure hints.
Indicator values are produced upstream; nothing here computes them.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, Sequence, Tuple, Union

import numpy as np
import pandas as pd

from ..utils.exceptions import InvalidDataException, handle_exception
from ..utils.helpers import OHLCV_COLUMNS, PERCENT_MULTIPLIER, safe_divide


class TrendBias(str, Enum):
    """Coarse trend label supplied by the upstream trend analyzer"""
    BULLISH = "BULLISH"
    BEARISH = "BEARISH"
    NEUTRAL = "NEUTRAL"


class SignalDirection(str, Enum):
    """Trade direction"""
    LONG = "LONG"
    SHORT = "SHORT"


class RejectionCode(str, Enum):
    """Machine-readable reason an evaluation produced no signal"""
    NOT_ENOUGH_SWING_POINTS = "NOT_ENOUGH_SWING_POINTS"
    NO_LEVELS_WITHIN_DISTANCE = "NO_LEVELS_WITHIN_DISTANCE"
    NEUTRAL_WEAK_LEVELS = "NEUTRAL_WEAK_LEVELS"
    NO_SIGNIFICANT_TREND = "NO_SIGNIFICANT_TREND"
    LONG_IN_DOWNTREND = "LONG_IN_DOWNTREND"
    SHORT_IN_UPTREND = "SHORT_IN_UPTREND"
    LONG_RSI_TOO_LOW = "LONG_RSI_TOO_LOW"
    LONG_RSI_TOO_HIGH = "LONG_RSI_TOO_HIGH"
    SHORT_RSI_TOO_LOW = "SHORT_RSI_TOO_LOW"
    SHORT_RSI_TOO_HIGH = "SHORT_RSI_TOO_HIGH"
    STRONG_DOWNTREND = "STRONG_DOWNTREND"
    BEARISH_MARKET_STRUCTURE = "BEARISH_MARKET_STRUCTURE"
    BULLISH_MARKET_STRUCTURE = "BULLISH_MARKET_STRUCTURE"
    TREND_NOT_ALIGNED = "TREND_NOT_ALIGNED"
    NO_LONG_CONFIRMATION = "NO_LONG_CONFIRMATION"
    NO_SHORT_CONFIRMATION = "NO_SHORT_CONFIRMATION"
    CONTEXT_TREND_OPPOSITE = "CONTEXT_TREND_OPPOSITE"
    CONFIDENCE_TOO_LOW = "CONFIDENCE_TOO_LOW"
    RR_GATE_BLOCKED = "RR_GATE_BLOCKED"


class WallSide(str, Enum):
    """Order-book side of a resting wall"""
    BID = "BID"
    ASK = "ASK"


class LiquiditySide(str, Enum):
    """Liquidity pool side: BUY_SIDE rests above highs, SELL_SIDE below lows"""
    BUY_SIDE = "BUY_SIDE"
    SELL_SIDE = "SELL_SIDE"


@dataclass(frozen=True)
class Candle:
    """Single OHLCV candle, timestamp in epoch milliseconds"""
    timestamp: int
    open: float
    high: float
    low: float
    close: float
    volume: float = 0.0

    @property
    def is_green(self) -> bool:
        return self.close >= self.open

    @property
    def is_red(self) -> bool:
        return self.close <= self.open

    def to_dict(self) -> Dict[str, Any]:
        return {
            'timestamp': self.timestamp,
            'open': self.open,
            'high': self.high,
            'low': self.low,
            'close': self.close,
            'volume': self.volume
        }


CandleWindow = Union[pd.DataFrame, Sequence[Candle]]


def candles_to_frame(candles: Optional[CandleWindow]) -> pd.DataFrame:
    """
    Normalize a candle window to a DataFrame with OHLCV columns.

    Accepts a DataFrame (returned with a fresh integer index) or a sequence of
    ``Candle``. Row order is preserved; validation is the caller's job.
    """
    if candles is None:
        return pd.DataFrame(columns=OHLCV_COLUMNS)

    if isinstance(candles, pd.DataFrame):
        frame = candles.reset_index(drop=True)
    else:
        try:
            frame = pd.DataFrame(
                [c.to_dict() if isinstance(c, Candle) else dict(c) for c in candles],
                columns=OHLCV_COLUMNS
            )
        except (TypeError, ValueError, KeyError) as e:
            raise handle_exception(e, {'stage': 'candles_to_frame'})

    if frame.empty:
        return pd.DataFrame(columns=OHLCV_COLUMNS)

    if 'volume' not in frame.columns:
        frame['volume'] = 0.0
    return frame


@dataclass(frozen=True)
class EmaPair:
    """Fast/slow moving average pair"""
    fast: float
    slow: float


@dataclass(frozen=True)
class StochasticValue:
    k: float
    d: float


@dataclass(frozen=True)
class DeltaValue:
    """Order-flow buy/sell volume over the window"""
    buy_volume: float
    sell_volume: float


@dataclass(frozen=True)
class TimeframeAlignment:
    """Multi-timeframe alignment scores in [0, 1] per direction"""
    long_score: float
    short_score: float


@dataclass(frozen=True)
class IndicatorSnapshot:
    """Scalar indicator values for the current candle"""
    rsi: float
    atr_percent: float
    ema: EmaPair
    stochastic: Optional[StochasticValue] = None
    bollinger_percent_b: Optional[float] = None
    atr_average_percent: Optional[float] = None
    delta: Optional[DeltaValue] = None
    swing_quality: Optional[float] = None
    tf_alignment: Optional[TimeframeAlignment] = None


@dataclass(frozen=True)
class OrderBookWall:
    """Resting order-book wall"""
    side: WallSide
    price: float
    size: float
    percent_of_total: float
    distance_percent: float


@dataclass(frozen=True)
class OrderBookSnapshot:
    """Order-book snapshot reduced to its significant walls"""
    timestamp: int
    walls: Tuple[OrderBookWall, ...] = ()

    @classmethod
    def from_levels(
        cls,
        bids: Sequence[Tuple[float, float]],
        asks: Sequence[Tuple[float, float]],
        current_price: float,
        timestamp: int,
        min_wall_percent: float = 5.0
    ) -> "OrderBookSnapshot":
        """
        Build a snapshot from raw (price, size) book levels.

        A level becomes a wall when its size is at least ``min_wall_percent``
        of its side's total size. Distance is signed: positive above price.
        """
        walls: List[OrderBookWall] = []
        for side, levels in ((WallSide.BID, bids), (WallSide.ASK, asks)):
            sizes = np.array([size for _, size in levels], dtype=float)
            total = float(sizes.sum()) if sizes.size else 0.0
            for price, size in levels:
                share = safe_divide(size, total, default=0.0) * PERCENT_MULTIPLIER
                if share < min_wall_percent:
                    continue
                distance = safe_divide(price - current_price, current_price, default=0.0)
                walls.append(OrderBookWall(
                    side=side,
                    price=float(price),
                    size=float(size),
                    percent_of_total=share,
                    distance_percent=distance * PERCENT_MULTIPLIER
                ))
        return cls(timestamp=timestamp, walls=tuple(walls))


@dataclass(frozen=True)
class LiquidityZone:
    """Liquidity pool; sweep_count > 0 once price has run through it"""
    price: float
    side: LiquiditySide
    timestamp: int
    sweep_count: int = 0


@dataclass(frozen=True)
class OrderBlock:
    price: float
    strength: float


@dataclass
class MarketData:
    """
    Everything one evaluation needs for a single symbol.

    ``candles`` is the primary window in ascending timestamp order.
    ``candles_trend1`` / ``candles_trend2`` are optional 15m / 30m windows used
    for level confirmation, ``ema_context`` the 1h EMA pair for the context
    trend filter.
    """
    timestamp: int
    current_price: float
    candles: CandleWindow
    indicators: IndicatorSnapshot
    symbol: str = ""
    trend: TrendBias = TrendBias.NEUTRAL
    market_structure: Optional[str] = None
    ema_context: Optional[EmaPair] = None
    candles_trend1: Optional[CandleWindow] = None
    candles_trend2: Optional[CandleWindow] = None
    orderbook: Optional[OrderBookSnapshot] = None
    liquidity_zones: List[LiquidityZone] = field(default_factory=list)
    order_blocks: List[OrderBlock] = field(default_factory=list)
    pattern_boost: float = 0.0
    sweep_boost: float = 0.0

    def __post_init__(self):
        if not np.isfinite(self.current_price) or self.current_price <= 0:
            raise InvalidDataException(
                "Current price must be a positive finite number",
                data_info={'current_price': self.current_price}
            )
        self.trend = TrendBias(self.trend)

    @property
    def rsi(self) -> float:
        return self.indicators.rsi

    @property
    def ema(self) -> EmaPair:
        return self.indicators.ema

    @property
    def atr_percent(self) -> float:
        return self.indicators.atr_percent

    @property
    def atr_absolute(self) -> float:
        return self.current_price * self.indicators.atr_percent / PERCENT_MULTIPLIER

    def candle_frame(self) -> pd.DataFrame:
        return candles_to_frame(self.candles)
