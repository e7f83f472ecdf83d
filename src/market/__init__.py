"""
Market input types for the Level Signal Engine
"""

from .types import (
    Candle,
    CandleWindow,
    candles_to_frame,
    TrendBias,
    SignalDirection,
    RejectionCode,
    WallSide,
    LiquiditySide,
    EmaPair,
    StochasticValue,
    DeltaValue,
    TimeframeAlignment,
    IndicatorSnapshot,
    OrderBookWall,
    OrderBookSnapshot,
    LiquidityZone,
    OrderBlock,
    MarketData
)

__all__ = [
    "Candle",
    "CandleWindow",
    "candles_to_frame",
    "TrendBias",
    "SignalDirection",
    "RejectionCode",
    "WallSide",
    "LiquiditySide",
    "EmaPair",
    "StochasticValue",
    "DeltaValue",
    "TimeframeAlignment",
    "IndicatorSnapshot",
    "OrderBookWall",
    "OrderBookSnapshot",
    "LiquidityZone",
    "OrderBlock",
    "MarketData"
]
