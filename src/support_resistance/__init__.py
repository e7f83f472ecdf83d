"""
Support and Resistance Detection
Level Signal Engine - swing points, clustered levels and level selection

## Pipeline

- Swing extraction over a symmetric candle window
- Clustering of swing points into support/resistance levels with
  exhaustion penalties and order-book confirmation
- Trend-aware nearest-level selection with ATR-scaled distance tolerance
- Higher-timeframe level confirmation
- Caller-owned per-symbol context with order-book wall tracking

## Usage Example

```python
from src.support_resistance import LevelDetector, LevelSelector
from src.market import EmaPair

detector = LevelDetector(symbol="BTCUSDT")
result = detector.detect(candles, timestamp=candles["timestamp"].iloc[-1], atr_percent=0.8)

selector = LevelSelector()
selection = selector.select(
    price=current_price,
    levels=result.levels,
    ema=EmaPair(fast=101.2, slow=100.4),
    rsi=55.0,
    atr_percent=0.8
)
```
"""

from .swings import SwingExtractor, SwingPoint, SwingPointType
from .levels import Level, LevelBuilder, LevelSet, LevelType, TrendContext
from .selector import BreakoutCandidate, LevelSelection, LevelSelector
from .detector import DetectionResult, LevelConfirmation, LevelDetector
from .context import SymbolContext, WallEvent, WallEventType, WallLifetime, WallRegistry

__all__ = [
    # Swings
    "SwingExtractor",
    "SwingPoint",
    "SwingPointType",

    # Levels
    "Level",
    "LevelBuilder",
    "LevelSet",
    "LevelType",
    "TrendContext",

    # Selection
    "LevelSelector",
    "LevelSelection",
    "BreakoutCandidate",

    # Detection
    "LevelDetector",
    "DetectionResult",
    "LevelConfirmation",

    # Per-symbol state
    "SymbolContext",
    "WallRegistry",
    "WallLifetime",
    "WallEvent",
    "WallEventType"
]
