"""
Entry strategy: filters, confidence, exits and the evaluation pipeline

## Usage Example

```python
from src.strategy import LevelBasedStrategy, VolatilityRegimeClassifier
from src.support_resistance import SymbolContext

classifier = VolatilityRegimeClassifier()
strategy = LevelBasedStrategy(regime_classifier=classifier, symbol="BTCUSDT", timeframe="1m")
context = SymbolContext.create("BTCUSDT")

classifier.update(market.atr_percent)
result = strategy.evaluate(market, context=context)
```
"""

from .models import EvaluationResult, Signal, TakeProfit, STRATEGY_NAME, STRATEGY_PRIORITY
from .filters import (
    FilterPipeline,
    FilterResult,
    FilterContext,
    CandleConfirmation,
    check_candle_confirmation,
    check_context_trend,
    context_trend,
    is_trend_aligned
)
from .weight_matrix import WeightMatrixCalculator, WeightMatrixInput, WeightMatrixScore, FactorScore
from .confidence import ConfidenceScorer, ConfidenceResult, clamp_confidence, below_threshold_reason
from .exits import (
    ExitMethod,
    ExitCalculation,
    ExitPlan,
    ExitConstructor,
    StopLossChain,
    StopLossStructure,
    WallAdjustment,
    legacy_atr_stop
)
from .regime import VolatilityRegime, VolatilityRegimeClassifier, RegimeAnalysis
from .sessions import TradingSession, session_for_timestamp
from .level_strategy import LevelBasedStrategy

__all__ = [
    # Results
    "EvaluationResult",
    "Signal",
    "TakeProfit",
    "STRATEGY_NAME",
    "STRATEGY_PRIORITY",

    # Filters
    "FilterPipeline",
    "FilterResult",
    "FilterContext",
    "CandleConfirmation",
    "check_candle_confirmation",
    "check_context_trend",
    "context_trend",
    "is_trend_aligned",

    # Confidence
    "ConfidenceScorer",
    "ConfidenceResult",
    "clamp_confidence",
    "below_threshold_reason",
    "WeightMatrixCalculator",
    "WeightMatrixInput",
    "WeightMatrixScore",
    "FactorScore",

    # Exits
    "ExitMethod",
    "ExitCalculation",
    "ExitPlan",
    "ExitConstructor",
    "StopLossChain",
    "StopLossStructure",
    "WallAdjustment",
    "legacy_atr_stop",

    # Collaborators
    "VolatilityRegime",
    "VolatilityRegimeClassifier",
    "RegimeAnalysis",
    "TradingSession",
    "session_for_timestamp",

    # Strategy
    "LevelBasedStrategy"
]
