"""
Level Signal Engine

Decision core of a support/resistance trading agent: one synchronous
evaluation turns a candle window plus indicator snapshot into either a trade
signal (direction, confidence, stop loss, take-profit ladder) or a named
rejection.

Key Features:
- Swing extraction and swing clustering into support/resistance levels
- Exhaustion penalties and order-book wall confirmation of levels
- Trend-aware level selection with ATR-scaled distance tolerance
- Ordered entry filter pipeline with machine-readable rejection codes
- Legacy additive and weight-matrix confidence scoring
- Adaptive stop-loss chain, take-profit ladder and R:R gate
- Volatility regimes and trading-session adjustments
"""

from typing import Dict, Any
import logging

# Версия пакета
__version__ = "1.0.0"
__author__ = "Level Signal Engine Team"
__license__ = "MIT"

# Настройка логирования
logging.getLogger(__name__).addHandler(logging.NullHandler())

# Core imports для внешнего использования
from .config.strategy_config import StrategyConfig, get_config, load_config_from_file
from .market.types import MarketData, IndicatorSnapshot, EmaPair, Candle, SignalDirection, RejectionCode
from .strategy.level_strategy import LevelBasedStrategy
from .strategy.models import EvaluationResult, Signal, TakeProfit
from .strategy.regime import VolatilityRegimeClassifier
from .support_resistance.context import SymbolContext
from .utils.logger import get_logger, configure_logging

__all__ = [
    # Core classes
    "LevelBasedStrategy",
    "EvaluationResult",
    "Signal",
    "TakeProfit",
    "VolatilityRegimeClassifier",
    "SymbolContext",

    # Market data
    "MarketData",
    "IndicatorSnapshot",
    "EmaPair",
    "Candle",
    "SignalDirection",
    "RejectionCode",

    # Configuration
    "StrategyConfig",
    "get_config",
    "load_config_from_file",

    # Utilities
    "get_logger",
    "configure_logging",

    # Constants
    "__version__",
    "__author__",
    "__license__"
]


def get_package_info() -> Dict[str, Any]:
    """
    Получить информацию о пакете

    Returns:
        Dict с информацией о версии, авторе, лицензии
    """
    return {
        "name": "level-signal-engine",
        "version": __version__,
        "author": __author__,
        "license": __license__,
        "description": "Support/resistance level signal engine",
        "strategy": LevelBasedStrategy.name,
        "priority": LevelBasedStrategy.priority
    }
