"""
Utility modules for the Level Signal Engine

Provides common utilities for logging, exception handling and numeric
helpers shared by the detection and strategy layers.
"""

from .logger import get_logger, get_symbol_logger, configure_logging, LoggerMixin
from .exceptions import (
    LevelEngineException,
    InsufficientDataException,
    InvalidDataException,
    ConfigurationException,
    SignalConstructionException,
    handle_exception
)
from .helpers import (
    PERCENT_MULTIPLIER,
    parse_timeframe_to_minutes,
    safe_divide,
    clamp,
    percent_distance,
    ema_gap_percent,
    timestamp_to_datetime,
    validate_candle_frame
)

__all__ = [
    # Logging
    "get_logger",
    "get_symbol_logger",
    "configure_logging",
    "LoggerMixin",

    # Exceptions
    "LevelEngineException",
    "InsufficientDataException",
    "InvalidDataException",
    "ConfigurationException",
    "SignalConstructionException",
    "handle_exception",

    # Helpers
    "PERCENT_MULTIPLIER",
    "parse_timeframe_to_minutes",
    "safe_divide",
    "clamp",
    "percent_distance",
    "ema_gap_percent",
    "timestamp_to_datetime",
    "validate_candle_frame"
]
