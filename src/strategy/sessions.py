"""
Trading sessions by UTC hour.

Session is derived from the evaluation timestamp, never from the wall clock,
so repeated evaluations of the same data agree.
"""

from enum import Enum
from typing import Union

from ..config.strategy_config import StopLossConfig, TakeProfitConfig
from ..utils.helpers import timestamp_to_datetime


class TradingSession(str, Enum):
    ASIAN = "ASIAN"
    LONDON = "LONDON"
    NY = "NY"
    OVERLAP = "OVERLAP"


SESSION_NAMES = {
    TradingSession.ASIAN: "Asian Session (Low Volatility)",
    TradingSession.LONDON: "London Session (High Volatility)",
    TradingSession.NY: "NY Session (High Volatility)",
    TradingSession.OVERLAP: "London/NY Overlap (Very High Volatility)",
}


def session_for_timestamp(timestamp_ms: Union[int, float]) -> TradingSession:
    """London/NY overlap 13-16 UTC, London 8-16, NY 13-21, Asian otherwise"""
    hour = timestamp_to_datetime(timestamp_ms).hour

    if 13 <= hour < 16:
        return TradingSession.OVERLAP
    if 8 <= hour < 16:
        return TradingSession.LONDON
    if 13 <= hour < 21:
        return TradingSession.NY
    return TradingSession.ASIAN


def session_sl_multiplier(session: TradingSession, config: StopLossConfig) -> float:
    return {
        TradingSession.ASIAN: config.session_sl_asian,
        TradingSession.LONDON: config.session_sl_london,
        TradingSession.NY: config.session_sl_ny,
        TradingSession.OVERLAP: config.session_sl_overlap,
    }[session]


def session_tp_multiplier(session: TradingSession, config: TakeProfitConfig) -> float:
    return {
        TradingSession.ASIAN: config.session_tp_asian,
        TradingSession.LONDON: config.session_tp_london,
        TradingSession.NY: config.session_tp_ny,
        TradingSession.OVERLAP: config.session_tp_overlap,
    }[session]
