"""
Shared fixtures for the Level Signal Engine test suite.

The reference window is a deterministic zig-zag: closes swing between 95 and
105 with a 12-candle period, so every period contributes exactly one swing
low (low 94.9) and one swing high (high 105.02). The window ends on a small
green candle just above support.
"""

from typing import Callable, List, Sequence

import numpy as np
import pandas as pd
import pytest

from src.config.strategy_config import StrategyConfig
from src.market.types import EmaPair, IndicatorSnapshot, MarketData

START_TS = 1_700_000_000_000
MINUTE_MS = 60_000

ZIGZAG_PERIOD = [100, 98, 96, 95, 96, 98, 100, 102, 104, 105, 104, 102]
ZIGZAG_TAIL = [100, 98, 96.5, 95.6]

SUPPORT_PRICE = 94.9
RESISTANCE_PRICE = 105.02


def build_candles(
    closes: Sequence[float],
    start_ts: int = START_TS,
    interval_ms: int = MINUTE_MS,
    volume: float = 1000.0
) -> pd.DataFrame:
    """Green candles: open = close - 0.05, high = close + 0.02, low = close - 0.1"""
    closes = np.asarray(closes, dtype=float)
    return pd.DataFrame({
        'timestamp': start_ts + np.arange(len(closes)) * interval_ms,
        'open': closes - 0.05,
        'high': closes + 0.02,
        'low': closes - 0.1,
        'close': closes,
        'volume': np.full(len(closes), volume)
    })


def zigzag_closes(periods: int = 5, tail: Sequence[float] = tuple(ZIGZAG_TAIL)) -> List[float]:
    return ZIGZAG_PERIOD * periods + list(tail)


@pytest.fixture
def candle_factory() -> Callable[..., pd.DataFrame]:
    """Фабрика окон свечей из последовательности цен закрытия"""
    return build_candles


@pytest.fixture
def zigzag_candles() -> pd.DataFrame:
    """64 свечи: 5 периодов зиг-зага и хвост к поддержке"""
    return build_candles(zigzag_closes())


@pytest.fixture
def indicators() -> IndicatorSnapshot:
    """Индикаторы восходящего тренда (EMA разрыв ~1%)"""
    return IndicatorSnapshot(rsi=55.0, atr_percent=1.0, ema=EmaPair(fast=97.0, slow=96.0))


@pytest.fixture
def market_data(zigzag_candles, indicators) -> MarketData:
    """Рыночные данные: цена 95.6 над поддержкой 94.9"""
    return MarketData(
        timestamp=int(zigzag_candles['timestamp'].iloc[-1]),
        current_price=95.6,
        candles=zigzag_candles,
        indicators=indicators,
        symbol="BTCUSDT"
    )


@pytest.fixture
def strategy_config() -> StrategyConfig:
    """Конфигурация по умолчанию"""
    return StrategyConfig()
