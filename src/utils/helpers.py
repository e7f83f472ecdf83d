"""
Helper utilities for the Level Signal Engine.

Numeric guards, percentage arithmetic and candle-window validation shared by
the level detection and strategy layers.
"""

import math
from typing import Union, Optional, List
from datetime import datetime, timezone, timedelta

import pandas as pd
import numpy as np

from .exceptions import InvalidDataException, InsufficientDataException

PERCENT_MULTIPLIER = 100.0

# Поддерживаемые таймфреймы (в минутах)
SUPPORTED_TIMEFRAMES = {
    "1m": 1, "3m": 3, "5m": 5, "15m": 15, "30m": 30,
    "1h": 60, "2h": 120, "4h": 240, "6h": 360, "8h": 480, "12h": 720,
    "1d": 1440
}

OHLCV_COLUMNS = ['timestamp', 'open', 'high', 'low', 'close', 'volume']


def parse_timeframe_to_minutes(timeframe: str) -> int:
    """
    Конвертация таймфрейма в минуты

    Args:
        timeframe: Таймфрейм (например, "15m")

    Returns:
        Количество минут
    """
    key = timeframe.strip().lower()
    if key not in SUPPORTED_TIMEFRAMES:
        raise InvalidDataException(
            f"Unsupported timeframe: {timeframe}",
            validation_errors={"supported": list(SUPPORTED_TIMEFRAMES.keys())}
        )
    return SUPPORTED_TIMEFRAMES[key]


def safe_divide(
    numerator: Union[int, float],
    denominator: Union[int, float],
    default: Union[int, float, None] = None
) -> Union[float, None]:
    """
    Безопасное деление с обработкой деления на ноль

    Args:
        numerator: Числитель
        denominator: Знаменатель
        default: Значение по умолчанию при делении на ноль

    Returns:
        Результат деления или default значение
    """
    try:
        if denominator == 0:
            return default
        result = float(numerator) / float(denominator)
    except (TypeError, ValueError, ZeroDivisionError):
        return default
    if not math.isfinite(result):
        return default
    return result


def clamp(value: float, lower: float, upper: float) -> float:
    """Ограничить значение диапазоном [lower, upper]"""
    return max(lower, min(upper, value))


def percent_distance(price: float, reference: float) -> float:
    """
    Расстояние между ценами в процентах от reference

    Args:
        price: Текущая цена
        reference: Опорная цена (уровень)

    Returns:
        |price - reference| / reference * 100, 0.0 для нулевой опорной цены
    """
    ratio = safe_divide(abs(price - reference), reference, default=0.0)
    return ratio * PERCENT_MULTIPLIER


def ema_gap_percent(fast: float, slow: float) -> float:
    """Процентный разрыв между быстрой и медленной EMA относительно медленной"""
    return percent_distance(fast, slow)


def timestamp_to_datetime(timestamp_ms: Union[int, float]) -> datetime:
    """
    Конвертация временной метки в миллисекундах в UTC datetime

    Args:
        timestamp_ms: Unix время в миллисекундах

    Returns:
        datetime с таймзоной UTC
    """
    return datetime.fromtimestamp(float(timestamp_ms) / 1000.0, tz=timezone.utc)


def minutes_to_ms(minutes: float) -> int:
    """Минуты в миллисекунды"""
    return int(timedelta(minutes=minutes).total_seconds() * 1000)


def validate_candle_frame(
    df: pd.DataFrame,
    required_cols: Optional[List[str]] = None,
    min_length: int = 1
) -> bool:
    """
    Валидация окна свечей

    Args:
        df: DataFrame со свечами
        required_cols: Обязательные колонки (по умолчанию OHLCV + timestamp)
        min_length: Минимальное количество свечей

    Returns:
        True если данные валидны

    Raises:
        InsufficientDataException: Окно пустое или короче min_length
        InvalidDataException: При невалидных данных
    """
    if required_cols is None:
        required_cols = OHLCV_COLUMNS

    missing_cols = [col for col in required_cols if col not in df.columns]
    if missing_cols:
        raise InvalidDataException(f"Missing required columns: {missing_cols}")

    if len(df) < max(min_length, 1):
        raise InsufficientDataException(
            "Candle window is empty" if df.empty else "Candle window is too short",
            required_samples=max(min_length, 1),
            provided_samples=len(df)
        )

    numeric_cols = [col for col in required_cols if col != 'timestamp']
    for col in numeric_cols:
        if not pd.api.types.is_numeric_dtype(df[col]):
            raise InvalidDataException(f"Column {col} must be numeric")
        if not np.isfinite(df[col].to_numpy(dtype=float)).all():
            raise InvalidDataException(f"Column {col} contains non-finite values")

    if 'timestamp' in df.columns:
        diffs = df['timestamp'].diff().iloc[1:]
        if (diffs <= 0).any():
            position = int(np.argmax((diffs <= 0).to_numpy())) + 1
            raise InvalidDataException(
                "Candle timestamps must be strictly increasing",
                validation_errors={"first_violation_index": position}
            )

    if all(col in df.columns for col in ['open', 'high', 'low', 'close']):
        if (df['high'] < df[['open', 'close']].max(axis=1)).any():
            raise InvalidDataException("High price must be >= max(open, close)")
        if (df['low'] > df[['open', 'close']].min(axis=1)).any():
            raise InvalidDataException("Low price must be <= min(open, close)")

    if 'volume' in df.columns and (df['volume'] < 0).any():
        raise InvalidDataException("Column volume contains negative values")

    return True
