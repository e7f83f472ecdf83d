"""
Configuration management for the Level Signal Engine.

Validated configuration built on pydantic-settings: one settings section per
pipeline stage, each overridable through its own environment prefix, composed
into a root ``StrategyConfig``. Defaults are resolved once at construction.
"""

from typing import Dict, List, Optional, Union, Literal
from pathlib import Path
from enum import Enum

from pydantic import BaseModel, Field, field_validator, model_validator
from pydantic.types import PositiveInt, PositiveFloat, confloat
from pydantic_settings import BaseSettings, SettingsConfigDict


class LogLevel(str, Enum):
    """Уровни логирования"""
    DEBUG = "DEBUG"
    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"
    CRITICAL = "CRITICAL"


class StrengthMode(str, Enum):
    """Режимы расчета силы уровня"""
    TOUCHES = "touches"
    WEIGHTED = "weighted"


class ConfidenceMode(str, Enum):
    """Режимы расчета уверенности сигнала"""
    LEGACY = "legacy"
    WEIGHTED = "weighted"


class StopLossMode(str, Enum):
    """Режимы расчета стоп-лосса"""
    ADAPTIVE = "adaptive"
    ATR = "atr"


STOP_LOSS_METHODS = ("SWEEP", "ORDER_BLOCK", "SWING", "LEVEL", "ATR", "PERCENT")

Ratio = confloat(ge=0.0, le=1.0)


class SwingConfig(BaseSettings):
    """
    Конфигурация поиска swing-точек
    """

    depth: PositiveInt = Field(
        default=2,
        le=50,
        description="Полуширина симметричного окна (свечей с каждой стороны)"
    )

    model_config = SettingsConfigDict(env_prefix="LEVEL_SWING_", case_sensitive=False)


class ClusterConfig(BaseSettings):
    """
    Конфигурация кластеризации swing-точек в уровни
    """

    # === Кластеризация ===
    cluster_threshold_percent: PositiveFloat = Field(
        default=0.3,
        le=5.0,
        description="Порог объединения точек в кластер (% от цены)"
    )

    dynamic_cluster_threshold: bool = Field(
        default=True,
        description="Масштабировать порог кластеризации по ATR"
    )

    atr_cluster_multiplier: PositiveFloat = Field(
        default=0.3,
        le=5.0,
        description="Множитель ATR% для динамического порога"
    )

    # === Сила уровня ===
    min_touches_for_strong: PositiveInt = Field(
        default=5,
        le=50,
        description="Касаний для максимальной силы уровня"
    )

    strength_mode: StrengthMode = Field(
        default=StrengthMode.TOUCHES,
        description="Режим расчета силы уровня"
    )

    recency_decay_days: PositiveFloat = Field(
        default=7.0,
        description="Дней до полного затухания компоненты свежести"
    )

    volume_boost_threshold: PositiveFloat = Field(
        default=1.5,
        description="Отношение объема на касаниях к среднему для полной объемной компоненты"
    )

    # === Возраст уровня ===
    max_level_age_candles: Optional[PositiveInt] = Field(
        default=150,
        description="Максимальный возраст уровня в свечах (None - без ограничения)"
    )

    candle_interval_minutes: PositiveInt = Field(
        default=1,
        le=1440,
        description="Интервал основной свечи в минутах"
    )

    trend_aligned_distance_multiplier: confloat(ge=1.0, le=5.0) = Field(
        default=1.5,
        description="Расширение дистанции для уровней по тренду"
    )

    # === Истощение уровня ===
    exhaustion_enabled: bool = Field(default=True, description="Штраф за пробои уровня")
    exhaustion_lookback_candles: PositiveInt = Field(default=50, description="Окно поиска пробоев")
    breakout_threshold_percent: PositiveFloat = Field(default=0.1, description="Минимальный пробой (%)")
    penalty_per_breakout: Ratio = Field(default=0.15, description="Штраф за один пробой")
    max_penalty: Ratio = Field(default=0.6, description="Максимальный суммарный штраф")
    exhausted_min_strength: Ratio = Field(default=0.1, description="Минимальная сила после штрафа")

    # === Подтверждение стаканом ===
    orderbook_validation_enabled: bool = Field(default=False, description="Усиление уровней стенами стакана")
    orderbook_min_wall_percent: PositiveFloat = Field(default=5.0, description="Минимальная доля стены (%)")
    orderbook_strength_boost: Ratio = Field(default=0.15, description="Прибавка к силе уровня")
    orderbook_max_distance_percent: PositiveFloat = Field(default=0.3, description="Макс. расстояние стены до уровня (%)")

    @model_validator(mode="after")
    def validate_exhaustion(self):
        """Штраф за пробой не может превышать максимальный"""
        if self.penalty_per_breakout > self.max_penalty:
            raise ValueError("penalty_per_breakout must not exceed max_penalty")
        return self

    model_config = SettingsConfigDict(env_prefix="LEVEL_CLUSTER_", case_sensitive=False)


class SelectionConfig(BaseSettings):
    """
    Конфигурация выбора ближайшего уровня и направления
    """

    # === Дистанция ===
    max_distance_percent: PositiveFloat = Field(
        default=1.0,
        le=10.0,
        description="Максимальная дистанция до уровня (%)"
    )

    min_distance_floor_percent: PositiveFloat = Field(
        default=0.3,
        description="Минимальный порог дистанции в legacy режиме (%)"
    )

    dynamic_distance_enabled: bool = Field(default=False, description="ATR-зависимая дистанция")
    dynamic_atr_multiplier: PositiveFloat = Field(default=0.2, description="Множитель ATR%")
    dynamic_absolute_min_percent: PositiveFloat = Field(default=0.15, description="Абсолютный минимум (%)")

    # === Касания и сила ===
    min_touches_required: PositiveInt = Field(default=2, description="Минимум касаний уровня")
    min_touches_required_long: Optional[PositiveInt] = Field(default=None, description="Минимум касаний поддержки")
    min_touches_required_short: Optional[PositiveInt] = Field(default=None, description="Минимум касаний сопротивления")
    min_strength_for_neutral: Ratio = Field(default=0.4, description="Минимальная сила уровня без тренда")

    # === Пробойный режим ===
    breakout_enabled: bool = Field(default=False, description="Вход по тренду без уровня")
    breakout_min_ema_gap_percent: PositiveFloat = Field(default=1.5, description="Минимальный разрыв EMA (%)")
    breakout_rsi_threshold_long: confloat(ge=0, le=100) = Field(default=40.0, description="Минимальный RSI для SHORT")
    breakout_rsi_threshold_short: confloat(ge=0, le=100) = Field(default=60.0, description="Максимальный RSI для LONG")
    breakout_min_atr_percent: PositiveFloat = Field(default=0.6, description="Минимальный ATR (%)")
    breakout_confidence_boost: Ratio = Field(default=0.1, description="Прибавка уверенности")

    def min_touches_for(self, level_is_support: bool) -> int:
        """Минимум касаний для стороны уровня"""
        specific = self.min_touches_required_long if level_is_support else self.min_touches_required_short
        return specific if specific is not None else self.min_touches_required

    model_config = SettingsConfigDict(env_prefix="LEVEL_SELECTION_", case_sensitive=False)


class FilterConfig(BaseSettings):
    """
    Конфигурация фильтров входа
    """

    # === Наличие тренда ===
    min_ema_gap_percent: confloat(ge=0) = Field(default=0.5, description="Минимальный разрыв EMA (%)")
    bypass_on_strong_level: bool = Field(default=False, description="Пропуск фильтра для сильного уровня")
    strong_level_threshold: Ratio = Field(default=0.7, description="Сила уровня для пропуска")

    # === Направленные фильтры тренда ===
    block_long_in_downtrend: bool = Field(default=True, description="Запрет LONG в нисходящем тренде")
    block_short_in_uptrend: bool = Field(default=True, description="Запрет SHORT в восходящем тренде")

    # === RSI ===
    rsi_filter_enabled: bool = Field(default=False, description="Включить RSI фильтр")
    long_min_rsi: confloat(ge=0, le=100) = Field(default=30.0)
    long_max_rsi: confloat(ge=0, le=100) = Field(default=70.0)
    short_min_rsi: confloat(ge=0, le=100) = Field(default=30.0)
    short_max_rsi: confloat(ge=0, le=100) = Field(default=70.0)
    bypass_rsi_on_strong_trend: bool = Field(default=False, description="Пропуск RSI при сильном тренде")
    strong_trend_ema_gap_percent: PositiveFloat = Field(default=1.5)

    # === Структура рынка ===
    ema_structure_enabled: bool = Field(default=False, description="Фильтр сильного тренда и структуры")
    downtrend_rsi_threshold: confloat(ge=0, le=100) = Field(default=55.0)
    downtrend_ema_diff_threshold: PositiveFloat = Field(default=0.5)

    require_trend_alignment: bool = Field(default=False, description="Строгое совпадение с трендом")

    # === Подтверждение свечой ===
    entry_confirmation_enabled: bool = Field(default=True, description="Проверка паттерна свечи")
    long_wick_ratio_max: Ratio = Field(default=0.4)
    short_wick_ratio_max: Ratio = Field(default=0.4)
    hammer_wick_ratio: Ratio = Field(default=0.6)
    shooting_star_wick_ratio: Ratio = Field(default=0.6)

    # === Старший таймфрейм ===
    context_trend_enabled: bool = Field(default=True, description="Фильтр тренда 1h")
    context_min_ema_gap_percent: confloat(ge=0) = Field(default=0.5)

    @model_validator(mode="after")
    def validate_rsi_bands(self):
        """Нижняя граница RSI не выше верхней"""
        if self.long_min_rsi > self.long_max_rsi:
            raise ValueError("long_min_rsi must be <= long_max_rsi")
        if self.short_min_rsi > self.short_max_rsi:
            raise ValueError("short_min_rsi must be <= short_max_rsi")
        return self

    model_config = SettingsConfigDict(env_prefix="LEVEL_FILTER_", case_sensitive=False)


class ConfidenceConfig(BaseSettings):
    """
    Конфигурация расчета уверенности
    """

    mode: ConfidenceMode = Field(default=ConfidenceMode.LEGACY, description="Режим расчета")

    # === Аддитивная модель ===
    base_confidence: Ratio = Field(default=0.7)
    strength_boost: Ratio = Field(default=0.4)
    trend_alignment_boost: Ratio = Field(default=0.15)

    # === Модификатор дистанции ===
    very_close_percent: PositiveFloat = Field(default=0.5)
    very_close_multiplier: PositiveFloat = Field(default=1.1)
    far_percent: PositiveFloat = Field(default=1.2)
    far_multiplier: PositiveFloat = Field(default=0.9)

    min_confidence_threshold: Ratio = Field(default=0.3, description="Минимальная уверенность для сигнала")

    # === Подтверждение уровнями старших таймфреймов ===
    htf_confirmation_enabled: bool = Field(default=True)
    htf_alignment_percent: PositiveFloat = Field(default=0.3)
    htf_boost_percent: confloat(ge=0, le=100) = Field(default=15.0)
    htf_candle_interval_minutes: PositiveInt = Field(default=15)
    trend2_confirmation_enabled: bool = Field(default=True)
    trend2_alignment_percent: PositiveFloat = Field(default=0.4)
    trend2_boost_percent: confloat(ge=0, le=100) = Field(default=10.0)
    trend2_candle_interval_minutes: PositiveInt = Field(default=30)
    htf_min_candles: PositiveInt = Field(default=20)

    @model_validator(mode="after")
    def validate_distance_bands(self):
        """Порог близости должен быть меньше порога удаленности"""
        if self.very_close_percent > self.far_percent:
            raise ValueError("very_close_percent must be <= far_percent")
        return self

    model_config = SettingsConfigDict(env_prefix="LEVEL_CONFIDENCE_", case_sensitive=False)


class FactorWeight(BaseModel):
    """Вес фактора весовой матрицы и пороги оценок"""
    enabled: bool = True
    max_points: confloat(ge=0) = 10.0
    excellent: Optional[float] = None
    good: Optional[float] = None
    ok: Optional[float] = None
    weak: Optional[float] = None


class WeightMatrixConfig(BaseSettings):
    """
    Конфигурация весовой матрицы факторов
    """

    rsi: FactorWeight = Field(default_factory=lambda: FactorWeight(max_points=15, excellent=25, good=30, ok=35, weak=40))
    stochastic: FactorWeight = Field(default_factory=lambda: FactorWeight(max_points=10, excellent=15, good=20, ok=30))
    ema: FactorWeight = Field(default_factory=lambda: FactorWeight(max_points=10, excellent=0.2, good=0.5, ok=1.0))
    bollinger: FactorWeight = Field(default_factory=lambda: FactorWeight(max_points=10, excellent=80, good=70, ok=60))
    atr: FactorWeight = Field(default_factory=lambda: FactorWeight(max_points=5, excellent=1.5, good=1.2, ok=1.0))
    volume: FactorWeight = Field(default_factory=lambda: FactorWeight(max_points=15, excellent=2.0, good=1.5, ok=1.2, weak=1.0))
    delta: FactorWeight = Field(default_factory=lambda: FactorWeight(max_points=10, excellent=2.0, good=1.5, ok=1.2))
    level_strength: FactorWeight = Field(default_factory=lambda: FactorWeight(max_points=20, excellent=5, good=4, ok=3, weak=2))
    level_distance: FactorWeight = Field(default_factory=lambda: FactorWeight(max_points=15, excellent=0.2, good=0.5, ok=1.0, weak=1.5))
    swing_quality: FactorWeight = Field(default_factory=lambda: FactorWeight(max_points=10))
    tf_alignment: FactorWeight = Field(default_factory=lambda: FactorWeight(max_points=10, excellent=0.8, good=0.6, ok=0.4))

    model_config = SettingsConfigDict(env_prefix="LEVEL_WEIGHTS_", case_sensitive=False)


class StopLossConfig(BaseSettings):
    """
    Конфигурация стоп-лосса
    """

    mode: StopLossMode = Field(default=StopLossMode.ADAPTIVE, description="Цепочка методов или ATR")

    # === Цепочка методов ===
    priority: List[str] = Field(
        default_factory=lambda: list(STOP_LOSS_METHODS),
        description="Порядок методов расчета"
    )
    min_distance_percent: PositiveFloat = Field(default=0.5, description="Минимальная дистанция SL (%)")
    max_distance_percent: PositiveFloat = Field(default=3.0, description="Максимальная дистанция SL (%)")
    fallback_percent: PositiveFloat = Field(default=1.5, description="Аварийная дистанция SL (%)")

    sweep_window_minutes: PositiveInt = Field(default=60)
    swing_lookback_hours: PositiveInt = Field(default=24)
    max_order_block_distance_percent: PositiveFloat = Field(default=3.0)
    max_swing_distance_percent: PositiveFloat = Field(default=3.0)
    max_level_distance_percent: PositiveFloat = Field(default=3.0)
    level_min_touches: PositiveInt = Field(default=2)
    level_min_strength: Ratio = Field(default=0.5)

    # === Буфер за структурой ===
    buffer_multiplier: PositiveFloat = Field(default=0.5, description="Доля ATR в буфере")
    buffer_min_percent: PositiveFloat = Field(default=0.05)
    buffer_max_percent: PositiveFloat = Field(default=0.5)
    atr_stop_multiplier: PositiveFloat = Field(default=2.0, description="Множитель для метода ATR")

    # === ATR режим ===
    stop_loss_atr_multiplier: PositiveFloat = Field(default=1.5)
    stop_loss_atr_multiplier_long: Optional[PositiveFloat] = Field(default=None)
    min_sl_distance_percent: PositiveFloat = Field(default=1.0)
    anchor_to_level: bool = Field(default=True, description="Отсчитывать SL от уровня, а не от входа")

    # === Сессионное расширение ===
    session_sl_enabled: bool = Field(default=False)
    session_sl_asian: PositiveFloat = Field(default=1.0)
    session_sl_london: PositiveFloat = Field(default=1.5)
    session_sl_ny: PositiveFloat = Field(default=1.5)
    session_sl_overlap: PositiveFloat = Field(default=1.8)

    @field_validator("priority")
    @classmethod
    def validate_priority(cls, v):
        """Только известные методы, без повторов"""
        normalized = [str(item).upper() for item in v]
        unknown = [item for item in normalized if item not in STOP_LOSS_METHODS]
        if unknown:
            raise ValueError(f"Unknown stop-loss methods: {unknown}")
        if len(set(normalized)) != len(normalized):
            raise ValueError("Stop-loss priority must not contain duplicates")
        return normalized

    @model_validator(mode="after")
    def validate_bounds(self):
        """Границы дистанции и буфера согласованы"""
        if self.min_distance_percent >= self.max_distance_percent:
            raise ValueError("min_distance_percent must be < max_distance_percent")
        if self.buffer_min_percent > self.buffer_max_percent:
            raise ValueError("buffer_min_percent must be <= buffer_max_percent")
        return self

    model_config = SettingsConfigDict(env_prefix="LEVEL_STOP_LOSS_", case_sensitive=False)


class TakeProfitTarget(BaseModel):
    """Ступень лестницы тейк-профитов"""
    level: PositiveInt
    percent: PositiveFloat
    size_percent: confloat(gt=0, le=100)


class TakeProfitConfig(BaseSettings):
    """
    Конфигурация тейк-профитов и R:R фильтра
    """

    rr_ratio: confloat(ge=0) = Field(default=2.0, description="R:R для единственной цели (0 - лестница)")
    targets: List[TakeProfitTarget] = Field(
        default_factory=lambda: [
            TakeProfitTarget(level=1, percent=1.0, size_percent=50),
            TakeProfitTarget(level=2, percent=2.0, size_percent=50),
        ],
        description="Лестница целей"
    )

    # === Структурный TP ===
    structure_tp_enabled: bool = Field(default=False)
    structure_tp_offset_percent: confloat(ge=0) = Field(default=0.1)
    structure_tp_fallback_percent: PositiveFloat = Field(default=2.0)
    use_second_level_as_tp2: bool = Field(default=True)

    # === ATR TP ===
    atr_tp_enabled: bool = Field(default=False)
    tp1_atr_multiplier: PositiveFloat = Field(default=1.5)
    tp2_atr_multiplier: PositiveFloat = Field(default=3.0)
    min_tp_percent: PositiveFloat = Field(default=0.5)
    max_tp_percent: PositiveFloat = Field(default=5.0)

    # === Сессионный множитель ===
    session_tp_enabled: bool = Field(default=False)
    session_tp_asian: PositiveFloat = Field(default=0.8)
    session_tp_london: PositiveFloat = Field(default=1.2)
    session_tp_ny: PositiveFloat = Field(default=1.2)
    session_tp_overlap: PositiveFloat = Field(default=1.4)

    # === Флэт ===
    flat_market_enabled: bool = Field(default=False)
    flat_market_ema_gap_percent: PositiveFloat = Field(default=0.3)

    # === R:R фильтр ===
    rr_gate_enabled: bool = Field(default=True)
    min_rr: PositiveFloat = Field(default=1.5)
    preferred_rr: PositiveFloat = Field(default=2.0)

    @field_validator("targets")
    @classmethod
    def validate_targets(cls, v):
        """Суммарный объем лестницы не больше 100%"""
        total = sum(target.size_percent for target in v)
        if total > 100.0 + 1e-9:
            raise ValueError(f"Take-profit sizes sum to {total}%, must be <= 100%")
        return sorted(v, key=lambda target: target.level)

    @model_validator(mode="after")
    def validate_rr(self):
        if self.min_rr > self.preferred_rr:
            raise ValueError("min_rr must be <= preferred_rr")
        if self.min_tp_percent > self.max_tp_percent:
            raise ValueError("min_tp_percent must be <= max_tp_percent")
        return self

    model_config = SettingsConfigDict(env_prefix="LEVEL_TAKE_PROFIT_", case_sensitive=False)


class WhaleWallConfig(BaseSettings):
    """
    Конфигурация корректировки TP/SL по стенам стакана
    """

    enabled: bool = Field(default=False)
    min_wall_percent: PositiveFloat = Field(default=5.0)
    min_distance_percent: confloat(ge=0) = Field(default=0.3)
    max_distance_percent: PositiveFloat = Field(default=2.0)

    tp_targeting_enabled: bool = Field(default=True)
    tp_alignment_percent: PositiveFloat = Field(default=0.5)
    scale_to_wall: bool = Field(default=True)
    min_wall_size_for_tp: PositiveFloat = Field(default=8.0)

    sl_protection_enabled: bool = Field(default=True)
    sl_buffer_percent: confloat(ge=0) = Field(default=0.1)
    min_wall_size_for_sl: PositiveFloat = Field(default=10.0)

    reject_spoofing: bool = Field(default=True)
    min_wall_strength: Ratio = Field(default=0.3)

    model_config = SettingsConfigDict(env_prefix="LEVEL_WHALE_WALL_", case_sensitive=False)


class RegimeParams(BaseModel):
    """Параметры стратегии для режима волатильности"""
    max_distance_percent: PositiveFloat
    min_touches_required: PositiveInt
    cluster_threshold_percent: PositiveFloat
    min_confidence_threshold: Ratio


class RegimeConfig(BaseSettings):
    """
    Конфигурация режимов волатильности
    """

    enabled: bool = Field(default=True)
    low_atr_percent: PositiveFloat = Field(default=0.3)
    high_atr_percent: PositiveFloat = Field(default=1.5)
    hysteresis_enabled: bool = Field(default=False)
    hysteresis_buffer: confloat(ge=0, lt=1) = Field(default=0.1, description="Доля порога")

    regimes: Dict[str, RegimeParams] = Field(
        default_factory=lambda: {
            "LOW": RegimeParams(max_distance_percent=0.3, min_touches_required=4,
                                cluster_threshold_percent=0.15, min_confidence_threshold=0.65),
            "MEDIUM": RegimeParams(max_distance_percent=0.6, min_touches_required=3,
                                   cluster_threshold_percent=0.25, min_confidence_threshold=0.55),
            "HIGH": RegimeParams(max_distance_percent=1.2, min_touches_required=2,
                                 cluster_threshold_percent=0.4, min_confidence_threshold=0.5),
        }
    )

    @field_validator("regimes")
    @classmethod
    def validate_regimes(cls, v):
        """Параметры заданы для всех трех режимов"""
        v = {str(key).upper(): value for key, value in v.items()}
        missing = {"LOW", "MEDIUM", "HIGH"} - set(v)
        if missing:
            raise ValueError(f"Missing regime params: {sorted(missing)}")
        return v

    @model_validator(mode="after")
    def validate_thresholds(self):
        if self.low_atr_percent >= self.high_atr_percent:
            raise ValueError("low_atr_percent must be < high_atr_percent")
        return self

    model_config = SettingsConfigDict(env_prefix="LEVEL_REGIME_", case_sensitive=False)


class WallTrackingConfig(BaseSettings):
    """
    Конфигурация отслеживания стен стакана
    """

    enabled: bool = Field(default=True)
    spoofing_threshold_ms: PositiveInt = Field(default=5000)
    min_lifetime_ms: PositiveInt = Field(default=30000)
    iceberg_refill_count: PositiveInt = Field(default=3)
    spoof_memory_ms: PositiveInt = Field(default=300000, description="Сколько помнить снятые стены")
    max_history: PositiveInt = Field(default=500)

    model_config = SettingsConfigDict(env_prefix="LEVEL_WALLS_", case_sensitive=False)


class StrategyConfig(BaseSettings):
    """
    Главная конфигурация Level Signal Engine

    Объединяет секции всех этапов конвейера
    """

    # === Общие настройки ===
    environment: Literal["development", "staging", "production"] = Field(
        default="development",
        description="Среда выполнения"
    )

    service_name: str = Field(default="level-signal-engine", description="Имя сервиса")
    version: str = Field(default="1.0.0", description="Версия сервиса")
    log_level: LogLevel = Field(default=LogLevel.INFO, description="Уровень логирования")
    log_format: Literal["json", "text", "colored"] = Field(default="json")

    # === Компоненты конфигурации ===
    swing: SwingConfig = Field(default_factory=SwingConfig)
    cluster: ClusterConfig = Field(default_factory=ClusterConfig)
    selection: SelectionConfig = Field(default_factory=SelectionConfig)
    filters: FilterConfig = Field(default_factory=FilterConfig)
    confidence: ConfidenceConfig = Field(default_factory=ConfidenceConfig)
    weights: WeightMatrixConfig = Field(default_factory=WeightMatrixConfig)
    stop_loss: StopLossConfig = Field(default_factory=StopLossConfig)
    take_profit: TakeProfitConfig = Field(default_factory=TakeProfitConfig)
    whale_wall: WhaleWallConfig = Field(default_factory=WhaleWallConfig)
    regime: RegimeConfig = Field(default_factory=RegimeConfig)
    walls: WallTrackingConfig = Field(default_factory=WallTrackingConfig)

    @field_validator("service_name")
    @classmethod
    def validate_service_name(cls, v):
        if not v or not v.strip():
            raise ValueError("service_name must be a non-empty string")
        return v.strip()

    def is_production(self) -> bool:
        """Проверить production среду"""
        return self.environment == "production"

    def is_development(self) -> bool:
        """Проверить development среду"""
        return self.environment == "development"

    model_config = SettingsConfigDict(
        env_prefix="LEVEL_STRATEGY_",
        case_sensitive=False,
        validate_default=True,
        extra="forbid"
    )


# Глобальная конфигурация
_config: Optional[StrategyConfig] = None


def get_config() -> StrategyConfig:
    """
    Получить глобальную конфигурацию (singleton pattern)

    Returns:
        Экземпляр StrategyConfig
    """
    global _config
    if _config is None:
        _config = StrategyConfig()
    return _config


def reload_config() -> StrategyConfig:
    """
    Перезагрузить конфигурацию

    Returns:
        Новый экземпляр StrategyConfig
    """
    global _config
    _config = StrategyConfig()
    return _config


def load_config_from_file(config_path: Union[str, Path]) -> StrategyConfig:
    """
    Загрузить конфигурацию из YAML файла

    Args:
        config_path: Путь к файлу конфигурации

    Returns:
        Экземпляр StrategyConfig
    """
    import yaml

    config_path = Path(config_path)
    if not config_path.exists():
        raise FileNotFoundError(f"Config file not found: {config_path}")

    with open(config_path, 'r', encoding='utf-8') as f:
        config_data = yaml.safe_load(f) or {}

    return StrategyConfig(**config_data)


def save_config_to_file(config: StrategyConfig, config_path: Union[str, Path]) -> None:
    """
    Сохранить конфигурацию в YAML файл

    Args:
        config: Экземпляр конфигурации
        config_path: Путь для сохранения
    """
    import yaml

    config_path = Path(config_path)
    config_path.parent.mkdir(parents=True, exist_ok=True)

    with open(config_path, 'w', encoding='utf-8') as f:
        yaml.safe_dump(config.model_dump(mode="json"), f, default_flow_style=False, allow_unicode=True)
