"""
Tests for level selection and breakout mode.
"""

import pytest

from src.config.strategy_config import FilterConfig, SelectionConfig
from src.market.types import EmaPair, RejectionCode, SignalDirection
from src.support_resistance.levels import Level, LevelSet, LevelType, TrendContext
from src.support_resistance.selector import LevelSelector

from .conftest import START_TS

UPTREND = EmaPair(fast=97.0, slow=96.0)
DOWNTREND = EmaPair(fast=95.0, slow=96.0)
FLAT = EmaPair(fast=96.0, slow=96.0)


def support(price, strength=0.6, touches=2):
    return Level(price=price, type=LevelType.SUPPORT, strength=strength, touches=touches, last_touch=START_TS)


def resistance(price, strength=0.6, touches=2):
    return Level(price=price, type=LevelType.RESISTANCE, strength=strength, touches=touches, last_touch=START_TS)


@pytest.fixture
def selector():
    """Селектор с настройками по умолчанию"""
    return LevelSelector(SelectionConfig(), FilterConfig())


class TestTrendContext:
    """Тесты определения тренда по EMA"""

    def test_from_ema(self):
        assert TrendContext.from_ema(97.0, 96.0) == TrendContext.UPTREND
        assert TrendContext.from_ema(95.0, 96.0) == TrendContext.DOWNTREND
        assert TrendContext.from_ema(96.0, 96.0) == TrendContext.NEUTRAL


class TestDistance:
    """Тесты допустимой дистанции"""

    def test_legacy_distance(self, selector):
        """Тест legacy режима: половина ATR с нижним порогом"""
        assert selector.dynamic_distance(1.0) == pytest.approx(0.5)
        assert selector.dynamic_distance(0.2) == pytest.approx(0.3)
        assert selector.dynamic_distance(5.0) == pytest.approx(1.0)

    def test_dynamic_distance(self):
        """Тест ATR-зависимой дистанции"""
        selector = LevelSelector(SelectionConfig(dynamic_distance_enabled=True))

        assert selector.dynamic_distance(1.0) == pytest.approx(0.2)
        assert selector.dynamic_distance(0.5) == pytest.approx(0.15)
        assert selector.dynamic_distance(10.0, max_distance_percent=0.6) == pytest.approx(0.6)

    def test_effective_distance_takes_wider(self, selector):
        """Тест: эффективная дистанция - максимум из динамической и асимметричной"""
        assert selector.effective_distance(LevelType.SUPPORT, TrendContext.UPTREND, 1.0) == pytest.approx(1.5)
        assert selector.effective_distance(LevelType.RESISTANCE, TrendContext.UPTREND, 1.0) == pytest.approx(1.0)


class TestFindNearest:
    """Тесты поиска ближайшего уровня"""

    def test_price_below_support_not_admissible(self, selector):
        """Тест: цена 92 под поддержкой 95 не дает LONG"""
        nearest = selector.find_nearest(92.0, [support(95.0)], 5.0, LevelType.SUPPORT)

        assert nearest is None

    def test_nearest_wins(self, selector):
        """Тест выбора ближайшего уровня"""
        levels = [support(99.0), support(99.5), support(98.0)]

        nearest = selector.find_nearest(100.0, levels, 2.0, LevelType.SUPPORT)

        assert nearest.price == 99.5

    def test_touches_checked_first(self, selector):
        """Тест отсева по числу касаний"""
        nearest = selector.find_nearest(100.0, [support(99.8, touches=1)], 2.0, LevelType.SUPPORT)

        assert nearest is None

    def test_distance_limit(self, selector):
        """Тест отсева по дистанции"""
        nearest = selector.find_nearest(100.0, [resistance(102.0)], 1.0, LevelType.RESISTANCE)

        assert nearest is None

    def test_side_specific_min_touches(self):
        """Тест раздельного минимума касаний для сторон"""
        selector = LevelSelector(SelectionConfig(min_touches_required_long=3))

        assert selector.find_nearest(100.0, [support(99.8, touches=2)], 2.0, LevelType.SUPPORT) is None
        assert selector.find_nearest(100.0, [resistance(100.2, touches=2)], 2.0, LevelType.RESISTANCE) is not None


class TestTrendChecks:
    """Тесты проверок тренда"""

    def test_downtrend(self):
        assert LevelSelector.is_downtrend(DOWNTREND, rsi=45.0)
        # Weak gap (1.05%) with strong RSI still counts through the divergence
        assert LevelSelector.is_downtrend(DOWNTREND, rsi=60.0)
        assert not LevelSelector.is_downtrend(EmaPair(fast=99.9, slow=100.0), rsi=60.0)
        assert not LevelSelector.is_downtrend(UPTREND, rsi=30.0)

    def test_uptrend(self):
        assert LevelSelector.is_uptrend(UPTREND, rsi=55.0)
        assert not LevelSelector.is_uptrend(EmaPair(fast=100.1, slow=100.0), rsi=45.0)
        assert not LevelSelector.is_uptrend(DOWNTREND, rsi=70.0)


class TestSelect:
    """Тесты выбора направления"""

    def test_uptrend_long_from_support(self, selector):
        """Тест: восходящий тренд и поддержка дают LONG"""
        levels = LevelSet(support=[support(95.0, touches=3)], resistance=[])

        selection = selector.select(95.5, levels, UPTREND, 55.0, 1.0)

        assert selection.found
        assert selection.direction == SignalDirection.LONG
        assert selection.level.price == 95.0
        assert selection.reason == "UPTREND: LONG from support 95.0000 (3T)"
        assert selection.trend == TrendContext.UPTREND

    def test_downtrend_short_from_resistance(self, selector):
        """Тест: нисходящий тренд и сопротивление дают SHORT"""
        levels = LevelSet(support=[support(99.8)], resistance=[resistance(100.5)])

        selection = selector.select(100.0, levels, DOWNTREND, 45.0, 1.0)

        assert selection.direction == SignalDirection.SHORT
        assert selection.reason.startswith("DOWNTREND: SHORT from resistance 100.5000")

    def test_no_levels(self, selector):
        """Тест отсутствия уровней в диапазоне"""
        levels = LevelSet(support=[support(95.0)], resistance=[])

        selection = selector.select(92.0, levels, UPTREND, 55.0, 1.0)

        assert not selection.found
        assert selection.rejection_code == RejectionCode.NO_LEVELS_WITHIN_DISTANCE
        assert selection.reason == "No levels within distance threshold"

    def test_neutral_both_weak(self, selector):
        """Тест: оба уровня слабые в нейтральном тренде"""
        levels = LevelSet(support=[support(99.8, strength=0.3)], resistance=[resistance(100.3, strength=0.3)])

        selection = selector.select(100.0, levels, FLAT, 50.0, 1.0)

        assert selection.rejection_code == RejectionCode.NEUTRAL_WEAK_LEVELS
        assert selection.reason.startswith("NEUTRAL trend: Both levels too weak")

    def test_neutral_closer_level_wins(self, selector):
        """Тест: в нейтральном тренде выигрывает ближайший уровень"""
        levels = LevelSet(support=[support(99.8)], resistance=[resistance(100.3)])

        selection = selector.select(100.0, levels, FLAT, 50.0, 1.0)

        assert selection.direction == SignalDirection.LONG
        assert selection.reason == "NEUTRAL: LONG from support 99.8000 (2T, str:0.60)"

    def test_neutral_only_strong_resistance(self, selector):
        """Тест: слабая поддержка уступает сильному сопротивлению"""
        levels = LevelSet(support=[support(99.8, strength=0.3)], resistance=[resistance(100.3)])

        selection = selector.select(100.0, levels, FLAT, 50.0, 1.0)

        assert selection.direction == SignalDirection.SHORT
        assert selection.level.price == 100.3

    def test_only_resistance_in_uptrend_blocked(self, selector):
        """Тест: единственное сопротивление в восходящем тренде"""
        levels = LevelSet(support=[], resistance=[resistance(100.3)])

        selection = selector.select(100.0, levels, UPTREND, 60.0, 1.0)

        assert selection.rejection_code == RejectionCode.SHORT_IN_UPTREND

    def test_only_support_in_downtrend_blocked(self, selector):
        """Тест: единственная поддержка в нисходящем тренде"""
        levels = LevelSet(support=[support(99.8)], resistance=[])

        selection = selector.select(100.0, levels, DOWNTREND, 40.0, 1.0)

        assert selection.rejection_code == RejectionCode.LONG_IN_DOWNTREND

    def test_only_support_in_downtrend_allowed_when_switch_off(self):
        """Тест отключенного запрета LONG в нисходящем тренде"""
        selector = LevelSelector(SelectionConfig(), FilterConfig(block_long_in_downtrend=False))
        levels = LevelSet(support=[support(99.8)], resistance=[])

        selection = selector.select(100.0, levels, DOWNTREND, 40.0, 1.0)

        assert selection.direction == SignalDirection.LONG

    def test_regime_min_touches_override(self, selector):
        """Тест переопределения минимума касаний режимом"""
        levels = LevelSet(support=[support(95.0, touches=2)], resistance=[])

        selection = selector.select(95.5, levels, UPTREND, 55.0, 1.0, min_touches=3)

        assert selection.rejection_code == RejectionCode.NO_LEVELS_WITHIN_DISTANCE

    def test_selection_to_dict(self, selector):
        """Тест сериализации выбора"""
        levels = LevelSet(support=[support(95.0)], resistance=[])

        data = selector.select(95.5, levels, UPTREND, 55.0, 1.0).to_dict()

        assert data['direction'] == "LONG"
        assert data['nearest_support'] == 95.0
        assert data['rejection_code'] is None


class TestBreakout:
    """Тесты пробойного режима"""

    @pytest.fixture
    def breakout_selector(self):
        return LevelSelector(SelectionConfig(breakout_enabled=True))

    def test_disabled_by_default(self, selector):
        assert selector.breakout(EmaPair(102.0, 100.0), 55.0, 1.0, 0.7) is None

    def test_long_in_strong_uptrend(self, breakout_selector):
        """Тест LONG при сильном восходящем тренде"""
        candidate = breakout_selector.breakout(EmaPair(102.0, 100.0), 55.0, 1.0, 0.7)

        assert candidate.direction == SignalDirection.LONG
        assert candidate.ema_gap_percent == pytest.approx(2.0)
        # 0.7 + 0.1 + (2.0 - 1.5) * 0.05
        assert candidate.confidence == pytest.approx(0.825)
        assert candidate.reason.startswith("BREAKOUT LONG")

    def test_short_in_strong_downtrend(self, breakout_selector):
        """Тест SHORT при сильном нисходящем тренде"""
        candidate = breakout_selector.breakout(EmaPair(98.0, 100.0), 45.0, 1.0, 0.7)

        assert candidate.direction == SignalDirection.SHORT

    def test_overbought_uptrend_rejected(self, breakout_selector):
        """Тест: перекупленность блокирует пробойный LONG"""
        assert breakout_selector.breakout(EmaPair(102.0, 100.0), 65.0, 1.0, 0.7) is None

    def test_low_volatility_rejected(self, breakout_selector):
        assert breakout_selector.breakout(EmaPair(102.0, 100.0), 55.0, 0.4, 0.7) is None

    def test_narrow_gap_rejected(self, breakout_selector):
        assert breakout_selector.breakout(EmaPair(101.0, 100.0), 55.0, 1.0, 0.7) is None

    def test_confidence_capped(self, breakout_selector):
        """Тест ограничения уверенности 0.95"""
        candidate = breakout_selector.breakout(EmaPair(110.0, 100.0), 55.0, 1.0, 0.9)

        assert candidate.confidence == pytest.approx(0.95)
