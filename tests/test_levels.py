"""
Tests for level building and the level detector.
"""

import pytest

from src.config.strategy_config import ClusterConfig, StrengthMode
from src.market.types import OrderBookSnapshot, OrderBookWall, SignalDirection, WallSide
from src.support_resistance.detector import LevelDetector
from src.support_resistance.levels import Level, LevelBuilder, LevelSet, LevelType, TrendContext
from src.support_resistance.swings import SwingPoint, SwingPointType

from .conftest import START_TS, MINUTE_MS, SUPPORT_PRICE, RESISTANCE_PRICE, build_candles, zigzag_closes


def low(price, minute=0):
    return SwingPoint(price=price, timestamp=START_TS + minute * MINUTE_MS, type=SwingPointType.LOW)


def high(price, minute=0):
    return SwingPoint(price=price, timestamp=START_TS + minute * MINUTE_MS, type=SwingPointType.HIGH)


@pytest.fixture
def builder():
    """Построитель уровней без штрафов и без фильтра возраста"""
    return LevelBuilder(ClusterConfig(
        dynamic_cluster_threshold=False,
        exhaustion_enabled=False,
        max_level_age_candles=None
    ))


class TestClustering:
    """Тесты кластеризации swing-точек"""

    def test_two_close_lows_form_one_level(self, builder):
        """Тест: 95.0 и 95.2 объединяются в уровень 95.1 с двумя касаниями"""
        levels = builder.build([low(95.0, 1), low(95.2, 5)], None, START_TS + 10 * MINUTE_MS)

        assert len(levels.support) == 1
        level = levels.support[0]
        assert level.price == pytest.approx(95.1)
        assert level.touches == 2
        assert level.last_touch == START_TS + 5 * MINUTE_MS
        assert level.type == LevelType.SUPPORT

    def test_distant_points_form_separate_levels(self, builder):
        """Тест разделения далеких точек"""
        levels = builder.build([low(95.0), low(97.0), high(105.0), high(110.0)], None, START_TS)

        assert [l.price for l in levels.support] == [97.0, 95.0]
        assert [l.price for l in levels.resistance] == [105.0, 110.0]

    def test_running_mean_threshold(self):
        """Тест сравнения с текущим средним кластера"""
        points = [low(100.0), low(100.25), low(100.5)]

        clusters = LevelBuilder.cluster(points, 0.003)

        # 100.5 vs mean 100.125 is 0.37% away, so the third point opens a new cluster
        assert [len(c) for c in clusters] == [2, 1]

    def test_dynamic_threshold_uses_atr(self):
        """Тест динамического порога по ATR"""
        builder = LevelBuilder(ClusterConfig(dynamic_cluster_threshold=True, atr_cluster_multiplier=0.3))

        assert builder.cluster_threshold(atr_percent=2.0) == pytest.approx(0.006)
        assert builder.cluster_threshold(atr_percent=0.5) == pytest.approx(0.003)
        assert builder.cluster_threshold(atr_percent=None, override_percent=0.15) == pytest.approx(0.0015)

    def test_empty_points(self, builder):
        """Тест пустого набора точек"""
        levels = builder.build([], None, START_TS)

        assert levels.is_empty
        assert levels.to_dict()['support_count'] == 0


class TestLevelStrength:
    """Тесты силы уровней"""

    def test_touch_strength(self, builder):
        """Тест силы по касаниям"""
        levels = builder.build([low(95.0, i) for i in range(3)], None, START_TS)

        assert levels.support[0].strength == pytest.approx(0.6)

    def test_touch_strength_capped(self, builder):
        """Тест ограничения силы единицей"""
        levels = builder.build([low(95.0, i) for i in range(8)], None, START_TS)

        assert levels.support[0].strength == 1.0
        assert levels.support[0].touches == 8

    def test_weighted_strength(self):
        """Тест взвешенной силы: касания, свежесть, объем"""
        builder = LevelBuilder(ClusterConfig(
            strength_mode=StrengthMode.WEIGHTED,
            exhaustion_enabled=False,
            max_level_age_candles=None
        ))
        candles = build_candles([96, 95, 96, 97, 95, 96], volume=100.0)
        points = [low(94.9, 1), low(94.9, 4)]

        levels = builder.build(points, candles, START_TS + 5 * MINUTE_MS)

        # touches 2/5 * 0.5 + fresh level ~0.3 + volume ratio 1/1.5 * 0.2
        expected = 0.4 * 0.5 + 0.3 * (1 - (MINUTE_MS / (7 * 24 * 60 * MINUTE_MS))) + (1 / 1.5) * 0.2
        assert levels.support[0].strength == pytest.approx(expected, rel=1e-6)

    def test_exhaustion_penalty(self):
        """Тест штрафа за пробои уровня"""
        builder = LevelBuilder(ClusterConfig(max_level_age_candles=None, dynamic_cluster_threshold=False))
        # Two closes well below support at 100
        candles = build_candles([101, 100.5, 99.0, 98.5, 101])
        points = [low(100.0, 0), low(100.0, 1), low(100.0, 2), low(100.0, 3), low(100.0, 4)]

        levels = builder.build(points, candles, START_TS + 4 * MINUTE_MS)

        level = levels.support[0]
        assert level.metadata['breakouts'] == 2
        assert level.metadata['exhaustion_penalty'] == pytest.approx(0.3)
        assert level.strength == pytest.approx(1.0 * 0.7)

    def test_exhaustion_floor(self):
        """Тест минимальной силы после штрафа"""
        builder = LevelBuilder(ClusterConfig(max_level_age_candles=None, dynamic_cluster_threshold=False))
        candles = build_candles([90] * 10)

        levels = builder.build([low(100.0)], candles, START_TS)

        # 0.2 * (1 - 0.6) = 0.08 -> floored at 0.1
        assert levels.support[0].strength == pytest.approx(0.1)

    def test_orderbook_boost(self):
        """Тест усиления уровня стеной стакана"""
        builder = LevelBuilder(ClusterConfig(
            orderbook_validation_enabled=True,
            exhaustion_enabled=False,
            max_level_age_candles=None
        ))
        orderbook = OrderBookSnapshot(
            timestamp=START_TS,
            walls=(OrderBookWall(WallSide.BID, 95.1, 500.0, 12.0, -0.4),)
        )

        levels = builder.build([low(95.0), low(95.0)], None, START_TS, orderbook=orderbook)

        assert levels.support[0].strength == pytest.approx(0.4 + 0.15)
        assert levels.support[0].metadata['orderbook_wall'] == 95.1

    def test_orderbook_wrong_side_ignored(self):
        """Тест: стена ASK не усиливает поддержку"""
        builder = LevelBuilder(ClusterConfig(orderbook_validation_enabled=True, exhaustion_enabled=False))
        orderbook = OrderBookSnapshot(
            timestamp=START_TS,
            walls=(OrderBookWall(WallSide.ASK, 95.0, 500.0, 12.0, 0.1),)
        )

        levels = builder.build([low(95.0), low(95.0)], None, START_TS, orderbook=orderbook)

        assert levels.support[0].strength == pytest.approx(0.4)

    def test_age_filter(self):
        """Тест отбрасывания старых уровней"""
        builder = LevelBuilder(ClusterConfig(max_level_age_candles=10, candle_interval_minutes=1,
                                             exhaustion_enabled=False))
        now = START_TS + 30 * MINUTE_MS

        levels = builder.build([low(95.0, 0), low(90.0, 25)], None, now)

        assert [l.price for l in levels.support] == [90.0]

    def test_trend_recorded_in_metadata(self, builder):
        """Тест записи тренда в метаданные"""
        levels = builder.build([high(105.0)], None, START_TS, trend=TrendContext.DOWNTREND)

        assert levels.resistance[0].metadata['trend'] == "DOWNTREND"


class TestAsymmetricDistance:
    """Тесты асимметричной дистанции"""

    def test_trend_aligned_side_widened(self, builder):
        """Тест расширения дистанции по тренду"""
        assert builder.asymmetric_max_distance(LevelType.SUPPORT, TrendContext.UPTREND, 1.0) == pytest.approx(1.5)
        assert builder.asymmetric_max_distance(LevelType.RESISTANCE, TrendContext.DOWNTREND, 1.0) == pytest.approx(1.5)

    def test_counter_trend_side_unchanged(self, builder):
        """Тест неизменной дистанции против тренда"""
        assert builder.asymmetric_max_distance(LevelType.RESISTANCE, TrendContext.UPTREND, 1.0) == 1.0
        assert builder.asymmetric_max_distance(LevelType.SUPPORT, TrendContext.NEUTRAL, 1.0) == 1.0


class TestLevel:
    """Тесты модели уровня"""

    def test_distance_relative_to_level(self):
        """Тест расстояния в процентах от цены уровня"""
        level = Level(price=100.0, type=LevelType.SUPPORT, strength=0.5, touches=2, last_touch=START_TS)

        assert level.distance_percent(101.0) == pytest.approx(1.0)
        assert level.is_support

    def test_level_set_all_levels(self):
        """Тест объединения уровней"""
        support = Level(100.0, LevelType.SUPPORT, 0.5, 2, START_TS)
        resistance = Level(110.0, LevelType.RESISTANCE, 0.5, 2, START_TS)

        level_set = LevelSet(support=[support], resistance=[resistance])

        assert level_set.all_levels == [support, resistance]
        assert not level_set.is_empty


class TestLevelDetector:
    """Тесты LevelDetector"""

    def test_detect_zigzag(self, zigzag_candles):
        """Тест обнаружения уровней зиг-зага"""
        detector = LevelDetector(symbol="BTCUSDT")

        result = detector.detect(zigzag_candles, int(zigzag_candles['timestamp'].iloc[-1]), atr_percent=1.0)

        assert result.has_enough_swings
        assert len(result.support_levels) == 1
        assert len(result.resistance_levels) == 1
        assert result.support_levels[0].price == pytest.approx(SUPPORT_PRICE)
        assert result.support_levels[0].touches == 5
        assert result.resistance_levels[0].price == pytest.approx(RESISTANCE_PRICE)
        assert result.data_points_analyzed == len(zigzag_candles)

    def test_detect_short_window(self):
        """Тест короткого окна"""
        detector = LevelDetector()

        result = detector.detect(build_candles([100, 99, 98]), START_TS)

        assert not result.has_enough_swings
        assert result.levels.is_empty

    def test_nearest_levels(self, zigzag_candles):
        """Тест ближайших уровней"""
        detector = LevelDetector()
        result = detector.detect(zigzag_candles, int(zigzag_candles['timestamp'].iloc[-1]))

        nearest = detector.get_nearest_levels(result.levels, 100.0)

        assert nearest['support'][0].price == pytest.approx(SUPPORT_PRICE)
        assert nearest['resistance'][0].price == pytest.approx(RESISTANCE_PRICE)

    def test_confirm_level_with_htf(self):
        """Тест подтверждения уровнем старшего таймфрейма"""
        detector = LevelDetector()
        htf = build_candles(zigzag_closes(periods=3), interval_ms=15 * MINUTE_MS)
        entry_level = Level(95.0, LevelType.SUPPORT, 0.8, 3, START_TS)
        now = int(htf['timestamp'].iloc[-1])

        confirmation = detector.confirm_level(
            entry_level, htf, SignalDirection.LONG, now,
            alignment_percent=0.3, boost_percent=15.0, candle_interval_minutes=15
        )

        assert confirmation.is_confirmed
        assert confirmation.confidence_boost == pytest.approx(0.15)
        assert confirmation.htf_level.price == pytest.approx(SUPPORT_PRICE)

    def test_confirm_level_wrong_side(self):
        """Тест: SHORT ищет сопротивление, а не поддержку"""
        detector = LevelDetector()
        htf = build_candles(zigzag_closes(periods=3), interval_ms=15 * MINUTE_MS)
        entry_level = Level(95.0, LevelType.RESISTANCE, 0.8, 3, START_TS)

        confirmation = detector.confirm_level(
            entry_level, htf, SignalDirection.SHORT, int(htf['timestamp'].iloc[-1]),
            alignment_percent=0.3, boost_percent=15.0, candle_interval_minutes=15
        )

        assert not confirmation.is_confirmed
        assert confirmation.confidence_boost == 0.0

    def test_confirm_level_needs_enough_candles(self):
        """Тест: менее 20 свечей старшего таймфрейма"""
        detector = LevelDetector()
        entry_level = Level(95.0, LevelType.SUPPORT, 0.8, 3, START_TS)

        confirmation = detector.confirm_level(
            entry_level, build_candles([100, 98, 96, 95, 96, 98]), SignalDirection.LONG, START_TS,
            alignment_percent=0.3, boost_percent=15.0
        )

        assert not confirmation.is_confirmed
        assert confirmation.details['reason'] == 'not enough HTF candles'
