"""
Tests for stop-loss and take-profit construction.
"""

import pytest

from src.config.strategy_config import StopLossConfig, StopLossMode, TakeProfitConfig, WhaleWallConfig
from src.market.types import (
    EmaPair,
    LiquiditySide,
    LiquidityZone,
    OrderBlock,
    OrderBookSnapshot,
    OrderBookWall,
    SignalDirection,
    WallSide,
)
from src.strategy.exits import (
    ExitConstructor,
    ExitMethod,
    StopLossChain,
    StopLossStructure,
    legacy_atr_stop,
    level_stop,
)
from src.strategy.sessions import TradingSession
from src.support_resistance.context import WallRegistry
from src.support_resistance.levels import Level, LevelType
from src.support_resistance.swings import SwingPoint, SwingPointType
from src.utils.exceptions import SignalConstructionException

from .conftest import MINUTE_MS, START_TS

NOW = START_TS + 24 * 60 * MINUTE_MS
ENTRY = 100.0
TRENDING = EmaPair(fast=101.0, slow=100.0)


def level(price, strength=0.8, touches=3, level_type=None):
    if level_type is None:
        level_type = LevelType.SUPPORT if price < ENTRY else LevelType.RESISTANCE
    return Level(price=price, type=level_type, strength=strength, touches=touches, last_touch=NOW)


def swing(price, kind=SwingPointType.LOW, minutes_ago=30):
    return SwingPoint(price=price, timestamp=NOW - minutes_ago * MINUTE_MS, type=kind)


@pytest.fixture
def chain():
    return StopLossChain()


class TestStopLossChain:
    """Тесты адаптивной цепочки стоп-лосса"""

    def test_buffer(self, chain):
        """Тест буфера: половина ATR в пределах [0.05%, 0.5%]"""
        assert chain.buffer(ENTRY, 1.0) == pytest.approx(0.5)
        assert chain.buffer(ENTRY, 0.04) == pytest.approx(0.05)
        assert chain.buffer(ENTRY, None) == pytest.approx(0.05)

    def test_sweep_first(self, chain):
        """Тест приоритета снятой ликвидности"""
        structure = StopLossStructure(
            liquidity_zones=[LiquidityZone(99.0, LiquiditySide.SELL_SIDE, NOW - 10 * MINUTE_MS, sweep_count=1)],
            swing_points=[swing(99.2)],
            atr_absolute=1.0
        )

        stop = chain.calculate(ENTRY, SignalDirection.LONG, structure, NOW)

        assert stop.method == ExitMethod.SWEEP
        assert stop.price == pytest.approx(98.5)
        assert stop.structure_price == 99.0
        assert not stop.is_emergency

    def test_stale_sweep_skipped(self, chain):
        """Тест: снятие ликвидности вне окна игнорируется"""
        structure = StopLossStructure(
            liquidity_zones=[LiquidityZone(99.0, LiquiditySide.SELL_SIDE, NOW - 120 * MINUTE_MS, sweep_count=1)],
            atr_absolute=1.0
        )

        stop = chain.calculate(ENTRY, SignalDirection.LONG, structure, NOW)

        assert stop.method == ExitMethod.ATR
        assert stop.price == pytest.approx(99.0)

    def test_strongest_order_block(self, chain):
        structure = StopLossStructure(
            order_blocks=[OrderBlock(99.5, 0.4), OrderBlock(98.8, 0.9)],
            atr_absolute=1.0
        )

        stop = chain.calculate(ENTRY, SignalDirection.LONG, structure, NOW)

        assert stop.method == ExitMethod.ORDER_BLOCK
        assert stop.price == pytest.approx(98.3)

    def test_nearest_swing(self, chain):
        structure = StopLossStructure(swing_points=[swing(98.0), swing(99.2)], atr_absolute=1.0)

        stop = chain.calculate(ENTRY, SignalDirection.LONG, structure, NOW)

        assert stop.method == ExitMethod.SWING
        assert stop.price == pytest.approx(98.7)

    def test_swing_high_for_short(self, chain):
        structure = StopLossStructure(
            swing_points=[swing(101.0, SwingPointType.HIGH), swing(99.0)],
            atr_absolute=1.0
        )

        stop = chain.calculate(ENTRY, SignalDirection.SHORT, structure, NOW)

        assert stop.price == pytest.approx(101.5)

    def test_level_by_strength_per_distance(self, chain):
        """Тест выбора уровня по силе на единицу расстояния"""
        structure = StopLossStructure(
            levels=[level(99.0, strength=0.8), level(98.0, strength=1.0), level(99.5, touches=1)],
            atr_absolute=1.0
        )

        stop = chain.calculate(ENTRY, SignalDirection.LONG, structure, NOW)

        assert stop.method == ExitMethod.LEVEL
        assert stop.price == pytest.approx(98.5)

    def test_too_close_proposal_advances(self, chain):
        """Тест: слишком близкий стоп пропускается"""
        structure = StopLossStructure(swing_points=[swing(99.8)])

        stop = chain.calculate(ENTRY, SignalDirection.LONG, structure, NOW)

        assert stop.method == ExitMethod.PERCENT
        assert stop.price == pytest.approx(98.5)
        assert not stop.is_emergency

    def test_emergency_fallback(self):
        """Тест аварийного стопа, когда все методы отказали"""
        chain = StopLossChain(StopLossConfig(priority=["SWING", "ATR"]))
        structure = StopLossStructure(swing_points=[swing(99.8)])

        stop = chain.calculate(ENTRY, SignalDirection.SHORT, structure, NOW)

        assert stop.is_emergency
        assert stop.method == ExitMethod.PERCENT
        assert stop.price == pytest.approx(101.5)
        assert stop.reason == "Emergency fallback 1.5%"

    def test_best_level_too_far(self):
        """Тест: лучший уровень дальше допустимого, более близкий слабый не берется"""
        structure = StopLossStructure(levels=[level(96.5, strength=1.0), level(98.0, strength=0.5)])

        stop = level_stop(ENTRY, SignalDirection.LONG, structure, NOW, StopLossConfig(), 0.5)

        assert stop is None

    def test_best_level_within_range(self):
        structure = StopLossStructure(levels=[level(97.5, strength=1.0), level(98.0, strength=0.5)])

        stop = level_stop(ENTRY, SignalDirection.LONG, structure, NOW, StopLossConfig(), 0.5)

        assert stop.method == ExitMethod.LEVEL
        assert stop.price == pytest.approx(97.0)


class TestLegacyAtrStop:
    """Тесты ATR стопа"""

    def test_min_distance_floor(self):
        config = StopLossConfig(stop_loss_atr_multiplier=0.5, anchor_to_level=False)

        stop = legacy_atr_stop(ENTRY, SignalDirection.LONG, 1.2, config, anchor_price=99.5)

        assert stop.price == pytest.approx(99.0)
        assert stop.structure_price is None

    def test_anchored_to_level(self):
        stop = legacy_atr_stop(ENTRY, SignalDirection.LONG, 1.2, StopLossConfig(), anchor_price=99.5)

        assert stop.price == pytest.approx(97.7)
        assert stop.structure_price == 99.5

    def test_long_multiplier_and_session(self):
        """Тест отдельного множителя для LONG и сессионного расширения"""
        config = StopLossConfig(stop_loss_atr_multiplier_long=2.0, anchor_to_level=False, session_sl_enabled=True)

        stop = legacy_atr_stop(ENTRY, SignalDirection.LONG, 1.0, config, session=TradingSession.LONDON)

        assert stop.price == pytest.approx(97.0)

    def test_short_ignores_long_multiplier(self):
        config = StopLossConfig(stop_loss_atr_multiplier_long=2.0, anchor_to_level=False)

        stop = legacy_atr_stop(ENTRY, SignalDirection.SHORT, 1.0, config)

        assert stop.price == pytest.approx(101.5)

    def test_atr_mode_in_constructor(self):
        constructor = ExitConstructor(StopLossConfig(mode=StopLossMode.ATR))
        structure = StopLossStructure(atr_absolute=1.2)

        stop = constructor.stop_loss(ENTRY, SignalDirection.LONG, level(99.5), structure, NOW)

        assert stop.method == ExitMethod.ATR
        assert stop.price == pytest.approx(97.7)

    def test_anchored_stop_targets_use_atr_distance(self):
        """Тест: цель R:R считается от ATR дистанции, а не от расстояния до якоря"""
        constructor = ExitConstructor(StopLossConfig(mode=StopLossMode.ATR))
        structure = StopLossStructure(atr_absolute=1.2)

        plan = constructor.build(ENTRY, SignalDirection.LONG, level(99.5), structure, NOW, TRENDING, 1.2)

        assert plan.stop_loss.price == pytest.approx(97.7)
        assert plan.take_profits[0].price == pytest.approx(103.6)

    def test_unanchored_stop_targets(self):
        constructor = ExitConstructor(StopLossConfig(mode=StopLossMode.ATR, anchor_to_level=False))
        structure = StopLossStructure(atr_absolute=1.2)

        plan = constructor.build(ENTRY, SignalDirection.SHORT, level(100.5), structure, NOW, TRENDING, 1.2)

        assert plan.stop_loss.price == pytest.approx(101.8)
        assert plan.take_profits[0].price == pytest.approx(96.4)


class TestTakeProfits:
    """Тесты целей"""

    def test_single_rr_target(self):
        targets = ExitConstructor().base_take_profits(ENTRY, SignalDirection.LONG, 1.5)

        assert len(targets) == 1
        assert targets[0].price == pytest.approx(103.0)
        assert targets[0].size_percent == 100.0
        assert targets[0].percent == pytest.approx(3.0)

    def test_ladder_when_rr_zero(self):
        constructor = ExitConstructor(take_profit=TakeProfitConfig(rr_ratio=0))

        targets = constructor.base_take_profits(ENTRY, SignalDirection.SHORT, 1.5)

        assert [tp.price for tp in targets] == pytest.approx([99.0, 98.0])
        assert [tp.size_percent for tp in targets] == [50, 50]

    def test_structure_targets(self):
        """Тест структурных целей перед уровнями сопротивления"""
        opposing = [level(101.0), level(102.0), level(99.0)]

        targets = ExitConstructor().structure_take_profits(ENTRY, SignalDirection.LONG, opposing)

        assert [tp.price for tp in targets] == pytest.approx([100.899, 101.898])
        assert [tp.size_percent for tp in targets] == [60.0, 40.0]

    def test_structure_single_target(self):
        constructor = ExitConstructor(take_profit=TakeProfitConfig(use_second_level_as_tp2=False))

        targets = constructor.structure_take_profits(ENTRY, SignalDirection.LONG, [level(101.0), level(102.0)])

        assert len(targets) == 1
        assert targets[0].size_percent == 100.0

    def test_structure_fallback(self):
        targets = ExitConstructor().structure_take_profits(ENTRY, SignalDirection.SHORT, [level(101.0)])

        assert targets[0].price == pytest.approx(98.0)

    def test_atr_targets_clamped(self):
        constructor = ExitConstructor()

        normal = constructor.atr_take_profits(ENTRY, SignalDirection.LONG, 1.0)
        quiet = constructor.atr_take_profits(ENTRY, SignalDirection.LONG, 0.2)

        assert [tp.price for tp in normal] == pytest.approx([101.5, 103.0])
        assert [tp.price for tp in quiet] == pytest.approx([100.5, 100.6])

    def test_session_multiplier(self):
        constructor = ExitConstructor()
        targets = constructor.base_take_profits(ENTRY, SignalDirection.LONG, 1.5)

        adjusted = constructor.apply_session(targets, ENTRY, SignalDirection.LONG, TradingSession.ASIAN)

        assert adjusted[0].price == pytest.approx(102.4)

    def test_flat_market_collapse(self):
        """Тест схлопывания лестницы во флэте"""
        constructor = ExitConstructor(take_profit=TakeProfitConfig(flat_market_enabled=True))
        targets = constructor.atr_take_profits(ENTRY, SignalDirection.LONG, 1.0)

        flat = constructor.collapse_flat_market(targets, EmaPair(100.1, 100.0))
        trending = constructor.collapse_flat_market(targets, TRENDING)

        assert len(flat) == 1
        assert flat[0].price == pytest.approx(101.5)
        assert flat[0].size_percent == 100.0
        assert trending is targets


class TestExitPlan:
    """Тесты полного плана выхода"""

    @pytest.fixture
    def structure(self):
        return StopLossStructure(levels=[level(99.0)], atr_absolute=1.0)

    def test_build_default(self, structure):
        constructor = ExitConstructor()

        plan = constructor.build(ENTRY, SignalDirection.LONG, level(99.0), structure, NOW, TRENDING, 1.0)

        assert plan.stop_loss.method == ExitMethod.LEVEL
        assert plan.stop_loss.price == pytest.approx(98.5)
        assert plan.take_profits[0].price == pytest.approx(103.0)
        assert plan.risk_reward == pytest.approx(2.0)
        assert plan.adjustments == []
        assert constructor.passes_rr_gate(plan)

    def test_rr_gate_blocks(self, structure):
        """Тест R:R фильтра"""
        constructor = ExitConstructor(take_profit=TakeProfitConfig(rr_ratio=1.0))

        plan = constructor.build(ENTRY, SignalDirection.LONG, level(99.0), structure, NOW, TRENDING, 1.0)

        assert plan.risk_reward == pytest.approx(1.0)
        assert not constructor.passes_rr_gate(plan)

    def test_rr_gate_disabled(self, structure):
        constructor = ExitConstructor(take_profit=TakeProfitConfig(rr_ratio=1.0, rr_gate_enabled=False))

        plan = constructor.build(ENTRY, SignalDirection.LONG, level(99.0), structure, NOW, TRENDING, 1.0)

        assert constructor.passes_rr_gate(plan)

    def test_structure_tp_takes_precedence_over_atr(self, structure):
        constructor = ExitConstructor(take_profit=TakeProfitConfig(structure_tp_enabled=True, atr_tp_enabled=True))

        plan = constructor.build(ENTRY, SignalDirection.LONG, level(99.0), structure, NOW, TRENDING, 1.0,
                                 opposing_levels=[level(101.0)])

        assert plan.adjustments == ["structure_tp"]
        assert plan.take_profits[0].price == pytest.approx(100.899)

    def test_session_adjustment_recorded(self, structure):
        constructor = ExitConstructor(take_profit=TakeProfitConfig(session_tp_enabled=True))

        plan = constructor.build(ENTRY, SignalDirection.LONG, level(99.0), structure, NOW, TRENDING, 1.0,
                                 session=TradingSession.OVERLAP)

        assert plan.adjustments == ["session_tp:OVERLAP"]
        assert plan.take_profits[0].price == pytest.approx(100.0 + 3.0 * 1.4)

    def test_breakout_plan(self):
        """Тест плана для пробойного входа"""
        plan = ExitConstructor().breakout(ENTRY, SignalDirection.LONG, 1.0)

        assert plan.stop_loss.price == pytest.approx(98.5)
        assert plan.take_profits[0].price == pytest.approx(103.0)
        assert plan.adjustments == ["breakout"]

    def test_breakout_default_rr(self):
        plan = ExitConstructor(take_profit=TakeProfitConfig(rr_ratio=0)).breakout(ENTRY, SignalDirection.SHORT, 1.0)

        assert plan.take_profits[0].price == pytest.approx(97.75)

    def test_negative_target_rejected(self):
        """Тест: отрицательная цена цели приводит к исключению"""
        with pytest.raises(SignalConstructionException):
            ExitConstructor().breakout(1.0, SignalDirection.SHORT, 1.0)

    def test_plan_to_dict(self, structure):
        plan = ExitConstructor().build(ENTRY, SignalDirection.LONG, level(99.0), structure, NOW, TRENDING, 1.0)

        data = plan.to_dict()

        assert data['direction'] == "LONG"
        assert data['stop_loss']['method'] == "LEVEL"
        assert data['risk_reward'] == pytest.approx(2.0)


class TestWhaleWalls:
    """Тесты корректировки по стенам стакана"""

    @pytest.fixture
    def constructor(self):
        return ExitConstructor(whale_wall=WhaleWallConfig(enabled=True))

    @pytest.fixture
    def orderbook(self):
        return OrderBookSnapshot(timestamp=NOW, walls=(
            OrderBookWall(WallSide.ASK, 102.0, 500.0, 12.0, 2.0),
            OrderBookWall(WallSide.BID, 99.0, 700.0, 15.0, -1.0),
        ))

    def test_scale_tp_and_protect_sl(self, constructor, orderbook):
        """Тест: цель переносится к блокирующей стене, стоп подтягивается за защитную"""
        structure = StopLossStructure(levels=[level(99.0)], atr_absolute=1.0)

        plan = constructor.build(ENTRY, SignalDirection.LONG, level(99.0), structure, NOW, TRENDING, 1.0,
                                 orderbook=orderbook)

        assert plan.take_profits[0].price == pytest.approx(102.0)
        assert plan.stop_loss.price == pytest.approx(98.901)
        assert plan.adjustments == ["wall_tp", "wall_sl"]

    def test_tp_aligned_to_nearby_wall(self, constructor):
        orderbook = OrderBookSnapshot(timestamp=NOW, walls=(OrderBookWall(WallSide.ASK, 101.6, 300.0, 10.0, 1.6),))

        result = constructor.wall_adjustment(orderbook, ENTRY, SignalDirection.LONG, 101.8, 98.5)

        assert result.tp_price == 101.6
        assert result.tp_reason == "Aligned to ASK wall (10.0%)"
        assert result.sl_price is None

    def test_small_walls_ignored(self, constructor):
        orderbook = OrderBookSnapshot(timestamp=NOW, walls=(OrderBookWall(WallSide.ASK, 102.0, 100.0, 4.0, 2.0),))

        result = constructor.wall_adjustment(orderbook, ENTRY, SignalDirection.LONG, 103.0, 98.5)

        assert result.qualified_walls == 0
        assert result.tp_price is None

    def test_registry_rejects_spoofing(self, constructor, orderbook):
        """Тест отказа от стены, помеченной как спуфинг"""
        registry = WallRegistry()
        registry.detect_wall(102.0, 500.0, WallSide.ASK, NOW - 2000)
        registry.remove_wall(102.0, WallSide.ASK, NOW - 1000)

        result = constructor.wall_adjustment(orderbook, ENTRY, SignalDirection.LONG, 103.0, 98.5, registry)

        assert registry.is_spoofing(102.0, WallSide.ASK)
        assert result.tp_price is None

    def test_registry_accepts_established_wall(self, constructor, orderbook):
        registry = WallRegistry()
        registry.detect_wall(102.0, 500.0, WallSide.ASK, NOW - 60_000)
        registry.detect_wall(102.0, 500.0, WallSide.ASK, NOW)

        result = constructor.wall_adjustment(orderbook, ENTRY, SignalDirection.LONG, 103.0, 98.5, registry)

        assert result.tp_price == 102.0
        # Untracked BID wall scores zero strength
        assert result.sl_price is None

    def test_wall_stop_not_tightened_below_minimum(self, constructor):
        """Тест: стоп за стеной не ставится ближе минимальной дистанции"""
        orderbook = OrderBookSnapshot(timestamp=NOW, walls=(OrderBookWall(WallSide.BID, 99.6, 700.0, 15.0, -0.4),))
        structure = StopLossStructure(levels=[level(99.0)], atr_absolute=1.0)

        result = constructor.wall_adjustment(orderbook, ENTRY, SignalDirection.LONG, 103.0, 98.5)
        plan = constructor.build(ENTRY, SignalDirection.LONG, level(99.0), structure, NOW, TRENDING, 1.0,
                                 orderbook=orderbook)

        assert result.qualified_walls == 1
        assert result.sl_price is None
        assert plan.stop_loss.price == pytest.approx(98.5)
        assert "wall_sl" not in plan.adjustments
