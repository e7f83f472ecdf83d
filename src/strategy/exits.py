"""
Exit Construction
Level Signal Engine - stop-loss and take-profit prices for an accepted entry

Stop loss comes either from the adaptive method chain (structure first,
ATR/percent last, emergency fallback when everything fails) or from the
legacy ATR stop. Take profits start from a single R:R target or the
configured ladder and then pass through the optional adjustments:

    structure TP | ATR TP -> session multiplier -> order-book walls -> flat-market collapse

The R:R gate is evaluated on the finished plan.
"""

import math
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Dict, List, Optional, Sequence

from ..config.strategy_config import (
    StopLossConfig,
    StopLossMode,
    TakeProfitConfig,
    WhaleWallConfig,
)
from ..market.types import (
    EmaPair,
    LiquiditySide,
    LiquidityZone,
    OrderBlock,
    OrderBookSnapshot,
    OrderBookWall,
    SignalDirection,
    WallSide,
)
from ..support_resistance.context import WallRegistry
from ..support_resistance.levels import Level
from ..support_resistance.swings import SwingPoint, SwingPointType
from ..utils.exceptions import SignalConstructionException
from ..utils.helpers import PERCENT_MULTIPLIER, clamp, ema_gap_percent, minutes_to_ms, percent_distance
from ..utils.logger import LoggerMixin
from .models import TakeProfit
from .sessions import TradingSession, session_sl_multiplier, session_tp_multiplier

MS_PER_HOUR = 60 * 60 * 1000

DEFAULT_BREAKOUT_RR = 1.5
STRUCTURE_TP_SIZES = (60.0, 40.0)
ATR_TP_SIZES = (60.0, 40.0)
FULL_SIZE = 100.0


class ExitMethod(str, Enum):
    SWEEP = "SWEEP"
    ORDER_BLOCK = "ORDER_BLOCK"
    SWING = "SWING"
    LEVEL = "LEVEL"
    ATR = "ATR"
    PERCENT = "PERCENT"


@dataclass
class ExitCalculation:
    """Stop-loss proposal"""
    method: ExitMethod
    price: float
    distance_percent: float
    reason: str
    structure_price: Optional[float] = None
    buffer: float = 0.0
    is_emergency: bool = False
    # distance the R:R targets are measured with, when not entry-to-stop
    target_distance: Optional[float] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            'method': self.method.value,
            'price': self.price,
            'distance_percent': self.distance_percent,
            'reason': self.reason,
            'structure_price': self.structure_price,
            'buffer': self.buffer,
            'is_emergency': self.is_emergency
        }


@dataclass
class StopLossStructure:
    """Market structure the stop-loss methods can anchor to"""
    liquidity_zones: Sequence[LiquidityZone] = ()
    order_blocks: Sequence[OrderBlock] = ()
    swing_points: Sequence[SwingPoint] = ()
    levels: Sequence[Level] = ()
    atr_absolute: Optional[float] = None


@dataclass
class ExitPlan:
    """Stop loss and take-profit ladder for one entry"""
    entry_price: float
    direction: SignalDirection
    stop_loss: ExitCalculation
    take_profits: List[TakeProfit]
    session: Optional[TradingSession] = None
    adjustments: List[str] = field(default_factory=list)

    @property
    def risk(self) -> float:
        return abs(self.entry_price - self.stop_loss.price)

    @property
    def risk_reward(self) -> Optional[float]:
        if not self.take_profits or self.risk <= 0:
            return None
        return abs(self.take_profits[0].price - self.entry_price) / self.risk

    def to_dict(self) -> Dict[str, Any]:
        return {
            'entry_price': self.entry_price,
            'direction': self.direction.value,
            'stop_loss': self.stop_loss.to_dict(),
            'take_profits': [tp.to_dict() for tp in self.take_profits],
            'session': self.session.value if self.session else None,
            'adjustments': self.adjustments,
            'risk_reward': self.risk_reward
        }


def _is_long(direction: SignalDirection) -> bool:
    return direction == SignalDirection.LONG


def _on_protective_side(price: float, entry: float, direction: SignalDirection) -> bool:
    """Below entry for LONG, above for SHORT"""
    return price < entry if _is_long(direction) else price > entry


def _offset(entry: float, distance: float, direction: SignalDirection, towards_stop: bool) -> float:
    """Move ``distance`` from ``entry`` towards the stop or towards the target"""
    down = _is_long(direction) == towards_stop
    return entry - distance if down else entry + distance


def _proposal(
    method: ExitMethod,
    entry: float,
    direction: SignalDirection,
    structure_price: float,
    buffer: float,
    reason: str
) -> ExitCalculation:
    price = _offset(structure_price, buffer, direction, towards_stop=True)
    return ExitCalculation(
        method=method,
        price=price,
        distance_percent=percent_distance(price, entry),
        reason=reason,
        structure_price=structure_price,
        buffer=buffer
    )


def sweep_stop(entry, direction, structure, timestamp, config, buffer) -> Optional[ExitCalculation]:
    """Most recently swept opposite-side liquidity pool inside the sweep window"""
    side = LiquiditySide.SELL_SIDE if _is_long(direction) else LiquiditySide.BUY_SIDE
    window_start = timestamp - minutes_to_ms(config.sweep_window_minutes)

    zones = [
        zone for zone in structure.liquidity_zones
        if zone.side == side
        and zone.sweep_count > 0
        and window_start <= zone.timestamp <= timestamp
        and _on_protective_side(zone.price, entry, direction)
    ]
    if not zones:
        return None

    zone = max(zones, key=lambda z: z.timestamp)
    return _proposal(ExitMethod.SWEEP, entry, direction, zone.price, buffer,
                     f"Beyond swept {side.value} liquidity at {zone.price:.4f}")


def order_block_stop(entry, direction, structure, timestamp, config, buffer) -> Optional[ExitCalculation]:
    """Strongest order block on the protective side within range"""
    blocks = [
        block for block in structure.order_blocks
        if _on_protective_side(block.price, entry, direction)
        and percent_distance(block.price, entry) <= config.max_order_block_distance_percent
    ]
    if not blocks:
        return None

    block = max(blocks, key=lambda b: b.strength)
    return _proposal(ExitMethod.ORDER_BLOCK, entry, direction, block.price, buffer,
                     f"Beyond order block at {block.price:.4f} (strength {block.strength:.2f})")


def swing_stop(entry, direction, structure, timestamp, config, buffer) -> Optional[ExitCalculation]:
    """Nearest recent swing low (LONG) or swing high (SHORT)"""
    kind = SwingPointType.LOW if _is_long(direction) else SwingPointType.HIGH
    since = timestamp - config.swing_lookback_hours * MS_PER_HOUR

    swings = [
        point for point in structure.swing_points
        if point.type == kind
        and point.timestamp >= since
        and _on_protective_side(point.price, entry, direction)
        and percent_distance(point.price, entry) <= config.max_swing_distance_percent
    ]
    if not swings:
        return None

    point = min(swings, key=lambda p: abs(entry - p.price))
    return _proposal(ExitMethod.SWING, entry, direction, point.price, buffer,
                     f"Beyond swing {kind.value.lower()} at {point.price:.4f}")


def level_stop(entry, direction, structure, timestamp, config, buffer) -> Optional[ExitCalculation]:
    """
    Level with the best strength per unit of distance.

    The best level is picked first; a best level beyond
    ``max_level_distance_percent`` yields nothing, whatever the runners-up are.
    """
    candidates = [
        level for level in structure.levels
        if level.touches >= config.level_min_touches
        and level.strength >= config.level_min_strength
        and _on_protective_side(level.price, entry, direction)
    ]
    if not candidates:
        return None

    level = max(candidates, key=lambda l: l.strength / percent_distance(l.price, entry))
    if percent_distance(level.price, entry) > config.max_level_distance_percent:
        return None
    return _proposal(ExitMethod.LEVEL, entry, direction, level.price, buffer,
                     f"Beyond level {level.price:.4f} ({level.touches}T, str:{level.strength:.2f})")


def atr_stop(entry, direction, structure, timestamp, config, buffer) -> Optional[ExitCalculation]:
    atr = structure.atr_absolute
    if not atr or atr <= 0:
        return None

    distance = atr * config.buffer_multiplier * config.atr_stop_multiplier
    price = _offset(entry, distance, direction, towards_stop=True)
    return ExitCalculation(
        method=ExitMethod.ATR,
        price=price,
        distance_percent=percent_distance(price, entry),
        reason=f"ATR stop ({config.buffer_multiplier:g} x {config.atr_stop_multiplier:g} ATR)"
    )


def percent_stop(entry, direction, structure, timestamp, config, buffer) -> Optional[ExitCalculation]:
    distance = entry * config.fallback_percent / PERCENT_MULTIPLIER
    price = _offset(entry, distance, direction, towards_stop=True)
    return ExitCalculation(
        method=ExitMethod.PERCENT,
        price=price,
        distance_percent=config.fallback_percent,
        reason=f"Fixed {config.fallback_percent:g}% stop"
    )


StopLossMethod = Callable[..., Optional[ExitCalculation]]

STOP_LOSS_METHODS: Dict[ExitMethod, StopLossMethod] = {
    ExitMethod.SWEEP: sweep_stop,
    ExitMethod.ORDER_BLOCK: order_block_stop,
    ExitMethod.SWING: swing_stop,
    ExitMethod.LEVEL: level_stop,
    ExitMethod.ATR: atr_stop,
    ExitMethod.PERCENT: percent_stop,
}


class StopLossChain(LoggerMixin):
    """
    Adaptive stop loss: try each method in priority order.

    A proposal whose distance falls outside
    [min_distance_percent, max_distance_percent] advances the chain. When no
    method yields an admissible stop the emergency fallback at
    ``fallback_percent`` is returned with ``is_emergency`` set.
    """

    def __init__(self, config: Optional[StopLossConfig] = None):
        super().__init__()
        self.config = config or StopLossConfig()

    def buffer(self, entry: float, atr_absolute: Optional[float]) -> float:
        """Distance placed beyond the anchoring structure"""
        low = entry * self.config.buffer_min_percent / PERCENT_MULTIPLIER
        high = entry * self.config.buffer_max_percent / PERCENT_MULTIPLIER
        if not atr_absolute or atr_absolute <= 0:
            return low
        return clamp(atr_absolute * self.config.buffer_multiplier, low, high)

    def calculate(
        self,
        entry: float,
        direction: SignalDirection,
        structure: StopLossStructure,
        timestamp: int
    ) -> ExitCalculation:
        cfg = self.config
        buffer = self.buffer(entry, structure.atr_absolute)

        for name in cfg.priority:
            method = ExitMethod(name)
            proposal = STOP_LOSS_METHODS[method](entry, direction, structure, timestamp, cfg, buffer)
            if proposal is None:
                continue

            if not (cfg.min_distance_percent <= proposal.distance_percent <= cfg.max_distance_percent):
                self.logger.debug(
                    "Stop-loss proposal out of range",
                    method=method.value,
                    distance_percent=round(proposal.distance_percent, 3),
                    min_percent=cfg.min_distance_percent,
                    max_percent=cfg.max_distance_percent
                )
                continue

            self.logger.debug("Stop-loss method selected", method=method.value, price=proposal.price)
            return proposal

        distance = entry * cfg.fallback_percent / PERCENT_MULTIPLIER
        price = _offset(entry, distance, direction, towards_stop=True)
        self.logger.warning(
            "All stop-loss methods failed, using emergency fallback",
            direction=direction.value,
            fallback_percent=cfg.fallback_percent
        )
        return ExitCalculation(
            method=ExitMethod.PERCENT,
            price=price,
            distance_percent=cfg.fallback_percent,
            reason=f"Emergency fallback {cfg.fallback_percent:g}%",
            is_emergency=True
        )


def legacy_atr_stop(
    entry: float,
    direction: SignalDirection,
    atr_absolute: float,
    config: StopLossConfig,
    anchor_price: Optional[float] = None,
    session: Optional[TradingSession] = None
) -> ExitCalculation:
    """
    ATR stop anchored at the level (or entry).

    distance = max(atr * multiplier, min_sl_distance_percent of entry), widened
    by the session multiplier when session stops are enabled.
    """
    multiplier = config.stop_loss_atr_multiplier
    if _is_long(direction) and config.stop_loss_atr_multiplier_long is not None:
        multiplier = config.stop_loss_atr_multiplier_long

    min_distance = entry * config.min_sl_distance_percent / PERCENT_MULTIPLIER
    distance = max(atr_absolute * multiplier, min_distance)
    if config.session_sl_enabled and session is not None:
        distance *= session_sl_multiplier(session, config)

    anchor = anchor_price if (config.anchor_to_level and anchor_price is not None) else entry
    price = _offset(anchor, distance, direction, towards_stop=True)
    return ExitCalculation(
        method=ExitMethod.ATR,
        price=price,
        distance_percent=percent_distance(price, entry),
        reason=f"ATR stop {multiplier:g}x from {'level' if anchor != entry else 'entry'}",
        structure_price=anchor if anchor != entry else None,
        target_distance=distance
    )


@dataclass
class WallAdjustment:
    """Order-book wall changes to the first target and the stop"""
    tp_price: Optional[float] = None
    tp_wall: Optional[OrderBookWall] = None
    tp_reason: Optional[str] = None
    sl_price: Optional[float] = None
    sl_wall: Optional[OrderBookWall] = None
    sl_reason: Optional[str] = None
    walls_analyzed: int = 0
    qualified_walls: int = 0


class ExitConstructor(LoggerMixin):
    """Builds the full exit plan for an accepted entry"""

    def __init__(
        self,
        stop_loss: Optional[StopLossConfig] = None,
        take_profit: Optional[TakeProfitConfig] = None,
        whale_wall: Optional[WhaleWallConfig] = None
    ):
        super().__init__()
        self.stop_loss_config = stop_loss or StopLossConfig()
        self.take_profit_config = take_profit or TakeProfitConfig()
        self.whale_wall_config = whale_wall or WhaleWallConfig()
        self.chain = StopLossChain(self.stop_loss_config)

    # === Stop loss ===

    def stop_loss(
        self,
        entry: float,
        direction: SignalDirection,
        level: Optional[Level],
        structure: StopLossStructure,
        timestamp: int,
        session: Optional[TradingSession] = None
    ) -> ExitCalculation:
        if self.stop_loss_config.mode == StopLossMode.ATR:
            return legacy_atr_stop(
                entry, direction, structure.atr_absolute or 0.0, self.stop_loss_config,
                anchor_price=level.price if level is not None else None,
                session=session
            )
        return self.chain.calculate(entry, direction, structure, timestamp)

    # === Take profits ===

    def _target(self, level: int, entry: float, distance: float, direction: SignalDirection,
                size_percent: float) -> TakeProfit:
        return TakeProfit(
            level=level,
            price=_offset(entry, distance, direction, towards_stop=False),
            size_percent=size_percent,
            percent=distance / entry * PERCENT_MULTIPLIER
        )

    def base_take_profits(self, entry: float, direction: SignalDirection, sl_distance: float) -> List[TakeProfit]:
        """Single target at rr_ratio x risk, or the configured ladder when rr_ratio is 0"""
        cfg = self.take_profit_config
        if cfg.rr_ratio > 0:
            return [self._target(1, entry, cfg.rr_ratio * sl_distance, direction, FULL_SIZE)]
        return [
            self._target(target.level, entry, entry * target.percent / PERCENT_MULTIPLIER, direction,
                         target.size_percent)
            for target in cfg.targets
        ]

    def structure_take_profits(
        self,
        entry: float,
        direction: SignalDirection,
        opposing_levels: Sequence[Level]
    ) -> List[TakeProfit]:
        """Targets just before the next opposing levels; fallback percent when none lie ahead"""
        cfg = self.take_profit_config
        ahead = sorted(
            (level for level in opposing_levels if not _on_protective_side(level.price, entry, direction)
             and level.price != entry),
            key=lambda level: abs(level.price - entry)
        )
        if not ahead:
            distance = entry * cfg.structure_tp_fallback_percent / PERCENT_MULTIPLIER
            return [self._target(1, entry, distance, direction, FULL_SIZE)]

        offset = cfg.structure_tp_offset_percent / PERCENT_MULTIPLIER
        chosen = ahead[:2] if cfg.use_second_level_as_tp2 else ahead[:1]
        sizes = STRUCTURE_TP_SIZES if len(chosen) == 2 else (FULL_SIZE,)

        targets = []
        for index, (level, size) in enumerate(zip(chosen, sizes), start=1):
            price = level.price * (1 - offset) if _is_long(direction) else level.price * (1 + offset)
            distance = abs(price - entry)
            targets.append(self._target(index, entry, distance, direction, size))
        return targets

    def atr_take_profits(self, entry: float, direction: SignalDirection, atr_percent: float) -> List[TakeProfit]:
        cfg = self.take_profit_config
        percents = (
            clamp(atr_percent * cfg.tp1_atr_multiplier, cfg.min_tp_percent, cfg.max_tp_percent),
            clamp(atr_percent * cfg.tp2_atr_multiplier, cfg.min_tp_percent, cfg.max_tp_percent),
        )
        return [
            self._target(index, entry, entry * pct / PERCENT_MULTIPLIER, direction, size)
            for index, (pct, size) in enumerate(zip(percents, ATR_TP_SIZES), start=1)
        ]

    def apply_session(
        self,
        take_profits: List[TakeProfit],
        entry: float,
        direction: SignalDirection,
        session: TradingSession
    ) -> List[TakeProfit]:
        multiplier = session_tp_multiplier(session, self.take_profit_config)
        return [
            self._target(tp.level, entry, abs(tp.price - entry) * multiplier, direction, tp.size_percent)
            for tp in take_profits
        ]

    def collapse_flat_market(self, take_profits: List[TakeProfit], ema: EmaPair) -> List[TakeProfit]:
        """Single full-size target at TP1 when the EMA gap says the market is flat"""
        cfg = self.take_profit_config
        if not cfg.flat_market_enabled or not take_profits:
            return take_profits
        if ema_gap_percent(ema.fast, ema.slow) >= cfg.flat_market_ema_gap_percent:
            return take_profits
        first = take_profits[0]
        return [TakeProfit(level=1, price=first.price, size_percent=FULL_SIZE, percent=first.percent)]

    # === Order-book walls ===

    def _qualified_walls(
        self,
        orderbook: OrderBookSnapshot,
        entry: float,
        direction: SignalDirection,
        registry: Optional[WallRegistry]
    ) -> List[OrderBookWall]:
        cfg = self.whale_wall_config
        relevant = []
        for wall in orderbook.walls:
            if wall.percent_of_total < cfg.min_wall_percent:
                continue
            distance = abs(wall.distance_percent)
            if distance > cfg.max_distance_percent or distance < cfg.min_distance_percent:
                continue

            target_side = WallSide.ASK if _is_long(direction) else WallSide.BID
            is_target = wall.side == target_side and not _on_protective_side(wall.price, entry, direction)
            is_protection = wall.side != target_side and _on_protective_side(wall.price, entry, direction)
            if is_target or is_protection:
                relevant.append(wall)

        if registry is None:
            return relevant

        qualified = []
        for wall in relevant:
            if cfg.reject_spoofing and registry.is_spoofing(wall.price, wall.side):
                self.logger.debug("Wall rejected as spoofing", price=wall.price, side=wall.side.value)
                continue
            strength = registry.wall_strength(wall.price, wall.side, orderbook.timestamp)
            if strength < cfg.min_wall_strength:
                self.logger.debug("Wall rejected for low strength", price=wall.price, strength=round(strength, 2))
                continue
            qualified.append(wall)
        return qualified

    def wall_adjustment(
        self,
        orderbook: OrderBookSnapshot,
        entry: float,
        direction: SignalDirection,
        tp_price: float,
        sl_price: float,
        registry: Optional[WallRegistry] = None
    ) -> WallAdjustment:
        """
        Align the first target with a blocking wall and tighten the stop behind
        a protecting one.
        """
        cfg = self.whale_wall_config
        walls = self._qualified_walls(orderbook, entry, direction, registry)
        result = WallAdjustment(walls_analyzed=len(orderbook.walls), qualified_walls=len(walls))
        is_long = _is_long(direction)

        if cfg.tp_targeting_enabled:
            target_side = WallSide.ASK if is_long else WallSide.BID
            targets = sorted(
                (w for w in walls if w.side == target_side and w.percent_of_total >= cfg.min_wall_size_for_tp),
                key=lambda w: abs(w.price - entry)
            )
            if targets:
                wall = targets[0]
                between = entry < wall.price < tp_price if is_long else tp_price < wall.price < entry
                if percent_distance(wall.price, tp_price) <= cfg.tp_alignment_percent:
                    result.tp_price, result.tp_wall = wall.price, wall
                    result.tp_reason = f"Aligned to {wall.side.value} wall ({wall.percent_of_total:.1f}%)"
                elif between and cfg.scale_to_wall:
                    result.tp_price, result.tp_wall = wall.price, wall
                    result.tp_reason = f"Scaled to blocking {wall.side.value} wall ({wall.percent_of_total:.1f}%)"

        if cfg.sl_protection_enabled:
            protect_side = WallSide.BID if is_long else WallSide.ASK
            protectors = sorted(
                (w for w in walls if w.side == protect_side and w.percent_of_total >= cfg.min_wall_size_for_sl),
                key=lambda w: abs(w.price - entry)
            )
            if protectors:
                wall = protectors[0]
                protects = sl_price < wall.price < entry if is_long else entry < wall.price < sl_price
                if protects:
                    buffer = wall.price * cfg.sl_buffer_percent / PERCENT_MULTIPLIER
                    adjusted = wall.price - buffer if is_long else wall.price + buffer
                    tighter = adjusted > sl_price if is_long else adjusted < sl_price
                    wide_enough = percent_distance(adjusted, entry) >= self.stop_loss_config.min_distance_percent
                    if tighter and wide_enough:
                        result.sl_price, result.sl_wall = adjusted, wall
                        result.sl_reason = f"Protected by {wall.side.value} wall ({wall.percent_of_total:.1f}%)"

        if result.tp_price is not None or result.sl_price is not None:
            self.logger.info(
                "Whale wall adjustment",
                tp_change=f"{tp_price:.4f} -> {result.tp_price:.4f}" if result.tp_price is not None else None,
                sl_change=f"{sl_price:.4f} -> {result.sl_price:.4f}" if result.sl_price is not None else None
            )
        return result

    # === Plans ===

    def _guard_zero_distance(self, stop: ExitCalculation, entry: float, direction: SignalDirection) -> ExitCalculation:
        if abs(entry - stop.price) > 0 and math.isfinite(stop.price):
            return stop
        distance = entry * self.stop_loss_config.min_sl_distance_percent / PERCENT_MULTIPLIER
        price = _offset(entry, distance, direction, towards_stop=True)
        self.logger.warning("Zero stop-loss distance floored", entry=entry, min_percent=distance)
        return ExitCalculation(
            method=stop.method,
            price=price,
            distance_percent=self.stop_loss_config.min_sl_distance_percent,
            reason=f"{stop.reason} (floored to minimum distance)",
            structure_price=stop.structure_price,
            buffer=stop.buffer,
            is_emergency=stop.is_emergency
        )

    @staticmethod
    def _validate(plan: ExitPlan):
        prices = [plan.stop_loss.price] + [tp.price for tp in plan.take_profits]
        if not plan.take_profits or any(not math.isfinite(p) or p <= 0 for p in prices):
            raise SignalConstructionException(
                "Exit prices must be positive and finite",
                direction=plan.direction.value,
                entry_price=plan.entry_price,
                stage="exits"
            )

    def build(
        self,
        entry: float,
        direction: SignalDirection,
        level: Optional[Level],
        structure: StopLossStructure,
        timestamp: int,
        ema: EmaPair,
        atr_percent: float,
        opposing_levels: Sequence[Level] = (),
        orderbook: Optional[OrderBookSnapshot] = None,
        registry: Optional[WallRegistry] = None,
        session: Optional[TradingSession] = None
    ) -> ExitPlan:
        """
        Stop loss, take profits and all enabled adjustments.

        Args:
            entry: Entry price
            direction: Trade direction
            level: Entry level (stop anchor in ATR mode)
            structure: Structure for the adaptive stop-loss chain
            timestamp: Evaluation timestamp (ms)
            ema: Fast/slow EMA pair, used for the flat-market collapse
            atr_percent: ATR% for ATR-based targets
            opposing_levels: Levels ahead of the entry for structure targets
            orderbook: Order-book walls for wall alignment
            registry: Wall registry used to validate wall quality
            session: Trading session of the evaluation timestamp

        Returns:
            ExitPlan
        """
        tp_cfg = self.take_profit_config
        adjustments: List[str] = []

        stop = self._guard_zero_distance(
            self.stop_loss(entry, direction, level, structure, timestamp, session), entry, direction
        )
        sl_distance = stop.target_distance if stop.target_distance is not None else abs(entry - stop.price)

        take_profits = self.base_take_profits(entry, direction, sl_distance)
        if tp_cfg.structure_tp_enabled:
            take_profits = self.structure_take_profits(entry, direction, opposing_levels)
            adjustments.append("structure_tp")
        elif tp_cfg.atr_tp_enabled and atr_percent > 0:
            take_profits = self.atr_take_profits(entry, direction, atr_percent)
            adjustments.append("atr_tp")

        if tp_cfg.session_tp_enabled and session is not None:
            take_profits = self.apply_session(take_profits, entry, direction, session)
            adjustments.append(f"session_tp:{session.value}")

        if self.whale_wall_config.enabled and orderbook is not None and take_profits:
            walls = self.wall_adjustment(orderbook, entry, direction, take_profits[0].price, stop.price, registry)
            if walls.tp_price is not None:
                first = take_profits[0]
                take_profits[0] = TakeProfit(
                    level=first.level,
                    price=walls.tp_price,
                    size_percent=first.size_percent,
                    percent=percent_distance(walls.tp_price, entry)
                )
                adjustments.append("wall_tp")
            if walls.sl_price is not None:
                stop = ExitCalculation(
                    method=stop.method,
                    price=walls.sl_price,
                    distance_percent=percent_distance(walls.sl_price, entry),
                    reason=f"{stop.reason}; {walls.sl_reason}",
                    structure_price=walls.sl_wall.price,
                    buffer=abs(walls.sl_wall.price - walls.sl_price),
                    is_emergency=stop.is_emergency
                )
                adjustments.append("wall_sl")

        collapsed = self.collapse_flat_market(take_profits, ema)
        if collapsed is not take_profits:
            adjustments.append("flat_market")
        take_profits = collapsed

        plan = ExitPlan(entry, direction, stop, take_profits, session, adjustments)
        self._validate(plan)
        return plan

    def breakout(self, entry: float, direction: SignalDirection, atr_absolute: float,
                 session: Optional[TradingSession] = None) -> ExitPlan:
        """ATR stop from entry and a single R:R target; no structure involved"""
        sl_cfg = self.stop_loss_config
        rr = self.take_profit_config.rr_ratio or DEFAULT_BREAKOUT_RR

        sl_distance = max(atr_absolute * sl_cfg.stop_loss_atr_multiplier,
                          entry * sl_cfg.min_sl_distance_percent / PERCENT_MULTIPLIER)
        price = _offset(entry, sl_distance, direction, towards_stop=True)
        stop = ExitCalculation(
            method=ExitMethod.ATR,
            price=price,
            distance_percent=percent_distance(price, entry),
            reason=f"Breakout ATR stop {sl_cfg.stop_loss_atr_multiplier:g}x"
        )
        plan = ExitPlan(
            entry, direction, stop,
            [self._target(1, entry, rr * sl_distance, direction, FULL_SIZE)],
            session, ["breakout"]
        )
        self._validate(plan)
        return plan

    def passes_rr_gate(self, plan: ExitPlan) -> bool:
        """Reward/risk of the first target must reach ``min_rr``"""
        cfg = self.take_profit_config
        if not cfg.rr_gate_enabled:
            return True
        rr = plan.risk_reward
        if rr is None or rr < cfg.min_rr:
            self.logger.info(
                "R:R gate blocked",
                risk_reward=round(rr, 3) if rr is not None else None,
                min_rr=cfg.min_rr,
                direction=plan.direction.value
            )
            return False
        return True
