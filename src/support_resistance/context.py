"""
Per-Symbol Context
Level Signal Engine - caller-owned tracking state for one instrument

Holds the order-book wall registry (lifetime, spoofing, iceberg refills) and
the last level snapshot. One context per symbol; the strategy reads it during
an evaluation and never shares it across symbols.
"""

import logging
from collections import deque
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Deque, Dict, List, Optional, Tuple

from ..config.strategy_config import WallTrackingConfig
from ..market.types import OrderBookSnapshot, WallSide
from .levels import LevelSet

LIFETIME_SCORE_MAX = 0.4
SIZE_STABILITY_SCORE_MAX = 0.3
ICEBERG_BONUS_SCORE = 0.3
PRICE_KEY_DECIMALS = 8


class WallEventType(str, Enum):
    ADDED = "ADDED"
    ABSORBED = "ABSORBED"
    REFILLED = "REFILLED"
    REMOVED = "REMOVED"


@dataclass
class WallEvent:
    """Change observed on a tracked wall"""
    timestamp: int
    type: WallEventType
    price: float
    size: float
    side: WallSide
    reason: Optional[str] = None


@dataclass
class WallLifetime:
    """Tracked wall with its history"""
    price: float
    side: WallSide
    first_seen: int
    last_seen: int
    max_size: float
    current_size: float
    events: List[WallEvent] = field(default_factory=list)
    is_spoofing: bool = False
    is_iceberg: bool = False
    absorbed_volume: float = 0.0

    @property
    def refill_count(self) -> int:
        return sum(1 for event in self.events if event.type == WallEventType.REFILLED)

    def lifetime_ms(self, now: Optional[int] = None) -> int:
        return (now if now is not None else self.last_seen) - self.first_seen


class WallRegistry:
    """
    Lifetime tracking of order-book walls for one symbol.

    Timestamps always come from the caller (snapshot time), never the clock.
    A wall removed sooner than ``spoofing_threshold_ms`` after it appeared is
    spoofing and is remembered for ``spoof_memory_ms`` so later queries at the
    same price still report it.
    """

    def __init__(self, config: Optional[WallTrackingConfig] = None):
        self.config = config or WallTrackingConfig()
        self.logger = logging.getLogger("WallRegistry")

        self._active: Dict[str, WallLifetime] = {}
        self._spoofed: Dict[str, Tuple[int, WallLifetime]] = {}
        self._history: Deque[WallEvent] = deque(maxlen=self.config.max_history)

    @staticmethod
    def _key(side: WallSide, price: float) -> str:
        return f"{WallSide(side).value}_{round(float(price), PRICE_KEY_DECIMALS)}"

    def observe(self, snapshot: OrderBookSnapshot):
        """Sync tracked walls with a snapshot: add/update present ones, remove missing ones"""
        if not self.config.enabled:
            return

        seen = set()
        for wall in snapshot.walls:
            seen.add(self._key(wall.side, wall.price))
            self.detect_wall(wall.price, wall.size, wall.side, snapshot.timestamp)

        for key, wall in list(self._active.items()):
            if key not in seen:
                self.remove_wall(wall.price, wall.side, snapshot.timestamp)

        self._forget_spoofed(snapshot.timestamp)

    def detect_wall(self, price: float, size: float, side: WallSide, timestamp: int):
        if not self.config.enabled:
            return

        side = WallSide(side)
        key = self._key(side, price)
        existing = self._active.get(key)

        if existing is None:
            event = WallEvent(timestamp, WallEventType.ADDED, price, size, side)
            self._active[key] = WallLifetime(
                price=price,
                side=side,
                first_seen=timestamp,
                last_seen=timestamp,
                max_size=size,
                current_size=size,
                events=[event]
            )
            self._spoofed.pop(key, None)
            self._history.append(event)
            return

        self._update_wall(existing, size, timestamp)

    def remove_wall(self, price: float, side: WallSide, timestamp: int):
        if not self.config.enabled:
            return

        side = WallSide(side)
        key = self._key(side, price)
        wall = self._active.pop(key, None)
        if wall is None:
            return

        if timestamp - wall.first_seen < self.config.spoofing_threshold_ms:
            wall.is_spoofing = True
            self._spoofed[key] = (timestamp, wall)
            self.logger.debug(f"Spoofing: {side.value} wall at {price} lived {timestamp - wall.first_seen}ms")

        event = WallEvent(
            timestamp, WallEventType.REMOVED, price, wall.current_size, side,
            reason='spoofing' if wall.is_spoofing else 'filled_or_cancelled'
        )
        wall.events.append(event)
        self._history.append(event)

    def _update_wall(self, wall: WallLifetime, new_size: float, timestamp: int):
        wall.last_seen = timestamp

        if new_size < wall.current_size:
            absorbed = wall.current_size - new_size
            wall.absorbed_volume += absorbed
            event = WallEvent(timestamp, WallEventType.ABSORBED, wall.price, absorbed, wall.side)
            wall.events.append(event)
            self._history.append(event)

        elif new_size > wall.current_size:
            event = WallEvent(timestamp, WallEventType.REFILLED, wall.price, new_size - wall.current_size, wall.side)
            wall.events.append(event)
            self._history.append(event)

            if not wall.is_iceberg and wall.refill_count >= self.config.iceberg_refill_count:
                wall.is_iceberg = True
                self.logger.debug(f"Iceberg: {wall.side.value} wall at {wall.price} ({wall.refill_count} refills)")

        wall.current_size = new_size
        wall.max_size = max(wall.max_size, new_size)

    def _forget_spoofed(self, now: int):
        expired = [key for key, (removed_at, _) in self._spoofed.items()
                   if now - removed_at > self.config.spoof_memory_ms]
        for key in expired:
            del self._spoofed[key]

    def get_wall(self, price: float, side: WallSide) -> Optional[WallLifetime]:
        key = self._key(side, price)
        wall = self._active.get(key)
        if wall is None and key in self._spoofed:
            return self._spoofed[key][1]
        return wall

    def is_tracked(self, price: float, side: WallSide) -> bool:
        return self.get_wall(price, side) is not None

    def is_spoofing(self, price: float, side: WallSide) -> bool:
        wall = self.get_wall(price, side)
        return wall.is_spoofing if wall else False

    def is_iceberg(self, price: float, side: WallSide) -> bool:
        wall = self.get_wall(price, side)
        return wall.is_iceberg if wall else False

    def is_wall_real(self, price: float, side: WallSide, now: Optional[int] = None) -> bool:
        """Lived at least ``min_lifetime_ms`` and never flagged as spoofing"""
        wall = self.get_wall(price, side)
        if wall is None:
            return False
        return wall.lifetime_ms(now) >= self.config.min_lifetime_ms and not wall.is_spoofing

    def wall_strength(self, price: float, side: WallSide, now: Optional[int] = None) -> float:
        """
        Wall quality score in [0, 1].

        Lifetime (up to 0.4), size stability current/max (up to 0.3) and an
        iceberg bonus (0.3). Spoofing walls score 0.
        """
        wall = self.get_wall(price, side)
        if wall is None or wall.is_spoofing:
            return 0.0

        lifetime_ratio = min(wall.lifetime_ms(now) / self.config.min_lifetime_ms, 1.0)
        stability = wall.current_size / wall.max_size if wall.max_size > 0 else 0.0

        strength = lifetime_ratio * LIFETIME_SCORE_MAX + stability * SIZE_STABILITY_SCORE_MAX
        if wall.is_iceberg:
            strength += ICEBERG_BONUS_SCORE
        return min(strength, 1.0)

    @property
    def active_walls(self) -> List[WallLifetime]:
        return list(self._active.values())

    @property
    def history(self) -> List[WallEvent]:
        return list(self._history)

    def clear(self):
        self._active.clear()
        self._spoofed.clear()
        self._history.clear()


@dataclass
class SymbolContext:
    """
    Mutable tracking state for one symbol, owned by the caller.

    Pass the same context to every evaluation of its symbol; use a separate
    one per symbol.
    """
    symbol: str
    walls: WallRegistry = field(default_factory=WallRegistry)
    last_levels: Optional[LevelSet] = None
    last_levels_timestamp: Optional[int] = None
    evaluations: int = 0
    detections: int = 0
    total_detection_time_ms: float = 0.0

    @classmethod
    def create(cls, symbol: str, wall_config: Optional[WallTrackingConfig] = None) -> "SymbolContext":
        return cls(symbol=symbol, walls=WallRegistry(wall_config))

    def record_levels(self, levels: LevelSet, timestamp: int, detection_time_ms: float = 0.0):
        self.last_levels = levels
        self.last_levels_timestamp = timestamp
        self.detections += 1
        self.total_detection_time_ms += detection_time_ms

    def get_statistics(self) -> Dict[str, Any]:
        return {
            'symbol': self.symbol,
            'evaluations': self.evaluations,
            'active_walls': len(self.walls.active_walls),
            'support_levels': len(self.last_levels.support) if self.last_levels else 0,
            'resistance_levels': len(self.last_levels.resistance) if self.last_levels else 0,
            'last_levels_timestamp': self.last_levels_timestamp,
            'detections': self.detections,
            'avg_detection_time_ms': (
                self.total_detection_time_ms / self.detections if self.detections > 0 else 0.0
            )
        }
