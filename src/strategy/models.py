"""
Strategy Result Models
Level Signal Engine - signal and evaluation result types

Signals are the terminal output of an evaluation. Only the ``hit`` flags on
take-profit targets are expected to change afterwards, and that is done by
the execution layer.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from ..market.types import RejectionCode, SignalDirection

STRATEGY_NAME = "LevelBased"
STRATEGY_PRIORITY = 2


@dataclass
class TakeProfit:
    """One rung of the take-profit ladder"""
    level: int
    price: float
    size_percent: float
    percent: float
    hit: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return {
            'level': self.level,
            'price': self.price,
            'size_percent': self.size_percent,
            'percent': self.percent,
            'hit': self.hit
        }


@dataclass
class Signal:
    """Trade signal"""
    direction: SignalDirection
    confidence: float  # 0.3 to 1.0
    entry_price: float
    stop_loss: float
    take_profits: List[TakeProfit]
    reason: str
    timestamp: int
    stop_loss_method: Optional[str] = None
    metadata: Dict[str, Any] = field(default_factory=dict)

    @property
    def risk(self) -> float:
        return abs(self.entry_price - self.stop_loss)

    @property
    def risk_reward(self) -> Optional[float]:
        """Reward/risk of the first target"""
        if not self.take_profits or self.risk == 0:
            return None
        return abs(self.take_profits[0].price - self.entry_price) / self.risk

    def to_dict(self) -> Dict[str, Any]:
        return {
            'direction': self.direction.value,
            'confidence': self.confidence,
            'entry_price': self.entry_price,
            'stop_loss': self.stop_loss,
            'take_profits': [tp.to_dict() for tp in self.take_profits],
            'reason': self.reason,
            'timestamp': self.timestamp,
            'stop_loss_method': self.stop_loss_method,
            'risk_reward': self.risk_reward,
            'metadata': self.metadata
        }


@dataclass
class EvaluationResult:
    """
    Outcome of one ``evaluate`` call.

    ``valid`` is False with a ``rejection_code`` for every no-signal path;
    that is the expected majority case, not an error.
    """
    valid: bool
    reason: str
    signal: Optional[Signal] = None
    rejection_code: Optional[RejectionCode] = None
    filters_checked: List[str] = field(default_factory=list)
    strategy_name: str = STRATEGY_NAME
    priority: int = STRATEGY_PRIORITY
    details: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def rejected(
        cls,
        code: RejectionCode,
        reason: str,
        filters_checked: Optional[List[str]] = None,
        details: Optional[Dict[str, Any]] = None
    ) -> "EvaluationResult":
        return cls(
            valid=False,
            reason=reason,
            rejection_code=code,
            filters_checked=list(filters_checked or []),
            details=dict(details or {})
        )

    @classmethod
    def accepted(cls, signal: Signal, filters_checked: Optional[List[str]] = None) -> "EvaluationResult":
        return cls(valid=True, reason=signal.reason, signal=signal, filters_checked=list(filters_checked or []))

    def to_dict(self) -> Dict[str, Any]:
        return {
            'valid': self.valid,
            'strategy_name': self.strategy_name,
            'priority': self.priority,
            'reason': self.reason,
            'signal': self.signal.to_dict() if self.signal else None,
            'rejection_code': self.rejection_code.value if self.rejection_code else None,
            'filters_checked': self.filters_checked,
            'details': self.details
        }
