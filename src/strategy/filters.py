"""
Entry Filter Pipeline
Level Signal Engine - ordered veto rules applied to a selected level

The pipeline is a tuple of stage functions ``(FilterContext) ->
Optional[FilterResult]`` folded with short-circuit: the first stage that
returns a result blocks the entry. Stages record their name in
``filters_checked`` when they run, whether they block or not.

Candle confirmation and the higher-timeframe context trend are separate
checks run after the pipeline.
"""

from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple

from ..config.strategy_config import FilterConfig
from ..market.types import (
    Candle,
    EmaPair,
    MarketData,
    RejectionCode,
    SignalDirection,
    TrendBias,
)
from ..support_resistance.levels import Level
from ..support_resistance.selector import LevelSelector
from ..utils.helpers import PERCENT_MULTIPLIER, ema_gap_percent, safe_divide
from ..utils.logger import LoggerMixin

EXTREME_WICK_RATIO = 0.1

STRUCTURE_LOWER_HIGH = "LH"
STRUCTURE_HIGHER_LOW = "HL"


@dataclass
class FilterResult:
    """Outcome of the filter pipeline or a single blocking stage"""
    passed: bool
    blocked_by: Optional[RejectionCode] = None
    reason: Optional[str] = None
    details: Dict[str, Any] = field(default_factory=dict)
    filters_checked: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'passed': self.passed,
            'blocked_by': self.blocked_by.value if self.blocked_by else None,
            'reason': self.reason,
            'details': self.details,
            'filters_checked': self.filters_checked
        }


@dataclass
class FilterContext:
    """Inputs shared by all stages of one pipeline run"""
    direction: SignalDirection
    market: MarketData
    level: Level
    config: FilterConfig
    ema_gap_percent: float
    filters_checked: List[str] = field(default_factory=list)
    details: Dict[str, Any] = field(default_factory=dict)

    @property
    def ema(self) -> EmaPair:
        return self.market.ema

    @property
    def rsi(self) -> float:
        return self.market.rsi

    def block(self, code: RejectionCode, reason: str, **extra) -> FilterResult:
        details = dict(self.details)
        details.update(extra)
        return FilterResult(
            passed=False,
            blocked_by=code,
            reason=reason,
            details=details,
            filters_checked=list(self.filters_checked)
        )


FilterStage = Callable[[FilterContext], Optional[FilterResult]]


def is_trend_aligned(direction: SignalDirection, trend: TrendBias) -> bool:
    return (
        (direction == SignalDirection.LONG and trend == TrendBias.BULLISH) or
        (direction == SignalDirection.SHORT and trend == TrendBias.BEARISH)
    )


def trend_existence_stage(ctx: FilterContext) -> Optional[FilterResult]:
    """Flat markets (EMA gap below the floor) block unless the level is strong enough"""
    ctx.filters_checked.append("TREND_EXISTENCE")
    cfg = ctx.config

    bypassed = cfg.bypass_on_strong_level and ctx.level.strength >= cfg.strong_level_threshold
    significant = ctx.ema_gap_percent >= cfg.min_ema_gap_percent or bypassed

    ctx.details['has_significant_trend'] = significant
    ctx.details['bypassed_by_strong_level'] = bypassed and ctx.ema_gap_percent < cfg.min_ema_gap_percent

    if not significant:
        return ctx.block(
            RejectionCode.NO_SIGNIFICANT_TREND,
            f"Flat market - EMA gap {ctx.ema_gap_percent:.2f}% < {cfg.min_ema_gap_percent:g}%"
        )
    return None


def directional_trend_stage(ctx: FilterContext) -> Optional[FilterResult]:
    cfg = ctx.config
    ema, rsi = ctx.ema, ctx.rsi

    if ctx.direction == SignalDirection.LONG and cfg.block_long_in_downtrend:
        ctx.filters_checked.append("LONG_DOWNTREND")
        if LevelSelector.is_downtrend(ema, rsi):
            return ctx.block(
                RejectionCode.LONG_IN_DOWNTREND,
                f"LONG blocked in downtrend (EMA {ema.fast:.4f} < {ema.slow:.4f}, RSI {rsi:.1f})"
            )

    if ctx.direction == SignalDirection.SHORT and cfg.block_short_in_uptrend:
        ctx.filters_checked.append("SHORT_UPTREND")
        if LevelSelector.is_uptrend(ema, rsi):
            return ctx.block(
                RejectionCode.SHORT_IN_UPTREND,
                f"SHORT blocked in uptrend (EMA {ema.fast:.4f} > {ema.slow:.4f}, RSI {rsi:.1f})"
            )
    return None


def rsi_stage(ctx: FilterContext) -> Optional[FilterResult]:
    """Direction-specific RSI band, skipped in a strong trend when configured"""
    cfg = ctx.config
    if not cfg.rsi_filter_enabled:
        return None
    ctx.filters_checked.append("RSI_FILTER")

    if cfg.bypass_rsi_on_strong_trend and ctx.ema_gap_percent >= cfg.strong_trend_ema_gap_percent:
        ctx.details['rsi_bypassed_due_to_strong_trend'] = True
        return None

    rsi = ctx.rsi
    if ctx.direction == SignalDirection.LONG:
        bounds = (cfg.long_min_rsi, cfg.long_max_rsi)
        codes = (RejectionCode.LONG_RSI_TOO_LOW, RejectionCode.LONG_RSI_TOO_HIGH)
    else:
        bounds = (cfg.short_min_rsi, cfg.short_max_rsi)
        codes = (RejectionCode.SHORT_RSI_TOO_LOW, RejectionCode.SHORT_RSI_TOO_HIGH)

    if rsi < bounds[0]:
        return ctx.block(codes[0], f"RSI {rsi:.1f} < {bounds[0]:g}")
    if rsi > bounds[1]:
        return ctx.block(codes[1], f"RSI {rsi:.1f} > {bounds[1]:g}")
    return None


def ema_structure_stage(ctx: FilterContext) -> Optional[FilterResult]:
    """Strong downtrend signature blocks LONG; LH/HL market structure blocks against it"""
    cfg = ctx.config
    if not cfg.ema_structure_enabled:
        return None
    ctx.filters_checked.append("EMA_STRUCTURE")

    ema, rsi = ctx.ema, ctx.rsi
    ema_diff = safe_divide(ema.slow - ema.fast, ema.fast, default=0.0) * PERCENT_MULTIPLIER

    strong_downtrend = (
        ema.fast < ema.slow and
        rsi < cfg.downtrend_rsi_threshold and
        ema_diff > cfg.downtrend_ema_diff_threshold
    )
    if ctx.direction == SignalDirection.LONG and strong_downtrend:
        return ctx.block(
            RejectionCode.STRONG_DOWNTREND,
            f"Strong downtrend (EMA diff {ema_diff:.2f}%, RSI {rsi:.1f})",
            ema_diff=ema_diff
        )

    structure = ctx.market.market_structure
    if ctx.direction == SignalDirection.LONG and structure == STRUCTURE_LOWER_HIGH:
        return ctx.block(
            RejectionCode.BEARISH_MARKET_STRUCTURE,
            "Bearish structure (Lower High pattern)",
            market_structure=structure
        )
    if ctx.direction == SignalDirection.SHORT and structure == STRUCTURE_HIGHER_LOW:
        return ctx.block(
            RejectionCode.BULLISH_MARKET_STRUCTURE,
            "Bullish structure (Higher Low pattern)",
            market_structure=structure
        )
    return None


def trend_alignment_stage(ctx: FilterContext) -> Optional[FilterResult]:
    if not ctx.config.require_trend_alignment:
        return None
    ctx.filters_checked.append("TREND_ALIGNMENT")

    trend = ctx.market.trend
    if not is_trend_aligned(ctx.direction, trend):
        return ctx.block(
            RejectionCode.TREND_NOT_ALIGNED,
            f"{ctx.direction.value} not aligned with {trend.value} trend",
            trend=trend.value
        )
    return None


DEFAULT_STAGES: Tuple[FilterStage, ...] = (
    trend_existence_stage,
    directional_trend_stage,
    rsi_stage,
    ema_structure_stage,
    trend_alignment_stage,
)


class FilterPipeline(LoggerMixin):
    """
    Runs the veto stages in order and stops at the first block.

    Trend existence always runs; the other stages run only when their
    switches are on.
    """

    def __init__(self, config: Optional[FilterConfig] = None, stages: Optional[Sequence[FilterStage]] = None):
        super().__init__()
        self.config = config or FilterConfig()
        self.stages: Tuple[FilterStage, ...] = tuple(stages) if stages is not None else DEFAULT_STAGES

    def run(self, direction: SignalDirection, market: MarketData, level: Level) -> FilterResult:
        ema = market.ema
        gap = ema_gap_percent(ema.fast, ema.slow)
        ctx = FilterContext(
            direction=direction,
            market=market,
            level=level,
            config=self.config,
            ema_gap_percent=gap,
            details={
                'direction': direction.value,
                'level_price': level.price,
                'level_strength': level.strength,
                'ema_fast': ema.fast,
                'ema_slow': ema.slow,
                'rsi': market.rsi,
                'ema_diff_percent': gap
            }
        )

        for stage in self.stages:
            result = stage(ctx)
            if result is not None:
                return result

        self.logger.debug("Filter pipeline passed", filters_checked=ctx.filters_checked)
        return FilterResult(passed=True, details=ctx.details, filters_checked=list(ctx.filters_checked))


@dataclass
class CandleConfirmation:
    is_valid: bool
    reason: str
    details: Dict[str, Any] = field(default_factory=dict)


def check_candle_confirmation(candle: Candle, direction: SignalDirection, config: FilterConfig) -> CandleConfirmation:
    """
    Body/wick check on the most recent candle.

    LONG needs a green candle with a short upper wick, or a hammer (long lower
    wick, almost no upper wick). SHORT mirrors it with a red candle or a
    shooting star.
    """
    candle_range = (candle.high - candle.low) or 1.0
    upper_wick = candle.high - max(candle.open, candle.close)
    lower_wick = min(candle.open, candle.close) - candle.low
    body = abs(candle.close - candle.open)

    upper_ratio = upper_wick / candle_range
    lower_ratio = lower_wick / candle_range
    details = {
        'upper_wick_ratio': round(upper_ratio, 3),
        'lower_wick_ratio': round(lower_ratio, 3),
        'body_ratio': round(body / candle_range, 3)
    }

    if direction == SignalDirection.LONG:
        is_hammer = lower_ratio > config.hammer_wick_ratio and upper_ratio < EXTREME_WICK_RATIO
        is_bullish = candle.is_green and upper_ratio < config.long_wick_ratio_max
        details.update(is_green=candle.is_green, is_hammer=is_hammer, wick_ratio_max=config.long_wick_ratio_max)
        if is_bullish:
            return CandleConfirmation(True, "Bullish candle confirmed", details)
        if is_hammer:
            return CandleConfirmation(True, "Hammer pattern detected", details)
        return CandleConfirmation(False, "No bullish confirmation", details)

    is_shooting_star = upper_ratio > config.shooting_star_wick_ratio and lower_ratio < EXTREME_WICK_RATIO
    is_bearish = candle.is_red and lower_ratio < config.short_wick_ratio_max
    details.update(is_red=candle.is_red, is_shooting_star=is_shooting_star, wick_ratio_max=config.short_wick_ratio_max)
    if is_bearish:
        return CandleConfirmation(True, "Bearish candle confirmed", details)
    if is_shooting_star:
        return CandleConfirmation(True, "Shooting star detected", details)
    return CandleConfirmation(False, "No bearish confirmation", details)


def context_trend(ema_context: EmaPair, min_gap_percent: float) -> TrendBias:
    """Higher-timeframe trend from its EMA pair; NEUTRAL below the gap floor"""
    if ema_gap_percent(ema_context.fast, ema_context.slow) >= min_gap_percent:
        return TrendBias.BULLISH if ema_context.fast > ema_context.slow else TrendBias.BEARISH
    return TrendBias.NEUTRAL


def check_context_trend(
    direction: SignalDirection,
    ema_context: Optional[EmaPair],
    config: FilterConfig
) -> Optional[FilterResult]:
    """Block entries against the higher-timeframe trend; None when the entry may proceed"""
    if not config.context_trend_enabled or ema_context is None:
        return None

    trend = context_trend(ema_context, config.context_min_ema_gap_percent)
    opposed = (
        (direction == SignalDirection.LONG and trend == TrendBias.BEARISH) or
        (direction == SignalDirection.SHORT and trend == TrendBias.BULLISH)
    )
    if not opposed:
        return None

    return FilterResult(
        passed=False,
        blocked_by=RejectionCode.CONTEXT_TREND_OPPOSITE,
        reason=f"1h trend {trend.value} blocks {direction.value}",
        details={
            'context_trend': trend.value,
            'ema_gap_percent': ema_gap_percent(ema_context.fast, ema_context.slow)
        }
    )
