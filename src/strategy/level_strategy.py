"""
Level-Based Strategy
Level Signal Engine - one synchronous evaluation from market data to signal

Pipeline:

    validate -> regime -> swings/levels -> selection | breakout -> filters
    -> candle confirmation -> context trend -> confidence -> exits -> R:R gate

Every no-signal path returns an ``EvaluationResult`` with a rejection code.
Only malformed input raises.
"""

import time
from typing import Any, Dict, List, Optional

import pandas as pd

from ..config.strategy_config import StrategyConfig
from ..market.types import Candle, MarketData, RejectionCode, SignalDirection
from ..support_resistance.context import SymbolContext
from ..support_resistance.detector import DetectionResult, LevelDetector
from ..support_resistance.levels import Level, TrendContext
from ..support_resistance.selector import BreakoutCandidate, LevelSelection, LevelSelector
from ..utils.exceptions import InvalidDataException
from ..utils.helpers import parse_timeframe_to_minutes, validate_candle_frame
from ..utils.logger import LoggerMixin, get_symbol_logger, log_performance_metrics
from .confidence import ConfidenceScorer, below_threshold_reason, clamp_confidence
from .exits import ExitConstructor, ExitPlan, StopLossStructure
from .filters import FilterPipeline, check_candle_confirmation, check_context_trend
from .models import STRATEGY_NAME, STRATEGY_PRIORITY, EvaluationResult, Signal
from .regime import RegimeAnalysis, VolatilityRegimeClassifier
from .sessions import session_for_timestamp

RR_GATE_REASON = "R:R Gate blocked - risk/reward ratio too low"
NOT_ENOUGH_SWINGS_REASON = "Not enough swing points for level detection"


class LevelBasedStrategy(LoggerMixin):
    """
    Support/resistance entry strategy.

    The strategy itself keeps no state between evaluations. Volatility regime
    memory lives in the caller-owned ``regime_classifier`` (consulted
    read-only), order-book wall history in the caller-owned ``SymbolContext``
    passed to ``evaluate``.

    Example:
        >>> strategy = LevelBasedStrategy(StrategyConfig(), symbol="BTCUSDT")
        >>> result = strategy.evaluate(market, context=SymbolContext.create("BTCUSDT"))
        >>> if result.valid:
        ...     print(result.signal.to_dict())
    """

    name = STRATEGY_NAME
    priority = STRATEGY_PRIORITY

    def __init__(
        self,
        config: Optional[StrategyConfig] = None,
        regime_classifier: Optional[VolatilityRegimeClassifier] = None,
        symbol: str = "",
        timeframe: Optional[str] = None
    ):
        super().__init__()
        self.config = config or StrategyConfig()
        self.regime_classifier = regime_classifier
        self.symbol = symbol
        self.timeframe = timeframe

        cluster_config = self.config.cluster
        if timeframe is not None:
            # level age filter counts candles of the primary timeframe
            cluster_config = cluster_config.model_copy(
                update={'candle_interval_minutes': parse_timeframe_to_minutes(timeframe)}
            )

        self.detector = LevelDetector(symbol, self.config.swing.depth, cluster_config)
        self.selector = LevelSelector(self.config.selection, self.config.filters, self.detector.builder)
        self.filters = FilterPipeline(self.config.filters)
        self.scorer = ConfidenceScorer(self.config.confidence, self.config.weights, self.detector)
        self.exits = ExitConstructor(self.config.stop_loss, self.config.take_profit, self.config.whale_wall)

        self.set_log_context(strategy=STRATEGY_NAME, symbol=symbol or None)

    # === Public API ===

    def evaluate(self, market: MarketData, context: Optional[SymbolContext] = None) -> EvaluationResult:
        """
        Evaluate one candle window.

        Args:
            market: Market data for a single symbol
            context: Per-symbol tracking state (wall registry, last levels)

        Returns:
            EvaluationResult; ``valid`` only when a signal was built

        Raises:
            InvalidDataException: Empty window, non-monotonic timestamps or
                inconsistent OHLC values
        """
        start_time = time.perf_counter()
        log = get_symbol_logger(market.symbol or self.symbol or "UNKNOWN", self.timeframe, STRATEGY_NAME)

        frame = self._validate(market)
        regime = self._regime(market)
        if context is not None:
            context.evaluations += 1
            if market.orderbook is not None:
                context.walls.observe(market.orderbook)

        result = self._evaluate(market, frame, regime, context, log)

        log_performance_metrics(
            log, "evaluate", time.perf_counter() - start_time,
            additional_metrics={
                'valid': result.valid,
                'rejection_code': result.rejection_code.value if result.rejection_code else None
            }
        )
        return result

    # === Pipeline ===

    def _evaluate(
        self,
        market: MarketData,
        frame: pd.DataFrame,
        regime: Optional[RegimeAnalysis],
        context: Optional[SymbolContext],
        log
    ) -> EvaluationResult:
        params = regime.params if regime is not None else None
        ema = market.ema

        detection = self.detector.detect(
            frame,
            market.timestamp,
            atr_percent=market.atr_percent,
            trend=TrendContext.from_ema(ema.fast, ema.slow),
            orderbook=market.orderbook,
            cluster_threshold_percent=params.cluster_threshold_percent if params else None
        )
        if context is not None:
            context.record_levels(detection.levels, market.timestamp, detection.detection_time_ms)

        if not detection.has_enough_swings:
            return self._reject(
                log, RejectionCode.NOT_ENOUGH_SWING_POINTS, NOT_ENOUGH_SWINGS_REASON,
                details={
                    'swing_highs': len(detection.swing_highs),
                    'swing_lows': len(detection.swing_lows)
                }
            )

        selection = self.selector.select(
            market.current_price,
            detection.levels,
            ema,
            market.rsi,
            market.atr_percent,
            max_distance_percent=params.max_distance_percent if params else None,
            min_touches=params.min_touches_required if params else None
        )
        log.debug("Level selection", **self._selection_log(selection))

        if not selection.found:
            if selection.rejection_code == RejectionCode.NO_LEVELS_WITHIN_DISTANCE:
                candidate = self.selector.breakout(
                    ema, market.rsi, market.atr_percent, self.config.confidence.base_confidence
                )
                if candidate is not None:
                    return self._breakout_signal(market, candidate, regime, log)
            return self._reject(log, selection.rejection_code, selection.reason, details=selection.details)

        direction, level = selection.direction, selection.level

        filter_result = self.filters.run(direction, market, level)
        filters_checked: List[str] = list(filter_result.filters_checked)
        if not filter_result.passed:
            return self._reject(log, filter_result.blocked_by, filter_result.reason, filters_checked,
                                filter_result.details)

        if self.config.filters.entry_confirmation_enabled:
            filters_checked.append("ENTRY_CONFIRMATION")
            confirmation = check_candle_confirmation(self._last_candle(frame), direction, self.config.filters)
            if not confirmation.is_valid:
                code = (RejectionCode.NO_LONG_CONFIRMATION if direction == SignalDirection.LONG
                        else RejectionCode.NO_SHORT_CONFIRMATION)
                return self._reject(
                    log, code, f"{direction.value} entry not confirmed: {confirmation.reason}",
                    filters_checked, confirmation.details
                )

        if self.config.filters.context_trend_enabled and market.ema_context is not None:
            filters_checked.append("CONTEXT_TREND")
            blocked = check_context_trend(direction, market.ema_context, self.config.filters)
            if blocked is not None:
                return self._reject(log, blocked.blocked_by, blocked.reason, filters_checked, blocked.details)

        scored = self.scorer.score(market, level, direction)
        min_confidence = (params.min_confidence_threshold if params
                          else self.config.confidence.min_confidence_threshold)
        low_reason = below_threshold_reason(scored.confidence, min_confidence)
        if low_reason is not None:
            return self._reject(
                log, RejectionCode.CONFIDENCE_TOO_LOW, low_reason, filters_checked,
                {'confidence': scored.confidence, 'min_confidence': min_confidence}
            )

        plan = self._build_exits(market, detection, direction, level, context)
        if not self.exits.passes_rr_gate(plan):
            return self._reject(
                log, RejectionCode.RR_GATE_BLOCKED, RR_GATE_REASON, filters_checked,
                {'risk_reward': plan.risk_reward, 'min_rr': self.config.take_profit.min_rr}
            )

        signal = Signal(
            direction=direction,
            confidence=scored.confidence,
            entry_price=market.current_price,
            stop_loss=plan.stop_loss.price,
            take_profits=plan.take_profits,
            reason=selection.reason + scored.reason_suffix,
            timestamp=market.timestamp,
            stop_loss_method=plan.stop_loss.method.value,
            metadata={
                'level': level.to_dict(),
                'trend': selection.trend.value if selection.trend else None,
                'regime': regime.to_dict() if regime is not None else None,
                'confidence': scored.to_dict(),
                'exits': plan.to_dict(),
                'filters': filter_result.details
            }
        )
        log.info(
            "Signal generated",
            direction=direction.value,
            confidence=round(signal.confidence, 3),
            entry_price=signal.entry_price,
            stop_loss=signal.stop_loss,
            take_profits=[tp.price for tp in signal.take_profits],
            stop_loss_method=signal.stop_loss_method
        )
        return EvaluationResult.accepted(signal, filters_checked)

    def _build_exits(
        self,
        market: MarketData,
        detection: DetectionResult,
        direction: SignalDirection,
        level: Level,
        context: Optional[SymbolContext]
    ) -> ExitPlan:
        is_long = direction == SignalDirection.LONG
        levels = detection.levels
        structure = StopLossStructure(
            liquidity_zones=market.liquidity_zones,
            order_blocks=market.order_blocks,
            swing_points=detection.swing_points,
            levels=levels.support if is_long else levels.resistance,
            atr_absolute=market.atr_absolute
        )
        return self.exits.build(
            market.current_price,
            direction,
            level,
            structure,
            market.timestamp,
            ema=market.ema,
            atr_percent=market.atr_percent,
            opposing_levels=levels.resistance if is_long else levels.support,
            orderbook=market.orderbook,
            registry=context.walls if context is not None else None,
            session=session_for_timestamp(market.timestamp)
        )

    def _breakout_signal(
        self,
        market: MarketData,
        candidate: BreakoutCandidate,
        regime: Optional[RegimeAnalysis],
        log
    ) -> EvaluationResult:
        """Breakout entries skip the filter pipeline and the R:R gate"""
        plan = self.exits.breakout(
            market.current_price, candidate.direction, market.atr_absolute,
            session_for_timestamp(market.timestamp)
        )
        signal = Signal(
            direction=candidate.direction,
            confidence=clamp_confidence(candidate.confidence),
            entry_price=market.current_price,
            stop_loss=plan.stop_loss.price,
            take_profits=plan.take_profits,
            reason=candidate.reason,
            timestamp=market.timestamp,
            stop_loss_method=plan.stop_loss.method.value,
            metadata={
                'breakout': True,
                'ema_gap_percent': candidate.ema_gap_percent,
                'regime': regime.to_dict() if regime is not None else None,
                'exits': plan.to_dict()
            }
        )
        log.info(
            "Breakout signal generated",
            direction=candidate.direction.value,
            confidence=round(signal.confidence, 3),
            entry_price=signal.entry_price,
            stop_loss=signal.stop_loss
        )
        return EvaluationResult.accepted(signal, ["BREAKOUT"])

    # === Helpers ===

    def _validate(self, market: MarketData) -> pd.DataFrame:
        frame = market.candle_frame()
        if frame.empty:
            raise InvalidDataException(
                "Candle window is empty",
                data_info={'symbol': market.symbol, 'timestamp': market.timestamp}
            )
        validate_candle_frame(frame)
        return frame

    def _regime(self, market: MarketData) -> Optional[RegimeAnalysis]:
        if self.regime_classifier is None:
            return None
        return self.regime_classifier.classify(market.atr_percent)

    @staticmethod
    def _last_candle(frame: pd.DataFrame) -> Candle:
        row = frame.iloc[-1]
        return Candle(
            timestamp=int(row['timestamp']),
            open=float(row['open']),
            high=float(row['high']),
            low=float(row['low']),
            close=float(row['close']),
            volume=float(row['volume'])
        )

    @staticmethod
    def _selection_log(selection: LevelSelection) -> Dict[str, Any]:
        return {
            'direction': selection.direction.value if selection.direction else None,
            'level_price': selection.level.price if selection.level else None,
            'trend': selection.trend.value if selection.trend else None,
            'nearest_support': selection.nearest_support.price if selection.nearest_support else None,
            'nearest_resistance': selection.nearest_resistance.price if selection.nearest_resistance else None
        }

    @staticmethod
    def _reject(
        log,
        code: RejectionCode,
        reason: str,
        filters_checked: Optional[List[str]] = None,
        details: Optional[Dict[str, Any]] = None
    ) -> EvaluationResult:
        log.info("Entry rejected", blocked_by=code.value, reason=reason)
        return EvaluationResult.rejected(code, reason, filters_checked, details)
