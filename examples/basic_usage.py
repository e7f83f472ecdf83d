"""
Basic usage example for the Level Signal Engine.

This example demonstrates the fundamental workflow:
1. Candle window and indicator preparation
2. Strategy configuration
3. Signal evaluation with per-symbol context
4. Volatility regime tracking across candles
"""

import numpy as np
import pandas as pd

from src.config.strategy_config import StrategyConfig
from src.market.types import EmaPair, IndicatorSnapshot, MarketData, OrderBookSnapshot
from src.strategy.level_strategy import LevelBasedStrategy
from src.strategy.regime import VolatilityRegimeClassifier
from src.support_resistance.context import SymbolContext
from src.utils.logger import LogFormat, LogLevel, configure_logging

START_TS = 1_700_000_000_000
MINUTE_MS = 60_000


def generate_sample_candles(periods: int = 6) -> pd.DataFrame:
    """Generate a ranging one-minute window bouncing between ~95 and ~105"""
    print("📊 Generating sample candle window...")

    np.random.seed(42)
    cycle = [100, 98, 96, 95, 96, 98, 100, 102, 104, 105, 104, 102]
    closes = np.array(cycle * periods + [100, 98, 96.5, 95.6], dtype=float)
    closes[:-1] += np.random.randn(len(closes) - 1) * 0.05

    opens = closes - 0.05
    df = pd.DataFrame({
        'timestamp': START_TS + np.arange(len(closes)) * MINUTE_MS,
        'open': opens,
        'high': np.maximum(opens, closes) + 0.02,
        'low': np.minimum(opens, closes) - 0.1,
        'close': closes,
        'volume': np.random.uniform(800, 1200, len(closes))
    })

    print(f"✅ Generated {len(df)} candles, close range {df['close'].min():.2f} - {df['close'].max():.2f}")
    return df


def build_market(candles: pd.DataFrame, atr_percent: float = 1.0) -> MarketData:
    price = float(candles['close'].iloc[-1])
    timestamp = int(candles['timestamp'].iloc[-1])
    orderbook = OrderBookSnapshot.from_levels(
        bids=[(95.0, 900.0), (94.5, 120.0), (94.0, 80.0)],
        asks=[(96.0, 100.0), (97.0, 90.0), (105.0, 700.0)],
        current_price=price,
        timestamp=timestamp
    )
    return MarketData(
        timestamp=timestamp,
        current_price=price,
        candles=candles,
        indicators=IndicatorSnapshot(rsi=55.0, atr_percent=atr_percent, ema=EmaPair(fast=97.0, slow=96.0)),
        symbol="BTCUSDT",
        orderbook=orderbook
    )


def basic_evaluation_example():
    """Evaluate a single window with the default configuration"""
    print("\n🎯 Basic Signal Evaluation Example")
    print("=" * 50)

    candles = generate_sample_candles()
    market = build_market(candles)

    strategy = LevelBasedStrategy(StrategyConfig(), symbol="BTCUSDT", timeframe="1m")
    context = SymbolContext.create("BTCUSDT")

    result = strategy.evaluate(market, context=context)

    if result.valid:
        signal = result.signal
        print(f"✅ {signal.direction.value} signal: {signal.reason}")
        print(f"Entry: {signal.entry_price:.4f}")
        print(f"Stop loss: {signal.stop_loss:.4f} ({signal.stop_loss_method})")
        for tp in signal.take_profits:
            print(f"TP{tp.level}: {tp.price:.4f} ({tp.size_percent:.0f}%)")
        print(f"Confidence: {signal.confidence:.1%}, R:R {signal.risk_reward:.2f}")
    else:
        print(f"❌ Rejected [{result.rejection_code.value}]: {result.reason}")

    print(f"Filters checked: {result.filters_checked}")
    print(f"Context: {context.get_statistics()}")
    return result


def weighted_confidence_example():
    """Same window scored with the weight matrix, structure targets and wall-aware exits"""
    print("\n⚖️  Weighted Confidence Example")
    print("=" * 50)

    config = StrategyConfig(
        confidence={"mode": "weighted", "min_confidence_threshold": 0.4},
        take_profit={"structure_tp_enabled": True},
        whale_wall={"enabled": True}
    )
    strategy = LevelBasedStrategy(config, symbol="BTCUSDT")
    result = strategy.evaluate(build_market(generate_sample_candles()))

    print(f"Valid: {result.valid}")
    print(f"Reason: {result.reason}")
    if result.valid:
        print(f"Confidence breakdown: {result.signal.metadata['confidence']}")
    return result


def regime_tracking_example():
    """Feed ATR readings to the regime classifier between evaluations"""
    print("\n🌡️  Volatility Regime Example")
    print("=" * 50)

    classifier = VolatilityRegimeClassifier()
    strategy = LevelBasedStrategy(regime_classifier=classifier, symbol="BTCUSDT")
    candles = generate_sample_candles()

    for atr_percent in (0.2, 0.8, 1.9):
        analysis = classifier.update(atr_percent)
        result = strategy.evaluate(build_market(candles, atr_percent=atr_percent))
        status = "signal" if result.valid else result.rejection_code.value
        print(f"ATR {atr_percent:.1f}% -> {analysis.regime.value}: {status}")

    print(f"Regime changes: {classifier.regime_change_count}")


def main():
    configure_logging(level=LogLevel.WARNING, format_type=LogFormat.TEXT)

    basic_evaluation_example()
    weighted_confidence_example()
    regime_tracking_example()

    print("\n🎉 Examples completed!")


if __name__ == "__main__":
    main()
