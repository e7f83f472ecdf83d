"""
Tests for volatility regimes and trading sessions.
"""

import pytest

from src.config.strategy_config import RegimeConfig, StopLossConfig, TakeProfitConfig
from src.strategy.regime import VolatilityRegime, VolatilityRegimeClassifier
from src.strategy.sessions import (
    TradingSession,
    session_for_timestamp,
    session_sl_multiplier,
    session_tp_multiplier,
)

MIDNIGHT_UTC_S = 1_699_920_000  # 2023-11-14 00:00 UTC


def at_hour(hour: int, minute: int = 0) -> int:
    return (MIDNIGHT_UTC_S + hour * 3600 + minute * 60) * 1000


class TestVolatilityRegime:
    """Тесты классификатора режимов волатильности"""

    @pytest.mark.parametrize("atr,expected", [
        (0.2, VolatilityRegime.LOW),
        (0.3, VolatilityRegime.MEDIUM),
        (1.0, VolatilityRegime.MEDIUM),
        (1.5, VolatilityRegime.MEDIUM),
        (2.0, VolatilityRegime.HIGH),
    ])
    def test_thresholds(self, atr, expected):
        assert VolatilityRegimeClassifier().classify(atr).regime == expected

    def test_regime_params(self):
        analysis = VolatilityRegimeClassifier().classify(1.0)

        assert analysis.params.max_distance_percent == 0.6
        assert analysis.params.min_touches_required == 3
        assert analysis.params.min_confidence_threshold == 0.55
        assert analysis.reason == "MEDIUM volatility (ATR 1.00% in 0.3-1.5%)"

    def test_classify_does_not_change_state(self):
        """Тест: classify только читает состояние"""
        classifier = VolatilityRegimeClassifier()

        classifier.classify(2.0)

        assert classifier.last_regime == VolatilityRegime.MEDIUM
        assert classifier.regime_change_count == 0

    def test_update_remembers_regime(self):
        classifier = VolatilityRegimeClassifier()

        classifier.update(2.0)
        classifier.update(2.5)
        classifier.update(0.1)

        assert classifier.last_regime == VolatilityRegime.LOW
        assert classifier.regime_change_count == 2

        classifier.reset()
        assert classifier.last_regime == VolatilityRegime.MEDIUM
        assert classifier.regime_change_count == 0

    def test_hysteresis(self):
        """Тест гистерезиса: выход из режима требует пересечения порога с запасом"""
        classifier = VolatilityRegimeClassifier(RegimeConfig(hysteresis_enabled=True, hysteresis_buffer=0.1))

        assert classifier.update(0.28).regime == VolatilityRegime.MEDIUM
        assert classifier.update(0.25).regime == VolatilityRegime.LOW
        assert classifier.update(0.32).regime == VolatilityRegime.LOW
        assert classifier.update(0.35).regime == VolatilityRegime.MEDIUM

    def test_disabled(self):
        classifier = VolatilityRegimeClassifier(RegimeConfig(enabled=False))

        analysis = classifier.update(5.0)

        assert analysis.regime == VolatilityRegime.MEDIUM
        assert analysis.reason == "Volatility regime detection disabled"
        assert classifier.regime_change_count == 0

    def test_to_dict(self):
        data = VolatilityRegimeClassifier().classify(0.1).to_dict()

        assert data['regime'] == "LOW"
        assert data['params']['min_touches_required'] == 4


class TestTradingSessions:
    """Тесты торговых сессий по UTC"""

    @pytest.mark.parametrize("hour,expected", [
        (3, TradingSession.ASIAN),
        (8, TradingSession.LONDON),
        (12, TradingSession.LONDON),
        (13, TradingSession.OVERLAP),
        (15, TradingSession.OVERLAP),
        (16, TradingSession.NY),
        (20, TradingSession.NY),
        (21, TradingSession.ASIAN),
        (23, TradingSession.ASIAN),
    ])
    def test_session_for_timestamp(self, hour, expected):
        assert session_for_timestamp(at_hour(hour, 30)) == expected

    def test_multipliers(self):
        sl_config = StopLossConfig()
        tp_config = TakeProfitConfig()

        assert session_sl_multiplier(TradingSession.OVERLAP, sl_config) == 1.8
        assert session_sl_multiplier(TradingSession.ASIAN, sl_config) == 1.0
        assert session_tp_multiplier(TradingSession.ASIAN, tp_config) == 0.8
        assert session_tp_multiplier(TradingSession.NY, tp_config) == 1.2
