"""
Unit tests for risk_monitoring/risk_adjustment.py.
"""
from datetime import timedelta

import pytest

from config.settings_schema import AITradingSettings, MarketConditionOverride
from risk_monitoring.risk_adjustment import calculate_risk_adjustments
from risk_monitoring.types import (
    MarketCondition,
    MarketRiskProfile,
    RiskFactor,
    RiskSignalDirection,
    RiskSignalSource,
    RiskSignalStrength,
    RiskToleranceType,
)
from tests.fixtures import NOW, make_signal


def profile(condition=MarketCondition.NEUTRAL, composite=0.3, factors=()):
    return MarketRiskProfile(
        current_condition=condition,
        volatility_level=0.4,
        sentiment_score=0.0,
        market_trend_strength=0.2,
        market_trend_direction=RiskSignalDirection.NEUTRAL,
        key_risk_factors=factors,
        composite_risk_score=composite,
    )


def adjust(settings=None, prof=None, signals=(), tolerance=RiskToleranceType.MODERATE, vix=18.0):
    return calculate_risk_adjustments(
        settings or AITradingSettings(), prof or profile(), list(signals), tolerance, vix, now=NOW,
    )


class TestRiskAdjustments:
    def test_calm_market_is_unchanged(self):
        adj = adjust()
        assert adj.position_size_adjustment == 1.0
        assert adj.stop_loss_adjustment == 1.0
        assert adj.take_profit_adjustment == 1.0
        assert adj.reasons == []
        assert adj.skip_trade_recommendation is False
        assert adj.hedging_recommendation is False

    def test_vix_above_threshold(self):
        adj = adjust(vix=35.0)
        assert adj.position_size_adjustment == pytest.approx(0.8)
        assert adj.stop_loss_adjustment == pytest.approx(0.9)

    def test_vix_reduction_capped_at_half(self):
        assert adjust(vix=80.0).position_size_adjustment == pytest.approx(0.5)

    def test_enabled_condition_override(self):
        settings = AITradingSettings(market_condition_overrides={
            "volatile": MarketConditionOverride(enabled=True, adjusted_risk=0.7),
        })
        adj = adjust(settings, profile(MarketCondition.VOLATILE))
        assert adj.position_size_adjustment == pytest.approx(0.7)
        assert adj.stop_loss_adjustment == pytest.approx(0.9)
        assert "volatile market condition (user preference)" in adj.reasons

    def test_disabled_override_ignored(self):
        settings = AITradingSettings(market_condition_overrides={
            "bearish": {"enabled": False, "adjusted_risk": 0.5},
        })
        assert adjust(settings, profile(MarketCondition.BEARISH)).position_size_adjustment == 1.0

    @pytest.mark.parametrize("tolerance,size,take_profit,delta", [
        (RiskToleranceType.CONSERVATIVE, 0.8, 0.9, -0.05),
        (RiskToleranceType.MODERATE, 1.0, 1.0, 0.0),
        (RiskToleranceType.AGGRESSIVE, 1.2, 1.1, 0.05),
    ])
    def test_risk_tolerance(self, tolerance, size, take_profit, delta):
        adj = adjust(tolerance=tolerance)
        assert adj.position_size_adjustment == pytest.approx(size)
        assert adj.take_profit_adjustment == pytest.approx(take_profit)
        assert adj.delta_preference_shift == delta

    def test_clustered_bearish_signals_recommend_hedge(self):
        signals = [
            make_signal(strength=RiskSignalStrength.STRONG, timestamp=NOW - timedelta(hours=2)),
            make_signal(RiskSignalSource.VOLATILITY, RiskSignalStrength.EXTREME,
                        timestamp=NOW - timedelta(hours=20)),
        ]
        adj = adjust(signals=signals)
        assert adj.hedging_recommendation is True
        assert adj.position_size_adjustment == pytest.approx(0.7)

    def test_old_or_weak_signals_ignored(self):
        signals = [
            make_signal(strength=RiskSignalStrength.STRONG, timestamp=NOW - timedelta(hours=30)),
            make_signal(strength=RiskSignalStrength.MODERATE, timestamp=NOW),
            make_signal(strength=RiskSignalStrength.STRONG, direction=RiskSignalDirection.BULLISH),
            make_signal(strength=RiskSignalStrength.EXTREME, timestamp=NOW),
        ]
        assert adjust(signals=signals).hedging_recommendation is False

    def test_composite_risk(self):
        high = adjust(prof=profile(composite=0.75))
        extreme = adjust(prof=profile(composite=0.9))
        assert high.position_size_adjustment == pytest.approx(0.8)
        assert high.skip_trade_recommendation is False
        assert extreme.skip_trade_recommendation is True

    def test_high_impact_factors(self):
        factors = (
            RiskFactor(RiskSignalSource.VOLATILITY, 0.9, "High market volatility"),
            RiskFactor(RiskSignalSource.MOMENTUM, 0.5, "Overbought conditions"),
        )
        adj = adjust(prof=profile(factors=factors))
        assert adj.position_size_adjustment == pytest.approx(0.73)
        assert any("volatility risk factor" in r for r in adj.reasons)

    def test_size_floor(self):
        settings = AITradingSettings(market_condition_overrides={
            "volatile": {"enabled": True, "adjusted_risk": 0.2},
        })
        signals = [make_signal(strength=RiskSignalStrength.EXTREME) for _ in range(3)]
        adj = adjust(settings, profile(MarketCondition.VOLATILE, composite=0.95), signals,
                     RiskToleranceType.CONSERVATIVE, vix=60.0)
        assert adj.position_size_adjustment == 0.3
        assert adj.skip_trade_recommendation is True

    def test_to_dict(self):
        data = adjust(vix=35.0).to_dict()
        assert data["position_size_adjustment"] == pytest.approx(0.8)
        assert data["reasons"] == ["VIX at 35.0 exceeds threshold of 25.0"]
