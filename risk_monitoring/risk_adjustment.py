"""
Dynamic risk adjustment for new trade sizing.

Turns the current market profile, recent signals, VIX and the user's risk
tolerance into multipliers a trade planner applies before opening a
position. Every adjustment appends a human-readable reason.

Usage:
    factors = calculate_risk_adjustments(settings, profile, recent_signals,
                                         RiskToleranceType.MODERATE, vix=28.0)
    size = base_size * factors.position_size_adjustment
    if factors.skip_trade_recommendation:
        ...
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Any, Dict, List, Optional, Sequence

from config.settings_schema import AITradingSettings
from risk_monitoring.types import (
    MarketRiskProfile,
    RiskSignal,
    RiskSignalDirection,
    RiskSignalStrength,
    RiskToleranceType,
)

logger = logging.getLogger(__name__)

MIN_POSITION_SIZE_ADJUSTMENT = 0.3
VIX_EXCESS_NORMALIZER = 50.0
RECENT_SIGNAL_WINDOW = timedelta(hours=24)
HIGH_COMPOSITE_RISK = 0.7
SKIP_TRADE_COMPOSITE_RISK = 0.85
HIGH_FACTOR_IMPACT = 0.7


@dataclass
class RiskAdjustmentFactors:
    """Multipliers (1.0 = no change) and recommendations for new trades."""
    position_size_adjustment: float = 1.0
    stop_loss_adjustment: float = 1.0
    take_profit_adjustment: float = 1.0
    delta_preference_shift: float = 0.0
    skip_trade_recommendation: bool = False
    hedging_recommendation: bool = False
    confidence: float = 0.5
    reasons: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "position_size_adjustment": round(self.position_size_adjustment, 4),
            "stop_loss_adjustment": round(self.stop_loss_adjustment, 4),
            "take_profit_adjustment": round(self.take_profit_adjustment, 4),
            "delta_preference_shift": self.delta_preference_shift,
            "skip_trade_recommendation": self.skip_trade_recommendation,
            "hedging_recommendation": self.hedging_recommendation,
            "confidence": self.confidence,
            "reasons": list(self.reasons),
        }


def recent_strong_bearish_signals(
    signals: Sequence[RiskSignal],
    now: datetime,
    window: timedelta = RECENT_SIGNAL_WINDOW,
) -> List[RiskSignal]:
    """Strong or extreme bearish signals no older than `window`."""
    return [
        s for s in signals
        if s.direction is RiskSignalDirection.BEARISH
        and s.strength in (RiskSignalStrength.STRONG, RiskSignalStrength.EXTREME)
        and now - s.timestamp <= window
    ]


def calculate_risk_adjustments(
    settings: AITradingSettings,
    profile: MarketRiskProfile,
    recent_signals: Sequence[RiskSignal],
    risk_tolerance: RiskToleranceType,
    volatility_index: float,
    now: Optional[datetime] = None,
) -> RiskAdjustmentFactors:
    """
    Calculate sizing adjustments for the current market.

    Args:
        settings: Pipeline settings (VIX threshold, condition overrides)
        profile: Current market risk profile
        recent_signals: Signals to scan for clustered bearish pressure
        risk_tolerance: User's risk tolerance
        volatility_index: Current VIX
        now: Reference time for the 24h signal window

    Returns:
        RiskAdjustmentFactors, position size never below 0.3
    """
    now = now or datetime.now()
    adj = RiskAdjustmentFactors()

    threshold = settings.volatility_threshold
    if volatility_index > threshold:
        adj.position_size_adjustment *= max(0.5, 1 - (volatility_index - threshold) / VIX_EXCESS_NORMALIZER)
        adj.stop_loss_adjustment *= 0.9
        adj.reasons.append(f"VIX at {volatility_index} exceeds threshold of {threshold}")

    override = settings.market_condition_overrides.get(profile.current_condition.value)
    if override is not None and override.enabled:
        adj.position_size_adjustment *= override.adjusted_risk
        if override.adjusted_risk < 0.8:
            adj.stop_loss_adjustment *= 0.9
        adj.reasons.append(f"{profile.current_condition.value} market condition (user preference)")

    if risk_tolerance is RiskToleranceType.CONSERVATIVE:
        adj.position_size_adjustment *= 0.8
        adj.take_profit_adjustment *= 0.9
        adj.delta_preference_shift = -0.05
        adj.reasons.append("Conservative risk profile")
    elif risk_tolerance is RiskToleranceType.AGGRESSIVE:
        adj.position_size_adjustment *= 1.2
        adj.take_profit_adjustment *= 1.1
        adj.delta_preference_shift = 0.05
        adj.reasons.append("Aggressive risk profile")

    bearish = recent_strong_bearish_signals(recent_signals, now)
    if len(bearish) >= 2:
        adj.position_size_adjustment *= 0.7
        adj.hedging_recommendation = True
        adj.reasons.append(f"{len(bearish)} strong bearish signals in last 24 hours")

    if profile.composite_risk_score > HIGH_COMPOSITE_RISK:
        adj.position_size_adjustment *= 0.8
        adj.skip_trade_recommendation = profile.composite_risk_score > SKIP_TRADE_COMPOSITE_RISK
        adj.reasons.append(f"High composite risk score: {profile.composite_risk_score * 100:.1f}%")

    for factor in profile.key_risk_factors:
        if factor.impact > HIGH_FACTOR_IMPACT:
            adj.position_size_adjustment *= max(0.7, 1 - factor.impact * 0.3)
            adj.reasons.append(f"{factor.source.value} risk factor: {factor.description}")

    adj.position_size_adjustment = max(MIN_POSITION_SIZE_ADJUSTMENT, adj.position_size_adjustment)

    logger.debug(f"Risk adjustments: size x{adj.position_size_adjustment:.2f}, {len(adj.reasons)} reason(s)")
    return adj
