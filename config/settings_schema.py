"""
Typed Settings Schema (Pydantic)
================================

Typed, validated settings for the risk monitoring pipeline.

Usage:
    from config.settings_schema import load_validated_settings

    settings = load_validated_settings()
    if settings.consider_fed_meetings:
        ...
"""
from __future__ import annotations

import logging
from typing import Any, Dict, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from config.settings_loader import get_risk_monitoring_section
from core.exceptions import SettingsValidationError

logger = logging.getLogger(__name__)


# ============================================================================
# Schema Definitions
# ============================================================================

class MarketConditionOverride(BaseModel):
    """User override of position risk for one market condition."""
    enabled: bool = False
    adjusted_risk: float = Field(default=1.0, ge=0, le=1.0, description="1 = full risk")


class LearningConfig(BaseModel):
    """Thresholds for letting learned insights override the decision table."""
    min_insight_confidence: float = Field(default=0.6, ge=0, le=1.0)
    min_success_rate: float = Field(default=0.5, ge=0, le=1.0)


class AITradingSettings(BaseModel):
    """
    Feature toggles and risk knobs for the pipeline.

    minimum_confidence_score, max_simultaneous_trades and daily_loss_limit_pct
    are validated here but not read by the pipeline stages. They are for
    callers that open trades.
    """
    model_config = ConfigDict(extra="allow")

    # Detector gates
    consider_economic_data: bool = False
    consider_earnings_events: bool = False
    consider_fed_meetings: bool = False
    consider_geopolitical_events: bool = False
    use_market_sentiment: bool = False

    # Action gates
    auto_adjust_volatility: bool = True
    enable_hedging: bool = True

    # Risk knobs
    volatility_threshold: float = Field(default=25.0, ge=0, description="VIX level")
    # Caller-facing: not used by the stages
    minimum_confidence_score: float = Field(default=0.6, ge=0, le=1.0)
    max_simultaneous_trades: int = Field(default=5, ge=1)
    daily_loss_limit_pct: float = Field(default=0.02, ge=0, le=1.0)
    default_risk_tolerance: Literal["conservative", "moderate", "aggressive"] = "moderate"
    market_condition_overrides: Dict[
        Literal["bullish", "bearish", "neutral", "volatile"], MarketConditionOverride
    ] = Field(default_factory=dict)
    learning: LearningConfig = Field(default_factory=LearningConfig)


# ============================================================================
# Loading
# ============================================================================

def load_validated_settings(raw: Optional[Dict[str, Any]] = None) -> AITradingSettings:
    """
    Build validated settings.

    Args:
        raw: Settings mapping; defaults to the `risk_monitoring` section of
            the YAML config

    Returns:
        Validated AITradingSettings

    Raises:
        SettingsValidationError: If settings are invalid
    """
    if raw is None:
        raw = get_risk_monitoring_section()

    try:
        return AITradingSettings(**raw)
    except ValidationError as e:
        logger.error(f"Settings validation failed: {e}")
        raise SettingsValidationError(
            "Risk monitoring settings failed validation",
            context={"errors": len(e.errors())},
            cause=e,
        ) from e
