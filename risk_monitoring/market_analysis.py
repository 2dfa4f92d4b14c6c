"""
Market Condition Analyzer.

Reduces a market-data history to a MarketRiskProfile:
- Trend: current price vs 10-day SMA (direction and strength)
- Volatility: VIX normalized to [0, 1]
- Momentum: distance from the 20-day SMA
- Composite: weighted blend of volatility, trend strength and sentiment
"""
from __future__ import annotations

import logging
from typing import List, Optional, Sequence

import pandas as pd

from risk_monitoring.types import (
    MarketCondition,
    MarketData,
    MarketRiskProfile,
    RiskFactor,
    RiskSignalDirection,
    RiskSignalSource,
    clamp,
)

logger = logging.getLogger(__name__)

MIN_HISTORY_POINTS = 10
RSI_PERIOD = 14
VOLATILE_VIX = 25.0
VIX_NORMALIZER = 50.0
TREND_BAND = 0.02            # 2% of MA10 saturates trend strength
HIGH_VOLATILITY_LEVEL = 0.6
MOMENTUM_BAND = 0.05

# Composite weights
VOLATILITY_WEIGHT = 0.4
TREND_WEIGHT = 0.3
SENTIMENT_WEIGHT = 0.3


def sort_history(history: Sequence[MarketData]) -> List[MarketData]:
    """Return history oldest first; callers do not guarantee order."""
    return sorted(history, key=lambda d: d.timestamp)


def price_series(history: Sequence[MarketData]) -> pd.Series:
    """Prices of already-sorted history as a float Series."""
    return pd.Series([d.price for d in history], dtype=float)


def moving_average(prices: pd.Series, window: int) -> Optional[float]:
    """Simple moving average of the last `window` prices (None if too short)."""
    if len(prices) < window:
        return None
    return float(prices.rolling(window=window, min_periods=window).mean().iloc[-1])


def calculate_simplified_rsi(history: Sequence[MarketData]) -> float:
    """
    Simplified RSI over the last 14 daily changes of sorted history.

    Returns 50 with fewer than 15 points. A window without losses reads 100;
    a window with only losses reads 0.
    """
    if len(history) < RSI_PERIOD + 1:
        return 50.0

    changes = price_series(history).diff().dropna().tail(RSI_PERIOD)
    avg_gain = float(changes.clip(lower=0).sum()) / RSI_PERIOD
    avg_loss = float((-changes.clip(upper=0)).sum()) / RSI_PERIOD

    if avg_loss == 0:
        return 100.0

    rs = avg_gain / avg_loss
    return 100.0 - (100.0 / (1.0 + rs))


def composite_risk_score(volatility_level: float, trend_strength: float, sentiment_score: float) -> float:
    """Weighted blend of volatility, trend strength and sentiment magnitude."""
    return clamp(
        VOLATILITY_WEIGHT * volatility_level
        + TREND_WEIGHT * trend_strength
        + SENTIMENT_WEIGHT * abs(sentiment_score)
    )


def analyze_market_condition(
    current: MarketData,
    history: Sequence[MarketData],
) -> MarketRiskProfile:
    """
    Classify the current market.

    Args:
        current: Latest market snapshot
        history: Snapshots in any order

    Returns:
        MarketRiskProfile (neutral default with fewer than 10 points)
    """
    if len(history) < MIN_HISTORY_POINTS:
        logger.debug(f"Only {len(history)} history points, using neutral profile")
        return MarketRiskProfile.neutral()

    prices = price_series(sort_history(history))
    ma10 = moving_average(prices, 10)
    ma20 = moving_average(prices, 20)
    if ma20 is None:
        ma20 = ma10

    price = current.price
    if price > ma10:
        direction = RiskSignalDirection.BULLISH
    elif price < ma10:
        direction = RiskSignalDirection.BEARISH
    else:
        direction = RiskSignalDirection.NEUTRAL

    trend_strength = min(1.0, abs(price - ma10) / (ma10 * TREND_BAND)) if ma10 else 0.0

    if current.vix >= VOLATILE_VIX:
        condition = MarketCondition.VOLATILE
    elif direction is RiskSignalDirection.BULLISH and trend_strength > 0.5:
        condition = MarketCondition.BULLISH
    elif direction is RiskSignalDirection.BEARISH and trend_strength > 0.5:
        condition = MarketCondition.BEARISH
    else:
        condition = MarketCondition.NEUTRAL

    volatility_level = min(1.0, current.vix / VIX_NORMALIZER)

    # Coarse proxy until a sentiment feed exists
    sentiment_score = {
        RiskSignalDirection.BULLISH: 0.5,
        RiskSignalDirection.BEARISH: -0.5,
    }.get(direction, 0.0)

    factors: List[RiskFactor] = []
    if volatility_level > HIGH_VOLATILITY_LEVEL:
        factors.append(RiskFactor(
            source=RiskSignalSource.VOLATILITY,
            impact=volatility_level,
            description="High market volatility",
        ))

    deviation = price / ma20 - 1 if ma20 else 0.0
    if abs(deviation) > MOMENTUM_BAND:
        factors.append(RiskFactor(
            source=RiskSignalSource.MOMENTUM,
            impact=min(1.0, abs(deviation) * 10),
            description=f"{'Overbought' if price > ma20 else 'Oversold'} conditions",
        ))

    return MarketRiskProfile(
        current_condition=condition,
        volatility_level=volatility_level,
        sentiment_score=sentiment_score,
        market_trend_strength=trend_strength,
        market_trend_direction=direction,
        key_risk_factors=tuple(factors),
        composite_risk_score=composite_risk_score(volatility_level, trend_strength, sentiment_score),
    )
