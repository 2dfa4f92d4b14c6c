"""
Signal Detector - pluggable risk signal detection.

Each detector is a plain function `(DetectionContext) -> List[RiskSignal]`
registered by name in a DetectorRegistry. Technical and volatility
detectors always run; the others are gated by a settings flag.

Economic, earnings, fed-meeting, geopolitical and sentiment detectors
return nothing until real data feeds are wired in. Replacing one is a
registry call, not an edit to detect_signals().

Usage:
    registry = default_registry()
    registry.register("earnings", my_earnings_detector,
                      settings_flag="consider_earnings_events", replace=True)
    signals = detect_signals(current, history, trades, settings, profile, registry)
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Callable, Dict, List, Optional, Sequence

from config.settings_schema import AITradingSettings
from core.exceptions import DetectorRegistrationError
from risk_monitoring.market_analysis import (
    calculate_simplified_rsi,
    moving_average,
    price_series,
    sort_history,
)
from risk_monitoring.types import (
    MarketData,
    MarketRiskProfile,
    RiskSignal,
    RiskSignalDirection,
    RiskSignalSource,
    RiskSignalStrength,
    Trade,
    new_id,
)

logger = logging.getLogger(__name__)

# RSI thresholds
RSI_OVERBOUGHT = 70.0
RSI_EXTREME_OVERBOUGHT = 80.0
RSI_OVERSOLD = 30.0
RSI_EXTREME_OVERSOLD = 20.0

# VIX thresholds
VIX_SPIKE = 0.10
VIX_STRONG_SPIKE = 0.20
VIX_HIGH = 30.0
VIX_EXTREME = 40.0
VIX_LOW = 15.0
MIN_VIX_HISTORY = 5


@dataclass
class DetectionContext:
    """Everything a detector may look at."""
    market_data: MarketData
    history: List[MarketData]          # sorted oldest first
    profile: MarketRiskProfile
    trades: Sequence[Trade] = ()
    settings: AITradingSettings = field(default_factory=AITradingSettings)
    now: datetime = field(default_factory=datetime.now)

    def signal(
        self,
        source: RiskSignalSource,
        strength: RiskSignalStrength,
        direction: RiskSignalDirection,
        description: str,
        confidence: float,
        **data_points: float,
    ) -> RiskSignal:
        """Build a signal stamped with this context's time and condition."""
        return RiskSignal(
            id=new_id(),
            timestamp=self.now,
            source=source,
            condition=self.profile.current_condition,
            strength=strength,
            direction=direction,
            description=description,
            data_points={k: float(v) for k, v in data_points.items()},
            confidence=confidence,
        )


SignalDetector = Callable[[DetectionContext], List[RiskSignal]]


# =============================================================================
# DETECTORS
# =============================================================================

def detect_technical_signals(ctx: DetectionContext) -> List[RiskSignal]:
    """RSI extremes, price vs 20-day SMA crosses, and 10/20 SMA crosses."""
    signals: List[RiskSignal] = []
    history = ctx.history
    price = ctx.market_data.price

    rsi = calculate_simplified_rsi(history)

    if rsi >= RSI_OVERBOUGHT:
        signals.append(ctx.signal(
            RiskSignalSource.TECHNICAL,
            RiskSignalStrength.STRONG if rsi >= RSI_EXTREME_OVERBOUGHT else RiskSignalStrength.MODERATE,
            RiskSignalDirection.BEARISH,
            f"RSI overbought at {rsi:.2f}",
            min(1.0, (rsi - RSI_OVERBOUGHT) / 30 + 0.6),
            rsi=rsi,
        ))

    if rsi <= RSI_OVERSOLD:
        signals.append(ctx.signal(
            RiskSignalSource.TECHNICAL,
            RiskSignalStrength.STRONG if rsi <= RSI_EXTREME_OVERSOLD else RiskSignalStrength.MODERATE,
            RiskSignalDirection.BULLISH,
            f"RSI oversold at {rsi:.2f}",
            min(1.0, (RSI_OVERSOLD - rsi) / 30 + 0.6),
            rsi=rsi,
        ))

    if len(history) < 20:
        return signals

    prices = price_series(history)
    ma10 = moving_average(prices, 10)
    ma20 = moving_average(prices, 20)
    previous_price = float(prices.iloc[-2])

    if previous_price < ma20 < price:
        signals.append(ctx.signal(
            RiskSignalSource.TECHNICAL,
            RiskSignalStrength.MODERATE,
            RiskSignalDirection.BULLISH,
            "Price crossed above 20-day moving average",
            0.7,
            ma20=ma20, current_price=price,
        ))

    if previous_price > ma20 > price:
        signals.append(ctx.signal(
            RiskSignalSource.TECHNICAL,
            RiskSignalStrength.MODERATE,
            RiskSignalDirection.BEARISH,
            "Price crossed below 20-day moving average",
            0.7,
            ma20=ma20, current_price=price,
        ))

    previous_ma10 = float(prices.iloc[-11:-1].mean())

    if previous_ma10 < ma20 < ma10:
        signals.append(ctx.signal(
            RiskSignalSource.TECHNICAL,
            RiskSignalStrength.STRONG,
            RiskSignalDirection.BULLISH,
            "10-day MA crossed above 20-day MA (golden cross)",
            0.8,
            ma10=ma10, ma20=ma20,
        ))

    if previous_ma10 > ma20 > ma10:
        signals.append(ctx.signal(
            RiskSignalSource.TECHNICAL,
            RiskSignalStrength.STRONG,
            RiskSignalDirection.BEARISH,
            "10-day MA crossed below 20-day MA (death cross)",
            0.8,
            ma10=ma10, ma20=ma20,
        ))

    return signals


def detect_volatility_signals(ctx: DetectionContext) -> List[RiskSignal]:
    """VIX spikes/drops vs the previous observation, plus absolute VIX levels."""
    signals: List[RiskSignal] = []
    vix = ctx.market_data.vix

    if len(ctx.history) >= MIN_VIX_HISTORY:
        previous_vix = ctx.history[-2].vix
        if previous_vix > 0:
            change = (vix - previous_vix) / previous_vix

            if change >= VIX_SPIKE:
                signals.append(ctx.signal(
                    RiskSignalSource.VOLATILITY,
                    RiskSignalStrength.STRONG if change >= VIX_STRONG_SPIKE else RiskSignalStrength.MODERATE,
                    RiskSignalDirection.BEARISH,
                    f"VIX spiked by {change * 100:.2f}%",
                    min(1.0, change + 0.6),
                    current_vix=vix, previous_vix=previous_vix, percent_change=change * 100,
                ))

            if change <= -VIX_SPIKE:
                signals.append(ctx.signal(
                    RiskSignalSource.VOLATILITY,
                    RiskSignalStrength.STRONG if change <= -VIX_STRONG_SPIKE else RiskSignalStrength.MODERATE,
                    RiskSignalDirection.BULLISH,
                    f"VIX dropped by {abs(change) * 100:.2f}%",
                    min(1.0, abs(change) + 0.6),
                    current_vix=vix, previous_vix=previous_vix, percent_change=change * 100,
                ))
        else:
            logger.debug(f"Previous VIX {previous_vix} not usable, skipping change check")

    if VIX_HIGH <= vix < VIX_EXTREME:
        signals.append(ctx.signal(
            RiskSignalSource.VOLATILITY,
            RiskSignalStrength.STRONG,
            RiskSignalDirection.BEARISH,
            f"High VIX level at {vix:.2f}",
            0.8,
            vix=vix,
        ))
    elif vix >= VIX_EXTREME:
        signals.append(ctx.signal(
            RiskSignalSource.VOLATILITY,
            RiskSignalStrength.EXTREME,
            RiskSignalDirection.BEARISH,
            f"Extreme VIX level at {vix:.2f}",
            0.9,
            vix=vix,
        ))
    elif vix <= VIX_LOW:
        signals.append(ctx.signal(
            RiskSignalSource.VOLATILITY,
            RiskSignalStrength.MODERATE,
            RiskSignalDirection.BULLISH,
            f"Low VIX level at {vix:.2f}",
            0.7,
            vix=vix,
        ))

    return signals


def detect_economic_signals(ctx: DetectionContext) -> List[RiskSignal]:
    """Economic releases. Needs an economic calendar feed."""
    return []


def detect_earnings_signals(ctx: DetectionContext) -> List[RiskSignal]:
    """Upcoming earnings for held underlyings. Needs an earnings calendar feed."""
    return []


def detect_fed_meeting_signals(ctx: DetectionContext) -> List[RiskSignal]:
    """FOMC meeting proximity. Needs a Fed calendar feed."""
    return []


def detect_geopolitical_signals(ctx: DetectionContext) -> List[RiskSignal]:
    """Geopolitical events. Needs a news feed."""
    return []


def detect_sentiment_signals(ctx: DetectionContext) -> List[RiskSignal]:
    """Crowd sentiment extremes. Needs a sentiment feed."""
    return []


# =============================================================================
# REGISTRY
# =============================================================================

@dataclass
class DetectorRegistration:
    """A named detector and the settings flag that enables it (None = always)."""
    name: str
    detector: SignalDetector
    settings_flag: Optional[str] = None

    def is_enabled(self, settings: AITradingSettings) -> bool:
        if self.settings_flag is None:
            return True
        return bool(getattr(settings, self.settings_flag, False))


class DetectorRegistry:
    """
    Ordered registry of signal detectors.

    Example:
        registry = DetectorRegistry()
        registry.register("technical", detect_technical_signals)
        registry.register("fed_meeting", detect_fed_meeting_signals,
                          settings_flag="consider_fed_meetings")
        signals = registry.detect(ctx)
    """

    def __init__(self) -> None:
        self._registrations: Dict[str, DetectorRegistration] = {}

    def register(
        self,
        name: str,
        detector: SignalDetector,
        settings_flag: Optional[str] = None,
        replace: bool = False,
    ) -> None:
        if not callable(detector):
            raise DetectorRegistrationError(
                f"Detector {name} is not callable", context={"name": name}
            )
        if name in self._registrations and not replace:
            raise DetectorRegistrationError(
                f"Detector {name} already registered", context={"name": name}
            )
        self._registrations[name] = DetectorRegistration(name, detector, settings_flag)

    def unregister(self, name: str) -> None:
        self._registrations.pop(name, None)

    def names(self) -> List[str]:
        return list(self._registrations)

    def enabled_names(self, settings: AITradingSettings) -> List[str]:
        return [r.name for r in self._registrations.values() if r.is_enabled(settings)]

    def detect(self, ctx: DetectionContext) -> List[RiskSignal]:
        """Run every enabled detector in registration order."""
        signals: List[RiskSignal] = []
        for registration in self._registrations.values():
            if not registration.is_enabled(ctx.settings):
                continue
            found = registration.detector(ctx)
            if found:
                logger.debug(f"Detector {registration.name} produced {len(found)} signal(s)")
            signals.extend(found)
        return signals


def default_registry() -> DetectorRegistry:
    """Registry with every built-in detector."""
    registry = DetectorRegistry()
    registry.register("technical", detect_technical_signals)
    registry.register("volatility", detect_volatility_signals)
    registry.register("economic", detect_economic_signals, "consider_economic_data")
    registry.register("earnings", detect_earnings_signals, "consider_earnings_events")
    registry.register("fed_meeting", detect_fed_meeting_signals, "consider_fed_meetings")
    registry.register("geopolitical", detect_geopolitical_signals, "consider_geopolitical_events")
    registry.register("sentiment", detect_sentiment_signals, "use_market_sentiment")
    return registry


def detect_signals(
    market_data: MarketData,
    history: Sequence[MarketData],
    trades: Sequence[Trade],
    settings: AITradingSettings,
    profile: MarketRiskProfile,
    registry: Optional[DetectorRegistry] = None,
    now: Optional[datetime] = None,
) -> List[RiskSignal]:
    """Detect all risk signals for the current snapshot."""
    ctx = DetectionContext(
        market_data=market_data,
        history=sort_history(history),
        profile=profile,
        trades=trades,
        settings=settings,
        now=now or datetime.now(),
    )
    return (registry or default_registry()).detect(ctx)


def group_signals_by_source_and_direction(signals: Sequence[RiskSignal]) -> Dict[str, List[RiskSignal]]:
    """Group signals by "{source}_{direction}"."""
    grouped: Dict[str, List[RiskSignal]] = {}
    for signal in signals:
        grouped.setdefault(signal.group_key, []).append(signal)
    return grouped
