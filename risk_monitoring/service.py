"""
Risk Monitoring Service
=======================

Orchestrates one monitoring pass:

    analyze market -> detect signals -> determine actions -> apply actions

and records signals, actions and learning insights in a MonitoringLogStore.
The stage functions are pure; the service only wires them together, owns
the store and emits structured events.

Usage:
    from risk_monitoring.service import RiskMonitoringService

    service = RiskMonitoringService()
    result = service.run_cycle(current, history, trades, options,
                               RiskToleranceType.MODERATE)
    for action in result.actions:
        print(action.description)

    # Later, once trades have closed
    service.learn_from_risk_action_outcomes(closed_trades, result.actions)
"""
from __future__ import annotations

import logging
from collections import Counter
from dataclasses import dataclass, field
from datetime import datetime
from typing import List, Optional, Sequence

from config.settings_schema import AITradingSettings, load_validated_settings
from core.structured_log import jlog
from risk_monitoring.action_application import apply_actions
from risk_monitoring.action_determination import determine_actions
from risk_monitoring.learning import get_recommended_actions, learn_from_outcomes
from risk_monitoring.market_analysis import analyze_market_condition
from risk_monitoring.monitoring_log import MonitoringLogStore
from risk_monitoring.risk_adjustment import RiskAdjustmentFactors, calculate_risk_adjustments
from risk_monitoring.signal_detection import DetectorRegistry, default_registry, detect_signals
from risk_monitoring.types import (
    LearningInsight,
    MarketData,
    MarketRiskProfile,
    MonitoringLog,
    OptionContract,
    RiskAction,
    RiskActionType,
    RiskSignal,
    RiskToleranceType,
    Trade,
)

logger = logging.getLogger(__name__)


@dataclass
class MonitoringCycleResult:
    """Everything one run_cycle() produced."""
    profile: MarketRiskProfile
    signals: List[RiskSignal] = field(default_factory=list)
    actions: List[RiskAction] = field(default_factory=list)
    updated_trades: List[Trade] = field(default_factory=list)

    @property
    def has_actions(self) -> bool:
        return bool(self.actions)


class RiskMonitoringService:
    """
    Risk monitoring pipeline bound to one monitoring log.

    Args:
        store: Monitoring log to record into (a fresh one by default)
        settings: Pipeline settings (loaded from config by default)
        registry: Signal detectors (all built-ins by default)
    """

    def __init__(
        self,
        store: Optional[MonitoringLogStore] = None,
        settings: Optional[AITradingSettings] = None,
        registry: Optional[DetectorRegistry] = None,
    ):
        self.store = store if store is not None else MonitoringLogStore()
        self.settings = settings if settings is not None else load_validated_settings()
        self.registry = registry if registry is not None else default_registry()

    def _tolerance(self, risk_tolerance: Optional[RiskToleranceType]) -> RiskToleranceType:
        if risk_tolerance is not None:
            return risk_tolerance
        return RiskToleranceType(self.settings.default_risk_tolerance)

    # ------------------------------------------------------------------
    # Pipeline stages
    # ------------------------------------------------------------------

    def analyze_market(self, current: MarketData, history: Sequence[MarketData]) -> MarketRiskProfile:
        return analyze_market_condition(current, history)

    def detect_risk_signals(
        self,
        market_data: MarketData,
        history: Sequence[MarketData],
        trades: Sequence[Trade],
        profile: Optional[MarketRiskProfile] = None,
        now: Optional[datetime] = None,
    ) -> List[RiskSignal]:
        """Detect signals and record them in the monitoring log."""
        if profile is None:
            profile = self.analyze_market(market_data, history)

        signals = detect_signals(market_data, history, trades, self.settings, profile, self.registry, now)
        self.store.append_signals(signals)

        if signals:
            jlog(
                "risk_signals_detected",
                count=len(signals),
                condition=profile.current_condition.value,
                vix=market_data.vix,
                signal_ids=[s.id for s in signals],
                sources=sorted({s.source.value for s in signals}),
            )
        return signals

    def determine_risk_actions(
        self,
        signals: Sequence[RiskSignal],
        trades: Sequence[Trade],
        risk_tolerance: Optional[RiskToleranceType] = None,
        insights: Optional[Sequence[LearningInsight]] = None,
        now: Optional[datetime] = None,
    ) -> List[RiskAction]:
        """
        Determine actions for the signals and record them.

        Signals not yet in the log are recorded first, so every recorded
        action resolves to a recorded signal.
        """
        if not signals or not trades:
            return []

        unseen = [s for s in signals if not self.store.has_signal(s.id)]
        if unseen:
            self.store.append_signals(unseen)

        tolerance = self._tolerance(risk_tolerance)
        actions = determine_actions(signals, trades, self.settings, tolerance, insights, now)
        self.store.append_actions(actions)

        if actions:
            jlog(
                "risk_actions_determined",
                count=len(actions),
                risk_tolerance=tolerance.value,
                action_types=dict(Counter(a.action_type.value for a in actions)),
                learned_overrides=sum(1 for a in actions if a.parameters.get("learned_override")),
            )
        return actions

    def apply_risk_actions(
        self,
        actions: Sequence[RiskAction],
        trades: Sequence[Trade],
        available_options: Sequence[OptionContract],
        now: Optional[datetime] = None,
    ) -> List[Trade]:
        """Apply actions to a copy of the trades."""
        updated = apply_actions(actions, trades, available_options, self.settings, now)

        if actions:
            before = {t.id for t in trades}
            jlog(
                "risk_actions_applied",
                actions=len(actions),
                trades_in=len(trades),
                trades_out=len(updated),
                new_trades=[t.id for t in updated if t.id not in before],
            )
        return updated

    # ------------------------------------------------------------------
    # Learning
    # ------------------------------------------------------------------

    def learn_from_risk_action_outcomes(
        self,
        completed_trades: Sequence[Trade],
        historical_actions: Sequence[RiskAction],
        now: Optional[datetime] = None,
    ) -> List[LearningInsight]:
        """Learn insights from closed trades and record them."""
        insights = learn_from_outcomes(completed_trades, historical_actions, self.store.snapshot(), now)
        if insights:
            self.store.append_insights(insights)
            jlog(
                "learning_insights_generated",
                count=len(insights),
                patterns=[i.signal_pattern.key for i in insights],
            )
        return insights

    def get_recommended_actions_for_signal(
        self,
        signal: RiskSignal,
        insights: Optional[Sequence[LearningInsight]] = None,
    ) -> List[RiskActionType]:
        if insights is None:
            insights = self.store.learning_insights
        return get_recommended_actions(signal, insights)

    def calculate_risk_adjustments(
        self,
        profile: MarketRiskProfile,
        recent_signals: Sequence[RiskSignal],
        risk_tolerance: Optional[RiskToleranceType],
        vix: float,
        now: Optional[datetime] = None,
    ) -> RiskAdjustmentFactors:
        return calculate_risk_adjustments(
            self.settings, profile, recent_signals, self._tolerance(risk_tolerance), vix, now
        )

    # ------------------------------------------------------------------
    # Full cycle
    # ------------------------------------------------------------------

    def run_cycle(
        self,
        market_data: MarketData,
        history: Sequence[MarketData],
        trades: Sequence[Trade],
        available_options: Sequence[OptionContract],
        risk_tolerance: Optional[RiskToleranceType] = None,
        now: Optional[datetime] = None,
    ) -> MonitoringCycleResult:
        """
        Run analyze -> detect -> determine -> apply once.

        Learned insights already in the log may override the decision
        tables. The input trades are never modified.
        """
        now = now or datetime.now()
        profile = self.analyze_market(market_data, history)
        signals = self.detect_risk_signals(market_data, history, trades, profile, now)
        actions = self.determine_risk_actions(
            signals, trades, risk_tolerance, self.store.learning_insights, now
        )
        updated = self.apply_risk_actions(actions, trades, available_options, now)

        logger.info(
            f"Risk cycle: {profile.current_condition.value} market, "
            f"{len(signals)} signal(s), {len(actions)} action(s)"
        )
        return MonitoringCycleResult(profile=profile, signals=signals, actions=actions, updated_trades=updated)

    # ------------------------------------------------------------------
    # Monitoring log
    # ------------------------------------------------------------------

    def get_monitoring_log(self) -> MonitoringLog:
        return self.store.snapshot()

    def export_monitoring_log(self) -> str:
        return self.store.export_log()

    def import_monitoring_log(self, data: str) -> bool:
        return self.store.import_log(data)

    def reset_monitoring_log(self) -> None:
        self.store.reset()
