"""
Action Determiner - turns risk signals into portfolio actions.

Signals are grouped by (source, direction); the highest-confidence signal
of each group is mapped through a decision table keyed by
(strength, risk tolerance). Technical signals target the option side they
threaten (bearish -> CALLs, bullish -> PUTs) and tighten targets on the
profitable opposite side. Volatility signals act on every active trade.

`no_action` outcomes are never emitted.
"""
from __future__ import annotations

import logging
from datetime import datetime
from typing import Callable, Dict, List, Optional, Sequence, Tuple

from config.settings_schema import AITradingSettings
from risk_monitoring.signal_detection import group_signals_by_source_and_direction
from risk_monitoring.types import (
    RISK_REDUCING_ACTIONS,
    LearningInsight,
    OptionType,
    RiskAction,
    RiskActionType,
    RiskSignal,
    RiskSignalDirection,
    RiskSignalStrength,
    RiskToleranceType,
    SignalPattern,
    Trade,
    new_id,
)

logger = logging.getLogger(__name__)

Decision = Tuple[RiskActionType, float]    # (action, risk reduction)

_S = RiskSignalStrength
_T = RiskToleranceType
_A = RiskActionType

# Technical signals: (strength, tolerance) -> (action, risk reduction)
TECHNICAL_DECISION_TABLE: Dict[Tuple[RiskSignalStrength, RiskToleranceType], Decision] = {
    (_S.EXTREME, _T.CONSERVATIVE): (_A.EXIT_TRADE, 0.7),
    (_S.EXTREME, _T.MODERATE): (_A.REDUCE_POSITION_SIZE, 0.7),
    (_S.EXTREME, _T.AGGRESSIVE): (_A.REDUCE_POSITION_SIZE, 0.7),
    (_S.STRONG, _T.CONSERVATIVE): (_A.REDUCE_POSITION_SIZE, 0.5),
    (_S.STRONG, _T.MODERATE): (_A.ADJUST_STOP_LOSS, 0.5),
    (_S.STRONG, _T.AGGRESSIVE): (_A.NO_ACTION, 0.5),
    (_S.MODERATE, _T.CONSERVATIVE): (_A.ADJUST_STOP_LOSS, 0.3),
    (_S.MODERATE, _T.MODERATE): (_A.NO_ACTION, 0.3),
    (_S.MODERATE, _T.AGGRESSIVE): (_A.NO_ACTION, 0.3),
    (_S.WEAK, _T.CONSERVATIVE): (_A.ADJUST_STOP_LOSS, 0.1),
    (_S.WEAK, _T.MODERATE): (_A.NO_ACTION, 0.1),
    (_S.WEAK, _T.AGGRESSIVE): (_A.NO_ACTION, 0.1),
}

# Bearish volatility signals: (strength, tolerance) -> action
VOLATILITY_DECISION_TABLE: Dict[Tuple[RiskSignalStrength, RiskToleranceType], RiskActionType] = {
    (_S.EXTREME, _T.CONSERVATIVE): _A.EXIT_TRADE,
    (_S.EXTREME, _T.MODERATE): _A.EXIT_TRADE,
    (_S.EXTREME, _T.AGGRESSIVE): _A.HEDGE_POSITION,
    (_S.STRONG, _T.CONSERVATIVE): _A.EXIT_TRADE,
    (_S.STRONG, _T.MODERATE): _A.HEDGE_POSITION,
    (_S.STRONG, _T.AGGRESSIVE): _A.REDUCE_POSITION_SIZE,
    (_S.MODERATE, _T.CONSERVATIVE): _A.HEDGE_POSITION,
    (_S.MODERATE, _T.MODERATE): _A.ADJUST_STOP_LOSS,
    (_S.MODERATE, _T.AGGRESSIVE): _A.ADJUST_STOP_LOSS,
    (_S.WEAK, _T.CONSERVATIVE): _A.NO_ACTION,
    (_S.WEAK, _T.MODERATE): _A.NO_ACTION,
    (_S.WEAK, _T.AGGRESSIVE): _A.NO_ACTION,
}
VOLATILITY_NEW_RISK = 0.5
TAKE_PROFIT_ADJUSTMENT = 0.8


def technical_decision(strength: RiskSignalStrength, tolerance: RiskToleranceType) -> Decision:
    return TECHNICAL_DECISION_TABLE[(strength, tolerance)]


def volatility_decision(strength: RiskSignalStrength, tolerance: RiskToleranceType) -> RiskActionType:
    return VOLATILITY_DECISION_TABLE[(strength, tolerance)]


def strongest_signal(signals: Sequence[RiskSignal]) -> Optional[RiskSignal]:
    """Highest-confidence signal (first one wins ties)."""
    if not signals:
        return None
    return max(signals, key=lambda s: s.confidence)


def learned_override(
    signal: RiskSignal,
    insights: Optional[Sequence[LearningInsight]],
    settings: AITradingSettings,
) -> Optional[LearningInsight]:
    """
    Insight strong enough to replace the table's choice for this signal.

    Only risk-reducing learned actions qualify.
    """
    if not insights:
        return None
    pattern = SignalPattern.of(signal)
    matching = [i for i in insights if i.signal_pattern == pattern]
    if not matching:
        return None
    best = max(matching, key=lambda i: i.confidence)
    if best.confidence < settings.learning.min_insight_confidence:
        return None
    if best.success_rate < settings.learning.min_success_rate:
        return None
    if best.action_taken not in RISK_REDUCING_ACTIONS:
        return None
    return best


def _humanize(action_type: RiskActionType) -> str:
    return action_type.value.replace("_", " ")


def _base_parameters(signal: RiskSignal) -> Dict[str, object]:
    return {
        "signal_strength": signal.strength.value,
        "signal_description": signal.description,
        "signal_direction": signal.direction.value,
    }


def _build_action(
    signal: RiskSignal,
    action_type: RiskActionType,
    trades: Sequence[Trade],
    description: str,
    parameters: Dict[str, object],
    new_risk: float,
    tolerance: RiskToleranceType,
    now: datetime,
) -> RiskAction:
    return RiskAction(
        id=new_id(),
        signal_id=signal.id,
        timestamp=now,
        action_type=action_type,
        trade_ids=tuple(t.id for t in trades),
        description=description,
        parameters=parameters,
        previous_risk=1.0,
        new_risk=new_risk,
        user_risk_tolerance=tolerance,
    )


def _apply_learning(
    signal: RiskSignal,
    action_type: RiskActionType,
    parameters: Dict[str, object],
    insights: Optional[Sequence[LearningInsight]],
    settings: AITradingSettings,
) -> RiskActionType:
    insight = learned_override(signal, insights, settings)
    if insight is None or insight.action_taken is action_type:
        return action_type
    logger.info(
        f"Learned override for {SignalPattern.of(signal).key}: "
        f"{action_type.value} -> {insight.action_taken.value} "
        f"(confidence {insight.confidence:.2f})"
    )
    parameters["learned_override"] = True
    parameters["insight_id"] = insight.id
    parameters["table_action"] = action_type.value
    return insight.action_taken


# =============================================================================
# PROCESSORS
# =============================================================================

def process_technical_signals(
    grouped: Dict[str, List[RiskSignal]],
    trades: Sequence[Trade],
    settings: AITradingSettings,
    tolerance: RiskToleranceType,
    insights: Optional[Sequence[LearningInsight]],
    now: datetime,
) -> List[RiskAction]:
    actions: List[RiskAction] = []
    sides = (
        # (direction, threatened side, side whose profits get locked in)
        (RiskSignalDirection.BEARISH, OptionType.CALL, OptionType.PUT),
        (RiskSignalDirection.BULLISH, OptionType.PUT, OptionType.CALL),
    )

    for direction, threatened, favoured in sides:
        signal = strongest_signal(grouped.get(f"technical_{direction.value}", []))
        if signal is None:
            continue

        at_risk = [t for t in trades if t.is_active and t.type is threatened]
        if at_risk:
            action_type, reduction = technical_decision(signal.strength, tolerance)
            if action_type is not RiskActionType.NO_ACTION:
                parameters = _base_parameters(signal)
                action_type = _apply_learning(signal, action_type, parameters, insights, settings)
                actions.append(_build_action(
                    signal, action_type, at_risk,
                    f"{_humanize(action_type)} for {len(at_risk)} {threatened.value} trades "
                    f"based on {direction.value} technical signal",
                    parameters, 1.0 - reduction, tolerance, now,
                ))

        profitable = [t for t in trades if t.is_active and t.type is favoured and t.is_profitable]
        if profitable and signal.strength is RiskSignalStrength.STRONG:
            parameters = _base_parameters(signal)
            parameters["adjustment_factor"] = TAKE_PROFIT_ADJUSTMENT
            actions.append(_build_action(
                signal, RiskActionType.ADJUST_TAKE_PROFIT, profitable,
                f"Adjust take profit for {len(profitable)} profitable {favoured.value} trades "
                f"based on {direction.value} technical signal",
                parameters, 1.0, tolerance, now,
            ))

    return actions


def process_volatility_signals(
    grouped: Dict[str, List[RiskSignal]],
    trades: Sequence[Trade],
    settings: AITradingSettings,
    tolerance: RiskToleranceType,
    insights: Optional[Sequence[LearningInsight]],
    now: datetime,
) -> List[RiskAction]:
    if not settings.auto_adjust_volatility:
        return []

    signal = strongest_signal(grouped.get("volatility_bearish", []))
    if signal is None:
        return []

    active = [t for t in trades if t.is_active]
    if not active:
        return []

    action_type = volatility_decision(signal.strength, tolerance)
    if action_type is RiskActionType.NO_ACTION:
        return []

    parameters = _base_parameters(signal)
    if "vix" in signal.data_points:
        parameters["vix"] = signal.data_points["vix"]
    action_type = _apply_learning(signal, action_type, parameters, insights, settings)

    return [_build_action(
        signal, action_type, active,
        f"{_humanize(action_type)} for {len(active)} active trades based on high volatility",
        parameters, VOLATILITY_NEW_RISK, tolerance, now,
    )]


def process_economic_signals(
    grouped: Dict[str, List[RiskSignal]],
    trades: Sequence[Trade],
    settings: AITradingSettings,
    tolerance: RiskToleranceType,
    insights: Optional[Sequence[LearningInsight]],
    now: datetime,
) -> List[RiskAction]:
    """Extension point: economic signals produce no actions yet."""
    return []


def process_sentiment_signals(
    grouped: Dict[str, List[RiskSignal]],
    trades: Sequence[Trade],
    settings: AITradingSettings,
    tolerance: RiskToleranceType,
    insights: Optional[Sequence[LearningInsight]],
    now: datetime,
) -> List[RiskAction]:
    """Extension point: sentiment signals produce no actions yet."""
    return []


SignalProcessor = Callable[..., List[RiskAction]]

SIGNAL_PROCESSORS: Tuple[SignalProcessor, ...] = (
    process_technical_signals,
    process_volatility_signals,
    process_economic_signals,
    process_sentiment_signals,
)


def determine_actions(
    signals: Sequence[RiskSignal],
    trades: Sequence[Trade],
    settings: AITradingSettings,
    risk_tolerance: RiskToleranceType,
    insights: Optional[Sequence[LearningInsight]] = None,
    now: Optional[datetime] = None,
) -> List[RiskAction]:
    """
    Determine risk actions for the detected signals.

    Args:
        signals: Signals from the detector
        trades: Current trades (only active ones are targeted)
        settings: Pipeline settings
        risk_tolerance: User's risk tolerance
        insights: Learned insights that may override the decision tables
        now: Timestamp for the produced actions

    Returns:
        Actions to apply, never containing no_action
    """
    grouped = group_signals_by_source_and_direction(signals)
    stamp = now or datetime.now()

    actions: List[RiskAction] = []
    for processor in SIGNAL_PROCESSORS:
        actions.extend(processor(grouped, trades, settings, risk_tolerance, insights, stamp))
    return actions
