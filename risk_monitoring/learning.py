"""
Learning Engine - learns which actions work for which signal patterns.

Once trades close, the actions that touched them are scored (profit
impact, success), grouped by the originating signal's pattern
(source|condition|strength|direction) and summarized as LearningInsights.
The insights then rank recommended actions for future signals.
"""
from __future__ import annotations

import logging
from collections import defaultdict
from datetime import datetime
from typing import Dict, Iterable, List, Mapping, Optional, Sequence

from risk_monitoring.types import (
    LearningInsight,
    MonitoringLog,
    RiskAction,
    RiskActionType,
    RiskSignal,
    RiskSignalDirection,
    RiskToleranceType,
    SignalPattern,
    Trade,
    TradeStatus,
    clamp,
    new_id,
)

logger = logging.getLogger(__name__)

CONFIDENCE_SATURATION_SAMPLES = 20
MAX_RECOMMENDATIONS = 3

DEFAULT_RECOMMENDATIONS: Dict[RiskSignalDirection, List[RiskActionType]] = {
    RiskSignalDirection.BEARISH: [
        RiskActionType.REDUCE_POSITION_SIZE,
        RiskActionType.ADJUST_STOP_LOSS,
        RiskActionType.HEDGE_POSITION,
    ],
    RiskSignalDirection.BULLISH: [
        RiskActionType.INCREASE_POSITION_SIZE,
        RiskActionType.ADJUST_TAKE_PROFIT,
    ],
}


def calculate_insight_confidence(sample_size: int, success_rate: float) -> float:
    """Confidence grows with sample size (saturating at 20) and success rate."""
    sample_factor = min(1.0, sample_size / CONFIDENCE_SATURATION_SAMPLES)
    return clamp(sample_factor * (0.5 + success_rate / 2))


def _related_trades(action: RiskAction, closed_by_id: Mapping[str, Trade],
                    closed_by_parent: Mapping[str, List[Trade]]) -> List[Trade]:
    related: List[Trade] = []
    for trade_id in action.trade_ids:
        if trade_id in closed_by_id:
            related.append(closed_by_id[trade_id])
        related.extend(closed_by_parent.get(trade_id, []))
    # A trade can match both ways
    return list({t.id: t for t in related}.values())


def evaluate_action_outcomes(
    completed_trades: Sequence[Trade],
    actions: Sequence[RiskAction],
) -> List[RiskAction]:
    """
    Fill in success/profit_impact for actions whose trades have closed.

    Profit impact is the realized profit of every closed trade the action
    referenced, including split-off and hedge trades descended from them.
    Actions that already carry an outcome, or touch no closed trade, are
    returned unchanged.
    """
    closed = [t for t in completed_trades if t.status is TradeStatus.CLOSED]
    closed_by_id = {t.id: t for t in closed}
    closed_by_parent: Dict[str, List[Trade]] = defaultdict(list)
    for trade in closed:
        if trade.parent_id:
            closed_by_parent[trade.parent_id].append(trade)

    evaluated: List[RiskAction] = []
    for action in actions:
        if action.has_outcome:
            evaluated.append(action)
            continue
        related = _related_trades(action, closed_by_id, closed_by_parent)
        if not related:
            evaluated.append(action)
            continue
        profit_impact = sum(t.profit for t in related)
        evaluated.append(action.with_outcome(profit_impact > 0, profit_impact))
    return evaluated


def group_actions_by_signal_pattern(
    actions: Iterable[RiskAction],
    signals: Iterable[RiskSignal],
) -> Dict[str, List[RiskAction]]:
    """Group actions by their originating signal's pattern key."""
    by_id = {s.id: s for s in signals}
    grouped: Dict[str, List[RiskAction]] = {}
    for action in actions:
        signal = by_id.get(action.signal_id)
        if signal is None:
            logger.debug(f"Action {action.id} references unknown signal {action.signal_id}")
            continue
        grouped.setdefault(SignalPattern.of(signal).key, []).append(action)
    return grouped


def rank_action_types(actions: Sequence[RiskAction]) -> List[RiskActionType]:
    """Action types ordered by average profit impact, best first."""
    totals: Dict[RiskActionType, List[float]] = {}
    for action in actions:
        totals.setdefault(action.action_type, []).append(action.profit_impact or 0.0)
    averages = {t: sum(v) / len(v) for t, v in totals.items()}
    return sorted(averages, key=lambda t: averages[t], reverse=True)


def _pattern_from_key(key: str) -> SignalPattern:
    source, condition, strength, direction = key.split("|")
    return SignalPattern.from_dict({
        "source": source, "condition": condition,
        "strength": strength, "direction": direction,
    })


def build_insight(pattern: SignalPattern, actions: Sequence[RiskAction], now: datetime) -> LearningInsight:
    """Summarize one pattern's actions into an insight."""
    total = len(actions)
    success_rate = sum(1 for a in actions if a.success) / total
    average_profit = sum(a.profit_impact or 0.0 for a in actions) / total
    ranked = rank_action_types(actions)

    return LearningInsight(
        id=new_id(),
        timestamp=now,
        description=(
            f"Pattern: {pattern.direction.value} {pattern.strength.value} "
            f"{pattern.source.value} signal during {pattern.condition.value} market"
        ),
        signal_pattern=pattern,
        action_taken=ranked[0] if ranked else RiskActionType.NO_ACTION,
        success_rate=success_rate,
        profit_impact=average_profit,
        average_profit_impact=average_profit,
        applied_count=total,
        related_risk_tolerance=actions[0].user_risk_tolerance if actions else RiskToleranceType.MODERATE,
        confidence=calculate_insight_confidence(total, success_rate),
        recommended_actions=tuple(ranked[:MAX_RECOMMENDATIONS]),
    )


def learn_from_outcomes(
    completed_trades: Sequence[Trade],
    historical_actions: Sequence[RiskAction],
    monitoring_log: MonitoringLog,
    now: Optional[datetime] = None,
) -> List[LearningInsight]:
    """
    Produce one insight per signal pattern from actions on closed trades.

    Args:
        completed_trades: Trades that have closed
        historical_actions: Past actions (any that touch a closed trade count)
        monitoring_log: Snapshot used to resolve each action's signal

    Returns:
        Insights, empty when no action touched a completed trade
    """
    completed_ids = {t.id for t in completed_trades}
    completed_ids.update(t.parent_id for t in completed_trades if t.parent_id)

    relevant = [a for a in historical_actions if any(tid in completed_ids for tid in a.trade_ids)]
    if not relevant:
        return []

    evaluated = evaluate_action_outcomes(completed_trades, relevant)
    grouped = group_actions_by_signal_pattern(evaluated, monitoring_log.signals)
    stamp = now or datetime.now()

    insights = [build_insight(_pattern_from_key(key), actions, stamp) for key, actions in grouped.items()]
    logger.info(f"Learned {len(insights)} insight(s) from {len(relevant)} action(s)")
    return insights


def get_recommended_actions(
    signal: RiskSignal,
    insights: Sequence[LearningInsight],
) -> List[RiskActionType]:
    """
    Actions that have historically worked for signals like this one.

    Uses the highest-confidence insight with an exact pattern match, falling
    back to a direction-based default.
    """
    pattern = SignalPattern.of(signal)
    matching = [i for i in insights if i.signal_pattern == pattern]
    if not matching:
        return list(DEFAULT_RECOMMENDATIONS.get(signal.direction, [RiskActionType.NO_ACTION]))

    best = max(matching, key=lambda i: i.confidence)
    return list(best.recommended_actions)
