"""
Action Applier - executes risk actions against a copy of the trade book.

apply_actions() never mutates its inputs: it deep-copies the trades, runs
each action against the active trades it lists and returns the new
collection (split-off and hedge trades appended at the end).
"""
from __future__ import annotations

import copy
import logging
import math
import uuid
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Callable, Dict, List, Mapping, Optional, Sequence

from config.settings_schema import AITradingSettings
from risk_monitoring.types import (
    OptionContract,
    OptionType,
    RiskAction,
    RiskActionType,
    RiskSignalDirection,
    Trade,
    TradeStatus,
)

logger = logging.getLogger(__name__)

HEDGE_SIZE_FRACTION = 0.5
HEDGE_TARGET_MULTIPLE = 1.3
HEDGE_STOP_MULTIPLE = 0.7
HEDGE_CONFIDENCE = 0.6


# =============================================================================
# PARAMETER SHAPES
# =============================================================================

def _factor(params: Mapping[str, Any], key: str, default: float) -> float:
    value = params.get(key)
    if value is None:
        return default
    value = float(value)
    return value if value > 0 else default


def _direction(params: Mapping[str, Any]) -> Optional[RiskSignalDirection]:
    value = params.get("signal_direction")
    if value is None:
        return None
    try:
        return RiskSignalDirection(value)
    except ValueError:
        logger.debug(f"Ignoring unknown signal_direction {value!r}")
        return None


@dataclass(frozen=True)
class ReduceParameters:
    reduction_factor: float = 0.5

    @classmethod
    def parse(cls, params: Mapping[str, Any]) -> "ReduceParameters":
        return cls(_factor(params, "reduction_factor", cls.reduction_factor))


@dataclass(frozen=True)
class IncreaseParameters:
    increase_factor: float = 1.5

    @classmethod
    def parse(cls, params: Mapping[str, Any]) -> "IncreaseParameters":
        return cls(_factor(params, "increase_factor", cls.increase_factor))


@dataclass(frozen=True)
class StopLossParameters:
    adjustment_factor: float = 0.7
    signal_direction: Optional[RiskSignalDirection] = None

    @classmethod
    def parse(cls, params: Mapping[str, Any]) -> "StopLossParameters":
        return cls(_factor(params, "adjustment_factor", cls.adjustment_factor), _direction(params))


@dataclass(frozen=True)
class TakeProfitParameters:
    adjustment_factor: float = 0.8
    signal_direction: Optional[RiskSignalDirection] = None

    @classmethod
    def parse(cls, params: Mapping[str, Any]) -> "TakeProfitParameters":
        return cls(_factor(params, "adjustment_factor", cls.adjustment_factor), _direction(params))


# =============================================================================
# APPLIERS
# =============================================================================

@dataclass
class _ApplyContext:
    all_trades: List[Trade]
    available_options: Sequence[OptionContract]
    settings: AITradingSettings
    now: datetime


def _child_id(prefix: str, trade_id: str) -> str:
    return f"{prefix}-{trade_id}-{uuid.uuid4().hex[:8]}"


def apply_reduce_position_size(trades: List[Trade], action: RiskAction, ctx: _ApplyContext) -> None:
    params = ReduceParameters.parse(action.parameters)
    for trade in trades:
        keep = max(1, math.floor(trade.quantity * params.reduction_factor))
        if keep >= trade.quantity:
            continue

        reduced = trade.quantity - keep
        profit, pct = trade.realized_profit(reduced)
        closed = copy.deepcopy(trade)
        closed.id = f"{trade.id}-closed-{uuid.uuid4().hex[:8]}"
        closed.quantity = reduced
        closed.status = TradeStatus.CLOSED
        closed.closed_at = ctx.now
        closed.profit = profit
        closed.profit_percentage = pct
        closed.parent_id = trade.id
        ctx.all_trades.append(closed)

        trade.quantity = keep


def apply_increase_position_size(trades: List[Trade], action: RiskAction, ctx: _ApplyContext) -> None:
    # Capital checks belong to the caller
    params = IncreaseParameters.parse(action.parameters)
    for trade in trades:
        added = math.floor(trade.quantity * (params.increase_factor - 1))
        if added > 0:
            trade.quantity += added


def apply_exit_trade(trades: List[Trade], action: RiskAction, ctx: _ApplyContext) -> None:
    for trade in trades:
        trade.profit, trade.profit_percentage = trade.realized_profit()
        trade.status = TradeStatus.CLOSED
        trade.closed_at = ctx.now


def find_hedge_option(trade: Trade, options: Sequence[OptionContract]) -> Optional[OptionContract]:
    """Opposite-type option with the same expiration and the nearest strike."""
    candidates = [
        o for o in options
        if o.type is trade.type.opposite and o.expiration_date == trade.expiration_date
    ]
    if not candidates:
        return None
    return min(candidates, key=lambda o: abs(o.strike_price - trade.strike_price))


def apply_hedge_position(trades: List[Trade], action: RiskAction, ctx: _ApplyContext) -> None:
    if not ctx.settings.enable_hedging:
        logger.debug(f"Hedging disabled, skipping action {action.id}")
        return

    for trade in trades:
        option = find_hedge_option(trade, ctx.available_options)
        if option is None:
            logger.debug(f"No hedge candidate for trade {trade.id}")
            continue

        ctx.all_trades.append(Trade(
            id=_child_id("hedge", trade.id),
            option_id=option.id,
            type=option.type,
            strike_price=option.strike_price,
            expiration_date=option.expiration_date,
            entry_price=option.premium,
            current_price=option.premium,
            target_price=option.premium * HEDGE_TARGET_MULTIPLE,
            stop_loss=option.premium * HEDGE_STOP_MULTIPLE,
            quantity=max(1, math.floor(trade.quantity * HEDGE_SIZE_FRACTION)),
            status=TradeStatus.ACTIVE,
            opened_at=ctx.now,
            confidence_score=HEDGE_CONFIDENCE,
            parent_id=trade.id,
        ))


def _is_adverse(trade: Trade, direction: Optional[RiskSignalDirection]) -> bool:
    return (
        (trade.type is OptionType.CALL and direction is RiskSignalDirection.BEARISH)
        or (trade.type is OptionType.PUT and direction is RiskSignalDirection.BULLISH)
    )


def _is_favourable(trade: Trade, direction: Optional[RiskSignalDirection]) -> bool:
    return (
        (trade.type is OptionType.CALL and direction is RiskSignalDirection.BULLISH)
        or (trade.type is OptionType.PUT and direction is RiskSignalDirection.BEARISH)
    )


def apply_adjust_stop_loss(trades: List[Trade], action: RiskAction, ctx: _ApplyContext) -> None:
    params = StopLossParameters.parse(action.parameters)
    for trade in trades:
        if _is_adverse(trade, params.signal_direction):
            gap = trade.current_price - trade.stop_loss
            trade.stop_loss = trade.current_price - gap * params.adjustment_factor


def apply_adjust_take_profit(trades: List[Trade], action: RiskAction, ctx: _ApplyContext) -> None:
    params = TakeProfitParameters.parse(action.parameters)
    for trade in trades:
        if _is_favourable(trade, params.signal_direction) and trade.is_profitable:
            gap = trade.target_price - trade.current_price
            trade.target_price = trade.current_price + gap * params.adjustment_factor


def apply_convert_to_spread(trades: List[Trade], action: RiskAction, ctx: _ApplyContext) -> None:
    """Extension point: adding the short leg of a vertical spread is not implemented."""
    logger.debug(f"convert_to_spread not implemented, skipping action {action.id}")


ActionApplier = Callable[[List[Trade], RiskAction, _ApplyContext], None]

ACTION_APPLIERS: Dict[RiskActionType, ActionApplier] = {
    RiskActionType.REDUCE_POSITION_SIZE: apply_reduce_position_size,
    RiskActionType.INCREASE_POSITION_SIZE: apply_increase_position_size,
    RiskActionType.EXIT_TRADE: apply_exit_trade,
    RiskActionType.HEDGE_POSITION: apply_hedge_position,
    RiskActionType.ADJUST_STOP_LOSS: apply_adjust_stop_loss,
    RiskActionType.ADJUST_TAKE_PROFIT: apply_adjust_take_profit,
    RiskActionType.CONVERT_TO_SPREAD: apply_convert_to_spread,
}


def apply_actions(
    actions: Sequence[RiskAction],
    trades: Sequence[Trade],
    available_options: Sequence[OptionContract],
    settings: AITradingSettings,
    now: Optional[datetime] = None,
) -> List[Trade]:
    """
    Apply risk actions to a copy of the trades.

    Only active trades listed in an action's trade_ids are modified.

    Returns:
        New trade list reflecting every applied action
    """
    ctx = _ApplyContext(
        all_trades=copy.deepcopy(list(trades)),
        available_options=available_options,
        settings=settings,
        now=now or datetime.now(),
    )

    for action in actions:
        applier = ACTION_APPLIERS.get(action.action_type)
        if applier is None:
            continue
        targets = [t for t in ctx.all_trades if t.is_active and t.id in action.trade_ids]
        if not targets:
            continue
        applier(targets, action, ctx)

    return ctx.all_trades
