"""
Risk Monitoring Types

Enums and records shared by every stage of the risk monitoring pipeline:
market inputs (MarketData, Trade, OptionContract), pipeline outputs
(RiskSignal, RiskAction, LearningInsight, MarketRiskProfile) and the
MonitoringLog snapshot.

All records serialize with to_dict() and rebuild with from_dict(); enums
serialize by value and datetimes as ISO-8601 strings.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field, replace
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple

# Option contracts cover 100 shares
CONTRACT_MULTIPLIER = 100


def clamp(value: float, low: float = 0.0, high: float = 1.0) -> float:
    """Clamp value into [low, high]."""
    return max(low, min(high, float(value)))


def new_id() -> str:
    """Generate a unique record id."""
    return str(uuid.uuid4())


def _parse_ts(value: Any) -> datetime:
    if isinstance(value, datetime):
        return value
    return datetime.fromisoformat(str(value))


def _parse_optional_ts(value: Any) -> Optional[datetime]:
    if value is None:
        return None
    return _parse_ts(value)


# =============================================================================
# ENUMS
# =============================================================================

class RiskSignalSource(Enum):
    """Where a risk signal came from."""
    TECHNICAL = "technical"
    VOLATILITY = "volatility"
    ECONOMIC = "economic"
    EARNINGS = "earnings"
    FED_MEETING = "fed_meeting"
    GEOPOLITICAL = "geopolitical"
    SENTIMENT = "sentiment"
    MOMENTUM = "momentum"  # risk factors only


class MarketCondition(Enum):
    """Overall market state."""
    BULLISH = "bullish"
    BEARISH = "bearish"
    NEUTRAL = "neutral"
    VOLATILE = "volatile"


class RiskSignalStrength(Enum):
    """How strong a risk signal is."""
    WEAK = "weak"
    MODERATE = "moderate"
    STRONG = "strong"
    EXTREME = "extreme"


class RiskSignalDirection(Enum):
    """Which way a signal points the market."""
    BULLISH = "bullish"
    BEARISH = "bearish"
    NEUTRAL = "neutral"


class RiskActionType(Enum):
    """Portfolio adjustment kinds."""
    REDUCE_POSITION_SIZE = "reduce_position_size"
    INCREASE_POSITION_SIZE = "increase_position_size"
    EXIT_TRADE = "exit_trade"
    HEDGE_POSITION = "hedge_position"
    ADJUST_STOP_LOSS = "adjust_stop_loss"
    ADJUST_TAKE_PROFIT = "adjust_take_profit"
    CONVERT_TO_SPREAD = "convert_to_spread"
    NO_ACTION = "no_action"


class RiskToleranceType(Enum):
    """User-configured aggressiveness."""
    CONSERVATIVE = "conservative"
    MODERATE = "moderate"
    AGGRESSIVE = "aggressive"


class OptionType(Enum):
    """Option contract type."""
    CALL = "CALL"
    PUT = "PUT"

    @property
    def opposite(self) -> "OptionType":
        return OptionType.PUT if self is OptionType.CALL else OptionType.CALL


class TradeStatus(Enum):
    """Lifecycle state of a trade."""
    PENDING = "pending"
    ACTIVE = "active"
    CLOSED = "closed"


# Action types whose new risk must not exceed the previous risk
RISK_REDUCING_ACTIONS = frozenset({
    RiskActionType.REDUCE_POSITION_SIZE,
    RiskActionType.EXIT_TRADE,
    RiskActionType.HEDGE_POSITION,
    RiskActionType.ADJUST_STOP_LOSS,
    RiskActionType.CONVERT_TO_SPREAD,
})


# =============================================================================
# MARKET INPUTS
# =============================================================================

@dataclass
class MarketData:
    """One market snapshot for the underlying (price plus VIX)."""
    price: float
    vix: float
    timestamp: datetime
    change: float = 0.0
    change_percent: float = 0.0
    volume: int = 0
    average_volume: int = 0
    high: float = 0.0
    low: float = 0.0
    open: float = 0.0
    previous_close: float = 0.0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "price": self.price,
            "vix": self.vix,
            "timestamp": self.timestamp.isoformat(),
            "change": self.change,
            "change_percent": self.change_percent,
            "volume": self.volume,
            "average_volume": self.average_volume,
            "high": self.high,
            "low": self.low,
            "open": self.open,
            "previous_close": self.previous_close,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "MarketData":
        return cls(
            price=float(data["price"]),
            vix=float(data["vix"]),
            timestamp=_parse_ts(data["timestamp"]),
            change=float(data.get("change", 0.0)),
            change_percent=float(data.get("change_percent", 0.0)),
            volume=int(data.get("volume", 0)),
            average_volume=int(data.get("average_volume", 0)),
            high=float(data.get("high", 0.0)),
            low=float(data.get("low", 0.0)),
            open=float(data.get("open", 0.0)),
            previous_close=float(data.get("previous_close", 0.0)),
        )


@dataclass
class OptionContract:
    """An option available in the chain (hedge candidate)."""
    id: str
    type: OptionType
    strike_price: float
    expiration_date: datetime
    premium: float
    implied_volatility: float = 0.0
    open_interest: int = 0
    volume: int = 0
    delta: float = 0.0
    gamma: float = 0.0
    theta: float = 0.0
    vega: float = 0.0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "type": self.type.value,
            "strike_price": self.strike_price,
            "expiration_date": self.expiration_date.isoformat(),
            "premium": self.premium,
            "implied_volatility": self.implied_volatility,
            "open_interest": self.open_interest,
            "volume": self.volume,
            "delta": self.delta,
            "gamma": self.gamma,
            "theta": self.theta,
            "vega": self.vega,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "OptionContract":
        return cls(
            id=str(data["id"]),
            type=OptionType(data["type"]),
            strike_price=float(data["strike_price"]),
            expiration_date=_parse_ts(data["expiration_date"]),
            premium=float(data["premium"]),
            implied_volatility=float(data.get("implied_volatility", 0.0)),
            open_interest=int(data.get("open_interest", 0)),
            volume=int(data.get("volume", 0)),
            delta=float(data.get("delta", 0.0)),
            gamma=float(data.get("gamma", 0.0)),
            theta=float(data.get("theta", 0.0)),
            vega=float(data.get("vega", 0.0)),
        )


@dataclass
class Trade:
    """An option position, open or closed."""
    id: str
    type: OptionType
    strike_price: float
    expiration_date: datetime
    entry_price: float
    current_price: float
    target_price: float
    stop_loss: float
    quantity: int
    status: TradeStatus = TradeStatus.ACTIVE
    opened_at: datetime = field(default_factory=datetime.now)
    closed_at: Optional[datetime] = None
    profit: float = 0.0
    profit_percentage: float = 0.0
    confidence_score: float = 0.5
    option_id: Optional[str] = None
    parent_id: Optional[str] = None     # set on split-off and hedge trades

    @property
    def is_active(self) -> bool:
        return self.status is TradeStatus.ACTIVE

    @property
    def is_profitable(self) -> bool:
        return self.current_price > self.entry_price

    def realized_profit(self, quantity: Optional[int] = None) -> Tuple[float, float]:
        """(profit, profit_percentage) if `quantity` contracts closed at current price."""
        qty = self.quantity if quantity is None else quantity
        move = self.current_price - self.entry_price
        profit = move * qty * CONTRACT_MULTIPLIER
        pct = (move / self.entry_price) * 100 if self.entry_price else 0.0
        return profit, pct

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "type": self.type.value,
            "strike_price": self.strike_price,
            "expiration_date": self.expiration_date.isoformat(),
            "entry_price": self.entry_price,
            "current_price": self.current_price,
            "target_price": self.target_price,
            "stop_loss": self.stop_loss,
            "quantity": self.quantity,
            "status": self.status.value,
            "opened_at": self.opened_at.isoformat(),
            "closed_at": self.closed_at.isoformat() if self.closed_at else None,
            "profit": self.profit,
            "profit_percentage": self.profit_percentage,
            "confidence_score": self.confidence_score,
            "option_id": self.option_id,
            "parent_id": self.parent_id,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Trade":
        opened_at = data.get("opened_at")
        return cls(
            id=str(data["id"]),
            type=OptionType(data["type"]),
            strike_price=float(data["strike_price"]),
            expiration_date=_parse_ts(data["expiration_date"]),
            entry_price=float(data["entry_price"]),
            current_price=float(data["current_price"]),
            target_price=float(data["target_price"]),
            stop_loss=float(data["stop_loss"]),
            quantity=int(data["quantity"]),
            status=TradeStatus(data.get("status", TradeStatus.ACTIVE.value)),
            opened_at=_parse_ts(opened_at) if opened_at is not None else datetime.now(),
            closed_at=_parse_optional_ts(data.get("closed_at")),
            profit=float(data.get("profit", 0.0)),
            profit_percentage=float(data.get("profit_percentage", 0.0)),
            confidence_score=float(data.get("confidence_score", 0.5)),
            option_id=data.get("option_id"),
            parent_id=data.get("parent_id"),
        )


# =============================================================================
# PIPELINE RECORDS
# =============================================================================

@dataclass(frozen=True)
class RiskSignal:
    """A detected market condition worth reacting to. Immutable."""
    id: str
    timestamp: datetime
    source: RiskSignalSource
    condition: MarketCondition
    strength: RiskSignalStrength
    direction: RiskSignalDirection
    description: str
    confidence: float
    data_points: Dict[str, float] = field(default_factory=dict)

    def __post_init__(self) -> None:
        object.__setattr__(self, "confidence", clamp(self.confidence))

    @property
    def group_key(self) -> str:
        return f"{self.source.value}_{self.direction.value}"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "timestamp": self.timestamp.isoformat(),
            "source": self.source.value,
            "condition": self.condition.value,
            "strength": self.strength.value,
            "direction": self.direction.value,
            "description": self.description,
            "data_points": dict(self.data_points),
            "confidence": self.confidence,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "RiskSignal":
        return cls(
            id=str(data["id"]),
            timestamp=_parse_ts(data["timestamp"]),
            source=RiskSignalSource(data["source"]),
            condition=MarketCondition(data["condition"]),
            strength=RiskSignalStrength(data["strength"]),
            direction=RiskSignalDirection(data["direction"]),
            description=str(data.get("description", "")),
            data_points=dict(data.get("data_points") or {}),
            confidence=float(data["confidence"]),
        )


@dataclass(frozen=True)
class RiskAction:
    """
    A recommended mitigation for one or more trades.

    `parameters` is a loose payload at the boundary; the action applier
    narrows it per action type. `success` and `profit_impact` stay None
    until the learning engine evaluates the closed trades.
    """
    id: str
    signal_id: str
    timestamp: datetime
    action_type: RiskActionType
    trade_ids: Tuple[str, ...]
    description: str
    user_risk_tolerance: RiskToleranceType
    parameters: Dict[str, Any] = field(default_factory=dict)
    previous_risk: float = 1.0
    new_risk: float = 1.0
    success: Optional[bool] = None
    profit_impact: Optional[float] = None

    def __post_init__(self) -> None:
        # Ordered set semantics
        object.__setattr__(self, "trade_ids", tuple(dict.fromkeys(self.trade_ids)))
        previous = clamp(self.previous_risk)
        new = clamp(self.new_risk)
        if self.action_type in RISK_REDUCING_ACTIONS:
            new = min(new, previous)
        object.__setattr__(self, "previous_risk", previous)
        object.__setattr__(self, "new_risk", new)

    @property
    def has_outcome(self) -> bool:
        return self.success is not None

    def with_outcome(self, success: bool, profit_impact: float) -> "RiskAction":
        """Copy of this action carrying its evaluated outcome."""
        return replace(self, success=success, profit_impact=profit_impact)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "signal_id": self.signal_id,
            "timestamp": self.timestamp.isoformat(),
            "action_type": self.action_type.value,
            "trade_ids": list(self.trade_ids),
            "description": self.description,
            "parameters": dict(self.parameters),
            "previous_risk": self.previous_risk,
            "new_risk": self.new_risk,
            "user_risk_tolerance": self.user_risk_tolerance.value,
            "success": self.success,
            "profit_impact": self.profit_impact,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "RiskAction":
        profit_impact = data.get("profit_impact")
        success = data.get("success")
        return cls(
            id=str(data["id"]),
            signal_id=str(data["signal_id"]),
            timestamp=_parse_ts(data["timestamp"]),
            action_type=RiskActionType(data["action_type"]),
            trade_ids=tuple(str(t) for t in data["trade_ids"]),
            description=str(data.get("description", "")),
            parameters=dict(data.get("parameters") or {}),
            previous_risk=float(data.get("previous_risk", 1.0)),
            new_risk=float(data.get("new_risk", 1.0)),
            user_risk_tolerance=RiskToleranceType(data["user_risk_tolerance"]),
            success=None if success is None else bool(success),
            profit_impact=None if profit_impact is None else float(profit_impact),
        )


@dataclass(frozen=True)
class SignalPattern:
    """Grouping key for learning: the four descriptive fields of a signal."""
    source: RiskSignalSource
    condition: MarketCondition
    strength: RiskSignalStrength
    direction: RiskSignalDirection

    @classmethod
    def of(cls, signal: RiskSignal) -> "SignalPattern":
        return cls(signal.source, signal.condition, signal.strength, signal.direction)

    @property
    def key(self) -> str:
        return "|".join([
            self.source.value, self.condition.value,
            self.strength.value, self.direction.value,
        ])

    def matches(self, signal: RiskSignal) -> bool:
        return self == SignalPattern.of(signal)

    def to_dict(self) -> Dict[str, str]:
        return {
            "source": self.source.value,
            "condition": self.condition.value,
            "strength": self.strength.value,
            "direction": self.direction.value,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "SignalPattern":
        return cls(
            source=RiskSignalSource(data["source"]),
            condition=MarketCondition(data["condition"]),
            strength=RiskSignalStrength(data["strength"]),
            direction=RiskSignalDirection(data["direction"]),
        )


@dataclass(frozen=True)
class LearningInsight:
    """How well actions taken on one signal pattern have performed."""
    id: str
    timestamp: datetime
    description: str
    signal_pattern: SignalPattern
    action_taken: RiskActionType
    success_rate: float
    profit_impact: float
    average_profit_impact: float
    applied_count: int
    related_risk_tolerance: RiskToleranceType
    confidence: float
    recommended_actions: Tuple[RiskActionType, ...] = ()

    def __post_init__(self) -> None:
        object.__setattr__(self, "success_rate", clamp(self.success_rate))
        object.__setattr__(self, "confidence", clamp(self.confidence))
        object.__setattr__(self, "applied_count", max(1, int(self.applied_count)))
        object.__setattr__(self, "recommended_actions", tuple(self.recommended_actions)[:3])

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "timestamp": self.timestamp.isoformat(),
            "description": self.description,
            "signal_pattern": self.signal_pattern.to_dict(),
            "action_taken": self.action_taken.value,
            "success_rate": self.success_rate,
            "profit_impact": self.profit_impact,
            "average_profit_impact": self.average_profit_impact,
            "applied_count": self.applied_count,
            "related_risk_tolerance": self.related_risk_tolerance.value,
            "confidence": self.confidence,
            "recommended_actions": [a.value for a in self.recommended_actions],
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "LearningInsight":
        return cls(
            id=str(data["id"]),
            timestamp=_parse_ts(data["timestamp"]),
            description=str(data.get("description", "")),
            signal_pattern=SignalPattern.from_dict(data["signal_pattern"]),
            action_taken=RiskActionType(data["action_taken"]),
            success_rate=float(data["success_rate"]),
            profit_impact=float(data.get("profit_impact", data["average_profit_impact"])),
            average_profit_impact=float(data["average_profit_impact"]),
            applied_count=int(data["applied_count"]),
            related_risk_tolerance=RiskToleranceType(data["related_risk_tolerance"]),
            confidence=float(data["confidence"]),
            recommended_actions=tuple(RiskActionType(a) for a in data.get("recommended_actions", [])),
        )


@dataclass(frozen=True)
class RiskFactor:
    """One contributor to the market risk profile."""
    source: RiskSignalSource
    impact: float
    description: str

    def __post_init__(self) -> None:
        object.__setattr__(self, "impact", clamp(self.impact))


@dataclass(frozen=True)
class MarketRiskProfile:
    """Snapshot summary of current market risk. Not persisted."""
    current_condition: MarketCondition
    volatility_level: float
    sentiment_score: float
    market_trend_strength: float
    market_trend_direction: RiskSignalDirection
    key_risk_factors: Tuple[RiskFactor, ...]
    composite_risk_score: float

    def __post_init__(self) -> None:
        object.__setattr__(self, "volatility_level", clamp(self.volatility_level))
        object.__setattr__(self, "sentiment_score", clamp(self.sentiment_score, -1.0, 1.0))
        object.__setattr__(self, "market_trend_strength", clamp(self.market_trend_strength))
        object.__setattr__(self, "composite_risk_score", clamp(self.composite_risk_score))
        object.__setattr__(self, "key_risk_factors", tuple(self.key_risk_factors))

    @classmethod
    def neutral(cls) -> "MarketRiskProfile":
        """Default profile used when there is not enough history."""
        return cls(
            current_condition=MarketCondition.NEUTRAL,
            volatility_level=0.5,
            sentiment_score=0.0,
            market_trend_strength=0.5,
            market_trend_direction=RiskSignalDirection.NEUTRAL,
            key_risk_factors=(),
            composite_risk_score=0.5,
        )


@dataclass(frozen=True)
class MonitoringLog:
    """Read-only snapshot of everything the pipeline has recorded."""
    signals: Tuple[RiskSignal, ...] = ()
    actions: Tuple[RiskAction, ...] = ()
    learning_insights: Tuple[LearningInsight, ...] = ()

    def to_dict(self) -> Dict[str, List[Dict[str, Any]]]:
        return {
            "signals": [s.to_dict() for s in self.signals],
            "actions": [a.to_dict() for a in self.actions],
            "learning_insights": [i.to_dict() for i in self.learning_insights],
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "MonitoringLog":
        return cls(
            signals=tuple(RiskSignal.from_dict(s) for s in data["signals"]),
            actions=tuple(RiskAction.from_dict(a) for a in data["actions"]),
            learning_insights=tuple(LearningInsight.from_dict(i) for i in data["learning_insights"]),
        )
