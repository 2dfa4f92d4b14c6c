"""
Risk Monitoring
===============

Automated risk monitoring for an options portfolio:

- market_analysis: MarketRiskProfile from market history
- signal_detection: pluggable risk signal detectors
- action_determination: signals -> actions via decision tables
- action_application: actions -> updated trades
- learning: insights from action outcomes
- monitoring_log: append-only record with JSON export/import
- risk_adjustment: sizing multipliers for new trades
- service: RiskMonitoringService orchestrating the cycle
"""

from .types import (
    RiskSignalSource,
    MarketCondition,
    RiskSignalStrength,
    RiskSignalDirection,
    RiskActionType,
    RiskToleranceType,
    OptionType,
    TradeStatus,
    MarketData,
    OptionContract,
    Trade,
    RiskSignal,
    RiskAction,
    SignalPattern,
    LearningInsight,
    RiskFactor,
    MarketRiskProfile,
    MonitoringLog,
)
from .market_analysis import analyze_market_condition, calculate_simplified_rsi
from .signal_detection import (
    DetectionContext,
    DetectorRegistry,
    default_registry,
    detect_signals,
    group_signals_by_source_and_direction,
)
from .action_determination import determine_actions
from .action_application import apply_actions
from .learning import learn_from_outcomes, get_recommended_actions
from .monitoring_log import MonitoringLogStore
from .risk_adjustment import RiskAdjustmentFactors, calculate_risk_adjustments
from .service import RiskMonitoringService, MonitoringCycleResult

__all__ = [
    # Types
    'RiskSignalSource',
    'MarketCondition',
    'RiskSignalStrength',
    'RiskSignalDirection',
    'RiskActionType',
    'RiskToleranceType',
    'OptionType',
    'TradeStatus',
    'MarketData',
    'OptionContract',
    'Trade',
    'RiskSignal',
    'RiskAction',
    'SignalPattern',
    'LearningInsight',
    'RiskFactor',
    'MarketRiskProfile',
    'MonitoringLog',
    # Stages
    'analyze_market_condition',
    'calculate_simplified_rsi',
    'DetectionContext',
    'DetectorRegistry',
    'default_registry',
    'detect_signals',
    'group_signals_by_source_and_direction',
    'determine_actions',
    'apply_actions',
    'learn_from_outcomes',
    'get_recommended_actions',
    'calculate_risk_adjustments',
    'RiskAdjustmentFactors',
    # Orchestration
    'MonitoringLogStore',
    'RiskMonitoringService',
    'MonitoringCycleResult',
]
