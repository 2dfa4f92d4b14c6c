"""
Tests for risk_monitoring/service.py - the full monitoring cycle.

Scenarios:
- VIX at 42 with an aggressive user hedges every active trade
- RSI at 85 in a bullish market tightens CALL stops
- Learning from closed trades feeds back into the next cycle
"""
import pytest

from config.settings_schema import AITradingSettings
from core.structured_log import read_recent_logs
from risk_monitoring.monitoring_log import MonitoringLogStore
from risk_monitoring.service import RiskMonitoringService
from risk_monitoring.types import (
    MarketCondition,
    OptionType,
    RiskActionType,
    RiskSignalDirection,
    RiskSignalSource,
    RiskSignalStrength,
    RiskToleranceType,
    TradeStatus,
)
from tests.fixtures import (
    NOW,
    flat_history,
    history_from_prices,
    make_signal,
    make_trade,
    rsi_85_prices,
    snapshot,
)


class TestVix42Scenario:
    """Extreme volatility with an aggressive user."""

    @pytest.fixture
    def result(self, service, mixed_trades, option_chain):
        history = flat_history(days=10, vix=42)
        return service.run_cycle(snapshot(450, 42), history, mixed_trades, option_chain,
                                 RiskToleranceType.AGGRESSIVE, now=NOW)

    def test_market_is_volatile(self, result):
        assert result.profile.current_condition is MarketCondition.VOLATILE

    def test_one_extreme_bearish_signal(self, result):
        assert len(result.signals) == 1
        signal = result.signals[0]
        assert signal.source is RiskSignalSource.VOLATILITY
        assert signal.strength is RiskSignalStrength.EXTREME
        assert signal.direction is RiskSignalDirection.BEARISH
        assert signal.confidence == pytest.approx(0.9)

    def test_hedge_covers_all_active_trades(self, result):
        assert len(result.actions) == 1
        action = result.actions[0]
        assert action.action_type is RiskActionType.HEDGE_POSITION
        assert set(action.trade_ids) == {"call-1", "call-2", "put-1", "put-2"}

    def test_hedges_added_to_updated_trades(self, result, mixed_trades):
        hedges = [t for t in result.updated_trades if t.id.startswith("hedge-")]
        assert len(hedges) == 4
        assert {h.parent_id for h in hedges} == {"call-1", "call-2", "put-1", "put-2"}
        for hedge in hedges:
            parent = next(t for t in mixed_trades if t.id == hedge.parent_id)
            assert hedge.type is parent.type.opposite
        # Inputs untouched
        assert len(mixed_trades) == 5

    def test_everything_recorded(self, result, service):
        log = service.get_monitoring_log()
        assert [s.id for s in log.signals] == [result.signals[0].id]
        assert [a.id for a in log.actions] == [result.actions[0].id]


class TestRsi85Scenario:
    def test_bullish_market_overbought(self, service):
        prices = rsi_85_prices(start=448.0)
        history = history_from_prices(prices, vix=18)
        # Well above MA10 keeps the market bullish
        current = snapshot(prices[-1] + 5, 18)
        trades = [
            make_trade("call", OptionType.CALL, entry=5.0, current=6.0, stop=3.0),
            make_trade("put", OptionType.PUT, entry=4.0, current=3.0, stop=2.0),
        ]

        result = service.run_cycle(current, history, trades, [], RiskToleranceType.MODERATE, now=NOW)

        assert result.profile.current_condition is MarketCondition.BULLISH
        assert len(result.signals) == 1
        signal = result.signals[0]
        assert signal.strength is RiskSignalStrength.STRONG
        assert signal.direction is RiskSignalDirection.BEARISH
        assert signal.confidence == pytest.approx(1.0)

        assert [a.action_type for a in result.actions] == [RiskActionType.ADJUST_STOP_LOSS]
        updated = {t.id: t for t in result.updated_trades}
        # Stop moved 30% closer to the CALL's current price
        assert updated["call"].stop_loss == pytest.approx(6.0 - 3.0 * 0.7)
        assert updated["put"].stop_loss == 2.0


class TestDetermineRiskActions:
    def test_empty_inputs(self, service, mixed_trades):
        assert service.determine_risk_actions([], mixed_trades) == []
        assert service.determine_risk_actions([make_signal()], []) == []
        assert service.get_monitoring_log().signals == ()

    def test_unseen_signals_are_recorded(self, service, mixed_trades):
        signal = make_signal(strength=RiskSignalStrength.EXTREME)

        actions = service.determine_risk_actions([signal], mixed_trades, RiskToleranceType.MODERATE)

        log = service.get_monitoring_log()
        assert [s.id for s in log.signals] == [signal.id]
        assert all(a.signal_id == signal.id for a in log.actions)
        assert len(log.actions) == len(actions) == 1

    def test_known_signals_not_duplicated(self, service, mixed_trades):
        signal = make_signal(strength=RiskSignalStrength.EXTREME)
        service.store.append_signals([signal])
        service.determine_risk_actions([signal], mixed_trades)
        assert len(service.get_monitoring_log().signals) == 1

    def test_default_tolerance_from_settings(self, store, mixed_trades):
        service = RiskMonitoringService(store=store, settings=AITradingSettings(default_risk_tolerance="conservative"))
        signal = make_signal(strength=RiskSignalStrength.EXTREME)
        [action] = service.determine_risk_actions([signal], mixed_trades)
        assert action.action_type is RiskActionType.EXIT_TRADE
        assert action.user_risk_tolerance is RiskToleranceType.CONSERVATIVE

    def test_actions_event_logged(self, service, mixed_trades):
        service.determine_risk_actions([make_signal(strength=RiskSignalStrength.EXTREME)], mixed_trades)
        entries = read_recent_logs(count=10, event="risk_actions_determined")
        assert entries[-1]["action_types"] == {"reduce_position_size": 1}


class TestLearningLoop:
    def test_insights_feed_the_next_cycle(self, service, mixed_trades, option_chain):
        """A profitable learned exit replaces the hedge for the same pattern."""
        history = flat_history(days=10, vix=42)
        first = service.run_cycle(snapshot(450, 42), history, mixed_trades, option_chain,
                                  RiskToleranceType.AGGRESSIVE, now=NOW)
        hedge_action = first.actions[0]

        # Same pattern, exited instead, twenty winners
        signal = first.signals[0]
        exits = []
        closed_trades = []
        for i in range(20):
            trade_id = f"hist-{i}"
            trade = make_trade(trade_id, status=TradeStatus.CLOSED)
            trade.profit = 150.0
            closed_trades.append(trade)
            exits.append(service.determine_risk_actions(
                [signal], [make_trade(trade_id)], RiskToleranceType.CONSERVATIVE, now=NOW,
            )[0])
        assert {a.action_type for a in exits} == {RiskActionType.EXIT_TRADE}

        [insight] = service.learn_from_risk_action_outcomes(closed_trades, exits + [hedge_action], now=NOW)
        assert insight.action_taken is RiskActionType.EXIT_TRADE
        assert insight.confidence == pytest.approx(1.0)
        assert service.get_monitoring_log().learning_insights == (insight,)

        second = service.run_cycle(snapshot(450, 42), history, mixed_trades, option_chain,
                                   RiskToleranceType.AGGRESSIVE, now=NOW)
        action = second.actions[0]
        assert action.action_type is RiskActionType.EXIT_TRADE
        assert action.parameters["learned_override"] is True
        assert action.parameters["table_action"] == "hedge_position"
        assert service.get_recommended_actions_for_signal(second.signals[0]) == [RiskActionType.EXIT_TRADE]

    def test_recommendations_fall_back_without_insights(self, service):
        signal = make_signal(direction=RiskSignalDirection.BULLISH)
        assert service.get_recommended_actions_for_signal(signal)[0] is RiskActionType.INCREASE_POSITION_SIZE


class TestMonitoringLogAccess:
    def test_services_do_not_share_state(self, settings, mixed_trades):
        a = RiskMonitoringService(settings=settings)
        b = RiskMonitoringService(settings=settings)
        a.determine_risk_actions([make_signal(strength=RiskSignalStrength.EXTREME)], mixed_trades)
        assert len(a.get_monitoring_log().actions) == 1
        assert b.get_monitoring_log().actions == ()

    def test_export_import_between_services(self, service, settings, mixed_trades):
        service.determine_risk_actions([make_signal(strength=RiskSignalStrength.EXTREME)], mixed_trades)
        other = RiskMonitoringService(store=MonitoringLogStore(), settings=settings)

        assert other.import_monitoring_log(service.export_monitoring_log()) is True
        assert other.get_monitoring_log() == service.get_monitoring_log()

        other.reset_monitoring_log()
        assert other.get_monitoring_log().signals == ()

    def test_risk_adjustments_use_service_settings(self, service):
        profile = service.analyze_market(snapshot(450, 40), flat_history(days=12, vix=40))
        adj = service.calculate_risk_adjustments(profile, [], RiskToleranceType.MODERATE, 40.0)
        # VIX 40 vs threshold 25, plus the 0.8-impact volatility factor
        assert adj.position_size_adjustment == pytest.approx(0.7 * 0.76)
