"""
Unit tests for risk_monitoring/monitoring_log.py.

Export/import round trip, validation of malformed input and signal-id
resolution for appended actions.
"""
import json
from datetime import datetime

import pytest

from core.exceptions import MonitoringLogImportError, UnknownSignalError
from core.structured_log import read_recent_logs
from risk_monitoring.monitoring_log import MonitoringLogStore, parse_monitoring_log
from risk_monitoring.types import (
    LearningInsight,
    RiskActionType,
    RiskSignalSource,
    RiskSignalStrength,
    RiskToleranceType,
    SignalPattern,
)
from tests.fixtures import NOW, make_action, make_signal


@pytest.fixture
def populated_store():
    store = MonitoringLogStore()
    technical = make_signal(data_points={"rsi": 84.5})
    volatility = make_signal(RiskSignalSource.VOLATILITY, RiskSignalStrength.EXTREME,
                             confidence=0.9, data_points={"vix": 42.0})
    store.append_signals([technical, volatility])
    store.append_actions([
        make_action(technical, RiskActionType.ADJUST_STOP_LOSS, ["t1", "t2"],
                    {"signal_direction": "bearish", "adjustment_factor": 0.7}),
        make_action(volatility, RiskActionType.HEDGE_POSITION, ["t1"]).with_outcome(True, 125.5),
    ])
    store.append_insights([LearningInsight(
        id="i1",
        timestamp=NOW,
        description="hedges work",
        signal_pattern=SignalPattern.of(volatility),
        action_taken=RiskActionType.HEDGE_POSITION,
        success_rate=0.75,
        profit_impact=80.0,
        average_profit_impact=80.0,
        applied_count=4,
        related_risk_tolerance=RiskToleranceType.AGGRESSIVE,
        confidence=0.15,
        recommended_actions=(RiskActionType.HEDGE_POSITION, RiskActionType.EXIT_TRADE),
    )])
    return store


class TestAppend:
    def test_actions_must_reference_known_signals(self, store):
        signal = make_signal()
        action = make_action(signal, RiskActionType.EXIT_TRADE, ["t1"])

        with pytest.raises(UnknownSignalError) as exc_info:
            store.append_actions([action])

        assert exc_info.value.context["signal_id"] == signal.id
        assert store.actions == []

    def test_batch_is_all_or_nothing(self, store):
        known = make_signal()
        store.append_signals([known])
        good = make_action(known, RiskActionType.EXIT_TRADE, ["t1"])
        bad = make_action(make_signal(), RiskActionType.EXIT_TRADE, ["t1"])

        with pytest.raises(UnknownSignalError):
            store.append_actions([good, bad])
        assert store.actions == []

    def test_every_action_resolves(self, populated_store):
        log = populated_store.snapshot()
        ids = {s.id for s in log.signals}
        assert all(a.signal_id in ids for a in log.actions)

    def test_find_signal(self, populated_store):
        first = populated_store.signals[0]
        assert populated_store.find_signal(first.id) is first
        assert populated_store.find_signal("missing") is None

    def test_stores_are_independent(self, populated_store):
        assert MonitoringLogStore().snapshot().signals == ()
        assert len(populated_store.signals) == 2

    def test_reset(self, populated_store):
        populated_store.reset()
        assert populated_store.stats() == {"signals": 0, "actions": 0, "learning_insights": 0}


class TestExportImport:
    def test_round_trip(self, populated_store):
        original = populated_store.snapshot()
        data = populated_store.export_log()

        other = MonitoringLogStore()
        assert other.import_log(data) is True

        restored = other.snapshot()
        assert restored == original
        assert isinstance(restored.signals[0].timestamp, datetime)
        assert restored.actions[1].profit_impact == 125.5
        assert restored.learning_insights[0].recommended_actions == (
            RiskActionType.HEDGE_POSITION, RiskActionType.EXIT_TRADE,
        )

    def test_export_uses_snake_case_keys(self, populated_store):
        raw = json.loads(populated_store.export_log())
        assert set(raw) == {"signals", "actions", "learning_insights"}
        assert raw["actions"][0]["signal_id"] == raw["signals"][0]["id"]

    def test_missing_actions_rejected_and_log_unchanged(self, populated_store):
        before = populated_store.snapshot()
        raw = json.loads(populated_store.export_log())
        del raw["actions"]

        assert populated_store.import_log(json.dumps(raw)) is False
        assert populated_store.snapshot() == before

    def test_actions_for_missing_signals_rejected(self, populated_store):
        """Every imported action must resolve to an imported signal."""
        before = populated_store.snapshot()
        raw = json.loads(populated_store.export_log())
        raw["signals"] = []

        with pytest.raises(MonitoringLogImportError) as exc_info:
            parse_monitoring_log(json.dumps(raw))
        assert exc_info.value.context["signal_ids"] == sorted({s.id for s in before.signals})

        other = MonitoringLogStore()
        assert other.import_log(json.dumps(raw)) is False
        assert other.stats() == {"signals": 0, "actions": 0, "learning_insights": 0}
        assert populated_store.import_log(json.dumps(raw)) is False
        assert populated_store.snapshot() == before

    @pytest.mark.parametrize("data", [
        "not json",
        "[]",
        '{"signals": [], "actions": {}, "learning_insights": []}',
        '{"signals": [{"id": "x"}], "actions": [], "learning_insights": []}',
        '{"signals": [], "actions": [], "learning_insights": [{"id": "i", "action_taken": "dance"}]}',
        pytest.param("[" * 100000 + "]" * 100000, id="deeply-nested"),
    ])
    def test_malformed_input_rejected(self, populated_store, data):
        before = populated_store.snapshot()
        assert populated_store.import_log(data) is False
        assert populated_store.snapshot() == before

    def test_rejection_is_logged(self, store):
        store.import_log("{}")
        entries = read_recent_logs(count=5, event="monitoring_log_import_rejected")
        assert entries
        assert entries[-1]["error_code"] == "MONITORING_LOG_IMPORT_ERROR"
        assert set(entries[-1]["context"]["missing"]) == {"signals", "actions", "learning_insights"}

    def test_parse_raises_typed_error(self):
        with pytest.raises(MonitoringLogImportError):
            parse_monitoring_log('{"signals": []}')

    def test_import_replaces_existing_content(self, populated_store):
        empty = MonitoringLogStore().export_log()
        assert populated_store.import_log(empty) is True
        assert populated_store.stats()["signals"] == 0
        assert not populated_store.has_signal("anything")
