"""
Monitoring Log Store

Append-only record of every signal, action and learning insight the
pipeline produces. Each pipeline owns (or is handed) its own store, so
independent pipelines never share state.

Usage:
    store = MonitoringLogStore()
    store.append_signals(signals)
    store.append_actions(actions)       # signal ids must already be known

    data = store.export_log()
    other = MonitoringLogStore()
    if not other.import_log(data):
        ...                             # malformed input, `other` unchanged
"""
from __future__ import annotations

import json
import logging
import threading
from typing import Any, Dict, Iterable, List, Optional

from core.exceptions import MonitoringLogImportError, UnknownSignalError
from core.structured_log import jlog
from risk_monitoring.types import LearningInsight, MonitoringLog, RiskAction, RiskSignal

logger = logging.getLogger(__name__)

REQUIRED_KEYS = ("signals", "actions", "learning_insights")


def parse_monitoring_log(data: str) -> MonitoringLog:
    """
    Parse and validate serialized log data.

    Raises:
        MonitoringLogImportError: If the data is not a complete, well-formed log
    """
    try:
        raw = json.loads(data)
    except (TypeError, ValueError, RecursionError) as e:
        raise MonitoringLogImportError("Monitoring log is not valid JSON", cause=e) from e

    if not isinstance(raw, dict):
        raise MonitoringLogImportError("Monitoring log must be a JSON object")

    missing = [k for k in REQUIRED_KEYS if not isinstance(raw.get(k), list)]
    if missing:
        raise MonitoringLogImportError(
            "Monitoring log is missing required lists", context={"missing": missing}
        )

    try:
        log = MonitoringLog.from_dict(raw)
    except (KeyError, TypeError, ValueError, AttributeError) as e:
        raise MonitoringLogImportError("Monitoring log contains a malformed record", cause=e) from e

    signal_ids = {s.id for s in log.signals}
    dangling = sorted({a.signal_id for a in log.actions if a.signal_id not in signal_ids})
    if dangling:
        raise MonitoringLogImportError(
            "Monitoring log has actions for unknown signals", context={"signal_ids": dangling}
        )
    return log


class MonitoringLogStore:
    """
    In-memory, append-only monitoring log.

    Appends and imports are serialized by an internal lock; existing
    entries are never modified.
    """

    def __init__(self, initial: Optional[MonitoringLog] = None):
        self._lock = threading.RLock()
        self._signals: List[RiskSignal] = []
        self._actions: List[RiskAction] = []
        self._insights: List[LearningInsight] = []
        self._signal_ids: Dict[str, RiskSignal] = {}
        if initial is not None:
            self._replace(initial)

    # ------------------------------------------------------------------
    # Appends
    # ------------------------------------------------------------------

    def append_signals(self, signals: Iterable[RiskSignal]) -> None:
        with self._lock:
            for signal in signals:
                self._signals.append(signal)
                self._signal_ids[signal.id] = signal

    def append_actions(self, actions: Iterable[RiskAction]) -> None:
        """
        Append actions.

        Raises:
            UnknownSignalError: If any action's signal has not been recorded;
                nothing is appended in that case
        """
        actions = list(actions)
        with self._lock:
            for action in actions:
                if action.signal_id not in self._signal_ids:
                    raise UnknownSignalError(action.signal_id, action.id)
            self._actions.extend(actions)

    def append_insights(self, insights: Iterable[LearningInsight]) -> None:
        with self._lock:
            self._insights.extend(insights)

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def has_signal(self, signal_id: str) -> bool:
        return signal_id in self._signal_ids

    def find_signal(self, signal_id: str) -> Optional[RiskSignal]:
        return self._signal_ids.get(signal_id)

    @property
    def signals(self) -> List[RiskSignal]:
        return list(self._signals)

    @property
    def actions(self) -> List[RiskAction]:
        return list(self._actions)

    @property
    def learning_insights(self) -> List[LearningInsight]:
        return list(self._insights)

    def snapshot(self) -> MonitoringLog:
        with self._lock:
            return MonitoringLog(
                signals=tuple(self._signals),
                actions=tuple(self._actions),
                learning_insights=tuple(self._insights),
            )

    def stats(self) -> Dict[str, Any]:
        return {
            "signals": len(self._signals),
            "actions": len(self._actions),
            "learning_insights": len(self._insights),
        }

    # ------------------------------------------------------------------
    # Export / import
    # ------------------------------------------------------------------

    def export_log(self) -> str:
        """Serialize the whole log to JSON."""
        return json.dumps(self.snapshot().to_dict(), indent=2)

    def import_log(self, data: str) -> bool:
        """
        Replace the log with serialized data.

        Returns:
            True on success; False on any parse/validation failure, in which
            case the current log is left untouched
        """
        try:
            parsed = parse_monitoring_log(data)
        except MonitoringLogImportError as e:
            logger.warning(f"Failed to import monitoring log: {e}")
            jlog("monitoring_log_import_rejected", level="WARNING", **e.to_dict())
            return False

        with self._lock:
            self._replace(parsed)
        jlog("monitoring_log_imported", **self.stats())
        return True

    def reset(self) -> None:
        """Clear everything (tests and utilities only)."""
        with self._lock:
            self._replace(MonitoringLog())

    def _replace(self, log: MonitoringLog) -> None:
        self._signals = list(log.signals)
        self._actions = list(log.actions)
        self._insights = list(log.learning_insights)
        self._signal_ids = {s.id: s for s in self._signals}
