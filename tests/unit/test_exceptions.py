"""
Tests for the risk monitor exception hierarchy.

This module tests core/exceptions.py which provides the exception
hierarchy shared by the settings, monitoring log and detector layers.
"""

import pytest
from datetime import datetime

from core.exceptions import (
    RiskMonitorError,
    ConfigurationError,
    SettingsValidationError,
    MonitoringLogError,
    MonitoringLogImportError,
    UnknownSignalError,
    DetectorRegistrationError,
    get_error_code,
)


class TestRiskMonitorError:
    """Tests for the base exception class."""

    def test_basic_creation(self):
        """Test basic exception creation."""
        error = RiskMonitorError("Test error")
        assert str(error) == "[RISK_MONITOR_ERROR] Test error"
        assert error.message == "Test error"
        assert error.is_recoverable is True
        assert error.context == {}
        assert error.cause is None
        assert isinstance(error.timestamp, datetime)

    def test_with_context(self):
        """Context is rendered into the message."""
        error = RiskMonitorError("Bad log", context={"missing": ["actions"], "size": 3})
        assert "missing=['actions']" in str(error)
        assert "size=3" in str(error)

    def test_to_dict(self):
        """Test serialization to dictionary."""
        cause = ValueError("boom")
        error = MonitoringLogImportError("Bad data", context={"line": 1}, cause=cause)
        data = error.to_dict()
        assert data["error_code"] == "MONITORING_LOG_IMPORT_ERROR"
        assert data["message"] == "Bad data"
        assert data["context"] == {"line": 1}
        assert data["cause"] == "boom"
        assert data["is_recoverable"] is True


class TestHierarchy:
    @pytest.mark.parametrize("exc_class,parent", [
        (ConfigurationError, RiskMonitorError),
        (SettingsValidationError, ConfigurationError),
        (MonitoringLogError, RiskMonitorError),
        (MonitoringLogImportError, MonitoringLogError),
        (UnknownSignalError, MonitoringLogError),
        (DetectorRegistrationError, RiskMonitorError),
    ])
    def test_inheritance(self, exc_class, parent):
        assert issubclass(exc_class, parent)

    def test_configuration_errors_not_recoverable(self):
        assert SettingsValidationError("bad").is_recoverable is False
        assert DetectorRegistrationError("bad").is_recoverable is False

    def test_unknown_signal_context(self):
        error = UnknownSignalError("sig-1", "act-9")
        assert error.context == {"signal_id": "sig-1", "action_id": "act-9"}
        assert "sig-1" in str(error)

    def test_catch_whole_family(self):
        with pytest.raises(RiskMonitorError):
            raise UnknownSignalError("sig-1")


class TestHelpers:
    def test_get_error_code(self):
        assert get_error_code(UnknownSignalError("x")) == "UNKNOWN_SIGNAL"
        assert get_error_code(SettingsValidationError("x")) == "SETTINGS_VALIDATION_ERROR"
        assert get_error_code(KeyError("x")) == "UNKNOWN_ERROR"
