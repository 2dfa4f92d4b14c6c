"""
Core Infrastructure
====================

Foundational components shared by the risk monitoring pipeline.

Components:
- structured_log: JSON event logging
- exceptions: Error hierarchy
"""

from .structured_log import jlog, read_recent_logs
from .exceptions import (
    RiskMonitorError,
    ConfigurationError,
    SettingsValidationError,
    MonitoringLogError,
    MonitoringLogImportError,
    UnknownSignalError,
    DetectorRegistrationError,
    get_error_code,
)

__all__ = [
    # Structured Logging
    'jlog',
    'read_recent_logs',
    # Exceptions
    'RiskMonitorError',
    'ConfigurationError',
    'SettingsValidationError',
    'MonitoringLogError',
    'MonitoringLogImportError',
    'UnknownSignalError',
    'DetectorRegistrationError',
    'get_error_code',
]
