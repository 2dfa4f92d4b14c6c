"""
Exception hierarchy for the options risk monitor.

All exceptions inherit from RiskMonitorError so callers can catch the whole
family in one place while still branching on the specific failure.

Usage:
    from core.exceptions import RiskMonitorError, UnknownSignalError

    try:
        store.append_actions(actions)
    except UnknownSignalError as e:
        log_and_skip(e.context["signal_id"])
    except RiskMonitorError as e:
        log_error(e.to_dict())
"""
from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, Optional


# =============================================================================
# BASE EXCEPTION
# =============================================================================

class RiskMonitorError(Exception):
    """
    Base exception for all risk monitor errors.

    Attributes:
        error_code: Unique identifier for this error type
        is_recoverable: Whether the caller can carry on after handling it
        context: Additional context about the error
        timestamp: When the error occurred
    """
    error_code: str = "RISK_MONITOR_ERROR"
    is_recoverable: bool = True

    def __init__(
        self,
        message: str,
        context: Optional[Dict[str, Any]] = None,
        cause: Optional[Exception] = None,
    ):
        self.message = message
        self.context = context or {}
        self.cause = cause
        self.timestamp = datetime.utcnow()
        super().__init__(message)

    def __str__(self) -> str:
        base = f"[{self.error_code}] {self.message}"
        if self.context:
            ctx_str = ", ".join(f"{k}={v}" for k, v in self.context.items())
            base = f"{base} ({ctx_str})"
        return base

    def to_dict(self) -> Dict[str, Any]:
        """Convert exception to dictionary for logging/serialization."""
        return {
            "error_code": self.error_code,
            "message": self.message,
            "is_recoverable": self.is_recoverable,
            "context": self.context,
            "timestamp": self.timestamp.isoformat(),
            "cause": str(self.cause) if self.cause else None,
        }


# =============================================================================
# CONFIGURATION ERRORS
# =============================================================================

class ConfigurationError(RiskMonitorError):
    """Base class for configuration problems."""
    error_code = "CONFIGURATION_ERROR"
    is_recoverable = False


class SettingsValidationError(ConfigurationError):
    """Raised when settings fail schema validation."""
    error_code = "SETTINGS_VALIDATION_ERROR"


# =============================================================================
# MONITORING LOG ERRORS
# =============================================================================

class MonitoringLogError(RiskMonitorError):
    """Base class for monitoring log problems."""
    error_code = "MONITORING_LOG_ERROR"


class MonitoringLogImportError(MonitoringLogError):
    """
    Raised when serialized monitoring log data is malformed.

    The store catches this internally and reports failure to the caller;
    the existing log is never partially replaced.
    """
    error_code = "MONITORING_LOG_IMPORT_ERROR"


class UnknownSignalError(MonitoringLogError):
    """Raised when an action references a signal the log has never seen."""
    error_code = "UNKNOWN_SIGNAL"

    def __init__(self, signal_id: str, action_id: Optional[str] = None):
        super().__init__(
            f"Action references unknown signal {signal_id}",
            context={"signal_id": signal_id, "action_id": action_id},
        )


# =============================================================================
# DETECTOR ERRORS
# =============================================================================

class DetectorRegistrationError(RiskMonitorError):
    """Raised when a signal detector cannot be registered."""
    error_code = "DETECTOR_REGISTRATION_ERROR"
    is_recoverable = False


# =============================================================================
# HELPERS
# =============================================================================

def get_error_code(exc: Exception) -> str:
    """Return the error code for any exception (generic code for foreign ones)."""
    if isinstance(exc, RiskMonitorError):
        return exc.error_code
    return "UNKNOWN_ERROR"
