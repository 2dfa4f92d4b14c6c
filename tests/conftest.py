"""
Pytest configuration and shared fixtures for risk monitor tests.
"""

import os
import sys
import tempfile
from pathlib import Path

# Structured logs go to a throwaway directory (read at import time)
os.environ.setdefault("RISK_MONITOR_LOG_DIR", tempfile.mkdtemp(prefix="risk_monitor_logs_"))

import pytest

# Add project root to path
PROJECT_ROOT = Path(__file__).parent.parent
sys.path.insert(0, str(PROJECT_ROOT))

from config.settings_schema import AITradingSettings
from risk_monitoring.monitoring_log import MonitoringLogStore
from risk_monitoring.service import RiskMonitoringService
from risk_monitoring.types import OptionType, TradeStatus
from tests.fixtures import NOW, make_option, make_trade


@pytest.fixture
def settings():
    """Default settings, independent of config/base.yaml."""
    return AITradingSettings()


@pytest.fixture
def store():
    return MonitoringLogStore()


@pytest.fixture
def service(store, settings):
    return RiskMonitoringService(store=store, settings=settings)


@pytest.fixture
def now():
    return NOW


@pytest.fixture
def mixed_trades():
    """Two CALLs (one profitable), two PUTs (one profitable), one closed CALL."""
    return [
        make_trade("call-1", OptionType.CALL, strike=450, entry=5.0, current=4.0, quantity=10),
        make_trade("call-2", OptionType.CALL, strike=455, entry=3.0, current=4.5, quantity=4),
        make_trade("put-1", OptionType.PUT, strike=445, entry=4.0, current=6.0, quantity=6),
        make_trade("put-2", OptionType.PUT, strike=440, entry=4.0, current=3.0, quantity=2),
        make_trade("call-old", OptionType.CALL, strike=430, entry=2.0, current=2.5,
                   quantity=3, status=TradeStatus.CLOSED),
    ]


@pytest.fixture
def option_chain():
    """Calls and puts around 450 for the fixture expiry."""
    return [
        make_option("p-440", OptionType.PUT, 440, premium=3.0),
        make_option("p-455", OptionType.PUT, 455, premium=6.0),
        make_option("c-445", OptionType.CALL, 445, premium=7.0),
        make_option("c-460", OptionType.CALL, 460, premium=2.5),
    ]


@pytest.fixture
def temp_config(tmp_path, monkeypatch):
    """Point the settings loader at a temporary YAML file."""
    import config.settings_loader as loader

    config_path = tmp_path / "risk.yaml"
    monkeypatch.setenv("RISK_MONITOR_CONFIG_PATH", str(config_path))
    monkeypatch.setattr(loader, "_settings_cache", None)
    yield config_path
    loader._settings_cache = None
