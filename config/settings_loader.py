"""
YAML settings loader for the options risk monitor.
Provides dotted-path access to base.yaml settings.
"""
from __future__ import annotations

import os
from pathlib import Path
from typing import Any, Dict, Optional

import yaml
from dotenv import load_dotenv


_settings_cache: Optional[Dict[str, Any]] = None


def get_config_path() -> Path:
    """Return path to the YAML config file."""
    # Environment (.env included) wins over the packaged default
    load_dotenv()
    env_path = os.getenv("RISK_MONITOR_CONFIG_PATH")
    if env_path:
        return Path(env_path)
    return Path(__file__).parent / "base.yaml"


def load_settings(force_reload: bool = False) -> Dict[str, Any]:
    """Load and cache settings from the YAML config file."""
    global _settings_cache
    if _settings_cache is not None and not force_reload:
        return _settings_cache

    config_path = get_config_path()
    if not config_path.exists():
        _settings_cache = {}
        return _settings_cache

    with open(config_path, "r", encoding="utf-8") as f:
        _settings_cache = yaml.safe_load(f) or {}
    return _settings_cache


def get_setting(path: str, default: Any = None) -> Any:
    """
    Get a nested setting by dot-notation path.
    Example: get_setting("risk_monitoring.volatility_threshold", 25.0)
    """
    settings = load_settings()
    keys = path.split(".")
    value = settings
    for key in keys:
        if isinstance(value, dict) and key in value:
            value = value[key]
        else:
            return default
    return value


def get_risk_monitoring_section() -> Dict[str, Any]:
    """Raw `risk_monitoring` section of the config (empty if absent)."""
    section = get_setting("risk_monitoring", {})
    return section if isinstance(section, dict) else {}
