"""
Centralized test fixtures for the risk monitor.

This module provides reusable builders for:
- Market data histories (explicit paths, random walks, flat markets)
- Trades, option chains, signals and actions
"""

from .market_data import (
    history_from_prices,
    generate_history,
    flat_history,
    rsi_85_prices,
    snapshot,
)
from .portfolio import (
    EXPIRY,
    NOW,
    make_trade,
    make_option,
    make_signal,
    make_action,
)

__all__ = [
    # Market data
    "history_from_prices",
    "generate_history",
    "flat_history",
    "rsi_85_prices",
    "snapshot",
    # Portfolio
    "EXPIRY",
    "NOW",
    "make_trade",
    "make_option",
    "make_signal",
    "make_action",
]
