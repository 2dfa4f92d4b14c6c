"""
Risk event log

Appends one JSON line per risk-pipeline event to a rotating file under
RISK_MONITOR_LOG_DIR.

Usage:
    from core.structured_log import jlog, read_recent_logs

    jlog("risk_actions_applied", actions=3)
    recent = read_recent_logs(count=20, event="risk_actions_applied")
"""
from __future__ import annotations

import json
import logging
import os
from datetime import datetime
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Any, Dict, Optional


logger = logging.getLogger(__name__)

# Log location and rotation (configurable via environment)
LOG_DIR = Path(os.getenv("RISK_MONITOR_LOG_DIR", "logs"))
LOG_FILE = LOG_DIR / "risk_events.jsonl"
MAX_LOG_BYTES = int(os.getenv("RISK_MONITOR_LOG_MAX_BYTES", 10 * 1024 * 1024))  # 10MB default
LOG_BACKUP_COUNT = int(os.getenv("RISK_MONITOR_LOG_BACKUP_COUNT", 5))

_file_handler: Optional[RotatingFileHandler] = None


def _get_file_handler() -> RotatingFileHandler:
    """Get or create the rotating file handler."""
    global _file_handler
    if _file_handler is None:
        LOG_DIR.mkdir(parents=True, exist_ok=True)
        _file_handler = RotatingFileHandler(
            str(LOG_FILE),
            maxBytes=MAX_LOG_BYTES,
            backupCount=LOG_BACKUP_COUNT,
            encoding="utf-8",
        )
    return _file_handler


def jlog(event: str, level: str = "INFO", **fields: Any) -> None:
    """
    Write a structured JSON log entry with automatic rotation.

    Args:
        event: Event name/type
        level: Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        **fields: Additional fields to include in the log entry
    """
    rec: Dict[str, Any] = {
        "ts": datetime.utcnow().isoformat(),
        "level": level,
        "event": event,
        **fields,
    }
    line = json.dumps(rec, default=str)

    handler = _get_file_handler()
    try:
        handler.stream.write(line + "\n")
        handler.stream.flush()

        if handler.shouldRollover(logging.LogRecord(
            name="risk_monitor", level=logging.INFO, pathname="", lineno=0,
            msg=line, args=(), exc_info=None
        )):
            handler.doRollover()
    except (OSError, ValueError) as e:
        logger.warning(f"Structured log write failed, appending directly: {e}")
        with LOG_FILE.open("a", encoding="utf-8") as f:
            f.write(line + "\n")

    # Mirror a concise line to the standard logger
    logger.log(getattr(logging, level.upper(), logging.INFO), f"{event} | {fields}")


def read_recent_logs(count: int = 100, event: Optional[str] = None) -> list[Dict[str, Any]]:
    """
    Read the most recent structured log entries.

    Args:
        count: Maximum number of entries to return
        event: Optional filter by event name

    Returns:
        List of log entries (most recent last)
    """
    entries: list[Dict[str, Any]] = []

    if not LOG_FILE.exists():
        return entries

    with LOG_FILE.open("r", encoding="utf-8") as f:
        lines = f.readlines()

    for line in reversed(lines):
        if len(entries) >= count:
            break
        try:
            entry = json.loads(line.strip())
        except json.JSONDecodeError:
            continue
        if event is None or entry.get("event") == event:
            entries.append(entry)

    return list(reversed(entries))
