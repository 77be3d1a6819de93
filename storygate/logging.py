"""
Structured Logging — JSON Output for Production

Configures Python logging to emit structured JSON logs, plus the
gate's diagnostics sink (only emits when debug is enabled).

Usage:
    from storygate.logging import get_logger, DiagnosticLog
    logger = get_logger("gate")
    logger.info("Turn accepted", extra={"average": 3.2, "quality": "good"})

    diag = DiagnosticLog("gate", enabled=True)
    diag.emit("Quality below threshold", "warn", average=2.2)
"""

from __future__ import annotations

import json
import logging
import os
import sys
from datetime import datetime, timezone


LOG_LEVEL = os.getenv("STORYGATE_LOG_LEVEL", "INFO").upper()
LOG_FORMAT = os.getenv("STORYGATE_LOG_FORMAT", "json")  # "json" or "text"

_EXTRA_FIELDS = (
    "severity", "session_id", "attempt", "max_attempts", "average",
    "quality", "reason", "issues", "k", "tau", "context_kind",
    "removed_chars", "duplicate", "card_keys", "error", "error_type",
    "duration_ms", "status_code", "method", "path",
)


class JSONFormatter(logging.Formatter):
    """Formats log records as JSON lines."""

    def format(self, record: logging.LogRecord) -> str:
        entry = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        for key in _EXTRA_FIELDS:
            val = getattr(record, key, None)
            if val is not None:
                entry[key] = val

        if record.exc_info and record.exc_info[0]:
            entry["exception"] = self.formatException(record.exc_info)

        return json.dumps(entry, default=str)


class TextFormatter(logging.Formatter):
    """Human-readable format for development."""

    def __init__(self):
        super().__init__(
            fmt="%(asctime)s [%(levelname)-8s] %(name)s: %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        )


def setup_logging():
    """Configure the storygate root logger. Call once at app startup."""
    root = logging.getLogger("storygate")
    root.setLevel(getattr(logging, LOG_LEVEL, logging.INFO))

    root.handlers.clear()

    handler = logging.StreamHandler(sys.stdout)
    if LOG_FORMAT == "json":
        handler.setFormatter(JSONFormatter())
    else:
        handler.setFormatter(TextFormatter())

    root.addHandler(handler)

    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)

    return root


def get_logger(name: str) -> logging.Logger:
    """Get a named logger under the storygate namespace."""
    return logging.getLogger(f"storygate.{name}")


# ============================================================
# DIAGNOSTICS SINK
# ============================================================

SEVERITY_LEVELS = {
    "info": logging.INFO,
    "success": logging.INFO,
    "warn": logging.WARNING,
    "error": logging.ERROR,
}


class DiagnosticLog:
    """
    Gate diagnostics. Silent unless enabled.

    Severity is one of info / warn / error / success. "success" shares
    the INFO level and is told apart by the `severity` field.
    """

    def __init__(self, name: str, enabled: bool = False):
        self.logger = get_logger(name)
        self.enabled = enabled

    def emit(self, message: str, severity: str = "info", **fields) -> bool:
        """Emit one diagnostic line. Returns True if anything was logged."""
        if not self.enabled:
            return False
        level = SEVERITY_LEVELS.get(severity, logging.INFO)
        self.logger.log(level, message, extra={"severity": severity, **fields})
        return True
