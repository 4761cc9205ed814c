"""
Structured Logging — JSON Lines Tagged per Scan

Every record emitted while a scan runs carries that scan's id, so an
engine warning about a skipped rule can be tied back to the report it
belongs to. Output is JSON lines by default, plain text for the CLI.

Usage:
    from a11ypersona.logging import get_logger, scan_context
    logger = get_logger("engine")
    with scan_context("script") as scan_id:
        logger.warning("Skipped rule", extra={"rule_id": "visual-dependency"})
"""

from __future__ import annotations

import json
import logging
import os
import sys
import threading
import time
import uuid
from contextlib import contextmanager
from datetime import datetime, timezone
from typing import Iterator, Optional

LOG_LEVEL = os.getenv("A11Y_LOG_LEVEL", "INFO").upper()
LOG_FORMAT = os.getenv("A11Y_LOG_FORMAT", "json")  # "json" or "text"

_EXTRA_FIELDS = (
    "scan_id", "mode", "rule_id", "persona_id", "grade", "points",
    "matches_count", "rules_count", "checks_count", "error", "duration_ms",
    "status_code", "method", "path", "key_id",
)

_scan_local = threading.local()


# ============================================================
# SCAN CORRELATION
# ============================================================

def current_scan_id() -> Optional[str]:
    return getattr(_scan_local, "scan_id", None)


@contextmanager
def scan_context(mode: str) -> Iterator[str]:
    """
    Tag all records logged on this thread with a fresh scan id.

    Logs the scan's completion with its duration, or its failure with
    the exception, and restores any enclosing scan id on exit.
    """
    outer = current_scan_id()
    scan_id = uuid.uuid4().hex[:12]
    _scan_local.scan_id = scan_id
    logger = get_logger("scan")
    start = time.time()
    try:
        yield scan_id
    except Exception as e:
        logger.error(
            f"Scan failed: {type(e).__name__}",
            extra={"mode": mode, "error": str(e),
                   "duration_ms": round((time.time() - start) * 1000, 1)},
        )
        raise
    else:
        logger.debug(
            "Scan finished",
            extra={"mode": mode, "duration_ms": round((time.time() - start) * 1000, 1)},
        )
    finally:
        _scan_local.scan_id = outer


class ScanIdFilter(logging.Filter):
    """Copies the thread's current scan id onto each record."""

    def filter(self, record: logging.LogRecord) -> bool:
        if getattr(record, "scan_id", None) is None:
            record.scan_id = current_scan_id()
        return True


# ============================================================
# FORMATTERS
# ============================================================

class JSONFormatter(logging.Formatter):
    """One JSON object per record: timestamp, level, logger, message, known extras."""

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
    """Human-readable lines for the CLI; scan id appended when present."""

    def __init__(self):
        super().__init__(
            fmt="%(asctime)s [%(levelname)-8s] %(name)s: %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        )

    def format(self, record: logging.LogRecord) -> str:
        line = super().format(record)
        scan_id = getattr(record, "scan_id", None)
        return f"{line} (scan {scan_id})" if scan_id else line


# ============================================================
# SETUP
# ============================================================

def setup_logging(fmt: str | None = None) -> logging.Logger:
    """Configure the package logger once at app or CLI startup. Repeat calls replace the handler."""
    root = logging.getLogger("a11ypersona")
    root.setLevel(getattr(logging, LOG_LEVEL, logging.INFO))
    root.handlers.clear()

    handler = logging.StreamHandler(sys.stderr)
    handler.addFilter(ScanIdFilter())
    handler.setFormatter(JSONFormatter() if (fmt or LOG_FORMAT) == "json" else TextFormatter())
    root.addHandler(handler)

    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
    return root


def get_logger(name: str) -> logging.Logger:
    """Get a named logger under the a11ypersona namespace."""
    return logging.getLogger(f"a11ypersona.{name}")
