"""Logging setup and credential scrubbing.

Provides a logging filter that redacts ShipStation and 17TRACK credentials
from log output, and a helper that installs it on a stderr handler (and an
optional rotating file handler) at startup.
"""

from __future__ import annotations

import logging
import os
import re
from logging.handlers import RotatingFileHandler
from typing import Optional

_FORMAT = "%(asctime)s %(name)s %(levelname)s %(message)s"
_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

# Patterns that match sensitive values in log messages.
_SCRUB_PATTERNS: list[tuple[re.Pattern[str], str]] = [
    (re.compile(r'(api_key["\x27]?\s*[:=]\s*["\x27]?)([^"\x27\s,}{\]]+)', re.IGNORECASE),
     r'\1***REDACTED***'),
    (re.compile(r'(api_secret["\x27]?\s*[:=]\s*["\x27]?)([^"\x27\s,}{\]]+)', re.IGNORECASE),
     r'\1***REDACTED***'),
    (re.compile(r'(17token["\x27]?\s*[:=]\s*["\x27]?)([^"\x27\s,}{\]]+)', re.IGNORECASE),
     r'\1***REDACTED***'),
    (re.compile(r'(Authorization["\x27]?\s*[:=]\s*["\x27]?Basic\s+)([^"\x27\s,}{\]]+)', re.IGNORECASE),
     r'\1***REDACTED***'),
    (re.compile(r'(Authorization["\x27]?\s*[:=]\s*["\x27]?Bearer\s+)([^"\x27\s,}{\]]+)', re.IGNORECASE),
     r'\1***REDACTED***'),
    (re.compile(r'(secret["\x27]?\s*[:=]\s*["\x27]?)([^"\x27\s,}{\]]+)', re.IGNORECASE),
     r'\1***REDACTED***'),
]


class ScrubFilter(logging.Filter):
    """Logging filter that redacts credentials from log messages.

    Matches API key, secret, ``17token`` and ``Authorization`` header
    patterns and replaces their values with ``***REDACTED***``.
    """

    def filter(self, record: logging.LogRecord) -> bool:
        if record.msg and isinstance(record.msg, str):
            record.msg = _scrub(record.msg)
        if record.args:
            if isinstance(record.args, dict):
                record.args = {
                    k: _scrub(v) if isinstance(v, str) else v
                    for k, v in record.args.items()
                }
            elif isinstance(record.args, tuple):
                record.args = tuple(
                    _scrub(a) if isinstance(a, str) else a
                    for a in record.args
                )
        return True


def _scrub(text: str) -> str:
    """Apply all scrub patterns to *text*."""
    for pattern, replacement in _SCRUB_PATTERNS:
        text = pattern.sub(replacement, text)
    return text


def mask_secret(value: str) -> str:
    """Return ``abc***xyz`` style preview of a credential for diagnostics."""
    if not value:
        return ""
    if len(value) <= 6:
        return "***"
    return f"{value[:3]}***{value[-3:]}"


def configure_logging(
    level: Optional[str] = None,
    *,
    log_dir: Optional[str] = None,
    max_bytes: int = 10_000_000,
    backup_count: int = 5,
) -> None:
    """Configure root logging with credential scrubbing.

    :param level: Log level string.  Reads ``ORDERTRACK_LOG_LEVEL``, then
        falls back to ``"INFO"``.
    :param log_dir: Directory for a rotating ``ordertrack.log``.  Reads
        ``ORDERTRACK_LOG_DIR``; no file handler is added when unset.
    :param max_bytes: Maximum log file size before rotation (default 10 MB).
    :param backup_count: Number of rotated log files to keep (default 5).
    """
    level = level or os.environ.get("ORDERTRACK_LOG_LEVEL", "INFO")
    log_dir = log_dir or os.environ.get("ORDERTRACK_LOG_DIR") or None

    log_level = getattr(logging, level.upper(), logging.INFO)
    formatter = logging.Formatter(_FORMAT, datefmt=_DATE_FORMAT)
    scrub_filter = ScrubFilter()

    root = logging.getLogger()
    root.setLevel(log_level)

    if not any(type(h) is logging.StreamHandler for h in root.handlers):
        stream_handler = logging.StreamHandler()
        stream_handler.setFormatter(formatter)
        root.addHandler(stream_handler)

    if log_dir:
        has_rotating = any(isinstance(h, RotatingFileHandler) for h in root.handlers)
        if not has_rotating:
            os.makedirs(log_dir, exist_ok=True)
            file_handler = RotatingFileHandler(
                os.path.join(log_dir, "ordertrack.log"),
                maxBytes=max_bytes,
                backupCount=backup_count,
            )
            file_handler.setLevel(log_level)
            file_handler.setFormatter(formatter)
            root.addHandler(file_handler)

    # Install scrub filter on all existing handlers.
    for handler in root.handlers:
        if not any(isinstance(f, ScrubFilter) for f in handler.filters):
            handler.addFilter(scrub_filter)
