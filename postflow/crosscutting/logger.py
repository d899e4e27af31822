"""
Name: Structured Logger

Responsibilities:
  - One JSON object per log line
  - Request correlation fields from context.py
  - Redaction of credentials passed as `extra`

Collaborators:
  - context.py: current_context()

Constraints:
  - Tokens, passwords and signing keys never reach the output, whatever
    the call site passes
  - Level comes from LOG_LEVEL (default INFO)

Notes:
  - Import as: from postflow.crosscutting.logger import logger
  - The client SDK (postflow.client) logs through this same logger
"""

import json
import logging
import os
import sys
import traceback
from datetime import datetime, timezone
from typing import Any

from .context import current_context

# R: Attributes every LogRecord carries; anything else came in via `extra`
_RECORD_ATTRS = frozenset(vars(logging.makeLogRecord({}))) | {"message", "asctime"}

REDACTED_KEYS = frozenset(
    {
        "password",
        "password_hash",
        "new_password",
        "secret",
        "token",
        "access_token",
        "refresh_token",
        "authorization",
        "jwt_secret",
        "jwt_refresh_secret",
    }
)


def _is_redacted(key: str) -> bool:
    lowered = key.lower()
    return lowered in REDACTED_KEYS or lowered.endswith("_secret")


def _exception_fields(exc_info) -> dict[str, Any]:
    exc_type, exc_value, _ = exc_info
    return {
        "type": exc_type.__name__ if exc_type else None,
        "message": str(exc_value) if exc_value else None,
        "stacktrace": traceback.format_exception(*exc_info),
    }


class JSONFormatter(logging.Formatter):
    """R: Render a LogRecord as a single JSON line."""

    def format(self, record: logging.LogRecord) -> str:
        entry: dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "module": record.module,
            "function": record.funcName,
            "line": record.lineno,
        }
        entry.update(current_context().as_log_fields())
        entry.update(
            (key, value)
            for key, value in vars(record).items()
            if key not in _RECORD_ATTRS and not _is_redacted(key)
        )
        if record.exc_info:
            entry["exception"] = _exception_fields(record.exc_info)
        return json.dumps(entry, default=str)


def setup_logger(name: str = "postflow", level: str | None = None) -> logging.Logger:
    log = logging.getLogger(name)
    log.setLevel((level or os.getenv("LOG_LEVEL") or "INFO").upper())

    # R: Reimports must not stack handlers
    if not any(isinstance(h.formatter, JSONFormatter) for h in log.handlers):
        handler = logging.StreamHandler(sys.stdout)
        handler.setFormatter(JSONFormatter())
        log.addHandler(handler)
    return log


logger = setup_logger()
