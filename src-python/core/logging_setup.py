"""Structured logging for the extraction tools.

When RS_LOG_FORMAT=json, all log output is JSON-lines — one object per line,
so correction runs over many pages can be filtered by region or phase with
any log aggregator.

When RS_LOG_FORMAT=text (default), standard human-readable format is used.
Logs go to stderr; stdout is reserved for command output.
"""

from __future__ import annotations

import json
import logging
import sys
import traceback
from datetime import datetime, timezone
from typing import Any

# Extra fields copied to the top level of each JSON record.
_EXTRA_KEYS = ("page", "region_id", "phase", "path", "error_type")


class JSONFormatter(logging.Formatter):
    """Emit each log record as a single JSON line.

    - `severity` (not `levelname`) for the level
    - `message` for the log message
    - `timestamp` in RFC-3339
    - `logger` for the logger name
    - whitelisted extra fields are merged at top level
    """

    def format(self, record: logging.LogRecord) -> str:
        payload: dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "severity": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        for key in _EXTRA_KEYS:
            value = getattr(record, key, None)
            if value is not None:
                payload[key] = value

        if record.exc_info and record.exc_info[2]:
            payload["exception"] = {
                "type": record.exc_info[0].__name__ if record.exc_info[0] else "Exception",
                "message": str(record.exc_info[1]) if record.exc_info[1] else "",
                "stacktrace": "".join(traceback.format_exception(*record.exc_info)),
            }

        return json.dumps(payload, default=str, ensure_ascii=False)


def setup_logging(log_format: str = "text", level: str = "INFO") -> None:
    """Configure root logging based on the desired format.

    Args:
        log_format: "json" for structured JSON lines, "text" for human-readable.
        level: Log level string (DEBUG, INFO, WARNING, ERROR).
    """
    root = logging.getLogger()
    root.setLevel(getattr(logging, level.upper(), logging.INFO))

    # Remove existing handlers (avoid duplicates on repeated setup)
    for handler in root.handlers[:]:
        root.removeHandler(handler)

    handler = logging.StreamHandler(sys.stderr)

    if log_format.lower() == "json":
        handler.setFormatter(JSONFormatter())
    else:
        handler.setFormatter(logging.Formatter(
            "%(asctime)s [%(levelname)s] %(name)s: %(message)s"
        ))

    root.addHandler(handler)

    # pdfium bindings are chatty at DEBUG
    logging.getLogger("pypdfium2").setLevel(logging.WARNING)
