"""Logging configuration for course-gate.

Two output shapes, picked by LOG_JSON:

  _ContainerFormatter -- one human-readable line per record, for a terminal.
  _JsonFormatter      -- one JSON object per record (JSON Lines), for a log
                         pipeline that filters on fields such as request_id
                         or payment_reference.

Request-scoped fields are attached to records by the filter installed in
coursegate.middleware.request_context; domain code passes its own through
``extra=`` (see _CONTEXT_FIELDS).

WHY LOGS AND METRICS BOTH
---------------------------
Metrics (coursegate.core.metrics) answer "how many": how many MTN charges
were declined in the last hour, how many refunds went through. They cannot
answer "which one". When a learner says they paid and still see
payment_incomplete, support needs the story of that one purchase:

  INFO     Payment created  reference=PAY-... user=... course=... method=MTN
  WARNING  Payment failed  reference=PAY-... reason=Payment failed. Please check ...

Searching the logs for the payment_reference printed on the receipt
answers it. Payment and entitlement code therefore pass identifiers as ``extra=``
fields as well as in the message text.

WHY JSON IN PRODUCTION
------------------------
A log pipeline parses JSON without regexes, so a query like

  level == "WARNING" AND payment_reference == "PAY-..."

works on the raw stream. Text lines are easier to read in a terminal,
which is why LOG_JSON stays off by default in development.
"""

from __future__ import annotations

import json
import logging
import sys


class _ContainerFormatter(logging.Formatter):
    """Single-line formatter for container stdout.

    WARNING and above get a [filename:lineno] suffix so a denied payment or
    refused refund can be traced back to the guard that raised it.
    """

    _BASE_FMT = "%(asctime)s %(levelname)-8s %(name)s  %(message)s"
    _LOC_SUFFIX = "  [%(filename)s:%(lineno)d]"

    def __init__(self) -> None:
        super().__init__(datefmt="%Y-%m-%dT%H:%M:%S%z")

    def formatTime(self, record: logging.LogRecord, datefmt: str | None = None) -> str:
        base = super().formatTime(record, datefmt)
        ms = int(record.msecs)
        # Insert .NNN before the +HHMM offset
        return f"{base[:-5]}.{ms:03d}{base[-5:]}"

    def format(self, record: logging.LogRecord) -> str:
        if record.levelno >= logging.WARNING:
            self._style._fmt = self._BASE_FMT + self._LOC_SUFFIX
        else:
            self._style._fmt = self._BASE_FMT
        return super().format(record)


class _JsonFormatter(logging.Formatter):
    """JSON Lines formatter; context fields become top-level keys."""

    _CONTEXT_FIELDS = (
        "request_id",
        "method",
        "path",
        "status_code",
        "duration_ms",
        "user_id",
        "course_id",
        "payment_reference",
        "reason",
    )

    def __init__(self) -> None:
        super().__init__(datefmt="%Y-%m-%dT%H:%M:%S%z")

    def format(self, record: logging.LogRecord) -> str:
        log_entry: dict[str, object] = {
            "timestamp": self.formatTime(record),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        for key in self._CONTEXT_FIELDS:
            value = getattr(record, key, None)
            if value is not None:
                log_entry[key] = value

        if record.exc_info and record.exc_info[0] is not None:
            log_entry["exception"] = self.formatException(record.exc_info)

        return json.dumps(log_entry, default=str)


def setup_logging(level_name: str, *, json_format: bool = False) -> None:
    """Configure the root logger to write to stdout.

    Args:
        level_name: debug/info/warning/error; anything else falls back to info.
        json_format: emit JSON lines instead of the container format.
    """
    level = getattr(logging, level_name.upper(), logging.INFO)

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(_JsonFormatter() if json_format else _ContainerFormatter())

    root = logging.getLogger()
    root.setLevel(level)
    root.handlers.clear()
    root.addHandler(handler)

    for name in (
        "uvicorn",
        "uvicorn.access",
        "uvicorn.error",
        "httpcore",
        "httpx",
        "sqlalchemy.engine",
        "aiosqlite",
    ):
        logging.getLogger(name).setLevel(max(level, logging.WARNING))
