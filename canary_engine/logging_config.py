"""Logging setup for the canary engine and its hosts.

Two output modes are supported:

* plain text (default) -- human-readable lines for local runs;
* structured JSON -- one object per line for log aggregators, enabled via
  ``KAPABLE_STRUCTURED_LOGGING=true``.

Output schema per line in structured mode::

    {
        "timestamp": "2025-05-15T12:34:56.789012+00:00",
        "level": "INFO",
        "logger": "canary_engine.runner",
        "message": "check finished",
        "check": "data-crud",          // present when logged with extra={"check": ...}
        "exc_info": "Traceback ..."    // present only on exceptions
    }
"""

from __future__ import annotations

import json
import logging
import traceback
from datetime import UTC, datetime
from typing import Any

_TEXT_FORMAT = "%(asctime)s %(levelname)-8s %(name)s: %(message)s"

# Extra record attributes copied into the JSON payload when present.
_CONTEXT_FIELDS: tuple[str, ...] = ("check", "step", "request")


class JSONFormatter(logging.Formatter):
    """Format log records as single-line JSON."""

    def format(self, record: logging.LogRecord) -> str:
        """Render *record* as a single JSON line."""
        payload: dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, tz=UTC).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        for field in _CONTEXT_FIELDS:
            value = getattr(record, field, None)
            if value is not None:
                payload[field] = value

        if record.exc_info and record.exc_info[0] is not None:
            payload["exc_info"] = "".join(traceback.format_exception(*record.exc_info))

        return json.dumps(payload, default=str, ensure_ascii=False)


def configure_logging(level: str | int = "INFO", structured: bool = False) -> None:
    """Install a single stream handler on the root logger.

    Parameters
    ----------
    level:
        Root log level name or number.
    structured:
        When ``True``, use :class:`JSONFormatter`; otherwise plain text.
    """
    handler = logging.StreamHandler()
    if structured:
        handler.setFormatter(JSONFormatter())
    else:
        handler.setFormatter(logging.Formatter(_TEXT_FORMAT))

    root_logger = logging.getLogger()
    root_logger.handlers.clear()
    root_logger.addHandler(handler)
    root_logger.setLevel(level.upper() if isinstance(level, str) else level)

    # httpx logs every request at INFO; the executor already logs its own.
    logging.getLogger("httpx").setLevel(logging.WARNING)
