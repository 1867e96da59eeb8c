"""Log output for the taperpath CLI.

Modules attach plan context with ``extra={"taper_<field>": value}``
(step id, shift in days, counts). Text output appends that context as
``key=value`` pairs; JSON output nests it under ``"plan"`` with the
prefix stripped, one object per line.
"""

from __future__ import annotations

import json
import logging
import sys
from datetime import datetime, timezone
from typing import IO, Any

from taperpath.config import Config

CONTEXT_PREFIX = "taper_"
TEXT_FORMAT = "%(asctime)s %(levelname)-7s %(name)s: %(message)s"


def plan_context(record: logging.LogRecord) -> dict[str, Any]:
    """The record's ``taper_*`` extras, keyed without the prefix."""
    return {
        key[len(CONTEXT_PREFIX):]: value
        for key, value in vars(record).items()
        if key.startswith(CONTEXT_PREFIX)
    }


class JSONFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        payload: dict[str, Any] = {
            "time": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(timespec="milliseconds"),
            "level": record.levelname.lower(),
            "logger": record.name,
            "event": record.getMessage(),
        }
        context = plan_context(record)
        if context:
            payload["plan"] = context
        if record.exc_info:
            payload["error"] = self.formatException(record.exc_info)
        return json.dumps(payload, default=str)


class TextFormatter(logging.Formatter):
    def __init__(self) -> None:
        super().__init__(TEXT_FORMAT, datefmt="%Y-%m-%d %H:%M:%S")

    def formatMessage(self, record: logging.LogRecord) -> str:
        line = super().formatMessage(record)
        context = plan_context(record)
        if context:
            pairs = " ".join(f"{key}={value}" for key, value in sorted(context.items()))
            line = f"{line} [{pairs}]"
        return line


def setup_logging(config: Config, stream: IO[str] | None = None) -> logging.Handler:
    """Send every record to a single handler on ``stream`` (stderr by default).

    Handlers from an earlier call are replaced, so calling this twice
    does not duplicate output.
    """
    handler = logging.StreamHandler(stream or sys.stderr)
    handler.setFormatter(JSONFormatter() if config.log_format == "json" else TextFormatter())

    root = logging.getLogger()
    for old in root.handlers[:]:
        root.removeHandler(old)
    root.addHandler(handler)
    root.setLevel(config.log_level)
    return handler
