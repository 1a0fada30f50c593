from __future__ import annotations

import json
import logging
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Any

from voicetutor.app.config import app_paths

LOG_FILENAME = "voicetutor.log"
LOG_MAX_BYTES = 1_000_000
LOG_BACKUPS = 5

# Attributes every LogRecord carries; anything else arrived through `extra=`.
_RECORD_ATTRS = frozenset(logging.LogRecord("", 0, "", 0, "", (), None).__dict__) | {
    "message",
    "asctime",
    "taskName",
}
# DiagnosticsLog mirrors its events with extra={"data": {...}}.
_NESTED_KEY = "data"


def event_fields(record: logging.LogRecord) -> dict[str, Any]:
    """Structured fields of a record, with the diagnostics payload flattened in."""
    out: dict[str, Any] = {}
    for key, value in record.__dict__.items():
        if key in _RECORD_ATTRS or key.startswith("_"):
            continue
        if key == _NESTED_KEY and isinstance(value, dict):
            out.update(value)
            continue
        out[key] = value
    return out


class JsonLineFormatter(logging.Formatter):
    """One JSON object per line: ts, level, logger, event message, then event fields."""

    def format(self, record: logging.LogRecord) -> str:
        payload: dict[str, Any] = {
            "ts": self.formatTime(record, self.datefmt),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        for key, value in event_fields(record).items():
            # session fields such as `level` must not clobber the record header
            payload[f"data_{key}" if key in payload else key] = value
        if record.exc_info:
            payload["exc_info"] = self.formatException(record.exc_info)
        return json.dumps(payload, ensure_ascii=False, default=str)


def setup_app_logger(
    name: str = "voicetutor",
    *,
    debug: bool = False,
) -> tuple[logging.Logger, Path, Path]:
    log_dir = app_paths().config_dir / "logs"
    log_dir.mkdir(parents=True, exist_ok=True)
    log_path = log_dir / LOG_FILENAME

    logger = logging.getLogger(name)
    logger.setLevel(logging.DEBUG if debug else logging.INFO)
    logger.propagate = False
    for old in list(logger.handlers):
        logger.removeHandler(old)
        old.close()

    handler = RotatingFileHandler(
        filename=log_path,
        maxBytes=LOG_MAX_BYTES,
        backupCount=LOG_BACKUPS,
        encoding="utf-8",
    )
    handler.setFormatter(JsonLineFormatter(datefmt="%Y-%m-%dT%H:%M:%S"))
    logger.addHandler(handler)
    return logger, log_dir, log_path
