"""Structured logging for the sync service and CLI."""

from __future__ import annotations

import logging
import os
import sys
from typing import Any, MutableMapping

import orjson

LOG_LEVEL = os.environ.get("CSYNC_LOG_LEVEL", "INFO")
LOG_FORMAT = os.environ.get("CSYNC_LOG_FORMAT", "json")

_CTX_PREFIX = "ctx_"
_PLAIN_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


class JsonFormatter(logging.Formatter):
    """Emit each record as a single JSON line.

    Attributes whose name starts with ``ctx_`` (the run id and step of a sync
    session, usually) are copied into the payload without the prefix.
    """

    def format(self, record: logging.LogRecord) -> str:  # pragma: no cover - thin wrapper
        payload: dict[str, Any] = {
            "ts": self.formatTime(record, "%Y-%m-%dT%H:%M:%S"),
            "level": record.levelname.lower(),
            "logger": record.name,
            "msg": record.getMessage(),
        }
        for key, value in record.__dict__.items():
            if key.startswith(_CTX_PREFIX):
                payload[key[len(_CTX_PREFIX) :]] = value
        if record.exc_info:
            payload["error"] = self.formatException(record.exc_info)
        return orjson.dumps(payload, default=str).decode("utf-8")


class SessionLogger(logging.LoggerAdapter):
    """Tags every record with the sync session it belongs to."""

    def __init__(self, logger: logging.Logger, run_id: str, step: str) -> None:
        super().__init__(logger, {"ctx_run_id": run_id, "ctx_step": step})

    def process(self, msg: Any, kwargs: MutableMapping[str, Any]) -> tuple[Any, MutableMapping[str, Any]]:
        kwargs["extra"] = {**self.extra, **kwargs.get("extra", {})}
        return msg, kwargs


def configure_logging(level: str | int = LOG_LEVEL, fmt: str = LOG_FORMAT) -> None:
    """Install one stderr handler on the root logger; ``fmt`` is ``json`` or ``plain``."""
    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(JsonFormatter() if fmt == "json" else logging.Formatter(_PLAIN_FORMAT))
    root = logging.getLogger()
    root.handlers = [handler]
    root.setLevel(level)
    logging.captureWarnings(True)


def get_logger(name: str = "content_sync") -> logging.Logger:
    if not logging.getLogger().handlers:
        configure_logging()
    return logging.getLogger(name)


def session_logger(name: str, run_id: str, step: str) -> SessionLogger:
    return SessionLogger(get_logger(name), run_id, step)


__all__ = ["JsonFormatter", "SessionLogger", "configure_logging", "get_logger", "session_logger"]
