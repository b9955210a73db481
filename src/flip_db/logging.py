"""Logging configuration and helpers for flip-db.

Two output formats are supported:

* human-readable console logs, and
* structured JSON logs for production ingestion.

Everything uses the standard :mod:`logging` library.
"""

from __future__ import annotations

import json
import logging
from datetime import UTC, datetime
from typing import Any

from flip_db.settings import Settings

# Attributes that are already handled by logging and should not be copied into
# the extra key=value list.
_STANDARD_ATTRS: set[str] = {
    "name",
    "msg",
    "args",
    "levelname",
    "levelno",
    "pathname",
    "filename",
    "module",
    "exc_info",
    "exc_text",
    "stack_info",
    "lineno",
    "funcName",
    "created",
    "msecs",
    "relativeCreated",
    "thread",
    "threadName",
    "processName",
    "process",
    "message",
    "asctime",
    "taskName",
}

_CONFIGURED_FLAG = "_flip_configured"

_TIME_FORMAT = "%Y-%m-%dT%H:%M:%S"


def _format_time(record: logging.LogRecord, datefmt: str | None) -> str:
    dt = datetime.fromtimestamp(record.created, tz=UTC)
    base = dt.strftime(datefmt or _TIME_FORMAT)
    # Attach milliseconds + Z suffix.
    return f"{base}.{int(record.msecs):03d}Z"


class ConsoleLogFormatter(logging.Formatter):
    """Render log records as single-line console output.

    Example line:

        2026-10-19T08:12:44.031Z INFO  flip_db.apply schema.apply.success
        strategy=alembic table=flip_features
    """

    def __init__(self) -> None:
        fmt = "%(asctime)s %(levelname)-5s %(name)s %(message)s"
        super().__init__(fmt=fmt, datefmt=_TIME_FORMAT)

    def formatTime(self, record: logging.LogRecord, datefmt: str | None = None) -> str:
        return _format_time(record, datefmt)

    def format(self, record: logging.LogRecord) -> str:  # noqa: D401 - std signature
        base = super().format(record)
        extras = [
            f"{key}={_format_extra_value(value)}"
            for key, value in sorted(_record_extras(record).items())
        ]
        if extras:
            return f"{base} " + " ".join(extras)
        return base


class JsonLogFormatter(logging.Formatter):
    """Render log records as one JSON object per line."""

    def formatTime(self, record: logging.LogRecord, datefmt: str | None = None) -> str:
        return _format_time(record, datefmt)

    def format(self, record: logging.LogRecord) -> str:  # noqa: D401 - std signature
        payload: dict[str, Any] = {
            "timestamp": self.formatTime(record, _TIME_FORMAT),
            "level": record.levelname,
            "service": "flip-db",
            "logger": record.name,
            "message": record.getMessage(),
        }
        payload.update(_record_extras(record))
        if record.exc_info:
            payload["exc_info"] = self.formatException(record.exc_info)
        return json.dumps(payload, default=_json_default, separators=(",", ":"))


def setup_logging(settings: Settings) -> None:
    """Configure root logging for a flip-db process.

    Installs a single StreamHandler at ``settings.log_level`` and routes the
    alembic and sqlalchemy loggers into it. SQLAlchemy defaults to WARNING
    unless ``settings.database_log_level`` asks for more.
    """
    root_logger = logging.getLogger()
    level = getattr(logging, settings.log_level)

    configured = getattr(root_logger, _CONFIGURED_FLAG, False)
    if not configured or not root_logger.handlers:
        # Replace existing handlers once to avoid duplicate output.
        root_logger.handlers = [logging.StreamHandler()]
        setattr(root_logger, _CONFIGURED_FLAG, True)
    else:
        root_logger.handlers = [root_logger.handlers[0]]

    handler = root_logger.handlers[0]
    handler.setFormatter(_build_formatter(settings.log_format))
    root_logger.setLevel(level)

    for name in (
        "alembic",
        "alembic.runtime.migration",
        "sqlalchemy",
        "sqlalchemy.engine",
        "sqlalchemy.pool",
    ):
        logger = logging.getLogger(name)
        logger.handlers.clear()
        logger.propagate = True
        logger.disabled = False
        logger.setLevel(logging.NOTSET)

    logging.getLogger("alembic").setLevel(level)

    db_level = getattr(logging, settings.database_log_level or "WARNING")
    for name in ("sqlalchemy", "sqlalchemy.engine", "sqlalchemy.pool"):
        logging.getLogger(name).setLevel(db_level)


def log_context(
    *,
    table: str | None = None,
    strategy: str | None = None,
    key: str | None = None,
    **extra: Any,
) -> dict[str, Any]:
    """Build a consistent `extra` payload for structured logs.

    Example:
        logger.info(
            "schema.apply.success",
            extra=log_context(table="flip_features", strategy="alembic"),
        )
    """
    ctx: dict[str, Any] = {}

    if table is not None:
        ctx["table"] = table
    if strategy is not None:
        ctx["strategy"] = strategy
    if key is not None:
        ctx["key"] = key

    for name, value in extra.items():
        ctx[name] = value

    return ctx


def _format_extra_value(value: Any) -> str:
    if value is None:
        return "null"
    return str(value)


def _record_extras(record: logging.LogRecord) -> dict[str, Any]:
    extras: dict[str, Any] = {}
    for key, value in record.__dict__.items():
        if key in _STANDARD_ATTRS or key.startswith("_"):
            continue
        extras[key] = value
    return extras


def _json_default(value: Any) -> str:
    return str(value)


def _build_formatter(log_format: str) -> logging.Formatter:
    if log_format == "json":
        return JsonLogFormatter()
    return ConsoleLogFormatter()


__all__ = [
    "ConsoleLogFormatter",
    "JsonLogFormatter",
    "log_context",
    "setup_logging",
]
