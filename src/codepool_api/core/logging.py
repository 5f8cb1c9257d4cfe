from __future__ import annotations

import json
import logging
from logging import LogRecord
from typing import Any, Dict

from loguru import logger
from opentelemetry import trace


_STDLIB_RECORD_ATTRS = frozenset(vars(LogRecord("", 0, "", 0, "", (), None))) | {"message", "taskName"}

# Structured context keys whose values must never reach the log sink.
_REDACTED_KEYS = frozenset({"api_key", "x_api_key", "secret", "redeem_secret_key", "admin_secret_key"})
_REDACTED = "***"


class InterceptHandler(logging.Handler):
    """Route stdlib records (uvicorn, SQLAlchemy, alembic) through Loguru."""

    def emit(self, record: LogRecord) -> None:  # pragma: no cover - bridging glue
        try:
            level: str | int = logger.level(record.levelname).name
        except ValueError:
            level = record.levelno

        try:
            message = record.getMessage()
        except (TypeError, ValueError):
            message = str(record.msg)

        extra = {key: value for key, value in record.__dict__.items() if key not in _STDLIB_RECORD_ATTRS}
        bound = logger.bind(stdlib_logger=record.name, **extra)
        bound.opt(depth=6, exception=record.exc_info).log(level, message.replace("{", "{{").replace("}", "}}"))


def redact(context: Dict[str, Any]) -> Dict[str, Any]:
    return {key: (_REDACTED if key.lower() in _REDACTED_KEYS and value else value) for key, value in context.items()}


def _render(message: "logger.Message", metadata: Dict[str, str]) -> str:
    record = message.record
    payload: Dict[str, Any] = {
        "timestamp": record["time"].isoformat(),
        "level": record["level"].name.lower(),
        "message": record["message"],
        "logger": record["extra"].get("stdlib_logger", record["name"]),
        **metadata,
    }

    span_context = trace.get_current_span().get_span_context()
    if span_context.is_valid:
        payload["trace_id"] = f"{span_context.trace_id:032x}"
        payload["span_id"] = f"{span_context.span_id:016x}"

    extra = {key: value for key, value in record["extra"].items() if key != "stdlib_logger"}
    payload.update(redact(extra))

    if record["exception"] is not None:
        exc_type, exc_value, _ = record["exception"]
        payload["exception"] = {
            "type": exc_type.__name__ if exc_type else None,
            "message": str(exc_value) if exc_value else None,
        }
    return json.dumps(payload, default=str)


def configure_logging(*, service_name: str, environment: str, version: str, level: str = "INFO") -> None:
    """One JSON object per line on stdout, stdlib loggers bridged in."""

    metadata = {"service": service_name, "environment": environment, "version": version}

    logger.remove()
    logger.add(lambda message: print(_render(message, metadata)), level=level.upper(), backtrace=False, diagnose=False)

    logging.basicConfig(handlers=[InterceptHandler()], level=0, force=True)
    for noisy in ("uvicorn.access", "sqlalchemy.engine", "aiosqlite"):
        logging.getLogger(noisy).setLevel(logging.WARNING)
