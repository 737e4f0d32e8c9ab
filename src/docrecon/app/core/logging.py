from __future__ import annotations

import json
import logging
import os
from logging.config import dictConfig
from traceback import format_exception
from typing import Optional

from .env import Env, get_env_flags

# Extra attributes lifted into the JSON payload when a log call supplies them.
CONTEXT_FIELDS = ("request_id", "document_id", "job_id")


class JsonFormatter(logging.Formatter):
    """Structured JSON formatter for prod and CI logs."""

    def __init__(self, *args, max_stack: int = 4000, **kwargs):
        super().__init__(*args, **kwargs)
        self.max_stack = max_stack

    def format(self, record: logging.LogRecord) -> str:  # type: ignore[override]
        payload: dict[str, object] = {
            "time": self.formatTime(record, self.datefmt),
            "level": record.levelname,
            "logger": record.name,
            "pid": record.process,
            "message": record.getMessage(),
        }

        for field in CONTEXT_FIELDS:
            val = getattr(record, field, None)
            if val is not None:
                payload[field] = str(val)

        http_ctx = {
            k: v
            for k, v in {
                "method": getattr(record, "http_method", None),
                "path": getattr(record, "path", None),
                "status": getattr(record, "status_code", None),
            }.items()
            if v is not None
        }
        if http_ctx:
            payload["http"] = http_ctx

        if record.exc_info:
            exc_type = record.exc_info[0].__name__ if record.exc_info[0] else None
            exc_message = str(record.exc_info[1]) if record.exc_info[1] else None
            stack = "".join(format_exception(*record.exc_info))

            err_obj: dict[str, object] = {}
            if exc_type:
                err_obj["type"] = exc_type
            if exc_message:
                err_obj["message"] = exc_message
            # Hosted log viewers choke on very long lines.
            err_obj["stack"] = stack[: self.max_stack] + (
                "...(truncated)" if len(stack) > self.max_stack else ""
            )
            payload["error"] = err_obj

        return json.dumps(payload, ensure_ascii=False)


def _resolve_level(level: Optional[str], env: Env | None) -> str:
    explicit = level or os.getenv("LOG_LEVEL")
    if explicit:
        return explicit.upper()
    flags = get_env_flags(env)
    if flags.is_prod:
        return "INFO"
    return "DEBUG"


def _resolve_format(fmt: Optional[str], env: Env | None) -> str:
    explicit = fmt or os.getenv("LOG_FORMAT")
    if explicit:
        return explicit.lower()
    return "json" if get_env_flags(env).is_prod else "plain"


def setup_logging(
    level: Optional[str] = None,
    fmt: Optional[str] = None,
    *,
    env: Env | None = None,
) -> None:
    """Configure the root logger. Call once at process start (app factory or CLI)."""
    resolved_level = _resolve_level(level, env)
    formatter_name = "json" if _resolve_format(fmt, env) == "json" else "plain"

    dictConfig(
        {
            "version": 1,
            "disable_existing_loggers": False,
            "formatters": {
                "plain": {
                    "format": "%(asctime)s %(levelname)-5s [pid:%(process)d] %(name)s: %(message)s",
                    "datefmt": "%Y-%m-%dT%H:%M:%S",
                },
                "json": {
                    "()": JsonFormatter,
                    "datefmt": "%Y-%m-%dT%H:%M:%S",
                },
            },
            "handlers": {
                "stream": {
                    "class": "logging.StreamHandler",
                    "level": resolved_level,
                    "formatter": formatter_name,
                }
            },
            "root": {
                "level": resolved_level,
                "handlers": ["stream"],
            },
            "loggers": {
                "uvicorn": {"level": "INFO", "handlers": [], "propagate": True},
                "uvicorn.error": {"level": "INFO", "handlers": [], "propagate": True},
                "uvicorn.access": {"level": "INFO", "handlers": [], "propagate": True},
                # botocore is chatty at DEBUG
                "botocore": {"level": "WARNING", "handlers": [], "propagate": True},
                "aiobotocore": {"level": "WARNING", "handlers": [], "propagate": True},
            },
        }
    )
