"""Structured logging — structlog rendered through stdlib logging handlers."""

from __future__ import annotations

import logging
import logging.config
import os
from typing import Any

import structlog

_ENV_LEVEL = "CONFSYS_LOG_LEVEL"
_ENV_FORMAT = "CONFSYS_LOG_FORMAT"
_ENV_FILE = "CONFSYS_LOG_FILE"


def _handlers(log_file: str | None) -> dict[str, dict[str, Any]]:
    handlers: dict[str, dict[str, Any]] = {
        "console": {
            "class": "logging.StreamHandler",
            "stream": "ext://sys.stdout",
            "formatter": "structlog",
        },
    }
    if log_file:
        handlers["file"] = {
            "class": "logging.handlers.WatchedFileHandler",
            "filename": log_file,
            "formatter": "structlog",
        }
    return handlers


def _level_no(name: str) -> int:
    level = logging.getLevelName(name)
    return level if isinstance(level, int) else logging.INFO


def setup_logging() -> None:
    """Configure structlog and stdlib logging from the environment.

    ``CONFSYS_LOG_LEVEL`` sets the level of the ``confsys`` loggers (default
    INFO), ``CONFSYS_LOG_FORMAT`` picks ``console`` or ``json`` rendering and
    ``CONFSYS_LOG_FILE``, when set, adds a file handler next to stdout.
    """
    log_level = _level_no(os.environ.get(_ENV_LEVEL, "INFO").upper())
    log_format = os.environ.get(_ENV_FORMAT, "console").lower()
    log_file = os.environ.get(_ENV_FILE)

    shared_processors: list[structlog.types.Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
    ]

    renderer: structlog.types.Processor
    if log_format == "json":
        renderer = structlog.processors.JSONRenderer()
    else:
        renderer = structlog.dev.ConsoleRenderer(colors=False)

    structlog.configure(
        processors=shared_processors + [structlog.stdlib.ProcessorFormatter.wrap_for_formatter],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    handlers = _handlers(log_file)
    logging.config.dictConfig(
        {
            "version": 1,
            "disable_existing_loggers": False,
            "formatters": {
                "structlog": {
                    "()": structlog.stdlib.ProcessorFormatter,
                    "foreign_pre_chain": shared_processors,
                    "processors": [
                        structlog.stdlib.ProcessorFormatter.remove_processors_meta,
                        renderer,
                    ],
                },
            },
            "handlers": handlers,
            "root": {"handlers": list(handlers), "level": "WARNING"},
            "loggers": {
                "confsys": {"level": log_level},
                # workflow transitions are the audit trail; keep them at INFO or finer
                "confsys.services": {"level": min(log_level, logging.INFO)},
                "uvicorn.error": {"level": "INFO"},
                "uvicorn.access": {"level": "WARNING"},
                "sqlalchemy.engine": {"level": "WARNING"},
            },
        }
    )
