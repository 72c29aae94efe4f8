"""Logging for the safety service.

structlog events and stdlib records (uvicorn, openai, httpx) go through one
formatter, so a JSON deployment never mixes plain-text lines into its stream.
Set LOG_DIR to an empty string to disable the rotating file.
"""

from __future__ import annotations

import logging
import os
from logging.handlers import RotatingFileHandler

import structlog

from zentia.config.settings import Settings, settings

# Chatty at INFO; their warnings still come through
_QUIET_LOGGERS = ("httpx", "httpcore", "openai", "aiosqlite")

# uvicorn installs its own handlers unless told otherwise
_UVICORN_LOGGERS = ("uvicorn", "uvicorn.error", "uvicorn.access")


def _resolve_level(name: str) -> int:
    level = logging.getLevelName(name.upper())
    return level if isinstance(level, int) else logging.INFO


def configure_logging(config: Settings = settings) -> None:
    level = _resolve_level(config.log_level)

    shared_processors: list[structlog.types.Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
    ]

    if config.log_format == "json":
        renderer: structlog.types.Processor = structlog.processors.JSONRenderer()
        shared_processors.append(structlog.processors.format_exc_info)
    else:
        renderer = structlog.dev.ConsoleRenderer(colors=True)

    structlog.configure(
        processors=shared_processors + [structlog.stdlib.ProcessorFormatter.wrap_for_formatter],
        wrapper_class=structlog.make_filtering_bound_logger(level),
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    formatter = structlog.stdlib.ProcessorFormatter(
        foreign_pre_chain=shared_processors,
        processors=[structlog.stdlib.ProcessorFormatter.remove_processors_meta, renderer],
    )

    handlers: list[logging.Handler] = []
    console_handler = logging.StreamHandler()
    console_handler.setLevel(level)
    handlers.append(console_handler)

    if config.log_dir:
        os.makedirs(config.log_dir, exist_ok=True)
        file_handler = RotatingFileHandler(
            os.path.join(config.log_dir, "zentia.log"), maxBytes=5_000_000, backupCount=3
        )
        file_handler.setLevel(logging.DEBUG)
        handlers.append(file_handler)

    root = logging.getLogger()
    for handler in list(root.handlers):
        root.removeHandler(handler)
    for handler in handlers:
        handler.setFormatter(formatter)
        root.addHandler(handler)
    root.setLevel(logging.DEBUG)

    for name in _QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)
    for name in _UVICORN_LOGGERS:
        uvicorn_logger = logging.getLogger(name)
        uvicorn_logger.handlers.clear()
        uvicorn_logger.propagate = True
