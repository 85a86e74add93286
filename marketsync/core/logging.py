"""Service logging with Loguru; ERROR records optionally mirrored to Slack."""

import logging
import sys
from pathlib import Path
from typing import Any

import httpx
from loguru import logger

from marketsync.core.config import settings

LOG_FORMAT = "{time:YYYY-MM-DD HH:mm:ss.SSS} | {level} | {extra[name]}:{function}:{line} | {message}"
LOG_DIR = Path("logs")

LOGURU_LEVELS = {"TRACE", "DEBUG", "INFO", "SUCCESS", "WARNING", "ERROR", "CRITICAL"}
LEVEL_ALIASES = {"WARN": "WARNING", "FATAL": "CRITICAL"}

# Stdlib loggers routed through loguru, with a floor on their verbosity
STDLIB_LOGGERS = {
    "uvicorn": logging.INFO,
    "uvicorn.error": logging.INFO,
    "uvicorn.access": logging.INFO,
    "httpx": logging.WARNING,
    "sqlalchemy.engine": logging.WARNING,
}

_configured = False


class InterceptHandler(logging.Handler):
    """Forward stdlib records (uvicorn, httpx, sqlalchemy, alembic) to loguru."""

    def emit(self, record: logging.LogRecord) -> None:
        try:
            level = logger.level(record.levelname).name
        except ValueError:
            level = record.levelno

        frame, depth = logging.currentframe(), 2
        while frame and frame.f_code.co_name == "emit":
            frame = frame.f_back
            depth += 1

        logger.opt(depth=depth, exception=record.exc_info).log(level, record.getMessage())


def _slack_sink(message: Any) -> None:
    record = message.record
    text = (
        f"[{record['level'].name}] {record['extra'].get('name', 'marketsync')}:"
        f"{record['function']}:{record['line']}\n{record['message']}"
    )
    try:
        httpx.post(settings.SLACK_WEBHOOK_URL, json={"text": text}, timeout=5.0)
    except httpx.HTTPError:
        # Logging here would recurse into this sink
        pass


def resolve_level(raw: str | None) -> str:
    level = (raw or "INFO").strip().upper()
    level = LEVEL_ALIASES.get(level, level)
    return level if level in LOGURU_LEVELS else "INFO"


def _route_stdlib_logging() -> None:
    logging.basicConfig(handlers=[InterceptHandler()], level=0, force=True)
    for name, floor in STDLIB_LOGGERS.items():
        stdlib_logger = logging.getLogger(name)
        stdlib_logger.handlers = [InterceptHandler()]
        stdlib_logger.propagate = False
        stdlib_logger.setLevel(floor)


def configure_logging() -> None:
    """Install the stdout, file and optional Slack sinks. Runs once per process."""
    global _configured
    if _configured:
        return
    _configured = True

    level = resolve_level(settings.effective_log_level)
    sink_options = {"level": level, "format": LOG_FORMAT, "backtrace": False, "diagnose": False}

    logger.remove()
    logger.configure(extra={"name": "marketsync"})
    logger.add(sys.stdout, **sink_options)

    LOG_DIR.mkdir(exist_ok=True)
    logger.add(LOG_DIR / "marketsync.log", rotation="10 MB", retention="14 days", enqueue=True, **sink_options)

    if settings.SLACK_WEBHOOK_URL:
        logger.add(_slack_sink, level="ERROR", enqueue=True)

    _route_stdlib_logging()


def get_logger(name: str) -> logger.__class__:
    return logger.bind(name=name)


configure_logging()
