"""Logging setup and per-run log context."""

import logging
import sys
from typing import Literal

from reelsynth.config import get_settings

LogLevel = Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]

# Libraries that log every request at INFO
_QUIET_LOGGERS = ("httpx", "httpcore", "openai", "uvicorn.access", "sqlalchemy.engine")


def setup_logging(level: LogLevel | None = None) -> None:
    """Send application logs to stdout.

    ``level`` overrides LOG_LEVEL; without either, production logs at INFO
    and everything else at DEBUG.
    """
    settings = get_settings()
    level = level or settings.log_level or ("INFO" if settings.is_production else "DEBUG")

    logging.basicConfig(
        level=getattr(logging, level),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
        handlers=[logging.StreamHandler(sys.stdout)],
    )
    for name in _QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)


class LogContext(logging.LoggerAdapter):
    """Prefix every message with ``[key=value]`` pairs.

    ``LogContext(logger, user=7).bind(batch="3f2a").info("stored")`` logs
    ``[user=7] [batch=3f2a] stored``.
    """

    def __init__(self, logger: logging.Logger, **context: object) -> None:
        super().__init__(logger, dict(context))

    def bind(self, **context: object) -> "LogContext":
        self.extra.update(context)
        return self

    def process(self, msg, kwargs):
        prefix = " ".join(f"[{key}={value}]" for key, value in self.extra.items())
        return f"{prefix} {msg}", kwargs
