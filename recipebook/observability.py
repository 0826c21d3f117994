"""Logging configuration using Loguru.

Application modules log through ``from loguru import logger``. Records
emitted through the standard library (Werkzeug, Flask, the Google Cloud
clients) are forwarded to the same sinks by :class:`InterceptHandler`.
"""

from __future__ import annotations

import logging
import sys

from loguru import logger

_DEV_FORMAT = (
    "<green>{time:YYYY-MM-DD HH:mm:ss.SSS}</green> | "
    "<level>{level: <8}</level> | "
    "<cyan>{name}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan> - "
    "<level>{message}</level>"
)


class InterceptHandler(logging.Handler):
    """Redirect standard library log records to Loguru."""

    def emit(self, record: logging.LogRecord) -> None:
        try:
            level = logger.level(record.levelname).name
        except ValueError:
            level = record.levelno

        frame, depth = logging.currentframe(), 2
        while frame and frame.f_code.co_filename == logging.__file__:
            frame = frame.f_back
            depth += 1

        logger.opt(depth=depth, exception=record.exc_info).log(level, record.getMessage())


def configure_logging(level: str = "INFO", *, json_logs: bool = False) -> None:
    """Replace Loguru's default sink and route stdlib logging through it."""

    logger.remove()
    if json_logs:
        logger.add(sys.stderr, level=level, serialize=True, backtrace=True, diagnose=False)
    else:
        logger.add(sys.stderr, level=level, format=_DEV_FORMAT, colorize=True, backtrace=True)

    logging.basicConfig(handlers=[InterceptHandler()], level=0, force=True)

    for noisy in ("google.auth", "google.api_core", "urllib3"):
        logging.getLogger(noisy).setLevel(logging.WARNING)


__all__ = ["InterceptHandler", "configure_logging"]
