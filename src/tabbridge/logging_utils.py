"""Runtime logging helpers."""

from __future__ import annotations

import sys
from logging import Handler
from typing import Literal

from loguru import logger
from rich.console import Console
from rich.logging import RichHandler

LogProfile = Literal["default", "console"]

_DEFAULT_FORMAT = "{time:YYYY-MM-DD HH:mm:ss.SSS} | {level:<7} | {name}:{function}:{line} | {message}"
_CONFIGURED: tuple[LogProfile, str] | None = None


def _build_console_handler() -> Handler:
    # stdout may carry channel frames, so the console always targets stderr.
    return RichHandler(
        console=Console(stderr=True),
        show_level=True,
        show_time=True,
        show_path=False,
        markup=False,
        rich_tracebacks=False,
    )


def configure_logging(level: str = "INFO", *, profile: LogProfile = "default") -> None:
    """Configure process-level logging once per profile and level."""
    global _CONFIGURED
    level = level.upper()
    if _CONFIGURED == (profile, level):
        return

    logger.remove()
    if profile == "console":
        logger.add(
            _build_console_handler(),
            level=level,
            format="{message}",
            backtrace=False,
            diagnose=False,
        )
    else:
        logger.add(
            sys.stderr,
            level=level,
            format=_DEFAULT_FORMAT,
            backtrace=False,
            diagnose=False,
        )
    _CONFIGURED = (profile, level)
