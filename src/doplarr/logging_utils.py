"""Runtime logging helpers."""

from __future__ import annotations

import os
import sys

import loguru
from loguru import logger

_FORMAT = "{time:YYYY-MM-DD HH:mm:ss.SSS} | {level:<7} | {name}:{function}:{line} | {extra[session]} | {message}"
_CONFIGURED_LEVEL: str | None = None


def configure_logging(level: str | None = None) -> None:
    """Configure process-level logging once per level."""
    from doplarr.core.interaction import current_session

    def inject_context(record: loguru.Record) -> None:
        record["extra"]["session"] = current_session()

    global _CONFIGURED_LEVEL
    resolved = (os.getenv("DOPLARR_LOG_LEVEL") or level or "INFO").upper()
    if resolved == _CONFIGURED_LEVEL:
        return

    logger.remove()
    logger.add(
        sys.stderr,
        level=resolved,
        format=_FORMAT,
        backtrace=False,
        diagnose=False,
    )
    logger.configure(patcher=inject_context)
    _CONFIGURED_LEVEL = resolved
