"""Structured logging for export runs.

Every module logs through the shared `logger`. Events are rendered as one JSON
object per line (timestamp, level, event and bound fields) on stderr, or in the
file given with `--log-file` / the `log_file` setting.
"""

from __future__ import annotations

import logging
import sys
from typing import TYPE_CHECKING

import structlog

if TYPE_CHECKING:
    from pathlib import Path

_LOGGING_CONFIGURED = False


def _handler(filename: str | Path | None) -> logging.Handler:
    if filename:
        return logging.FileHandler(str(filename), encoding="utf-8")
    return logging.StreamHandler(sys.stderr)


def setup_logging(filename: str | Path | None = None, *, level: int = logging.INFO) -> structlog.BoundLogger:
    """Route export logs to stderr, or to `filename`.

    Importing this module configures stderr output. The CLI calls it again once
    the log file is known; that call replaces the stderr handler so later
    events, including branch failures and secret alerts, land in the file.
    Calls without a filename after the first one change nothing.

    Args:
        filename: log file path; None keeps stderr
        level: minimum level emitted, both by structlog and the stdlib root logger

    Returns:
        The `gllm_export` structlog logger.
    """
    global _LOGGING_CONFIGURED  # noqa: PLW0603
    if _LOGGING_CONFIGURED and not filename:
        return structlog.get_logger("gllm_export")

    logging.basicConfig(level=level, handlers=[_handler(filename)], format="%(message)s", force=bool(filename))
    structlog.configure(
        processors=[
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.add_log_level,
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.JSONRenderer(),
        ],
        wrapper_class=structlog.make_filtering_bound_logger(level),
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )
    _LOGGING_CONFIGURED = True
    return structlog.get_logger("gllm_export")


logger = setup_logging()
