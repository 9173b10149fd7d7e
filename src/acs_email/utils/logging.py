"""Structured logging for the ACS email client.

Module loggers are structlog loggers whose events are rendered by loguru:
a console sink on stderr and, for the CLI, a rotating file under the user
cache directory. Secret-bearing fields are masked before rendering.
"""

from __future__ import annotations

import logging
import sys
from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import dataclass
from pathlib import Path
from typing import Literal, Optional, cast

import structlog
from loguru import logger as loguru_logger
from structlog.exceptions import DropEvent
from structlog.stdlib import BoundLogger
from structlog.typing import EventDict, WrappedLogger

from acs_email.config.settings import log_dir
from acs_email.utils.sanitize import mask_secret_fields


CONSOLE_FORMAT = "{time:HH:mm:ss.SSS} | {level: <7} | {message} | {extra}"
FILE_FORMAT = "{time:YYYY-MM-DD HH:mm:ss.SSS} | {level} | {name} | {message} | {extra}"
DEFAULT_LOG_FILENAME = "acs-email.log"


@dataclass(slots=True)
class LoggingOptions:
    level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "INFO"
    debug: bool = False
    rotation: str = "10 MB"
    retention: str = "14 days"
    log_to_file: bool = True
    log_path: Optional[Path] = None

    @property
    def console_level(self) -> str:
        return "DEBUG" if self.debug else self.level


_is_configured = False


def configure_logging(options: LoggingOptions | None = None) -> Path | None:
    """Install the loguru sinks and the structlog pipeline.

    Returns the log file path, or ``None`` when only the console is used.
    Safe to call repeatedly; each call replaces the previous sinks.
    """

    global _is_configured

    opts = options or LoggingOptions()

    loguru_logger.remove()
    _add_console_sink(opts)
    log_path = _add_file_sink(opts) if opts.log_to_file else None

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso", utc=True),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            _mask_secrets,
            _log_to_loguru,
        ],
        wrapper_class=structlog.make_filtering_bound_logger(
            getattr(logging, opts.console_level, logging.INFO)
        ),
        cache_logger_on_first_use=True,
    )

    _is_configured = True
    return log_path


def _add_console_sink(opts: LoggingOptions) -> None:
    loguru_logger.add(
        sys.stderr,
        level=opts.console_level,
        colorize=True,
        backtrace=opts.debug,
        diagnose=opts.debug,
        format=CONSOLE_FORMAT,
    )


def _add_file_sink(opts: LoggingOptions) -> Path:
    log_path = opts.log_path or (log_dir() / DEFAULT_LOG_FILENAME)
    loguru_logger.add(
        log_path,
        level="DEBUG",
        rotation=opts.rotation,
        retention=opts.retention,
        enqueue=True,
        encoding="utf-8",
        format=FILE_FORMAT,
    )
    return log_path


@contextmanager
def operation_context(operation_id: str) -> Iterator[None]:
    """Tag every event logged inside the block with ``operation_id``."""

    with structlog.contextvars.bound_contextvars(operation_id=operation_id):
        yield


def _mask_secrets(
    _: WrappedLogger,
    __: str,
    event_dict: EventDict,
) -> EventDict:
    return mask_secret_fields(event_dict)


def _log_to_loguru(
    _: WrappedLogger,
    __: str,
    event_dict: EventDict,
) -> EventDict:
    level = str(event_dict.pop("level", "INFO")).upper()
    event = event_dict.pop("event", "")
    event_dict.pop("timestamp", None)
    exception = event_dict.pop("exception", None)
    event_dict.pop("stack", None)
    loguru_logger.bind(**event_dict).opt(depth=6, exception=exception).log(level, event)
    raise DropEvent


def get_logger(*initial_values: object, **initial_kw: object) -> BoundLogger:
    log = structlog.get_logger(*initial_values, **initial_kw)
    if not _is_configured:
        configure_logging(LoggingOptions(log_to_file=False))
    return cast(BoundLogger, log)


__all__ = [
    "LoggingOptions",
    "configure_logging",
    "get_logger",
    "operation_context",
]
