"""
Logging configuration for the Meeting Bot orchestrator.
Provides colored console output, rotating log files and workspace-scoped loggers.
"""

import logging
import sys
from datetime import datetime
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Optional, Union

from meeting_bot.config import settings

ROOT_LOGGER_NAME = "meeting_bot"

CONSOLE_FORMAT = "%(asctime)s | %(levelname)s | %(name)s | %(message)s"
FILE_FORMAT = "%(asctime)s | %(levelname)s | %(name)s | %(funcName)s:%(lineno)d | %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

# Third-party loggers that report every poll at INFO
QUIET_LOGGERS = ("apscheduler.executors.default", "googleapiclient.discovery_cache")


class ColoredFormatter(logging.Formatter):
    """Custom formatter with color support for console output."""

    COLORS = {
        "DEBUG": "\033[36m",     # Cyan
        "INFO": "\033[32m",      # Green
        "WARNING": "\033[33m",   # Yellow
        "ERROR": "\033[31m",     # Red
        "CRITICAL": "\033[41m",  # Red background
        "RESET": "\033[0m"       # Reset
    }

    def format(self, record: logging.LogRecord) -> str:
        color = self.COLORS.get(record.levelname, self.COLORS["RESET"])

        # Color a copy so the file handler still sees the plain level name
        colored = logging.makeLogRecord(record.__dict__)
        colored.levelname = f"{color}{record.levelname}{self.COLORS['RESET']}"
        return super().format(colored)


class WorkspaceLogAdapter(logging.LoggerAdapter):
    """
    Logger for code acting on behalf of one workspace.

    Messages are prefixed with the workspace id, which is also attached to
    the record as `workspace_id` for handlers that want to filter on it.
    """

    def process(self, msg, kwargs):
        workspace_id = self.extra["workspace_id"]
        kwargs.setdefault("extra", {})["workspace_id"] = workspace_id
        return f"[{workspace_id}] {msg}", kwargs


def _console_handler(level: int) -> logging.Handler:
    handler = logging.StreamHandler(sys.stdout)
    handler.setLevel(level)
    handler.setFormatter(ColoredFormatter(fmt=CONSOLE_FORMAT, datefmt=DATE_FORMAT))
    return handler


def _file_handler(level: int, log_file: Optional[str]) -> logging.Handler:
    if log_file is None:
        log_dir = Path(settings.log_dir)
        log_dir.mkdir(parents=True, exist_ok=True)
        log_file = str(log_dir / f"meeting_bot_{datetime.now().strftime('%Y%m%d')}.log")

    handler = RotatingFileHandler(
        log_file,
        maxBytes=10 * 1024 * 1024,  # 10 MB
        backupCount=5,
        encoding="utf-8"
    )
    handler.setLevel(level)
    handler.setFormatter(logging.Formatter(fmt=FILE_FORMAT, datefmt=DATE_FORMAT))
    return handler


def setup_logging(
    log_level: Optional[str] = None,
    log_file: Optional[str] = None,
    enable_file_logging: Optional[bool] = None
) -> logging.Logger:
    """
    Set up logging configuration.

    Safe to call more than once; handlers from an earlier call are replaced.

    Args:
        log_level: Override log level from settings
        log_file: Override log file path
        enable_file_logging: Override settings.log_to_file

    Returns:
        The package root logger
    """
    level = getattr(logging, (log_level or settings.log_level).upper())
    if enable_file_logging is None:
        enable_file_logging = settings.log_to_file

    logger = logging.getLogger(ROOT_LOGGER_NAME)
    logger.setLevel(level)
    logger.handlers.clear()

    logger.addHandler(_console_handler(level))
    if enable_file_logging:
        logger.addHandler(_file_handler(level, log_file))

    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    return logger


def get_logger(
    name: str,
    workspace_id: Optional[str] = None,
) -> Union[logging.Logger, WorkspaceLogAdapter]:
    """
    Get a child logger with the given name.

    Args:
        name: Logger name (will be prefixed with 'meeting_bot.')
        workspace_id: Scope every message to this workspace

    Returns:
        Logger instance, or a WorkspaceLogAdapter when workspace_id is given
    """
    logger = logging.getLogger(f"{ROOT_LOGGER_NAME}.{name}")
    if workspace_id is None:
        return logger
    return WorkspaceLogAdapter(logger, {"workspace_id": workspace_id})
