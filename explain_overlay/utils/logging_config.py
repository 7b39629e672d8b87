"""
Logging Configuration Module

Root logger setup for ExplainOverlay: a size-rotated JSON log file in the
application data directory, an optional console handler, and a privacy
filter that strips user names, temporary capture paths and long quoted
values from messages.
"""

import json
import logging
import logging.handlers
import re
import sys
import traceback
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, Optional

from .. import DEFAULT_LOG_LEVEL, get_app_data_dir

_STANDARD_RECORD_KEYS = frozenset({
    'name', 'msg', 'args', 'levelname', 'levelno', 'pathname', 'filename',
    'module', 'lineno', 'funcName', 'created', 'msecs', 'relativeCreated',
    'thread', 'threadName', 'processName', 'process', 'exc_info', 'exc_text',
    'stack_info', 'taskName', 'message',
})


class PrivacyFilter(logging.Filter):
    """Redact home directory user names and temporary capture paths."""

    PATTERNS = (
        (re.compile(r'/Users/[^/\s]+'), '/Users/[USER]'),
        (re.compile(r'/home/[^/\s]+'), '/home/[USER]'),
        (re.compile(r'[A-Za-z]:\\Users\\[^\\\s]+'), r'C:\\Users\\[USER]'),
        (re.compile(r'/(?:private/)?var/folders/[^\s]+'), '[TEMP]'),
        (re.compile(r'/tmp/explain-overlay-[^\s]+'), '[TEMP]'),
        # Long quoted values may be clipboard contents
        (re.compile(r"(['\"])([^'\"]{32})[^'\"]{8,}\1"), r"\1\2...\1"),
    )

    def filter(self, record: logging.LogRecord) -> bool:
        try:
            message = record.getMessage()
        except (TypeError, ValueError):
            return True

        for pattern, replacement in self.PATTERNS:
            message = pattern.sub(replacement, message)

        record.msg = message
        record.args = ()
        return True


class JSONFormatter(logging.Formatter):
    """One JSON object per line."""

    def __init__(self, include_extra: bool = True):
        super().__init__()
        self.include_extra = include_extra

    def format(self, record: logging.LogRecord) -> str:
        log_data: Dict[str, Any] = {
            'timestamp': datetime.fromtimestamp(record.created).isoformat(),
            'level': record.levelname,
            'logger': record.name,
            'message': record.getMessage(),
            'function': record.funcName,
            'line': record.lineno
        }

        if record.exc_info and record.exc_info[0]:
            log_data['exception'] = {
                'type': record.exc_info[0].__name__,
                'message': str(record.exc_info[1]),
                'traceback': traceback.format_exception(*record.exc_info)
            }

        if self.include_extra:
            for key, value in record.__dict__.items():
                if key not in _STANDARD_RECORD_KEYS:
                    log_data[f'extra_{key}'] = value

        return json.dumps(log_data, default=str, ensure_ascii=False)


class ApplicationLogger:
    """
    Application logging manager.

    Configures the root logger once; modules keep using
    logging.getLogger(__name__).
    """

    def __init__(
        self,
        app_name: str = "explain-overlay",
        log_dir: Optional[Path] = None,
        log_level: str = DEFAULT_LOG_LEVEL,
        max_file_size: int = 5 * 1024 * 1024,
        backup_count: int = 3,
        enable_console: bool = True,
        enable_json: bool = True,
        enable_privacy_filter: bool = True
    ):
        """
        Initialize application logger.

        Args:
            app_name: Base name of the log file
            log_dir: Directory for log files (app data dir/logs if None)
            log_level: Minimum log level to capture
            max_file_size: Size in bytes at which the log file rotates
            backup_count: Number of rotated files to keep
            enable_console: Whether to log to stderr
            enable_json: Whether the file handler writes JSON lines
            enable_privacy_filter: Whether to redact paths and user names
        """
        self.app_name = app_name
        self.log_dir = Path(log_dir) if log_dir else Path(get_app_data_dir()) / "logs"
        self.log_level = getattr(logging, log_level.upper())
        self.max_file_size = max_file_size
        self.backup_count = backup_count
        self.enable_console = enable_console
        self.enable_json = enable_json
        self.enable_privacy_filter = enable_privacy_filter

        self.log_dir.mkdir(parents=True, exist_ok=True)
        self._configure_root_logger()

    @property
    def log_file(self) -> Path:
        return self.log_dir / f"{self.app_name}.log"

    def _configure_root_logger(self) -> None:
        root_logger = logging.getLogger()
        root_logger.setLevel(self.log_level)
        root_logger.handlers.clear()

        file_handler = logging.handlers.RotatingFileHandler(
            self.log_file,
            maxBytes=self.max_file_size,
            backupCount=self.backup_count,
            encoding='utf-8'
        )
        if self.enable_json:
            file_handler.setFormatter(JSONFormatter())
        else:
            file_handler.setFormatter(
                logging.Formatter('%(asctime)s - %(name)s - %(levelname)s - %(message)s')
            )
        root_logger.addHandler(file_handler)

        if self.enable_console:
            console_handler = logging.StreamHandler(sys.stderr)
            console_handler.setFormatter(
                logging.Formatter('%(asctime)s - %(name)s - %(levelname)s - %(message)s')
            )
            root_logger.addHandler(console_handler)

        if self.enable_privacy_filter:
            privacy_filter = PrivacyFilter()
            for handler in root_logger.handlers:
                handler.addFilter(privacy_filter)

        # pynput and Pillow are chatty at DEBUG
        for noisy in ('PIL', 'pynput'):
            logging.getLogger(noisy).setLevel(max(self.log_level, logging.INFO))


_app_logger: Optional[ApplicationLogger] = None


def setup_logging(
    log_dir: Optional[Path] = None,
    log_level: str = DEFAULT_LOG_LEVEL,
    enable_console: bool = True,
    enable_json: bool = True
) -> ApplicationLogger:
    """Set up application logging and return the manager."""
    global _app_logger

    _app_logger = ApplicationLogger(
        log_dir=log_dir,
        log_level=log_level,
        enable_console=enable_console,
        enable_json=enable_json
    )
    return _app_logger


def get_logger(name: str) -> logging.Logger:
    """Get a module logger, configuring defaults on first use."""
    if _app_logger is None:
        setup_logging()
    return logging.getLogger(name)
