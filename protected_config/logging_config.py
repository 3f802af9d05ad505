"""
Logging Configuration for Protected Configuration.

Library modules only create module-level loggers; applications (and the CLI)
call setup_logging() once to attach handlers.

Usage:
    from protected_config.logging_config import setup_logging, get_logger

    setup_logging(verbose=True)
    logger = get_logger('protected_config.cli')
    logger.info("Protected file", extra={'extra_data': {'path': 'app.json'}})

Secret material (plaintext or keys) must never be passed to a logger.
"""

import json
import logging
import sys
from datetime import datetime
from pathlib import Path
from typing import Optional


class ProtectedConfigFormatter(logging.Formatter):
    """Formatter with optional colors and a JSON mode."""

    COLORS = {
        'DEBUG': '\033[36m',      # Cyan
        'INFO': '\033[32m',       # Green
        'WARNING': '\033[33;1m',  # Bold yellow
        'ERROR': '\033[31m',      # Red
        'CRITICAL': '\033[31;1m', # Bold red
        'RESET': '\033[0m',
    }

    def __init__(self, use_colors: bool = True, json_format: bool = False):
        self.use_colors = use_colors and sys.stderr.isatty()
        self.json_format = json_format
        super().__init__()

    def format(self, record: logging.LogRecord) -> str:
        if self.json_format:
            return self._format_json(record)
        return self._format_text(record)

    def _format_text(self, record: logging.LogRecord) -> str:
        timestamp = datetime.now().strftime('%Y-%m-%d %H:%M:%S.%f')[:-3]
        level_name = record.levelname

        if self.use_colors:
            color = self.COLORS.get(level_name, '')
            level_str = f"{color}{level_name:8}{self.COLORS['RESET']}"
        else:
            level_str = f"{level_name:8}"

        msg = record.getMessage()

        extra_str = ""
        if hasattr(record, 'extra_data') and record.extra_data:
            extra_items = [f"{k}={v}" for k, v in record.extra_data.items()]
            extra_str = f" | {', '.join(extra_items)}"

        text = f"{timestamp} {level_str} [{self._component(record.name)}] {msg}{extra_str}"
        if record.exc_info:
            text = f"{text}\n{self.formatException(record.exc_info)}"
        return text

    def _format_json(self, record: logging.LogRecord) -> str:
        data = {
            'timestamp': datetime.now().isoformat(),
            'level': record.levelname,
            'logger': record.name,
            'message': record.getMessage(),
            'component': self._component(record.name),
        }

        if hasattr(record, 'extra_data') and record.extra_data:
            data['extra'] = record.extra_data

        if record.exc_info:
            data['exception'] = self.formatException(record.exc_info)

        return json.dumps(data)

    def _component(self, logger_name: str) -> str:
        """protected_config.config.builder -> config.builder"""
        parts = logger_name.split('.')
        if len(parts) >= 2 and parts[0] == 'protected_config':
            return '.'.join(parts[1:])
        return logger_name


def setup_logging(
    verbose: bool = False,
    log_file: Optional[str] = None,
    console: bool = True,
    json_format: bool = False,
) -> None:
    """
    Initialize logging for the protected_config package.

    Args:
        verbose: Log at DEBUG instead of INFO
        log_file: Optional file path for log output
        console: Log to stderr
        json_format: Use JSON format for logs
    """
    level = logging.DEBUG if verbose else logging.INFO

    package_logger = logging.getLogger('protected_config')
    package_logger.setLevel(level)

    for handler in package_logger.handlers[:]:
        package_logger.removeHandler(handler)

    if console:
        console_handler = logging.StreamHandler(sys.stderr)
        console_handler.setLevel(level)
        console_handler.setFormatter(ProtectedConfigFormatter(
            use_colors=True,
            json_format=json_format
        ))
        package_logger.addHandler(console_handler)

    if log_file:
        log_path = Path(log_file)
        log_path.parent.mkdir(parents=True, exist_ok=True)

        file_handler = logging.FileHandler(log_file)
        file_handler.setLevel(level)
        file_handler.setFormatter(ProtectedConfigFormatter(
            use_colors=False,
            json_format=json_format
        ))
        package_logger.addHandler(file_handler)


def get_logger(name: str) -> logging.Logger:
    """Get a logger below the protected_config namespace."""
    if not name.startswith('protected_config'):
        name = f"protected_config.{name}"
    return logging.getLogger(name)
