"""Structured logging for the signal core.

Components never configure handlers. They receive a logger with leveled
methods (debug/info/warning/error/critical, message plus keyword context)
and default to NullLogger unless debug output was requested.
"""

import logging
import sys
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Optional, Union


LOG_FORMAT = '%(asctime)s | %(levelname)-8s | %(name)s | %(message)s'
DATE_FORMAT = '%Y-%m-%d %H:%M:%S'


class SignalLogger:
    """
    Structured logger with keyword argument support.
    """

    def __init__(self, name: str, level: Optional[int] = None):
        """
        Initialize signal logger.

        Args:
            name: Logger name (typically __name__)
            level: Logging level, inherited from the root logger when omitted
        """
        self.logger = logging.getLogger(name)
        if level is not None:
            self.logger.setLevel(level)

    def _format_message(self, msg: str, **kwargs) -> str:
        """Format message with keyword arguments."""
        if kwargs:
            extra = ' | '.join(f'{k}={v}' for k, v in kwargs.items())
            return f"{msg} | {extra}"
        return msg

    def debug(self, msg: str, **kwargs) -> None:
        """Log debug message."""
        self.logger.debug(self._format_message(msg, **kwargs))

    def info(self, msg: str, **kwargs) -> None:
        """Log info message."""
        self.logger.info(self._format_message(msg, **kwargs))

    def warning(self, msg: str, **kwargs) -> None:
        """Log warning message."""
        self.logger.warning(self._format_message(msg, **kwargs))

    def error(self, msg: str, exc_info: bool = False, **kwargs) -> None:
        """Log error message."""
        self.logger.error(self._format_message(msg, **kwargs), exc_info=exc_info)

    def critical(self, msg: str, **kwargs) -> None:
        """Log critical message."""
        self.logger.critical(self._format_message(msg, **kwargs))


class NullLogger:
    """Logger with the SignalLogger interface that discards everything."""

    def debug(self, msg: str, **kwargs) -> None:
        pass

    def info(self, msg: str, **kwargs) -> None:
        pass

    def warning(self, msg: str, **kwargs) -> None:
        pass

    def error(self, msg: str, exc_info: bool = False, **kwargs) -> None:
        pass

    def critical(self, msg: str, **kwargs) -> None:
        pass


_loggers = {}


def get_logger(name: str) -> SignalLogger:
    """
    Get or create a signal logger.

    Args:
        name: Logger name (typically __name__)

    Returns:
        SignalLogger instance
    """
    if name not in _loggers:
        _loggers[name] = SignalLogger(name)
    return _loggers[name]


def resolve_logger(logger=None, debug: bool = False, name: str = "candle_signals"):
    """
    Pick the logger a component writes to.

    An injected logger always wins; otherwise debug mode routes to the
    stdlib-backed SignalLogger and everything else is discarded.
    """
    if logger is not None:
        return logger
    if debug:
        return get_logger(name)
    return NullLogger()


def setup_logger(
    log_file: Optional[Union[str, Path]] = None,
    level: Union[int, str] = logging.INFO
) -> logging.Logger:
    """
    Configure the package logger for applications embedding the core.

    Console output always, plus a rotating file when log_file is given.

    Args:
        log_file: Optional path of the log file
        level: Logging level (name or number)

    Returns:
        The configured package logger
    """
    if isinstance(level, str):
        level = logging.getLevelName(level.upper())

    root = logging.getLogger("candle_signals")
    root.setLevel(level)
    formatter = logging.Formatter(LOG_FORMAT, datefmt=DATE_FORMAT)

    if not root.handlers:
        console_handler = logging.StreamHandler(sys.stdout)
        console_handler.setLevel(level)
        console_handler.setFormatter(formatter)
        root.addHandler(console_handler)

        if log_file:
            Path(log_file).parent.mkdir(parents=True, exist_ok=True)
            file_handler = RotatingFileHandler(
                str(log_file),
                maxBytes=10*1024*1024,  # 10MB
                backupCount=5
            )
            file_handler.setLevel(level)
            file_handler.setFormatter(formatter)
            root.addHandler(file_handler)

    return root
