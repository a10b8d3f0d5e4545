"""Logging for the signal core."""

from .logger import NullLogger, SignalLogger, get_logger, setup_logger
