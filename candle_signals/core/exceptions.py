"""Exception hierarchy for the signal core.

This module defines all custom exceptions raised by the aggregation,
pattern and indicator layers. All exceptions inherit from CandleSignalsError
for easy catching and handling.

Insufficient history has no exception here: a window that is too short
yields a zeroed result and a warning log entry, never an exception.
"""

from typing import Any, Dict


class CandleSignalsError(Exception):
    """Base exception for all signal core errors.

    All custom exceptions in the package inherit from this class,
    allowing callers to catch any signal core related error at once.
    """

    def __init__(self, message: str, **context: Any):
        """Initialize the exception with a message and optional context.

        Args:
            message: Error message describing what went wrong
            **context: Additional context information for logging and debugging
        """
        super().__init__(message)
        self.context: Dict[str, Any] = context

    def __str__(self) -> str:
        """Return string representation including context."""
        if self.context:
            ctx = ', '.join(f'{k}={v}' for k, v in self.context.items())
            return f"{super().__str__()} [{ctx}]"
        return super().__str__()


# ============================================================================
# Configuration Exceptions
# ============================================================================

class InvalidConfigError(CandleSignalsError):
    """Raised when configuration contains invalid values.

    This exception is raised when configuration values fail validation,
    such as non-positive periods, thresholds outside [0, 1], or keys
    that no configuration section knows about.
    """

    def __init__(self, message: str, **context: Any):
        super().__init__(message, **context)


class MissingConfigError(CandleSignalsError):
    """Raised when a configuration file cannot be found."""

    def __init__(self, message: str, **context: Any):
        super().__init__(message, **context)


class ConfigValidationError(CandleSignalsError):
    """Raised when configuration fails schema validation.

    This exception is raised when the configuration structure does not
    match the expected layout, such as a section that is not a mapping.
    """

    def __init__(self, message: str, **context: Any):
        super().__init__(message, **context)


# ============================================================================
# Data Exceptions
# ============================================================================

class DataValidationError(CandleSignalsError):
    """Raised when incoming market data fails validation."""

    def __init__(self, message: str, **context: Any):
        super().__init__(message, **context)


class InvalidTickError(DataValidationError):
    """Raised when a tick is malformed.

    A tick is rejected when its price is not a real number or its time
    cannot be interpreted as an instant. The ingestion call that received
    it is aborted and the candle history is left untouched.
    """

    def __init__(self, message: str, **context: Any):
        super().__init__(message, **context)


class InvalidCandleError(DataValidationError):
    """Raised when a caller-supplied candle violates OHLC integrity.

    High must be at least max(open, close) and low at most min(open, close).
    """

    def __init__(self, message: str, **context: Any):
        super().__init__(message, **context)
