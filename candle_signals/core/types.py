"""Core data types for the signal core.

This module defines the structures passed between the aggregator, the
pattern detector and the indicator engine using dataclasses:
- float for prices and volumes (indicator math runs on numpy float64)
- datetime for all timestamps (UTC-aware)
- Validation in __post_init__ where needed
- Value objects handed to readers are frozen
"""

from dataclasses import dataclass, asdict, field
from datetime import datetime, timezone
from decimal import Decimal
from numbers import Real
from typing import Any, Dict, Mapping, Optional

import pandas as pd

from .constants import PatternName, PatternType
from .exceptions import InvalidCandleError, InvalidTickError


def _is_number(value: Any) -> bool:
    return isinstance(value, (Real, Decimal)) and not isinstance(value, bool)


def _ensure_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def to_utc_datetime(value: Any) -> datetime:
    """
    Convert an epoch/parseable timestamp into a UTC-aware datetime.

    Numbers are epoch milliseconds, strings go through the pandas parser,
    datetimes are normalized to UTC (naive values are taken as UTC).

    Raises:
        InvalidTickError: If the value cannot be interpreted as an instant
    """
    if isinstance(value, datetime) and not pd.isna(value):
        return _ensure_utc(value)

    try:
        if _is_number(value):
            ts = pd.Timestamp(float(value) if isinstance(value, Decimal) else value, unit='ms', tz='UTC')
        elif isinstance(value, str):
            ts = pd.Timestamp(value)
        else:
            raise TypeError(f"unsupported timestamp type {type(value).__name__}")
    except (ValueError, TypeError, OverflowError) as e:
        raise InvalidTickError(f"Invalid timestamp: {e}", timestamp=value) from e

    if pd.isna(ts):
        raise InvalidTickError("Invalid timestamp: not a time", timestamp=value)

    return _ensure_utc(ts.to_pydatetime())


# ============================================================================
# Market Data Types
# ============================================================================

@dataclass
class Tick:
    """
    Single market tick.

    Transient: ticks are folded into candles and never stored.
    """
    price: float
    time: datetime
    volume: Optional[float] = None

    def __post_init__(self):
        """Validate price and time, ensure UTC timezone."""
        if not _is_number(self.price):
            raise InvalidTickError(
                "Invalid tick data: price is not numeric",
                price=self.price
            )

        if not isinstance(self.time, datetime) or pd.isna(self.time):
            raise InvalidTickError(
                "Invalid tick data: time is not a valid instant",
                time=self.time
            )

        if self.volume is not None and not _is_number(self.volume):
            raise InvalidTickError(
                "Invalid tick data: volume is not numeric",
                volume=self.volume
            )

        # Decimal prices from broker feeds are folded as floats
        self.price = float(self.price)
        if self.volume is not None:
            self.volume = float(self.volume)
        self.time = _ensure_utc(self.time)

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> 'Tick':
        """Build a tick from a {price, time, volume?} mapping."""
        if not isinstance(data, Mapping):
            raise InvalidTickError("Invalid tick data: expected a mapping", tick=data)
        return cls(
            price=data.get('price'),
            time=data.get('time'),
            volume=data.get('volume'),
        )


@dataclass
class Candle:
    """
    OHLCV candlestick aligned to a timeframe bucket.

    Mutated in place by the aggregator while ticks keep mapping to its
    bucket. Validates OHLC integrity on creation.
    """
    symbol: str
    timestamp: datetime
    open: float
    high: float
    low: float
    close: float
    volume: float = 0.0

    def __post_init__(self):
        """Validate candle integrity."""
        try:
            self.timestamp = to_utc_datetime(self.timestamp)
        except InvalidTickError as e:
            raise InvalidCandleError(str(e), symbol=self.symbol) from e

        if self.high < max(self.open, self.close):
            raise InvalidCandleError(
                f"Invalid candle: high ({self.high}) < max(open, close)",
                symbol=self.symbol,
                timestamp=self.timestamp.isoformat()
            )

        if self.low > min(self.open, self.close):
            raise InvalidCandleError(
                f"Invalid candle: low ({self.low}) > min(open, close)",
                symbol=self.symbol,
                timestamp=self.timestamp.isoformat()
            )

    @classmethod
    def from_dict(cls, symbol: str, data: Mapping[str, Any]) -> 'Candle':
        """Build a candle from a {timestamp, open, high, low, close, volume} mapping."""
        try:
            return cls(
                symbol=symbol,
                timestamp=data['timestamp'],
                open=float(data['open']),
                high=float(data['high']),
                low=float(data['low']),
                close=float(data['close']),
                volume=float(data.get('volume') or 0.0),
            )
        except (KeyError, TypeError, ValueError) as e:
            raise InvalidCandleError(f"Invalid candle data: {e}", symbol=symbol) from e

    @property
    def body(self) -> float:
        """|open - close|"""
        return abs(self.open - self.close)

    @property
    def range(self) -> float:
        """High - Low"""
        return self.high - self.low

    @property
    def upper_shadow(self) -> float:
        return self.high - max(self.open, self.close)

    @property
    def lower_shadow(self) -> float:
        return min(self.open, self.close) - self.low

    @property
    def typical_price(self) -> float:
        """(High + Low + Close) / 3"""
        return (self.high + self.low + self.close) / 3

    @property
    def is_bullish(self) -> bool:
        return self.close > self.open

    @property
    def is_bearish(self) -> bool:
        return self.close < self.open


# ============================================================================
# Signal Types
# ============================================================================

@dataclass(frozen=True)
class PatternResult:
    """Classification of the latest candles."""
    name: PatternName
    pattern_type: PatternType
    confidence: float

    def to_dict(self) -> Dict[str, Any]:
        return {
            'name': self.name.value,
            'type': self.pattern_type.value,
            'confidence': self.confidence,
        }


@dataclass(frozen=True)
class BollingerBands:
    upper: float = 0.0
    middle: float = 0.0
    lower: float = 0.0


@dataclass(frozen=True)
class MACDResult:
    line: float = 0.0
    signal: float = 0.0
    histogram: float = 0.0


@dataclass(frozen=True)
class StochasticResult:
    k: float = 0.0
    d: float = 0.0


@dataclass(frozen=True)
class IndicatorSnapshot:
    """
    All indicator outputs of one update cycle.

    The default instance is the all-zero reset state. Instances are never
    mutated; the engine replaces its snapshot wholesale.
    """
    rsi: float = 0.0
    moving_average: float = 0.0
    bollinger_bands: BollingerBands = field(default_factory=BollingerBands)
    macd: MACDResult = field(default_factory=MACDResult)
    stochastic: StochasticResult = field(default_factory=StochasticResult)
    adx: float = 0.0
    obv: float = 0.0
    sentiment: float = 0.0
    volatility: float = 0.0
    atr: float = 0.0
    cci: float = 0.0
    vwap: float = 0.0

    def to_dict(self) -> Dict[str, Any]:
        """Nested plain-dict form for serialization."""
        return asdict(self)
