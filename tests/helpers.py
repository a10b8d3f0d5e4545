"""
Builders for synthetic candles and a recording logger.
"""

from datetime import datetime, timedelta, timezone
from typing import List, Optional, Sequence

from candle_signals.core.types import Candle


BASE_TIME = datetime(2024, 1, 1, tzinfo=timezone.utc)


def make_candle(
    open_: float,
    high: float,
    low: float,
    close: float,
    index: int = 0,
    volume: Optional[float] = 1000.0,
    symbol: str = "XAUUSD"
) -> Candle:
    """Candle stamped `index` minutes after BASE_TIME."""
    return Candle(
        symbol=symbol,
        timestamp=BASE_TIME + timedelta(minutes=index),
        open=open_,
        high=high,
        low=low,
        close=close,
        volume=volume
    )


def candles_from_ohlc(rows: Sequence[tuple], symbol: str = "XAUUSD") -> List[Candle]:
    """One candle per (open, high, low, close) row, one minute apart."""
    return [
        make_candle(o, h, l, c, index=i, symbol=symbol)
        for i, (o, h, l, c) in enumerate(rows)
    ]


def candles_from_closes(
    closes: Sequence[float],
    spread: float = 1.0,
    volumes: Optional[Sequence[Optional[float]]] = None,
    symbol: str = "XAUUSD"
) -> List[Candle]:
    """Flat-bodied candles: open = close, high/low = close +- spread."""
    volumes = volumes if volumes is not None else [1000.0] * len(closes)
    return [
        make_candle(c, c + spread, c - spread, c, index=i, volume=v, symbol=symbol)
        for i, (c, v) in enumerate(zip(closes, volumes))
    ]


class RecordingLogger:
    """Injected logger that keeps every call for assertions."""

    def __init__(self):
        self.records = []

    def debug(self, msg: str, **kwargs) -> None:
        self.records.append(('debug', msg, kwargs))

    def info(self, msg: str, **kwargs) -> None:
        self.records.append(('info', msg, kwargs))

    def warning(self, msg: str, **kwargs) -> None:
        self.records.append(('warning', msg, kwargs))

    def error(self, msg: str, exc_info: bool = False, **kwargs) -> None:
        self.records.append(('error', msg, kwargs))

    def critical(self, msg: str, **kwargs) -> None:
        self.records.append(('critical', msg, kwargs))

    def messages(self, level: str) -> List[str]:
        return [msg for lvl, msg, _ in self.records if lvl == level]
