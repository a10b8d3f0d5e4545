"""
Candle Aggregator - Builds OHLCV candles from ticks and keeps a bounded history.

Ticks are bucketed by `floor(t / timeframe) * timeframe`. Ticks may arrive out
of order, so every insert keeps the per-symbol history sorted and eviction
always drops the oldest candle by timestamp.
"""

from bisect import bisect_left
from dataclasses import replace
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Iterable, List, Mapping, Optional, Tuple, Union

import pandas as pd

from ..core.config import CandleConfig
from ..core.exceptions import InvalidTickError
from ..core.types import Candle, PatternResult, Tick, to_utc_datetime
from ..monitoring.logger import resolve_logger
from ..signals.pattern_detector import PatternDetector


EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)

CANDLE_COLUMNS = ['timestamp', 'open', 'high', 'low', 'close', 'volume']


class CandleAggregator:
    """
    Per-symbol candle histories built from ticks.

    Owns the candles exclusively: a candle is created by the first tick of
    its bucket, extended by later ticks of the same bucket and evicted once
    the history grows past max_candles.
    """

    def __init__(
        self,
        config: Optional[CandleConfig] = None,
        logger=None,
        detector: Optional[PatternDetector] = None
    ):
        """
        Initialize the aggregator.

        Args:
            config: Aggregation and pattern settings (defaults if omitted)
            logger: Injected logger; no-op when omitted
            detector: Pattern detector; built from config when omitted
        """
        self.config = config or CandleConfig()
        self.logger = resolve_logger(logger)
        self.timeframe = timedelta(seconds=self.config.timeframe)
        self.detector = detector or PatternDetector(self.config, logger=self.logger)

        self._candles: Dict[str, List[Candle]] = {}
        self._by_bucket: Dict[str, Dict[datetime, Candle]] = {}

    # ------------------------------------------------------------------
    # Configuration
    # ------------------------------------------------------------------

    def initialize_symbol(self, symbol: str) -> None:
        """Start an empty history for symbol (no-op if it exists)."""
        if symbol not in self._candles:
            self._candles[symbol] = []
            self._by_bucket[symbol] = {}

    def set_timeframe(self, seconds: float) -> None:
        """
        Change the bucket width for subsequent ticks.

        Existing candles keep their buckets; nothing is re-aggregated.
        """
        self.update_config(timeframe=seconds)

    def update_config(self, **partial: Any) -> None:
        """Merge settings field-wise over the current configuration."""
        self.config = self.config.merged(**partial)
        self.timeframe = timedelta(seconds=self.config.timeframe)
        self.detector.config = self.config
        for symbol in self._candles:
            self._evict(symbol)
        self.logger.info("Candle configuration updated", **self.config.to_dict())

    # ------------------------------------------------------------------
    # Ingestion
    # ------------------------------------------------------------------

    def add_tick(self, symbol: str, tick: Union[Tick, Mapping[str, Any]]) -> Candle:
        """
        Fold a tick into the candle of its bucket.

        Args:
            symbol: Market symbol
            tick: Tick or {price, time, volume?} mapping

        Returns:
            The candle the tick landed in

        Raises:
            InvalidTickError: If price is not numeric or time is not an instant
        """
        try:
            if not isinstance(tick, Tick):
                tick = Tick.from_dict(tick)
        except InvalidTickError as e:
            self.logger.warning("Rejected tick", symbol=symbol, error=str(e))
            raise

        volume = tick.volume or 0
        bucket = self._align_to_period(tick.time)

        self.initialize_symbol(symbol)
        candle = self._by_bucket[symbol].get(bucket)

        if candle is None:
            candle = Candle(
                symbol=symbol,
                timestamp=bucket,
                open=tick.price,
                high=tick.price,
                low=tick.price,
                close=tick.price,
                volume=volume
            )
            self._insert(symbol, candle)
            self.logger.debug("Candle opened", symbol=symbol, timestamp=bucket.isoformat())
        else:
            candle.high = max(candle.high, tick.price)
            candle.low = min(candle.low, tick.price)
            candle.close = tick.price
            candle.volume += volume

        return candle

    def add_historical_tick(self, symbol: str, tick: Mapping[str, Any]) -> Candle:
        """
        Add a historical tick for backtesting.

        Args:
            symbol: Market symbol
            tick: {price, timestamp, volume?}; timestamp is epoch milliseconds,
                a parseable string or a datetime. Volume defaults to 1.

        Raises:
            InvalidTickError: If the tick cannot be interpreted
        """
        if not isinstance(tick, Mapping):
            raise InvalidTickError("Invalid tick data: expected a mapping", tick=tick)

        volume = tick.get('volume')
        if volume is None or (isinstance(volume, float) and pd.isna(volume)):
            volume = 1

        return self.add_tick(symbol, Tick(
            price=tick.get('price'),
            time=to_utc_datetime(tick.get('timestamp')),
            volume=volume
        ))

    def add_historical_ticks(
        self,
        symbol: str,
        ticks: Union[pd.DataFrame, Iterable[Mapping[str, Any]]]
    ) -> int:
        """
        Replay a batch of historical ticks in the given order.

        Args:
            symbol: Market symbol
            ticks: DataFrame with price/timestamp[/volume] columns, or mappings

        Returns:
            Number of ticks ingested
        """
        if isinstance(ticks, pd.DataFrame):
            ticks = ticks.to_dict('records')

        count = 0
        for tick in ticks:
            self.add_historical_tick(symbol, tick)
            count += 1

        self.logger.info("Historical ticks ingested", symbol=symbol, ticks=count)
        return count

    def add_candle(self, symbol: str, candle: Union[Candle, Mapping[str, Any]]) -> Candle:
        """
        Insert a complete candle, bypassing bucket aggregation.

        A candle already stored at the same timestamp is replaced.

        Raises:
            InvalidCandleError: If the candle violates OHLC integrity
        """
        if isinstance(candle, Candle):
            candle = Candle(
                symbol=symbol,
                timestamp=candle.timestamp,
                open=candle.open,
                high=candle.high,
                low=candle.low,
                close=candle.close,
                volume=candle.volume
            )
        else:
            candle = Candle.from_dict(symbol, candle)

        self.initialize_symbol(symbol)
        existing = self._by_bucket[symbol].get(candle.timestamp)
        if existing is not None:
            candles = self._candles[symbol]
            candles[candles.index(existing)] = candle
            self._by_bucket[symbol][candle.timestamp] = candle
        else:
            self._insert(symbol, candle)

        return candle

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def get_candles(self, symbol: str) -> Tuple[Candle, ...]:
        """
        Ordered history for symbol (oldest first); empty if unknown.

        Candles are copies, so callers cannot edit the stored history.
        """
        return tuple(replace(c) for c in self._candles.get(symbol, ()))

    def symbols(self) -> List[str]:
        """Symbols with a history, in first-seen order."""
        return list(self._candles)

    def detect_pattern(self, symbol: str) -> Optional[PatternResult]:
        """Classify the latest candles of symbol."""
        return self.detector.detect(self.get_candles(symbol))

    def to_dataframe(self, symbol: str, count: Optional[int] = None) -> pd.DataFrame:
        """
        Export the history as an OHLCV DataFrame.

        Args:
            symbol: Market symbol
            count: Number of most recent candles

        Returns:
            DataFrame with columns: timestamp, open, high, low, close, volume
        """
        candles = self.get_candles(symbol)
        if count and len(candles) > count:
            candles = candles[-count:]

        return pd.DataFrame(
            [[getattr(c, col) for col in CANDLE_COLUMNS] for c in candles],
            columns=CANDLE_COLUMNS
        )

    def __len__(self) -> int:
        """Number of candles across all symbols."""
        return sum(len(c) for c in self._candles.values())

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _insert(self, symbol: str, candle: Candle) -> None:
        candles = self._candles[symbol]
        position = bisect_left([c.timestamp for c in candles], candle.timestamp)
        candles.insert(position, candle)
        self._by_bucket[symbol][candle.timestamp] = candle
        self._evict(symbol)

    def _evict(self, symbol: str) -> None:
        candles = self._candles[symbol]
        while len(candles) > self.config.max_candles:
            evicted = candles.pop(0)
            del self._by_bucket[symbol][evicted.timestamp]
            self.logger.debug("Candle evicted", symbol=symbol, timestamp=evicted.timestamp.isoformat())

    def _align_to_period(self, timestamp: datetime) -> datetime:
        """Align timestamp to bucket start."""
        periods = (timestamp - EPOCH) // self.timeframe
        return EPOCH + periods * self.timeframe
