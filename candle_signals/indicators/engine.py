"""
Indicator Engine - Technical indicators over a candle history.

Every calculation accepts either a sequence of candles or a DataFrame with
OHLCV columns and works on numpy arrays of the most recent window:

    timestamp | open | high | low | close | volume

Each indicator guards its own minimum window and returns a zeroed default
(with a warning) when the history is too short. update_indicators() computes
all of them as one all-or-nothing batch.
"""

import math
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Any, Dict, Mapping, Optional, Sequence, Tuple, Union

import numpy as np
import pandas as pd

from ..core.config import IndicatorConfig
from ..core.constants import (
    CCI_CONSTANT, OBV_MIN_CANDLES,
    PRICE_DECIMALS, OSCILLATOR_DECIMALS,
)
from ..core.types import (
    BollingerBands, Candle, IndicatorSnapshot,
    MACDResult, StochasticResult,
)
from ..monitoring.logger import resolve_logger
from .cache import ComputationCache


CandleInput = Union[pd.DataFrame, Sequence[Candle], Sequence[Mapping[str, Any]]]
CorrelationTable = Dict[Tuple[str, str], float]


@dataclass(frozen=True)
class OHLCV:
    """Column arrays of a candle window (volume is NaN where unknown)."""
    open: np.ndarray
    high: np.ndarray
    low: np.ndarray
    close: np.ndarray
    volume: np.ndarray

    def __len__(self) -> int:
        return len(self.close)

    def window(self, start: int, end: int) -> 'OHLCV':
        return OHLCV(
            open=self.open[start:end],
            high=self.high[start:end],
            low=self.low[start:end],
            close=self.close[start:end],
            volume=self.volume[start:end],
        )

    def tail(self, count: int) -> 'OHLCV':
        return self.window(len(self) - count, len(self))

    @property
    def typical_price(self) -> np.ndarray:
        return (self.high + self.low + self.close) / 3

    @property
    def volume_or_one(self) -> np.ndarray:
        """Volume with missing or zero entries counted as 1."""
        return np.where(np.isnan(self.volume) | (self.volume == 0), 1.0, self.volume)

    @classmethod
    def from_candles(cls, candles: CandleInput) -> 'OHLCV':
        if isinstance(candles, OHLCV):
            return candles

        if isinstance(candles, pd.DataFrame):
            df = candles.rename(columns=str.lower)
        elif len(candles) and isinstance(candles[0], Mapping):
            df = pd.DataFrame(list(candles))
        else:
            return cls(
                open=np.array([c.open for c in candles], dtype=float),
                high=np.array([c.high for c in candles], dtype=float),
                low=np.array([c.low for c in candles], dtype=float),
                close=np.array([c.close for c in candles], dtype=float),
                volume=np.array(
                    [np.nan if c.volume is None else c.volume for c in candles],
                    dtype=float
                ),
            )

        volume = df['volume'] if 'volume' in df.columns else pd.Series(np.nan, index=df.index)
        return cls(
            open=df['open'].to_numpy(dtype=float),
            high=df['high'].to_numpy(dtype=float),
            low=df['low'].to_numpy(dtype=float),
            close=df['close'].to_numpy(dtype=float),
            volume=volume.to_numpy(dtype=float),
        )


def _true_range(bars: OHLCV) -> np.ndarray:
    """
    True Range for every bar after the first.

    TR = max(high - low, |high - prev_close|, |low - prev_close|)
    """
    high = bars.high[1:]
    low = bars.low[1:]
    prev_close = bars.close[:-1]
    return np.maximum.reduce([
        high - low,
        np.abs(high - prev_close),
        np.abs(low - prev_close),
    ])


def _ema(close: np.ndarray, period: int) -> float:
    """EMA seeded with the first close of the trailing window."""
    k = 2 / (period + 1)
    window = close[-period:]
    ema = float(window[0])
    for price in window[1:]:
        ema = float(price) * k + ema * (1 - k)
    return round(ema, PRICE_DECIMALS)


class IndicatorEngine:
    """
    Computes the indicator battery and cross-symbol correlations.

    Holds the last snapshot (replaced wholesale, never patched), the
    correlation table and a per-cycle computation cache.
    """

    def __init__(self, config: Optional[IndicatorConfig] = None, logger=None):
        """
        Initialize indicator engine.

        Args:
            config: Indicator settings (defaults if omitted)
            logger: Injected logger; when omitted, debug mode logs through
                the package logger and normal mode discards messages
        """
        self.config = config or IndicatorConfig()
        self._injected_logger = logger
        self.logger = resolve_logger(logger, self.config.debug, __name__)

        self._snapshot = IndicatorSnapshot()
        self._correlations: CorrelationTable = {}
        self._cache = ComputationCache()
        self._in_cycle = False

    # ------------------------------------------------------------------
    # Batch update and state
    # ------------------------------------------------------------------

    def update_indicators(self, candles: Optional[CandleInput]) -> IndicatorSnapshot:
        """
        Recompute every indicator from candles.

        With fewer than min_candles candles, or if any calculation fails,
        the snapshot is reset to defaults instead. Never raises.

        Returns:
            The snapshot now held by the engine
        """
        count = 0 if candles is None else len(candles)
        if count < self.config.min_candles:
            self.logger.warning(
                f"Insufficient candle data for indicators: {count} candles",
                required=self.config.min_candles
            )
            self.reset_indicators()
            return self._snapshot

        try:
            bars = OHLCV.from_candles(candles)
            with self._cycle():
                snapshot = IndicatorSnapshot(
                    rsi=self._rsi(bars),
                    moving_average=self._ma(bars),
                    bollinger_bands=self._bollinger_bands(bars),
                    macd=self._macd(bars),
                    stochastic=self._stochastic(bars),
                    adx=self._adx(bars),
                    obv=self._obv(bars),
                    sentiment=self._sentiment(bars),
                    volatility=self._volatility(bars),
                    atr=self._atr(bars),
                    cci=self._cci(bars),
                    vwap=self._vwap(bars),
                )
        except Exception as e:
            self.logger.error(f"Error updating indicators: {e}", exc_info=True)
            self.reset_indicators()
            return self._snapshot

        self._snapshot = snapshot
        self.logger.debug("Indicators updated successfully", candles=count)
        return snapshot

    def reset_indicators(self) -> None:
        """Reset the snapshot to defaults and drop cached values."""
        self._snapshot = IndicatorSnapshot()
        self._cache.clear()
        self.logger.info("Indicators reset to default values")

    def get_indicators(self) -> IndicatorSnapshot:
        """Current snapshot (immutable, safe to hand out)."""
        return self._snapshot

    def get_correlations(self) -> CorrelationTable:
        """Copy of the pair -> coefficient table."""
        return dict(self._correlations)

    def get_correlation(self, symbol1: str, symbol2: str) -> Optional[float]:
        """Coefficient for an unordered pair, None if not computed."""
        value = self._correlations.get((symbol1, symbol2))
        if value is None:
            value = self._correlations.get((symbol2, symbol1))
        return value

    def update_config(self, **partial: Any) -> None:
        """Merge settings field-wise; unspecified fields keep their values."""
        self.config = self.config.merged(**partial)
        self.logger = resolve_logger(self._injected_logger, self.config.debug, __name__)
        self.logger.info("Configuration updated", **partial)

    # ------------------------------------------------------------------
    # Standalone calculations
    # ------------------------------------------------------------------

    def calculate_rsi(self, candles: CandleInput, period: Optional[int] = None) -> float:
        """
        Relative Strength Index over a single window.

        RSI = 100 - 100 / (1 + avg_gain / avg_loss), loss of 0 counted as 1
        unless there were gains (then RSI is 100).
        """
        return self._rsi(OHLCV.from_candles(candles), period)

    def calculate_ma(self, candles: CandleInput, period: Optional[int] = None) -> float:
        """Simple moving average of the last `period` closes."""
        return self._ma(OHLCV.from_candles(candles), period)

    def calculate_bollinger_bands(
        self,
        candles: CandleInput,
        period: Optional[int] = None,
        multiplier: Optional[float] = None
    ) -> BollingerBands:
        """Middle = SMA, bands = middle +- multiplier x population std."""
        return self._bollinger_bands(OHLCV.from_candles(candles), period, multiplier)

    def calculate_ema(self, candles: CandleInput, period: int) -> float:
        """
        Exponential Moving Average - more weight on recent prices.

        EMA = price x k + EMA_prev x (1 - k), k = 2 / (period + 1), seeded
        with the close at the start of the trailing window.
        """
        with self._cycle():
            return self._ema(OHLCV.from_candles(candles), period)

    def calculate_macd(
        self,
        candles: CandleInput,
        fast: Optional[int] = None,
        slow: Optional[int] = None,
        signal: Optional[int] = None
    ) -> MACDResult:
        """
        MACD line, signal and histogram.

        Line = EMA(fast) - EMA(slow). Signal = mean of the line recomputed on
        `signal` trailing windows of `slow` candles, the newest ending one
        candle before the last. Histogram = line - signal.
        """
        with self._cycle():
            return self._macd(OHLCV.from_candles(candles), fast, slow, signal)

    def calculate_stochastic(
        self,
        candles: CandleInput,
        period: Optional[int] = None,
        smooth: Optional[int] = None
    ) -> StochasticResult:
        """
        Stochastic Oscillator.

        %K = 100 x (close - lowest low) / (highest high - lowest low)
        %D = mean of %K over `smooth` windows shifted back one candle each
        """
        return self._stochastic(OHLCV.from_candles(candles), period, smooth)

    def calculate_adx(self, candles: CandleInput, period: Optional[int] = None) -> float:
        """Directional movement index of one period (DX, no Wilder smoothing)."""
        return self._adx(OHLCV.from_candles(candles), period)

    def calculate_obv(self, candles: CandleInput) -> float:
        """On-Balance Volume over the full history."""
        return self._obv(OHLCV.from_candles(candles))

    def calculate_sentiment(self, candles: CandleInput, period: Optional[int] = None) -> float:
        """(share of bullish candles - 0.5) x 100, in [-50, 50]."""
        return self._sentiment(OHLCV.from_candles(candles), period)

    def calculate_volatility(self, candles: CandleInput, period: Optional[int] = None) -> float:
        """Coefficient of variation of closes, in percent."""
        return self._volatility(OHLCV.from_candles(candles), period)

    def calculate_atr(self, candles: CandleInput, period: Optional[int] = None) -> float:
        """Average True Range - mean of the last `period` true ranges."""
        return self._atr(OHLCV.from_candles(candles), period)

    def calculate_cci(self, candles: CandleInput, period: Optional[int] = None) -> float:
        """Commodity Channel Index of the latest typical price."""
        return self._cci(OHLCV.from_candles(candles), period)

    def calculate_vwap(self, candles: CandleInput, period: Optional[int] = None) -> float:
        """
        Volume Weighted Average Price over the last `period` candles.

        VWAP = sum(typical price x volume) / sum(volume)
        """
        return self._vwap(OHLCV.from_candles(candles), period)

    # ------------------------------------------------------------------
    # Correlation
    # ------------------------------------------------------------------

    def calculate_correlation(self, candles1: CandleInput, candles2: CandleInput) -> float:
        """
        Pearson correlation of the closes of two histories.

        Uses the last n = min(len1, len2, correlation_length) closes of each.

        Returns:
            Coefficient rounded to 2 decimals, 0 if n < min_candles
        """
        x_bars = OHLCV.from_candles(candles1)
        y_bars = OHLCV.from_candles(candles2)
        n = min(len(x_bars), len(y_bars), self.config.correlation_length)
        if n < self.config.min_candles:
            self.logger.warning(
                f"Insufficient candles for correlation: {n}/{self.config.min_candles}"
            )
            return 0.0

        dx = x_bars.close[-n:] - x_bars.close[-n:].mean()
        dy = y_bars.close[-n:] - y_bars.close[-n:].mean()

        cov = float(np.sum(dx * dy))
        denominator = math.sqrt(float(np.sum(dx * dx))) * math.sqrt(float(np.sum(dy * dy)))
        return round(cov / (denominator or 1), OSCILLATOR_DECIMALS)

    def update_correlations(self, symbol_candles: Mapping[str, CandleInput]) -> CorrelationTable:
        """
        Recompute the correlation of every symbol pair.

        Old entries are cleared first. Pairs are keyed (symbols[i], symbols[j])
        with i < j in the mapping's iteration order.

        Returns:
            Copy of the new table
        """
        self._correlations.clear()
        symbols = list(symbol_candles)

        for i, first in enumerate(symbols):
            for second in symbols[i + 1:]:
                correlation = self.calculate_correlation(
                    symbol_candles[first], symbol_candles[second]
                )
                self._correlations[(first, second)] = correlation
                self.logger.debug(
                    f"Correlation calculated for {first}-{second}: {correlation}"
                )

        return self.get_correlations()

    # ------------------------------------------------------------------
    # Formulas
    # ------------------------------------------------------------------

    @contextmanager
    def _cycle(self):
        """Scope cache entries to one batch or one standalone call."""
        if self._in_cycle:
            yield
            return

        self._cache.begin_cycle()
        self._in_cycle = True
        try:
            yield
        finally:
            self._in_cycle = False

    def _insufficient(self, name: str, have: int, need: int) -> bool:
        if have < need:
            self.logger.warning(f"Insufficient candles for {name}: {have}/{need}")
            return True
        return False

    def _rsi(self, bars: OHLCV, period: Optional[int] = None) -> float:
        period = period or self.config.rsi_period
        if self._insufficient("RSI", len(bars), period + 1):
            return 0.0

        diffs = np.diff(bars.close[-(period + 1):])
        avg_gain = float(diffs[diffs > 0].sum()) / period
        avg_loss = float(-diffs[diffs < 0].sum()) / period

        if avg_loss == 0 and avg_gain > 0:
            return 100.0

        rs = avg_gain / (avg_loss or 1)
        rsi = 100 - (100 / (1 + rs))
        return 0.0 if math.isnan(rsi) else round(rsi, OSCILLATOR_DECIMALS)

    def _ma(self, bars: OHLCV, period: Optional[int] = None) -> float:
        period = period or self.config.ma_period
        if self._insufficient("MA", len(bars), period):
            return 0.0
        return round(float(bars.close[-period:].mean()), PRICE_DECIMALS)

    def _bollinger_bands(
        self,
        bars: OHLCV,
        period: Optional[int] = None,
        multiplier: Optional[float] = None
    ) -> BollingerBands:
        period = period or self.config.bollinger_period
        if multiplier is None:
            multiplier = self.config.bollinger_multiplier
        if self._insufficient("Bollinger Bands", len(bars), period):
            return BollingerBands()

        middle = self._ma(bars, period)
        std = float(np.std(bars.close[-period:]))
        return BollingerBands(
            upper=round(middle + std * multiplier, PRICE_DECIMALS),
            middle=round(middle, PRICE_DECIMALS),
            lower=round(middle - std * multiplier, PRICE_DECIMALS),
        )

    def _ema(self, bars: OHLCV, period: int) -> float:
        if self._insufficient("EMA", len(bars), period):
            return 0.0
        return self._cache.get_or_compute(
            'ema', period, len(bars), lambda: _ema(bars.close, period)
        )

    def _macd(
        self,
        bars: OHLCV,
        fast: Optional[int] = None,
        slow: Optional[int] = None,
        signal: Optional[int] = None
    ) -> MACDResult:
        fast = fast or self.config.macd_fast
        slow = slow or self.config.macd_slow
        signal = signal or self.config.macd_signal
        n = len(bars)
        if self._insufficient("MACD", n, slow + signal):
            return MACDResult()

        line = self._ema(bars, fast) - self._ema(bars, slow)

        # Windows share one length at different offsets, so their EMAs are
        # computed directly instead of through the length-keyed cache.
        def signal_line() -> float:
            values = []
            for i in range(signal):
                end = n - (signal - i)
                window = bars.close[end - slow:end]
                if len(window) >= slow:
                    values.append(_ema(window, fast) - _ema(window, slow))
            return sum(values) / len(values) if values else 0.0

        signal_value = self._cache.get_or_compute('macd_signal', (fast, slow, signal), n, signal_line)
        return MACDResult(
            line=round(line, PRICE_DECIMALS),
            signal=round(signal_value, PRICE_DECIMALS),
            histogram=round(line - signal_value, PRICE_DECIMALS),
        )

    def _stochastic(
        self,
        bars: OHLCV,
        period: Optional[int] = None,
        smooth: Optional[int] = None
    ) -> StochasticResult:
        period = period or self.config.stochastic_period
        smooth = smooth or self.config.stochastic_smooth
        n = len(bars)
        if self._insufficient("Stochastic", n, period + smooth):
            return StochasticResult()

        def percent_k(end: int) -> float:
            highest = float(bars.high[end - period:end].max())
            lowest = float(bars.low[end - period:end].min())
            return (float(bars.close[end - 1]) - lowest) / ((highest - lowest) or 1) * 100

        k = percent_k(n)
        d = sum(percent_k(n - i) for i in range(smooth)) / smooth
        return StochasticResult(
            k=round(k, OSCILLATOR_DECIMALS),
            d=round(d, OSCILLATOR_DECIMALS),
        )

    def _adx(self, bars: OHLCV, period: Optional[int] = None) -> float:
        period = period or self.config.adx_period
        if self._insufficient("ADX", len(bars), period + 1):
            return 0.0

        recent = bars.tail(period + 1)
        up_move = recent.high[1:] - recent.high[:-1]
        down_move = recent.low[:-1] - recent.low[1:]

        plus_dm = float(np.where((up_move > down_move) & (up_move > 0), up_move, 0).sum())
        minus_dm = float(np.where((down_move > up_move) & (down_move > 0), down_move, 0).sum())
        tr_sum = float(_true_range(recent).sum())

        plus_di = plus_dm / (tr_sum or 1) * 100
        minus_di = minus_dm / (tr_sum or 1) * 100
        dx = abs(plus_di - minus_di) / ((plus_di + minus_di) or 1) * 100
        return round(dx, OSCILLATOR_DECIMALS)

    def _obv(self, bars: OHLCV) -> float:
        if self._insufficient("OBV", len(bars), OBV_MIN_CANDLES):
            return 0.0

        direction = np.sign(np.diff(bars.close))
        obv = float((direction * bars.volume_or_one[1:]).sum())
        return round(obv, OSCILLATOR_DECIMALS)

    def _sentiment(self, bars: OHLCV, period: Optional[int] = None) -> float:
        period = period or self.config.sentiment_period
        if self._insufficient("Sentiment", len(bars), period):
            return 0.0

        recent = bars.tail(period)
        bullish = int((recent.close > recent.open).sum())
        return round((bullish / period - 0.5) * 100, OSCILLATOR_DECIMALS)

    def _volatility(self, bars: OHLCV, period: Optional[int] = None) -> float:
        period = period or self.config.volatility_period
        if self._insufficient("Volatility", len(bars), period):
            return 0.0

        closes = bars.close[-period:]
        volatility = float(np.std(closes)) / float(closes.mean()) * 100
        return round(volatility, OSCILLATOR_DECIMALS)

    def _atr(self, bars: OHLCV, period: Optional[int] = None) -> float:
        period = period or self.config.atr_period
        if self._insufficient("ATR", len(bars), period + 1):
            return 0.0

        atr = float(_true_range(bars.tail(period + 1)).sum()) / period
        return round(atr, PRICE_DECIMALS)

    def _cci(self, bars: OHLCV, period: Optional[int] = None) -> float:
        period = period or self.config.cci_period
        if self._insufficient("CCI", len(bars), period):
            return 0.0

        typical = bars.tail(period).typical_price
        mean = float(typical.mean())
        mean_deviation = float(np.abs(typical - mean).mean())
        cci = (float(typical[-1]) - mean) / (CCI_CONSTANT * (mean_deviation or 1))
        return round(cci, OSCILLATOR_DECIMALS)

    def _vwap(self, bars: OHLCV, period: Optional[int] = None) -> float:
        period = period or self.config.vwap_period
        if self._insufficient("VWAP", len(bars), period):
            return 0.0

        recent = bars.tail(period)
        volume = recent.volume_or_one
        total_volume = float(volume.sum())
        vwap = float((recent.typical_price * volume).sum()) / (total_volume or 1)
        return round(vwap, PRICE_DECIMALS)
