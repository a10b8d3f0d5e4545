"""
Unit tests for the indicator engine and its computation cache.
"""

import math

import numpy as np
import pandas as pd
import pytest

from candle_signals.core.config import IndicatorConfig
from candle_signals.core.exceptions import InvalidConfigError
from candle_signals.core.types import BollingerBands, IndicatorSnapshot, MACDResult
from candle_signals.indicators.cache import ComputationCache
from candle_signals.indicators.engine import IndicatorEngine, OHLCV

from tests.helpers import candles_from_closes, candles_from_ohlc


def _window_ema(closes, period):
    """EMA of the trailing `period` closes, seeded with the first of them."""
    k = 2 / (period + 1)
    window = closes[-period:]
    ema = window[0]
    for price in window[1:]:
        ema = price * k + ema * (1 - k)
    return round(ema, 5)


@pytest.fixture
def engine():
    return IndicatorEngine(IndicatorConfig())


@pytest.fixture
def wave():
    """60 candles oscillating around 100."""
    closes = [100 + 10 * math.sin(i / 5) for i in range(60)]
    return candles_from_closes(closes, volumes=[1000.0 + i for i in range(60)])


# ══════════════════════════════════════════════════════════
#  Moving averages and bands
# ══════════════════════════════════════════════════════════


class TestAverages:

    def test_sma(self, engine):
        assert engine.calculate_ma(candles_from_closes([1, 2, 3]), period=3) == 2.0

    def test_sma_uses_latest_window(self, engine):
        assert engine.calculate_ma(candles_from_closes([100, 1, 2, 3]), period=3) == 2.0

    def test_ema_seeded_with_window_start(self, engine):
        # k = 0.5: 1 -> 1.5 -> 2.25
        assert engine.calculate_ema(candles_from_closes([1, 2, 3]), period=3) == 2.25

    def test_bollinger_uses_population_std(self, engine):
        bands = engine.calculate_bollinger_bands(candles_from_closes([1, 2, 3, 4, 5]), period=5)
        width = 2 * math.sqrt(2)
        assert bands.middle == 3.0
        assert bands.upper == pytest.approx(3.0 + width, abs=1e-5)
        assert bands.lower == pytest.approx(3.0 - width, abs=1e-5)

    def test_bollinger_multiplier_override(self, engine):
        bands = engine.calculate_bollinger_bands(
            candles_from_closes([1, 2, 3, 4, 5]), period=5, multiplier=0
        )
        assert bands == BollingerBands(upper=3.0, middle=3.0, lower=3.0)

    def test_insufficient_history_returns_defaults(self, recording_logger):
        engine = IndicatorEngine(logger=recording_logger)
        candles = candles_from_closes([1, 2])
        assert engine.calculate_ma(candles) == 0.0
        assert engine.calculate_bollinger_bands(candles) == BollingerBands()
        assert engine.calculate_macd(candles) == MACDResult()
        assert "Insufficient candles for MA: 2/20" in recording_logger.messages('warning')


# ══════════════════════════════════════════════════════════
#  Oscillators
# ══════════════════════════════════════════════════════════


class TestRSI:

    def test_strictly_increasing_is_100(self, engine):
        assert engine.calculate_rsi(candles_from_closes(range(1, 16))) == 100.0

    def test_strictly_decreasing_is_0(self, engine):
        assert engine.calculate_rsi(candles_from_closes(range(15, 0, -1))) == 0.0

    def test_flat_is_0(self, engine):
        assert engine.calculate_rsi(candles_from_closes([10] * 15)) == 0.0

    def test_mixed_moves(self, engine):
        # avg gain 1, avg loss 0.5 -> RS 2
        assert engine.calculate_rsi(candles_from_closes([10, 12, 11]), period=2) == 66.67

    def test_needs_period_plus_one(self, recording_logger):
        engine = IndicatorEngine(logger=recording_logger)
        assert engine.calculate_rsi(candles_from_closes(range(14))) == 0.0
        assert recording_logger.messages('warning') == ["Insufficient candles for RSI: 14/15"]

    def test_bounded(self, engine, wave):
        assert 0 <= engine.calculate_rsi(wave) <= 100


class TestMACD:

    def test_linear_series(self, engine):
        # EMA(2) - EMA(3) of a unit-step series is constant
        result = engine.calculate_macd(candles_from_closes([1, 2, 3, 4, 5]), fast=2, slow=3, signal=2)
        assert result.line == pytest.approx(0.41667, abs=1e-5)
        assert result.signal == pytest.approx(0.41667, abs=1e-5)
        assert result.histogram == pytest.approx(0.0, abs=1e-5)

    def test_needs_slow_plus_signal(self, engine):
        candles = candles_from_closes([1, 2, 3, 4])
        assert engine.calculate_macd(candles, fast=2, slow=3, signal=2) == MACDResult()

    def test_signal_averages_windows_ending_before_last_candle(self, engine):
        # windows [2, 4, 8] and [4, 8, 16] give lines 1.16667 and 2.33333
        result = engine.calculate_macd(
            candles_from_closes([1, 2, 4, 8, 16, 32]), fast=2, slow=3, signal=2
        )
        assert result.line == pytest.approx(4.66667, abs=1e-5)
        assert result.signal == pytest.approx(1.75, abs=1e-5)
        assert result.histogram == pytest.approx(2.91667, abs=1e-5)

    def test_signal_on_default_periods(self, engine, wave):
        closes = [c.close for c in wave]
        n = len(closes)
        lines = []
        for i in range(9):
            end = n - (9 - i)
            window = closes[end - 26:end]
            lines.append(_window_ema(window, 12) - _window_ema(window, 26))

        result = engine.calculate_macd(wave)

        assert result.signal == pytest.approx(sum(lines) / 9, abs=1e-5)

    def test_histogram_is_line_minus_signal(self, engine, wave):
        result = engine.calculate_macd(wave)
        assert result.histogram == pytest.approx(result.line - result.signal, abs=1e-4)


class TestStochastic:

    def test_k_and_d(self, engine):
        result = engine.calculate_stochastic(candles_from_closes([1, 2, 3, 4, 5]), period=3, smooth=2)
        assert result.k == 75.0
        assert result.d == 75.0

    def test_d_includes_current_window(self, engine):
        # %K per window, newest first: 25, 75, 75
        candles = candles_from_closes([1, 2, 3, 4, 5, 3])
        two = engine.calculate_stochastic(candles, period=3, smooth=2)
        three = engine.calculate_stochastic(candles, period=3, smooth=3)

        assert two.k == 25.0
        assert two.d == 50.0
        assert three.d == 58.33

    def test_flat_range_does_not_divide_by_zero(self, engine):
        candles = candles_from_ohlc([(10, 10, 10, 10)] * 20)
        result = engine.calculate_stochastic(candles)
        assert result.k == 0.0
        assert result.d == 0.0

    def test_bounded(self, engine, wave):
        result = engine.calculate_stochastic(wave)
        assert 0 <= result.k <= 100
        assert 0 <= result.d <= 100


class TestCCI:

    def test_latest_above_mean(self, engine):
        assert engine.calculate_cci(candles_from_closes([1, 2, 3]), period=3) == 100.0

    def test_flat_is_zero(self, engine):
        assert engine.calculate_cci(candles_from_closes([5] * 20)) == 0.0


# ══════════════════════════════════════════════════════════
#  Trend, volume and volatility
# ══════════════════════════════════════════════════════════


class TestTrendAndVolume:

    def test_adx_pure_uptrend(self, engine):
        assert engine.calculate_adx(candles_from_closes(range(1, 16))) == 100.0

    def test_adx_flat_is_zero(self, engine):
        assert engine.calculate_adx(candles_from_closes([10] * 15)) == 0.0

    def test_obv(self, engine):
        candles = candles_from_closes([1, 2, 1, 3], volumes=[10, 20, 30, 40])
        assert engine.calculate_obv(candles) == 30.0

    def test_obv_counts_zero_volume_as_one(self, engine):
        candles = candles_from_closes([1, 2, 3], volumes=[0, 0, 0])
        assert engine.calculate_obv(candles) == 2.0

    def test_obv_needs_two_candles(self, engine):
        assert engine.calculate_obv(candles_from_closes([1])) == 0.0

    def test_sentiment(self, engine):
        rows = [(1, 2, 0.5, 1.5)] * 3 + [(2, 2.5, 0.5, 1)]
        assert engine.calculate_sentiment(candles_from_ohlc(rows), period=4) == 25.0

    def test_sentiment_bounds(self, engine):
        bullish = candles_from_ohlc([(1, 2, 0.5, 1.5)] * 10)
        bearish = candles_from_ohlc([(1.5, 2, 0.5, 1)] * 10)
        assert engine.calculate_sentiment(bullish) == 50.0
        assert engine.calculate_sentiment(bearish) == -50.0

    def test_volatility(self, engine):
        assert engine.calculate_volatility(candles_from_closes([1, 2, 3, 4, 5]), period=5) == 47.14

    def test_volatility_zero_mean_raises(self, engine):
        with pytest.raises(ZeroDivisionError):
            engine.calculate_volatility(candles_from_closes([0] * 20))

    def test_atr(self, engine):
        assert engine.calculate_atr(candles_from_closes([10] * 15)) == 2.0

    def test_vwap(self, engine):
        candles = candles_from_closes([10, 20], volumes=[1, 3])
        assert engine.calculate_vwap(candles, period=2) == 17.5

    def test_vwap_missing_volume_counts_as_one(self, engine):
        candles = candles_from_closes([10, 20], volumes=[None, None])
        assert engine.calculate_vwap(candles, period=2) == 15.0


# ══════════════════════════════════════════════════════════
#  Input forms
# ══════════════════════════════════════════════════════════


class TestInputs:

    def test_dataframe_input(self, engine):
        df = pd.DataFrame({
            'Open': [1.0, 2.0, 3.0],
            'High': [2.0, 3.0, 4.0],
            'Low': [0.0, 1.0, 2.0],
            'Close': [1.0, 2.0, 3.0],
            'Volume': [10.0, 10.0, 10.0],
        })
        assert engine.calculate_ma(df, period=3) == 2.0

    def test_mapping_input(self, engine):
        rows = [
            {'open': c, 'high': c + 1, 'low': c - 1, 'close': c}
            for c in (1.0, 2.0, 3.0)
        ]
        bars = OHLCV.from_candles(rows)
        assert np.isnan(bars.volume).all()
        assert engine.calculate_ma(rows, period=3) == 2.0

    def test_ohlcv_window_helpers(self):
        bars = OHLCV.from_candles(candles_from_closes([1, 2, 3, 4]))
        assert len(bars) == 4
        assert list(bars.tail(2).close) == [3.0, 4.0]
        assert list(bars.typical_price) == [1.0, 2.0, 3.0, 4.0]


# ══════════════════════════════════════════════════════════
#  Batch update and state
# ══════════════════════════════════════════════════════════


class TestUpdateIndicators:

    def test_matches_standalone_calculations(self, engine, wave):
        snapshot = engine.update_indicators(wave)

        assert snapshot.rsi == engine.calculate_rsi(wave)
        assert snapshot.moving_average == engine.calculate_ma(wave)
        assert snapshot.bollinger_bands == engine.calculate_bollinger_bands(wave)
        assert snapshot.macd == engine.calculate_macd(wave)
        assert snapshot.stochastic == engine.calculate_stochastic(wave)
        assert snapshot.adx == engine.calculate_adx(wave)
        assert snapshot.obv == engine.calculate_obv(wave)
        assert snapshot.sentiment == engine.calculate_sentiment(wave)
        assert snapshot.volatility == engine.calculate_volatility(wave)
        assert snapshot.atr == engine.calculate_atr(wave)
        assert snapshot.cci == engine.calculate_cci(wave)
        assert snapshot.vwap == engine.calculate_vwap(wave)
        assert engine.get_indicators() is snapshot

    def test_insufficient_history_resets(self, recording_logger, wave):
        engine = IndicatorEngine(logger=recording_logger)
        engine.update_indicators(wave)

        snapshot = engine.update_indicators(wave[:19])

        assert snapshot == IndicatorSnapshot()
        assert engine.get_indicators() == IndicatorSnapshot()
        assert "Insufficient candle data for indicators: 19 candles" in recording_logger.messages('warning')

    def test_none_input_resets(self, engine):
        assert engine.update_indicators(None) == IndicatorSnapshot()

    def test_failing_calculation_resets_whole_batch(self, recording_logger, wave):
        engine = IndicatorEngine(logger=recording_logger)
        engine.update_indicators(wave)

        snapshot = engine.update_indicators(candles_from_closes([0] * 25))

        assert snapshot == IndicatorSnapshot()
        errors = recording_logger.messages('error')
        assert len(errors) == 1
        assert errors[0].startswith("Error updating indicators")
        assert "Indicators reset to default values" in recording_logger.messages('info')

    def test_snapshot_serializes(self, engine, wave):
        data = engine.update_indicators(wave).to_dict()
        assert set(data['bollinger_bands']) == {'upper', 'middle', 'lower'}
        assert set(data['macd']) == {'line', 'signal', 'histogram'}
        assert set(data['stochastic']) == {'k', 'd'}

    def test_update_config_accepts_camel_case(self, engine):
        engine.update_config(rsiPeriod=2, minCandles=3)
        assert engine.config.rsi_period == 2
        assert engine.config.min_candles == 3
        assert engine.config.ma_period == 20

    def test_update_config_rejects_unknown_keys(self, engine):
        with pytest.raises(InvalidConfigError):
            engine.update_config(rsi_lookback=2)
        assert engine.config == IndicatorConfig()

    def test_debug_mode_logs_through_package_logger(self, caplog, wave):
        engine = IndicatorEngine(IndicatorConfig(debug=True))
        engine.update_indicators(wave)
        assert "Indicators updated successfully" in caplog.text


# ══════════════════════════════════════════════════════════
#  Correlation
# ══════════════════════════════════════════════════════════


class TestCorrelation:

    @pytest.fixture
    def closes(self):
        return [100 + (i % 7) * 1.5 + i * 0.1 for i in range(30)]

    def test_identical_series(self, engine, closes):
        candles = candles_from_closes(closes)
        assert engine.calculate_correlation(candles, candles) == 1.0

    def test_inverse_series(self, engine, closes):
        inverse = [200 - c for c in closes]
        result = engine.calculate_correlation(candles_from_closes(closes), candles_from_closes(inverse))
        assert result == -1.0

    def test_short_history_is_zero(self, engine):
        candles = candles_from_closes(range(10))
        assert engine.calculate_correlation(candles, candles) == 0.0

    def test_flat_series_is_zero(self, engine, closes):
        result = engine.calculate_correlation(candles_from_closes(closes), candles_from_closes([5] * 30))
        assert result == 0.0

    def test_aligns_on_most_recent_candles(self, engine, closes):
        longer = candles_from_closes([1000.0] * 10 + closes)
        assert engine.calculate_correlation(longer, candles_from_closes(closes)) == 1.0

    def test_update_correlations(self, engine, closes):
        histories = {
            'EURUSD': candles_from_closes(closes),
            'GBPUSD': candles_from_closes(closes),
            'USDJPY': candles_from_closes([200 - c for c in closes]),
        }

        table = engine.update_correlations(histories)

        assert table == {
            ('EURUSD', 'GBPUSD'): 1.0,
            ('EURUSD', 'USDJPY'): -1.0,
            ('GBPUSD', 'USDJPY'): -1.0,
        }
        assert engine.get_correlation('USDJPY', 'EURUSD') == -1.0
        assert engine.get_correlation('EURUSD', 'XAUUSD') is None

    def test_update_replaces_previous_table(self, engine, closes):
        engine.update_correlations({'A': candles_from_closes(closes), 'B': candles_from_closes(closes)})
        engine.update_correlations({'C': candles_from_closes(closes), 'D': candles_from_closes(closes)})
        assert list(engine.get_correlations()) == [('C', 'D')]

    def test_get_correlations_returns_copy(self, engine, closes):
        engine.update_correlations({'A': candles_from_closes(closes), 'B': candles_from_closes(closes)})
        engine.get_correlations().clear()
        assert engine.get_correlation('A', 'B') == 1.0


# ══════════════════════════════════════════════════════════
#  Computation cache
# ══════════════════════════════════════════════════════════


class TestComputationCache:

    def test_computes_once_per_key(self):
        cache = ComputationCache()
        cache.begin_cycle()
        calls = []

        def compute():
            calls.append(1)
            return 1.5

        assert cache.get_or_compute('ema', 12, 60, compute) == 1.5
        assert cache.get_or_compute('ema', 12, 60, compute) == 1.5
        assert len(calls) == 1
        assert (cache.hits, cache.misses) == (1, 1)

    def test_key_includes_cycle(self):
        cache = ComputationCache()
        first = cache.begin_cycle()
        key = cache.key('ema', 12, 60)
        cache.get_or_compute('ema', 12, 60, lambda: 1.0)
        assert key in cache

        second = cache.begin_cycle()
        assert second == first + 1
        assert key not in cache
        assert len(cache) == 0

    def test_equal_length_histories_do_not_alias(self, engine):
        rising = candles_from_closes([1, 2, 3, 4, 5])
        falling = candles_from_closes([5, 4, 3, 2, 1])
        assert engine.calculate_ema(rising, 3) != engine.calculate_ema(falling, 3)

    def test_reset_clears_cache(self, engine, wave):
        engine.update_indicators(wave)
        assert len(engine._cache) > 0
        engine.reset_indicators()
        assert len(engine._cache) == 0
