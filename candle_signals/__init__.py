"""
Candle Signals - Tick aggregation, candlestick patterns and indicators.

Main Components:
    CandleAggregator: Per-symbol OHLCV candles built from ticks
    PatternDetector: Candlestick pattern classification
    IndicatorEngine: Technical indicators and cross-symbol correlation
    SignalPipeline: Orchestrates the three for a strategy engine
"""

from .core.config import CandleConfig, IndicatorConfig, Settings, load_settings
from .core.constants import PatternName, PatternType
from .core.exceptions import (
    CandleSignalsError,
    InvalidConfigError,
    InvalidTickError,
    InvalidCandleError,
)
from .core.types import Tick, Candle, PatternResult, IndicatorSnapshot
from .data.candle_aggregator import CandleAggregator
from .signals.pattern_detector import PatternDetector
from .indicators.engine import IndicatorEngine
from .pipeline import SignalPipeline, SignalUpdate

__version__ = "0.1.0"

__all__ = [
    "CandleConfig",
    "IndicatorConfig",
    "Settings",
    "load_settings",
    "PatternName",
    "PatternType",
    "CandleSignalsError",
    "InvalidConfigError",
    "InvalidTickError",
    "InvalidCandleError",
    "Tick",
    "Candle",
    "PatternResult",
    "IndicatorSnapshot",
    "CandleAggregator",
    "PatternDetector",
    "IndicatorEngine",
    "SignalPipeline",
    "SignalUpdate",
]
