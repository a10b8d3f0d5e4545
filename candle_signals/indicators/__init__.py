"""
Technical indicators over candle histories.

Modules:
- engine: Indicator battery, snapshot and correlation table
- cache: Per-cycle memoization of EMA-family values
"""

from .cache import ComputationCache
from .engine import IndicatorEngine, OHLCV
