"""
Data Layer - Tick aggregation into bounded candle histories.

Main Components:
    CandleAggregator: Buckets ticks into OHLCV candles per symbol
"""

from .candle_aggregator import CandleAggregator

__all__ = [
    "CandleAggregator",
]
