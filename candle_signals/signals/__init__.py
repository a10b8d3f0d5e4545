"""Candlestick pattern detection."""

from .pattern_detector import PatternDetector

__all__ = ["PatternDetector"]
