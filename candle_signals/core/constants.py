"""Constants and enumerations for the signal core.

This module defines the pattern vocabulary shared by the detector and its
consumers, plus the numeric constants used by the pattern rules and the
indicator formulas.
"""

from enum import Enum


# ============================================================================
# Enumerations
# ============================================================================

class PatternType(str, Enum):
    """Direction implied by a detected candlestick pattern.

    - BULLISH: Suggests upward continuation or reversal
    - BEARISH: Suggests downward continuation or reversal
    - NEUTRAL: Indecision (Doji)
    """
    BULLISH = "bullish"
    BEARISH = "bearish"
    NEUTRAL = "neutral"


class PatternName(str, Enum):
    """Candlestick patterns recognized by the detector.

    Values are the names used on the wire by downstream strategy code.
    """
    BULLISH_ENGULFING = "BullishEngulfing"
    BEARISH_ENGULFING = "BearishEngulfing"
    DOJI = "Doji"
    HAMMER = "Hammer"
    HANGING_MAN = "HangingMan"
    SHOOTING_STAR = "ShootingStar"
    INVERTED_HAMMER = "InvertedHammer"
    MORNING_STAR = "MorningStar"
    EVENING_STAR = "EveningStar"


# ============================================================================
# Pattern Constants
# ============================================================================

PATTERN_WINDOW: int = 3
"""Candles inspected by the detector (two-candle and three-candle patterns)."""

TREND_WINDOW: int = 5
"""Closes used for trend confirmation: the current one plus four before it."""

BASE_CONFIDENCE: float = 0.8
"""Confidence assigned to any single or two-candle pattern match."""

CONFIDENCE_BONUS: float = 0.1
"""Bonus for a stronger variant (larger engulfing body, lopsided Doji)."""

STAR_CONFIDENCE: float = 0.9
"""Confidence of the three-candle Morning/Evening Star patterns."""


# ============================================================================
# Indicator Constants
# ============================================================================

CCI_CONSTANT: float = 0.015
"""Lambert's constant scaling the CCI mean absolute deviation."""

OBV_MIN_CANDLES: int = 2
"""OBV needs at least one close-over-close comparison."""

PRICE_DECIMALS: int = 5
"""Rounding for price-denominated outputs (MA, bands, EMA, MACD, ATR, VWAP)."""

OSCILLATOR_DECIMALS: int = 2
"""Rounding for percentage/oscillator outputs (RSI, stochastic, ADX, ...)."""
