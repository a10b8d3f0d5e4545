"""
Candlestick pattern detection over the tail of a candle history.

Rules are evaluated in a fixed order and the first match wins:

    1. Bullish Engulfing        5. Shooting Star / Inverted Hammer
    2. Bearish Engulfing        6. Morning Star
    3. Doji                     7. Evening Star
    4. Hammer / Hanging Man

Reversal patterns may require trend confirmation: the current close compared
with the mean of the four closes before it. With fewer than five candles the
trend is taken as confirmed.
"""

from typing import Optional, Sequence

from ..core.config import CandleConfig
from ..core.constants import (
    PatternName, PatternType,
    PATTERN_WINDOW, TREND_WINDOW,
    BASE_CONFIDENCE, CONFIDENCE_BONUS, STAR_CONFIDENCE,
)
from ..core.types import Candle, PatternResult
from ..monitoring.logger import resolve_logger


class PatternDetector:
    """
    Stateless classifier of the latest 1-3 candles.

    Never mutates the history it is given and never raises.
    """

    def __init__(self, config: Optional[CandleConfig] = None, logger=None):
        self.config = config or CandleConfig()
        self.logger = resolve_logger(logger)

    def check_trend(self, candles: Sequence[Candle], pattern_type: PatternType) -> bool:
        """
        Check whether the prior trend supports a reversal of pattern_type.

        Args:
            candles: History, oldest first
            pattern_type: BULLISH or BEARISH

        Returns:
            True if confirmed (always True on short history or when disabled)
        """
        if len(candles) < TREND_WINDOW or not self.config.enable_trend_check:
            return True

        previous = [c.close for c in candles[-TREND_WINDOW:-1]]
        average = sum(previous) / len(previous)
        current = candles[-1].close

        if pattern_type == PatternType.BULLISH:
            return current > average
        if pattern_type == PatternType.BEARISH:
            return current < average
        return False

    def detect(self, candles: Sequence[Candle]) -> Optional[PatternResult]:
        """
        Detect a candlestick pattern at the end of the history.

        Args:
            candles: History, oldest first

        Returns:
            PatternResult, or None if nothing matched or fewer than 3 candles
        """
        if not candles or len(candles) < PATTERN_WINDOW:
            return None

        try:
            return self._detect(candles)
        except (TypeError, ValueError, ArithmeticError, AttributeError) as e:
            self.logger.error("Pattern detection failed", error=str(e))
            return None

    def _detect(self, candles: Sequence[Candle]) -> Optional[PatternResult]:
        first, prev, current = candles[-PATTERN_WINDOW:]
        cfg = self.config

        body = current.body
        upper = current.upper_shadow
        lower = current.lower_shadow
        prev_body = prev.body

        # Engulfing
        if (prev.is_bearish and current.is_bullish
                and current.close >= prev.open and current.open <= prev.close
                and self.check_trend(candles, PatternType.BULLISH)):
            bonus = CONFIDENCE_BONUS if body > prev_body else 0.0
            return self._result(PatternName.BULLISH_ENGULFING, PatternType.BULLISH,
                                BASE_CONFIDENCE + bonus)

        if (prev.is_bullish and current.is_bearish
                and current.close <= prev.open and current.open >= prev.close
                and self.check_trend(candles, PatternType.BEARISH)):
            bonus = CONFIDENCE_BONUS if body > prev_body else 0.0
            return self._result(PatternName.BEARISH_ENGULFING, PatternType.BEARISH,
                                BASE_CONFIDENCE + bonus)

        # Doji: gravestone-like then dragonfly-like shadows earn the bonus
        if body <= current.range * cfg.doji_threshold:
            lopsided = upper > lower * 2 or lower > upper * 2
            bonus = CONFIDENCE_BONUS if lopsided else 0.0
            return self._result(PatternName.DOJI, PatternType.NEUTRAL, BASE_CONFIDENCE + bonus)

        # Hammer family: shape decides the family, trend decides the label
        if (body > 0 and lower >= cfg.shadow_multiplier * body
                and upper <= cfg.small_shadow_multiplier * body):
            if self.check_trend(candles, PatternType.BULLISH):
                return self._result(PatternName.HAMMER, PatternType.BULLISH, BASE_CONFIDENCE)
            return self._result(PatternName.HANGING_MAN, PatternType.BEARISH, BASE_CONFIDENCE)

        if (body > 0 and upper >= cfg.shadow_multiplier * body
                and lower <= cfg.small_shadow_multiplier * body):
            if self.check_trend(candles, PatternType.BEARISH):
                return self._result(PatternName.SHOOTING_STAR, PatternType.BEARISH, BASE_CONFIDENCE)
            return self._result(PatternName.INVERTED_HAMMER, PatternType.BULLISH, BASE_CONFIDENCE)

        # Three-candle stars
        long_body = cfg.long_body_threshold
        first_long = first.body >= first.range * long_body
        small_star = prev_body <= prev.range * (1 - long_body)
        current_long = body >= current.range * long_body
        midpoint = (first.open + first.close) / 2

        if (first.is_bearish and first_long and small_star
                and current.is_bullish and current_long
                and current.close > midpoint
                and self.check_trend(candles, PatternType.BULLISH)):
            return self._result(PatternName.MORNING_STAR, PatternType.BULLISH, STAR_CONFIDENCE)

        if (first.is_bullish and first_long and small_star
                and current.is_bearish and current_long
                and current.close < midpoint
                and self.check_trend(candles, PatternType.BEARISH)):
            return self._result(PatternName.EVENING_STAR, PatternType.BEARISH, STAR_CONFIDENCE)

        return None

    def _result(self, name: PatternName, pattern_type: PatternType, confidence: float) -> PatternResult:
        result = PatternResult(
            name=name,
            pattern_type=pattern_type,
            confidence=round(min(confidence, 1.0), 2)
        )
        self.logger.debug("Pattern detected", pattern=name.value, type=pattern_type.value,
                          confidence=result.confidence)
        return result
