"""
Signal Pipeline - Wires aggregation, pattern detection and indicators.

Responsibilities:
1. Fold incoming ticks into per-symbol candles
2. Refresh indicators and pattern for a symbol on demand
3. Recompute cross-symbol correlations over every tracked symbol

The pipeline owns no policy of its own: when and how often to refresh is up
to the strategy engine driving it.
"""

from dataclasses import dataclass
from typing import Any, Mapping, Optional, Union

from .core.config import Settings
from .core.types import IndicatorSnapshot, PatternResult, Tick
from .data.candle_aggregator import CandleAggregator
from .indicators.engine import CorrelationTable, IndicatorEngine
from .monitoring.logger import resolve_logger


@dataclass(frozen=True)
class SignalUpdate:
    """Signals derived for one symbol in one refresh."""
    symbol: str
    pattern: Optional[PatternResult]
    indicators: IndicatorSnapshot


class SignalPipeline:
    """
    Central orchestrator for the signal core.

    One aggregator shared by all symbols and one indicator engine whose
    snapshot always reflects the most recently refreshed symbol.
    """

    def __init__(self, settings: Optional[Settings] = None, logger=None):
        """
        Initialize pipeline.

        Args:
            settings: Both configuration sections (defaults if omitted)
            logger: Injected logger shared by all components
        """
        self.settings = settings or Settings()
        self.logger = resolve_logger(logger, self.settings.indicators.debug, __name__)

        self.aggregator = CandleAggregator(self.settings.candles, logger=self.logger)
        self.engine = IndicatorEngine(self.settings.indicators, logger=logger)

    def on_tick(self, symbol: str, tick: Union[Tick, Mapping[str, Any]]) -> None:
        """
        Process incoming tick.

        Raises:
            InvalidTickError: If the tick is malformed (history unchanged)
        """
        self.aggregator.add_tick(symbol, tick)

    def on_historical_tick(self, symbol: str, tick: Mapping[str, Any]) -> None:
        """Process a recorded tick with an epoch/parseable timestamp."""
        self.aggregator.add_historical_tick(symbol, tick)

    def refresh(self, symbol: str) -> SignalUpdate:
        """
        Recompute indicators and pattern for symbol.

        Returns:
            SignalUpdate with the new snapshot and the detected pattern
        """
        candles = self.aggregator.get_candles(symbol)
        indicators = self.engine.update_indicators(candles)
        pattern = self.aggregator.detect_pattern(symbol)

        if pattern is not None:
            self.logger.info(
                "Pattern detected",
                symbol=symbol,
                pattern=pattern.name.value,
                confidence=pattern.confidence
            )

        return SignalUpdate(symbol=symbol, pattern=pattern, indicators=indicators)

    def refresh_correlations(self) -> CorrelationTable:
        """Recompute correlations across every tracked symbol."""
        histories = {
            symbol: self.aggregator.get_candles(symbol)
            for symbol in self.aggregator.symbols()
        }
        return self.engine.update_correlations(histories)
