"""Configuration for the signal core.

Two sections with stated defaults:
    CandleConfig: bucket width, history bound and pattern thresholds
    IndicatorConfig: indicator periods, correlation window, debug switch

Both are validated on construction and merged field-wise at runtime, so an
update never drops fields it does not mention. Keys in the camelCase form
used by the upstream contract (e.g. "rsiPeriod") are accepted.
"""

import re
from dataclasses import dataclass, field, fields, replace
from datetime import timedelta
from pathlib import Path
from typing import Any, Dict, Mapping, Union

import yaml

from .exceptions import ConfigValidationError, InvalidConfigError, MissingConfigError


_CAMEL_BOUNDARY = re.compile(r'(?<!^)(?=[A-Z])')


def normalize_key(key: str) -> str:
    """Translate camelCase keys to snake_case ("macdFast" -> "macd_fast")."""
    return _CAMEL_BOUNDARY.sub('_', key).lower()


def _normalize(section: str, partial: Mapping[str, Any], known: set) -> Dict[str, Any]:
    normalized = {normalize_key(k): v for k, v in partial.items()}
    unknown = sorted(set(normalized) - known)
    if unknown:
        raise InvalidConfigError(
            f"Unknown {section} configuration keys: {', '.join(unknown)}",
            section=section
        )
    return normalized


def _require_positive_int(name: str, value: Any) -> None:
    if isinstance(value, bool) or not isinstance(value, int) or value < 1:
        raise InvalidConfigError(f"{name} must be a positive integer", **{name: value})


def _require_non_negative(name: str, value: Any) -> None:
    if isinstance(value, bool) or not isinstance(value, (int, float)) or value < 0:
        raise InvalidConfigError(f"{name} must be a non-negative number", **{name: value})


def _require_fraction(name: str, value: Any) -> None:
    _require_non_negative(name, value)
    if value > 1:
        raise InvalidConfigError(f"{name} must be within [0, 1]", **{name: value})


class _MergeableConfig:
    """Field-wise merge shared by both configuration sections."""

    SECTION = ""

    def merged(self, **partial: Any):
        """
        Return a copy with the given fields replaced.

        Raises:
            InvalidConfigError: On unknown keys or invalid values
        """
        known = {f.name for f in fields(self)}
        return replace(self, **_normalize(self.SECTION, partial, known))

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]):
        return cls().merged(**data)

    def to_dict(self) -> Dict[str, Any]:
        return {f.name: getattr(self, f.name) for f in fields(self)}


@dataclass(frozen=True)
class CandleConfig(_MergeableConfig):
    """
    Aggregation and pattern detection settings.

    Attributes:
        timeframe: Bucket width in seconds
        max_candles: History bound per symbol
        doji_threshold: Max body as a fraction of range for a Doji
        shadow_multiplier: Min long-shadow length in bodies (Hammer family)
        small_shadow_multiplier: Max short-shadow length in bodies
        long_body_threshold: Min body fraction of range for a "long" candle
        enable_trend_check: Require trend confirmation for reversals
    """
    SECTION = "candles"

    timeframe: float = 60
    max_candles: int = 100
    doji_threshold: float = 0.1
    shadow_multiplier: float = 2.0
    small_shadow_multiplier: float = 0.5
    long_body_threshold: float = 0.6
    enable_trend_check: bool = True

    def __post_init__(self):
        if isinstance(self.timeframe, bool) or not isinstance(self.timeframe, (int, float)) \
                or self.timeframe <= 0:
            raise InvalidConfigError("timeframe must be a positive number of seconds",
                                     timeframe=self.timeframe)
        # Buckets are timedeltas, which cannot resolve less than a microsecond
        if timedelta(seconds=self.timeframe) < timedelta(microseconds=1):
            raise InvalidConfigError("timeframe must be at least one microsecond",
                                     timeframe=self.timeframe)
        _require_positive_int('max_candles', self.max_candles)
        _require_fraction('doji_threshold', self.doji_threshold)
        _require_non_negative('shadow_multiplier', self.shadow_multiplier)
        _require_non_negative('small_shadow_multiplier', self.small_shadow_multiplier)
        _require_fraction('long_body_threshold', self.long_body_threshold)


@dataclass(frozen=True)
class IndicatorConfig(_MergeableConfig):
    """Indicator periods and engine switches."""
    SECTION = "indicators"

    rsi_period: int = 14
    ma_period: int = 20
    bollinger_period: int = 20
    bollinger_multiplier: float = 2.0
    macd_fast: int = 12
    macd_slow: int = 26
    macd_signal: int = 9
    stochastic_period: int = 14
    stochastic_smooth: int = 3
    adx_period: int = 14
    volatility_period: int = 20
    sentiment_period: int = 10
    atr_period: int = 14
    cci_period: int = 20
    vwap_period: int = 20
    correlation_length: int = 50
    min_candles: int = 20
    debug: bool = False

    def __post_init__(self):
        for f in fields(self):
            if f.name in ('bollinger_multiplier', 'debug'):
                continue
            _require_positive_int(f.name, getattr(self, f.name))
        _require_non_negative('bollinger_multiplier', self.bollinger_multiplier)


@dataclass(frozen=True)
class Settings:
    """Both configuration sections, as loaded from a YAML file."""
    candles: CandleConfig = field(default_factory=CandleConfig)
    indicators: IndicatorConfig = field(default_factory=IndicatorConfig)

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> 'Settings':
        sections = {}
        for name, section_cls in (('candles', CandleConfig), ('indicators', IndicatorConfig)):
            section = data.get(name) or {}
            if not isinstance(section, Mapping):
                raise ConfigValidationError(
                    f"Configuration section '{name}' must be a mapping",
                    section=name
                )
            sections[name] = section_cls.from_dict(section)
        return cls(**sections)


def load_settings(config_file: Union[str, Path] = "config/config.yaml") -> Settings:
    """
    Load settings from a YAML file.

    Args:
        config_file: Path to configuration file

    Returns:
        Settings with file values merged over the defaults

    Raises:
        MissingConfigError: If the file does not exist
        ConfigValidationError: If the document is not a mapping of sections
    """
    path = Path(config_file)
    if not path.exists():
        raise MissingConfigError("Configuration file not found", path=str(path))

    with open(path, 'r') as f:
        data = yaml.safe_load(f) or {}

    if not isinstance(data, Mapping):
        raise ConfigValidationError("Configuration root must be a mapping", path=str(path))

    return Settings.from_dict(data)
