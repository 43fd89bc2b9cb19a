"""Market data models: Candle, MarketEnvironment, StrategyType, AnalysisResult."""

from __future__ import annotations

import time
from enum import Enum

from pydantic import BaseModel, Field, model_validator


class MarketEnvironment(str, Enum):
    UNKNOWN = "unknown"
    RANGE = "range"
    WEAK_UPTREND = "weak_uptrend"
    UPTREND = "uptrend"
    STRONG_UPTREND = "strong_uptrend"
    WEAK_DOWNTREND = "weak_downtrend"
    DOWNTREND = "downtrend"
    STRONG_DOWNTREND = "strong_downtrend"
    VOLATILE = "volatile"

    @property
    def is_uptrend(self) -> bool:
        return self in _UPTRENDS

    @property
    def is_downtrend(self) -> bool:
        return self in _DOWNTRENDS


_UPTRENDS = frozenset(
    {
        MarketEnvironment.WEAK_UPTREND,
        MarketEnvironment.UPTREND,
        MarketEnvironment.STRONG_UPTREND,
    }
)
_DOWNTRENDS = frozenset(
    {
        MarketEnvironment.WEAK_DOWNTREND,
        MarketEnvironment.DOWNTREND,
        MarketEnvironment.STRONG_DOWNTREND,
    }
)


class StrategyType(str, Enum):
    TREND_FOLLOWING = "trend_following"
    RANGE_TRADING = "range_trading"
    MEAN_REVERT = "mean_revert"
    DONCHIAN_BREAKOUT = "donchian_breakout"
    EMERGENCY = "emergency"


class Candle(BaseModel):
    """OHLCV bar. Sequences are expected in ascending timestamp order."""

    timestamp: int
    open: float
    high: float
    low: float
    close: float
    volume: float = 0.0

    @property
    def range_size(self) -> float:
        return self.high - self.low

    @model_validator(mode="after")
    def high_low_envelope(self) -> Candle:
        if self.high < max(self.open, self.close, self.low):
            msg = "high must be >= open, close and low"
            raise ValueError(msg)
        if self.low > min(self.open, self.close, self.high):
            msg = "low must be <= open, close and high"
            raise ValueError(msg)
        return self

    model_config = {"frozen": True}


class AnalysisResult(BaseModel):
    """Regime classification for the latest candle of a stream."""

    environment: MarketEnvironment
    recommended_strategy: StrategyType
    indicators: dict[str, float | int | bool | str] = Field(default_factory=dict)
    timestamp: int = Field(default_factory=lambda: int(time.time() * 1000))

    @property
    def error(self) -> str | None:
        value = self.indicators.get("error")
        return str(value) if value is not None else None

    model_config = {"frozen": True}
