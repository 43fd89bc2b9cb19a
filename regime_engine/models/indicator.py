"""Indicator readings: a computed value or an explicitly substituted default."""

from __future__ import annotations

from enum import Enum

from pydantic import BaseModel


class ReadingStatus(str, Enum):
    OK = "ok"
    FALLBACK = "fallback"


class AdxBand(str, Enum):
    """ADX trend-strength band used to corroborate slope signals."""

    STRONG = "strong"  # > 25
    MODEST = "modest"  # (20, 25]
    WEAK = "weak"  # (15, 20]
    NONE = "none"  # <= 15


class IndicatorReading(BaseModel):
    """Result of an indicator computation.

    ``FALLBACK`` readings carry the substituted value and the reason, so
    callers can tell a genuine computation from a default without parsing
    log output.
    """

    value: float
    status: ReadingStatus = ReadingStatus.OK
    reason: str | None = None

    model_config = {"frozen": True}

    @classmethod
    def ok(cls, value: float) -> IndicatorReading:
        return cls(value=value)

    @classmethod
    def fallback(cls, value: float, reason: str) -> IndicatorReading:
        return cls(value=value, status=ReadingStatus.FALLBACK, reason=reason)

    @property
    def is_fallback(self) -> bool:
        return self.status == ReadingStatus.FALLBACK
