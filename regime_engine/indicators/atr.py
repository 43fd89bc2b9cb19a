"""Incremental Average True Range with Wilder smoothing and near-zero fallback."""

from __future__ import annotations

from collections.abc import Sequence
from typing import TYPE_CHECKING

from regime_engine.core.logging import get_logger
from regime_engine.models.indicator import IndicatorReading

if TYPE_CHECKING:
    from regime_engine.models.market import Candle

log = get_logger(__name__)

DEFAULT_ATR_PERCENTAGE = 0.02
MIN_ATR_VALUE = 0.0001


def true_range(candle: Candle, prev_close: float | None) -> float:
    """True range of one bar; ``high - low`` when there is no previous close."""
    if prev_close is None:
        return candle.high - candle.low
    return max(
        candle.high - candle.low,
        abs(candle.high - prev_close),
        abs(candle.low - prev_close),
    )


def true_ranges(candles: Sequence[Candle]) -> list[float]:
    ranges: list[float] = []
    prev_close: float | None = None
    for candle in candles:
        ranges.append(true_range(candle, prev_close))
        prev_close = candle.close
    return ranges


def atr_series(candles: Sequence[Candle], period: int) -> list[float]:
    """Batch Wilder ATR over a full history.

    The first value is the mean of the first ``period`` true ranges, each
    later value applies ``atr = (atr * (n - 1) + tr) / n``. Empty when
    fewer than ``period`` candles are given.
    """
    ranges = true_ranges(candles)
    if period <= 0 or len(ranges) < period:
        return []

    current = sum(ranges[:period]) / period
    series = [current]
    for tr in ranges[period:]:
        current = (current * (period - 1) + tr) / period
        series.append(current)
    return series


def simplified_atr(candles: Sequence[Candle], period: int) -> float:
    """Mean ``high - low`` of the last ``period`` candles."""
    recent = candles[-period:]
    if not recent:
        return 0.0
    return sum(c.high - c.low for c in recent) / len(recent)


def is_atr_too_small(atr: float, close: float, min_atr_value: float = MIN_ATR_VALUE) -> bool:
    return atr == 0 or atr < close * min_atr_value


def fallback_atr(close: float, default_atr_percentage: float = DEFAULT_ATR_PERCENTAGE) -> float:
    return close * default_atr_percentage


class IncrementalATR:
    """Wilder-smoothed ATR maintained one candle at a time."""

    def __init__(
        self,
        period: int,
        default_atr_percentage: float = DEFAULT_ATR_PERCENTAGE,
        min_atr_value: float = MIN_ATR_VALUE,
    ) -> None:
        if period <= 0:
            msg = f"ATR period must be > 0, got {period}"
            raise ValueError(msg)
        self.period = period
        self._default_atr_percentage = default_atr_percentage
        self._min_atr_value = min_atr_value
        self._value: float | None = None
        self._last_close: float | None = None
        self._reading: IndicatorReading | None = None

    def initialize(self, candles: Sequence[Candle]) -> IndicatorReading:
        """Seed from a history slice (oldest first).

        Args:
            candles: Candle history, oldest first.

        Returns:
            OK reading with the seeded ATR, or a FALLBACK reading when the
            seeded value was zero or below ``close * min_atr_value`` and was
            replaced with ``close * default_atr_percentage``. The substitute
            is only reported; the Wilder recurrence keeps the raw value.
        """
        self.reset()
        if not candles:
            return IndicatorReading.fallback(0.0, "no candles")

        ranges = true_ranges(candles)
        n = self.period
        if len(ranges) >= n:
            value = sum(ranges[:n]) / n
            for tr in ranges[n:]:
                value = (value * (n - 1) + tr) / n
        else:
            value = sum(ranges) / len(ranges)

        self._last_close = candles[-1].close
        self._value = value
        self._reading = self._apply_floor(value, self._last_close, None)
        return self._reading

    def update(self, candle: Candle) -> IndicatorReading:
        if self._value is None or self._last_close is None:
            self._value = candle.high - candle.low
            self._last_close = candle.close
            log.warning(
                "atr_update_uninitialized",
                period=self.period,
                atr=self._value,
            )
            self._reading = IndicatorReading.fallback(self._value, "uninitialized")
            return self._reading

        tr = true_range(candle, self._last_close)
        n = self.period
        self._value = (self._value * (n - 1) + tr) / n
        self._last_close = candle.close
        self._reading = self._apply_floor(self._value, candle.close, self._reading)
        return self._reading

    def _apply_floor(
        self, raw: float, close: float, previous: IndicatorReading | None
    ) -> IndicatorReading:
        if not is_atr_too_small(raw, close, self._min_atr_value):
            return IndicatorReading.ok(raw)

        substitute = fallback_atr(close, self._default_atr_percentage)
        if previous is None or not previous.is_fallback:
            log.warning(
                "atr_fallback_applied",
                period=self.period,
                raw_atr=raw,
                fallback_atr=substitute,
                close=close,
                default_atr_percentage=self._default_atr_percentage,
            )
        return IndicatorReading.fallback(substitute, "atr below minimum")

    @property
    def value(self) -> float:
        """Reported ATR, including any fallback substitution."""
        if self._reading is not None:
            return self._reading.value
        return self._value if self._value is not None else 0.0

    @property
    def raw_value(self) -> float:
        """Unfloored Wilder ATR carried between updates."""
        return self._value if self._value is not None else 0.0

    def get_value(self) -> float:
        return self.value

    @property
    def reading(self) -> IndicatorReading | None:
        """Outcome of the most recent initialize or update call."""
        return self._reading

    @property
    def last_close(self) -> float | None:
        return self._last_close

    @property
    def is_initialized(self) -> bool:
        return self._value is not None

    def reset(self) -> None:
        self._value = None
        self._last_close = None
        self._reading = None

    def __repr__(self) -> str:
        return f"IncrementalATR(period={self.period}, value={self._value!r})"
