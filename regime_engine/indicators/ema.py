"""Incremental exponential moving average."""

from __future__ import annotations

from collections.abc import Sequence


class IncrementalEMA:
    """EMA that is seeded once from history and then updated bar by bar.

    alpha = 2 / (period + 1). The seed is the simple average of the first
    ``period`` values (or of all values when fewer are available) and the
    rest of the history is folded in with :meth:`update`, which makes the
    value identical to :func:`ema_series` over the same data.
    """

    def __init__(self, period: int) -> None:
        if period <= 0:
            msg = f"EMA period must be > 0, got {period}"
            raise ValueError(msg)
        self.period = period
        self.alpha = 2.0 / (period + 1)
        self._value: float | None = None

    def initialize(self, values: Sequence[float]) -> float:
        """Seed from a history slice (oldest first) and return the value."""
        self._value = None
        if not values:
            return 0.0

        if len(values) < self.period:
            self._value = sum(values) / len(values)
            return self._value

        self._value = sum(values[: self.period]) / self.period
        for value in values[self.period :]:
            self.update(value)
        return self._value

    def update(self, new_value: float) -> float:
        if self._value is None:
            self._value = float(new_value)
        else:
            self._value = self.alpha * new_value + (1 - self.alpha) * self._value
        return self._value

    @property
    def value(self) -> float:
        return self._value if self._value is not None else 0.0

    def get_value(self) -> float:
        return self.value

    @property
    def is_initialized(self) -> bool:
        return self._value is not None

    def reset(self) -> None:
        self._value = None

    def __repr__(self) -> str:
        return f"IncrementalEMA(period={self.period}, value={self._value!r})"


def ema_series(values: Sequence[float], period: int) -> list[float]:
    """Batch EMA over a full history.

    Returns one value per input from index ``period - 1`` onwards; empty
    when fewer than ``period`` values are given.
    """
    if period <= 0 or len(values) < period:
        return []

    alpha = 2.0 / (period + 1)
    current = sum(values[:period]) / period
    series = [current]
    for value in values[period:]:
        current = alpha * value + (1 - alpha) * current
        series.append(current)
    return series
