"""Trend slope of an EMA series, volatility-adaptive window and ATR ratios."""

from __future__ import annotations

import math
from collections.abc import Sequence
from typing import TYPE_CHECKING

from regime_engine.core.logging import get_logger

if TYPE_CHECKING:
    from regime_engine.config.settings import RegimeSettings

log = get_logger(__name__)

HOURS_PER_YEAR = 365 * 24


def calculate_slope(
    series: Sequence[float],
    periods: int = 5,
    timeframe_hours: float = 4.0,
) -> float:
    """Annualized least-squares slope of the last ``periods`` values.

    Values are normalized by the first value of the window, regressed
    against their index, and the slope is scaled by the number of bars per
    year and expressed in percent:
    ``m * (365 * 24 / timeframe_hours) * 100``.

    Args:
        series: EMA values, oldest first.
        periods: Window length.
        timeframe_hours: Bar length in hours.

    Returns:
        Annualized slope, or 0.0 when the series is shorter than the window.
    """
    if periods < 2 or len(series) < periods:
        return 0.0

    window = series[-periods:]
    base = window[0]
    if base == 0:
        return 0.0

    slope = _ols_slope([value / base for value in window])
    return slope * (HOURS_PER_YEAR / timeframe_hours) * 100


def fitted_move(series: Sequence[float], periods: int = 5) -> float:
    """Price change across the last ``periods`` values implied by their OLS line.

    Same regression as :func:`calculate_slope` but in price units, so it can
    be compared with ATR. Returns 0.0 when the series is shorter than the
    window.
    """
    if periods < 2 or len(series) < periods:
        return 0.0
    return _ols_slope(series[-periods:]) * (periods - 1)


def _ols_slope(values: Sequence[float]) -> float:
    n = len(values)
    sum_x = sum_y = sum_xy = sum_xx = 0.0
    for i, y in enumerate(values):
        sum_x += i
        sum_y += y
        sum_xy += i * y
        sum_xx += i * i
    return (n * sum_xy - sum_x * sum_y) / (n * sum_xx - sum_x * sum_x)


def slope_to_angle(slope: float) -> float:
    """Convert a slope to an angle in degrees."""
    return math.degrees(math.atan(slope))


def adjust_slope_periods(atr_percentage: float, settings: RegimeSettings) -> int:
    """Shorten the slope window in high volatility, lengthen it in low volatility."""
    default_periods = settings.slope_periods_default
    if atr_percentage > settings.slope_periods_high_vol_threshold:
        return max(settings.slope_periods_high_vol_value, default_periods - 2)
    if atr_percentage < settings.slope_periods_low_vol_threshold:
        return default_periods + (settings.slope_periods_low_vol_value - default_periods)
    return default_periods


def atr_percentage(atr: float, close: float) -> float:
    """ATR as a percentage of the close."""
    if close <= 0:
        return 0.0
    return atr / close * 100


def calculate_atr_change(atr_values: Sequence[float], lookback: int = 10) -> float:
    """Ratio of the latest ATR to the ATR ``lookback`` bars earlier.

    Returns 1.0 (no change) when the series is too short or the earlier
    value is zero or NaN.
    """
    if len(atr_values) < lookback + 1:
        log.warning("atr_change_insufficient_data", length=len(atr_values), required=lookback + 1)
        return 1.0

    base = atr_values[-lookback - 1]
    latest = atr_values[-1]
    if base == 0 or math.isnan(base):
        log.warning("atr_change_invalid_base", base=base)
        return 1.0
    return latest / base
