"""Technical indicators: incremental EMA/ATR, slope estimation and ADX."""

from __future__ import annotations

from regime_engine.indicators.adx import NEUTRAL_ADX, adx_band, adx_series, compute_adx
from regime_engine.indicators.atr import IncrementalATR, atr_series, true_ranges
from regime_engine.indicators.ema import IncrementalEMA, ema_series
from regime_engine.indicators.slope import (
    adjust_slope_periods,
    atr_percentage,
    calculate_atr_change,
    calculate_slope,
    fitted_move,
    slope_to_angle,
)

__all__ = [
    "NEUTRAL_ADX",
    "IncrementalATR",
    "IncrementalEMA",
    "adjust_slope_periods",
    "adx_band",
    "adx_series",
    "atr_percentage",
    "atr_series",
    "calculate_atr_change",
    "calculate_slope",
    "compute_adx",
    "ema_series",
    "fitted_move",
    "slope_to_angle",
    "true_ranges",
]
