"""ADX trend-strength corroborator (Wilder's Average Directional Index)."""

from __future__ import annotations

import math
from collections.abc import Sequence
from typing import TYPE_CHECKING

from regime_engine.core.logging import get_logger
from regime_engine.indicators.atr import true_range
from regime_engine.models.indicator import AdxBand, IndicatorReading

if TYPE_CHECKING:
    from regime_engine.models.market import Candle

log = get_logger(__name__)

# Moderate trend strength, used when ADX cannot be computed
NEUTRAL_ADX = 22.0

STRONG_ADX = 25.0
MODEST_ADX = 20.0
WEAK_ADX = 15.0


def adx_series(candles: Sequence[Candle], period: int = 14) -> list[float]:
    """Full ADX series; empty when fewer than ``2 * period`` candles are given."""
    if period <= 0 or len(candles) < 2 * period:
        return []

    plus_dm: list[float] = []
    minus_dm: list[float] = []
    ranges: list[float] = []
    for prev, curr in zip(candles, candles[1:]):
        up_move = curr.high - prev.high
        down_move = prev.low - curr.low
        plus_dm.append(up_move if up_move > down_move and up_move > 0 else 0.0)
        minus_dm.append(down_move if down_move > up_move and down_move > 0 else 0.0)
        ranges.append(true_range(curr, prev.close))

    sm_tr = sum(ranges[:period])
    sm_plus = sum(plus_dm[:period])
    sm_minus = sum(minus_dm[:period])
    dx_values = [_dx(sm_plus, sm_minus, sm_tr)]
    for tr, pdm, mdm in zip(ranges[period:], plus_dm[period:], minus_dm[period:]):
        sm_tr = sm_tr - sm_tr / period + tr
        sm_plus = sm_plus - sm_plus / period + pdm
        sm_minus = sm_minus - sm_minus / period + mdm
        dx_values.append(_dx(sm_plus, sm_minus, sm_tr))

    adx = sum(dx_values[:period]) / period
    series = [adx]
    for dx in dx_values[period:]:
        adx = (adx * (period - 1) + dx) / period
        series.append(adx)
    return series


def _dx(sm_plus: float, sm_minus: float, sm_tr: float) -> float:
    if sm_tr == 0:
        return 0.0
    plus_di = 100.0 * sm_plus / sm_tr
    minus_di = 100.0 * sm_minus / sm_tr
    di_sum = plus_di + minus_di
    if di_sum == 0:
        return 0.0
    return 100.0 * abs(plus_di - minus_di) / di_sum


def compute_adx(candles: Sequence[Candle], period: int = 14) -> IndicatorReading:
    """Latest ADX over the candle window.

    Args:
        candles: Candle history, oldest first.
        period: ADX period.

    Returns:
        OK reading with the latest ADX, or a FALLBACK reading carrying
        ``NEUTRAL_ADX`` when there is not enough data or the computation
        fails.
    """
    try:
        series = adx_series(candles, period)
    except (ArithmeticError, ValueError) as exc:
        log.warning("adx_computation_failed", error=str(exc), fallback=NEUTRAL_ADX)
        return IndicatorReading.fallback(NEUTRAL_ADX, f"adx computation failed: {exc}")

    if not series:
        log.warning(
            "adx_insufficient_data",
            candles=len(candles),
            required=2 * period,
            fallback=NEUTRAL_ADX,
        )
        return IndicatorReading.fallback(NEUTRAL_ADX, "insufficient data")

    latest = series[-1]
    if not math.isfinite(latest):
        log.warning("adx_not_finite", value=latest, fallback=NEUTRAL_ADX)
        return IndicatorReading.fallback(NEUTRAL_ADX, "adx not finite")
    return IndicatorReading.ok(latest)


def adx_band(adx: float) -> AdxBand:
    if adx > STRONG_ADX:
        return AdxBand.STRONG
    if adx > MODEST_ADX:
        return AdxBand.MODEST
    if adx > WEAK_ADX:
        return AdxBand.WEAK
    return AdxBand.NONE
