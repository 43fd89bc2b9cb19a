"""Regime Classifier: trend/volatility environment and strategy selection.

Combines EMA crossover direction, EMA slope angle, ADX strength bands,
price displacement from the long EMA and the ATR change ratio into one
``MarketEnvironment`` and a recommended ``StrategyType``. Every call is a
pure function of the current candles and indicator snapshot; only the
incremental EMA/ATR values are carried between calls, in the caller's
``SymbolIndicatorState``.
"""

from __future__ import annotations

import time
from collections.abc import Sequence
from typing import TYPE_CHECKING

from regime_engine.config.settings import RegimeSettings
from regime_engine.core.logging import get_logger, log_regime_event
from regime_engine.engine.state import SymbolIndicatorState
from regime_engine.indicators.adx import NEUTRAL_ADX, adx_band, compute_adx
from regime_engine.indicators.atr import atr_series, simplified_atr
from regime_engine.indicators.ema import ema_series
from regime_engine.indicators.slope import (
    adjust_slope_periods,
    atr_percentage,
    calculate_atr_change,
    calculate_slope,
    fitted_move,
    slope_to_angle,
)
from regime_engine.models.indicator import AdxBand
from regime_engine.models.market import (
    AnalysisResult,
    Candle,
    MarketEnvironment,
    StrategyType,
)

if TYPE_CHECKING:
    from regime_engine.engine.state import SymbolStateRegistry

log = get_logger(__name__)

# Placeholder ATR for insufficient data, as a fraction of the first close
_PLACEHOLDER_ATR_PCT = 0.01


class RegimeClassifier:
    """Classify the current market regime of one candle stream."""

    def __init__(self, settings: RegimeSettings | None = None) -> None:
        self._settings = settings or RegimeSettings()

    @property
    def settings(self) -> RegimeSettings:
        return self._settings

    def analyze(
        self,
        candles: Sequence[Candle],
        state: SymbolIndicatorState | None = None,
        timeframe_hours: float = 4.0,
    ) -> AnalysisResult:
        """Classify the regime at the last candle.

        Args:
            candles: Candle history, oldest first.
            state: Incremental indicator state for this symbol. A fresh,
                throw-away state is used when omitted.
            timeframe_hours: Bar length, used to annualize slopes.

        Returns:
            AnalysisResult. Never raises: insufficient data yields UNKNOWN
            with placeholder indicators, and unexpected failures yield
            UNKNOWN with an ``error`` indicator.
        """
        symbol = state.symbol if state is not None else ""
        try:
            if len(candles) < self._settings.min_candles:
                return self._insufficient_data(candles)
            if state is None:
                state = SymbolIndicatorState(settings=self._settings)
            return self._classify(candles, state, timeframe_hours)
        except Exception as exc:  # noqa: BLE001
            log.error(
                "regime_classification_failed",
                symbol=symbol,
                error=str(exc),
                exc_info=True,
            )
            return AnalysisResult(
                environment=MarketEnvironment.UNKNOWN,
                recommended_strategy=StrategyType.TREND_FOLLOWING,
                indicators={"error": str(exc)},
                timestamp=_result_timestamp(candles),
            )

    def analyze_symbol(
        self,
        symbol: str,
        candles: Sequence[Candle],
        registry: SymbolStateRegistry,
        timeframe_hours: float = 4.0,
    ) -> AnalysisResult:
        """Classify using the symbol's state from ``registry``.

        Writes a ``regime_changed`` audit event whenever the environment
        differs from the previous classification of the same symbol.
        """
        state = registry.get(symbol)
        previous = state.last_environment
        result = self.analyze(candles, state, timeframe_hours)

        if result.environment != previous:
            log_regime_event(
                symbol,
                result.environment.value,
                result.recommended_strategy.value,
                previous=previous.value if previous is not None else None,
                timestamp=result.timestamp,
                atr_percentage=result.indicators.get("atrPercentage"),
                adx=result.indicators.get("adx"),
            )
        state.last_environment = result.environment
        return result

    def _classify(
        self,
        candles: Sequence[Candle],
        state: SymbolIndicatorState,
        timeframe_hours: float,
    ) -> AnalysisResult:
        s = self._settings
        snapshot = state.sync(candles, s)

        closes = [c.close for c in candles]
        current_close = closes[-1]
        short_ema = snapshot.short_ema
        long_ema = snapshot.long_ema
        atr = snapshot.atr.value

        atr_pct = atr_percentage(atr, current_close)
        slope_periods = adjust_slope_periods(atr_pct, s)

        # Slopes need the EMA path, not just the cached terminal value
        short_path = ema_series(closes, s.short_term_ema)
        short_slope = calculate_slope(short_path, slope_periods, timeframe_hours)
        long_slope = calculate_slope(
            ema_series(closes, s.long_term_ema), slope_periods * 2, timeframe_hours
        )
        short_angle = slope_to_angle(short_slope)
        long_angle = slope_to_angle(long_slope)

        atr_change = calculate_atr_change(self._atr_history(candles), s.atr_change_lookback)

        adx_reading = compute_adx(candles, s.adx_period)
        adx = adx_reading.value
        band = adx_band(adx)

        price_location_ratio = current_close / long_ema if long_ema > 0 else 1.0

        # A slope counts only once the fitted short-EMA move reaches flat_move_atr_ratio ATRs
        short_move = fitted_move(short_path, slope_periods)
        slope_significant = abs(short_move) >= atr * s.flat_move_atr_ratio
        trend_slope = short_slope if slope_significant else 0.0

        threshold = s.trend_slope_threshold
        abs_angle = abs(short_angle) if slope_significant else 0.0

        low_vol = atr_pct < s.atr_percentage_threshold and abs_angle < s.flat_slope_angle
        ema_crossover = short_ema > long_ema
        bull = ema_crossover and trend_slope > 0
        bear = not ema_crossover and trend_slope < 0
        slopes_aligned = (trend_slope > 0 and long_slope > 0) or (
            trend_slope < 0 and long_slope < 0
        )

        strong_trend = abs_angle > threshold * s.strong_trend_multiplier or (
            abs_angle > threshold and band == AdxBand.STRONG
        )
        trend = abs_angle > threshold or (
            abs_angle > threshold * s.trend_adx_multiplier and band == AdxBand.MODEST
        )
        weak_trend = abs_angle > threshold * s.weak_trend_multiplier or band == AdxBand.WEAK
        very_strong = adx > s.very_strong_adx and abs_angle > threshold * s.very_strong_trend_multiplier

        overextended = False
        if low_vol:
            environment = MarketEnvironment.RANGE
            strategy = StrategyType.RANGE_TRADING
        elif (bull or bear) and strong_trend and slopes_aligned:
            environment = (
                MarketEnvironment.STRONG_UPTREND if bull else MarketEnvironment.STRONG_DOWNTREND
            )
            strategy = (
                StrategyType.DONCHIAN_BREAKOUT if very_strong else StrategyType.TREND_FOLLOWING
            )
            displacement = price_location_ratio - 1.0
            if adx < s.very_strong_adx and (
                (bull and displacement > s.overextension_pct)
                or (bear and displacement < -s.overextension_pct)
            ):
                overextended = True
                environment = MarketEnvironment.UPTREND if bull else MarketEnvironment.DOWNTREND
        elif (bull or bear) and trend:
            environment = MarketEnvironment.UPTREND if bull else MarketEnvironment.DOWNTREND
            strategy = StrategyType.TREND_FOLLOWING
        elif weak_trend and trend_slope != 0:
            rising = trend_slope > 0
            environment = (
                MarketEnvironment.WEAK_UPTREND if rising else MarketEnvironment.WEAK_DOWNTREND
            )
            price_agrees = price_location_ratio > 1.0 if rising else price_location_ratio < 1.0
            strategy = StrategyType.TREND_FOLLOWING if price_agrees else StrategyType.RANGE_TRADING
        else:
            environment = MarketEnvironment.RANGE
            strategy = StrategyType.RANGE_TRADING
            if (
                abs_angle < s.flat_slope_angle
                and s.mean_revert_atr_min <= atr_pct <= s.mean_revert_atr_max
                and adx < s.mean_revert_adx_max
            ):
                strategy = StrategyType.MEAN_REVERT

        high_volatility = atr_change > s.volatility_threshold
        if high_volatility:
            log.warning(
                "volatility_override",
                symbol=state.symbol,
                atr_change=atr_change,
                threshold=s.volatility_threshold,
                environment=environment.value,
                replaced_strategy=strategy.value,
            )
            strategy = StrategyType.EMERGENCY

        indicators: dict[str, float | int | bool | str] = {
            "shortTermEma": short_ema,
            "longTermEma": long_ema,
            "atr": atr,
            "atrPercentage": atr_pct,
            "atrChange": atr_change,
            "atrFallback": snapshot.atr.is_fallback,
            "shortTermSlope": short_slope,
            "shortTermSlopeAngle": short_angle,
            "longTermSlope": long_slope,
            "longTermSlopeAngle": long_angle,
            "slopePeriods": slope_periods,
            "shortTermMove": short_move,
            "slopeSignificant": slope_significant,
            "adx": adx,
            "adxFallback": adx_reading.is_fallback,
            "priceLocationRatio": price_location_ratio,
            "highVolatility": high_volatility,
            "lowVolatility": low_vol,
            "bullTrend": bull,
            "bearTrend": bear,
            "slopesAligned": slopes_aligned,
            "emaCrossover": ema_crossover,
            "overextended": overextended,
        }

        log.debug(
            "regime_classified",
            symbol=state.symbol,
            environment=environment.value,
            strategy=strategy.value,
            short_angle=short_angle,
            adx=adx,
            atr_pct=atr_pct,
            atr_change=atr_change,
        )

        return AnalysisResult(
            environment=environment,
            recommended_strategy=strategy,
            indicators=indicators,
            timestamp=_result_timestamp(candles),
        )

    def _atr_history(self, candles: Sequence[Candle]) -> list[float]:
        period = self._settings.atr_period
        try:
            return atr_series(candles, period)
        except ArithmeticError as exc:
            log.warning("atr_series_failed", error=str(exc), fallback="simplified_atr")
            return [simplified_atr(candles, period)]

    def _insufficient_data(self, candles: Sequence[Candle]) -> AnalysisResult:
        s = self._settings
        first_close = candles[0].close if candles else 0.0
        log.warning(
            "regime_insufficient_data",
            candles=len(candles),
            required=s.min_candles,
        )
        return AnalysisResult(
            environment=MarketEnvironment.UNKNOWN,
            recommended_strategy=StrategyType.TREND_FOLLOWING,
            indicators={
                "shortTermEma": first_close,
                "longTermEma": first_close,
                "atr": first_close * _PLACEHOLDER_ATR_PCT,
                "atrPercentage": _PLACEHOLDER_ATR_PCT * 100 if first_close > 0 else 0.0,
                "atrChange": 1.0,
                "shortTermSlope": 0.0,
                "shortTermSlopeAngle": 0.0,
                "longTermSlope": 0.0,
                "longTermSlopeAngle": 0.0,
                "slopePeriods": s.slope_periods_default,
                "adx": NEUTRAL_ADX,
                "priceLocationRatio": 1.0,
                "note": (
                    f"Insufficient data: {len(candles)} candles, "
                    f"{s.min_candles} required"
                ),
            },
            timestamp=_result_timestamp(candles),
        )


def _result_timestamp(candles: Sequence[Candle] | None) -> int:
    if candles:
        timestamp = getattr(candles[-1], "timestamp", None)
        if isinstance(timestamp, int):
            return timestamp
    return int(time.time() * 1000)
