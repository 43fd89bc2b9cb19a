"""Typed regime-engine settings, read once from a configuration store."""

from __future__ import annotations

from typing import TYPE_CHECKING

from pydantic import BaseModel, Field, model_validator

if TYPE_CHECKING:
    from regime_engine.interfaces import ConfigSource


class RegimeSettings(BaseModel):
    """All periods and thresholds used by the indicators and the classifier.

    Field defaults mirror ``config/default.toml``. Build from a store with
    :meth:`from_config`; construct directly in tests.
    """

    short_term_ema: int = Field(default=10, gt=0)
    long_term_ema: int = Field(default=50, gt=0)
    atr_period: int = Field(default=14, gt=0)
    adx_period: int = Field(default=14, gt=0)

    trend_slope_threshold: float = 0.2
    volatility_threshold: float = 2.0
    atr_percentage_threshold: float = 6.0

    slope_periods_default: int = Field(default=5, ge=2)
    slope_periods_high_vol_threshold: float = 8.0
    slope_periods_low_vol_threshold: float = 3.0
    slope_periods_high_vol_value: int = Field(default=3, ge=2)
    slope_periods_low_vol_value: int = Field(default=8, ge=2)

    # Classifier multipliers and cut-offs pending product confirmation
    strong_trend_multiplier: float = 1.5
    very_strong_trend_multiplier: float = 2.0
    trend_adx_multiplier: float = 0.8
    weak_trend_multiplier: float = 0.7
    overextension_pct: float = 0.05
    flat_slope_angle: float = 0.15
    # Fitted short-EMA move, in ATRs, below which a slope counts as flat
    flat_move_atr_ratio: float = Field(default=1.0, ge=0)
    very_strong_adx: float = 30.0
    mean_revert_atr_min: float = 3.0
    mean_revert_atr_max: float = 8.0
    mean_revert_adx_max: float = 20.0
    atr_change_lookback: int = Field(default=10, gt=0)

    default_atr_percentage: float = Field(default=0.02, gt=0)
    min_atr_value: float = Field(default=0.0001, ge=0)

    min_atr_percentage: float = Field(default=0.1, gt=0)

    model_config = {"frozen": True}

    @model_validator(mode="after")
    def short_ema_below_long(self) -> RegimeSettings:
        if self.short_term_ema >= self.long_term_ema:
            msg = "short_term_ema must be < long_term_ema"
            raise ValueError(msg)
        return self

    @property
    def min_candles(self) -> int:
        """Candles required before a real classification is attempted."""
        return max(self.long_term_ema, self.atr_period) + 10

    @classmethod
    def from_config(cls, config: ConfigSource) -> RegimeSettings:
        """Populate settings from any store exposing ``get(key, default)``."""
        defaults = cls.model_fields

        def read(key: str, field: str, cast: type) -> object:
            return cast(config.get(key, defaults[field].default))

        def classifier(field: str, cast: type = float) -> object:
            return read(f"market.classifier.{field}", field, cast)

        return cls(
            short_term_ema=read("SHORT_TERM_EMA", "short_term_ema", int),
            long_term_ema=read("LONG_TERM_EMA", "long_term_ema", int),
            atr_period=read("ATR_PERIOD", "atr_period", int),
            adx_period=read("ADX_PERIOD", "adx_period", int),
            trend_slope_threshold=read("TREND_SLOPE_THRESHOLD", "trend_slope_threshold", float),
            volatility_threshold=read("VOLATILITY_THRESHOLD", "volatility_threshold", float),
            atr_percentage_threshold=read(
                "ATR_PERCENTAGE_THRESHOLD", "atr_percentage_threshold", float
            ),
            slope_periods_default=read(
                "market.slope_periods_default", "slope_periods_default", int
            ),
            slope_periods_high_vol_threshold=read(
                "market.slope_periods_high_vol_threshold",
                "slope_periods_high_vol_threshold",
                float,
            ),
            slope_periods_low_vol_threshold=read(
                "market.slope_periods_low_vol_threshold",
                "slope_periods_low_vol_threshold",
                float,
            ),
            slope_periods_high_vol_value=read(
                "market.slope_periods_high_vol_value", "slope_periods_high_vol_value", int
            ),
            slope_periods_low_vol_value=read(
                "market.slope_periods_low_vol_value", "slope_periods_low_vol_value", int
            ),
            strong_trend_multiplier=classifier("strong_trend_multiplier"),
            very_strong_trend_multiplier=classifier("very_strong_trend_multiplier"),
            trend_adx_multiplier=classifier("trend_adx_multiplier"),
            weak_trend_multiplier=classifier("weak_trend_multiplier"),
            overextension_pct=classifier("overextension_pct"),
            flat_slope_angle=classifier("flat_slope_angle"),
            flat_move_atr_ratio=classifier("flat_move_atr_ratio"),
            very_strong_adx=classifier("very_strong_adx"),
            mean_revert_atr_min=classifier("mean_revert_atr_min"),
            mean_revert_atr_max=classifier("mean_revert_atr_max"),
            mean_revert_adx_max=classifier("mean_revert_adx_max"),
            atr_change_lookback=classifier("atr_change_lookback", int),
            default_atr_percentage=read(
                "risk.defaultAtrPercentage", "default_atr_percentage", float
            ),
            min_atr_value=read("risk.minAtrValue", "min_atr_value", float),
            min_atr_percentage=read(
                "allocation.min_atr_percentage", "min_atr_percentage", float
            ),
        )
