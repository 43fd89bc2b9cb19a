"""Shared test fixtures."""

from __future__ import annotations

import random
from collections.abc import Callable, Sequence
from pathlib import Path  # noqa: TCH003

import pytest

from regime_engine.config.loader import ConfigLoader
from regime_engine.config.settings import RegimeSettings
from regime_engine.models.market import Candle

FOUR_HOURS_MS = 4 * 60 * 60 * 1000
START_MS = 1_704_067_200_000  # 2024-01-01T00:00:00Z

CandleBuilder = Callable[..., list[Candle]]


def build_candles(
    closes: Sequence[float],
    wick: float = 0.5,
    start: int = START_MS,
    step: int = FOUR_HOURS_MS,
) -> list[Candle]:
    """Candles whose open is the previous close and whose wicks extend by ``wick``."""
    candles: list[Candle] = []
    prev_close = closes[0] if closes else 0.0
    for i, close in enumerate(closes):
        open_ = prev_close
        candles.append(
            Candle(
                timestamp=start + i * step,
                open=open_,
                high=max(open_, close) + wick,
                low=min(open_, close) - wick,
                close=close,
                volume=1000.0,
            )
        )
        prev_close = close
    return candles


def flat_candles(count: int, price: float = 1000.0, half_range: float = 0.5) -> list[Candle]:
    """Constant-close candles with a fixed high/low envelope."""
    return [
        Candle(
            timestamp=START_MS + i * FOUR_HOURS_MS,
            open=price,
            high=price + half_range,
            low=price - half_range,
            close=price,
            volume=1000.0,
        )
        for i in range(count)
    ]


@pytest.fixture()
def make_candles() -> CandleBuilder:
    return build_candles


@pytest.fixture()
def make_flat_candles() -> Callable[..., list[Candle]]:
    return flat_candles


@pytest.fixture()
def rising_candles() -> list[Candle]:
    """120 strictly rising candles, +1 per bar from 100."""
    return build_candles([100.0 + i for i in range(120)])


@pytest.fixture()
def falling_candles() -> list[Candle]:
    """120 strictly falling candles, -1 per bar from 300."""
    return build_candles([300.0 - i for i in range(120)])


@pytest.fixture()
def random_walk_candles() -> list[Candle]:
    """150 candles of a seeded random walk around 1000."""
    rng = random.Random(42)
    closes = [1000.0]
    for _ in range(149):
        closes.append(closes[-1] + rng.uniform(-1.0, 1.0))
    candles = build_candles(closes, wick=0.0)
    return [
        c.model_copy(
            update={
                "high": c.high + rng.uniform(0.0, 10.0),
                "low": c.low - rng.uniform(0.0, 10.0),
            }
        )
        for c in candles
    ]


@pytest.fixture()
def settings() -> RegimeSettings:
    return RegimeSettings()


@pytest.fixture()
def config_dir(tmp_path: Path) -> Path:
    """Create a temp config directory with default.toml."""
    config = tmp_path / "config"
    config.mkdir()

    default_toml = config / "default.toml"
    default_toml.write_text(
        """\
SHORT_TERM_EMA = 10
LONG_TERM_EMA = 50
ATR_PERIOD = 14
ADX_PERIOD = 14
TREND_SLOPE_THRESHOLD = 0.2
VOLATILITY_THRESHOLD = 2.0
ATR_PERCENTAGE_THRESHOLD = 6.0

[market]
slope_periods_default = 5
slope_periods_high_vol_threshold = 8.0
slope_periods_low_vol_threshold = 3.0
slope_periods_high_vol_value = 3
slope_periods_low_vol_value = 8

[market.classifier]
strong_trend_multiplier = 1.5
overextension_pct = 0.05

[risk]
defaultAtrPercentage = 0.02
minAtrValue = 0.0001

[symbols.SOLUSDT]
ATR_PERIOD = 10
TREND_SLOPE_THRESHOLD = 0.3
"""
    )
    return config


@pytest.fixture()
def config_loader(config_dir: Path) -> ConfigLoader:
    """ConfigLoader with test config."""
    loader = ConfigLoader(config_dir=config_dir, env="test")
    loader.load()
    return loader
