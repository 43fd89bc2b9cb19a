"""Tests for volatility-based allocation weights."""

from __future__ import annotations

import pytest

from regime_engine.config.settings import RegimeSettings
from regime_engine.engine.allocation import volatility_weights, volatility_weights_from_source
from regime_engine.models.market import Candle


class DictCandleSource:
    def __init__(self, candles: dict[str, list[Candle]]) -> None:
        self._candles = candles
        self.calls: list[tuple[str, int | None]] = []

    def get_candles(self, symbol: str, limit: int | None = None) -> list[Candle]:
        self.calls.append((symbol, limit))
        candles = self._candles[symbol]
        return candles[-limit:] if limit else candles


class TestVolatilityWeights:
    def test_inverse_atr_weighting(self, make_flat_candles) -> None:
        weights = volatility_weights(
            {
                "BTCUSDT": make_flat_candles(80, half_range=1.0),  # atr% 0.2
                "ETHUSDT": make_flat_candles(80, half_range=2.0),  # atr% 0.4
            }
        )
        assert weights["BTCUSDT"] == pytest.approx(2 / 3)
        assert weights["ETHUSDT"] == pytest.approx(1 / 3)

    def test_low_atr_is_clamped_to_floor(self, make_flat_candles) -> None:
        weights = volatility_weights(
            {
                "QUIET": make_flat_candles(80, half_range=0.25),  # atr% 0.05 -> 0.1
                "LOUD": make_flat_candles(80, half_range=5.0),  # atr% 1.0
            }
        )
        assert weights["QUIET"] == pytest.approx(10 / 11)
        assert weights["LOUD"] == pytest.approx(1 / 11)

    def test_floor_is_configurable(self, make_flat_candles) -> None:
        settings = RegimeSettings(min_atr_percentage=1.0)
        weights = volatility_weights(
            {
                "A": make_flat_candles(80, half_range=0.25),
                "B": make_flat_candles(80, half_range=2.0),
            },
            settings,
        )
        assert weights["A"] == pytest.approx(0.5)
        assert weights["B"] == pytest.approx(0.5)

    def test_weights_sum_to_one(self, rising_candles, falling_candles, random_walk_candles) -> None:
        weights = volatility_weights(
            {"A": rising_candles, "B": falling_candles, "C": random_walk_candles}
        )
        assert sum(weights.values()) == pytest.approx(1.0)
        assert all(w > 0 for w in weights.values())

    def test_no_symbols(self) -> None:
        assert volatility_weights({}) == {}

    def test_single_symbol(self, rising_candles) -> None:
        assert volatility_weights({"BTCUSDT": rising_candles}) == pytest.approx({"BTCUSDT": 1.0})

    def test_from_source(self, make_flat_candles) -> None:
        source = DictCandleSource(
            {
                "BTCUSDT": make_flat_candles(100, half_range=1.0),
                "ETHUSDT": make_flat_candles(100, half_range=2.0),
            }
        )
        weights = volatility_weights_from_source(source, ["BTCUSDT", "ETHUSDT"], limit=80)
        assert weights["BTCUSDT"] == pytest.approx(2 / 3)
        assert source.calls == [("BTCUSDT", 80), ("ETHUSDT", 80)]
