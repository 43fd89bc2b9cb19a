"""Tests for the regime classifier."""

from __future__ import annotations

import random

import pytest

from regime_engine.config.settings import RegimeSettings
from regime_engine.engine import regime_classifier as classifier_module
from regime_engine.engine.regime_classifier import RegimeClassifier
from regime_engine.engine.state import SymbolIndicatorState, SymbolStateRegistry
from regime_engine.indicators.adx import NEUTRAL_ADX
from regime_engine.models.market import Candle, MarketEnvironment, StrategyType

REQUIRED_INDICATORS = {
    "shortTermEma",
    "longTermEma",
    "atr",
    "atrPercentage",
    "atrChange",
    "shortTermSlope",
    "shortTermSlopeAngle",
    "longTermSlope",
    "longTermSlopeAngle",
    "slopePeriods",
    "adx",
    "priceLocationRatio",
}


def _envelope(count: int, half_range: float, start_index: int = 0, price: float = 1000.0) -> list[Candle]:
    return [
        Candle(
            timestamp=1_704_067_200_000 + (start_index + i) * 14_400_000,
            open=price,
            high=price + half_range,
            low=price - half_range,
            close=price,
        )
        for i in range(count)
    ]


@pytest.fixture()
def classifier() -> RegimeClassifier:
    return RegimeClassifier()


class TestInsufficientData:
    def test_below_minimum(self, classifier, make_flat_candles) -> None:
        result = classifier.analyze(make_flat_candles(59))
        assert result.environment == MarketEnvironment.UNKNOWN
        assert result.recommended_strategy == StrategyType.TREND_FOLLOWING
        assert result.indicators["note"] == "Insufficient data: 59 candles, 60 required"
        assert result.indicators["adx"] == NEUTRAL_ADX
        assert result.indicators["shortTermEma"] == 1000.0
        assert result.indicators["atr"] == pytest.approx(10.0)
        assert REQUIRED_INDICATORS <= result.indicators.keys()

    def test_at_minimum(self, classifier, make_flat_candles) -> None:
        result = classifier.analyze(make_flat_candles(60))
        assert result.environment != MarketEnvironment.UNKNOWN
        assert "note" not in result.indicators

    def test_empty(self, classifier) -> None:
        result = classifier.analyze([])
        assert result.environment == MarketEnvironment.UNKNOWN
        assert result.indicators["shortTermEma"] == 0.0

    def test_minimum_follows_settings(self, make_flat_candles) -> None:
        classifier = RegimeClassifier(RegimeSettings(long_term_ema=30))
        assert classifier.analyze(make_flat_candles(40)).environment != MarketEnvironment.UNKNOWN


class TestTrends:
    def test_strong_uptrend(self, classifier, rising_candles) -> None:
        result = classifier.analyze(rising_candles)
        assert result.environment == MarketEnvironment.STRONG_UPTREND
        assert result.recommended_strategy == StrategyType.DONCHIAN_BREAKOUT
        assert result.indicators["bullTrend"] is True
        assert result.indicators["slopesAligned"] is True
        assert result.indicators["shortTermSlope"] > 0
        assert result.indicators["adx"] == pytest.approx(100.0)

    def test_strong_downtrend(self, classifier, falling_candles) -> None:
        result = classifier.analyze(falling_candles)
        assert result.environment == MarketEnvironment.STRONG_DOWNTREND
        assert result.recommended_strategy == StrategyType.DONCHIAN_BREAKOUT
        assert result.indicators["bearTrend"] is True
        assert result.indicators["shortTermSlope"] < 0

    def test_overextension_downgrades_strong_trend(self, rising_candles) -> None:
        classifier = RegimeClassifier(RegimeSettings(very_strong_adx=101.0))
        result = classifier.analyze(rising_candles)
        assert result.environment == MarketEnvironment.UPTREND
        assert result.recommended_strategy == StrategyType.TREND_FOLLOWING
        assert result.indicators["overextended"] is True
        assert result.indicators["priceLocationRatio"] > 1.05

    def test_weak_uptrend(self, rising_candles) -> None:
        settings = RegimeSettings(trend_slope_threshold=100.0, weak_trend_multiplier=0.5)
        result = RegimeClassifier(settings).analyze(rising_candles)
        assert result.environment == MarketEnvironment.WEAK_UPTREND
        assert result.recommended_strategy == StrategyType.TREND_FOLLOWING

    @pytest.mark.parametrize(
        ("closes", "environment"),
        [
            ([100.0 + i for i in range(70)], MarketEnvironment.UPTREND),
            ([300.0 - i for i in range(70)], MarketEnvironment.DOWNTREND),
        ],
    )
    def test_ordinary_trend_without_strong_adx(
        self, make_candles, closes: list[float], environment: MarketEnvironment
    ) -> None:
        # ADX falls back to the neutral (modest) band with this history length
        settings = RegimeSettings(trend_slope_threshold=80.0, adx_period=40)
        result = RegimeClassifier(settings).analyze(make_candles(closes))
        assert result.indicators["adxFallback"] is True
        assert result.environment == environment
        assert result.recommended_strategy == StrategyType.TREND_FOLLOWING

    def test_weak_downtrend(self, falling_candles) -> None:
        settings = RegimeSettings(trend_slope_threshold=100.0, weak_trend_multiplier=0.5)
        result = RegimeClassifier(settings).analyze(falling_candles)
        assert result.environment == MarketEnvironment.WEAK_DOWNTREND
        assert result.recommended_strategy == StrategyType.TREND_FOLLOWING

    def test_weak_trend_against_price_location_is_range_trading(
        self, classifier, make_candles
    ) -> None:
        # Long decline, then a short rebound that stays below the long EMA
        closes = [300.0 - 2 * i for i in range(100)] + [102.0 + 2 * k for k in range(1, 13)]
        result = classifier.analyze(make_candles(closes))
        assert result.indicators["shortTermSlope"] > 0
        assert result.indicators["priceLocationRatio"] < 1.0
        assert result.indicators["emaCrossover"] is False
        assert result.environment == MarketEnvironment.WEAK_UPTREND
        assert result.recommended_strategy == StrategyType.RANGE_TRADING

    def test_slope_periods_widen_in_low_volatility(self, classifier, rising_candles) -> None:
        result = classifier.analyze(rising_candles)
        assert result.indicators["atrPercentage"] < 3.0
        assert result.indicators["slopePeriods"] == 8


class TestRanges:
    def test_flat_market_is_range(self, classifier, make_flat_candles) -> None:
        result = classifier.analyze(make_flat_candles(80))
        assert result.environment == MarketEnvironment.RANGE
        assert result.recommended_strategy == StrategyType.RANGE_TRADING
        assert result.indicators["lowVolatility"] is True

    def test_wide_flat_market_is_mean_revert(self, classifier) -> None:
        result = classifier.analyze(_envelope(80, half_range=35.0))
        assert result.indicators["atrPercentage"] == pytest.approx(7.0)
        assert result.environment == MarketEnvironment.RANGE
        assert result.recommended_strategy == StrategyType.MEAN_REVERT

    def test_zero_range_uses_atr_fallback(self, classifier) -> None:
        result = classifier.analyze(_envelope(80, half_range=0.0))
        assert result.indicators["atr"] == pytest.approx(20.0)
        assert result.indicators["atrFallback"] is True
        assert result.environment == MarketEnvironment.RANGE


class TestNoisyFlatMarket:
    @pytest.mark.parametrize("seed", range(10))
    def test_small_noise_is_range(self, classifier, make_candles, seed: int) -> None:
        rng = random.Random(seed)
        closes = [1000.0 + rng.uniform(-0.2, 0.2) for _ in range(100)]
        result = classifier.analyze(make_candles(closes, wick=0.1))
        assert result.environment == MarketEnvironment.RANGE
        assert result.recommended_strategy == StrategyType.RANGE_TRADING

    def test_noise_slope_is_reported_but_not_significant(self, classifier, make_candles) -> None:
        rng = random.Random(7)
        closes = [1000.0 + rng.uniform(-0.2, 0.2) for _ in range(100)]
        result = classifier.analyze(make_candles(closes, wick=0.1))
        assert result.indicators["shortTermSlope"] != 0.0
        assert result.indicators["slopeSignificant"] is False
        assert abs(result.indicators["shortTermMove"]) < result.indicators["atr"]

    def test_move_ratio_is_configurable(self, make_candles) -> None:
        rng = random.Random(7)
        closes = [1000.0 + rng.uniform(-0.2, 0.2) for _ in range(100)]
        settings = RegimeSettings(flat_move_atr_ratio=0.0)
        result = RegimeClassifier(settings).analyze(make_candles(closes, wick=0.1))
        assert result.indicators["slopeSignificant"] is True
        assert result.environment != MarketEnvironment.RANGE


class TestBreakoutScenario:
    def test_range_then_jump_turns_into_uptrend(self, classifier, make_candles) -> None:
        rng = random.Random(3)
        closes = [1000.0 + rng.uniform(-1.0, 1.0) for _ in range(150)]
        price = closes[-1] * 1.05
        closes.append(price)
        for _ in range(40):
            price *= 1 + rng.uniform(0.005, 0.02)
            closes.append(price)
        candles = make_candles(closes)
        registry = SymbolStateRegistry()

        before = classifier.analyze_symbol("BTCUSDT", candles[:150], registry)
        after = classifier.analyze_symbol("BTCUSDT", candles, registry)

        assert before.environment in (MarketEnvironment.RANGE, MarketEnvironment.UNKNOWN)
        assert after.environment.is_uptrend
        assert after.indicators["shortTermSlope"] > 0


class TestVolatilityOverride:
    def test_atr_expansion_forces_emergency(self, classifier) -> None:
        candles = _envelope(70, half_range=0.5) + _envelope(10, half_range=20.0, start_index=70)
        result = classifier.analyze(candles)
        assert result.indicators["atrChange"] > 2.0
        assert result.indicators["highVolatility"] is True
        assert result.environment == MarketEnvironment.RANGE
        assert result.recommended_strategy == StrategyType.EMERGENCY

    def test_stable_atr_keeps_strategy(self, classifier, make_flat_candles) -> None:
        result = classifier.analyze(make_flat_candles(80))
        assert result.indicators["atrChange"] == pytest.approx(1.0)
        assert result.indicators["highVolatility"] is False


class TestFallbacks:
    def test_adx_fallback_when_period_exceeds_history(self, make_candles) -> None:
        classifier = RegimeClassifier(RegimeSettings(adx_period=40))
        result = classifier.analyze(make_candles([100.0 + i for i in range(70)]))
        assert result.indicators["adx"] == NEUTRAL_ADX
        assert result.indicators["adxFallback"] is True

    def test_unexpected_error_yields_unknown(
        self, classifier, monkeypatch: pytest.MonkeyPatch, rising_candles
    ) -> None:
        def boom(candles, period):
            raise RuntimeError("boom")

        monkeypatch.setattr(classifier_module, "compute_adx", boom)
        result = classifier.analyze(rising_candles)
        assert result.environment == MarketEnvironment.UNKNOWN
        assert result.recommended_strategy == StrategyType.TREND_FOLLOWING
        assert result.error == "boom"
        assert result.timestamp == rising_candles[-1].timestamp


class TestResultShape:
    def test_required_indicators_present(self, classifier, random_walk_candles) -> None:
        result = classifier.analyze(random_walk_candles)
        assert REQUIRED_INDICATORS <= result.indicators.keys()
        assert result.error is None

    def test_timestamp_is_last_candle(self, classifier, rising_candles) -> None:
        assert classifier.analyze(rising_candles).timestamp == rising_candles[-1].timestamp

    def test_incremental_state_matches_fresh_analysis(self, classifier, random_walk_candles) -> None:
        state = SymbolIndicatorState("BTCUSDT")
        for end in (60, 90, 120, 150):
            window = random_walk_candles[:end]
            incremental = classifier.analyze(window, state)
            fresh = classifier.analyze(window)
            assert incremental.environment == fresh.environment
            assert incremental.recommended_strategy == fresh.recommended_strategy
            for key in ("shortTermEma", "longTermEma", "atr", "shortTermSlope", "adx"):
                assert incremental.indicators[key] == pytest.approx(fresh.indicators[key], rel=1e-9)


class TestAnalyzeSymbol:
    def test_audit_event_on_environment_change(
        self, classifier, monkeypatch: pytest.MonkeyPatch, make_flat_candles, rising_candles
    ) -> None:
        events: list[tuple[str, str, str, dict]] = []

        def record(symbol, environment, strategy, **kwargs):
            events.append((symbol, environment, strategy, kwargs))

        monkeypatch.setattr(classifier_module, "log_regime_event", record)
        registry = SymbolStateRegistry()

        classifier.analyze_symbol("BTCUSDT", make_flat_candles(80), registry)
        classifier.analyze_symbol("BTCUSDT", make_flat_candles(80), registry)
        classifier.analyze_symbol("BTCUSDT", rising_candles, registry)

        assert [e[1] for e in events] == ["range", "strong_uptrend"]
        assert events[0][3]["previous"] is None
        assert events[1][3]["previous"] == "range"

    def test_registry_state_follows_classifier_settings(self, rising_candles) -> None:
        classifier = RegimeClassifier(RegimeSettings(long_term_ema=30))
        registry = SymbolStateRegistry()

        via_registry = classifier.analyze_symbol("BTCUSDT", rising_candles, registry)
        fresh = classifier.analyze(rising_candles)

        assert via_registry.environment == fresh.environment
        for key in ("shortTermEma", "longTermEma", "atr", "longTermSlope"):
            assert via_registry.indicators[key] == pytest.approx(fresh.indicators[key], rel=1e-9)

    def test_symbols_keep_separate_state(self, classifier, rising_candles, falling_candles) -> None:
        registry = SymbolStateRegistry()
        btc = classifier.analyze_symbol("BTCUSDT", rising_candles, registry)
        eth = classifier.analyze_symbol("ETHUSDT", falling_candles, registry)

        assert btc.environment == MarketEnvironment.STRONG_UPTREND
        assert eth.environment == MarketEnvironment.STRONG_DOWNTREND
        assert registry.get("BTCUSDT").last_environment == MarketEnvironment.STRONG_UPTREND
        assert registry.get("ETHUSDT").last_environment == MarketEnvironment.STRONG_DOWNTREND
