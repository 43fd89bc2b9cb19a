"""Cross-symbol volatility weighting: inverse ATR% allocation weights."""

from __future__ import annotations

import math
from collections.abc import Iterable, Mapping, Sequence
from typing import TYPE_CHECKING

from regime_engine.config.settings import RegimeSettings
from regime_engine.core.logging import get_logger
from regime_engine.engine.regime_classifier import RegimeClassifier
from regime_engine.engine.state import SymbolIndicatorState

if TYPE_CHECKING:
    from regime_engine.interfaces import CandleSource
    from regime_engine.models.market import Candle

log = get_logger(__name__)


def volatility_weights(
    symbol_candles: Mapping[str, Sequence[Candle]],
    settings: RegimeSettings | None = None,
    timeframe_hours: float = 4.0,
) -> dict[str, float]:
    """Allocation weights proportional to 1 / ATR% per symbol.

    Each symbol is classified with its own throw-away indicator state, so
    nothing is retained between calls. ATR% at or below the configured
    floor (0.1 by default) is clamped to the floor.

    Args:
        symbol_candles: Candle history per symbol, oldest first.
        settings: Regime settings; defaults when omitted.
        timeframe_hours: Bar length, passed through to the classifier.

    Returns:
        Weight per symbol, summing to 1.0. Empty when no symbols are given.
    """
    settings = settings or RegimeSettings()
    classifier = RegimeClassifier(settings)
    floor = settings.min_atr_percentage

    inverse: dict[str, float] = {}
    for symbol, candles in symbol_candles.items():
        state = SymbolIndicatorState(symbol, settings)
        result = classifier.analyze(candles, state, timeframe_hours)
        raw = result.indicators.get("atrPercentage")
        atr_pct = float(raw) if isinstance(raw, (int, float)) else 0.0

        if not math.isfinite(atr_pct) or atr_pct <= floor:
            log.warning(
                "atr_percentage_clamped",
                symbol=symbol,
                atr_percentage=atr_pct,
                floor=floor,
            )
            atr_pct = floor
        inverse[symbol] = 1.0 / atr_pct

    total = sum(inverse.values())
    if total <= 0:
        return {}

    weights = {symbol: value / total for symbol, value in inverse.items()}
    log.info("volatility_weights_computed", weights=weights)
    return weights


def volatility_weights_from_source(
    source: CandleSource,
    symbols: Iterable[str],
    settings: RegimeSettings | None = None,
    timeframe_hours: float = 4.0,
    limit: int | None = None,
) -> dict[str, float]:
    """Fetch candles for ``symbols`` from ``source`` and weight them."""
    symbol_candles = {symbol: source.get_candles(symbol, limit) for symbol in symbols}
    return volatility_weights(symbol_candles, settings, timeframe_hours)
