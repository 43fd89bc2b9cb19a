"""Regime engine: per-symbol indicator state, classification and weighting."""

from __future__ import annotations

from regime_engine.engine.allocation import volatility_weights, volatility_weights_from_source
from regime_engine.engine.regime_classifier import RegimeClassifier
from regime_engine.engine.state import (
    IndicatorSnapshot,
    SymbolIndicatorState,
    SymbolStateRegistry,
)

__all__ = [
    "IndicatorSnapshot",
    "RegimeClassifier",
    "SymbolIndicatorState",
    "SymbolStateRegistry",
    "volatility_weights",
    "volatility_weights_from_source",
]
