"""Incremental market-regime classification engine."""

from __future__ import annotations

from regime_engine.config.settings import RegimeSettings
from regime_engine.engine import (
    RegimeClassifier,
    SymbolIndicatorState,
    SymbolStateRegistry,
    volatility_weights,
)
from regime_engine.models import AnalysisResult, Candle, MarketEnvironment, StrategyType

__all__ = [
    "AnalysisResult",
    "Candle",
    "MarketEnvironment",
    "RegimeClassifier",
    "RegimeSettings",
    "StrategyType",
    "SymbolIndicatorState",
    "SymbolStateRegistry",
    "volatility_weights",
]
