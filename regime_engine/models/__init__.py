from regime_engine.models.indicator import AdxBand, IndicatorReading, ReadingStatus
from regime_engine.models.market import AnalysisResult, Candle, MarketEnvironment, StrategyType

__all__ = [
    "AdxBand",
    "AnalysisResult",
    "Candle",
    "IndicatorReading",
    "MarketEnvironment",
    "ReadingStatus",
    "StrategyType",
]
