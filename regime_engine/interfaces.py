"""Protocol interfaces for the regime engine's external collaborators.

The engine only consumes candles and configuration values; execution,
exchange connectivity and backtesting live outside this package.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Protocol, runtime_checkable

if TYPE_CHECKING:
    from regime_engine.models.market import Candle


@runtime_checkable
class ConfigSource(Protocol):
    """Protocol for configuration-value stores (``ConfigLoader`` and views)."""

    def get(self, dotted_key: str, default: Any = None) -> Any: ...


@runtime_checkable
class CandleSource(Protocol):
    """Protocol for time-ascending OHLCV candle providers."""

    def get_candles(self, symbol: str, limit: int | None = None) -> list[Candle]: ...

