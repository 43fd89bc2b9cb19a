"""Per-symbol indicator state and calculator lifecycle management.

Each symbol gets its own EMA/ATR calculators. Calculators hold a single
period/value pair, so sharing one instance between symbols would mix
their histories; callers keep one ``SymbolIndicatorState`` per symbol,
usually through a ``SymbolStateRegistry``.
"""

from __future__ import annotations

from collections.abc import Iterator, Sequence
from typing import TYPE_CHECKING

from pydantic import BaseModel

from regime_engine.config.settings import RegimeSettings
from regime_engine.core.logging import get_logger
from regime_engine.indicators.atr import IncrementalATR
from regime_engine.indicators.ema import IncrementalEMA
from regime_engine.models.indicator import IndicatorReading

if TYPE_CHECKING:
    from regime_engine.models.market import Candle, MarketEnvironment

log = get_logger(__name__)


class IndicatorSnapshot(BaseModel):
    """Read-only copy of a symbol's incremental indicator values."""

    short_ema: float
    long_ema: float
    atr: IndicatorReading
    candles_processed: int

    model_config = {"frozen": True}


class SymbolIndicatorState:
    """Owns the incremental EMA/ATR calculators of one symbol.

    :meth:`sync` seeds the calculators from the full history on first use
    and afterwards folds in only the candles appended since the previous
    call. Calls must follow candle-timestamp order.
    """

    def __init__(self, symbol: str = "", settings: RegimeSettings | None = None) -> None:
        self.symbol = symbol
        self._settings = settings or RegimeSettings()
        self.short_ema: IncrementalEMA | None = None
        self.long_ema: IncrementalEMA | None = None
        self.atr: IncrementalATR | None = None
        self.last_environment: MarketEnvironment | None = None
        self._processed = 0
        self._last_candle: Candle | None = None

    def configure(
        self, short_period: int, long_period: int, atr_period: int
    ) -> tuple[IncrementalEMA, IncrementalEMA, IncrementalATR]:
        """Recreate calculators whose period changed and return all three."""
        changed = False
        short_ema, long_ema, atr = self.short_ema, self.long_ema, self.atr
        if short_ema is None or short_ema.period != short_period:
            short_ema = self.short_ema = IncrementalEMA(short_period)
            changed = True
        if long_ema is None or long_ema.period != long_period:
            long_ema = self.long_ema = IncrementalEMA(long_period)
            changed = True
        if atr is None or atr.period != atr_period:
            atr = self.atr = IncrementalATR(
                atr_period,
                default_atr_percentage=self._settings.default_atr_percentage,
                min_atr_value=self._settings.min_atr_value,
            )
            changed = True

        if changed:
            if self._processed:
                log.info(
                    "indicator_calculators_rebuilt",
                    symbol=self.symbol,
                    short_period=short_period,
                    long_period=long_period,
                    atr_period=atr_period,
                )
            self._processed = 0
            self._last_candle = None
        return short_ema, long_ema, atr

    def sync(
        self, candles: Sequence[Candle], settings: RegimeSettings | None = None
    ) -> IndicatorSnapshot:
        """Bring the calculators up to date with ``candles`` and snapshot them.

        ``settings`` replaces the state's own settings when given and
        different; calculators are then rebuilt from the full history.
        """
        if settings is not None and settings != self._settings:
            self._settings = settings
            self.atr = None
        short_ema, long_ema, atr = self.configure(
            self._settings.short_term_ema,
            self._settings.long_term_ema,
            self._settings.atr_period,
        )

        count = len(candles)
        if count == 0:
            self._reset_values()
        elif self._needs_reinitialize(candles):
            if self._processed:
                log.info(
                    "indicator_state_resynced",
                    symbol=self.symbol,
                    processed=self._processed,
                    candles=count,
                )
            closes = [c.close for c in candles]
            short_ema.initialize(closes)
            long_ema.initialize(closes)
            atr.initialize(candles)
            log.debug(
                "indicator_state_initialized",
                symbol=self.symbol,
                candles=count,
                short_ema=short_ema.value,
                long_ema=long_ema.value,
                atr=atr.value,
            )
        else:
            for candle in candles[self._processed :]:
                short_ema.update(candle.close)
                long_ema.update(candle.close)
                atr.update(candle)

        self._processed = count
        self._last_candle = candles[-1] if candles else None
        return self.snapshot()

    def snapshot(self) -> IndicatorSnapshot:
        atr_reading = self.atr.reading if self.atr is not None else None
        return IndicatorSnapshot(
            short_ema=self.short_ema.value if self.short_ema is not None else 0.0,
            long_ema=self.long_ema.value if self.long_ema is not None else 0.0,
            atr=atr_reading or IndicatorReading.fallback(0.0, "uninitialized"),
            candles_processed=self._processed,
        )

    def reset(self) -> None:
        """Drop all calculator instances; the next sync starts from scratch."""
        self.short_ema = None
        self.long_ema = None
        self.atr = None
        self.last_environment = None
        self._processed = 0
        self._last_candle = None

    @property
    def is_initialized(self) -> bool:
        return self._processed > 0

    @property
    def candles_processed(self) -> int:
        return self._processed

    def _needs_reinitialize(self, candles: Sequence[Candle]) -> bool:
        if self._processed == 0 or self._last_candle is None:
            return True
        if len(candles) < self._processed:
            return True
        return candles[self._processed - 1] != self._last_candle

    def _reset_values(self) -> None:
        for calculator in (self.short_ema, self.long_ema, self.atr):
            if calculator is not None:
                calculator.reset()


class SymbolStateRegistry:
    """Holds one ``SymbolIndicatorState`` per symbol."""

    def __init__(self, settings: RegimeSettings | None = None) -> None:
        self._settings = settings or RegimeSettings()
        self._states: dict[str, SymbolIndicatorState] = {}

    def get(self, symbol: str) -> SymbolIndicatorState:
        state = self._states.get(symbol)
        if state is None:
            state = SymbolIndicatorState(symbol, self._settings)
            self._states[symbol] = state
        return state

    def reset(self, symbol: str | None = None) -> None:
        """Reset one symbol's calculators, or every symbol's when ``symbol`` is None."""
        if symbol is None:
            for state in self._states.values():
                state.reset()
            return
        state = self._states.get(symbol)
        if state is not None:
            state.reset()

    def remove(self, symbol: str) -> None:
        self._states.pop(symbol, None)

    @property
    def symbols(self) -> list[str]:
        return sorted(self._states)

    def __contains__(self, symbol: object) -> bool:
        return symbol in self._states

    def __len__(self) -> int:
        return len(self._states)

    def __iter__(self) -> Iterator[SymbolIndicatorState]:
        return iter(self._states.values())
