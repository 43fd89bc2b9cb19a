"""TOML config loader with environment variable and per-symbol overrides."""

from __future__ import annotations

import os

try:
    import tomllib
except ModuleNotFoundError:
    import tomli as tomllib  # type: ignore[no-redef]
from pathlib import Path
from typing import Any

_MISSING = object()


class ConfigError(Exception):
    """Raised when config loading or validation fails."""


def _deep_merge(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    """Recursively merge override into base, returning a new dict."""
    result = dict(base)
    for key, value in override.items():
        if key in result and isinstance(result[key], dict) and isinstance(value, dict):
            result[key] = _deep_merge(result[key], value)
        else:
            result[key] = value
    return result


def _apply_env_overrides(config: dict[str, Any], prefix: str = "REGIME") -> dict[str, Any]:
    """Apply environment variable overrides.

    Env var naming: REGIME__section__key=value (double underscore separator).
    Nested keys: REGIME__market__slope_periods_default=7

    Top-level keys keep their case (REGIME__ATR_PERIOD=10); section and
    nested key names are matched case-insensitively against the loaded
    config and lower-cased when new.
    """
    result = _deep_merge({}, config)
    env_prefix = f"{prefix}__"

    for env_key, env_value in os.environ.items():
        if not env_key.startswith(env_prefix):
            continue

        parts = env_key[len(env_prefix) :].split("__")
        target = result
        for part in parts[:-1]:
            part = _match_key(target, part)
            if part not in target:
                target[part] = {}
            if isinstance(target[part], dict):
                target = target[part]
            else:
                break
        else:
            final_key = _match_key(target, parts[-1])
            target[final_key] = _coerce_value(env_value)

    return result


def _match_key(target: dict[str, Any], part: str) -> str:
    """Resolve an env var path segment to an existing key, ignoring case."""
    if part in target:
        return part
    for key in target:
        if key.lower() == part.lower():
            return key
    return part if part.isupper() else part.lower()


def _coerce_value(value: str) -> Any:
    """Coerce string env var value to appropriate Python type.

    Numeric conversion is attempted BEFORE boolean to avoid "0"/"1"
    being interpreted as False/True when they should be integers.
    """
    try:
        return int(value)
    except ValueError:
        pass
    try:
        return float(value)
    except ValueError:
        pass
    if value.lower() in ("true", "yes"):
        return True
    if value.lower() in ("false", "no"):
        return False
    return value


def _lookup(config: dict[str, Any], dotted_key: str) -> Any:
    current: Any = config
    for part in dotted_key.split("."):
        if isinstance(current, dict) and part in current:
            current = current[part]
        else:
            return _MISSING
    return current


class ConfigLoader:
    """Load and merge TOML config files with env var overrides."""

    def __init__(
        self,
        config_dir: str | Path = "config",
        env: str | None = None,
    ) -> None:
        self._config_dir = Path(config_dir)
        self._env = env or os.environ.get("REGIME_ENV", "development")
        self._config: dict[str, Any] = {}

    def load(self) -> dict[str, Any]:
        """Load config: default.toml → {env}.toml → env vars."""
        default_path = self._config_dir / "default.toml"
        if not default_path.exists():
            msg = f"Default config not found: {default_path}"
            raise ConfigError(msg)

        self._config = self._load_toml(default_path)

        env_path = self._config_dir / f"{self._env}.toml"
        if env_path.exists():
            env_config = self._load_toml(env_path)
            self._config = _deep_merge(self._config, env_config)

        self._config = _apply_env_overrides(self._config)
        return self._config

    def get(self, dotted_key: str, default: Any = None) -> Any:
        """Get a config value using dotted notation: 'market.slope_periods_default'."""
        if not self._config:
            self.load()

        value = _lookup(self._config, dotted_key)
        return default if value is _MISSING else value

    def require(self, dotted_key: str) -> Any:
        """Get a config value, raising ConfigError if missing."""
        value = self.get(dotted_key)
        if value is None:
            msg = f"Required config key missing: {dotted_key}"
            raise ConfigError(msg)
        return value

    def validate_keys(self, required_keys: list[str]) -> None:
        """Validate that all required keys exist."""
        missing = [k for k in required_keys if self.get(k) is None]
        if missing:
            msg = f"Missing required config keys: {', '.join(missing)}"
            raise ConfigError(msg)

    def validate_ranges(self) -> None:
        """Validate config value ranges for the indicator and regime parameters.

        Raises:
            ConfigError: If any period or threshold is out of valid range.
        """
        if not self._config:
            self.load()

        errors: list[str] = []

        for key in ("SHORT_TERM_EMA", "LONG_TERM_EMA", "ATR_PERIOD", "ADX_PERIOD"):
            period = self.get(key)
            if period is not None and (not isinstance(period, int) or period <= 0):
                errors.append(f"{key} must be a positive integer, got {period}")

        short_ema = self.get("SHORT_TERM_EMA")
        long_ema = self.get("LONG_TERM_EMA")
        if isinstance(short_ema, int) and isinstance(long_ema, int) and short_ema >= long_ema:
            errors.append(
                f"SHORT_TERM_EMA must be < LONG_TERM_EMA, got {short_ema} >= {long_ema}"
            )

        for key in ("TREND_SLOPE_THRESHOLD", "VOLATILITY_THRESHOLD", "ATR_PERCENTAGE_THRESHOLD"):
            value = self.get(key)
            if value is not None and value <= 0:
                errors.append(f"{key} must be > 0, got {value}")

        high_vol = self.get("market.slope_periods_high_vol_threshold")
        low_vol = self.get("market.slope_periods_low_vol_threshold")
        if high_vol is not None and low_vol is not None and low_vol >= high_vol:
            errors.append(
                "market.slope_periods_low_vol_threshold must be < "
                f"market.slope_periods_high_vol_threshold, got {low_vol} >= {high_vol}"
            )

        default_atr = self.get("risk.defaultAtrPercentage")
        if default_atr is not None and not (0 < default_atr <= 1):
            errors.append(f"risk.defaultAtrPercentage must be in (0, 1], got {default_atr}")

        min_atr = self.get("risk.minAtrValue")
        if min_atr is not None and not (0 <= min_atr < 1):
            errors.append(f"risk.minAtrValue must be in [0, 1), got {min_atr}")

        if errors:
            msg = "Config validation failed:\n  " + "\n  ".join(errors)
            raise ConfigError(msg)

    def for_symbol(self, symbol: str) -> SymbolConfigView:
        """Return a view that overlays ``[symbols.<symbol>]`` on the base config."""
        if not self._config:
            self.load()
        overrides = self._config.get("symbols", {}).get(symbol, {})
        return SymbolConfigView(self, symbol, overrides)

    @property
    def config(self) -> dict[str, Any]:
        if not self._config:
            self.load()
        return self._config

    @staticmethod
    def _load_toml(path: Path) -> dict[str, Any]:
        with open(path, "rb") as f:
            return tomllib.load(f)


class SymbolConfigView:
    """Read-only config view with per-symbol overrides applied first."""

    def __init__(self, base: ConfigLoader, symbol: str, overrides: dict[str, Any]) -> None:
        self._base = base
        self._overrides = overrides
        self.symbol = symbol

    def get(self, dotted_key: str, default: Any = None) -> Any:
        value = _lookup(self._overrides, dotted_key)
        if value is not _MISSING:
            return value
        return self._base.get(dotted_key, default)

    @property
    def has_overrides(self) -> bool:
        return bool(self._overrides)
