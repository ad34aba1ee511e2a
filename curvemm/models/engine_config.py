"""Engine configuration — defaults, presets, merge and validation.

Precedence when building a config: explicit override > persisted > preset >
default. Validation happens once, at merge time; downstream code trusts an
``EngineConfig`` instance.
"""

import dataclasses
import logging
import math
from dataclasses import dataclass
from typing import Any, Mapping, Optional

from curvemm.errors import ConfigInvalid

logger = logging.getLogger("curvemm")


@dataclass(frozen=True)
class EngineConfig:
    """Every tunable the strategy engine recognises for one token."""

    token_mint: str

    # Strategy toggles
    volume_bot_enabled: bool = False
    price_stabilizer_enabled: bool = False
    volume_farmer_enabled: bool = False
    fee_claimer_enabled: bool = False

    # Market-cap tiers (USD) and the share of holdings sold at each
    min_mc_to_sell: float = 250_000.0
    light_mc_threshold: float = 250_000.0
    medium_mc_threshold: float = 500_000.0
    heavy_mc_threshold: float = 1_000_000.0
    light_sell_percent: float = 6.0
    medium_sell_percent: float = 10.0
    heavy_sell_percent: float = 14.0

    # Volume strategies
    volume_farming_percent: float = 8.0
    min_net_volume_to_farm: float = 0.3  # SOL over the short window

    # Per-trade limits (SOL)
    max_buy_per_trade: float = 1.0
    max_sell_per_trade: float = 2.0
    min_trade_size: float = 0.05

    # Timing
    cooldown_seconds: int = 60
    claim_interval_seconds: int = 3600
    poll_interval_seconds: int = 15

    # Per-wallet exposure
    max_supply_percent: float = 2.0
    max_sol_per_wallet: float = 10.0

    # Footprint jitter: amounts vary by up to +/- amount_variance_percent and
    # the poll sleep stretches by up to interval_variance_percent
    amount_variance_percent: float = 0.0
    interval_variance_percent: float = 0.0

    slippage_bps: int = 1000
    dry_run: bool = True

    def to_dict(self) -> dict:
        return dataclasses.asdict(self)

    def enabled_strategies(self) -> list[str]:
        flags = {
            "price_stabilizer": self.price_stabilizer_enabled,
            "volume_farmer": self.volume_farmer_enabled,
            "volume_bot": self.volume_bot_enabled,
            "fee_claimer": self.fee_claimer_enabled,
        }
        return [name for name, on in flags.items() if on]


PRESETS: dict[str, dict[str, Any]] = {
    "conservative": {
        "min_mc_to_sell": 500_000.0,
        "light_mc_threshold": 500_000.0,
        "medium_mc_threshold": 1_000_000.0,
        "heavy_mc_threshold": 2_000_000.0,
        "light_sell_percent": 4.0,
        "medium_sell_percent": 7.0,
        "heavy_sell_percent": 10.0,
        "volume_farming_percent": 5.0,
        "cooldown_seconds": 120,
    },
    "aggressive": {
        "min_mc_to_sell": 150_000.0,
        "light_mc_threshold": 150_000.0,
        "medium_mc_threshold": 300_000.0,
        "heavy_mc_threshold": 500_000.0,
        "light_sell_percent": 8.0,
        "medium_sell_percent": 12.0,
        "heavy_sell_percent": 16.0,
        "volume_farming_percent": 10.0,
        "cooldown_seconds": 30,
    },
    "stealth": {
        "slippage_bps": 1500,
        "cooldown_seconds": 90,
        "amount_variance_percent": 15.0,
        "interval_variance_percent": 50.0,
    },
}

_FIELD_TYPES: dict[str, type] = {
    f.name: f.type for f in dataclasses.fields(EngineConfig)
}


# ── Merge ─────────────────────────────────────────────────────────────────


def _coerce(name: str, value: Any) -> Any:
    """Check *value* against the declared type of field *name*."""
    if name not in _FIELD_TYPES:
        raise ConfigInvalid([f"unknown config key: {name}"])
    expected = _FIELD_TYPES[name]
    if expected is bool:
        if not isinstance(value, bool):
            raise ConfigInvalid([f"{name} must be a boolean"])
        return value
    if expected in (int, float):
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            raise ConfigInvalid([f"{name} must be a number"])
        if not math.isfinite(value):
            raise ConfigInvalid([f"{name} must be finite"])
        if expected is int:
            if value != int(value):
                raise ConfigInvalid([f"{name} must be a whole number"])
            return int(value)
        return float(value)
    if not isinstance(value, str):
        raise ConfigInvalid([f"{name} must be a string"])
    return value


def _layer(values: Optional[Mapping[str, Any]]) -> dict[str, Any]:
    if not values:
        return {}
    return {name: _coerce(name, value) for name, value in values.items()}


def merge_config(
    token_mint: str,
    persisted: Optional[Mapping[str, Any]] = None,
    override: Optional[Mapping[str, Any]] = None,
    preset: Optional[str] = None,
) -> EngineConfig:
    """Build a validated ``EngineConfig``.

    Args:
        token_mint: Mint address of the managed token.
        persisted: Values stored for this engine (e.g. the engines file).
        override: Values supplied explicitly by the caller; win over all.
        preset: Optional preset name applied on top of the defaults.

    Returns:
        The merged config.

    Raises:
        ConfigInvalid: On unknown keys, wrong types, an unknown preset, or
            any validation error.
    """
    merged: dict[str, Any] = {}
    if preset:
        if preset not in PRESETS:
            raise ConfigInvalid([f"unknown preset: {preset}"])
        merged.update(PRESETS[preset])
    merged.update(_layer(persisted))
    merged.update(_layer(override))
    merged["token_mint"] = _coerce("token_mint", merged.get("token_mint", token_mint))

    config = EngineConfig(**merged)
    _check(config)
    return config


def apply_update(current: EngineConfig, partial: Mapping[str, Any]) -> EngineConfig:
    """Merge *partial* into *current*, all or nothing.

    Raises:
        ConfigInvalid: When any key is bad or the result fails validation.
            *current* is left untouched either way.
    """
    changes = _layer(partial)
    if "token_mint" in changes and changes["token_mint"] != current.token_mint:
        raise ConfigInvalid(["token_mint cannot change on a running engine"])
    updated = dataclasses.replace(current, **changes)
    _check(updated)
    return updated


def _check(config: EngineConfig) -> None:
    errors, warnings = validate_config(config)
    for warning in warnings:
        logger.warning("Config %s: %s", config.token_mint[:8], warning)
    if errors:
        raise ConfigInvalid(errors)


# ── Validation ────────────────────────────────────────────────────────────


def validate_config(config: EngineConfig) -> tuple[list[str], list[str]]:
    """Return ``(errors, warnings)`` for *config*.

    Errors make the config unusable; warnings flag settings that are legal
    but risky.
    """
    errors: list[str] = []
    warnings: list[str] = []

    if not config.token_mint:
        errors.append("token_mint is required")

    if config.light_mc_threshold > config.medium_mc_threshold:
        errors.append("light_mc_threshold must not exceed medium_mc_threshold")
    if config.medium_mc_threshold > config.heavy_mc_threshold:
        errors.append("medium_mc_threshold must not exceed heavy_mc_threshold")
    if not (
        config.light_sell_percent
        < config.medium_sell_percent
        < config.heavy_sell_percent
    ):
        errors.append("sell percents must increase from light to medium to heavy")

    for name in (
        "light_sell_percent",
        "medium_sell_percent",
        "heavy_sell_percent",
        "volume_farming_percent",
        "max_supply_percent",
    ):
        value = getattr(config, name)
        if value <= 0 or value > 100:
            errors.append(f"{name} must be within (0, 100]")
    if config.max_supply_percent > 5:
        errors.append("max_supply_percent above 5% is too risky")

    for name in (
        "max_buy_per_trade",
        "max_sell_per_trade",
        "min_trade_size",
        "max_sol_per_wallet",
    ):
        if getattr(config, name) <= 0:
            errors.append(f"{name} must be positive")
    if config.min_trade_size > min(config.max_buy_per_trade, config.max_sell_per_trade):
        errors.append("min_trade_size exceeds a per-trade cap")

    if config.cooldown_seconds < 0:
        errors.append("cooldown_seconds must not be negative")
    if config.claim_interval_seconds < 0:
        errors.append("claim_interval_seconds must not be negative")
    if config.poll_interval_seconds < 1:
        errors.append("poll_interval_seconds must be at least 1")
    if not 0 <= config.slippage_bps <= 10_000:
        errors.append("slippage_bps must be within [0, 10000]")
    if config.min_mc_to_sell < 0 or config.min_net_volume_to_farm < 0:
        errors.append("volume and market-cap floors must not be negative")
    if not 0 <= config.amount_variance_percent <= 50:
        errors.append("amount_variance_percent must be within [0, 50]")
    if not 0 <= config.interval_variance_percent <= 100:
        errors.append("interval_variance_percent must be within [0, 100]")

    if config.min_mc_to_sell < 50_000:
        warnings.append("min_mc_to_sell below 50k may sell too early")
    if config.light_sell_percent > 15:
        warnings.append("light_sell_percent above 15% may crash the price")
    if config.heavy_sell_percent > 20:
        warnings.append("heavy_sell_percent above 20% is very aggressive")
    if config.max_sell_per_trade > 5:
        warnings.append("max_sell_per_trade above 5 SOL may cause large dumps")
    if 0 <= config.cooldown_seconds < 30:
        warnings.append("cooldown below 30s may look like bot activity")

    return errors, warnings
