"""CurveMM — application configuration.

Loads .env variables into a typed settings object and reads the persisted
engines file.
"""

import json
import os
import pathlib
from dataclasses import dataclass, field
from typing import Any, Optional

from dotenv import load_dotenv

from curvemm.models.wallet import WalletInfo


_REQUIRED_VARS = [
    "SOLANA_RPC_URL",
]


@dataclass(frozen=True)
class Settings:
    """Process-wide settings loaded from environment variables."""

    rpc_url: str
    market_api_url: str
    tick_timeout_seconds: float
    log_capacity: int
    log_level: str
    api_port: int
    engines_path: str
    chain_adapter: Optional[str] = None  # "module:attr" factory
    key_store: Optional[str] = None  # "module:attr" factory


@dataclass(frozen=True)
class EngineSpec:
    """One engine entry from the persisted engines file."""

    token_mint: str
    owner: str = "default"
    preset: Optional[str] = None
    config: dict[str, Any] = field(default_factory=dict)
    wallets: list[WalletInfo] = field(default_factory=list)


def _env_number(name: str, default: str, cast):
    raw = os.environ.get(name, default)
    try:
        return cast(raw)
    except ValueError:
        raise ValueError(f"Environment variable {name} must be numeric, got {raw!r}")


def load_settings(env_path: str | None = None) -> Settings:
    """Load settings from environment variables.

    Raises ``ValueError`` with a message naming the missing variable when a
    required variable is absent.
    """
    load_dotenv(dotenv_path=env_path)

    missing = [v for v in _REQUIRED_VARS if not os.environ.get(v)]
    if missing:
        raise ValueError(
            f"Missing required environment variable(s): {', '.join(missing)}"
        )

    return Settings(
        rpc_url=os.environ["SOLANA_RPC_URL"],
        market_api_url=os.environ.get(
            "MARKET_API_URL", "https://frontend-api.pump.fun"
        ).rstrip("/"),
        tick_timeout_seconds=_env_number("TICK_TIMEOUT_SECONDS", "15", float),
        log_capacity=_env_number("LOG_CAPACITY", "100", int),
        log_level=os.environ.get("LOG_LEVEL", "INFO"),
        api_port=_env_number("API_PORT", "8080", int),
        engines_path=os.environ.get("ENGINES_PATH", "curvemm.json"),
        chain_adapter=os.environ.get("CHAIN_ADAPTER") or None,
        key_store=os.environ.get("KEY_STORE") or None,
    )


def load_engine_specs(path: str | pathlib.Path) -> list[EngineSpec]:
    """Read the persisted engines file.

    A missing file yields an empty list; a malformed one raises
    ``ValueError``.
    """
    p = pathlib.Path(path)
    if not p.exists():
        return []
    try:
        data = json.loads(p.read_text(encoding="utf-8"))
    except json.JSONDecodeError as exc:
        raise ValueError(f"{p} is not valid JSON: {exc}") from exc

    specs: list[EngineSpec] = []
    for entry in data.get("engines", []):
        if not entry.get("token_mint"):
            raise ValueError(f"{p}: every engine needs a token_mint")
        specs.append(
            EngineSpec(
                token_mint=entry["token_mint"],
                owner=entry.get("owner", "default"),
                preset=entry.get("preset"),
                config=dict(entry.get("config", {})),
                wallets=[WalletInfo.from_dict(w) for w in entry.get("wallets", [])],
            )
        )
    return specs
