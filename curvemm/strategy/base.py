"""Strategy protocol and per-tick decision context.

Strategies are synchronous decision functions: the engine gathers market
and wallet state, a strategy turns it into at most one ``TradeIntent``.
"""

from __future__ import annotations

import random
from dataclasses import dataclass
from datetime import datetime
from typing import Optional, Protocol, runtime_checkable

from curvemm.market.models import Indicators, MarketPhase, MarketSnapshot
from curvemm.models.engine_config import EngineConfig
from curvemm.models.trade import TradeIntent, TradeResult, Venue
from curvemm.models.wallet import WalletBalance, WalletInfo


@dataclass(frozen=True)
class TickContext:
    """Everything a strategy may look at when proposing a trade."""

    snapshot: MarketSnapshot
    indicators: Indicators
    phase: MarketPhase
    config: EngineConfig
    wallet: WalletInfo
    balance: WalletBalance
    venue: Venue
    now: datetime


@runtime_checkable
class StrategyProtocol(Protocol):
    """Interface that all strategies must satisfy."""

    name: str

    def cooldown_seconds(self, config: EngineConfig) -> float:
        """Minimum gap between two actions of this strategy."""
        ...

    def licensed(
        self, snapshot: MarketSnapshot, phase: MarketPhase, config: EngineConfig
    ) -> bool:
        """Whether market conditions allow this strategy to act at all."""
        ...

    def accepts_wallet(self, wallet: WalletInfo) -> bool:
        ...

    def prefers_wallet(self, wallet: WalletInfo) -> bool:
        """Whether *wallet* should be picked ahead of its round-robin turn."""
        ...

    def propose(self, ctx: TickContext) -> Optional[TradeIntent]:
        """Return a trade intent for ``ctx.wallet`` or ``None``."""
        ...

    def on_result(self, result: TradeResult) -> None:
        """Observe the outcome of this strategy's dispatched intent."""
        ...


class BaseStrategy:
    """Defaults shared by the built-in strategies."""

    name = "base"

    def __init__(self, rng: Optional[random.Random] = None) -> None:
        self.last_insight: dict = {}
        self.rng = rng or random.Random()

    def cooldown_seconds(self, config: EngineConfig) -> float:
        return float(config.cooldown_seconds)

    def licensed(
        self, snapshot: MarketSnapshot, phase: MarketPhase, config: EngineConfig
    ) -> bool:
        return True

    def accepts_wallet(self, wallet: WalletInfo) -> bool:
        return True

    def prefers_wallet(self, wallet: WalletInfo) -> bool:
        return False

    def propose(self, ctx: TickContext) -> Optional[TradeIntent]:
        raise NotImplementedError

    def on_result(self, result: TradeResult) -> None:
        return None


# ── Footprint jitter ─────────────────────────────────────────────────────


def randomized_amount(base: float, variance_percent: float, rng: random.Random) -> float:
    """*base* moved by a uniform draw within +/- *variance_percent*."""
    if variance_percent <= 0 or base <= 0:
        return base
    variance = base * variance_percent / 100.0
    return base + (rng.random() * 2 - 1) * variance


def randomized_delay(seconds: float, variance_percent: float, rng: random.Random) -> float:
    """*seconds* stretched by up to *variance_percent*; never shortened."""
    if variance_percent <= 0:
        return seconds
    return seconds * (1 + rng.random() * variance_percent / 100.0)
