"""Market data models — snapshots, indicators and phase labels."""

from dataclasses import dataclass
from datetime import datetime
from enum import Enum


class Trend(str, Enum):
    BULLISH = "bullish"
    BEARISH = "bearish"
    NEUTRAL = "neutral"


class MarketPhase(str, Enum):
    """Discrete market classification that licenses strategies."""

    ACCUMULATING = "accumulating"
    TRENDING_UP = "trending_up"
    DISTRIBUTION = "distribution"
    TRENDING_DOWN = "trending_down"
    CONSOLIDATING = "consolidating"


@dataclass(frozen=True)
class TradePrint:
    """A single executed trade on the venue, in SOL and whole tokens."""

    timestamp: float  # unix seconds
    sol_amount: float
    token_amount: float
    is_buy: bool

    @property
    def price(self) -> float:
        if self.token_amount <= 0:
            return 0.0
        return self.sol_amount / self.token_amount


@dataclass(frozen=True)
class MarketSnapshot:
    """Normalized market state for one token at one poll."""

    token_mint: str
    timestamp: datetime
    price: float  # SOL per token
    market_cap_usd: float
    volume_24h: float  # SOL
    volume_short: float  # SOL, last 5 minutes
    net_volume_short: float  # buys minus sells, last 5 minutes
    net_volume_long: float  # buys minus sells, last 60 minutes
    holder_count: int
    bonding_complete: bool
    total_supply: float  # whole tokens
    prices: tuple[float, ...]  # oldest first, ends with the current price


@dataclass(frozen=True)
class Indicators:
    """Indicator values computed atomically from one price series."""

    price: float
    ema_fast: float
    ema_medium: float
    ema_slow: float
    rsi: float
    fib_high: float
    fib_low: float
    fib_382: float
    fib_618: float
    trend: Trend
    in_golden_pocket: bool
    sample_size: int

    def to_dict(self) -> dict:
        return {
            "price": self.price,
            "ema_fast": self.ema_fast,
            "ema_medium": self.ema_medium,
            "ema_slow": self.ema_slow,
            "rsi": self.rsi,
            "fib_high": self.fib_high,
            "fib_low": self.fib_low,
            "fib_382": self.fib_382,
            "fib_618": self.fib_618,
            "trend": self.trend.value,
            "in_golden_pocket": self.in_golden_pocket,
            "sample_size": self.sample_size,
        }
