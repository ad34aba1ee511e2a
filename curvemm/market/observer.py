"""Market observer — polls the launchpad API into a ``MarketSnapshot``.

The coin endpoint is authoritative: if it cannot be read the venue counts
as unreachable. Recent trades and holder counts only enrich the snapshot;
when they fail the snapshot is built from what is available.
"""

import logging
import time
from datetime import datetime, timezone
from typing import Optional, Protocol

import httpx

from curvemm.errors import MarketUnavailable, TransientUpstream
from curvemm.market.models import MarketSnapshot, TradePrint
from curvemm.net import MAX_RETRIES, RETRY_BASE_DELAY, request_with_retry

logger = logging.getLogger("curvemm")

LAMPORTS_PER_SOL = 1_000_000_000
TOKEN_DECIMALS = 6
_TOKEN_UNIT = 10 ** TOKEN_DECIMALS

SHORT_WINDOW_SECONDS = 5 * 60
LONG_WINDOW_SECONDS = 60 * 60
DAY_SECONDS = 24 * 60 * 60
MAX_SERIES = 200


class HolderCounter(Protocol):
    async def get_holder_count(self, mint: str) -> int: ...


def curve_price(virtual_sol_reserves: float, virtual_token_reserves: float) -> float:
    """SOL per whole token from bonding-curve reserves in base units."""
    if virtual_token_reserves <= 0:
        return 0.0
    sol = virtual_sol_reserves / LAMPORTS_PER_SOL
    tokens = virtual_token_reserves / _TOKEN_UNIT
    return sol / tokens


def parse_trade(raw: dict) -> Optional[TradePrint]:
    """Convert one API trade record, or ``None`` when it is unusable."""
    try:
        timestamp = float(raw["timestamp"])
        # Some records carry milliseconds.
        if timestamp > 1e12:
            timestamp /= 1000.0
        return TradePrint(
            timestamp=timestamp,
            sol_amount=float(raw["sol_amount"]) / LAMPORTS_PER_SOL,
            token_amount=float(raw["token_amount"]) / _TOKEN_UNIT,
            is_buy=bool(raw["is_buy"]),
        )
    except (KeyError, TypeError, ValueError):
        return None


def summarize_trades(
    trades: list[TradePrint], now: float
) -> tuple[float, float, float, float]:
    """Return ``(volume_24h, volume_short, net_short, net_long)`` in SOL."""
    volume_24h = volume_short = net_short = net_long = 0.0
    for t in trades:
        age = now - t.timestamp
        signed = t.sol_amount if t.is_buy else -t.sol_amount
        if age <= DAY_SECONDS:
            volume_24h += t.sol_amount
        if age <= LONG_WINDOW_SECONDS:
            net_long += signed
        if age <= SHORT_WINDOW_SECONDS:
            volume_short += t.sol_amount
            net_short += signed
    return volume_24h, volume_short, net_short, net_long


class MarketObserver:
    """Async poller for a pump.fun-style frontend API."""

    def __init__(
        self,
        base_url: str = "https://frontend-api.pump.fun",
        holder_counter: Optional[HolderCounter] = None,
        trade_limit: int = MAX_SERIES,
        timeout: float = 10.0,
        max_retries: int = MAX_RETRIES,
        retry_delay: float = RETRY_BASE_DELAY,
    ) -> None:
        self._base_url = base_url.rstrip("/")
        self._holder_counter = holder_counter
        self._trade_limit = trade_limit
        self._timeout = timeout
        self._max_retries = max_retries
        self._retry_delay = retry_delay

    async def _get_json(self, url: str, **kwargs):
        resp = await request_with_retry(
            "get",
            url,
            label="Market",
            max_retries=self._max_retries,
            base_delay=self._retry_delay,
            timeout=self._timeout,
            **kwargs,
        )
        return resp.json()

    # ── Endpoints ────────────────────────────────────────────────────────

    async def fetch_coin(self, mint: str) -> dict:
        """Fetch the coin record; raises ``MarketUnavailable`` on failure."""
        url = f"{self._base_url}/coins/{mint}"
        try:
            data = await self._get_json(url)
        except (TransientUpstream, httpx.HTTPError, ValueError) as exc:
            raise MarketUnavailable(f"coin data unavailable for {mint}: {exc}") from exc
        if not isinstance(data, dict) or "virtual_sol_reserves" not in data:
            raise MarketUnavailable(f"coin data for {mint} is missing reserves")
        return data

    async def fetch_trades(self, mint: str) -> list[TradePrint]:
        """Fetch recent trades, oldest first. Failures yield an empty list."""
        url = f"{self._base_url}/trades/latest/{mint}"
        try:
            data = await self._get_json(url, params={"limit": self._trade_limit})
        except (TransientUpstream, httpx.HTTPError, ValueError) as exc:
            logger.warning("Trade history for %s unavailable: %s", mint[:8], exc)
            return []
        if isinstance(data, dict):
            data = [data]
        if not isinstance(data, list):
            return []
        trades = [t for t in (parse_trade(r) for r in data) if t is not None]
        trades.sort(key=lambda t: t.timestamp)
        return trades

    async def _holder_count(self, mint: str) -> int:
        if self._holder_counter is None:
            return 0
        try:
            return await self._holder_counter.get_holder_count(mint)
        except TransientUpstream as exc:
            logger.debug("Holder count for %s unavailable: %s", mint[:8], exc)
            return 0

    # ── Poll ─────────────────────────────────────────────────────────────

    async def poll(self, mint: str, now: Optional[float] = None) -> MarketSnapshot:
        """Build a fresh ``MarketSnapshot`` for *mint*.

        Args:
            mint: Token mint address.
            now: Unix time used for volume windows; defaults to the clock.

        Raises:
            MarketUnavailable: When the coin record cannot be fetched.
        """
        coin = await self.fetch_coin(mint)
        trades = await self.fetch_trades(mint)
        holders = await self._holder_count(mint)

        if now is None:
            now = time.time()

        price = curve_price(
            float(coin.get("virtual_sol_reserves") or 0),
            float(coin.get("virtual_token_reserves") or 0),
        )
        series = [t.price for t in trades if t.price > 0]
        if price > 0:
            series.append(price)
        elif series:
            price = series[-1]
        else:
            raise MarketUnavailable(f"no price available for {mint}")
        series = series[-MAX_SERIES:]

        volume_24h, volume_short, net_short, net_long = summarize_trades(trades, now)

        return MarketSnapshot(
            token_mint=mint,
            timestamp=datetime.fromtimestamp(now, tz=timezone.utc),
            price=price,
            market_cap_usd=float(coin.get("usd_market_cap") or 0.0),
            volume_24h=volume_24h,
            volume_short=volume_short,
            net_volume_short=net_short,
            net_volume_long=net_long,
            holder_count=holders,
            bonding_complete=bool(coin.get("complete", False)),
            total_supply=float(coin.get("total_supply") or 0) / _TOKEN_UNIT,
            prices=tuple(series),
        )
