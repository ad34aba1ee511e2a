"""Price stabilizer — sells into market-cap spikes, never buys.

Market cap is bucketed into light / medium / heavy tiers; each tier sells a
larger share of the selected wallet's holdings. Orders worth more than
``max_sell_per_trade`` are scaled down to the cap.
"""

import logging
from typing import Optional

from curvemm.market.models import MarketPhase, MarketSnapshot
from curvemm.models.engine_config import EngineConfig
from curvemm.models.trade import Action, TradeIntent
from curvemm.strategy.base import BaseStrategy, TickContext

logger = logging.getLogger("curvemm")

_SELLING_PHASES = frozenset(
    {MarketPhase.TRENDING_UP, MarketPhase.DISTRIBUTION, MarketPhase.CONSOLIDATING}
)


def sell_tier(market_cap: float, config: EngineConfig) -> Optional[tuple[str, float]]:
    """Return ``(tier, sell_percent)`` for *market_cap*, or ``None`` below light."""
    if market_cap >= config.heavy_mc_threshold:
        return "heavy", config.heavy_sell_percent
    if market_cap >= config.medium_mc_threshold:
        return "medium", config.medium_sell_percent
    if market_cap >= config.light_mc_threshold:
        return "light", config.light_sell_percent
    return None


class PriceStabilizerStrategy(BaseStrategy):
    name = "price_stabilizer"

    def licensed(
        self, snapshot: MarketSnapshot, phase: MarketPhase, config: EngineConfig
    ) -> bool:
        if phase not in _SELLING_PHASES:
            return False
        if snapshot.market_cap_usd < config.min_mc_to_sell:
            return False
        return sell_tier(snapshot.market_cap_usd, config) is not None

    def propose(self, ctx: TickContext) -> Optional[TradeIntent]:
        tier = sell_tier(ctx.snapshot.market_cap_usd, ctx.config)
        self.last_insight = {
            "market_cap": ctx.snapshot.market_cap_usd,
            "tier": tier[0] if tier else None,
            "tokens": ctx.balance.tokens,
        }
        if tier is None or ctx.balance.tokens <= 0:
            return None

        name, percent = tier
        amount = ctx.balance.tokens * percent / 100.0
        warnings: tuple[str, ...] = ()
        price = ctx.snapshot.price
        if price > 0 and amount * price > ctx.config.max_sell_per_trade:
            capped = ctx.config.max_sell_per_trade / price
            warnings = (
                f"{name} tier sell of {amount:,.0f} tokens capped to {capped:,.0f} "
                f"by max_sell_per_trade",
            )
            logger.warning("Price stabilizer: %s", warnings[0])
            amount = capped

        return TradeIntent(
            strategy=self.name,
            action=Action.SELL,
            wallet_id=ctx.wallet.wallet_id,
            amount=amount,
            venue=ctx.venue,
            reason=(
                f"market cap ${ctx.snapshot.market_cap_usd:,.0f} in {name} tier, "
                f"selling {percent:g}% of holdings"
            ),
            warnings=warnings,
        )
