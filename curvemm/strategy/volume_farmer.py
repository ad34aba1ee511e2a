"""Volume farmer — sells small slices into positive net buy volume.

The wallet pool's round-robin hands each attempt to the next wallet, so
activity is spread across the pool and each wallet's own caps apply.
Wallets last seen above ``max_supply_percent`` of supply are picked ahead
of their turn until their holdings come back under the limit.
"""

from typing import Optional

from curvemm.market.models import MarketPhase, MarketSnapshot
from curvemm.models.engine_config import EngineConfig
from curvemm.models.trade import Action, TradeIntent
from curvemm.models.wallet import WalletInfo
from curvemm.risk.validator import is_overweight
from curvemm.strategy.base import BaseStrategy, TickContext, randomized_amount

# Never take more than this share of the short-window net inflow.
NET_VOLUME_SHARE = 0.15


class VolumeFarmerStrategy(BaseStrategy):
    name = "volume_farmer"

    def __init__(self, rng=None) -> None:
        super().__init__(rng)
        self.overweight: set[str] = set()

    def licensed(
        self, snapshot: MarketSnapshot, phase: MarketPhase, config: EngineConfig
    ) -> bool:
        if phase is MarketPhase.TRENDING_DOWN:
            return False
        return snapshot.net_volume_short >= config.min_net_volume_to_farm

    def prefers_wallet(self, wallet: WalletInfo) -> bool:
        return wallet.wallet_id in self.overweight

    def propose(self, ctx: TickContext) -> Optional[TradeIntent]:
        config = ctx.config
        tokens = ctx.balance.tokens
        price = ctx.snapshot.price
        wallet_id = ctx.wallet.wallet_id

        heavy = is_overweight(tokens, ctx.snapshot.total_supply, config.max_supply_percent)
        if heavy:
            self.overweight.add(wallet_id)
        else:
            self.overweight.discard(wallet_id)

        self.last_insight = {
            "net_volume_short": ctx.snapshot.net_volume_short,
            "wallet": wallet_id,
            "tokens": tokens,
            "overweight": sorted(self.overweight),
        }
        if tokens <= 0:
            return None

        amount = randomized_amount(
            tokens * config.volume_farming_percent / 100.0,
            config.amount_variance_percent,
            self.rng,
        )
        amount = min(amount, tokens)
        if price > 0:
            ceiling = ctx.snapshot.net_volume_short * NET_VOLUME_SHARE / price
            amount = min(amount, ceiling)
            if amount * price < config.min_trade_size:
                return None

        reason = (
            f"net inflow {ctx.snapshot.net_volume_short:.3f} SOL over 5m, "
            f"farming from {wallet_id}"
        )
        if heavy:
            reason += " (over supply limit)"
        return TradeIntent(
            strategy=self.name,
            action=Action.SELL,
            wallet_id=wallet_id,
            amount=amount,
            venue=ctx.venue,
            reason=reason,
        )
