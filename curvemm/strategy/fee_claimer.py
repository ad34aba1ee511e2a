"""Fee claimer — collects creator fees on a fixed interval."""

from typing import Optional

from curvemm.models.engine_config import EngineConfig
from curvemm.models.trade import Action, TradeIntent
from curvemm.models.wallet import WalletInfo
from curvemm.strategy.base import BaseStrategy, TickContext


class FeeClaimerStrategy(BaseStrategy):
    """Claims with the creator wallet every ``claim_interval_seconds``."""

    name = "fee_claimer"

    def cooldown_seconds(self, config: EngineConfig) -> float:
        return float(config.claim_interval_seconds)

    def accepts_wallet(self, wallet: WalletInfo) -> bool:
        return wallet.is_creator

    def propose(self, ctx: TickContext) -> Optional[TradeIntent]:
        where = "AMM pool" if ctx.snapshot.bonding_complete else "bonding curve"
        return TradeIntent(
            strategy=self.name,
            action=Action.CLAIM,
            wallet_id=ctx.wallet.wallet_id,
            amount=0.0,
            venue=ctx.venue,
            reason=f"claim creator fees from {where}",
        )
