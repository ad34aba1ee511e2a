"""Volume bot — alternating small buys and sells to keep the chart active."""

from typing import Optional

from curvemm.models.trade import Action, TradeIntent, TradeResult
from curvemm.risk.validator import DEFAULT_FEE_BUFFER_SOL
from curvemm.strategy.base import BaseStrategy, TickContext, randomized_amount


class VolumeBotStrategy(BaseStrategy):
    """Flips between buy and sell after every successful trade.

    Both legs are sized from ``volume_farming_percent`` of the wallet's
    token balance; a buy is worth that slice in SOL, floored at
    ``min_trade_size`` and capped at ``max_buy_per_trade``. With
    ``amount_variance_percent`` set, each leg is jittered before the caps.
    """

    name = "volume_bot"

    def __init__(self, rng=None) -> None:
        super().__init__(rng)
        self.next_action = Action.BUY

    def propose(self, ctx: TickContext) -> Optional[TradeIntent]:
        config = ctx.config
        price = ctx.snapshot.price
        slice_tokens = ctx.balance.tokens * config.volume_farming_percent / 100.0

        buy_sol = config.min_trade_size
        if price > 0 and slice_tokens > 0:
            buy_sol = max(config.min_trade_size, slice_tokens * price)
        buy_sol = randomized_amount(buy_sol, config.amount_variance_percent, self.rng)
        buy_sol = min(buy_sol, config.max_buy_per_trade)
        slice_tokens = min(
            randomized_amount(slice_tokens, config.amount_variance_percent, self.rng),
            ctx.balance.tokens,
        )

        action = self.next_action
        can_buy = ctx.balance.sol >= buy_sol + DEFAULT_FEE_BUFFER_SOL
        if action is Action.SELL and slice_tokens <= 0:
            action = Action.BUY
        elif action is Action.BUY and not can_buy and slice_tokens > 0:
            action = Action.SELL

        self.last_insight = {"next_action": self.next_action.value, "chosen": action.value}
        if action is Action.BUY and not can_buy:
            return None

        amount = buy_sol if action is Action.BUY else slice_tokens
        return TradeIntent(
            strategy=self.name,
            action=action,
            wallet_id=ctx.wallet.wallet_id,
            amount=amount,
            venue=ctx.venue,
            reason=f"volume {action.value} leg",
        )

    def on_result(self, result: TradeResult) -> None:
        if result.success:
            self.next_action = Action.SELL if result.action is Action.BUY else Action.BUY
