"""Trade data models — intents, results and venue routing."""

import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Optional


class Action(str, Enum):
    BUY = "buy"
    SELL = "sell"
    CLAIM = "claim"
    SWAP = "swap"


class Venue(str, Enum):
    """Where an action executes."""

    BONDING_CURVE = "bonding_curve"
    AMM = "amm"


def route_venue(bonding_complete: bool) -> Venue:
    """Pick the execution venue from the token's bonding status.

    Before graduation every buy, sell and claim goes through the bonding
    curve; afterwards through the AMM/aggregator route.
    """
    return Venue.AMM if bonding_complete else Venue.BONDING_CURVE


def new_dispatch_id() -> str:
    return uuid.uuid4().hex


@dataclass(frozen=True)
class TradeIntent:
    """A proposed action, alive for a single tick.

    ``amount`` is SOL for buys, tokens for sells and swaps of the token,
    and ignored for claims.
    """

    strategy: str
    action: Action
    wallet_id: str
    amount: float
    venue: Venue
    reason: str = ""
    input_mint: Optional[str] = None  # swaps only
    output_mint: Optional[str] = None  # swaps only
    warnings: tuple[str, ...] = ()
    dispatch_id: str = field(default_factory=new_dispatch_id)


@dataclass(frozen=True)
class TradeResult:
    """Outcome of one dispatched (or simulated) intent."""

    dispatch_id: str
    strategy: str
    action: Action
    wallet_id: str
    venue: Venue
    success: bool
    amount: float = 0.0
    signature: Optional[str] = None
    error: Optional[str] = None
    error_kind: Optional[str] = None
    simulated: bool = False
    token_delta: float = 0.0
    sol_delta: float = 0.0
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def to_dict(self) -> dict:
        return {
            "dispatch_id": self.dispatch_id,
            "strategy": self.strategy,
            "action": self.action.value,
            "wallet_id": self.wallet_id,
            "venue": self.venue.value,
            "success": self.success,
            "amount": self.amount,
            "signature": self.signature,
            "error": self.error,
            "error_kind": self.error_kind,
            "simulated": self.simulated,
            "token_delta": self.token_delta,
            "sol_delta": self.sol_delta,
            "timestamp": self.timestamp.isoformat(),
        }


def trade_deltas(
    intent: TradeIntent,
    price: float,
    sol_mint: str,
    amount_in: Optional[float] = None,
    amount_out: Optional[float] = None,
) -> tuple[float, float]:
    """Return ``(token_delta, sol_delta)`` for a filled *intent*.

    ``sol_delta`` is SOL deployed into the position (negative when SOL
    comes back). Swap fills use the adapter-reported amounts when given,
    otherwise *price* estimates the other leg.
    """
    amount = intent.amount
    if intent.action is Action.BUY:
        return (amount / price if price > 0 else 0.0), amount
    if intent.action is Action.SELL:
        return -amount, -amount * price
    if intent.action is Action.SWAP:
        spent = amount if amount_in is None else amount_in
        if intent.input_mint == sol_mint:
            received = amount_out if amount_out is not None else (
                spent / price if price > 0 else 0.0
            )
            return received, spent
        received = amount_out if amount_out is not None else spent * price
        return -spent, -received
    return 0.0, 0.0
