"""Per-wallet position book.

Positions move only on successful trade results, and each result is
applied at most once, keyed by its dispatch id.
"""

import logging
from dataclasses import dataclass, replace

from curvemm.models.trade import TradeResult

logger = logging.getLogger("curvemm")


@dataclass(frozen=True)
class Position:
    """Net tokens held and SOL deployed by one wallet."""

    wallet_id: str
    tokens: float = 0.0
    sol_deployed: float = 0.0
    trade_count: int = 0


class PositionBook:
    """Positions keyed by wallet id.

    Args:
        max_tracked: How many recent dispatch ids to remember for replay
            detection; the oldest are forgotten first.
    """

    def __init__(self, max_tracked: int = 10_000) -> None:
        self._positions: dict[str, Position] = {}
        self._applied: dict[str, None] = {}
        self._max_tracked = max(1, max_tracked)

    def apply(self, result: TradeResult) -> bool:
        """Apply *result* to its wallet's position.

        Returns ``True`` when the position changed; ``False`` for failed
        results and for dispatch ids that were already applied.
        """
        if not result.success:
            return False
        if result.dispatch_id in self._applied:
            logger.debug("Ignoring replayed result %s", result.dispatch_id)
            return False
        self._applied[result.dispatch_id] = None
        while len(self._applied) > self._max_tracked:
            del self._applied[next(iter(self._applied))]

        current = self.get(result.wallet_id)
        self._positions[result.wallet_id] = replace(
            current,
            tokens=current.tokens + result.token_delta,
            sol_deployed=current.sol_deployed + result.sol_delta,
            trade_count=current.trade_count + 1,
        )
        return True

    def get(self, wallet_id: str) -> Position:
        return self._positions.get(wallet_id, Position(wallet_id=wallet_id))

    def snapshot(self) -> dict[str, Position]:
        return dict(self._positions)

    @property
    def total(self) -> Position:
        """All wallets combined."""
        return Position(
            wallet_id="*",
            tokens=sum(p.tokens for p in self._positions.values()),
            sol_deployed=sum(p.sol_deployed for p in self._positions.values()),
            trade_count=sum(p.trade_count for p in self._positions.values()),
        )
