"""Chain adapter interface.

Transaction building, signing and submission live outside this package.
The engine only needs the narrow contract below; any object that
satisfies it can be plugged in (see ``CHAIN_ADAPTER`` in settings).
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional, Protocol, runtime_checkable

from curvemm.models.trade import Venue

SOL_MINT = "So11111111111111111111111111111111111111112"


@dataclass(frozen=True)
class ChainResult:
    """Outcome of a claim, buy or sell submission."""

    success: bool
    signature: Optional[str] = None
    error: Optional[str] = None
    pool: Optional[str] = None


@dataclass(frozen=True)
class SwapResult:
    """Outcome of an aggregator swap."""

    success: bool
    amount_in: float = 0.0
    amount_out: float = 0.0
    signature: Optional[str] = None
    error: Optional[str] = None


@runtime_checkable
class ChainReader(Protocol):
    """Read-only balance queries."""

    async def get_balance(self, address: str) -> float:
        """SOL balance of *address*."""
        ...

    async def get_token_balance(self, address: str, mint: str) -> float:
        """Whole-token balance of *mint* held by *address*."""
        ...


@runtime_checkable
class ChainAdapter(Protocol):
    """Executes instructions on a venue on behalf of a signer.

    ``signer`` is plaintext signing material obtained from the key store
    immediately before the call.
    """

    async def claim_fees(self, signer: str, mint: str, bonded: bool) -> ChainResult:
        ...

    async def buy(
        self, signer: str, mint: str, amount: float, venue: Venue, slippage_bps: int
    ) -> ChainResult:
        ...

    async def sell(
        self, signer: str, mint: str, amount: float, venue: Venue, slippage_bps: int
    ) -> ChainResult:
        ...

    async def swap(
        self,
        signer: str,
        input_mint: str,
        output_mint: str,
        amount: float,
        slippage_bps: int,
    ) -> SwapResult:
        ...
