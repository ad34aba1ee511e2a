"""Wallet pool — selection, balances and dispatch for operational wallets.

The pool owns every ``WalletInfo``; the engine refers to wallets by id.
Signing material is decrypted per dispatch and dropped as soon as the
adapter call has been issued.
"""

import asyncio
import logging
from datetime import datetime, timezone
from typing import Callable, Iterable, Optional

from curvemm.chain.adapter import SOL_MINT, ChainAdapter, ChainReader
from curvemm.errors import (
    KeyDecryptionError,
    TransientUpstream,
    WalletDisabled,
)
from curvemm.models.trade import Action, TradeIntent, TradeResult, Venue, trade_deltas
from curvemm.models.wallet import WalletBalance, WalletInfo
from curvemm.risk.cooldown import CooldownTracker
from curvemm.wallets.keystore import KeyStore

logger = logging.getLogger("curvemm")


class WalletPool:
    """Holds the wallets one engine may trade with.

    Args:
        wallets: Wallets in selection order.
        key_store: Decrypts ``WalletInfo.encrypted_key`` per dispatch.
        adapter: Chain adapter used for live dispatch.
        reader: Balance reader.
        call_timeout: Budget in seconds for each balance read or dispatch.
    """

    def __init__(
        self,
        wallets: Iterable[WalletInfo],
        key_store: Optional[KeyStore] = None,
        adapter: Optional[ChainAdapter] = None,
        reader: Optional[ChainReader] = None,
        call_timeout: float = 15.0,
    ) -> None:
        self._wallets: dict[str, WalletInfo] = {}
        for wallet in wallets:
            if wallet.wallet_id in self._wallets:
                raise ValueError(f"duplicate wallet id {wallet.wallet_id}")
            self._wallets[wallet.wallet_id] = wallet
        self._key_store = key_store
        self._adapter = adapter
        self._reader = reader
        self._call_timeout = call_timeout
        self._disabled: dict[str, str] = {}
        self._cursors: dict[str, int] = {}
        self._cooldowns = CooldownTracker()

    # ── Queries ──────────────────────────────────────────────────────────

    @property
    def wallets(self) -> tuple[WalletInfo, ...]:
        return tuple(self._wallets.values())

    @property
    def disabled(self) -> dict[str, str]:
        """Disabled wallet ids mapped to the reason."""
        return dict(self._disabled)

    @property
    def has_adapter(self) -> bool:
        return self._adapter is not None and self._key_store is not None

    def get(self, wallet_id: str) -> Optional[WalletInfo]:
        return self._wallets.get(wallet_id)

    def is_usable(self, wallet: WalletInfo) -> bool:
        return wallet.active and wallet.wallet_id not in self._disabled

    def usable_count(self) -> int:
        return sum(1 for w in self._wallets.values() if self.is_usable(w))

    # ── Selection ────────────────────────────────────────────────────────

    def select(
        self,
        strategy: str,
        exclude_ids: Iterable[str] = (),
        now: Optional[datetime] = None,
        cooldown_seconds: float = 0.0,
        predicate: Optional[Callable[[WalletInfo], bool]] = None,
        prefer: Optional[Callable[[WalletInfo], bool]] = None,
    ) -> Optional[WalletInfo]:
        """Pick the next eligible wallet for *strategy*, round-robin.

        A wallet is eligible when it is active, not disabled, not in
        *exclude_ids*, past its cooldown for this strategy, and accepted by
        *predicate* if one is given. Each strategy keeps its own cursor.
        An eligible wallet matching *prefer* wins over its round-robin
        predecessors.
        """
        if now is None:
            now = datetime.now(timezone.utc)
        excluded = set(exclude_ids)
        ids = list(self._wallets)
        if not ids:
            return None

        start = self._cursors.get(strategy, 0) % len(ids)
        chosen: Optional[int] = None
        for offset in range(len(ids)):
            idx = (start + offset) % len(ids)
            wallet = self._wallets[ids[idx]]
            if not self.is_usable(wallet) or wallet.wallet_id in excluded:
                continue
            if not self._cooldowns.ready((strategy, wallet.wallet_id), now, cooldown_seconds):
                continue
            if predicate is not None and not predicate(wallet):
                continue
            if prefer is not None and prefer(wallet):
                chosen = idx
                break
            if chosen is None:
                chosen = idx
                if prefer is None:
                    break
        if chosen is None:
            return None
        self._cursors[strategy] = chosen + 1
        return self._wallets[ids[chosen]]

    def record_attempt(self, strategy: str, wallet_id: str, at: datetime) -> None:
        """Start the ``(strategy, wallet)`` cooldown window."""
        self._cooldowns.record((strategy, wallet_id), at)

    def cooldown_remaining(
        self, strategy: str, wallet_id: str, now: datetime, seconds: float
    ) -> float:
        return self._cooldowns.remaining((strategy, wallet_id), now, seconds)

    # ── Mutation ─────────────────────────────────────────────────────────

    def disable(self, wallet_id: str, reason: str) -> bool:
        """Exclude *wallet_id* for the rest of the run.

        Returns ``True`` the first time; repeated calls are no-ops so the
        disablement is logged exactly once.
        """
        if wallet_id in self._disabled:
            return False
        self._disabled[wallet_id] = reason
        logger.warning("Wallet %s disabled: %s", wallet_id, reason)
        return True

    # ── I/O ──────────────────────────────────────────────────────────────

    async def balance(self, wallet: WalletInfo, mint: str) -> WalletBalance:
        """Read SOL and token balance within the call budget.

        Raises:
            TransientUpstream: On timeout, reader failure, or no reader.
        """
        if self._reader is None:
            raise TransientUpstream("no balance reader configured")
        try:
            sol, tokens = await asyncio.wait_for(
                asyncio.gather(
                    self._reader.get_balance(wallet.address),
                    self._reader.get_token_balance(wallet.address, mint),
                ),
                timeout=self._call_timeout,
            )
        except asyncio.TimeoutError as exc:
            raise TransientUpstream(
                f"balance read for {wallet.wallet_id} timed out"
            ) from exc
        return WalletBalance(sol=float(sol), tokens=float(tokens))

    async def dispatch(
        self, intent: TradeIntent, wallet: WalletInfo, mint: str, price: float = 0.0,
        slippage_bps: int = 1000,
    ) -> TradeResult:
        """Execute *intent* through the chain adapter.

        Never raises: decryption failures disable the wallet, and adapter
        errors or timeouts come back as ``success=False`` results. A timed
        out call keeps running in the background so a submitted transaction
        is not abandoned halfway.
        """
        if not self.is_usable(wallet):
            return self._failure(intent, f"wallet {wallet.wallet_id} is not usable",
                                 WalletDisabled.kind)
        if self._adapter is None or self._key_store is None:
            return self._failure(intent, "no chain adapter or key store configured",
                                 "configuration")

        try:
            signer = self._key_store.decrypt(wallet.encrypted_key)
        except KeyDecryptionError as exc:
            self.disable(wallet.wallet_id, f"key decryption failed: {exc}")
            return self._failure(intent, str(WalletDisabled(wallet.wallet_id, str(exc))),
                                 WalletDisabled.kind)

        task = asyncio.ensure_future(
            self._call_adapter(intent, signer, mint, slippage_bps)
        )
        del signer

        try:
            outcome = await asyncio.wait_for(asyncio.shield(task), timeout=self._call_timeout)
        except asyncio.TimeoutError:
            task.add_done_callback(_log_late_outcome(intent))
            return self._failure(
                intent,
                f"adapter call timed out after {self._call_timeout:.0f}s; outcome unknown",
                TransientUpstream.kind,
            )
        except Exception as exc:
            logger.warning("Adapter %s for %s raised: %s",
                           intent.action.value, wallet.wallet_id, exc)
            return self._failure(intent, str(exc) or type(exc).__name__,
                                 TransientUpstream.kind)

        if not outcome.success:
            return self._failure(intent, outcome.error or "adapter reported failure",
                                 TransientUpstream.kind)

        amount_in = getattr(outcome, "amount_in", None)
        amount_out = getattr(outcome, "amount_out", None)
        token_delta, sol_delta = trade_deltas(intent, price, SOL_MINT, amount_in, amount_out)
        return TradeResult(
            dispatch_id=intent.dispatch_id,
            strategy=intent.strategy,
            action=intent.action,
            wallet_id=intent.wallet_id,
            venue=intent.venue,
            success=True,
            amount=intent.amount,
            signature=outcome.signature,
            token_delta=token_delta,
            sol_delta=sol_delta,
        )

    async def _call_adapter(self, intent: TradeIntent, signer: str, mint: str,
                            slippage_bps: int):
        adapter = self._adapter
        if intent.action is Action.CLAIM:
            return await adapter.claim_fees(signer, mint, intent.venue is Venue.AMM)
        if intent.action is Action.BUY:
            return await adapter.buy(signer, mint, intent.amount, intent.venue, slippage_bps)
        if intent.action is Action.SELL:
            return await adapter.sell(signer, mint, intent.amount, intent.venue, slippage_bps)
        return await adapter.swap(
            signer,
            intent.input_mint or SOL_MINT,
            intent.output_mint or mint,
            intent.amount,
            slippage_bps,
        )

    @staticmethod
    def _failure(intent: TradeIntent, error: str, kind: str) -> TradeResult:
        return TradeResult(
            dispatch_id=intent.dispatch_id,
            strategy=intent.strategy,
            action=intent.action,
            wallet_id=intent.wallet_id,
            venue=intent.venue,
            success=False,
            amount=intent.amount,
            error=error,
            error_kind=kind,
        )


def _log_late_outcome(intent: TradeIntent):
    def _callback(task: asyncio.Future) -> None:
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            logger.warning("Late %s %s failed: %s", intent.action.value,
                           intent.dispatch_id, exc)
        else:
            logger.warning("Late %s %s finished after timeout: %s",
                           intent.action.value, intent.dispatch_id, task.result())
    return _callback
