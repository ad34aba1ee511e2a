"""Tests for the wallet pool: selection, disablement, balances and dispatch.

Uses duck-typed reader, adapter and key store mocks; nothing touches a
real chain.
"""

import asyncio
from datetime import datetime, timedelta, timezone

import pytest

from curvemm.chain.adapter import SOL_MINT, ChainResult, SwapResult
from curvemm.errors import KeyDecryptionError, TransientUpstream
from curvemm.models.trade import Action, TradeIntent, Venue
from curvemm.models.wallet import WalletInfo
from curvemm.wallets.pool import WalletPool

MINT = "MintPump111"
T0 = datetime(2025, 1, 1, 12, 0, tzinfo=timezone.utc)


# ── Mocks ────────────────────────────────────────────────────────────────


class MockReader:
    def __init__(self, sol: float = 1.0, tokens: float = 1_000_000.0, delay: float = 0.0):
        self.sol = sol
        self.tokens = tokens
        self.delay = delay

    async def get_balance(self, address: str) -> float:
        if self.delay:
            await asyncio.sleep(self.delay)
        return self.sol

    async def get_token_balance(self, address: str, mint: str) -> float:
        return self.tokens


class MockKeyStore:
    def __init__(self, bad: tuple[str, ...] = ()):
        self.bad = bad
        self.decrypted: list[str] = []

    def decrypt(self, ciphertext: str) -> str:
        if ciphertext in self.bad:
            raise KeyDecryptionError(f"cannot decrypt {ciphertext}")
        self.decrypted.append(ciphertext)
        return f"secret-{ciphertext}"


class MockAdapter:
    def __init__(self, fail: bool = False, delay: float = 0.0, raises: Exception = None):
        self.fail = fail
        self.delay = delay
        self.raises = raises
        self.calls: list[tuple] = []

    async def _respond(self, call: tuple) -> ChainResult:
        self.calls.append(call)
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.raises is not None:
            raise self.raises
        if self.fail:
            return ChainResult(success=False, error="slippage exceeded")
        return ChainResult(success=True, signature=f"sig-{len(self.calls)}")

    async def claim_fees(self, signer, mint, bonded):
        return await self._respond(("claim", signer, mint, bonded))

    async def buy(self, signer, mint, amount, venue, slippage_bps):
        return await self._respond(("buy", signer, mint, amount, venue, slippage_bps))

    async def sell(self, signer, mint, amount, venue, slippage_bps):
        return await self._respond(("sell", signer, mint, amount, venue, slippage_bps))

    async def swap(self, signer, input_mint, output_mint, amount, slippage_bps):
        self.calls.append(("swap", signer, input_mint, output_mint, amount))
        return SwapResult(success=True, amount_in=amount, amount_out=amount * 2_000_000,
                          signature="sig-swap")


def _wallets(n: int = 3, **kwargs) -> list[WalletInfo]:
    return [WalletInfo(f"w{i}", f"Addr{i}", encrypted_key=f"ct{i}", **kwargs)
            for i in range(1, n + 1)]


def _intent(action=Action.BUY, amount=0.1, wallet_id="w1", **kwargs) -> TradeIntent:
    return TradeIntent(
        strategy="volume_bot",
        action=action,
        wallet_id=wallet_id,
        amount=amount,
        venue=kwargs.pop("venue", Venue.BONDING_CURVE),
        **kwargs,
    )


# ── Construction and selection ───────────────────────────────────────────


class TestSelection:
    def test_duplicate_ids_rejected(self):
        with pytest.raises(ValueError, match="duplicate"):
            WalletPool([WalletInfo("w1", "A"), WalletInfo("w1", "B")])

    def test_round_robin(self):
        pool = WalletPool(_wallets())
        picks = [pool.select("volume_bot", now=T0).wallet_id for _ in range(4)]
        assert picks == ["w1", "w2", "w3", "w1"]

    def test_cursor_per_strategy(self):
        pool = WalletPool(_wallets())
        pool.select("volume_bot", now=T0)
        pool.select("volume_bot", now=T0)
        assert pool.select("volume_farmer", now=T0).wallet_id == "w1"

    def test_exclude_ids(self):
        pool = WalletPool(_wallets())
        assert pool.select("s", exclude_ids={"w1", "w2"}, now=T0).wallet_id == "w3"
        assert pool.select("s", exclude_ids={"w1", "w2", "w3"}, now=T0) is None

    def test_inactive_skipped(self):
        wallets = _wallets(2)
        wallets[0] = WalletInfo("w1", "Addr1", active=False)
        pool = WalletPool(wallets)
        assert pool.select("s", now=T0).wallet_id == "w2"
        assert pool.usable_count() == 1

    def test_cooldown_per_strategy_and_wallet(self):
        pool = WalletPool(_wallets(2))
        pool.record_attempt("volume_bot", "w1", T0)
        later = T0 + timedelta(seconds=30)
        assert pool.select("volume_bot", now=later, cooldown_seconds=60).wallet_id == "w2"
        assert pool.cooldown_remaining("volume_bot", "w1", later, 60) == 30.0
        # a different strategy is not blocked by volume_bot's window
        assert pool.select("volume_farmer", now=later, cooldown_seconds=60).wallet_id == "w1"

    def test_cooldown_expires(self):
        pool = WalletPool(_wallets(1))
        pool.record_attempt("volume_bot", "w1", T0)
        assert pool.select("volume_bot", now=T0, cooldown_seconds=60) is None
        after = T0 + timedelta(seconds=60)
        assert pool.select("volume_bot", now=after, cooldown_seconds=60).wallet_id == "w1"

    def test_predicate(self):
        wallets = _wallets(2)
        wallets[1] = WalletInfo("w2", "Addr2", is_creator=True)
        pool = WalletPool(wallets)
        picked = pool.select("fee_claimer", now=T0, predicate=lambda w: w.is_creator)
        assert picked.wallet_id == "w2"

    def test_preferred_wallet_jumps_the_queue(self):
        pool = WalletPool(_wallets())
        picked = pool.select("volume_farmer", now=T0, prefer=lambda w: w.wallet_id == "w3")
        assert picked.wallet_id == "w3"
        # rotation carries on after the preferred wallet
        assert pool.select("volume_farmer", now=T0).wallet_id == "w1"

    def test_preference_falls_back_to_round_robin(self):
        pool = WalletPool(_wallets())
        picked = pool.select("volume_farmer", now=T0, prefer=lambda w: False)
        assert picked.wallet_id == "w1"
        assert pool.select("volume_farmer", now=T0).wallet_id == "w2"

    def test_preferred_wallet_still_needs_cooldown(self):
        pool = WalletPool(_wallets(2))
        pool.record_attempt("volume_farmer", "w2", T0)
        picked = pool.select("volume_farmer", now=T0, cooldown_seconds=60,
                             prefer=lambda w: w.wallet_id == "w2")
        assert picked.wallet_id == "w1"

    def test_empty_pool(self):
        assert WalletPool([]).select("s", now=T0) is None


class TestDisable:
    def test_disable_once(self, caplog):
        pool = WalletPool(_wallets(2))
        with caplog.at_level("WARNING", logger="curvemm"):
            assert pool.disable("w1", "bad key")
            assert not pool.disable("w1", "bad key again")
        assert sum("disabled" in r.getMessage() for r in caplog.records) == 1
        assert pool.disabled == {"w1": "bad key"}
        assert pool.select("s", now=T0).wallet_id == "w2"


# ── Balances ─────────────────────────────────────────────────────────────


class TestBalance:
    @pytest.mark.asyncio
    async def test_reads_both(self):
        pool = WalletPool(_wallets(1), reader=MockReader(sol=2.5, tokens=42.0))
        balance = await pool.balance(pool.get("w1"), MINT)
        assert balance.sol == 2.5
        assert balance.tokens == 42.0

    @pytest.mark.asyncio
    async def test_no_reader(self):
        pool = WalletPool(_wallets(1))
        with pytest.raises(TransientUpstream):
            await pool.balance(pool.get("w1"), MINT)

    @pytest.mark.asyncio
    async def test_timeout_is_transient(self):
        pool = WalletPool(_wallets(1), reader=MockReader(delay=1.0), call_timeout=0.01)
        with pytest.raises(TransientUpstream, match="timed out"):
            await pool.balance(pool.get("w1"), MINT)


# ── Dispatch ─────────────────────────────────────────────────────────────


class TestDispatch:
    @pytest.mark.asyncio
    async def test_buy_success(self):
        adapter = MockAdapter()
        pool = WalletPool(_wallets(), key_store=MockKeyStore(), adapter=adapter)
        result = await pool.dispatch(_intent(amount=0.1), pool.get("w1"), MINT,
                                     price=1e-6, slippage_bps=500)
        assert result.success
        assert result.signature == "sig-1"
        assert result.token_delta == pytest.approx(100_000.0)
        assert result.sol_delta == pytest.approx(0.1)
        assert adapter.calls[0] == ("buy", "secret-ct1", MINT, 0.1,
                                    Venue.BONDING_CURVE, 500)

    @pytest.mark.asyncio
    async def test_claim_passes_bonded_flag(self):
        adapter = MockAdapter()
        pool = WalletPool(_wallets(), key_store=MockKeyStore(), adapter=adapter)
        await pool.dispatch(_intent(Action.CLAIM, 0.0, venue=Venue.AMM), pool.get("w1"), MINT)
        assert adapter.calls[0] == ("claim", "secret-ct1", MINT, True)

    @pytest.mark.asyncio
    async def test_swap_uses_reported_amounts(self):
        adapter = MockAdapter()
        pool = WalletPool(_wallets(), key_store=MockKeyStore(), adapter=adapter)
        intent = _intent(Action.SWAP, 0.5, input_mint=SOL_MINT, output_mint=MINT,
                         venue=Venue.AMM)
        result = await pool.dispatch(intent, pool.get("w1"), MINT, price=1e-6)
        assert result.success
        assert result.token_delta == pytest.approx(1_000_000.0)
        assert result.sol_delta == pytest.approx(0.5)

    @pytest.mark.asyncio
    async def test_adapter_failure(self):
        pool = WalletPool(_wallets(), key_store=MockKeyStore(), adapter=MockAdapter(fail=True))
        result = await pool.dispatch(_intent(), pool.get("w1"), MINT)
        assert not result.success
        assert result.error == "slippage exceeded"
        assert result.error_kind == "transient_upstream"

    @pytest.mark.asyncio
    async def test_adapter_exception_is_contained(self):
        adapter = MockAdapter(raises=RuntimeError("rpc node exploded"))
        pool = WalletPool(_wallets(), key_store=MockKeyStore(), adapter=adapter)
        result = await pool.dispatch(_intent(), pool.get("w1"), MINT)
        assert not result.success
        assert "exploded" in result.error

    @pytest.mark.asyncio
    async def test_decrypt_failure_disables_wallet(self):
        adapter = MockAdapter()
        pool = WalletPool(_wallets(), key_store=MockKeyStore(bad=("ct1",)), adapter=adapter)
        result = await pool.dispatch(_intent(), pool.get("w1"), MINT)
        assert not result.success
        assert result.error_kind == "wallet_disabled"
        assert "w1" in pool.disabled
        assert adapter.calls == []

        again = await pool.dispatch(_intent(), pool.get("w1"), MINT)
        assert again.error_kind == "wallet_disabled"

    @pytest.mark.asyncio
    async def test_timeout_reports_unknown_outcome(self):
        adapter = MockAdapter(delay=0.2)
        pool = WalletPool(_wallets(), key_store=MockKeyStore(), adapter=adapter,
                          call_timeout=0.01)
        result = await pool.dispatch(_intent(), pool.get("w1"), MINT)
        assert not result.success
        assert "outcome unknown" in result.error
        # the submission itself is not cancelled
        await asyncio.sleep(0.3)
        assert len(adapter.calls) == 1

    @pytest.mark.asyncio
    async def test_no_adapter(self):
        pool = WalletPool(_wallets())
        result = await pool.dispatch(_intent(), pool.get("w1"), MINT)
        assert not result.success
        assert result.error_kind == "configuration"
        assert not pool.has_adapter
