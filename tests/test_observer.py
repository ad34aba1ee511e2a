"""Tests for curvemm.market.observer and curvemm.chain.rpc with mocked HTTP."""

import httpx
import pytest

from curvemm.chain.rpc import SolanaRpcReader
from curvemm.errors import MarketUnavailable, TransientUpstream
from curvemm.market.observer import (
    MarketObserver,
    curve_price,
    parse_trade,
    summarize_trades,
)
from curvemm.market.models import MarketSnapshot

MINT = "MintPump111"
NOW = 1_700_000_000.0


# ── Mock launchpad responses ─────────────────────────────────────────────

MOCK_COIN = {
    "mint": MINT,
    "virtual_sol_reserves": 30_000_000_000,  # 30 SOL
    "virtual_token_reserves": 1_000_000_000_000_000,  # 1e9 tokens
    "total_supply": 1_000_000_000_000_000,
    "usd_market_cap": 260_000.0,
    "complete": False,
}

MOCK_TRADES = [
    # newest first, as the API returns them
    {"timestamp": NOW - 60, "sol_amount": 1_000_000_000,
     "token_amount": 30_000_000_000_000, "is_buy": True},
    {"timestamp": NOW - 120, "sol_amount": 400_000_000,
     "token_amount": 13_000_000_000_000, "is_buy": False},
    {"timestamp": NOW - 3000, "sol_amount": 2_000_000_000,
     "token_amount": 70_000_000_000_000, "is_buy": True},
    {"timestamp": NOW - 100_000, "sol_amount": 5_000_000_000,
     "token_amount": 200_000_000_000_000, "is_buy": True},
    {"timestamp": "garbage"},
]


def _make_observer(**kwargs) -> MarketObserver:
    kwargs.setdefault("max_retries", 1)
    kwargs.setdefault("retry_delay", 0.0)
    return MarketObserver("https://market.test", **kwargs)


def _install_get(monkeypatch, coin=MOCK_COIN, trades=MOCK_TRADES,
                 coin_status=200, trades_status=200):
    calls: list[str] = []

    async def _mock_get(self, url, **kwargs):
        calls.append(url)
        request = httpx.Request("GET", url)
        if "/trades/latest/" in url:
            return httpx.Response(trades_status, json=trades, request=request)
        return httpx.Response(coin_status, json=coin, request=request)

    monkeypatch.setattr(httpx.AsyncClient, "get", _mock_get)
    return calls


# ── Pure helpers ─────────────────────────────────────────────────────────


class TestHelpers:
    def test_curve_price(self):
        assert curve_price(30_000_000_000, 1_000_000_000_000_000) == pytest.approx(3e-8)

    def test_curve_price_empty_reserves(self):
        assert curve_price(1, 0) == 0.0

    def test_parse_trade_units(self):
        t = parse_trade(MOCK_TRADES[0])
        assert t.sol_amount == pytest.approx(1.0)
        assert t.token_amount == pytest.approx(3e7)
        assert t.is_buy is True

    def test_parse_trade_millis(self):
        t = parse_trade({"timestamp": NOW * 1000, "sol_amount": 1, "token_amount": 1,
                         "is_buy": False})
        assert t.timestamp == pytest.approx(NOW)

    def test_parse_trade_bad_record(self):
        assert parse_trade({"timestamp": "garbage"}) is None

    def test_summarize_windows(self):
        trades = [parse_trade(r) for r in MOCK_TRADES[:4]]
        volume_24h, volume_short, net_short, net_long = summarize_trades(trades, NOW)
        assert volume_24h == pytest.approx(3.4)
        assert volume_short == pytest.approx(1.4)
        assert net_short == pytest.approx(0.6)
        assert net_long == pytest.approx(2.6)


# ── Poll ─────────────────────────────────────────────────────────────────


class TestPoll:
    @pytest.mark.asyncio
    async def test_snapshot_fields(self, monkeypatch):
        calls = _install_get(monkeypatch)
        snap = await _make_observer().poll(MINT, now=NOW)

        assert isinstance(snap, MarketSnapshot)
        assert snap.token_mint == MINT
        assert snap.price == pytest.approx(3e-8)
        assert snap.market_cap_usd == 260_000.0
        assert snap.total_supply == pytest.approx(1e9)
        assert snap.bonding_complete is False
        assert snap.net_volume_short == pytest.approx(0.6)
        assert snap.holder_count == 0
        assert any(url.endswith(f"/coins/{MINT}") for url in calls)

    @pytest.mark.asyncio
    async def test_price_series_oldest_first(self, monkeypatch):
        _install_get(monkeypatch)
        snap = await _make_observer().poll(MINT, now=NOW)
        assert len(snap.prices) == 5
        assert snap.prices[-1] == pytest.approx(3e-8)
        assert snap.prices[0] == pytest.approx(5.0 / 2e8)

    @pytest.mark.asyncio
    async def test_bonding_complete_flag(self, monkeypatch):
        _install_get(monkeypatch, coin={**MOCK_COIN, "complete": True})
        snap = await _make_observer().poll(MINT, now=NOW)
        assert snap.bonding_complete is True

    @pytest.mark.asyncio
    async def test_trades_failure_degrades(self, monkeypatch):
        _install_get(monkeypatch, trades_status=503)
        snap = await _make_observer().poll(MINT, now=NOW)
        assert snap.prices == (pytest.approx(3e-8),)
        assert snap.volume_24h == 0.0

    @pytest.mark.asyncio
    async def test_coin_not_found_is_unavailable(self, monkeypatch):
        _install_get(monkeypatch, coin_status=404)
        with pytest.raises(MarketUnavailable):
            await _make_observer().poll(MINT, now=NOW)

    @pytest.mark.asyncio
    async def test_transport_error_is_unavailable(self, monkeypatch):
        async def _mock_get(self, url, **kwargs):
            raise httpx.ConnectError("connection refused", request=httpx.Request("GET", url))

        monkeypatch.setattr(httpx.AsyncClient, "get", _mock_get)
        with pytest.raises(MarketUnavailable):
            await _make_observer(max_retries=2).poll(MINT, now=NOW)

    @pytest.mark.asyncio
    async def test_retries_transient_status(self, monkeypatch):
        attempts = {"coin": 0}

        async def _mock_get(self, url, **kwargs):
            request = httpx.Request("GET", url)
            if "/trades/latest/" in url:
                return httpx.Response(200, json=[], request=request)
            attempts["coin"] += 1
            if attempts["coin"] == 1:
                return httpx.Response(429, json={}, request=request)
            return httpx.Response(200, json=MOCK_COIN, request=request)

        monkeypatch.setattr(httpx.AsyncClient, "get", _mock_get)
        snap = await _make_observer(max_retries=3).poll(MINT, now=NOW)
        assert attempts["coin"] == 2
        assert snap.price == pytest.approx(3e-8)

    @pytest.mark.asyncio
    async def test_holder_counter_used(self, monkeypatch):
        _install_get(monkeypatch)

        class _Counter:
            async def get_holder_count(self, mint):
                return 42

        snap = await _make_observer(holder_counter=_Counter()).poll(MINT, now=NOW)
        assert snap.holder_count == 42

    @pytest.mark.asyncio
    async def test_no_price_at_all(self, monkeypatch):
        _install_get(
            monkeypatch,
            coin={**MOCK_COIN, "virtual_token_reserves": 0},
            trades=[],
        )
        with pytest.raises(MarketUnavailable, match="no price"):
            await _make_observer().poll(MINT, now=NOW)


# ── RPC reader ───────────────────────────────────────────────────────────


def _install_rpc(monkeypatch, results: dict, captured: list | None = None):
    async def _mock_post(self, url, *, json=None, timeout=None, **kwargs):
        if captured is not None:
            captured.append(json)
        method = json["method"]
        body = {"jsonrpc": "2.0", "id": json["id"]}
        if method in results:
            body["result"] = results[method]
        else:
            body["error"] = {"code": -32601, "message": "method not found"}
        return httpx.Response(200, json=body, request=httpx.Request("POST", url))

    monkeypatch.setattr(httpx.AsyncClient, "post", _mock_post)


class TestRpcReader:
    @pytest.mark.asyncio
    async def test_get_balance(self, monkeypatch):
        captured: list = []
        _install_rpc(monkeypatch, {"getBalance": {"value": 2_500_000_000}}, captured)
        reader = SolanaRpcReader("https://rpc.test", max_retries=1, retry_delay=0.0)
        assert await reader.get_balance("Addr1") == pytest.approx(2.5)
        assert captured[0]["params"] == ["Addr1"]

    @pytest.mark.asyncio
    async def test_get_token_balance_sums_accounts(self, monkeypatch):
        accounts = {"value": [
            {"pubkey": "a", "account": {"data": {"parsed": {"info": {
                "tokenAmount": {"uiAmount": 1000.5}}}}}},
            {"pubkey": "b", "account": {"data": {"parsed": {"info": {
                "tokenAmount": {"uiAmount": 24.5}}}}}},
            {"pubkey": "c", "account": {"data": "unparsed"}},
        ]}
        captured: list = []
        _install_rpc(monkeypatch, {"getTokenAccountsByOwner": accounts}, captured)
        reader = SolanaRpcReader("https://rpc.test", max_retries=1, retry_delay=0.0)
        assert await reader.get_token_balance("Addr1", MINT) == pytest.approx(1025.0)
        assert captured[0]["params"][1] == {"mint": MINT}

    @pytest.mark.asyncio
    async def test_holder_count(self, monkeypatch):
        _install_rpc(monkeypatch, {"getTokenLargestAccounts": {"value": [
            {"uiAmount": 10.0}, {"uiAmount": 0}, {"uiAmount": 3.0},
        ]}})
        reader = SolanaRpcReader("https://rpc.test", max_retries=1, retry_delay=0.0)
        assert await reader.get_holder_count(MINT) == 2

    @pytest.mark.asyncio
    async def test_rpc_error_is_transient(self, monkeypatch):
        _install_rpc(monkeypatch, {})
        reader = SolanaRpcReader("https://rpc.test", max_retries=1, retry_delay=0.0)
        with pytest.raises(TransientUpstream, match="getBalance"):
            await reader.get_balance("Addr1")
