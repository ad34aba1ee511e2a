"""Solana JSON-RPC balance reader over httpx."""

import logging
from typing import Any, Optional

import httpx

from curvemm.errors import TransientUpstream
from curvemm.net import MAX_RETRIES, RETRY_BASE_DELAY, request_with_retry

logger = logging.getLogger("curvemm")

LAMPORTS_PER_SOL = 1_000_000_000


class SolanaRpcReader:
    """Reads SOL and SPL token balances; implements ``ChainReader``."""

    def __init__(
        self,
        rpc_url: str,
        timeout: float = 10.0,
        max_retries: int = MAX_RETRIES,
        retry_delay: float = RETRY_BASE_DELAY,
    ) -> None:
        self._rpc_url = rpc_url
        self._timeout = timeout
        self._max_retries = max_retries
        self._retry_delay = retry_delay
        self._request_id = 0

    async def _call(self, method: str, params: list[Any]) -> Any:
        """Issue one JSON-RPC call and return its ``result``.

        Raises:
            TransientUpstream: On transport failure, error status, or an
                RPC-level error object.
        """
        self._request_id += 1
        payload = {
            "jsonrpc": "2.0",
            "id": self._request_id,
            "method": method,
            "params": params,
        }
        try:
            resp = await request_with_retry(
                "post",
                self._rpc_url,
                label="RPC",
                max_retries=self._max_retries,
                base_delay=self._retry_delay,
                timeout=self._timeout,
                json=payload,
            )
            body = resp.json()
        except (httpx.HTTPError, ValueError) as exc:
            raise TransientUpstream(f"RPC {method} failed: {exc}") from exc

        if body.get("error"):
            raise TransientUpstream(f"RPC {method} error: {body['error']}")
        return body.get("result")

    # ── Balances ─────────────────────────────────────────────────────────

    async def get_balance(self, address: str) -> float:
        result = await self._call("getBalance", [address])
        lamports = result.get("value", 0) if isinstance(result, dict) else result
        return float(lamports or 0) / LAMPORTS_PER_SOL

    async def get_token_balance(self, address: str, mint: str) -> float:
        result = await self._call(
            "getTokenAccountsByOwner",
            [address, {"mint": mint}, {"encoding": "jsonParsed"}],
        )
        total = 0.0
        for account in (result or {}).get("value", []):
            amount = _ui_amount(account)
            if amount is not None:
                total += amount
        return total

    async def get_holder_count(self, mint: str) -> int:
        """Number of non-empty accounts among the mint's largest holders.

        The RPC caps this list, so the figure is a lower bound for widely
        held tokens.
        """
        result = await self._call("getTokenLargestAccounts", [mint])
        accounts = (result or {}).get("value", [])
        return sum(1 for a in accounts if float(a.get("uiAmount") or 0) > 0)


def _ui_amount(account: dict) -> Optional[float]:
    try:
        info = account["account"]["data"]["parsed"]["info"]
        return float(info["tokenAmount"]["uiAmount"] or 0)
    except (KeyError, TypeError, ValueError):
        logger.debug("Skipping unparsable token account %s", account.get("pubkey"))
        return None
