"""On-chain token balance lookup.

``get_balances`` returns raw token units per wallet. ``None`` means the
balance could not be read this run and must not be treated as zero; a wallet
with no token account is a confirmed ``0``.
"""

from __future__ import annotations

import asyncio
import contextlib
from typing import AsyncIterator, Mapping, Optional, Protocol, Sequence

import httpx
from libs.common.config import get_settings
from libs.common.logging import get_logger

logger = get_logger(__name__)


class WalletBalanceSource(Protocol):
    async def get_balances(self, wallets: Sequence[str]) -> dict[str, Optional[int]]: ...


class StaticWalletBalanceSource:
    """Fixed balances, for dry runs and tests. Unknown wallets are unavailable."""

    def __init__(self, balances: Mapping[str, Optional[int]]):
        self._balances = dict(balances)

    async def get_balances(self, wallets: Sequence[str]) -> dict[str, Optional[int]]:
        return {wallet: self._balances.get(wallet) for wallet in wallets}


class RpcError(Exception):
    pass


class RpcWalletBalanceSource:
    """Token balances via Solana JSON-RPC ``getTokenAccountsByOwner``."""

    def __init__(
        self,
        *,
        rpc_url: str,
        mint: str,
        batch_size: int = 100,
        concurrency: int = 8,
        timeout: float = 15.0,
        client: Optional[httpx.AsyncClient] = None,
    ):
        if not mint:
            raise ValueError("token mint address is required")
        self.rpc_url = rpc_url
        self.mint = mint
        self.batch_size = batch_size
        self.concurrency = concurrency
        self.timeout = timeout
        self._client = client

    @classmethod
    def from_settings(cls) -> "RpcWalletBalanceSource":
        settings = get_settings()
        return cls(
            rpc_url=settings.SOLANA_RPC_URL,
            mint=settings.TOKEN_MINT_ADDRESS,
            batch_size=settings.RPC_BATCH_SIZE,
            concurrency=settings.RPC_CONCURRENCY,
            timeout=settings.RPC_TIMEOUT_SECONDS,
        )

    async def _rpc_post(self, client: httpx.AsyncClient, method: str, params: list) -> dict:
        payload = {"jsonrpc": "2.0", "id": 1, "method": method, "params": params}
        response = await client.post(self.rpc_url, json=payload)
        response.raise_for_status()
        data = response.json()
        if data.get("error"):
            raise RpcError(data["error"])
        return data.get("result") or {}

    async def _balance_of(self, client: httpx.AsyncClient, wallet: str) -> Optional[int]:
        try:
            result = await self._rpc_post(
                client,
                "getTokenAccountsByOwner",
                [wallet, {"mint": self.mint}, {"encoding": "jsonParsed"}],
            )
            total = 0
            for account in result.get("value") or []:
                info = account["account"]["data"]["parsed"]["info"]
                total += int(info["tokenAmount"]["amount"])
        except (httpx.HTTPError, RpcError, KeyError, TypeError, ValueError) as e:
            logger.warning("Balance lookup failed for wallet %s: %s", wallet, e)
            return None
        return total

    async def get_balances(self, wallets: Sequence[str]) -> dict[str, Optional[int]]:
        results: dict[str, Optional[int]] = {}
        if not wallets:
            return results

        semaphore = asyncio.Semaphore(self.concurrency)

        async def fetch(client: httpx.AsyncClient, wallet: str) -> None:
            async with semaphore:
                results[wallet] = await self._balance_of(client, wallet)

        async with self._client_context() as client:
            for start in range(0, len(wallets), self.batch_size):
                chunk = wallets[start : start + self.batch_size]
                await asyncio.gather(*(fetch(client, wallet) for wallet in chunk))

        unavailable = sum(1 for value in results.values() if value is None)
        if unavailable:
            logger.warning("%d of %d wallet balances unavailable", unavailable, len(wallets))
        return results

    @contextlib.asynccontextmanager
    async def _client_context(self) -> AsyncIterator[httpx.AsyncClient]:
        # An injected client belongs to the caller and is left open
        if self._client is not None:
            yield self._client
            return
        async with httpx.AsyncClient(timeout=self.timeout) as client:
            yield client
