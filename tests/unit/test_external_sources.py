"""Unit tests for the on-chain balance source and the notification sinks.

HTTP is served by httpx.MockTransport; nothing leaves the process.
"""

import json

import httpx
import pytest
from services.rewards_service.services import notifications
from services.rewards_service.services.balances import (
    RpcWalletBalanceSource,
    StaticWalletBalanceSource,
)

MINT = "MintAddress111"


def _token_account(amount: int) -> dict:
    return {
        "account": {
            "data": {"parsed": {"info": {"tokenAmount": {"amount": str(amount)}}}}
        }
    }


def _rpc_handler(request: httpx.Request) -> httpx.Response:
    payload = json.loads(request.content)
    wallet, options, _ = payload["params"]
    assert payload["method"] == "getTokenAccountsByOwner"
    assert options == {"mint": MINT}

    if wallet == "WalletTwoAccounts":
        return httpx.Response(
            200, json={"result": {"value": [_token_account(700), _token_account(300)]}}
        )
    if wallet == "WalletEmpty":
        return httpx.Response(200, json={"result": {"value": []}})
    if wallet == "WalletRpcError":
        return httpx.Response(200, json={"error": {"code": -32602, "message": "bad"}})
    return httpx.Response(503)


@pytest.mark.asyncio
@pytest.mark.unit
async def test_rpc_balances_sum_accounts_and_flag_failures():
    """Failures come back as None; a wallet without token accounts is a confirmed 0."""
    async with httpx.AsyncClient(transport=httpx.MockTransport(_rpc_handler)) as client:
        source = RpcWalletBalanceSource(
            rpc_url="https://rpc.test", mint=MINT, batch_size=2, client=client
        )
        balances = await source.get_balances(
            ["WalletTwoAccounts", "WalletEmpty", "WalletRpcError", "WalletDown"]
        )

    assert balances == {
        "WalletTwoAccounts": 1_000,
        "WalletEmpty": 0,
        "WalletRpcError": None,
        "WalletDown": None,
    }


@pytest.mark.asyncio
@pytest.mark.unit
async def test_rpc_source_with_no_wallets_makes_no_calls():
    def _fail(request):
        raise AssertionError("no request expected")

    async with httpx.AsyncClient(transport=httpx.MockTransport(_fail)) as client:
        source = RpcWalletBalanceSource(rpc_url="https://rpc.test", mint=MINT, client=client)
        assert await source.get_balances([]) == {}


@pytest.mark.unit
def test_rpc_source_requires_mint():
    with pytest.raises(ValueError):
        RpcWalletBalanceSource(rpc_url="https://rpc.test", mint="")


@pytest.mark.asyncio
@pytest.mark.unit
async def test_static_source_reports_unknown_wallets_unavailable():
    source = StaticWalletBalanceSource({"WalletA": 5})
    assert await source.get_balances(["WalletA", "WalletB"]) == {"WalletA": 5, "WalletB": None}


# ---------------------------------------------------------------------------
# Notifications
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
@pytest.mark.unit
async def test_communications_sink_posts_to_internal_api(monkeypatch):
    calls = []

    async def fake_post(**kwargs):
        calls.append(kwargs)
        return httpx.Response(202, request=httpx.Request("POST", "http://comms.test"))

    monkeypatch.setattr(notifications, "internal_post", fake_post)
    sink = notifications.CommunicationsNotificationSink("http://comms.test")

    await sink.notify("user-1", "Subject", "Body")

    assert calls[0]["service_url"] == "http://comms.test"
    assert calls[0]["path"] == "/internal/notifications"
    assert calls[0]["json"] == {"user_id": "user-1", "subject": "Subject", "body": "Body"}


@pytest.mark.asyncio
@pytest.mark.unit
async def test_communications_sink_swallows_delivery_failures(monkeypatch):
    """A failed delivery is logged and dropped."""

    async def failing_post(**kwargs):
        raise httpx.ConnectError("refused")

    monkeypatch.setattr(notifications, "internal_post", failing_post)
    sink = notifications.CommunicationsNotificationSink("http://comms.test")

    await sink.notify("user-1", "Subject", "Body")
