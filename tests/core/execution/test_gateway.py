"""
Tests for the JSON-RPC gateway against a mocked node.
"""

import json

import httpx
import pytest

from basketswap.core.execution.errors import (
    BroadcastFailure,
    ConfirmationTimeout,
    EstimationFailure,
    GasShortfallFailure,
    RpcErrorKind,
)
from basketswap.core.execution.gateway import JsonRpcGateway
from basketswap.core.execution.models import ReceiptStatus


RPC_URL = "http://node.test"
TOKEN = "0xaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaa"
OWNER = "0x1111111111111111111111111111111111111111"
SPENDER = "0x9999999999999999999999999999999999999999"
TX_HASH = "0x" + "ab" * 32


class ScriptedNode:
    """Answers JSON-RPC calls from per-method queues (the last answer repeats)."""

    def __init__(self, **answers):
        self.answers = answers
        self.calls = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        payload = json.loads(request.content)
        method = payload["method"]
        self.calls.append((method, payload["params"]))
        queue = self.answers[method]
        answer = queue.pop(0) if len(queue) > 1 else queue[0]
        if isinstance(answer, httpx.Response):
            return answer
        body = {"jsonrpc": "2.0", "id": payload["id"]}
        body.update(answer)
        return httpx.Response(200, json=body)

    def count(self, method: str) -> int:
        return sum(1 for name, _ in self.calls if name == method)


def _make_gateway(node: ScriptedNode) -> JsonRpcGateway:
    client = httpx.AsyncClient(transport=httpx.MockTransport(node))
    return JsonRpcGateway(RPC_URL, poll_interval_s=0, client=client)


def _receipt(status: str = "0x1", block: str = "0x10") -> dict:
    return {
        "result": {
            "transactionHash": TX_HASH,
            "blockNumber": block,
            "gasUsed": "0x5208",
            "status": status,
        }
    }


@pytest.mark.asyncio
async def test_chain_id_is_read_once():
    node = ScriptedNode(eth_chainId=[{"result": "0x1"}])
    gateway = _make_gateway(node)

    assert await gateway.chain_id() == 1
    assert await gateway.chain_id() == 1
    assert node.count("eth_chainId") == 1


@pytest.mark.asyncio
async def test_allowance_read_decodes_uint256():
    node = ScriptedNode(eth_call=[{"result": "0x" + format(12345, "064x")}])
    gateway = _make_gateway(node)

    assert await gateway.allowance(TOKEN, OWNER, SPENDER) == 12345

    _, params = node.calls[0]
    call, block = params
    assert call["to"] == TOKEN
    assert call["data"].startswith("0xdd62ed3e")
    assert block == "latest"


@pytest.mark.asyncio
async def test_estimate_error_becomes_estimation_failure():
    node = ScriptedNode(eth_estimateGas=[{"error": {"code": 3, "message": "execution reverted"}}])
    gateway = _make_gateway(node)

    with pytest.raises(EstimationFailure):
        await gateway.estimate_gas({"to": TOKEN, "data": "0x"})


@pytest.mark.asyncio
async def test_broadcast_gas_error_is_classified():
    node = ScriptedNode(eth_sendRawTransaction=[{"error": {"code": -32000, "message": "intrinsic gas too low"}}])
    gateway = _make_gateway(node)

    with pytest.raises(GasShortfallFailure) as exc_info:
        await gateway.send_raw_transaction("0x01")

    assert exc_info.value.kind == RpcErrorKind.GAS_SHORTFALL


@pytest.mark.asyncio
async def test_broadcast_nonce_error_is_not_a_gas_shortfall():
    node = ScriptedNode(eth_sendRawTransaction=[{"error": {"code": -32000, "message": "nonce too low"}}])
    gateway = _make_gateway(node)

    with pytest.raises(BroadcastFailure) as exc_info:
        await gateway.send_raw_transaction("0x01")

    assert not isinstance(exc_info.value, GasShortfallFailure)
    assert exc_info.value.kind == RpcErrorKind.NONCE


@pytest.mark.asyncio
async def test_broadcast_returns_hash():
    node = ScriptedNode(eth_sendRawTransaction=[{"result": TX_HASH}])
    gateway = _make_gateway(node)

    assert await gateway.send_raw_transaction("0x01") == TX_HASH


@pytest.mark.asyncio
async def test_wait_polls_until_receipt_and_depth():
    node = ScriptedNode(
        eth_getTransactionReceipt=[
            httpx.Response(503, text="busy"),
            {"result": None},
            _receipt(),
        ],
        eth_blockNumber=[{"result": "0x10"}, {"result": "0x11"}],
    )
    gateway = _make_gateway(node)

    receipt = await gateway.wait_for_confirmation(TX_HASH, confirmations=2)

    assert receipt.status == ReceiptStatus.SUCCESS
    assert receipt.block_number == 16
    assert receipt.gas_used == 21000
    assert node.count("eth_blockNumber") == 2


@pytest.mark.asyncio
async def test_reverted_receipt_returns_immediately():
    node = ScriptedNode(eth_getTransactionReceipt=[_receipt(status="0x0")])
    gateway = _make_gateway(node)

    receipt = await gateway.wait_for_confirmation(TX_HASH, confirmations=5)

    assert receipt.status == ReceiptStatus.REVERTED
    assert node.count("eth_blockNumber") == 0


@pytest.mark.asyncio
async def test_wait_times_out_when_configured():
    node = ScriptedNode(eth_getTransactionReceipt=[{"result": None}])
    gateway = _make_gateway(node)

    with pytest.raises(ConfirmationTimeout) as exc_info:
        await gateway.wait_for_confirmation(TX_HASH, timeout_seconds=0)

    assert exc_info.value.tx_hash == TX_HASH


@pytest.mark.asyncio
async def test_symbol_read_decodes_abi_string():
    text = b"USDT"
    result = "0x" + format(32, "064x") + format(len(text), "064x") + text.hex().ljust(64, "0")
    node = ScriptedNode(eth_call=[{"result": result}])
    gateway = _make_gateway(node)

    assert await gateway.symbol(TOKEN) == "USDT"

    _, params = node.calls[0]
    assert params[0] == {"to": TOKEN, "data": "0x95d89b41"}
