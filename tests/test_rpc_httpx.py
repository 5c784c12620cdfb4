import json

import httpx
import pytest

from lightweb3.adapters.rpc_httpx import HttpxTransport
from lightweb3.application.client import Web3
from lightweb3.domain.errors import ConnectionFailed, MalformedResponse, NodeError

URL = "http://node.test"


def make(handler) -> HttpxTransport:
    return HttpxTransport(URL, client=httpx.AsyncClient(transport=httpx.MockTransport(handler)))


async def test_call_posts_jsonrpc_and_returns_result():
    seen = []

    def handler(request: httpx.Request) -> httpx.Response:
        body = json.loads(request.content)
        seen.append(body)
        return httpx.Response(200, json={"jsonrpc": "2.0", "id": body["id"], "result": "0x10"})

    t = make(handler)
    async with Web3(t, chain_id=1) as web3:
        assert await web3.eth_block_number() == 16
        assert await web3.eth_gas_price() == 16
    assert [b["method"] for b in seen] == ["eth_blockNumber", "eth_gasPrice"]
    assert seen[0]["params"] == [] and seen[0]["jsonrpc"] == "2.0"
    assert seen[0]["id"] != seen[1]["id"]


async def test_node_error_is_reported_with_code_and_message():
    t = make(lambda r: httpx.Response(200, json={"jsonrpc": "2.0", "id": 1,
                                                 "error": {"code": -32601, "message": "method not found"}}))
    with pytest.raises(NodeError) as exc:
        await t.call("evm_snapshot", [])
    assert exc.value.code == -32601
    assert exc.value.message == "method not found"
    assert exc.value.method == "evm_snapshot"


@pytest.mark.parametrize("response", [
    httpx.Response(200, content=b"<html>bad gateway</html>"),
    httpx.Response(200, json=[1, 2, 3]),
    httpx.Response(200, json={"jsonrpc": "2.0", "id": 1}),
])
async def test_malformed_responses(response):
    t = make(lambda r: response)
    with pytest.raises(MalformedResponse):
        await t.call("eth_blockNumber", [])


async def test_http_status_is_connection_failure():
    t = make(lambda r: httpx.Response(503, text="unavailable"))
    with pytest.raises(ConnectionFailed) as exc:
        await t.call("eth_blockNumber", [])
    assert "503" in str(exc.value)


async def test_network_error_is_connection_failure_and_not_retried():
    attempts = []

    def handler(request):
        attempts.append(request)
        raise httpx.ConnectError("refused", request=request)

    t = make(handler)
    with pytest.raises(ConnectionFailed) as exc:
        await t.call("eth_gasPrice", [])
    assert isinstance(exc.value.__cause__, httpx.ConnectError)
    assert len(attempts) == 1


async def test_null_result_is_a_result():
    t = make(lambda r: httpx.Response(200, json={"jsonrpc": "2.0", "id": 1, "result": None}))
    async with Web3(t, chain_id=1) as web3:
        assert await web3.eth_get_transaction_by_hash(1) is None
