from __future__ import annotations

from typing import Any, Callable, Sequence

import pytest

from lightweb3.application.client import Web3

CONTRACT = "0x" + "c0" * 20
OTHER = "0x" + "0a" * 20
FILTER_ID = "0x1f"


class FakeTransport:
    """Scripted node. Each method gets either a callable(params) or a list of results
    consumed in order (the last one repeats). Exception instances are raised."""

    def __init__(self) -> None:
        self.calls: list[tuple[str, list[Any]]] = []
        self.scripts: dict[str, Any] = {}
        self.closed = False

    def script(self, method: str, *results: Any) -> "FakeTransport":
        self.scripts[method] = list(results)
        return self

    def handle(self, method: str, fn: Callable[[list[Any]], Any]) -> "FakeTransport":
        self.scripts[method] = fn
        return self

    def calls_to(self, method: str) -> list[list[Any]]:
        return [p for m, p in self.calls if m == method]

    async def call(self, method: str, params: Sequence[Any]) -> Any:
        params = list(params)
        self.calls.append((method, params))
        if method not in self.scripts:
            raise AssertionError(f"unexpected rpc call {method}{params}")
        s = self.scripts[method]
        out = s(params) if callable(s) else (s.pop(0) if len(s) > 1 else s[0])
        if isinstance(out, BaseException):
            raise out
        return out

    async def aclose(self) -> None:
        self.closed = True


def rpc_log(*topics: bytes, address: str = CONTRACT, data: bytes = b"", block: int = 100,
            tx: int = 0xAB, index: int = 0) -> dict[str, Any]:
    return {
        "address": address,
        "topics": ["0x" + t.hex() for t in topics],
        "data": "0x" + data.hex(),
        "blockNumber": hex(block),
        "blockHash": "0x" + "11" * 32,
        "transactionHash": f"0x{tx:064x}",
        "transactionIndex": "0x0",
        "logIndex": hex(index),
        "removed": False,
    }


def rpc_block(number: int) -> dict[str, Any]:
    return {
        "number": hex(number),
        "hash": "0x" + "22" * 32,
        "parentHash": "0x" + "33" * 32,
        "timestamp": "0x64",
        "gasLimit": "0x1c9c380",
        "gasUsed": "0x0",
        "transactions": [],
    }


def rpc_tx(tx_hash: int, block: int | None = 5) -> dict[str, Any]:
    return {
        "hash": f"0x{tx_hash:064x}",
        "nonce": "0x7",
        "from": OTHER,
        "to": CONTRACT,
        "value": "0x0",
        "gas": "0x5208",
        "gasPrice": "0x3b9aca00",
        "input": "0x",
        "blockNumber": None if block is None else hex(block),
        "blockHash": None if block is None else "0x" + "44" * 32,
        "transactionIndex": None if block is None else "0x0",
    }


@pytest.fixture
def transport() -> FakeTransport:
    return FakeTransport()


@pytest.fixture
def web3(transport: FakeTransport) -> Web3:
    return Web3(transport, chain_id=1, poll_interval_s=0.02)
