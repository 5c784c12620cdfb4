# lightweb3/application/client.py
from __future__ import annotations
from typing import Any, Sequence

from ..adapters.rpc_httpx import HttpxTransport
from ..config import Settings
from ..domain.errors import DecodeError
from ..domain.models import Block, Log, LogFilterSpec, TransactionRequest, TransactionResponse, parse_logs
from ..domain.value_types import Address, Hash32, Quantity, normalize_address
from ..ports.rpc import Transport
from .events import EventsMixin
from .transactions import TransactionsMixin


def _hex_data(raw: object, method: str) -> bytes:
    if not isinstance(raw, str) or raw[:2].lower() != "0x":
        raise DecodeError(f"{method}: expected 0x data, got {raw!r}")
    try:
        return bytes.fromhex(raw[2:])
    except ValueError as e:
        raise DecodeError(f"{method}: invalid hex data") from e


class Web3(EventsMixin, TransactionsMixin):
    """Async JSON-RPC client. Holds nothing mutable beyond its transport, so one
    instance can serve any number of concurrent waits."""

    def __init__(
        self,
        transport: Transport,
        *,
        chain_id: int,
        poll_interval_s: float = 1.0,
        gas_limit: int = 6_721_975,
    ) -> None:
        self.transport = transport
        self.chain_id = chain_id
        self.poll_interval_s = poll_interval_s
        self.gas_limit = gas_limit

    @classmethod
    def from_settings(cls, settings: Settings) -> "Web3":
        transport = HttpxTransport(settings.rpc_url, settings.request_timeout_s, settings.max_connections)
        return cls(
            transport,
            chain_id=settings.chain_id,
            poll_interval_s=settings.poll_interval_s,
            gas_limit=settings.gas_limit,
        )

    async def __aenter__(self) -> "Web3":
        return self

    async def __aexit__(self, *exc: object) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self.transport.aclose()

    async def _call(self, method: str, params: Sequence[Any] = ()) -> Any:
        return await self.transport.call(method, params)

    # ──────────────────────────────
    # Node / accounts
    # ──────────────────────────────

    async def eth_accounts(self) -> list[Address]:
        raw = await self._call("eth_accounts")
        if not isinstance(raw, list):
            raise DecodeError(f"eth_accounts: expected list, got {raw!r}")
        try:
            return [normalize_address(a) for a in raw]
        except (ValueError, AttributeError) as e:
            raise DecodeError(f"eth_accounts: {e}") from e

    async def net_version(self) -> str:
        return str(await self._call("net_version"))

    async def eth_chain_id(self) -> Quantity:
        return Quantity.from_rpc(await self._call("eth_chainId"))

    async def eth_block_number(self) -> Quantity:
        return Quantity.from_rpc(await self._call("eth_blockNumber"))

    async def eth_get_block_by_number(self, block: int | str, full_transactions: bool = False) -> Block | None:
        tag = block if isinstance(block, str) else Quantity(block).to_rpc()
        raw = await self._call("eth_getBlockByNumber", [tag, full_transactions])
        return None if raw is None else Block.from_rpc(raw)

    async def eth_get_finalized_block_number(self) -> Quantity:
        block = await self.eth_get_block_by_number("finalized")
        if block is None or block.number is None:
            raise DecodeError("eth_getBlockByNumber: node returned no finalized block")
        return block.number

    async def eth_get_balance(self, address: str) -> Quantity:
        return Quantity.from_rpc(await self._call("eth_getBalance", [normalize_address(address), "latest"]))

    async def eth_get_transaction_count(self, address: str) -> Quantity:
        return Quantity.from_rpc(
            await self._call("eth_getTransactionCount", [normalize_address(address), "latest"])
        )

    async def eth_gas_price(self) -> Quantity:
        return Quantity.from_rpc(await self._call("eth_gasPrice"))

    # ──────────────────────────────
    # Filters and logs
    # ──────────────────────────────

    async def eth_new_filter(self, spec: LogFilterSpec) -> Quantity:
        return Quantity.from_rpc(await self._call("eth_newFilter", [spec.to_rpc()]))

    async def eth_get_filter_changes(self, filter_id: int) -> list[Log]:
        return parse_logs(await self._call("eth_getFilterChanges", [Quantity(filter_id).to_rpc()]))

    async def eth_uninstall_filter(self, filter_id: int) -> bool:
        raw = await self._call("eth_uninstallFilter", [Quantity(filter_id).to_rpc()])
        if not isinstance(raw, bool):
            raise DecodeError(f"eth_uninstallFilter: expected bool, got {raw!r}")
        return raw

    async def eth_get_logs(self, spec: LogFilterSpec) -> list[Log]:
        return parse_logs(await self._call("eth_getLogs", [spec.to_rpc()]))

    # ──────────────────────────────
    # Transactions
    # ──────────────────────────────

    async def eth_send_transaction(self, tx: TransactionRequest) -> Hash32:
        return Hash32.from_rpc(await self._call("eth_sendTransaction", [tx.to_rpc()]))

    async def eth_send_raw_transaction(self, raw: bytes) -> Hash32:
        return Hash32.from_rpc(await self._call("eth_sendRawTransaction", ["0x" + bytes(raw).hex()]))

    async def eth_call(self, tx: TransactionRequest, block: str = "latest") -> bytes:
        return _hex_data(await self._call("eth_call", [tx.to_rpc(), block]), "eth_call")

    async def eth_get_transaction_by_hash(self, tx_hash: int | bytes) -> TransactionResponse | None:
        h = Hash32.from_rpc(tx_hash) if isinstance(tx_hash, (bytes, bytearray)) else Hash32(tx_hash)
        raw = await self._call("eth_getTransactionByHash", [h.to_rpc()])
        return None if raw is None else TransactionResponse.from_rpc(raw)

    async def eth_get_transaction_receipt(self, tx_hash: int) -> dict[str, Any] | None:
        raw = await self._call("eth_getTransactionReceipt", [Hash32(tx_hash).to_rpc()])
        if raw is not None and not isinstance(raw, dict):
            raise DecodeError(f"eth_getTransactionReceipt: expected object, got {raw!r}")
        return raw

    # ──────────────────────────────
    # Dev-node helpers
    # ──────────────────────────────

    async def evm_snapshot(self) -> Quantity:
        return Quantity.from_rpc(await self._call("evm_snapshot"))

    async def evm_revert(self, snapshot_id: int) -> bool:
        return bool(await self._call("evm_revert", [Hash32(snapshot_id).to_rpc()]))
