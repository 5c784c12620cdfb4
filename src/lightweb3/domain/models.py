from __future__ import annotations
from dataclasses import dataclass, field
from collections.abc import Mapping, Sequence
from typing import Any, Optional

from .errors import DecodeError
from .value_types import Address, Hash32, Quantity, normalize_address

# A topic position: None matches anything, otherwise any of the listed hex values.
TopicPosition = Optional[list[Optional[str]]]


def _hex_bytes(raw: object, what: str) -> bytes:
    if not isinstance(raw, str) or raw[:2].lower() != "0x":
        raise DecodeError(f"{what}: expected 0x data, got {raw!r}")
    h = raw[2:]
    if len(h) % 2: h = "0" + h
    try:
        return bytes.fromhex(h)
    except ValueError as exc:
        raise DecodeError(f"{what}: invalid hex {raw!r}") from exc


def _opt(rl: Mapping[str, Any], key: str, conv):
    v = rl.get(key)
    return None if v is None else conv(v)


@dataclass(slots=True, frozen=True)
class LogFilterSpec:
    address: tuple[Address, ...]
    from_block: str | None = None
    to_block: str | None = None
    topics: tuple[TopicPosition, ...] = ()

    def to_rpc(self) -> dict[str, Any]:
        return {
            "address": list(self.address),
            "fromBlock": self.from_block,
            "toBlock": self.to_block,
            "topics": [None if p is None else list(p) for p in self.topics],
        }


@dataclass(slots=True, frozen=True)
class Log:
    address: Address
    topics: tuple[bytes, ...]
    data: bytes
    block_number: int | None
    block_hash: Hash32 | None
    tx_hash: Hash32 | None
    tx_index: int | None
    log_index: int | None
    removed: bool = False

    @property
    def topic0(self) -> bytes | None:
        return self.topics[0] if self.topics else None

    @classmethod
    def from_rpc(cls, rl: object) -> "Log":
        if not isinstance(rl, Mapping):
            raise DecodeError(f"log: expected object, got {type(rl).__name__}")
        try:
            address = normalize_address(rl["address"])
            topics = tuple(_hex_bytes(t, "topic") for t in rl.get("topics") or [])
            data = _hex_bytes(rl.get("data", "0x"), "data")
        except (KeyError, ValueError, AttributeError) as exc:
            raise DecodeError(f"log: {exc}") from exc
        # pending logs carry null provenance
        return cls(
            address=address,
            topics=topics,
            data=data,
            block_number=_opt(rl, "blockNumber", Quantity.from_rpc),
            block_hash=_opt(rl, "blockHash", Hash32.from_rpc),
            tx_hash=_opt(rl, "transactionHash", Hash32.from_rpc),
            tx_index=_opt(rl, "transactionIndex", Quantity.from_rpc),
            log_index=_opt(rl, "logIndex", Quantity.from_rpc),
            removed=bool(rl.get("removed", False)),
        )


@dataclass(slots=True, frozen=True)
class TransactionRequest:
    from_: Address
    to: Address | None = None          # None creates a contract
    nonce: Quantity | None = None
    gas: Quantity | None = None
    gas_price: Quantity | None = None
    value: Quantity | None = None
    data: bytes | None = None

    def to_rpc(self) -> dict[str, str]:
        out: dict[str, str] = {"from": self.from_}
        if self.to is not None: out["to"] = self.to
        if self.nonce is not None: out["nonce"] = Quantity(self.nonce).to_rpc()
        if self.gas is not None: out["gas"] = Quantity(self.gas).to_rpc()
        if self.gas_price is not None: out["gasPrice"] = Quantity(self.gas_price).to_rpc()
        if self.value is not None: out["value"] = Quantity(self.value).to_rpc()
        if self.data is not None: out["data"] = "0x" + self.data.hex()
        return out


@dataclass(slots=True, frozen=True)
class TransactionResponse:
    hash: Hash32
    nonce: Quantity
    from_: Address
    to: Address | None
    value: Quantity
    gas: Quantity
    gas_price: Quantity | None
    input: bytes
    block_number: Quantity | None      # None while pending
    block_hash: Hash32 | None
    transaction_index: Quantity | None

    @property
    def is_pending(self) -> bool:
        return self.block_number is None

    @classmethod
    def from_rpc(cls, rt: object) -> "TransactionResponse":
        if not isinstance(rt, Mapping):
            raise DecodeError(f"transaction: expected object, got {type(rt).__name__}")
        try:
            return cls(
                hash=Hash32.from_rpc(rt["hash"]),
                nonce=Quantity.from_rpc(rt["nonce"]),
                from_=normalize_address(rt["from"]),
                to=_opt(rt, "to", normalize_address),
                value=Quantity.from_rpc(rt.get("value", "0x0")),
                gas=Quantity.from_rpc(rt.get("gas", "0x0")),
                gas_price=_opt(rt, "gasPrice", Quantity.from_rpc),
                input=_hex_bytes(rt.get("input", "0x"), "input"),
                block_number=_opt(rt, "blockNumber", Quantity.from_rpc),
                block_hash=_opt(rt, "blockHash", Hash32.from_rpc),
                transaction_index=_opt(rt, "transactionIndex", Quantity.from_rpc),
            )
        except KeyError as exc:
            raise DecodeError(f"transaction: missing field {exc}") from exc
        except ValueError as exc:
            raise DecodeError(f"transaction: {exc}") from exc


@dataclass(slots=True, frozen=True)
class Block:
    number: Quantity | None
    hash: Hash32 | None
    parent_hash: Hash32
    timestamp: Quantity
    gas_limit: Quantity
    gas_used: Quantity
    base_fee_per_gas: Quantity | None = None
    transactions: tuple[Hash32, ...] = field(default=())

    @classmethod
    def from_rpc(cls, rb: object) -> "Block":
        if not isinstance(rb, Mapping):
            raise DecodeError(f"block: expected object, got {type(rb).__name__}")
        try:
            txs = rb.get("transactions") or []
            return cls(
                number=_opt(rb, "number", Quantity.from_rpc),
                hash=_opt(rb, "hash", Hash32.from_rpc),
                parent_hash=Hash32.from_rpc(rb["parentHash"]),
                timestamp=Quantity.from_rpc(rb["timestamp"]),
                gas_limit=Quantity.from_rpc(rb["gasLimit"]),
                gas_used=Quantity.from_rpc(rb["gasUsed"]),
                base_fee_per_gas=_opt(rb, "baseFeePerGas", Quantity.from_rpc),
                # full transaction objects are reduced to their hashes
                transactions=tuple(Hash32.from_rpc(t["hash"] if isinstance(t, Mapping) else t) for t in txs),
            )
        except KeyError as exc:
            raise DecodeError(f"block: missing field {exc}") from exc


def parse_logs(raw: object) -> list[Log]:
    if raw is None:
        return []
    if not isinstance(raw, Sequence) or isinstance(raw, (str, bytes)):
        raise DecodeError(f"expected list of logs, got {type(raw).__name__}")
    return [Log.from_rpc(rl) for rl in raw]


@dataclass(slots=True, frozen=True)
class BlockRange:
    start: int
    end: int
    def span(self) -> int: return self.end - self.start + 1
