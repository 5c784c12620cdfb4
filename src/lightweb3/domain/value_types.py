from __future__ import annotations
from typing import Literal, NewType

from eth_utils import is_canonical_address, is_hex_address, to_normalized_address

from .errors import DecodeError

Address = NewType("Address", str)   # 0x-prefixed, lowercase, 40 hex digits
HexStr  = NewType("HexStr", str)    # 0x-prefixed, lowercase
BlockTag = Literal["latest", "earliest", "pending", "safe", "finalized"]

ZERO_TOPIC = "0x" + "0" * 64


class Quantity(int):
    """Amounts, nonces, block numbers and filter ids: rendered without leading zeros."""

    def to_rpc(self) -> str:
        return hex(self)

    @classmethod
    def from_rpc(cls, raw: object) -> "Quantity":
        if isinstance(raw, int) and not isinstance(raw, bool):
            return cls(raw)
        if not isinstance(raw, str) or not raw[:2].lower() == "0x":
            raise DecodeError(f"expected hex quantity, got {raw!r}")
        try:
            return cls(int(raw, 16) if len(raw) > 2 else 0)
        except ValueError as exc:
            raise DecodeError(f"invalid hex quantity {raw!r}") from exc


class Hash32(int):
    """Transaction hashes and snapshot ids: always rendered as 32 zero-padded bytes."""

    def to_rpc(self) -> str:
        return f"0x{self:064x}"

    def to_bytes32(self) -> bytes:
        return self.to_bytes(32, "big")

    @classmethod
    def from_rpc(cls, raw: object) -> "Hash32":
        if isinstance(raw, (bytes, bytearray)):
            if len(raw) != 32:
                raise DecodeError(f"expected 32 bytes, got {len(raw)}")
            return cls(int.from_bytes(raw, "big"))
        if not isinstance(raw, str) or not raw[:2].lower() == "0x":
            raise DecodeError(f"expected 0x hash, got {raw!r}")
        try:
            return cls(int(raw, 16))
        except ValueError as exc:
            raise DecodeError(f"invalid hash {raw!r}") from exc


def normalize_address(raw: str | bytes) -> Address:
    if isinstance(raw, (bytes, bytearray)):
        if not is_canonical_address(bytes(raw)):
            raise ValueError(f"address must be 20 bytes, got {len(raw)}")
        return Address(to_normalized_address(bytes(raw)))
    s = raw.strip()
    if not is_hex_address(s):
        raise ValueError(f"invalid address: {raw!r}")
    return Address(to_normalized_address(s))
