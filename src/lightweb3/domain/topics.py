# lightweb3/domain/topics.py
from __future__ import annotations

import re
from typing import Any, Sequence

from eth_abi import encode as abi_encode
from eth_utils import keccak

from .errors import SignatureError
from .value_types import Address, HexStr, normalize_address

_NAME_RE = re.compile(r"^[A-Za-z_$][A-Za-z0-9_$]*$")
_ELEMENTARY_RE = re.compile(
    r"^(address|bool|string|bytes([1-9]|[12][0-9]|3[0-2])?|u?int(8|16|24|32|40|48|56|64|72|80|88|96|104|112|120|128|136|144|152|160|168|176|184|192|200|208|216|224|232|240|248|256)?|u?fixed([0-9]+x[0-9]+)?|function)$"
)
_ARRAY_RE = re.compile(r"(\[[0-9]*\])*$")
_ALIASES = {"uint": "uint256", "int": "int256", "byte": "bytes1",
            "fixed": "fixed128x18", "ufixed": "ufixed128x18"}
_MODIFIERS = {"indexed", "memory", "calldata", "storage", "payable"}


def _split_top_level(s: str) -> list[str]:
    """Split on commas that are not nested inside parentheses."""
    parts: list[str] = []
    depth, cur = 0, []
    for ch in s:
        if ch == "(":
            depth += 1
        elif ch == ")":
            depth -= 1
            if depth < 0:
                raise SignatureError(f"unbalanced parentheses in {s!r}")
        if ch == "," and depth == 0:
            parts.append("".join(cur)); cur = []
            continue
        cur.append(ch)
    if depth != 0:
        raise SignatureError(f"unbalanced parentheses in {s!r}")
    parts.append("".join(cur))
    return parts


def _canonical_type(arg: str) -> str:
    arg = arg.strip()
    if not arg:
        raise SignatureError("empty argument type")
    if arg.startswith("("):
        # tuple: "(uint256,address)[] name"
        close = _matching_paren(arg)
        inner = arg[1:close]
        rest = arg[close + 1:].split()
        suffix = rest[0] if rest and rest[0].startswith("[") else ""
        if suffix and not _ARRAY_RE.fullmatch(suffix):
            raise SignatureError(f"invalid array suffix {suffix!r}")
        members = [] if not inner.strip() else [_canonical_type(p) for p in _split_top_level(inner)]
        return "(" + ",".join(members) + ")" + suffix
    if arg.startswith("tuple("):
        return _canonical_type(arg[len("tuple"):])
    words = [w for w in arg.split() if w not in _MODIFIERS]
    if not words:
        raise SignatureError(f"no type in {arg!r}")
    ty = words[0]
    m = re.match(r"^([A-Za-z0-9]+)((\[[0-9]*\])*)$", ty)
    if not m:
        raise SignatureError(f"invalid type {ty!r}")
    base, arrays = m.group(1), m.group(2)
    base = _ALIASES.get(base, base)
    if not _ELEMENTARY_RE.match(base):
        raise SignatureError(f"unknown type {ty!r}")
    return base + arrays


def _matching_paren(s: str) -> int:
    depth = 0
    for i, ch in enumerate(s):
        if ch == "(":
            depth += 1
        elif ch == ")":
            depth -= 1
            if depth == 0:
                return i
    raise SignatureError(f"unbalanced parentheses in {s!r}")


def parse_signature(signature: str) -> tuple[str, list[str]]:
    """Return (name, canonical argument types) for `Name(type a, type indexed b)`."""
    s = signature.strip()
    if s.startswith("event "): s = s[len("event "):].strip()
    elif s.startswith("function "): s = s[len("function "):].strip()
    open_at = s.find("(")
    if open_at <= 0 or not s.endswith(")"):
        raise SignatureError(f"malformed signature: {signature!r}")
    name = s[:open_at].strip()
    if not _NAME_RE.match(name):
        raise SignatureError(f"invalid name in signature: {signature!r}")
    if _matching_paren(s[open_at:]) != len(s) - open_at - 1:
        raise SignatureError(f"trailing text in signature: {signature!r}")
    body = s[open_at + 1:-1]
    if not body.strip():
        return name, []
    return name, [_canonical_type(a) for a in _split_top_level(body)]


def canonical_signature(signature: str) -> str:
    name, types = parse_signature(signature)
    return f"{name}({','.join(types)})"


# ──────────────────────────────
# Topic codec
# ──────────────────────────────

def event_topic(signature: str) -> bytes:
    """keccak256 of the canonical event signature (topic 0)."""
    return keccak(text=canonical_signature(signature))


def address_topic(address: str | bytes) -> bytes:
    """An address as an indexed argument: 12 zero bytes followed by the 20 address bytes."""
    addr = normalize_address(address)
    return b"\x00" * 12 + bytes.fromhex(addr[2:])


def topic_to_address(topic: bytes) -> Address:
    if len(topic) != 32:
        raise ValueError(f"topic must be 32 bytes, got {len(topic)}")
    return normalize_address(topic[12:])


def to_wire_hex(data: bytes) -> HexStr:
    if not isinstance(data, (bytes, bytearray, memoryview)):
        raise TypeError(f"expected bytes, got {type(data).__name__}")
    return HexStr("0x" + bytes(data).hex())


# ──────────────────────────────
# Calls
# ──────────────────────────────

def function_selector(signature: str) -> bytes:
    return keccak(text=canonical_signature(signature))[:4]


def encode_call(signature: str, args: Sequence[Any]) -> bytes:
    """4-byte selector followed by the ABI encoding of `args`."""
    _, types = parse_signature(signature)
    if len(types) != len(args):
        raise SignatureError(f"{signature!r} takes {len(types)} arguments, got {len(args)}")
    return function_selector(signature) + abi_encode(types, list(args))
