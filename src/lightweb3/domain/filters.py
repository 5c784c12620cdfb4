# lightweb3/domain/filters.py
from __future__ import annotations
from typing import Iterable, Optional, Sequence

from .models import LogFilterSpec, TopicPosition
from .topics import event_topic, to_wire_hex
from .value_types import Address, normalize_address

# None = wildcard position, otherwise the raw 32-byte values accepted at that position.
TopicGroup = Optional[Sequence[bytes]]

MAX_TOPIC_POSITIONS = 4


def _block_param(block: int | str | None) -> str | None:
    if block is None or isinstance(block, str): return block
    return hex(int(block))


def _encode_group(group: TopicGroup) -> TopicPosition:
    if group is None:
        return None
    if isinstance(group, (bytes, bytearray, memoryview, str)):
        raise TypeError(f"a topic group is a list of 32-byte values, got a bare {type(group).__name__}")
    return [to_wire_hex(v) for v in group]


def build_filter(
    addresses: Iterable[str | bytes],
    topic_groups: Sequence[TopicGroup] = (),
    *,
    from_block: int | str | None = None,
    to_block: int | str | None = None,
) -> LogFilterSpec:
    """Shape-only assembly: one topic position per group, in caller order."""
    if len(topic_groups) > MAX_TOPIC_POSITIONS:
        raise ValueError(f"at most {MAX_TOPIC_POSITIONS} topic positions, got {len(topic_groups)}")
    addrs: tuple[Address, ...] = tuple(normalize_address(a) for a in addresses)
    return LogFilterSpec(
        address=addrs,
        from_block=_block_param(from_block),
        to_block=_block_param(to_block),
        topics=tuple(_encode_group(g) for g in topic_groups),
    )


def signature_filter(
    addresses: Iterable[str | bytes],
    signature: str,
    topic_groups: Sequence[TopicGroup] = (),
    *,
    from_block: int | str | None = None,
    to_block: int | str | None = None,
) -> LogFilterSpec:
    """Event signature at position 0, indexed-argument groups after it (AND across positions)."""
    return build_filter(
        addresses,
        [[event_topic(signature)], *topic_groups],
        from_block=from_block,
        to_block=to_block,
    )


def alternatives_filter(
    addresses: Iterable[str | bytes],
    signatures: Sequence[str],
    *,
    from_block: int | str | None = None,
    to_block: int | str | None = None,
) -> LogFilterSpec:
    """Any of several event kinds: every signature hash is an alternative at position 0.

    No signatures means no topic constraint: every log from `addresses` matches.
    """
    return build_filter(
        addresses,
        [[event_topic(s) for s in signatures]] if signatures else [],
        from_block=from_block,
        to_block=to_block,
    )
