# lightweb3/ports/storage.py
from __future__ import annotations

from typing import Iterable, Protocol
from ..domain.models import Log


class EventSink(Protocol):
    """Port for writing a single chunk of scanned logs to durable storage (e.g., Parquet)."""

    async def write_chunk(
        self,
        from_block: int,
        to_block: int,
        logs: Iterable[Log],
    ) -> None:
        """Persist the logs belonging to the chunk [from_block, to_block]."""
