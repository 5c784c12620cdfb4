# lightweb3/ports/rpc.py
from __future__ import annotations

from typing import Any, Protocol, Sequence


class Transport(Protocol):
    """Port for a JSON-RPC node connection: one named call, ordered params, raw result."""

    async def call(self, method: str, params: Sequence[Any]) -> Any:
        """Return the decoded `result` member. Raise a TransportError subclass on failure."""

    async def aclose(self) -> None:
        """Release pooled connections."""
