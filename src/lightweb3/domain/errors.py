from __future__ import annotations


class Web3Error(Exception):
    """Base class for every failure raised by lightweb3."""


# ──────────────────────────────
# Transport
# ──────────────────────────────

class TransportError(Web3Error):
    """A remote call did not produce a usable result. Never retried by the client."""


class ConnectionFailed(TransportError):
    pass


class MalformedResponse(TransportError):
    pass


class NodeError(TransportError):
    def __init__(self, method: str, code: int | None, message: str) -> None:
        super().__init__(f"{method} failed: code={code} message={message}")
        self.method = method
        self.code = code
        self.message = message


# ──────────────────────────────
# Core
# ──────────────────────────────

class SignatureError(Web3Error, ValueError):
    """Event or function signature cannot be put in canonical form."""


class DecodeError(Web3Error):
    """An RPC result did not have the expected shape."""


class EventNotFound(Web3Error):
    def __init__(self, signature: str) -> None:
        super().__init__(f"event not found: {signature}")
        self.signature = signature


class FilterTeardownFailed(Web3Error):
    """eth_uninstallFilter failed; the node may still hold the filter.

    `outcome` is the error the wait would have raised had cleanup succeeded.
    """

    def __init__(self, filter_id: int, reason: str, outcome: Web3Error | None = None) -> None:
        super().__init__(f"could not uninstall filter {hex(filter_id)}: {reason}")
        self.filter_id = filter_id
        self.reason = reason
        self.outcome = outcome
