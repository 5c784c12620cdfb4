from __future__ import annotations
import itertools, json, logging, time
from typing import Any, Sequence

import httpx

from ..domain.errors import ConnectionFailed, MalformedResponse, NodeError
from ..ports.rpc import Transport

logger = logging.getLogger(__name__)


class HttpxTransport(Transport):
    """JSON-RPC 2.0 over a pooled httpx.AsyncClient. One POST per call, no retries."""

    def __init__(
        self,
        rpc_url: str,
        timeout_s: float = 20,
        max_conn: int = 64,
        *,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self.rpc_url = rpc_url
        self._ids = itertools.count(1)
        self.client = client or httpx.AsyncClient(
            http2=True,
            timeout=httpx.Timeout(timeout_s),
            limits=httpx.Limits(max_connections=max_conn, max_keepalive_connections=max_conn//2),
        )

    async def call(self, method: str, params: Sequence[Any]) -> Any:
        req_id = next(self._ids)
        payload = {"jsonrpc":"2.0","id":req_id,"method":method,"params":list(params)}
        logger.debug("rpc request id=%d method=%s params=%s", req_id, method, payload["params"])
        t0 = time.monotonic()
        try:
            r = await self.client.post(self.rpc_url, json=payload)
            r.raise_for_status()
        except httpx.HTTPStatusError as e:
            raise ConnectionFailed(f"{method}: HTTP {e.response.status_code} from {self.rpc_url}") from e
        except httpx.HTTPError as e:
            raise ConnectionFailed(f"{method}: {type(e).__name__}: {e}") from e

        try:
            data = r.json()
        except (json.JSONDecodeError, UnicodeDecodeError) as e:
            raise MalformedResponse(f"{method}: response is not JSON") from e
        if not isinstance(data, dict):
            raise MalformedResponse(f"{method}: expected JSON object, got {type(data).__name__}")
        logger.debug("rpc response id=%d method=%s elapsed=%.3fs", req_id, method, time.monotonic() - t0)

        if data.get("error") is not None:
            err = data["error"]
            if isinstance(err, dict):
                raise NodeError(method, err.get("code"), str(err.get("message")))
            raise NodeError(method, None, str(err))
        if "result" not in data:
            raise MalformedResponse(f"{method}: response has neither result nor error")
        return data["result"]

    async def aclose(self) -> None:
        await self.client.aclose()
