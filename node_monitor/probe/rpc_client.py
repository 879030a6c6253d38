"""Minimal JSON-RPC 2.0 client for Substrate nodes over WebSocket."""

from __future__ import annotations

import itertools
import json
import re
from typing import Any, Protocol, Sequence

import structlog
import websockets
import websockets.exceptions

from ..errors import NodeConnectionError, RpcRequestError


logger = structlog.get_logger(__name__)

FINALIZED_HEAD_METHOD = "chain_getFinalizedHead"

_BLOCK_HASH_RE = re.compile(r"0x[0-9a-fA-F]{64}")


class NodeConnection(Protocol):
    async def get_finalized_head(self) -> str: ...

    async def close(self) -> None: ...


class NodeClient(Protocol):
    async def connect(self, url: str) -> NodeConnection: ...


def _decode_message(raw: str | bytes) -> dict[str, Any]:
    if isinstance(raw, (bytes, bytearray)):
        try:
            raw = bytes(raw).decode("utf-8")
        except UnicodeDecodeError as exc:
            raise RpcRequestError(f"non utf-8 frame from node: {exc}") from exc
    try:
        message = json.loads(raw)
    except ValueError as exc:
        raise RpcRequestError(f"invalid JSON from node: {exc}") from exc
    if not isinstance(message, dict):
        raise RpcRequestError(f"unexpected JSON-RPC payload type: {type(message).__name__}")
    return message


class WebSocketNodeConnection:
    """One open WebSocket session to a node.

    Requests are matched to responses by id. Subscription notifications or
    stale responses that arrive in between are skipped.
    """

    def __init__(self, websocket: Any) -> None:
        self._ws = websocket
        self._ids = itertools.count(1)

    async def request(self, method: str, params: Sequence[Any] | None = None) -> Any:
        request_id = next(self._ids)
        payload = json.dumps({"jsonrpc": "2.0", "id": request_id, "method": method, "params": list(params or [])})
        try:
            await self._ws.send(payload)
            while True:
                message = _decode_message(await self._ws.recv())
                if message.get("id") == request_id:
                    break
                logger.debug("Skipping unrelated node message", method=method, message_id=message.get("id"))
        except websockets.exceptions.ConnectionClosed as exc:
            raise RpcRequestError(f"connection closed during {method}: {exc}") from exc

        if message.get("error") is not None:
            error = message["error"]
            if isinstance(error, dict):
                raise RpcRequestError(f"{method} failed: code={error.get('code')} message={error.get('message')}")
            raise RpcRequestError(f"{method} failed: {error!r}")
        if "result" not in message:
            raise RpcRequestError(f"{method} response has neither result nor error")
        return message["result"]

    async def get_finalized_head(self) -> str:
        result = await self.request(FINALIZED_HEAD_METHOD)
        if not isinstance(result, str) or not _BLOCK_HASH_RE.fullmatch(result):
            raise RpcRequestError(f"malformed finalized head: {result!r}")
        return result

    async def close(self) -> None:
        await self._ws.close()


class WebSocketNodeClient:
    """Opens WebSocket sessions to a node.

    No timeouts are applied here: the probe executor bounds ``connect`` and
    the RPC call and cancels them when a budget runs out.
    """

    def __init__(self, *, max_message_bytes: int = 1 << 20, close_timeout: float = 2.0) -> None:
        self.max_message_bytes = int(max_message_bytes)
        self.close_timeout = float(close_timeout)

    async def connect(self, url: str) -> WebSocketNodeConnection:
        try:
            websocket = await websockets.connect(
                url,
                open_timeout=None,
                ping_interval=None,
                close_timeout=self.close_timeout,
                max_size=self.max_message_bytes,
            )
        except (OSError, websockets.exceptions.WebSocketException) as exc:
            raise NodeConnectionError(f"{type(exc).__name__}: {exc}") from exc
        return WebSocketNodeConnection(websocket)
