from __future__ import annotations

import contextlib
import json
import socket
from typing import AsyncIterator

import pytest
import websockets

from node_monitor.errors import NodeConnectionError, RpcRequestError
from node_monitor.models import Outcome
from node_monitor.probe import ProbeExecutor, WebSocketNodeClient


HEAD = "0x" + "0f" * 32


def _make_handler(behavior: str):
    async def handler(ws) -> None:
        async for raw in ws:
            req = json.loads(raw)
            assert req["jsonrpc"] == "2.0"
            assert req["method"] == "chain_getFinalizedHead"
            assert req["params"] == []

            if behavior == "ok":
                # Unrelated notification first; the client must skip it.
                await ws.send(json.dumps({"jsonrpc": "2.0", "method": "chain_newHead", "params": {"result": {}}}))
                await ws.send(json.dumps({"jsonrpc": "2.0", "id": req["id"], "result": HEAD}))
            elif behavior == "error":
                await ws.send(
                    json.dumps({"jsonrpc": "2.0", "id": req["id"], "error": {"code": -32601, "message": "Method not found"}})
                )
            elif behavior == "malformed":
                await ws.send(json.dumps({"jsonrpc": "2.0", "id": req["id"], "result": "not-a-hash"}))
            elif behavior == "garbage":
                await ws.send("this is not json")
            elif behavior == "empty":
                await ws.send(json.dumps({"jsonrpc": "2.0", "id": req["id"]}))
            elif behavior == "close":
                await ws.close()
                return
            elif behavior == "silent":
                await ws.wait_closed()
                return

    return handler


@contextlib.asynccontextmanager
async def _node(behavior: str) -> AsyncIterator[str]:
    async with websockets.serve(_make_handler(behavior), "127.0.0.1", 0) as server:
        port = next(iter(server.sockets)).getsockname()[1]
        yield f"ws://127.0.0.1:{port}"


def _closed_port() -> int:
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as s:
        s.bind(("127.0.0.1", 0))
        return s.getsockname()[1]


@pytest.mark.asyncio
async def test_get_finalized_head_skips_notifications() -> None:
    async with _node("ok") as url:
        connection = await WebSocketNodeClient().connect(url)
        try:
            assert await connection.get_finalized_head() == HEAD
        finally:
            await connection.close()


@pytest.mark.asyncio
@pytest.mark.parametrize("behavior", ["error", "malformed", "garbage", "empty", "close"])
async def test_bad_responses_raise_request_error(behavior: str) -> None:
    async with _node(behavior) as url:
        connection = await WebSocketNodeClient().connect(url)
        try:
            with pytest.raises(RpcRequestError):
                await connection.get_finalized_head()
        finally:
            await connection.close()


@pytest.mark.asyncio
async def test_connect_refused_raises_connection_error() -> None:
    with pytest.raises(NodeConnectionError):
        await WebSocketNodeClient().connect(f"ws://127.0.0.1:{_closed_port()}")


@pytest.mark.asyncio
async def test_executor_against_live_server() -> None:
    async with _node("ok") as url:
        executor = ProbeExecutor(url, connect_timeout=2, request_timeout=2)
        result = await executor.execute()
    assert result.outcome is Outcome.SUCCESS
    assert result.block_hash == HEAD


@pytest.mark.asyncio
async def test_executor_classifies_rpc_error() -> None:
    async with _node("error") as url:
        result = await ProbeExecutor(url, connect_timeout=2, request_timeout=2).execute()
    assert result.outcome is Outcome.REQUEST_ERROR


@pytest.mark.asyncio
async def test_executor_times_out_silent_node() -> None:
    async with _node("silent") as url:
        result = await ProbeExecutor(url, connect_timeout=2, request_timeout=0.3).execute()
    assert result.outcome is Outcome.TIMEOUT


@pytest.mark.asyncio
async def test_executor_classifies_refused_connection() -> None:
    result = await ProbeExecutor(f"ws://127.0.0.1:{_closed_port()}", connect_timeout=2, request_timeout=2).execute()
    assert result.outcome is Outcome.CONNECTION_ERROR
