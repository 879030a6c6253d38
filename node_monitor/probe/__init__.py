"""Probe cycle: WebSocket JSON-RPC client plus the timed executor around it."""

from .executor import ProbeExecutor
from .rpc_client import NodeClient, NodeConnection, WebSocketNodeClient, WebSocketNodeConnection

__all__ = [
    "NodeClient",
    "NodeConnection",
    "ProbeExecutor",
    "WebSocketNodeClient",
    "WebSocketNodeConnection",
]
