"""Timed connect + finalized-head cycle against a single node endpoint."""

from __future__ import annotations

import asyncio
import time
from datetime import datetime, timezone

import structlog

from ..errors import NodeConnectionError, RpcRequestError
from ..models import Outcome, ProbeResult
from .rpc_client import NodeClient, NodeConnection, WebSocketNodeClient


logger = structlog.get_logger(__name__)


class ProbeExecutor:
    """Runs one probe cycle and classifies it.

    The connect phase and the request phase each get their own budget. When a
    budget runs out the pending operation is cancelled, so an abandoned attempt
    cannot complete later and be counted against a subsequent cycle.
    """

    def __init__(
        self,
        endpoint: str,
        *,
        connect_timeout: float,
        request_timeout: float,
        client: NodeClient | None = None,
        close_timeout: float | None = None,
    ):
        self.endpoint = endpoint
        self.connect_timeout = float(connect_timeout)
        self.request_timeout = float(request_timeout)
        self.close_timeout = float(close_timeout) if close_timeout is not None else self.request_timeout
        self.client: NodeClient = client or WebSocketNodeClient()

    async def execute(self) -> ProbeResult:
        """Run a single cycle. Never raises for probe failures."""
        started = time.monotonic()
        outcome, block_hash, error = await self._probe()
        result = ProbeResult(
            outcome=outcome,
            timestamp=datetime.now(timezone.utc),
            elapsed_seconds=round(time.monotonic() - started, 3),
            block_hash=block_hash,
            error=error,
        )

        if result.ok:
            logger.debug(
                "Successful check",
                endpoint=self.endpoint,
                finalized_head=block_hash,
                elapsed_seconds=result.elapsed_seconds,
            )
        else:
            logger.warning(
                "Check failed",
                endpoint=self.endpoint,
                outcome=outcome.value,
                error=error,
                elapsed_seconds=result.elapsed_seconds,
            )
        return result

    async def _probe(self) -> tuple[Outcome, str | None, str | None]:
        try:
            connection = await asyncio.wait_for(self.client.connect(self.endpoint), timeout=self.connect_timeout)
        except asyncio.TimeoutError:
            return Outcome.TIMEOUT, None, f"connection not established within {self.connect_timeout:g}s"
        except NodeConnectionError as exc:
            return Outcome.CONNECTION_ERROR, None, f"connection failed: {exc}"
        except Exception as exc:
            return Outcome.CONNECTION_ERROR, None, f"connection failed: {type(exc).__name__}: {exc}"

        try:
            block_hash = await asyncio.wait_for(connection.get_finalized_head(), timeout=self.request_timeout)
        except asyncio.TimeoutError:
            return Outcome.TIMEOUT, None, f"no finalized head within {self.request_timeout:g}s"
        except RpcRequestError as exc:
            return Outcome.REQUEST_ERROR, None, f"request failed: {exc}"
        except Exception as exc:
            return Outcome.REQUEST_ERROR, None, f"request failed: {type(exc).__name__}: {exc}"
        finally:
            await self._close(connection)

        return Outcome.SUCCESS, block_hash, None

    async def _close(self, connection: NodeConnection) -> None:
        try:
            await asyncio.wait_for(connection.close(), timeout=self.close_timeout)
        except Exception as exc:
            # Outcome is already decided at this point.
            logger.debug("Failed to close node connection", endpoint=self.endpoint, error=f"{type(exc).__name__}: {exc}")
