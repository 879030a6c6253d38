"""HTTP exposition of the probe counters."""

from __future__ import annotations

from contextlib import asynccontextmanager
from typing import AsyncIterator

import structlog
from fastapi import FastAPI
from fastapi.responses import PlainTextResponse

from . import __version__
from .metrics import EXPOSITION_CONTENT_TYPE, MetricsRegistry, render_exposition
from .scheduler import ProbeScheduler


logger = structlog.get_logger(__name__)


def create_app(endpoint: str, registry: MetricsRegistry, scheduler: ProbeScheduler | None = None) -> FastAPI:
    """Build the metrics app.

    When a scheduler is given it is started and stopped with the app, so probing
    runs exactly as long as the server does.
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        if app.state.scheduler is not None:
            await app.state.scheduler.start()
        logger.info("Metrics server started", endpoint=endpoint)
        try:
            yield
        finally:
            if app.state.scheduler is not None:
                await app.state.scheduler.stop()
            logger.info("Metrics server stopped", endpoint=endpoint)

    app = FastAPI(title="Node Monitor", version=__version__, lifespan=lifespan)
    app.state.endpoint = endpoint
    app.state.registry = registry
    app.state.scheduler = scheduler

    @app.get("/")
    async def root():
        """Health check endpoint."""
        body = {
            "status": "healthy",
            "service": "node-monitor",
            "endpoint": endpoint,
            "checks": app.state.registry.total(endpoint),
        }
        if app.state.scheduler is not None:
            body["scheduler"] = app.state.scheduler.get_status()
        return body

    @app.get("/metrics")
    async def metrics() -> PlainTextResponse:
        """Current outcome counters in Prometheus text format."""
        samples = app.state.registry.snapshot()
        return PlainTextResponse(render_exposition(samples), media_type=EXPOSITION_CONTENT_TYPE)

    return app
