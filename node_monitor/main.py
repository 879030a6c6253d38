"""Command line entry point for the node monitor."""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from typing import Sequence

import structlog
import uvicorn

from . import __version__
from .config import MonitorSettings, load_settings
from .errors import ConfigError
from .metrics import MetricsRegistry, render_exposition
from .models import Outcome
from .probe import ProbeExecutor
from .scheduler import ProbeScheduler
from .server import create_app


logger = structlog.get_logger(__name__)


def configure_logging(verbose: bool) -> None:
    level = logging.DEBUG if verbose else logging.INFO
    structlog.configure(
        processors=[
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="ISO"),
            structlog.dev.ConsoleRenderer(),
        ],
        wrapper_class=structlog.make_filtering_bound_logger(level),
        # stdout is reserved for --once output.
        logger_factory=structlog.PrintLoggerFactory(file=sys.stderr),
        cache_logger_on_first_use=True,
    )

    # APScheduler and websockets log through the standard library.
    logging.basicConfig(
        level=level,
        format="%(asctime)s %(levelname)s %(name)s %(message)s",
        stream=sys.stderr,
    )
    logging.getLogger("websockets").setLevel(logging.WARNING)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="node-monitor",
        description="Monitor a Substrate node WebSocket endpoint and expose check results as metrics",
    )
    parser.add_argument("url", nargs="?", default=None, help="WebSocket URL of the node (ws:// or wss://)")
    parser.add_argument(
        "--monitor-interval",
        type=int,
        default=None,
        help="Seconds between connection checks (default: 60)",
    )
    parser.add_argument(
        "--monitor-connection-timeout",
        type=int,
        default=None,
        help="Seconds allowed to establish the WebSocket connection (default: 5)",
    )
    parser.add_argument(
        "--monitor-request-timeout",
        type=int,
        default=None,
        help="Seconds allowed for the finalized head RPC call (default: 5)",
    )
    parser.add_argument("--server-addr", default=None, help="Metrics server bind address (default: 0.0.0.0)")
    parser.add_argument("--server-port", type=int, default=None, help="Metrics server port (default: 3000)")
    parser.add_argument("-v", "--verbose", action="store_true", default=None, help="Enable debug logging")
    parser.add_argument("--config", default=None, help="Optional YAML config file (env: NODE_MONITOR_CONFIG)")
    parser.add_argument("--once", action="store_true", help="Run one check cycle, print metrics and exit")
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    return parser


def build_components(settings: MonitorSettings) -> tuple[MetricsRegistry, ProbeScheduler]:
    registry = MetricsRegistry()
    executor = ProbeExecutor(
        settings.monitor_url,
        connect_timeout=settings.monitor_connection_timeout,
        request_timeout=settings.monitor_request_timeout,
    )
    scheduler = ProbeScheduler(executor, registry, interval_seconds=settings.monitor_interval)
    return registry, scheduler


async def run_once(settings: MonitorSettings) -> int:
    """Run a single probe cycle and print the resulting metrics."""
    registry, scheduler = build_components(settings)
    result = await scheduler.run_cycle()
    sys.stdout.write(render_exposition(registry.snapshot()))
    sys.stdout.flush()
    return 0 if result is not None and result.outcome is Outcome.SUCCESS else 1


def serve(settings: MonitorSettings) -> None:
    registry, scheduler = build_components(settings)
    app = create_app(settings.monitor_url, registry, scheduler)
    logger.info(
        "Starting node monitor",
        endpoint=settings.monitor_url,
        interval_seconds=settings.monitor_interval,
        server_addr=settings.server_addr,
        server_port=settings.server_port,
    )
    uvicorn.run(
        app,
        host=settings.server_addr,
        port=settings.server_port,
        log_level="debug" if settings.verbose else "info",
    )


def main(argv: Sequence[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    overrides = {
        "monitor_url": args.url,
        "monitor_interval": args.monitor_interval,
        "monitor_connection_timeout": args.monitor_connection_timeout,
        "monitor_request_timeout": args.monitor_request_timeout,
        "server_addr": args.server_addr,
        "server_port": args.server_port,
        "verbose": args.verbose,
    }
    try:
        settings = load_settings(overrides, config_path=args.config)
    except ConfigError as exc:
        parser.error(str(exc))

    configure_logging(settings.verbose)

    if args.once:
        return asyncio.run(run_once(settings))

    serve(settings)
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
