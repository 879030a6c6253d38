"""WebSocket node health monitor with a Prometheus-style metrics endpoint."""

__version__ = "0.1.0"
