"""Configuration management for the node monitor."""

from __future__ import annotations

import ipaddress
import os
import re
from typing import Any, Mapping
from urllib.parse import urlsplit

import yaml
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from .errors import ConfigError


_HOSTNAME_RE = re.compile(r"^(?=.{1,253}$)([A-Za-z0-9]([A-Za-z0-9-]{0,61}[A-Za-z0-9])?)(\.[A-Za-z0-9]([A-Za-z0-9-]{0,61}[A-Za-z0-9])?)*\.?$")

ENV_OVERRIDES: dict[str, str] = {
    "monitor_url": "NODE_MONITOR_URL",
    "monitor_interval": "NODE_MONITOR_INTERVAL",
    "monitor_connection_timeout": "NODE_MONITOR_CONNECTION_TIMEOUT",
    "monitor_request_timeout": "NODE_MONITOR_REQUEST_TIMEOUT",
    "server_addr": "NODE_MONITOR_SERVER_ADDR",
    "server_port": "NODE_MONITOR_SERVER_PORT",
    "verbose": "NODE_MONITOR_VERBOSE",
}


class MonitorSettings(BaseModel):
    """Validated settings for one monitored node endpoint."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    monitor_url: str = Field(..., description="WebSocket URL of the node to monitor (ws:// or wss://)")
    monitor_interval: int = Field(default=60, ge=1, le=86400, description="Seconds between probe cycles")
    monitor_connection_timeout: int = Field(default=5, ge=1, le=3600, description="Connect budget in seconds")
    monitor_request_timeout: int = Field(default=5, ge=1, le=3600, description="RPC request budget in seconds")
    server_addr: str = Field(default="0.0.0.0", description="Bind address of the metrics server")
    server_port: int = Field(default=3000, ge=1, le=65535, description="Port of the metrics server")
    verbose: bool = Field(default=False, description="Log at DEBUG instead of INFO")

    @field_validator("monitor_url")
    @classmethod
    def _validate_url(cls, value: str) -> str:
        url = str(value or "").strip()
        try:
            parts = urlsplit(url)
            host = parts.hostname
            parts.port  # raises ValueError for out-of-range ports
        except ValueError as exc:
            raise ValueError(f"invalid WebSocket URL {url!r}: {exc}") from exc
        if parts.scheme.lower() not in ("ws", "wss"):
            raise ValueError(f"invalid WebSocket URL {url!r}: scheme must be ws or wss")
        if not host:
            raise ValueError(f"invalid WebSocket URL {url!r}: missing host")
        return url

    @field_validator("server_addr")
    @classmethod
    def _validate_server_addr(cls, value: str) -> str:
        addr = str(value or "").strip()
        try:
            ipaddress.ip_address(addr)
            return addr
        except ValueError:
            pass
        if not _HOSTNAME_RE.match(addr):
            raise ValueError(f"invalid server address {addr!r}")
        return addr


def _format_validation_error(exc: ValidationError) -> str:
    problems = []
    for err in exc.errors():
        field = ".".join(str(p) for p in err.get("loc", ())) or "settings"
        msg = str(err.get("msg", "invalid value"))
        problems.append(f"{field}: {msg}")
    return "invalid configuration: " + "; ".join(problems)


def _load_yaml(config_path: str) -> dict[str, Any]:
    if not os.path.exists(config_path):
        raise ConfigError(f"config file not found: {config_path}")
    try:
        with open(config_path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}
    except yaml.YAMLError as exc:
        raise ConfigError(f"config file {config_path} is not valid YAML: {exc}") from exc
    if not isinstance(data, dict):
        raise ConfigError(f"config file {config_path} must contain a mapping")
    return data


def load_settings(
    overrides: Mapping[str, Any] | None = None,
    config_path: str | None = None,
    environ: Mapping[str, str] | None = None,
) -> MonitorSettings:
    """Merge defaults, YAML file, environment and explicit overrides (in that order)."""
    env = os.environ if environ is None else environ
    if config_path is None:
        config_path = env.get("NODE_MONITOR_CONFIG") or None

    config_data: dict[str, Any] = {}
    if config_path:
        config_data.update(_load_yaml(config_path))

    for key, env_name in ENV_OVERRIDES.items():
        value = env.get(env_name)
        if value is not None and str(value).strip():
            config_data[key] = str(value).strip()

    for key, value in (overrides or {}).items():
        if value is not None:
            config_data[key] = value

    if not config_data.get("monitor_url"):
        raise ConfigError("missing node WebSocket URL (positional argument or NODE_MONITOR_URL)")

    try:
        return MonitorSettings(**config_data)
    except ValidationError as exc:
        raise ConfigError(_format_validation_error(exc)) from exc
