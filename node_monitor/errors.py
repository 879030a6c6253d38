"""Exception hierarchy for the node monitor."""


class NodeMonitorError(Exception):
    """Base class for all node monitor errors."""


class ConfigError(NodeMonitorError):
    """Raised when startup configuration is missing or invalid."""


class ProbeError(NodeMonitorError):
    """Base class for failures raised while probing the node."""


class NodeConnectionError(ProbeError):
    """The transport could not be established (refused, DNS, TLS, handshake)."""


class RpcRequestError(ProbeError):
    """The session was established but the RPC call failed or returned garbage."""
