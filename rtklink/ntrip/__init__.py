"""NTRIP correction client: caster connection, GGA reporting, RTCM relay."""

from rtklink.ntrip.config import (
    AUTO_CASCADE,
    ClientSettings,
    ConnectionConfig,
    ConnectionMode,
)
from rtklink.ntrip.errors import (
    ConfigurationError,
    ConnectResult,
    FailureKind,
    HandshakeTimeoutError,
    NtripError,
    TransportError,
)
from rtklink.ntrip.stats import ReconnectState, RtcmStats, compute_reconnect_delay
from rtklink.ntrip.transports import (
    AiohttpTransportFactory,
    ControlMessage,
    CorrectionTransport,
    HttpStreamTransport,
    TransportFactory,
    WebSocketTransport,
    parse_control_message,
)
from rtklink.ntrip.client import (
    ConnectionEvent,
    ConnectionInfo,
    ConnectionState,
    CorrectionClient,
    RtcmReceived,
    validate_config,
)

__all__ = [
    "AUTO_CASCADE",
    "AiohttpTransportFactory",
    "ClientSettings",
    "ConfigurationError",
    "ConnectResult",
    "ConnectionConfig",
    "ConnectionEvent",
    "ConnectionInfo",
    "ConnectionMode",
    "ConnectionState",
    "ControlMessage",
    "CorrectionClient",
    "CorrectionTransport",
    "FailureKind",
    "HandshakeTimeoutError",
    "HttpStreamTransport",
    "NtripError",
    "ReconnectState",
    "RtcmReceived",
    "RtcmStats",
    "TransportError",
    "TransportFactory",
    "WebSocketTransport",
    "compute_reconnect_delay",
    "parse_control_message",
    "validate_config",
]
