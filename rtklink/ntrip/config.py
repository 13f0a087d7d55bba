"""NTRIP connection and client configuration."""

from dataclasses import dataclass, field
from enum import Enum

from rtklink.nmea.encoder import GgaDefaults

DEFAULT_CASTER_PORT = 2101
HTTPS_PORT = 443


class ConnectionMode(str, Enum):
    """How the client reaches the caster.

    AUTO tries WEBSOCKET, then DIRECT, then PROXY and keeps the first that
    works. The explicit modes try only themselves.
    """

    AUTO = "auto"
    DIRECT = "direct"
    PROXY = "proxy"
    WEBSOCKET = "websocket"


# Order of the AUTO cascade
AUTO_CASCADE = (ConnectionMode.WEBSOCKET, ConnectionMode.DIRECT, ConnectionMode.PROXY)


@dataclass(frozen=True)
class ConnectionConfig:
    """Parameters of one connection to a caster mountpoint.

    Attributes:
        caster_host: Caster host name. Required.
        mountpoint: Correction stream name. Required.
        caster_port: Caster TCP port; 443 selects HTTPS for DIRECT mode.
        username / password: Basic auth credentials, sent when both are set.
        send_gga: Report the receiver position to the caster.
        connection_mode: Transport selection, see ``ConnectionMode``.
        proxy_url: Base URL of the HTTP relay used by PROXY mode.
        websocket_url: Relay endpoint used by WEBSOCKET mode.
        gga_update_interval_seconds: Period of routine GGA reports.
    """

    caster_host: str
    mountpoint: str
    caster_port: int = DEFAULT_CASTER_PORT
    username: str = ""
    password: str = ""
    send_gga: bool = True
    connection_mode: ConnectionMode = ConnectionMode.AUTO
    proxy_url: str = "http://localhost:3000"
    websocket_url: str = "ws://localhost:3000/ws"
    gga_update_interval_seconds: float = 10.0

    @property
    def has_credentials(self) -> bool:
        return bool(self.username and self.password)

    @property
    def caster_scheme(self) -> str:
        return "https" if self.caster_port == HTTPS_PORT else "http"

    @property
    def caster_url(self) -> str:
        return f"{self.caster_scheme}://{self.caster_host}:{self.caster_port}/{self.mountpoint}"


@dataclass(frozen=True)
class ClientSettings:
    """Client behaviour that outlives individual connections.

    Attributes:
        auto_reconnect: Reconnect after the stream drops.
        max_reconnect_attempts: Reconnects tried before giving up.
        reconnect_base_delay_seconds: First backoff delay.
        reconnect_max_delay_seconds: Backoff ceiling before jitter.
        reconnect_jitter: Relative jitter applied to each delay (0.1 = +-10%).
        handshake_timeout_seconds: Wait for the relay's status reply.
        http_connect_timeout_seconds: Wait for the caster's response headers.
        gga_retry_delays_seconds: Extra GGA reports after connecting while no
            correction has arrived yet.
        secure_origin: The client is embedded in an HTTPS context that must
            not open plain HTTP connections (mixed content).
        user_agent: Sent on caster requests.
        gga_defaults: Values used when encoding positions for the caster.
    """

    auto_reconnect: bool = True
    max_reconnect_attempts: int = 5
    reconnect_base_delay_seconds: float = 5.0
    reconnect_max_delay_seconds: float = 30.0
    reconnect_jitter: float = 0.1
    handshake_timeout_seconds: float = 10.0
    http_connect_timeout_seconds: float = 10.0
    gga_retry_delays_seconds: tuple[float, ...] = (1.0, 3.0)
    secure_origin: bool = False
    user_agent: str = "NTRIP rtklink Client"
    gga_defaults: GgaDefaults = field(default_factory=GgaDefaults)
