"""Service settings read from the environment."""

import os
from collections.abc import Mapping
from dataclasses import dataclass

__all__ = ["ServerSettings"]

_DEFAULT_DEVICE_PORT = 2000
_DEFAULT_QUEUE_SIZE = 10


@dataclass(frozen=True)
class ServerSettings:
    """Configuration of the status service.

    Attributes:
        device_host: Host of an NMEA-over-TCP receiver. No device is opened
            when empty; NMEA can still be posted to ``/api/nmea``.
        device_port: TCP port of the receiver.
        log_level: Root logger level name.
        queue_size: Per-subscriber WebSocket queue length.
    """

    device_host: str = ""
    device_port: int = _DEFAULT_DEVICE_PORT
    log_level: str = "INFO"
    queue_size: int = _DEFAULT_QUEUE_SIZE

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> "ServerSettings":
        """Build settings from ``RTKLINK_*`` variables.

        Raises:
            ValueError: If a numeric variable is not an integer.
        """
        env = os.environ if environ is None else environ
        return cls(
            device_host=env.get("RTKLINK_DEVICE_HOST", ""),
            device_port=int(env.get("RTKLINK_DEVICE_PORT", _DEFAULT_DEVICE_PORT)),
            log_level=env.get("RTKLINK_LOG_LEVEL", "INFO").upper(),
            queue_size=int(env.get("RTKLINK_QUEUE_SIZE", _DEFAULT_QUEUE_SIZE)),
        )
