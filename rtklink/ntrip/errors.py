"""NTRIP errors and connection results.

Exceptions are raised inside the client and its transports only. The
public ``CorrectionClient`` methods convert them into a ``ConnectResult``
and an ``errors`` notification, so callers never need a try block.
"""

from dataclasses import dataclass
from enum import Enum

from rtklink.ntrip.config import ConnectionMode


class NtripError(Exception):
    """Base class for NTRIP client errors."""


class ConfigurationError(NtripError):
    """The connection configuration is incomplete."""


class TransportError(NtripError):
    """A transport could not be opened or failed while streaming."""

    def __init__(self, mode: ConnectionMode, message: str):
        super().__init__(f"{mode.value}: {message}")
        self.mode = mode
        self.message = message


class HandshakeTimeoutError(TransportError):
    """The relay did not confirm the caster connection in time."""


class FailureKind(str, Enum):
    CONFIGURATION = "configuration"
    ALREADY_CONNECTED = "already_connected"
    ALREADY_CONNECTING = "already_connecting"
    TRANSPORT = "transport"
    ABORTED = "aborted"


@dataclass(frozen=True)
class ConnectResult:
    """Outcome of ``CorrectionClient.connect``.

    Truthy exactly when the connection succeeded, so ``if await
    client.connect(config):`` reads naturally.
    """

    success: bool
    mode: ConnectionMode | None = None
    reason: str | None = None
    failure: FailureKind | None = None

    def __bool__(self) -> bool:
        return self.success

    @classmethod
    def connected(cls, mode: ConnectionMode) -> "ConnectResult":
        return cls(success=True, mode=mode)

    @classmethod
    def failed(cls, failure: FailureKind, reason: str) -> "ConnectResult":
        return cls(success=False, reason=reason, failure=failure)
