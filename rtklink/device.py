"""Device transport interface and an NMEA-over-TCP implementation.

The core treats the receiver connection as a bidirectional byte pipe:
NMEA arrives through ``data_received`` and RTCM corrections leave through
``send_data``. Platform bindings (Bluetooth, serial) implement
``DeviceTransport``; ``TcpDeviceTransport`` covers receivers exposed on a
TCP socket, for example by ser2net or RTKLIB's str2str.
"""

import asyncio
import contextlib
import logging
from abc import ABC, abstractmethod

from rtklink.events import Channel

logger = logging.getLogger(__name__)

_READ_SIZE = 4096


class DeviceTransport(ABC):
    """Abstract byte pipe to a GNSS receiver."""

    def __init__(self):
        self._connected = False
        self.data_received: Channel[bytes] = Channel("device.data_received")

    @property
    def is_connected(self) -> bool:
        return self._connected

    @abstractmethod
    async def connect(self, **options) -> bool:
        """Open the connection.

        Returns:
            True if the connection was established.
        """

    @abstractmethod
    async def disconnect(self) -> None:
        """Close the connection. Safe to call when not connected."""

    @abstractmethod
    async def send_data(self, data: bytes) -> bool:
        """Write bytes to the receiver.

        Returns:
            True if the write succeeded.
        """


class TcpDeviceTransport(DeviceTransport):
    """Receiver reachable over a plain TCP socket.

    Args:
        host: Host name or address of the TCP endpoint.
        port: TCP port.
        connect_timeout: Seconds to wait for the socket to open.
    """

    def __init__(self, host: str, port: int, connect_timeout: float = 10.0):
        super().__init__()
        self.host = host
        self.port = port
        self.connect_timeout = connect_timeout
        self._reader: asyncio.StreamReader | None = None
        self._writer: asyncio.StreamWriter | None = None
        self._read_task: asyncio.Task | None = None

    async def connect(self, **options) -> bool:
        if self._connected:
            return True
        host = options.get("host", self.host)
        port = options.get("port", self.port)
        try:
            self._reader, self._writer = await asyncio.wait_for(
                asyncio.open_connection(host, port), timeout=self.connect_timeout
            )
        except (OSError, asyncio.TimeoutError) as e:
            logger.warning("Failed to connect to device at %s:%s: %s", host, port, e)
            return False

        self._connected = True
        self._read_task = asyncio.create_task(self._read_loop())
        logger.info("Connected to device at %s:%s", host, port)
        return True

    async def _read_loop(self) -> None:
        assert self._reader is not None
        try:
            while True:
                chunk = await self._reader.read(_READ_SIZE)
                if not chunk:
                    logger.info("Device closed the connection")
                    break
                self.data_received.emit(chunk)
        except OSError as e:
            logger.warning("Device read failed: %s", e)
        finally:
            self._connected = False
            writer, self._writer = self._writer, None
            self._reader = None
            if writer is not None:
                writer.close()

    async def disconnect(self) -> None:
        writer, self._writer = self._writer, None
        task, self._read_task = self._read_task, None
        if task is not None and task is not asyncio.current_task():
            task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await task

        self._reader = None
        self._connected = False
        if writer is not None:
            writer.close()
            with contextlib.suppress(OSError):
                await writer.wait_closed()

    async def send_data(self, data: bytes) -> bool:
        if not self._connected or self._writer is None:
            return False
        try:
            self._writer.write(data)
            await self._writer.drain()
        except OSError as e:
            logger.warning("Device write failed: %s", e)
            return False
        return True
