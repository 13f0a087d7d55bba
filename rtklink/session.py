"""RTKSession: one receiver, its decoder state and its correction client.

    device.data_received --> GNSSReceiver.feed()
                                   |
                    position_updated --> CorrectionClient.update_position()
                                                    |
    device.send_data() <------ valid RTCM3 frames --+
"""

import logging

from rtklink.device import DeviceTransport
from rtklink.gnss.receiver import GNSSReceiver
from rtklink.gnss.types import PositionUpdate
from rtklink.ntrip.client import CorrectionClient
from rtklink.ntrip.config import ConnectionConfig
from rtklink.ntrip.errors import ConnectResult

logger = logging.getLogger(__name__)


class RTKSession:
    """Wires a device, a GNSSReceiver and a CorrectionClient together.

    Args:
        receiver: Receiver state; a fresh one is created when omitted.
        client: Correction client; a default one is created when omitted.
        device: Receiver link, optional until ``attach_device``.
    """

    def __init__(
        self,
        receiver: GNSSReceiver | None = None,
        client: CorrectionClient | None = None,
        device: DeviceTransport | None = None,
    ):
        self.receiver = receiver or GNSSReceiver()
        self.client = client or CorrectionClient()
        self.device: DeviceTransport | None = None
        self._unsubscribe_device = None

        self.receiver.position_updated.subscribe(self._on_position)
        if device is not None:
            self.attach_device(device)

    def attach_device(self, device: DeviceTransport) -> None:
        """Route the device's NMEA into the receiver and corrections back out."""
        self.detach_device()
        self.device = device
        self._unsubscribe_device = device.data_received.subscribe(self.receiver.feed)
        self.client.set_device(device)

    def detach_device(self) -> None:
        if self._unsubscribe_device is not None:
            self._unsubscribe_device()
            self._unsubscribe_device = None
        self.device = None
        self.client.set_device(None)

    async def connect_device(self, **options) -> bool:
        if self.device is None:
            logger.warning("No device attached")
            return False
        return await self.device.connect(**options)

    async def disconnect_device(self) -> None:
        if self.device is not None:
            await self.device.disconnect()
        self.receiver.reset()

    async def connect_ntrip(self, config: ConnectionConfig) -> ConnectResult:
        return await self.client.connect(config)

    async def disconnect_ntrip(self) -> None:
        await self.client.disconnect()

    async def aclose(self) -> None:
        await self.client.aclose()
        if self.device is not None:
            await self.device.disconnect()

    def _on_position(self, update: PositionUpdate) -> None:
        self.client.update_position(update.position)
