"""Tests for RTKSession wiring."""

import asyncio
from unittest.mock import MagicMock

import pytest

from rtklink.device import DeviceTransport
from rtklink.ntrip import ConnectionConfig, CorrectionClient
from rtklink.session import RTKSession

GGA = b"$GPGGA,092750.000,5321.6802,N,00630.3372,W,1,8,1.03,61.7,M,55.2,M,,*76\r\n"


class StubDevice(DeviceTransport):
    async def connect(self, **options) -> bool:
        self._connected = True
        return True

    async def disconnect(self) -> None:
        self._connected = False

    async def send_data(self, data: bytes) -> bool:
        return True


@pytest.fixture
def client() -> MagicMock:
    return MagicMock(spec=CorrectionClient)


class TestRTKSession:
    """Tests for RTKSession."""

    def test_device_data_reaches_receiver_and_client(self, client):
        device = StubDevice()
        session = RTKSession(client=client, device=device)
        client.set_device.assert_called_with(device)
        device.data_received.emit(GGA)
        assert session.receiver.position is not None
        client.update_position.assert_called_once()
        position = client.update_position.call_args.args[0]
        assert position.latitude == pytest.approx(53.361337)

    def test_detach_stops_routing(self, client):
        device = StubDevice()
        session = RTKSession(client=client, device=device)
        session.detach_device()
        device.data_received.emit(GGA)
        assert session.receiver.position is None
        client.set_device.assert_called_with(None)
        assert len(device.data_received) == 0

    def test_attach_replaces_previous_device(self, client):
        first = StubDevice()
        second = StubDevice()
        session = RTKSession(client=client, device=first)
        session.attach_device(second)
        assert len(first.data_received) == 0
        assert session.device is second

    def test_device_lifecycle(self, client):
        async def _run():
            device = StubDevice()
            session = RTKSession(client=client, device=device)
            assert await session.connect_device() is True
            device.data_received.emit(GGA)
            await session.disconnect_device()
            assert device.is_connected is False
            assert session.receiver.position is None

        asyncio.run(_run())

    def test_connect_device_without_device(self, client):
        async def _run():
            assert await RTKSession(client=client).connect_device() is False

        asyncio.run(_run())

    def test_ntrip_calls_delegate_to_client(self, client):
        async def _run():
            session = RTKSession(client=client)
            config = ConnectionConfig(caster_host="caster.example.com", mountpoint="MOUNT")
            await session.connect_ntrip(config)
            await session.disconnect_ntrip()
            await session.aclose()
            client.connect.assert_awaited_once_with(config)
            client.disconnect.assert_awaited_once()
            client.aclose.assert_awaited_once()

        asyncio.run(_run())
