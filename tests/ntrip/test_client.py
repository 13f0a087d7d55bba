"""Tests for the CorrectionClient state machine with in-memory transports."""

import asyncio
from collections.abc import AsyncIterator

import pytest

from rtklink.device import DeviceTransport
from rtklink.gnss import FixQuality, Position
from rtklink.nmea import parse_gga
from rtklink.ntrip import (
    ClientSettings,
    ConnectionConfig,
    ConnectionMode,
    ConnectionState,
    ControlMessage,
    CorrectionClient,
    CorrectionTransport,
    FailureKind,
    HandshakeTimeoutError,
    TransportError,
    TransportFactory,
)

FRAME_1005 = bytes([0xD3, 0x00, 0x13, 0x3E, 0xD0, 0x00]) + bytes(19)
CONFIG = ConnectionConfig(caster_host="caster.example.com", mountpoint="MOUNT")
FAST = ClientSettings(
    reconnect_base_delay_seconds=0.01,
    reconnect_jitter=0.0,
    gga_retry_delays_seconds=(),
)


class FakeTransport(CorrectionTransport):
    def __init__(
        self,
        mode: ConnectionMode,
        error: str | TransportError | None = None,
        hang: bool = False,
    ):
        self.mode = mode
        self.error = error
        self.hang = hang
        self.items: asyncio.Queue = asyncio.Queue()
        self.sent: list[str] = []
        self.closed = False

    async def open(self) -> None:
        if self.hang:
            await asyncio.Event().wait()
        if isinstance(self.error, TransportError):
            raise self.error
        if self.error is not None:
            raise TransportError(self.mode, self.error)

    async def receive(self) -> AsyncIterator[bytes | ControlMessage]:
        while True:
            item = await self.items.get()
            if item is None:
                return
            if isinstance(item, Exception):
                raise item
            yield item

    async def send_gga(self, sentence: str) -> bool:
        self.sent.append(sentence)
        return True

    async def close(self) -> None:
        self.closed = True

    def push(self, item) -> None:
        self.items.put_nowait(item)

    def finish(self) -> None:
        self.items.put_nowait(None)


class SlowSendTransport(FakeTransport):
    """Yields to the event loop while a GGA is in flight."""

    async def send_gga(self, sentence: str) -> bool:
        self.sent.append(sentence)
        await asyncio.sleep(0.05)
        return True


class ShortLivedTransport(SlowSendTransport):
    async def open(self) -> None:
        await super().open()
        self.finish()


class FakeFactory(TransportFactory):
    def __init__(
        self,
        errors: dict[ConnectionMode, str | TransportError] | None = None,
        hang: bool = False,
        transport_class: type[FakeTransport] = FakeTransport,
    ):
        self.errors = dict(errors or {})
        self.hang = hang
        self.transport_class = transport_class
        self.created: list[FakeTransport] = []

    def create(self, mode, config, settings) -> FakeTransport:
        transport = self.transport_class(mode, self.errors.get(mode), self.hang)
        self.created.append(transport)
        return transport

    @property
    def last(self) -> FakeTransport:
        return self.created[-1]


class FakeDevice(DeviceTransport):
    def __init__(self):
        super().__init__()
        self._connected = True
        self.sent: list[bytes] = []

    async def connect(self, **options) -> bool:
        self._connected = True
        return True

    async def disconnect(self) -> None:
        self._connected = False

    async def send_data(self, data: bytes) -> bool:
        self.sent.append(data)
        return True


class Recorder:
    """Collects every notification of a client."""

    def __init__(self, client: CorrectionClient):
        self.events: list[tuple[str, object]] = []
        for name in ("connecting", "connected", "disconnected", "errors", "info", "rtcm_received"):
            channel = getattr(client, name)
            channel.subscribe(lambda payload, name=name: self.events.append((name, payload)))

    def of(self, name: str) -> list:
        return [payload for kind, payload in self.events if kind == name]


async def _until(predicate, timeout: float = 1.0) -> None:
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while not predicate():
        if loop.time() > deadline:
            raise AssertionError("condition not reached")
        await asyncio.sleep(0.005)


def _modes(factory: FakeFactory) -> list[ConnectionMode]:
    return [transport.mode for transport in factory.created]


class TestConnect:
    """Tests for transport selection and connect outcomes."""

    def test_auto_falls_back_to_direct(self):
        async def _run():
            factory = FakeFactory({ConnectionMode.WEBSOCKET: "relay unavailable"})
            client = CorrectionClient(FAST, factory)
            recorder = Recorder(client)
            result = await client.connect(CONFIG)
            assert result.success and bool(result)
            assert result.mode is ConnectionMode.DIRECT
            assert client.state is ConnectionState.CONNECTED
            assert _modes(factory) == [ConnectionMode.WEBSOCKET, ConnectionMode.DIRECT]
            assert factory.created[0].closed is True
            assert len(recorder.of("connecting")) == 1
            assert recorder.of("connected")[0].mode is ConnectionMode.DIRECT
            assert recorder.of("errors") == []
            await client.aclose()

        asyncio.run(_run())

    def test_auto_all_methods_failed(self):
        async def _run():
            factory = FakeFactory({mode: "refused" for mode in ConnectionMode})
            client = CorrectionClient(FAST, factory)
            recorder = Recorder(client)
            result = await client.connect(CONFIG)
            assert not result
            assert result.failure is FailureKind.TRANSPORT
            assert result.reason == "All connection methods failed"
            assert _modes(factory) == [
                ConnectionMode.WEBSOCKET, ConnectionMode.DIRECT, ConnectionMode.PROXY,
            ]
            assert client.state is ConnectionState.IDLE
            assert recorder.of("errors") == ["All connection methods failed"]
            await asyncio.sleep(0.05)
            assert len(factory.created) == 3
            await client.aclose()

        asyncio.run(_run())

    def test_explicit_mode_has_no_fallback(self):
        async def _run():
            factory = FakeFactory({ConnectionMode.DIRECT: "server error: 401 Unauthorized"})
            client = CorrectionClient(FAST, factory)
            config = ConnectionConfig(
                caster_host="caster.example.com",
                mountpoint="MOUNT",
                connection_mode=ConnectionMode.DIRECT,
            )
            result = await client.connect(config)
            assert result.reason == "Direct connection failed: server error: 401 Unauthorized"
            assert _modes(factory) == [ConnectionMode.DIRECT]
            await client.aclose()

        asyncio.run(_run())

    def test_invalid_configuration(self):
        async def _run():
            factory = FakeFactory()
            client = CorrectionClient(FAST, factory)
            recorder = Recorder(client)
            result = await client.connect(ConnectionConfig(caster_host="", mountpoint="MOUNT"))
            assert result.failure is FailureKind.CONFIGURATION
            assert factory.created == []
            assert len(recorder.of("errors")) == 1
            result = await client.connect(
                ConnectionConfig(caster_host="caster.example.com", mountpoint="")
            )
            assert result.failure is FailureKind.CONFIGURATION

        asyncio.run(_run())

    def test_already_connected(self):
        async def _run():
            client = CorrectionClient(FAST, FakeFactory())
            await client.connect(CONFIG)
            result = await client.connect(CONFIG)
            assert result.failure is FailureKind.ALREADY_CONNECTED
            await client.aclose()

        asyncio.run(_run())

    def test_disconnect_aborts_attempt_in_progress(self):
        async def _run():
            factory = FakeFactory(hang=True)
            client = CorrectionClient(FAST, factory)
            recorder = Recorder(client)
            attempt = asyncio.create_task(client.connect(CONFIG))
            await _until(lambda: client.state is ConnectionState.CONNECTING and factory.created)
            second = await client.connect(CONFIG)
            assert second.failure is FailureKind.ALREADY_CONNECTING
            await client.disconnect()
            result = await attempt
            assert result.failure is FailureKind.ABORTED
            assert client.state is ConnectionState.IDLE
            assert factory.last.closed is True
            assert recorder.of("errors") == []
            assert len(factory.created) == 1

        asyncio.run(_run())

    def test_mixed_content_skips_direct_in_auto(self):
        async def _run():
            settings = ClientSettings(secure_origin=True, gga_retry_delays_seconds=())
            factory = FakeFactory({ConnectionMode.WEBSOCKET: "relay unavailable"})
            client = CorrectionClient(settings, factory)
            recorder = Recorder(client)
            result = await client.connect(CONFIG)
            assert result.mode is ConnectionMode.PROXY
            assert _modes(factory) == [ConnectionMode.WEBSOCKET, ConnectionMode.PROXY]
            assert any("Mixed content" in message for message in recorder.of("info"))
            await client.aclose()

        asyncio.run(_run())

    def test_mixed_content_explicit_direct_uses_proxy(self):
        async def _run():
            settings = ClientSettings(secure_origin=True, gga_retry_delays_seconds=())
            factory = FakeFactory()
            client = CorrectionClient(settings, factory)
            recorder = Recorder(client)
            config = ConnectionConfig(
                caster_host="caster.example.com",
                mountpoint="MOUNT",
                connection_mode=ConnectionMode.DIRECT,
            )
            result = await client.connect(config)
            assert result.mode is ConnectionMode.PROXY
            assert _modes(factory) == [ConnectionMode.PROXY]
            assert any(
                "Mixed content" in message and "proxy" in message
                for message in recorder.of("info")
            )
            await client.aclose()

        asyncio.run(_run())

    def test_mixed_content_explicit_direct_proxy_failure(self):
        async def _run():
            settings = ClientSettings(secure_origin=True)
            factory = FakeFactory({ConnectionMode.PROXY: "proxy unavailable"})
            client = CorrectionClient(settings, factory)
            config = ConnectionConfig(
                caster_host="caster.example.com",
                mountpoint="MOUNT",
                connection_mode=ConnectionMode.DIRECT,
            )
            result = await client.connect(config)
            assert result.failure is FailureKind.TRANSPORT
            assert result.reason == "Proxy connection failed: proxy unavailable"
            assert _modes(factory) == [ConnectionMode.PROXY]

        asyncio.run(_run())

    def test_auto_continues_after_handshake_timeout(self):
        async def _run():
            factory = FakeFactory(
                {
                    ConnectionMode.WEBSOCKET: HandshakeTimeoutError(
                        ConnectionMode.WEBSOCKET, "Connection timeout"
                    ),
                    ConnectionMode.DIRECT: "refused",
                    ConnectionMode.PROXY: "refused",
                }
            )
            client = CorrectionClient(FAST, factory)
            recorder = Recorder(client)
            result = await client.connect(CONFIG)
            assert result.failure is FailureKind.TRANSPORT
            assert result.reason == "All connection methods failed"
            assert _modes(factory) == [
                ConnectionMode.WEBSOCKET, ConnectionMode.DIRECT, ConnectionMode.PROXY,
            ]
            assert recorder.of("errors") == ["All connection methods failed"]
            assert client.state is ConnectionState.IDLE

        asyncio.run(_run())

    def test_https_caster_allowed_from_secure_origin(self):
        async def _run():
            settings = ClientSettings(secure_origin=True, gga_retry_delays_seconds=())
            client = CorrectionClient(settings, FakeFactory())
            config = ConnectionConfig(
                caster_host="caster.example.com",
                mountpoint="MOUNT",
                caster_port=443,
                connection_mode=ConnectionMode.DIRECT,
            )
            assert (await client.connect(config)).mode is ConnectionMode.DIRECT
            await client.aclose()

        asyncio.run(_run())


class TestCorrections:
    """Tests for inbound chunk handling."""

    def test_valid_frame_forwarded_to_device(self):
        async def _run():
            device = FakeDevice()
            factory = FakeFactory()
            client = CorrectionClient(FAST, factory, device=device)
            recorder = Recorder(client)
            await client.connect(CONFIG)
            factory.last.push(FRAME_1005)
            await _until(lambda: device.sent)
            assert device.sent == [FRAME_1005]
            received = recorder.of("rtcm_received")[0]
            assert received.valid is True
            assert received.frame.message_type == 1005
            stats = client.stats
            assert stats.messages_received == 1
            assert stats.bytes_received == len(FRAME_1005)
            assert stats.bytes_sent == len(FRAME_1005)
            assert stats.message_type_histogram == {1005: 1}
            assert stats.correction_age_seconds is not None
            await client.aclose()

        asyncio.run(_run())

    def test_invalid_chunk_counted_but_not_forwarded(self):
        async def _run():
            device = FakeDevice()
            factory = FakeFactory()
            client = CorrectionClient(FAST, factory, device=device)
            recorder = Recorder(client)
            await client.connect(CONFIG)
            factory.last.push(b"HTTP/1.1 200 OK\r\n")
            await _until(lambda: recorder.of("rtcm_received"))
            assert recorder.of("rtcm_received")[0].valid is False
            assert device.sent == []
            assert client.stats.messages_received == 1
            assert client.stats.message_type_histogram == {}
            await client.aclose()

        asyncio.run(_run())

    def test_sourcetable_triggers_gga(self):
        async def _run():
            device = FakeDevice()
            factory = FakeFactory()
            client = CorrectionClient(FAST, factory, device=device)
            recorder = Recorder(client)
            await client.connect(CONFIG)
            assert len(factory.last.sent) == 1
            factory.last.push(b"SOURCETABLE 200 OK\r\nSTR;MOUNT;\r\n")
            await _until(lambda: recorder.of("rtcm_received"))
            assert recorder.of("rtcm_received")[0].sourcetable is True
            assert len(factory.last.sent) == 2
            assert device.sent == []
            assert any("sourcetable" in message for message in recorder.of("info"))
            await client.aclose()

        asyncio.run(_run())

    def test_no_device_drops_corrections(self):
        async def _run():
            factory = FakeFactory()
            client = CorrectionClient(FAST, factory)
            recorder = Recorder(client)
            await client.connect(CONFIG)
            factory.last.push(FRAME_1005)
            await _until(lambda: recorder.of("rtcm_received"))
            assert client.stats.bytes_sent == 0
            await client.aclose()

        asyncio.run(_run())


class TestGga:
    """Tests for position reporting."""

    def test_fallback_position_then_real_position(self):
        async def _run():
            factory = FakeFactory()
            client = CorrectionClient(FAST, factory)
            recorder = Recorder(client)
            await client.connect(CONFIG)
            transport = factory.last
            fallback = parse_gga(transport.sent[0])
            assert fallback.latitude_degrees == pytest.approx(0.1)
            assert fallback.longitude_degrees == pytest.approx(0.1)
            assert (
                "Using default position for NTRIP. Corrections may not be optimal."
                in recorder.of("info")
            )
            client.update_position(
                Position(latitude=53.361337, longitude=-6.50562, fix_quality=FixQuality.RTK_FLOAT)
            )
            await _until(lambda: len(transport.sent) == 2)
            real = parse_gga(transport.sent[1])
            assert real.latitude_degrees == pytest.approx(53.361337)
            assert real.fix_quality == 5
            client.update_position(Position(latitude=1.0, longitude=1.0))
            await asyncio.sleep(0.02)
            assert len(transport.sent) == 2
            await client.aclose()

        asyncio.run(_run())

    def test_known_position_sent_on_connect(self):
        async def _run():
            factory = FakeFactory()
            client = CorrectionClient(FAST, factory)
            client.update_position(Position(latitude=48.1173, longitude=11.516667))
            await client.connect(CONFIG)
            assert parse_gga(factory.last.sent[0]).latitude_degrees == pytest.approx(48.1173)
            assert client.last_gga == factory.last.sent[0]
            await client.aclose()

        asyncio.run(_run())

    def test_no_gga_when_disabled(self):
        async def _run():
            factory = FakeFactory()
            client = CorrectionClient(FAST, factory)
            config = ConnectionConfig(caster_host="caster.example.com", mountpoint="MOUNT", send_gga=False)
            await client.connect(config)
            await asyncio.sleep(0.02)
            assert factory.last.sent == []
            await client.aclose()

        asyncio.run(_run())

    def test_retries_until_first_correction(self):
        async def _run():
            settings = ClientSettings(gga_retry_delays_seconds=(0.02, 0.04))
            factory = FakeFactory()
            client = CorrectionClient(settings, factory)
            await client.connect(CONFIG)
            await _until(lambda: len(factory.last.sent) == 3)
            await client.aclose()

        asyncio.run(_run())

    def test_retries_stop_once_corrections_arrive(self):
        async def _run():
            settings = ClientSettings(gga_retry_delays_seconds=(0.05, 0.1))
            factory = FakeFactory()
            client = CorrectionClient(settings, factory)
            await client.connect(CONFIG)
            factory.last.push(FRAME_1005)
            await asyncio.sleep(0.15)
            assert len(factory.last.sent) == 1
            await client.aclose()

        asyncio.run(_run())

    def test_periodic_updates(self):
        async def _run():
            factory = FakeFactory()
            client = CorrectionClient(FAST, factory)
            config = ConnectionConfig(
                caster_host="caster.example.com",
                mountpoint="MOUNT",
                gga_update_interval_seconds=0.02,
            )
            await client.connect(config)
            await _until(lambda: len(factory.last.sent) >= 3)
            await client.aclose()

        asyncio.run(_run())

    def test_set_gga_update_interval(self):
        async def _run():
            factory = FakeFactory()
            client = CorrectionClient(FAST, factory)
            assert client.set_gga_update_interval(5.0) is False
            await client.connect(CONFIG)
            assert client.set_gga_update_interval(0) is False
            assert client.set_gga_update_interval(-1.0) is False
            assert client.set_gga_update_interval(0.02) is True
            assert client.config.gga_update_interval_seconds == 0.02
            await _until(lambda: len(factory.last.sent) >= 3)
            await client.aclose()

        asyncio.run(_run())

    def test_send_gga_requires_connection(self):
        async def _run():
            client = CorrectionClient(FAST, FakeFactory())
            assert await client.send_gga("$GPGGA") is False

        asyncio.run(_run())


class TestLifecycle:
    """Tests for disconnects and automatic reconnection."""

    def test_user_disconnect_does_not_reconnect(self):
        async def _run():
            factory = FakeFactory()
            client = CorrectionClient(FAST, factory)
            recorder = Recorder(client)
            await client.connect(CONFIG)
            await client.disconnect()
            assert recorder.of("disconnected") == ["User disconnected"]
            assert factory.last.closed is True
            assert client.state is ConnectionState.IDLE
            await asyncio.sleep(0.05)
            assert len(factory.created) == 1

        asyncio.run(_run())

    def test_stream_end_during_setup_leaves_no_timers(self):
        async def _run():
            settings = ClientSettings(auto_reconnect=False, gga_retry_delays_seconds=(0.01,))
            factory = FakeFactory(transport_class=ShortLivedTransport)
            client = CorrectionClient(settings, factory)
            recorder = Recorder(client)
            config = ConnectionConfig(
                caster_host="caster.example.com",
                mountpoint="MOUNT",
                gga_update_interval_seconds=0.01,
            )
            result = await client.connect(config)
            assert result.failure is FailureKind.TRANSPORT
            assert result.reason == "Stream closed"
            assert client.state is ConnectionState.IDLE
            assert recorder.of("disconnected") == ["Stream closed"]
            await asyncio.sleep(0.1)
            assert len(factory.last.sent) == 1
            assert len(factory.created) == 1

        asyncio.run(_run())

    def test_disconnect_during_first_gga(self):
        async def _run():
            settings = ClientSettings(gga_retry_delays_seconds=(0.01,))
            factory = FakeFactory(transport_class=SlowSendTransport)
            client = CorrectionClient(settings, factory)
            config = ConnectionConfig(
                caster_host="caster.example.com",
                mountpoint="MOUNT",
                gga_update_interval_seconds=0.01,
            )
            attempt = asyncio.create_task(client.connect(config))
            await _until(lambda: factory.created and factory.last.sent)
            await client.disconnect()
            result = await attempt
            assert result.failure is FailureKind.TRANSPORT
            assert result.reason == "Connection closed during setup"
            assert client.state is ConnectionState.IDLE
            await asyncio.sleep(0.1)
            assert len(factory.last.sent) == 1
            assert len(factory.created) == 1

        asyncio.run(_run())

    def test_stream_end_reconnects(self):
        async def _run():
            factory = FakeFactory()
            client = CorrectionClient(FAST, factory)
            recorder = Recorder(client)
            await client.connect(CONFIG)
            first = factory.last
            first.finish()
            await _until(lambda: len(recorder.of("connected")) == 2)
            assert recorder.of("disconnected") == ["Stream closed"]
            assert first.closed is True
            assert client.state is ConnectionState.CONNECTED
            assert client.reconnect.attempts == 0
            await client.aclose()

        asyncio.run(_run())

    def test_read_error_reported_and_reconnects(self):
        async def _run():
            factory = FakeFactory()
            client = CorrectionClient(FAST, factory)
            recorder = Recorder(client)
            await client.connect(CONFIG)
            factory.last.push(TransportError(ConnectionMode.WEBSOCKET, "connection reset"))
            await _until(lambda: len(recorder.of("connected")) == 2)
            assert recorder.of("errors") == ["Error reading NTRIP stream: connection reset"]
            assert recorder.of("disconnected") == ["connection reset"]
            await client.aclose()

        asyncio.run(_run())

    def test_relay_reports_caster_gone(self):
        async def _run():
            settings = ClientSettings(auto_reconnect=False, gga_retry_delays_seconds=())
            factory = FakeFactory()
            client = CorrectionClient(settings, factory)
            recorder = Recorder(client)
            await client.connect(CONFIG)
            factory.last.push(ControlMessage(type="info", message="caster says hello"))
            factory.last.push(ControlMessage(type="ping"))
            factory.last.push(ControlMessage(type="status", connected=False, message="Caster closed"))
            await _until(lambda: recorder.of("disconnected"))
            assert recorder.of("disconnected") == ["Caster closed"]
            assert "caster says hello" in recorder.of("info")
            assert client.state is ConnectionState.IDLE
            await asyncio.sleep(0.05)
            assert len(factory.created) == 1

        asyncio.run(_run())

    def test_reconnect_attempts_exhausted(self):
        async def _run():
            settings = ClientSettings(
                max_reconnect_attempts=2,
                reconnect_base_delay_seconds=0.01,
                reconnect_jitter=0.0,
                gga_retry_delays_seconds=(),
            )
            factory = FakeFactory()
            client = CorrectionClient(settings, factory)
            recorder = Recorder(client)
            await client.connect(CONFIG)
            factory.errors = {mode: "refused" for mode in ConnectionMode}
            factory.last.finish()
            await _until(lambda: "Reconnection attempts exhausted" in recorder.of("errors"))
            assert client.reconnect.attempts == 2
            assert recorder.of("errors").count("All connection methods failed") == 2
            assert client.connection_info().reconnect_attempts == 2
            await client.aclose()

        asyncio.run(_run())

    def test_auto_reconnect_can_be_disabled(self):
        async def _run():
            factory = FakeFactory()
            client = CorrectionClient(FAST, factory)
            client.set_auto_reconnect(False)
            await client.connect(CONFIG)
            factory.last.finish()
            await _until(lambda: client.state is ConnectionState.IDLE)
            await asyncio.sleep(0.05)
            assert len(factory.created) == 1
            assert client.auto_reconnect is False

        asyncio.run(_run())

    def test_connection_info(self):
        async def _run():
            client = CorrectionClient(FAST, FakeFactory())
            info = client.connection_info()
            assert info.connected is False and info.caster_host is None
            await client.connect(CONFIG)
            info = client.connection_info()
            assert info.connected is True
            assert info.caster_host == "caster.example.com"
            assert info.mountpoint == "MOUNT"
            assert info.mode is ConnectionMode.WEBSOCKET
            assert info.auto_reconnect is True
            await client.aclose()

        asyncio.run(_run())

    def test_user_connect_resets_stats(self):
        async def _run():
            factory = FakeFactory()
            client = CorrectionClient(FAST, factory)
            await client.connect(CONFIG)
            factory.last.push(FRAME_1005)
            await _until(lambda: client.stats.messages_received == 1)
            await client.disconnect()
            assert client.stats.messages_received == 1
            await client.connect(CONFIG)
            assert client.stats.messages_received == 0
            client.reset_stats()
            await client.aclose()

        asyncio.run(_run())
