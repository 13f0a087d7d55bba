"""CorrectionClient: NTRIP connection state machine.

State Machine:

          connect()                 transport open
    IDLE ------------> CONNECTING ----------------> CONNECTED
     ^                    |                             |
     |  all transports    |                             | stream end / read error /
     |  failed, aborted   |                             | relay status connected:false
     +--------------------+                             |
     |                                                  v
     +------------- disconnected(reason) <--------------+
                          |
                          +-- auto-reconnect: sleep(backoff) -> CONNECTING

Transport selection (``ConnectionMode``):
    AUTO       WEBSOCKET -> DIRECT -> PROXY, first success wins
    explicit   only the chosen transport; DIRECT to an http caster from a
               secure origin is announced and replaced by PROXY

While connected, the client:
    - reports a GGA immediately, again at +1 s and +3 s while no correction
      has arrived, then every ``gga_update_interval_seconds``
    - inspects every inbound chunk, counts it, surfaces it through
      ``rtcm_received`` and forwards valid RTCM3 frames to the device

All timers are asyncio tasks owned by the client and cancelled together.
Public methods never raise; outcomes are reported through ``ConnectResult``
and the notification channels.
"""

import asyncio
import contextlib
import logging
import random
import time
from collections.abc import Callable, Coroutine
from dataclasses import dataclass, replace
from enum import Enum
from typing import Any

from rtklink.device import DeviceTransport
from rtklink.events import Channel
from rtklink.gnss.types import Position
from rtklink.nmea.encoder import GgaEncoder
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
    NtripError,
    TransportError,
)
from rtklink.ntrip.stats import ReconnectState, RtcmStats, compute_reconnect_delay
from rtklink.ntrip.transports import (
    AiohttpTransportFactory,
    ControlMessage,
    CorrectionTransport,
    TransportFactory,
)
from rtklink.rtcm.validator import RtcmFrameInfo, inspect_frame, is_sourcetable

logger = logging.getLogger(__name__)

_MODE_LABELS = {
    ConnectionMode.WEBSOCKET: "WebSocket",
    ConnectionMode.DIRECT: "Direct",
    ConnectionMode.PROXY: "Proxy",
}

ALL_METHODS_FAILED = "All connection methods failed"
RECONNECT_EXHAUSTED = "Reconnection attempts exhausted"
FALLBACK_POSITION_NOTICE = (
    "Using default position for NTRIP. Corrections may not be optimal."
)
SOURCETABLE_NOTICE = (
    "Received sourcetable from NTRIP caster. "
    "The mountpoint requires GGA position data."
)


class ConnectionState(str, Enum):
    IDLE = "idle"
    CONNECTING = "connecting"
    CONNECTED = "connected"


@dataclass(frozen=True)
class ConnectionEvent:
    """Payload of the connecting and connected notifications."""

    caster_host: str
    mountpoint: str
    mode: ConnectionMode | None = None


@dataclass(frozen=True)
class RtcmReceived:
    """Payload of the rtcm_received notification.

    Emitted for every inbound chunk. ``valid`` tells whether the chunk was
    forwarded to the device.
    """

    data: bytes
    valid: bool
    frame: RtcmFrameInfo
    sourcetable: bool
    stats: RtcmStats


@dataclass(frozen=True)
class ConnectionInfo:
    state: ConnectionState
    caster_host: str | None
    mountpoint: str | None
    mode: ConnectionMode | None
    stats: RtcmStats
    reconnect_attempts: int
    auto_reconnect: bool

    @property
    def connected(self) -> bool:
        return self.state is ConnectionState.CONNECTED

    @property
    def connecting(self) -> bool:
        return self.state is ConnectionState.CONNECTING


def validate_config(config: ConnectionConfig) -> None:
    """Raise ConfigurationError if the config cannot start a connection."""
    if not config.caster_host:
        raise ConfigurationError("Invalid NTRIP configuration. Host is required.")
    if not config.mountpoint:
        raise ConfigurationError("Invalid NTRIP configuration. Mountpoint is required.")
    if config.gga_update_interval_seconds <= 0:
        raise ConfigurationError(
            "Invalid NTRIP configuration. GGA update interval must be positive."
        )


class CorrectionClient:
    """Relays RTCM3 corrections from an NTRIP caster to the receiver.

    Args:
        settings: Reconnect, timeout and GGA behaviour.
        transport_factory: Builds the transport for each mode. Defaults to
            aiohttp transports sharing one session.
        device: Receiver link corrections are forwarded to; may be set
            later with ``set_device``.
        clock: Wall-clock time source in seconds, for correction age.
        rng: Random source for reconnect jitter.

    Example:
        >>> client = CorrectionClient()
        >>> result = await client.connect(
        ...     ConnectionConfig(caster_host="rtk2go.com", mountpoint="MOUNT")
        ... )
        >>> result.mode
        <ConnectionMode.DIRECT: 'direct'>
    """

    def __init__(
        self,
        settings: ClientSettings | None = None,
        transport_factory: TransportFactory | None = None,
        device: DeviceTransport | None = None,
        clock: Callable[[], float] = time.time,
        rng: random.Random | None = None,
    ):
        self._settings = settings or ClientSettings()
        self._factory = transport_factory or AiohttpTransportFactory()
        self._device = device
        self._clock = clock
        self._rng = rng or random.Random()
        self._encoder = GgaEncoder(self._settings.gga_defaults)

        self._state = ConnectionState.IDLE
        self._config: ConnectionConfig | None = None
        self._active_mode: ConnectionMode | None = None
        self._transport: CorrectionTransport | None = None
        self._reader_task: asyncio.Task | None = None
        self._abort: asyncio.Event | None = None

        self._timers: set[asyncio.Task] = set()
        self._gga_interval_task: asyncio.Task | None = None
        self._reconnect_task: asyncio.Task | None = None

        self._auto_reconnect = self._settings.auto_reconnect
        self._reconnect = ReconnectState(
            max_attempts=self._settings.max_reconnect_attempts,
            base_delay_seconds=self._settings.reconnect_base_delay_seconds,
        )
        self._stats = RtcmStats()

        self._last_position: Position | None = None
        self._last_gga: str | None = None
        self._sent_fallback_gga = False
        self._corrections_since_connect = False

        self.connecting: Channel[ConnectionEvent] = Channel("ntrip.connecting")
        self.connected: Channel[ConnectionEvent] = Channel("ntrip.connected")
        self.disconnected: Channel[str] = Channel("ntrip.disconnected")
        self.errors: Channel[str] = Channel("ntrip.errors")
        self.info: Channel[str] = Channel("ntrip.info")
        self.rtcm_received: Channel[RtcmReceived] = Channel("ntrip.rtcm_received")

    # --- queries ---------------------------------------------------------------

    @property
    def state(self) -> ConnectionState:
        return self._state

    @property
    def active_mode(self) -> ConnectionMode | None:
        return self._active_mode

    @property
    def config(self) -> ConnectionConfig | None:
        return self._config

    @property
    def stats(self) -> RtcmStats:
        self._stats.refresh_age(self._clock())
        return self._stats.copy()

    @property
    def reconnect(self) -> ReconnectState:
        return self._reconnect.copy()

    @property
    def auto_reconnect(self) -> bool:
        return self._auto_reconnect

    @property
    def last_gga(self) -> str | None:
        return self._last_gga

    def connection_info(self) -> ConnectionInfo:
        return ConnectionInfo(
            state=self._state,
            caster_host=self._config.caster_host if self._config else None,
            mountpoint=self._config.mountpoint if self._config else None,
            mode=self._active_mode,
            stats=self.stats,
            reconnect_attempts=self._reconnect.attempts,
            auto_reconnect=self._auto_reconnect,
        )

    # --- configuration -----------------------------------------------------------

    def set_device(self, device: DeviceTransport | None) -> None:
        self._device = device

    def set_auto_reconnect(self, enabled: bool, max_attempts: int = 5) -> None:
        self._auto_reconnect = enabled
        self._reconnect.max_attempts = max_attempts
        if not enabled and self._reconnect_task is not None:
            self._reconnect_task.cancel()
            self._reconnect_task = None

    def set_gga_update_interval(self, seconds: float) -> bool:
        """Change the routine GGA period and restart its timer.

        Returns:
            False if ``seconds`` is not positive or nothing is configured.
        """
        if seconds <= 0:
            logger.warning("Ignoring invalid GGA update interval %r", seconds)
            return False
        if self._config is None:
            logger.warning("No NTRIP connection configured; interval not changed")
            return False

        self._config = replace(self._config, gga_update_interval_seconds=seconds)
        logger.info("NTRIP GGA update interval set to %g seconds", seconds)
        if self._gga_interval_task is not None:
            self._restart_gga_interval()
        return True

    def reset_stats(self) -> None:
        self._stats = RtcmStats()

    # --- connection lifecycle ----------------------------------------------------

    async def connect(self, config: ConnectionConfig) -> ConnectResult:
        """Connect to a caster mountpoint.

        A user connect resets the RTCM statistics and the reconnect counter,
        and cancels a pending reconnect.
        """
        if self._state is ConnectionState.CONNECTED:
            return ConnectResult.failed(
                FailureKind.ALREADY_CONNECTED, "Already connected to NTRIP caster"
            )
        if self._state is ConnectionState.CONNECTING:
            return ConnectResult.failed(
                FailureKind.ALREADY_CONNECTING, "Already connecting to NTRIP caster"
            )

        try:
            validate_config(config)
        except ConfigurationError as e:
            logger.warning("%s", e)
            self.errors.emit(str(e))
            return ConnectResult.failed(FailureKind.CONFIGURATION, str(e))

        self._cancel_timers()
        self._stats = RtcmStats()
        self._reconnect.attempts = 0
        self._reconnect.last_failure_reason = None
        return await self._attempt(config)

    async def _attempt(self, config: ConnectionConfig) -> ConnectResult:
        self._config = config
        self._state = ConnectionState.CONNECTING
        abort = self._abort = asyncio.Event()
        self.connecting.emit(ConnectionEvent(config.caster_host, config.mountpoint))

        if config.connection_mode is ConnectionMode.AUTO:
            modes = AUTO_CASCADE
        elif self._blocked_by_mixed_content(config.connection_mode, config):
            self.info.emit(
                f"{self._mixed_content_notice(config)}; using proxy connection instead"
            )
            modes = (ConnectionMode.PROXY,)
        else:
            modes = (config.connection_mode,)

        failure = ALL_METHODS_FAILED
        try:
            for mode in modes:
                if abort.is_set():
                    break
                label = _MODE_LABELS[mode]

                if self._blocked_by_mixed_content(mode, config):
                    self.info.emit(
                        f"{self._mixed_content_notice(config)}; skipping direct connection"
                    )
                    continue

                try:
                    transport = await self._open_transport(mode, config, abort)
                except TransportError as e:
                    logger.warning("%s connection failed: %s", label, e.message)
                    if config.connection_mode is not ConnectionMode.AUTO:
                        failure = f"{label} connection failed: {e.message}"
                    continue

                if transport is None:
                    break

                if not await self._on_open(transport, mode, config):
                    reason = (
                        self._reconnect.last_failure_reason
                        or "Connection closed during setup"
                    )
                    return ConnectResult.failed(FailureKind.TRANSPORT, reason)
                return ConnectResult.connected(mode)
        except asyncio.CancelledError:
            self._state = ConnectionState.IDLE
            self._abort = None
            raise

        self._state = ConnectionState.IDLE
        self._abort = None
        if abort.is_set():
            logger.info("NTRIP connection attempt aborted")
            return ConnectResult.failed(FailureKind.ABORTED, "Connection attempt aborted")

        self._reconnect.last_failure_reason = failure
        self.errors.emit(failure)
        return ConnectResult.failed(FailureKind.TRANSPORT, failure)

    def _blocked_by_mixed_content(
        self, mode: ConnectionMode, config: ConnectionConfig
    ) -> bool:
        return (
            mode is ConnectionMode.DIRECT
            and self._settings.secure_origin
            and config.caster_scheme == "http"
        )

    @staticmethod
    def _mixed_content_notice(config: ConnectionConfig) -> str:
        return (
            "Mixed content: a secure origin cannot open an http "
            f"connection to {config.caster_url}"
        )

    def _is_current(self, transport: CorrectionTransport) -> bool:
        return self._transport is transport and self._state is ConnectionState.CONNECTED

    async def _open_transport(
        self,
        mode: ConnectionMode,
        config: ConnectionConfig,
        abort: asyncio.Event,
    ) -> CorrectionTransport | None:
        """Open one transport, racing it against the abort event.

        Returns:
            The open transport, or None if the attempt was aborted.
        """
        transport = self._factory.create(mode, config, self._settings)
        opening = asyncio.ensure_future(transport.open())
        aborting = asyncio.ensure_future(abort.wait())
        try:
            await asyncio.wait({opening, aborting}, return_when=asyncio.FIRST_COMPLETED)
        finally:
            aborting.cancel()
            if not opening.done():
                opening.cancel()
                with contextlib.suppress(asyncio.CancelledError, NtripError):
                    await opening
                await transport.close()

        if opening.cancelled():
            return None
        try:
            opening.result()
        except TransportError:
            await transport.close()
            raise
        if abort.is_set():
            await transport.close()
            return None
        return transport

    async def _on_open(
        self,
        transport: CorrectionTransport,
        mode: ConnectionMode,
        config: ConnectionConfig,
    ) -> bool:
        """Adopt an open transport and start reading and GGA reporting.

        Returns:
            False when the connection was lost or closed before setup ended.
        """
        self._transport = transport
        self._active_mode = mode
        self._state = ConnectionState.CONNECTED
        self._abort = None
        self._reconnect.attempts = 0
        self._reconnect.last_failure_reason = None
        self._corrections_since_connect = False
        self._sent_fallback_gga = False

        logger.info(
            "Connected to %s/%s via %s", config.caster_host, config.mountpoint, mode.value
        )
        self.connected.emit(ConnectionEvent(config.caster_host, config.mountpoint, mode))
        self._reader_task = asyncio.create_task(self._pump(transport))

        if config.send_gga:
            await self._start_gga_updates(transport)
        return self._is_current(transport)

    async def disconnect(self) -> None:
        """Close the connection or abort an attempt in progress.

        Never schedules a reconnect.
        """
        self._cancel_timers()
        if self._state is ConnectionState.CONNECTING and self._abort is not None:
            logger.info("Aborting NTRIP connection attempt")
            self._abort.set()
            return
        if self._state is ConnectionState.CONNECTED:
            await self._teardown("User disconnected")

    async def aclose(self) -> None:
        """Disconnect and release the transport factory's resources."""
        await self.disconnect()
        await self._factory.aclose()

    async def _teardown(self, reason: str) -> None:
        transport, self._transport = self._transport, None
        reader, self._reader_task = self._reader_task, None
        self._cancel_timers()
        self._state = ConnectionState.IDLE
        self._active_mode = None

        if reader is not None and reader is not asyncio.current_task():
            reader.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await reader
        if transport is not None:
            await transport.close()

        logger.info("Disconnected from NTRIP caster: %s", reason)
        self.disconnected.emit(reason)

    async def _connection_lost(self, reason: str) -> None:
        if self._transport is None:
            return
        self._reconnect.last_failure_reason = reason
        await self._teardown(reason)
        self._schedule_reconnect()

    # --- reconnection ------------------------------------------------------------

    def _schedule_reconnect(self) -> None:
        if not self._auto_reconnect or self._config is None:
            return
        if self._reconnect_task is not None and not self._reconnect_task.done():
            return
        if self._reconnect.exhausted:
            logger.warning(
                "%s after %d attempts", RECONNECT_EXHAUSTED, self._reconnect.attempts
            )
            self.errors.emit(RECONNECT_EXHAUSTED)
            return

        delay = compute_reconnect_delay(
            self._reconnect.attempts,
            self._reconnect.base_delay_seconds,
            max_delay=self._settings.reconnect_max_delay_seconds,
            jitter=self._settings.reconnect_jitter,
            rng=self._rng,
        )
        logger.info(
            "Scheduling NTRIP reconnection attempt %d/%d in %.1f s",
            self._reconnect.attempts + 1,
            self._reconnect.max_attempts,
            delay,
        )
        self._reconnect_task = self._start_timer(self._reconnect_after(delay))

    async def _reconnect_after(self, delay: float) -> None:
        await asyncio.sleep(delay)
        self._reconnect_task = None
        if self._state is not ConnectionState.IDLE or self._config is None:
            return

        self._reconnect.attempts += 1
        logger.info(
            "Attempting to reconnect (attempt %d/%d)",
            self._reconnect.attempts,
            self._reconnect.max_attempts,
        )
        result = await self._attempt(self._config)
        if result.failure is FailureKind.TRANSPORT:
            self._schedule_reconnect()

    # --- inbound stream ----------------------------------------------------------

    async def _pump(self, transport: CorrectionTransport) -> None:
        reason = "Stream closed"
        try:
            async for item in transport.receive():
                if isinstance(item, ControlMessage):
                    stop_reason = self._handle_control(item)
                    if stop_reason is not None:
                        reason = stop_reason
                        break
                else:
                    await self._handle_chunk(item)
        except TransportError as e:
            reason = e.message
            self.errors.emit(f"Error reading NTRIP stream: {e.message}")
        await self._connection_lost(reason)

    def _handle_control(self, message: ControlMessage) -> str | None:
        """Act on a relay control frame.

        Returns:
            A disconnect reason when the relay reports the caster is gone.
        """
        if message.type == "status":
            if message.connected is False:
                return message.message or "Connection closed by server"
        elif message.type == "error":
            self.errors.emit(message.message or "Unknown error")
        elif message.type == "info":
            if message.message:
                self.info.emit(message.message)
        elif message.type != "ping":
            logger.debug("Ignoring unknown relay message type %r", message.type)
        return None

    async def _handle_chunk(self, data: bytes) -> None:
        frame = inspect_frame(data)
        self._stats.record_chunk(
            len(data), self._clock(), frame.message_type if frame.valid else None
        )

        sourcetable = not frame.valid and is_sourcetable(data)
        if frame.valid:
            self._corrections_since_connect = True
            logger.debug(
                "RTCM3 message type %s, length %s (%d bytes)",
                frame.message_type,
                frame.length,
                len(data),
            )
        elif sourcetable:
            logger.info("Caster answered with its sourcetable")
            self.info.emit(SOURCETABLE_NOTICE)
            if self._config is not None and self._config.send_gga:
                await self._send_current_gga()
        else:
            logger.debug("Invalid RTCM3 data: %s", data[:10].hex(" "))

        self.rtcm_received.emit(
            RtcmReceived(
                data=data,
                valid=frame.valid,
                frame=frame,
                sourcetable=sourcetable,
                stats=self._stats.copy(),
            )
        )

        if frame.valid:
            await self._forward_to_device(data)

    async def _forward_to_device(self, data: bytes) -> None:
        device = self._device
        if device is None or not device.is_connected:
            logger.debug("No device connected, dropping %d bytes of RTCM", len(data))
            return
        try:
            sent = await device.send_data(data)
        except Exception as e:
            logger.warning("Failed to forward RTCM to device: %s", e)
            return
        if sent:
            self._stats.bytes_sent += len(data)
        else:
            logger.warning("Device rejected %d bytes of RTCM", len(data))

    # --- GGA reporting -----------------------------------------------------------

    def update_position(self, position: Position) -> None:
        """Record the receiver position used for GGA reports.

        The first real position after a fallback GGA is reported at once.
        """
        self._last_position = position.copy()
        if (
            self._state is ConnectionState.CONNECTED
            and self._config is not None
            and self._config.send_gga
            and (self._sent_fallback_gga or self._last_gga is None)
        ):
            self._sent_fallback_gga = False
            self._start_timer(self._send_current_gga())

    async def send_gga(self, sentence: str) -> bool:
        """Send a GGA sentence over the active transport.

        Returns:
            False when not connected or the transport refused it.
        """
        if self._state is not ConnectionState.CONNECTED or self._transport is None:
            return False
        self._last_gga = sentence
        return await self._transport.send_gga(sentence)

    def _current_gga(self) -> str:
        if self._last_position is not None:
            return self._encoder.encode(self._last_position)
        if self._last_gga is not None:
            return self._last_gga

        defaults = self._settings.gga_defaults
        logger.warning("No position available, sending default GGA position")
        self.info.emit(FALLBACK_POSITION_NOTICE)
        self._sent_fallback_gga = True
        return self._encoder.encode(
            Position(
                latitude=defaults.fallback_latitude,
                longitude=defaults.fallback_longitude,
            )
        )

    async def _send_current_gga(self) -> bool:
        return await self.send_gga(self._current_gga())

    async def _start_gga_updates(self, transport: CorrectionTransport) -> None:
        await self._send_current_gga()
        if not self._is_current(transport):
            return
        for delay in self._settings.gga_retry_delays_seconds:
            self._start_timer(self._gga_retry(delay))
        self._restart_gga_interval()

    async def _gga_retry(self, delay: float) -> None:
        await asyncio.sleep(delay)
        if not self._corrections_since_connect:
            await self._send_current_gga()

    def _restart_gga_interval(self) -> None:
        if self._gga_interval_task is not None:
            self._gga_interval_task.cancel()
        assert self._config is not None
        self._gga_interval_task = self._start_timer(
            self._gga_loop(self._config.gga_update_interval_seconds)
        )

    async def _gga_loop(self, interval: float) -> None:
        while True:
            await asyncio.sleep(interval)
            await self._send_current_gga()

    # --- timers ------------------------------------------------------------------

    def _start_timer(self, coro: Coroutine[Any, Any, Any]) -> asyncio.Task:
        task = asyncio.create_task(coro)
        self._timers.add(task)
        task.add_done_callback(self._timers.discard)
        return task

    def _cancel_timers(self) -> None:
        current = asyncio.current_task()
        for task in list(self._timers):
            if task is not current:
                task.cancel()
        self._gga_interval_task = None
        self._reconnect_task = None
