"""FastAPI status and control service for an rtklink session.

Start with::

    RTKLINK_DEVICE_HOST=192.168.1.50 uvicorn server.main:app --host 0.0.0.0 --port 8000

The service owns one ``RTKSession``. When ``RTKLINK_DEVICE_HOST`` is set, it
opens an NMEA-over-TCP link to the receiver; otherwise NMEA can be posted to
``/api/nmea``. WebSocket clients connect to ``ws://<host>:8000/ws`` and receive
a stream of JSON messages, one per notification: ``position``, ``satellites``,
``statistics``, ``ntrip`` and ``rtcm``, plus a ``ping`` after 5 seconds of
silence.
"""

import asyncio
import logging
from collections.abc import AsyncIterator, Callable
from contextlib import asynccontextmanager

from fastapi import Depends, FastAPI, HTTPException, Request, WebSocket, WebSocketDisconnect
from pydantic import BaseModel, Field

from rtklink.device import TcpDeviceTransport
from rtklink.ntrip import ConnectionConfig, ConnectionMode, ConnectionEvent
from rtklink.session import RTKSession
from server.broadcaster import Broadcaster
from server.formatters import (
    connection_payload,
    format_ntrip_message,
    format_ping_message,
    format_position_message,
    format_rtcm_message,
    format_satellites_message,
    format_statistics_message,
    position_payload,
    satellite_payload,
)
from server.settings import ServerSettings

logger = logging.getLogger(__name__)

_TIMEOUT_SECONDS = 5.0


class NtripConnectRequest(BaseModel):
    caster_host: str
    mountpoint: str
    caster_port: int = Field(default=2101, gt=0, lt=65536)
    username: str = ""
    password: str = ""
    send_gga: bool = True
    connection_mode: ConnectionMode = ConnectionMode.AUTO
    proxy_url: str = "http://localhost:3000"
    websocket_url: str = "ws://localhost:3000/ws"
    gga_update_interval_seconds: float = 10.0

    def to_config(self) -> ConnectionConfig:
        return ConnectionConfig(**self.model_dump())


class ConnectResponse(BaseModel):
    success: bool
    mode: ConnectionMode | None = None
    reason: str | None = None
    failure: str | None = None


class GgaIntervalRequest(BaseModel):
    seconds: float


class NmeaResponse(BaseModel):
    decoded: int
    kinds: list[str]


def _wire_notifications(
    session: RTKSession, broadcaster: Broadcaster
) -> list[Callable[[], None]]:
    receiver = session.receiver
    client = session.client

    def _on_lifecycle(event: str) -> Callable[[ConnectionEvent], None]:
        def _emit(payload: ConnectionEvent) -> None:
            broadcaster.broadcast(
                format_ntrip_message(
                    event,
                    caster_host=payload.caster_host,
                    mountpoint=payload.mountpoint,
                    mode=payload.mode.value if payload.mode is not None else None,
                )
            )

        return _emit

    return [
        receiver.position_updated.subscribe(
            lambda update: broadcaster.broadcast(format_position_message(update))
        ),
        receiver.satellites_updated.subscribe(
            lambda satellites: broadcaster.broadcast(format_satellites_message(satellites))
        ),
        receiver.sentence_statistics.subscribe(
            lambda statistics: broadcaster.broadcast(format_statistics_message(statistics))
        ),
        client.connecting.subscribe(_on_lifecycle("connecting")),
        client.connected.subscribe(_on_lifecycle("connected")),
        client.disconnected.subscribe(
            lambda reason: broadcaster.broadcast(
                format_ntrip_message("disconnected", reason=reason)
            )
        ),
        client.errors.subscribe(
            lambda message: broadcaster.broadcast(
                format_ntrip_message("error", message=message)
            )
        ),
        client.info.subscribe(
            lambda message: broadcaster.broadcast(format_ntrip_message("info", message=message))
        ),
        client.rtcm_received.subscribe(
            lambda received: broadcaster.broadcast(format_rtcm_message(received))
        ),
    ]


@asynccontextmanager
async def _lifespan(application: FastAPI) -> AsyncIterator[None]:
    settings = ServerSettings.from_env()
    logging.basicConfig(
        level=settings.log_level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    session = RTKSession()
    broadcaster = Broadcaster(settings.queue_size)
    unsubscribers = _wire_notifications(session, broadcaster)

    if settings.device_host:
        session.attach_device(
            TcpDeviceTransport(settings.device_host, settings.device_port)
        )
        if not await session.connect_device():
            logger.warning(
                "Receiver at %s:%d unavailable; continuing without a device",
                settings.device_host,
                settings.device_port,
            )

    application.state.session = session
    application.state.broadcaster = broadcaster
    try:
        yield
    finally:
        for unsubscribe in unsubscribers:
            unsubscribe()
        await session.aclose()


app = FastAPI(lifespan=_lifespan)


def _get_session(request: Request) -> RTKSession:
    return request.app.state.session


@app.get("/api/status")
async def get_status(session: RTKSession = Depends(_get_session)) -> dict:
    """Current position, satellites, sentence statistics and NTRIP state."""
    receiver = session.receiver
    statistics = receiver.statistics
    return {
        "device_connected": session.device is not None and session.device.is_connected,
        "position": position_payload(receiver.position),
        "satellites": [satellite_payload(satellite) for satellite in receiver.satellites],
        "statistics": {
            "counts": statistics.counts,
            "total": statistics.total,
            "rejected": statistics.rejected,
            "data_rate": statistics.data_rate,
        },
        "ntrip": connection_payload(session.client.connection_info()),
    }


@app.post("/api/nmea")
async def post_nmea(
    request: Request, session: RTKSession = Depends(_get_session)
) -> NmeaResponse:
    """Feed raw NMEA text into the receiver, as if read from the device."""
    sentences = session.receiver.feed(await request.body())
    return NmeaResponse(
        decoded=len(sentences), kinds=[sentence.kind for sentence in sentences]
    )


@app.post("/api/ntrip/connect")
async def connect_ntrip(
    body: NtripConnectRequest, session: RTKSession = Depends(_get_session)
) -> ConnectResponse:
    result = await session.connect_ntrip(body.to_config())
    return ConnectResponse(
        success=result.success,
        mode=result.mode,
        reason=result.reason,
        failure=result.failure.value if result.failure is not None else None,
    )


@app.post("/api/ntrip/disconnect")
async def disconnect_ntrip(session: RTKSession = Depends(_get_session)) -> dict:
    await session.disconnect_ntrip()
    return connection_payload(session.client.connection_info())


@app.put("/api/ntrip/gga-interval")
async def set_gga_interval(
    body: GgaIntervalRequest, session: RTKSession = Depends(_get_session)
) -> dict:
    if not session.client.set_gga_update_interval(body.seconds):
        raise HTTPException(
            status_code=400,
            detail="Interval must be positive and an NTRIP connection configured",
        )
    return {"seconds": body.seconds}


async def _send_messages_until_disconnect(
    queue: asyncio.Queue[str], websocket: WebSocket
) -> None:
    try:
        while True:
            try:
                message = await asyncio.wait_for(queue.get(), timeout=_TIMEOUT_SECONDS)
            except asyncio.TimeoutError:
                message = format_ping_message()
            await websocket.send_text(message)
    except WebSocketDisconnect:
        pass


@app.websocket("/ws")
async def websocket_endpoint(websocket: WebSocket) -> None:
    """Stream receiver and correction notifications to a WebSocket client.

    Each client gets its own bounded queue. The oldest message is dropped when
    the queue is full so slow clients do not stall the session. A ``ping``
    message is sent when nothing else was sent for ``_TIMEOUT_SECONDS``.

    Args:
        websocket: The incoming WebSocket connection.
    """
    await websocket.accept()
    broadcaster: Broadcaster = websocket.app.state.broadcaster
    queue = broadcaster.add_subscriber()
    try:
        await _send_messages_until_disconnect(queue, websocket)
    finally:
        broadcaster.remove_subscriber(queue)
