"""Transports that carry the correction stream from a caster.

Three ways to reach a caster are supported:

    WEBSOCKET   client ==ws==> relay ==NTRIP==> caster
                JSON control frames, binary RTCM frames
    DIRECT      client ==HTTP GET /mountpoint==> caster
    PROXY       client ==HTTP GET proxy/mountpoint?host=&port===> relay ==> caster

Every transport exposes the same lifecycle: ``open()`` raises
``TransportError`` if the stream cannot be established, ``receive()``
yields RTCM chunks (and, for the WebSocket relay, control messages) until
the stream ends, ``send_gga()`` reports the position, ``close()`` releases
everything.

WebSocket relay protocol:
    client -> relay   {"command": "connect", "config": {casterHost, casterPort,
                       mountpoint, username, password}}
                      {"command": "gga", "data": "$GPGGA,..."}
                      {"command": "disconnect"}
    relay -> client   {"type": "status", "connected": true|false, "message"?}
                      {"type": "error" | "info", "message": "..."}
                      {"type": "ping"}
                      any binary or non-JSON frame is RTCM
"""

import asyncio
import contextlib
import json
import logging
from abc import ABC, abstractmethod
from collections.abc import AsyncIterator
from dataclasses import dataclass

import aiohttp

from rtklink.ntrip.config import ClientSettings, ConnectionConfig, ConnectionMode
from rtklink.ntrip.errors import HandshakeTimeoutError, TransportError

logger = logging.getLogger(__name__)

NTRIP_VERSION = "Ntrip/2.0"

_NETWORK_ERRORS = (aiohttp.ClientError, asyncio.TimeoutError, OSError)


def _describe(error: BaseException) -> str:
    # Timeouts carry no message
    return str(error) or type(error).__name__


@dataclass(frozen=True)
class ControlMessage:
    """A JSON control frame from the WebSocket relay."""

    type: str
    connected: bool | None = None
    message: str | None = None


def parse_control_message(text: str) -> ControlMessage | None:
    """Decode a relay control frame, or None if the text is not one.

    Example:
        >>> parse_control_message('{"type": "status", "connected": true}')
        ControlMessage(type='status', connected=True, message=None)
        >>> parse_control_message("\\xd3\\x00\\x13") is None
        True
    """
    try:
        payload = json.loads(text)
    except ValueError:
        return None
    if not isinstance(payload, dict) or not isinstance(payload.get("type"), str):
        return None
    connected = payload.get("connected")
    return ControlMessage(
        type=payload["type"],
        connected=connected if isinstance(connected, bool) else None,
        message=payload.get("message"),
    )


class CorrectionTransport(ABC):
    mode: ConnectionMode

    @abstractmethod
    async def open(self) -> None:
        """Establish the stream.

        Raises:
            TransportError: the caster or relay could not be reached or
                refused the connection.
        """

    @abstractmethod
    def receive(self) -> AsyncIterator[bytes | ControlMessage]:
        """Yield inbound items until the stream ends.

        Raises:
            TransportError: the stream failed while reading.
        """

    @abstractmethod
    async def send_gga(self, sentence: str) -> bool:
        """Report a GGA sentence to the caster. Never raises."""

    @abstractmethod
    async def close(self) -> None:
        """Release the stream. Safe to call more than once."""


class WebSocketTransport(CorrectionTransport):
    mode = ConnectionMode.WEBSOCKET

    def __init__(
        self,
        session: aiohttp.ClientSession,
        config: ConnectionConfig,
        settings: ClientSettings,
    ):
        self._session = session
        self._config = config
        self._settings = settings
        self._ws: aiohttp.ClientWebSocketResponse | None = None

    def _connect_command(self) -> dict:
        return {
            "command": "connect",
            "config": {
                "casterHost": self._config.caster_host,
                "casterPort": self._config.caster_port,
                "mountpoint": self._config.mountpoint,
                "username": self._config.username,
                "password": self._config.password,
            },
        }

    async def open(self) -> None:
        try:
            await asyncio.wait_for(
                self._handshake(), timeout=self._settings.handshake_timeout_seconds
            )
        except asyncio.TimeoutError as e:
            await self.close()
            raise HandshakeTimeoutError(
                self.mode,
                f"no status reply within {self._settings.handshake_timeout_seconds:g} s",
            ) from e
        except (aiohttp.ClientError, OSError) as e:
            await self.close()
            raise TransportError(self.mode, f"relay handshake failed: {e}") from e
        except TransportError:
            await self.close()
            raise

    async def _handshake(self) -> None:
        url = self._config.websocket_url
        logger.info("Opening WebSocket relay at %s", url)
        try:
            self._ws = await self._session.ws_connect(url)
        except (aiohttp.ClientError, OSError) as e:
            raise TransportError(
                self.mode, f"cannot reach relay at {url}: {_describe(e)}"
            ) from e

        await self._ws.send_json(self._connect_command())
        while True:
            msg = await self._ws.receive()
            if msg.type in (
                aiohttp.WSMsgType.CLOSE,
                aiohttp.WSMsgType.CLOSING,
                aiohttp.WSMsgType.CLOSED,
            ):
                raise TransportError(
                    self.mode, f"WebSocket closed: {self._ws.close_code}"
                )
            if msg.type is aiohttp.WSMsgType.ERROR:
                raise TransportError(self.mode, f"WebSocket error: {self._ws.exception()}")
            if msg.type is not aiohttp.WSMsgType.TEXT:
                raise TransportError(
                    self.mode, "unexpected binary data during WebSocket handshake"
                )

            control = parse_control_message(msg.data)
            if control is None:
                raise TransportError(
                    self.mode, "unexpected non-JSON frame during WebSocket handshake"
                )
            if control.type == "status":
                if control.connected:
                    return
                raise TransportError(
                    self.mode, control.message or "relay could not connect to caster"
                )
            if control.type == "error":
                raise TransportError(self.mode, control.message or "relay error")
            # info and ping frames may precede the status reply

    async def receive(self) -> AsyncIterator[bytes | ControlMessage]:
        assert self._ws is not None
        # Iteration stops on CLOSE, CLOSING and CLOSED
        async for msg in self._ws:
            if msg.type is aiohttp.WSMsgType.BINARY:
                yield msg.data
            elif msg.type is aiohttp.WSMsgType.TEXT:
                control = parse_control_message(msg.data)
                yield control if control is not None else msg.data.encode()
            elif msg.type is aiohttp.WSMsgType.ERROR:
                raise TransportError(self.mode, f"WebSocket error: {self._ws.exception()}")

    async def send_gga(self, sentence: str) -> bool:
        if self._ws is None or self._ws.closed:
            return False
        try:
            await self._ws.send_json({"command": "gga", "data": sentence})
        except (aiohttp.ClientError, ConnectionError) as e:
            logger.warning("Failed to send GGA over WebSocket: %s", e)
            return False
        return True

    async def close(self) -> None:
        ws, self._ws = self._ws, None
        if ws is None or ws.closed:
            return
        with contextlib.suppress(aiohttp.ClientError, ConnectionError):
            await ws.send_json({"command": "disconnect"})
        await ws.close()


class HttpStreamTransport(CorrectionTransport):
    """Streaming HTTP GET, either to the caster or through the HTTP relay.

    Each body chunk is passed on as received; chunks do not align with
    RTCM frame boundaries. GGA reports are POSTed in background tasks.
    """

    def __init__(
        self,
        mode: ConnectionMode,
        session: aiohttp.ClientSession,
        config: ConnectionConfig,
        settings: ClientSettings,
    ):
        if mode not in (ConnectionMode.DIRECT, ConnectionMode.PROXY):
            raise ValueError(f"HTTP streaming does not support mode {mode.value}")
        self.mode = mode
        self._session = session
        self._config = config
        self._settings = settings
        self._response: aiohttp.ClientResponse | None = None
        self._posts: set[asyncio.Task] = set()

    @property
    def stream_url(self) -> str:
        if self.mode is ConnectionMode.DIRECT:
            return self._config.caster_url
        return f"{self._config.proxy_url.rstrip('/')}/{self._config.mountpoint}"

    @property
    def gga_url(self) -> str:
        if self.mode is ConnectionMode.DIRECT:
            return self.stream_url
        return f"{self.stream_url}/gga"

    def _params(self) -> dict[str, str] | None:
        if self.mode is ConnectionMode.DIRECT:
            return None
        params = {
            "host": self._config.caster_host,
            "port": str(self._config.caster_port),
        }
        if self._config.has_credentials:
            params["user"] = self._config.username
            params["password"] = self._config.password
        return params

    def _auth(self) -> aiohttp.BasicAuth | None:
        # The relay receives credentials in the query string instead
        if self.mode is ConnectionMode.DIRECT and self._config.has_credentials:
            return aiohttp.BasicAuth(self._config.username, self._config.password)
        return None

    def _headers(self) -> dict[str, str]:
        headers = {"User-Agent": self._settings.user_agent}
        if self.mode is ConnectionMode.DIRECT:
            headers["Ntrip-Version"] = NTRIP_VERSION
        return headers

    async def open(self) -> None:
        url = self.stream_url
        logger.info("Opening %s stream at %s", self.mode.value, url)

        async def request() -> aiohttp.ClientResponse:
            return await self._session.get(
                url,
                params=self._params(),
                headers={**self._headers(), "Accept": "application/octet-stream"},
                auth=self._auth(),
                # The stream is open-ended; only the connect phase is bounded
                timeout=aiohttp.ClientTimeout(total=None),
            )

        try:
            response = await asyncio.wait_for(
                request(), timeout=self._settings.http_connect_timeout_seconds
            )
        except _NETWORK_ERRORS as e:
            raise TransportError(self.mode, f"cannot reach {url}: {_describe(e)}") from e

        if not 200 <= response.status < 300:
            response.release()
            raise TransportError(
                self.mode, f"server error: {response.status} {response.reason}"
            )

        logger.debug(
            "%s stream open, content type %s",
            self.mode.value,
            response.headers.get("Content-Type"),
        )
        self._response = response

    async def receive(self) -> AsyncIterator[bytes]:
        assert self._response is not None
        try:
            async for chunk in self._response.content.iter_any():
                yield chunk
        except (aiohttp.ClientError, OSError) as e:
            raise TransportError(self.mode, f"stream read failed: {e}") from e

    async def send_gga(self, sentence: str) -> bool:
        if self._response is None:
            return False
        task = asyncio.create_task(self._post_gga(sentence))
        self._posts.add(task)
        task.add_done_callback(self._posts.discard)
        return True

    async def _post_gga(self, sentence: str) -> None:
        try:
            async with self._session.post(
                self.gga_url,
                params=self._params(),
                data=sentence,
                headers={**self._headers(), "Content-Type": "text/plain"},
                auth=self._auth(),
                timeout=aiohttp.ClientTimeout(
                    total=self._settings.http_connect_timeout_seconds
                ),
            ) as response:
                if response.status >= 400:
                    logger.warning(
                        "GGA POST to %s returned %d", self.gga_url, response.status
                    )
        except _NETWORK_ERRORS as e:
            logger.warning("GGA POST to %s failed: %s", self.gga_url, e)

    async def close(self) -> None:
        for task in list(self._posts):
            task.cancel()
        response, self._response = self._response, None
        if response is not None:
            response.close()


class TransportFactory(ABC):
    @abstractmethod
    def create(
        self,
        mode: ConnectionMode,
        config: ConnectionConfig,
        settings: ClientSettings,
    ) -> CorrectionTransport:
        """Build an unopened transport for ``mode``."""

    async def aclose(self) -> None:
        """Release resources shared between transports."""


class AiohttpTransportFactory(TransportFactory):
    """Creates aiohttp transports sharing one lazily created ClientSession."""

    def __init__(self, session: aiohttp.ClientSession | None = None):
        self._session = session
        self._owns_session = session is None

    def _ensure_session(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession()
            self._owns_session = True
        return self._session

    def create(
        self,
        mode: ConnectionMode,
        config: ConnectionConfig,
        settings: ClientSettings,
    ) -> CorrectionTransport:
        session = self._ensure_session()
        if mode is ConnectionMode.WEBSOCKET:
            return WebSocketTransport(session, config, settings)
        if mode in (ConnectionMode.DIRECT, ConnectionMode.PROXY):
            return HttpStreamTransport(mode, session, config, settings)
        raise ValueError(f"no transport for mode {mode.value}")

    async def aclose(self) -> None:
        if self._owns_session and self._session is not None:
            await self._session.close()
        self._session = None
