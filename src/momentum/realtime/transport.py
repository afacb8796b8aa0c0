"""Push transports — the socket underneath a RealtimeChannel.

Learn: The channel only needs four operations from a transport: open an
authenticated connection, send a named event, receive the next named
event, close. Tests plug in an in-memory transport. Two real ones exist:

SocketIOTransport (default) speaks the backend's native protocol through
python-socketio. The token goes in the Socket.IO `auth` payload
(`{"token": <JWT>}`), and the client's own reconnection is switched off so
the channel's backoff policy is the only one in play.

WebSocketTransport is the alternative for a plain websocket endpoint. The
token travels in the connection URL (`wss://host/ws?token=<JWT>`).

Either way a reconnect opens a fresh transport, which re-supplies whatever
token the channel currently holds.

Plain websocket frames are JSON. Outbound: {"event": name, "data": payload}.
Inbound, three shapes are accepted:
    {"event": "task_updated", "data": {...}}
    {"type": "task_updated", "taskId": "..."}     (fields inline)
    ["task_updated", {...}]
"""

import asyncio
import json
from abc import ABC, abstractmethod
from typing import Any, Callable, Optional
from urllib.parse import parse_qsl, urlencode, urlsplit, urlunsplit

import socketio
import structlog
import websockets
from socketio.exceptions import ConnectionError as SocketIOConnectionError
from socketio.exceptions import SocketIOError
from websockets.exceptions import ConnectionClosed, WebSocketException

logger = structlog.get_logger()


class TransportClosed(Exception):
    """The connection could not be opened or has gone away."""


class Transport(ABC):
    """One physical push connection. Not reused after close()."""

    @abstractmethod
    async def connect(self, url: str, token: str) -> None:
        """Open the connection, authenticating with `token`.

        Raises TransportClosed when the handshake fails.
        """

    @abstractmethod
    async def send(self, event: str, data: Any) -> None:
        """Send one named event."""

    @abstractmethod
    async def receive(self) -> tuple[str, Any]:
        """Wait for the next named event. Raises TransportClosed at the end."""

    @abstractmethod
    async def close(self) -> None:
        """Close the connection. Safe to call more than once."""


# ─── Frame codec ─────────────────────────────────────────


def handshake_url(url: str, token: str) -> str:
    parts = urlsplit(url)
    query = [(k, v) for k, v in parse_qsl(parts.query) if k != "token"]
    query.append(("token", token))
    return urlunsplit((parts.scheme, parts.netloc, parts.path, urlencode(query), parts.fragment))


def encode_frame(event: str, data: Any) -> str:
    return json.dumps({"event": event, "data": data})


def decode_frame(raw: Any) -> Optional[tuple[str, Any]]:
    """Parse one inbound frame into (event, data), or None if unrecognised."""
    if isinstance(raw, (bytes, bytearray)):
        raw = raw.decode("utf-8", errors="replace")
    try:
        frame = json.loads(raw)
    except (TypeError, ValueError):
        return None

    if isinstance(frame, list) and frame and isinstance(frame[0], str):
        return frame[0], frame[1] if len(frame) > 1 else None
    if not isinstance(frame, dict):
        return None
    if isinstance(frame.get("event"), str):
        return frame["event"], frame.get("data")
    if isinstance(frame.get("type"), str):
        fields = dict(frame)
        event = fields.pop("type")
        return event, fields
    return None


# ─── WebSocket transport ─────────────────────────────────


class WebSocketTransport(Transport):
    """Transport over a plain websocket connection."""

    def __init__(self, open_timeout: float = 10.0):
        self.open_timeout = open_timeout
        self._ws = None

    async def connect(self, url: str, token: str) -> None:
        try:
            self._ws = await websockets.connect(
                handshake_url(url, token),
                open_timeout=self.open_timeout,
            )
        except (OSError, WebSocketException, asyncio.TimeoutError) as e:
            raise TransportClosed(f"Connection failed: {e}") from e

    async def send(self, event: str, data: Any) -> None:
        if self._ws is None:
            raise TransportClosed("Not connected")
        try:
            await self._ws.send(encode_frame(event, data))
        except ConnectionClosed as e:
            raise TransportClosed(str(e)) from e

    async def receive(self) -> tuple[str, Any]:
        if self._ws is None:
            raise TransportClosed("Not connected")
        while True:
            try:
                raw = await self._ws.recv()
            except ConnectionClosed as e:
                raise TransportClosed(str(e)) from e
            frame = decode_frame(raw)
            if frame is not None:
                return frame
            logger.debug("realtime.frame_ignored", size=len(raw))

    async def close(self) -> None:
        ws, self._ws = self._ws, None
        if ws is not None:
            await ws.close()


# ─── Socket.IO transport ─────────────────────────────────

_DISCONNECTED = object()


def socketio_client() -> socketio.AsyncClient:
    """A Socket.IO client whose built-in reconnection is off."""
    return socketio.AsyncClient(reconnection=False, logger=False, engineio_logger=False)


class SocketIOTransport(Transport):
    """Transport over a Socket.IO session.

    Every named server event lands in an inbox through a catch-all handler;
    a disconnect puts a marker there so receive() can report the end.
    """

    def __init__(
        self,
        open_timeout: float = 10.0,
        transports: tuple[str, ...] = ("websocket",),
        client_factory: Callable[[], Any] = socketio_client,
    ):
        self.open_timeout = open_timeout
        self.transports = list(transports)
        self._client_factory = client_factory
        self._sio = None
        self._inbox: asyncio.Queue = asyncio.Queue()

    async def connect(self, url: str, token: str) -> None:
        sio = self._client_factory()
        sio.on("*", self._on_event)
        sio.on("disconnect", self._on_disconnect)
        try:
            await sio.connect(
                url,
                auth={"token": token},
                transports=self.transports,
                wait_timeout=self.open_timeout,
            )
        except (SocketIOConnectionError, OSError, asyncio.TimeoutError) as e:
            raise TransportClosed(f"Connection failed: {e}") from e
        self._sio = sio

    async def _on_event(self, event: str, *args: Any) -> None:
        if len(args) == 1:
            data = args[0]
        else:
            data = list(args) or None
        self._inbox.put_nowait((event, data))

    async def _on_disconnect(self, *args: Any) -> None:
        self._inbox.put_nowait(_DISCONNECTED)

    async def send(self, event: str, data: Any) -> None:
        if self._sio is None:
            raise TransportClosed("Not connected")
        try:
            await self._sio.emit(event, data)
        except SocketIOError as e:
            raise TransportClosed(str(e)) from e

    async def receive(self) -> tuple[str, Any]:
        if self._sio is None and self._inbox.empty():
            raise TransportClosed("Not connected")
        item = await self._inbox.get()
        if item is _DISCONNECTED:
            raise TransportClosed("Disconnected")
        return item

    async def close(self) -> None:
        sio, self._sio = self._sio, None
        if sio is not None:
            await sio.disconnect()
        self._inbox.put_nowait(_DISCONNECTED)


TRANSPORTS: dict[str, Callable[[], Transport]] = {
    "socketio": SocketIOTransport,
    "websocket": WebSocketTransport,
}
