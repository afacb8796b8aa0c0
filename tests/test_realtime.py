"""Realtime tests — channel state machine, reconnect, registry, frames."""

import asyncio

import pytest

from conftest import SOCKET, FakeTransportFactory, settle
from momentum.realtime import ChannelState, RealtimeChannel, SubscriptionRegistry
from socketio.exceptions import ConnectionError as SocketIOConnectionError

from momentum.config import Settings
from momentum.realtime.transport import (
    SocketIOTransport,
    TransportClosed,
    WebSocketTransport,
    decode_frame,
    encode_frame,
    handshake_url,
    socketio_client,
)


def make_channel(transports, sleeper, **kwargs) -> RealtimeChannel:
    channel = RealtimeChannel(SOCKET, transport_factory=transports, sleep=sleeper, **kwargs)
    channel.states = []
    channel.add_state_listener(channel.states.append)
    return channel


# ═══════════════════════════════════════════════════════════
# Connection lifecycle
# ═══════════════════════════════════════════════════════════


@pytest.mark.asyncio
async def test_set_token_connects_with_that_token(transports, sleeper):
    channel = make_channel(transports, sleeper)

    await channel.set_token("T1")

    assert channel.states == [ChannelState.CONNECTING, ChannelState.CONNECTED]
    assert transports.current.token == "T1"
    assert transports.current.url == SOCKET
    await channel.close()


@pytest.mark.asyncio
async def test_same_token_does_not_reconnect(transports, sleeper):
    channel = make_channel(transports, sleeper)
    await channel.set_token("T1")
    await channel.set_token("T1")
    assert len(transports.created) == 1
    await channel.close()


@pytest.mark.asyncio
async def test_token_change_rebuilds_transport(transports, sleeper):
    channel = make_channel(transports, sleeper)
    await channel.set_token("T1")
    first = transports.current

    await channel.set_token("T2")

    assert first.closed is True
    assert transports.tokens == ["T1", "T2"]
    assert channel.state is ChannelState.CONNECTED
    await channel.close()


@pytest.mark.asyncio
async def test_clearing_token_disconnects_without_reconnect(transports, sleeper):
    channel = make_channel(transports, sleeper)
    await channel.set_token("T1")

    await channel.set_token(None)
    await settle()

    assert channel.state is ChannelState.DISCONNECTED
    assert transports.current.closed is True
    assert len(transports.created) == 1
    assert sleeper.delays == []


# ═══════════════════════════════════════════════════════════
# Reconnect
# ═══════════════════════════════════════════════════════════


@pytest.mark.asyncio
async def test_lost_transport_reconnects_and_keeps_registrations(transports, sleeper):
    channel = make_channel(transports, sleeper)
    received = []
    channel.on("task_updated", received.append)
    await channel.set_token("T1")

    transports.current.drop()
    await settle()

    assert channel.state is ChannelState.CONNECTED
    assert len(transports.created) == 2
    assert transports.current.token == "T1"
    assert sleeper.delays == [1.0]
    assert ChannelState.RECONNECTING in channel.states

    transports.current.push("task_updated", {"taskId": "t1"})
    await settle()
    assert received == [{"taskId": "t1"}]
    await channel.close()


@pytest.mark.asyncio
async def test_reconnect_budget_is_bounded(sleeper):
    """Five attempts, 1s doubling capped at 5s, then DISCONNECTED for good."""
    transports = FakeTransportFactory(failures=100)
    channel = make_channel(transports, sleeper)

    assert await channel.connect() is False  # no token yet
    await channel.set_token("T1")
    await settle(100)

    assert sleeper.delays == [1.0, 2.0, 4.0, 5.0, 5.0]
    assert len(transports.created) == 6
    assert channel.state is ChannelState.DISCONNECTED
    assert channel.states[-1] is ChannelState.DISCONNECTED


@pytest.mark.asyncio
async def test_reconnect_succeeds_after_failures(sleeper):
    transports = FakeTransportFactory(failures=3)
    channel = make_channel(transports, sleeper)

    await channel.set_token("T1")
    await settle(50)

    assert channel.state is ChannelState.CONNECTED
    assert sleeper.delays == [1.0, 2.0, 4.0]
    await channel.close()


@pytest.mark.asyncio
async def test_connect_while_reconnecting_leaves_it_to_the_loop():
    gate = asyncio.Event()

    async def held_sleep(delay):
        await gate.wait()

    transports = FakeTransportFactory(failures=1)
    channel = make_channel(transports, held_sleep)

    await channel.set_token("T1")
    await settle()
    assert channel.state is ChannelState.RECONNECTING

    assert await channel.connect() is False
    assert len(transports.created) == 1

    gate.set()
    await settle()
    assert channel.state is ChannelState.CONNECTED
    assert len(transports.created) == 2
    await channel.close()


# ═══════════════════════════════════════════════════════════
# Emit
# ═══════════════════════════════════════════════════════════


@pytest.mark.asyncio
async def test_emit_while_disconnected_is_dropped(transports, sleeper):
    channel = make_channel(transports, sleeper)
    assert await channel.emit("ping", {}) is False
    assert transports.created == []


@pytest.mark.asyncio
async def test_emit_while_connected_sends(transports, sleeper):
    channel = make_channel(transports, sleeper)
    await channel.set_token("T1")
    assert await channel.emit("join_household", {"householdId": "h1"}) is True
    assert transports.current.sent == [("join_household", {"householdId": "h1"})]
    await channel.close()
    assert await channel.emit("ping") is False
    assert len(transports.current.sent) == 1


# ═══════════════════════════════════════════════════════════
# Registry
# ═══════════════════════════════════════════════════════════


@pytest.mark.asyncio
async def test_registry_dispatch_order_and_failure_isolation():
    registry = SubscriptionRegistry()
    calls = []

    def broken(data):
        raise RuntimeError("bug")

    async def async_cb(data):
        calls.append(("async", data))

    registry.on("e", broken)
    registry.on("e", async_cb)
    registry.on("e", async_cb)  # duplicate ignored
    registry.on("e", lambda d: calls.append(("sync", d)))

    assert await registry.dispatch("e", 1) == 2
    assert calls == [("async", 1), ("sync", 1)]
    assert len(registry) == 3

    registry.off("e", async_cb)
    assert await registry.dispatch("unknown", None) == 0
    assert len(registry) == 2


# ═══════════════════════════════════════════════════════════
# Frames
# ═══════════════════════════════════════════════════════════


def test_handshake_url_carries_token():
    assert handshake_url("wss://h/ws", "abc") == "wss://h/ws?token=abc"
    assert handshake_url("wss://h/ws?v=2&token=old", "new") == "wss://h/ws?v=2&token=new"


def test_decode_accepts_three_frame_shapes():
    assert decode_frame(encode_frame("task_updated", {"a": 1})) == ("task_updated", {"a": 1})
    assert decode_frame('{"type": "quest_updated", "questId": "q1"}') == (
        "quest_updated",
        {"questId": "q1"},
    )
    assert decode_frame(b'["notification", {"title": "hi"}]') == (
        "notification",
        {"title": "hi"},
    )
    assert decode_frame("not json") is None
    assert decode_frame('{"foo": 1}') is None


# ═══════════════════════════════════════════════════════════
# Socket.IO transport
# ═══════════════════════════════════════════════════════════


class StubSocketIOClient:
    """Just enough of socketio.AsyncClient for the transport."""

    def __init__(self, refuse: bool = False):
        self.refuse = refuse
        self.handlers = {}
        self.connect_args = None
        self.emitted = []
        self.disconnected = False

    def on(self, event, handler=None, namespace=None):
        self.handlers[event] = handler

    async def connect(self, url, **kwargs):
        if self.refuse:
            raise SocketIOConnectionError("Connection refused by the server")
        self.connect_args = (url, kwargs)

    async def emit(self, event, data=None):
        self.emitted.append((event, data))

    async def disconnect(self):
        self.disconnected = True
        await self.handlers["disconnect"]()

    async def server_push(self, event, *args):
        await self.handlers["*"](event, *args)


@pytest.mark.asyncio
async def test_socketio_transport_authenticates_and_relays_events():
    client = StubSocketIOClient()
    transport = SocketIOTransport(client_factory=lambda: client)

    await transport.connect(SOCKET, "T1")
    url, kwargs = client.connect_args
    assert url == SOCKET
    assert kwargs["auth"] == {"token": "T1"}
    assert kwargs["transports"] == ["websocket"]

    await client.server_push("task_updated", {"taskId": "t1"})
    await client.server_push("household_updated")
    assert await transport.receive() == ("task_updated", {"taskId": "t1"})
    assert await transport.receive() == ("household_updated", None)

    await transport.send("join_household", {"householdId": "h1"})
    assert client.emitted == [("join_household", {"householdId": "h1"})]

    await transport.close()
    assert client.disconnected is True
    with pytest.raises(TransportClosed):
        await transport.receive()


@pytest.mark.asyncio
async def test_socketio_transport_server_disconnect_ends_receive():
    client = StubSocketIOClient()
    transport = SocketIOTransport(client_factory=lambda: client)
    await transport.connect(SOCKET, "T1")

    await client.handlers["disconnect"]("transport close")

    with pytest.raises(TransportClosed):
        await transport.receive()


@pytest.mark.asyncio
async def test_socketio_transport_refused_handshake():
    transport = SocketIOTransport(client_factory=lambda: StubSocketIOClient(refuse=True))
    with pytest.raises(TransportClosed, match="refused"):
        await transport.connect(SOCKET, "bad")
    with pytest.raises(TransportClosed):
        await transport.send("ping", None)


def test_socketio_client_leaves_reconnection_to_the_channel():
    assert socketio_client().reconnection is False


def test_channel_transport_follows_settings():
    default = RealtimeChannel.from_settings(Settings())
    assert default.url == "https://momentum-mobile-bff.onrender.com"
    assert default._transport_factory is SocketIOTransport

    plain = RealtimeChannel.from_settings(
        Settings(socket_url="wss://bff.test/ws", socket_transport="websocket")
    )
    assert plain._transport_factory is WebSocketTransport
