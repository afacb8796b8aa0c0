"""Realtime invalidation — server push over Socket.IO.

Learn: Events flow one way. Another client writes → the server pushes a
named event (task_updated, member_points_updated, ...) → the channel
dispatches it through the SubscriptionRegistry → the client's wiring asks
the CacheStore to reload. The push tells us *that* something changed, not
*what*, so the reaction is almost always a silent refresh.
"""

from momentum.realtime.channel import ChannelState, RealtimeChannel
from momentum.realtime.subscriptions import SubscriptionRegistry
from momentum.realtime.transport import (
    SocketIOTransport,
    Transport,
    TransportClosed,
    WebSocketTransport,
)

__all__ = [
    "ChannelState",
    "RealtimeChannel",
    "SocketIOTransport",
    "SubscriptionRegistry",
    "Transport",
    "TransportClosed",
    "WebSocketTransport",
]
