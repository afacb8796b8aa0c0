"""Test fixtures — fake backends, a fake push transport, recorded sleeps.

Learn: Nothing here touches the network or waits on a real timer.

1. FakeBackend serves both HTTP APIs through httpx.MockTransport. Routes
   are keyed by (method, path); unrouted calls get a 404 envelope.
2. FakeTransport stands in for the websocket. Tests push inbound events
   with push() and kill the connection with drop().
3. RecordedSleep replaces asyncio.sleep in gateways and channels and keeps
   the delays it was asked for.
"""

import asyncio
import json
from typing import Any, Callable, Optional, Union

import httpx
import pytest

from momentum.config import Settings
from momentum.realtime.transport import Transport, TransportClosed

CORE = "https://core.test/api/v1"
BFF = "https://bff.test/mobile-bff"
SOCKET = "https://bff.test"


def ok(data: Any = None, **extra: Any) -> httpx.Response:
    return httpx.Response(200, json={"status": "success", "data": data, **extra})


def fail(status: int, message: str) -> httpx.Response:
    return httpx.Response(status, json={"status": "error", "message": message})


Route = Union[httpx.Response, Callable[[httpx.Request], httpx.Response], Exception]


class FakeBackend:
    """Routes keyed by (METHOD, path). A route may be a list, consumed in order."""

    def __init__(self):
        self.routes: dict[tuple[str, str], Any] = {}
        self.requests: list[httpx.Request] = []

    def route(self, method: str, path: str, *responses: Route) -> None:
        self.routes[(method.upper(), path)] = list(responses)

    def calls(self, method: str, path: str) -> list[httpx.Request]:
        return [
            r for r in self.requests if r.method == method.upper() and r.url.path == path
        ]

    def body(self, request: httpx.Request) -> Any:
        return json.loads(request.content) if request.content else None

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        queue = self.routes.get((request.method, request.url.path))
        if not queue:
            return fail(404, f"No route for {request.method} {request.url.path}")
        route = queue.pop(0) if len(queue) > 1 else queue[0]
        if isinstance(route, Exception):
            raise route
        if callable(route):
            return route(request)
        return route

    @property
    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handler)


class RecordedSleep:
    def __init__(self):
        self.delays: list[float] = []

    async def __call__(self, delay: float) -> None:
        self.delays.append(delay)
        await asyncio.sleep(0)


_CLOSED = object()


class FakeTransport(Transport):
    def __init__(self, fail_connect: bool = False):
        self.fail_connect = fail_connect
        self.url: Optional[str] = None
        self.token: Optional[str] = None
        self.sent: list[tuple[str, Any]] = []
        self.closed = False
        self._inbox: asyncio.Queue = asyncio.Queue()

    async def connect(self, url: str, token: str) -> None:
        self.url, self.token = url, token
        if self.fail_connect:
            raise TransportClosed("refused")

    async def send(self, event: str, data: Any) -> None:
        self.sent.append((event, data))

    async def receive(self) -> tuple[str, Any]:
        item = await self._inbox.get()
        if item is _CLOSED:
            raise TransportClosed("closed")
        return item

    async def close(self) -> None:
        self.closed = True
        self._inbox.put_nowait(_CLOSED)

    def push(self, event: str, data: Any = None) -> None:
        self._inbox.put_nowait((event, data))

    def drop(self) -> None:
        self._inbox.put_nowait(_CLOSED)


class FakeTransportFactory:
    """Hands out FakeTransports; the next `failures` of them refuse to connect."""

    def __init__(self, failures: int = 0):
        self.failures = failures
        self.created: list[FakeTransport] = []

    def __call__(self) -> FakeTransport:
        transport = FakeTransport(fail_connect=self.failures > 0)
        if self.failures > 0:
            self.failures -= 1
        self.created.append(transport)
        return transport

    @property
    def current(self) -> FakeTransport:
        return self.created[-1]

    @property
    def tokens(self) -> list[Optional[str]]:
        return [t.token for t in self.created]


async def settle(rounds: int = 20) -> None:
    """Let queued callbacks and background tasks run."""
    for _ in range(rounds):
        await asyncio.sleep(0)


@pytest.fixture
def test_settings() -> Settings:
    return Settings(core_api_url=CORE, bff_api_url=BFF, socket_url=SOCKET)


@pytest.fixture
def backend() -> FakeBackend:
    return FakeBackend()


@pytest.fixture
def sleeper() -> RecordedSleep:
    return RecordedSleep()


@pytest.fixture
def transports() -> FakeTransportFactory:
    return FakeTransportFactory()


# ─── Household fixture data ──────────────────────────────

MEMBERS = [
    {"_id": "m1", "userId": "u1", "displayName": "Alex", "pointsTotal": 100},
    {"_id": "m2", "displayName": "Sam", "pointsTotal": 40},
]
TASKS = [
    {"_id": "t1", "title": "Dishes", "value": 10, "status": "Pending", "assignedTo": ["m2"]},
    {"id": "t2", "title": "Laundry", "value": 5, "status": "Pending", "assignedTo": ["m1"]},
]
STORE_ITEMS = [{"_id": "s1", "itemName": "Movie night", "cost": 50}]


def seed_household(backend: "FakeBackend", members=None, tasks=None) -> None:
    """Route every endpoint the aggregated load touches."""
    members = MEMBERS if members is None else members
    backend.route("GET", "/api/v1/tasks", ok({"tasks": TASKS if tasks is None else tasks}))
    backend.route("GET", "/api/v1/quests", ok({"quests": [{"_id": "q1", "claims": []}]}))
    backend.route(
        "GET",
        "/mobile-bff/dashboard/page-data",
        ok({"household": {"id": "h1", "name": "Home", "members": members}}),
    )
    backend.route("GET", "/mobile-bff/store", ok({"storeItems": STORE_ITEMS}))
    backend.route("GET", "/mobile-bff/meals/recipes", ok({"recipes": [{"_id": "r1"}]}))
    backend.route("GET", "/mobile-bff/meals/restaurants", ok({"restaurants": []}))
    backend.route(
        "GET",
        "/mobile-bff/routines",
        ok({"routines": [{"_id": "rt1", "items": [{"_id": "i1", "isCompleted": False}]}]}),
    )
    for member in members:
        mid = member.get("id") or member.get("_id")
        backend.route(
            "GET",
            f"/mobile-bff/wishlist/member/{mid}",
            ok({"wishlistItems": [{"_id": f"w-{mid}", "pointsCost": 30}], "currentPoints": 0}),
        )


def make_api(
    backend: "FakeBackend",
    sleeper: "RecordedSleep",
    token: Optional[str] = "T1",
    token_provider: Optional[Callable[[], Optional[str]]] = None,
):
    from momentum.api import MomentumApi
    from momentum.gateway import RequestGateway

    def gateway(base: str, name: str) -> RequestGateway:
        return RequestGateway(
            base,
            name=name,
            token_provider=token_provider or (lambda: token),
            transport=backend.transport,
            sleep=sleeper,
        )

    return MomentumApi(gateway(CORE, "core"), gateway(BFF, "bff"))
