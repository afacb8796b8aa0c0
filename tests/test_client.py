"""MomentumClient tests — session, channel, cache and push wired together."""

import pytest
import pytest_asyncio

from conftest import fail, ok, seed_household, settle
from momentum.client import MomentumClient
from momentum.gateway import AuthExpired
from momentum.realtime import ChannelState, events
from momentum.store import MEMBERS, TASKS

LOGIN = {"parent": {"_id": "u1", "email": "a@b.c"}, "primaryHouseholdId": "h1"}


@pytest_asyncio.fixture()
async def client(test_settings, backend, sleeper, transports):
    seed_household(backend)
    backend.route("POST", "/api/v1/auth/login", ok(LOGIN, token="T1"))
    client = MomentumClient(
        test_settings,
        http_transport=backend.transport,
        transport_factory=transports,
        sleep=sleeper,
    )
    client.states = []
    client.channel.add_state_listener(client.states.append)
    yield client
    await client.aclose()


def dashboard_loads(backend) -> int:
    return len(backend.calls("GET", "/mobile-bff/dashboard/page-data"))


# ═══════════════════════════════════════════════════════════
# Session → channel + cache
# ═══════════════════════════════════════════════════════════


@pytest.mark.asyncio
async def test_login_connects_channel_with_token_and_loads(client, transports):
    assert client.channel.state is ChannelState.DISCONNECTED

    await client.session.login("a@b.c", "pw")

    assert client.states == [ChannelState.CONNECTING, ChannelState.CONNECTED]
    assert transports.current.token == "T1"
    assert client.store.counts()[TASKS] == 2
    assert client.store.household_id == "h1"


@pytest.mark.asyncio
async def test_requests_carry_session_token(client, backend):
    await client.session.login("a@b.c", "pw")
    request = backend.calls("GET", "/api/v1/tasks")[0]
    assert request.headers["authorization"] == "Bearer T1"


@pytest.mark.asyncio
async def test_logout_disconnects_and_clears(client, transports):
    await client.session.login("a@b.c", "pw")

    await client.session.logout()

    assert client.channel.state is ChannelState.DISCONNECTED
    assert transports.current.closed is True
    assert client.store.counts()[TASKS] == 0


@pytest.mark.asyncio
async def test_auth_expired_tears_everything_down(client, backend):
    await client.session.login("a@b.c", "pw")
    backend.route("GET", "/mobile-bff/notifications", fail(401, "jwt expired"))

    with pytest.raises(AuthExpired):
        await client.api.notifications.list_notifications()

    assert client.session.token is None
    assert client.channel.state is ChannelState.DISCONNECTED
    assert client.store.counts()[MEMBERS] == 0


@pytest.mark.asyncio
async def test_auth_expired_during_initial_load_leaves_cache_empty(client, backend):
    backend.route("GET", "/api/v1/quests", fail(401, "jwt expired"))

    await client.session.login("a@b.c", "pw")
    await settle()

    assert client.session.token is None
    assert client.channel.state is ChannelState.DISCONNECTED
    assert all(count == 0 for count in client.store.counts().values())
    assert client.store.household_id is None
    assert client.store.is_initial_load is True
    # The wishlist wave never goes out once the session is gone.
    assert backend.calls("GET", "/mobile-bff/wishlist/member/m1") == []
    assert backend.calls("GET", "/mobile-bff/wishlist/member/m2") == []


# ═══════════════════════════════════════════════════════════
# Push invalidation
# ═══════════════════════════════════════════════════════════


@pytest.mark.asyncio
async def test_update_for_unknown_entity_triggers_silent_refresh(client, backend, transports):
    await client.session.login("a@b.c", "pw")
    before = dashboard_loads(backend)

    transports.current.push(events.TASK_UPDATED_LEGACY, {"taskId": "never-seen"})
    await settle()
    await client.wait_idle()

    assert dashboard_loads(backend) == before + 1
    assert client.store.find(TASKS, "never-seen") is None


@pytest.mark.asyncio
async def test_each_event_refreshes_without_coalescing(client, backend, transports):
    await client.session.login("a@b.c", "pw")
    before = dashboard_loads(backend)

    for _ in range(3):
        transports.current.push(events.QUEST_UPDATED, {"questId": "q1"})
    await settle()
    await client.wait_idle()

    assert dashboard_loads(backend) == before + 3


@pytest.mark.asyncio
async def test_member_points_event_patches_before_refresh(client, transports):
    await client.session.login("a@b.c", "pw")
    seen = []
    client.store.subscribe(lambda s: seen.append(s.find(MEMBERS, "m2")["pointsTotal"]))

    transports.current.push(
        events.MEMBER_POINTS_UPDATED, {"memberId": "m2", "pointsTotal": 75, "householdId": "h1"}
    )
    await settle()
    await client.wait_idle()

    # Patched first, then the refresh brings back the seeded balance.
    assert seen[0] == 75
    assert seen[-1] == 40


@pytest.mark.asyncio
async def test_handlers_survive_token_change(client, backend, transports):
    await client.session.login("a@b.c", "pw")
    registered = len(client.registry)

    await client.channel.set_token("T2")
    before = dashboard_loads(backend)
    transports.current.push(events.STORE_ITEM_UPDATED, {})
    await settle()
    await client.wait_idle()

    assert len(client.registry) == registered
    assert transports.current.token == "T2"
    assert dashboard_loads(backend) == before + 1


# ═══════════════════════════════════════════════════════════
# Notifications
# ═══════════════════════════════════════════════════════════


@pytest.mark.asyncio
async def test_notifications_filtered_to_current_user(client, transports):
    await client.session.login("a@b.c", "pw")
    received = []
    client.on_notification(received.append)

    transports.current.push(events.NOTIFICATION, {"title": "Yours", "recipients": ["u1"]})
    transports.current.push(events.NOTIFICATION, {"title": "Not yours", "recipients": ["u9"]})
    transports.current.push(events.NOTIFICATION, {"title": "Everyone"})
    await settle()

    assert [n["title"] for n in received] == ["Yours", "Everyone"]
