"""Remote API surface — one thin class per backend area.

Learn: These classes only know paths, methods and body shapes. Retries,
headers, timeouts and error classification all live in the gateway.
Auth, tasks and quests are served by the core API; everything else by the
mobile BFF.
"""

from momentum.api.auth import AuthApi
from momentum.api.household import HouseholdApi
from momentum.api.kitchen import KitchenApi
from momentum.api.notifications import NotificationsApi
from momentum.api.routines import RoutinesApi
from momentum.api.store import StoreApi
from momentum.api.tasks import TasksApi
from momentum.api.wishlist import WishlistApi
from momentum.gateway.client import RequestGateway


class MomentumApi:
    """All endpoint groups, bound to their backend's gateway."""

    def __init__(self, core: RequestGateway, bff: RequestGateway):
        self.core = core
        self.bff = bff
        self.auth = AuthApi(core)
        self.tasks = TasksApi(core)
        self.household = HouseholdApi(bff)
        self.store = StoreApi(bff)
        self.kitchen = KitchenApi(bff)
        self.routines = RoutinesApi(bff)
        self.wishlist = WishlistApi(bff)
        self.notifications = NotificationsApi(bff)

    @property
    def gateways(self) -> tuple[RequestGateway, RequestGateway]:
        return (self.core, self.bff)


__all__ = [
    "AuthApi",
    "HouseholdApi",
    "KitchenApi",
    "MomentumApi",
    "NotificationsApi",
    "RoutinesApi",
    "StoreApi",
    "TasksApi",
    "WishlistApi",
]
