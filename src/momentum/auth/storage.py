"""Where a session lives between process runs.

Learn: Only the interface is fixed here. MemorySessionStorage keeps the
session for the life of the process; an app that wants it on disk or in a
keychain supplies its own SessionStorage.
"""

from abc import ABC, abstractmethod
from typing import TYPE_CHECKING, Optional

if TYPE_CHECKING:
    from momentum.auth.session import Session


class SessionStorage(ABC):
    @abstractmethod
    async def load(self) -> Optional["Session"]:
        """Return the stored session, or None if there is none."""

    @abstractmethod
    async def save(self, session: "Session") -> None:
        ...

    @abstractmethod
    async def clear(self) -> None:
        ...


class MemorySessionStorage(SessionStorage):
    def __init__(self, session: Optional["Session"] = None):
        self._session = session

    async def load(self) -> Optional["Session"]:
        return self._session

    async def save(self, session: "Session") -> None:
        self._session = session

    async def clear(self) -> None:
        self._session = None
