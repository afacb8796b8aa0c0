"""Client session: sign-in, restore, expiry."""

from momentum.auth.session import Session, SessionListener, SessionManager
from momentum.auth.storage import MemorySessionStorage, SessionStorage

__all__ = [
    "MemorySessionStorage",
    "Session",
    "SessionListener",
    "SessionManager",
    "SessionStorage",
]
