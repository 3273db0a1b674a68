"""In-process registry of open WebSocket connections."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Callable, Protocol

logger = logging.getLogger(__name__)


class Connection(Protocol):
    """Anything we can push a JSON envelope to (e.g. a FastAPI WebSocket)."""

    async def send_json(self, data: Any) -> None: ...


@dataclass(eq=False)
class RegistryEntry:
    """One open connection and the user it has been bound to, if any."""

    connection: Connection
    user_id: int | None = None
    connected_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    # Outbound envelopes, drained by a per-connection writer task (see ChatService)
    outbox: asyncio.Queue | None = None
    writer: asyncio.Task | None = None

    @property
    def authenticated(self) -> bool:
        return self.user_id is not None


class ConnectionRegistry:
    """Map of live connections to registry entries.

    Owned by the application (``app.state.registry``); tests build their own.
    Keyed by object identity since Starlette WebSockets are not hashable.
    Not thread-safe: all access happens on the event loop.
    """

    def __init__(self) -> None:
        self._entries: dict[int, RegistryEntry] = {}

    def __len__(self) -> int:
        return len(self._entries)

    def register(self, connection: Connection) -> RegistryEntry:
        """Add an unauthenticated entry. Re-registering returns the existing one."""
        existing = self.get(connection)
        if existing is not None:
            return existing
        entry = RegistryEntry(connection=connection)
        self._entries[id(connection)] = entry
        return entry

    def get(self, connection: Connection) -> RegistryEntry | None:
        entry = self._entries.get(id(connection))
        if entry is None or entry.connection is not connection:
            return None
        return entry

    def authenticate(self, entry: RegistryEntry, user_id: int) -> None:
        """Bind an entry to a user id. Last write wins on re-authentication."""
        if entry.user_id is not None and entry.user_id != user_id:
            logger.info(
                "Connection re-authenticated: user %s -> %s", entry.user_id, user_id
            )
        entry.user_id = user_id

    def remove(self, connection: Connection) -> None:
        """Drop a connection's entry. Safe to call more than once."""
        if self.get(connection) is not None:
            del self._entries[id(connection)]

    def is_registered(self, entry: RegistryEntry) -> bool:
        """True while ``entry`` is still the live entry for its connection."""
        return self.get(entry.connection) is entry

    def entries(self) -> list[RegistryEntry]:
        """Snapshot of every entry, authenticated or not."""
        return list(self._entries.values())

    def authenticated(self) -> list[RegistryEntry]:
        """Snapshot of authenticated entries, safe to iterate across awaits."""
        return [e for e in self._entries.values() if e.authenticated]

    def for_each_authenticated(self, fn: Callable[[RegistryEntry], None]) -> None:
        for entry in self.authenticated():
            fn(entry)

    def find_by_user_id(self, user_id: int) -> list[RegistryEntry]:
        """All authenticated entries for a user (one per open tab/device)."""
        return [e for e in self._entries.values() if e.user_id == user_id]

    def stats(self) -> dict:
        authenticated = self.authenticated()
        return {
            "connections": len(self._entries),
            "authenticated": len(authenticated),
            "users": len({e.user_id for e in authenticated}),
        }
