"""
Presence registry: which users currently hold a live realtime connection.

Process-local and owned by the RealtimeGateway; nothing else mutates it.
Entries are reference-counted per user so a user with two tabs open stays
online until the last tab closes.

Usage:
    registry = PresenceRegistry()
    first = registry.attach(7, name="Alice", email="alice@example.com")  # True
    registry.attach(7, name="Alice", email="alice@example.com")          # False
    registry.detach(7)                                                   # False
    registry.detach(7)                                                   # True, entry gone
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

logger = logging.getLogger(__name__)


@dataclass
class PresenceEntry:
    """Cached display info for one connected user."""

    user_id: int
    name: str = ""
    email: str = ""
    connections: int = 0

    @property
    def online(self) -> bool:
        return self.connections > 0

    def to_dict(self) -> dict:
        """Wire shape used by online_users and user_connected."""
        return {
            "userId": self.user_id,
            "name": self.name,
            "email": self.email,
            "online": self.online,
        }


class PresenceRegistry:
    """
    In-memory map of user id -> PresenceEntry.

    Only users with at least one live connection are listed.
    """

    def __init__(self):
        self._entries: dict[int, PresenceEntry] = {}

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, user_id) -> bool:
        return user_id in self._entries

    def attach(self, user_id: int, name: str = "", email: str = "") -> bool:
        """
        Count one more live connection for a user.

        Returns:
            True if this is the user's first live connection
        """
        entry = self._entries.get(user_id)
        if entry is None:
            entry = PresenceEntry(user_id=user_id, name=name, email=email)
            self._entries[user_id] = entry
        else:
            # Keep registered names over the account defaults
            entry.name = entry.name or name
            entry.email = entry.email or email
        entry.connections += 1
        return entry.connections == 1

    def detach(self, user_id: int) -> bool:
        """
        Count one fewer live connection; drop the entry at zero.

        Returns:
            True if the user's last connection just closed
        """
        entry = self._entries.get(user_id)
        if entry is None:
            logger.warning(f"Presence detach for untracked user {user_id}")
            return False

        entry.connections -= 1
        if entry.connections > 0:
            return False

        del self._entries[user_id]
        return True

    def upsert(self, user_id: int, name: str | None = None, email: str | None = None) -> PresenceEntry | None:
        """
        Update display fields of a connected user.

        Does not change connectivity: unknown users are ignored.
        """
        entry = self._entries.get(user_id)
        if entry is None:
            return None
        if name is not None:
            entry.name = name
        if email is not None:
            entry.email = email
        return entry

    def remove(self, user_id: int) -> None:
        """Forget a user regardless of its connection count."""
        self._entries.pop(user_id, None)

    def get(self, user_id: int) -> PresenceEntry | None:
        return self._entries.get(user_id)

    def is_online(self, user_id: int) -> bool:
        entry = self._entries.get(user_id)
        return entry is not None and entry.online

    def list(self) -> list[PresenceEntry]:
        """Snapshot of all connected users."""
        return [entry for entry in self._entries.values() if entry.online]

    def clear(self) -> None:
        self._entries.clear()
