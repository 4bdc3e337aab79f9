"""
Room membership tracker.

Maps room ids to the connections (channel names) that joined them and
mirrors every join into a channel-layer group, so that a broadcast to a
room reaches joined connections in any process sharing the layer.

Room ids are plain strings: a conversation id ("42") or a personal room
("user:7"). Channel-layer group names only allow ASCII letters, digits,
hyphens, underscores and periods, so room ids are mapped through
group_name_for() before they reach the layer.
"""

from __future__ import annotations

import logging
import re
from collections import defaultdict
from typing import Any

from chat.constants import REALTIME_CONFIG
from core.exceptions import ValidationError

logger = logging.getLogger(__name__)

_VALID_GROUP_NAME = re.compile(r"^[a-zA-Z0-9._-]+$")


def group_name_for(room_id) -> str:
    """
    Channel-layer group name for a room id.

    Examples:
        "42"      -> "room.42"
        "user:7"  -> "room.user.7"

    Raises:
        ValidationError: Empty room id, disallowed characters, or too long
    """
    room = str(room_id).strip()
    name = REALTIME_CONFIG.GROUP_NAME_PREFIX + room.replace(":", ".")
    if (
        not room
        or not _VALID_GROUP_NAME.match(name)
        or len(name) > REALTIME_CONFIG.GROUP_NAME_MAX_LENGTH
    ):
        raise ValidationError(
            f"Invalid room id: {room_id!r}",
            error_code="INVALID_ROOM",
        )
    return name


class RoomMembershipTracker:
    """
    In-memory multimap room id -> set of channel names.

    Operations:
        join(channel, room): idempotent
        broadcast(room, message): deliver to every joined connection
        leave_all(channel): drop a connection from every room (on disconnect)
    """

    def __init__(self, channel_layer):
        self.channel_layer = channel_layer
        self._members: dict[str, set[str]] = defaultdict(set)
        self._rooms: dict[str, set[str]] = defaultdict(set)

    async def join(self, channel_name: str, room_id) -> bool:
        """
        Add a connection to a room.

        Returns:
            True if newly joined, False if it was already a member
        """
        room = str(room_id)
        group = group_name_for(room)
        if channel_name in self._members[room]:
            return False

        self._members[room].add(channel_name)
        self._rooms[channel_name].add(room)
        await self.channel_layer.group_add(group, channel_name)
        logger.debug(f"{channel_name} joined room {room}")
        return True

    async def leave_all(self, channel_name: str) -> set[str]:
        """
        Remove a connection from every room it joined.

        Returns:
            The rooms the connection was in
        """
        rooms = self._rooms.pop(channel_name, set())
        for room in rooms:
            members = self._members.get(room)
            if members is not None:
                members.discard(channel_name)
                if not members:
                    del self._members[room]
            await self.channel_layer.group_discard(group_name_for(room), channel_name)
        return rooms

    async def broadcast(self, room_id, message: dict[str, Any]) -> None:
        """Send a channel-layer message to everyone in the room."""
        await self.channel_layer.group_send(group_name_for(room_id), message)

    def members(self, room_id) -> set[str]:
        """Connections currently joined to a room (local process only)."""
        return set(self._members.get(str(room_id), ()))

    def rooms_for(self, channel_name: str) -> set[str]:
        return set(self._rooms.get(channel_name, ()))

    def is_member(self, channel_name: str, room_id) -> bool:
        return channel_name in self._members.get(str(room_id), ())
