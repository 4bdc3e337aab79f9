"""
Realtime gateway: presence and room fan-out for chat connections.

The gateway owns the process-wide PresenceRegistry and
RoomMembershipTracker and is the only thing that mutates them. Consumers
call into it from the event loop; sync code (REST views, Celery tasks)
only ever uses notify_user()/notify_room(), which go straight to the
channel layer and leave the in-memory state alone.

Scaling:
    Room delivery rides on channel-layer groups and therefore reaches
    every process sharing the Redis layer. The presence registry is
    per process: online_users lists users connected to this process.

Usage (async, from a consumer):
    gateway = get_gateway()
    await gateway.connect(self.channel_name, user)
    await gateway.join(self.channel_name, "42")
    await gateway.broadcast("42", RealtimeEvent(NEW_MESSAGE, payload))

Usage (sync, from a view):
    get_gateway().notify_user(invitee.id, RealtimeEvent(GROUP_INVITE, payload))
"""

from __future__ import annotations

import functools
import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from asgiref.sync import async_to_sync
from channels.layers import get_channel_layer

from chat.constants import REALTIME_CONFIG
from chat.realtime import events
from chat.realtime.events import RealtimeEvent
from chat.realtime.presence import PresenceRegistry
from chat.realtime.rooms import RoomMembershipTracker, group_name_for

if TYPE_CHECKING:
    from authentication.models import User

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class BoundConnection:
    """A live connection and the identity it authenticated as."""

    channel_name: str
    user_id: int


class RealtimeGateway:
    """
    Presence + room bookkeeping over a Channels channel layer.

    Attributes:
        channel_layer: Channel layer used for all delivery
        presence: Connected users and their display info
        rooms: Which connections joined which rooms
    """

    def __init__(self, channel_layer=None):
        self.channel_layer = channel_layer or get_channel_layer()
        self.presence = PresenceRegistry()
        self.rooms = RoomMembershipTracker(self.channel_layer)
        self._connections: dict[str, BoundConnection] = {}

    # =========================================================================
    # Connection lifecycle
    # =========================================================================

    async def connect(self, channel_name: str, user: User) -> BoundConnection:
        """
        Bind an authenticated connection to its user.

        Joins the personal room and the presence group; broadcasts
        user_connected to everyone when this is the user's first connection.
        """
        connection = BoundConnection(channel_name=channel_name, user_id=user.id)
        self._connections[channel_name] = connection

        await self.rooms.join(channel_name, REALTIME_CONFIG.personal_room(user.id))
        await self.channel_layer.group_add(REALTIME_CONFIG.EVERYONE_GROUP, channel_name)

        first = self.presence.attach(user.id, name=user.display_name, email=user.email)
        if first:
            entry = self.presence.get(user.id)
            await self.broadcast_all(RealtimeEvent(events.USER_CONNECTED, entry.to_dict()))

        logger.info(f"User {user.id} connected ({channel_name})")
        return connection

    async def disconnect(self, channel_name: str) -> None:
        """
        Tear down a connection.

        Leaves every room; broadcasts user_disconnected when the user's last
        connection closes. Unknown channels are ignored.
        """
        connection = self._connections.pop(channel_name, None)
        if connection is None:
            return

        await self.rooms.leave_all(channel_name)
        await self.channel_layer.group_discard(REALTIME_CONFIG.EVERYONE_GROUP, channel_name)

        last = self.presence.detach(connection.user_id)
        if last:
            await self.broadcast_all(
                RealtimeEvent(
                    events.USER_DISCONNECTED,
                    events.user_disconnected_payload(connection.user_id),
                )
            )

        logger.info(f"User {connection.user_id} disconnected ({channel_name})")

    def bound_user_id(self, channel_name: str) -> int | None:
        connection = self._connections.get(channel_name)
        return connection.user_id if connection else None

    # =========================================================================
    # Client events
    # =========================================================================

    def register(self, channel_name: str, data: Any) -> bool:
        """
        Update display info for the connection's own user.

        Registrations naming another user id are ignored.

        Returns:
            True if presence was updated
        """
        user_id = self.bound_user_id(channel_name)
        if user_id is None or not isinstance(data, dict):
            return False

        if str(data.get("id")) != str(user_id):
            logger.warning(
                f"Ignoring register for id {data.get('id')!r} from user {user_id}"
            )
            return False

        self.presence.upsert(user_id, name=data.get("name"), email=data.get("email"))
        return True

    def online_users(self) -> list[dict[str, Any]]:
        """Payload for online_users."""
        return [entry.to_dict() for entry in self.presence.list()]

    async def join(self, channel_name: str, room_id) -> bool:
        """Join a room. Idempotent; returns True if newly joined."""
        return await self.rooms.join(channel_name, room_id)

    def has_joined(self, channel_name: str, room_id) -> bool:
        return self.rooms.is_member(channel_name, room_id)

    # =========================================================================
    # Fan-out
    # =========================================================================

    async def broadcast(
        self,
        room_id,
        event: RealtimeEvent,
        exclude_channel: str | None = None,
    ) -> None:
        """Deliver to every connection in a room, optionally skipping one."""
        await self.rooms.broadcast(room_id, event.to_message(exclude_channel=exclude_channel))

    async def broadcast_all(self, event: RealtimeEvent) -> None:
        """Deliver to every connection (presence changes)."""
        await self.channel_layer.group_send(REALTIME_CONFIG.EVERYONE_GROUP, event.to_message())

    async def send_to_user(self, user_id: int, event: RealtimeEvent) -> None:
        """Deliver to every connection of one user via the personal room."""
        await self.broadcast(REALTIME_CONFIG.personal_room(user_id), event)

    # =========================================================================
    # Sync entry points (REST views, Celery tasks)
    # =========================================================================

    def notify_room(self, room_id, event: RealtimeEvent) -> None:
        """Sync broadcast to a room; no-op without a channel layer."""
        if self.channel_layer is None:
            logger.debug(f"No channel layer; dropping {event.type} for room {room_id}")
            return
        async_to_sync(self.channel_layer.group_send)(
            group_name_for(room_id), event.to_message()
        )

    def notify_user(self, user_id: int, event: RealtimeEvent) -> None:
        """Sync delivery to one user's personal room."""
        self.notify_room(REALTIME_CONFIG.personal_room(user_id), event)


@functools.lru_cache(maxsize=1)
def get_gateway() -> RealtimeGateway:
    """Process-wide gateway (tests reset it with get_gateway.cache_clear())."""
    return RealtimeGateway()
