"""
WebSocket consumer for the chat application.

One socket per client session carries presence, room membership, messages
and typing for every conversation the user has open.

Consumers:
    ChatConsumer: ws/chat/

Authentication:
    JWTAuthMiddleware attaches the user to self.scope["user"]. Anonymous
    connections are closed with 4001 before the handshake completes.

Frames:
    Every frame is {"type": <event>, "data": <payload>}.

Message Types (from client):
    - register: Update own presence display info
    - get_online_users: Request the presence list
    - join_conversation: Join a conversation room (members only)
    - send_message: Persist and fan out a message
    - typing: Typing indicator to the rest of the room

Message Types (to client):
    - online_users, new_message, user_typing, user_connected,
      user_disconnected, group:invite, group:memberAdded, notification,
      message_failed

Error handling:
    Malformed or unauthorized events are logged and dropped. Persistence
    failures and timeouts of send_message are reported to the sender as
    message_failed. A timed-out write that later commits is still broadcast
    as new_message.
"""

from __future__ import annotations

import asyncio
import json
import logging

from channels.db import database_sync_to_async
from channels.generic.websocket import AsyncJsonWebsocketConsumer
from django.db import DatabaseError

from chat.constants import MESSAGE_CONFIG, REALTIME_CONFIG
from chat.middleware import SUBPROTOCOL
from chat.models import Conversation
from chat.realtime import events
from chat.realtime.events import RealtimeEvent, coerce_conversation_id
from chat.realtime.gateway import get_gateway
from chat.services import MessageService
from core.exceptions import ValidationError
from core.services import ServiceResult

logger = logging.getLogger(__name__)


class ChatConsumer(AsyncJsonWebsocketConsumer):
    """
    WebSocket consumer for real-time chat functionality.

    Handles:
        - Connection authentication and presence
        - Joining conversation rooms
        - Sending messages and typing indicators
        - Delivering server events from the channel layer

    Attributes:
        user: Authenticated user (after connect)
        gateway: Process-wide RealtimeGateway
    """

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.user = None
        self.gateway = None
        # Late message writes still running after a timeout
        self._background: set[asyncio.Future] = set()

    async def connect(self):
        """
        Handle WebSocket connection.

        Rejects anonymous users with 4001. On success accepts (echoing the
        jwt subprotocol when offered), then registers presence.
        """
        user = self.scope.get("user")

        if user is None or not user.is_authenticated:
            logger.warning("Rejected unauthenticated realtime connection")
            await self.close(code=REALTIME_CONFIG.CLOSE_CODE_UNAUTHENTICATED)
            return

        self.user = user
        self.gateway = get_gateway()

        subprotocol = (
            SUBPROTOCOL if SUBPROTOCOL in self.scope.get("subprotocols", []) else None
        )
        await self.accept(subprotocol=subprotocol)
        await self.gateway.connect(self.channel_name, user)

    async def disconnect(self, close_code):
        for task in list(self._background):
            task.cancel()
        if self.user is None:
            return
        await self.gateway.disconnect(self.channel_name)

    async def receive(self, text_data=None, bytes_data=None, **kwargs):
        if text_data is None:
            logger.warning("Dropping binary frame")
            return
        await super().receive(text_data=text_data, bytes_data=bytes_data, **kwargs)

    @classmethod
    async def decode_json(cls, text_data):
        try:
            return json.loads(text_data)
        except ValueError:
            logger.warning("Dropping frame that is not valid JSON")
            return None

    async def receive_json(self, content, **kwargs):
        """
        Dispatch one client frame.

        Expected frame format:
            {"type": "join_conversation", "data": 42}
            {"type": "send_message", "data": {"conversationId": 42,
                                              "content": "Hi", "clientId": "c1"}}
            {"type": "typing", "data": 42}
        """
        if not isinstance(content, dict):
            if content is not None:
                logger.warning(f"Dropping non-object frame from user {self.user.id}")
            return

        event_type = content.get("type")
        data = content.get("data")

        handlers = {
            events.REGISTER: self.handle_register,
            events.GET_ONLINE_USERS: self.handle_get_online_users,
            events.JOIN_CONVERSATION: self.handle_join_conversation,
            events.SEND_MESSAGE: self.handle_send_message,
            events.TYPING: self.handle_typing,
        }
        handler = handlers.get(event_type)
        if handler is None:
            logger.warning(f"Unknown event type {event_type!r} from user {self.user.id}")
            return

        await handler(data)

    # =========================================================================
    # Client event handlers
    # =========================================================================

    async def handle_register(self, data):
        self.gateway.register(self.channel_name, data)

    async def handle_get_online_users(self, data):
        await self.send_event(
            RealtimeEvent(events.ONLINE_USERS, self.gateway.online_users())
        )

    async def handle_join_conversation(self, data):
        """Join a conversation room. Non-members are refused."""
        conversation_id = coerce_conversation_id(data)
        if conversation_id is None:
            logger.warning(f"Invalid join_conversation payload from user {self.user.id}")
            return

        if not await self._is_member(conversation_id):
            logger.warning(
                f"User {self.user.id} refused join for conversation {conversation_id}"
            )
            return

        try:
            await self.gateway.join(self.channel_name, str(conversation_id))
        except ValidationError:
            logger.warning(f"Invalid room {conversation_id!r} from user {self.user.id}")
            return

        logger.info(f"User {self.user.id} joined conversation {conversation_id}")

    async def handle_send_message(self, data):
        """
        Persist a message and broadcast new_message to the room.

        Invalid payloads and non-members are dropped. Storage failures and
        timeouts are reported to this connection as message_failed. A write
        that outlives the timeout keeps running; if it commits, new_message
        still goes out so the sender can reconcile by clientId.
        """
        if not isinstance(data, dict):
            logger.warning(f"Invalid send_message payload from user {self.user.id}")
            return

        conversation_id = coerce_conversation_id(data.get("conversationId"))
        content = data.get("content")
        client_id = data.get("clientId") or ""
        if not isinstance(client_id, str):
            client_id = str(client_id)
        client_id = client_id[: MESSAGE_CONFIG.MAX_CLIENT_ID_LENGTH]

        if conversation_id is None or not isinstance(content, str) or not content.strip():
            logger.warning(f"Invalid send_message data from user {self.user.id}")
            return

        persist = asyncio.ensure_future(
            self._persist_message(conversation_id, content, client_id)
        )
        try:
            result = await asyncio.wait_for(
                asyncio.shield(persist),
                timeout=REALTIME_CONFIG.persist_timeout(),
            )
        except asyncio.TimeoutError:
            logger.error(
                f"Timed out persisting message from user {self.user.id} "
                f"to conversation {conversation_id}"
            )
            await self._send_failed(conversation_id, client_id, "timeout")
            self._track(self._finish_late_persist(persist, conversation_id))
            return
        except DatabaseError:
            logger.exception(
                f"Failed to persist message from user {self.user.id} "
                f"to conversation {conversation_id}"
            )
            await self._send_failed(conversation_id, client_id, "persistence_error")
            return

        await self._broadcast_persisted(result, conversation_id)

    async def _finish_late_persist(self, persist, conversation_id):
        """Broadcast a message whose write finished after message_failed."""
        try:
            result = await persist
        except DatabaseError:
            logger.exception(
                f"Late persist failed for user {self.user.id} "
                f"in conversation {conversation_id}"
            )
            return
        logger.info(
            f"Late persist committed for user {self.user.id} "
            f"in conversation {conversation_id}"
        )
        await self._broadcast_persisted(result, conversation_id)

    async def _broadcast_persisted(self, result, conversation_id):
        if not result.success:
            logger.warning(
                f"send_message from user {self.user.id} rejected: {result.error_code}"
            )
            return

        await self.gateway.broadcast(
            str(conversation_id),
            RealtimeEvent(events.NEW_MESSAGE, result.data),
        )

    def _track(self, coroutine):
        task = asyncio.ensure_future(coroutine)
        self._background.add(task)
        task.add_done_callback(self._background.discard)
        return task

    async def handle_typing(self, data):
        """Relay typing to the rest of a room this connection has joined."""
        conversation_id = coerce_conversation_id(data)
        if conversation_id is None:
            logger.warning(f"Invalid typing payload from user {self.user.id}")
            return

        room_id = str(conversation_id)
        if not self.gateway.has_joined(self.channel_name, room_id):
            logger.warning(
                f"User {self.user.id} typing in unjoined conversation {conversation_id}"
            )
            return

        await self.gateway.broadcast(
            room_id,
            RealtimeEvent(
                events.USER_TYPING, events.typing_payload(self.user, conversation_id)
            ),
            exclude_channel=self.channel_name,
        )

    # =========================================================================
    # Channel layer handlers
    # =========================================================================

    async def realtime_event(self, message):
        """
        Handle realtime.event messages from the channel layer.

        Skips the frame when this connection is the excluded sender.
        """
        if message.get("exclude_channel") == self.channel_name:
            return
        await self.send_event(RealtimeEvent.from_message(message))

    async def send_event(self, event: RealtimeEvent):
        await self.send_json(event.to_frame())

    async def _send_failed(self, conversation_id, client_id, error):
        await self.send_event(
            RealtimeEvent(
                events.MESSAGE_FAILED,
                events.message_failed_payload(conversation_id, client_id, error),
            )
        )

    # =========================================================================
    # Database access
    # =========================================================================

    @database_sync_to_async
    def _is_member(self, conversation_id: int) -> bool:
        return Conversation.objects.filter(
            pk=conversation_id, participants__user=self.user
        ).exists()

    @database_sync_to_async
    def _persist_message(self, conversation_id: int, content: str, client_id: str):
        """
        Send via MessageService; on success the data is the new_message payload.
        """
        result = MessageService.send_message(
            conversation_id=conversation_id,
            sender=self.user,
            content=content,
            client_id=client_id,
        )
        if result.success:
            return ServiceResult.success(events.message_payload(result.data))
        return result
