"""
Client-side session controller for the realtime channel.

ClientSession owns one realtime connection for a logged-in user and keeps
the client's view consistent across reconnects:

    - Remembers every joined conversation and replays the joins whenever
      the transport (re)opens
    - Delivers server events to typed subscribers (several per event type)
    - Sends messages optimistically with a generated clientId and merges
      the server's new_message echo (or a later history load) by that key,
      including entries already flagged failed
    - Throttles typing indicators to one per second per conversation

State machine:
    DISCONNECTED --connect()--> CONNECTING --transport_opened()-->
    CONNECTED_NOT_JOINED --join()--> CONNECTED_JOINED

    transport_closed() while a session is wanted goes back to CONNECTING and
    reopens the transport; disconnect() always ends in DISCONNECTED.

The transport is any object implementing core.protocols.RealtimeTransport.

Usage:
    session = ClientSession(transport, user_id=me.id)
    session.subscribe(events.NEW_MESSAGE, render_message)
    session.connect(token)
    # transport calls session.transport_opened() / receive(frame) / transport_closed()
    session.join(42)
    session.send_message(42, "Hello")
"""

from __future__ import annotations

import logging
import time
import uuid
from collections import defaultdict
from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING

from chat.constants import REALTIME_CONFIG
from chat.realtime import events
from chat.realtime.events import coerce_conversation_id
from core.exceptions import ConflictError, ValidationError

if TYPE_CHECKING:
    from collections.abc import Callable
    from typing import Any

    from core.protocols import RealtimeTransport

logger = logging.getLogger(__name__)


class SessionState(str, Enum):
    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    CONNECTED_NOT_JOINED = "connected_not_joined"
    CONNECTED_JOINED = "connected_joined"


@dataclass
class TimelineEntry:
    """
    One message in a conversation timeline.

    Optimistic entries have id None and pending True until the server
    echo (matched by client_id) replaces their payload.
    """

    conversation_id: int
    content: str
    id: int | None = None
    sender_id: int | None = None
    sender_name: str = ""
    timestamp: str | None = None
    client_id: str | None = None
    pending: bool = False
    failed: bool = False

    @classmethod
    def from_payload(cls, payload: dict[str, Any]) -> TimelineEntry:
        return cls(
            conversation_id=int(payload["conversationId"]),
            content=payload.get("content", ""),
            id=payload.get("id"),
            sender_id=payload.get("senderId"),
            sender_name=payload.get("senderName", ""),
            timestamp=payload.get("timestamp"),
            client_id=payload.get("clientId"),
        )

    def confirm(self, payload: dict[str, Any]) -> None:
        confirmed = TimelineEntry.from_payload(payload)
        self.id = confirmed.id
        self.sender_id = confirmed.sender_id
        self.sender_name = confirmed.sender_name
        self.timestamp = confirmed.timestamp
        self.content = confirmed.content
        self.pending = False
        self.failed = False


class ClientSession:
    """
    Transport-agnostic realtime session.

    Attributes:
        transport: RealtimeTransport the session drives
        user_id: Id of the logged-in user (stamped on optimistic entries)
        state: Current SessionState
    """

    def __init__(
        self,
        transport: RealtimeTransport,
        user_id: int | None = None,
        clock: Callable[[], float] = time.monotonic,
        client_id_factory: Callable[[], str] | None = None,
    ):
        self.transport = transport
        self.user_id = user_id
        self.state = SessionState.DISCONNECTED
        self._clock = clock
        self._new_client_id = client_id_factory or (lambda: uuid.uuid4().hex)
        self._token: str | None = None
        # Insertion-ordered set of joined room ids
        self._rooms: dict[str, None] = {}
        self._subscribers: dict[str, list[Callable[[Any], None]]] = defaultdict(list)
        self._timelines: dict[int, list[TimelineEntry]] = defaultdict(list)
        self._pending: dict[str, TimelineEntry] = {}
        self._failed: dict[str, TimelineEntry] = {}
        self._last_typing: dict[str, float] = {}

    # =========================================================================
    # Connection lifecycle
    # =========================================================================

    @property
    def connected(self) -> bool:
        return self.state in (
            SessionState.CONNECTED_NOT_JOINED,
            SessionState.CONNECTED_JOINED,
        )

    @property
    def rooms(self) -> list[str]:
        return list(self._rooms)

    def connect(self, token: str) -> None:
        """Open the connection. No-op unless DISCONNECTED."""
        if self.state != SessionState.DISCONNECTED:
            return
        self._token = token
        self.state = SessionState.CONNECTING
        self.transport.open(token)

    def disconnect(self) -> None:
        """Close for good (logout). Forgets rooms and pending sends."""
        self._token = None
        self._rooms.clear()
        self._pending.clear()
        self._failed.clear()
        self._last_typing.clear()
        self.state = SessionState.DISCONNECTED
        self.transport.close()

    def transport_opened(self) -> None:
        """Handshake succeeded: replay every remembered join."""
        self.state = SessionState.CONNECTED_NOT_JOINED
        for room_id in self._rooms:
            self._send(events.JOIN_CONVERSATION, int(room_id))
        if self._rooms:
            self.state = SessionState.CONNECTED_JOINED
        logger.info(f"Realtime session open, rejoined {len(self._rooms)} room(s)")

    def transport_closed(self) -> None:
        """Connection lost: reconnect with the same token unless logged out."""
        if self._token is None:
            self.state = SessionState.DISCONNECTED
            return
        logger.info("Realtime session lost, reconnecting")
        self.state = SessionState.CONNECTING
        self.transport.open(self._token)

    # =========================================================================
    # Outbound
    # =========================================================================

    def join(self, conversation_id) -> None:
        """
        Join a conversation room, now if connected, else on next open.

        Raises:
            ValidationError: conversation_id is not a positive integer
        """
        number = self._require_conversation_id(conversation_id)
        self._rooms[str(number)] = None
        if self.connected:
            self._send(events.JOIN_CONVERSATION, number)
            self.state = SessionState.CONNECTED_JOINED

    def request_online_users(self) -> None:
        if self.connected:
            self._send(events.GET_ONLINE_USERS, None)

    def register(self, name: str | None = None, email: str | None = None) -> None:
        """Update own presence display info."""
        if self.connected and self.user_id is not None:
            self._send(
                events.REGISTER, {"id": self.user_id, "name": name, "email": email}
            )

    def send_message(self, conversation_id, content: str) -> TimelineEntry:
        """
        Send a message optimistically.

        The returned entry is already in the timeline with pending=True; it
        is confirmed in place by the server echo, or flagged failed by
        message_failed.

        Raises:
            ValidationError: Bad conversation id or empty content
            ConflictError: Not connected
        """
        number = self._require_conversation_id(conversation_id)
        if not isinstance(content, str) or not content.strip():
            raise ValidationError("Message content cannot be empty")
        if not self.connected:
            raise ConflictError("Realtime session not connected", error_code="NOT_CONNECTED")

        entry = TimelineEntry(
            conversation_id=number,
            content=content,
            sender_id=self.user_id,
            client_id=self._new_client_id(),
            pending=True,
        )
        self._timelines[number].append(entry)
        self._pending[entry.client_id] = entry

        self._send(
            events.SEND_MESSAGE,
            {"conversationId": number, "content": content, "clientId": entry.client_id},
        )
        return entry

    def typing(self, conversation_id) -> bool:
        """
        Send a typing indicator, at most once per second per conversation.

        Returns:
            True if a frame was sent
        """
        number = self._require_conversation_id(conversation_id)
        if not self.connected:
            return False

        room_id = str(number)
        now = self._clock()
        last = self._last_typing.get(room_id)
        if last is not None and now - last < REALTIME_CONFIG.TYPING_THROTTLE_SECONDS:
            return False

        self._last_typing[room_id] = now
        self._send(events.TYPING, number)
        return True

    # =========================================================================
    # Inbound
    # =========================================================================

    def subscribe(self, event_type: str, handler: Callable[[Any], None]) -> Callable[[], None]:
        """
        Register a handler for one server event type.

        Returns:
            A callable that removes this subscription
        """
        if event_type not in events.SERVER_EVENTS:
            raise ValueError(f"Unknown server event: {event_type}")

        handlers = self._subscribers[event_type]
        handlers.append(handler)

        def unsubscribe() -> None:
            if handler in handlers:
                handlers.remove(handler)

        return unsubscribe

    def receive(self, frame) -> None:
        """Handle one server frame from the transport."""
        if not isinstance(frame, dict) or frame.get("type") not in events.SERVER_EVENTS:
            logger.warning(f"Ignoring unexpected frame: {frame!r}")
            return

        event_type = frame["type"]
        data = frame.get("data")

        if event_type == events.NEW_MESSAGE:
            if not self._merge_message(data):
                return
        elif event_type == events.MESSAGE_FAILED:
            self._fail_message(data)

        for handler in list(self._subscribers.get(event_type, ())):
            try:
                handler(data)
            except Exception:
                logger.exception(f"Subscriber for {event_type} failed")

    # =========================================================================
    # Timelines
    # =========================================================================

    def timeline(self, conversation_id) -> list[TimelineEntry]:
        return list(self._timelines.get(int(conversation_id), ()))

    def load_history(self, conversation_id, payloads: list[dict[str, Any]]) -> None:
        """
        Merge REST history into the timeline.

        Already known ids are skipped. A history message carrying the
        clientId of a pending or failed entry confirms that entry in place.
        Remaining optimistic entries stay after the history.
        """
        number = int(conversation_id)
        timeline = self._timelines[number]
        known = {entry.id for entry in timeline if entry.id is not None}
        history = []
        for payload in payloads:
            if payload.get("id") in known:
                continue
            entry = self._claim_unconfirmed(payload.get("clientId"))
            if entry is None:
                entry = TimelineEntry.from_payload(payload)
            else:
                entry.confirm(payload)
            history.append(entry)

        placed = {id(entry) for entry in history}
        rest = [entry for entry in timeline if id(entry) not in placed]
        confirmed = [entry for entry in rest if not entry.pending and not entry.failed]
        unconfirmed = [entry for entry in rest if entry.pending or entry.failed]
        timeline[:] = history + confirmed + unconfirmed

    def _merge_message(self, payload) -> bool:
        """
        Apply a new_message. Returns False for duplicates.
        """
        if not isinstance(payload, dict) or "conversationId" not in payload:
            logger.warning(f"Malformed new_message payload: {payload!r}")
            return False

        entry = self._claim_unconfirmed(payload.get("clientId"))
        if entry is not None:
            entry.confirm(payload)
            return True

        timeline = self._timelines[int(payload["conversationId"])]
        message_id = payload.get("id")
        if any(entry.id == message_id for entry in timeline if entry.id is not None):
            return False

        timeline.append(TimelineEntry.from_payload(payload))
        return True

    def _fail_message(self, payload) -> None:
        client_id = payload.get("clientId") if isinstance(payload, dict) else None
        entry = self._pending.pop(client_id, None) if client_id else None
        if entry is None:
            return
        entry.pending = False
        entry.failed = True
        # A timed-out write may still commit and be echoed later
        self._failed[client_id] = entry

    def _claim_unconfirmed(self, client_id) -> TimelineEntry | None:
        """Pop the pending or failed entry sent with this clientId."""
        if not client_id:
            return None
        entry = self._pending.pop(client_id, None)
        if entry is None:
            entry = self._failed.pop(client_id, None)
        return entry

    # =========================================================================
    # Helpers
    # =========================================================================

    def _send(self, event_type: str, data) -> None:
        self.transport.send({"type": event_type, "data": data})

    @staticmethod
    def _require_conversation_id(conversation_id) -> int:
        number = coerce_conversation_id(conversation_id)
        if number is None:
            raise ValidationError(
                f"Invalid conversation id: {conversation_id!r}",
                error_code="INVALID_CONVERSATION_ID",
            )
        return number
