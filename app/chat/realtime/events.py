"""
Realtime event vocabulary and payload builders.

Every frame on the socket, in both directions, is
    {"type": <event name>, "data": <payload>}

Inside the channel layer an event travels as
    {"type": "realtime.event", "event": <name>, "data": <payload>,
     "exclude_channel": <channel name or None>}
which Channels dispatches to ChatConsumer.realtime_event().

Payload keys are camelCase (conversationId, senderName, ...) in both
directions. Payload builders take ORM objects and must run in a sync
context.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from authentication.models import User
    from chat.models import GroupInvitation, Message


# Client -> server
REGISTER = "register"
GET_ONLINE_USERS = "get_online_users"
JOIN_CONVERSATION = "join_conversation"
SEND_MESSAGE = "send_message"
TYPING = "typing"

CLIENT_EVENTS = frozenset(
    {REGISTER, GET_ONLINE_USERS, JOIN_CONVERSATION, SEND_MESSAGE, TYPING}
)

# Server -> client
ONLINE_USERS = "online_users"
NEW_MESSAGE = "new_message"
USER_TYPING = "user_typing"
USER_CONNECTED = "user_connected"
USER_DISCONNECTED = "user_disconnected"
GROUP_INVITE = "group:invite"
GROUP_MEMBER_ADDED = "group:memberAdded"
NOTIFICATION = "notification"
MESSAGE_FAILED = "message_failed"

SERVER_EVENTS = frozenset(
    {
        ONLINE_USERS,
        NEW_MESSAGE,
        USER_TYPING,
        USER_CONNECTED,
        USER_DISCONNECTED,
        GROUP_INVITE,
        GROUP_MEMBER_ADDED,
        NOTIFICATION,
        MESSAGE_FAILED,
    }
)

# notification.type values
INVITE_ACCEPTED = "inviteAccepted"
INVITE_DECLINED = "inviteDeclined"

# Channel-layer handler name (dots map to underscores on the consumer)
LAYER_MESSAGE_TYPE = "realtime.event"


@dataclass(frozen=True)
class RealtimeEvent:
    """One server -> client event."""

    type: str
    data: Any = field(default=None)

    def to_frame(self) -> dict[str, Any]:
        return {"type": self.type, "data": self.data}

    def to_message(self, exclude_channel: str | None = None) -> dict[str, Any]:
        """Channel-layer message carrying this event."""
        return {
            "type": LAYER_MESSAGE_TYPE,
            "event": self.type,
            "data": self.data,
            "exclude_channel": exclude_channel,
        }

    @classmethod
    def from_message(cls, message: dict[str, Any]) -> RealtimeEvent:
        return cls(type=message["event"], data=message.get("data"))


def coerce_conversation_id(value) -> int | None:
    """
    Canonicalize a conversation reference.

    Accepts 42, "42" or {"conversationId": 42}. Returns None for anything
    else (including booleans and non-positive ids).
    """
    if isinstance(value, dict):
        value = value.get("conversationId")
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value if value > 0 else None
    if isinstance(value, str) and value.strip().isdigit():
        number = int(value.strip())
        return number if number > 0 else None
    return None


# =============================================================================
# Payload builders (wire keys are camelCase)
# =============================================================================


def message_payload(message: Message) -> dict[str, Any]:
    """Canonical message shape shared by new_message and the REST send path."""
    payload = {
        "id": message.id,
        "conversationId": message.conversation_id,
        "senderId": message.sender_id,
        "senderName": message.sender_name,
        "content": message.content,
        "timestamp": message.created_at.isoformat(),
    }
    if message.client_id:
        payload["clientId"] = message.client_id
    return payload


def typing_payload(user: User, conversation_id: int) -> dict[str, Any]:
    return {
        "userId": user.id,
        "userName": user.display_name,
        "conversationId": conversation_id,
    }


def user_disconnected_payload(user_id: int) -> dict[str, Any]:
    return {"userId": user_id, "online": False}


def invite_payload(invitation: GroupInvitation) -> dict[str, Any]:
    return {
        "invitationId": invitation.id,
        "conversationId": invitation.conversation_id,
        "conversationName": invitation.conversation.name,
        "inviterName": invitation.inviter.display_name,
    }


def member_added_payload(conversation_id: int, user: User) -> dict[str, Any]:
    return {
        "conversationId": conversation_id,
        "userId": user.id,
        "userName": user.display_name,
    }


def notification_payload(
    kind: str,
    conversation_id: int | None = None,
    user_id: int | None = None,
    user_name: str | None = None,
    message: str | None = None,
) -> dict[str, Any]:
    """
    Build a notification payload.

    Optional fields are included only when given.
    """
    fields = {
        "conversationId": conversation_id,
        "userId": user_id,
        "userName": user_name,
        "message": message,
    }
    payload: dict[str, Any] = {"type": kind}
    payload.update({key: value for key, value in fields.items() if value is not None})
    return payload


def message_failed_payload(conversation_id, client_id: str, error: str) -> dict[str, Any]:
    return {
        "conversationId": conversation_id,
        "clientId": client_id or None,
        "error": error,
    }
