"""
Push chat domain changes to connected clients.

Called from sync code after the database change is committed. Delivery is
best effort: a failing channel layer is logged and never fails the
request that triggered it.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from chat.realtime import events
from chat.realtime.events import RealtimeEvent
from chat.realtime.gateway import get_gateway

if TYPE_CHECKING:
    from authentication.models import User
    from chat.models import GroupInvitation, Message

logger = logging.getLogger(__name__)


def _deliver(send, target, event: RealtimeEvent) -> None:
    try:
        send(target, event)
    except Exception:
        logger.exception(f"Failed to publish {event.type} to {target}")


def publish_invitation_created(invitation: GroupInvitation) -> None:
    """group:invite to the invitee's personal room."""
    event = RealtimeEvent(events.GROUP_INVITE, events.invite_payload(invitation))
    logger.info(
        f"Publishing invitation {invitation.id} to user {invitation.invitee_id}"
    )
    _deliver(get_gateway().notify_user, invitation.invitee_id, event)


def publish_invitation_accepted(invitation: GroupInvitation, user: User) -> None:
    """
    group:memberAdded to the conversation room and an inviteAccepted
    notification to the inviter.
    """
    conversation = invitation.conversation
    gateway = get_gateway()

    _deliver(
        gateway.notify_room,
        conversation.room_id,
        RealtimeEvent(
            events.GROUP_MEMBER_ADDED,
            events.member_added_payload(conversation.id, user),
        ),
    )
    _deliver(
        gateway.notify_user,
        invitation.inviter_id,
        RealtimeEvent(
            events.NOTIFICATION,
            events.notification_payload(
                events.INVITE_ACCEPTED,
                conversation_id=conversation.id,
                user_id=user.id,
                user_name=user.display_name,
                message=f"{user.display_name} joined {conversation.name}",
            ),
        ),
    )


def publish_invitation_declined(invitation: GroupInvitation, user: User) -> None:
    """inviteDeclined notification to the inviter only."""
    _deliver(
        get_gateway().notify_user,
        invitation.inviter_id,
        RealtimeEvent(
            events.NOTIFICATION,
            events.notification_payload(
                events.INVITE_DECLINED,
                conversation_id=invitation.conversation_id,
                user_id=user.id,
                user_name=user.display_name,
                message=f"{user.display_name} declined your invitation",
            ),
        ),
    )


def publish_message_created(message: Message) -> None:
    """new_message to the conversation room (REST send path)."""
    _deliver(
        get_gateway().notify_room,
        str(message.conversation_id),
        RealtimeEvent(events.NEW_MESSAGE, events.message_payload(message)),
    )
