"""
Permission classes for chat API.

- IsConversationMember: User belongs to the conversation

Design Decisions:
    - Membership is checked against the Participant table
    - Unknown conversations 404 (get_object) before this runs; known ones
      the user is not in 403
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from rest_framework import permissions

from chat.models import Conversation, GroupInvitation, Message

if TYPE_CHECKING:
    from rest_framework.request import Request
    from rest_framework.views import APIView


class IsConversationMember(permissions.BasePermission):
    """
    Allows access only to members of the conversation.

    Accepts Conversation, Message or GroupInvitation objects.
    """

    message = "Not a member of this conversation"

    def has_object_permission(
        self,
        request: Request,
        view: APIView,
        obj: Conversation | Message | GroupInvitation,
    ) -> bool:
        if not request.user.is_authenticated:
            return False

        conversation = obj if isinstance(obj, Conversation) else obj.conversation
        return conversation.has_member(request.user)
