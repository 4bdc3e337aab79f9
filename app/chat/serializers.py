"""
Serializers for chat API.

This module provides serializers for the chat system:
- Conversation serializers (list, detail, create)
- Invitation serializers (read, invite, respond)
- Message serializers (read, create)

Serializer Hierarchy:
    ConversationListSerializer: List view with summary annotations
    ConversationDetailSerializer: Full details including participants
    ConversationCreateSerializer: Group creation with invitees
    ConversationCreatedSerializer: 201 response {conversation, invitations}

    GroupInvitationSerializer: Invitation with conversation/inviter names
    InviteSerializer: Invite more users into a conversation
    InvitationRespondSerializer: Accept or decline

    MessageSerializer: Canonical message payload (same as new_message)
    MessageCreateSerializer: Send new message

Design Decisions:
    - Read and write serializers are separate for clarity
    - The message read shape is built by chat.realtime.events.message_payload
      so REST and realtime clients see identical objects
"""

from __future__ import annotations

from rest_framework import serializers

from authentication.serializers import UserSerializer
from chat.constants import CONVERSATION_CONFIG, MESSAGE_CONFIG
from chat.models import Conversation, GroupInvitation, InvitationStatus, Message
from chat.realtime.events import message_payload

# =============================================================================
# Message Serializers
# =============================================================================


class MessageSerializer(serializers.ModelSerializer):
    """
    Message serializer for history and the HTTP send response.

    Output matches the new_message event payload exactly.
    """

    conversationId = serializers.IntegerField(source="conversation_id", read_only=True)
    senderId = serializers.IntegerField(source="sender_id", read_only=True, allow_null=True)
    senderName = serializers.CharField(source="sender_name", read_only=True)
    timestamp = serializers.DateTimeField(source="created_at", read_only=True)
    clientId = serializers.CharField(
        source="client_id",
        read_only=True,
        required=False,
        help_text="Echo of the sender's idempotency key (omitted when unset)",
    )

    class Meta:
        model = Message
        fields = [
            "id",
            "conversationId",
            "senderId",
            "senderName",
            "content",
            "timestamp",
            "clientId",
        ]
        read_only_fields = fields

    def to_representation(self, instance):
        return message_payload(instance)


class MessageCreateSerializer(serializers.Serializer):
    """Serializer for sending a message over HTTP."""

    content = serializers.CharField(
        max_length=MESSAGE_CONFIG.MAX_CONTENT_LENGTH,
        trim_whitespace=False,
        help_text="Message text",
    )
    clientId = serializers.CharField(
        source="client_id",
        max_length=MESSAGE_CONFIG.MAX_CLIENT_ID_LENGTH,
        required=False,
        allow_blank=True,
        default="",
        help_text="Client-generated idempotency key",
    )

    def validate_content(self, value: str) -> str:
        if not value.strip():
            raise serializers.ValidationError("Message content cannot be empty.")
        return value


# =============================================================================
# Conversation Serializers
# =============================================================================


class ConversationDetailSerializer(serializers.ModelSerializer):
    """
    Detailed conversation serializer.

    participants lists every member as {id, name, email}.
    """

    created_by = serializers.IntegerField(
        source="created_by_id", read_only=True, allow_null=True
    )
    participants = serializers.SerializerMethodField()

    class Meta:
        model = Conversation
        fields = [
            "id",
            "name",
            "created_by",
            "participants",
            "created_at",
        ]
        read_only_fields = fields

    def get_participants(self, obj: Conversation) -> list[dict]:
        users = [participant.user for participant in obj.participants.all()]
        return UserSerializer(users, many=True).data


class ConversationListSerializer(ConversationDetailSerializer):
    """
    Conversation list item.

    Expects the annotations added by ConversationService.list_for_user().
    """

    last_message = serializers.CharField(read_only=True, allow_null=True)
    last_message_time = serializers.DateTimeField(read_only=True)
    message_count = serializers.IntegerField(read_only=True)
    unread_count = serializers.SerializerMethodField()

    class Meta(ConversationDetailSerializer.Meta):
        fields = ConversationDetailSerializer.Meta.fields + [
            "last_message",
            "last_message_time",
            "message_count",
            "unread_count",
        ]
        read_only_fields = fields

    def get_unread_count(self, obj: Conversation) -> int:
        """Read cursors are not tracked; always 0."""
        return 0


class ConversationCreateSerializer(serializers.Serializer):
    """Serializer for creating a group conversation."""

    name = serializers.CharField(
        max_length=CONVERSATION_CONFIG.MAX_NAME_LENGTH,
        required=False,
        allow_blank=True,
        default="",
        help_text=f'Group name (defaults to "{CONVERSATION_CONFIG.DEFAULT_NAME}")',
    )
    invitees = serializers.ListField(
        child=serializers.IntegerField(min_value=1),
        required=False,
        default=list,
        help_text="User IDs to invite",
    )


class InviteSerializer(serializers.Serializer):
    """Serializer for inviting users into an existing conversation."""

    invitees = serializers.ListField(
        child=serializers.IntegerField(min_value=1),
        allow_empty=False,
        help_text="User IDs to invite",
    )


# =============================================================================
# Invitation Serializers
# =============================================================================


class GroupInvitationSerializer(serializers.ModelSerializer):
    """Invitation as shown to its invitee (and returned to the inviter)."""

    conversation_id = serializers.IntegerField(read_only=True)
    conversation_name = serializers.CharField(
        source="conversation.name", read_only=True
    )
    inviter = UserSerializer(read_only=True)
    inviter_name = serializers.CharField(source="inviter.display_name", read_only=True)
    invitee_id = serializers.IntegerField(read_only=True)

    class Meta:
        model = GroupInvitation
        fields = [
            "id",
            "conversation_id",
            "conversation_name",
            "inviter",
            "inviter_name",
            "invitee_id",
            "status",
            "created_at",
            "expires_at",
        ]
        read_only_fields = fields


class ConversationCreatedSerializer(serializers.Serializer):
    """Response for POST conversations/ (schema and output)."""

    conversation = ConversationDetailSerializer()
    invitations = GroupInvitationSerializer(many=True)


class InvitationRespondSerializer(serializers.Serializer):
    """Serializer for answering an invitation."""

    accept = serializers.BooleanField(
        required=True,
        help_text="true to join the conversation, false to decline",
    )


class InvitationStatusSerializer(serializers.Serializer):
    """Response for POST invitations/{id}/respond/."""

    status = serializers.ChoiceField(choices=InvitationStatus.choices)
