"""
Chat system models.

This module defines the data models for invitation-based group chat:

Models:
    Conversation: Container for messages between members
    Participant: Membership of a user in a conversation
    GroupInvitation: Pending/answered invitation to join a conversation
    Message: Individual message within a conversation

Design Decisions:
    - Conversations start with the creator as sole member; everyone else
      joins by accepting an invitation
    - Membership only grows; it disappears with the conversation
    - accepted/declined/expired are terminal invitation states
    - Messages are immutable and cascade-deleted with their conversation
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from django.conf import settings
from django.db import models
from django.db.models import Q
from django.utils import timezone

from chat.constants import CONVERSATION_CONFIG, MESSAGE_CONFIG
from core.models import BaseModel

if TYPE_CHECKING:
    from authentication.models import User


class Conversation(BaseModel):
    """
    A group conversation.

    Fields:
        name: Display name shown in lists and invitations
        created_by: User who created the conversation
        last_message_at: Timestamp of most recent message (for sorting)

    Relationships:
        participants: Participant records (members)
        invitations: GroupInvitation records
        messages: Message records
    """

    name = models.CharField(
        max_length=CONVERSATION_CONFIG.MAX_NAME_LENGTH,
        default=CONVERSATION_CONFIG.DEFAULT_NAME,
        help_text="Conversation display name",
    )

    created_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="created_conversations",
        help_text="User who created this conversation",
    )

    members = models.ManyToManyField(
        settings.AUTH_USER_MODEL,
        through="Participant",
        related_name="conversations",
        help_text="Users who belong to this conversation",
    )

    last_message_at = models.DateTimeField(
        null=True,
        blank=True,
        db_index=True,
        help_text="Timestamp of most recent message (for sorting conversation lists)",
    )

    class Meta:
        db_table = "chat_conversation"
        ordering = ["-last_message_at", "-created_at"]

    def __str__(self) -> str:
        return f"Conversation({self.pk}): {self.name}"

    @property
    def room_id(self) -> str:
        """Realtime room identifier (the id as a string)."""
        return str(self.pk)

    def has_member(self, user: User | int) -> bool:
        """Check membership by user or user id."""
        user_id = getattr(user, "pk", user)
        return self.participants.filter(user_id=user_id).exists()


class Participant(BaseModel):
    """
    Membership of a user in a conversation.

    Created for the creator at conversation creation and for each invitee
    who accepts. There is no leave operation.

    Constraints:
        - UniqueConstraint(conversation, user): joining twice is a no-op
    """

    conversation = models.ForeignKey(
        Conversation,
        on_delete=models.CASCADE,
        related_name="participants",
        help_text="Conversation this membership belongs to",
    )

    user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name="conversation_participations",
        help_text="Member user",
    )

    class Meta:
        db_table = "chat_participant"
        ordering = ["created_at"]
        constraints = [
            models.UniqueConstraint(
                fields=["conversation", "user"],
                name="unique_participation",
            ),
        ]

    def __str__(self) -> str:
        return f"Participant: {self.user_id} in {self.conversation_id}"


class InvitationStatus(models.TextChoices):
    """
    Lifecycle of a group invitation.

    PENDING -> ACCEPTED | DECLINED | EXPIRED (all terminal)
    """

    PENDING = "pending", "Pending"
    ACCEPTED = "accepted", "Accepted"
    DECLINED = "declined", "Declined"
    EXPIRED = "expired", "Expired"


class GroupInvitationQuerySet(models.QuerySet):
    def pending(self):
        return self.filter(status=InvitationStatus.PENDING)

    def active(self, now=None):
        """Pending and not past expiry."""
        now = now or timezone.now()
        return self.pending().filter(expires_at__gt=now)

    def stale(self, now=None):
        """Pending but past expiry (awaiting the sweep)."""
        now = now or timezone.now()
        return self.pending().filter(expires_at__lte=now)


class GroupInvitation(BaseModel):
    """
    Invitation for a user to join a conversation.

    Fields:
        conversation: Target conversation
        inviter: Member who sent the invitation
        invitee: User being invited
        status: pending/accepted/declined/expired
        expires_at: After this instant the invitation can no longer be accepted
        responded_at: When the invitee answered (or the invitation expired)

    Constraints:
        - At most one pending invitation per (conversation, invitee)
    """

    conversation = models.ForeignKey(
        Conversation,
        on_delete=models.CASCADE,
        related_name="invitations",
        help_text="Conversation the invitee is asked to join",
    )

    inviter = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name="sent_invitations",
        help_text="User who sent the invitation",
    )

    invitee = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name="received_invitations",
        help_text="User being invited",
    )

    status = models.CharField(
        max_length=10,
        choices=InvitationStatus.choices,
        default=InvitationStatus.PENDING,
        db_index=True,
        help_text="Invitation state",
    )

    expires_at = models.DateTimeField(
        db_index=True,
        help_text="When the invitation stops being answerable",
    )

    responded_at = models.DateTimeField(
        null=True,
        blank=True,
        help_text="When the invitation left the pending state",
    )

    objects = GroupInvitationQuerySet.as_manager()

    class Meta:
        db_table = "chat_group_invitation"
        ordering = ["-created_at"]
        indexes = [
            models.Index(
                fields=["invitee", "status"],
                name="chat_inv_invitee_status_idx",
            ),
        ]
        constraints = [
            models.UniqueConstraint(
                fields=["conversation", "invitee"],
                condition=Q(status="pending"),
                name="unique_pending_invitation",
            ),
        ]

    def __str__(self) -> str:
        return (
            f"Invitation({self.pk}): {self.invitee_id} -> "
            f"{self.conversation_id} [{self.status}]"
        )

    @property
    def is_pending(self) -> bool:
        return self.status == InvitationStatus.PENDING

    def is_expired(self, now=None) -> bool:
        """True once expires_at has passed (regardless of stored status)."""
        now = now or timezone.now()
        return self.expires_at <= now


class Message(BaseModel):
    """
    A message within a conversation.

    Fields:
        conversation: Conversation this message belongs to
        sender: User who sent the message (null once the account is deleted)
        content: Message text
        client_id: Idempotency key generated by the sending client, echoed in
            the new_message event so the client can replace its optimistic copy
    """

    conversation = models.ForeignKey(
        Conversation,
        on_delete=models.CASCADE,
        related_name="messages",
        help_text="Conversation this message belongs to",
    )

    sender = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="sent_messages",
        help_text="User who sent this message",
    )

    content = models.TextField(
        max_length=MESSAGE_CONFIG.MAX_CONTENT_LENGTH,
        help_text="Message text",
    )

    client_id = models.CharField(
        max_length=MESSAGE_CONFIG.MAX_CLIENT_ID_LENGTH,
        blank=True,
        default="",
        help_text="Client-generated idempotency key (optional)",
    )

    class Meta:
        db_table = "chat_message"
        ordering = ["created_at", "id"]
        indexes = [
            # Messages in a conversation (cursor pagination)
            models.Index(
                fields=["conversation", "created_at", "id"],
                name="chat_msg_conv_cursor_idx",
            ),
        ]

    def __str__(self) -> str:
        content_preview = (
            self.content[:50] + "..." if len(self.content) > 50 else self.content
        )
        return f"User {self.sender_id}: {content_preview}"

    @property
    def sender_name(self) -> str:
        """Display name of the sender, empty if unresolvable."""
        if self.sender is None:
            return ""
        return self.sender.display_name
