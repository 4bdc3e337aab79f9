"""
Chat system service layer.

This module provides the business logic for the chat system, encapsulating
all operations on conversations, invitations and messages.

Services:
    ConversationService: User search, conversation listing, creation, deletion
    InvitationService: Invite, list pending, respond, expire
    MessageService: History and sending

Design Principles:
    - Services are stateless (use class methods)
    - Expected failures return ServiceResult.failure()
    - Unexpected failures (DatabaseError) raise
    - Services never push realtime events; the REST views and the
      consumer do that after a successful result

Error codes (mapped to HTTP statuses by chat.views):
    NOT_FOUND        404  conversation/invitation does not exist
    NOT_MEMBER       403  caller is not a member of the conversation
    NOT_INVITEE      403  caller is not the invitee
    NOT_PENDING      409  invitation already answered or expired
    EXPIRED          410  invitation past expires_at (status flips to expired)
    INVALID_CONTENT  400  empty or oversized message

Usage:
    from chat.services import ConversationService, InvitationService, MessageService

    result = ConversationService.create_group(
        creator=user, name="Project Team", invitee_ids=[2, 3]
    )
    if result.success:
        conversation, invitations = result.data

    result = InvitationService.respond(invitation_id=5, user=invitee, accept=True)

    result = MessageService.send_message(
        conversation_id=conversation.id, sender=user, content="Hello everyone!"
    )
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING

from django.contrib.auth import get_user_model
from django.db.models import Count, F, OuterRef, Q, Subquery
from django.db.models.functions import Coalesce
from django.utils import timezone

from chat.constants import CONVERSATION_CONFIG, INVITATION_CONFIG, MESSAGE_CONFIG
from chat.models import (
    Conversation,
    GroupInvitation,
    InvitationStatus,
    Message,
    Participant,
)
from core.services import BaseService, ServiceResult

if TYPE_CHECKING:
    from django.db.models import QuerySet

    from authentication.models import User


def _not_found(what: str) -> ServiceResult:
    return ServiceResult.failure(f"{what} not found", error_code="NOT_FOUND")


def _not_member() -> ServiceResult:
    return ServiceResult.failure(
        "Not a member of this conversation", error_code="NOT_MEMBER"
    )


@dataclass
class CreatedConversation:
    """Result of ConversationService.create_group()."""

    conversation: Conversation
    invitations: list[GroupInvitation]

    def __iter__(self):
        return iter((self.conversation, self.invitations))


class ConversationService(BaseService):
    """
    Service for conversation lifecycle operations.

    Methods:
        search_users: Find other users by name or email
        list_for_user: Caller's conversations with summary annotations
        get_for_member: Load a conversation, enforcing membership
        create_group: Create a conversation and invite users
        delete_conversation: Delete a conversation with its messages and invitations
    """

    @classmethod
    def search_users(cls, user: User, query: str = "") -> QuerySet:
        """
        Search users by name or email (case-insensitive).

        The caller is never included; at most USER_SEARCH_LIMIT results.
        """
        User = get_user_model()
        queryset = User.objects.filter(is_active=True).exclude(pk=user.pk)

        query = (query or "").strip()
        if query:
            queryset = queryset.filter(
                Q(name__icontains=query) | Q(email__icontains=query)
            )

        return queryset.order_by("name", "email")[: CONVERSATION_CONFIG.USER_SEARCH_LIMIT]

    @classmethod
    def list_for_user(cls, user: User) -> QuerySet:
        """
        Conversations the user belongs to, most recently active first.

        Annotations:
            message_count: Number of messages
            last_message: Content of the newest message (None if empty)
            last_message_time: Newest message time, or creation time
        """
        newest = Message.objects.filter(conversation=OuterRef("pk")).order_by(
            "-created_at", "-id"
        )
        return (
            Conversation.objects.filter(participants__user=user)
            .annotate(
                message_count=Count("messages", distinct=True),
                last_message=Subquery(newest.values("content")[:1]),
                last_message_time=Coalesce(
                    Subquery(newest.values("created_at")[:1]), F("created_at")
                ),
            )
            .prefetch_related("participants__user")
            .order_by("-last_message_time", "-id")
        )

    @classmethod
    def get_for_member(
        cls, conversation_id: int, user: User
    ) -> ServiceResult[Conversation]:
        """
        Load a conversation for one of its members.

        Error codes:
            NOT_FOUND: No such conversation
            NOT_MEMBER: User is not a member
        """
        try:
            conversation = Conversation.objects.get(pk=conversation_id)
        except Conversation.DoesNotExist:
            return _not_found("Conversation")

        if not conversation.has_member(user):
            return _not_member()

        return ServiceResult.success(conversation)

    @classmethod
    def create_group(
        cls,
        creator: User,
        name: str = "",
        invitee_ids: list[int] | None = None,
    ) -> ServiceResult[CreatedConversation]:
        """
        Create a group conversation and invite users to it.

        The creator is the only member until invitees accept. Invitations
        follow InvitationService.invite_users() rules.

        Returns:
            ServiceResult with CreatedConversation(conversation, invitations)
        """
        name = (name or "").strip() or CONVERSATION_CONFIG.DEFAULT_NAME

        with cls.atomic():
            conversation = Conversation.objects.create(name=name, created_by=creator)
            Participant.objects.create(conversation=conversation, user=creator)
            invitations = InvitationService.create_invitations(
                conversation, creator, invitee_ids or []
            )

        cls.get_logger().info(
            f"User {creator.id} created conversation {conversation.id} "
            f"with {len(invitations)} invitation(s)"
        )
        return ServiceResult.success(CreatedConversation(conversation, invitations))

    @classmethod
    def delete_conversation(cls, conversation_id: int, user: User) -> ServiceResult[None]:
        """
        Delete a conversation.

        Messages, memberships and invitations go with it (cascade).
        Any member may delete.
        """
        result = cls.get_for_member(conversation_id, user)
        if not result.success:
            return result

        conversation = result.data
        with cls.atomic():
            conversation.delete()

        cls.get_logger().info(f"User {user.id} deleted conversation {conversation_id}")
        return ServiceResult.success(None)


class InvitationService(BaseService):
    """
    Service for group invitations.

    Methods:
        invite_users: Members invite more users to a conversation
        create_invitations: Invitation creation rules (used by create_group)
        pending_for_user: Caller's answerable invitations
        respond: Accept or decline
        expire_stale: Flip overdue pending invitations to expired
    """

    @classmethod
    def invite_users(
        cls,
        conversation_id: int,
        inviter: User,
        invitee_ids: list[int],
    ) -> ServiceResult[list[GroupInvitation]]:
        """
        Invite users into an existing conversation.

        Error codes:
            NOT_FOUND, NOT_MEMBER: see module docstring
        """
        result = ConversationService.get_for_member(conversation_id, inviter)
        if not result.success:
            return result

        with cls.atomic():
            invitations = cls.create_invitations(result.data, inviter, invitee_ids)
        return ServiceResult.success(invitations)

    @classmethod
    def create_invitations(
        cls,
        conversation: Conversation,
        inviter: User,
        invitee_ids: list[int],
    ) -> list[GroupInvitation]:
        """
        Create one pending invitation per eligible invitee.

        Skipped: the inviter, unknown or inactive users, existing members,
        and users who already hold an unexpired pending invitation. Stale
        pending invitations are expired and replaced.

        Must run inside a transaction.
        """
        User = get_user_model()
        now = timezone.now()
        expires_at = now + INVITATION_CONFIG.ttl()

        wanted = []
        for invitee_id in invitee_ids:
            if invitee_id != inviter.id and invitee_id not in wanted:
                wanted.append(invitee_id)

        users = User.objects.filter(pk__in=wanted, is_active=True).in_bulk()
        members = set(
            conversation.participants.filter(user_id__in=wanted).values_list(
                "user_id", flat=True
            )
        )
        pending = {
            invitation.invitee_id: invitation
            for invitation in GroupInvitation.objects.pending().filter(
                conversation=conversation, invitee_id__in=wanted
            )
        }

        invitations = []
        for invitee_id in wanted:
            invitee = users.get(invitee_id)
            if invitee is None or invitee_id in members:
                continue

            existing = pending.get(invitee_id)
            if existing is not None:
                if not existing.is_expired(now):
                    continue
                cls._mark_expired(existing, now)

            invitations.append(
                GroupInvitation.objects.create(
                    conversation=conversation,
                    inviter=inviter,
                    invitee=invitee,
                    expires_at=expires_at,
                )
            )

        skipped = len(invitee_ids) - len(invitations)
        if skipped:
            cls.get_logger().debug(
                f"Skipped {skipped} invitee(s) for conversation {conversation.id}"
            )
        return invitations

    @classmethod
    def pending_for_user(cls, user: User) -> QuerySet:
        """Pending, unexpired invitations addressed to the user."""
        return (
            GroupInvitation.objects.active()
            .filter(invitee=user)
            .select_related("conversation", "inviter", "invitee")
            .order_by("-created_at")
        )

    @classmethod
    def respond(
        cls,
        invitation_id: int,
        user: User,
        accept: bool,
    ) -> ServiceResult[GroupInvitation]:
        """
        Accept or decline an invitation.

        Accepting adds the invitee as a member (idempotent). An overdue
        invitation is marked expired and reported as EXPIRED.

        Error codes:
            NOT_FOUND, NOT_INVITEE, NOT_PENDING, EXPIRED
        """
        with cls.atomic():
            try:
                invitation = (
                    GroupInvitation.objects.select_for_update()
                    .select_related("conversation", "inviter")
                    .get(pk=invitation_id)
                )
            except GroupInvitation.DoesNotExist:
                return _not_found("Invitation")

            if invitation.invitee_id != user.id:
                return ServiceResult.failure(
                    "Not authorized to respond to this invitation",
                    error_code="NOT_INVITEE",
                )

            if not invitation.is_pending:
                return ServiceResult.failure(
                    f"Invitation already {invitation.status}",
                    error_code="NOT_PENDING",
                )

            now = timezone.now()
            if invitation.is_expired(now):
                cls._mark_expired(invitation, now)
                expired = True
            else:
                expired = False
                invitation.status = (
                    InvitationStatus.ACCEPTED if accept else InvitationStatus.DECLINED
                )
                invitation.responded_at = now
                invitation.save(update_fields=["status", "responded_at", "updated_at"])

                if accept:
                    Participant.objects.get_or_create(
                        conversation=invitation.conversation, user=user
                    )

        # Returned outside the atomic block so the expiry flip is committed
        if expired:
            return ServiceResult.failure("Invitation expired", error_code="EXPIRED")

        cls.get_logger().info(
            f"User {user.id} {invitation.status} invitation {invitation.id} "
            f"to conversation {invitation.conversation_id}"
        )
        return ServiceResult.success(invitation)

    @classmethod
    def expire_stale(cls, now=None) -> int:
        """
        Mark every overdue pending invitation as expired.

        Returns:
            Number of invitations expired
        """
        now = now or timezone.now()
        count = GroupInvitation.objects.stale(now).update(
            status=InvitationStatus.EXPIRED,
            responded_at=now,
            updated_at=now,
        )
        if count:
            cls.get_logger().info(f"Expired {count} pending invitation(s)")
        return count

    @staticmethod
    def _mark_expired(invitation: GroupInvitation, now) -> None:
        invitation.status = InvitationStatus.EXPIRED
        invitation.responded_at = now
        invitation.save(update_fields=["status", "responded_at", "updated_at"])


class MessageService(BaseService):
    """
    Service for message operations.

    Methods:
        list_messages: Conversation history in creation order
        send_message: Validate and persist a message
    """

    @classmethod
    def list_messages(cls, conversation_id: int, user: User) -> ServiceResult[QuerySet]:
        """
        History of a conversation for one of its members.

        Error codes:
            NOT_FOUND, NOT_MEMBER
        """
        result = ConversationService.get_for_member(conversation_id, user)
        if not result.success:
            return result

        messages = (
            Message.objects.filter(conversation_id=conversation_id)
            .select_related("sender")
            .order_by("created_at", "id")
        )
        return ServiceResult.success(messages)

    @classmethod
    def send_message(
        cls,
        conversation_id: int,
        sender: User,
        content: str,
        client_id: str = "",
    ) -> ServiceResult[Message]:
        """
        Persist a message from a member.

        Args:
            conversation_id: Target conversation
            sender: Authenticated user
            content: Message text (whitespace-only is rejected)
            client_id: Optional client idempotency key, echoed in new_message

        Error codes:
            INVALID_CONTENT, NOT_FOUND, NOT_MEMBER

        Raises:
            DatabaseError: Storage failure (callers report it)
        """
        if not isinstance(content, str) or not content.strip():
            return ServiceResult.failure(
                "Message content cannot be empty", error_code="INVALID_CONTENT"
            )
        if len(content) > MESSAGE_CONFIG.MAX_CONTENT_LENGTH:
            return ServiceResult.failure(
                f"Message exceeds {MESSAGE_CONFIG.MAX_CONTENT_LENGTH} characters",
                error_code="INVALID_CONTENT",
            )

        result = ConversationService.get_for_member(conversation_id, sender)
        if not result.success:
            return result

        client_id = (client_id or "")[: MESSAGE_CONFIG.MAX_CLIENT_ID_LENGTH]

        with cls.atomic():
            message = Message.objects.create(
                conversation_id=conversation_id,
                sender=sender,
                content=content,
                client_id=client_id,
            )
            Conversation.objects.filter(pk=conversation_id).update(
                last_message_at=message.created_at
            )

        cls.get_logger().debug(
            f"User {sender.id} sent message {message.id} to conversation {conversation_id}"
        )
        return ServiceResult.success(message)
