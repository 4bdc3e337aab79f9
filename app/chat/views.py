"""
ViewSets for chat API.

This module provides REST API endpoints for the chat system:
- UserSearchView: Find users to invite
- ConversationViewSet: Conversation list/create/detail/delete and invitations
- MessageViewSet: Message history and HTTP send (nested under conversation)
- InvitationViewSet: Pending invitations and responses

URL Structure:
    /api/v1/chat/users/?q=                               GET
    /api/v1/chat/conversations/                          GET, POST
    /api/v1/chat/conversations/{id}/                     GET, DELETE
    /api/v1/chat/conversations/{id}/invitations/         POST
    /api/v1/chat/conversations/{id}/messages/            GET, POST
    /api/v1/chat/invitations/pending/                    GET
    /api/v1/chat/invitations/{id}/respond/               POST

Design Decisions:
    - All operations use the service layer for business logic
    - ServiceResult error codes map to exception classes via ERROR_CLASSES
    - Realtime pushes happen here, after the service call has committed
"""

from __future__ import annotations

from drf_spectacular.types import OpenApiTypes
from drf_spectacular.utils import (
    OpenApiParameter,
    OpenApiResponse,
    extend_schema,
    extend_schema_view,
)
from rest_framework import mixins, status, viewsets
from rest_framework.decorators import action
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response
from rest_framework.views import APIView

from authentication.serializers import UserSerializer
from chat.models import Conversation, GroupInvitation, InvitationStatus
from chat.pagination import MessageCursorPagination
from chat.permissions import IsConversationMember
from chat.realtime import publishers
from chat.serializers import (
    ConversationCreatedSerializer,
    ConversationCreateSerializer,
    ConversationDetailSerializer,
    ConversationListSerializer,
    GroupInvitationSerializer,
    InvitationRespondSerializer,
    InvitationStatusSerializer,
    InviteSerializer,
    MessageCreateSerializer,
    MessageSerializer,
)
from chat.services import ConversationService, InvitationService, MessageService
from core.exceptions import (
    ConflictError,
    ExpiredError,
    NotFoundError,
    PermissionDeniedError,
    ValidationError,
)

# Service error codes -> exception raised (and rendered by the DRF handler)
ERROR_CLASSES = {
    "INVALID_CONTENT": ValidationError,
    "NOT_MEMBER": PermissionDeniedError,
    "NOT_INVITEE": PermissionDeniedError,
    "NOT_FOUND": NotFoundError,
    "NOT_PENDING": ConflictError,
    "EXPIRED": ExpiredError,
}


class UserSearchView(APIView):
    """
    Search users to invite.

    GET /api/v1/chat/users/?q=query

    Matches name or email (case-insensitive), never returns the caller,
    at most 50 results.
    """

    permission_classes = [IsAuthenticated]

    @extend_schema(
        operation_id="search_users",
        summary="Search users",
        parameters=[
            OpenApiParameter(
                name="q",
                type=OpenApiTypes.STR,
                location=OpenApiParameter.QUERY,
                description="Substring of name or email (empty lists everyone)",
                required=False,
            ),
        ],
        responses={200: UserSerializer(many=True)},
        tags=["Chat - Users"],
    )
    def get(self, request):
        users = ConversationService.search_users(
            request.user, request.query_params.get("q", "")
        )
        return Response(UserSerializer(users, many=True).data)


@extend_schema_view(
    list=extend_schema(
        operation_id="list_conversations",
        summary="List conversations",
        responses={200: ConversationListSerializer(many=True)},
        tags=["Chat - Conversations"],
    ),
    create=extend_schema(
        operation_id="create_conversation",
        summary="Create group conversation",
        request=ConversationCreateSerializer,
        responses={201: ConversationCreatedSerializer},
        tags=["Chat - Conversations"],
    ),
    retrieve=extend_schema(
        operation_id="get_conversation",
        summary="Get conversation",
        tags=["Chat - Conversations"],
    ),
    destroy=extend_schema(
        operation_id="delete_conversation",
        summary="Delete conversation",
        responses={
            204: OpenApiResponse(description="Deleted with its messages"),
            403: OpenApiResponse(description="Not a member"),
            404: OpenApiResponse(description="Conversation not found"),
        },
        tags=["Chat - Conversations"],
    ),
)
class ConversationViewSet(mixins.RetrieveModelMixin, viewsets.GenericViewSet):
    """
    ViewSet for conversation operations.

    list:
        All conversations of the current user, most recently active first,
        with last message preview and message count.

    create:
        Create a group conversation. The creator is the only member;
        invitees receive a group:invite push.

    retrieve:
        Conversation details including members. Members only.

    destroy:
        Delete the conversation with its messages and invitations.
        Members only.
    """

    permission_classes = [IsAuthenticated]
    pagination_class = None
    lookup_value_regex = r"\d+"

    def get_queryset(self):
        if not self.request.user.is_authenticated:
            return Conversation.objects.none()
        if self.action == "list":
            return ConversationService.list_for_user(self.request.user)
        return Conversation.objects.select_related("created_by").prefetch_related(
            "participants__user"
        )

    def get_serializer_class(self):
        if self.action == "list":
            return ConversationListSerializer
        if self.action == "create":
            return ConversationCreateSerializer
        if self.action == "invitations":
            return InviteSerializer
        return ConversationDetailSerializer

    def get_permissions(self):
        if self.action == "retrieve":
            return [IsAuthenticated(), IsConversationMember()]
        return [IsAuthenticated()]

    def list(self, request):
        serializer = ConversationListSerializer(self.get_queryset(), many=True)
        return Response(serializer.data)

    def create(self, request):
        """Create a group conversation and invite users."""
        serializer = ConversationCreateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        result = ConversationService.create_group(
            creator=request.user,
            name=serializer.validated_data["name"],
            invitee_ids=serializer.validated_data["invitees"],
        )
        if not result.success:
            raise result.to_exception(ERROR_CLASSES)

        conversation, invitations = result.data
        for invitation in invitations:
            publishers.publish_invitation_created(invitation)

        output = ConversationCreatedSerializer(
            {"conversation": conversation, "invitations": invitations}
        )
        return Response(output.data, status=status.HTTP_201_CREATED)

    def destroy(self, request, pk=None):
        result = ConversationService.delete_conversation(
            conversation_id=int(pk), user=request.user
        )
        if not result.success:
            raise result.to_exception(ERROR_CLASSES)

        return Response(status=status.HTTP_204_NO_CONTENT)

    @extend_schema(
        operation_id="invite_to_conversation",
        summary="Invite users",
        request=InviteSerializer,
        responses={
            201: GroupInvitationSerializer(many=True),
            403: OpenApiResponse(description="Not a member"),
            404: OpenApiResponse(description="Conversation not found"),
        },
        tags=["Chat - Conversations"],
    )
    @action(detail=True, methods=["post"])
    def invitations(self, request, pk=None):
        """Invite more users into the conversation (members only)."""
        serializer = InviteSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        result = InvitationService.invite_users(
            conversation_id=int(pk),
            inviter=request.user,
            invitee_ids=serializer.validated_data["invitees"],
        )
        if not result.success:
            raise result.to_exception(ERROR_CLASSES)

        for invitation in result.data:
            publishers.publish_invitation_created(invitation)

        return Response(
            GroupInvitationSerializer(result.data, many=True).data,
            status=status.HTTP_201_CREATED,
        )


@extend_schema_view(
    list=extend_schema(
        operation_id="list_messages",
        summary="List messages",
        responses={200: MessageSerializer(many=True)},
        tags=["Chat - Messages"],
    ),
    create=extend_schema(
        operation_id="send_message",
        summary="Send message",
        request=MessageCreateSerializer,
        responses={
            201: MessageSerializer,
            400: OpenApiResponse(description="Empty or oversized content"),
            403: OpenApiResponse(description="Not a member"),
            404: OpenApiResponse(description="Conversation not found"),
        },
        tags=["Chat - Messages"],
    ),
)
class MessageViewSet(viewsets.GenericViewSet):
    """
    ViewSet for message operations within a conversation.

    list:
        Conversation history in creation order, cursor paginated.

    create:
        Send a message over HTTP. Unlike the socket path, failures are
        reported with a status code. Members in the conversation room
        receive new_message.
    """

    permission_classes = [IsAuthenticated]
    pagination_class = MessageCursorPagination
    serializer_class = MessageSerializer

    def list(self, request, conversation_pk=None):
        result = MessageService.list_messages(
            conversation_id=int(conversation_pk), user=request.user
        )
        if not result.success:
            raise result.to_exception(ERROR_CLASSES)

        page = self.paginate_queryset(result.data)
        if page is not None:
            return self.get_paginated_response(MessageSerializer(page, many=True).data)

        return Response(MessageSerializer(result.data, many=True).data)

    def create(self, request, conversation_pk=None):
        serializer = MessageCreateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        result = MessageService.send_message(
            conversation_id=int(conversation_pk),
            sender=request.user,
            content=serializer.validated_data["content"],
            client_id=serializer.validated_data["client_id"],
        )
        if not result.success:
            raise result.to_exception(ERROR_CLASSES)

        publishers.publish_message_created(result.data)
        return Response(
            MessageSerializer(result.data).data, status=status.HTTP_201_CREATED
        )


class InvitationViewSet(viewsets.GenericViewSet):
    """
    ViewSet for the invitee side of group invitations.

    pending:
        Pending, unexpired invitations addressed to the current user.

    respond:
        Accept or decline. Accepting makes the user a member.
    """

    permission_classes = [IsAuthenticated]
    serializer_class = GroupInvitationSerializer
    lookup_value_regex = r"\d+"

    def get_queryset(self):
        if not self.request.user.is_authenticated:
            return GroupInvitation.objects.none()
        return InvitationService.pending_for_user(self.request.user)

    @extend_schema(
        operation_id="list_pending_invitations",
        summary="List pending invitations",
        responses={200: GroupInvitationSerializer(many=True)},
        tags=["Chat - Invitations"],
    )
    @action(detail=False, methods=["get"])
    def pending(self, request):
        serializer = GroupInvitationSerializer(self.get_queryset(), many=True)
        return Response(serializer.data)

    @extend_schema(
        operation_id="respond_to_invitation",
        summary="Respond to invitation",
        request=InvitationRespondSerializer,
        responses={
            200: InvitationStatusSerializer,
            403: OpenApiResponse(description="Not the invitee"),
            404: OpenApiResponse(description="Invitation not found"),
            409: OpenApiResponse(description="Already answered"),
            410: OpenApiResponse(description="Expired"),
        },
        tags=["Chat - Invitations"],
    )
    @action(detail=True, methods=["post"])
    def respond(self, request, pk=None):
        serializer = InvitationRespondSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        result = InvitationService.respond(
            invitation_id=int(pk),
            user=request.user,
            accept=serializer.validated_data["accept"],
        )
        if not result.success:
            raise result.to_exception(ERROR_CLASSES)

        invitation = result.data
        if invitation.status == InvitationStatus.ACCEPTED:
            publishers.publish_invitation_accepted(invitation, request.user)
        else:
            publishers.publish_invitation_declined(invitation, request.user)

        return Response({"status": invitation.status})
