"""
Tests for chat API views.

This module tests:
- UserSearchView: GET /api/v1/chat/users/
- ConversationViewSet: list, create, retrieve, destroy, invitations
- MessageViewSet: history and HTTP send
- InvitationViewSet: pending list and respond

Testing Philosophy:
    Tests focus on observable HTTP behavior: status codes, body shape and
    the realtime pushes each endpoint triggers (publishers are mocked).
"""

from datetime import timedelta

import pytest
from django.utils import timezone
from rest_framework import status

from chat.models import Conversation, GroupInvitation, InvitationStatus, Message
from chat.tests.factories import GroupInvitationFactory, MessageFactory


# =============================================================================
# URL Constants
# =============================================================================


USERS_URL = "/api/v1/chat/users/"
CONVERSATIONS_URL = "/api/v1/chat/conversations/"
PENDING_URL = "/api/v1/chat/invitations/pending/"


def conversation_url(conversation_id):
    return f"{CONVERSATIONS_URL}{conversation_id}/"


def messages_url(conversation_id):
    return f"{CONVERSATIONS_URL}{conversation_id}/messages/"


def respond_url(invitation_id):
    return f"/api/v1/chat/invitations/{invitation_id}/respond/"


@pytest.fixture
def publishers(mocker):
    """Mocked realtime publishers, keyed by short name."""
    return {
        "invite": mocker.patch("chat.realtime.publishers.publish_invitation_created"),
        "accepted": mocker.patch("chat.realtime.publishers.publish_invitation_accepted"),
        "declined": mocker.patch("chat.realtime.publishers.publish_invitation_declined"),
        "message": mocker.patch("chat.realtime.publishers.publish_message_created"),
    }


# =============================================================================
# TestAuthenticationRequired
# =============================================================================


class TestAuthenticationRequired:
    """Every chat endpoint needs a bearer token."""

    @pytest.mark.parametrize(
        "url", [USERS_URL, CONVERSATIONS_URL, PENDING_URL]
    )
    def test_anonymous_requests_get_401(self, db, api_client, url):
        """
        Requests without a token are rejected with {"error": ...}.

        Why it matters: the API body shape is uniform for every error.
        """
        response = api_client.get(url)

        assert response.status_code == status.HTTP_401_UNAUTHORIZED
        assert "error" in response.data
        assert "detail" not in response.data


# =============================================================================
# TestUserSearchView
# =============================================================================


class TestUserSearchView:
    """GET /api/v1/chat/users/"""

    def test_search_by_query(self, db, client_for, alice, bob, carol):
        response = client_for(alice).get(USERS_URL, {"q": "bo"})

        assert response.status_code == status.HTTP_200_OK
        assert response.data == [{"id": bob.id, "name": "Bob", "email": "bob@example.com"}]

    def test_empty_query_lists_others(self, db, client_for, alice, bob, carol):
        response = client_for(alice).get(USERS_URL)

        ids = {user["id"] for user in response.data}
        assert ids == {bob.id, carol.id}


# =============================================================================
# TestConversationViewSet
# =============================================================================


class TestConversationList:
    """GET /api/v1/chat/conversations/"""

    def test_lists_member_conversations_with_summary(
        self, db, client_for, conversation, alice, bob
    ):
        """
        Each item carries participants, last message and counts.

        Why it matters: the sidebar renders straight from this payload.
        """
        MessageFactory(conversation=conversation, sender=bob, content="latest news")

        response = client_for(alice).get(CONVERSATIONS_URL)

        assert response.status_code == status.HTTP_200_OK
        assert len(response.data) == 1
        item = response.data[0]
        assert item["id"] == conversation.id
        assert item["name"] == "Project Team"
        assert item["last_message"] == "latest news"
        assert item["message_count"] == 1
        assert item["unread_count"] == 0
        assert item["last_message_time"] is not None
        assert {p["id"] for p in item["participants"]} == {alice.id, bob.id}

    def test_outsider_sees_nothing(self, db, client_for, conversation, dave):
        response = client_for(dave).get(CONVERSATIONS_URL)

        assert response.data == []


class TestConversationCreate:
    """POST /api/v1/chat/conversations/"""

    def test_creates_group_and_invites(self, db, client_for, publishers, alice, bob, carol):
        """
        Creation returns the conversation and its invitations, and pushes
        group:invite to each invitee.

        Why it matters: invitees learn about the group without polling.
        """
        response = client_for(alice).post(
            CONVERSATIONS_URL,
            {"name": "Weekend", "invitees": [bob.id, carol.id]},
            format="json",
        )

        assert response.status_code == status.HTTP_201_CREATED
        assert response.data["conversation"]["name"] == "Weekend"
        assert [p["id"] for p in response.data["conversation"]["participants"]] == [alice.id]
        assert {i["invitee_id"] for i in response.data["invitations"]} == {bob.id, carol.id}
        assert publishers["invite"].call_count == 2

    def test_defaults(self, db, client_for, publishers, alice):
        response = client_for(alice).post(CONVERSATIONS_URL, {}, format="json")

        assert response.status_code == status.HTTP_201_CREATED
        assert response.data["conversation"]["name"] == "New Group"
        assert response.data["invitations"] == []
        publishers["invite"].assert_not_called()

    def test_invalid_invitee_ids_rejected(self, db, client_for, alice):
        response = client_for(alice).post(
            CONVERSATIONS_URL, {"invitees": ["abc"]}, format="json"
        )

        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert "errors" in response.data


class TestConversationDetail:
    """GET/DELETE /api/v1/chat/conversations/{id}/"""

    def test_member_can_retrieve(self, db, client_for, conversation, bob):
        response = client_for(bob).get(conversation_url(conversation.id))

        assert response.status_code == status.HTTP_200_OK
        assert response.data["id"] == conversation.id

    def test_non_member_gets_403(self, db, client_for, conversation, dave):
        response = client_for(dave).get(conversation_url(conversation.id))

        assert response.status_code == status.HTTP_403_FORBIDDEN
        assert "error" in response.data

    def test_unknown_conversation_gets_404(self, db, client_for, alice):
        response = client_for(alice).get(conversation_url(987654))

        assert response.status_code == status.HTTP_404_NOT_FOUND

    def test_member_can_delete(self, db, client_for, conversation, bob):
        MessageFactory(conversation=conversation)

        response = client_for(bob).delete(conversation_url(conversation.id))

        assert response.status_code == status.HTTP_204_NO_CONTENT
        assert not Conversation.objects.filter(pk=conversation.pk).exists()
        assert Message.objects.count() == 0

    def test_non_member_cannot_delete(self, db, client_for, conversation, dave):
        response = client_for(dave).delete(conversation_url(conversation.id))

        assert response.status_code == status.HTTP_403_FORBIDDEN
        assert response.data["error_code"] == "NOT_MEMBER"

    def test_delete_unknown_conversation(self, db, client_for, alice):
        response = client_for(alice).delete(conversation_url(987654))

        assert response.status_code == status.HTTP_404_NOT_FOUND
        assert response.data["error_code"] == "NOT_FOUND"


class TestConversationInvitations:
    """POST /api/v1/chat/conversations/{id}/invitations/"""

    def test_member_invites(self, db, client_for, publishers, conversation, bob, carol):
        response = client_for(bob).post(
            f"{conversation_url(conversation.id)}invitations/",
            {"invitees": [carol.id]},
            format="json",
        )

        assert response.status_code == status.HTTP_201_CREATED
        assert response.data[0]["invitee_id"] == carol.id
        assert response.data[0]["inviter"]["id"] == bob.id
        publishers["invite"].assert_called_once()

    def test_non_member_cannot_invite(self, db, client_for, publishers, conversation, dave, carol):
        response = client_for(dave).post(
            f"{conversation_url(conversation.id)}invitations/",
            {"invitees": [carol.id]},
            format="json",
        )

        assert response.status_code == status.HTTP_403_FORBIDDEN
        publishers["invite"].assert_not_called()

    def test_empty_invitee_list_rejected(self, db, client_for, conversation, bob):
        response = client_for(bob).post(
            f"{conversation_url(conversation.id)}invitations/",
            {"invitees": []},
            format="json",
        )

        assert response.status_code == status.HTTP_400_BAD_REQUEST


# =============================================================================
# TestMessageViewSet
# =============================================================================


class TestMessageList:
    """GET /api/v1/chat/conversations/{id}/messages/"""

    def test_history_in_creation_order(self, db, client_for, conversation, alice, bob):
        first = MessageFactory(conversation=conversation, sender=alice, content="one")
        second = MessageFactory(conversation=conversation, sender=bob, content="two")

        response = client_for(bob).get(messages_url(conversation.id))

        assert response.status_code == status.HTTP_200_OK
        results = response.data["results"]
        assert [m["id"] for m in results] == [first.id, second.id]
        assert results[0]["senderName"] == "Alice"
        assert results[0]["conversationId"] == conversation.id
        assert "clientId" not in results[0]

    def test_history_is_cursor_paginated(self, db, client_for, conversation, alice):
        for _ in range(3):
            MessageFactory(conversation=conversation, sender=alice)

        response = client_for(alice).get(messages_url(conversation.id), {"page_size": 2})

        assert len(response.data["results"]) == 2
        assert response.data["next"] is not None

    def test_non_member_gets_403(self, db, client_for, conversation, dave):
        response = client_for(dave).get(messages_url(conversation.id))

        assert response.status_code == status.HTTP_403_FORBIDDEN

    def test_unknown_conversation_gets_404(self, db, client_for, alice):
        response = client_for(alice).get(messages_url(987654))

        assert response.status_code == status.HTTP_404_NOT_FOUND


class TestMessageCreate:
    """POST /api/v1/chat/conversations/{id}/messages/"""

    def test_send_returns_canonical_payload_and_publishes(
        self, db, client_for, publishers, conversation, bob
    ):
        """
        The HTTP send path persists, returns 201 and broadcasts new_message.

        Why it matters: REST and socket clients must see the same message shape.
        """
        response = client_for(bob).post(
            messages_url(conversation.id),
            {"content": "via http", "clientId": "c-42"},
            format="json",
        )

        assert response.status_code == status.HTTP_201_CREATED
        assert response.data["content"] == "via http"
        assert response.data["senderId"] == bob.id
        assert response.data["clientId"] == "c-42"
        assert set(response.data) == {
            "id",
            "conversationId",
            "senderId",
            "senderName",
            "content",
            "timestamp",
            "clientId",
        }
        message = Message.objects.get()
        publishers["message"].assert_called_once_with(message)

    def test_blank_content_rejected(self, db, client_for, publishers, conversation, bob):
        response = client_for(bob).post(
            messages_url(conversation.id), {"content": "   "}, format="json"
        )

        assert response.status_code == status.HTTP_400_BAD_REQUEST
        publishers["message"].assert_not_called()

    def test_oversized_content_rejected(self, db, client_for, conversation, bob):
        response = client_for(bob).post(
            messages_url(conversation.id), {"content": "x" * 10001}, format="json"
        )

        assert response.status_code == status.HTTP_400_BAD_REQUEST

    def test_non_member_gets_403(self, db, client_for, publishers, conversation, dave):
        response = client_for(dave).post(
            messages_url(conversation.id), {"content": "hi"}, format="json"
        )

        assert response.status_code == status.HTTP_403_FORBIDDEN
        assert response.data["error_code"] == "NOT_MEMBER"
        publishers["message"].assert_not_called()

    def test_unknown_conversation_gets_404(self, db, client_for, alice):
        response = client_for(alice).post(
            messages_url(987654), {"content": "hi"}, format="json"
        )

        assert response.status_code == status.HTTP_404_NOT_FOUND


# =============================================================================
# TestInvitationViewSet
# =============================================================================


class TestPendingInvitations:
    """GET /api/v1/chat/invitations/pending/"""

    def test_lists_caller_pending_invitations(self, db, client_for, conversation, carol):
        invitation = GroupInvitationFactory(conversation=conversation, invitee=carol)

        response = client_for(carol).get(PENDING_URL)

        assert response.status_code == status.HTTP_200_OK
        assert len(response.data) == 1
        item = response.data[0]
        assert item["id"] == invitation.id
        assert item["conversation_name"] == "Project Team"
        assert item["inviter_name"] == "Alice"
        assert item["status"] == "pending"

    def test_expired_invitations_hidden(self, db, client_for, conversation, carol):
        GroupInvitationFactory(
            conversation=conversation,
            invitee=carol,
            expires_at=timezone.now() - timedelta(minutes=1),
        )

        response = client_for(carol).get(PENDING_URL)

        assert response.data == []


class TestRespondInvitation:
    """POST /api/v1/chat/invitations/{id}/respond/"""

    @pytest.fixture
    def invitation(self, conversation, carol):
        return GroupInvitationFactory(conversation=conversation, invitee=carol)

    def test_accept(self, db, client_for, publishers, invitation, conversation, carol):
        """
        Accepting returns {status} and pushes memberAdded + notification.

        Why it matters: existing members see the newcomer immediately.
        """
        response = client_for(carol).post(
            respond_url(invitation.id), {"accept": True}, format="json"
        )

        assert response.status_code == status.HTTP_200_OK
        assert response.data == {"status": "accepted"}
        assert conversation.has_member(carol)
        publishers["accepted"].assert_called_once()
        publishers["declined"].assert_not_called()

    def test_decline(self, db, client_for, publishers, invitation, conversation, carol):
        response = client_for(carol).post(
            respond_url(invitation.id), {"accept": False}, format="json"
        )

        assert response.data == {"status": "declined"}
        assert not conversation.has_member(carol)
        publishers["declined"].assert_called_once()
        publishers["accepted"].assert_not_called()

    def test_accept_required(self, db, client_for, invitation, carol):
        response = client_for(carol).post(respond_url(invitation.id), {}, format="json")

        assert response.status_code == status.HTTP_400_BAD_REQUEST

    def test_other_user_gets_403(self, db, client_for, publishers, invitation, bob):
        response = client_for(bob).post(
            respond_url(invitation.id), {"accept": True}, format="json"
        )

        assert response.status_code == status.HTTP_403_FORBIDDEN
        assert response.data["error_code"] == "NOT_INVITEE"

    def test_unknown_invitation_gets_404(self, db, client_for, carol):
        response = client_for(carol).post(respond_url(999999), {"accept": True}, format="json")

        assert response.status_code == status.HTTP_404_NOT_FOUND

    def test_second_answer_gets_409(self, db, client_for, publishers, invitation, carol):
        client = client_for(carol)
        client.post(respond_url(invitation.id), {"accept": False}, format="json")

        response = client.post(respond_url(invitation.id), {"accept": True}, format="json")

        assert response.status_code == status.HTTP_409_CONFLICT

    def test_expired_gets_410_and_flips_status(
        self, db, client_for, publishers, conversation, carol
    ):
        invitation = GroupInvitationFactory(
            conversation=conversation,
            invitee=carol,
            expires_at=timezone.now() - timedelta(seconds=1),
        )

        response = client_for(carol).post(
            respond_url(invitation.id), {"accept": True}, format="json"
        )

        assert response.status_code == status.HTTP_410_GONE
        assert GroupInvitation.objects.get(pk=invitation.pk).status == InvitationStatus.EXPIRED
        publishers["accepted"].assert_not_called()
