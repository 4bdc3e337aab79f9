"""
Tests for ChatConsumer over a real WebSocket communicator.

Features tested:
- Handshake authentication (query token, subprotocol, rejection with 4001)
- Presence events and online_users
- Membership-checked room joins
- send_message fan-out, clientId echo and failure reporting
- Delivery gated by room joins, not conversation membership
- Invitations pushed from the REST API to the invitee's socket
- Typing indicators excluding the sender
- Malformed and unknown frames

Each test uses a transactional database because the consumer reaches the
ORM from worker threads.
"""

import asyncio

import pytest
from channels.db import database_sync_to_async
from django.db import DatabaseError

from chat.consumers import ChatConsumer
from chat.models import Message
from chat.realtime import events
from chat.tests.conftest import token_for

pytestmark = [pytest.mark.asyncio, pytest.mark.django_db(transaction=True)]


# =============================================================================
# Helpers
# =============================================================================


async def connect(communicator):
    connected, _ = await communicator.connect()
    assert connected
    return communicator


async def drain(communicator):
    """Discard every frame already delivered (presence noise)."""
    while not await communicator.receive_nothing(timeout=0.05):
        await communicator.receive_output()


async def next_event(communicator, event_type, timeout=1):
    """Skip frames until one of event_type arrives."""
    while True:
        frame = await communicator.receive_json_from(timeout=timeout)
        if frame["type"] == event_type:
            return frame


async def until_online(observer, user):
    """Wait until observer sees user_connected for user."""
    while True:
        frame = await next_event(observer, events.USER_CONNECTED)
        if frame["data"]["userId"] == user.id:
            return frame


async def barrier(communicator):
    """Round-trip get_online_users so earlier frames have been handled."""
    await communicator.send_json_to({"type": events.GET_ONLINE_USERS})
    await next_event(communicator, events.ONLINE_USERS)


async def join(communicator, conversation_id):
    await communicator.send_json_to(
        {"type": events.JOIN_CONVERSATION, "data": conversation_id}
    )
    await barrier(communicator)


# =============================================================================
# TestHandshake
# =============================================================================


class TestHandshake:
    """Connection authentication."""

    async def test_missing_token_closes_with_4001(self, communicator_for):
        """
        Anonymous connections are refused before accept.

        Why it matters: every realtime event is attributed to a verified user.
        """
        communicator = communicator_for()

        connected, code = await communicator.connect()

        assert connected is False
        assert code == 4001

    async def test_invalid_token_closes_with_4001(self, communicator_for):
        communicator = communicator_for(token="not-a-jwt")

        connected, code = await communicator.connect()

        assert connected is False
        assert code == 4001

    async def test_inactive_user_is_rejected(self, communicator_for, alice):
        token = token_for(alice)
        alice.is_active = False
        await database_sync_to_async(alice.save)()
        communicator = communicator_for(token=token)

        connected, code = await communicator.connect()

        assert connected is False
        assert code == 4001

    async def test_query_token_connects_and_announces(self, communicator_for, alice):
        communicator = await connect(communicator_for(alice))

        frame = await next_event(communicator, events.USER_CONNECTED)

        assert frame["data"]["userId"] == alice.id
        assert frame["data"]["online"] is True
        await communicator.disconnect()

    async def test_subprotocol_token_is_accepted(self, communicator_for, alice):
        """
        The token may travel as Sec-WebSocket-Protocol: jwt, <token>.

        Why it matters: browsers cannot set headers on WebSocket handshakes.
        """
        communicator = communicator_for(subprotocols=["jwt", token_for(alice)])

        connected, subprotocol = await communicator.connect()

        assert connected is True
        assert subprotocol == "jwt"
        await communicator.disconnect()


# =============================================================================
# TestPresence
# =============================================================================


class TestPresence:
    """Presence events over the socket."""

    async def test_online_users_lists_connected(self, communicator_for, alice, bob):
        alice_ws = await connect(communicator_for(alice))
        bob_ws = await connect(communicator_for(bob))
        await until_online(alice_ws, bob)

        await alice_ws.send_json_to({"type": events.GET_ONLINE_USERS})
        frame = await next_event(alice_ws, events.ONLINE_USERS)

        assert {entry["userId"] for entry in frame["data"]} == {alice.id, bob.id}
        await alice_ws.disconnect()
        await bob_ws.disconnect()

    async def test_disconnect_is_broadcast(self, communicator_for, alice, bob):
        alice_ws = await connect(communicator_for(alice))
        bob_ws = await connect(communicator_for(bob))
        await drain(alice_ws)

        await bob_ws.disconnect()
        frame = await next_event(alice_ws, events.USER_DISCONNECTED)

        assert frame["data"] == {"userId": bob.id, "online": False}
        await alice_ws.disconnect()

    async def test_register_updates_display_name(self, communicator_for, alice):
        alice_ws = await connect(communicator_for(alice))

        await alice_ws.send_json_to(
            {"type": events.REGISTER, "data": {"id": alice.id, "name": "Ali"}}
        )
        await alice_ws.send_json_to({"type": events.GET_ONLINE_USERS})
        frame = await next_event(alice_ws, events.ONLINE_USERS)

        assert frame["data"][0]["name"] == "Ali"
        await alice_ws.disconnect()


# =============================================================================
# TestMessaging
# =============================================================================


class TestMessaging:
    """join_conversation, send_message and typing."""

    async def test_send_message_reaches_joined_members_once(
        self, communicator_for, conversation, alice, bob
    ):
        """
        A persisted message is broadcast exactly once to every joined member,
        sender included, with the clientId echoed.

        Why it matters: clients reconcile their optimistic copy by clientId.
        """
        alice_ws = await connect(communicator_for(alice))
        bob_ws = await connect(communicator_for(bob))
        await join(alice_ws, conversation.id)
        await join(bob_ws, str(conversation.id))
        await drain(alice_ws)
        await drain(bob_ws)

        await alice_ws.send_json_to(
            {
                "type": events.SEND_MESSAGE,
                "data": {
                    "conversationId": conversation.id,
                    "content": "Hello Bob",
                    "clientId": "c-1",
                },
            }
        )

        for ws in (alice_ws, bob_ws):
            frame = await next_event(ws, events.NEW_MESSAGE)
            assert frame["data"]["content"] == "Hello Bob"
            assert frame["data"]["senderId"] == alice.id
            assert frame["data"]["senderName"] == "Alice"
            assert frame["data"]["conversationId"] == conversation.id
            assert frame["data"]["clientId"] == "c-1"
            assert await ws.receive_nothing(timeout=0.1)

        assert await Message.objects.filter(conversation=conversation).acount() == 1
        await alice_ws.disconnect()
        await bob_ws.disconnect()

    async def test_non_member_cannot_join(self, communicator_for, conversation, alice, dave):
        """
        Joining a conversation requires membership.

        Why it matters: room broadcasts carry private message content.
        """
        alice_ws = await connect(communicator_for(alice))
        dave_ws = await connect(communicator_for(dave))
        await join(alice_ws, conversation.id)
        await join(dave_ws, conversation.id)
        await drain(dave_ws)

        await alice_ws.send_json_to(
            {
                "type": events.SEND_MESSAGE,
                "data": {"conversationId": conversation.id, "content": "secret"},
            }
        )
        await next_event(alice_ws, events.NEW_MESSAGE)

        assert await dave_ws.receive_nothing(timeout=0.2)
        await alice_ws.disconnect()
        await dave_ws.disconnect()

    async def test_non_member_send_is_dropped(self, communicator_for, conversation, dave):
        dave_ws = await connect(communicator_for(dave))

        await dave_ws.send_json_to(
            {
                "type": events.SEND_MESSAGE,
                "data": {"conversationId": conversation.id, "content": "hi"},
            }
        )
        await barrier(dave_ws)

        assert await Message.objects.acount() == 0
        await dave_ws.disconnect()

    @pytest.mark.parametrize(
        "data",
        [
            None,
            "text",
            {"conversationId": None, "content": "hi"},
            {"conversationId": 1},
            {"conversationId": 1, "content": "   "},
        ],
    )
    async def test_invalid_send_payloads_are_dropped(
        self, communicator_for, conversation, alice, data
    ):
        alice_ws = await connect(communicator_for(alice))

        await alice_ws.send_json_to({"type": events.SEND_MESSAGE, "data": data})
        await barrier(alice_ws)

        assert await Message.objects.acount() == 0
        await alice_ws.disconnect()

    async def test_persistence_failure_reports_message_failed(
        self, communicator_for, conversation, alice, mocker
    ):
        """
        A storage failure is reported to the sender only, keyed by clientId.

        Why it matters: the sender can mark its optimistic message as failed.
        """
        mocker.patch(
            "chat.consumers.MessageService.send_message",
            side_effect=DatabaseError("disk full"),
        )
        alice_ws = await connect(communicator_for(alice))
        await join(alice_ws, conversation.id)

        await alice_ws.send_json_to(
            {
                "type": events.SEND_MESSAGE,
                "data": {
                    "conversationId": conversation.id,
                    "content": "hi",
                    "clientId": "c-9",
                },
            }
        )
        frame = await next_event(alice_ws, events.MESSAGE_FAILED)

        assert frame["data"] == {
            "conversationId": conversation.id,
            "clientId": "c-9",
            "error": "persistence_error",
        }
        await alice_ws.disconnect()

    async def test_timeout_reports_failure_then_broadcasts_late_commit(
        self, communicator_for, conversation, alice, bob, mocker, settings
    ):
        """
        A write that outlives the timeout yields message_failed to the sender,
        and new_message to the room once it commits.

        Why it matters: the stored message must reach the room, and the
        sender needs the echo to turn its failed draft back into a message.
        """
        settings.REALTIME_PERSIST_TIMEOUT_SECONDS = 0.05
        persist = ChatConsumer.__dict__["_persist_message"]

        async def slow_persist(self, *args, **kwargs):
            await asyncio.sleep(0.3)
            return await persist(self, *args, **kwargs)

        mocker.patch.object(ChatConsumer, "_persist_message", slow_persist)
        alice_ws = await connect(communicator_for(alice))
        bob_ws = await connect(communicator_for(bob))
        await join(alice_ws, conversation.id)
        await join(bob_ws, conversation.id)
        await drain(alice_ws)
        await drain(bob_ws)

        await alice_ws.send_json_to(
            {
                "type": events.SEND_MESSAGE,
                "data": {"conversationId": conversation.id, "content": "hi", "clientId": "c-2"},
            }
        )

        failed = await alice_ws.receive_json_from(timeout=1)
        assert failed["type"] == events.MESSAGE_FAILED
        assert failed["data"]["error"] == "timeout"
        assert failed["data"]["clientId"] == "c-2"

        for ws in (alice_ws, bob_ws):
            frame = await next_event(ws, events.NEW_MESSAGE, timeout=2)
            assert frame["data"]["clientId"] == "c-2"

        assert await Message.objects.filter(conversation=conversation).acount() == 1
        await alice_ws.disconnect()
        await bob_ws.disconnect()

    async def test_member_who_has_not_joined_receives_nothing(
        self, communicator_for, conversation, alice, bob
    ):
        """
        Room membership, not conversation membership, gates delivery.

        Why it matters: a member without the conversation open is not
        subscribed to its room yet.
        """
        alice_ws = await connect(communicator_for(alice))
        bob_ws = await connect(communicator_for(bob))
        await join(alice_ws, conversation.id)
        await drain(bob_ws)

        await alice_ws.send_json_to(
            {
                "type": events.SEND_MESSAGE,
                "data": {"conversationId": conversation.id, "content": "anyone?"},
            }
        )
        await next_event(alice_ws, events.NEW_MESSAGE)

        assert await bob_ws.receive_nothing(timeout=0.2)
        assert await Message.objects.filter(conversation=conversation).acount() == 1
        await alice_ws.disconnect()
        await bob_ws.disconnect()

    async def test_typing_goes_to_others_only(
        self, communicator_for, conversation, alice, bob
    ):
        """
        user_typing is relayed to the room except the sender.

        Why it matters: a client must not show itself as typing.
        """
        alice_ws = await connect(communicator_for(alice))
        bob_ws = await connect(communicator_for(bob))
        await join(alice_ws, conversation.id)
        await join(bob_ws, conversation.id)
        await drain(alice_ws)
        await drain(bob_ws)

        await alice_ws.send_json_to({"type": events.TYPING, "data": conversation.id})
        frame = await next_event(bob_ws, events.USER_TYPING)

        assert frame["data"] == {
            "userId": alice.id,
            "userName": "Alice",
            "conversationId": conversation.id,
        }
        assert await alice_ws.receive_nothing(timeout=0.1)
        await alice_ws.disconnect()
        await bob_ws.disconnect()

    async def test_typing_requires_join(self, communicator_for, conversation, alice, bob):
        alice_ws = await connect(communicator_for(alice))
        bob_ws = await connect(communicator_for(bob))
        await join(bob_ws, conversation.id)
        await drain(bob_ws)

        await alice_ws.send_json_to({"type": events.TYPING, "data": conversation.id})
        await barrier(alice_ws)

        assert await bob_ws.receive_nothing(timeout=0.1)
        await alice_ws.disconnect()
        await bob_ws.disconnect()


# =============================================================================
# TestRestPushes
# =============================================================================


class TestRestPushes:
    """Events published by REST views reach the right sockets."""

    async def test_invite_reaches_only_the_invitee(
        self, communicator_for, client_for, conversation, alice, carol, dave
    ):
        """
        Inviting over HTTP pushes group:invite to the invitee's personal room.

        Why it matters: invitations are private to the invited user.
        """
        carol_ws = await connect(communicator_for(carol))
        dave_ws = await connect(communicator_for(dave))
        await until_online(carol_ws, dave)
        await drain(carol_ws)
        await drain(dave_ws)

        def invite():
            return client_for(alice).post(
                f"/api/v1/chat/conversations/{conversation.id}/invitations/",
                {"invitees": [carol.id]},
                format="json",
            )

        response = await database_sync_to_async(invite)()
        assert response.status_code == 201

        frame = await next_event(carol_ws, events.GROUP_INVITE)
        assert frame["data"] == {
            "invitationId": response.data[0]["id"],
            "conversationId": conversation.id,
            "conversationName": "Project Team",
            "inviterName": "Alice",
        }
        assert await dave_ws.receive_nothing(timeout=0.2)
        await carol_ws.disconnect()
        await dave_ws.disconnect()


# =============================================================================
# TestMalformedFrames
# =============================================================================


class TestMalformedFrames:
    """Frames that cannot be handled are dropped without closing the socket."""

    @pytest.mark.parametrize(
        "frame",
        ['{"type": "explode"}', "not json", "[1, 2, 3]", '"just a string"'],
    )
    async def test_bad_frames_are_ignored(self, communicator_for, alice, frame):
        alice_ws = await connect(communicator_for(alice))
        await drain(alice_ws)

        await alice_ws.send_to(text_data=frame)
        await barrier(alice_ws)

        await alice_ws.disconnect()

    async def test_binary_frame_is_ignored(self, communicator_for, alice):
        """
        A binary frame is dropped like any other malformed frame.

        Why it matters: one stray frame must not close the user's session.
        """
        alice_ws = await connect(communicator_for(alice))
        await drain(alice_ws)

        await alice_ws.send_to(bytes_data=b"\x00\x01")
        await barrier(alice_ws)

        await alice_ws.disconnect()
