"""
Test configuration and fixtures for chat tests.

This module provides:
- Named users (alice creates, bob is a member, carol is invited, dave
  is an outsider)
- A conversation with alice and bob as members
- API client helpers for authenticated requests
- WebSocket communicator helpers for consumer tests

Usage:
    def test_example(conversation, client_for, alice):
        response = client_for(alice).get(
            f"/api/v1/chat/conversations/{conversation.id}/"
        )
        assert response.status_code == 200
"""

import pytest
from channels.routing import URLRouter
from channels.testing import WebsocketCommunicator
from rest_framework.test import APIClient
from rest_framework_simplejwt.tokens import AccessToken

from authentication.tests.factories import UserFactory
from chat.middleware import JWTAuthMiddleware
from chat.routing import websocket_urlpatterns
from chat.tests.factories import ConversationFactory


# =============================================================================
# User Fixtures
# =============================================================================


@pytest.fixture
def alice(db):
    """Conversation creator."""
    return UserFactory(name="Alice", email="alice@example.com")


@pytest.fixture
def bob(db):
    """Member of the conversation fixture."""
    return UserFactory(name="Bob", email="bob@example.com")


@pytest.fixture
def carol(db):
    """User with no membership, usually the one being invited."""
    return UserFactory(name="Carol", email="carol@example.com")


@pytest.fixture
def dave(db):
    """Outsider who is never invited."""
    return UserFactory(name="Dave", email="dave@example.com")


# =============================================================================
# Conversation Fixtures
# =============================================================================


@pytest.fixture
def conversation(alice, bob):
    """Group conversation created by alice with bob as a member."""
    return ConversationFactory(name="Project Team", created_by=alice, members=[bob])


# =============================================================================
# API Client Fixtures
# =============================================================================


def token_for(user) -> str:
    return str(AccessToken.for_user(user))


@pytest.fixture
def api_client():
    """Unauthenticated API client."""
    return APIClient()


@pytest.fixture
def client_for():
    """
    Build an API client authenticated as the given user.

    Usage:
        response = client_for(alice).get(url)
    """

    def _client_for(user):
        client = APIClient()
        client.credentials(HTTP_AUTHORIZATION=f"Bearer {token_for(user)}")
        return client

    return _client_for


# =============================================================================
# WebSocket Fixtures
# =============================================================================


@pytest.fixture
def ws_application():
    """The websocket branch of the ASGI app (without the origin validator)."""
    return JWTAuthMiddleware(URLRouter(websocket_urlpatterns))


@pytest.fixture
def communicator_for(ws_application):
    """
    Build a WebsocketCommunicator for a user (token in the query string).

    Usage:
        communicator = communicator_for(alice)
        connected, _ = await communicator.connect()
    """

    def _communicator_for(user=None, token=None, subprotocols=None):
        if token is None and user is not None:
            token = token_for(user)
        if subprotocols is not None:
            return WebsocketCommunicator(
                ws_application, "/ws/chat/", subprotocols=subprotocols
            )
        path = f"/ws/chat/?token={token}" if token else "/ws/chat/"
        return WebsocketCommunicator(ws_application, path)

    return _communicator_for
