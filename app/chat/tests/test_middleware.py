"""
Tests for JWT authentication of WebSocket handshakes.

Features tested:
- Token extraction from query string and subprotocol
- User resolution for valid, invalid and missing tokens
"""

import pytest
from django.contrib.auth.models import AnonymousUser

from chat.middleware import (
    JWTAuthMiddleware,
    get_token_from_query,
    get_token_from_subprotocol,
    get_user_for_token,
)
from chat.tests.conftest import token_for


class TestTokenExtraction:
    """Tests for the token helpers."""

    def test_query_token(self):
        scope = {"query_string": b"token=abc&other=1"}

        assert get_token_from_query(scope) == "abc"

    def test_query_without_token(self):
        assert get_token_from_query({"query_string": b""}) is None
        assert get_token_from_query({}) is None

    def test_subprotocol_token(self):
        assert get_token_from_subprotocol({"subprotocols": ["jwt", "abc"]}) == "abc"

    @pytest.mark.parametrize("subprotocols", [[], ["jwt"], ["graphql-ws", "abc"]])
    def test_subprotocol_without_token(self, subprotocols):
        assert get_token_from_subprotocol({"subprotocols": subprotocols}) is None


@pytest.mark.asyncio
@pytest.mark.django_db(transaction=True)
class TestUserResolution:
    """Tests for get_user_for_token() and JWTAuthMiddleware."""

    async def test_valid_token_resolves_user(self, alice):
        user = await get_user_for_token(token_for(alice))

        assert user.pk == alice.pk

    @pytest.mark.parametrize("token", [None, "", "garbage"])
    async def test_bad_token_is_anonymous(self, token):
        """
        Missing or invalid tokens resolve to AnonymousUser, never an error.

        Why it matters: the consumer closes with 4001 based on this.
        """
        user = await get_user_for_token(token)

        assert isinstance(user, AnonymousUser)

    async def test_middleware_sets_scope_user(self, alice):
        seen = {}

        async def inner(scope, receive, send):
            seen["user"] = scope["user"]

        middleware = JWTAuthMiddleware(inner)
        scope = {"type": "websocket", "query_string": f"token={token_for(alice)}".encode()}

        await middleware(scope, None, None)

        assert seen["user"].pk == alice.pk
        assert "user" not in scope
