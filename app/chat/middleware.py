"""
WebSocket authentication middleware.

Provides JWT authentication for WebSocket connections.
Supports token via query string or subprotocol.

Related files:
    - routing.py: WebSocket URL patterns
    - consumers.py: WebSocket handlers
    - config/asgi.py: ASGI configuration

Token Passing Methods:
    1. Query string: ws://host/ws/chat/?token=<jwt_token>
    2. Subprotocol: Sec-WebSocket-Protocol: jwt, <jwt_token>

Usage in config/asgi.py:
    from chat.middleware import JWTAuthMiddleware

    application = ProtocolTypeRouter({
        "websocket": JWTAuthMiddleware(
            URLRouter(websocket_urlpatterns)
        ),
    })
"""

from __future__ import annotations

import logging
from urllib.parse import parse_qs

from channels.db import database_sync_to_async
from channels.middleware import BaseMiddleware
from django.contrib.auth.models import AnonymousUser

from authentication.services import AuthService
from core.exceptions import AuthenticationError

logger = logging.getLogger(__name__)

SUBPROTOCOL = "jwt"


def get_token_from_query(scope) -> str | None:
    """Extract token from the query string."""
    query_string = scope.get("query_string", b"").decode()
    token_list = parse_qs(query_string).get("token", [])
    return token_list[0] if token_list else None


def get_token_from_subprotocol(scope) -> str | None:
    """
    Extract token from WebSocket subprotocol.

    Expects: Sec-WebSocket-Protocol: jwt, <token>
    """
    subprotocols = scope.get("subprotocols", [])
    if len(subprotocols) >= 2 and subprotocols[0] == SUBPROTOCOL:
        return subprotocols[1]
    return None


@database_sync_to_async
def get_user_for_token(token: str | None):
    """
    Validate a JWT access token and load its user.

    Returns:
        User instance if valid, AnonymousUser otherwise
    """
    try:
        return AuthService.verify_token(token)
    except AuthenticationError as exc:
        logger.warning(f"WebSocket authentication failed: {exc.error_code}")
        return AnonymousUser()


class JWTAuthMiddleware(BaseMiddleware):
    """
    JWT authentication middleware for WebSocket connections.

    Extracts JWT token from query string or subprotocol, validates it, and
    attaches the user to scope["user"]. Rejection itself is the consumer's
    job (it closes with 4001 before accepting).

    Token sources (in order of precedence):
        1. Query string: ?token=<jwt_token>
        2. Subprotocol: Sec-WebSocket-Protocol: jwt, <jwt_token>
    """

    async def __call__(self, scope, receive, send):
        token = get_token_from_query(scope) or get_token_from_subprotocol(scope)
        scope = dict(scope, user=await get_user_for_token(token))
        return await super().__call__(scope, receive, send)
