"""
Authentication services.

This module provides the AuthService class: the identity collaborator used
by both the REST API (signup/login) and the realtime handshake
(verify token -> user).

Related files:
    - models.py: User
    - views.py: Signup/login endpoints
    - chat/middleware.py: WebSocket handshake authentication

Security:
    - Passwords hashed with Django's configured hasher
    - Login failures use one message for unknown email and bad password
    - Tokens are simplejwt access/refresh pairs signed with SIMPLE_JWT settings
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from django.contrib.auth import get_user_model
from django.db import IntegrityError
from rest_framework.exceptions import AuthenticationFailed
from rest_framework_simplejwt.authentication import JWTAuthentication
from rest_framework_simplejwt.exceptions import InvalidToken, TokenError
from rest_framework_simplejwt.tokens import RefreshToken

from core.exceptions import AuthenticationError
from core.services import BaseService, ServiceResult

if TYPE_CHECKING:
    from authentication.models import User

logger = logging.getLogger(__name__)


class AuthService(BaseService):
    """
    Centralized authentication business logic.

    Usage:
        from authentication.services import AuthService

        result = AuthService.signup("Alice", "alice@example.com", "s3cret-pass")
        if result.success:
            tokens = AuthService.issue_tokens(result.data)

        user = AuthService.verify_token(tokens["token"])

    Error codes:
        EMAIL_EXISTS: Signup with an email that is already registered
        INVALID_CREDENTIALS: Unknown email or wrong password
    """

    @classmethod
    def signup(cls, name: str, email: str, password: str) -> ServiceResult[User]:
        """
        Create a new account.

        Args:
            name: Display name
            email: Login email (case-insensitive uniqueness)
            password: Raw password, hashed before storage

        Returns:
            ServiceResult with the created User
        """
        User = get_user_model()
        email = User.objects.normalize_email(email).strip()

        if User.objects.filter(email__iexact=email).exists():
            return ServiceResult.failure(
                "Email in use",
                error_code="EMAIL_EXISTS",
            )

        try:
            with cls.atomic():
                user = User.objects.create_user(
                    email=email,
                    password=password,
                    name=name,
                )
        except IntegrityError:
            # Lost a race with a concurrent signup for the same address
            return ServiceResult.failure(
                "Email in use",
                error_code="EMAIL_EXISTS",
            )

        cls.get_logger().info(f"Created user {user.id}")
        return ServiceResult.success(user)

    @classmethod
    def login(cls, email: str, password: str) -> ServiceResult[User]:
        """
        Check credentials.

        Returns:
            ServiceResult with the authenticated User, or INVALID_CREDENTIALS
        """
        User = get_user_model()
        try:
            user = User.objects.get_by_email(email)
        except User.DoesNotExist:
            return ServiceResult.failure(
                "Invalid credentials",
                error_code="INVALID_CREDENTIALS",
            )

        if not user.is_active or not user.check_password(password):
            return ServiceResult.failure(
                "Invalid credentials",
                error_code="INVALID_CREDENTIALS",
            )

        cls.get_logger().debug(f"User {user.id} logged in")
        return ServiceResult.success(user)

    @staticmethod
    def issue_tokens(user: User) -> dict[str, str]:
        """
        Issue a token pair for an identity.

        Returns:
            {"token": access, "access": access, "refresh": refresh}
            "token" is the credential presented at the realtime handshake.
        """
        refresh = RefreshToken.for_user(user)
        access = str(refresh.access_token)
        return {
            "token": access,
            "access": access,
            "refresh": str(refresh),
        }

    @staticmethod
    def verify_token(token: str | None) -> User:
        """
        Verify an access token and return the identity it names.

        Args:
            token: Raw bearer credential

        Returns:
            The active User the token was issued for

        Raises:
            AuthenticationError: Missing, malformed or expired token, or a
                token for an unknown/inactive user
        """
        if not token:
            raise AuthenticationError("No token", error_code="TOKEN_MISSING")

        jwt_auth = JWTAuthentication()
        try:
            validated = jwt_auth.get_validated_token(token)
            return jwt_auth.get_user(validated)
        except (InvalidToken, TokenError) as exc:
            logger.warning(f"Invalid JWT token: {exc}")
            raise AuthenticationError(
                "Invalid token", error_code="TOKEN_INVALID"
            ) from exc
        except AuthenticationFailed as exc:
            # User not found or inactive
            logger.warning(f"Token rejected for user: {exc.detail}")
            raise AuthenticationError(
                "Invalid token", error_code="USER_INACTIVE_OR_MISSING"
            ) from exc
