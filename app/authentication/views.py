"""
Authentication views.

This module provides API views for:
- Signup (create account, issue tokens)
- Login (check credentials, issue tokens)
- Current user lookup

Related files:
    - serializers.py: Request/response serialization
    - services.py: Business logic (AuthService)
    - urls.py: URL routing

Note:
    Token refresh is handled by simplejwt's TokenRefreshView, mounted in
    urls.py at /api/v1/auth/token/refresh/.

    Both signup and login return the same body:
        {
            "token": "<access>",
            "access": "<access>",
            "refresh": "<refresh>",
            "user": {"id": 1, "name": "Alice", "email": "alice@example.com"}
        }
"""

from drf_spectacular.utils import extend_schema, OpenApiResponse
from rest_framework import status
from rest_framework.permissions import AllowAny, IsAuthenticated
from rest_framework.response import Response
from rest_framework.views import APIView

from authentication.serializers import (
    AuthResponseSerializer,
    LoginSerializer,
    SignupSerializer,
    UserSerializer,
)
from authentication.services import AuthService


def _auth_response(user, status_code=status.HTTP_200_OK):
    """Build the token + user body shared by signup and login."""
    tokens = AuthService.issue_tokens(user)
    return Response(
        {**tokens, "user": UserSerializer(user).data},
        status=status_code,
    )


class SignupView(APIView):
    """
    API view for account creation.

    POST: Create an account and return a token pair

    URL: /api/v1/auth/signup/

    Request body:
        {
            "name": "Alice",
            "email": "alice@example.com",
            "password": "a-long-password"
        }
    """

    permission_classes = [AllowAny]
    authentication_classes = []

    @extend_schema(
        summary="Sign up",
        description="Create an account. Returns the same body as login.",
        tags=["Auth"],
        request=SignupSerializer,
        responses={
            201: AuthResponseSerializer,
            400: OpenApiResponse(description="Invalid input or email in use"),
        },
    )
    def post(self, request):
        serializer = SignupSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        result = AuthService.signup(
            name=serializer.validated_data["name"],
            email=serializer.validated_data["email"],
            password=serializer.validated_data["password"],
        )
        if not result.success:
            raise result.to_exception()

        return _auth_response(result.data, status_code=status.HTTP_201_CREATED)


class LoginView(APIView):
    """
    API view for email/password login.

    POST: Check credentials and return a token pair

    URL: /api/v1/auth/login/
    """

    permission_classes = [AllowAny]
    authentication_classes = []

    @extend_schema(
        summary="Log in",
        description=(
            "Exchange email and password for a token pair. "
            "The `token` field is the credential for the realtime handshake."
        ),
        tags=["Auth"],
        request=LoginSerializer,
        responses={
            200: AuthResponseSerializer,
            400: OpenApiResponse(description="Invalid credentials"),
        },
    )
    def post(self, request):
        serializer = LoginSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        result = AuthService.login(
            email=serializer.validated_data["email"],
            password=serializer.validated_data["password"],
        )
        if not result.success:
            raise result.to_exception()

        return _auth_response(result.data)


class MeView(APIView):
    """
    API view for the authenticated user.

    GET: Return {id, name, email} of the token's owner

    URL: /api/v1/auth/me/
    """

    permission_classes = [IsAuthenticated]

    @extend_schema(
        summary="Current user",
        tags=["Auth"],
        responses={200: UserSerializer},
    )
    def get(self, request):
        return Response(UserSerializer(request.user).data)
