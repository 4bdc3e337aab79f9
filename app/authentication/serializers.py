"""
Authentication serializers.

Serializers:
    UserSerializer: Public user shape {id, name, email}
    SignupSerializer: Signup request validation
    LoginSerializer: Login request validation
    AuthResponseSerializer: Token + user response (schema only)
"""

from django.contrib.auth import get_user_model
from django.contrib.auth.password_validation import validate_password
from rest_framework import serializers

User = get_user_model()


class UserSerializer(serializers.ModelSerializer):
    """
    Serializer for User model (read operations).

    Used for the auth responses, /auth/me/, user search and the participant
    lists embedded in conversations.
    """

    class Meta:
        model = User
        fields = ["id", "name", "email"]
        read_only_fields = fields


class SignupSerializer(serializers.Serializer):
    """Validate a signup request."""

    name = serializers.CharField(max_length=150, allow_blank=True, default="")
    email = serializers.EmailField()
    password = serializers.CharField(
        write_only=True,
        min_length=8,
        style={"input_type": "password"},
        help_text="Password must be at least 8 characters.",
    )

    def validate_email(self, value):
        return value.lower().strip()

    def validate_password(self, value):
        validate_password(value)
        return value


class LoginSerializer(serializers.Serializer):
    """Validate a login request."""

    email = serializers.EmailField()
    password = serializers.CharField(
        write_only=True,
        style={"input_type": "password"},
    )


class AuthResponseSerializer(serializers.Serializer):
    """Response returned by signup and login."""

    token = serializers.CharField(help_text="Access token (realtime handshake credential)")
    access = serializers.CharField()
    refresh = serializers.CharField()
    user = UserSerializer()
