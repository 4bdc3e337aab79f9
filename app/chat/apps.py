"""
Chat application configuration.

This app provides the chat system with:
- Invitation-based group conversations
- Message history and realtime delivery
- Presence and typing indicators
"""

from django.apps import AppConfig


class ChatConfig(AppConfig):
    """Configuration for the chat application."""

    default_auto_field = "django.db.models.BigAutoField"
    name = "chat"
    verbose_name = "Chat"
