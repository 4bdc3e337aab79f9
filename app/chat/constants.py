"""
Constants and configuration for chat module features.

This module centralizes configuration values for:
- Message operations (content limits, history paging)
- Conversation creation and user search
- Invitation lifetime
- Realtime channel (close codes, room naming, timeouts)

Values marked "overridable" are read from Django settings at call time.
Import example:
    from chat.constants import MESSAGE_CONFIG, INVITATION_CONFIG
"""

from datetime import timedelta
from typing import Final

from django.conf import settings


# =============================================================================
# Message Configuration
# =============================================================================


class MESSAGE_CONFIG:
    """Configuration for message operations."""

    # Content limits
    MAX_CONTENT_LENGTH: Final[int] = 10000  # Characters
    MAX_CLIENT_ID_LENGTH: Final[int] = 64

    # History paging
    HISTORY_PAGE_SIZE: Final[int] = 50
    HISTORY_MAX_PAGE_SIZE: Final[int] = 200


# =============================================================================
# Conversation Configuration
# =============================================================================


class CONVERSATION_CONFIG:
    """Configuration for conversation creation and user lookup."""

    DEFAULT_NAME: Final[str] = "New Group"
    MAX_NAME_LENGTH: Final[int] = 100

    # GET users/?q= never returns more than this
    USER_SEARCH_LIMIT: Final[int] = 50


# =============================================================================
# Invitation Configuration
# =============================================================================


class INVITATION_CONFIG:
    """Configuration for group invitations."""

    DEFAULT_TTL_DAYS: Final[int] = 7

    @staticmethod
    def ttl() -> timedelta:
        """Invitation lifetime (overridable: INVITATION_TTL_DAYS)."""
        days = getattr(settings, "INVITATION_TTL_DAYS", INVITATION_CONFIG.DEFAULT_TTL_DAYS)
        return timedelta(days=days)


# =============================================================================
# Realtime Configuration
# =============================================================================


class REALTIME_CONFIG:
    """Configuration for the WebSocket gateway."""

    # Close code sent when the handshake token is missing or invalid
    CLOSE_CODE_UNAUTHENTICATED: Final[int] = 4001

    # Personal room convention, e.g. "user:42"
    PERSONAL_ROOM_PREFIX: Final[str] = "user:"

    # Channel-layer group every connection joins, used for presence broadcasts
    EVERYONE_GROUP: Final[str] = "presence.everyone"

    # Channel-layer group names must be shorter than 100 characters
    GROUP_NAME_PREFIX: Final[str] = "room."
    GROUP_NAME_MAX_LENGTH: Final[int] = 99

    # Client-side typing throttle (seconds between typing frames per room)
    TYPING_THROTTLE_SECONDS: Final[float] = 1.0

    DEFAULT_PERSIST_TIMEOUT_SECONDS: Final[float] = 10.0

    @staticmethod
    def persist_timeout() -> float:
        """Bound on send_message persistence (overridable: REALTIME_PERSIST_TIMEOUT_SECONDS)."""
        return float(
            getattr(
                settings,
                "REALTIME_PERSIST_TIMEOUT_SECONDS",
                REALTIME_CONFIG.DEFAULT_PERSIST_TIMEOUT_SECONDS,
            )
        )

    @staticmethod
    def personal_room(user_id) -> str:
        """Room id of a user's personal room."""
        return f"{REALTIME_CONFIG.PERSONAL_ROOM_PREFIX}{user_id}"
