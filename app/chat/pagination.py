"""
Pagination classes for chat API.

- MessageCursorPagination: For message history (oldest first)

Cursor-based pagination advantages:
- Stable results while new messages arrive
- No offset calculation needed

Design Decisions:
    - Messages ordered oldest-first for natural reading flow
    - Cursors encode (created_at, id) for stability
    - Conversation lists are not paginated (ordering uses a nullable
      annotation that cursors cannot encode)
"""

from rest_framework.pagination import CursorPagination

from chat.constants import MESSAGE_CONFIG


class MessageCursorPagination(CursorPagination):
    """
    Cursor pagination for message history.

    Query parameters:
        cursor: Encoded cursor for position
        page_size: Number of messages (optional override)
    """

    page_size = MESSAGE_CONFIG.HISTORY_PAGE_SIZE
    max_page_size = MESSAGE_CONFIG.HISTORY_MAX_PAGE_SIZE
    page_size_query_param = "page_size"
    ordering = ("created_at", "id")
    cursor_query_param = "cursor"
