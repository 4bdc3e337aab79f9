"""
Django admin configuration for chat models.

Provides admin interfaces for:
- Conversation management
- Invitation review
- Message moderation
"""

from django.contrib import admin

from chat.models import Conversation, GroupInvitation, Message, Participant


class ParticipantInline(admin.TabularInline):
    """Inline display of members in conversation admin."""

    model = Participant
    extra = 0
    readonly_fields = ["created_at"]
    raw_id_fields = ["user"]


@admin.register(Conversation)
class ConversationAdmin(admin.ModelAdmin):
    """Admin interface for Conversation model."""

    list_display = [
        "id",
        "name",
        "created_by",
        "member_count",
        "created_at",
        "last_message_at",
    ]
    list_filter = ["created_at"]
    search_fields = ["name", "id"]
    readonly_fields = ["created_at", "updated_at", "last_message_at"]
    raw_id_fields = ["created_by"]
    inlines = [ParticipantInline]
    ordering = ["-created_at"]

    @admin.display(description="Members")
    def member_count(self, obj: Conversation) -> int:
        return obj.participants.count()


@admin.register(GroupInvitation)
class GroupInvitationAdmin(admin.ModelAdmin):
    """Admin interface for GroupInvitation model."""

    list_display = [
        "id",
        "conversation",
        "inviter",
        "invitee",
        "status",
        "created_at",
        "expires_at",
    ]
    list_filter = ["status", "created_at"]
    search_fields = ["invitee__email", "inviter__email", "conversation__name"]
    readonly_fields = ["created_at", "updated_at", "responded_at"]
    raw_id_fields = ["conversation", "inviter", "invitee"]
    ordering = ["-created_at"]


@admin.register(Message)
class MessageAdmin(admin.ModelAdmin):
    """Admin interface for Message model."""

    list_display = [
        "id",
        "conversation",
        "sender",
        "content_preview",
        "created_at",
    ]
    list_filter = ["created_at"]
    search_fields = ["content", "sender__email"]
    readonly_fields = ["created_at", "updated_at", "client_id"]
    raw_id_fields = ["conversation", "sender"]
    ordering = ["-created_at"]

    @admin.display(description="Content Preview")
    def content_preview(self, obj: Message) -> str:
        """Return truncated content for list display."""
        max_length = 50
        if len(obj.content) > max_length:
            return obj.content[:max_length] + "..."
        return obj.content
