"""
URL configuration for chat API.

URL Structure:
    Users:
        /users/                                  GET

    Conversations:
        /conversations/                          GET, POST
        /conversations/{id}/                     GET, DELETE
        /conversations/{id}/invitations/         POST

    Messages:
        /conversations/{id}/messages/            GET, POST

    Invitations:
        /invitations/pending/                    GET
        /invitations/{id}/respond/               POST

All URLs are prefixed with /api/v1/chat/ in the main URL configuration.
"""

from django.urls import include, path
from rest_framework.routers import DefaultRouter

from chat.views import (
    ConversationViewSet,
    InvitationViewSet,
    MessageViewSet,
    UserSearchView,
)

router = DefaultRouter()
router.register(r"conversations", ConversationViewSet, basename="conversation")
router.register(r"invitations", InvitationViewSet, basename="invitation")

app_name = "chat"

urlpatterns = [
    path("", include(router.urls)),
    path("users/", UserSearchView.as_view(), name="user-search"),
    # Nested routes for messages
    path(
        "conversations/<int:conversation_pk>/messages/",
        MessageViewSet.as_view({"get": "list", "post": "create"}),
        name="conversation-message-list",
    ),
]
