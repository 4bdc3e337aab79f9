"""
Tests for chat app.

This package contains test modules for:
- test_models.py: Conversation, Participant, GroupInvitation, Message
- test_services.py: Conversation, invitation and message services
- test_views.py: REST API endpoint tests
- test_consumers.py: WebSocket consumer tests
- test_middleware.py: Handshake authentication
- test_gateway.py, test_rooms.py, test_presence.py: Realtime bookkeeping
- test_publishers.py: Pushes triggered by REST actions
- test_client_session.py: Client-side session controller
- test_tasks.py: Celery task tests

Usage:
    pytest chat/tests/
    pytest chat/tests/test_consumers.py
"""
