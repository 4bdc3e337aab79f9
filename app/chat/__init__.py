"""
Chat app for real-time group messaging.

This app handles:
- Group conversations joined by invitation
- Message sending and history
- WebSocket real-time updates (presence, typing, invites)

Related apps:
    - authentication: User model and JWT verification

WebSocket Support:
    Uses Django Channels for real-time communication.
    See consumers.py for WebSocket handlers.
    See routing.py for WebSocket URL patterns.
    See realtime/ for presence, rooms and event payloads.

Usage:
    from chat.services import ConversationService, MessageService

    # Create conversation
    conversation, invitations = ConversationService.create_group(
        creator=user,
        name="Weekend trip",
        invitee_ids=[other_user.id],
    ).data

    # Send message
    message = MessageService.send_message(
        conversation_id=conversation.id,
        sender=user,
        content="Hello!",
    ).data
"""
