"""
Authentication application.

This app is the identity collaborator for chat: email/password accounts,
JWT issue on signup/login, and token verification for the realtime
handshake.

Key components:
    - User model: Custom email-based user with a display name
    - AuthService: signup, login, issue_tokens, verify_token

Usage:
    from authentication.models import User
    from authentication.services import AuthService
"""
