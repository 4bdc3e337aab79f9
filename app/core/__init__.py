"""
Core Application - Infrastructure & Base Classes

Generic building blocks shared by the authentication and chat apps. Nothing
here knows about conversations or presence.

Models (import from core.models):
    - BaseModel: Abstract model with timestamps (created_at, updated_at)

Services (import from core.services):
    - BaseService: Base class for service layer
    - ServiceResult: Standard result wrapper for success/failure handling

Exceptions (import from core.exceptions):
    - BaseApplicationError: Base exception with error codes
    - ValidationError, AuthenticationError, PermissionDeniedError,
      NotFoundError, ConflictError, PersistenceError

REST plumbing:
    - core.exception_handler.api_exception_handler: {"error": ...} bodies
    - core.views.health_check: /health/ endpoint

Protocols (import from core.protocols):
    - RealtimeTransport: What the client session needs from a socket
"""
