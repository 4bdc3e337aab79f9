"""
Protocol definitions for pluggable infrastructure.

Protocols define contracts that collaborators must fulfill, enabling:
- Duck typing with static type checking
- Dependency inversion (depend on abstractions, not concretions)
- Easy fakes in tests

Available Protocols:
    RealtimeTransport: The socket a client session drives

Usage:
    from core.protocols import RealtimeTransport

    class WebsocketTransport:
        def open(self, token): ...
        def send(self, frame): ...
        def close(self): ...

    # WebsocketTransport is a valid RealtimeTransport
    # even without explicit inheritance (duck typing)
    transport: RealtimeTransport = WebsocketTransport()

Note:
    - @runtime_checkable allows isinstance() checks
    - The transport only moves frames; reconnect policy, room replay and
      de-duplication live in chat.client_session.ClientSession
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    from typing import Any


@runtime_checkable
class RealtimeTransport(Protocol):
    """
    Protocol for a bidirectional realtime connection.

    The transport reports back to its owner by calling the session's
    ``transport_opened()``, ``transport_closed()`` and ``receive(frame)``.

    Example:
        class FakeTransport:
            def __init__(self):
                self.sent = []

            def open(self, token): ...
            def send(self, frame):
                self.sent.append(frame)
            def close(self): ...
    """

    def open(self, token: str) -> None:
        """
        Start connecting with a bearer credential.

        Args:
            token: Access token presented at the handshake
        """
        ...

    def send(self, frame: dict[str, Any]) -> None:
        """
        Send one {"type", "data"} frame.

        Args:
            frame: JSON-serializable frame
        """
        ...

    def close(self) -> None:
        """Close the connection. Must not trigger a reconnect."""
        ...
