"""
Realtime core for chat: presence, rooms and event fan-out.

Modules:
    presence: PresenceRegistry (who is connected)
    rooms: RoomMembershipTracker (which connection joined which room)
    events: Event names, RealtimeEvent and payload builders
    gateway: RealtimeGateway tying the above to the channel layer
    publishers: Sync helpers used by REST views to push events
"""
