"""
Tests for the presence registry.

Features tested:
- Reference counting across multiple connections of one user
- Display info updates (register)
- Listing connected users

Design Decisions:
- Presence is in-process state with no database writes
- A user is online while at least one connection is live
"""

from chat.realtime.presence import PresenceEntry, PresenceRegistry


class TestPresenceRegistryAttachDetach:
    """Tests for attach() and detach()."""

    def test_first_attach_reports_first_connection(self):
        """
        attach() returns True only for the first live connection.

        Why it matters: user_connected is broadcast once per user, not per tab.
        """
        registry = PresenceRegistry()

        assert registry.attach(7, name="Alice", email="alice@example.com") is True
        assert registry.attach(7, name="Alice", email="alice@example.com") is False
        assert registry.get(7).connections == 2

    def test_user_stays_online_until_last_detach(self):
        """
        Closing one of two connections keeps the user online.

        Why it matters: a second tab closing must not mark the user offline.
        """
        registry = PresenceRegistry()
        registry.attach(7)
        registry.attach(7)

        assert registry.detach(7) is False
        assert registry.is_online(7) is True
        assert registry.detach(7) is True
        assert registry.is_online(7) is False
        assert 7 not in registry

    def test_detach_unknown_user_is_ignored(self):
        registry = PresenceRegistry()

        assert registry.detach(99) is False
        assert len(registry) == 0

    def test_reattach_keeps_registered_name(self):
        """A second connection does not overwrite a name set via register."""
        registry = PresenceRegistry()
        registry.attach(7, name="Alice", email="alice@example.com")
        registry.upsert(7, name="Ali")

        registry.attach(7, name="Alice", email="alice@example.com")

        assert registry.get(7).name == "Ali"


class TestPresenceRegistryUpsert:
    """Tests for upsert()."""

    def test_updates_connected_user(self):
        registry = PresenceRegistry()
        registry.attach(7, name="Alice", email="alice@example.com")

        entry = registry.upsert(7, name="Alice B.")

        assert entry.name == "Alice B."
        assert entry.email == "alice@example.com"

    def test_ignores_users_without_connection(self):
        """
        upsert() never creates an entry.

        Why it matters: registering must not make an offline user look online.
        """
        registry = PresenceRegistry()

        assert registry.upsert(8, name="Ghost") is None
        assert registry.is_online(8) is False


class TestPresenceRegistryListing:
    """Tests for list(), remove() and clear()."""

    def test_list_returns_connected_entries(self):
        registry = PresenceRegistry()
        registry.attach(1, name="Alice")
        registry.attach(2, name="Bob")

        assert sorted(entry.user_id for entry in registry.list()) == [1, 2]

    def test_remove_and_clear(self):
        registry = PresenceRegistry()
        registry.attach(1)
        registry.attach(2)

        registry.remove(1)
        assert 1 not in registry

        registry.clear()
        assert len(registry) == 0

    def test_entry_wire_shape(self):
        entry = PresenceEntry(user_id=3, name="Carol", email="c@example.com", connections=1)

        assert entry.to_dict() == {
            "userId": 3,
            "name": "Carol",
            "email": "c@example.com",
            "online": True,
        }
