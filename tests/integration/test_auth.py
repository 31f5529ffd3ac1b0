"""
Integration tests for the session simulator.

Tests cover:
- Sign in, sign up and sign out against the seeded profiles
- update_user and the USER_UPDATED notification
- Single-listener replacement and unsubscribe
- Malformed persisted sessions
- Admin account creation
"""

import pytest

from localbase import Settings, create_engine
from localbase.auth import AuthChangeEvent
from localbase.errors import StorageError
from localbase.storage import MemoryStorage


class TestAuthClient:
    """Tests for AuthClient through a seeded engine."""

    @pytest.fixture
    def storage(self):
        """Create storage."""
        return MemoryStorage()

    @pytest.fixture
    def engine(self, storage):
        """Create seeded engine."""
        return create_engine(Settings(storage_backend="memory"), storage=storage)

    @pytest.fixture
    def auth_events(self, engine):
        """Record auth notifications."""
        events = []
        engine.auth.on_auth_state_change(lambda event, session: events.append((event, session)))
        return events

    def test_signed_out_initially(self, engine):
        """A fresh engine has no session."""
        assert engine.auth.get_session().data == {"session": None}
        assert engine.auth.get_user().data == {"user": None}

    def test_sign_in(self, engine, storage, auth_events):
        """Signing in with a known email starts a session."""
        result = engine.auth.sign_in_with_password("user@example.com", "whatever")

        assert result.error is None
        assert result.data["user"]["id"] == "user-123"
        session = result.data["session"]
        assert session["token_type"] == "bearer"
        assert session["access_token"].startswith("local-token-")
        assert storage.get_item("localbase_session") is not None
        assert engine.auth.get_user().data["user"]["email"] == "user@example.com"
        assert [e for e, _ in auth_events] == [AuthChangeEvent.SIGNED_IN]

    def test_sign_in_unknown_email(self, engine, auth_events):
        """Unknown emails fail without touching the session."""
        result = engine.auth.sign_in_with_password("nobody@example.com")

        assert result.data is None
        assert result.status == 400
        assert result.error.message == "Invalid login credentials"
        assert engine.auth.get_session().data["session"] is None
        assert auth_events == []

    def test_sign_up(self, engine):
        """sign_up creates a profile and a role row, then signs in."""
        inserts = []
        engine.subscribe("profiles", inserts.append, event="INSERT")
        engine.subscribe("user_roles", inserts.append, event="INSERT")

        result = engine.auth.sign_up("new@example.com", "secret")

        assert result.error is None
        user = result.data["user"]
        assert user["email"] == "new@example.com"
        assert user["role"] == "user"
        assert user["balance"] == 0
        assert user["id"].startswith("user-")

        roles = engine.table("user_roles").select("*").eq("user_id", user["id"]).execute().data
        assert [r["role"] for r in roles] == ["user"]
        assert [e.table for e in inserts] == ["profiles", "user_roles"]
        assert engine.auth.get_user().data["user"]["id"] == user["id"]

    def test_sign_up_existing_email(self, engine):
        """Registered emails cannot sign up again."""
        result = engine.auth.sign_up("user@example.com")

        assert result.status == 409
        assert result.error.message == "User already registered"
        assert engine.table("profiles").select("*").execute().count == 2

    def test_sign_out(self, engine, storage, auth_events):
        """sign_out clears the session and notifies with None."""
        engine.auth.sign_in_with_password("user@example.com")

        result = engine.auth.sign_out()

        assert result.error is None
        assert storage.get_item("localbase_session") is None
        assert auth_events[-1] == (AuthChangeEvent.SIGNED_OUT, None)

    def test_sign_out_when_signed_out(self, engine):
        """sign_out always succeeds."""
        assert engine.auth.sign_out().error is None

    def test_update_user_requires_session(self, engine):
        """update_user without a session is unauthorized."""
        result = engine.auth.update_user({"data": {"name": "x"}})

        assert result.status == 401
        assert result.status_text == "Unauthorized"
        assert result.error.message == "Not logged in"

    def test_update_user(self, engine, auth_events):
        """Metadata is merged and the session follows the profile."""
        updates = []
        engine.subscribe("profiles", updates.append, event="UPDATE")
        engine.auth.sign_in_with_password("user@example.com")

        engine.auth.update_user({"data": {"full_name": "Jane"}})
        result = engine.auth.update_user({"data": {"phone": "555"}, "password": "ignored"})

        user = result.data["user"]
        assert user["metadata"] == {"full_name": "Jane", "phone": "555"}
        assert "password" not in user
        assert engine.auth.get_user().data["user"]["metadata"]["phone"] == "555"
        assert auth_events[-1][0] == AuthChangeEvent.USER_UPDATED
        assert auth_events[-1][1]["user"]["metadata"]["phone"] == "555"
        assert len(updates) == 2

    def test_update_user_email(self, engine):
        """The email can be changed and used to sign in again."""
        engine.auth.sign_in_with_password("user@example.com")
        engine.auth.update_user({"email": "renamed@example.com"})
        engine.auth.sign_out()

        result = engine.auth.sign_in_with_password("renamed@example.com")

        assert result.data["user"]["id"] == "user-123"

    def test_update_user_missing_profile(self, engine):
        """A session whose profile vanished reports User not found."""
        engine.auth.sign_in_with_password("user@example.com")
        engine.table("profiles").delete().eq("id", "user-123").execute()

        result = engine.auth.update_user({"data": {"a": 1}})

        assert result.status == 404
        assert result.error.message == "User not found"

    def test_listener_is_replaced(self, engine):
        """Only the most recent listener is notified."""
        first, second = [], []
        engine.auth.on_auth_state_change(lambda e, s: first.append(e))
        engine.auth.on_auth_state_change(lambda e, s: second.append(e))

        engine.auth.sign_in_with_password("user@example.com")

        assert first == []
        assert second == [AuthChangeEvent.SIGNED_IN]

    def test_stale_unsubscribe_keeps_new_listener(self, engine):
        """Unsubscribing a replaced listener leaves the current one."""
        received = []
        old = engine.auth.on_auth_state_change(lambda e, s: None)
        engine.auth.on_auth_state_change(lambda e, s: received.append(e))

        old.unsubscribe()
        engine.auth.sign_in_with_password("user@example.com")

        assert received == [AuthChangeEvent.SIGNED_IN]

    def test_unsubscribe(self, engine):
        """An unsubscribed listener receives nothing."""
        received = []
        subscription = engine.auth.on_auth_state_change(lambda e, s: received.append(e))
        subscription.unsubscribe()

        engine.auth.sign_in_with_password("user@example.com")

        assert received == []

    def test_failing_listener(self, engine):
        """A raising listener does not fail the auth call."""

        def broken(event, session):
            raise RuntimeError("listener bug")

        engine.auth.on_auth_state_change(broken)

        result = engine.auth.sign_in_with_password("user@example.com")

        assert result.error is None
        assert engine.auth.get_session().data["session"] is not None

    def test_listener_gets_copy(self, engine):
        """Mutating the notified session does not change the stored one."""
        engine.auth.on_auth_state_change(lambda e, s: s["user"].update(email="hacked"))

        engine.auth.sign_in_with_password("user@example.com")

        assert engine.auth.get_user().data["user"]["email"] == "user@example.com"

    def test_malformed_session(self, engine, storage):
        """Unparseable session entries read as signed out."""
        storage.set_item("localbase_session", "{not json")
        assert engine.auth.get_session().data["session"] is None

        storage.set_item("localbase_session", '{"access_token": "x"}')
        assert engine.auth.get_user().data["user"] is None

    def test_unserializable_session_rejected(self, engine, storage):
        """Session writes follow the table rule: non-JSON values raise StorageError."""
        with pytest.raises(StorageError):
            engine.auth._write_session({"access_token": "t", "user": {"id": "u", "tags": {"a"}}})

        assert storage.get_item("localbase_session") is None

    def test_admin_create_user(self, engine, auth_events):
        """Admins create accounts with a role and leave the session alone."""
        result = engine.auth.admin.create_user(
            "staff@example.com",
            "pw",
            user_metadata={"role": "admin", "name": "Staff"},
        )

        assert result.status == 201
        user = result.data["user"]
        assert user["role"] == "admin"
        assert user["metadata"]["name"] == "Staff"
        roles = engine.table("user_roles").select("role").eq("user_id", user["id"]).execute().data
        assert roles == [{"role": "admin"}]
        assert engine.auth.get_session().data["session"] is None
        assert auth_events == []

    def test_admin_create_existing_user(self, engine):
        """Admin creation also rejects taken emails."""
        result = engine.auth.admin.create_user("admin@example.com")

        assert result.status == 409
        assert result.error.message == "User already exists"
