"""Tests for the demo mode key-value stores and the session store."""

import json

import pytest

from nexora.models.finance import Account
from nexora.services.storage import (
    InMemoryStore,
    JsonFileStore,
    SessionStore,
    StorageError,
)
from nexora.services.storage.session import SESSION_KEY, TOKEN_KEY


class TestInMemoryStore:
    """Tests for InMemoryStore."""

    def test_set_get_remove(self):
        """Test the basic key lifecycle."""
        store = InMemoryStore()
        assert store.get("k") is None
        store.set("k", "v")
        assert store.get("k") == "v"
        store.remove("k")
        assert store.get("k") is None

    def test_remove_missing_key_is_noop(self):
        """Test removing an absent key."""
        InMemoryStore().remove("missing")


class TestJsonFileStore:
    """Tests for the durable JSON file store."""

    def test_values_survive_a_new_instance(self, tmp_path):
        """Test durability across store instances (process restarts)."""
        path = tmp_path / "nested" / "store.json"
        JsonFileStore(path).set("nexora_users", "[]")

        reopened = JsonFileStore(path)
        assert reopened.get("nexora_users") == "[]"
        assert json.loads(path.read_text()) == {"nexora_users": "[]"}

    def test_missing_file_reads_as_empty(self, tmp_path):
        """Test that a fresh install has nothing stored."""
        assert JsonFileStore(tmp_path / "absent.json").get("k") is None

    def test_corrupt_file_raises_storage_error(self, tmp_path):
        """Test that unreadable JSON is reported, not ignored."""
        path = tmp_path / "store.json"
        path.write_text("{not json")
        with pytest.raises(StorageError):
            JsonFileStore(path).get("k")

    def test_non_object_file_raises_storage_error(self, tmp_path):
        """Test that a JSON list at the top level is rejected."""
        path = tmp_path / "store.json"
        path.write_text("[1, 2]")
        with pytest.raises(StorageError):
            JsonFileStore(path).set("k", "v")

    def test_remove(self, tmp_path):
        """Test key removal is persisted."""
        store = JsonFileStore(tmp_path / "store.json")
        store.set("a", "1")
        store.set("b", "2")
        store.remove("a")
        assert JsonFileStore(store.path).get("a") is None
        assert JsonFileStore(store.path).get("b") == "2"


class TestSessionStore:
    """Tests for the persisted session snapshot."""

    def test_save_and_read_back(self, store, member):
        """Test that the saved account is returned by current()."""
        session = SessionStore(store)
        session.save(member, "tok-123")

        assert session.current() == member
        assert session.token == "tok-123"

    def test_save_without_token_drops_old_token(self, store, member):
        """Test that demo sign-in leaves no stale bearer token."""
        session = SessionStore(store)
        session.save(member, "old")
        session.save(member)
        assert session.token is None
        assert store.get(TOKEN_KEY) is None

    def test_clear(self, store, member):
        """Test logout clears snapshot and token."""
        session = SessionStore(store)
        session.save(member, "tok")
        session.clear()
        assert session.current() is None
        assert session.token is None

    def test_corrupted_snapshot_means_signed_out(self, store):
        """Test that current() never raises on garbage."""
        store.set(SESSION_KEY, "{broken")
        assert SessionStore(store).current() is None

    def test_snapshot_missing_fields_means_signed_out(self, store):
        """Test that a snapshot failing validation reads as absent."""
        store.set(SESSION_KEY, json.dumps({"name": "No id"}))
        assert SessionStore(store).current() is None

    def test_session_survives_restart(self, tmp_path):
        """Test a new SessionStore over the same file sees the session."""
        path = tmp_path / "store.json"
        account = Account(id="u-1", name="Asha", email="asha@nexora.dev")
        SessionStore(JsonFileStore(path)).save(account)

        assert SessionStore(JsonFileStore(path)).current() == account
