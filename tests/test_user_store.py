"""
Tests for the SQLite User Store.
"""

import sqlite3

import pytest

from print_queue_backend.errors import NotFoundError


def _count_users(db_path):
    conn = sqlite3.connect(str(db_path))
    try:
        return conn.execute("SELECT COUNT(*) FROM users").fetchone()[0]
    finally:
        conn.close()


class TestSyncUser:
    def test_creates_non_admin_user(self, user_store):
        user_id = user_store.sync_user("user_alice", "alice@example.com", "Alice")
        user = user_store.get_by_external_id("user_alice")

        assert user.id == user_id
        assert user.email == "alice@example.com"
        assert user.display_name == "Alice"
        assert user.is_admin is False

    def test_is_idempotent_and_refreshes_profile(self, user_store, db_path):
        first = user_store.sync_user("user_alice", "alice@example.com", "Alice")
        created_at = user_store.get_by_external_id("user_alice").created_at

        second = user_store.sync_user("user_alice", "alice@new.example.com", "Alice B.")
        user = user_store.get_by_external_id("user_alice")

        assert first == second
        assert user.email == "alice@new.example.com"
        assert user.display_name == "Alice B."
        assert user.created_at == created_at
        assert _count_users(db_path) == 1

    def test_sync_keeps_admin_flag(self, user_store):
        user_store.sync_user("user_alice", "alice@example.com", "Alice")
        user_store.set_admin("user_alice", True)
        user_store.sync_user("user_alice", "alice@example.com", "Alice")
        assert user_store.is_admin("user_alice") is True


class TestAdminFlag:
    def test_unknown_user_is_not_admin(self, user_store):
        assert user_store.is_admin("nobody") is False

    def test_set_admin_round_trip(self, user_store):
        user_id = user_store.sync_user("user_alice", "alice@example.com", "Alice")

        assert user_store.set_admin("user_alice", True) == user_id
        assert user_store.is_admin("user_alice") is True

        user_store.set_admin("user_alice", False)
        assert user_store.is_admin("user_alice") is False

    def test_set_admin_unknown_user(self, user_store):
        with pytest.raises(NotFoundError) as exc_info:
            user_store.set_admin("ghost-id", True)
        assert exc_info.value.status_code == 404

    def test_get_unknown_user(self, user_store):
        with pytest.raises(NotFoundError):
            user_store.get_by_external_id("ghost-id")
