import logging
import sqlite3
from pathlib import Path
from typing import Optional
from uuid import uuid4

from .database import DEFAULT_DB_PATH, deserialize_datetime, serialize_datetime, connect, utcnow
from .errors import NotFoundError
from .models import User

logger = logging.getLogger(__name__)


class UserStore:
    """
    Local mirror of identity-provider users, keyed by their external ID.

    Users are created on first sync and never deleted. The admin flag is only
    changed through set_admin, which is not access-controlled here.
    """

    def __init__(self, db_path: Path = DEFAULT_DB_PATH):
        self.db_path = Path(db_path)
        self._init_db()

    def _init_db(self):
        """Initialize the database schema if it doesn't exist."""
        with connect(self.db_path) as conn:
            conn.execute("""
                CREATE TABLE IF NOT EXISTS users (
                    id TEXT PRIMARY KEY,
                    external_id TEXT UNIQUE NOT NULL,
                    email TEXT NOT NULL,
                    display_name TEXT NOT NULL,
                    is_admin BOOLEAN NOT NULL DEFAULT 0,
                    created_at TEXT NOT NULL
                )
            """)

    def sync_user(self, external_id: str, email: str, display_name: str) -> str:
        """
        Create the user if they don't exist, otherwise refresh email and name.

        Safe to call on every authenticated request.

        Returns:
            The internal user ID
        """
        with connect(self.db_path) as conn:
            # one row per external_id, even under concurrent syncs
            conn.execute("""
                INSERT INTO users (id, external_id, email, display_name, is_admin, created_at)
                VALUES (?, ?, ?, ?, 0, ?)
                ON CONFLICT(external_id) DO UPDATE SET
                    email = excluded.email,
                    display_name = excluded.display_name
            """, (uuid4().hex, external_id, email, display_name, serialize_datetime(utcnow())))

            row = conn.execute(
                "SELECT id FROM users WHERE external_id = ?", (external_id,)
            ).fetchone()

        logger.debug("Synced user %s", external_id)
        return row["id"]

    def get_by_external_id(self, external_id: str) -> User:
        user = self._find(external_id)
        if user is None:
            raise NotFoundError("User", external_id)
        return user

    def is_admin(self, external_id: str) -> bool:
        """Admin flag for a user; unknown users are never admins."""
        user = self._find(external_id)
        return bool(user and user.is_admin)

    def set_admin(self, external_id: str, is_admin: bool) -> str:
        """
        Grant or revoke admin rights.

        Raises:
            NotFoundError: If no user has this external ID
        """
        with connect(self.db_path) as conn:
            row = conn.execute(
                "SELECT id FROM users WHERE external_id = ?", (external_id,)
            ).fetchone()
            if not row:
                raise NotFoundError("User", external_id)

            conn.execute(
                "UPDATE users SET is_admin = ? WHERE id = ?",
                (1 if is_admin else 0, row["id"]),
            )

        logger.info("Set admin=%s for user %s", is_admin, external_id)
        return row["id"]

    def _find(self, external_id: str) -> Optional[User]:
        with connect(self.db_path) as conn:
            row = conn.execute(
                "SELECT * FROM users WHERE external_id = ?", (external_id,)
            ).fetchone()
        return self._row_to_user(row) if row else None

    def _row_to_user(self, row: sqlite3.Row) -> User:
        return User(
            id=row["id"],
            external_id=row["external_id"],
            email=row["email"],
            display_name=row["display_name"],
            is_admin=bool(row["is_admin"]),
            created_at=deserialize_datetime(row["created_at"]),
        )
