"""
SQLite database for persistent print job storage.

This module provides the Job Store: a SQLite-backed collection of print job
records plus the queries and mutations that create and transition them.
Jobs are never deleted; cancellation is a status value.
"""

import sqlite3
from contextlib import contextmanager
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Iterator, List, Optional
from uuid import uuid4

from .errors import NotFoundError
from .models import Job, JobStatus
from .utils import ensure_directory
from .workflow import INITIAL_STATUS


# Default database path
DEFAULT_DB_PATH = Path("data/print_queue.db")

_ONE_TICK = timedelta(microseconds=1)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def serialize_datetime(dt: datetime) -> str:
    """Serialize datetime to a fixed-width ISO string so text order is time order."""
    return dt.astimezone(timezone.utc).isoformat(timespec="microseconds")


def deserialize_datetime(s: str) -> datetime:
    """Deserialize ISO format string to datetime."""
    return datetime.fromisoformat(s)


def _next_timestamp(previous: datetime) -> datetime:
    """Current time, nudged forward so it is always later than previous."""
    now = utcnow()
    return now if now > previous else previous + _ONE_TICK


@contextmanager
def connect(db_path: Path) -> Iterator[sqlite3.Connection]:
    """Open a connection with WAL enabled, committing on success."""
    ensure_directory(db_path.parent)
    conn = sqlite3.connect(str(db_path), timeout=30.0)
    conn.row_factory = sqlite3.Row
    conn.execute("PRAGMA journal_mode=WAL")
    try:
        yield conn
        conn.commit()
    except Exception:
        conn.rollback()
        raise
    finally:
        conn.close()


class JobDatabase:
    """
    SQLite database for print job persistence.

    Every call opens its own connection, so each operation is an independent
    atomic unit. Concurrent status writes to the same job are last-write-wins.
    """

    def __init__(self, db_path: Path = DEFAULT_DB_PATH):
        self.db_path = Path(db_path)
        self._init_db()

    def _init_db(self) -> None:
        """Initialize database schema."""
        with connect(self.db_path) as conn:
            conn.execute("""
                CREATE TABLE IF NOT EXISTS print_jobs (
                    id TEXT PRIMARY KEY,
                    owner_id TEXT NOT NULL,
                    owner_display_name TEXT NOT NULL,
                    file_ref TEXT NOT NULL,
                    file_name TEXT NOT NULL,
                    file_kind TEXT NOT NULL,
                    file_size_bytes INTEGER NOT NULL,
                    status TEXT NOT NULL,
                    user_note TEXT,
                    admin_note TEXT,
                    created_at TEXT NOT NULL,
                    updated_at TEXT NOT NULL
                )
            """)

            conn.execute("""
                CREATE INDEX IF NOT EXISTS idx_print_jobs_owner_id
                ON print_jobs(owner_id)
            """)

            conn.execute("""
                CREATE INDEX IF NOT EXISTS idx_print_jobs_status
                ON print_jobs(status)
            """)

            conn.execute("""
                CREATE INDEX IF NOT EXISTS idx_print_jobs_created_at
                ON print_jobs(created_at DESC)
            """)

    def create_job(
        self,
        owner_id: str,
        owner_display_name: str,
        file_ref: str,
        file_name: str,
        file_kind: str,
        file_size_bytes: int,
        user_note: Optional[str] = None,
    ) -> str:
        """
        Insert a new job in the initial status.

        The caller is expected to have validated the file already.

        Returns:
            The new job ID
        """
        job_id = uuid4().hex
        now = serialize_datetime(utcnow())
        with connect(self.db_path) as conn:
            conn.execute("""
                INSERT INTO print_jobs (
                    id, owner_id, owner_display_name, file_ref, file_name,
                    file_kind, file_size_bytes, status, user_note, admin_note,
                    created_at, updated_at
                ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, NULL, ?, ?)
            """, (
                job_id,
                owner_id,
                owner_display_name,
                file_ref,
                file_name,
                file_kind,
                file_size_bytes,
                INITIAL_STATUS.value,
                user_note,
                now,
                now,
            ))
        return job_id

    def get_by_id(self, job_id: str) -> Job:
        """
        Retrieve a job by ID.

        Raises:
            NotFoundError: If no job has this ID
        """
        with connect(self.db_path) as conn:
            row = conn.execute(
                "SELECT * FROM print_jobs WHERE id = ?", (job_id,)
            ).fetchone()

        if not row:
            raise NotFoundError("Job", job_id)
        return self._row_to_job(row)

    def list_by_owner(self, owner_id: str) -> List[Job]:
        """List one owner's jobs, newest first."""
        return self._list("WHERE owner_id = ?", (owner_id,))

    def list_all(self) -> List[Job]:
        """List every job, newest first. Callers must restrict this to admins."""
        return self._list("", ())

    def list_by_status(self, status: JobStatus) -> List[Job]:
        """List jobs currently in one status, newest first."""
        return self._list("WHERE status = ?", (JobStatus(status).value,))

    def set_status(self, job_id: str, status: JobStatus) -> str:
        """
        Set a job's status and refresh updated_at.

        Raises:
            NotFoundError: If no job has this ID
        """
        return self._update(job_id, "status", JobStatus(status).value)

    def set_admin_note(self, job_id: str, note: Optional[str]) -> str:
        """
        Set a job's admin note and refresh updated_at.

        Raises:
            NotFoundError: If no job has this ID
        """
        return self._update(job_id, "admin_note", note)

    def _update(self, job_id: str, column: str, value: Optional[str]) -> str:
        with connect(self.db_path) as conn:
            row = conn.execute(
                "SELECT updated_at FROM print_jobs WHERE id = ?", (job_id,)
            ).fetchone()

            if not row:
                raise NotFoundError("Job", job_id)

            updated_at = _next_timestamp(deserialize_datetime(row["updated_at"]))
            conn.execute(
                f"UPDATE print_jobs SET {column} = ?, updated_at = ? WHERE id = ?",
                (value, serialize_datetime(updated_at), job_id),
            )
        return job_id

    def _list(self, where: str, params: tuple) -> List[Job]:
        with connect(self.db_path) as conn:
            rows = conn.execute(
                f"SELECT * FROM print_jobs {where} ORDER BY created_at DESC, rowid DESC",
                params,
            ).fetchall()

        return [self._row_to_job(row) for row in rows]

    def _row_to_job(self, row: sqlite3.Row) -> Job:
        """Convert a database row to a Job model."""
        return Job(
            id=row["id"],
            owner_id=row["owner_id"],
            owner_display_name=row["owner_display_name"],
            file_ref=row["file_ref"],
            file_name=row["file_name"],
            file_kind=row["file_kind"],
            file_size_bytes=row["file_size_bytes"],
            status=JobStatus(row["status"]),
            user_note=row["user_note"],
            admin_note=row["admin_note"],
            created_at=deserialize_datetime(row["created_at"]),
            updated_at=deserialize_datetime(row["updated_at"]),
        )
